"""Tests for the autocoding CLI."""

import json

import pytest

from autocoding import write
from autocoding.cli import main, to_jsonable
from sample_models import Color, Node, Point


def _run(argv, capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(argv)
    captured = capsys.readouterr()
    return excinfo.value.code, captured.out, captured.err


def test_sniff_document(tmp_path, capsys):
    path = tmp_path / "doc.json"
    write({"a": 1}, path)
    code, out, _ = _run(["sniff", str(path)], capsys)
    assert code == 0
    assert out.strip() == "structured_document"


def test_sniff_raw(tmp_path, capsys):
    path = tmp_path / "blob"
    path.write_bytes(b"\x00\x01")
    code, out, _ = _run(["sniff", str(path)], capsys)
    assert code == 0
    assert out.strip() == "raw_bytes"


def test_show_archive(tmp_path, capsys):
    root = Node("root")
    Node("leaf", parent=root)
    path = tmp_path / "tree.archive"
    write(root, path)

    code, out, _ = _run(["show", str(path)], capsys)
    assert code == 0
    shown = json.loads(out)
    assert shown["$class"] == "sample_models:Node"
    assert shown["label"] == "root"
    leaf = shown["children"][0]
    assert leaf["label"] == "leaf"
    assert leaf["parent"] == {"$cycle": "Node"}


def test_missing_file_exits_nonzero(tmp_path, capsys):
    code, _, err = _run(["show", str(tmp_path / "missing")], capsys)
    assert code == 1
    assert "cannot read" in err


def test_no_command_prints_help(capsys):
    code, out, _ = _run([], capsys)
    assert code == 1
    assert "usage" in out


def test_to_jsonable_values():
    assert to_jsonable(b"\x00") == "AA=="
    assert to_jsonable(Color.GREEN) == "Color.GREEN"
    assert to_jsonable(Point(1, 2)) == [1, 2]
    assert to_jsonable({"s": {2, 1}}) == {"s": [1, 2]}
