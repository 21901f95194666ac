"""Tests for the keyed JSON archive."""

import json
from datetime import datetime, timezone

import pytest

from autocoding import ArchiveError, IssueCode, TypeMismatchError, UnsupportedValueKindError
from autocoding._internal.archive import (
    ARCHIVER_NAME,
    KeyedArchiver,
    KeyedUnarchiver,
    archived_data,
    parse_envelope,
    unarchive,
)
from autocoding.kernel.coding import dictionary_representation
from sample_models import (
    Color,
    Counter,
    Frozen,
    Holder,
    Inventory,
    Node,
    Point,
    Shape,
    Slotted,
    Unrelated,
    Validated,
    Virtual,
)


def _payload(data: bytes) -> dict:
    return json.loads(data.decode("utf-8"))


def _link_chain_archive(depth: int) -> bytes:
    """Archive of a Link chain built directly, without encoding a deep graph."""
    objects = ["$null"] + [
        {
            "$class": "sample_models:Link",
            "$attrs": {"value": i, "next": {"$ref": i + 2} if i + 1 < depth else None},
        }
        for i in range(depth)
    ]
    payload = {
        "$archiver": ARCHIVER_NAME,
        "$version": 1,
        "$top": {"root": {"$ref": 1}},
        "$objects": objects,
    }
    return json.dumps(payload).encode("utf-8")


class TestLayout:

    def test_envelope(self):
        payload = _payload(archived_data(Counter("a", 1)))
        assert payload["$archiver"] == ARCHIVER_NAME
        assert payload["$version"] == 1
        assert payload["$objects"][0] == "$null"
        assert payload["$top"]["root"] == {"$ref": 1}
        assert payload["$objects"][1] == {
            "$class": "sample_models:Counter",
            "$attrs": {"count": 1, "name": "a"},
        }

    def test_byte_stable(self):
        item = Inventory(owner="o", tags={"b", "a", "c"}, items={"x": 1})
        assert archived_data(item) == archived_data(item)

    def test_scalar_set_members_do_not_depend_on_insertion_order(self):
        words = [f"tag-{i}" for i in range(50)]
        forward = Inventory(owner="o", tags=set(words))
        backward = Inventory(owner="o", tags=set(reversed(words)))
        assert archived_data(forward) == archived_data(backward)

    def test_shared_references_are_stored_once(self):
        shared = Counter("shared", 1)
        data = archived_data([shared, shared])
        payload = _payload(data)
        assert payload["$objects"][1] == {"$array": [{"$ref": 2}, {"$ref": 2}]}
        restored = unarchive(data)
        assert restored[0] is restored[1]


class TestRoundTrip:

    def test_dataclass_with_rich_values(self):
        item = Inventory(
            owner="ann",
            items={"apples": 3, "pears": 0},
            created=datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc),
            color=Color.GREEN,
            corner=Point(3, 4),
            payload=b"\x00\x01binary",
            tags={"fruit", "fresh"},
            ratio=0.25,
            active=False,
        )
        restored = unarchive(archived_data(item))
        assert restored == item
        assert type(restored.corner) is Point
        assert dictionary_representation(restored) == dictionary_representation(item)

    def test_cycles_through_objects_and_lists(self):
        root = Node("root")
        child = Node("child", parent=root)
        Node("grandchild", parent=child)

        restored = unarchive(archived_data(root))
        assert restored.label == "root"
        assert restored.parent is None
        restored_child = restored.children[0]
        assert restored_child.parent is restored
        assert restored_child.children[0].parent is restored_child

    def test_self_referencing_list(self):
        items = [1]
        items.append(items)
        restored = unarchive(archived_data(items))
        assert restored[0] == 1
        assert restored[1] is restored

    def test_slots_and_frozen(self):
        restored = unarchive(archived_data([Slotted(1, 2), Frozen("k", 5)]))
        assert (restored[0].x, restored[0].y) == (1, 2)
        assert restored[1] == Frozen("k", 5)

    def test_override_hooks_shape_the_archive(self):
        data = archived_data(Shape("sq", Point(7, 8)))
        attrs = _payload(data)["$objects"][1]["$attrs"]
        assert attrs == {"name": "sq", "origin.x": 7, "origin.y": 8}
        restored = unarchive(data)
        assert restored.origin == Point(7, 8)

    def test_virtual_attribute(self):
        restored = unarchive(archived_data(Virtual("Ada", "Lovelace")))
        assert restored.full_name == "Ada Lovelace"

    def test_dict_with_non_string_keys(self):
        value = {1: "one", (1, 2): "pair", Color.RED: "red"}
        assert unarchive(archived_data(value)) == value

    def test_class_map_restores_renamed_class(self):
        data = archived_data(Counter("a", 1)).replace(b"sample_models:Counter", b"old_module:Counter")
        restored = unarchive(data, class_map={"old_module:Counter": Counter})
        assert isinstance(restored, Counter)
        assert restored.count == 1


class TestEncodeFailures:

    def test_unsupported_root_raises(self):
        with pytest.raises(UnsupportedValueKindError):
            archived_data(len)

    def test_local_class_is_unsupported(self):
        class Local:
            value: int

        with pytest.raises(UnsupportedValueKindError, match="local scope"):
            archived_data(Local())

    def test_unsupported_attribute_is_skipped_and_recorded(self):
        archiver = KeyedArchiver()
        payload = archiver.archive_root(Holder("kept", thing=[1, print]))
        attrs = payload["$objects"][1]["$attrs"]
        assert attrs == {"label": "kept"}
        # The half-built list was rolled back out of the object table
        assert len(payload["$objects"]) == 2
        assert [issue.key for issue in archiver.issues] == ["thing"]


class TestDecodeFailures:

    @pytest.mark.parametrize(
        "data",
        [
            b"",
            b"\xff\xfe not utf8",
            b"[1, 2, 3]",
            b'{"plain": "document"}',
            b'{"$archiver": "somebody.else", "$version": 1, "$top": {}, "$objects": ["$null"]}',
            b'{"$archiver": "autocoding.KeyedArchiver", "$version": 99, "$top": {}, "$objects": ["$null"]}',
            b'{"$archiver": "autocoding.KeyedArchiver", "$version": 1, "$top": {}, "$objects": ["$null"]}',
            b'{"$archiver": "autocoding.KeyedArchiver", "$version": 1, "$top": {"root": {"$ref": 5}}, "$objects": ["$null"]}',
        ],
    )
    def test_malformed_archives_raise_archive_error(self, data):
        with pytest.raises(ArchiveError):
            unarchive(data)

    def test_unresolvable_root_class(self):
        data = archived_data(Counter("a", 1)).replace(b"sample_models:Counter", b"no_such_module:Counter")
        with pytest.raises(ArchiveError, match="cannot restore root"):
            unarchive(data)

    def test_unresolvable_nested_class_is_recorded(self):
        data = archived_data(Holder("h", thing=Counter("c", 1))).replace(
            b"sample_models:Counter", b"sample_models:Missing"
        )
        unarchiver = KeyedUnarchiver(data)
        restored = unarchiver.decode_root()
        assert restored.label == "h"
        assert not hasattr(restored, "thing")
        assert [issue.code for issue in unarchiver.issues] == [IssueCode.UNSUPPORTED_VALUE_KIND]

    def test_kind_mismatch_in_archive_is_fatal(self):
        data = archived_data(Counter("a", 1)).replace(b'"count":1', b'"count":"one"')
        with pytest.raises(TypeMismatchError):
            unarchive(data)

    def test_nested_object_of_wrong_class(self):
        root = Node("root")
        data = archived_data(root)
        tampered = _payload(data)
        tampered["$objects"][1]["$attrs"]["parent"] = {"$ref": 3}
        tampered["$objects"].append({"$class": "sample_models:Unrelated", "$attrs": {"marker": 1}})
        with pytest.raises(TypeMismatchError, match="parent"):
            unarchive(json.dumps(tampered).encode("utf-8"))

    def test_accessor_rejection_does_not_abort(self):
        data = archived_data(Validated("v", 3)).replace(b'"age":3', b'"age":-3')
        restored = unarchive(data)
        assert restored.label == "v"
        assert not hasattr(restored, "_age")

    def test_tuple_cycle_is_rejected(self):
        payload = {
            "$archiver": ARCHIVER_NAME,
            "$version": 1,
            "$top": {"root": {"$ref": 1}},
            "$objects": ["$null", {"$tuple": [{"$ref": 1}]}],
        }
        with pytest.raises(ArchiveError, match="immutable"):
            unarchive(json.dumps(payload).encode("utf-8"))

    def test_graph_deeper_than_recursion_limit_raises_archive_error(self):
        with pytest.raises(ArchiveError, match="nested too deeply"):
            unarchive(_link_chain_archive(5000))


def test_parse_envelope_accepts_archiver_output():
    envelope = parse_envelope(archived_data(Unrelated(3)))
    assert envelope.archiver == ARCHIVER_NAME
    assert len(envelope.objects) == 2
