"""autocoding CLI: inspect files written by autocoding."""

import argparse
import base64
import logging
import sys
from datetime import date
from enum import Enum
from importlib.metadata import version as get_version, PackageNotFoundError
from pathlib import Path
from typing import Any, List, Optional

from autocoding._internal.canonical_json import document_dumps
from autocoding._internal.fileio import read_file
from autocoding.api import sniff
from autocoding.config import ConfigError, load_settings
from autocoding.errors import TypeMismatchError
from autocoding.kernel.attributes import qualified_name
from autocoding.kernel.coding import dictionary_representation


def to_jsonable(value: Any, _seen: Optional[frozenset] = None) -> Any:
    """Render a loaded value as plain JSON for display.

    Objects become their dictionary representation plus a ``$class``
    entry; cycles are cut with a ``$cycle`` marker.
    """
    seen = _seen or frozenset()
    if isinstance(value, Enum):
        return f"{type(value).__name__}.{value.name}"
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, date):
        return value.isoformat()
    if id(value) in seen:
        return {"$cycle": type(value).__name__}
    inner = seen | {id(value)}
    if isinstance(value, dict):
        return {str(key): to_jsonable(item, inner) for key, item in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted((to_jsonable(item, inner) for item in value), key=repr)
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item, inner) for item in value]
    rendered = {"$class": qualified_name(type(value))}
    rendered.update(
        (key, to_jsonable(item, inner)) for key, item in dictionary_representation(value).items()
    )
    return rendered


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point for autocoding commands."""
    try:
        autocoding_version = get_version("autocoding")
    except PackageNotFoundError:
        autocoding_version = "dev"

    parser = argparse.ArgumentParser(
        prog="autocoding",
        description="autocoding: inspect archived object graphs, documents and raw files"
    )
    parser.add_argument("--version", action="version", version=f"autocoding {autocoding_version}")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Logging level (defaults to AUTOCODING_LOG_LEVEL or WARNING)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    sniff_parser = subparsers.add_parser("sniff", help="Print the detected file format")
    sniff_parser.add_argument("path", type=Path, help="File to inspect")

    show_parser = subparsers.add_parser("show", help="Load a file and print it as JSON")
    show_parser.add_argument("path", type=Path, help="File to load")

    args = parser.parse_args(argv)

    try:
        settings = load_settings(log_level=args.log_level)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    try:
        data = read_file(args.path)
    except OSError as e:
        print(f"Error: cannot read {args.path}: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        file_format, value = sniff(data)
    except TypeMismatchError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.command == "sniff":
        print(file_format.value)
    else:
        print(document_dumps(to_jsonable(value), indent=settings.document_indent), end="")
    sys.exit(0)


if __name__ == "__main__":
    main()
