"""Enum constants shared across autocoding.

These constants prevent stringly-typed kinds, formats and issue codes
and ensure client code compares against the right values.
"""

from enum import Enum


class ValueKind(str, Enum):
    """Expected kind of a codable attribute's value."""

    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATA = "data"
    DATE = "date"
    COLLECTION = "collection"
    VALUE = "value"  # opaque: tuples, enums and other struct-like values
    OBJECT = "object"  # nested codable object
    ANY = "any"


class FileFormat(str, Enum):
    """On-disk representation detected by content inspection."""

    ARCHIVED_GRAPH = "archived_graph"
    STRUCTURED_DOCUMENT = "structured_document"
    RAW_BYTES = "raw_bytes"


class IssueCode(str, Enum):
    """Non-fatal, per-key problems recorded during encode/decode."""

    UNSUPPORTED_VALUE_KIND = "UNSUPPORTED_VALUE_KIND"
    ACCESSOR_REJECTED = "ACCESSOR_REJECTED"
