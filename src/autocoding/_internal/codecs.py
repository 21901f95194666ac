"""Ordered chain of fallible codecs used by the format-sniffing loader.

Each codec's ``try_decode`` returns a CodecOutcome instead of raising for
content it does not recognize, so the loader can move on to the next
candidate. The raw-bytes codec accepts everything and closes the chain.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from autocoding._internal.archive import archived_data, unarchive
from autocoding._internal.canonical_json import document_dumps
from autocoding.codes import FileFormat
from autocoding.errors import ArchiveError
from autocoding.kernel.coding import GenericCoder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CodecOutcome:
    """Result of one decode attempt."""
    ok: bool
    format: FileFormat
    value: Any = None
    reason: Optional[str] = None  # why the codec declined


class ArchiveCodec:
    """Archived object graphs (keyed JSON archives)."""

    format = FileFormat.ARCHIVED_GRAPH

    def __init__(
        self,
        coder: Optional[GenericCoder] = None,
        class_map: Optional[Mapping[str, type]] = None,
    ):
        self._coder = coder
        self._class_map = class_map

    def try_decode(self, data: bytes) -> CodecOutcome:
        # TypeMismatchError is not caught: the archive is well-formed but unsafe to use
        try:
            value = unarchive(data, coder=self._coder, class_map=self._class_map)
        except ArchiveError as err:
            return CodecOutcome(ok=False, format=self.format, reason=str(err))
        return CodecOutcome(ok=True, format=self.format, value=value)

    def encode(self, value: Any) -> bytes:
        return archived_data(value, coder=self._coder)


class DocumentCodec:
    """Structured documents: plain JSON without type metadata."""

    format = FileFormat.STRUCTURED_DOCUMENT

    def __init__(self, indent: int = 2):
        self._indent = indent

    def try_decode(self, data: bytes) -> CodecOutcome:
        try:
            value = json.loads(bytes(data).decode("utf-8"))
        except (UnicodeDecodeError, ValueError, RecursionError) as err:
            return CodecOutcome(ok=False, format=self.format, reason=str(err))
        return CodecOutcome(ok=True, format=self.format, value=value)

    def encode(self, value: Any) -> bytes:
        """Raises TypeError or ValueError for values JSON cannot represent."""
        return document_dumps(value, indent=self._indent).encode("utf-8")


class RawBytesCodec:
    """Fallback: the uninterpreted bytes."""

    format = FileFormat.RAW_BYTES

    def try_decode(self, data: bytes) -> CodecOutcome:
        return CodecOutcome(ok=True, format=self.format, value=bytes(data))

    def encode(self, value: Any) -> bytes:
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise TypeError(f"raw bytes codec cannot encode {type(value).__name__}")
        return bytes(value)


def default_chain(indent: int = 2) -> Sequence[Any]:
    """Archive, then document, then raw bytes."""
    return (ArchiveCodec(), DocumentCodec(indent=indent), RawBytesCodec())


def run_chain(data: bytes, chain: Sequence[Any]) -> CodecOutcome:
    """First successful outcome of *chain*; raw bytes if every codec declines."""
    for codec in chain:
        outcome = codec.try_decode(data)
        if outcome.ok:
            logger.debug("Content recognized as %s", outcome.format.value)
            return outcome
        logger.debug("Not %s: %s", outcome.format.value, outcome.reason)
    return CodecOutcome(ok=True, format=FileFormat.RAW_BYTES, value=bytes(data))
