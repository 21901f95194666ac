"""Public API for autocoding: format-sniffing load and write.

``load`` recognizes content, not file names: an archived object graph is
tried first, then a plain structured document, and anything else comes
back as raw bytes. ``write`` picks the encoding from the object: plain
JSON values become readable documents, byte strings are written as-is,
and every other object is archived through the generic coder.
"""

import logging
import math
import os
from pathlib import Path
from typing import Any, Optional, Sequence, Tuple, Type, TypeVar, Union

from autocoding._internal.codecs import (
    ArchiveCodec,
    CodecOutcome,
    DocumentCodec,
    RawBytesCodec,
    default_chain,
    run_chain,
)
from autocoding._internal.fileio import read_file, write_file
from autocoding.codes import FileFormat
from autocoding.config import CodingSettings, get_settings
from autocoding.errors import TypeMismatchError, UnsupportedValueKindError
from autocoding.kernel.attributes import qualified_name

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]
PathOrBytes = Union[str, os.PathLike, bytes, bytearray, memoryview]
T = TypeVar("T")


def _normalize_path(path: PathLike) -> Path:
    """Normalize path input to Path object."""
    return Path(path) if not isinstance(path, Path) else path


def _read_source(source: PathOrBytes) -> Optional[bytes]:
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)
    path = _normalize_path(source)
    try:
        return read_file(path)
    except OSError as err:
        logger.warning("Could not read %s: %s", path, err)
        return None


def sniff(data: Union[bytes, bytearray, memoryview], chain: Optional[Sequence[Any]] = None) -> Tuple[FileFormat, Any]:
    """Detect the representation of *data* and decode it.

    Returns:
        (format, value) where value is the archive root, the document
        root, or the bytes themselves

    Raises:
        TypeMismatchError: If a well-formed archive holds a value that
            contradicts a declared attribute kind
    """
    outcome: CodecOutcome = run_chain(bytes(data), chain or default_chain())
    return outcome.format, outcome.value


def load(source: PathOrBytes, chain: Optional[Sequence[Any]] = None) -> Any:
    """Load any supported representation from a path or from bytes.

    Accepts any root type. Returns None if the file cannot be read.
    """
    data = _read_source(source)
    if data is None:
        return None
    file_format, value = sniff(data, chain)
    logger.debug("Loaded %s as %s", type(value).__name__, file_format.value)
    return value


def load_as(cls: Type[T], source: PathOrBytes, chain: Optional[Sequence[Any]] = None) -> Optional[T]:
    """Load and require the root to be an instance of *cls* (or a subclass).

    Returns None if the file cannot be read.

    Raises:
        TypeMismatchError: If the root is of an unrelated type
    """
    data = _read_source(source)
    if data is None:
        return None
    file_format, value = sniff(data, chain)
    if not isinstance(value, cls):
        raise TypeMismatchError(
            f"Expected root object of type {qualified_name(cls)}, "
            f"loaded {type(value).__name__} from {file_format.value}"
        )
    return value


def _is_document_value(value: Any, path_ids: frozenset = frozenset()) -> bool:
    """True for plain JSON values (exact builtin types, str keys, no cycles)."""
    if value is None or type(value) in (str, int, bool):
        return True
    if type(value) is float:
        return math.isfinite(value)
    if type(value) not in (dict, list) or id(value) in path_ids:
        return False
    inner = path_ids | {id(value)}
    if type(value) is dict:
        return all(
            type(key) is str and _is_document_value(item, inner) for key, item in value.items()
        )
    return all(_is_document_value(item, inner) for item in value)


def choose_format(obj: Any) -> FileFormat:
    """Encoding ``write`` uses for *obj*."""
    if isinstance(obj, (bytes, bytearray)):
        # Bytes that would sniff as JSON are archived so they load back as bytes
        if DocumentCodec().try_decode(bytes(obj)).ok:
            return FileFormat.ARCHIVED_GRAPH
        return FileFormat.RAW_BYTES
    if _is_document_value(obj) and not (isinstance(obj, dict) and "$archiver" in obj):
        return FileFormat.STRUCTURED_DOCUMENT
    return FileFormat.ARCHIVED_GRAPH


def encode(obj: Any, settings: Optional[CodingSettings] = None) -> Tuple[FileFormat, bytes]:
    """Bytes ``write`` would put on disk for *obj*.

    Raises:
        UnsupportedValueKindError: If *obj* cannot be archived at all
    """
    settings = settings or get_settings()
    file_format = choose_format(obj)
    if file_format is FileFormat.RAW_BYTES:
        return file_format, RawBytesCodec().encode(obj)
    if file_format is FileFormat.STRUCTURED_DOCUMENT:
        return file_format, DocumentCodec(indent=settings.document_indent).encode(obj)
    return file_format, ArchiveCodec().encode(obj)


def write(
    obj: Any,
    path: PathLike,
    atomically: Optional[bool] = None,
    settings: Optional[CodingSettings] = None,
) -> bool:
    """Encode *obj* and write it to *path*.

    Args:
        obj: Any object
        path: Destination file
        atomically: Write through a temporary file; defaults to the
            ``atomic_writes`` setting
        settings: Settings to use instead of the process-wide ones

    Returns:
        True on success, False if encoding or writing failed (the failure
        is logged). Object graphs nested deeper than the interpreter's
        recursion limit cannot be encoded.
    """
    settings = settings or get_settings()
    atomic = settings.atomic_writes if atomically is None else atomically
    target = _normalize_path(path)
    try:
        file_format, data = encode(obj, settings)
    except (UnsupportedValueKindError, TypeError, ValueError, RecursionError) as err:
        logger.warning("Could not encode %s for %s: %s", type(obj).__name__, target, err)
        return False
    try:
        write_file(target, data, atomically=atomic)
    except OSError as err:
        logger.warning("Could not write %s: %s", target, err)
        return False
    logger.debug("Wrote %s as %s", target, file_format.value)
    return True
