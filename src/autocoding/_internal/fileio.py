"""File I/O helpers (internal)."""

import contextlib
import os
import tempfile
from pathlib import Path
from typing import Union


def read_file(path: Union[str, os.PathLike]) -> bytes:
    """Read a file's bytes. Raises OSError on failure."""
    return Path(path).read_bytes()


def write_file(path: Union[str, os.PathLike], data: bytes, atomically: bool = True) -> None:
    """Write *data* to *path*.

    With ``atomically`` the bytes go to a temporary file in the target
    directory, which then replaces the target. The target is either left
    untouched or fully replaced; the temporary file is removed on failure.

    Raises:
        OSError: If the file cannot be written
    """
    target = Path(path)
    if not atomically:
        target.write_bytes(data)
        return

    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, target)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_name)
        raise
