"""Centralized JSON serialization.

Archives are written byte-stable: the same object graph produces the same
bytes (objects inside sets aside), so archives can be hashed and diffed.
Structured documents are written pretty-printed so they stay human-readable.
"""

import json
from typing import Any


def canonical_dumps(obj: Any) -> str:
    """
    Canonical JSON serialization for byte-stable archives.
    
    Rules:
    - UTF-8 encoding
    - Sorted keys
    - Stable separators (",", ":")
    - Deterministic list ordering (lists must already be ordered before calling)
    - No trailing whitespace
    
    Args:
        obj: Python object to serialize
        
    Returns:
        Canonical JSON string (UTF-8 encoded)
    """
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False  # UTF-8 encoding
    )


def document_dumps(obj: Any, indent: int = 2) -> str:
    """Human-readable JSON: sorted keys, indented, trailing newline.

    NaN and infinities are rejected since they are not valid JSON.
    """
    return json.dumps(
        obj,
        sort_keys=True,
        indent=indent,
        ensure_ascii=False,
        allow_nan=False,
    ) + "\n"
