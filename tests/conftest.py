"""Pytest configuration for tests.

No sys.path hacks - tests import autocoding from the installed package.
Shared model classes live in sample_models.py next to this file.
"""

import pytest

from autocoding.config import get_settings


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    """Keep AUTOCODING_* variables from the caller's shell out of the tests."""
    for name in ("AUTOCODING_ATOMIC_WRITES", "AUTOCODING_DOCUMENT_INDENT",
                 "AUTOCODING_STRICT_KINDS", "AUTOCODING_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
