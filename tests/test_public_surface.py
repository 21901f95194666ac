"""Test public API surface - ensure imports work correctly and no side effects."""

import types


def test_root_exports():
    import autocoding

    for name in autocoding.__all__:
        assert hasattr(autocoding, name), f"{name} listed in __all__ but missing"


def test_api_functions_are_callable():
    from autocoding.api import choose_format, encode, load, load_as, sniff, write

    for func in (choose_format, encode, load, load_as, sniff, write):
        assert isinstance(func, types.FunctionType)


def test_root_functions_are_api_functions():
    import autocoding
    from autocoding import api

    assert autocoding.load is api.load
    assert autocoding.write is api.write


def test_error_taxonomy():
    from autocoding import (
        AccessorRejectedError,
        ArchiveError,
        AutoCodingError,
        TypeMismatchError,
        UnsupportedValueKindError,
    )

    for error in (AccessorRejectedError, ArchiveError, TypeMismatchError, UnsupportedValueKindError):
        assert issubclass(error, AutoCodingError)
    assert issubclass(TypeMismatchError, TypeError)
    assert issubclass(ArchiveError, ValueError)

