"""Exception taxonomy for autocoding."""


class AutoCodingError(Exception):
    """Base class for all autocoding errors."""


class TypeMismatchError(AutoCodingError, TypeError):
    """Raised when a reconstructed value's kind disagrees with the declared kind.

    Fatal for the decode (or typed load) that raised it.
    """


class UnsupportedValueKindError(AutoCodingError, TypeError):
    """Raised when a value cannot be represented by the coder."""


class AccessorRejectedError(AutoCodingError, ValueError):
    """Raised when a write through an accessor is refused by the target."""

    def __init__(self, type_name: str, key: str, cause: BaseException):
        self.type_name = type_name
        self.key = key
        self.cause = cause
        super().__init__(f"{type_name}.{key} rejected value: {cause}")


class ArchiveError(AutoCodingError, ValueError):
    """Raised when bytes are not a well-formed keyed archive."""
