"""autocoding: automatic attribute-driven persistence for Python objects."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("autocoding")
except PackageNotFoundError:
    __version__ = "dev"

# Public API exports
from autocoding.api import load, load_as, write, sniff, choose_format
from autocoding.codes import FileFormat, IssueCode, ValueKind
from autocoding.contracts import CodingIssue, CodingReport
from autocoding.errors import (
    AccessorRejectedError,
    ArchiveError,
    AutoCodingError,
    TypeMismatchError,
    UnsupportedValueKindError,
)
from autocoding.kernel.accessors import AccessorBridge
from autocoding.kernel.attributes import (
    AttributeRegistry,
    CodableAttribute,
    Skip,
    attributes_of,
    effective_attributes_of,
)
from autocoding.kernel.coding import Codable, GenericCoder, dictionary_representation

__all__ = [
    "__version__",
    "load",
    "load_as",
    "write",
    "sniff",
    "choose_format",
    "FileFormat",
    "IssueCode",
    "ValueKind",
    "CodingIssue",
    "CodingReport",
    "AutoCodingError",
    "TypeMismatchError",
    "UnsupportedValueKindError",
    "AccessorRejectedError",
    "ArchiveError",
    "AccessorBridge",
    "AttributeRegistry",
    "CodableAttribute",
    "Skip",
    "attributes_of",
    "effective_attributes_of",
    "Codable",
    "GenericCoder",
    "dictionary_representation",
]
