"""Generic, attribute-driven encoding and decoding.

The coder walks an object's effective codable attributes in sorted key
order. For every key it first offers the object's override hook
(``encode_key`` / ``decode_key``); a truthy answer means the object has
handled that key itself and the generic path leaves it alone. Otherwise
the value is read through the accessor bridge and written to the sink,
or read from the source, kind-checked, and written back through the
bridge.

Unsupported values and rejected writes are recorded per key and do not
stop the pass. A decoded value whose kind disagrees with the declared
kind raises TypeMismatchError and aborts the decode.
"""

import logging
from functools import lru_cache
from typing import Any, Dict, Mapping, Optional, Protocol, runtime_checkable

from autocoding.codes import IssueCode
from autocoding.config import get_settings
from autocoding.contracts import CodingIssue, CodingReport
from autocoding.errors import (
    AccessorRejectedError,
    TypeMismatchError,
    UnsupportedValueKindError,
)
from autocoding.kernel.accessors import AccessorBridge
from autocoding.kernel.attributes import (
    AttributeRegistry,
    CodableAttribute,
    default_registry,
    qualified_name,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyedSink(Protocol):
    """Keyed destination for encoded values."""

    def encode_value(self, value: Any, key: str) -> None:
        """Store *value* under *key*.

        Raises:
            UnsupportedValueKindError: If the value cannot be represented
        """
        ...


@runtime_checkable
class KeyedSource(Protocol):
    """Keyed origin of decoded values."""

    def contains_key(self, key: str) -> bool:
        ...

    def decode_value(self, key: str) -> Any:
        """Value stored under *key*, or None if there is none."""
        ...


@runtime_checkable
class CodingHooks(Protocol):
    """Optional per-key overrides. Return True when the key was handled."""

    def encode_key(self, key: str, sink: KeyedSink) -> bool:
        ...

    def decode_key(self, key: str, source: KeyedSource) -> bool:
        ...


class GenericCoder:
    """Encodes and decodes objects using their codable attribute maps."""

    def __init__(
        self,
        registry: Optional[AttributeRegistry] = None,
        bridge: Optional[AccessorBridge] = None,
        strict_kinds: Optional[bool] = None,
    ):
        self.registry = registry or default_registry()
        self.bridge = bridge or AccessorBridge(self.registry)
        self._strict_kinds = strict_kinds

    @property
    def strict_kinds(self) -> bool:
        """Explicit constructor value, else the current ``strict_kinds`` setting."""
        if self._strict_kinds is None:
            return get_settings().strict_kinds
        return self._strict_kinds

    def _sorted_attributes(self, obj: Any):
        attributes = self.registry.effective_attributes_of(obj)
        return [(key, attributes[key]) for key in sorted(attributes)]

    def encode(self, obj: Any, sink: KeyedSink) -> CodingReport:
        """Write every codable attribute of *obj* to *sink*."""
        type_name = qualified_name(type(obj))
        report = CodingReport(type_name=type_name)
        hook = getattr(obj, "encode_key", None)
        for key, attribute in self._sorted_attributes(obj):
            if hook is not None and hook(key, sink):
                report.handled_keys.append(key)
                continue
            value = self.bridge.read(obj, attribute)
            try:
                sink.encode_value(value, key)
            except UnsupportedValueKindError as err:
                _record(report, IssueCode.UNSUPPORTED_VALUE_KIND, key, err)
        return report

    def decode(self, obj: Any, source: KeyedSource) -> CodingReport:
        """Populate *obj* in place from *source* (``setWithCoder`` semantics).

        Keys missing from the source are left untouched, so decoding
        several sources into one object merges them.

        Raises:
            TypeMismatchError: If a stored value is incompatible with the
                attribute's declared kind
        """
        type_name = qualified_name(type(obj))
        report = CodingReport(type_name=type_name)
        hook = getattr(obj, "decode_key", None)
        strict = self.strict_kinds
        for key, attribute in self._sorted_attributes(obj):
            if hook is not None and hook(key, source):
                report.handled_keys.append(key)
                continue
            if not source.contains_key(key):
                continue
            try:
                value = source.decode_value(key)
            except UnsupportedValueKindError as err:
                _record(report, IssueCode.UNSUPPORTED_VALUE_KIND, key, err)
                continue
            if strict and not attribute.accepts(value):
                raise TypeMismatchError(
                    f"{type_name}.{key} expects {attribute.type_label}, "
                    f"archive holds {type(value).__name__}"
                )
            try:
                self.bridge.write(obj, attribute, value)
            except AccessorRejectedError as err:
                _record(report, IssueCode.ACCESSOR_REJECTED, key, err)
        return report

    def dictionary_representation(self, obj: Any) -> Dict[str, Any]:
        """Snapshot of attribute values. Never calls the override hooks."""
        return {
            key: self.bridge.read(obj, attribute)
            for key, attribute in self._sorted_attributes(obj)
        }


def _record(report: CodingReport, code: IssueCode, key: str, err: Exception) -> None:
    issue = CodingIssue(code=code, key=key, type_name=report.type_name or "", message=str(err))
    report.issues.append(issue)
    logger.warning("%s %s.%s: %s", code.value, issue.type_name, key, err)


@lru_cache(maxsize=1)
def default_coder() -> GenericCoder:
    """Process-wide coder over the default registry."""
    return GenericCoder()


def encode(obj: Any, sink: KeyedSink) -> CodingReport:
    return default_coder().encode(obj, sink)


def decode(obj: Any, source: KeyedSource) -> CodingReport:
    return default_coder().decode(obj, source)


def dictionary_representation(obj: Any) -> Dict[str, Any]:
    return default_coder().dictionary_representation(obj)


class Codable:
    """Mixin giving objects the codable conveniences as methods and properties.

    Nothing requires inheriting from it: every function in autocoding
    accepts any object. The default hooks decline every key.
    """

    __slots__ = ()

    @property
    def codable_attributes(self) -> Mapping[str, CodableAttribute]:
        """All codable attributes, inherited ones included."""
        return default_registry().effective_attributes_of(self)

    @property
    def dictionary_representation(self) -> Dict[str, Any]:
        return dictionary_representation(self)

    def encode_with_coder(self, sink: KeyedSink) -> CodingReport:
        return encode(self, sink)

    def set_with_coder(self, source: KeyedSource) -> CodingReport:
        return decode(self, source)

    def encode_key(self, key: str, sink: KeyedSink) -> bool:
        return False

    def decode_key(self, key: str, source: KeyedSource) -> bool:
        return False

    @classmethod
    def object_with_contents_of_file(cls, path: Any) -> Any:
        """Load a file; the root must be an instance of *cls* unless *cls* is Codable.

        Raises:
            TypeMismatchError: If the root object is of an unrelated type
        """
        from autocoding import api

        if cls is Codable:
            return api.load(path)
        return api.load_as(cls, path)

    def write_to_file(self, path: Any, atomically: Optional[bool] = None) -> bool:
        from autocoding import api

        return api.write(self, path, atomically=atomically)
