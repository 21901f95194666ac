"""Attribute discovery: which attributes of a class are codable.

A class's own codable attributes are the attributes it declares in its
own body (properties and public class-level annotations) that are backed
by a storage field declared in the same body. A storage field is a
class-level annotation or a ``__slots__`` entry, and it matches when its
name equals the attribute name or the attribute name prefixed with an
underscore:

    class Note:
        title: str                  # codable, stored in "title"
        _body: str

        @property
        def body(self) -> str:      # codable, stored in "_body"
            return self._body

        @property
        def summary(self) -> str:   # not codable, no matching field
            return self.title[:20]

Breaking the name match is the way to keep an attribute out of archives.
``Annotated[T, Skip]`` does the same explicitly. A class can bypass
discovery entirely by declaring ``__codable_attributes__``, a mapping of
name to ValueKind or type; this is how virtual attributes are added.

Discovery only looks at a class's own body. Inherited attributes are
merged by ``effective_attributes_of``, most-derived class winning.
"""

import collections.abc
import inspect
import logging
import re
import sys
import types
import typing
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Union

from autocoding.codes import ValueKind

logger = logging.getLogger(__name__)


class _SkipMarker:
    """Metadata marker excluding an attribute from coding."""

    def __repr__(self) -> str:
        return "Skip"


Skip = _SkipMarker()

_MISSING = object()

# "Annotated[X, Skip]" and "typing.Annotated[X, ..., autocoding.Skip]" as text
_SKIPPED_TEXT = re.compile(r"^(?:\w+\.)*Annotated\[.*,\s*(?:\w+\.)*Skip\s*(?:,.*)?\]$", re.DOTALL)

# Value types checked when an attribute carries a kind but no concrete type
_KIND_TYPES: Dict[ValueKind, Tuple[type, ...]] = {
    ValueKind.TEXT: (str,),
    ValueKind.NUMBER: (int, float),
    ValueKind.BOOLEAN: (bool,),
    ValueKind.DATA: (bytes, bytearray),
    ValueKind.DATE: (date,),
    ValueKind.COLLECTION: (list, dict, set, frozenset, tuple),
}


@dataclass(frozen=True)
class CodableAttribute:
    """One entry of an attribute map."""
    name: str
    kind: ValueKind
    value_type: Optional[type] = None  # None means "check by kind only"
    storage_name: Optional[str] = None  # None for virtual attributes
    has_accessor: bool = False  # declared as a property

    def accepts(self, value: Any) -> bool:
        """Return True if *value* can be assigned to this attribute."""
        if value is None or self.kind is ValueKind.ANY:
            return True
        if self.kind in (ValueKind.NUMBER, ValueKind.DATA):
            return isinstance(value, _KIND_TYPES[self.kind])
        if self.value_type is not None:
            return isinstance(value, self.value_type)
        expected = _KIND_TYPES.get(self.kind)
        return expected is None or isinstance(value, expected)

    @property
    def type_label(self) -> str:
        if self.value_type is not None:
            return self.value_type.__name__
        return self.kind.value


def qualified_name(cls: type) -> str:
    """Importable name of a class, e.g. ``"package.module:Outer.Inner"``."""
    return f"{cls.__module__}:{cls.__qualname__}"


def resolve_kind(annotation: Any) -> Tuple[ValueKind, Optional[type], bool]:
    """Map a type annotation to ``(kind, value_type, skipped)``.

    Args:
        annotation: A resolved annotation, a string (unresolved forward
            reference) or ``_MISSING``

    Returns:
        The value kind, the concrete class values must be instances of
        (None when only the kind can be checked), and whether the
        annotation carries the ``Skip`` marker
    """
    if isinstance(annotation, str):
        # Unresolvable, but an explicit Skip must still exclude the attribute
        return ValueKind.ANY, None, bool(_SKIPPED_TEXT.match(annotation.strip()))
    origin = typing.get_origin(annotation)
    if origin is typing.Annotated:
        base, *extras = typing.get_args(annotation)
        kind, value_type, skipped = resolve_kind(base)
        return kind, value_type, skipped or any(extra is Skip for extra in extras)
    if origin is Union or isinstance(annotation, types.UnionType):
        members = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(members) == 1:
            return resolve_kind(members[0])
        return ValueKind.ANY, None, False
    if origin is not None:
        # list[int], Dict[str, int], collections.abc.Mapping[str, Any], ...
        annotation = origin
    if annotation is Any or annotation is object or not isinstance(annotation, type):
        return ValueKind.ANY, None, False

    if issubclass(annotation, bool):
        return ValueKind.BOOLEAN, bool, False
    if issubclass(annotation, Enum):
        return ValueKind.VALUE, annotation, False
    if issubclass(annotation, str):
        return ValueKind.TEXT, annotation, False
    if issubclass(annotation, (int, float)):
        return ValueKind.NUMBER, annotation, False
    if issubclass(annotation, (bytes, bytearray)):
        return ValueKind.DATA, annotation, False
    if issubclass(annotation, date):
        return ValueKind.DATE, annotation, False
    if issubclass(annotation, tuple):
        return ValueKind.VALUE, annotation, False
    if issubclass(annotation, collections.abc.Collection):
        return ValueKind.COLLECTION, annotation, False
    return ValueKind.OBJECT, annotation, False


def _namespaces(target: Any) -> Tuple[Dict[str, Any], Optional[Dict[str, Any]]]:
    if isinstance(target, type):
        module = sys.modules.get(target.__module__)
        return dict(getattr(module, "__dict__", {})), dict(vars(target))
    return dict(getattr(target, "__globals__", {})), None


def _evaluate(annotation: Any, globalns: Dict[str, Any], localns: Optional[Dict[str, Any]]) -> Any:
    if isinstance(annotation, typing.ForwardRef):
        annotation = annotation.__forward_arg__
    if not isinstance(annotation, str):
        return annotation
    try:
        return eval(annotation, globalns, localns)
    except (NameError, SyntaxError, TypeError, AttributeError):
        return annotation


def _resolve_annotations(target: Any) -> Dict[str, Any]:
    """Own annotations of a class or function, resolved where possible.

    Only names annotated on *target* itself are returned. When the
    annotations cannot all be evaluated together (one of them names
    something only imported under TYPE_CHECKING, say) each one is
    evaluated on its own, and those that still fail stay strings.
    """
    try:
        own = inspect.get_annotations(target)
    except NameError:
        # Deferred annotations (3.14+) referencing undefined names
        import annotationlib
        own = annotationlib.get_annotations(target, format=annotationlib.Format.FORWARDREF)
    if not own:
        return {}
    try:
        hints = typing.get_type_hints(target, include_extras=True)
    except (NameError, SyntaxError, TypeError, AttributeError):
        globalns, localns = _namespaces(target)
        return {name: _evaluate(annotation, globalns, localns) for name, annotation in own.items()}
    return {name: hints.get(name, annotation) for name, annotation in own.items()}


def _is_classvar(annotation: Any) -> bool:
    if isinstance(annotation, str):
        return annotation.startswith(("ClassVar", "typing.ClassVar"))
    return annotation is ClassVar or typing.get_origin(annotation) is ClassVar


def _own_slots(cls: type) -> Tuple[str, ...]:
    slots = cls.__dict__.get("__slots__", ())
    if isinstance(slots, str):
        slots = (slots,)
    return tuple(name for name in slots if name not in ("__dict__", "__weakref__"))


def _storage_fields(cls: type) -> Dict[str, Any]:
    """Storage fields declared in the class body: name -> annotation."""
    fields = {
        name: annotation
        for name, annotation in _resolve_annotations(cls).items()
        if not _is_classvar(annotation)
    }
    for slot in _own_slots(cls):
        fields.setdefault(slot, _MISSING)
    return fields


def _property_annotation(accessor: property) -> Any:
    if accessor.fget is None:
        return _MISSING
    return _resolve_annotations(accessor.fget).get("return", _MISSING)


def _match_storage(name: str, fields: Mapping[str, Any], is_property: bool) -> Optional[str]:
    underscored = f"_{name}"
    if is_property and underscored in fields:
        return underscored
    if name in fields:
        return name
    if underscored in fields:
        return underscored
    return None


def _discover(cls: type) -> Dict[str, CodableAttribute]:
    fields = _storage_fields(cls)
    override = cls.__dict__.get("__codable_attributes__")
    if override is not None:
        return _from_override(cls, override, fields)

    declared: Dict[str, Tuple[Any, bool]] = {}
    for name, member in cls.__dict__.items():
        if isinstance(member, property):
            declared[name] = (_property_annotation(member), True)
    for name, annotation in fields.items():
        if not name.startswith("_") and name not in declared:
            declared[name] = (annotation, False)

    attributes: Dict[str, CodableAttribute] = {}
    for name in sorted(declared):
        annotation, is_property = declared[name]
        storage = _match_storage(name, fields, is_property)
        if storage is None:
            logger.debug("%s.%s has no matching storage field; not codable", cls.__qualname__, name)
            continue
        kind, value_type, skipped = resolve_kind(annotation)
        field_kind, field_type, field_skipped = resolve_kind(fields[storage])
        if skipped or field_skipped:
            logger.debug("%s.%s is marked Skip", cls.__qualname__, name)
            continue
        if kind is ValueKind.ANY:
            kind, value_type = field_kind, field_type
        attributes[name] = CodableAttribute(
            name=name,
            kind=kind,
            value_type=value_type,
            storage_name=storage,
            has_accessor=is_property,
        )
    return attributes


def _from_override(
    cls: type, override: Mapping[str, Any], fields: Mapping[str, Any]
) -> Dict[str, CodableAttribute]:
    attributes: Dict[str, CodableAttribute] = {}
    for name in sorted(override):
        declared = override[name]
        if isinstance(declared, ValueKind):
            kind, value_type = declared, None
        else:
            kind, value_type, _ = resolve_kind(declared)
        member = inspect.getattr_static(cls, name, None)
        is_property = isinstance(member, property)
        attributes[name] = CodableAttribute(
            name=name,
            kind=kind,
            value_type=value_type,
            storage_name=_match_storage(name, fields, is_property),
            has_accessor=is_property,
        )
    return attributes


class AttributeRegistry:
    """Per-class cache of codable attribute maps.

    Maps are computed on first use and kept for the lifetime of the
    registry. Concurrent first computations for the same class may both
    run; ``dict.setdefault`` publishes exactly one of them.
    """

    def __init__(self) -> None:
        self._cache: Dict[type, Mapping[str, CodableAttribute]] = {}

    def attributes_of(self, cls: type) -> Mapping[str, CodableAttribute]:
        """Codable attributes declared by *cls* itself (not its ancestors)."""
        cached = self._cache.get(cls)
        if cached is not None:
            return cached
        computed = MappingProxyType(_discover(cls))
        return self._cache.setdefault(cls, computed)

    def effective_attributes_of(self, obj: Any) -> Mapping[str, CodableAttribute]:
        """Codable attributes of an instance (or class), including inherited ones."""
        cls = obj if isinstance(obj, type) else type(obj)
        merged: Dict[str, CodableAttribute] = {}
        for klass in reversed(cls.__mro__):
            if klass is object:
                continue
            merged.update(self.attributes_of(klass))
        return MappingProxyType(merged)

    def __contains__(self, cls: type) -> bool:
        return cls in self._cache

    def __len__(self) -> int:
        return len(self._cache)


_default_registry = AttributeRegistry()


def default_registry() -> AttributeRegistry:
    """The process-wide registry, created at import time."""
    return _default_registry


def attributes_of(cls: type) -> Mapping[str, CodableAttribute]:
    return _default_registry.attributes_of(cls)


def effective_attributes_of(obj: Any) -> Mapping[str, CodableAttribute]:
    return _default_registry.effective_attributes_of(obj)
