"""Read and write codable attributes through accessors or storage fields."""

import inspect
import types
from typing import Any, Optional, Union

from autocoding.codes import ValueKind
from autocoding.errors import AccessorRejectedError
from autocoding.kernel.attributes import (
    AttributeRegistry,
    CodableAttribute,
    default_registry,
    qualified_name,
)

AttributeRef = Union[str, CodableAttribute]


def _find_property(cls: type, name: str) -> Optional[property]:
    member = inspect.getattr_static(cls, name, None)
    return member if isinstance(member, property) else None


def _read_storage(obj: Any, storage: str) -> Any:
    """Read a storage field without going through class-level accessors.

    Raises:
        AttributeError: If the field has never been assigned
    """
    instance_dict = getattr(obj, "__dict__", None)
    if instance_dict is not None and storage in instance_dict:
        return instance_dict[storage]
    descriptor = inspect.getattr_static(type(obj), storage, None)
    if isinstance(descriptor, types.MemberDescriptorType):
        return descriptor.__get__(obj, type(obj))
    raise AttributeError(storage)


class AccessorBridge:
    """Resolves attribute names to values on live objects.

    Reads prefer the property getter, then the backing storage field, then
    any class-level default. Writes prefer the property setter, then the
    backing storage field, assigned with ``object.__setattr__`` so that
    read-only properties and frozen dataclasses can still be restored.
    """

    def __init__(self, registry: Optional[AttributeRegistry] = None):
        self.registry = registry or default_registry()

    def _attribute(self, obj: Any, ref: AttributeRef) -> CodableAttribute:
        if isinstance(ref, CodableAttribute):
            return ref
        attribute = self.registry.effective_attributes_of(obj).get(ref)
        if attribute is None:
            # Not in the map: plain attribute semantics
            attribute = CodableAttribute(name=ref, kind=ValueKind.ANY)
        return attribute

    def read(self, obj: Any, ref: AttributeRef) -> Any:
        """Current value of an attribute; unassigned storage reads as None."""
        attribute = self._attribute(obj, ref)
        accessor = _find_property(type(obj), attribute.name)
        if accessor is not None and accessor.fget is not None:
            try:
                return getattr(obj, attribute.name)
            except AttributeError:
                # Getter touched storage that was never assigned
                return None
        if attribute.storage_name is not None:
            try:
                return _read_storage(obj, attribute.storage_name)
            except AttributeError:
                pass
        return getattr(obj, attribute.name, None)

    def write(self, obj: Any, ref: AttributeRef, value: Any) -> None:
        """Assign an attribute.

        Raises:
            AccessorRejectedError: If the setter (or the object) refuses the
                value. Attributes written before the failing one keep
                their new values.
        """
        attribute = self._attribute(obj, ref)
        cls = type(obj)
        accessor = _find_property(cls, attribute.name)
        try:
            if accessor is not None and accessor.fset is not None:
                setattr(obj, attribute.name, value)
            elif attribute.storage_name is None and accessor is None:
                setattr(obj, attribute.name, value)
            elif attribute.storage_name is None:
                raise AttributeError(f"read-only attribute {attribute.name!r} has no storage field")
            elif accessor is not None and attribute.storage_name == attribute.name:
                # Same-named storage is shadowed by the read-only property
                vars(obj)[attribute.storage_name] = value
            else:
                object.__setattr__(obj, attribute.storage_name, value)
        except (ValueError, TypeError, AttributeError) as err:
            raise AccessorRejectedError(qualified_name(cls), attribute.name, err) from err
