"""Keyed JSON archive: the coder behind archived object graphs.

Layout (written with canonical_dumps; byte-stable for a given graph, except
that objects held in sets are numbered in set iteration order):

    {
      "$archiver": "autocoding.KeyedArchiver",
      "$version": 1,
      "$top": {"root": <value>},
      "$objects": ["$null", <entry>, ...]
    }

Values are inline JSON scalars, or one of
``{"$data": base64}``, ``{"$datetime": iso}``, ``{"$date": iso}``,
``{"$enum": "module:Qual", "name": member}``, ``{"$ref": uid}``.

Containers and objects live in ``$objects`` and are referenced by uid,
so shared and cyclic references survive a round trip:

    {"$class": "module:Qual", "$attrs": {key: <value>, ...}}
    {"$array": [...]}  {"$tuple": [...]}  {"$set": [...]}
    {"$frozenset": [...]}  {"$dict": [[<key>, <value>], ...]}
"""

import base64
import binascii
import importlib
import json
from datetime import date, datetime
from enum import Enum
from types import BuiltinFunctionType, FunctionType, MethodType, ModuleType
from typing import Any, Dict, List, Literal, Mapping, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from autocoding._internal.canonical_json import canonical_dumps
from autocoding.contracts import CodingIssue
from autocoding.errors import ArchiveError, UnsupportedValueKindError
from autocoding.kernel.attributes import qualified_name
from autocoding.kernel.coding import GenericCoder, default_coder

ARCHIVER_NAME = "autocoding.KeyedArchiver"
ARCHIVE_VERSION = 1

_NULL = "$null"
_ROOT_KEY = "root"
_CONTAINER_TAGS = ("$array", "$tuple", "$set", "$frozenset", "$dict")


class ArchiveEnvelope(BaseModel):
    """Top-level structure of a keyed archive."""
    archiver: Literal["autocoding.KeyedArchiver"] = Field(alias="$archiver")
    version: int = Field(alias="$version")
    top: Dict[str, Any] = Field(alias="$top")
    objects: List[Any] = Field(alias="$objects")

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


def _has_instance_storage(value: Any) -> bool:
    if hasattr(value, "__dict__"):
        return True
    return any("__slots__" in vars(klass) for klass in type(value).__mro__[:-1])


def _check_archivable(value: Any) -> None:
    """Raise UnsupportedValueKindError for values that cannot be restored."""
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        return
    if isinstance(value, (type, ModuleType, FunctionType, BuiltinFunctionType, MethodType)):
        raise UnsupportedValueKindError(f"cannot archive {type(value).__name__} {value!r}")
    cls = type(value)
    if cls.__module__ == "builtins":
        raise UnsupportedValueKindError(f"cannot archive builtin type {cls.__name__}")
    if "<locals>" in cls.__qualname__:
        raise UnsupportedValueKindError(
            f"cannot archive {cls.__qualname__}: classes defined in a local scope cannot be restored"
        )
    if not _has_instance_storage(value):
        raise UnsupportedValueKindError(f"cannot archive {qualified_name(cls)}: no instance storage")


class _AttributeSink:
    """KeyedSink writing one object's ``$attrs`` table."""

    def __init__(self, archiver: "KeyedArchiver", attrs: Dict[str, Any]):
        self._archiver = archiver
        self._attrs = attrs

    def encode_value(self, value: Any, key: str) -> None:
        self._attrs[key] = self._archiver.encode(value)


class _AttributeSource:
    """KeyedSource reading one object's ``$attrs`` table."""

    def __init__(self, unarchiver: "KeyedUnarchiver", attrs: Mapping[str, Any]):
        self._unarchiver = unarchiver
        self._attrs = attrs

    def contains_key(self, key: str) -> bool:
        return key in self._attrs

    def decode_value(self, key: str) -> Any:
        if key not in self._attrs:
            return None
        return self._unarchiver.decode(self._attrs[key])


class KeyedArchiver:
    """Encodes an object graph into the keyed archive layout."""

    def __init__(self, coder: Optional[GenericCoder] = None):
        self._coder = coder or default_coder()
        self._objects: List[Any] = [_NULL]
        self._uids: Dict[int, int] = {}
        self._retained: List[Any] = []  # keeps ids of encoded values unique
        self.issues: List[CodingIssue] = []

    def archive_root(self, root: Any) -> Dict[str, Any]:
        """Encode *root* and return the archive payload.

        Raises:
            UnsupportedValueKindError: If the root itself cannot be archived
        """
        top = {_ROOT_KEY: self.encode(root)}
        return {
            "$archiver": ARCHIVER_NAME,
            "$version": ARCHIVE_VERSION,
            "$top": top,
            "$objects": self._objects,
        }

    def encode(self, value: Any) -> Any:
        """Encoded form of *value*, adding table entries as needed."""
        if isinstance(value, Enum):
            return {"$enum": qualified_name(type(value)), "name": value.name}
        if value is None or isinstance(value, (bool, int, float, str)):
            return value
        if isinstance(value, (bytes, bytearray)):
            return {"$data": base64.b64encode(bytes(value)).decode("ascii")}
        if isinstance(value, datetime):
            return {"$datetime": value.isoformat()}
        if isinstance(value, date):
            return {"$date": value.isoformat()}

        uid = self._uids.get(id(value))
        if uid is not None:
            return {"$ref": uid}
        _check_archivable(value)

        mark = len(self._objects)
        uid = mark
        self._objects.append(None)
        self._uids[id(value)] = uid
        self._retained.append(value)
        try:
            self._objects[uid] = self._encode_entry(value)
        except UnsupportedValueKindError:
            self._rollback(mark)
            raise
        return {"$ref": uid}

    def _rollback(self, mark: int) -> None:
        del self._objects[mark:]
        del self._retained[mark - 1:]
        self._uids = {key: uid for key, uid in self._uids.items() if uid < mark}

    def _encode_members(self, members) -> List[Any]:
        # Sorted by encoded form. Scalar members are stable; object members
        # are numbered in iteration order, so their uids can vary between runs
        return sorted((self.encode(member) for member in members), key=canonical_dumps)

    def _encode_entry(self, value: Any) -> Dict[str, Any]:
        if isinstance(value, list):
            return {"$array": [self.encode(item) for item in value]}
        if isinstance(value, tuple):
            entry: Dict[str, Any] = {"$tuple": [self.encode(item) for item in value]}
            if type(value) is not tuple:
                entry["$class"] = qualified_name(type(value))
            return entry
        if isinstance(value, frozenset):
            return {"$frozenset": self._encode_members(value)}
        if isinstance(value, set):
            return {"$set": self._encode_members(value)}
        if isinstance(value, dict):
            return {"$dict": [[self.encode(key), self.encode(item)] for key, item in value.items()]}

        attrs: Dict[str, Any] = {}
        report = self._coder.encode(value, _AttributeSink(self, attrs))
        self.issues.extend(report.issues)
        return {"$class": qualified_name(type(value)), "$attrs": attrs}


class KeyedUnarchiver:
    """Decodes a keyed archive back into an object graph."""

    def __init__(
        self,
        data: bytes,
        coder: Optional[GenericCoder] = None,
        class_map: Optional[Mapping[str, type]] = None,
    ):
        self._coder = coder or default_coder()
        self._class_map = dict(class_map or {})
        self._envelope = parse_envelope(data)
        self._decoded: Dict[int, Any] = {}
        self._in_progress: Set[int] = set()
        self.issues: List[CodingIssue] = []

    def decode_root(self) -> Any:
        """Reconstruct the root object.

        Raises:
            ArchiveError: If the archive is malformed, the root's class
                cannot be resolved, or the graph is nested deeper than the
                recursion limit
            TypeMismatchError: If a stored value contradicts a declared kind
        """
        if _ROOT_KEY not in self._envelope.top:
            raise ArchiveError("archive has no root object")
        try:
            return self.decode(self._envelope.top[_ROOT_KEY])
        except UnsupportedValueKindError as err:
            raise ArchiveError(f"cannot restore root object: {err}") from err
        except RecursionError as err:
            raise ArchiveError("object graph is nested too deeply to restore") from err

    def decode(self, encoded: Any) -> Any:
        if encoded is None or isinstance(encoded, (bool, int, float, str)):
            return encoded
        if not isinstance(encoded, dict):
            raise ArchiveError(f"invalid encoded value of type {type(encoded).__name__}")
        if "$ref" in encoded:
            return self._decode_ref(encoded["$ref"])
        try:
            if "$data" in encoded:
                return base64.b64decode(encoded["$data"], validate=True)
            if "$datetime" in encoded:
                return datetime.fromisoformat(encoded["$datetime"])
            if "$date" in encoded:
                return date.fromisoformat(encoded["$date"])
        except (binascii.Error, TypeError, ValueError) as err:
            raise ArchiveError(f"invalid encoded value {encoded!r}: {err}") from err
        if "$enum" in encoded:
            return self._decode_enum(encoded)
        raise ArchiveError(f"unknown encoded value with keys {sorted(encoded)}")

    def _decode_enum(self, encoded: Mapping[str, Any]) -> Enum:
        cls = self._resolve_class(encoded["$enum"])
        if not issubclass(cls, Enum):
            raise UnsupportedValueKindError(f"{encoded['$enum']} is not an enum")
        try:
            return cls[encoded.get("name")]
        except KeyError as err:
            raise UnsupportedValueKindError(
                f"{encoded['$enum']} has no member {encoded.get('name')!r}"
            ) from err

    def _decode_ref(self, uid: Any) -> Any:
        objects = self._envelope.objects
        if isinstance(uid, bool) or not isinstance(uid, int) or not 0 <= uid < len(objects):
            raise ArchiveError(f"invalid object reference {uid!r}")
        if uid == 0:
            return None
        if uid in self._decoded:
            return self._decoded[uid]
        if uid in self._in_progress:
            raise ArchiveError(f"object {uid} refers to itself through an immutable container")
        entry = objects[uid]
        if not isinstance(entry, dict):
            raise ArchiveError(f"object table entry {uid} is not a mapping")
        return self._decode_entry(uid, entry)

    def _items(self, entry: Mapping[str, Any], tag: str) -> List[Any]:
        items = entry[tag]
        if not isinstance(items, list):
            raise ArchiveError(f"{tag} payload must be a list")
        return items

    def _decode_entry(self, uid: int, entry: Mapping[str, Any]) -> Any:
        if "$array" in entry:
            result: List[Any] = []
            self._decoded[uid] = result
            result.extend(self.decode(item) for item in self._items(entry, "$array"))
            return result
        if "$dict" in entry:
            mapping: Dict[Any, Any] = {}
            self._decoded[uid] = mapping
            for pair in self._items(entry, "$dict"):
                if not isinstance(pair, list) or len(pair) != 2:
                    raise ArchiveError("$dict entries must be [key, value] pairs")
                key = self.decode(pair[0])
                value = self.decode(pair[1])
                try:
                    mapping[key] = value
                except TypeError as err:
                    raise ArchiveError(f"unhashable dictionary key: {err}") from err
            return mapping
        if "$set" in entry:
            members: Set[Any] = set()
            self._decoded[uid] = members
            for item in self._items(entry, "$set"):
                member = self.decode(item)
                try:
                    members.add(member)
                except TypeError as err:
                    raise ArchiveError(f"unhashable set member: {err}") from err
            return members
        if "$tuple" in entry or "$frozenset" in entry:
            return self._decode_immutable(uid, entry)
        if "$class" in entry:
            return self._decode_object(uid, entry)
        raise ArchiveError(f"object table entry {uid} has no recognized tag")

    def _decode_immutable(self, uid: int, entry: Mapping[str, Any]) -> Any:
        tag = "$tuple" if "$tuple" in entry else "$frozenset"
        self._in_progress.add(uid)
        try:
            items = [self.decode(item) for item in self._items(entry, tag)]
        finally:
            self._in_progress.discard(uid)
        if tag == "$frozenset":
            try:
                result: Any = frozenset(items)
            except TypeError as err:
                raise ArchiveError(f"unhashable frozenset member: {err}") from err
        elif "$class" in entry:
            cls = self._resolve_class(entry["$class"])
            if not issubclass(cls, tuple):
                raise UnsupportedValueKindError(f"{entry['$class']} is not a tuple type")
            result = cls._make(items) if hasattr(cls, "_make") else cls(items)
        else:
            result = tuple(items)
        self._decoded[uid] = result
        return result

    def _decode_object(self, uid: int, entry: Mapping[str, Any]) -> Any:
        cls = self._resolve_class(entry["$class"])
        attrs = entry.get("$attrs", {})
        if not isinstance(attrs, dict):
            raise ArchiveError(f"$attrs of object {uid} must be a mapping")
        try:
            instance = cls.__new__(cls)
        except TypeError as err:
            raise UnsupportedValueKindError(f"cannot instantiate {entry['$class']}: {err}") from err
        # Registered before decoding attributes so cycles resolve to it
        self._decoded[uid] = instance
        report = self._coder.decode(instance, _AttributeSource(self, attrs))
        self.issues.extend(report.issues)
        return instance

    def _resolve_class(self, name: Any) -> type:
        if not isinstance(name, str) or ":" not in name:
            raise ArchiveError(f"malformed class name {name!r}")
        if name in self._class_map:
            return self._class_map[name]
        module_name, _, qualname = name.partition(":")
        try:
            target: Any = importlib.import_module(module_name)
            for part in qualname.split("."):
                target = getattr(target, part)
        except (ImportError, AttributeError, ValueError) as err:
            raise UnsupportedValueKindError(f"cannot resolve class {name!r}: {err}") from err
        if not isinstance(target, type):
            raise UnsupportedValueKindError(f"{name!r} does not name a class")
        return target


def parse_envelope(data: bytes) -> ArchiveEnvelope:
    """Parse and validate the archive envelope.

    Raises:
        ArchiveError: If *data* is not a keyed archive
    """
    try:
        payload = json.loads(bytes(data).decode("utf-8"))
    except (UnicodeDecodeError, ValueError, RecursionError) as err:
        raise ArchiveError(f"not a JSON archive: {err}") from err
    if not isinstance(payload, dict) or "$archiver" not in payload:
        raise ArchiveError("missing $archiver marker")
    try:
        envelope = ArchiveEnvelope.model_validate(payload)
    except ValidationError as err:
        raise ArchiveError(f"malformed archive envelope: {err}") from err
    if envelope.version > ARCHIVE_VERSION:
        raise ArchiveError(f"unsupported archive version {envelope.version}")
    if not envelope.objects or envelope.objects[0] != _NULL:
        raise ArchiveError("object table must start with $null")
    return envelope


def archived_data(root: Any, coder: Optional[GenericCoder] = None) -> bytes:
    """Serialize an object graph to keyed archive bytes."""
    payload = KeyedArchiver(coder).archive_root(root)
    return canonical_dumps(payload).encode("utf-8")


def unarchive(
    data: bytes,
    coder: Optional[GenericCoder] = None,
    class_map: Optional[Mapping[str, type]] = None,
) -> Any:
    """Reconstruct the root object of a keyed archive."""
    return KeyedUnarchiver(data, coder=coder, class_map=class_map).decode_root()
