"""
Shared building blocks for the entity model.

This module holds the pieces every entity module uses:
- EnumMapping: static bidirectional table between internal enums and wire names
- Record: dataclass mixin converting to and from storage and wire form
- Entity: a Record that is persisted under a natural key
- Request validation helpers and label map partial updates

Storage form and wire form differ only in how enums are written:

    storage (to_dict/from_dict)   enum value, e.g. "running"
    wire    (to_wire/from_wire)   wire name,  e.g. "RUNNING"

Invariants:
    - An EnumMapping covers every member of its enum, otherwise the
      module defining it fails at import time
    - from_wire is strict: unknown enum names and malformed nested objects
      raise InvalidArgumentError. from_dict trusts its input.
    - Validation helpers never touch a store

How to change safely:
    - Adding an enum member requires adding its wire name to the mapping
      in the same module, the import-time check enforces this
    - Never reorder KEY_FIELDS of an existing entity, persisted keys depend on it
    - New fields need defaults so that older stored records still load
"""

from __future__ import annotations

import copy
import dataclasses
import time
import uuid
from enum import Enum
from typing import (
    Any,
    ClassVar,
    Dict,
    Generic,
    Iterable,
    List,
    Mapping,
    Optional,
    Tuple,
    Type,
    TypeVar,
)

from ..errors import InvalidArgumentError

E = TypeVar("E", bound=Enum)
R = TypeVar("R", bound="Record")


def generate_uuid() -> str:
    """Generate a new random identifier."""
    return str(uuid.uuid4())


def now_seconds() -> int:
    """Current time as a Unix timestamp in seconds."""
    return int(time.time())


class EnumMapping(Generic[E]):
    """Static bidirectional map between an internal enum and its wire names.

    Construction fails unless every member of the enum has exactly one wire
    name, so forgetting to map a newly added member breaks at import time
    instead of at request time.

    Attributes:
        enum_type: The internal enum class
        default: Member used when the wire value is absent

    Example:
        >>> OS_CLASS = EnumMapping(OsClass, {OsClass.LINUX: "LINUX"}, default=OsClass.LINUX)
        >>> OS_CLASS.to_wire(OsClass.LINUX)
        'LINUX'
    """

    def __init__(self, enum_type: Type[E], wire_names: Mapping[E, str], default: E) -> None:
        missing = [member.name for member in enum_type if member not in wire_names]
        if missing:
            raise TypeError(f"{enum_type.__name__} has unmapped members: {', '.join(missing)}")
        if default not in wire_names:
            raise TypeError(f"default {default!r} is not a member of {enum_type.__name__}")

        reverse: Dict[str, E] = {}
        for member, name in wire_names.items():
            if name in reverse:
                raise TypeError(f"wire name {name} is mapped twice in {enum_type.__name__}")
            reverse[name] = member

        self.enum_type = enum_type
        self.default = default
        self._to_wire: Dict[E, str] = dict(wire_names)
        self._from_wire = reverse

    def to_wire(self, member: E) -> str:
        """Translate an internal member into its wire name."""
        return self._to_wire[member]

    def from_wire(self, name: Optional[str], field_name: str = "") -> E:
        """Translate a wire name into the internal member.

        Args:
            name: Wire name, empty or None selects the default member
            field_name: Request field, used in the error message

        Raises:
            InvalidArgumentError: If the name is not a known wire name
        """
        if not name:
            return self.default
        try:
            return self._from_wire[name]
        except (KeyError, TypeError):
            raise InvalidArgumentError(
                f"invalid {field_name or self.enum_type.__name__}"
            ).with_params(name) from None


class InfraStatus(Enum):
    """Lifecycle status shared by clusters and nodes."""

    INSTALLING = "installing"
    RUNNING = "running"
    ERROR = "error"
    UNINSTALLING = "uninstalling"


INFRA_STATUS = EnumMapping(
    InfraStatus,
    {
        InfraStatus.INSTALLING: "INSTALLING",
        InfraStatus.RUNNING: "RUNNING",
        InfraStatus.ERROR: "ERROR",
        InfraStatus.UNINSTALLING: "UNINSTALLING",
    },
    default=InfraStatus.INSTALLING,
)


class Record:
    """Mixin for dataclasses that cross the storage and wire boundaries.

    Subclasses may declare:
        ENUMS: field name -> EnumMapping for enum typed fields
        NESTED: field name -> Record subclass for nested records, a list
            value is converted element by element
    """

    ENUMS: ClassVar[Dict[str, EnumMapping]] = {}
    NESTED: ClassVar[Dict[str, Type[Record]]] = {}

    def _dump(self, wire: bool) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for f in dataclasses.fields(self):  # type: ignore[arg-type]
            value = getattr(self, f.name)
            mapping = self.ENUMS.get(f.name)
            if mapping is not None:
                result[f.name] = mapping.to_wire(value) if wire else value.value
            elif isinstance(value, Record):
                result[f.name] = value._dump(wire)
            elif isinstance(value, list):
                result[f.name] = [
                    item._dump(wire) if isinstance(item, Record) else copy.deepcopy(item)
                    for item in value
                ]
            else:
                result[f.name] = copy.deepcopy(value)
        return result

    @classmethod
    def _load(cls: Type[R], data: Any, wire: bool) -> R:
        if wire:
            require_mapping(data, cls.__name__)
        names = {f.name for f in dataclasses.fields(cls)}  # type: ignore[arg-type]
        values: Dict[str, Any] = {}
        for name, value in data.items():
            if name not in names:
                continue
            mapping = cls.ENUMS.get(name)
            nested = cls.NESTED.get(name)
            if mapping is not None:
                value = mapping.from_wire(value, name) if wire else mapping.enum_type(value)
            elif nested is not None and value is not None:
                if isinstance(value, list):
                    value = [nested._load(item, wire) for item in value]
                elif isinstance(value, Mapping):
                    value = nested._load(value, wire)
                else:
                    raise InvalidArgumentError(f"{name} must be an object or a list")
            else:
                value = copy.deepcopy(value)
            values[name] = value
        try:
            return cls(**values)
        except TypeError as e:
            raise InvalidArgumentError(f"malformed {cls.__name__}").caused_by(e) from e

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the storage representation."""
        return self._dump(wire=False)

    def to_wire(self) -> Dict[str, Any]:
        """Convert to the transport representation."""
        return self._dump(wire=True)

    @classmethod
    def from_dict(cls: Type[R], data: Mapping[str, Any]) -> R:
        """Create from the storage representation.

        Unknown keys are ignored so that records written by newer versions
        still load.
        """
        return cls._load(data, wire=False)

    @classmethod
    def from_wire(cls: Type[R], data: Mapping[str, Any]) -> R:
        """Create from the transport representation.

        Raises:
            InvalidArgumentError: On unknown enum names or malformed nesting
        """
        return cls._load(data, wire=True)


class Entity(Record):
    """A record persisted under a natural key.

    Subclasses declare:
        ENTITY_KIND: name used in error messages and as the table name
        KEY_FIELDS: fields forming the natural (possibly composite) key
    """

    ENTITY_KIND: ClassVar[str] = ""
    KEY_FIELDS: ClassVar[Tuple[str, ...]] = ()

    def key(self) -> Tuple[str, ...]:
        return tuple(getattr(self, name) for name in self.KEY_FIELDS)


def require_mapping(request: Any, what: str = "request") -> None:
    if not isinstance(request, Mapping):
        raise InvalidArgumentError(f"{what} must be an object")


def require_fields(request: Mapping[str, Any], *names: str) -> None:
    """Check that every named field is present and non-empty.

    Raises:
        InvalidArgumentError: Naming the first empty field
    """
    for name in names:
        if not request.get(name):
            raise InvalidArgumentError(f"{name} cannot be empty")


def string_map(value: Any, field_name: str) -> Dict[str, str]:
    """Validate and copy a string to string map (labels, env vars)."""
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise InvalidArgumentError(f"{field_name} must be a map")
    return {str(k): str(v) for k, v in value.items()}


def string_list(value: Any, field_name: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        raise InvalidArgumentError(f"{field_name} must be a list")
    return [str(v) for v in value]


def update_labels(labels: Dict[str, str], request: Mapping[str, Any]) -> Dict[str, str]:
    """Apply the add/remove label flags of an update request.

    The request carries `add_labels` and `remove_labels` flags plus one
    `labels` map. Adding merges the map into the current labels, removing
    deletes only the keys present in the map. Values are ignored on removal.

    Returns:
        A new label dictionary; the input is left untouched.
    """
    result = dict(labels)
    changes = string_map(request.get("labels"), "labels")
    if request.get("add_labels"):
        result.update(changes)
    if request.get("remove_labels"):
        for name in changes:
            result.pop(name, None)
    return result
