"""
Base protocols for record tables and relationship indexes.

A RecordTable persists the entities of one type under their natural key.
An AssociationIndex keeps the ordered child id list of a parent record,
e.g. the nodes attached to a cluster. Neither is transactional across
tables: managers compose them and compensate on partial failure.

Invariants:
    - Keys are tuples of strings in the order of the entity KEY_FIELDS
    - Reads return fresh copies; mutating a returned entity never changes
      the stored record until it is written back with update()
    - Index lists are duplicate free and keep insertion order
    - Mutations are serialized per key (record key or parent key)

How to change safely:
    - Protocol changes require updating every backend (memory, sqlite)
    - Error kinds are part of the contract, managers branch on them
"""

from __future__ import annotations

from typing import Generic, List, Protocol, Sequence, Tuple, Type, TypeVar, runtime_checkable

from ..entities.common import Entity

Key = Tuple[str, ...]
T = TypeVar("T", bound=Entity)


@runtime_checkable
class RecordTable(Protocol[T]):
    """Protocol for the persistence of one entity type.

    Errors:
        AlreadyExistsError: add() of an existing key
        NotFoundError: get(), update() or remove() of a missing key
        InternalError: backend failure
    """

    entity_type: Type[T]

    @property
    def kind(self) -> str:
        """Entity kind, used in error messages."""
        ...

    async def add(self, entity: T) -> None:
        """Store a new entity under entity.key()."""
        ...

    async def get(self, *key: str) -> T:
        """Retrieve the entity stored under key."""
        ...

    async def exists(self, *key: str) -> bool:
        ...

    async def update(self, entity: T) -> None:
        """Replace the stored entity with the same key."""
        ...

    async def remove(self, *key: str) -> None:
        ...

    async def list(self, **match: str) -> List[T]:
        """Entities whose fields equal every given value, in insertion order."""
        ...

    async def clear(self) -> None:
        ...


@runtime_checkable
class AssociationIndex(Protocol):
    """Protocol for an ordered parent to child id relationship.

    The parent must exist in the parent table for add(), list() and
    restore(); exists() and remove() only look at the index itself.

    Errors:
        AlreadyExistsError: add() of a child already listed
        NotFoundError: unknown parent, or remove() of an absent child
        InternalError: backend failure
    """

    name: str

    async def add(self, parent: Key, child: str) -> None:
        ...

    async def remove(self, parent: Key, child: str) -> None:
        ...

    async def list(self, parent: Key) -> List[str]:
        ...

    async def exists(self, parent: Key, child: str) -> bool:
        ...

    async def drop(self, parent: Key) -> List[str]:
        """Remove the whole child list of a parent and return it."""
        ...

    async def restore(self, parent: Key, children: Sequence[str]) -> None:
        """Re-install a child list previously returned by drop()."""
        ...

    async def clear(self) -> None:
        ...


class TableMixin(Generic[T]):
    """Helpers shared by RecordTable implementations."""

    entity_type: Type[T]

    @property
    def kind(self) -> str:
        return self.entity_type.ENTITY_KIND

    def _check_key(self, key: Sequence[str]) -> Key:
        if len(key) != len(self.entity_type.KEY_FIELDS):
            raise TypeError(
                f"{self.kind} key needs {len(self.entity_type.KEY_FIELDS)} parts, got {len(key)}"
            )
        return tuple(key)

    @staticmethod
    def _matches(data: dict, match: dict) -> bool:
        return all(data.get(name) == value for name, value in match.items())
