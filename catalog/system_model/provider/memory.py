"""
In-memory record tables and relationship indexes.

This module provides the memory backend used for:
- Unit and integration tests
- Local development without a data directory

Besides the protocol methods, both classes support failure injection so
that tests can make one specific store call fail and observe how managers
compensate.

Invariants:
    - All data is lost on process exit
    - Records are kept in storage form, so every read builds a new entity
    - Same ordering and error semantics as the sqlite backend

How to change safely:
    - Keep behavior identical to provider/sqlite.py; tests rely on it
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Type

from ..errors import AlreadyExistsError, InternalError, NotFoundError
from .base import Key, RecordTable, T, TableMixin
from .locks import KeyedLock

logger = logging.getLogger(__name__)


@dataclass
class InjectedFailure:
    """A failure armed for a store operation."""

    operation: str
    error: Exception
    key: Optional[Key] = None
    remaining: int = 1


class FailureInjection:
    """Arms store operations to fail in tests."""

    def __init__(self) -> None:
        self._failures: List[InjectedFailure] = []

    def inject_failure(
        self,
        operation: str,
        error: Optional[Exception] = None,
        key: Optional[Sequence[str]] = None,
        times: int = 1,
    ) -> None:
        """Make the next `times` calls of `operation` fail.

        Args:
            operation: Method name (add, get, update, remove, list, ...)
            error: Exception to raise, an InternalError by default
            key: Only fail calls on this record key or parent key
            times: Number of calls to fail
        """
        self._failures.append(
            InjectedFailure(
                operation=operation,
                error=error or InternalError(f"injected {operation} failure"),
                key=tuple(key) if key is not None else None,
                remaining=times,
            )
        )

    def clear_failures(self) -> None:
        self._failures.clear()

    def _maybe_fail(self, operation: str, key: Optional[Key] = None) -> None:
        for failure in self._failures:
            if failure.operation != operation or failure.remaining <= 0:
                continue
            if failure.key is not None and failure.key != key:
                continue
            failure.remaining -= 1
            logger.debug(
                "Raising injected failure",
                extra={"operation": operation, "key": key},
            )
            raise failure.error


class InMemoryRecordTable(FailureInjection, TableMixin[T]):
    """In-memory implementation of RecordTable.

    Example:
        >>> nodes = InMemoryRecordTable(Node)
        >>> await nodes.add(node)
        >>> await nodes.get(node.organization_id, node.node_id)
    """

    def __init__(self, entity_type: Type[T]) -> None:
        super().__init__()
        self.entity_type = entity_type
        self._records: Dict[Key, Dict[str, Any]] = {}
        self._locks = KeyedLock()

    async def add(self, entity: T) -> None:
        key = entity.key()
        async with self._locks.hold(key):
            self._maybe_fail("add", key)
            if key in self._records:
                raise AlreadyExistsError(self.kind).with_params(*key)
            self._records[key] = entity.to_dict()

    async def get(self, *key: str) -> T:
        key = self._check_key(key)
        self._maybe_fail("get", key)
        data = self._records.get(key)
        if data is None:
            raise NotFoundError(self.kind).with_params(*key)
        return self.entity_type.from_dict(data)

    async def exists(self, *key: str) -> bool:
        key = self._check_key(key)
        self._maybe_fail("exists", key)
        return key in self._records

    async def update(self, entity: T) -> None:
        key = entity.key()
        async with self._locks.hold(key):
            self._maybe_fail("update", key)
            if key not in self._records:
                raise NotFoundError(self.kind).with_params(*key)
            self._records[key] = entity.to_dict()

    async def remove(self, *key: str) -> None:
        key = self._check_key(key)
        async with self._locks.hold(key):
            self._maybe_fail("remove", key)
            if self._records.pop(key, None) is None:
                raise NotFoundError(self.kind).with_params(*key)

    async def list(self, **match: str) -> List[T]:
        self._maybe_fail("list")
        return [
            self.entity_type.from_dict(data)
            for data in list(self._records.values())
            if self._matches(data, match)
        ]

    async def clear(self) -> None:
        self._records.clear()

    def get_record_count(self) -> int:
        """Number of stored records (for testing)."""
        return len(self._records)


class InMemoryAssociationIndex(FailureInjection):
    """In-memory implementation of AssociationIndex.

    Attributes:
        name: Index name, e.g. "cluster_nodes"
        parent_table: Table holding the parent records
    """

    def __init__(self, name: str, parent_table: RecordTable) -> None:
        super().__init__()
        self.name = name
        self.parent_table = parent_table
        self._children: Dict[Key, List[str]] = {}
        self._locks = KeyedLock()

    async def _require_parent(self, parent: Key) -> None:
        if not await self.parent_table.exists(*parent):
            raise NotFoundError(self.parent_table.kind).with_params(*parent)

    async def add(self, parent: Key, child: str) -> None:
        parent = tuple(parent)
        async with self._locks.hold(parent):
            self._maybe_fail("add", parent)
            await self._require_parent(parent)
            children = self._children.setdefault(parent, [])
            if child in children:
                raise AlreadyExistsError(f"{self.name} entry").with_params(*parent, child)
            children.append(child)

    async def remove(self, parent: Key, child: str) -> None:
        parent = tuple(parent)
        async with self._locks.hold(parent):
            self._maybe_fail("remove", parent)
            children = self._children.get(parent, [])
            if child not in children:
                raise NotFoundError(f"{self.name} entry").with_params(*parent, child)
            children.remove(child)
            if not children:
                del self._children[parent]

    async def list(self, parent: Key) -> List[str]:
        parent = tuple(parent)
        self._maybe_fail("list", parent)
        await self._require_parent(parent)
        return list(self._children.get(parent, []))

    async def exists(self, parent: Key, child: str) -> bool:
        parent = tuple(parent)
        self._maybe_fail("exists", parent)
        return child in self._children.get(parent, [])

    async def drop(self, parent: Key) -> List[str]:
        parent = tuple(parent)
        async with self._locks.hold(parent):
            self._maybe_fail("drop", parent)
            return self._children.pop(parent, [])

    async def restore(self, parent: Key, children: Sequence[str]) -> None:
        parent = tuple(parent)
        async with self._locks.hold(parent):
            self._maybe_fail("restore", parent)
            await self._require_parent(parent)
            current = self._children.setdefault(parent, [])
            for child in children:
                if child not in current:
                    current.append(child)
            if not current:
                del self._children[parent]

    async def clear(self) -> None:
        self._children.clear()

    def snapshot(self) -> Dict[Key, List[str]]:
        """Copy of the whole index (for testing)."""
        return copy.deepcopy(self._children)
