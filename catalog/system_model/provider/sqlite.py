"""
SQLite backed record tables and relationship indexes.

All tables of a catalog share one SQLite file. Entities are stored as JSON
payloads keyed by table name and the JSON encoded natural key, so adding an
entity type never needs a schema migration.

Invariants:
    - One SQLite file per catalog
    - Every write is a single IMMEDIATE transaction
    - Listing order is insertion order (rowid for records, seq for children)
    - sqlite3 errors never escape; they surface as InternalError

How to change safely:
    - Schema changes must be backward compatible with existing files
    - Keep behavior identical to provider/memory.py; tests run against both
    - Use transactions for all write operations

Table schema:
    records:
        - tbl TEXT (entity kind)
        - pk TEXT (JSON array of the key fields)
        - payload_json TEXT
        - created_at INTEGER (Unix ms)
        - updated_at INTEGER (Unix ms)
        - PRIMARY KEY (tbl, pk)

    associations:
        - idx TEXT (index name)
        - parent TEXT (JSON array of the parent key)
        - child TEXT
        - seq INTEGER
        - PRIMARY KEY (idx, parent, child)
        - INDEX on (idx, parent, seq)
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, List, Sequence, Type

from ..errors import AlreadyExistsError, InternalError, NotFoundError
from .base import Key, RecordTable, T, TableMixin
from .locks import KeyedLock

logger = logging.getLogger(__name__)


def _encode_key(key: Sequence[str]) -> str:
    return json.dumps(list(key), separators=(",", ":"))


def _now_ms() -> int:
    return int(time.time() * 1000)


class SqliteDatabase:
    """Connection factory and schema owner for the catalog SQLite file.

    Each operation opens its own connection. SQLite handles concurrent
    access via WAL mode and the busy timeout.

    Example:
        >>> db = SqliteDatabase("/var/lib/system-model")
        >>> db.initialize()
        >>> clusters = SqliteRecordTable(db, Cluster)
    """

    SCHEMA_VERSION = 1

    def __init__(
        self,
        data_dir: str,
        filename: str = "system_model.db",
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        """Initialize the database handle.

        Args:
            data_dir: Directory holding the database file
            filename: Database file name
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
        """
        self.data_dir = Path(data_dir)
        self.path = self.data_dir / filename
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Open a configured connection.

        Raises:
            InternalError: On any sqlite3 failure inside the block
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                str(self.path),
                timeout=self.busy_timeout_ms / 1000.0,
                isolation_level=None,  # explicit transactions only
            )
        except (OSError, sqlite3.Error) as e:
            raise InternalError("cannot open catalog database").with_params(
                str(self.path)
            ).caused_by(e) from e

        conn.row_factory = sqlite3.Row
        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            yield conn
        except sqlite3.Error as e:
            logger.error("SQLite operation failed", extra={"path": str(self.path)}, exc_info=True)
            raise InternalError("catalog database failure").caused_by(e) from e
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Open a connection inside a BEGIN IMMEDIATE transaction."""
        with self.connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def initialize(self) -> None:
        """Create the schema if it does not exist."""
        with self.connection() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at INTEGER NOT NULL
                );

                CREATE TABLE IF NOT EXISTS records (
                    tbl TEXT NOT NULL,
                    pk TEXT NOT NULL,
                    payload_json TEXT NOT NULL DEFAULT '{}',
                    created_at INTEGER NOT NULL,
                    updated_at INTEGER NOT NULL,
                    PRIMARY KEY (tbl, pk)
                );

                CREATE TABLE IF NOT EXISTS associations (
                    idx TEXT NOT NULL,
                    parent TEXT NOT NULL,
                    child TEXT NOT NULL,
                    seq INTEGER NOT NULL,
                    PRIMARY KEY (idx, parent, child)
                );

                CREATE INDEX IF NOT EXISTS idx_associations_order
                    ON associations(idx, parent, seq);

                INSERT OR IGNORE INTO schema_version (version, applied_at)
                VALUES (1, strftime('%s', 'now') * 1000);
            """)
        logger.info("Initialized catalog database", extra={"path": str(self.path)})


class SqliteRecordTable(TableMixin[T]):
    """RecordTable stored in the shared `records` table."""

    def __init__(self, db: SqliteDatabase, entity_type: Type[T]) -> None:
        self.db = db
        self.entity_type = entity_type
        # Serializes read-modify-write sequences issued by this process
        self._locks = KeyedLock()

    def _load(self, payload: str) -> T:
        return self.entity_type.from_dict(json.loads(payload))

    async def add(self, entity: T) -> None:
        key = entity.key()
        now = _now_ms()
        async with self._locks.hold(key):
            with self.db.transaction() as conn:
                cursor = conn.execute(
                    """
                    INSERT OR IGNORE INTO records (tbl, pk, payload_json, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (self.kind, _encode_key(key), json.dumps(entity.to_dict()), now, now),
                )
                if cursor.rowcount == 0:
                    raise AlreadyExistsError(self.kind).with_params(*key)

    async def get(self, *key: str) -> T:
        key = self._check_key(key)
        with self.db.connection() as conn:
            row = conn.execute(
                "SELECT payload_json FROM records WHERE tbl = ? AND pk = ?",
                (self.kind, _encode_key(key)),
            ).fetchone()
        if row is None:
            raise NotFoundError(self.kind).with_params(*key)
        return self._load(row["payload_json"])

    async def exists(self, *key: str) -> bool:
        key = self._check_key(key)
        with self.db.connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM records WHERE tbl = ? AND pk = ?",
                (self.kind, _encode_key(key)),
            ).fetchone()
        return row is not None

    async def update(self, entity: T) -> None:
        key = entity.key()
        async with self._locks.hold(key):
            with self.db.transaction() as conn:
                cursor = conn.execute(
                    "UPDATE records SET payload_json = ?, updated_at = ? WHERE tbl = ? AND pk = ?",
                    (json.dumps(entity.to_dict()), _now_ms(), self.kind, _encode_key(key)),
                )
                if cursor.rowcount == 0:
                    raise NotFoundError(self.kind).with_params(*key)

    async def remove(self, *key: str) -> None:
        key = self._check_key(key)
        async with self._locks.hold(key):
            with self.db.transaction() as conn:
                cursor = conn.execute(
                    "DELETE FROM records WHERE tbl = ? AND pk = ?",
                    (self.kind, _encode_key(key)),
                )
                if cursor.rowcount == 0:
                    raise NotFoundError(self.kind).with_params(*key)

    async def list(self, **match: str) -> List[T]:
        with self.db.connection() as conn:
            rows = conn.execute(
                "SELECT payload_json FROM records WHERE tbl = ? ORDER BY rowid",
                (self.kind,),
            ).fetchall()
        result = []
        for row in rows:
            data: dict[str, Any] = json.loads(row["payload_json"])
            if self._matches(data, match):
                result.append(self.entity_type.from_dict(data))
        return result

    async def clear(self) -> None:
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM records WHERE tbl = ?", (self.kind,))


class SqliteAssociationIndex:
    """AssociationIndex stored in the shared `associations` table."""

    def __init__(self, db: SqliteDatabase, name: str, parent_table: RecordTable) -> None:
        self.db = db
        self.name = name
        self.parent_table = parent_table
        self._locks = KeyedLock()

    async def _require_parent(self, parent: Key) -> None:
        if not await self.parent_table.exists(*parent):
            raise NotFoundError(self.parent_table.kind).with_params(*parent)

    def _append(self, conn: sqlite3.Connection, parent: str, children: Sequence[str]) -> None:
        row = conn.execute(
            "SELECT COALESCE(MAX(seq), 0) AS last FROM associations WHERE idx = ? AND parent = ?",
            (self.name, parent),
        ).fetchone()
        seq = row["last"]
        for child in children:
            seq += 1
            conn.execute(
                "INSERT OR IGNORE INTO associations (idx, parent, child, seq) VALUES (?, ?, ?, ?)",
                (self.name, parent, child, seq),
            )

    async def add(self, parent: Key, child: str) -> None:
        parent = tuple(parent)
        async with self._locks.hold(parent):
            await self._require_parent(parent)
            with self.db.transaction() as conn:
                exists = conn.execute(
                    "SELECT 1 FROM associations WHERE idx = ? AND parent = ? AND child = ?",
                    (self.name, _encode_key(parent), child),
                ).fetchone()
                if exists is not None:
                    raise AlreadyExistsError(f"{self.name} entry").with_params(*parent, child)
                self._append(conn, _encode_key(parent), [child])

    async def remove(self, parent: Key, child: str) -> None:
        parent = tuple(parent)
        async with self._locks.hold(parent):
            with self.db.transaction() as conn:
                cursor = conn.execute(
                    "DELETE FROM associations WHERE idx = ? AND parent = ? AND child = ?",
                    (self.name, _encode_key(parent), child),
                )
                if cursor.rowcount == 0:
                    raise NotFoundError(f"{self.name} entry").with_params(*parent, child)

    def _children(self, conn: sqlite3.Connection, parent: Key) -> List[str]:
        rows = conn.execute(
            "SELECT child FROM associations WHERE idx = ? AND parent = ? ORDER BY seq",
            (self.name, _encode_key(parent)),
        ).fetchall()
        return [row["child"] for row in rows]

    async def list(self, parent: Key) -> List[str]:
        parent = tuple(parent)
        await self._require_parent(parent)
        with self.db.connection() as conn:
            return self._children(conn, parent)

    async def exists(self, parent: Key, child: str) -> bool:
        with self.db.connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM associations WHERE idx = ? AND parent = ? AND child = ?",
                (self.name, _encode_key(tuple(parent)), child),
            ).fetchone()
        return row is not None

    async def drop(self, parent: Key) -> List[str]:
        parent = tuple(parent)
        async with self._locks.hold(parent):
            with self.db.transaction() as conn:
                children = self._children(conn, parent)
                conn.execute(
                    "DELETE FROM associations WHERE idx = ? AND parent = ?",
                    (self.name, _encode_key(parent)),
                )
        return children

    async def restore(self, parent: Key, children: Sequence[str]) -> None:
        parent = tuple(parent)
        async with self._locks.hold(parent):
            await self._require_parent(parent)
            with self.db.transaction() as conn:
                self._append(conn, _encode_key(parent), children)

    async def clear(self) -> None:
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM associations WHERE idx = ?", (self.name,))
