"""
Unit tests for the SQLite backend.

Tests cover:
- Schema initialization
- Persistence across handles
- Mapping of sqlite3 failures to InternalError
- Shared file isolation between tables
"""

import sqlite3
import tempfile

import pytest

from catalog.system_model.entities import Cluster, Node
from catalog.system_model.errors import InternalError
from catalog.system_model.provider import SqliteDatabase, SqliteRecordTable


class TestSqliteDatabase:
    """Tests for SqliteDatabase."""

    @pytest.fixture
    def data_dir(self):
        """Create temporary data directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield tmpdir

    def test_initialize_creates_schema(self, data_dir):
        db = SqliteDatabase(data_dir)

        db.initialize()
        db.initialize()

        with db.connection() as conn:
            tables = {
                row["name"]
                for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
            }
            version = conn.execute("SELECT version FROM schema_version").fetchone()["version"]

        assert {"records", "associations", "schema_version"} <= tables
        assert version == SqliteDatabase.SCHEMA_VERSION

    def test_wal_mode(self, data_dir):
        db = SqliteDatabase(data_dir, wal_mode=True)
        db.initialize()

        with db.connection() as conn:
            mode = conn.execute("PRAGMA journal_mode").fetchone()[0]

        assert mode == "wal"

    @pytest.mark.asyncio
    async def test_records_survive_reopen(self, data_dir):
        db = SqliteDatabase(data_dir)
        db.initialize()
        await SqliteRecordTable(db, Node).add(
            Node(organization_id="o", node_id="n1", labels={"zone": "a"})
        )

        reopened = SqliteRecordTable(SqliteDatabase(data_dir), Node)
        node = await reopened.get("o", "n1")

        assert node.labels == {"zone": "a"}

    @pytest.mark.asyncio
    async def test_tables_do_not_share_keys(self, data_dir):
        db = SqliteDatabase(data_dir)
        db.initialize()
        clusters = SqliteRecordTable(db, Cluster)
        nodes = SqliteRecordTable(db, Node)

        await clusters.add(Cluster(organization_id="o", cluster_id="x", name="c"))
        await nodes.add(Node(organization_id="o", node_id="x"))

        assert len(await clusters.list()) == 1
        assert len(await nodes.list()) == 1

    def test_sqlite_error_is_internal(self, data_dir):
        db = SqliteDatabase(data_dir)

        with pytest.raises(InternalError) as exc_info:
            with db.connection() as conn:
                conn.execute("SELECT * FROM missing_table")

        assert isinstance(exc_info.value.__cause__, sqlite3.Error)

    @pytest.mark.asyncio
    async def test_missing_schema_is_internal(self, data_dir):
        """Using a table before initialize() surfaces as InternalError."""
        table = SqliteRecordTable(SqliteDatabase(data_dir), Node)

        with pytest.raises(InternalError):
            await table.get("o", "n1")

    def test_transaction_rolls_back(self, data_dir):
        db = SqliteDatabase(data_dir)
        db.initialize()

        with pytest.raises(RuntimeError):
            with db.transaction() as conn:
                conn.execute(
                    "INSERT INTO records (tbl, pk, payload_json, created_at, updated_at) "
                    "VALUES ('node', '[]', '{}', 0, 0)"
                )
                raise RuntimeError("abort")

        with db.connection() as conn:
            count = conn.execute("SELECT COUNT(*) AS n FROM records").fetchone()["n"]
        assert count == 0
