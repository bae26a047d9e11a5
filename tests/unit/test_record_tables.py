"""
Contract tests for record tables and relationship indexes.

Every test runs against both backends.

Tests cover:
- Add/get/update/remove and their error kinds
- Filtered listing in insertion order
- Index ordering, duplicates and parent checks
- Drop and restore of child lists
"""

import tempfile

import pytest

from catalog.system_model.entities import Cluster, Organization
from catalog.system_model.errors import AlreadyExistsError, NotFoundError
from catalog.system_model.provider import (
    InMemoryAssociationIndex,
    InMemoryRecordTable,
    SqliteAssociationIndex,
    SqliteDatabase,
    SqliteRecordTable,
)


@pytest.fixture(params=["memory", "sqlite"])
def backend(request):
    """Yield factories (table, index) for one backend."""
    if request.param == "memory":
        yield InMemoryRecordTable, InMemoryAssociationIndex
        return

    with tempfile.TemporaryDirectory() as tmpdir:
        db = SqliteDatabase(tmpdir)
        db.initialize()
        yield (
            lambda entity_type: SqliteRecordTable(db, entity_type),
            lambda name, parent: SqliteAssociationIndex(db, name, parent),
        )


@pytest.fixture
def organizations(backend):
    table, _ = backend
    return table(Organization)


@pytest.fixture
def clusters(backend):
    table, _ = backend
    return table(Cluster)


@pytest.fixture
def index(backend, organizations):
    _, make_index = backend
    return make_index("organization_clusters", organizations)


def cluster(org_id, cluster_id, name="edge"):
    return Cluster(organization_id=org_id, cluster_id=cluster_id, name=name)


class TestRecordTable:
    """Tests for RecordTable implementations."""

    @pytest.mark.asyncio
    async def test_add_and_get(self, clusters):
        await clusters.add(cluster("o1", "c1"))

        stored = await clusters.get("o1", "c1")

        assert stored == cluster("o1", "c1")
        assert await clusters.exists("o1", "c1")
        assert not await clusters.exists("o1", "c2")

    @pytest.mark.asyncio
    async def test_add_duplicate(self, clusters):
        await clusters.add(cluster("o1", "c1"))

        with pytest.raises(AlreadyExistsError) as exc_info:
            await clusters.add(cluster("o1", "c1", name="other"))

        assert exc_info.value.params == ["o1", "c1"]
        assert (await clusters.get("o1", "c1")).name == "edge"

    @pytest.mark.asyncio
    async def test_get_missing(self, clusters):
        with pytest.raises(NotFoundError) as exc_info:
            await clusters.get("o1", "missing")

        assert exc_info.value.message == "cluster"

    @pytest.mark.asyncio
    async def test_wrong_key_arity(self, clusters):
        with pytest.raises(TypeError):
            await clusters.get("c1")

    @pytest.mark.asyncio
    async def test_returned_entity_is_a_copy(self, clusters):
        await clusters.add(cluster("o1", "c1"))

        fetched = await clusters.get("o1", "c1")
        fetched.labels["zone"] = "a"

        assert (await clusters.get("o1", "c1")).labels == {}

    @pytest.mark.asyncio
    async def test_update(self, clusters):
        await clusters.add(cluster("o1", "c1"))

        await clusters.update(cluster("o1", "c1", name="renamed"))

        assert (await clusters.get("o1", "c1")).name == "renamed"

    @pytest.mark.asyncio
    async def test_update_missing(self, clusters):
        with pytest.raises(NotFoundError):
            await clusters.update(cluster("o1", "c1"))

    @pytest.mark.asyncio
    async def test_remove(self, clusters):
        await clusters.add(cluster("o1", "c1"))

        await clusters.remove("o1", "c1")

        assert not await clusters.exists("o1", "c1")
        with pytest.raises(NotFoundError):
            await clusters.remove("o1", "c1")

    @pytest.mark.asyncio
    async def test_list_filters_in_insertion_order(self, clusters):
        await clusters.add(cluster("o1", "c2"))
        await clusters.add(cluster("o2", "c9"))
        await clusters.add(cluster("o1", "c1"))

        listed = await clusters.list(organization_id="o1")

        assert [c.cluster_id for c in listed] == ["c2", "c1"]
        assert len(await clusters.list()) == 3

    @pytest.mark.asyncio
    async def test_clear(self, clusters):
        await clusters.add(cluster("o1", "c1"))

        await clusters.clear()

        assert await clusters.list() == []


class TestAssociationIndex:
    """Tests for AssociationIndex implementations."""

    @pytest.fixture
    async def org(self, organizations):
        await organizations.add(Organization(organization_id="o1", name="acme"))
        return ("o1",)

    @pytest.mark.asyncio
    async def test_add_keeps_order(self, index, org):
        for child in ("c3", "c1", "c2"):
            await index.add(org, child)

        assert await index.list(org) == ["c3", "c1", "c2"]
        assert await index.exists(org, "c1")

    @pytest.mark.asyncio
    async def test_add_requires_parent(self, index):
        with pytest.raises(NotFoundError) as exc_info:
            await index.add(("missing",), "c1")

        assert exc_info.value.message == "organization"

    @pytest.mark.asyncio
    async def test_list_requires_parent(self, index):
        with pytest.raises(NotFoundError):
            await index.list(("missing",))

    @pytest.mark.asyncio
    async def test_list_empty_parent(self, index, org):
        assert await index.list(org) == []

    @pytest.mark.asyncio
    async def test_duplicate_child(self, index, org):
        await index.add(org, "c1")

        with pytest.raises(AlreadyExistsError):
            await index.add(org, "c1")

    @pytest.mark.asyncio
    async def test_remove(self, index, org):
        await index.add(org, "c1")
        await index.add(org, "c2")

        await index.remove(org, "c1")

        assert await index.list(org) == ["c2"]
        with pytest.raises(NotFoundError):
            await index.remove(org, "c1")

    @pytest.mark.asyncio
    async def test_readd_goes_last(self, index, org):
        await index.add(org, "c1")
        await index.add(org, "c2")
        await index.remove(org, "c1")

        await index.add(org, "c1")

        assert await index.list(org) == ["c2", "c1"]

    @pytest.mark.asyncio
    async def test_drop_and_restore(self, index, org):
        await index.add(org, "c1")
        await index.add(org, "c2")

        dropped = await index.drop(org)
        assert dropped == ["c1", "c2"]
        assert await index.list(org) == []

        await index.restore(org, dropped)
        assert await index.list(org) == ["c1", "c2"]

    @pytest.mark.asyncio
    async def test_restore_skips_present_children(self, index, org):
        await index.add(org, "c2")

        await index.restore(org, ["c1", "c2"])

        assert await index.list(org) == ["c2", "c1"]

    @pytest.mark.asyncio
    async def test_drop_unknown_parent(self, index):
        assert await index.drop(("missing",)) == []
