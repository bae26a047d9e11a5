"""
Integration tests for organizations, clusters and nodes.

Tests cover:
- Organization name uniqueness and updates
- Cluster registration, listing and removal
- Node attachment, moves and rollback
- Node updates and concurrent attachment
- Batch node removal semantics
"""

import asyncio

import pytest

from catalog.system_model.entities import InfraStatus, NodeState
from catalog.system_model.errors import (
    AlreadyExistsError,
    InternalError,
    InvalidArgumentError,
    NotFoundError,
)
from catalog.system_model.manager import OrganizationManager


class TestOrganizationManager:
    """Tests for OrganizationManager."""

    @pytest.fixture
    def manager(self, stores):
        return OrganizationManager(stores)

    @pytest.mark.asyncio
    async def test_add_and_get(self, manager):
        org = await manager.add_organization({"name": "acme", "city": "Madrid"})

        fetched = await manager.get_organization({"organization_id": org.organization_id})

        assert fetched == org
        assert fetched.created > 0

    @pytest.mark.asyncio
    async def test_duplicate_name(self, manager):
        await manager.add_organization({"name": "acme"})

        with pytest.raises(AlreadyExistsError, match="organization name"):
            await manager.add_organization({"name": "acme"})

    @pytest.mark.asyncio
    async def test_rename_checks_uniqueness(self, manager):
        await manager.add_organization({"name": "acme"})
        other = await manager.add_organization({"name": "globex"})

        with pytest.raises(AlreadyExistsError):
            await manager.update_organization(
                {"organization_id": other.organization_id, "update_name": True, "name": "acme"}
            )

        await manager.update_organization(
            {"organization_id": other.organization_id, "update_name": True, "name": "initech"}
        )
        names = [o.name for o in await manager.list_organizations({})]
        assert names == ["acme", "initech"]

    @pytest.mark.asyncio
    async def test_get_missing(self, manager):
        with pytest.raises(NotFoundError):
            await manager.get_organization({"organization_id": "missing"})

    @pytest.mark.asyncio
    async def test_missing_name(self, manager):
        with pytest.raises(InvalidArgumentError):
            await manager.add_organization({})


class TestClusterManager:
    """Tests for ClusterManager."""

    @pytest.mark.asyncio
    async def test_add_and_list(self, clusters, organization):
        first = await clusters.add_cluster({"organization_id": organization, "name": "edge-1"})
        second = await clusters.add_cluster(
            {"organization_id": organization, "name": "edge-2", "cluster_type": "DOCKER_NODE"}
        )

        listed = await clusters.list_clusters({"organization_id": organization})

        assert [c.cluster_id for c in listed] == [first.cluster_id, second.cluster_id]
        assert listed[1].cluster_type.name == "DOCKER_NODE"

    @pytest.mark.asyncio
    async def test_add_requires_organization(self, clusters):
        with pytest.raises(NotFoundError, match="organization"):
            await clusters.add_cluster({"organization_id": "missing", "name": "edge"})

    @pytest.mark.asyncio
    async def test_add_rolls_back_record(self, stores, clusters, organization):
        stores.organization_clusters.inject_failure("add")

        with pytest.raises(InternalError):
            await clusters.add_cluster({"organization_id": organization, "name": "edge"})

        assert stores.clusters.get_record_count() == 0

    @pytest.mark.asyncio
    async def test_update(self, clusters, organization):
        cluster = await clusters.add_cluster({"organization_id": organization, "name": "edge"})

        await clusters.update_cluster(
            {
                "organization_id": organization,
                "cluster_id": cluster.cluster_id,
                "update_status": True,
                "status": "RUNNING",
                "add_labels": True,
                "labels": {"zone": "eu"},
            }
        )

        updated = await clusters.get_cluster(
            {"organization_id": organization, "cluster_id": cluster.cluster_id}
        )
        assert updated.status is InfraStatus.RUNNING
        assert updated.labels == {"zone": "eu"}

    @pytest.mark.asyncio
    async def test_remove_detaches_nodes(self, stores, clusters, nodes, organization):
        cluster = await clusters.add_cluster({"organization_id": organization, "name": "edge"})
        node = await nodes.add_node({"organization_id": organization, "ip": "10.0.0.1"})
        await nodes.attach_node(
            {"organization_id": organization, "cluster_id": cluster.cluster_id, "node_id": node.node_id}
        )

        await clusters.remove_cluster(
            {"organization_id": organization, "cluster_id": cluster.cluster_id}
        )

        detached = await nodes.get_node({"organization_id": organization, "node_id": node.node_id})
        assert detached.cluster_id == ""
        assert detached.state is NodeState.UNASSIGNED
        assert await clusters.list_clusters({"organization_id": organization}) == []
        assert stores.cluster_nodes.snapshot() == {}

    @pytest.mark.asyncio
    async def test_remove_rollback(self, stores, clusters, nodes, organization):
        """A failing record delete restores the index and the nodes."""
        cluster = await clusters.add_cluster({"organization_id": organization, "name": "edge"})
        node = await nodes.add_node({"organization_id": organization, "ip": "10.0.0.1"})
        request = {
            "organization_id": organization,
            "cluster_id": cluster.cluster_id,
            "node_id": node.node_id,
        }
        await nodes.attach_node(request)
        stores.clusters.inject_failure("remove")

        with pytest.raises(InternalError):
            await clusters.remove_cluster(
                {"organization_id": organization, "cluster_id": cluster.cluster_id}
            )

        restored = await nodes.get_node({"organization_id": organization, "node_id": node.node_id})
        assert restored.cluster_id == cluster.cluster_id
        assert [n.node_id for n in await nodes.list_nodes(request)] == [node.node_id]
        assert len(await clusters.list_clusters({"organization_id": organization})) == 1

    @pytest.mark.asyncio
    async def test_remove_unknown_cluster(self, clusters, organization):
        with pytest.raises(NotFoundError, match="cluster"):
            await clusters.remove_cluster({"organization_id": organization, "cluster_id": "nope"})


class TestNodeManager:
    """Tests for NodeManager."""

    @pytest.fixture
    async def cluster_ids(self, clusters, organization):
        ids = []
        for name in ("edge-1", "edge-2"):
            cluster = await clusters.add_cluster({"organization_id": organization, "name": name})
            ids.append(cluster.cluster_id)
        return ids

    async def add_nodes(self, nodes, organization, count):
        added = []
        for i in range(count):
            node = await nodes.add_node({"organization_id": organization, "ip": f"10.0.0.{i}"})
            added.append(node.node_id)
        return added

    @pytest.mark.asyncio
    async def test_add_node_defaults(self, nodes, organization):
        node = await nodes.add_node({"organization_id": organization, "ip": "10.0.0.1"})

        assert node.cluster_id == ""
        assert node.state is NodeState.UNREGISTERED
        assert [n.node_id for n in await nodes.list_organization_nodes(
            {"organization_id": organization}
        )] == [node.node_id]

    @pytest.mark.asyncio
    async def test_add_node_requires_ip(self, nodes, organization):
        with pytest.raises(InvalidArgumentError, match="ip"):
            await nodes.add_node({"organization_id": organization})

    @pytest.mark.asyncio
    async def test_attach(self, nodes, organization, cluster_ids):
        (node_id,) = await self.add_nodes(nodes, organization, 1)

        attached = await nodes.attach_node(
            {"organization_id": organization, "cluster_id": cluster_ids[0], "node_id": node_id}
        )

        assert attached.cluster_id == cluster_ids[0]
        assert attached.state is NodeState.ASSIGNED
        listed = await nodes.list_nodes(
            {"organization_id": organization, "cluster_id": cluster_ids[0]}
        )
        assert [n.node_id for n in listed] == [node_id]

    @pytest.mark.asyncio
    async def test_attach_moves_node(self, nodes, organization, cluster_ids):
        (node_id,) = await self.add_nodes(nodes, organization, 1)
        for cluster_id in cluster_ids:
            await nodes.attach_node(
                {"organization_id": organization, "cluster_id": cluster_id, "node_id": node_id}
            )

        first = await nodes.list_nodes({"organization_id": organization, "cluster_id": cluster_ids[0]})
        second = await nodes.list_nodes({"organization_id": organization, "cluster_id": cluster_ids[1]})
        node = await nodes.get_node({"organization_id": organization, "node_id": node_id})

        assert first == []
        assert [n.node_id for n in second] == [node_id]
        assert node.cluster_id == cluster_ids[1]

    @pytest.mark.asyncio
    async def test_attach_same_cluster_twice(self, nodes, organization, cluster_ids):
        (node_id,) = await self.add_nodes(nodes, organization, 1)
        request = {"organization_id": organization, "cluster_id": cluster_ids[0], "node_id": node_id}
        await nodes.attach_node(request)

        with pytest.raises(AlreadyExistsError):
            await nodes.attach_node(request)

    @pytest.mark.asyncio
    async def test_attach_unknown_cluster(self, nodes, organization):
        (node_id,) = await self.add_nodes(nodes, organization, 1)

        with pytest.raises(NotFoundError, match="cluster"):
            await nodes.attach_node(
                {"organization_id": organization, "cluster_id": "nope", "node_id": node_id}
            )

    @pytest.mark.asyncio
    async def test_attach_rollback(self, stores, nodes, organization, cluster_ids):
        """A failing record update leaves the node in its previous cluster."""
        (node_id,) = await self.add_nodes(nodes, organization, 1)
        await nodes.attach_node(
            {"organization_id": organization, "cluster_id": cluster_ids[0], "node_id": node_id}
        )
        stores.nodes.inject_failure("update")

        with pytest.raises(InternalError):
            await nodes.attach_node(
                {"organization_id": organization, "cluster_id": cluster_ids[1], "node_id": node_id}
            )

        node = await nodes.get_node({"organization_id": organization, "node_id": node_id})
        assert node.cluster_id == cluster_ids[0]
        assert stores.cluster_nodes.snapshot() == {(organization, cluster_ids[0]): [node_id]}

    @pytest.mark.asyncio
    async def test_concurrent_attach_lands_in_one_cluster(
        self, stores, nodes, organization, cluster_ids
    ):
        (node_id,) = await self.add_nodes(nodes, organization, 1)

        await asyncio.gather(
            *(
                nodes.attach_node(
                    {"organization_id": organization, "cluster_id": cluster_id, "node_id": node_id}
                )
                for cluster_id in cluster_ids
            )
        )

        node = await nodes.get_node({"organization_id": organization, "node_id": node_id})
        assert stores.cluster_nodes.snapshot() == {(organization, node.cluster_id): [node_id]}

    @pytest.mark.asyncio
    async def test_update_returns_node(self, nodes, organization):
        (node_id,) = await self.add_nodes(nodes, organization, 1)

        updated = await nodes.update_node(
            {
                "organization_id": organization,
                "node_id": node_id,
                "add_labels": True,
                "labels": {"zone": "a"},
                "update_status": True,
                "status": "RUNNING",
                "update_state": True,
                "state": "UNASSIGNED",
            }
        )

        assert updated.node_id == node_id
        assert updated.labels == {"zone": "a"}
        assert updated.status is InfraStatus.RUNNING
        assert updated.state is NodeState.UNASSIGNED
        assert updated == await nodes.get_node({"organization_id": organization, "node_id": node_id})

    @pytest.mark.asyncio
    async def test_list_nodes_empty_cluster(self, nodes, organization, cluster_ids):
        assert await nodes.list_nodes(
            {"organization_id": organization, "cluster_id": cluster_ids[0]}
        ) == []

    @pytest.mark.asyncio
    async def test_remove_nodes(self, stores, nodes, organization, cluster_ids):
        node_ids = await self.add_nodes(nodes, organization, 3)
        await nodes.attach_node(
            {"organization_id": organization, "cluster_id": cluster_ids[0], "node_id": node_ids[0]}
        )

        await nodes.remove_nodes({"organization_id": organization, "nodes": node_ids[:2]})

        remaining = await nodes.list_organization_nodes({"organization_id": organization})
        assert [n.node_id for n in remaining] == [node_ids[2]]
        assert stores.cluster_nodes.snapshot() == {}
        assert stores.nodes.get_record_count() == 1

    @pytest.mark.asyncio
    async def test_remove_nodes_stops_at_failure(self, stores, nodes, organization, cluster_ids):
        """Nodes before the failing one stay removed, later ones are untouched."""
        node_ids = await self.add_nodes(nodes, organization, 3)
        await nodes.attach_node(
            {"organization_id": organization, "cluster_id": cluster_ids[0], "node_id": node_ids[1]}
        )
        stores.nodes.inject_failure("remove", key=(organization, node_ids[1]))

        with pytest.raises(InternalError):
            await nodes.remove_nodes({"organization_id": organization, "nodes": node_ids})

        remaining = await nodes.list_organization_nodes({"organization_id": organization})
        assert {n.node_id for n in remaining} == set(node_ids[1:])
        failed = await nodes.get_node({"organization_id": organization, "node_id": node_ids[1]})
        assert failed.cluster_id == cluster_ids[0]
        assert stores.cluster_nodes.snapshot() == {(organization, cluster_ids[0]): [node_ids[1]]}

    @pytest.mark.asyncio
    async def test_remove_nodes_unknown_id(self, stores, nodes, organization):
        node_ids = await self.add_nodes(nodes, organization, 1)

        with pytest.raises(NotFoundError):
            await nodes.remove_nodes(
                {"organization_id": organization, "nodes": node_ids + ["missing"]}
            )

        assert stores.nodes.get_record_count() == 0

    @pytest.mark.asyncio
    async def test_remove_nodes_empty_list(self, nodes, organization):
        with pytest.raises(InvalidArgumentError):
            await nodes.remove_nodes({"organization_id": organization, "nodes": []})
