"""
Integration tests for the managers on the SQLite backend.

Tests cover:
- Node attachment and cluster removal persisted to disk
- Reopening the catalog file
- Descriptor and instance round trips through JSON payloads
"""

import tempfile

import pytest

from catalog.system_model.config import ApplicationConfig, StorageConfig, StoreBackend
from catalog.system_model.entities import NodeState
from catalog.system_model.manager import (
    ApplicationManager,
    ClusterManager,
    NodeManager,
    OrganizationManager,
)
from catalog.system_model.provider import create_record_stores


class TestSqliteCatalog:
    """Manager flows against a real SQLite file."""

    @pytest.fixture
    def data_dir(self):
        """Create temporary data directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield tmpdir

    @pytest.fixture
    def config(self, data_dir):
        return StorageConfig(backend=StoreBackend.SQLITE, data_dir=data_dir)

    @pytest.mark.asyncio
    async def test_attach_and_remove_cluster(self, config):
        stores = create_record_stores(config)
        org = await OrganizationManager(stores).add_organization({"name": "acme"})
        org_id = org.organization_id
        clusters = ClusterManager(stores)
        nodes = NodeManager(stores)
        cluster = await clusters.add_cluster({"organization_id": org_id, "name": "edge"})
        node = await nodes.add_node({"organization_id": org_id, "ip": "10.0.0.1"})
        await nodes.attach_node(
            {"organization_id": org_id, "cluster_id": cluster.cluster_id, "node_id": node.node_id}
        )

        reopened = NodeManager(create_record_stores(config))
        listed = await reopened.list_nodes(
            {"organization_id": org_id, "cluster_id": cluster.cluster_id}
        )
        assert [n.node_id for n in listed] == [node.node_id]
        assert listed[0].state is NodeState.ASSIGNED

        await clusters.remove_cluster({"organization_id": org_id, "cluster_id": cluster.cluster_id})

        detached = await reopened.get_node({"organization_id": org_id, "node_id": node.node_id})
        assert detached.cluster_id == ""
        assert await clusters.list_clusters({"organization_id": org_id}) == []

    @pytest.mark.asyncio
    async def test_descriptor_round_trip(self, config):
        stores = create_record_stores(config)
        org = await OrganizationManager(stores).add_organization({"name": "acme"})
        apps = ApplicationManager(stores, ApplicationConfig())
        descriptor = await apps.add_app_descriptor(
            {
                "organization_id": org.organization_id,
                "name": "shop",
                "groups": [
                    {
                        "name": "web",
                        "policy": "SEPARATE_CLUSTERS",
                        "services": [
                            {
                                "name": "frontend",
                                "image": "nginx:1.25",
                                "exposed_ports": [
                                    {"name": "http", "internal_port": 80, "exposed_port": 80}
                                ],
                            }
                        ],
                    }
                ],
                "rules": [
                    {
                        "name": "public",
                        "target_service_group_name": "web",
                        "target_service_name": "frontend",
                        "target_port": 80,
                        "access": "PUBLIC",
                    }
                ],
            }
        )
        instance = await apps.add_app_instance(
            {
                "organization_id": org.organization_id,
                "app_descriptor_id": descriptor.app_descriptor_id,
                "name": "shop-prod",
            }
        )

        fetched = await apps.get_app_descriptor(
            {
                "organization_id": org.organization_id,
                "app_descriptor_id": descriptor.app_descriptor_id,
            }
        )
        assert fetched == descriptor
        assert fetched.groups[0].policy.name == "SEPARATE_CLUSTERS"
        assert await apps.list_app_instances({"organization_id": org.organization_id}) == [
            instance
        ]
