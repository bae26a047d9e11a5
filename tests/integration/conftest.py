"""Shared fixtures for manager integration tests."""

import pytest

from catalog.system_model.config import ApplicationConfig
from catalog.system_model.manager import (
    ClusterManager,
    NodeManager,
    OrganizationManager,
)
from catalog.system_model.provider import RecordStores


@pytest.fixture
def stores():
    """Fresh in-memory stores."""
    return RecordStores.in_memory()


@pytest.fixture
def app_config():
    return ApplicationConfig(cluster_domain="cluster.test", global_domain="global.test")


@pytest.fixture
async def organization(stores):
    """Id of a freshly created organization."""
    org = await OrganizationManager(stores).add_organization({"name": "acme"})
    return org.organization_id


@pytest.fixture
def clusters(stores):
    return ClusterManager(stores)


@pytest.fixture
def nodes(stores):
    return NodeManager(stores)
