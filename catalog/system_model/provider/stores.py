"""
Bundle of every record table and relationship index of the catalog.

Managers receive one RecordStores instance and never construct tables
themselves, so switching backends is a configuration change only.

Relationship indexes:
    organization_clusters   (organization_id,)            -> cluster_id
    organization_nodes      (organization_id,)            -> node_id
    cluster_nodes           (organization_id, cluster_id) -> node_id
    organization_descriptors (organization_id,)           -> app_descriptor_id
    organization_instances  (organization_id,)            -> app_instance_id
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields

from ..config import StorageConfig, StoreBackend
from ..entities import (
    Account,
    AppDescriptor,
    AppEndpoint,
    AppInstance,
    AppZtNetwork,
    Asset,
    Cluster,
    ConnectionInstance,
    ConnectionInstanceLink,
    Device,
    DeviceGroup,
    Node,
    Organization,
    Project,
    Role,
    User,
)
from .base import AssociationIndex, RecordTable
from .memory import InMemoryAssociationIndex, InMemoryRecordTable
from .sqlite import SqliteAssociationIndex, SqliteDatabase, SqliteRecordTable

logger = logging.getLogger(__name__)


@dataclass
class RecordStores:
    organizations: RecordTable[Organization]
    clusters: RecordTable[Cluster]
    nodes: RecordTable[Node]
    assets: RecordTable[Asset]
    device_groups: RecordTable[DeviceGroup]
    devices: RecordTable[Device]
    app_descriptors: RecordTable[AppDescriptor]
    app_instances: RecordTable[AppInstance]
    app_endpoints: RecordTable[AppEndpoint]
    app_zt_networks: RecordTable[AppZtNetwork]
    connections: RecordTable[ConnectionInstance]
    connection_links: RecordTable[ConnectionInstanceLink]
    users: RecordTable[User]
    roles: RecordTable[Role]
    accounts: RecordTable[Account]
    projects: RecordTable[Project]

    organization_clusters: AssociationIndex
    organization_nodes: AssociationIndex
    cluster_nodes: AssociationIndex
    organization_descriptors: AssociationIndex
    organization_instances: AssociationIndex

    @classmethod
    def in_memory(cls) -> RecordStores:
        """Create stores backed by process memory."""
        return cls._build(InMemoryRecordTable, InMemoryAssociationIndex)

    @classmethod
    def sqlite(cls, db: SqliteDatabase) -> RecordStores:
        """Create stores sharing one SQLite database."""
        return cls._build(
            lambda entity_type: SqliteRecordTable(db, entity_type),
            lambda name, parent: SqliteAssociationIndex(db, name, parent),
        )

    @classmethod
    def _build(cls, table, index) -> RecordStores:
        organizations = table(Organization)
        clusters = table(Cluster)
        return cls(
            organizations=organizations,
            clusters=clusters,
            nodes=table(Node),
            assets=table(Asset),
            device_groups=table(DeviceGroup),
            devices=table(Device),
            app_descriptors=table(AppDescriptor),
            app_instances=table(AppInstance),
            app_endpoints=table(AppEndpoint),
            app_zt_networks=table(AppZtNetwork),
            connections=table(ConnectionInstance),
            connection_links=table(ConnectionInstanceLink),
            users=table(User),
            roles=table(Role),
            accounts=table(Account),
            projects=table(Project),
            organization_clusters=index("organization_clusters", organizations),
            organization_nodes=index("organization_nodes", organizations),
            cluster_nodes=index("cluster_nodes", clusters),
            organization_descriptors=index("organization_descriptors", organizations),
            organization_instances=index("organization_instances", organizations),
        )

    async def clear(self) -> None:
        """Remove every record and index entry."""
        for f in fields(self):
            await getattr(self, f.name).clear()


def create_record_stores(config: StorageConfig) -> RecordStores:
    """Create the stores for the configured backend.

    Args:
        config: Storage configuration

    Returns:
        RecordStores for the selected backend

    Raises:
        ValueError: If the backend is not supported
    """
    if config.backend == StoreBackend.MEMORY:
        logger.info("Using in-memory record stores")
        return RecordStores.in_memory()

    if config.backend == StoreBackend.SQLITE:
        db = SqliteDatabase(
            data_dir=config.data_dir,
            filename=config.db_filename,
            wal_mode=config.wal_mode,
            busy_timeout_ms=config.busy_timeout_ms,
        )
        db.initialize()
        logger.info("Using SQLite record stores", extra={"path": str(db.path)})
        return RecordStores.sqlite(db)

    raise ValueError(f"Unsupported store backend: {config.backend}")
