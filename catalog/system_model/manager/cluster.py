"""
Cluster manager.

Clusters are listed through the organization_clusters index and own the
cluster_nodes index of the nodes attached to them.

Invariants:
    - A cluster record exists iff its id is in organization_clusters
    - Removing a cluster leaves its former nodes unattached, never dangling
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping

from ..entities.cluster import (
    Cluster,
    validate_add_cluster_request,
    validate_cluster_id,
    validate_update_cluster_request,
)
from ..entities.node import Node, NodeState
from ..entities.organization import validate_organization_id
from .base import Manager
from .saga import Saga

logger = logging.getLogger(__name__)


class ClusterManager(Manager):
    async def add_cluster(self, request: Mapping[str, Any]) -> Cluster:
        """Register a new cluster in an organization.

        Raises:
            InvalidArgumentError: If the request is malformed
            NotFoundError: If the organization does not exist
        """
        validate_add_cluster_request(request)
        await self.require_organization(request["organization_id"])
        cluster = Cluster.from_add_request(request)
        org_key = (cluster.organization_id,)

        await (
            Saga("add_cluster")
            .step(
                "add_record",
                lambda: self.stores.clusters.add(cluster),
                lambda _: self.stores.clusters.remove(*cluster.key()),
            )
            .step(
                "add_to_organization",
                lambda: self.stores.organization_clusters.add(org_key, cluster.cluster_id),
            )
            .run()
        )
        logger.info(
            "Added cluster",
            extra={"organization_id": cluster.organization_id, "cluster_id": cluster.cluster_id},
        )
        return cluster

    async def get_cluster(self, request: Mapping[str, Any]) -> Cluster:
        validate_cluster_id(request)
        return await self.stores.clusters.get(request["organization_id"], request["cluster_id"])

    async def list_clusters(self, request: Mapping[str, Any]) -> List[Cluster]:
        validate_organization_id(request)
        organization_id = request["organization_id"]
        ids = await self.stores.organization_clusters.list((organization_id,))
        return await self.fetch_all(self.stores.clusters, (organization_id,), ids)

    async def update_cluster(self, request: Mapping[str, Any]) -> None:
        validate_update_cluster_request(request)
        cluster = await self.stores.clusters.get(request["organization_id"], request["cluster_id"])
        cluster.apply_update(request)
        await self.stores.clusters.update(cluster)

    async def remove_cluster(self, request: Mapping[str, Any]) -> None:
        """Remove a cluster, detaching every node attached to it.

        Steps, each compensated on failure of a later one:
            1. clear cluster_id of every attached node
            2. drop the cluster_nodes list
            3. remove the cluster from organization_clusters
            4. delete the cluster record
        """
        validate_cluster_id(request)
        organization_id = request["organization_id"]
        cluster_id = request["cluster_id"]
        await self.require_organization(organization_id)
        await self.require_child(
            self.stores.organization_clusters, (organization_id,), cluster_id, "cluster"
        )
        cluster = await self.stores.clusters.get(organization_id, cluster_id)
        cluster_key = (organization_id, cluster_id)
        org_key = (organization_id,)

        saga = Saga("remove_cluster")
        for node_id in await self.stores.cluster_nodes.list(cluster_key):
            node = await self.stores.nodes.get(organization_id, node_id)
            saga.step(
                f"detach_node:{node_id}",
                self._detach(node),
                self._restore(node),
            )
        saga.step(
            "drop_cluster_nodes",
            lambda: self.stores.cluster_nodes.drop(cluster_key),
            lambda children: self.stores.cluster_nodes.restore(cluster_key, children),
        )
        saga.step(
            "remove_from_organization",
            lambda: self.stores.organization_clusters.remove(org_key, cluster_id),
            lambda _: self.stores.organization_clusters.add(org_key, cluster_id),
        )
        saga.step(
            "remove_record",
            lambda: self.stores.clusters.remove(organization_id, cluster_id),
            lambda _: self.stores.clusters.add(cluster),
        )
        await saga.run()
        logger.info(
            "Removed cluster",
            extra={"organization_id": organization_id, "cluster_id": cluster_id},
        )

    def _detach(self, node: Node):
        async def action() -> None:
            detached = Node.from_dict(node.to_dict())
            detached.cluster_id = ""
            detached.state = NodeState.UNASSIGNED
            await self.stores.nodes.update(detached)

        return action

    def _restore(self, node: Node):
        async def compensation(_: Any) -> None:
            await self.stores.nodes.update(node)

        return compensation
