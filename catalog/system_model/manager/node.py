"""
Node manager: registration, attachment and batch removal of nodes.

A node appears in three places that must agree: its own record, the
organization_nodes index and, while attached, the cluster_nodes index of
the cluster named by its `cluster_id`. Every operation touching more than
one of them runs as a Saga.

Invariants:
    - node.cluster_id == C iff node_id is listed in cluster_nodes[(org, C)]
    - A node is listed in organization_nodes[(org,)] iff its record exists
    - A failed attach leaves the node where it was
    - Changes to one node are serialized by a per-node lock held from the
      read of the record until its saga finishes

How to change safely:
    - Keep the step order of attach_node: the new index entry is written
      before the old one is removed, so a node is never in zero clusters
      after a partial failure
    - RemoveNodes is not atomic across the batch; callers rely on nodes
      before a failing one staying removed
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping

from ..entities.cluster import validate_cluster_id
from ..entities.node import (
    Node,
    NodeState,
    validate_add_node_request,
    validate_attach_node_request,
    validate_node_id,
    validate_remove_nodes_request,
    validate_update_node_request,
)
from ..entities.organization import validate_organization_id
from ..errors import AlreadyExistsError
from ..provider import KeyedLock, RecordStores
from .base import Manager
from .saga import Saga

logger = logging.getLogger(__name__)


class NodeManager(Manager):
    """Node operations over the node table and its two indexes.

    Example:
        >>> manager = NodeManager(RecordStores.in_memory())
        >>> node = await manager.add_node({"organization_id": org_id, "ip": "10.0.0.1"})
        >>> await manager.attach_node(
        ...     {"organization_id": org_id, "cluster_id": cluster_id, "node_id": node.node_id}
        ... )
    """

    def __init__(self, stores: RecordStores) -> None:
        super().__init__(stores)
        # Held across the read and the saga of any change to one node.
        self._node_locks = KeyedLock()

    async def add_node(self, request: Mapping[str, Any]) -> Node:
        """Register a node in an organization, unattached.

        Raises:
            InvalidArgumentError: If organization_id or ip is missing
            NotFoundError: If the organization does not exist
        """
        validate_add_node_request(request)
        await self.require_organization(request["organization_id"])
        node = Node.from_add_request(request)
        org_key = (node.organization_id,)

        await (
            Saga("add_node")
            .step(
                "add_record",
                lambda: self.stores.nodes.add(node),
                lambda _: self.stores.nodes.remove(*node.key()),
            )
            .step(
                "add_to_organization",
                lambda: self.stores.organization_nodes.add(org_key, node.node_id),
            )
            .run()
        )
        logger.info(
            "Added node",
            extra={"organization_id": node.organization_id, "node_id": node.node_id},
        )
        return node

    async def get_node(self, request: Mapping[str, Any]) -> Node:
        validate_node_id(request)
        return await self.stores.nodes.get(request["organization_id"], request["node_id"])

    async def update_node(self, request: Mapping[str, Any]) -> Node:
        """Apply a field-masked update and return the node as persisted."""
        validate_update_node_request(request)
        organization_id = request["organization_id"]
        node_id = request["node_id"]
        async with self._node_locks.hold((organization_id, node_id)):
            node = await self.stores.nodes.get(organization_id, node_id)
            node.apply_update(request)
            await self.stores.nodes.update(node)
        return node

    async def attach_node(self, request: Mapping[str, Any]) -> Node:
        """Attach a node to a cluster, moving it if it is attached elsewhere.

        Steps:
            1. add the node to the target cluster_nodes list
            2. remove it from the previous cluster_nodes list, if any
            3. persist the node with the new cluster_id

        Returns:
            The node as persisted

        Raises:
            NotFoundError: Unknown organization, or cluster or node not in it
            AlreadyExistsError: The node is already attached to that cluster
        """
        validate_attach_node_request(request)
        organization_id = request["organization_id"]
        cluster_id = request["cluster_id"]
        node_id = request["node_id"]
        org_key = (organization_id,)

        await self.require_organization(organization_id)
        await self.require_child(self.stores.organization_clusters, org_key, cluster_id, "cluster")
        await self.require_child(self.stores.organization_nodes, org_key, node_id, "node")
        async with self._node_locks.hold((organization_id, node_id)):
            node = await self.stores.nodes.get(organization_id, node_id)
            if node.cluster_id == cluster_id:
                raise AlreadyExistsError("node already attached").with_params(cluster_id, node_id)

            target = (organization_id, cluster_id)
            previous = (organization_id, node.cluster_id)
            attached = Node.from_dict(node.to_dict())
            attached.cluster_id = cluster_id
            attached.state = NodeState.ASSIGNED

            saga = Saga("attach_node")
            saga.step(
                "add_to_cluster",
                lambda: self.stores.cluster_nodes.add(target, node_id),
                lambda _: self.stores.cluster_nodes.remove(target, node_id),
            )
            if node.attached:
                saga.step(
                    "remove_from_previous_cluster",
                    lambda: self.stores.cluster_nodes.remove(previous, node_id),
                    lambda _: self.stores.cluster_nodes.add(previous, node_id),
                )
            saga.step(
                "update_record",
                lambda: self.stores.nodes.update(attached),
                lambda _: self.stores.nodes.update(node),
            )
            await saga.run()

        logger.info(
            "Attached node",
            extra={
                "organization_id": organization_id,
                "node_id": node_id,
                "cluster_id": cluster_id,
                "previous_cluster_id": node.cluster_id,
            },
        )
        return attached

    async def list_nodes(self, request: Mapping[str, Any]) -> List[Node]:
        """List the nodes attached to a cluster, in attachment order."""
        validate_cluster_id(request)
        organization_id = request["organization_id"]
        ids = await self.stores.cluster_nodes.list((organization_id, request["cluster_id"]))
        return await self.fetch_all(self.stores.nodes, (organization_id,), ids)

    async def list_organization_nodes(self, request: Mapping[str, Any]) -> List[Node]:
        validate_organization_id(request)
        organization_id = request["organization_id"]
        ids = await self.stores.organization_nodes.list((organization_id,))
        return await self.fetch_all(self.stores.nodes, (organization_id,), ids)

    async def remove_nodes(self, request: Mapping[str, Any]) -> None:
        """Remove a batch of nodes, one saga per node.

        Nodes are removed in request order. The first failure stops the
        batch: that node is restored, nodes before it stay removed and nodes
        after it are not touched.

        Raises:
            NotFoundError: Unknown organization or node id
        """
        validate_remove_nodes_request(request)
        organization_id = request["organization_id"]
        await self.require_organization(organization_id)

        for node_id in request["nodes"]:
            async with self._node_locks.hold((organization_id, node_id)):
                node = await self.stores.nodes.get(organization_id, node_id)
                await self._remove_node(node)

    async def _remove_node(self, node: Node) -> None:
        org_key = (node.organization_id,)
        cluster_key = (node.organization_id, node.cluster_id)

        saga = Saga("remove_node")
        if node.attached:
            saga.step(
                "remove_from_cluster",
                lambda: self.stores.cluster_nodes.remove(cluster_key, node.node_id),
                lambda _: self.stores.cluster_nodes.add(cluster_key, node.node_id),
            )
        saga.step(
            "remove_from_organization",
            lambda: self.stores.organization_nodes.remove(org_key, node.node_id),
            lambda _: self.stores.organization_nodes.add(org_key, node.node_id),
        )
        saga.step(
            "remove_record",
            lambda: self.stores.nodes.remove(*node.key()),
            lambda _: self.stores.nodes.add(node),
        )
        await saga.run()
        logger.info(
            "Removed node",
            extra={"organization_id": node.organization_id, "node_id": node.node_id},
        )
