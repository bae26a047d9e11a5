"""
Node entity: a physical or virtual machine attachable to one cluster.

Invariants:
    - A node belongs to exactly one organization for its whole life
    - `cluster_id` is empty while the node is unattached
    - The node id appears in the cluster node index iff `cluster_id` names
      that cluster (kept true by manager/node.py, not by this module)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping

from ..errors import InvalidArgumentError
from .common import (
    INFRA_STATUS,
    Entity,
    EnumMapping,
    InfraStatus,
    generate_uuid,
    now_seconds,
    require_fields,
    require_mapping,
    string_list,
    string_map,
    update_labels,
)


class NodeState(Enum):
    UNREGISTERED = "unregistered"
    UNASSIGNED = "unassigned"
    ASSIGNED = "assigned"


NODE_STATE = EnumMapping(
    NodeState,
    {
        NodeState.UNREGISTERED: "UNREGISTERED",
        NodeState.UNASSIGNED: "UNASSIGNED",
        NodeState.ASSIGNED: "ASSIGNED",
    },
    default=NodeState.UNREGISTERED,
)


@dataclass
class Node(Entity):
    """A machine registered in an organization.

    Attributes:
        organization_id: Owning organization
        cluster_id: Cluster the node is attached to, empty when unattached
        node_id: Unique identifier (UUID)
        ip: Network address
        labels: Arbitrary user labels
        status: Infrastructure lifecycle status
        state: Assignment state
        created: Creation timestamp (Unix seconds)
    """

    ENTITY_KIND = "node"
    KEY_FIELDS = ("organization_id", "node_id")
    ENUMS = {"status": INFRA_STATUS, "state": NODE_STATE}

    organization_id: str
    node_id: str
    ip: str = ""
    cluster_id: str = ""
    labels: Dict[str, str] = field(default_factory=dict)
    status: InfraStatus = InfraStatus.INSTALLING
    state: NodeState = NodeState.UNREGISTERED
    created: int = 0

    @property
    def attached(self) -> bool:
        return bool(self.cluster_id)

    @classmethod
    def from_add_request(cls, request: Mapping[str, Any]) -> Node:
        return cls(
            organization_id=request["organization_id"],
            node_id=generate_uuid(),
            ip=request["ip"],
            labels=string_map(request.get("labels"), "labels"),
            created=now_seconds(),
        )

    def apply_update(self, request: Mapping[str, Any]) -> None:
        """Apply a field-masked update request in place."""
        if request.get("add_labels") or request.get("remove_labels"):
            self.labels = update_labels(self.labels, request)
        if request.get("update_status"):
            self.status = INFRA_STATUS.from_wire(request.get("status"), "status")
        if request.get("update_state"):
            self.state = NODE_STATE.from_wire(request.get("state"), "state")


def validate_add_node_request(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "organization_id", "ip")
    string_map(request.get("labels"), "labels")


def validate_update_node_request(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "organization_id", "node_id")
    string_map(request.get("labels"), "labels")
    if request.get("update_status"):
        INFRA_STATUS.from_wire(request.get("status"), "status")
    if request.get("update_state"):
        NODE_STATE.from_wire(request.get("state"), "state")


def validate_node_id(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "organization_id", "node_id")


def validate_attach_node_request(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "organization_id", "cluster_id", "node_id")


def validate_remove_nodes_request(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "organization_id", "nodes")
    node_ids = string_list(request.get("nodes"), "nodes")
    if any(not node_id for node_id in node_ids):
        raise InvalidArgumentError("nodes cannot contain empty identifiers")
