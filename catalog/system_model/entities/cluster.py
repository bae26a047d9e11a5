"""Cluster entity: a compute grouping within an organization."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping

from .common import (
    INFRA_STATUS,
    Entity,
    EnumMapping,
    InfraStatus,
    generate_uuid,
    now_seconds,
    require_fields,
    require_mapping,
    string_map,
    update_labels,
)


class ClusterType(Enum):
    KUBERNETES = "kubernetes"
    DOCKER_NODE = "docker_node"


class MultitenantSupport(Enum):
    YES = "yes"
    NO = "no"


CLUSTER_TYPE = EnumMapping(
    ClusterType,
    {ClusterType.KUBERNETES: "KUBERNETES", ClusterType.DOCKER_NODE: "DOCKER_NODE"},
    default=ClusterType.KUBERNETES,
)

MULTITENANT_SUPPORT = EnumMapping(
    MultitenantSupport,
    {MultitenantSupport.YES: "YES", MultitenantSupport.NO: "NO"},
    default=MultitenantSupport.YES,
)


@dataclass
class Cluster(Entity):
    """A cluster registered under an organization.

    The nodes attached to a cluster are not embedded here; they live in the
    cluster to nodes relationship index.
    """

    ENTITY_KIND = "cluster"
    KEY_FIELDS = ("organization_id", "cluster_id")
    ENUMS = {
        "cluster_type": CLUSTER_TYPE,
        "multitenant": MULTITENANT_SUPPORT,
        "status": INFRA_STATUS,
    }

    organization_id: str
    cluster_id: str
    name: str
    cluster_type: ClusterType = ClusterType.KUBERNETES
    hostname: str = ""
    control_plane_hostname: str = ""
    multitenant: MultitenantSupport = MultitenantSupport.YES
    status: InfraStatus = InfraStatus.INSTALLING
    labels: Dict[str, str] = field(default_factory=dict)
    cordon: bool = False
    last_alive_timestamp: int = 0
    created: int = 0

    @classmethod
    def from_add_request(cls, request: Mapping[str, Any]) -> Cluster:
        return cls(
            organization_id=request["organization_id"],
            cluster_id=generate_uuid(),
            name=request["name"],
            cluster_type=CLUSTER_TYPE.from_wire(request.get("cluster_type"), "cluster_type"),
            hostname=request.get("hostname", ""),
            control_plane_hostname=request.get("control_plane_hostname", ""),
            multitenant=MULTITENANT_SUPPORT.from_wire(request.get("multitenant"), "multitenant"),
            labels=string_map(request.get("labels"), "labels"),
            created=now_seconds(),
        )

    def apply_update(self, request: Mapping[str, Any]) -> None:
        """Apply a field-masked update request in place."""
        if request.get("update_name"):
            self.name = request.get("name", "")
        if request.get("update_hostname"):
            self.hostname = request.get("hostname", "")
        if request.get("update_control_plane_hostname"):
            self.control_plane_hostname = request.get("control_plane_hostname", "")
        if request.get("update_status"):
            self.status = INFRA_STATUS.from_wire(request.get("status"), "status")
        if request.get("add_labels") or request.get("remove_labels"):
            self.labels = update_labels(self.labels, request)
        if request.get("update_cordon"):
            self.cordon = bool(request.get("cordon"))
        if request.get("update_last_alive"):
            self.last_alive_timestamp = int(request.get("last_alive_timestamp", 0))


def validate_add_cluster_request(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "organization_id", "name")
    CLUSTER_TYPE.from_wire(request.get("cluster_type"), "cluster_type")
    MULTITENANT_SUPPORT.from_wire(request.get("multitenant"), "multitenant")
    string_map(request.get("labels"), "labels")


def validate_cluster_id(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "organization_id", "cluster_id")


def validate_update_cluster_request(request: Mapping[str, Any]) -> None:
    validate_cluster_id(request)
    if request.get("update_name"):
        require_fields(request, "name")
    if request.get("update_status"):
        INFRA_STATUS.from_wire(request.get("status"), "status")
    string_map(request.get("labels"), "labels")
