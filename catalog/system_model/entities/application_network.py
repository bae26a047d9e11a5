"""
Application network entities: connections between application instances.

A connection joins an outbound interface of a source instance to an inbound
interface of a target instance. Each connection materializes as one link per
(source cluster, target cluster) pair the instances are deployed on.

Keys:
    connection: (organization_id, source_instance_id, target_instance_id,
                 inbound_name, outbound_name)
    link:       connection key + (source_cluster_id, target_cluster_id)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Tuple

from .common import Entity, EnumMapping, generate_uuid, require_fields, require_mapping


class ConnectionStatus(Enum):
    WAITING = "waiting"
    ESTABLISHED = "established"
    TERMINATED = "terminated"
    FAILED = "failed"


CONNECTION_STATUS = EnumMapping(
    ConnectionStatus,
    {status: status.name for status in ConnectionStatus},
    default=ConnectionStatus.WAITING,
)


@dataclass
class ConnectionInstance(Entity):
    ENTITY_KIND = "connection"
    KEY_FIELDS = (
        "organization_id",
        "source_instance_id",
        "target_instance_id",
        "inbound_name",
        "outbound_name",
    )
    ENUMS = {"status": CONNECTION_STATUS}

    organization_id: str
    source_instance_id: str
    target_instance_id: str
    inbound_name: str
    outbound_name: str
    connection_id: str = ""
    source_instance_name: str = ""
    target_instance_name: str = ""
    outbound_required: bool = False
    status: ConnectionStatus = ConnectionStatus.WAITING

    @classmethod
    def from_add_request(cls, request: Mapping[str, Any]) -> ConnectionInstance:
        return cls(
            organization_id=request["organization_id"],
            source_instance_id=request["source_instance_id"],
            target_instance_id=request["target_instance_id"],
            inbound_name=request["inbound_name"],
            outbound_name=request["outbound_name"],
            connection_id=generate_uuid(),
            source_instance_name=request.get("source_instance_name", ""),
            target_instance_name=request.get("target_instance_name", ""),
            outbound_required=bool(request.get("outbound_required", False)),
        )


@dataclass
class ConnectionInstanceLink(Entity):
    ENTITY_KIND = "connection_link"
    KEY_FIELDS = ConnectionInstance.KEY_FIELDS + ("source_cluster_id", "target_cluster_id")
    ENUMS = {"status": CONNECTION_STATUS}

    organization_id: str
    source_instance_id: str
    target_instance_id: str
    inbound_name: str
    outbound_name: str
    source_cluster_id: str
    target_cluster_id: str
    connection_id: str = ""
    status: ConnectionStatus = ConnectionStatus.WAITING

    def connection_key(self) -> Tuple[str, ...]:
        return self.key()[: len(ConnectionInstance.KEY_FIELDS)]


def validate_connection_id(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, *ConnectionInstance.KEY_FIELDS)


def validate_add_connection_link_request(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, *ConnectionInstanceLink.KEY_FIELDS)
    CONNECTION_STATUS.from_wire(request.get("status"), "status")


def validate_organization_scope(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "organization_id")
