"""
Asset entity: a monitored inventory item tied to an edge controller.

An asset carries descriptive hardware, operating system and storage
sub-records reported by the agent installed on it, plus a few mutable
fields that the update request toggles independently:

    add_labels / remove_labels   label map merge or key removal
    update_ip                    eic_net_ip
    update_last_alive            last_alive_timestamp
    update_last_op_summary       last_op_result

Flags not set leave their fields untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from ..errors import InvalidArgumentError
from .common import (
    Entity,
    EnumMapping,
    Record,
    generate_uuid,
    now_seconds,
    require_fields,
    require_mapping,
    string_map,
    update_labels,
)


class OperatingSystemClass(Enum):
    LINUX = "linux"
    WINDOWS = "windows"
    DARWIN = "darwin"


class AgentOpStatus(Enum):
    SCHEDULED = "scheduled"
    SUCCESS = "success"
    FAIL = "fail"


OS_CLASS = EnumMapping(
    OperatingSystemClass,
    {
        OperatingSystemClass.LINUX: "LINUX",
        OperatingSystemClass.WINDOWS: "WINDOWS",
        OperatingSystemClass.DARWIN: "DARWIN",
    },
    default=OperatingSystemClass.LINUX,
)

AGENT_OP_STATUS = EnumMapping(
    AgentOpStatus,
    {
        AgentOpStatus.SCHEDULED: "SCHEDULED",
        AgentOpStatus.SUCCESS: "SUCCESS",
        AgentOpStatus.FAIL: "FAIL",
    },
    default=AgentOpStatus.SCHEDULED,
)


@dataclass
class OperatingSystemInfo(Record):
    """Operating system of an asset.

    Name and version are free text so that inventory is not constrained by
    what the agents know about.
    """

    ENUMS = {"os_class": OS_CLASS}

    name: str = ""
    version: str = ""
    os_class: OperatingSystemClass = OperatingSystemClass.LINUX
    architecture: str = ""


@dataclass
class CPUInfo(Record):
    manufacturer: str = ""
    model: str = ""
    architecture: str = ""
    num_cores: int = 0


@dataclass
class NetworkingHardwareInfo(Record):
    type: str = ""
    link_capacity: int = 0


@dataclass
class HardwareInfo(Record):
    NESTED = {"cpus": CPUInfo, "net_interfaces": NetworkingHardwareInfo}

    cpus: List[CPUInfo] = field(default_factory=list)
    installed_ram: int = 0
    net_interfaces: List[NetworkingHardwareInfo] = field(default_factory=list)


@dataclass
class StorageHardwareInfo(Record):
    type: str = ""
    total_capacity: int = 0


@dataclass
class AgentOpSummary(Record):
    """Result of the last operation an agent ran on the asset."""

    ENUMS = {"status": AGENT_OP_STATUS}

    operation_id: str = ""
    timestamp: int = 0
    status: AgentOpStatus = AgentOpStatus.SCHEDULED
    info: str = ""


@dataclass
class Asset(Entity):
    """An inventory item reported by an agent.

    Attributes:
        organization_id: Owning organization
        edge_controller_id: Edge controller the agent reports through
        asset_id: Unique identifier (UUID)
        agent_id: Agent installed on the asset
        show: Whether the asset is visible in listings
        created: Creation timestamp (Unix seconds)
        labels: User labels
        os: Operating system information
        hardware: Hardware information
        storage: Attached storage devices
        eic_net_ip: Last known IP as seen by the edge controller
        last_op_result: Result of the last agent operation
        last_alive_timestamp: Last time the agent reported in
    """

    ENTITY_KIND = "asset"
    KEY_FIELDS = ("organization_id", "asset_id")
    NESTED = {
        "os": OperatingSystemInfo,
        "hardware": HardwareInfo,
        "storage": StorageHardwareInfo,
        "last_op_result": AgentOpSummary,
    }

    organization_id: str
    edge_controller_id: str
    asset_id: str
    agent_id: str = ""
    show: bool = True
    created: int = 0
    labels: Dict[str, str] = field(default_factory=dict)
    os: Optional[OperatingSystemInfo] = None
    hardware: Optional[HardwareInfo] = None
    storage: List[StorageHardwareInfo] = field(default_factory=list)
    eic_net_ip: str = ""
    last_op_result: Optional[AgentOpSummary] = None
    last_alive_timestamp: int = 0

    @classmethod
    def from_add_request(cls, request: Mapping[str, Any]) -> Asset:
        return cls.from_wire(
            {
                "organization_id": request["organization_id"],
                "edge_controller_id": request["edge_controller_id"],
                "asset_id": generate_uuid(),
                "agent_id": request.get("agent_id", ""),
                "show": True,
                "created": now_seconds(),
                "labels": string_map(request.get("labels"), "labels"),
                "os": request.get("os"),
                "hardware": request.get("hardware"),
                "storage": request.get("storage") or [],
            }
        )

    def apply_update(self, request: Mapping[str, Any]) -> None:
        """Apply a field-masked update request in place."""
        if request.get("add_labels") or request.get("remove_labels"):
            self.labels = update_labels(self.labels, request)
        if request.get("update_last_alive"):
            self.last_alive_timestamp = request.get("last_alive_timestamp", 0)
        if request.get("update_last_op_summary"):
            self.last_op_result = AgentOpSummary.from_wire(request.get("last_op_summary") or {})
        if request.get("update_ip"):
            self.eic_net_ip = request.get("eic_net_ip", "")


def validate_add_asset_request(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "organization_id", "edge_controller_id")
    string_map(request.get("labels"), "labels")
    if request.get("os") is not None:
        OperatingSystemInfo.from_wire(request["os"])
    if request.get("hardware") is not None:
        HardwareInfo.from_wire(request["hardware"])
    for item in request.get("storage") or []:
        StorageHardwareInfo.from_wire(item)


def validate_asset_id(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "organization_id", "asset_id")


def validate_update_asset_request(request: Mapping[str, Any]) -> None:
    validate_asset_id(request)
    string_map(request.get("labels"), "labels")
    if request.get("update_last_alive"):
        timestamp = request.get("last_alive_timestamp", 0)
        if isinstance(timestamp, bool) or not isinstance(timestamp, int) or timestamp < 0:
            raise InvalidArgumentError("invalid last_alive_timestamp").with_params(timestamp)
    if request.get("update_ip") and not isinstance(request.get("eic_net_ip", ""), str):
        raise InvalidArgumentError("eic_net_ip must be a string")
    if request.get("update_last_op_summary"):
        AgentOpSummary.from_wire(request.get("last_op_summary") or {})


def validate_edge_controller_id(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "organization_id", "edge_controller_id")
