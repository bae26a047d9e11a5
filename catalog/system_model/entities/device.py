"""
Device and device group entities.

Both are addressed by caller-supplied composite keys:
    device group: (organization_id, device_group_id)
    device:       (organization_id, device_group_id, device_id)

Device group names are unique inside an organization because application
security rules refer to device groups by name.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

from .common import (
    Entity,
    now_seconds,
    require_fields,
    require_mapping,
    string_list,
    string_map,
    update_labels,
)


@dataclass
class DeviceGroup(Entity):
    ENTITY_KIND = "device_group"
    KEY_FIELDS = ("organization_id", "device_group_id")

    organization_id: str
    device_group_id: str
    name: str
    created: int = 0
    labels: Dict[str, str] = field(default_factory=dict)
    enabled: bool = True
    default_device_connectivity: bool = True

    @classmethod
    def from_add_request(cls, request: Mapping[str, Any]) -> DeviceGroup:
        return cls(
            organization_id=request["organization_id"],
            device_group_id=request["device_group_id"],
            name=request["name"],
            created=now_seconds(),
            labels=string_map(request.get("labels"), "labels"),
            enabled=bool(request.get("enabled", True)),
            default_device_connectivity=bool(request.get("default_device_connectivity", True)),
        )

    def apply_update(self, request: Mapping[str, Any]) -> None:
        if request.get("update_enabled"):
            self.enabled = bool(request.get("enabled"))
        if request.get("update_device_connectivity"):
            self.default_device_connectivity = bool(request.get("default_device_connectivity"))


@dataclass
class Device(Entity):
    ENTITY_KIND = "device"
    KEY_FIELDS = ("organization_id", "device_group_id", "device_id")

    organization_id: str
    device_group_id: str
    device_id: str
    register_since: int = 0
    labels: Dict[str, str] = field(default_factory=dict)
    enabled: bool = True

    @classmethod
    def from_add_request(cls, request: Mapping[str, Any], enabled: bool) -> Device:
        """Build a device; it inherits `enabled` from its group's default connectivity."""
        return cls(
            organization_id=request["organization_id"],
            device_group_id=request["device_group_id"],
            device_id=request["device_id"],
            register_since=now_seconds(),
            labels=string_map(request.get("labels"), "labels"),
            enabled=enabled,
        )

    def apply_update(self, request: Mapping[str, Any]) -> None:
        if request.get("add_labels") or request.get("remove_labels"):
            self.labels = update_labels(self.labels, request)
        if request.get("update_enabled"):
            self.enabled = bool(request.get("enabled"))


def validate_add_device_group_request(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "organization_id", "device_group_id", "name")
    string_map(request.get("labels"), "labels")


def validate_device_group_id(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "organization_id", "device_group_id")


def validate_device_group_names(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "organization_id")
    string_list(request.get("device_group_names"), "device_group_names")


def validate_add_device_request(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "organization_id", "device_group_id", "device_id")
    string_map(request.get("labels"), "labels")


def validate_device_id(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "organization_id", "device_group_id", "device_id")


def validate_update_device_request(request: Mapping[str, Any]) -> None:
    validate_device_id(request)
    string_map(request.get("labels"), "labels")
