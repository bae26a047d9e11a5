"""Role entity: a named set of permissions inside an organization."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from .common import Entity, generate_uuid, now_seconds, require_fields, require_mapping


@dataclass
class Role(Entity):
    ENTITY_KIND = "role"
    KEY_FIELDS = ("organization_id", "role_id")

    organization_id: str
    role_id: str
    name: str
    description: str = ""
    internal: bool = False
    created: int = 0

    @classmethod
    def from_add_request(cls, request: Mapping[str, Any]) -> Role:
        return cls(
            organization_id=request["organization_id"],
            role_id=generate_uuid(),
            name=request["name"],
            description=request.get("description", ""),
            internal=bool(request.get("internal", False)),
            created=now_seconds(),
        )

    def apply_update(self, request: Mapping[str, Any]) -> None:
        if request.get("update_name"):
            self.name = request.get("name", "")
        if request.get("update_description"):
            self.description = request.get("description", "")


def validate_add_role_request(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "organization_id", "name")


def validate_role_id(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "organization_id", "role_id")


def validate_update_role_request(request: Mapping[str, Any]) -> None:
    validate_role_id(request)
    if request.get("update_name"):
        require_fields(request, "name")
