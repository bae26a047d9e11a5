"""User entity: a member of an organization."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from ..errors import InvalidArgumentError
from .common import Entity, generate_uuid, now_seconds, require_fields, require_mapping


@dataclass
class User(Entity):
    """A user of an organization.

    Email addresses are unique across the whole catalog since they are the
    login identity.
    """

    ENTITY_KIND = "user"
    KEY_FIELDS = ("organization_id", "user_id")

    organization_id: str
    user_id: str
    email: str
    name: str = ""
    photo_base64: str = ""
    member_since: int = 0

    @classmethod
    def from_add_request(cls, request: Mapping[str, Any]) -> User:
        return cls(
            organization_id=request["organization_id"],
            user_id=generate_uuid(),
            email=request["email"],
            name=request.get("name", ""),
            photo_base64=request.get("photo_base64", ""),
            member_since=now_seconds(),
        )

    def apply_update(self, request: Mapping[str, Any]) -> None:
        if request.get("update_name"):
            self.name = request.get("name", "")
        if request.get("update_photo"):
            self.photo_base64 = request.get("photo_base64", "")


def validate_add_user_request(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "organization_id", "email")
    if "@" not in request["email"]:
        raise InvalidArgumentError("invalid email").with_params(request["email"])


def validate_user_id(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "organization_id", "user_id")
