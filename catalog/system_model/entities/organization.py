"""Organization entity: the top-level tenant."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from .common import Entity, generate_uuid, now_seconds, require_fields, require_mapping


@dataclass
class Organization(Entity):
    """An organization owning clusters, nodes and applications.

    Attributes:
        organization_id: Unique identifier (UUID)
        name: Unique organization name
        email: Contact email
        full_address: Street address
        city: City
        state: State or province
        country: Country
        zip_code: Postal code
        photo_base64: Logo encoded as base64
        created: Creation timestamp (Unix seconds)
    """

    ENTITY_KIND = "organization"
    KEY_FIELDS = ("organization_id",)

    organization_id: str
    name: str
    email: str = ""
    full_address: str = ""
    city: str = ""
    state: str = ""
    country: str = ""
    zip_code: str = ""
    photo_base64: str = ""
    created: int = 0

    @classmethod
    def from_add_request(cls, request: Mapping[str, Any]) -> Organization:
        return cls(
            organization_id=generate_uuid(),
            name=request["name"],
            email=request.get("email", ""),
            full_address=request.get("full_address", ""),
            city=request.get("city", ""),
            state=request.get("state", ""),
            country=request.get("country", ""),
            zip_code=request.get("zip_code", ""),
            photo_base64=request.get("photo_base64", ""),
            created=now_seconds(),
        )

    def apply_update(self, request: Mapping[str, Any]) -> None:
        """Apply a field-masked update request in place."""
        if request.get("update_name"):
            self.name = request.get("name", "")
        if request.get("update_email"):
            self.email = request.get("email", "")
        if request.get("update_address"):
            self.full_address = request.get("full_address", "")
            self.city = request.get("city", "")
            self.state = request.get("state", "")
            self.country = request.get("country", "")
            self.zip_code = request.get("zip_code", "")
        if request.get("update_photo"):
            self.photo_base64 = request.get("photo_base64", "")


def validate_add_organization_request(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "name")


def validate_organization_id(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "organization_id")


def validate_update_organization_request(request: Mapping[str, Any]) -> None:
    require_mapping(request)
    require_fields(request, "organization_id")
    if request.get("update_name"):
        require_fields(request, "name")
