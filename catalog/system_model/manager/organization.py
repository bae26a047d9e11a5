"""Organization manager."""

from __future__ import annotations

import logging
from typing import Any, List, Mapping

from ..entities.organization import (
    Organization,
    validate_add_organization_request,
    validate_organization_id,
    validate_update_organization_request,
)
from ..errors import AlreadyExistsError
from .base import Manager

logger = logging.getLogger(__name__)


class OrganizationManager(Manager):
    """Creation and maintenance of organizations.

    Organization names are unique across the catalog.
    """

    async def _require_unique_name(self, name: str) -> None:
        if await self.stores.organizations.list(name=name):
            raise AlreadyExistsError("organization name").with_params(name)

    async def add_organization(self, request: Mapping[str, Any]) -> Organization:
        validate_add_organization_request(request)
        await self._require_unique_name(request["name"])
        organization = Organization.from_add_request(request)
        await self.stores.organizations.add(organization)
        logger.info(
            "Added organization",
            extra={"organization_id": organization.organization_id},
        )
        return organization

    async def get_organization(self, request: Mapping[str, Any]) -> Organization:
        validate_organization_id(request)
        return await self.stores.organizations.get(request["organization_id"])

    async def list_organizations(self, request: Mapping[str, Any]) -> List[Organization]:
        return await self.stores.organizations.list()

    async def update_organization(self, request: Mapping[str, Any]) -> None:
        validate_update_organization_request(request)
        organization = await self.stores.organizations.get(request["organization_id"])
        if request.get("update_name") and request["name"] != organization.name:
            await self._require_unique_name(request["name"])
        organization.apply_update(request)
        await self.stores.organizations.update(organization)
