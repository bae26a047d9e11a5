"""Asset manager: inventory items reported through edge controllers."""

from __future__ import annotations

import logging
from typing import Any, List, Mapping

from ..entities.asset import (
    Asset,
    validate_add_asset_request,
    validate_asset_id,
    validate_edge_controller_id,
    validate_update_asset_request,
)
from ..entities.organization import validate_organization_id
from .base import Manager

logger = logging.getLogger(__name__)


class AssetManager(Manager):
    async def add_asset(self, request: Mapping[str, Any]) -> Asset:
        validate_add_asset_request(request)
        await self.require_organization(request["organization_id"])
        asset = Asset.from_add_request(request)
        await self.stores.assets.add(asset)
        logger.info(
            "Added asset",
            extra={
                "organization_id": asset.organization_id,
                "edge_controller_id": asset.edge_controller_id,
                "asset_id": asset.asset_id,
            },
        )
        return asset

    async def get_asset(self, request: Mapping[str, Any]) -> Asset:
        validate_asset_id(request)
        return await self.stores.assets.get(request["organization_id"], request["asset_id"])

    async def list_assets(self, request: Mapping[str, Any]) -> List[Asset]:
        validate_organization_id(request)
        await self.require_organization(request["organization_id"])
        return await self.stores.assets.list(organization_id=request["organization_id"])

    async def list_controller_assets(self, request: Mapping[str, Any]) -> List[Asset]:
        """List the assets reporting through one edge controller."""
        validate_edge_controller_id(request)
        await self.require_organization(request["organization_id"])
        return await self.stores.assets.list(
            organization_id=request["organization_id"],
            edge_controller_id=request["edge_controller_id"],
        )

    async def update_asset(self, request: Mapping[str, Any]) -> Asset:
        """Apply a field-masked update.

        Returns:
            The asset as persisted
        """
        validate_update_asset_request(request)
        asset = await self.stores.assets.get(request["organization_id"], request["asset_id"])
        asset.apply_update(request)
        await self.stores.assets.update(asset)
        return asset

    async def remove_asset(self, request: Mapping[str, Any]) -> None:
        validate_asset_id(request)
        await self.stores.assets.remove(request["organization_id"], request["asset_id"])
