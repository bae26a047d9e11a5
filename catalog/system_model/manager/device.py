"""
Device manager: device groups and the devices registered in them.

Invariants:
    - Device group names are unique inside an organization
    - A device exists only while its group exists
    - A new device is enabled iff its group's default connectivity is on
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping

from ..entities.device import (
    Device,
    DeviceGroup,
    validate_add_device_group_request,
    validate_add_device_request,
    validate_device_group_id,
    validate_device_group_names,
    validate_device_id,
    validate_update_device_request,
)
from ..entities.organization import validate_organization_id
from ..errors import AlreadyExistsError, NotFoundError
from .base import Manager
from .saga import Saga

logger = logging.getLogger(__name__)


class DeviceManager(Manager):
    async def add_device_group(self, request: Mapping[str, Any]) -> DeviceGroup:
        """Create a device group.

        Raises:
            NotFoundError: If the organization does not exist
            AlreadyExistsError: If the id or the name is already taken
        """
        validate_add_device_group_request(request)
        organization_id = request["organization_id"]
        await self.require_organization(organization_id)
        if await self.stores.device_groups.list(
            organization_id=organization_id, name=request["name"]
        ):
            raise AlreadyExistsError("device group name").with_params(
                organization_id, request["name"]
            )
        group = DeviceGroup.from_add_request(request)
        await self.stores.device_groups.add(group)
        logger.info(
            "Added device group",
            extra={"organization_id": organization_id, "device_group_id": group.device_group_id},
        )
        return group

    async def get_device_group(self, request: Mapping[str, Any]) -> DeviceGroup:
        validate_device_group_id(request)
        return await self.stores.device_groups.get(
            request["organization_id"], request["device_group_id"]
        )

    async def list_device_groups(self, request: Mapping[str, Any]) -> List[DeviceGroup]:
        validate_organization_id(request)
        await self.require_organization(request["organization_id"])
        return await self.stores.device_groups.list(organization_id=request["organization_id"])

    async def get_device_groups_by_name(self, request: Mapping[str, Any]) -> List[DeviceGroup]:
        """Resolve device group names, in request order.

        Raises:
            NotFoundError: Naming the first unknown group
        """
        validate_device_group_names(request)
        return await self.resolve_names(
            request["organization_id"], request.get("device_group_names") or []
        )

    async def resolve_names(self, organization_id: str, names: List[str]) -> List[DeviceGroup]:
        groups = {
            group.name: group
            for group in await self.stores.device_groups.list(organization_id=organization_id)
        }
        result = []
        for name in names:
            if name not in groups:
                raise NotFoundError("device group").with_params(organization_id, name)
            result.append(groups[name])
        return result

    async def update_device_group(self, request: Mapping[str, Any]) -> DeviceGroup:
        validate_device_group_id(request)
        group = await self.stores.device_groups.get(
            request["organization_id"], request["device_group_id"]
        )
        group.apply_update(request)
        await self.stores.device_groups.update(group)
        return group

    async def remove_device_group(self, request: Mapping[str, Any]) -> None:
        """Remove a device group together with its devices."""
        validate_device_group_id(request)
        group = await self.stores.device_groups.get(
            request["organization_id"], request["device_group_id"]
        )
        devices = await self.stores.devices.list(
            organization_id=group.organization_id, device_group_id=group.device_group_id
        )

        saga = Saga("remove_device_group")
        for device in devices:
            saga.step(
                f"remove_device:{device.device_id}",
                self._remover(device),
                self._restorer(device),
            )
        saga.step(
            "remove_record",
            lambda: self.stores.device_groups.remove(*group.key()),
            lambda _: self.stores.device_groups.add(group),
        )
        await saga.run()
        logger.info(
            "Removed device group",
            extra={
                "organization_id": group.organization_id,
                "device_group_id": group.device_group_id,
                "devices": len(devices),
            },
        )

    def _remover(self, device: Device):
        return lambda: self.stores.devices.remove(*device.key())

    def _restorer(self, device: Device):
        return lambda _: self.stores.devices.add(device)

    async def add_device(self, request: Mapping[str, Any]) -> Device:
        validate_add_device_request(request)
        await self.require_organization(request["organization_id"])
        group = await self.stores.device_groups.get(
            request["organization_id"], request["device_group_id"]
        )
        device = Device.from_add_request(request, enabled=group.default_device_connectivity)
        await self.stores.devices.add(device)
        return device

    async def get_device(self, request: Mapping[str, Any]) -> Device:
        validate_device_id(request)
        return await self.stores.devices.get(
            request["organization_id"], request["device_group_id"], request["device_id"]
        )

    async def list_devices(self, request: Mapping[str, Any]) -> List[Device]:
        validate_device_group_id(request)
        if not await self.stores.device_groups.exists(
            request["organization_id"], request["device_group_id"]
        ):
            raise NotFoundError("device group").with_params(
                request["organization_id"], request["device_group_id"]
            )
        return await self.stores.devices.list(
            organization_id=request["organization_id"],
            device_group_id=request["device_group_id"],
        )

    async def update_device(self, request: Mapping[str, Any]) -> Device:
        validate_update_device_request(request)
        device = await self.stores.devices.get(
            request["organization_id"], request["device_group_id"], request["device_id"]
        )
        device.apply_update(request)
        await self.stores.devices.update(device)
        return device

    async def remove_device(self, request: Mapping[str, Any]) -> None:
        validate_device_id(request)
        await self.stores.devices.remove(
            request["organization_id"], request["device_group_id"], request["device_id"]
        )
