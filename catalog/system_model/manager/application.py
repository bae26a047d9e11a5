"""
Application manager: descriptors, instances, endpoints and ZT networks.

Descriptors and instances are listed through the organization_descriptors
and organization_instances indexes. Endpoints and ZeroTier networks are
plain records keyed under their application instance.

Invariants:
    - A descriptor is persisted only if every name it references resolves,
      device groups included; nothing is written for a rejected descriptor
    - An instance keeps a copy of the descriptor rules taken at creation
    - Removing an instance removes its endpoints and its ZT network
    - An endpoint's global FQDN is fixed when the endpoint is added

How to change safely:
    - New reference kinds belong in AppDescriptor.check_references so that
      they are checked before any write
    - The global FQDN layout is consumed by DNS tooling outside this service
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping

from ..config import ApplicationConfig
from ..entities.application import (
    APP_ENDPOINT_PROTOCOL,
    APPLICATION_STATUS,
    SERVICE_STATUS,
    AppDescriptor,
    AppEndpoint,
    AppInstance,
    AppZtNetwork,
    EndpointInstance,
    ServiceGroupInstance,
    global_fqdn,
    validate_add_app_descriptor_request,
    validate_add_app_endpoint_request,
    validate_add_app_instance_request,
    validate_add_app_zt_network_request,
    validate_add_service_group_instances_request,
    validate_app_descriptor_id,
    validate_app_instance_id,
    validate_get_app_endpoints_request,
    validate_update_app_status_request,
    validate_update_service_status_request,
)
from ..entities.organization import validate_organization_id
from ..errors import InternalError, InvalidArgumentError, NotFoundError
from ..provider import RecordStores
from .base import Manager
from .saga import Saga

logger = logging.getLogger(__name__)


class ApplicationManager(Manager):
    """Application descriptor and instance operations.

    Attributes:
        stores: Record tables and relationship indexes
        config: Domain settings used to derive global FQDNs
    """

    def __init__(self, stores: RecordStores, config: ApplicationConfig) -> None:
        super().__init__(stores)
        self.config = config

    # ------------------------------------------------------------------
    # Descriptors
    # ------------------------------------------------------------------

    async def add_app_descriptor(self, request: Mapping[str, Any]) -> AppDescriptor:
        """Validate, resolve and persist an application descriptor.

        Raises:
            InvalidArgumentError: Malformed payload or unresolved name reference
            NotFoundError: Unknown organization or device group
        """
        validate_add_app_descriptor_request(request)
        organization_id = request["organization_id"]
        await self.require_organization(organization_id)

        descriptor = AppDescriptor.from_add_request(request)
        descriptor.check_references()
        await self._resolve_device_groups(descriptor)

        org_key = (organization_id,)
        await (
            Saga("add_app_descriptor")
            .step(
                "add_record",
                lambda: self.stores.app_descriptors.add(descriptor),
                lambda _: self.stores.app_descriptors.remove(*descriptor.key()),
            )
            .step(
                "add_to_organization",
                lambda: self.stores.organization_descriptors.add(
                    org_key, descriptor.app_descriptor_id
                ),
            )
            .run()
        )
        logger.info(
            "Added application descriptor",
            extra={
                "organization_id": organization_id,
                "app_descriptor_id": descriptor.app_descriptor_id,
                "groups": len(descriptor.groups),
                "rules": len(descriptor.rules),
            },
        )
        return descriptor

    async def _resolve_device_groups(self, descriptor: AppDescriptor) -> None:
        names = descriptor.device_group_names()
        if not names:
            return
        groups: Dict[str, str] = {
            group.name: group.device_group_id
            for group in await self.stores.device_groups.list(
                organization_id=descriptor.organization_id
            )
        }
        for name in names:
            if name not in groups:
                raise NotFoundError("device group").with_params(descriptor.organization_id, name)
        for rule in descriptor.rules:
            rule.device_group_ids = [groups[name] for name in rule.device_group_names]

    async def get_app_descriptor(self, request: Mapping[str, Any]) -> AppDescriptor:
        validate_app_descriptor_id(request)
        return await self.stores.app_descriptors.get(
            request["organization_id"], request["app_descriptor_id"]
        )

    async def list_app_descriptors(self, request: Mapping[str, Any]) -> List[AppDescriptor]:
        validate_organization_id(request)
        organization_id = request["organization_id"]
        ids = await self.stores.organization_descriptors.list((organization_id,))
        return await self.fetch_all(self.stores.app_descriptors, (organization_id,), ids)

    async def remove_app_descriptor(self, request: Mapping[str, Any]) -> None:
        validate_app_descriptor_id(request)
        organization_id = request["organization_id"]
        descriptor_id = request["app_descriptor_id"]
        org_key = (organization_id,)
        await self.require_organization(organization_id)
        await self.require_child(
            self.stores.organization_descriptors, org_key, descriptor_id, "app_descriptor"
        )
        descriptor = await self.stores.app_descriptors.get(organization_id, descriptor_id)

        await (
            Saga("remove_app_descriptor")
            .step(
                "remove_from_organization",
                lambda: self.stores.organization_descriptors.remove(org_key, descriptor_id),
                lambda _: self.stores.organization_descriptors.add(org_key, descriptor_id),
            )
            .step(
                "remove_record",
                lambda: self.stores.app_descriptors.remove(organization_id, descriptor_id),
                lambda _: self.stores.app_descriptors.add(descriptor),
            )
            .run()
        )

    # ------------------------------------------------------------------
    # Instances
    # ------------------------------------------------------------------

    async def add_app_instance(self, request: Mapping[str, Any]) -> AppInstance:
        """Create an instance of a descriptor, with no service groups yet."""
        validate_add_app_instance_request(request)
        organization_id = request["organization_id"]
        org_key = (organization_id,)
        await self.require_organization(organization_id)
        await self.require_child(
            self.stores.organization_descriptors,
            org_key,
            request["app_descriptor_id"],
            "app_descriptor",
        )
        descriptor = await self.stores.app_descriptors.get(
            organization_id, request["app_descriptor_id"]
        )
        instance = AppInstance.from_descriptor(descriptor, request)

        await (
            Saga("add_app_instance")
            .step(
                "add_record",
                lambda: self.stores.app_instances.add(instance),
                lambda _: self.stores.app_instances.remove(*instance.key()),
            )
            .step(
                "add_to_organization",
                lambda: self.stores.organization_instances.add(org_key, instance.app_instance_id),
            )
            .run()
        )
        logger.info(
            "Added application instance",
            extra={
                "organization_id": organization_id,
                "app_descriptor_id": instance.app_descriptor_id,
                "app_instance_id": instance.app_instance_id,
            },
        )
        return instance

    async def get_app_instance(self, request: Mapping[str, Any]) -> AppInstance:
        validate_app_instance_id(request)
        return await self.stores.app_instances.get(
            request["organization_id"], request["app_instance_id"]
        )

    async def list_app_instances(self, request: Mapping[str, Any]) -> List[AppInstance]:
        validate_organization_id(request)
        organization_id = request["organization_id"]
        ids = await self.stores.organization_instances.list((organization_id,))
        return await self.fetch_all(self.stores.app_instances, (organization_id,), ids)

    async def remove_app_instance(self, request: Mapping[str, Any]) -> None:
        """Remove an instance with its endpoints and ZT network."""
        validate_app_instance_id(request)
        organization_id = request["organization_id"]
        instance_id = request["app_instance_id"]
        org_key = (organization_id,)
        await self.require_organization(organization_id)
        await self.require_child(
            self.stores.organization_instances, org_key, instance_id, "app_instance"
        )
        instance = await self.stores.app_instances.get(organization_id, instance_id)
        endpoints = await self.stores.app_endpoints.list(
            organization_id=organization_id, app_instance_id=instance_id
        )

        saga = Saga("remove_app_instance")
        saga.step(
            "remove_from_organization",
            lambda: self.stores.organization_instances.remove(org_key, instance_id),
            lambda _: self.stores.organization_instances.add(org_key, instance_id),
        )
        self._remove_endpoint_steps(saga, endpoints)
        if await self.stores.app_zt_networks.exists(organization_id, instance_id):
            network = await self.stores.app_zt_networks.get(organization_id, instance_id)
            saga.step(
                "remove_zt_network",
                lambda: self.stores.app_zt_networks.remove(organization_id, instance_id),
                lambda _: self.stores.app_zt_networks.add(network),
            )
        saga.step(
            "remove_record",
            lambda: self.stores.app_instances.remove(organization_id, instance_id),
            lambda _: self.stores.app_instances.add(instance),
        )
        await saga.run()
        logger.info(
            "Removed application instance",
            extra={
                "organization_id": organization_id,
                "app_instance_id": instance_id,
                "endpoints": len(endpoints),
            },
        )

    def _remove_endpoint_steps(self, saga: Saga, endpoints: List[AppEndpoint]) -> None:
        for endpoint in endpoints:
            saga.step(
                f"remove_endpoint:{endpoint.endpoint_instance_id}",
                self._endpoint_remover(endpoint),
                self._endpoint_restorer(endpoint),
            )

    def _endpoint_remover(self, endpoint: AppEndpoint):
        return lambda: self.stores.app_endpoints.remove(*endpoint.key())

    def _endpoint_restorer(self, endpoint: AppEndpoint):
        return lambda _: self.stores.app_endpoints.add(endpoint)

    async def update_app_status(self, request: Mapping[str, Any]) -> None:
        validate_update_app_status_request(request)
        instance = await self.stores.app_instances.get(
            request["organization_id"], request["app_instance_id"]
        )
        instance.status = APPLICATION_STATUS.from_wire(request.get("status"), "status")
        instance.info = request.get("info", "")
        await self.stores.app_instances.update(instance)

    async def update_service_status(self, request: Mapping[str, Any]) -> None:
        """Record the deployment progress of one service instance.

        The owning service group instance status is recomputed from its
        services.
        """
        validate_update_service_status_request(request)
        instance = await self.stores.app_instances.get(
            request["organization_id"], request["app_instance_id"]
        )
        found = instance.find_service_instance(
            request["service_group_instance_id"], request["service_instance_id"]
        )
        if found is None:
            raise NotFoundError("service instance").with_params(
                request["app_instance_id"],
                request["service_group_instance_id"],
                request["service_instance_id"],
            )
        group, service = found
        service.status = SERVICE_STATUS.from_wire(request.get("status"), "status")
        service.endpoints = [
            EndpointInstance.from_wire(endpoint) for endpoint in request.get("endpoints") or []
        ]
        service.deployed_on_cluster_id = request.get("deployed_on_cluster_id", "")
        service.info = request.get("info", "")
        group.refresh_status()
        await self.stores.app_instances.update(instance)

    async def add_service_group_instances(
        self, request: Mapping[str, Any]
    ) -> List[ServiceGroupInstance]:
        """Materialize `num_instances` copies of a descriptor service group.

        Returns:
            The new service group instances, also appended to the instance
        """
        validate_add_service_group_instances_request(request)
        organization_id = request["organization_id"]
        instance = await self.stores.app_instances.get(organization_id, request["app_instance_id"])
        if instance.app_descriptor_id != request["app_descriptor_id"]:
            raise InvalidArgumentError("instance was created from another descriptor").with_params(
                instance.app_instance_id, request["app_descriptor_id"]
            )
        descriptor = await self.stores.app_descriptors.get(
            organization_id, request["app_descriptor_id"]
        )
        group = descriptor.group_by_id(request["service_group_id"])
        if group is None:
            raise NotFoundError("service group").with_params(
                descriptor.app_descriptor_id, request["service_group_id"]
            )

        created = [
            ServiceGroupInstance.from_service_group(group, instance.app_instance_id)
            for _ in range(request["num_instances"])
        ]
        instance.groups.extend(created)
        await self.stores.app_instances.update(instance)
        return created

    # ------------------------------------------------------------------
    # Endpoints and ZT networks
    # ------------------------------------------------------------------

    async def add_app_endpoint(self, request: Mapping[str, Any]) -> AppEndpoint:
        validate_add_app_endpoint_request(request)
        await self._require_instance(request["organization_id"], request["app_instance_id"])
        endpoint_instance = EndpointInstance.from_wire(request["endpoint_instance"])
        endpoint = AppEndpoint(
            organization_id=request["organization_id"],
            app_instance_id=request["app_instance_id"],
            service_group_instance_id=request["service_group_instance_id"],
            service_instance_id=request["service_instance_id"],
            port=request.get("port", endpoint_instance.port),
            protocol=APP_ENDPOINT_PROTOCOL.from_wire(request.get("protocol"), "protocol"),
            endpoint_instance=endpoint_instance,
            global_fqdn=global_fqdn(
                endpoint_instance.fqdn, request["organization_id"], self.config.global_domain
            ),
        )
        await self.stores.app_endpoints.add(endpoint)
        logger.debug(
            "Added application endpoint",
            extra={"app_instance_id": endpoint.app_instance_id, "global_fqdn": endpoint.global_fqdn},
        )
        return endpoint

    async def _require_instance(self, organization_id: str, app_instance_id: str) -> None:
        await self.require_organization(organization_id)
        await self.require_child(
            self.stores.organization_instances, (organization_id,), app_instance_id, "app_instance"
        )

    async def get_app_endpoints(self, request: Mapping[str, Any]) -> List[AppEndpoint]:
        """Look up the endpoints registered under a global FQDN.

        Raises:
            NotFoundError: If no endpoint uses the FQDN
            InternalError: If endpoints of several organizations share it
        """
        validate_get_app_endpoints_request(request)
        fqdn = request["fqdn"]
        endpoints = await self.stores.app_endpoints.list(global_fqdn=fqdn)
        if not endpoints:
            raise NotFoundError("app endpoint").with_params(fqdn)
        organizations = {endpoint.organization_id for endpoint in endpoints}
        if len(organizations) > 1:
            logger.error(
                "Global FQDN shared by several organizations",
                extra={"fqdn": fqdn, "organizations": sorted(organizations)},
            )
            raise InternalError("app endpoint fqdn is not unique").with_params(fqdn)
        return endpoints

    async def remove_app_endpoints(self, request: Mapping[str, Any]) -> None:
        validate_app_instance_id(request)
        endpoints = await self.stores.app_endpoints.list(
            organization_id=request["organization_id"],
            app_instance_id=request["app_instance_id"],
        )
        saga = Saga("remove_app_endpoints")
        self._remove_endpoint_steps(saga, endpoints)
        await saga.run()

    async def add_app_zt_network(self, request: Mapping[str, Any]) -> AppZtNetwork:
        validate_add_app_zt_network_request(request)
        await self._require_instance(request["organization_id"], request["app_instance_id"])
        network = AppZtNetwork(
            organization_id=request["organization_id"],
            app_instance_id=request["app_instance_id"],
            zt_network_id=request["network_id"],
        )
        await self.stores.app_zt_networks.add(network)
        return network

    async def remove_app_zt_network(self, request: Mapping[str, Any]) -> None:
        validate_app_instance_id(request)
        await self.stores.app_zt_networks.remove(
            request["organization_id"], request["app_instance_id"]
        )

    async def get_app_zt_network(self, request: Mapping[str, Any]) -> AppZtNetwork:
        validate_app_instance_id(request)
        return await self.stores.app_zt_networks.get(
            request["organization_id"], request["app_instance_id"]
        )
