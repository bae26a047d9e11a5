"""Application network manager: connections between application instances."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping

from ..entities.application_network import (
    CONNECTION_STATUS,
    ConnectionInstance,
    ConnectionInstanceLink,
    validate_add_connection_link_request,
    validate_connection_id,
    validate_organization_scope,
)
from .base import Manager
from .saga import Saga

logger = logging.getLogger(__name__)


def _connection_fields(request: Mapping[str, Any]) -> Dict[str, str]:
    return {name: request[name] for name in ConnectionInstance.KEY_FIELDS}


class ApplicationNetworkManager(Manager):
    async def add_connection(self, request: Mapping[str, Any]) -> ConnectionInstance:
        """Connect an outbound interface of one instance to an inbound one of another.

        Raises:
            NotFoundError: Unknown organization, source or target instance
            AlreadyExistsError: The same connection already exists
        """
        validate_connection_id(request)
        organization_id = request["organization_id"]
        org_key = (organization_id,)
        await self.require_organization(organization_id)
        await self.require_child(
            self.stores.organization_instances,
            org_key,
            request["source_instance_id"],
            "source app_instance",
        )
        await self.require_child(
            self.stores.organization_instances,
            org_key,
            request["target_instance_id"],
            "target app_instance",
        )
        connection = ConnectionInstance.from_add_request(request)
        await self.stores.connections.add(connection)
        logger.info(
            "Added connection",
            extra={
                "organization_id": organization_id,
                "connection_id": connection.connection_id,
                "source_instance_id": connection.source_instance_id,
                "target_instance_id": connection.target_instance_id,
            },
        )
        return connection

    async def get_connection(self, request: Mapping[str, Any]) -> ConnectionInstance:
        validate_connection_id(request)
        return await self.stores.connections.get(*_connection_fields(request).values())

    async def list_connections(self, request: Mapping[str, Any]) -> List[ConnectionInstance]:
        validate_organization_scope(request)
        await self.require_organization(request["organization_id"])
        return await self.stores.connections.list(organization_id=request["organization_id"])

    async def remove_connection(self, request: Mapping[str, Any]) -> None:
        """Remove a connection and every link realizing it."""
        validate_connection_id(request)
        fields = _connection_fields(request)
        connection = await self.stores.connections.get(*fields.values())
        links = await self.stores.connection_links.list(**fields)

        saga = Saga("remove_connection")
        for link in links:
            saga.step(
                f"remove_link:{link.source_cluster_id}:{link.target_cluster_id}",
                self._link_remover(link),
                self._link_restorer(link),
            )
        saga.step(
            "remove_record",
            lambda: self.stores.connections.remove(*connection.key()),
            lambda _: self.stores.connections.add(connection),
        )
        await saga.run()

    def _link_remover(self, link: ConnectionInstanceLink):
        return lambda: self.stores.connection_links.remove(*link.key())

    def _link_restorer(self, link: ConnectionInstanceLink):
        return lambda _: self.stores.connection_links.add(link)

    async def add_connection_link(self, request: Mapping[str, Any]) -> ConnectionInstanceLink:
        validate_add_connection_link_request(request)
        connection = await self.stores.connections.get(*_connection_fields(request).values())
        link = ConnectionInstanceLink(
            **_connection_fields(request),
            source_cluster_id=request["source_cluster_id"],
            target_cluster_id=request["target_cluster_id"],
            connection_id=connection.connection_id,
            status=CONNECTION_STATUS.from_wire(request.get("status"), "status"),
        )
        await self.stores.connection_links.add(link)
        return link

    async def list_connection_links(
        self, request: Mapping[str, Any]
    ) -> List[ConnectionInstanceLink]:
        validate_connection_id(request)
        fields = _connection_fields(request)
        await self.stores.connections.get(*fields.values())
        return await self.stores.connection_links.list(**fields)
