"""
Integration tests for the gRPC surface.

Tests cover:
- JSON request/response round trips through a real channel
- Mapping of catalog errors onto gRPC status codes
- Service registration
- Server start/stop and logging setup
"""

import logging

import grpc
import json_log_formatter
import pytest
from grpc import aio as grpc_aio

from catalog.system_model.api import GrpcServer, build_handlers, decode_response, encode_request
from catalog.system_model.config import (
    ApplicationConfig,
    GrpcConfig,
    ObservabilityConfig,
    ServerConfig,
    StorageConfig,
    StoreBackend,
)
from catalog.system_model.main import Server, setup_logging
from catalog.system_model.provider import RecordStores


@pytest.fixture
async def grpc_server():
    """Serve fresh in-memory stores on a free port."""
    server = GrpcServer(
        build_handlers(RecordStores.in_memory(), ApplicationConfig()),
        bind_address="127.0.0.1:0",
    )
    await server.start()
    yield server
    await server.stop(grace_period=0)


@pytest.fixture
async def channel(grpc_server):
    async with grpc_aio.insecure_channel(f"127.0.0.1:{grpc_server.port}") as ch:
        yield ch


def rpc(channel, path):
    return channel.unary_unary(
        path, request_serializer=encode_request, response_deserializer=decode_response
    )


class TestGrpcServer:
    """Tests for GrpcServer and the service handlers."""

    @pytest.mark.asyncio
    async def test_services_registered(self, grpc_server):
        assert set(grpc_server.services) == {
            "system_model.Organizations",
            "system_model.Clusters",
            "system_model.Nodes",
            "system_model.Assets",
            "system_model.Devices",
            "system_model.Applications",
            "system_model.ApplicationNetwork",
            "system_model.Users",
            "system_model.Roles",
            "system_model.Accounts",
            "system_model.Projects",
        }

    @pytest.mark.asyncio
    async def test_add_and_list(self, channel):
        org = await rpc(channel, "/system_model.Organizations/AddOrganization")({"name": "acme"})

        listed = await rpc(channel, "/system_model.Organizations/ListOrganizations")({})

        assert org["name"] == "acme"
        assert listed == {"organizations": [org]}

    @pytest.mark.asyncio
    async def test_attach_flow(self, channel):
        org = await rpc(channel, "/system_model.Organizations/AddOrganization")({"name": "acme"})
        org_id = org["organization_id"]
        cluster = await rpc(channel, "/system_model.Clusters/AddCluster")(
            {"organization_id": org_id, "name": "edge", "cluster_type": "DOCKER_NODE"}
        )
        node = await rpc(channel, "/system_model.Nodes/AddNode")(
            {"organization_id": org_id, "ip": "10.0.0.1"}
        )

        attached = await rpc(channel, "/system_model.Nodes/AttachNode")(
            {
                "organization_id": org_id,
                "cluster_id": cluster["cluster_id"],
                "node_id": node["node_id"],
            }
        )
        listed = await rpc(channel, "/system_model.Nodes/ListNodes")(
            {"organization_id": org_id, "cluster_id": cluster["cluster_id"]}
        )

        assert attached == {"success": True}
        assert cluster["cluster_type"] == "DOCKER_NODE"
        assert [n["node_id"] for n in listed["nodes"]] == [node["node_id"]]
        assert listed["nodes"][0]["state"] == "ASSIGNED"

    @pytest.mark.asyncio
    async def test_update_node_returns_node(self, channel):
        org = await rpc(channel, "/system_model.Organizations/AddOrganization")({"name": "acme"})
        node = await rpc(channel, "/system_model.Nodes/AddNode")(
            {"organization_id": org["organization_id"], "ip": "10.0.0.1"}
        )

        updated = await rpc(channel, "/system_model.Nodes/UpdateNode")(
            {
                "organization_id": org["organization_id"],
                "node_id": node["node_id"],
                "add_labels": True,
                "labels": {"a": "1"},
                "update_status": True,
                "status": "RUNNING",
            }
        )

        assert updated["node_id"] == node["node_id"]
        assert updated["labels"] == {"a": "1"}
        assert updated["status"] == "RUNNING"
        assert updated["state"] == node["state"]

    @pytest.mark.asyncio
    async def test_not_found(self, channel):
        with pytest.raises(grpc_aio.AioRpcError) as exc_info:
            await rpc(channel, "/system_model.Organizations/GetOrganization")(
                {"organization_id": "missing"}
            )

        assert exc_info.value.code() == grpc.StatusCode.NOT_FOUND
        assert exc_info.value.details() == "organization [missing]"

    @pytest.mark.asyncio
    async def test_invalid_argument(self, channel):
        with pytest.raises(grpc_aio.AioRpcError) as exc_info:
            await rpc(channel, "/system_model.Clusters/AddCluster")({"organization_id": "o"})

        assert exc_info.value.code() == grpc.StatusCode.INVALID_ARGUMENT

    @pytest.mark.asyncio
    async def test_malformed_json(self, channel):
        raw = channel.unary_unary("/system_model.Organizations/AddOrganization")

        with pytest.raises(grpc_aio.AioRpcError) as exc_info:
            await raw(b"{not json")

        assert exc_info.value.code() == grpc.StatusCode.INVALID_ARGUMENT

    @pytest.mark.asyncio
    async def test_already_exists(self, channel):
        add = rpc(channel, "/system_model.Organizations/AddOrganization")
        await add({"name": "acme"})

        with pytest.raises(grpc_aio.AioRpcError) as exc_info:
            await add({"name": "acme"})

        assert exc_info.value.code() == grpc.StatusCode.ALREADY_EXISTS

    @pytest.mark.asyncio
    async def test_unknown_method(self, channel):
        with pytest.raises(grpc_aio.AioRpcError) as exc_info:
            await rpc(channel, "/system_model.Organizations/DropEverything")({})

        assert exc_info.value.code() == grpc.StatusCode.UNIMPLEMENTED


class TestServer:
    """Tests for the Server orchestrator."""

    @pytest.fixture
    def config(self):
        return ServerConfig(
            grpc=GrpcConfig(bind_address="127.0.0.1:0", grace_period_seconds=0),
            storage=StorageConfig(backend=StoreBackend.MEMORY),
        )

    @pytest.fixture
    def root_handlers(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    @pytest.mark.asyncio
    async def test_start_and_stop(self, config):
        server = Server(config)

        await server.start()
        try:
            assert server.grpc_server.port
            async with grpc_aio.insecure_channel(f"127.0.0.1:{server.grpc_server.port}") as ch:
                org = await rpc(ch, "/system_model.Organizations/AddOrganization")(
                    {"name": "acme"}
                )
            assert await server.stores.organizations.exists(org["organization_id"])
        finally:
            await server.stop()

        await server.stop()

    def test_json_logging(self, config, root_handlers):
        setup_logging(config)

        handler = logging.getLogger().handlers[0]
        assert isinstance(handler.formatter, json_log_formatter.JSONFormatter)

    def test_text_logging(self, root_handlers):
        config = ServerConfig(observability=ObservabilityConfig(log_format="text"))

        setup_logging(config)

        handler = logging.getLogger().handlers[0]
        assert not isinstance(handler.formatter, json_log_formatter.JSONFormatter)
