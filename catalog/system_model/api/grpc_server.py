"""
gRPC server for the system model catalog.

Services are registered with generic method handlers; messages are JSON
objects (see api/codec.py), so no generated protobuf code is needed.

Invariants:
    - Every RPC runs in its own asyncio task on the grpc.aio server
    - SystemModelError codes map one-to-one onto gRPC status codes
    - Any other exception is logged and reported as INTERNAL
    - The status detail is the error message with its parameters

How to change safely:
    - Add new RPCs without modifying existing ones
    - Keep STATUS_CODES in sync with errors.py
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional, Sequence

import grpc
from grpc import aio as grpc_aio

from ..errors import SystemModelError
from .codec import decode_request, encode_response
from .handlers import Method, ServiceHandler

logger = logging.getLogger(__name__)

STATUS_CODES: Dict[str, grpc.StatusCode] = {
    "INVALID_ARGUMENT": grpc.StatusCode.INVALID_ARGUMENT,
    "NOT_FOUND": grpc.StatusCode.NOT_FOUND,
    "ALREADY_EXISTS": grpc.StatusCode.ALREADY_EXISTS,
    "INTERNAL": grpc.StatusCode.INTERNAL,
}


def _unary_behavior(service_name: str, method: Method):
    rpc = f"/{service_name}/{method.name}"

    async def behavior(request: bytes, context: grpc_aio.ServicerContext) -> bytes:
        start = time.monotonic()
        try:
            response = await method.invoke(decode_request(request))
        except SystemModelError as e:
            status = STATUS_CODES.get(e.code, grpc.StatusCode.UNKNOWN)
            if status == grpc.StatusCode.INTERNAL:
                logger.error(
                    "RPC failed",
                    extra={"rpc": rpc, "error": e.to_dict()},
                    exc_info=True,
                )
            else:
                logger.warning("RPC rejected", extra={"rpc": rpc, "error": e.to_dict()})
            await context.abort(status, str(e))
        except Exception:
            logger.error("Unexpected error in RPC", extra={"rpc": rpc}, exc_info=True)
            await context.abort(grpc.StatusCode.INTERNAL, "internal error")

        logger.debug(
            "RPC completed",
            extra={"rpc": rpc, "duration_ms": round((time.monotonic() - start) * 1000, 2)},
        )
        return encode_response(response)

    return behavior


def generic_handler(handler: ServiceHandler) -> grpc.GenericRpcHandler:
    """Build the generic RPC handler of one service."""
    return grpc.method_handlers_generic_handler(
        handler.SERVICE_NAME,
        {
            method.name: grpc.unary_unary_rpc_method_handler(
                _unary_behavior(handler.SERVICE_NAME, method)
            )
            for method in handler.methods()
        },
    )


class GrpcServer:
    """gRPC server wrapper for the catalog services.

    This class manages the gRPC server lifecycle including:
    - Server initialization
    - Service registration
    - Graceful shutdown

    Example:
        >>> server = GrpcServer(build_handlers(stores, config), "127.0.0.1:0")
        >>> await server.start()
        >>> server.port  # the bound port
        >>> await server.stop()
    """

    def __init__(
        self,
        handlers: Sequence[ServiceHandler],
        bind_address: str = "0.0.0.0:8800",
        max_message_size: int = 16 * 1024 * 1024,
    ) -> None:
        """Initialize the gRPC server.

        Args:
            handlers: Service handlers to register
            bind_address: host:port to listen on, port 0 picks a free port
            max_message_size: Maximum send and receive message size
        """
        self.handlers = list(handlers)
        self.bind_address = bind_address
        self.max_message_size = max_message_size
        self.port: Optional[int] = None
        self._server: Optional[grpc_aio.Server] = None

    @property
    def services(self) -> List[str]:
        return [handler.SERVICE_NAME for handler in self.handlers]

    async def start(self) -> None:
        """Bind the port and start serving.

        Raises:
            RuntimeError: If the address cannot be bound
        """
        if self._server is not None:
            logger.warning("Server already running")
            return

        options: List[Any] = [
            ("grpc.max_send_message_length", self.max_message_size),
            ("grpc.max_receive_message_length", self.max_message_size),
        ]
        server = grpc_aio.server(options=options)
        server.add_generic_rpc_handlers(tuple(generic_handler(h) for h in self.handlers))
        port = server.add_insecure_port(self.bind_address)
        if not port:
            raise RuntimeError(f"cannot bind gRPC server to {self.bind_address}")

        await server.start()
        self._server = server
        self.port = port
        logger.info(
            "gRPC server started",
            extra={
                "bind_address": self.bind_address,
                "port": port,
                "services": self.services,
            },
        )

    async def stop(self, grace_period: float = 5.0) -> None:
        """Stop the gRPC server gracefully.

        Args:
            grace_period: Time to wait for pending RPCs to complete
        """
        if self._server is None:
            return

        logger.info("Stopping gRPC server")
        await self._server.stop(grace_period)
        self._server = None
