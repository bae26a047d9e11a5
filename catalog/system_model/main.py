"""
System model server - Main entry point.

This module starts the catalog server:
- Record stores (SQLite or in-memory)
- Domain managers
- gRPC server exposing one service per sub-domain

Usage:
    python -m catalog.system_model.main

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - Stores are initialized before the gRPC port is bound
    - Graceful shutdown gives in-flight RPCs the configured grace period

How to change safely:
    - Register new services in api/handlers.build_handlers, not here
    - Test the shutdown sequence thoroughly
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

import json_log_formatter

from .api import GrpcServer, build_handlers
from .config import ServerConfig
from .provider import RecordStores, create_record_stores

logger = logging.getLogger(__name__)


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("grpc").setLevel(logging.WARNING)
    logging.getLogger("grpc._cython").setLevel(logging.WARNING)


class Server:
    """System model server orchestrator.

    Attributes:
        config: Server configuration
        stores: Record stores shared by every manager
        grpc_server: gRPC server

    Example:
        >>> server = Server()
        >>> await server.start()
        >>> # Server is running
        >>> await server.stop()
    """

    def __init__(self, config: ServerConfig | None = None) -> None:
        """Initialize the server.

        Args:
            config: Optional server configuration (loaded from env if not provided)
        """
        self.config = config or ServerConfig.from_env()
        self._running = False
        self._shutdown_event = asyncio.Event()

        self.stores: RecordStores | None = None
        self.grpc_server: GrpcServer | None = None

    async def start(self) -> None:
        """Create the stores and start serving."""
        if self._running:
            logger.warning("Server already running")
            return

        logger.info("Starting system model server")
        self.config.log_config()

        try:
            self.stores = create_record_stores(self.config.storage)
            self.grpc_server = GrpcServer(
                build_handlers(self.stores, self.config.application),
                bind_address=self.config.grpc.bind_address,
                max_message_size=self.config.grpc.max_message_size,
            )
            await self.grpc_server.start()
        except Exception as e:
            logger.error(f"Server startup failed: {e}", exc_info=True)
            await self._stop_grpc()
            raise

        self._running = True
        logger.info("System model server started successfully")

    async def serve(self) -> None:
        """Start the server and block until shutdown is requested."""
        await self.start()
        await self._shutdown_event.wait()

    async def stop(self) -> None:
        """Stop the server gracefully."""
        if not self._running:
            return

        logger.info("Stopping system model server")
        await self._stop_grpc()
        self._running = False
        logger.info("System model server stopped")

    async def _stop_grpc(self) -> None:
        if self.grpc_server:
            await self.grpc_server.stop(self.config.grpc.grace_period_seconds)

    def request_shutdown(self) -> None:
        """Request graceful shutdown."""
        self._shutdown_event.set()


def main() -> None:
    """Main entry point."""
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    server = Server(config)

    def handle_signal(sig: int) -> None:
        logger.info(f"Received signal {sig}, initiating shutdown")
        server.request_shutdown()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_signal, sig)

    try:
        loop.run_until_complete(server.serve())
    except KeyboardInterrupt:
        pass
    finally:
        loop.run_until_complete(server.stop())
        loop.close()


if __name__ == "__main__":
    main()
