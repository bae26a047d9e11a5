"""
Configuration management for the system model service.

All configuration is done via environment variables - no config files inside containers.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - The memory backend is never selected implicitly in production images;
      deployments set STORE_BACKEND explicitly
    - Configuration objects are immutable once loaded

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep environment variable names stable, they are part of the deployment contract
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class StoreBackend(Enum):
    """Supported record store backends."""

    MEMORY = "memory"
    SQLITE = "sqlite"


@dataclass(frozen=True)
class GrpcConfig:
    """gRPC server configuration.

    Attributes:
        bind_address: Address to bind gRPC server (host:port)
        max_message_size: Maximum message size in bytes
        grace_period_seconds: Time given to in-flight RPCs on shutdown
    """

    bind_address: str = "0.0.0.0:8800"
    max_message_size: int = 16 * 1024 * 1024  # 16MB
    grace_period_seconds: float = 5.0

    @classmethod
    def from_env(cls) -> GrpcConfig:
        """Load configuration from environment variables."""
        return cls(
            bind_address=os.getenv("GRPC_BIND", "0.0.0.0:8800"),
            max_message_size=int(os.getenv("GRPC_MAX_MESSAGE_SIZE", str(16 * 1024 * 1024))),
            grace_period_seconds=float(os.getenv("GRPC_GRACE_PERIOD_SECONDS", "5.0")),
        )


@dataclass(frozen=True)
class StorageConfig:
    """Record store configuration.

    Attributes:
        backend: Which record store backend to use
        data_dir: Directory holding the SQLite database
        db_filename: Name of the SQLite database file
        wal_mode: SQLite WAL mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
    """

    backend: StoreBackend = StoreBackend.SQLITE
    data_dir: str = "/var/lib/system-model"
    db_filename: str = "system_model.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables.

        Raises:
            ValueError: If STORE_BACKEND names an unknown backend.
        """
        backend_str = os.getenv("STORE_BACKEND", "sqlite").lower()
        try:
            backend = StoreBackend(backend_str)
        except ValueError:
            raise ValueError(
                f"Invalid STORE_BACKEND '{backend_str}'. Must be one of: memory, sqlite"
            )
        return cls(
            backend=backend,
            data_dir=os.getenv("DATA_DIR", "/var/lib/system-model"),
            db_filename=os.getenv("DB_FILENAME", "system_model.db"),
            wal_mode=os.getenv("SQLITE_WAL_MODE", "true").lower() == "true",
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
        )


@dataclass(frozen=True)
class ApplicationConfig:
    """Application domain settings.

    Attributes:
        cluster_domain: DNS suffix of services inside an application cluster
        global_domain: DNS suffix used to build global endpoint FQDNs
    """

    cluster_domain: str = "cluster.local"
    global_domain: str = "global.local"

    @classmethod
    def from_env(cls) -> ApplicationConfig:
        """Load configuration from environment variables."""
        return cls(
            cluster_domain=os.getenv("CLUSTER_DOMAIN", "cluster.local"),
            global_domain=os.getenv("GLOBAL_DOMAIN", "global.local"),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class ServerConfig:
    """Complete server configuration.

    This aggregates all configuration sections and provides validation.

    Attributes:
        grpc: gRPC server configuration
        storage: Record store configuration
        application: Application domain settings
        observability: Logging configuration
    """

    grpc: GrpcConfig = field(default_factory=GrpcConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    application: ApplicationConfig = field(default_factory=ApplicationConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Load complete configuration from environment variables.

        Returns:
            ServerConfig with all sections populated from environment.

        Raises:
            ValueError: If required configuration is missing or invalid.
        """
        config = cls(
            grpc=GrpcConfig.from_env(),
            storage=StorageConfig.from_env(),
            application=ApplicationConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if ":" not in self.grpc.bind_address:
            raise ValueError(f"GRPC_BIND must be host:port, got '{self.grpc.bind_address}'")

        if self.storage.backend == StoreBackend.SQLITE:
            if not self.storage.data_dir:
                raise ValueError("DATA_DIR is required when STORE_BACKEND=sqlite")
            if not os.path.exists(self.storage.data_dir):
                logger.warning(
                    f"Data directory does not exist: {self.storage.data_dir}. "
                    "It will be created on startup."
                )

        if not self.application.global_domain:
            raise ValueError("GLOBAL_DOMAIN cannot be empty")

        if self.observability.log_format not in ("json", "text"):
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text"
            )

    def log_config(self) -> None:
        """Log the effective configuration."""
        logger.info(
            "Server configuration loaded",
            extra={
                "grpc_bind": self.grpc.bind_address,
                "store_backend": self.storage.backend.value,
                "data_dir": self.storage.data_dir
                if self.storage.backend == StoreBackend.SQLITE
                else None,
                "cluster_domain": self.application.cluster_domain,
                "global_domain": self.application.global_domain,
                "log_level": self.observability.log_level,
            },
        )
