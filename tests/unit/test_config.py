"""
Unit tests for environment configuration.

Tests cover:
- Defaults
- Environment overrides
- Validation failures
"""

import pytest

from catalog.system_model.config import (
    ApplicationConfig,
    GrpcConfig,
    ObservabilityConfig,
    ServerConfig,
    StorageConfig,
    StoreBackend,
)


class TestServerConfig:
    """Tests for ServerConfig.from_env."""

    def test_defaults(self, monkeypatch):
        for name in ("GRPC_BIND", "STORE_BACKEND", "DATA_DIR", "GLOBAL_DOMAIN", "LOG_FORMAT"):
            monkeypatch.delenv(name, raising=False)

        config = ServerConfig.from_env()

        assert config.grpc.bind_address == "0.0.0.0:8800"
        assert config.storage.backend is StoreBackend.SQLITE
        assert config.application.global_domain == "global.local"
        assert config.observability.log_format == "json"

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("GRPC_BIND", "127.0.0.1:9000")
        monkeypatch.setenv("STORE_BACKEND", "MEMORY")
        monkeypatch.setenv("DATA_DIR", str(tmp_path))
        monkeypatch.setenv("GLOBAL_DOMAIN", "edge.example.com")
        monkeypatch.setenv("SQLITE_WAL_MODE", "false")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")

        config = ServerConfig.from_env()

        assert config.grpc.bind_address == "127.0.0.1:9000"
        assert config.storage.backend is StoreBackend.MEMORY
        assert config.storage.data_dir == str(tmp_path)
        assert config.storage.wal_mode is False
        assert config.application.global_domain == "edge.example.com"
        assert config.observability.log_level == "DEBUG"

    def test_unknown_backend(self, monkeypatch):
        monkeypatch.setenv("STORE_BACKEND", "postgres")

        with pytest.raises(ValueError, match="STORE_BACKEND"):
            ServerConfig.from_env()

    def test_bind_without_port(self):
        config = ServerConfig(grpc=GrpcConfig(bind_address="localhost"))

        with pytest.raises(ValueError, match="GRPC_BIND"):
            config.validate()

    def test_sqlite_requires_data_dir(self):
        config = ServerConfig(storage=StorageConfig(data_dir=""))

        with pytest.raises(ValueError, match="DATA_DIR"):
            config.validate()

    def test_memory_backend_ignores_data_dir(self):
        config = ServerConfig(storage=StorageConfig(backend=StoreBackend.MEMORY, data_dir=""))

        config.validate()

    def test_empty_global_domain(self):
        config = ServerConfig(application=ApplicationConfig(global_domain=""))

        with pytest.raises(ValueError, match="GLOBAL_DOMAIN"):
            config.validate()

    def test_log_format(self):
        config = ServerConfig(observability=ObservabilityConfig(log_format="xml"))

        with pytest.raises(ValueError, match="LOG_FORMAT"):
            config.validate()

    def test_sections_are_immutable(self):
        config = ServerConfig()

        with pytest.raises(AttributeError):
            config.grpc.bind_address = "other:1"
