"""
Unit tests for server configuration.

Tests cover:
- Loading from environment variables
- Defaults
- Validation failures
"""

import os
import tempfile

import pytest

from hub.schemahub_server.config import (
    AuthConfig,
    DiffConfig,
    HttpConfig,
    ObservabilityConfig,
    ServerConfig,
    StorageConfig,
)


class TestFromEnv:
    """Tests for environment loading."""

    def test_defaults(self, monkeypatch):
        for name in (
            "HTTP_HOST", "HTTP_PORT", "DATA_DIR", "REGISTRY_DB_NAME", "DIFF_TIMEOUT_SECONDS"
        ):
            monkeypatch.delenv(name, raising=False)

        assert HttpConfig.from_env().port == 8081
        assert StorageConfig.from_env().db_path == os.path.join("/var/lib/schemahub", "registry.db")
        assert DiffConfig.from_env().timeout_seconds == 10.0

    def test_values(self, monkeypatch):
        monkeypatch.setenv("HTTP_HOST", "127.0.0.1")
        monkeypatch.setenv("HTTP_PORT", "9000")
        monkeypatch.setenv("DATA_DIR", "/tmp/registry")
        monkeypatch.setenv("REGISTRY_DB_NAME", "hub.db")
        monkeypatch.setenv("SQLITE_WAL_MODE", "false")
        monkeypatch.setenv("SQLITE_BUSY_TIMEOUT_MS", "250")
        monkeypatch.setenv("REGISTRY_API_KEYS", "key-a, key-b,,")
        monkeypatch.setenv("DIFF_TIMEOUT_SECONDS", "2.5")
        monkeypatch.setenv("DIFF_CACHE_SIZE", "16")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("LOG_FORMAT", "text")

        config = ServerConfig.from_env()

        assert config.http.host == "127.0.0.1"
        assert config.http.port == 9000
        assert config.storage.db_path == os.path.join("/tmp/registry", "hub.db")
        assert config.storage.wal_mode is False
        assert config.storage.busy_timeout_ms == 250
        assert config.auth.api_keys == frozenset({"key-a", "key-b"})
        assert config.diff.timeout_seconds == 2.5
        assert config.diff.cache_size == 16
        assert config.observability.log_level == "DEBUG"
        assert config.observability.log_format == "text"

    def test_missing_api_keys(self, monkeypatch):
        monkeypatch.delenv("REGISTRY_API_KEYS", raising=False)

        with pytest.raises(ValueError, match="REGISTRY_API_KEYS"):
            ServerConfig.from_env()


class TestValidate:
    """Tests for ServerConfig.validate."""

    def config(self, **sections):
        sections.setdefault("auth", AuthConfig(api_keys=frozenset({"key"})))
        return ServerConfig(**sections)

    def test_valid(self):
        self.config().validate()

    def test_non_positive_timeout(self):
        with pytest.raises(ValueError, match="DIFF_TIMEOUT_SECONDS"):
            self.config(diff=DiffConfig(timeout_seconds=0)).validate()

    def test_negative_cache_size(self):
        with pytest.raises(ValueError, match="DIFF_CACHE_SIZE"):
            self.config(diff=DiffConfig(cache_size=-1)).validate()

    def test_invalid_log_format(self):
        with pytest.raises(ValueError, match="LOG_FORMAT"):
            self.config(observability=ObservabilityConfig(log_format="xml")).validate()

    def test_missing_policy_file(self):
        with pytest.raises(ValueError, match="DIFF_POLICY_PATH"):
            self.config(diff=DiffConfig(policy_path="/nonexistent/policy.yaml")).validate()

    def test_existing_policy_file(self):
        with tempfile.NamedTemporaryFile(suffix=".yaml") as f:
            self.config(diff=DiffConfig(policy_path=f.name)).validate()

    def test_log_config_redacts_keys(self, caplog):
        config = self.config(auth=AuthConfig(api_keys=frozenset({"super-secret"})))

        with caplog.at_level("INFO"):
            config.log_config()

        assert "super-secret" not in caplog.text
        record = caplog.records[-1]
        assert record.api_key_count == 1
