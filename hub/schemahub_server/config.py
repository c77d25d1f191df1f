"""
Configuration management for SchemaHub Server.

All configuration is done via environment variables - no config files inside containers.
The only file the server reads is the optional severity policy override (DIFF_POLICY_PATH).

Invariants:
    - All settings have sensible defaults for local development
    - Production deployments MUST set REGISTRY_API_KEYS
    - API keys are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Deprecate settings by logging warnings but continuing to support them
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HttpConfig:
    """HTTP server configuration.

    Attributes:
        host: Address to bind the HTTP server
        port: Port to listen on
        cors_origins: Allowed CORS origins
        client_max_size: Maximum request body size in bytes
    """

    host: str = "0.0.0.0"
    port: int = 8081
    cors_origins: tuple[str, ...] = ("*",)
    client_max_size: int = 8 * 1024 * 1024  # 8MB

    @classmethod
    def from_env(cls) -> HttpConfig:
        """Load configuration from environment variables."""
        origins = os.getenv("HTTP_CORS_ORIGINS", "*")
        return cls(
            host=os.getenv("HTTP_HOST", "0.0.0.0"),
            port=int(os.getenv("HTTP_PORT", "8081")),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
            client_max_size=int(os.getenv("HTTP_MAX_BODY_BYTES", str(8 * 1024 * 1024))),
        )


@dataclass(frozen=True)
class StorageConfig:
    """Local storage configuration.

    Attributes:
        data_dir: Directory for the registry SQLite database
        db_name: Registry database file name
        wal_mode: SQLite WAL mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
    """

    data_dir: str = "/var/lib/schemahub"
    db_name: str = "registry.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        return cls(
            data_dir=os.getenv("DATA_DIR", "/var/lib/schemahub"),
            db_name=os.getenv("REGISTRY_DB_NAME", "registry.db"),
            wal_mode=os.getenv("SQLITE_WAL_MODE", "true").lower() == "true",
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
        )

    @property
    def db_path(self) -> str:
        """Full path to the registry database."""
        return os.path.join(self.data_dir, self.db_name)


@dataclass(frozen=True)
class AuthConfig:
    """API key authentication configuration.

    Attributes:
        api_keys: Accepted opaque API keys
    """

    api_keys: frozenset[str] = frozenset()

    @classmethod
    def from_env(cls) -> AuthConfig:
        """Load configuration from environment variables."""
        raw = os.getenv("REGISTRY_API_KEYS", "")
        return cls(api_keys=frozenset(k.strip() for k in raw.split(",") if k.strip()))


@dataclass(frozen=True)
class DiffConfig:
    """Diff engine configuration.

    Attributes:
        timeout_seconds: Upper bound for a single diff before TIMEOUT is reported
        cache_size: Number of diff results memoized by content-hash pair
        policy_path: Optional YAML file overriding default change severities
        min_usage_hits: Minimum recorded hits for a path to count as used
    """

    timeout_seconds: float = 10.0
    cache_size: int = 256
    policy_path: str | None = None
    min_usage_hits: int = 1

    @classmethod
    def from_env(cls) -> DiffConfig:
        """Load configuration from environment variables."""
        return cls(
            timeout_seconds=float(os.getenv("DIFF_TIMEOUT_SECONDS", "10")),
            cache_size=int(os.getenv("DIFF_CACHE_SIZE", "256")),
            policy_path=os.getenv("DIFF_POLICY_PATH"),
            min_usage_hits=int(os.getenv("USAGE_MIN_HITS", "1")),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Observability and logging configuration.

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

    Attributes:
        http: HTTP server configuration
        storage: Local storage configuration
        auth: API key configuration
        diff: Diff engine configuration
        observability: Observability configuration
    """

    http: HttpConfig = field(default_factory=HttpConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    diff: DiffConfig = field(default_factory=DiffConfig)
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
            http=HttpConfig.from_env(),
            storage=StorageConfig.from_env(),
            auth=AuthConfig.from_env(),
            diff=DiffConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not self.auth.api_keys:
            raise ValueError("REGISTRY_API_KEYS must list at least one API key")

        if self.diff.timeout_seconds <= 0:
            raise ValueError("DIFF_TIMEOUT_SECONDS must be positive")

        if self.diff.cache_size < 0:
            raise ValueError("DIFF_CACHE_SIZE must not be negative")

        if self.observability.log_format not in ("json", "text"):
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text"
            )

        if self.diff.policy_path and not os.path.exists(self.diff.policy_path):
            raise ValueError(f"DIFF_POLICY_PATH does not exist: {self.diff.policy_path}")

        if not os.path.exists(self.storage.data_dir):
            logger.warning(
                f"Data directory does not exist: {self.storage.data_dir}. "
                "It will be created on startup."
            )

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Server configuration loaded",
            extra={
                "http_bind": f"{self.http.host}:{self.http.port}",
                "db_path": self.storage.db_path,
                "api_key_count": len(self.auth.api_keys),
                "diff_timeout_seconds": self.diff.timeout_seconds,
                "diff_cache_size": self.diff.cache_size,
                "diff_policy_path": self.diff.policy_path,
                "log_level": self.observability.log_level,
            },
        )
