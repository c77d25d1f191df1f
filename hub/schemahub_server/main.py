"""
SchemaHub Server - Main entry point.

This module starts the registry with all components:
- Registry database (SQLite)
- Schema store, tag index, history log and usage store
- Diff/validation engine (with optional severity policy overrides)
- HTTP server (REST API)

Usage:
    python -m hub.schemahub_server.main

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - The database schema exists before the HTTP server accepts requests
    - Graceful shutdown stops accepting requests before releasing resources
    - All components share one RegistryDatabase

How to change safely:
    - Add new components with enable/disable flags
    - Test shutdown sequence thoroughly
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from pathlib import Path

import json_log_formatter
from aiohttp import web

from .api import RegistryServicer, create_http_app
from .config import ServerConfig
from .schema import DiffEngine, SeverityPolicy
from .store import HistoryLog, RegistryDatabase, SchemaStore, TagIndex, UsageStore

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
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)


def load_policy(config: ServerConfig) -> SeverityPolicy:
    """Default severity policy, with overrides from DIFF_POLICY_PATH if set."""
    if not config.diff.policy_path:
        return SeverityPolicy()
    return SeverityPolicy.from_yaml(config.diff.policy_path)


class Server:
    """SchemaHub server orchestrator.

    Manages the lifecycle of all server components:
    - Registry database and stores
    - Diff engine
    - HTTP server

    Attributes:
        config: Server configuration
        database: Registry database
        servicer: Registry service implementation

    Example:
        >>> server = Server()
        >>> await server.start()
        >>> # Server is running until request_shutdown()
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

        # Components (initialized in open())
        self.database: RegistryDatabase | None = None
        self.engine: DiffEngine | None = None
        self.servicer: RegistryServicer | None = None
        self._runner: web.AppRunner | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def open(self) -> None:
        """Build every component and start accepting HTTP requests."""
        if self._running:
            logger.warning("Server already running")
            return

        logger.info("Starting SchemaHub server")
        self.config.log_config()

        try:
            # Ensure data directory exists
            Path(self.config.storage.data_dir).mkdir(parents=True, exist_ok=True)

            # Initialize database and stores
            self.database = RegistryDatabase(
                self.config.storage.db_path,
                wal_mode=self.config.storage.wal_mode,
                busy_timeout_ms=self.config.storage.busy_timeout_ms,
            )
            self.database.initialize()

            # Initialize diff engine
            self.engine = DiffEngine(
                policy=load_policy(self.config),
                cache_size=self.config.diff.cache_size,
                timeout_seconds=self.config.diff.timeout_seconds,
            )

            # Initialize servicer
            self.servicer = RegistryServicer(
                database=self.database,
                schema_store=SchemaStore(self.database),
                tag_index=TagIndex(self.database),
                history_log=HistoryLog(self.database),
                usage_store=UsageStore(self.database),
                engine=self.engine,
                api_keys=self.config.auth.api_keys,
                min_usage_hits=self.config.diff.min_usage_hits,
            )

            # Start HTTP server
            app = create_http_app(self.servicer, self.config.http)
            self._runner = web.AppRunner(app)
            await self._runner.setup()
            site = web.TCPSite(self._runner, self.config.http.host, self.config.http.port)
            await site.start()
            logger.info(
                f"HTTP server running on http://{self.config.http.host}:{self.config.http.port}"
            )

            self._running = True
            logger.info("SchemaHub server started successfully")

        except Exception as e:
            logger.error(f"Server startup failed: {e}", exc_info=True)
            if self._runner:
                await self._runner.cleanup()
                self._runner = None
            raise

    async def start(self) -> None:
        """Start the server and block until shutdown is requested."""
        await self.open()
        await self._shutdown_event.wait()

    async def stop(self) -> None:
        """Stop the server gracefully."""
        if not self._running:
            return

        logger.info("Stopping SchemaHub server")

        if self._runner:
            await self._runner.cleanup()
            self._runner = None

        self._running = False
        logger.info("SchemaHub server stopped")

    def request_shutdown(self) -> None:
        """Request graceful shutdown."""
        self._shutdown_event.set()


def main() -> None:
    """Main entry point."""
    # Load configuration
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    # Setup logging
    setup_logging(config)

    # Create server
    server = Server(config)

    # Setup signal handlers
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def handle_signal(sig: int) -> None:
        logger.info(f"Received signal {sig}, initiating shutdown")
        server.request_shutdown()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_signal, sig)

    # Run server
    try:
        loop.run_until_complete(server.start())
    except KeyboardInterrupt:
        pass
    finally:
        loop.run_until_complete(server.stop())
        loop.close()


if __name__ == "__main__":
    main()
