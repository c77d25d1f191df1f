"""
Registry SQLite database for SchemaHub.

One SQLite file holds every table the registry persists:

    schema_versions:
        - version_id TEXT (UUID) PRIMARY KEY
        - service_id TEXT
        - content_hash TEXT ('sha256:<hex>')
        - sdl_text TEXT
        - created_at INTEGER (Unix ms)
        - UNIQUE (service_id, content_hash)

    tags:
        - service_id TEXT
        - name TEXT
        - version_id TEXT
        - updated_at INTEGER (Unix ms)
        - PRIMARY KEY (service_id, name)

    history:
        - seq INTEGER PRIMARY KEY AUTOINCREMENT
        - entry_id TEXT (UUID) UNIQUE
        - service_id TEXT
        - tag TEXT
        - version_id TEXT
        - previous_version_id TEXT NULL
        - timestamp INTEGER (Unix ms)

    usage:
        - service_id TEXT
        - path TEXT
        - hits INTEGER
        - last_seen INTEGER (Unix ms)
        - PRIMARY KEY (service_id, path)

Invariants:
    - Every write runs inside a single BEGIN IMMEDIATE transaction
    - Connections are opened per operation; SQLite serializes writers
    - Schema changes are additive (CREATE ... IF NOT EXISTS)

How to change safely:
    - Bump SCHEMA_VERSION and add a new migration step for schema changes
    - Never drop or rewrite history rows
"""

from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Current time in Unix milliseconds."""
    return int(time.time() * 1000)


class RegistryDatabase:
    """Connection factory and schema owner for the registry database.

    Example:
        >>> db = RegistryDatabase("/var/lib/schemahub/registry.db")
        >>> db.initialize()
        >>> with db.connect() as conn:
        ...     conn.execute("SELECT COUNT(*) FROM tags").fetchone()[0]
        0
    """

    SCHEMA_VERSION = 1

    def __init__(
        self,
        db_path: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        """Initialize the database handle.

        Args:
            db_path: Path to the SQLite database file
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
        """
        self.db_path = Path(db_path)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Open a configured connection.

        Yields:
            SQLite connection in autocommit mode (explicit transactions)
        """
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
        )
        conn.row_factory = sqlite3.Row

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Open a connection inside a write transaction.

        The transaction takes the write lock immediately so read-modify-write
        sequences (compare-and-swap, monotonic timestamps) cannot interleave.
        """
        with self.connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise

    def initialize(self) -> None:
        """Create the database file and schema if they don't exist."""
        with self.connect() as conn:
            conn.executescript("""
                -- Schema version tracking
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at INTEGER NOT NULL
                );

                -- Content-addressed schema documents
                CREATE TABLE IF NOT EXISTS schema_versions (
                    version_id TEXT PRIMARY KEY,
                    service_id TEXT NOT NULL,
                    content_hash TEXT NOT NULL,
                    sdl_text TEXT NOT NULL,
                    created_at INTEGER NOT NULL,
                    UNIQUE (service_id, content_hash)
                );

                CREATE INDEX IF NOT EXISTS idx_versions_service
                    ON schema_versions(service_id, created_at);

                -- Tag pointers
                CREATE TABLE IF NOT EXISTS tags (
                    service_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    version_id TEXT NOT NULL,
                    updated_at INTEGER NOT NULL,
                    PRIMARY KEY (service_id, name)
                );

                -- Push history
                CREATE TABLE IF NOT EXISTS history (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    entry_id TEXT NOT NULL UNIQUE,
                    service_id TEXT NOT NULL,
                    tag TEXT NOT NULL,
                    version_id TEXT NOT NULL,
                    previous_version_id TEXT,
                    timestamp INTEGER NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_history_service
                    ON history(service_id, timestamp DESC, seq DESC);
                CREATE INDEX IF NOT EXISTS idx_history_service_tag
                    ON history(service_id, tag, timestamp DESC, seq DESC);

                -- Recorded field usage
                CREATE TABLE IF NOT EXISTS usage (
                    service_id TEXT NOT NULL,
                    path TEXT NOT NULL,
                    hits INTEGER NOT NULL DEFAULT 0,
                    last_seen INTEGER NOT NULL,
                    PRIMARY KEY (service_id, path)
                );

                -- Record schema version
                INSERT OR IGNORE INTO schema_version (version, applied_at)
                VALUES (1, strftime('%s', 'now') * 1000);
            """)
        logger.info(f"Initialized registry database: {self.db_path}")

    def is_healthy(self) -> bool:
        """Whether the database answers a trivial query."""
        try:
            with self.connect() as conn:
                conn.execute("SELECT 1").fetchone()
            return True
        except sqlite3.Error as e:
            logger.error(f"Registry database health check failed: {e}")
            return False
