"""
Content-addressed schema store for SchemaHub.

Invariants:
    - Versions are immutable once written
    - (service_id, content_hash) is unique: identical SDL for the same service
      always resolves to the same version
    - No SDL validation happens here; callers validate before storing

How to change safely:
    - Never update or delete schema_versions rows (retention is external)
    - Keep content_hash stable; changing it breaks deduplication
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..errors import NotFoundError
from ..schema.engine import content_hash
from .database import RegistryDatabase, now_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchemaVersion:
    """An immutable stored schema document.

    Attributes:
        version_id: Unique version identifier (UUID)
        service_id: Owning service
        content_hash: 'sha256:<hex>' of the SDL text
        sdl_text: Schema Definition Language text
        created_at: Creation timestamp (Unix ms)
    """

    version_id: str
    service_id: str
    content_hash: str
    sdl_text: str
    created_at: int

    def to_dict(self, include_sdl: bool = True) -> Dict[str, Any]:
        result = {
            "version_id": self.version_id,
            "service_id": self.service_id,
            "content_hash": self.content_hash,
            "created_at": self.created_at,
        }
        if include_sdl:
            result["sdl"] = self.sdl_text
        return result


def row_to_version(row: sqlite3.Row) -> SchemaVersion:
    return SchemaVersion(
        version_id=row["version_id"],
        service_id=row["service_id"],
        content_hash=row["content_hash"],
        sdl_text=row["sdl_text"],
        created_at=row["created_at"],
    )


class SchemaStore:
    """Append-only storage of schema documents keyed by content hash.

    Example:
        >>> store = SchemaStore(db)
        >>> v1 = await store.put("billing", "type Query { total: Int }")
        >>> v2 = await store.put("billing", "type Query { total: Int }")
        >>> v1.version_id == v2.version_id
        True
    """

    def __init__(self, db: RegistryDatabase) -> None:
        self.db = db

    async def put(self, service_id: str, sdl_text: str) -> SchemaVersion:
        """Store a schema document, deduplicating by content hash.

        Args:
            service_id: Owning service
            sdl_text: SDL text (already validated by the caller)

        Returns:
            The existing version for this content, or the newly created one
        """
        digest = content_hash(sdl_text)
        candidate_id = str(uuid.uuid4())

        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO schema_versions
                    (version_id, service_id, content_hash, sdl_text, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (candidate_id, service_id, digest, sdl_text, now_ms()),
            )
            row = conn.execute(
                "SELECT * FROM schema_versions WHERE service_id = ? AND content_hash = ?",
                (service_id, digest),
            ).fetchone()

        version = row_to_version(row)
        logger.debug(
            "Stored schema version" if version.version_id == candidate_id
            else "Schema version already stored",
            extra={
                "service_id": service_id,
                "version_id": version.version_id,
                "content_hash": digest,
            },
        )
        return version

    async def get(self, version_id: str) -> SchemaVersion:
        """Get a schema version by id.

        Raises:
            NotFoundError: If no version has this id
        """
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT * FROM schema_versions WHERE version_id = ?",
                (version_id,),
            ).fetchone()

        if row is None:
            raise NotFoundError(f"Schema version not found: {version_id}", resource="version")
        return row_to_version(row)

    async def find_by_hash(self, service_id: str, digest: str) -> Optional[SchemaVersion]:
        """Get the version of a service with a given content hash, if stored."""
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT * FROM schema_versions WHERE service_id = ? AND content_hash = ?",
                (service_id, digest),
            ).fetchone()
        return row_to_version(row) if row else None

    async def list_versions(self, service_id: str) -> List[SchemaVersion]:
        """List every stored version of a service, oldest first."""
        with self.db.connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM schema_versions
                WHERE service_id = ?
                ORDER BY created_at ASC, rowid ASC
                """,
                (service_id,),
            ).fetchall()
        return [row_to_version(row) for row in rows]

    async def count(self, service_id: str) -> int:
        """Number of distinct versions stored for a service."""
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM schema_versions WHERE service_id = ?",
                (service_id,),
            ).fetchone()
        return int(row[0])
