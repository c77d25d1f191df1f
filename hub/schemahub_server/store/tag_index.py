"""
Tag index for SchemaHub.

A tag is a mutable named pointer ("production", "staging") from a service to
one of its stored schema versions.

Invariants:
    - At most one version per (service_id, tag) at any instant
    - update_tag is a compare-and-swap: it only moves the pointer when the
      current value equals expected_version_id (None meaning "tag absent");
      ANY_VERSION skips the comparison (last writer wins)
    - Reads never observe a half-applied update

How to change safely:
    - Keep the read and the write of a CAS in one BEGIN IMMEDIATE transaction
    - Tags are never deleted by the registry
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..errors import ConflictError, NotFoundError
from .database import RegistryDatabase, now_ms
from .schema_store import SchemaVersion, row_to_version

logger = logging.getLogger(__name__)

# Sentinel for an unconditional tag update
ANY_VERSION: Any = object()


@dataclass(frozen=True)
class Tag:
    """Current value of a tag pointer."""

    service_id: str
    name: str
    version_id: str
    updated_at: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service_id": self.service_id,
            "tag": self.name,
            "version_id": self.version_id,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class TagUpdate:
    """Outcome of a successful tag update.

    Attributes:
        tag: New tag value
        previous_version_id: Value the tag held before the update (None if new)
    """

    tag: Tag
    previous_version_id: Optional[str]


def _row_to_tag(row: sqlite3.Row) -> Tag:
    return Tag(
        service_id=row["service_id"],
        name=row["name"],
        version_id=row["version_id"],
        updated_at=row["updated_at"],
    )


class TagIndex:
    """Named pointers from (service, tag) to schema versions."""

    def __init__(self, db: RegistryDatabase) -> None:
        self.db = db

    async def update_tag(
        self,
        service_id: str,
        tag: str,
        version_id: str,
        expected_version_id: Any = ANY_VERSION,
    ) -> TagUpdate:
        """Point a tag at a version if it still holds the expected value.

        Args:
            service_id: Owning service
            tag: Tag name
            version_id: New target version
            expected_version_id: Value the caller last observed (None = absent,
                ANY_VERSION = unconditional)

        Returns:
            TagUpdate with the previous value

        Raises:
            ConflictError: If the tag moved since the caller read it
        """
        with self.db.transaction() as conn:
            row = conn.execute(
                "SELECT * FROM tags WHERE service_id = ? AND name = ?",
                (service_id, tag),
            ).fetchone()
            current = row["version_id"] if row else None

            if expected_version_id is not ANY_VERSION and current != expected_version_id:
                raise ConflictError(
                    f"Tag '{tag}' of service '{service_id}' changed concurrently",
                    expected_version_id=expected_version_id,
                    actual_version_id=current,
                )

            updated_at = now_ms()
            conn.execute(
                """
                INSERT INTO tags (service_id, name, version_id, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (service_id, name) DO UPDATE SET
                    version_id = excluded.version_id,
                    updated_at = excluded.updated_at
                """,
                (service_id, tag, version_id, updated_at),
            )

        logger.debug(
            "Tag updated",
            extra={
                "service_id": service_id,
                "tag": tag,
                "version_id": version_id,
                "previous_version_id": current,
            },
        )
        return TagUpdate(
            tag=Tag(service_id, tag, version_id, updated_at),
            previous_version_id=current,
        )

    async def get_tag(self, service_id: str, tag: str) -> Optional[Tag]:
        """Current value of a tag, or None if it was never set."""
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT * FROM tags WHERE service_id = ? AND name = ?",
                (service_id, tag),
            ).fetchone()
        return _row_to_tag(row) if row else None

    async def resolve_tag(self, service_id: str, tag: str) -> SchemaVersion:
        """Schema version a tag points to.

        Raises:
            NotFoundError: If the tag was never set
        """
        with self.db.connect() as conn:
            row = conn.execute(
                """
                SELECT v.* FROM tags t
                JOIN schema_versions v ON v.version_id = t.version_id
                WHERE t.service_id = ? AND t.name = ?
                """,
                (service_id, tag),
            ).fetchone()

        if row is None:
            raise NotFoundError(
                f"Tag '{tag}' not found for service '{service_id}'",
                resource="tag",
            )
        return row_to_version(row)

    async def list_tags(self, service_id: str) -> List[Tag]:
        """All tags of a service, ordered by name."""
        with self.db.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM tags WHERE service_id = ? ORDER BY name ASC",
                (service_id,),
            ).fetchall()
        return [_row_to_tag(row) for row in rows]
