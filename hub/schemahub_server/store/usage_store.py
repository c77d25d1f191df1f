"""
Field usage store for SchemaHub.

Usage is the set of schema element paths ("Query.user", "User.email",
"Query.user.id") that client traffic has exercised. Checks use it to decide
whether a breaking change actually affects anyone.

Invariants:
    - Hit counts only grow
    - A service with no recorded usage yields None, not an empty set, so
      checks treat every change as in use

How to change safely:
    - Keep paths in the same dotted form the diff engine emits
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Set

from .database import RegistryDatabase, now_ms

logger = logging.getLogger(__name__)


class UsageStore:
    """Aggregated field-usage hit counts per service."""

    def __init__(self, db: RegistryDatabase) -> None:
        self.db = db

    async def record_usage(self, service_id: str, paths: Iterable[str], hits: int = 1) -> int:
        """Add hits for each path.

        Returns:
            Number of distinct paths recorded
        """
        unique_paths = sorted({p for p in paths if p})
        if not unique_paths:
            return 0

        seen = now_ms()
        with self.db.transaction() as conn:
            conn.executemany(
                """
                INSERT INTO usage (service_id, path, hits, last_seen)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (service_id, path) DO UPDATE SET
                    hits = hits + excluded.hits,
                    last_seen = excluded.last_seen
                """,
                [(service_id, path, hits, seen) for path in unique_paths],
            )

        logger.debug(
            "Usage recorded",
            extra={"service_id": service_id, "path_count": len(unique_paths)},
        )
        return len(unique_paths)

    async def get_usage(self, service_id: str, min_hits: int = 1) -> Optional[Set[str]]:
        """Paths exercised at least min_hits times, or None if nothing was recorded."""
        with self.db.connect() as conn:
            total = conn.execute(
                "SELECT COUNT(*) FROM usage WHERE service_id = ?",
                (service_id,),
            ).fetchone()[0]
            if total == 0:
                return None
            rows = conn.execute(
                "SELECT path FROM usage WHERE service_id = ? AND hits >= ?",
                (service_id, min_hits),
            ).fetchall()
        return {row["path"] for row in rows}
