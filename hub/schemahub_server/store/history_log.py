"""
Push history log for SchemaHub.

Every accepted push appends one entry recording which version a tag moved to
and what it pointed at before.

Invariants:
    - Entries are append-only
    - Within a service, timestamps never decrease in insertion order;
      a clock step backwards is clamped to the latest recorded timestamp
    - Reads return newest first; ties are broken by insertion order

How to change safely:
    - Keep the clamp and the insert in the same transaction
    - Never rewrite previous_version_id of existing rows
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .database import RegistryDatabase, now_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoryEntry:
    """One accepted push.

    Attributes:
        entry_id: Unique entry id (UUID)
        service_id: Service pushed to
        tag: Tag that was moved
        version_id: Version the tag now points to
        previous_version_id: Version the tag pointed to before (None if new)
        timestamp: Push time (Unix ms)
    """

    entry_id: str
    service_id: str
    tag: str
    version_id: str
    previous_version_id: Optional[str]
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "service_id": self.service_id,
            "tag": self.tag,
            "version_id": self.version_id,
            "previous_version_id": self.previous_version_id,
            "timestamp": self.timestamp,
        }


def _row_to_entry(row: sqlite3.Row) -> HistoryEntry:
    return HistoryEntry(
        entry_id=row["entry_id"],
        service_id=row["service_id"],
        tag=row["tag"],
        version_id=row["version_id"],
        previous_version_id=row["previous_version_id"],
        timestamp=row["timestamp"],
    )


class HistoryLog:
    """Append-only log of tag movements."""

    def __init__(self, db: RegistryDatabase) -> None:
        self.db = db

    async def record(
        self,
        service_id: str,
        tag: str,
        version_id: str,
        previous_version_id: Optional[str],
    ) -> HistoryEntry:
        """Append a history entry for a push."""
        entry_id = str(uuid.uuid4())

        with self.db.transaction() as conn:
            row = conn.execute(
                "SELECT MAX(timestamp) FROM history WHERE service_id = ?",
                (service_id,),
            ).fetchone()
            latest = row[0]
            timestamp = now_ms()
            if latest is not None and timestamp < latest:
                timestamp = latest

            conn.execute(
                """
                INSERT INTO history
                    (entry_id, service_id, tag, version_id, previous_version_id, timestamp)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (entry_id, service_id, tag, version_id, previous_version_id, timestamp),
            )

        entry = HistoryEntry(
            entry_id=entry_id,
            service_id=service_id,
            tag=tag,
            version_id=version_id,
            previous_version_id=previous_version_id,
            timestamp=timestamp,
        )
        logger.debug("History entry recorded", extra=entry.to_dict())
        return entry

    async def list_history(
        self,
        service_id: str,
        tag: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[HistoryEntry]:
        """History of a service, newest first.

        Args:
            service_id: Service to read
            tag: Only entries for this tag (all tags if None)
            limit: Maximum number of entries (unbounded if None)

        Returns:
            Entries ordered by timestamp descending, then insertion descending
        """
        query = "SELECT * FROM history WHERE service_id = ?"
        params: List[Any] = [service_id]

        if tag is not None:
            query += " AND tag = ?"
            params.append(tag)

        query += " ORDER BY timestamp DESC, seq DESC"

        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        with self.db.connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_entry(row) for row in rows]
