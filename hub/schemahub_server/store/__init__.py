"""
Storage layer for SchemaHub.

All stores share one RegistryDatabase (a single SQLite file):
- SchemaStore: immutable, content-addressed schema versions
- TagIndex: compare-and-swap tag pointers
- HistoryLog: append-only push history
- UsageStore: field usage hit counts

Invariants:
    - Every write is one BEGIN IMMEDIATE transaction
    - Stores never validate SDL; the registry does that before writing

How to change safely:
    - Add tables in RegistryDatabase.initialize and bump SCHEMA_VERSION
"""

from .database import RegistryDatabase, now_ms
from .history_log import HistoryEntry, HistoryLog
from .schema_store import SchemaStore, SchemaVersion
from .tag_index import ANY_VERSION, Tag, TagIndex, TagUpdate
from .usage_store import UsageStore

__all__ = [
    "RegistryDatabase",
    "now_ms",
    "SchemaStore",
    "SchemaVersion",
    "TagIndex",
    "ANY_VERSION",
    "Tag",
    "TagUpdate",
    "HistoryLog",
    "HistoryEntry",
    "UsageStore",
]
