"""
Registry service implementation for SchemaHub.

The servicer is the single boundary every transport goes through. It
authenticates callers, validates input and coordinates the stores and the
diff engine.

Invariants:
    - Authentication happens before any store, index or engine access
    - Every method returns a response dict; failures carry "error" and
      "error_code" and never leak SQL, paths or stack traces
    - push runs Store.put -> TagIndex.update_tag -> HistoryLog.record in that
      order; a failed tag update leaves an orphaned (harmless) version
    - Pushes to the same (service, tag) are serialized in-process by an
      asyncio.Lock and across processes by the tag compare-and-swap

How to change safely:
    - Add new operations without changing the shape of existing responses
    - Keep error codes stable; CI pipelines parse them
"""

from __future__ import annotations

import asyncio
import hmac
import logging
import weakref
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from ..errors import AuthError, RegistryError, ValidationError
from ..schema import DiffEngine
from ..store import HistoryLog, RegistryDatabase, SchemaStore, TagIndex, UsageStore

logger = logging.getLogger(__name__)

DEFAULT_TAG = "current"
MAX_HISTORY_LIMIT = 1000


class RegistryServicer:
    """Schema registry operations.

    Attributes:
        schema_store: Content-addressed schema versions
        tag_index: Tag pointers
        history_log: Push history
        usage_store: Recorded field usage
        engine: Diff/validation engine
    """

    def __init__(
        self,
        database: RegistryDatabase,
        schema_store: SchemaStore,
        tag_index: TagIndex,
        history_log: HistoryLog,
        usage_store: UsageStore,
        engine: DiffEngine,
        api_keys: Iterable[str],
        min_usage_hits: int = 1,
    ) -> None:
        """Initialize the servicer.

        Args:
            database: Registry database (used for health checks)
            schema_store: SchemaStore instance
            tag_index: TagIndex instance
            history_log: HistoryLog instance
            usage_store: UsageStore instance
            engine: DiffEngine instance
            api_keys: Accepted API keys
            min_usage_hits: Hits needed for a recorded path to count as used
        """
        self.database = database
        self.schema_store = schema_store
        self.tag_index = tag_index
        self.history_log = history_log
        self.usage_store = usage_store
        self.engine = engine
        self.min_usage_hits = min_usage_hits
        self._api_keys = tuple(api_keys)
        # Locks live only while a push holds or awaits them
        self._push_locks: weakref.WeakValueDictionary[Tuple[str, str], asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def authenticate(self, api_key: Optional[str]) -> None:
        """Reject unknown API keys.

        Raises:
            AuthError: If the key is missing or not recognized
        """
        if not api_key:
            raise AuthError("API key is required")
        provided = api_key.encode("utf-8")
        if not any(hmac.compare_digest(provided, k.encode("utf-8")) for k in self._api_keys):
            raise AuthError("Invalid API key")

    def _lock_for(self, service_id: str, tag: str) -> asyncio.Lock:
        return self._push_locks.setdefault((service_id, tag), asyncio.Lock())

    @staticmethod
    def _require(value: Optional[str], name: str) -> str:
        if not value or not isinstance(value, str):
            raise ValidationError(f"{name} is required")
        return value

    @staticmethod
    def _tag_or_default(tag: Optional[str]) -> str:
        if tag is None or tag == "":
            return DEFAULT_TAG
        if not isinstance(tag, str):
            raise ValidationError("tag must be a string")
        return tag

    @staticmethod
    def _usage_paths(usage: Optional[Iterable[str]]) -> Optional[Set[str]]:
        if usage is None:
            return None
        if not isinstance(usage, (list, tuple, set, frozenset)) or not all(
            isinstance(p, str) for p in usage
        ):
            raise ValidationError("usage must be a list of strings")
        return set(usage)

    @staticmethod
    def _error_response(operation: str, error: Exception) -> Dict[str, Any]:
        if isinstance(error, RegistryError):
            logger.warning(
                f"{operation} rejected: {error.message}",
                extra={"operation": operation, "error_code": error.code},
            )
            return error.to_dict()

        logger.error(f"{operation} failed: {error}", exc_info=True)
        return {"error": "Internal error", "error_code": "INTERNAL"}

    # =========================================================================
    # Push / Check / History
    # =========================================================================

    async def push(
        self,
        service_id: str,
        sdl: str,
        api_key: Optional[str],
        tag: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Store a schema and move a tag to it.

        Args:
            service_id: Target service
            sdl: Schema document
            api_key: Caller API key
            tag: Tag to move (defaults to "current")

        Returns:
            Response with version_id, content_hash, tag, previous_version_id
            and history_ref, or an error
        """
        try:
            self.authenticate(api_key)
            self._require(service_id, "service_id")
            self._require(sdl, "sdl")
            tag = self._tag_or_default(tag)

            await self.engine.validate_async(sdl)

            async with self._lock_for(service_id, tag):
                current = await self.tag_index.get_tag(service_id, tag)
                expected = current.version_id if current else None

                version = await self.schema_store.put(service_id, sdl)
                update = await self.tag_index.update_tag(
                    service_id, tag, version.version_id, expected_version_id=expected
                )
                entry = await self.history_log.record(
                    service_id, tag, version.version_id, update.previous_version_id
                )

            logger.info(
                "Schema pushed",
                extra={
                    "service_id": service_id,
                    "tag": tag,
                    "version_id": version.version_id,
                    "previous_version_id": update.previous_version_id,
                },
            )
            return {
                "service_id": service_id,
                "version_id": version.version_id,
                "content_hash": version.content_hash,
                "tag": tag,
                "previous_version_id": update.previous_version_id,
                "history_ref": entry.entry_id,
                "history_entry": entry.to_dict(),
            }

        except Exception as e:
            return self._error_response("Push", e)

    async def check(
        self,
        service_id: str,
        sdl: str,
        api_key: Optional[str],
        tag: Optional[str] = None,
        usage: Optional[Iterable[str]] = None,
    ) -> Dict[str, Any]:
        """Check a candidate schema against the version a tag points to.

        Args:
            service_id: Target service
            sdl: Candidate schema document
            api_key: Caller API key
            tag: Tag to compare against (defaults to "current")
            usage: Field-usage paths to weigh changes against; when omitted
                the recorded usage of the service is used

        Returns:
            Response with has_breaking_changes and the full change list,
            or an error
        """
        try:
            self.authenticate(api_key)
            self._require(service_id, "service_id")
            self._require(sdl, "sdl")
            tag = self._tag_or_default(tag)

            await self.engine.validate_async(sdl)

            base = await self.tag_index.resolve_tag(service_id, tag)

            usage_sample = self._usage_paths(usage)
            if usage_sample is None:
                usage_sample = await self.usage_store.get_usage(
                    service_id, min_hits=self.min_usage_hits
                )

            result = await self.engine.check(
                base.sdl_text, sdl, usage_sample, from_version_id=base.version_id
            )
            response = result.to_dict()
            response["service_id"] = service_id
            response["tag"] = tag
            return response

        except Exception as e:
            return self._error_response("Check", e)

    async def history(
        self,
        service_id: str,
        api_key: Optional[str],
        tag: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Push history of a service, newest first.

        Args:
            service_id: Target service
            api_key: Caller API key
            tag: Only entries for this tag (all tags if None)
            limit: Maximum entries (capped at MAX_HISTORY_LIMIT)
        """
        try:
            self.authenticate(api_key)
            self._require(service_id, "service_id")
            if limit is not None and limit <= 0:
                raise ValidationError("limit must be positive")
            limit = min(limit or MAX_HISTORY_LIMIT, MAX_HISTORY_LIMIT)

            entries = await self.history_log.list_history(service_id, tag=tag, limit=limit)
            return {
                "service_id": service_id,
                "entries": [e.to_dict() for e in entries],
            }

        except Exception as e:
            return self._error_response("History", e)

    # =========================================================================
    # Lookups
    # =========================================================================

    async def get_version(self, version_id: str, api_key: Optional[str]) -> Dict[str, Any]:
        """Get a stored schema version, SDL included."""
        try:
            self.authenticate(api_key)
            self._require(version_id, "version_id")
            version = await self.schema_store.get(version_id)
            return {"version": version.to_dict()}
        except Exception as e:
            return self._error_response("GetVersion", e)

    async def resolve_tag(
        self,
        service_id: str,
        tag: str,
        api_key: Optional[str],
    ) -> Dict[str, Any]:
        """Resolve a tag to the schema version it points to."""
        try:
            self.authenticate(api_key)
            self._require(service_id, "service_id")
            self._require(tag, "tag")

            version = await self.tag_index.resolve_tag(service_id, tag)
            return {
                "service_id": service_id,
                "tag": tag,
                "version": version.to_dict(),
            }
        except Exception as e:
            return self._error_response("ResolveTag", e)

    async def list_tags(self, service_id: str, api_key: Optional[str]) -> Dict[str, Any]:
        """List every tag of a service."""
        try:
            self.authenticate(api_key)
            self._require(service_id, "service_id")
            tags = await self.tag_index.list_tags(service_id)
            return {
                "service_id": service_id,
                "tags": [t.to_dict() for t in tags],
            }
        except Exception as e:
            return self._error_response("ListTags", e)

    # =========================================================================
    # Usage / Health
    # =========================================================================

    async def report_usage(
        self,
        service_id: str,
        paths: List[str],
        api_key: Optional[str],
    ) -> Dict[str, Any]:
        """Record field-usage paths observed in client traffic."""
        try:
            self.authenticate(api_key)
            self._require(service_id, "service_id")
            if not isinstance(paths, list) or not all(isinstance(p, str) for p in paths):
                raise ValidationError("paths must be a list of strings")

            recorded = await self.usage_store.record_usage(service_id, paths)
            return {"service_id": service_id, "recorded": recorded}
        except Exception as e:
            return self._error_response("ReportUsage", e)

    async def health(self) -> Dict[str, Any]:
        """Health check; needs no API key."""
        healthy = await asyncio.to_thread(self.database.is_healthy)
        return {
            "healthy": healthy,
            "components": {
                "database": "ok" if healthy else "unavailable",
                "diff_cache_entries": len(self.engine.cache),
            },
        }
