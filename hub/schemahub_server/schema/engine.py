"""
Diff/validation engine for SchemaHub.

The engine wraps the pure diff in compat.py with:
- SDL validation for incoming documents
- Memoization of diffs keyed by the pair of content hashes
- A time bound, so the registry can report TIMEOUT instead of hanging
- Usage-aware checks ("has breaking changes" only counts used elements)

Invariants:
    - Cached results are keyed by content, never by version id
    - A check either returns a complete result or raises; never a partial list
    - Validation and diffs run in a worker thread under timeout_seconds;
      the event loop is never blocked

How to change safely:
    - Changing the policy must clear the cache (create a new engine)
    - Keep cache entries immutable; they are shared between callers
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import threading
from collections import OrderedDict
from typing import Iterable, Optional, Tuple

from ..errors import RegistryTimeoutError
from .changes import Change, CheckResult, DiffResult
from .compat import diff_schemas
from .parser import parse_sdl, validate_sdl
from .policy import SeverityPolicy

logger = logging.getLogger(__name__)


def content_hash(sdl_text: str) -> str:
    """Content hash of an SDL document.

    Returns:
        Hash string in format 'sha256:<hex>'
    """
    digest = hashlib.sha256(sdl_text.encode("utf-8")).hexdigest()
    return f"sha256:{digest}"


class DiffCache:
    """Thread-safe LRU cache of change lists keyed by content-hash pairs."""

    def __init__(self, max_entries: int = 256) -> None:
        self.max_entries = max_entries
        self._entries: OrderedDict[Tuple[str, str], Tuple[Change, ...]] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: Tuple[str, str]) -> Optional[Tuple[Change, ...]]:
        with self._lock:
            changes = self._entries.get(key)
            if changes is None:
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return changes

    def put(self, key: Tuple[str, str], changes: Tuple[Change, ...]) -> None:
        if self.max_entries <= 0:
            return
        with self._lock:
            self._entries[key] = changes
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def __len__(self) -> int:
        return len(self._entries)


class DiffEngine:
    """Parses, diffs and checks schema documents.

    Attributes:
        policy: Severity policy applied to every diff
        timeout_seconds: Upper bound for a single async diff
        cache: Memoized change lists

    Example:
        >>> engine = DiffEngine()
        >>> result = engine.diff_sdl(
        ...     "type Query { name: String! }",
        ...     "type Query { age: Int }",
        ... )
        >>> [c.change_type.name for c in result.changes]
        ['FIELD_ADDED', 'FIELD_REMOVED']
    """

    def __init__(
        self,
        policy: Optional[SeverityPolicy] = None,
        cache_size: int = 256,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.policy = policy or SeverityPolicy()
        self.timeout_seconds = timeout_seconds
        self.cache = DiffCache(cache_size)

    def validate(self, sdl_text: str) -> None:
        """Reject malformed SDL.

        Raises:
            ValidationError: If the document is not valid SDL
        """
        validate_sdl(sdl_text)

    async def validate_async(self, sdl_text: str) -> None:
        """Validate SDL in a worker thread, bounded by timeout_seconds.

        Raises:
            RegistryTimeoutError: If validation does not finish in time
            ValidationError: If the document is not valid SDL
        """
        try:
            await asyncio.wait_for(
                asyncio.to_thread(self.validate, sdl_text),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Schema validation timed out",
                extra={
                    "content_hash": content_hash(sdl_text),
                    "timeout_seconds": self.timeout_seconds,
                },
            )
            raise RegistryTimeoutError(
                f"Schema validation exceeded {self.timeout_seconds}s",
                timeout_seconds=self.timeout_seconds,
            ) from None

    def diff_sdl(
        self,
        old_sdl: str,
        new_sdl: str,
        from_version_id: Optional[str] = None,
        to_version_id: Optional[str] = None,
    ) -> DiffResult:
        """Diff two SDL documents.

        Args:
            old_sdl: Baseline document
            new_sdl: Candidate document
            from_version_id: Baseline version id for the result
            to_version_id: Candidate version id for the result

        Returns:
            DiffResult with every change marked in use

        Raises:
            ValidationError: If either document is not valid SDL
        """
        key = (content_hash(old_sdl), content_hash(new_sdl))
        changes = self.cache.get(key)

        if changes is None:
            if key[0] == key[1]:
                changes = ()
            else:
                diff = diff_schemas(parse_sdl(old_sdl), parse_sdl(new_sdl), self.policy)
                changes = diff.changes
            self.cache.put(key, changes)

        return DiffResult(
            from_version_id=from_version_id,
            to_version_id=to_version_id,
            changes=changes,
        )

    async def diff_sdl_async(
        self,
        old_sdl: str,
        new_sdl: str,
        from_version_id: Optional[str] = None,
        to_version_id: Optional[str] = None,
    ) -> DiffResult:
        """Diff two SDL documents in a worker thread, bounded by timeout_seconds.

        Raises:
            RegistryTimeoutError: If the diff does not finish in time
            ValidationError: If either document is not valid SDL
        """
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(
                    self.diff_sdl, old_sdl, new_sdl, from_version_id, to_version_id
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Schema diff timed out",
                extra={
                    "from_version_id": from_version_id,
                    "timeout_seconds": self.timeout_seconds,
                },
            )
            raise RegistryTimeoutError(
                f"Schema diff exceeded {self.timeout_seconds}s",
                timeout_seconds=self.timeout_seconds,
            ) from None

    async def check(
        self,
        base_sdl: str,
        candidate_sdl: str,
        usage_sample: Optional[Iterable[str]],
        from_version_id: Optional[str] = None,
    ) -> CheckResult:
        """Check a candidate document against a baseline.

        Args:
            base_sdl: SDL of the version currently pointed to by the tag
            candidate_sdl: SDL the client wants to deploy
            usage_sample: Field-usage paths exercised by traffic, or None
                when no usage is known (every change then counts as used)
            from_version_id: Baseline version id

        Returns:
            CheckResult; has_breaking_changes is True iff a BREAKING change
            intersects the usage sample
        """
        diff = await self.diff_sdl_async(base_sdl, candidate_sdl, from_version_id)
        result = CheckResult(diff=diff.with_usage(usage_sample))
        logger.info(
            "Schema check completed",
            extra={
                "from_version_id": from_version_id,
                "change_count": len(result.changes),
                "breaking_count": len(diff.breaking),
                "has_breaking_changes": result.has_breaking_changes,
            },
        )
        return result
