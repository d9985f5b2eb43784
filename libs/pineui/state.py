"""
Process-wide PineUI resource state.

One ResourceState is built per process (see apps/services/builder/dependencies.py)
and handed to the document cache and the version resolver. Entries are frozen
records: a refresh builds a new record and swaps the reference, so a reader
sees either the previous value or the new one, never a half-fetched one.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

# Version used when the registry has never answered
LATEST_VERSION = "latest"


class DocumentSource(str, Enum):
    """Where the in-memory document came from."""
    REMOTE = "remote"
    DISK = "disk"
    MEMORY = "memory"


@dataclass(frozen=True)
class CachedDocument:
    """Contract document snapshot."""
    content: str
    fetched_at: Optional[float]  # None = unknown age, always stale
    source: DocumentSource

    def age(self, now: float) -> Optional[float]:
        if self.fetched_at is None:
            return None
        return now - self.fetched_at

    def is_fresh(self, now: float, ttl: float) -> bool:
        age = self.age(now)
        return age is not None and age < ttl


@dataclass(frozen=True)
class ResolvedVersion:
    """Resolved package version, or the LATEST_VERSION sentinel."""
    value: str = LATEST_VERSION
    resolved_at: Optional[float] = None

    @property
    def is_sentinel(self) -> bool:
        return self.value == LATEST_VERSION

    def is_fresh(self, now: float, ttl: float) -> bool:
        return self.resolved_at is not None and (now - self.resolved_at) < ttl


class SingleFlight:
    """
    Collapse concurrent calls for the same key into one in-flight task.

    Every caller awaits the same task through asyncio.shield, so a cancelled
    caller does not cancel the work for the others.
    """

    def __init__(self):
        self._inflight: Dict[str, asyncio.Task] = {}

    async def run(self, key: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._forget(k, t))
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task):
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Mark the outcome retrieved even when every waiter was cancelled
        if not task.cancelled():
            task.exception()


@dataclass
class ResourceState:
    """Shared, mutable cache entries for the lifetime of the process."""
    document: Optional[CachedDocument] = None
    version: ResolvedVersion = field(default_factory=ResolvedVersion)
    refreshes: SingleFlight = field(default_factory=SingleFlight)
    clock: Callable[[], float] = time.monotonic

    # Counters surfaced by /health
    document_fetches: int = 0
    document_degradations: int = 0
    version_fetches: int = 0
    version_failures: int = 0

    def now(self) -> float:
        return self.clock()

    def snapshot(self) -> Dict[str, Any]:
        """Summary for health checks and logs."""
        now = self.now()
        doc = self.document
        return {
            "document": None if doc is None else {
                "chars": len(doc.content),
                "source": doc.source.value,
                "age_seconds": None if doc.age(now) is None else round(doc.age(now), 1),
            },
            "version": self.version.value,
            "document_fetches": self.document_fetches,
            "document_degradations": self.document_degradations,
            "version_fetches": self.version_fetches,
            "version_failures": self.version_failures,
        }
