"""
PineUI Context Document Cache

Serves PROMPT.md (the component contract) with bounded staleness.

Tiers, in order:
    1. in-memory copy younger than the TTL (no network)
    2. fresh fetch -> swap memory, overwrite the disk mirror
    3. fetch failed, stale memory copy exists -> re-record it as MEMORY and serve it
    4. fetch failed, no memory copy, disk mirror exists -> load it with unknown age
    5. nothing -> ContextUnavailable
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from libs.core.exceptions import ContextUnavailable, FetchError
from libs.pineui.fetcher import RemoteFetcher
from libs.pineui.state import CachedDocument, DocumentSource, ResourceState

logger = logging.getLogger(__name__)

_REFRESH_KEY = "document"


def write_atomic(path: Path, data: bytes) -> None:
    """Write bytes to path through a temp file in the same directory."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class ContextDocumentCache:
    """TTL cache for the remote contract document with a disk mirror."""

    def __init__(
        self,
        state: ResourceState,
        fetcher: RemoteFetcher,
        url: str,
        mirror_path: Path,
        ttl_seconds: float = 300.0,
    ):
        self.state = state
        self.fetcher = fetcher
        self.url = url
        self.mirror_path = Path(mirror_path)
        self.ttl_seconds = ttl_seconds

    async def get_document(self) -> str:
        """
        Return the latest known contract document.

        Raises:
            ContextUnavailable: cold start with no network and no disk mirror
        """
        doc = self.state.document
        now = self.state.now()
        if doc is not None and doc.is_fresh(now, self.ttl_seconds):
            logger.debug(
                f"[ContextCache] Using cached PROMPT.md "
                f"({len(doc.content)} chars, {doc.age(now):.0f}s ago)"
            )
            return doc.content

        doc = await self.state.refreshes.run(_REFRESH_KEY, self._refresh)
        return doc.content

    async def _refresh(self) -> CachedDocument:
        try:
            logger.info(f"[ContextCache] Fetching PROMPT.md from {self.url}")
            self.state.document_fetches += 1
            content = await self.fetcher.fetch_text(self.url)
            if not content.strip():
                raise FetchError("empty document", url=self.url)
        except FetchError as e:
            return self._fallback(e)

        fresh = CachedDocument(
            content=content,
            fetched_at=self.state.now(),
            source=DocumentSource.REMOTE,
        )
        self.state.document = fresh
        self._write_mirror(content)
        logger.info(f"[ContextCache] PineUI context loaded ({len(content)} chars)")
        return fresh

    def _fallback(self, err: FetchError) -> CachedDocument:
        current = self.state.document
        if current is not None:
            self.state.document_degradations += 1
            logger.warning(f"[ContextCache] Fetch failed ({err.message}), keeping in-memory copy")
            # Keeps fetched_at so the copy stays stale and the next call retries
            stale = CachedDocument(
                content=current.content,
                fetched_at=current.fetched_at,
                source=DocumentSource.MEMORY,
            )
            self.state.document = stale
            return stale

        content = self._read_mirror()
        if content is not None:
            self.state.document_degradations += 1
            logger.warning(f"[ContextCache] Fetch failed ({err.message}), using local {self.mirror_path.name}")
            loaded = CachedDocument(content=content, fetched_at=None, source=DocumentSource.DISK)
            self.state.document = loaded
            return loaded

        logger.error(f"[ContextCache] Cannot load PineUI context: {err.message}")
        raise ContextUnavailable(
            f"Cannot load PineUI context: {err.message}",
            context={"url": self.url, "mirror": str(self.mirror_path)},
        )

    def _write_mirror(self, content: str) -> None:
        try:
            write_atomic(self.mirror_path, content.encode("utf-8"))
        except OSError as e:
            logger.error(f"[ContextCache] Failed to mirror PROMPT.md to {self.mirror_path}: {e}")

    def _read_mirror(self) -> Optional[str]:
        if not self.mirror_path.exists():
            return None
        try:
            content = self.mirror_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"[ContextCache] Unreadable mirror {self.mirror_path}: {e}")
            return None
        return content if content.strip() else None
