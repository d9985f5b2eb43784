"""
PineUI Version Resolver

Resolves the published @pineui/react version from the npm registry under the
same TTL policy as the context document. Never raises: on failure the last
resolved version is kept, or LATEST_VERSION when none was ever resolved.

A resolution to a new version (or to one without a local bundle) starts a
background bundle download whose failure is only logged.
"""

import asyncio
import logging
from typing import Optional, Set

from libs.core.exceptions import BundleDownloadError, FetchError
from libs.pineui.bundle_resolver import BundleResolver
from libs.pineui.fetcher import RemoteFetcher
from libs.pineui.state import LATEST_VERSION, ResolvedVersion, ResourceState

logger = logging.getLogger(__name__)

_REFRESH_KEY = "version"


class VersionResolver:
    """TTL-cached registry lookup with a soft failure mode."""

    def __init__(
        self,
        state: ResourceState,
        fetcher: RemoteFetcher,
        registry_url: str,
        bundles: Optional[BundleResolver] = None,
        ttl_seconds: float = 300.0,
    ):
        self.state = state
        self.fetcher = fetcher
        self.registry_url = registry_url
        self.bundles = bundles
        self.ttl_seconds = ttl_seconds
        self._bundle_tasks: Set[asyncio.Task] = set()

    async def get_version(self) -> str:
        """Return the resolved version, refreshing it when stale."""
        current = self.state.version
        if current.is_fresh(self.state.now(), self.ttl_seconds):
            return current.value

        resolved = await self.state.refreshes.run(_REFRESH_KEY, self._refresh)
        return resolved.value

    async def _refresh(self) -> ResolvedVersion:
        previous = self.state.version
        self.state.version_fetches += 1
        try:
            data = await self.fetcher.fetch_json(self.registry_url)
            version = data.get("version")
            if not isinstance(version, str) or not version.strip():
                raise FetchError("no version field", url=self.registry_url)
        except FetchError as e:
            self.state.version_failures += 1
            if previous.is_sentinel:
                logger.warning(f"[Version] npm version fetch failed ({e.message}), falling back to @{LATEST_VERSION}")
            else:
                logger.warning(f"[Version] npm version fetch failed ({e.message}), using {previous.value}")
            return previous

        version = version.strip()
        resolved = ResolvedVersion(value=version, resolved_at=self.state.now())
        self.state.version = resolved
        logger.info(f"[Version] PineUI version resolved: {version}")

        if self.bundles is not None and (
            version != previous.value or not self.bundles.is_present(version)
        ):
            self._spawn_bundle_download(version)
        return resolved

    # =========================================================================
    # Background bundle downloads
    # =========================================================================

    def _spawn_bundle_download(self, version: str) -> None:
        task = asyncio.create_task(self.bundles.ensure_bundle(version), name=f"pineui-bundle-{version}")
        self._bundle_tasks.add(task)
        task.add_done_callback(self._on_bundle_done)

    def _on_bundle_done(self, task: asyncio.Task) -> None:
        self._bundle_tasks.discard(task)
        if task.cancelled():
            return
        err = task.exception()
        if err is None:
            return
        if isinstance(err, BundleDownloadError):
            logger.warning(f"[Version] Bundle download failed: {err.message}")
        else:
            logger.error(f"[Version] Bundle download crashed: {err!r}")

    @property
    def pending_downloads(self) -> int:
        return len(self._bundle_tasks)

    async def wait_for_downloads(self) -> None:
        """Wait for background bundle tasks (shutdown and tests)."""
        if self._bundle_tasks:
            await asyncio.gather(*list(self._bundle_tasks), return_exceptions=True)
