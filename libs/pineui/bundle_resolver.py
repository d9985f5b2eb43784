"""
PineUI Bundle Resolver

Materializes the standalone script and stylesheet for a resolved version under
public/pineui/, once per version. Files are named from the version string, so
repeated calls for a version that is already on disk are no-ops.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict

from libs.core.exceptions import BundleDownloadError, FetchError
from libs.pineui.document_cache import write_atomic
from libs.pineui.fetcher import RemoteFetcher

logger = logging.getLogger(__name__)


def safe_version(version: str) -> str:
    """Filename-safe form of a version string."""
    return re.sub(r"[^A-Za-z0-9_.+-]", "_", version) or "_"


@dataclass(frozen=True)
class BundleArtifactPair:
    """Script + stylesheet paths for one version."""
    version: str
    script_path: Path
    style_path: Path

    @property
    def present(self) -> bool:
        return _non_empty(self.script_path) and _non_empty(self.style_path)

    @property
    def script_name(self) -> str:
        return self.script_path.name

    @property
    def style_name(self) -> str:
        return self.style_path.name


def _non_empty(path: Path) -> bool:
    try:
        return path.stat().st_size > 0
    except OSError:
        return False


class BundleResolver:
    """Download-once store of PineUI bundles keyed by version."""

    def __init__(
        self,
        fetcher: RemoteFetcher,
        bundle_dir: Path,
        base_url: str = "https://unpkg.com",
        package: str = "@pineui/react",
        script_asset: str = "pineui.standalone.js",
        style_asset: str = "style.css",
    ):
        self.fetcher = fetcher
        self.bundle_dir = Path(bundle_dir)
        self.base_url = base_url.rstrip("/")
        self.package = package
        self.script_asset = script_asset
        self.style_asset = style_asset
        self._locks: Dict[str, asyncio.Lock] = {}

    def paths_for(self, version: str) -> BundleArtifactPair:
        """Deterministic local paths for a version."""
        name = safe_version(version)
        return BundleArtifactPair(
            version=version,
            script_path=self.bundle_dir / f"pineui-{name}.js",
            style_path=self.bundle_dir / f"pineui-{name}.css",
        )

    def dist_url(self, version: str) -> str:
        return f"{self.base_url}/{self.package}@{version}/dist"

    def remote_urls(self, version: str) -> Dict[str, str]:
        """CDN URLs used when the local pair is missing."""
        dist = self.dist_url(version)
        return {
            "script": f"{dist}/{self.script_asset}",
            "style": f"{dist}/{self.style_asset}",
        }

    def is_present(self, version: str) -> bool:
        return self.paths_for(version).present

    def _lock_for(self, version: str) -> asyncio.Lock:
        lock = self._locks.get(version)
        if lock is None:
            lock = self._locks[version] = asyncio.Lock()
        return lock

    async def ensure_bundle(self, version: str) -> BundleArtifactPair:
        """
        Make sure both artifacts for a version exist locally.

        Concurrent calls for one version are serialized; different versions
        proceed in parallel.

        Raises:
            BundleDownloadError: either download failed (nothing is written)
        """
        pair = self.paths_for(version)
        if pair.present:
            return pair

        async with self._lock_for(version):
            # Another caller may have finished while we waited
            if pair.present:
                return pair
            await self._download(pair)
        return pair

    async def _download(self, pair: BundleArtifactPair) -> None:
        urls = self.remote_urls(pair.version)
        logger.info(f"[Bundle] Downloading PineUI v{pair.version} bundle from {self.dist_url(pair.version)}")

        try:
            script, style = await asyncio.gather(
                self.fetcher.fetch(urls["script"]),
                self.fetcher.fetch(urls["style"]),
            )
        except FetchError as e:
            raise BundleDownloadError(
                f"Bundle download failed for {pair.version}: {e.message}",
                version=pair.version,
                context={"url": e.url},
            ) from e

        if not script or not style:
            raise BundleDownloadError(
                f"Bundle download for {pair.version} returned an empty artifact",
                version=pair.version,
            )

        try:
            write_atomic(pair.script_path, script)
            write_atomic(pair.style_path, style)
        except OSError as e:
            pair.script_path.unlink(missing_ok=True)
            pair.style_path.unlink(missing_ok=True)
            raise BundleDownloadError(
                f"Bundle write failed for {pair.version}: {e}",
                version=pair.version,
            ) from e

        logger.info(f"[Bundle] PineUI bundle cached ({len(script) + len(style)} bytes)")
