"""PineUI context resources: contract document, package version, bundles."""

from libs.pineui.fetcher import RemoteFetcher
from libs.pineui.state import (
    LATEST_VERSION,
    CachedDocument,
    DocumentSource,
    ResolvedVersion,
    ResourceState,
    SingleFlight,
)
from libs.pineui.document_cache import ContextDocumentCache
from libs.pineui.bundle_resolver import BundleArtifactPair, BundleResolver
from libs.pineui.version_resolver import VersionResolver

__all__ = [
    "RemoteFetcher",
    # State
    "LATEST_VERSION",
    "CachedDocument",
    "DocumentSource",
    "ResolvedVersion",
    "ResourceState",
    "SingleFlight",
    # Resources
    "ContextDocumentCache",
    "BundleArtifactPair",
    "BundleResolver",
    "VersionResolver",
]
