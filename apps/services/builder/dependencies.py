"""
Builder Dependencies Module

Provides singleton instances with lazy initialization for the builder service.
One ResourceState is created per process and passed explicitly to the
document cache and version resolver.
"""

import logging
from typing import Optional

from apps.services.builder.config import (
    MANIFEST_FILE,
    PINEUI_DIR,
    PROMPT_FILE,
    SCHEMAS_DIR,
    read_design_guide,
    settings,
)
from apps.services.builder.project_store import ProjectStore
from apps.services.builder.rate_limiter import ClientRateLimiter
from libs.llm.claude_client import ClaudeStreamClient
from libs.llm.relay import StreamingRelay
from libs.pineui import (
    BundleResolver,
    ContextDocumentCache,
    RemoteFetcher,
    ResourceState,
    VersionResolver,
)

logger = logging.getLogger("uvicorn.error")

# =============================================================================
# Private Singleton Storage
# =============================================================================

_resource_state: Optional[ResourceState] = None
_fetcher: Optional[RemoteFetcher] = None
_document_cache: Optional[ContextDocumentCache] = None
_bundle_resolver: Optional[BundleResolver] = None
_version_resolver: Optional[VersionResolver] = None
_claude_client: Optional[ClaudeStreamClient] = None
_streaming_relay: Optional[StreamingRelay] = None
_project_store: Optional[ProjectStore] = None
_rate_limiter: Optional[ClientRateLimiter] = None


# =============================================================================
# PineUI Context Resources
# =============================================================================


def get_resource_state() -> ResourceState:
    """Get the process-wide resource state."""
    global _resource_state
    if _resource_state is None:
        _resource_state = ResourceState()
        logger.info("[Dependencies] Resource state initialized")
    return _resource_state


def get_fetcher() -> RemoteFetcher:
    """Get the shared remote fetcher."""
    global _fetcher
    if _fetcher is None:
        _fetcher = RemoteFetcher()
        logger.info("[Dependencies] Remote fetcher initialized")
    return _fetcher


def get_document_cache() -> ContextDocumentCache:
    """Get the PROMPT.md cache singleton."""
    global _document_cache
    if _document_cache is None:
        _document_cache = ContextDocumentCache(
            state=get_resource_state(),
            fetcher=get_fetcher(),
            url=settings.pineui.prompt_url,
            mirror_path=PROMPT_FILE,
            ttl_seconds=settings.pineui.cache_ttl_seconds,
        )
        logger.info("[Dependencies] Context document cache initialized")
    return _document_cache


def get_bundle_resolver() -> BundleResolver:
    """Get the bundle resolver singleton."""
    global _bundle_resolver
    if _bundle_resolver is None:
        _bundle_resolver = BundleResolver(
            fetcher=get_fetcher(),
            bundle_dir=PINEUI_DIR,
            base_url=settings.pineui.bundle_base_url,
            package=settings.pineui.package,
            script_asset=settings.pineui.script_asset,
            style_asset=settings.pineui.style_asset,
        )
        logger.info("[Dependencies] Bundle resolver initialized")
    return _bundle_resolver


def get_version_resolver() -> VersionResolver:
    """Get the version resolver singleton."""
    global _version_resolver
    if _version_resolver is None:
        _version_resolver = VersionResolver(
            state=get_resource_state(),
            fetcher=get_fetcher(),
            registry_url=settings.pineui.registry_url,
            bundles=get_bundle_resolver(),
            ttl_seconds=settings.pineui.cache_ttl_seconds,
        )
        logger.info("[Dependencies] Version resolver initialized")
    return _version_resolver


# =============================================================================
# LLM
# =============================================================================


def get_claude_client() -> ClaudeStreamClient:
    """Get the Claude streaming client singleton."""
    global _claude_client
    if _claude_client is None:
        _claude_client = ClaudeStreamClient(
            api_key=settings.anthropic.api_key,
            model=settings.anthropic.model,
            max_tokens=settings.anthropic.max_tokens,
        )
        logger.info(f"[Dependencies] Claude client initialized (model={settings.anthropic.model})")
    return _claude_client


def get_streaming_relay() -> StreamingRelay:
    """Get the streaming relay singleton."""
    global _streaming_relay
    if _streaming_relay is None:
        _streaming_relay = StreamingRelay(
            provider=get_claude_client(),
            document_cache=get_document_cache(),
            design_guide=read_design_guide,
        )
        logger.info("[Dependencies] Streaming relay initialized")
    return _streaming_relay


# =============================================================================
# Projects and Rate Limiting
# =============================================================================


def get_project_store() -> ProjectStore:
    """Get the project manifest store singleton."""
    global _project_store
    if _project_store is None:
        _project_store = ProjectStore(MANIFEST_FILE, SCHEMAS_DIR)
        logger.info("[Dependencies] Project store initialized")
    return _project_store


def get_rate_limiter() -> ClientRateLimiter:
    """Get the generate endpoint rate limiter singleton."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = ClientRateLimiter(
            max_requests=settings.rate_limit.max_requests,
            window_seconds=settings.rate_limit.window_seconds,
        )
        logger.info(
            f"[Dependencies] Rate limiter initialized "
            f"({settings.rate_limit.max_requests} req / {settings.rate_limit.window_seconds:.0f}s per IP)"
        )
    return _rate_limiter


# =============================================================================
# Initialization Helper
# =============================================================================


def initialize_all():
    """
    Initialize all singleton dependencies.

    Call this during application startup to ensure all services are ready.
    """
    logger.info("[Dependencies] Initializing all singletons...")

    get_resource_state()
    get_fetcher()
    get_document_cache()
    get_bundle_resolver()
    get_version_resolver()

    get_claude_client()
    get_streaming_relay()

    get_project_store()
    get_rate_limiter()

    logger.info("[Dependencies] All singletons initialized")


async def close_all():
    """Wait for background downloads and release network clients."""
    if _version_resolver is not None:
        await _version_resolver.wait_for_downloads()
    if _claude_client is not None:
        await _claude_client.close()
    if _fetcher is not None:
        await _fetcher.close()


# =============================================================================
# Reset (for testing)
# =============================================================================


def reset_all():
    """
    Reset all singletons to None.

    Use this in tests to ensure clean state between test runs.
    """
    global _resource_state, _fetcher, _document_cache, _bundle_resolver
    global _version_resolver, _claude_client, _streaming_relay
    global _project_store, _rate_limiter

    _resource_state = None
    _fetcher = None
    _document_cache = None
    _bundle_resolver = None
    _version_resolver = None
    _claude_client = None
    _streaming_relay = None
    _project_store = None
    _rate_limiter = None

    logger.info("[Dependencies] All singletons reset")
