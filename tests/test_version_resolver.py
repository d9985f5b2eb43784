"""
Tests for the PineUI version resolver and its background bundle downloads.
"""

import asyncio
import logging

import pytest

from libs.pineui import LATEST_VERSION, BundleResolver, VersionResolver

REGISTRY_URL = "https://registry.example.test/@pineui/react/latest"
BUNDLE_BASE = "https://cdn.example.test"
TTL = 300.0


def _bundle_urls(version):
    dist = f"{BUNDLE_BASE}/@pineui/react@{version}/dist"
    return f"{dist}/pineui.standalone.js", f"{dist}/style.css"


@pytest.fixture
def bundles(fetcher, tmp_path):
    return BundleResolver(fetcher, tmp_path / "pineui", base_url=BUNDLE_BASE)


@pytest.fixture
def resolver(state, fetcher, bundles):
    return VersionResolver(state, fetcher, REGISTRY_URL, bundles=bundles, ttl_seconds=TTL)


def _publish(fetcher, version):
    fetcher.respond(REGISTRY_URL, f'{{"name": "@pineui/react", "version": "{version}"}}')
    script_url, style_url = _bundle_urls(version)
    fetcher.respond(script_url, b"console.log('pineui');")
    fetcher.respond(style_url, b".pine{}")


class TestResolution:
    @pytest.mark.asyncio
    async def test_resolves_and_caches(self, resolver, fetcher, clock):
        _publish(fetcher, "1.2.0")

        assert await resolver.get_version() == "1.2.0"
        clock.advance(TTL - 1)
        assert await resolver.get_version() == "1.2.0"
        assert fetcher.calls_to(REGISTRY_URL) == 1

    @pytest.mark.asyncio
    async def test_refreshes_after_ttl(self, resolver, fetcher, clock):
        _publish(fetcher, "1.2.0")
        await resolver.get_version()

        _publish(fetcher, "1.3.0")
        clock.advance(TTL + 1)
        assert await resolver.get_version() == "1.3.0"

    @pytest.mark.asyncio
    async def test_sentinel_when_never_resolved(self, resolver, state):
        assert await resolver.get_version() == LATEST_VERSION
        assert state.version.is_sentinel
        assert state.version_failures == 1

    @pytest.mark.asyncio
    async def test_failure_keeps_last_good_version(self, resolver, fetcher, clock):
        _publish(fetcher, "1.2.0")
        await resolver.get_version()

        fetcher.fail(REGISTRY_URL)
        clock.advance(TTL + 1)
        assert await resolver.get_version() == "1.2.0"

    @pytest.mark.asyncio
    async def test_malformed_registry_response_is_transient(self, resolver, fetcher, clock):
        _publish(fetcher, "1.2.0")
        await resolver.get_version()
        clock.advance(TTL + 1)

        fetcher.respond(REGISTRY_URL, "not json")
        assert await resolver.get_version() == "1.2.0"

        fetcher.respond(REGISTRY_URL, '{"name": "@pineui/react"}')
        assert await resolver.get_version() == "1.2.0"

    @pytest.mark.asyncio
    async def test_concurrent_calls_share_one_lookup(self, resolver, fetcher):
        _publish(fetcher, "1.2.0")
        fetcher.delay = 0.01

        results = await asyncio.gather(*(resolver.get_version() for _ in range(10)))

        assert set(results) == {"1.2.0"}
        assert fetcher.calls_to(REGISTRY_URL) == 1


class TestBundleTrigger:
    @pytest.mark.asyncio
    async def test_new_version_downloads_bundle(self, resolver, fetcher, bundles):
        _publish(fetcher, "2.0.0")

        await resolver.get_version()
        await resolver.wait_for_downloads()

        pair = bundles.paths_for("2.0.0")
        assert pair.present
        assert pair.script_path.read_bytes() == b"console.log('pineui');"

    @pytest.mark.asyncio
    async def test_same_version_with_bundle_does_not_respawn(self, resolver, fetcher, clock):
        _publish(fetcher, "2.0.0")
        await resolver.get_version()
        await resolver.wait_for_downloads()

        clock.advance(TTL + 1)
        await resolver.get_version()

        assert resolver.pending_downloads == 0
        script_url, _ = _bundle_urls("2.0.0")
        assert fetcher.calls_to(script_url) == 1

    @pytest.mark.asyncio
    async def test_bundle_failure_is_logged_not_raised(self, resolver, fetcher, bundles, caplog):
        fetcher.respond(REGISTRY_URL, '{"version": "3.0.0"}')

        with caplog.at_level(logging.WARNING):
            assert await resolver.get_version() == "3.0.0"
            await resolver.wait_for_downloads()

        assert not bundles.is_present("3.0.0")
        assert "Bundle download failed" in caplog.text

    @pytest.mark.asyncio
    async def test_failed_bundle_retried_on_next_resolution(self, resolver, fetcher, bundles, clock):
        fetcher.respond(REGISTRY_URL, '{"version": "3.0.0"}')
        await resolver.get_version()
        await resolver.wait_for_downloads()

        _publish(fetcher, "3.0.0")
        clock.advance(TTL + 1)
        await resolver.get_version()
        await resolver.wait_for_downloads()

        assert bundles.is_present("3.0.0")

    @pytest.mark.asyncio
    async def test_sentinel_never_triggers_download(self, resolver):
        await resolver.get_version()
        assert resolver.pending_downloads == 0
