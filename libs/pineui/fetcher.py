"""Single-shot HTTP GET used by every remote PineUI resource."""

import json
import logging
from typing import Any, Dict, Optional

import httpx

from libs.core.exceptions import FetchError

logger = logging.getLogger(__name__)

USER_AGENT = "pineui-builder/1.0"


class RemoteFetcher:
    """
    Async GET client. No caching, no retries, transport default timeouts.

    Any transport failure or non-2xx status is reported as FetchError; callers
    decide how to degrade.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"User-Agent": USER_AGENT},
                follow_redirects=True,
            )
        return self._client

    async def close(self):
        """Close the underlying client if this fetcher created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def fetch(self, url: str) -> bytes:
        """
        GET a URL and return the full body.

        Raises:
            FetchError: connection failure or non-2xx status
        """
        try:
            resp = await self._get_client().get(url)
        except httpx.HTTPError as e:
            raise FetchError(f"GET {url} failed: {e}", url=url) from e

        if not resp.is_success:
            raise FetchError(
                f"GET {url} returned HTTP {resp.status_code}",
                url=url,
                context={"status_code": resp.status_code},
            )

        logger.debug(f"[Fetcher] GET {url} -> {len(resp.content)} bytes")
        return resp.content

    async def fetch_text(self, url: str) -> str:
        """GET a URL and decode it as UTF-8 text."""
        body = await self.fetch(url)
        try:
            return body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise FetchError(f"GET {url} returned non UTF-8 body", url=url) from e

    async def fetch_json(self, url: str) -> Dict[str, Any]:
        """GET a URL that must return a JSON object."""
        body = await self.fetch(url)
        try:
            data = json.loads(body)
        except ValueError as e:
            raise FetchError(f"GET {url} returned malformed JSON: {e}", url=url) from e
        if not isinstance(data, dict):
            raise FetchError(f"GET {url} returned {type(data).__name__}, expected object", url=url)
        return data
