"""
Claude streaming client.

Thin wrapper around anthropic.AsyncAnthropic that exposes one operation:
stream the text deltas of a Messages API response as an async iterator.
Closing the iterator (aclose) closes the provider stream.
"""

import logging
from typing import AsyncIterator, Dict, List, Optional

import anthropic

from libs.core.exceptions import ConfigurationError, ProviderStreamError

logger = logging.getLogger(__name__)


class ClaudeStreamClient:
    """Streaming text client targeting the Anthropic Messages API."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "claude-sonnet-4-6",
        max_tokens: int = 8192,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout
        # Client created lazily on first call
        self._client: Optional[anthropic.AsyncAnthropic] = None

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _ensure_client(self) -> anthropic.AsyncAnthropic:
        if not self.configured:
            raise ConfigurationError("ANTHROPIC_API_KEY not configured")
        if self._client is None:
            kwargs = {"api_key": self.api_key}
            if self.timeout is not None:
                kwargs["timeout"] = self.timeout
            self._client = anthropic.AsyncAnthropic(**kwargs)
        return self._client

    async def close(self):
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def stream_text(
        self,
        system: str,
        messages: List[Dict[str, str]],
    ) -> AsyncIterator[str]:
        """
        Yield text fragments in the order the provider produces them.

        Raises:
            ConfigurationError: no API key
            ProviderStreamError: the API failed before or during the stream
        """
        client = self._ensure_client()
        logger.info(f"[Claude] Streaming started (model={self.model}, messages={len(messages)})")

        try:
            async with client.messages.stream(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system,
                messages=messages,
            ) as stream:
                async for text in stream.text_stream:
                    yield text
        except anthropic.APIError as e:
            logger.error(f"[Claude] Claude API error: {e}")
            raise ProviderStreamError(str(e), context={"model": self.model}) from e
