"""
Per-client rate limiter for the generate endpoint.

Design:
- Sliding window per client IP (default 10 requests / 60s)
- asyncio.Lock serializes bookkeeping across concurrent requests
- Rejected requests are not counted against the window
- Clients idle for a full window are dropped, at most once per window
"""
import asyncio
import logging
import time
from collections import deque
from typing import Callable, Deque, Dict

logger = logging.getLogger("uvicorn.error")

RATE_LIMIT_MESSAGE = "Too many requests. Please wait a moment before trying again."


class ClientRateLimiter:
    """Sliding-window request limiter keyed by client address."""

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._lock = asyncio.Lock()
        self._hits: Dict[str, Deque[float]] = {}
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._last_sweep = clock()

    @property
    def tracked_clients(self) -> int:
        return len(self._hits)

    async def acquire(self, client: str) -> bool:
        """
        Record a request from a client.

        Returns:
            True if allowed, False if the client is over its limit
        """
        async with self._lock:
            now = self._clock()
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(now)

            hits = self._hits.setdefault(client, deque())
            self._prune(hits, now)

            if len(hits) >= self.max_requests:
                logger.warning(f"[RateLimit] Rate limit hit, IP: {client}")
                return False

            hits.append(now)
            return True

    def _prune(self, hits: Deque[float], now: float):
        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()

    def _sweep(self, now: float):
        for client in list(self._hits):
            hits = self._hits[client]
            self._prune(hits, now)
            if not hits:
                del self._hits[client]
        self._last_sweep = now

    def remaining(self, client: str) -> int:
        hits = self._hits.get(client)
        if not hits:
            return self.max_requests
        now = self._clock()
        live = sum(1 for t in hits if now - t < self.window_seconds)
        return max(0, self.max_requests - live)

    def reset(self):
        self._hits.clear()
