# conftest.py
# Puts the repository root on sys.path so tests can import both `libs.*` and
# `apps.services.*`, points DATA_DIR/PUBLIC_DIR/LOG_DIR at a scratch directory
# and the remote endpoints at a closed local port before the builder config is
# imported, and provides in-memory fakes for the remote PineUI endpoints and the
# model provider.

import asyncio
import os
import sys
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Union

import pytest

# conftest is at: tests/conftest.py
ROOT = Path(__file__).resolve().parents[1]
ROOT_STR = str(ROOT)

if ROOT_STR not in sys.path:
    sys.path.insert(0, ROOT_STR)

_SCRATCH = Path(tempfile.mkdtemp(prefix="pineui-builder-tests-"))
os.environ.setdefault("DATA_DIR", str(_SCRATCH / "data"))
os.environ.setdefault("PUBLIC_DIR", str(_SCRATCH / "public"))
os.environ.setdefault("LOG_DIR", str(_SCRATCH / "logs"))

# Remote endpoints refuse connections; a full app startup stays offline
_UNREACHABLE = "http://127.0.0.1:9"
os.environ.setdefault("PINEUI_PROMPT_URL", f"{_UNREACHABLE}/PROMPT.md")
os.environ.setdefault("PINEUI_REGISTRY_URL", f"{_UNREACHABLE}/@pineui/react/latest")
os.environ.setdefault("PINEUI_BUNDLE_BASE_URL", _UNREACHABLE)
os.environ.setdefault("ANTHROPIC_API_KEY", "sk-ant-test")

from libs.core.exceptions import FetchError, ProviderStreamError  # noqa: E402
from libs.pineui import RemoteFetcher, ResourceState  # noqa: E402


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeFetcher(RemoteFetcher):
    """
    RemoteFetcher with canned responses instead of the network.

    Unknown URLs fail like an unreachable host. fetch_text/fetch_json are the
    real implementations layered on the fake fetch().
    """

    def __init__(self, delay: float = 0.0):
        super().__init__()
        self.responses: Dict[str, Union[bytes, Exception]] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self.calls: List[str] = []
        self.delay = delay

    def respond(self, url: str, value: Union[bytes, str, Exception]):
        self.responses[url] = value.encode("utf-8") if isinstance(value, str) else value

    def fail(self, url: str):
        self.responses.pop(url, None)

    def calls_to(self, url: str) -> int:
        return sum(1 for c in self.calls if c == url)

    async def fetch(self, url: str) -> bytes:
        self.calls.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        gate = self.gates.get(url)
        if gate is not None:
            await gate.wait()
        value = self.responses.get(url)
        if value is None:
            raise FetchError(f"GET {url} failed: connection refused", url=url)
        if isinstance(value, Exception):
            raise value
        return value


class FakeProvider:
    """Model provider replaying fixed fragments, optionally failing midway."""

    def __init__(
        self,
        fragments: Optional[List[str]] = None,
        fail_after: Optional[int] = None,
        endless: bool = False,
        configured: bool = True,
    ):
        self.fragments = fragments or []
        self.fail_after = fail_after
        self.endless = endless
        self.configured = configured
        self.calls: List[dict] = []
        self.closed = False

    async def stream_text(self, system, messages):
        self.calls.append({"system": system, "messages": messages})
        try:
            for i, fragment in enumerate(self.fragments):
                if self.fail_after is not None and i == self.fail_after:
                    raise ProviderStreamError("Overloaded")
                await asyncio.sleep(0)
                yield fragment
            if self.fail_after is not None and self.fail_after >= len(self.fragments):
                raise ProviderStreamError("Overloaded")
            while self.endless:
                await asyncio.sleep(0.01)
                yield "."
        finally:
            self.closed = True


class StaticDocuments:
    """Document cache stand-in."""

    def __init__(self, content: str = "PINEUI DOCS", error: Optional[Exception] = None):
        self.content = content
        self.error = error
        self.calls = 0

    async def get_document(self) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.content


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def state(clock):
    return ResourceState(clock=clock)


@pytest.fixture
def make_provider():
    return FakeProvider


@pytest.fixture
def make_documents():
    return StaticDocuments
