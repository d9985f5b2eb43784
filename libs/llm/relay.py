"""
Streaming Relay

Relays one generation request from the model provider to an HTTP client as
server-sent events:

    data: {"text": "<fragment>"}     one per provider text delta, in order
    data: [DONE]                     on normal completion
    data: {"error": "<message>"}     on provider failure (instead of [DONE])

Session states:
    Idle -> RequestValidated -> ContextAttached -> Streaming -> Completed | Failed

Validation and context attachment happen in open_session(), before any byte
is sent, so their failures become ordinary HTTP errors. Once streaming starts,
failures are reported in-band. A producer task pulls from the provider into a
bounded queue; the response generator drains it and yields each event as soon
as it arrives. Closing the generator (client disconnect) cancels the producer,
which closes the provider stream.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence

from libs.core.exceptions import BuilderError, ConfigurationError, InvalidRequestError
from libs.core.logging_config import log_stream_end

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"
DONE_EVENT = f"data: {DONE_SENTINEL}\n\n"

RESPONSE_RULES = [
    "## Response Rules",
    "- Always respond with a valid PineUI JSON schema wrapped in a ```json code block",
    "- Before the JSON, write a brief 1–2 sentence description of what you built or changed",
    "- Never include any explanation after the JSON block",
    "- When the conversation history already contains a schema, make TARGETED changes — "
    "only modify what the user explicitly asks for. Preserve all other components, data, and structure.",
]

ALLOWED_ROLES = ("user", "assistant")

_TEXT = "text"
_DONE = "done"
_ERROR = "error"


def format_event(payload: Dict[str, Any]) -> str:
    """Frame one JSON payload as an SSE data event."""
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def compose_system_prompt(context: str, design_guide: str = "") -> str:
    """Build the system instruction from PROMPT.md, DESIGN.md and the rules."""
    return "\n".join([
        "You are an expert PineUI schema generator.",
        "",
        "## PineUI Component Documentation",
        context,
        "",
        "---",
        "",
        design_guide,
        "",
        "---",
        "",
        *RESPONSE_RULES,
    ])


def compose_messages(history: Sequence[Dict[str, str]], prompt: str) -> List[Dict[str, str]]:
    """Prior turns in order, then the new user prompt."""
    messages = []
    for turn in history:
        role = turn.get("role")
        if role not in ALLOWED_ROLES:
            raise InvalidRequestError(f"Invalid history role: {role!r}")
        messages.append({"role": role, "content": turn.get("content") or ""})
    messages.append({"role": "user", "content": prompt})
    return messages


class TerminalState(str, Enum):
    COMPLETED = "completed"
    PROVIDER_ERROR = "provider_error"
    CLIENT_DISCONNECTED = "client_disconnected"


@dataclass
class StreamSession:
    """One in-flight relay; owned by the request that opened it."""
    system: str
    messages: List[Dict[str, str]]
    started_at: float = field(default_factory=time.monotonic)
    bytes_forwarded: int = 0
    chars_forwarded: int = 0
    terminal_state: Optional[TerminalState] = None


class StreamingRelay:
    """Turns a provider text stream into an SSE event stream."""

    def __init__(
        self,
        provider,
        document_cache,
        design_guide: Optional[Callable[[], str]] = None,
        queue_size: int = 64,
    ):
        """
        Args:
            provider: object with `configured` and `stream_text(system, messages)`
            document_cache: object with `async get_document() -> str`
            design_guide: returns the optional local design guide text
            queue_size: bound on fragments buffered between provider and client
        """
        self.provider = provider
        self.document_cache = document_cache
        self.design_guide = design_guide or (lambda: "")
        self.queue_size = queue_size

    async def open_session(
        self,
        prompt: Optional[str],
        history: Optional[Sequence[Dict[str, str]]] = None,
    ) -> StreamSession:
        """
        Validate the request and attach the PineUI context.

        Raises:
            InvalidRequestError: empty prompt or malformed history
            ConfigurationError: provider has no API key
            ContextUnavailable: no contract document anywhere
        """
        if not prompt or not prompt.strip():
            raise InvalidRequestError("Prompt is required")
        messages = compose_messages(history or [], prompt)

        if not self.provider.configured:
            raise ConfigurationError("ANTHROPIC_API_KEY not configured")

        preview = prompt if len(prompt) <= 80 else prompt[:80] + "…"
        logger.info(f"[Relay] New request, history: {(len(messages) - 1) // 2} turns")
        logger.info(f'[Relay] Prompt: "{preview}"')

        context = await self.document_cache.get_document()
        system = compose_system_prompt(context, self.design_guide())
        return StreamSession(system=system, messages=messages)

    async def relay(
        self,
        session: StreamSession,
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
        poll_interval: float = 1.0,
    ) -> AsyncIterator[str]:
        """
        Yield framed events for a session until exactly one terminal event.

        No terminal event is produced when the consumer goes away first.
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        producer = asyncio.create_task(self._produce(session, queue))
        loop = asyncio.get_running_loop()
        next_check = loop.time() + poll_interval

        try:
            while True:
                if is_disconnected is None:
                    kind, value = await queue.get()
                else:
                    if loop.time() >= next_check:
                        next_check = loop.time() + poll_interval
                        if await is_disconnected():
                            logger.info("[Relay] Client disconnected")
                            break
                    try:
                        kind, value = await asyncio.wait_for(queue.get(), timeout=poll_interval)
                    except asyncio.TimeoutError:
                        continue

                if kind == _TEXT:
                    event = format_event({"text": value})
                    session.chars_forwarded += len(value)
                    session.bytes_forwarded += len(event.encode("utf-8"))
                    yield event
                elif kind == _DONE:
                    session.terminal_state = TerminalState.COMPLETED
                    yield DONE_EVENT
                    break
                else:
                    session.terminal_state = TerminalState.PROVIDER_ERROR
                    yield format_event({"error": value})
                    break
        finally:
            if session.terminal_state is None:
                session.terminal_state = TerminalState.CLIENT_DISCONNECTED
            if not producer.done():
                producer.cancel()
                try:
                    await producer
                except asyncio.CancelledError:
                    pass
            log_stream_end(
                logger,
                session.terminal_state.value,
                session.chars_forwarded,
                time.monotonic() - session.started_at,
            )

    async def _produce(self, session: StreamSession, queue: asyncio.Queue) -> None:
        stream = self.provider.stream_text(session.system, session.messages)
        try:
            async for text in stream:
                if text:
                    await queue.put((_TEXT, text))
            await queue.put((_DONE, None))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Any provider failure ends the session in-band
            message = e.message if isinstance(e, BuilderError) else str(e)
            logger.error(f"[Relay] Provider error: {message}")
            await queue.put((_ERROR, message or type(e).__name__))
        finally:
            await stream.aclose()
