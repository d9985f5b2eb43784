"""LLM libraries for PineUI Builder."""

from libs.llm.claude_client import ClaudeStreamClient
from libs.llm.relay import (
    DONE_EVENT,
    DONE_SENTINEL,
    StreamingRelay,
    StreamSession,
    TerminalState,
    compose_messages,
    compose_system_prompt,
    format_event,
)

__all__ = [
    # Client
    "ClaudeStreamClient",
    # Relay
    "DONE_EVENT",
    "DONE_SENTINEL",
    "StreamingRelay",
    "StreamSession",
    "TerminalState",
    "compose_messages",
    "compose_system_prompt",
    "format_event",
]
