"""
Generate Router

Endpoints:
    POST /api/generate - Stream a PineUI schema from Claude as SSE
"""

import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse

from apps.services.builder.config import settings
from apps.services.builder.dependencies import get_rate_limiter, get_streaming_relay
from apps.services.builder.rate_limiter import RATE_LIMIT_MESSAGE
from apps.services.builder.schemas import GenerateRequest
from libs.core.exceptions import InvalidRequestError

logger = logging.getLogger("uvicorn.error")

router = APIRouter(tags=["generate"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


def client_address(request: Request, trust_proxy: bool = False) -> str:
    """Peer address; X-Forwarded-For only counts behind a trusted proxy."""
    if trust_proxy:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


@router.post("/api/generate")
async def generate(body: GenerateRequest, request: Request):
    """
    Generate a schema from a prompt plus prior turns.

    Errors before streaming (rate limit, empty prompt, missing API key, no
    PineUI context) are plain JSON responses; provider errors after the
    stream has started arrive as a final `{"error": ...}` event.
    """
    ip = client_address(request, settings.server.trust_proxy)
    if not await get_rate_limiter().acquire(ip):
        raise HTTPException(status_code=429, detail=RATE_LIMIT_MESSAGE)

    relay = get_streaming_relay()
    try:
        session = await relay.open_session(
            body.prompt,
            [turn.model_dump() for turn in body.history],
        )
    except InvalidRequestError as e:
        logger.warning(f"[Generate] Rejected request from {ip}: {e.message}")
        raise

    return StreamingResponse(
        relay.relay(session, is_disconnected=request.is_disconnected),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
