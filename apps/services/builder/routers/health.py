"""
Health Check Router

Endpoints:
    GET /health - Service status with cached PineUI resource state
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter

from apps.services.builder.dependencies import get_claude_client, get_resource_state

logger = logging.getLogger("uvicorn.error")

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> Dict[str, Any]:
    """
    Degraded while no PROMPT.md has been loaded or no API key is set.
    """
    resources = get_resource_state().snapshot()
    api_key_configured = get_claude_client().configured
    ready = resources["document"] is not None and api_key_configured
    return {
        "status": "healthy" if ready else "degraded",
        "api_key_configured": api_key_configured,
        "resources": resources,
    }
