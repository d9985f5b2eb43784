"""
PineUI Router

Endpoints:
    GET /api/pineui-version - Resolved version with script/style URLs
"""

import logging

from fastapi import APIRouter

from apps.services.builder.dependencies import get_bundle_resolver, get_version_resolver
from apps.services.builder.schemas import PineUIVersionOut

logger = logging.getLogger("uvicorn.error")

router = APIRouter(tags=["pineui"])


@router.get("/api/pineui-version", response_model=PineUIVersionOut)
async def pineui_version() -> PineUIVersionOut:
    """
    Local bundle paths when the pair is on disk, CDN URLs otherwise.
    """
    version = await get_version_resolver().get_version()
    bundles = get_bundle_resolver()
    pair = bundles.paths_for(version)

    if pair.present:
        return PineUIVersionOut(
            version=version,
            js=f"/pineui/{pair.script_name}",
            css=f"/pineui/{pair.style_name}",
        )

    remote = bundles.remote_urls(version)
    return PineUIVersionOut(version=version, js=remote["script"], css=remote["style"])
