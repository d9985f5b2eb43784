"""
Builder Router Modules

Router Organization:
    - health: Health check with resource state
    - generate: Schema generation SSE stream
    - pineui: Resolved PineUI version and bundle URLs
    - projects: Saved project manifest and SPA entry
"""

from apps.services.builder.routers.health import router as health_router
from apps.services.builder.routers.generate import router as generate_router
from apps.services.builder.routers.pineui import router as pineui_router
from apps.services.builder.routers.projects import router as projects_router

__all__ = [
    "health_router",
    "generate_router",
    "pineui_router",
    "projects_router",
]
