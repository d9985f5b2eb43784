"""
PineUI Builder FastAPI Application

Structure:
    - config.py: Path constants (remote/provider settings in libs/core/config.py)
    - dependencies.py: Singleton instances with lazy initialization
    - lifespan.py: Startup preload, version refresh loop, shutdown
    - routers/: API endpoints
    - project_store.py, rate_limiter.py: local collaborators

Run:
    uvicorn apps.services.builder.app:app --port 3000
"""

import logging
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from apps.services.builder.config import PUBLIC_DIR, settings
from apps.services.builder.lifespan import lifespan
from apps.services.builder.routers import (
    generate_router,
    health_router,
    pineui_router,
    projects_router,
)
from apps.services.builder.schemas import error_body
from libs.core.exceptions import BuilderError
from libs.core.logging_config import log_request

logger = logging.getLogger("uvicorn.error")
request_logger = logging.getLogger("builder.requests")

# =============================================================================
# Application Factory
# =============================================================================

app = FastAPI(
    title="PineUI Builder",
    description="Natural language to PineUI schema, streamed from Claude",
    version="1.0.0",
    lifespan=lifespan,
)

# =============================================================================
# Middleware
# =============================================================================


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    log_request(
        request_logger,
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - start) * 1000,
    )
    return response


# =============================================================================
# Error Handlers
# =============================================================================


@app.exception_handler(BuilderError)
async def builder_error_handler(request: Request, exc: BuilderError):
    logger.error(f"[API] Error on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{location}: {first.get('msg', 'invalid request')}" if location else "Invalid request body"
    logger.warning(f"[API] Invalid request on {request.method} {request.url.path}: {message}")
    return JSONResponse(status_code=400, content=error_body(message))


# =============================================================================
# Routers
# =============================================================================

app.include_router(health_router)
app.include_router(generate_router)
app.include_router(pineui_router)
app.include_router(projects_router)

# =============================================================================
# Static Files (public/, including /schemas and /pineui bundles)
# =============================================================================

# Mounted last so API routes take precedence
app.mount("/", StaticFiles(directory=str(PUBLIC_DIR), html=True, check_dir=False), name="public")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.server.host, port=settings.server.port)
