"""
FastAPI application entrypoint.

Lifespan:
  • On startup: verify DB connectivity, start the session sweepers
    (sandboxes and web previews expire in the background too).
  • On shutdown: cancel the sweepers, dispose the engine cleanly.

Routers:
  • /api/projects — projects and their files
  • /api/sandbox  — Expo sandbox sessions and logs
  • /api/preview  — web previews and device mocks
  • /api/keys     — users' AI provider keys
  • /api/usage    — usage statistics
  • /health       — shallow liveness probe
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from capycode.core.config import settings
from capycode.core.database import engine, ping
from capycode.routers.preview import router as preview_router
from capycode.routers.projects import router as projects_router
from capycode.routers.provider_keys import router as provider_keys_router
from capycode.routers.sandbox import router as sandbox_router
from capycode.routers.usage import router as usage_router
from capycode.services.sandbox import sandbox_service
from capycode.services.web_preview import preview_service

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""

    # Fail soft if the database is down at boot
    try:
        await ping()
        logger.info("Database connection verified ✓")
    except Exception:
        logger.warning(
            "Could not reach the database on startup. "
            "The app will start, but requests will fail until the DB is available."
        )

    # Idle sandboxes and previews also expire between requests
    interval = settings.SANDBOX_SWEEP_INTERVAL_S
    sweepers = [
        asyncio.create_task(sandbox_service.run_sweeper(interval)),
        asyncio.create_task(preview_service.run_sweeper(interval)),
    ]
    logger.info("Session sweepers started (every %.0fs) ✓", interval)

    yield  # ← application runs here

    # Sweepers first, then the pool
    for task in sweepers:
        task.cancel()
    for task in sweepers:
        with contextlib.suppress(asyncio.CancelledError):
            await task

    await engine.dispose()
    logger.info("Database engine disposed ✓")


# ── App ─────────────────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    description=(
        "CapyCode backend — projects, Expo sandboxes, web previews, "
        "provider keys and usage for AI-generated React Native apps."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log the traceback, never leak it to the client."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error."},
    )


# Mount routers
app.include_router(projects_router, prefix="/api/projects")
app.include_router(sandbox_router, prefix="/api/sandbox")
app.include_router(preview_router, prefix="/api/preview")
app.include_router(provider_keys_router, prefix="/api/keys")
app.include_router(usage_router, prefix="/api/usage")


# ── Health check ────────────────────────────────────────────
@app.get(
    "/health",
    tags=["System"],
    summary="Liveness probe",
)
async def health_check() -> dict[str, str]:
    """Process liveness only; the database is not checked."""
    return {"status": "healthy"}
