"""FastAPI application — stateless HTTP wrapper around the context engine.

The server holds no per-session state: callers post the previous
snapshot with every evaluation and persist the one they get back.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from ambient_context.api.middleware import setup_middleware
from ambient_context.api.routes.context import router as context_router
from ambient_context.config import get_settings
from ambient_context.logger import setup_logging

_VERSION = "0.1.0"

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle hooks."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_json)
    logger.info("server.started", version=_VERSION, default_source=settings.default_source.value)
    yield
    logger.info("server.stopped")


app = FastAPI(
    title="Ambient Context API",
    description="Fuses phone sensor snapshots into a stable user context and a polling hint.",
    version=_VERSION,
    lifespan=lifespan,
)

# ── Middleware ────────────────────────────────────────────────
setup_middleware(app)

# ── Routers ───────────────────────────────────────────────────
app.include_router(context_router)


@app.get("/health", tags=["system"])
async def health():
    return {"status": "ok", "version": _VERSION}
