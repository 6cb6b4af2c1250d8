"""
commitboard.api.main — FastAPI application entry point
========================================================

Run with::

    uvicorn commitboard.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from commitboard.api.deps import get_config, get_resolver  # noqa: E402
from commitboard.api.routes.public import router as public_router  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — close the Discord HTTP client on exit."""
    cfg = get_config()
    logger.info(
        "Commitboard API started — %s, %d days from %s",
        cfg.event_name, cfg.total_days, cfg.event_start.isoformat(),
    )
    yield
    if get_resolver.cache_info().currsize:
        await get_resolver().aclose()
    logger.info("Commitboard API shutting down")


app = FastAPI(
    title="Commitboard API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=False,
    allow_methods=["GET"],
    allow_headers=["*"],
)

app.include_router(public_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
