"""
commitboard.api.routes.public — Read-only dashboard endpoints
==============================================================

Failures never leak partial payloads: any exception while building a
response yields HTTP 500 with a generic ``{"error": ...}`` body.
"""

from __future__ import annotations

import logging
import re

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, RedirectResponse

from commitboard.api.deps import get_resolver, get_stats_service
from commitboard.services.discord_service import DiscordResolver, Found, avatar_url
from commitboard.services.stats_service import StatsService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["public"])

DISCORD_ID_PATTERN = re.compile(r"[0-9]{17,19}")


def _error(message: str) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": message})


# ---------------------------------------------------------------------------
# GET /stats
# ---------------------------------------------------------------------------
@router.get("/stats")
async def get_stats(service: StatsService = Depends(get_stats_service)):
    """Event progress, counters, histogram, leaderboards and recent feed."""
    try:
        return await service.get_stats()
    except Exception:
        logger.exception("Failed to build stats payload")
        return _error("Failed to fetch stats")


# ---------------------------------------------------------------------------
# GET /commits
# ---------------------------------------------------------------------------
@router.get("/commits")
async def get_commits(
    page: str | None = Query(None),
    limit: str | None = Query(None),
    service: StatsService = Depends(get_stats_service),
):
    """Paginated commit feed.  Out-of-range parameters are clamped, not rejected."""
    try:
        return await service.get_commit_page(page, limit)
    except Exception:
        logger.exception("Failed to build commit page (page=%s, limit=%s)", page, limit)
        return _error("Failed to fetch commits")


# ---------------------------------------------------------------------------
# GET /avatar/{user_id}.png
# ---------------------------------------------------------------------------
@router.get("/avatar/{user_id}.png")
async def get_avatar(
    user_id: str,
    resolver: DiscordResolver = Depends(get_resolver),
):
    """Redirect to the member's Discord CDN avatar (default avatar if unknown)."""
    if not DISCORD_ID_PATTERN.fullmatch(user_id):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid Discord user ID format. Expected 17-19 digit numeric string."},
        )
    user = await resolver.get_user(user_id)
    avatar_hash = user.value.get("avatar") if isinstance(user, Found) else None
    return RedirectResponse(avatar_url(user_id, avatar_hash, size=64), status_code=302)
