"""Root, readiness and health check routes."""

import logging

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from config import settings
from services.cache import cache
from services.item_store import get_store

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_class=PlainTextResponse)
async def root() -> str:
    """Identifies which instance answered, for load-balancing demos."""
    return f"Hello world from {settings.server_id}!"


@router.get("/ready")
async def ready() -> dict:
    """Lightweight readiness check — no external calls."""
    return {"status": "ok", "service": "items-api", "commit": settings.git_sha}


@router.get("/health")
async def health() -> dict:
    """Deep health check: store connectivity plus cache counters."""
    result = {
        "status": "ok",
        "service": "items-api",
        "commit": settings.git_sha,
        "server_id": settings.server_id,
        "store": settings.store_backend,
        "cache": {"enabled": settings.cache_enabled, **cache.stats()},
    }

    if not await get_store().ping():
        logger.warning("Health check: %s store unreachable", settings.store_backend)
        result["status"] = "degraded"
        result["store_error"] = "unreachable"

    return result
