"""FastAPI application entry point for the items API."""

import asyncio
import contextlib
import logging
import sys

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from errors import register_error_handlers

# Structured logging: JSON for production, human-readable for local
if settings.is_production:
    logging.basicConfig(
        level=logging.INFO,
        format='{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}',
        stream=sys.stdout,
    )
else:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

logger = logging.getLogger(__name__)


async def _sweep_expired_forever(interval: float) -> None:
    """Periodically drop expired cache entries that nobody read again."""
    from services.cache import cache

    while True:
        await asyncio.sleep(interval)
        swept = cache.sweep_expired()
        if swept:
            logger.debug("Swept %d expired cache entries", swept)


def create_app() -> FastAPI:
    app = FastAPI(title="Items API", version="1.0.0")

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Cache"],
    )

    # Security headers
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    # Centralized error handlers
    register_error_handlers(app)

    from routes.health import router as health_router
    from routes.items import router as items_router

    app.include_router(health_router)
    app.include_router(items_router)

    sweeper: asyncio.Task | None = None

    @app.on_event("startup")
    async def _startup() -> None:
        nonlocal sweeper
        from services.item_store import get_store

        problems = settings.validate()
        if problems:
            logger.warning("Configuration problems: %s", "; ".join(problems))

        await get_store().start()
        logger.info(
            "Items API %s started (store=%s, cache=%s)",
            settings.server_id,
            settings.store_backend,
            "on" if settings.cache_enabled else "off",
        )

        if settings.cache_enabled and settings.cache_sweep_interval_seconds > 0:
            sweeper = asyncio.create_task(_sweep_expired_forever(settings.cache_sweep_interval_seconds))

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        from services.item_store import get_store

        if sweeper is not None:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper
        await get_store().stop()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app:app", host=settings.host, port=settings.port)
