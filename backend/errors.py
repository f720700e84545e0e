"""Custom exceptions and centralized FastAPI error handlers."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ItemsApiError(Exception):
    """Base exception with HTTP status code."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code


class ItemNotFoundError(ItemsApiError):
    def __init__(self, item_id: int):
        super().__init__(f"Item {item_id} not found", status_code=404)
        self.item_id = item_id


class CacheError(Exception):
    """Base for response cache failures. Never mapped to an HTTP response."""


class CacheInternalError(CacheError):
    """Corrupted cache state or capacity misconfiguration; recovered as a miss."""


class InvalidKeyError(CacheError):
    """A fingerprint was empty or built from values without a stable text form."""


def register_error_handlers(app: FastAPI) -> None:
    """Register centralized exception handlers on the FastAPI app."""

    @app.exception_handler(ItemsApiError)
    async def handle_items_api_error(_request: Request, exc: ItemsApiError):
        return JSONResponse({"error": str(exc)}, status_code=exc.status_code)

    @app.exception_handler(ValueError)
    async def handle_value_error(_request: Request, exc: ValueError):
        return JSONResponse({"error": str(exc)}, status_code=400)

    @app.exception_handler(Exception)
    async def handle_unexpected(_request: Request, exc: Exception):
        logger.exception("Unhandled error: %s", exc)
        return JSONResponse(
            {"error": "Internal server error"},
            status_code=500,
        )
