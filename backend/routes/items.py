"""Items API routes — reads go through the response cache, writes invalidate it."""

import logging

from fastapi import APIRouter, Query, Response
from pydantic import BaseModel, Field

from services import item_service

logger = logging.getLogger(__name__)

router = APIRouter()


class ItemIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


def _mark_cache(response: Response, hit: bool) -> None:
    response.headers["X-Cache"] = "HIT" if hit else "MISS"


@router.get("/items")
async def list_items(
    response: Response,
    limit: int | None = Query(None, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> list[dict]:
    result = await item_service.get_items(limit=limit, offset=offset)
    _mark_cache(response, result.hit)
    return result.payload


@router.get("/items/{item_id}")
async def get_item(item_id: int, response: Response) -> dict:
    result = await item_service.get_item(item_id)
    _mark_cache(response, result.hit)
    return result.payload


@router.post("/items", status_code=201)
async def create_item(body: ItemIn) -> dict:
    return await item_service.add_item(body.name)


@router.put("/items/{item_id}")
async def update_item(item_id: int, body: ItemIn) -> dict:
    return await item_service.update_item(item_id, body.name)


@router.delete("/items/{item_id}", status_code=204)
async def delete_item(item_id: int) -> Response:
    await item_service.delete_item(item_id)
    return Response(status_code=204)
