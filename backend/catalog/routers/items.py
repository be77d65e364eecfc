from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Query
from starlette.responses import Response

from ..constants import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from ..infrastructure.storage.images import delete_images_best_effort
from ..observability.logging import get_logger
from ..repositories import items_repo
from ..responses import page_metadata, success
from ..schemas import ItemCreate, ItemUpdate, parse_body

public_router = APIRouter(tags=["items"])
admin_router = APIRouter(tags=["admin-items"])
log = get_logger("api.items")


@public_router.get("/items")
def list_items(
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    cursor: str | None = None,
):
    page = items_repo.list_items(limit=limit, cursor=cursor)
    return success(page.items, page_metadata(page))


@public_router.get("/items/by-category/{category}")
def list_items_by_category(
    category: str,
    subcategory: str | None = None,
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    cursor: str | None = None,
):
    sub = (subcategory or "").strip()
    if sub:
        page = items_repo.query_by_category_and_subcategory(category, sub, limit=limit, cursor=cursor)
    else:
        page = items_repo.query_by_category(category, limit=limit, cursor=cursor)
    meta = {**page_metadata(page), "category": category}
    if sub:
        meta["subcategory"] = sub
    return success(page.items, meta)


@public_router.get("/items/{itemId}")
def get_item(itemId: str):
    return success(items_repo.get_item(itemId))


@admin_router.post("/items", status_code=201)
def create_item(body: dict):
    req = parse_body(ItemCreate, body)
    item = items_repo.create_item(req.model_dump(exclude_none=True))
    return success(item)


@admin_router.put("/items/{itemId}")
def update_item(itemId: str, body: dict):
    updates = parse_body(ItemUpdate, body).to_updates()
    return success(items_repo.update_item(itemId, updates))


@admin_router.delete("/items/{itemId}", status_code=204)
def delete_item(itemId: str, background_tasks: BackgroundTasks):
    # Read first so a missing item is a 404 before anything is deleted.
    item = items_repo.get_item(itemId)
    items_repo.delete_item(itemId)

    images = list(item.get("images") or [])
    if images:
        background_tasks.add_task(delete_images_best_effort, images)
    log.info("item_delete_completed", item_id=itemId, images_scheduled=len(images))
    return Response(status_code=204)
