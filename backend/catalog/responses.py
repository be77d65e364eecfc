from __future__ import annotations

from typing import Any

from .db.dynamodb.table import Page


def success(data: Any = None, metadata: dict[str, Any] | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": True, "data": data}
    if metadata:
        body["metadata"] = metadata
    return body


def page_metadata(page: Page) -> dict[str, Any]:
    meta: dict[str, Any] = {"count": len(page.items), "hasMore": bool(page.next_cursor)}
    if page.next_cursor:
        meta["nextCursor"] = page.next_cursor
    return meta
