from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.routing import APIRoute

from ..constants import API_VERSION
from ..settings import settings

router = APIRouter()


def _api_endpoints(request: Request) -> list[str]:
    out: list[str] = []
    for route in request.app.routes:
        if isinstance(route, APIRoute) and route.path.startswith("/api/"):
            out.extend(f"{method} {route.path}" for method in sorted(route.methods))
    return out


@router.get("/", tags=["health"])
def health(request: Request):
    return {
        "message": "Product Catalog API",
        "version": API_VERSION,
        "status": "running",
        "port": settings.port,
        "environment": settings.normalized_environment,
        "tables": {
            "items": settings.items_table_name,
            "categories": settings.categories_table_name,
        },
        "endpoints": _api_endpoints(request),
    }
