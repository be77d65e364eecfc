from __future__ import annotations

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from .constants import API_VERSION
from .error_handlers import register_error_handlers
from .middleware import AccessLogMiddleware, RequestContextMiddleware
from .middleware.cors import build_allowed_origins
from .observability.logging import configure_logging, get_logger
from .routers import categories, health, items, uploads
from .settings import settings


_ROUTES: list[tuple[APIRouter, str]] = [
    (health.router, ""),
    (items.public_router, "/api/public"),
    (categories.public_router, "/api/public"),
    (items.admin_router, "/api/admin"),
    (categories.admin_router, "/api/admin"),
    (uploads.router, "/api/admin"),
]


def create_app() -> FastAPI:
    configure_logging(level=settings.log_level, environment=settings.normalized_environment)
    get_logger("startup").info("app_starting", version=API_VERSION, settings=settings.to_log_safe_dict())

    app = FastAPI(
        title="Product Catalog API",
        version=API_VERSION,
        default_response_class=ORJSONResponse,
        redirect_slashes=False,
    )

    # Last added runs first: request context, then CORS, then the access log.
    app.add_middleware(AccessLogMiddleware, exclude_paths={"/"})
    app.add_middleware(
        CORSMiddleware,
        allow_origins=build_allowed_origins(
            frontend_urls=settings.frontend_urls,
            include_dev=not settings.is_production,
        ),
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Request-Id"],
        expose_headers=["X-Request-Id", "Retry-After"],
        max_age=3000,
    )
    app.add_middleware(RequestContextMiddleware)

    register_error_handlers(app)
    for router, prefix in _ROUTES:
        app.include_router(router, prefix=prefix)
    return app


app = create_app()
