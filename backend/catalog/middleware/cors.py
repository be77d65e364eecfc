from __future__ import annotations

# Local dev servers for the admin and storefront apps.
_DEV_ORIGINS = {
    "http://localhost:3000",
    "http://localhost:3001",
    "http://localhost:5173",
}


def build_allowed_origins(*, frontend_urls: str | None, include_dev: bool) -> list[str]:
    allowed: set[str] = set(_DEV_ORIGINS) if include_dev else set()
    if frontend_urls:
        for origin in [s.strip() for s in str(frontend_urls).split(",") if s.strip()]:
            allowed.add(origin.rstrip("/"))
    return sorted(allowed)
