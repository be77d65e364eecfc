from __future__ import annotations

import structlog


def bind_request(*, request_id: str, http_method: str, path: str) -> None:
    """Attach request fields to every log line emitted while handling it."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, http_method=http_method, path=path)


def clear_request() -> None:
    structlog.contextvars.clear_contextvars()


def get_request_id() -> str | None:
    rid = structlog.contextvars.get_contextvars().get("request_id")
    return str(rid) if rid else None
