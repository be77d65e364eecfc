from __future__ import annotations

import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..observability.logging import get_logger

SLOW_REQUEST_MS = 2000.0


def _surface(path: str) -> str:
    if path.startswith("/api/admin/"):
        return "admin"
    if path.startswith("/api/public/"):
        return "public"
    return "other"


class AccessLogMiddleware(BaseHTTPMiddleware):
    """
    One structured line per request. Method, path and request id come from the
    bound request context; this adds status, timing and the API surface.
    """

    def __init__(self, app, *, exclude_paths: set[str] | None = None):
        super().__init__(app)
        self._exclude = exclude_paths or set()
        self._log = get_logger("access")

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path in self._exclude or request.method.upper() == "OPTIONS":
            return await call_next(request)

        start = time.perf_counter()
        client = getattr(request, "client", None)
        fields = {"surface": _surface(path), "client_ip": getattr(client, "host", None) if client else None}

        try:
            response = await call_next(request)
        except Exception:
            self._log.exception("request_error", duration_ms=_elapsed_ms(start), **fields)
            raise

        status = int(getattr(response, "status_code", 0) or 0)
        duration_ms = _elapsed_ms(start)
        if status >= 500:
            emit = self._log.error
        elif status >= 400 or duration_ms >= SLOW_REQUEST_MS:
            emit = self._log.warning
        else:
            emit = self._log.info
        emit("request", status_code=status, duration_ms=duration_ms, **fields)
        return response


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000.0, 2)
