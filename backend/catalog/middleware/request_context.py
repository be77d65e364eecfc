from __future__ import annotations

import re
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..observability.context import bind_request, clear_request

REQUEST_ID_HEADER = "X-Request-Id"

# Inbound ids are echoed into logs and headers; anything else gets a fresh one.
_SAFE_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def _request_id_from(request: Request) -> str:
    inbound = (request.headers.get("x-request-id") or "").strip()
    if inbound and _SAFE_REQUEST_ID.match(inbound):
        return inbound
    return str(uuid.uuid4())


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign the request id, bind it for logging and echo it on the response."""

    async def dispatch(self, request: Request, call_next):
        request_id = _request_id_from(request)
        request.state.request_id = request_id
        bind_request(request_id=request_id, http_method=request.method.upper(), path=request.url.path)
        try:
            response = await call_next(request)
        finally:
            clear_request()
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
