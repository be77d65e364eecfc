"""RFC 7807 error bodies.

Every error leaves the API as ``application/problem+json``. Besides the
standard members a problem carries ``code`` (the taxonomy name, stable for
clients to branch on), ``requestId`` and ``timestamp``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any

from fastapi import Request
from fastapi.responses import ORJSONResponse

from .observability.context import get_request_id
from .settings import get_settings

PROBLEM_JSON = "application/problem+json"

_CODES_BY_STATUS = {
    400: "VALIDATION_ERROR",
    401: "UNAUTHORIZED",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    503: "SERVICE_UNAVAILABLE",
}


def _title(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Internal Server Error" if status_code >= 500 else "Error"


def _code(status_code: int) -> str:
    return _CODES_BY_STATUS.get(status_code) or ("INTERNAL_ERROR" if status_code >= 500 else "HTTP_ERROR")


def _request_id(request: Request) -> str | None:
    rid = getattr(getattr(request, "state", None), "request_id", None) or get_request_id()
    return str(rid) if rid else None


def problem_payload(
    *,
    request: Request,
    status_code: int,
    title: str | None = None,
    detail: str | None = None,
    code: str | None = None,
    errors: list[dict[str, Any]] | None = None,
    extensions: dict[str, Any] | None = None,
) -> dict[str, Any]:
    status_code = int(status_code)
    payload: dict[str, Any] = {
        "type": "about:blank",
        "title": title or _title(status_code),
        "status": status_code,
        "code": code or _code(status_code),
    }
    if detail:
        payload["detail"] = str(detail)

    path = str(getattr(request.url, "path", "") or "")
    if path:
        payload["instance"] = path

    rid = _request_id(request)
    if rid:
        payload["requestId"] = rid
    payload["timestamp"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

    if errors:
        payload["errors"] = errors
    if extensions:
        # Nested so extension keys can never shadow the members above.
        payload["extensions"] = extensions
    return payload


def problem_response(
    *,
    request: Request,
    status_code: int,
    title: str | None = None,
    detail: str | None = None,
    code: str | None = None,
    errors: list[dict[str, Any]] | None = None,
    extensions: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> ORJSONResponse:
    # Server errors never expose internals in production.
    if int(status_code) >= 500 and get_settings().is_production:
        detail, errors, extensions = None, None, None

    return ORJSONResponse(
        status_code=int(status_code),
        content=problem_payload(
            request=request,
            status_code=status_code,
            title=title,
            detail=detail,
            code=code,
            errors=errors,
            extensions=extensions,
        ),
        media_type=PROBLEM_JSON,
        headers=headers,
    )
