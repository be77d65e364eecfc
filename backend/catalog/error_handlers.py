"""Exception handlers: every failure leaves the API as problem+json."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from .errors import AppError, log_error
from .observability.logging import get_logger
from .problem_details import problem_response
from .resilience.circuit_breaker import CircuitOpenError

log = get_logger("error_handlers")


def _retry_after(exc: AppError) -> dict[str, str] | None:
    if not isinstance(exc, CircuitOpenError) or not isinstance(exc.details, dict):
        return None
    seconds = exc.details.get("retryAfterSeconds")
    if seconds is None:
        return None
    return {"Retry-After": str(max(1, round(float(seconds))))}


def handle_app_error(request: Request, exc: AppError) -> Response:
    log_error(exc, http_method=request.method.upper(), path=request.url.path)

    # Field-level problems travel as `errors`; anything else as extensions.
    details = exc.details
    errors = details if isinstance(details, list) else None
    extensions: dict[str, object] | None = None
    if isinstance(details, dict):
        extensions = details
    elif isinstance(details, str):
        extensions = {"cause": details}

    return problem_response(
        request=request,
        status_code=exc.status_code,
        detail=exc.message,
        code=exc.code,
        errors=errors,
        extensions=extensions,
        headers=_retry_after(exc),
    )


def handle_http_exception(request: Request, exc: StarletteHTTPException) -> Response:
    status_code = int(exc.status_code or 500)
    detail = str(exc.detail) if exc.detail is not None else None
    if status_code == 404 and detail in (None, "Not Found"):
        detail = "Route not found"
    return problem_response(
        request=request,
        status_code=status_code,
        detail=detail,
        headers=getattr(exc, "headers", None),
    )


def handle_request_validation(request: Request, exc: RequestValidationError) -> Response:
    errors = [
        {
            "field": ".".join(str(p) for p in (e.get("loc") or ()) if p not in ("body", "query", "path")),
            "message": e.get("msg", "Invalid value"),
        }
        for e in exc.errors()
    ]
    return problem_response(
        request=request,
        status_code=400,
        title="Validation Failed",
        detail="Invalid input parameters",
        errors=errors,
    )


def handle_unexpected(request: Request, exc: Exception) -> Response:
    log.exception("unhandled_exception", http_method=request.method.upper(), path=request.url.path)
    return problem_response(request=request, status_code=500, detail=str(exc) or type(exc).__name__)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, handle_app_error)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, handle_request_validation)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, handle_unexpected)
