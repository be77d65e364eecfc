"""Application error taxonomy.

Six kinds, each with the HTTP status the handler layer renders. Store
failures reach this module as ``StoreError`` (see
``catalog.infrastructure.aws_errors``) and are classified here.
"""

from __future__ import annotations

from typing import Any

from .infrastructure.aws_errors import TRANSIENT_SIGNALS, StoreError, StoreSignal
from .observability.logging import get_logger
from .settings import settings

log = get_logger("errors")


class AppError(Exception):
    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    default_message: str = "Internal server error"
    retryable: bool = False

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        details: Any = None,
    ):
        self.message = str(message or self.default_message)
        if status_code is not None:
            self.status_code = int(status_code)
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Invalid input parameters"


class UnauthorizedError(AppError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Unauthorized access"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Product not found"


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Product code already exists"


class InternalError(AppError):
    status_code = 500
    code = "INTERNAL_ERROR"
    default_message = "Internal server error"


class ServiceUnavailableError(AppError):
    status_code = 503
    code = "SERVICE_UNAVAILABLE"
    default_message = "Service temporarily unavailable"
    retryable = True


_UNAVAILABLE_SIGNALS = TRANSIENT_SIGNALS
_NOT_FOUND_SIGNALS = frozenset({StoreSignal.RESOURCE_NOT_FOUND, StoreSignal.NO_SUCH_KEY})


def classify_store_error(exc: Exception) -> AppError:
    """
    Map a low-level failure to an application error.

    A failed condition defaults to Conflict; data-access functions that
    asserted existence catch the signal first and raise NotFound instead.
    """
    if isinstance(exc, AppError):
        return exc

    if isinstance(exc, StoreError):
        log.warning(
            "store_error",
            signal=exc.signal.value,
            operation=exc.operation,
            resource=exc.resource,
            aws_request_id=exc.aws_request_id,
            error=exc.message,
        )
        if exc.signal is StoreSignal.CONDITIONAL_CHECK_FAILED:
            return ConflictError("Resource already exists or condition failed")
        if exc.signal in _NOT_FOUND_SIGNALS:
            return NotFoundError("Resource not found")
        if exc.signal in _UNAVAILABLE_SIGNALS:
            return ServiceUnavailableError("Service temporarily overloaded, please retry")

    return InternalError(details=None if settings.is_production else str(exc))


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, AppError):
        return bool(exc.retryable)
    if isinstance(exc, StoreError):
        return exc.transient
    return False


def log_error(exc: BaseException, **context: Any) -> None:
    status = getattr(exc, "status_code", None)
    fields: dict[str, Any] = {
        "error_type": type(exc).__name__,
        "error": str(exc),
        "status_code": status,
        "details": getattr(exc, "details", None),
        **context,
    }
    fields = {k: v for k, v in fields.items() if v is not None}
    if not isinstance(status, int) or status >= 500:
        log.error("operation_failed", **fields)
    else:
        log.warning("operation_failed", **fields)
