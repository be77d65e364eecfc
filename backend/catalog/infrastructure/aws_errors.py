"""Store-facing failure signals.

boto3 reports failures as ``ClientError`` with a string error code. The
adapters (DynamoDB table, S3 images) convert those into a ``StoreError``
carrying one member of the closed ``StoreSignal`` enum, so everything above
the adapter boundary matches on enum members instead of comparing strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from botocore.exceptions import (
    ClientError,
    ConnectionError as BotoConnectionError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)


class StoreSignal(Enum):
    CONDITIONAL_CHECK_FAILED = "conditional_check_failed"
    THROUGHPUT_EXCEEDED = "throughput_exceeded"
    THROTTLING = "throttling"
    REQUEST_TIMEOUT = "request_timeout"
    TRANSIENT_INTERNAL = "transient_internal"
    TRANSACTION_CONFLICT = "transaction_conflict"
    CONNECTION = "connection"
    RESOURCE_NOT_FOUND = "resource_not_found"
    NO_SUCH_KEY = "no_such_key"
    VALIDATION = "validation"
    ACCESS_DENIED = "access_denied"
    UNKNOWN = "unknown"


TRANSIENT_SIGNALS: frozenset[StoreSignal] = frozenset(
    {
        StoreSignal.THROUGHPUT_EXCEEDED,
        StoreSignal.THROTTLING,
        StoreSignal.REQUEST_TIMEOUT,
        StoreSignal.TRANSIENT_INTERNAL,
        StoreSignal.TRANSACTION_CONFLICT,
        StoreSignal.CONNECTION,
    }
)


_SIGNALS_BY_CODE: dict[str, StoreSignal] = {
    # DynamoDB
    "ConditionalCheckFailedException": StoreSignal.CONDITIONAL_CHECK_FAILED,
    "ProvisionedThroughputExceededException": StoreSignal.THROUGHPUT_EXCEEDED,
    "RequestLimitExceeded": StoreSignal.THROUGHPUT_EXCEEDED,
    "ThrottlingException": StoreSignal.THROTTLING,
    "InternalServerError": StoreSignal.TRANSIENT_INTERNAL,
    "ServiceUnavailable": StoreSignal.TRANSIENT_INTERNAL,
    "TransactionConflictException": StoreSignal.TRANSACTION_CONFLICT,
    "ResourceNotFoundException": StoreSignal.RESOURCE_NOT_FOUND,
    "ValidationException": StoreSignal.VALIDATION,
    "AccessDeniedException": StoreSignal.ACCESS_DENIED,
    "UnrecognizedClientException": StoreSignal.ACCESS_DENIED,
    # S3
    "SlowDown": StoreSignal.THROTTLING,
    "Throttling": StoreSignal.THROTTLING,
    "RequestTimeout": StoreSignal.REQUEST_TIMEOUT,
    "RequestTimeoutException": StoreSignal.REQUEST_TIMEOUT,
    "InternalError": StoreSignal.TRANSIENT_INTERNAL,
    "503": StoreSignal.TRANSIENT_INTERNAL,
    "NoSuchKey": StoreSignal.NO_SUCH_KEY,
    "NotFound": StoreSignal.NO_SUCH_KEY,
    "404": StoreSignal.NO_SUCH_KEY,
    "AccessDenied": StoreSignal.ACCESS_DENIED,
    "403": StoreSignal.ACCESS_DENIED,
}

# TransactWriteItems reports per-item reasons without the "Exception" suffix.
_SIGNALS_BY_CANCELLATION_REASON: dict[str, StoreSignal] = {
    "ConditionalCheckFailed": StoreSignal.CONDITIONAL_CHECK_FAILED,
    "TransactionConflict": StoreSignal.TRANSACTION_CONFLICT,
    "ProvisionedThroughputExceeded": StoreSignal.THROUGHPUT_EXCEEDED,
    "ThrottlingError": StoreSignal.THROTTLING,
    "ValidationError": StoreSignal.VALIDATION,
}


@dataclass(slots=True, eq=False)
class StoreError(Exception):
    """A store failure, tagged with the signal the adapter recognised."""

    signal: StoreSignal
    message: str
    operation: str | None = None
    resource: str | None = None
    key: dict[str, Any] | None = None
    aws_request_id: str | None = None
    cause: Exception | None = None

    def __str__(self) -> str:
        return self.message

    @property
    def transient(self) -> bool:
        return self.signal in TRANSIENT_SIGNALS


def _err_code_from_client_error(e: ClientError) -> str:
    return str(((e.response or {}).get("Error") or {}).get("Code") or "")


def _aws_request_id_from_client_error(e: ClientError) -> str | None:
    return ((e.response or {}).get("ResponseMetadata") or {}).get("RequestId")


def _signal_from_cancellation(e: ClientError) -> StoreSignal:
    reasons = (e.response or {}).get("CancellationReasons") or []
    found = [
        _SIGNALS_BY_CANCELLATION_REASON.get(str((r or {}).get("Code") or ""))
        for r in reasons
    ]
    # A failed condition decides the outcome even when other items were merely
    # cancelled alongside it.
    for preferred in (
        StoreSignal.CONDITIONAL_CHECK_FAILED,
        StoreSignal.TRANSACTION_CONFLICT,
        StoreSignal.THROUGHPUT_EXCEEDED,
        StoreSignal.THROTTLING,
        StoreSignal.VALIDATION,
    ):
        if preferred in found:
            return preferred
    return StoreSignal.UNKNOWN


def signal_for(exc: Exception) -> StoreSignal:
    if isinstance(exc, StoreError):
        return exc.signal
    if isinstance(exc, ClientError):
        code = _err_code_from_client_error(exc)
        if code == "TransactionCanceledException":
            return _signal_from_cancellation(exc)
        return _SIGNALS_BY_CODE.get(code, StoreSignal.UNKNOWN)
    if isinstance(exc, (ReadTimeoutError, ConnectTimeoutError)):
        return StoreSignal.REQUEST_TIMEOUT
    if isinstance(exc, (EndpointConnectionError, BotoConnectionError)):
        return StoreSignal.CONNECTION
    return StoreSignal.UNKNOWN


def to_store_error(
    exc: Exception,
    *,
    operation: str,
    resource: str | None = None,
    key: dict[str, Any] | None = None,
) -> StoreError:
    if isinstance(exc, StoreError):
        return exc

    signal = signal_for(exc)
    if isinstance(exc, ClientError):
        code = _err_code_from_client_error(exc) or "ClientError"
        return StoreError(
            signal=signal,
            message=f"{operation} failed ({code})",
            operation=operation,
            resource=resource,
            key=key,
            aws_request_id=_aws_request_id_from_client_error(exc),
            cause=exc,
        )

    return StoreError(
        signal=signal,
        message=f"{operation} failed ({type(exc).__name__}: {exc})",
        operation=operation,
        resource=resource,
        key=key,
        cause=exc,
    )
