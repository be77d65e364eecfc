from __future__ import annotations

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError, ReadTimeoutError

from catalog.errors import (
    AppError,
    ConflictError,
    InternalError,
    NotFoundError,
    ServiceUnavailableError,
    UnauthorizedError,
    ValidationError,
    classify_store_error,
    is_retryable,
)
from catalog.infrastructure.aws_errors import StoreError, StoreSignal, signal_for, to_store_error


def _client_error(code: str, operation: str = "PutItem", **extra) -> ClientError:
    resp = {"Error": {"Code": code, "Message": code}, "ResponseMetadata": {"RequestId": "req-1"}}
    resp.update(extra)
    return ClientError(resp, operation)


@pytest.mark.parametrize(
    "code,signal",
    [
        ("ConditionalCheckFailedException", StoreSignal.CONDITIONAL_CHECK_FAILED),
        ("ProvisionedThroughputExceededException", StoreSignal.THROUGHPUT_EXCEEDED),
        ("ThrottlingException", StoreSignal.THROTTLING),
        ("RequestTimeout", StoreSignal.REQUEST_TIMEOUT),
        ("InternalServerError", StoreSignal.TRANSIENT_INTERNAL),
        ("ResourceNotFoundException", StoreSignal.RESOURCE_NOT_FOUND),
        ("NoSuchKey", StoreSignal.NO_SUCH_KEY),
        ("404", StoreSignal.NO_SUCH_KEY),
        ("SlowDown", StoreSignal.THROTTLING),
        ("SomethingNew", StoreSignal.UNKNOWN),
    ],
)
def test_client_error_codes_map_to_signals(code, signal):
    assert signal_for(_client_error(code)) is signal


def test_cancelled_transaction_prefers_condition_failure():
    exc = _client_error(
        "TransactionCanceledException",
        operation="TransactWriteItems",
        CancellationReasons=[{"Code": "None"}, {"Code": "ConditionalCheckFailed"}],
    )
    assert signal_for(exc) is StoreSignal.CONDITIONAL_CHECK_FAILED


def test_cancelled_transaction_conflict_is_transient():
    exc = _client_error(
        "TransactionCanceledException",
        operation="TransactWriteItems",
        CancellationReasons=[{"Code": "TransactionConflict"}, {"Code": "None"}],
    )
    err = to_store_error(exc, operation="TransactWriteItems")
    assert err.signal is StoreSignal.TRANSACTION_CONFLICT
    assert err.transient is True


def test_botocore_network_errors_are_transient():
    timeout = ReadTimeoutError(endpoint_url="https://dynamodb.eu-west-1.amazonaws.com")
    conn = EndpointConnectionError(endpoint_url="https://dynamodb.eu-west-1.amazonaws.com")
    assert signal_for(timeout) is StoreSignal.REQUEST_TIMEOUT
    assert signal_for(conn) is StoreSignal.CONNECTION
    assert to_store_error(conn, operation="GetItem").transient is True


def test_store_error_keeps_request_context():
    err = to_store_error(_client_error("ThrottlingException"), operation="PutItem", resource="T", key={"id": "1"})
    assert err.operation == "PutItem"
    assert err.resource == "T"
    assert err.key == {"id": "1"}
    assert err.aws_request_id == "req-1"
    assert isinstance(err.cause, ClientError)
    assert "ThrottlingException" in str(err)


@pytest.mark.parametrize(
    "signal,kind",
    [
        (StoreSignal.CONDITIONAL_CHECK_FAILED, ConflictError),
        (StoreSignal.RESOURCE_NOT_FOUND, NotFoundError),
        (StoreSignal.NO_SUCH_KEY, NotFoundError),
        (StoreSignal.THROUGHPUT_EXCEEDED, ServiceUnavailableError),
        (StoreSignal.THROTTLING, ServiceUnavailableError),
        (StoreSignal.REQUEST_TIMEOUT, ServiceUnavailableError),
        (StoreSignal.TRANSIENT_INTERNAL, ServiceUnavailableError),
        (StoreSignal.TRANSACTION_CONFLICT, ServiceUnavailableError),
        (StoreSignal.CONNECTION, ServiceUnavailableError),
        (StoreSignal.VALIDATION, InternalError),
        (StoreSignal.ACCESS_DENIED, InternalError),
        (StoreSignal.UNKNOWN, InternalError),
    ],
)
def test_classifier_maps_every_signal(signal, kind):
    out = classify_store_error(StoreError(signal=signal, message="x"))
    assert type(out) is kind


def test_classifier_passes_app_errors_through():
    err = NotFoundError("gone")
    assert classify_store_error(err) is err


def test_internal_error_exposes_cause_outside_production():
    out = classify_store_error(ValueError("disk on fire"))
    assert isinstance(out, InternalError)
    assert out.status_code == 500
    assert out.details == "disk on fire"


def test_internal_error_hides_cause_in_production(monkeypatch):
    import catalog.errors as errors_mod

    monkeypatch.setattr(errors_mod.settings, "environment", "production")
    out = classify_store_error(ValueError("disk on fire"))
    assert out.details is None


def test_status_codes_and_default_messages():
    assert (ValidationError().status_code, ValidationError().message) == (400, "Invalid input parameters")
    assert UnauthorizedError().status_code == 401
    assert (NotFoundError().status_code, NotFoundError().message) == (404, "Product not found")
    assert (ConflictError().status_code, ConflictError().message) == (409, "Product code already exists")
    assert InternalError().status_code == 500
    assert ServiceUnavailableError().status_code == 503
    assert AppError("x", status_code=418).status_code == 418


def test_retryability():
    assert is_retryable(ServiceUnavailableError()) is True
    assert is_retryable(StoreError(signal=StoreSignal.THROTTLING, message="x")) is True
    assert is_retryable(StoreError(signal=StoreSignal.CONDITIONAL_CHECK_FAILED, message="x")) is False
    for err in (ValidationError(), NotFoundError(), ConflictError(), UnauthorizedError(), InternalError()):
        assert is_retryable(err) is False
    assert is_retryable(RuntimeError("x")) is False


def test_error_codes_are_stable():
    from catalog.resilience.circuit_breaker import CircuitOpenError

    codes = [cls.code for cls in (ValidationError, UnauthorizedError, NotFoundError, ConflictError,
                                  InternalError, ServiceUnavailableError, CircuitOpenError)]
    assert codes == [
        "VALIDATION_ERROR",
        "UNAUTHORIZED",
        "NOT_FOUND",
        "CONFLICT",
        "INTERNAL_ERROR",
        "SERVICE_UNAVAILABLE",
        "CIRCUIT_OPEN",
    ]
