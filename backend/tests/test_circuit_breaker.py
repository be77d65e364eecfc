from __future__ import annotations

import pytest

from catalog.errors import ServiceUnavailableError, is_retryable
from catalog.resilience.circuit_breaker import CircuitBreaker, CircuitOpenError, CircuitState


class Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _boom():
    raise RuntimeError("down")


def _trip(cb: CircuitBreaker, n: int) -> None:
    for _ in range(n):
        with pytest.raises(RuntimeError):
            cb.call(_boom)


def test_opens_after_consecutive_failures_and_rejects_without_calling():
    clock = Clock()
    cb = CircuitBreaker("s3", failure_threshold=3, reset_timeout_s=30, clock=clock)

    _trip(cb, 2)
    assert cb.state is CircuitState.CLOSED
    _trip(cb, 1)
    assert cb.state is CircuitState.OPEN
    assert cb.failures == 3

    called = []
    with pytest.raises(CircuitOpenError) as info:
        cb.call(lambda: called.append(1))
    assert called == []
    assert isinstance(info.value, ServiceUnavailableError)
    assert info.value.status_code == 503


def test_success_resets_failure_count():
    cb = CircuitBreaker("s3", failure_threshold=3, clock=Clock())
    _trip(cb, 2)
    assert cb.call(lambda: "ok") == "ok"
    assert cb.failures == 0
    _trip(cb, 2)
    assert cb.state is CircuitState.CLOSED


def test_half_open_trial_success_closes():
    clock = Clock()
    cb = CircuitBreaker("s3", failure_threshold=1, reset_timeout_s=10, clock=clock)
    _trip(cb, 1)

    clock.now += 9.9
    with pytest.raises(CircuitOpenError):
        cb.call(lambda: "ok")

    clock.now += 0.2
    assert cb.call(lambda: "ok") == "ok"
    assert cb.state is CircuitState.CLOSED
    assert cb.failures == 0


def test_half_open_trial_failure_reopens_for_full_timeout():
    clock = Clock()
    cb = CircuitBreaker("s3", failure_threshold=2, reset_timeout_s=10, clock=clock)
    _trip(cb, 2)

    clock.now += 10
    _trip(cb, 1)
    assert cb.state is CircuitState.OPEN

    clock.now += 5
    with pytest.raises(CircuitOpenError):
        cb.call(lambda: "ok")


def test_half_open_allows_a_single_trial():
    clock = Clock()
    cb = CircuitBreaker("s3", failure_threshold=1, reset_timeout_s=1, clock=clock)
    _trip(cb, 1)
    clock.now += 1

    seen: list[str] = []

    def trial():
        # A second caller arriving while the trial is in flight is rejected.
        with pytest.raises(CircuitOpenError):
            cb.call(lambda: seen.append("second"))
        assert cb.state is CircuitState.HALF_OPEN
        return "first"

    assert cb.call(trial) == "first"
    assert seen == []
    assert cb.state is CircuitState.CLOSED


def test_interrupted_trial_frees_the_half_open_slot():
    clock = Clock()
    cb = CircuitBreaker("s3", failure_threshold=1, reset_timeout_s=1, clock=clock)
    _trip(cb, 1)
    clock.now += 1

    def interrupted():
        raise KeyboardInterrupt

    with pytest.raises(KeyboardInterrupt):
        cb.call(interrupted)
    assert cb.state is CircuitState.HALF_OPEN
    assert cb.failures == 1

    assert cb.call(lambda: "ok") == "ok"
    assert cb.state is CircuitState.CLOSED


def test_reset_closes_an_open_circuit():
    cb = CircuitBreaker("s3", failure_threshold=1, clock=Clock())
    _trip(cb, 1)
    cb.reset()
    assert cb.state is CircuitState.CLOSED
    assert cb.call(lambda: 42) == 42


def test_circuit_open_error_is_not_retryable():
    err = CircuitOpenError(details={"circuit": "s3"})
    assert is_retryable(err) is False
    assert is_retryable(ServiceUnavailableError()) is True
