"""Per-process circuit breaker.

CLOSED passes calls through and counts consecutive failures. Reaching the
threshold moves to OPEN, which rejects calls without invoking them until the
reset timeout elapses. The first call after that runs as a single HALF_OPEN
trial: success closes the circuit, failure re-opens it.

State lives in this process only; it is a load shedder, not a correctness
mechanism.
"""

from __future__ import annotations

import threading
import time
from enum import Enum
from typing import Any, Callable, TypeVar

from ..errors import ServiceUnavailableError
from ..observability.logging import get_logger

log = get_logger("circuit_breaker")

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(ServiceUnavailableError):
    code = "CIRCUIT_OPEN"
    default_message = "Service temporarily unavailable (circuit open)"
    # Never retried while the circuit is open.
    retryable = False


class CircuitBreaker:
    def __init__(
        self,
        name: str,
        *,
        failure_threshold: int = 5,
        reset_timeout_s: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = str(name)
        self.failure_threshold = max(1, int(failure_threshold))
        self.reset_timeout_s = max(0.0, float(reset_timeout_s))
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failures = 0
        self._next_attempt = 0.0
        self._trial_in_flight = False
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    @property
    def failures(self) -> int:
        with self._lock:
            return self._failures

    def reset(self) -> None:
        with self._lock:
            self._to_closed()

    def call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        self._before_call()
        try:
            result = fn(*args, **kwargs)
        except Exception as e:
            self._on_failure(e)
            raise
        except BaseException:
            # Not a service failure, but the trial slot must be given back.
            self._release_trial()
            raise
        self._on_success()
        return result

    # --- transitions (callers hold the lock) ---

    def _before_call(self) -> None:
        with self._lock:
            if self._state is CircuitState.CLOSED:
                return

            now = self._clock()
            if self._state is CircuitState.OPEN:
                if now < self._next_attempt:
                    raise self._open_error(now)
                self._state = CircuitState.HALF_OPEN
                self._trial_in_flight = False
                log.info("circuit_half_open", circuit=self.name)

            # HALF_OPEN: exactly one trial call at a time.
            if self._trial_in_flight:
                raise self._open_error(now)
            self._trial_in_flight = True

    def _on_success(self) -> None:
        with self._lock:
            was = self._state
            self._to_closed()
        if was is not CircuitState.CLOSED:
            log.info("circuit_closed", circuit=self.name)

    def _release_trial(self) -> None:
        with self._lock:
            self._trial_in_flight = False

    def _on_failure(self, exc: Exception) -> None:
        with self._lock:
            self._failures += 1
            if self._state is CircuitState.HALF_OPEN:
                self._to_open()
            elif self._state is CircuitState.CLOSED and self._failures >= self.failure_threshold:
                self._to_open()
            else:
                return
            failures = self._failures
        log.warning(
            "circuit_opened",
            circuit=self.name,
            failures=failures,
            reset_timeout_s=self.reset_timeout_s,
            error_type=type(exc).__name__,
        )

    def _to_open(self) -> None:
        self._state = CircuitState.OPEN
        self._next_attempt = self._clock() + self.reset_timeout_s
        self._trial_in_flight = False

    def _to_closed(self) -> None:
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._next_attempt = 0.0
        self._trial_in_flight = False

    def _open_error(self, now: float) -> CircuitOpenError:
        retry_in = max(0.0, self._next_attempt - now)
        return CircuitOpenError(
            details={"circuit": self.name, "retryAfterSeconds": round(retry_in, 3)}
        )
