"""Retry/backoff and circuit breaking for store calls."""

from .backoff import add_jitter, compute_delay
from .circuit_breaker import CircuitBreaker, CircuitOpenError, CircuitState
from .retry import RetryPolicy, default_retry_policy, retry_with_backoff, with_retry

__all__ = [
    "CircuitBreaker",
    "CircuitOpenError",
    "CircuitState",
    "RetryPolicy",
    "add_jitter",
    "compute_delay",
    "default_retry_policy",
    "retry_with_backoff",
    "with_retry",
]
