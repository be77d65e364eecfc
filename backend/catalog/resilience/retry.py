from __future__ import annotations

import functools
import time
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from ..errors import is_retryable, log_error
from ..observability.logging import get_logger
from ..settings import settings
from .backoff import add_jitter, compute_delay

log = get_logger("retry")

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_delay_s: float = 0.1
    max_delay_s: float = 5.0
    multiplier: float = 2.0

    def delay_for(self, attempt: int) -> float:
        return add_jitter(
            compute_delay(attempt, self.initial_delay_s, self.multiplier, self.max_delay_s)
        )


def default_retry_policy(**overrides: Any) -> RetryPolicy:
    base = {
        "max_attempts": settings.retry_max_attempts,
        "initial_delay_s": settings.retry_initial_delay_ms / 1000.0,
        "max_delay_s": settings.retry_max_delay_ms / 1000.0,
        "multiplier": settings.retry_backoff_multiplier,
    }
    base.update(overrides)
    return RetryPolicy(**base)


def retry_with_backoff(
    operation: Callable[[], T],
    *,
    policy: RetryPolicy | None = None,
    should_retry: Callable[[BaseException], bool] = is_retryable,
    context: dict[str, Any] | None = None,
    sleep: Callable[[float], None] | None = None,
) -> T:
    """
    Run ``operation`` until it succeeds, fails with a non-retryable error, or
    runs out of attempts. The failing exception is re-raised unchanged.
    """
    pol = policy or default_retry_policy()
    max_attempts = max(1, int(pol.max_attempts))
    ctx = dict(context or {})
    do_sleep = sleep or time.sleep

    last_exc: BaseException | None = None
    for attempt in range(max_attempts):
        try:
            result = operation()
        except Exception as e:  # noqa: BLE001
            last_exc = e
            is_last = attempt >= max_attempts - 1
            can_retry = bool(should_retry(e))

            if not can_retry or is_last:
                log_error(
                    e,
                    attempt=attempt + 1,
                    max_attempts=max_attempts,
                    retryable=can_retry,
                    **ctx,
                )
                raise

            delay = pol.delay_for(attempt)
            log.warning(
                "retry_scheduled",
                attempt=attempt + 1,
                max_attempts=max_attempts,
                delay_ms=round(delay * 1000),
                error_type=type(e).__name__,
                error=str(e)[:200],
                **ctx,
            )
            do_sleep(delay)
            continue

        if attempt > 0:
            log.info("retry_recovered", attempt=attempt + 1, **ctx)
        return result

    if last_exc is not None:
        raise last_exc
    raise RuntimeError("retry_with_backoff: attempts exhausted without an error")


def with_retry(
    fn: Callable[..., T],
    *,
    policy: RetryPolicy | None = None,
    should_retry: Callable[[BaseException], bool] = is_retryable,
    context: dict[str, Any] | None = None,
    sleep: Callable[[float], None] | None = None,
) -> Callable[..., T]:
    """Wrap ``fn`` so every call goes through ``retry_with_backoff``."""
    ctx = {"function": getattr(fn, "__name__", None) or "operation", **(context or {})}

    @functools.wraps(fn)
    def _wrapped(*args: Any, **kwargs: Any) -> T:
        return retry_with_backoff(
            lambda: fn(*args, **kwargs),
            policy=policy,
            should_retry=should_retry,
            context=ctx,
            sleep=sleep,
        )

    return _wrapped
