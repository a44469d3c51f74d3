from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from mysql_extended.errors import ExecutionError, MySqlExtendedError, TransientExecutionError

T = TypeVar("T")

RetryHook = Callable[[ExecutionError, int, float], Any]
GiveupHook = Callable[[ExecutionError, int], Any]


# ==================================================
# Retry Policy
# ==================================================


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """
    How often and how patiently to retry a statement that failed with a
    TransientExecutionError (deadlock, lock wait timeout, lost connection).
    """

    max_attempts: int = 3
    base_delay_seconds: float = 0.05
    max_delay_seconds: float = 1.0
    backoff_multiplier: float = 2.0

    def __post_init__(self) -> None:
        checks = (
            ("max_attempts", self.max_attempts, 1),
            ("base_delay_seconds", self.base_delay_seconds, 0),
            ("max_delay_seconds", self.max_delay_seconds, 0),
            ("backoff_multiplier", self.backoff_multiplier, 1),
        )
        for name, value, minimum in checks:
            if value < minimum:
                raise ValueError(f"{name} must be >= {minimum}, got {value!r}")

    def delay_for(self, attempt: int) -> float:
        """
        Seconds to wait after failed attempt number `attempt` (1-based).
        """
        return min(
            self.base_delay_seconds * self.backoff_multiplier ** (attempt - 1),
            self.max_delay_seconds,
        )


# ==================================================
# Retry Loop
# ==================================================


async def run_with_retry(
    *,
    operation: Callable[[], Awaitable[T]],
    normalize_error: Callable[[Exception], ExecutionError],
    policy: RetryPolicy,
    sleep_fn: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    on_retry: RetryHook | None = None,
    on_giveup: GiveupHook | None = None,
) -> T:
    """
    Awaits `operation` until it succeeds, a non-transient error occurs, or
    `policy.max_attempts` is used up.

    Driver exceptions are normalized with `normalize_error` and re-raised chained
    from the driver exception. Usage errors raised by this library (validation,
    transaction state) are never retried and propagate unchanged.
    """
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await operation()
        except ExecutionError as exc:
            normalized, cause = exc, None
        except MySqlExtendedError:
            raise
        except Exception as exc:
            normalized, cause = normalize_error(exc), exc

        final = attempt == policy.max_attempts
        if final or not isinstance(normalized, TransientExecutionError):
            if on_giveup is not None:
                on_giveup(normalized, attempt)
            if cause is None:
                raise normalized
            raise normalized from cause

        delay = policy.delay_for(attempt)
        if on_retry is not None:
            on_retry(normalized, attempt, delay)
        if delay > 0:
            await sleep_fn(delay)

    raise AssertionError("unreachable: max_attempts is at least 1")
