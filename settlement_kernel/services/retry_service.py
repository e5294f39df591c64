"""
RetryService -- bounded retry for retryable kernel errors.

Responsibility:
    Re-runs an operation that failed with a ``retryable`` SettlementKernelError
    (ConcurrentModificationError, PersistenceFailureError) with exponential
    backoff, up to a fixed number of attempts.

Invariants enforced:
    - Non-retryable errors (NoPendingBalance, NegativeBalance, NotFound,
      InvalidPrice, ...) propagate on the first attempt.
    - At most ``max_attempts`` calls are made; the last error is re-raised.
    - Delay before attempt n+1 is min(base_delay * 2**(n-1), max_delay).

Safe only for idempotent operations.  settle_farmer is one: a retry after a
conflict recomputes the balance from whatever is still pending.

Usage:
    retry = RetryService(max_attempts=3, base_delay=0.2, max_delay=2.0)
    result = retry.run(lambda: orchestrator_call(), operation="settle_farmer")
"""

from __future__ import annotations

import time
from typing import Callable, TypeVar

from settlement_kernel.exceptions import SettlementKernelError
from settlement_kernel.logging_config import get_logger

logger = get_logger("services.retry_service")

T = TypeVar("T")


class RetryService:
    """Exponential-backoff retry around a callable."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 0.2,
        max_delay: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._sleep = sleep

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        return min(self._base_delay * 2 ** (attempt - 1), self._max_delay)

    def run(self, fn: Callable[[], T], operation: str = "operation") -> T:
        attempt = 1
        while True:
            try:
                return fn()
            except SettlementKernelError as exc:
                if not exc.retryable or attempt >= self._max_attempts:
                    if exc.retryable:
                        logger.warning(
                            "retry_exhausted",
                            extra={
                                "operation": operation,
                                "attempts": attempt,
                                "error_code": exc.code,
                            },
                        )
                    raise
                delay = self.delay_for(attempt)
                logger.info(
                    "retry_scheduled",
                    extra={
                        "operation": operation,
                        "attempt": attempt,
                        "error_code": exc.code,
                        "delay_seconds": delay,
                    },
                )
                self._sleep(delay)
                attempt += 1
