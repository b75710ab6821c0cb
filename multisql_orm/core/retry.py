"""Statement-level retry for transient busy/locked backend errors."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

R = TypeVar("R")

logger = logging.getLogger(__name__)

BusyPredicate = Callable[[BaseException], bool]
RetryCallback = Callable[[int, BaseException], None]


@dataclass
class RetryState:
    """Attempt bookkeeping for one logical operation."""

    max_retries: int
    base_delay: float
    attempt: int = 0

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_retries

    def next_delay(self) -> float:
        return self.base_delay * (self.attempt + 1)


class RetryPolicy:
    """Run an operation, retrying while the error is classified busy/locked.

    The wait before retry `n` (1-based) is `base_delay * n`. On the last
    attempt the error propagates unchanged.
    """

    def __init__(
        self,
        is_busy: BusyPredicate,
        *,
        max_retries: int = 3,
        base_delay: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.is_busy = is_busy
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep

    def execute(
        self,
        operation: Callable[[], R],
        *,
        on_retry: Optional[RetryCallback] = None,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
    ) -> R:
        """Return the result of the first successful attempt."""

        state = RetryState(
            max_retries=self.max_retries if max_retries is None else max_retries,
            base_delay=self.base_delay if base_delay is None else base_delay,
        )
        while True:
            try:
                return operation()
            except Exception as exc:
                if state.exhausted or not self.is_busy(exc):
                    raise
                error = exc
            delay = state.next_delay()
            state.attempt += 1
            logger.debug(
                "busy/locked on attempt %d/%d, retrying in %.2fs: %s",
                state.attempt,
                state.max_retries,
                delay,
                error,
            )
            if on_retry is not None:
                on_retry(state.attempt, error)
            self._sleep(delay)


def execute_with_retry(
    operation: Callable[[], R],
    is_busy: BusyPredicate,
    *,
    max_retries: int = 3,
    base_delay: float = 0.5,
    on_retry: Optional[RetryCallback] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> R:
    """Functional shortcut for `RetryPolicy(...).execute(...)`."""

    policy = RetryPolicy(is_busy, max_retries=max_retries, base_delay=base_delay, sleep=sleep)
    return policy.execute(operation, on_retry=on_retry)
