"""Reusable retry policy with capped exponential backoff.

A RetryPolicy knows nothing about what it retries. The health poller
wraps a single probe in it; the log stream reconnector wraps each
connection attempt. Refactor requests are deliberately never wrapped.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ecorefactor.resilience.errors import is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Max attempts, base delay, multiplier and cap for one retry loop."""

    max_attempts: int = 3
    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 30.0
    name: str = "retry"

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0 or self.multiplier < 1:
            raise ValueError("base_delay >= 0 and multiplier >= 1 required")

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number ``attempt`` (1-based)."""
        delay = self.base_delay * (self.multiplier ** (attempt - 1))
        return min(delay, self.max_delay)

    def _log_retry(self, state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        logger.warning(
            "event=retry policy=%s attempt=%d error=%s",
            self.name,
            state.attempt_number,
            type(exc).__name__ if exc else "none",
        )

    def retrying(self) -> AsyncRetrying:
        """Build a tenacity controller configured from this policy."""
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.base_delay,
                exp_base=self.multiplier,
                max=self.max_delay,
            ),
            retry=retry_if_exception(is_retryable),
            before_sleep=self._log_retry,
            reraise=True,
        )

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` until it succeeds or the policy is exhausted.

        Non-retryable errors propagate immediately; the last retryable
        error propagates once attempts run out.
        """
        async for attempt in self.retrying():
            with attempt:
                return await operation()
        raise RuntimeError("unreachable: retry loop exited without result")
