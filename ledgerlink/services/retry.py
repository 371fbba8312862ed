"""Retry bookkeeping for one logical request.

``RetryState`` is a small state machine that decides whether another attempt
is allowed and how long to wait first. The pipeline drives it; nothing in here
performs I/O, so the bounds and delays can be tested on their own.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class RetryCause(str, Enum):
    """Why the previous attempt did not succeed."""

    THROTTLED = "throttled"
    TRANSIENT = "transient"
    UNAUTHORIZED = "unauthorized"


@dataclass
class RetryState:
    """Attempt counter, next eligible time and last failure cause.

    Throttled and transient failures share one budget of ``max_retries``.
    A 401 gets exactly one refresh-and-retry, tracked separately.
    """

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 16.0
    attempts: int = 0
    retries: int = 0
    next_eligible_at: float = 0.0
    cause: Optional[RetryCause] = None
    auth_retry_used: bool = False

    def start_attempt(self) -> int:
        """Record that an attempt is being sent; returns its 1-based number."""
        self.attempts += 1
        return self.attempts

    @property
    def exhausted(self) -> bool:
        return self.retries >= self.max_retries

    def backoff_delay(self) -> float:
        """Exponential delay for the next retry: 1, 2, 4, 8, 16 seconds."""
        return min(self.initial_delay * (2 ** self.retries), self.max_delay)

    def record_failure(self, cause: RetryCause, now: float, delay: Optional[float] = None) -> bool:
        """Register a retryable failure.

        Args:
            cause: Failure kind
            now: Current monotonic time
            delay: Wait imposed elsewhere (the rate limiter for 429s). When
                omitted, the exponential backoff delay is used.

        Returns:
            True if another attempt is allowed, False if the budget is spent
        """
        self.cause = cause
        if cause is RetryCause.UNAUTHORIZED:
            if self.auth_retry_used:
                return False
            self.auth_retry_used = True
            self.next_eligible_at = now
            return True

        if self.exhausted:
            return False
        wait = self.backoff_delay() if delay is None else max(delay, 0.0)
        self.retries += 1
        self.next_eligible_at = now + wait
        return True

    def wait_time(self, now: float) -> float:
        """Seconds left until the next attempt may start."""
        return max(self.next_eligible_at - now, 0.0)
