"""Client-side rate limiting.

The API enforces, per connection, a cap on in-flight calls (5), a rolling
per-minute cap (60), a daily cap and an app-wide per-minute cap. The limiter
combines:
- a concurrency gate (semaphore)
- a sliding one-minute window of call timestamps
- pre-emptive slowdown from the ``X-*Limit-Remaining`` response headers
- a shared resume time set by 429 responses, padded with random jitter so
  queued callers do not retry in lockstep

All state is mutated between ``await`` points only, so each check-and-update
runs without interleaving on the event loop.
"""

import asyncio
import logging
import random
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Deque, Mapping, Optional

from ledgerlink.core.config import SdkSettings

logger = logging.getLogger(__name__)

MIN_REMAINING_HEADER = "X-MinLimit-Remaining"
DAY_REMAINING_HEADER = "X-DayLimit-Remaining"
APP_MIN_REMAINING_HEADER = "X-AppMinLimit-Remaining"
RATE_LIMIT_PROBLEM_HEADER = "X-Rate-Limit-Problem"

WINDOW_SECONDS = 60.0


@dataclass
class RateLimitConfig:
    """Limiter settings. Zero disables the corresponding cap."""

    max_concurrent: int = 5
    max_per_minute: int = 60
    enabled: bool = True
    default_retry_after: float = 5.0
    min_jitter: float = 0.001
    max_jitter: float = 2.0
    # Header thresholds and the pause applied when they are reached
    min_remaining_threshold: int = 2
    min_remaining_pause: float = 2.0
    app_min_remaining_threshold: int = 5
    app_min_remaining_pause: float = 1.0
    day_remaining_warning: int = 10

    @classmethod
    def from_settings(cls, settings: SdkSettings) -> "RateLimitConfig":
        return cls(
            max_concurrent=settings.max_concurrent,
            max_per_minute=settings.max_per_minute,
            enabled=settings.rate_limit_enabled,
            max_jitter=settings.max_jitter,
        )

    @classmethod
    def disabled(cls) -> "RateLimitConfig":
        return cls(enabled=False)


@dataclass
class RateLimitState:
    """Snapshot of the limiter's counters."""

    in_flight: int = 0
    calls_in_window: int = 0
    min_remaining: Optional[int] = None
    day_remaining: Optional[int] = None
    app_min_remaining: Optional[int] = None
    # Monotonic time before which no call may start
    resume_at: float = 0.0
    throttled_count: int = 0
    window: Deque[float] = field(default_factory=deque, repr=False)


def parse_retry_after(headers: Mapping[str, str], default: float) -> float:
    """Seconds from a numeric ``Retry-After`` header, or ``default``."""
    value = headers.get("Retry-After")
    if value is None:
        return default
    try:
        seconds = float(value.strip())
    except ValueError:
        return default
    return seconds if seconds >= 0 else default


def rate_limit_problem(headers: Mapping[str, str]) -> Optional[str]:
    """Which limit a 429 hit (``minute``, ``day``, ``appminute``), if reported."""
    value = headers.get(RATE_LIMIT_PROBLEM_HEADER)
    return value.strip().lower() if value else None


def _header_int(headers: Mapping[str, str], name: str) -> Optional[int]:
    value = headers.get(name)
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


class Permit:
    """A claim on one concurrency slot. Release exactly once; extra calls are no-ops."""

    def __init__(self, limiter: "RateLimiter", holds_slot: bool):
        self._limiter = limiter
        self._holds_slot = holds_slot
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._limiter._release(self._holds_slot)

    async def __aenter__(self) -> "Permit":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()


class RateLimiter:
    """Admission control shared by every request on one client.

    Example:
        ```python
        limiter = RateLimiter(RateLimitConfig(max_concurrent=5, max_per_minute=60))
        async with await limiter.admit():
            response = await http.get(url)
            limiter.record_response(response.headers, response.status_code)
        ```
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.config = config or RateLimitConfig()
        self.clock = clock
        self.sleep = sleep
        self.rng = rng or random.SystemRandom()
        self._state = RateLimitState()
        self._semaphore: Optional[asyncio.Semaphore] = (
            asyncio.Semaphore(self.config.max_concurrent)
            if self.config.enabled and self.config.max_concurrent > 0
            else None
        )

    @property
    def state(self) -> RateLimitState:
        """Current counters (a copy)."""
        self._prune(self.clock())
        s = self._state
        return RateLimitState(
            in_flight=s.in_flight,
            calls_in_window=len(s.window),
            min_remaining=s.min_remaining,
            day_remaining=s.day_remaining,
            app_min_remaining=s.app_min_remaining,
            resume_at=s.resume_at,
            throttled_count=s.throttled_count,
        )

    # =========================================================================
    # Admission
    # =========================================================================

    async def admit(self) -> Permit:
        """Wait for a concurrency slot and window headroom.

        The slot is taken first so queued callers do not use up window
        capacity. If the caller is cancelled while waiting, the slot is
        released before the cancellation propagates.

        Returns:
            Permit to release once the response has been recorded
        """
        holds_slot = False
        if self._semaphore is not None:
            await self._semaphore.acquire()
            holds_slot = True
        self._state.in_flight += 1
        permit = Permit(self, holds_slot)
        try:
            while True:
                delay = self._admission_delay(self.clock())
                if delay <= 0:
                    break
                logger.debug(f"Rate limiter holding call for {delay:.3f}s")
                await self.sleep(delay)
        except BaseException:
            permit.release()
            raise
        self._state.window.append(self.clock())
        return permit

    def _admission_delay(self, now: float) -> float:
        delay = self._state.resume_at - now
        if not self.config.enabled or self.config.max_per_minute <= 0:
            return delay
        self._prune(now)
        window = self._state.window
        if len(window) >= self.config.max_per_minute:
            delay = max(delay, window[0] + WINDOW_SECONDS - now)
        return delay

    def _prune(self, now: float) -> None:
        window = self._state.window
        while window and now - window[0] >= WINDOW_SECONDS:
            window.popleft()

    def _release(self, holds_slot: bool) -> None:
        self._state.in_flight -= 1
        if holds_slot and self._semaphore is not None:
            self._semaphore.release()

    # =========================================================================
    # Feedback
    # =========================================================================

    def _jitter(self) -> float:
        return self.rng.uniform(self.config.min_jitter, self.config.max_jitter)

    def _defer(self, until: float) -> None:
        if until > self._state.resume_at:
            self._state.resume_at = until

    def record_response(self, headers: Mapping[str, str], status: int) -> Optional[float]:
        """Update counters from a response.

        Args:
            headers: Response headers (case-insensitive mapping)
            status: HTTP status code

        Returns:
            For a 429, the delay in seconds before any caller may proceed;
            otherwise None
        """
        now = self.clock()
        state = self._state

        min_remaining = _header_int(headers, MIN_REMAINING_HEADER)
        day_remaining = _header_int(headers, DAY_REMAINING_HEADER)
        app_min_remaining = _header_int(headers, APP_MIN_REMAINING_HEADER)
        if min_remaining is not None:
            state.min_remaining = min_remaining
        if day_remaining is not None:
            state.day_remaining = day_remaining
        if app_min_remaining is not None:
            state.app_min_remaining = app_min_remaining

        if self.config.enabled:
            if min_remaining is not None and min_remaining <= self.config.min_remaining_threshold:
                logger.debug(f"{MIN_REMAINING_HEADER} is {min_remaining}, throttling")
                self._defer(now + self.config.min_remaining_pause)
            if (
                app_min_remaining is not None
                and app_min_remaining <= self.config.app_min_remaining_threshold
            ):
                logger.debug(f"{APP_MIN_REMAINING_HEADER} is {app_min_remaining}, throttling")
                self._defer(now + self.config.app_min_remaining_pause)
            if day_remaining is not None and day_remaining <= self.config.day_remaining_warning:
                logger.warning(f"Daily API limit nearly exhausted: {day_remaining} remaining")

        if status != 429:
            return None

        retry_after = parse_retry_after(headers, self.config.default_retry_after)
        jitter = self._jitter()
        state.throttled_count += 1
        self._defer(now + retry_after + jitter)
        delay = state.resume_at - now
        logger.warning(
            f"Rate limited (429), holding all calls for {delay:.3f}s "
            f"(retry_after={retry_after}s, jitter={jitter:.3f}s)"
        )
        return delay
