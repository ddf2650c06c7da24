"""Sliding-window rate limiter for supplier API calls."""

import asyncio
import time
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Deque, Optional

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class RateLimiterStats:
    """Snapshot of the limiter window, for logging and monitoring only."""

    requests_in_window: int
    slots_available: int
    time_to_next_slot: float
    is_throttling: bool


class SlidingWindowRateLimiter:
    """Request gate combining a sliding window with a minimum spacing.

    The limiter remembers the timestamp of every request in the last
    ``window_seconds``. Before each request ``wait_for_slot()``:

    1. waits for the oldest timestamp to leave the window when the window
       already holds ``max_requests`` entries (plus a small safety margin),
    2. waits until ``min_delay_seconds`` have passed since the last request,
    3. adds half a ``min_delay_seconds`` when the window is at or above
       ``throttle_threshold`` of its capacity, so the run does not keep
       bursting right up to the limit.

    The limiter never raises, it only delays. State lives in memory and
    belongs to one adapter instance; two suppliers must never share one.
    """

    def __init__(
        self,
        name: str,
        max_requests: int = 48,
        window_seconds: float = 60.0,
        min_delay_seconds: float = 1.25,
        throttle_threshold: float = 0.85,
        safety_margin_seconds: float = 0.2,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the limiter.

        Args:
            name: Label used in log events (usually the supplier slug)
            max_requests: Requests allowed inside one window
            window_seconds: Sliding window length
            min_delay_seconds: Minimum spacing between two requests
            throttle_threshold: Window occupancy ratio that triggers extra delay
            safety_margin_seconds: Added to the wait for a full window
            clock: Monotonic clock, injectable for tests
            sleep: Async sleep, injectable for tests
        """
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.name = name
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.min_delay_seconds = min_delay_seconds
        self.throttle_threshold = throttle_threshold
        self.safety_margin_seconds = safety_margin_seconds
        self._clock = clock
        self._sleep = sleep
        self._timestamps: Deque[float] = deque()
        self._last_request: Optional[float] = None
        self._lock = asyncio.Lock()
        self.logger = logger.bind(limiter=name)

    def _prune(self, now: float) -> None:
        """Drop timestamps that left the window."""
        cutoff = now - self.window_seconds
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

    def _is_throttling(self) -> bool:
        return len(self._timestamps) >= self.max_requests * self.throttle_threshold

    async def wait_for_slot(self) -> None:
        """Block until the next request may be sent, then record it.

        Must be awaited immediately before every outbound request.
        """
        async with self._lock:
            now = self._clock()
            self._prune(now)

            if len(self._timestamps) >= self.max_requests:
                wait_time = self._timestamps[0] + self.window_seconds - now
                if wait_time > 0:
                    self.logger.info(
                        "rate_limit_window_full",
                        requests_in_window=len(self._timestamps),
                        wait_seconds=round(wait_time, 3),
                    )
                    await self._sleep(wait_time + self.safety_margin_seconds)
                now = self._clock()
                self._prune(now)

            if self._last_request is not None:
                elapsed = now - self._last_request
                if elapsed < self.min_delay_seconds:
                    await self._sleep(self.min_delay_seconds - elapsed)

            if self._is_throttling():
                extra_delay = self.min_delay_seconds * 0.5
                self.logger.debug(
                    "rate_limit_throttling",
                    requests_in_window=len(self._timestamps),
                    max_requests=self.max_requests,
                    extra_delay_seconds=extra_delay,
                )
                if extra_delay > 0:
                    await self._sleep(extra_delay)

            self._last_request = self._clock()
            self._timestamps.append(self._last_request)

    def get_stats(self) -> RateLimiterStats:
        """Return current window occupancy."""
        now = self._clock()
        self._prune(now)
        in_window = len(self._timestamps)

        time_to_next_slot = 0.0
        if in_window >= self.max_requests:
            time_to_next_slot = max(0.0, self._timestamps[0] + self.window_seconds - now)
        if self._last_request is not None:
            time_to_next_slot = max(time_to_next_slot, self.min_delay_seconds - (now - self._last_request))

        return RateLimiterStats(
            requests_in_window=in_window,
            slots_available=max(0, self.max_requests - in_window),
            time_to_next_slot=time_to_next_slot,
            is_throttling=self._is_throttling(),
        )

    def reset(self) -> None:
        """Forget all recorded requests."""
        self._timestamps.clear()
        self._last_request = None
