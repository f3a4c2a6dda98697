"""
Client-side rate limiting for the generative text service.

Tracks request cadence against the provider quota so the pipeline can wait
before it is throttled. The limiter is advisory state: it never blocks and
never raises. Callers check it, wait if told to, and then record their
request.

Two rules apply:
- at most ``max_requests`` requests within a rolling window
- at least ``min_interval_seconds`` between consecutive requests

The window resets lazily: when more than ``window_seconds`` have passed
since the last request, the counter drops back to zero the next time the
limiter is consulted. There is no timer.
"""
import asyncio
import logging
import math
import time
from typing import AsyncIterator, Awaitable, Callable, Optional

from pydantic import BaseModel, Field

from ..models import QuotaStatus, RateLimitState, RateLimitStatus

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class RateLimitConfig(BaseModel):
    """Quota figures for one limiter."""

    max_requests: int = Field(15, ge=1)
    window_seconds: float = Field(60.0, gt=0)
    min_interval_seconds: float = Field(4.0, ge=0)
    near_limit_threshold: int = Field(3, ge=0)


def _plural(seconds: int) -> str:
    return "second" if seconds == 1 else "seconds"


class RateLimiter:
    """
    Sliding window request limiter with a minimum request interval.

    State lives on the instance, so independent limiters can be created for
    tests or for callers that must not share quota.
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Clock = time.monotonic,
    ):
        """
        Initialize the limiter.

        Args:
            config: Quota figures (defaults to 15 requests / 60s, 4s apart)
            clock: Monotonic time source in seconds
        """
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._state = RateLimitState()

    @property
    def state(self) -> RateLimitState:
        """A copy of the current counters."""
        return self._state.model_copy()

    def check_limit(self) -> RateLimitStatus:
        """
        Check whether a request made now would exceed the quota.

        Returns:
            RateLimitStatus describing whether to wait and for how long
        """
        now = self._clock()
        self._maybe_reset_window(now)

        state = self._state
        cfg = self.config
        requests_remaining = max(0, cfg.max_requests - state.requests_in_window)
        since_last = self._seconds_since_last_request(now)
        seconds_until_reset = self._seconds_until_reset(since_last)

        # Window exhaustion first: it yields the longer wait
        if state.requests_in_window >= cfg.max_requests:
            wait_seconds = max(1, seconds_until_reset)
            return RateLimitStatus(
                limited=True,
                wait_seconds=wait_seconds,
                message=(
                    f"Rate limit reached ({cfg.max_requests}/minute). "
                    f"Please wait {wait_seconds} {_plural(wait_seconds)}."
                ),
                requests_remaining=0,
                seconds_until_window_reset=wait_seconds,
                near_limit=True,
            )

        near_limit = requests_remaining <= cfg.near_limit_threshold

        if (
            since_last is not None
            and state.requests_in_window > 0
            and since_last < cfg.min_interval_seconds
        ):
            wait_seconds = max(1, math.ceil(cfg.min_interval_seconds - since_last))
            return RateLimitStatus(
                limited=True,
                wait_seconds=wait_seconds,
                message=(
                    f"Please wait {wait_seconds} {_plural(wait_seconds)} "
                    f"between requests to avoid rate limits."
                ),
                requests_remaining=requests_remaining,
                seconds_until_window_reset=seconds_until_reset,
                near_limit=near_limit,
            )

        return RateLimitStatus(
            limited=False,
            requests_remaining=requests_remaining,
            seconds_until_window_reset=seconds_until_reset,
            near_limit=near_limit,
        )

    def record_request(self) -> None:
        """Count a request against the current window."""
        now = self._clock()
        self._maybe_reset_window(now)

        if self._state.requests_in_window == 0:
            self._state.window_start_timestamp = now
        self._state.requests_in_window += 1
        self._state.last_request_timestamp = now

        logger.debug(
            f"Recorded request {self._state.requests_in_window}/"
            f"{self.config.max_requests} in current window"
        )

    def get_status(self) -> QuotaStatus:
        """
        Get the quota summary for display without recording a request.

        Returns:
            QuotaStatus with remaining requests and reset time
        """
        status = self.check_limit()
        return QuotaStatus(
            requests_remaining=status.requests_remaining,
            seconds_until_reset=status.seconds_until_window_reset,
            near_limit=status.near_limit,
        )

    def reset(self) -> None:
        """Forget all recorded requests."""
        self._state = RateLimitState()

    def _maybe_reset_window(self, now: float) -> None:
        last = self._state.last_request_timestamp
        if last is not None and now - last > self.config.window_seconds:
            logger.debug("Rate limit window elapsed, resetting counter")
            self._state = RateLimitState()

    def _seconds_since_last_request(self, now: float) -> Optional[float]:
        last = self._state.last_request_timestamp
        if last is None:
            return None
        return now - last

    def _seconds_until_reset(self, since_last: Optional[float]) -> int:
        if since_last is None:
            return 0
        return math.ceil(max(0.0, self.config.window_seconds - since_last))


async def countdown(seconds: int, sleep: Sleep = asyncio.sleep) -> AsyncIterator[int]:
    """
    Count down whole seconds, yielding the number of seconds remaining.

    Each value is yielded before its one-second sleep, so a consumer can
    render "N seconds left" and then wait. Breaking out of the loop or
    cancelling the consuming task abandons the remaining wait.

    Args:
        seconds: Number of seconds to wait
        sleep: Awaitable sleep function (injectable for tests)

    Yields:
        seconds, seconds - 1, ..., 1
    """
    for remaining in range(int(seconds), 0, -1):
        yield remaining
        await sleep(1)
