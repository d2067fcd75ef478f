"""
Rate limiter for LLM provider calls.

Bounds the number of in-flight calls with a FIFO wait queue and tracks the
provider's rate-limit feedback (retry-after / x-ratelimit-* headers). One
instance is shared by all requests in a process.
"""

import asyncio
import math
import re
import time
from collections import deque
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Mapping

from loguru import logger

limiter_log = logger.bind(module="RateLimiter")

# x-ratelimit-reset values above this are absolute epoch seconds
EPOCH_THRESHOLD = 1e9

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")


def parse_duration(value: str | None) -> float | None:
    """
    Parse a provider duration header into seconds.

    Args:
        value: "12", "2.5", "1m30s", "120ms"

    Returns:
        Seconds, or None if unparseable

    Examples:
        >>> parse_duration("1m30s")
        90.0
    """
    if value is None:
        return None
    text = str(value).strip().lower()
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        pass
    else:
        return number if math.isfinite(number) and number >= 0 else None

    parts = _DURATION_PART.findall(text)
    if not parts or "".join(n + u for n, u in parts) != text:
        return None
    scale = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}
    return sum(float(number) * scale[unit] for number, unit in parts)


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(float(str(value).strip()))
    except (TypeError, ValueError, OverflowError):
        return None


class RateLimiter:
    """
    Bounded concurrency window plus provider rate-limit state.

    All state changes happen under an asyncio.Lock, except the cleanup of a
    cancelled waiter, which runs without awaiting.
    """

    def __init__(
        self,
        max_concurrent: int = 5,
        cooldown: float = 10.0,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize rate limiter.

        Args:
            max_concurrent: Maximum in-flight calls
            cooldown: Seconds to back off after a 429 with no reset hint
            clock: Wall clock in epoch seconds (injectable for tests)
        """
        self.max_concurrent = max(1, max_concurrent)
        self.cooldown = cooldown
        self._clock = clock
        self._lock = asyncio.Lock()
        self._waiters: deque[asyncio.Future] = deque()
        self._active = 0
        self._rate_limited = False
        self._reset_at = 0.0
        self._remaining: float = math.inf

    # ========== Concurrency window ==========

    @property
    def active(self) -> int:
        """Number of granted slots."""
        return self._active

    @property
    def queue_length(self) -> int:
        """Number of callers waiting for a slot."""
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def acquire(self) -> None:
        """Wait for a slot. Waiters are served in arrival order."""
        async with self._lock:
            if self._active < self.max_concurrent and not self.queue_length:
                self._active += 1
                return
            waiter = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)

        try:
            await waiter
        except asyncio.CancelledError:
            self._abandon(waiter)
            raise

    def _abandon(self, waiter: asyncio.Future) -> None:
        if waiter.done() and not waiter.cancelled():
            # Slot was already handed over; give it to the next waiter
            self._hand_off()
            return
        try:
            self._waiters.remove(waiter)
        except ValueError:
            pass

    def _hand_off(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                # Slot moves to the waiter, active count unchanged
                waiter.set_result(None)
                return
        self._active = max(0, self._active - 1)

    async def release(self) -> None:
        """Return a slot, waking the oldest waiter if any."""
        async with self._lock:
            self._hand_off()

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold a slot for the duration of the block."""
        await self.acquire()
        try:
            yield
        finally:
            await self.release()

    # ========== Provider feedback ==========

    async def is_rate_limited(self) -> bool:
        """
        Check the rate-limited flag, clearing it once the reset time passes.

        Returns:
            True while calls should be skipped
        """
        async with self._lock:
            if self._rate_limited and self._clock() >= self._reset_at:
                self._rate_limited = False
                self._remaining = math.inf
                limiter_log.info("Provider rate limit expired")
            return self._rate_limited

    async def record_response(self, status_code: int | None, headers: Mapping[str, str] | None) -> None:
        """
        Update rate-limit state from a provider response.

        Args:
            status_code: HTTP status, or None if no response was received
            headers: Response headers (case-insensitive names)
        """
        normalized = {str(k).lower(): v for k, v in (headers or {}).items()}

        async with self._lock:
            now = self._clock()
            reset_at = None

            retry_after = parse_duration(normalized.get("retry-after"))
            if retry_after is not None:
                reset_at = now + retry_after
            else:
                reset = parse_duration(normalized.get("x-ratelimit-reset"))
                if reset is None:
                    reset = parse_duration(normalized.get("x-ratelimit-reset-requests"))
                if reset is not None:
                    reset_at = reset if reset > EPOCH_THRESHOLD else now + reset

            remaining = _parse_int(
                normalized.get("x-ratelimit-remaining", normalized.get("x-ratelimit-remaining-requests"))
            )
            if remaining is not None:
                self._remaining = remaining
            if reset_at is not None:
                self._reset_at = reset_at

            exhausted = remaining is not None and remaining <= 0
            if status_code == 429 or retry_after is not None or exhausted:
                if self._reset_at <= now:
                    self._reset_at = now + self.cooldown
                if not self._rate_limited:
                    limiter_log.warning(
                        f"Provider rate limit hit (status={status_code}), "
                        f"backing off for {self._reset_at - now:.1f}s"
                    )
                self._rate_limited = True

    def snapshot(self) -> dict:
        """
        Current limiter status.

        Returns:
            Dict with isRateLimited, resetTime, remaining, activeRequests, queueLength
        """
        limited = self._rate_limited and self._clock() < self._reset_at
        return {
            "isRateLimited": limited,
            "resetTime": self._reset_at,
            "remaining": None if math.isinf(self._remaining) else int(self._remaining),
            "activeRequests": self._active,
            "queueLength": self.queue_length,
        }
