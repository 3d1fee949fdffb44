"""
Dispatch rate limiting.
"""

import asyncio
import logging
import time

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Process-wide minimum-interval rate limiter.

    A single global token: each permit is granted no sooner than
    ``1 / rate_per_second`` seconds after the previous one. This caps the
    average dispatch rate; there is no burst capacity.
    """

    def __init__(self, rate_per_second: float):
        """
        Initialize the rate limiter.

        Args:
            rate_per_second: Maximum permits per second. Must be positive.

        Raises:
            ValueError: If the rate is not positive.
        """
        if rate_per_second <= 0:
            raise ValueError(f"rate_per_second must be positive, got {rate_per_second}")

        self._rate_per_second = rate_per_second
        self._min_interval = 1.0 / rate_per_second
        self._last_permit: float | None = None

    @property
    def min_interval(self) -> float:
        """Minimum seconds between two permits."""
        return self._min_interval

    @property
    def wait_time(self) -> float:
        """Seconds until the next permit would be granted."""
        if self._last_permit is None:
            return 0.0
        elapsed = time.monotonic() - self._last_permit
        return max(0.0, self._min_interval - elapsed)

    async def acquire(self) -> None:
        """Suspend until a permit is available, then take it."""
        wait = self.wait_time
        if wait > 0:
            logger.debug("Rate limited, waiting", extra={"wait_seconds": round(wait, 3)})
            await asyncio.sleep(wait)

        self._last_permit = time.monotonic()

    def reset(self) -> None:
        """Forget the last permit so the next acquire is immediate."""
        self._last_permit = None
