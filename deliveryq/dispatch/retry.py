"""
Retry policy for failed deliveries.
"""

import logging
from collections.abc import Sequence
from datetime import timedelta

from deliveryq.clock import Clock, utcnow
from deliveryq.constants import FALLBACK_RETRY_DELAY_MS
from deliveryq.types.queue import QueuedItem, RetryDecision

logger = logging.getLogger(__name__)


class RetryPolicy:
    """
    Maps a failed delivery to a backoff delay or a terminal decision.

    Delays come from an ordered table indexed by attempt; attempts past the
    end of the table reuse the last entry.
    """

    def __init__(self, retry_delays_ms: Sequence[int], clock: Clock = utcnow):
        self._delays = [max(0, int(d)) for d in retry_delays_ms]
        self._clock = clock

    def delay_for(self, attempt: int) -> int:
        """
        Get the backoff delay for a retry attempt.

        Args:
            attempt: 1-based retry number.

        Returns:
            Delay in milliseconds.
        """
        if not self._delays:
            return FALLBACK_RETRY_DELAY_MS
        index = min(max(attempt, 1), len(self._delays)) - 1
        return self._delays[index]

    def on_failure(self, item: QueuedItem, error: str) -> RetryDecision:
        """
        Record a failed attempt on the item and decide what happens next.

        On retry, ``item.scheduled_for`` is moved to the backoff time and the
        caller re-inserts the item. Otherwise the item must be dropped.

        Args:
            item: The item whose delivery failed.
            error: Failure description.

        Returns:
            RetryDecision describing the outcome.
        """
        item.retry_count += 1

        if item.retry_count > item.max_retries:
            logger.error(
                "Message failed after max retries",
                extra={
                    "message_id": item.id,
                    "priority": item.priority.value,
                    "retry_count": item.retry_count,
                    "max_retries": item.max_retries,
                    "created_at": item.created_at.isoformat(),
                    "error": error,
                },
            )
            return RetryDecision(retry=False, attempt=item.retry_count)

        delay_ms = self.delay_for(item.retry_count)
        retry_at = self._clock() + timedelta(milliseconds=delay_ms)
        item.scheduled_for = retry_at

        logger.warning(
            "Message failed, scheduling retry",
            extra={
                "message_id": item.id,
                "retry_count": item.retry_count,
                "max_retries": item.max_retries,
                "retry_at": retry_at.isoformat(),
                "error": error,
            },
        )
        return RetryDecision(
            retry=True,
            attempt=item.retry_count,
            delay_ms=delay_ms,
            retry_at=retry_at,
        )
