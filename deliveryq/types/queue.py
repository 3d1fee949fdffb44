"""
Dispatch queue type definitions.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from deliveryq.clock import utcnow
from deliveryq.constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_RATE_LIMIT_PER_SECOND,
    DEFAULT_RETRY_DELAYS_MS,
    MessagePriority,
)


class DispatchConfig(BaseModel):
    """
    Dispatch queue configuration.
    Read once when the queue is constructed.
    """

    rate_limit_per_second: float = Field(default=DEFAULT_RATE_LIMIT_PER_SECOND, gt=0)
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    retry_delays_ms: list[int] = Field(default_factory=lambda: list(DEFAULT_RETRY_DELAYS_MS))
    poll_interval_seconds: float = Field(default=DEFAULT_POLL_INTERVAL_SECONDS, gt=0)

    @classmethod
    def from_settings(cls, settings: Any) -> "DispatchConfig":
        """Build the dispatch configuration from application settings."""
        return cls(
            rate_limit_per_second=settings.dispatch_rate_limit_per_second,
            max_retries=settings.dispatch_max_retries,
            retry_delays_ms=list(settings.dispatch_retry_delays_ms),
            poll_interval_seconds=settings.dispatch_poll_interval_seconds,
        )


@dataclass
class QueuedItem:
    """
    A message waiting in the dispatch queue.

    Only the queue's processing loop mutates retry_count and scheduled_for.
    """

    id: str
    payload: dict[str, Any]
    priority: MessagePriority
    max_retries: int
    retry_count: int = 0
    created_at: datetime = field(default_factory=utcnow)
    scheduled_for: datetime | None = None

    def is_ready(self, now: datetime) -> bool:
        """Check whether the item may be dispatched at ``now``."""
        return self.scheduled_for is None or self.scheduled_for <= now


class DeliveryResult(BaseModel):
    """
    Outcome of a single delivery attempt.
    Returned by the delivery callable supplied to the queue.
    """

    success: bool
    message_id: str | None = None
    error: str | None = None


@dataclass
class RetryDecision:
    """Result of routing a failed delivery through the retry policy."""

    retry: bool
    attempt: int
    delay_ms: int | None = None
    retry_at: datetime | None = None


class QueueStatus(BaseModel):
    """Snapshot of the dispatch queue."""

    queue_length: int
    ready: int
    delayed: int
    processing: bool
    delivered: int = 0
    retried: int = 0
    failed: int = 0
    last_activity_at: datetime | None = None
    config: DispatchConfig
