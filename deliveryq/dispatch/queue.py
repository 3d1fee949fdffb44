"""
In-memory dispatch queue for outbound messages.

Messages are delivered one at a time by a single processing loop, in
priority order (high, normal, low; FIFO within a priority), never before
their scheduled time, and no faster than the rate limiter allows. Failed
deliveries go back through the retry policy.
"""

import asyncio
import heapq
import itertools
import logging
import time
from datetime import datetime
from typing import Any
from uuid import uuid4

from deliveryq.clock import Clock, to_naive_utc, utcnow
from deliveryq.constants import (
    DEFAULT_PRIORITY,
    PRIORITY_RANKS,
    SPAN_DELIVER_MESSAGE,
    LoopState,
    MessagePriority,
)
from deliveryq.dispatch.rate_limit import RateLimiter
from deliveryq.dispatch.retry import RetryPolicy
from deliveryq.dispatch.transports import Deliver
from deliveryq.observability.metrics import get_metrics
from deliveryq.observability.tracing import get_tracer
from deliveryq.types.queue import DeliveryResult, DispatchConfig, QueuedItem, QueueStatus

logger = logging.getLogger(__name__)


class DispatchQueue:
    """
    Priority-ordered, time-gated message queue with one processing loop.

    Pending items live in two heaps:
    - ready: keyed by (priority rank, insertion sequence)
    - delayed: keyed by (scheduled_for, insertion sequence)

    Each loop cycle moves due items from delayed to ready, so future-dated
    items stay invisible until their time regardless of priority.

    All mutation happens on the event loop; there are no locks.
    """

    def __init__(
        self,
        deliver: Deliver,
        config: DispatchConfig | None = None,
        rate_limiter: RateLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
        clock: Clock = utcnow,
    ):
        """
        Initialize the queue.

        Args:
            deliver: Async callable performing one delivery.
            config: Queue configuration. Defaults to DispatchConfig().
            rate_limiter: Limiter gating each delivery. Built from config if omitted.
            retry_policy: Policy for failed deliveries. Built from config if omitted.
            clock: Source of the current naive UTC time.
        """
        self._deliver = deliver
        self._config = config or DispatchConfig()
        self._rate_limiter = rate_limiter or RateLimiter(self._config.rate_limit_per_second)
        self._retry_policy = retry_policy or RetryPolicy(self._config.retry_delays_ms, clock=clock)
        self._clock = clock

        self._ready: list[tuple[int, int, QueuedItem]] = []
        self._delayed: list[tuple[datetime, int, QueuedItem]] = []
        self._sequence = itertools.count()

        self._state = LoopState.IDLE
        self._task: asyncio.Task | None = None
        self._wakeup = asyncio.Event()

        self._delivered = 0
        self._retried = 0
        self._failed = 0
        self._last_activity_at: datetime | None = None
        self._metrics = get_metrics()

    def __len__(self) -> int:
        return len(self._ready) + len(self._delayed)

    @property
    def config(self) -> DispatchConfig:
        return self._config

    @property
    def processing(self) -> bool:
        """Check if a processing loop is currently running."""
        return self._state is LoopState.RUNNING

    def enqueue(
        self,
        payload: dict[str, Any],
        priority: MessagePriority | str = DEFAULT_PRIORITY,
        scheduled_for: datetime | None = None,
    ) -> str:
        """
        Add a message to the queue.

        Starts the processing loop when it is idle. Delivery failures are
        handled asynchronously and never reach the caller.

        Args:
            payload: Delivery content, opaque to the queue.
            priority: high, normal or low.
            scheduled_for: Hold the message until this time.

        Returns:
            The generated message id.

        Raises:
            ValueError: If the priority is not a known level.
        """
        item = QueuedItem(
            id=f"msg_{uuid4().hex}",
            payload=payload,
            priority=MessagePriority(priority),
            max_retries=self._config.max_retries,
            created_at=self._clock(),
            scheduled_for=to_naive_utc(scheduled_for) if scheduled_for else None,
        )
        self._insert(item)

        self._metrics.record_message_enqueued(item.priority.value)
        logger.info(
            "Message queued",
            extra={
                "message_id": item.id,
                "priority": item.priority.value,
                "scheduled_for": item.scheduled_for.isoformat() if item.scheduled_for else None,
                "queue_length": len(self),
            },
        )

        self._ensure_processing()
        return item.id

    def get_status(self) -> QueueStatus:
        """Get a snapshot of the queue."""
        return QueueStatus(
            queue_length=len(self),
            ready=len(self._ready),
            delayed=len(self._delayed),
            processing=self.processing,
            delivered=self._delivered,
            retried=self._retried,
            failed=self._failed,
            last_activity_at=self._last_activity_at,
            config=self._config,
        )

    def clear(self) -> None:
        """Drop every pending item. In-flight deliveries are unaffected."""
        dropped = len(self)
        self._ready.clear()
        self._delayed.clear()
        self._metrics.update_queue_depth(0)
        logger.info("Dispatch queue cleared", extra={"dropped": dropped})

    async def join(self) -> None:
        """Wait until the current processing loop has drained the queue."""
        task = self._task
        if task is not None:
            await task

    async def close(self) -> None:
        """Cancel the processing loop. Pending items stay queued."""
        task = self._task
        if task is None:
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Dispatch queue stopped", extra={"pending": len(self)})

    def _insert(self, item: QueuedItem) -> None:
        seq = next(self._sequence)
        if item.is_ready(self._clock()):
            heapq.heappush(self._ready, (PRIORITY_RANKS[item.priority], seq, item))
        else:
            heapq.heappush(self._delayed, (item.scheduled_for, seq, item))
        self._metrics.update_queue_depth(len(self))

    def _promote_due(self, now: datetime) -> None:
        while self._delayed and self._delayed[0][0] <= now:
            _, seq, item = heapq.heappop(self._delayed)
            heapq.heappush(self._ready, (PRIORITY_RANKS[item.priority], seq, item))

    def _ensure_processing(self) -> None:
        if self._state is LoopState.RUNNING:
            self._wakeup.set()
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                "No running event loop, dispatch deferred until the next enqueue",
                extra={"queue_length": len(self)},
            )
            return

        self._state = LoopState.RUNNING
        self._task = loop.create_task(self._process_queue())

    async def _process_queue(self) -> None:
        logger.info("Starting dispatch queue processing", extra={"queue_length": len(self)})

        try:
            while self._ready or self._delayed:
                self._promote_due(self._clock())

                if not self._ready:
                    await self._wait_for_work()
                    continue

                _, _, item = heapq.heappop(self._ready)
                self._metrics.update_queue_depth(len(self))
                await self._dispatch(item)
        finally:
            self._state = LoopState.IDLE
            self._task = None

        logger.info("Dispatch queue processing completed")

    async def _wait_for_work(self) -> None:
        # Woken early by enqueue so a newly ready item does not wait a full poll
        self._wakeup.clear()
        try:
            await asyncio.wait_for(
                self._wakeup.wait(),
                timeout=self._config.poll_interval_seconds,
            )
        except asyncio.TimeoutError:
            pass

    async def _dispatch(self, item: QueuedItem) -> None:
        """
        Deliver a single item and route the outcome.

        Args:
            item: The item, already removed from the pending heaps.
        """
        await self._rate_limiter.acquire()

        logger.info(
            "Dispatching message",
            extra={
                "message_id": item.id,
                "priority": item.priority.value,
                "attempt": item.retry_count + 1,
            },
        )

        start_time = time.monotonic()
        try:
            with get_tracer().start_as_current_span(SPAN_DELIVER_MESSAGE) as span:
                span.set_attribute("message_id", item.id)
                span.set_attribute("priority", item.priority.value)
                span.set_attribute("attempt", item.retry_count + 1)

                result = await self._deliver(item.payload)

            if not isinstance(result, DeliveryResult):
                result = DeliveryResult.model_validate(result)
        except Exception as e:
            logger.warning(
                "Delivery raised exception",
                extra={"message_id": item.id, "error": str(e)},
                exc_info=True,
            )
            self._handle_failure(item, str(e) or type(e).__name__, time.monotonic() - start_time)
            return

        duration = time.monotonic() - start_time
        self._last_activity_at = self._clock()

        if result.success:
            self._delivered += 1
            self._metrics.record_dispatch("delivered", duration)
            logger.info(
                "Message delivered",
                extra={
                    "message_id": item.id,
                    "provider_message_id": result.message_id,
                    "duration": f"{duration:.3f}s",
                },
            )
        else:
            self._handle_failure(item, result.error or "Unknown error", duration)

    def _handle_failure(self, item: QueuedItem, error: str, duration: float) -> None:
        self._last_activity_at = self._clock()
        decision = self._retry_policy.on_failure(item, error)

        if decision.retry:
            self._retried += 1
            self._metrics.record_dispatch("retried", duration)
            self._insert(item)
        else:
            self._failed += 1
            self._metrics.record_dispatch("failed", duration)
