"""
Prometheus metrics collection.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from deliveryq.constants import (
    METRIC_DELIVERY_DURATION,
    METRIC_JOB_DURATION,
    METRIC_JOBS_CLEANED,
    METRIC_JOBS_FINISHED,
    METRIC_JOBS_SCHEDULED,
    METRIC_MESSAGES_DISPATCHED,
    METRIC_MESSAGES_ENQUEUED,
    METRIC_QUEUE_DEPTH,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the delivery subsystem.

    Collects metrics for:
    - Dispatch queue depth
    - Message enqueues and delivery outcomes
    - Delivery duration
    - Job scheduling, completion and cleanup
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.queue_depth = Gauge(
            METRIC_QUEUE_DEPTH,
            "Number of messages waiting in the dispatch queue",
            registry=self._registry,
        )

        self.messages_enqueued = Counter(
            METRIC_MESSAGES_ENQUEUED,
            "Total number of messages enqueued",
            ["priority"],
            registry=self._registry,
        )

        # outcome: delivered, retried, failed
        self.messages_dispatched = Counter(
            METRIC_MESSAGES_DISPATCHED,
            "Total number of delivery attempts by outcome",
            ["outcome"],
            registry=self._registry,
        )

        self.delivery_duration = Histogram(
            METRIC_DELIVERY_DURATION,
            "Delivery call duration in seconds",
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
            registry=self._registry,
        )

        self.jobs_scheduled = Counter(
            METRIC_JOBS_SCHEDULED,
            "Total number of jobs scheduled",
            ["provider", "job_type"],
            registry=self._registry,
        )

        self.jobs_finished = Counter(
            METRIC_JOBS_FINISHED,
            "Total number of jobs that reached a terminal state",
            ["provider", "status"],
            registry=self._registry,
        )

        self.job_duration = Histogram(
            METRIC_JOB_DURATION,
            "Job execution duration in seconds",
            ["provider", "status"],
            buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
            registry=self._registry,
        )

        self.jobs_cleaned = Counter(
            METRIC_JOBS_CLEANED,
            "Total number of terminal jobs removed by cleanup",
            ["provider"],
            registry=self._registry,
        )

    def record_message_enqueued(self, priority: str) -> None:
        """Record a message entering the queue."""
        self.messages_enqueued.labels(priority=priority).inc()

    def record_dispatch(self, outcome: str, duration_seconds: float | None = None) -> None:
        """Record the outcome of a delivery attempt."""
        self.messages_dispatched.labels(outcome=outcome).inc()
        if duration_seconds is not None:
            self.delivery_duration.observe(duration_seconds)

    def update_queue_depth(self, depth: int) -> None:
        """Update the dispatch queue depth."""
        self.queue_depth.set(depth)

    def record_job_scheduled(self, provider: str, job_type: str) -> None:
        """Record a job being accepted by the store."""
        self.jobs_scheduled.labels(provider=provider, job_type=job_type).inc()

    def record_job_finished(
        self,
        provider: str,
        status: str,
        duration_seconds: float,
    ) -> None:
        """Record a job execution reaching a terminal state."""
        self.jobs_finished.labels(provider=provider, status=status).inc()
        self.job_duration.labels(provider=provider, status=status).observe(
            duration_seconds
        )

    def record_jobs_cleaned(self, provider: str, count: int) -> None:
        """Record jobs removed by cleanup."""
        if count > 0:
            self.jobs_cleaned.labels(provider=provider).inc(count)

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self._registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics response."""
        return CONTENT_TYPE_LATEST


def setup_metrics() -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance, creating it on first use.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics
