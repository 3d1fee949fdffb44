"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import StrEnum


class JobStatus(StrEnum):
    """
    Scheduled job lifecycle states.

    State transitions:
    - SCHEDULED -> RUNNING (due time reached or processed manually)
    - RUNNING -> COMPLETED (handler succeeded)
    - RUNNING -> FAILED (handler failed or raised)
    - SCHEDULED -> CANCELLED (cancelled before execution)

    COMPLETED, FAILED and CANCELLED are terminal.
    """

    SCHEDULED = "scheduled"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


# Terminal states eligible for age-based cleanup
CLEANABLE_JOB_STATUSES = (JobStatus.COMPLETED, JobStatus.FAILED)


class MessagePriority(StrEnum):
    """Dispatch priority levels for queued messages."""

    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


# Dispatch order (lower = dispatched first)
PRIORITY_RANKS: dict[MessagePriority, int] = {
    MessagePriority.HIGH: 0,
    MessagePriority.NORMAL: 1,
    MessagePriority.LOW: 2,
}


class JobProvider(StrEnum):
    """Job store backends."""

    MEMORY = "memory"
    DATABASE = "database"


class LoopState(StrEnum):
    """Dispatch queue processing loop state."""

    IDLE = "idle"
    RUNNING = "running"


# Default values
DEFAULT_PRIORITY = MessagePriority.NORMAL
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAYS_MS = (1000, 2000, 5000)
FALLBACK_RETRY_DELAY_MS = 5000
DEFAULT_RATE_LIMIT_PER_SECOND = 1.5
DEFAULT_POLL_INTERVAL_SECONDS = 1.0
DEFAULT_CLEANUP_DAYS = 7
DEFAULT_LIST_LIMIT = 50

# Job type forwarded to the dispatch queue when processed
DISPATCH_JOB_TYPE = "dispatch"

# API constants
API_V1_PREFIX = "/v1"

# Metrics names
METRIC_QUEUE_DEPTH = "dispatch_queue_depth"
METRIC_MESSAGES_ENQUEUED = "messages_enqueued_total"
METRIC_MESSAGES_DISPATCHED = "messages_dispatched_total"
METRIC_DELIVERY_DURATION = "delivery_duration_seconds"
METRIC_JOBS_SCHEDULED = "jobs_scheduled_total"
METRIC_JOBS_FINISHED = "jobs_finished_total"
METRIC_JOB_DURATION = "job_duration_seconds"
METRIC_JOBS_CLEANED = "jobs_cleaned_total"

# Trace span names
SPAN_DELIVER_MESSAGE = "deliver_message"
SPAN_EXECUTE_JOB = "execute_job"
