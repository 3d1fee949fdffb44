"""
Type definitions for the delivery subsystem.
Contains input/output type definitions for all components, grouped by module.
"""

from deliveryq.types.api import (
    CleanupResponse,
    EnqueueRequest,
    EnqueueResponse,
    JobDetailResponse,
    ProcessJobResponse,
    ScheduleJobRequest,
    ScheduleJobResponse,
)
from deliveryq.types.health import HealthReport
from deliveryq.types.job import (
    JobContext,
    JobCounts,
    JobFilter,
    JobListResult,
    JobRecord,
    JobResult,
    JobStatusResult,
    JobSummary,
    QueueHealth,
    ScheduleResult,
)
from deliveryq.types.queue import (
    DeliveryResult,
    DispatchConfig,
    QueuedItem,
    QueueStatus,
    RetryDecision,
)

__all__ = [
    # API types
    "ScheduleJobRequest",
    "ScheduleJobResponse",
    "JobDetailResponse",
    "ProcessJobResponse",
    "CleanupResponse",
    "EnqueueRequest",
    "EnqueueResponse",
    # Health types
    "HealthReport",
    # Job types
    "JobRecord",
    "JobContext",
    "JobResult",
    "ScheduleResult",
    "JobStatusResult",
    "JobFilter",
    "JobSummary",
    "JobListResult",
    "JobCounts",
    "QueueHealth",
    # Queue types
    "DispatchConfig",
    "QueuedItem",
    "DeliveryResult",
    "RetryDecision",
    "QueueStatus",
]
