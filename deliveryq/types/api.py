"""
API request and response type definitions.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from deliveryq.constants import MessagePriority
from deliveryq.types.job import JobStatusResult


class ScheduleJobRequest(BaseModel):
    """Request body for scheduling a job."""

    id: str = Field(default="", description="Caller-supplied job id")
    type: str = Field(..., description="Job type tag")
    scheduled_for: datetime = Field(..., description="Execution time, must be in the future")
    data: dict[str, Any] = Field(default_factory=dict, description="Job payload")


class ScheduleJobResponse(BaseModel):
    """Response body after scheduling a job."""

    job_id: str
    scheduled_for: datetime
    message: str = "Job scheduled successfully"


class JobDetailResponse(JobStatusResult):
    """Job status with its id."""

    id: str


class ProcessJobResponse(BaseModel):
    """Response body after processing a job manually."""

    id: str
    processed: bool


class CleanupResponse(BaseModel):
    """Response body after cleaning up old jobs."""

    removed: int
    older_than_days: int


class EnqueueRequest(BaseModel):
    """Request body for queueing an outbound message."""

    payload: dict[str, Any] = Field(..., description="Delivery content")
    priority: MessagePriority = Field(default=MessagePriority.NORMAL)
    scheduled_for: datetime | None = Field(
        default=None, description="Hold the message until this time"
    )


class EnqueueResponse(BaseModel):
    """Response body after queueing a message."""

    id: str
    message: str = "Message queued"

