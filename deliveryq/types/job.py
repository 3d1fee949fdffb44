"""
Job-related type definitions for internal use.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from deliveryq.constants import DEFAULT_LIST_LIMIT, JobStatus


@dataclass
class JobRecord:
    """
    A scheduled job as stored by a backend.
    Backends hand out copies; mutating a record does not change the store.
    """

    id: str
    job_type: str
    data: dict[str, Any]
    scheduled_for: datetime
    status: JobStatus
    created_at: datetime
    updated_at: datetime
    external_id: str | None = None
    last_error: str | None = None


@dataclass
class JobContext:
    """
    Context passed to job handlers during execution.
    """

    job_id: str
    job_type: str
    data: dict[str, Any]
    scheduled_for: datetime


class JobResult(BaseModel):
    """
    Result of job execution.
    Returned by job handlers after processing.
    """

    success: bool
    output: dict[str, Any] | None = None
    error: str | None = None


class ScheduleResult(BaseModel):
    """Outcome of a schedule request."""

    success: bool
    job_id: str | None = None
    scheduled_for: datetime | None = None
    error: str | None = None


class JobStatusResult(BaseModel):
    """Status lookup result; ``exists`` is False for unknown ids."""

    exists: bool
    status: JobStatus | None = None
    scheduled_for: datetime | None = None
    data: dict[str, Any] | None = None
    error: str | None = None


class JobFilter(BaseModel):
    """Filter and pagination options for listing jobs."""

    status: str | None = None
    type: str | None = None
    limit: int = Field(default=DEFAULT_LIST_LIMIT, ge=0)
    offset: int = Field(default=0, ge=0)


class JobSummary(BaseModel):
    """A job as shown in listings."""

    id: str
    type: str
    status: JobStatus
    scheduled_for: datetime
    created_at: datetime
    updated_at: datetime


class JobListResult(BaseModel):
    """Paginated job listing; ``total`` counts matches before pagination."""

    jobs: list[JobSummary]
    total: int


class JobCounts(BaseModel):
    """Number of jobs per lifecycle state."""

    scheduled: int = 0
    running: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0


class QueueHealth(BaseModel):
    """Job store health."""

    healthy: bool
    provider: str
    job_counts: JobCounts
    error: str | None = None
