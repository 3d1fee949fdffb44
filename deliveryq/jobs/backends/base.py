"""
Job store backend interface.

Every backend honours the same state machine so the scheduler, and its
callers, stay backend-agnostic:

    scheduled -> running -> completed | failed
    scheduled -> cancelled (the job is removed from the store)
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from deliveryq.constants import JobProvider, JobStatus
from deliveryq.types.job import JobRecord


class DuplicateJobError(Exception):
    """Raised when a caller-supplied job id is already taken."""

    def __init__(self, job_id: str):
        super().__init__(f"Job already exists: {job_id}")
        self.job_id = job_id


class JobBackend(ABC):
    """Abstract job store."""

    provider: JobProvider

    async def initialize(self) -> None:
        """Prepare backend resources. Called once before first use."""

    async def close(self) -> None:
        """Release backend resources."""

    @abstractmethod
    async def ping(self) -> None:
        """Raise if the backend is unreachable."""

    @abstractmethod
    async def create(
        self,
        job_id: str,
        scheduled_for: datetime,
        job_type: str,
        data: dict[str, Any],
        now: datetime,
    ) -> JobRecord:
        """
        Store a new SCHEDULED job.

        Returns:
            The stored record; its id is the canonical job id.

        Raises:
            DuplicateJobError: If the backend honours caller ids and the id is taken.
        """

    @abstractmethod
    async def get(self, job_id: str) -> JobRecord | None:
        """Get a job by its canonical id."""

    @abstractmethod
    async def list_jobs(
        self,
        status: JobStatus | None,
        job_type: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[JobRecord], int]:
        """List matching jobs newest first, with the total before pagination."""

    @abstractmethod
    async def due(self, now: datetime, limit: int) -> list[str]:
        """Ids of SCHEDULED jobs whose time has arrived."""

    @abstractmethod
    async def claim(self, job_id: str, now: datetime) -> JobRecord | None:
        """Move a SCHEDULED job to RUNNING; None if it was not SCHEDULED."""

    @abstractmethod
    async def finish(
        self,
        job_id: str,
        status: JobStatus,
        now: datetime,
        error: str | None = None,
    ) -> bool:
        """Move a RUNNING job to COMPLETED or FAILED."""

    @abstractmethod
    async def cancel(self, job_id: str) -> bool:
        """Remove a job if it is still SCHEDULED."""

    @abstractmethod
    async def delete_finished_before(self, cutoff: datetime) -> int:
        """Remove COMPLETED and FAILED jobs last updated before ``cutoff``."""

    @abstractmethod
    async def count_by_status(self) -> dict[JobStatus, int]:
        """Number of stored jobs per status."""
