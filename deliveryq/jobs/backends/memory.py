"""
In-process delay-queue job store.

Jobs keep the caller-supplied id (a fresh one is generated when the caller
passes none). Nothing survives a restart.
"""

import logging
from collections import Counter
from dataclasses import replace
from datetime import datetime
from typing import Any
from uuid import uuid4

from deliveryq.constants import CLEANABLE_JOB_STATUSES, JobProvider, JobStatus
from deliveryq.jobs.backends.base import DuplicateJobError, JobBackend
from deliveryq.types.job import JobRecord

logger = logging.getLogger(__name__)


class MemoryJobBackend(JobBackend):
    """
    Dictionary-backed job store.

    Finished jobs are retained up to a cap per terminal state (newest kept),
    like a delay queue's remove-on-complete / remove-on-fail options.
    """

    provider = JobProvider.MEMORY

    def __init__(self, keep_completed: int = 100, keep_failed: int = 50):
        self._jobs: dict[str, JobRecord] = {}
        self._retention = {
            JobStatus.COMPLETED: keep_completed,
            JobStatus.FAILED: keep_failed,
        }

    async def ping(self) -> None:
        return None

    async def create(
        self,
        job_id: str,
        scheduled_for: datetime,
        job_type: str,
        data: dict[str, Any],
        now: datetime,
    ) -> JobRecord:
        job_id = job_id or str(uuid4())
        if job_id in self._jobs:
            raise DuplicateJobError(job_id)

        record = JobRecord(
            id=job_id,
            job_type=job_type,
            data=dict(data),
            scheduled_for=scheduled_for,
            status=JobStatus.SCHEDULED,
            created_at=now,
            updated_at=now,
        )
        self._jobs[job_id] = record
        return replace(record)

    async def get(self, job_id: str) -> JobRecord | None:
        record = self._jobs.get(job_id)
        return replace(record) if record else None

    async def list_jobs(
        self,
        status: JobStatus | None,
        job_type: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[JobRecord], int]:
        matches = [
            job
            for job in self._jobs.values()
            if (status is None or job.status == status)
            and (job_type is None or job.job_type == job_type)
        ]
        # dict order is insertion order, so reversing breaks created_at ties newest first
        matches = sorted(reversed(matches), key=lambda job: job.created_at, reverse=True)
        page = matches[offset:offset + limit]
        return [replace(job) for job in page], len(matches)

    async def due(self, now: datetime, limit: int) -> list[str]:
        due = sorted(
            (
                job
                for job in self._jobs.values()
                if job.status == JobStatus.SCHEDULED and job.scheduled_for <= now
            ),
            key=lambda job: job.scheduled_for,
        )
        return [job.id for job in due[:limit]]

    async def claim(self, job_id: str, now: datetime) -> JobRecord | None:
        record = self._jobs.get(job_id)
        if record is None or record.status != JobStatus.SCHEDULED:
            return None

        record.status = JobStatus.RUNNING
        record.updated_at = now
        return replace(record)

    async def finish(
        self,
        job_id: str,
        status: JobStatus,
        now: datetime,
        error: str | None = None,
    ) -> bool:
        record = self._jobs.get(job_id)
        if record is None or record.status != JobStatus.RUNNING:
            return False

        record.status = status
        record.updated_at = now
        record.last_error = error
        self._enforce_retention(status)
        return True

    async def cancel(self, job_id: str) -> bool:
        record = self._jobs.get(job_id)
        if record is None or record.status != JobStatus.SCHEDULED:
            return False

        del self._jobs[job_id]
        return True

    async def delete_finished_before(self, cutoff: datetime) -> int:
        expired = [
            job.id
            for job in self._jobs.values()
            if job.status in CLEANABLE_JOB_STATUSES and job.updated_at < cutoff
        ]
        for job_id in expired:
            del self._jobs[job_id]
        return len(expired)

    async def count_by_status(self) -> dict[JobStatus, int]:
        return dict(Counter(job.status for job in self._jobs.values()))

    def _enforce_retention(self, status: JobStatus) -> None:
        limit = self._retention.get(status)
        if limit is None:
            return

        finished = sorted(
            (job for job in self._jobs.values() if job.status == status),
            key=lambda job: job.updated_at,
        )
        excess = len(finished) - limit
        for job in finished[:max(excess, 0)]:
            del self._jobs[job.id]

        if excess > 0:
            logger.debug(
                "Dropped finished jobs over retention cap",
                extra={"status": status.value, "dropped": excess},
            )
