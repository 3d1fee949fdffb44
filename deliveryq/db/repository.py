"""
Scheduled job repository for database operations.
Implements the data access patterns behind the database job store.
"""

import logging
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from deliveryq.constants import CLEANABLE_JOB_STATUSES, JobStatus
from deliveryq.db.models import ScheduledJob

logger = logging.getLogger(__name__)


class ScheduledJobRepository:
    """
    Repository for scheduled job database operations.

    Every state transition is a conditional UPDATE/DELETE on the expected
    current status, so a transition that lost a race affects no rows.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            session: The async database session.
        """
        self._session = session

    async def create_job(
        self,
        job_type: str,
        data: dict[str, Any],
        scheduled_for: datetime,
        now: datetime,
        external_id: str | None = None,
    ) -> ScheduledJob:
        """
        Insert a new scheduled job.

        Args:
            job_type: The job type tag.
            data: The job payload.
            scheduled_for: Execution time.
            now: Creation timestamp.
            external_id: Optional caller-supplied reference.

        Returns:
            The created job with its generated id.
        """
        job = ScheduledJob(
            job_type=job_type,
            data=data,
            scheduled_for=scheduled_for,
            status=JobStatus.SCHEDULED,
            created_at=now,
            updated_at=now,
            external_id=external_id,
        )
        self._session.add(job)
        await self._session.flush()

        logger.info(
            "Created scheduled job",
            extra={"job_id": job.id, "job_type": job_type, "external_id": external_id},
        )
        return job

    async def get_job(self, job_id: str) -> ScheduledJob | None:
        """
        Get a job by ID.

        Args:
            job_id: The job id.

        Returns:
            The job or None if not found.
        """
        stmt = select(ScheduledJob).where(ScheduledJob.id == job_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_jobs(
        self,
        status: JobStatus | None = None,
        job_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[Sequence[ScheduledJob], int]:
        """
        List jobs with optional filtering, newest first.

        Args:
            status: Optional status filter.
            job_type: Optional type filter.
            limit: Maximum number of jobs to return.
            offset: Offset for pagination.

        Returns:
            Tuple of (jobs, total_count) where the count ignores pagination.
        """
        filters = []
        if status is not None:
            filters.append(ScheduledJob.status == status)
        if job_type is not None:
            filters.append(ScheduledJob.job_type == job_type)

        count_stmt = select(func.count()).select_from(ScheduledJob).where(*filters)
        count_result = await self._session.execute(count_stmt)
        total = count_result.scalar() or 0

        stmt = (
            select(ScheduledJob)
            .where(*filters)
            .order_by(ScheduledJob.created_at.desc(), ScheduledJob.id)
            .limit(limit)
            .offset(offset)
        )
        result = await self._session.execute(stmt)
        jobs = result.scalars().all()

        return jobs, total

    async def due_job_ids(self, now: datetime, limit: int) -> list[str]:
        """
        Get ids of scheduled jobs whose time has arrived, oldest due first.

        Args:
            now: Current time.
            limit: Maximum number of ids.

        Returns:
            List of job ids.
        """
        stmt = (
            select(ScheduledJob.id)
            .where(
                and_(
                    ScheduledJob.status == JobStatus.SCHEDULED,
                    ScheduledJob.scheduled_for <= now,
                )
            )
            .order_by(ScheduledJob.scheduled_for.asc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def claim_job(self, job_id: str, now: datetime) -> ScheduledJob | None:
        """
        Transition a job from SCHEDULED to RUNNING.

        Args:
            job_id: The job id.
            now: Transition timestamp.

        Returns:
            The running job, or None if it was not in SCHEDULED state.
        """
        stmt = (
            update(ScheduledJob)
            .where(
                and_(
                    ScheduledJob.id == job_id,
                    ScheduledJob.status == JobStatus.SCHEDULED,
                )
            )
            .values(status=JobStatus.RUNNING, updated_at=now)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None

        job = await self.get_job(job_id)
        if job is not None:
            await self._session.refresh(job)
        return job

    async def finish_job(
        self,
        job_id: str,
        status: JobStatus,
        now: datetime,
        error: str | None = None,
    ) -> bool:
        """
        Transition a RUNNING job to COMPLETED or FAILED.

        Args:
            job_id: The job id.
            status: COMPLETED or FAILED.
            now: Transition timestamp.
            error: Failure message, if any.

        Returns:
            True if the job was running and has been updated.
        """
        stmt = (
            update(ScheduledJob)
            .where(
                and_(
                    ScheduledJob.id == job_id,
                    ScheduledJob.status == JobStatus.RUNNING,
                )
            )
            .values(status=status, updated_at=now, last_error=error)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def delete_scheduled_job(self, job_id: str) -> bool:
        """
        Delete a job only while it is still SCHEDULED.

        Args:
            job_id: The job id.

        Returns:
            True if a job was deleted.
        """
        stmt = delete(ScheduledJob).where(
            and_(
                ScheduledJob.id == job_id,
                ScheduledJob.status == JobStatus.SCHEDULED,
            )
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def delete_finished_before(self, cutoff: datetime) -> int:
        """
        Delete completed and failed jobs last updated before ``cutoff``.

        Args:
            cutoff: Age threshold.

        Returns:
            Number of jobs deleted.
        """
        stmt = delete(ScheduledJob).where(
            and_(
                ScheduledJob.status.in_(CLEANABLE_JOB_STATUSES),
                ScheduledJob.updated_at < cutoff,
            )
        )
        result = await self._session.execute(stmt)
        count = result.rowcount or 0

        if count:
            logger.info("Deleted finished jobs", extra={"count": count, "cutoff": cutoff.isoformat()})

        return count

    async def count_by_status(self) -> dict[JobStatus, int]:
        """
        Count jobs per status.

        Returns:
            Mapping of status to count; statuses without jobs are absent.
        """
        stmt = select(ScheduledJob.status, func.count()).group_by(ScheduledJob.status)
        result = await self._session.execute(stmt)
        return {JobStatus(status): count for status, count in result.all()}
