"""
Persisted job store on SQLAlchemy.

The store generates job ids; a caller-supplied id is kept as the job's
external reference only.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from deliveryq.constants import JobProvider, JobStatus
from deliveryq.db.connection import close_db, create_tables, init_db, session_scope
from deliveryq.db.models import ScheduledJob
from deliveryq.db.repository import ScheduledJobRepository
from deliveryq.jobs.backends.base import JobBackend
from deliveryq.types.job import JobRecord

logger = logging.getLogger(__name__)


def _to_record(job: ScheduledJob) -> JobRecord:
    return JobRecord(
        id=job.id,
        job_type=job.job_type,
        data=dict(job.data or {}),
        scheduled_for=job.scheduled_for,
        status=JobStatus(job.status),
        created_at=job.created_at,
        updated_at=job.updated_at,
        external_id=job.external_id,
        last_error=job.last_error,
    )


class DatabaseJobBackend(JobBackend):
    """
    Job store backed by the ``scheduled_jobs`` table.

    Each operation runs in its own short transaction.
    """

    provider = JobProvider.DATABASE

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        """
        Initialize the backend.

        Args:
            session_factory: Session factory to use. When omitted, the
                application engine from settings is initialized on
                ``initialize()``.
        """
        self._session_factory = session_factory
        self._owns_engine = session_factory is None

    def _sessions(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            raise RuntimeError("Database job store not initialized. Call initialize() first.")
        return self._session_factory

    async def initialize(self) -> None:
        if self._session_factory is None:
            self._session_factory = await init_db()
        else:
            await create_tables(self._session_factory.kw["bind"])
        logger.info("Database job store ready")

    async def close(self) -> None:
        if self._owns_engine and self._session_factory is not None:
            await close_db()
            self._session_factory = None

    async def ping(self) -> None:
        async with session_scope(self._sessions()) as session:
            await session.execute(text("SELECT 1"))

    async def create(
        self,
        job_id: str,
        scheduled_for: datetime,
        job_type: str,
        data: dict[str, Any],
        now: datetime,
    ) -> JobRecord:
        async with session_scope(self._sessions()) as session:
            repo = ScheduledJobRepository(session)
            job = await repo.create_job(
                job_type=job_type,
                data=data,
                scheduled_for=scheduled_for,
                now=now,
                external_id=job_id or None,
            )
            return _to_record(job)

    async def get(self, job_id: str) -> JobRecord | None:
        async with session_scope(self._sessions()) as session:
            job = await ScheduledJobRepository(session).get_job(job_id)
            return _to_record(job) if job else None

    async def list_jobs(
        self,
        status: JobStatus | None,
        job_type: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[JobRecord], int]:
        async with session_scope(self._sessions()) as session:
            jobs, total = await ScheduledJobRepository(session).list_jobs(
                status=status,
                job_type=job_type,
                limit=limit,
                offset=offset,
            )
            return [_to_record(job) for job in jobs], total

    async def due(self, now: datetime, limit: int) -> list[str]:
        async with session_scope(self._sessions()) as session:
            return await ScheduledJobRepository(session).due_job_ids(now, limit)

    async def claim(self, job_id: str, now: datetime) -> JobRecord | None:
        async with session_scope(self._sessions()) as session:
            job = await ScheduledJobRepository(session).claim_job(job_id, now)
            return _to_record(job) if job else None

    async def finish(
        self,
        job_id: str,
        status: JobStatus,
        now: datetime,
        error: str | None = None,
    ) -> bool:
        async with session_scope(self._sessions()) as session:
            return await ScheduledJobRepository(session).finish_job(job_id, status, now, error)

    async def cancel(self, job_id: str) -> bool:
        async with session_scope(self._sessions()) as session:
            return await ScheduledJobRepository(session).delete_scheduled_job(job_id)

    async def delete_finished_before(self, cutoff: datetime) -> int:
        async with session_scope(self._sessions()) as session:
            return await ScheduledJobRepository(session).delete_finished_before(cutoff)

    async def count_by_status(self) -> dict[JobStatus, int]:
        async with session_scope(self._sessions()) as session:
            return await ScheduledJobRepository(session).count_by_status()
