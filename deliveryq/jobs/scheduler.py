"""
Delayed job scheduler.

Callers schedule, inspect, cancel and process jobs through this class only;
the backend behind it is selected once from configuration. Operations report
problems through their return values and never raise for unknown ids,
invalid input or backend faults.
"""

import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import Any

from deliveryq.clock import Clock, to_naive_utc, utcnow
from deliveryq.config import Settings, get_settings
from deliveryq.constants import (
    DEFAULT_CLEANUP_DAYS,
    SPAN_EXECUTE_JOB,
    JobProvider,
    JobStatus,
)
from deliveryq.jobs.backends import (
    DuplicateJobError,
    JobBackend,
    create_backend,
    resolve_provider,
)
from deliveryq.jobs.handlers import HandlerRegistry, default_registry
from deliveryq.observability.metrics import get_metrics
from deliveryq.observability.tracing import get_tracer
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

logger = logging.getLogger(__name__)


class JobScheduler:
    """
    Provider-abstracted registry of delayed jobs.

    Lifecycle: scheduled -> running -> completed | failed, or
    scheduled -> cancelled (removed). Terminal jobs accept no transition.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        backend: JobBackend | None = None,
        handlers: HandlerRegistry | None = None,
        clock: Clock = utcnow,
    ):
        """
        Initialize the scheduler.

        Args:
            settings: Application settings. Defaults to the cached settings.
            backend: Explicit job store. When omitted, the store is built from
                ``settings.job_provider``; an unknown provider leaves the
                scheduler without a store and every operation fails softly.
            handlers: Job handlers. Defaults to a copy of the built-ins.
            clock: Source of the current naive UTC time.
        """
        self._settings = settings or get_settings()
        self._clock = clock
        self.handlers = handlers or default_registry.copy()

        self._provider: JobProvider | None
        if backend is not None:
            self._backend: JobBackend | None = backend
            self._provider = backend.provider
            self._provider_name = backend.provider.value
        else:
            self._provider_name = self._settings.job_provider
            self._provider = resolve_provider(self._provider_name)
            self._backend = (
                create_backend(self._provider, self._settings) if self._provider else None
            )

        if self._backend is None:
            logger.error(
                "Unsupported job provider",
                extra={"provider": self._provider_name},
            )

        self._cancelled = 0
        self._metrics = get_metrics()

    @property
    def provider(self) -> JobProvider | None:
        """The resolved provider, or None if the configured one is unknown."""
        return self._provider

    @property
    def provider_name(self) -> str:
        return self._provider_name

    def _unsupported(self) -> str:
        return f"Unsupported job provider: {self._provider_name}"

    async def initialize(self) -> None:
        """Prepare the backend. Call once before scheduling."""
        if self._backend is not None:
            await self._backend.initialize()

    async def close(self) -> None:
        """Release backend resources."""
        if self._backend is None:
            return
        try:
            await self._backend.close()
        except Exception as e:
            logger.error(
                "Job store shutdown failed",
                extra={"provider": self._provider_name, "error": str(e)},
            )

    async def schedule_job(
        self,
        job_id: str,
        scheduled_for: datetime,
        job_type: str,
        data: dict[str, Any] | None = None,
    ) -> ScheduleResult:
        """
        Schedule a job for future execution.

        Args:
            job_id: Caller-supplied id. Kept by the memory store; the
                database store generates its own.
            scheduled_for: Execution time; must be in the future.
            job_type: Non-empty type tag selecting the handler.
            data: Job payload.

        Returns:
            ScheduleResult with the canonical job id on success.
        """
        now = self._clock()
        if scheduled_for is None or to_naive_utc(scheduled_for) <= now:
            return ScheduleResult(success=False, error="Scheduled time must be in the future")

        if not isinstance(job_type, str) or not job_type:
            return ScheduleResult(success=False, error="Job type is required")

        if self._backend is None:
            logger.error("Unsupported job provider", extra={"provider": self._provider_name})
            return ScheduleResult(success=False, error=self._unsupported())

        scheduled_for = to_naive_utc(scheduled_for)
        logger.info(
            "Scheduling job",
            extra={
                "job_id": job_id,
                "job_type": job_type,
                "scheduled_for": scheduled_for.isoformat(),
                "provider": self._provider_name,
            },
        )

        try:
            record = await self._backend.create(job_id, scheduled_for, job_type, data or {}, now)
        except DuplicateJobError as e:
            logger.warning("Duplicate job id", extra={"job_id": job_id})
            return ScheduleResult(success=False, error=str(e))
        except Exception as e:
            logger.exception("Job scheduling failed", extra={"job_id": job_id, "error": str(e)})
            return ScheduleResult(success=False, error=str(e))

        self._metrics.record_job_scheduled(self._provider_name, job_type)
        logger.info(
            "Job scheduled",
            extra={"job_id": record.id, "scheduled_for": record.scheduled_for.isoformat()},
        )
        return ScheduleResult(success=True, job_id=record.id, scheduled_for=record.scheduled_for)

    async def cancel_job(self, job_id: str) -> bool:
        """
        Cancel a job that has not started yet.

        The job is removed from the store.

        Returns:
            True if the job existed and was still scheduled; False for unknown,
            running and terminal jobs.
        """
        if self._backend is None or not job_id:
            return False

        try:
            record = await self._backend.get(job_id)
            if record is None:
                logger.warning("Job not found for cancellation", extra={"job_id": job_id})
                return False

            if record.status != JobStatus.SCHEDULED:
                logger.warning(
                    "Cannot cancel job that is not scheduled",
                    extra={"job_id": job_id, "status": record.status.value},
                )
                return False

            cancelled = await self._backend.cancel(job_id)
        except Exception as e:
            logger.exception("Job cancellation failed", extra={"job_id": job_id, "error": str(e)})
            return False

        if cancelled:
            self._cancelled += 1
            logger.info("Job cancelled", extra={"job_id": job_id})
        return cancelled

    async def get_job_status(self, job_id: str) -> JobStatusResult:
        """
        Look up a job.

        Returns:
            JobStatusResult; ``exists`` is False for unknown ids.
        """
        if self._backend is None:
            return JobStatusResult(exists=False, error=self._unsupported())

        try:
            record = await self._backend.get(job_id)
        except Exception as e:
            logger.error("Getting job status failed", extra={"job_id": job_id, "error": str(e)})
            return JobStatusResult(exists=False, error=str(e))

        if record is None:
            return JobStatusResult(exists=False)

        return JobStatusResult(
            exists=True,
            status=record.status,
            scheduled_for=record.scheduled_for,
            data=record.data,
        )

    async def list_jobs(self, filters: JobFilter | dict[str, Any] | None = None) -> JobListResult:
        """
        List jobs, newest first.

        Empty-string filters mean no filter. ``total`` counts every match
        before ``limit``/``offset`` apply.
        """
        if filters is None:
            filters = JobFilter()
        elif isinstance(filters, dict):
            filters = JobFilter(**filters)

        empty = JobListResult(jobs=[], total=0)
        if self._backend is None:
            return empty

        status = None
        if filters.status:
            try:
                status = JobStatus(filters.status)
            except ValueError:
                return empty

        try:
            records, total = await self._backend.list_jobs(
                status=status,
                job_type=filters.type or None,
                limit=filters.limit,
                offset=filters.offset,
            )
        except Exception as e:
            logger.error("Listing jobs failed", extra={"error": str(e)})
            return empty

        return JobListResult(
            jobs=[
                JobSummary(
                    id=record.id,
                    type=record.job_type,
                    status=record.status,
                    scheduled_for=record.scheduled_for,
                    created_at=record.created_at,
                    updated_at=record.updated_at,
                )
                for record in records
            ],
            total=total,
        )

    async def process_job(self, job_id: str) -> bool:
        """
        Run a scheduled job now.

        The job moves to running, its handler executes, and it ends completed
        or failed.

        Returns:
            True if the job was executed; False if it does not exist or is
            not scheduled (including jobs that were already processed).
        """
        if self._backend is None:
            return False

        try:
            record = await self._backend.claim(job_id, self._clock())
        except Exception as e:
            logger.exception("Job processing error", extra={"job_id": job_id, "error": str(e)})
            return False

        if record is None:
            logger.warning("Job not found or not in processable state", extra={"job_id": job_id})
            return False

        await self._execute(record)
        return True

    async def _execute(self, record: JobRecord) -> None:
        start_time = time.monotonic()
        context = JobContext(
            job_id=record.id,
            job_type=record.job_type,
            data=record.data,
            scheduled_for=record.scheduled_for,
        )

        logger.info(
            "Executing job",
            extra={"job_id": record.id, "job_type": record.job_type},
        )

        with get_tracer().start_as_current_span(SPAN_EXECUTE_JOB) as span:
            span.set_attribute("job_id", record.id)
            span.set_attribute("job_type", record.job_type)
            span.set_attribute("provider", self._provider_name)

            try:
                result = await self.handlers.execute(context)
            except asyncio.CancelledError:
                # A claimed job must not be left running
                logger.warning("Job cancelled during shutdown", extra={"job_id": record.id})
                await self._record_outcome(
                    record, JobResult(success=False, error="Cancelled during shutdown"), start_time
                )
                raise

        await self._record_outcome(record, result, start_time)

    async def _record_outcome(self, record: JobRecord, result: JobResult, start_time: float) -> None:
        status = JobStatus.COMPLETED if result.success else JobStatus.FAILED
        duration = time.monotonic() - start_time

        try:
            await self._backend.finish(record.id, status, self._clock(), result.error)
        except Exception as e:
            logger.exception(
                "Failed to record job outcome",
                extra={"job_id": record.id, "status": status.value, "error": str(e)},
            )
            return

        self._metrics.record_job_finished(self._provider_name, status.value, duration)

        if result.success:
            logger.info(
                "Job completed",
                extra={"job_id": record.id, "duration": f"{duration:.2f}s"},
            )
        else:
            logger.error(
                "Job failed",
                extra={"job_id": record.id, "job_type": record.job_type, "error": result.error},
            )

    async def run_due_jobs(self, limit: int | None = None) -> int:
        """
        Process every scheduled job whose time has arrived.

        Args:
            limit: Maximum jobs to process. Defaults to ``job_batch_size``.

        Returns:
            Number of jobs executed.
        """
        if self._backend is None:
            return 0

        try:
            job_ids = await self._backend.due(self._clock(), limit or self._settings.job_batch_size)
        except Exception as e:
            logger.error("Polling due jobs failed", extra={"error": str(e)})
            return 0

        processed = 0
        for job_id in job_ids:
            if await self.process_job(job_id):
                processed += 1
        return processed

    async def cleanup_jobs(self, older_than_days: int = DEFAULT_CLEANUP_DAYS) -> int:
        """
        Remove completed and failed jobs not updated for ``older_than_days``.

        Scheduled and running jobs are never removed.

        Returns:
            Number of jobs removed; 0 on backend faults.
        """
        if self._backend is None:
            return 0

        cutoff = self._clock() - timedelta(days=older_than_days)
        logger.info(
            "Cleaning up old jobs",
            extra={"older_than_days": older_than_days, "provider": self._provider_name},
        )

        try:
            count = await self._backend.delete_finished_before(cutoff)
        except Exception as e:
            logger.error("Job cleanup failed", extra={"error": str(e)})
            return 0

        self._metrics.record_jobs_cleaned(self._provider_name, count)
        logger.info("Job cleanup completed", extra={"removed": count})
        return count

    async def get_queue_health(self) -> QueueHealth:
        """
        Report store health and per-state job counts.

        Never raises; an unreachable backend reports ``healthy=False`` with
        zeroed counts.
        """
        if self._backend is None:
            return QueueHealth(
                healthy=False,
                provider="unknown",
                job_counts=JobCounts(),
                error=self._unsupported(),
            )

        try:
            await self._backend.ping()
            counts = await self._backend.count_by_status()
        except Exception as e:
            logger.error(
                "Queue health check failed",
                extra={"provider": self._provider_name, "error": str(e)},
            )
            return QueueHealth(
                healthy=False,
                provider=self._provider_name,
                job_counts=JobCounts(),
                error=str(e),
            )

        job_counts = JobCounts(
            scheduled=counts.get(JobStatus.SCHEDULED, 0),
            running=counts.get(JobStatus.RUNNING, 0),
            completed=counts.get(JobStatus.COMPLETED, 0),
            failed=counts.get(JobStatus.FAILED, 0),
            # cancelled jobs leave the store, so they are tallied here
            cancelled=counts.get(JobStatus.CANCELLED, 0) + self._cancelled,
        )
        return QueueHealth(healthy=True, provider=self._provider_name, job_counts=job_counts)
