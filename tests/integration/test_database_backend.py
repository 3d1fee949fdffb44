"""
Integration tests for the database job store on SQLite.
"""

from datetime import timedelta

import pytest
import pytest_asyncio

from deliveryq.config import Settings
from deliveryq.constants import JobProvider, JobStatus
from deliveryq.jobs.backends import DatabaseJobBackend
from deliveryq.jobs.scheduler import JobScheduler
from tests.conftest import FakeClock


class TestDatabaseScheduler:
    """Scheduler lifecycle against the persisted store."""

    @pytest_asyncio.fixture
    async def db_scheduler(
        self,
        test_settings: Settings,
        database_backend: DatabaseJobBackend,
        clock: FakeClock,
    ) -> JobScheduler:
        return JobScheduler(test_settings, backend=database_backend, clock=clock)

    @pytest.mark.asyncio
    async def test_generated_ids(self, db_scheduler: JobScheduler, clock: FakeClock):
        """Test the store generates ids and keeps the caller's as a reference."""
        result = await db_scheduler.schedule_job(
            "reminder-1", clock.now + timedelta(hours=1), "noop", {"to": "a@b.c"}
        )

        assert result.success is True
        assert result.job_id != "reminder-1"
        assert db_scheduler.provider is JobProvider.DATABASE

        status = await db_scheduler.get_job_status(result.job_id)
        assert status.exists is True
        assert status.status == JobStatus.SCHEDULED
        assert status.data == {"to": "a@b.c"}

    @pytest.mark.asyncio
    async def test_same_caller_id_twice(self, db_scheduler: JobScheduler, clock: FakeClock):
        """Test caller ids are not unique keys on this store."""
        when = clock.now + timedelta(hours=1)

        first = await db_scheduler.schedule_job("same", when, "noop")
        second = await db_scheduler.schedule_job("same", when, "noop")

        assert first.success is True
        assert second.success is True
        assert first.job_id != second.job_id

    @pytest.mark.asyncio
    async def test_full_lifecycle(self, db_scheduler: JobScheduler, clock: FakeClock):
        """Test schedule -> process -> completed, and no second run."""
        result = await db_scheduler.schedule_job("x", clock.now + timedelta(minutes=5), "noop")

        assert await db_scheduler.process_job(result.job_id) is True
        assert await db_scheduler.process_job(result.job_id) is False

        status = await db_scheduler.get_job_status(result.job_id)
        assert status.status == JobStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_failed_job_keeps_error(
        self,
        db_scheduler: JobScheduler,
        database_backend: DatabaseJobBackend,
        clock: FakeClock,
    ):
        result = await db_scheduler.schedule_job(
            "x", clock.now + timedelta(minutes=5), "unregistered"
        )
        await db_scheduler.process_job(result.job_id)

        record = await database_backend.get(result.job_id)
        assert record.status == JobStatus.FAILED
        assert "No handler registered" in record.last_error

    @pytest.mark.asyncio
    async def test_cancel(self, db_scheduler: JobScheduler, clock: FakeClock):
        """Test only scheduled jobs can be cancelled, and are removed."""
        pending = await db_scheduler.schedule_job("p", clock.now + timedelta(hours=1), "noop")
        done = await db_scheduler.schedule_job("d", clock.now + timedelta(hours=1), "noop")
        await db_scheduler.process_job(done.job_id)

        assert await db_scheduler.cancel_job(pending.job_id) is True
        assert await db_scheduler.cancel_job(pending.job_id) is False
        assert await db_scheduler.cancel_job(done.job_id) is False
        assert await db_scheduler.cancel_job("missing") is False

        assert (await db_scheduler.get_job_status(pending.job_id)).exists is False

    @pytest.mark.asyncio
    async def test_list_and_filters(self, db_scheduler: JobScheduler, clock: FakeClock):
        ids = []
        for n in range(3):
            result = await db_scheduler.schedule_job(
                f"j{n}", clock.now + timedelta(hours=1), "noop" if n else "reminder"
            )
            ids.append(result.job_id)
            clock.advance(seconds=1)

        everything = await db_scheduler.list_jobs()
        assert everything.total == 3
        assert [job.id for job in everything.jobs] == list(reversed(ids))

        noop = await db_scheduler.list_jobs({"type": "noop", "limit": 1})
        assert noop.total == 2
        assert len(noop.jobs) == 1

        unknown = await db_scheduler.list_jobs({"status": "exploded"})
        assert unknown.total == 0

    @pytest.mark.asyncio
    async def test_run_due_and_cleanup(self, db_scheduler: JobScheduler, clock: FakeClock):
        """Test due jobs run and old finished jobs are removed."""
        for n in range(5):
            await db_scheduler.schedule_job(f"d{n}", clock.now + timedelta(minutes=1), "noop")
        pending = await db_scheduler.schedule_job("p", clock.now + timedelta(days=30), "noop")

        clock.advance(minutes=2)
        assert await db_scheduler.run_due_jobs() == 5

        clock.advance(days=8)
        assert await db_scheduler.cleanup_jobs(7) == 5

        assert (await db_scheduler.get_job_status(pending.job_id)).exists is True
        assert (await db_scheduler.list_jobs()).total == 1

    @pytest.mark.asyncio
    async def test_queue_health(self, db_scheduler: JobScheduler, clock: FakeClock):
        first = await db_scheduler.schedule_job("a", clock.now + timedelta(hours=1), "noop")
        await db_scheduler.schedule_job("b", clock.now + timedelta(hours=1), "noop")
        await db_scheduler.process_job(first.job_id)

        health = await db_scheduler.get_queue_health()

        assert health.healthy is True
        assert health.provider == "database"
        assert health.job_counts.scheduled == 1
        assert health.job_counts.completed == 1


class TestUninitializedStore:
    """Tests for a database store that was never initialized."""

    @pytest.mark.asyncio
    async def test_health_reports_error(self, test_settings: Settings):
        scheduler = JobScheduler(test_settings, backend=DatabaseJobBackend())

        health = await scheduler.get_queue_health()

        assert health.healthy is False
        assert "not initialized" in health.error
