"""
Job runner.

Periodically executes scheduled jobs whose time has arrived and removes
old finished jobs. Runs inside the API process, or standalone with
``python -m deliveryq.jobs.runner``.
"""

import asyncio
import logging
import signal
import time

from deliveryq.config import Settings, get_settings
from deliveryq.jobs.scheduler import JobScheduler
from deliveryq.observability.logging import bind_context, clear_context, setup_logging

logger = logging.getLogger(__name__)


class JobRunner:
    """
    Polling loop over a JobScheduler.

    Each cycle:
    1. Processes due jobs (up to the batch size)
    2. Every cleanup interval, removes finished jobs past retention
    """

    def __init__(
        self,
        scheduler: JobScheduler,
        poll_interval: float | None = None,
        cleanup_interval: float | None = None,
        retention_days: int | None = None,
        settings: Settings | None = None,
    ):
        """
        Initialize the runner.

        Args:
            scheduler: The scheduler whose jobs are executed.
            poll_interval: Seconds between polls when nothing was due.
            cleanup_interval: Seconds between cleanup passes.
            retention_days: Age after which finished jobs are removed.
            settings: Source of defaults for the values above.
        """
        settings = settings or get_settings()

        self.scheduler = scheduler
        self.poll_interval = (
            poll_interval if poll_interval is not None else settings.job_poll_interval_seconds
        )
        self.cleanup_interval = (
            cleanup_interval
            if cleanup_interval is not None
            else settings.job_cleanup_interval_seconds
        )
        self.retention_days = (
            retention_days if retention_days is not None else settings.job_retention_days
        )

        self._running = False
        self._last_cleanup = 0.0

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Run the polling loop until ``stop`` is called."""
        bind_context(component="job_runner")
        logger.info(
            "Job runner starting",
            extra={
                "provider": self.scheduler.provider_name,
                "poll_interval": self.poll_interval,
            },
        )
        self._running = True
        self._last_cleanup = time.monotonic()

        while self._running:
            try:
                processed = await self.run_once()
                if processed > 0:
                    logger.info(f"Processed {processed} due jobs")
                    continue

            except Exception as e:
                logger.exception(f"Error in job runner loop: {e}")

            await asyncio.sleep(self.poll_interval)

        logger.info("Job runner stopped")
        clear_context()

    async def stop(self) -> None:
        """Stop the runner after the current cycle."""
        logger.info("Job runner stopping")
        self._running = False

    async def run_once(self) -> int:
        """
        Run a single cycle (for testing or cron-style execution).

        Returns:
            Number of jobs processed.
        """
        processed = await self.scheduler.run_due_jobs()

        if time.monotonic() - self._last_cleanup >= self.cleanup_interval:
            self._last_cleanup = time.monotonic()
            removed = await self.scheduler.cleanup_jobs(self.retention_days)
            if removed > 0:
                logger.info(f"Removed {removed} finished jobs")

        return processed


async def run_async() -> None:
    """Run the job runner asynchronously."""
    settings = get_settings()
    setup_logging(settings)

    scheduler = JobScheduler(settings)
    await scheduler.initialize()
    runner = JobRunner(scheduler, settings=settings)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: asyncio.create_task(runner.stop())
        )

    try:
        await runner.start()
    finally:
        await scheduler.close()


def run() -> None:
    """Run the job runner."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
