"""
Combined health of the dispatch queue and the job scheduler.
"""

import logging

from deliveryq import __version__
from deliveryq.clock import Clock, utcnow
from deliveryq.dispatch.queue import DispatchQueue
from deliveryq.jobs.scheduler import JobScheduler
from deliveryq.types.health import HealthReport

logger = logging.getLogger(__name__)


class HealthReporter:
    """Builds a HealthReport from the live components."""

    def __init__(
        self,
        dispatch_queue: DispatchQueue,
        scheduler: JobScheduler,
        clock: Clock = utcnow,
    ):
        self.dispatch_queue = dispatch_queue
        self.scheduler = scheduler
        self._clock = clock

    async def report(self) -> HealthReport:
        """
        Collect the current health.

        The report is degraded when the job store is unreachable or the
        dispatch queue has pending items with no loop running.
        """
        dispatch = self.dispatch_queue.get_status()
        jobs = await self.scheduler.get_queue_health()

        stalled = dispatch.queue_length > 0 and not dispatch.processing
        healthy = jobs.healthy and not stalled

        if not healthy:
            logger.warning(
                "Health degraded",
                extra={
                    "stalled": stalled,
                    "jobs_healthy": jobs.healthy,
                    "queue_length": dispatch.queue_length,
                },
            )

        return HealthReport(
            status="healthy" if healthy else "degraded",
            version=__version__,
            stalled=stalled,
            dispatch=dispatch,
            jobs=jobs,
            timestamp=self._clock(),
        )
