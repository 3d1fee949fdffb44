"""
Health report type definitions.
"""

from datetime import datetime

from pydantic import BaseModel

from deliveryq.types.job import QueueHealth
from deliveryq.types.queue import QueueStatus


class HealthReport(BaseModel):
    """
    Aggregate health of the dispatch queue and the job store.

    ``stalled`` is set when the dispatch queue holds items but no
    processing loop is running.
    """

    status: str
    version: str
    stalled: bool
    dispatch: QueueStatus
    jobs: QueueHealth
    timestamp: datetime
