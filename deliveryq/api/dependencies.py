"""
FastAPI dependencies resolving the application's components.
"""

from typing import Annotated

from fastapi import Depends, Request

from deliveryq.dispatch.queue import DispatchQueue
from deliveryq.health import HealthReporter
from deliveryq.jobs.scheduler import JobScheduler


def get_dispatch_queue(request: Request) -> DispatchQueue:
    """Dispatch queue created by ``create_app``."""
    return request.app.state.dispatch_queue


def get_scheduler(request: Request) -> JobScheduler:
    """Job scheduler created by ``create_app``."""
    return request.app.state.scheduler


def get_health_reporter(request: Request) -> HealthReporter:
    return request.app.state.health_reporter


DispatchQueueDep = Annotated[DispatchQueue, Depends(get_dispatch_queue)]
SchedulerDep = Annotated[JobScheduler, Depends(get_scheduler)]
HealthReporterDep = Annotated[HealthReporter, Depends(get_health_reporter)]
