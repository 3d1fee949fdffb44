"""
Jobs module.
Contains the delayed job scheduler, its backends, handlers and runner.
"""

from deliveryq.jobs.handlers import HandlerRegistry, default_registry, make_dispatch_handler
from deliveryq.jobs.runner import JobRunner
from deliveryq.jobs.scheduler import JobScheduler

__all__ = [
    "JobScheduler",
    "JobRunner",
    "HandlerRegistry",
    "default_registry",
    "make_dispatch_handler",
]
