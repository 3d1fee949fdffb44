"""
Job store backends.
"""

from deliveryq.config import Settings
from deliveryq.constants import JobProvider
from deliveryq.jobs.backends.base import DuplicateJobError, JobBackend
from deliveryq.jobs.backends.database import DatabaseJobBackend
from deliveryq.jobs.backends.memory import MemoryJobBackend

__all__ = [
    "JobBackend",
    "DuplicateJobError",
    "MemoryJobBackend",
    "DatabaseJobBackend",
    "resolve_provider",
    "create_backend",
]


def resolve_provider(name: str) -> JobProvider | None:
    """Map a configured provider name to a JobProvider, or None if unknown."""
    try:
        return JobProvider(name)
    except ValueError:
        return None


def create_backend(provider: JobProvider, settings: Settings) -> JobBackend:
    """
    Build the backend for a provider.

    Args:
        provider: The resolved provider.
        settings: Application settings.

    Returns:
        An uninitialized backend.
    """
    if provider is JobProvider.DATABASE:
        return DatabaseJobBackend()
    return MemoryJobBackend(
        keep_completed=settings.job_memory_keep_completed,
        keep_failed=settings.job_memory_keep_failed,
    )
