"""
Job handler registry and built-in handlers.

Handlers must be idempotent enough to survive a job being processed
manually and by the runner in quick succession; the store only lets one of
them claim the job, but side effects before the claim are not protected.
"""

import logging
from collections.abc import Awaitable, Callable

from deliveryq.constants import DEFAULT_PRIORITY
from deliveryq.dispatch.queue import DispatchQueue
from deliveryq.types.job import JobContext, JobResult

logger = logging.getLogger(__name__)

# Type alias for job handler functions
JobHandler = Callable[[JobContext], Awaitable[JobResult]]


class HandlerRegistry:
    """
    Maps job types to the handlers that execute them.

    Example:
        registry = HandlerRegistry()

        @registry.register("booking_reminder")
        async def handle_reminder(context: JobContext) -> JobResult:
            ...
    """

    def __init__(self, handlers: dict[str, JobHandler] | None = None):
        self._handlers: dict[str, JobHandler] = dict(handlers or {})

    def register(self, job_type: str) -> Callable[[JobHandler], JobHandler]:
        """
        Decorator to register a job handler.

        Args:
            job_type: The job type this handler processes.

        Returns:
            Decorator function.
        """
        def decorator(handler: JobHandler) -> JobHandler:
            self._handlers[job_type] = handler
            logger.debug(f"Registered handler for job type: {job_type}")
            return handler
        return decorator

    def add(self, job_type: str, handler: JobHandler) -> None:
        """Register ``handler`` for ``job_type``, replacing any previous one."""
        self.register(job_type)(handler)

    def get(self, job_type: str) -> JobHandler | None:
        """Get the handler for a job type, or None if not registered."""
        return self._handlers.get(job_type)

    def job_types(self) -> list[str]:
        """List all registered job types."""
        return list(self._handlers.keys())

    def copy(self) -> "HandlerRegistry":
        """Return an independent registry with the same handlers."""
        return HandlerRegistry(self._handlers)

    async def execute(self, context: JobContext) -> JobResult:
        """
        Execute a job using the handler registered for its type.

        Never raises: a missing handler or an exception becomes a failed
        result.

        Args:
            context: The job context.

        Returns:
            JobResult from the handler.
        """
        handler = self.get(context.job_type)

        if handler is None:
            logger.error(
                f"No handler for job type: {context.job_type}",
                extra={"job_id": context.job_id},
            )
            return JobResult(
                success=False,
                error=f"No handler registered for job type: {context.job_type}",
            )

        try:
            return await handler(context)
        except Exception as e:
            logger.exception(
                "Handler raised exception",
                extra={"job_id": context.job_id, "job_type": context.job_type, "error": str(e)},
            )
            return JobResult(
                success=False,
                error=f"Handler exception: {str(e)}",
            )


# Handlers every scheduler starts with
default_registry = HandlerRegistry()


@default_registry.register("noop")
async def handle_noop(context: JobContext) -> JobResult:
    """
    No-op handler.

    Completes immediately; useful for markers and for exercising the
    lifecycle.
    """
    logger.info("Noop job executing", extra={"job_id": context.job_id})
    return JobResult(success=True, output={"job_type": context.job_type})


def make_dispatch_handler(dispatch_queue: DispatchQueue) -> JobHandler:
    """
    Build a handler that forwards the job data to a dispatch queue.

    The job data is the message payload. Optional ``priority`` in the data
    selects the dispatch priority and is stripped from the payload.

    Args:
        dispatch_queue: Queue receiving the message.

    Returns:
        The job handler.
    """
    async def handle_dispatch(context: JobContext) -> JobResult:
        payload = dict(context.data)
        priority = payload.pop("priority", DEFAULT_PRIORITY)

        try:
            message_id = dispatch_queue.enqueue(payload, priority=priority)
        except ValueError as e:
            return JobResult(success=False, error=str(e))

        logger.info(
            "Job forwarded to dispatch queue",
            extra={"job_id": context.job_id, "message_id": message_id},
        )
        return JobResult(success=True, output={"message_id": message_id})

    return handle_dispatch

