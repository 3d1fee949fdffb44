"""
FastAPI application entry point.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from deliveryq import __version__
from deliveryq.api.routes import health_router, jobs_router, messages_router
from deliveryq.config import Settings, get_settings
from deliveryq.constants import DISPATCH_JOB_TYPE
from deliveryq.dispatch.queue import DispatchQueue
from deliveryq.dispatch.transports import create_deliver
from deliveryq.health import HealthReporter
from deliveryq.jobs.handlers import make_dispatch_handler
from deliveryq.jobs.runner import JobRunner
from deliveryq.jobs.scheduler import JobScheduler
from deliveryq.observability.logging import setup_logging
from deliveryq.observability.metrics import setup_metrics
from deliveryq.observability.tracing import instrument_fastapi, setup_tracing
from deliveryq.types.queue import DispatchConfig

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    settings: Settings = app.state.settings
    scheduler: JobScheduler = app.state.scheduler

    # Startup
    setup_logging(settings)
    setup_metrics()
    setup_tracing(settings)
    await scheduler.initialize()

    runner_task = None
    if settings.job_runner_enabled:
        runner_task = asyncio.create_task(app.state.runner.start())

    logger.info("Application started", extra={"job_provider": scheduler.provider_name})

    yield

    # Shutdown
    if runner_task is not None:
        await app.state.runner.stop()
        # Let an in-flight job finish; past the timeout it is cancelled and recorded failed
        try:
            await asyncio.wait_for(runner_task, timeout=settings.job_runner_shutdown_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                "Job runner did not stop in time, cancelled",
                extra={"timeout": settings.job_runner_shutdown_timeout_seconds},
            )

    await app.state.dispatch_queue.close()
    await scheduler.close()
    logger.info("Application shutdown")


def create_app(
    settings: Settings | None = None,
    dispatch_queue: DispatchQueue | None = None,
    scheduler: JobScheduler | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Components not passed in are built from settings and kept on
    ``app.state``.

    Args:
        settings: Application settings. Defaults to the cached settings.
        dispatch_queue: Queue for outbound messages.
        scheduler: Job scheduler.

    Returns:
        FastAPI: The configured application instance.
    """
    settings = settings or get_settings()

    if dispatch_queue is None:
        dispatch_queue = DispatchQueue(
            create_deliver(settings),
            config=DispatchConfig.from_settings(settings),
        )
    if scheduler is None:
        scheduler = JobScheduler(settings)

    # dispatch jobs become queued messages when they run
    if scheduler.handlers.get(DISPATCH_JOB_TYPE) is None:
        scheduler.handlers.add(DISPATCH_JOB_TYPE, make_dispatch_handler(dispatch_queue))

    app = FastAPI(
        title="Delivery Queue API",
        description="Rate-limited message dispatch and delayed job scheduling",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.state.settings = settings
    app.state.dispatch_queue = dispatch_queue
    app.state.scheduler = scheduler
    app.state.runner = JobRunner(scheduler, settings=settings)
    app.state.health_reporter = HealthReporter(dispatch_queue, scheduler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(jobs_router)
    app.include_router(messages_router)

    # Instrument with OpenTelemetry
    instrument_fastapi(app)

    return app


def run() -> None:
    """Run the API server."""
    settings = get_settings()
    app = create_app(settings)

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
