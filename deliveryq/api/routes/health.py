"""
Health check routes.
"""

from fastapi import APIRouter
from fastapi.responses import Response

from deliveryq.api.dependencies import HealthReporterDep, SchedulerDep
from deliveryq.observability.metrics import get_metrics
from deliveryq.types.health import HealthReport

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=HealthReport,
    summary="Health check",
    description="Report dispatch queue and job store health.",
)
async def health_check(reporter: HealthReporterDep) -> HealthReport:
    """
    Perform a health check.

    Args:
        reporter: Health reporter over the live components.

    Returns:
        HealthReport with queue status and job counts.
    """
    return await reporter.report()


@router.get(
    "/ready",
    summary="Readiness check",
    description="Check if the service is ready to receive traffic.",
)
async def readiness_check(scheduler: SchedulerDep) -> dict:
    """
    Kubernetes readiness probe endpoint.

    Ready when the job store answers.
    """
    health = await scheduler.get_queue_health()
    return {"ready": health.healthy}


@router.get(
    "/live",
    summary="Liveness check",
    description="Check if the service is alive.",
)
async def liveness_check() -> dict:
    """Kubernetes liveness probe endpoint."""
    return {"alive": True}


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Expose Prometheus metrics.",
)
async def metrics() -> Response:
    """
    Expose Prometheus metrics.

    Returns:
        Prometheus-formatted metrics.
    """
    metrics_collector = get_metrics()
    return Response(
        content=metrics_collector.get_metrics(),
        media_type=metrics_collector.get_content_type(),
    )
