"""
OpenTelemetry tracing.

Deliveries and job executions open spans through ``get_tracer()``. Spans
are only exported after the application calls ``setup_tracing``; library
use without it records nothing.
"""

import logging
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Tracer

from deliveryq import __version__
from deliveryq.config import Settings, get_settings

logger = logging.getLogger(__name__)

_tracer: Tracer | None = None


def _build_provider(settings: Settings, console: bool) -> TracerProvider:
    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": settings.otel_service_name,
                "service.version": __version__,
            }
        )
    )

    try:
        exporter = OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint, insecure=True)
    except Exception as e:
        logger.warning(
            "OTLP exporter unavailable, spans will not be exported",
            extra={"endpoint": settings.otel_exporter_otlp_endpoint, "error": str(e)},
        )
    else:
        provider.add_span_processor(BatchSpanProcessor(exporter))

    if console:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    return provider


def setup_tracing(settings: Settings | None = None, enable_console_export: bool = False) -> Tracer:
    """
    Install an OTLP-exporting tracer provider.

    Args:
        settings: Source of the service name and collector endpoint.
        enable_console_export: Also print finished spans to stdout.

    Returns:
        The application tracer.
    """
    global _tracer

    settings = settings or get_settings()
    trace.set_tracer_provider(_build_provider(settings, enable_console_export))
    _tracer = trace.get_tracer(settings.otel_service_name, __version__)
    return _tracer


def instrument_fastapi(app: Any) -> None:
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine: Any) -> None:
    SQLAlchemyInstrumentor().instrument(engine=engine)


def get_tracer() -> Tracer:
    """
    Get the application tracer.

    Falls back to the globally installed provider (a no-op one unless
    something else configured it) when ``setup_tracing`` has not run.
    """
    if _tracer is not None:
        return _tracer
    return trace.get_tracer(get_settings().otel_service_name, __version__)
