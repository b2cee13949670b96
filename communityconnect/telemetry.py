"""OpenTelemetry distributed tracing integration.

Every backend call runs inside a ``backend.<operation>`` span so a feed load
or a post submission can be followed across its select, upload, insert and
RPC calls.

Key Features:
    - TracerProvider with service metadata (name, version, environment)
    - BatchSpanProcessor + OTLPSpanExporter when tracing is enabled
    - ConsoleSpanExporter in development when tracing is enabled locally
    - Context variables from logging.py copied onto spans

Environment Variables:
    - OTEL_SERVICE_NAME: Service name for traces (default: "communityconnect")
    - ENABLE_TRACING / OTLP_ENDPOINT: read through Settings

References:
    - OpenTelemetry Python Docs: https://opentelemetry.io/docs/languages/python/instrumentation/
"""

from __future__ import annotations

import os
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Status, StatusCode, Tracer
from opentelemetry.trace.span import Span

from communityconnect.config import settings
from communityconnect.logging import current_log_context, logger

_tracer_provider: TracerProvider | None = None
_initialized: bool = False


def initialize_telemetry() -> None:
    """Initialize the global OpenTelemetry tracer provider.

    Idempotent. Without ``enable_tracing`` the provider has no exporters, so
    spans are created but never leave the process.

    Raises:
        ValueError: If the OTLP endpoint is invalid
    """
    global _tracer_provider, _initialized

    if _initialized:
        return

    service_name = os.getenv("OTEL_SERVICE_NAME", "communityconnect")

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.version": "0.1.0",
            "deployment.environment": settings.environment.value,
        }
    )

    _tracer_provider = TracerProvider(resource=resource)

    if settings.enable_tracing and settings.otlp_endpoint:
        try:
            otlp_exporter = OTLPSpanExporter(endpoint=settings.otlp_endpoint)
        except Exception as e:
            logger.error(f"Failed to initialize OTLP exporter: {e}")
            raise ValueError(f"Invalid OTLP endpoint: {settings.otlp_endpoint}") from e
        _tracer_provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
        logger.info(f"Initialized OTLP span exporter ({settings.otlp_endpoint})")
    elif settings.enable_tracing and settings.is_development:
        _tracer_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        logger.debug("Initialized console span exporter for development")

    trace.set_tracer_provider(_tracer_provider)
    _initialized = True

    logger.debug(
        f"Telemetry initialized (service={service_name}, "
        f"tracing_enabled={settings.enable_tracing})"
    )


def get_tracer(name: str) -> Tracer:
    """Get a tracer for the given module, initializing the provider on first use."""
    if not _initialized:
        initialize_telemetry()

    return trace.get_tracer(name)


def add_span_attributes(span: Span, attributes: dict[str, Any]) -> None:
    """Add multiple attributes to a span.

    None values are skipped; lists and dicts are stringified.
    """
    for key, value in attributes.items():
        if value is None:
            continue
        if isinstance(value, (list, dict)):
            value = str(value)
        span.set_attribute(key, value)


def record_exception_in_span(
    span: Span,
    exception: Exception,
    set_status: bool = True,
) -> None:
    """Record an exception in a span and optionally set error status."""
    span.record_exception(exception)
    if set_status:
        span.set_status(Status(StatusCode.ERROR, str(exception)))


def sync_logging_context_to_span(span: Span) -> None:
    """Copy the logging context (user_id, operation, post_id) onto the span."""
    add_span_attributes(span, current_log_context())


def shutdown_telemetry() -> None:
    """Shutdown the tracer provider and flush pending spans."""
    global _tracer_provider, _initialized

    if _tracer_provider and _initialized:
        _tracer_provider.shutdown()
        _initialized = False
        logger.debug("Telemetry shut down")


__all__ = [
    "initialize_telemetry",
    "shutdown_telemetry",
    "get_tracer",
    "add_span_attributes",
    "record_exception_in_span",
    "sync_logging_context_to_span",
]
