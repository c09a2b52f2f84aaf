"""
Logging and OpenTelemetry setup for the PgBouncer exporter.

Tracing is optional: spans are only exported when an OTLP endpoint is
configured. Without one the OpenTelemetry API stays a no-op.
"""

import logging

from fastapi import FastAPI

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from .config import Settings

logger = logging.getLogger("pgbouncer_exporter.instrumentation")

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)


def configure_otel(app: FastAPI, settings: Settings) -> bool:
    """
    Configure OpenTelemetry tracing for the exporter.

    Returns False (and leaves the no-op tracer in place) when
    OTEL_EXPORTER_OTLP_ENDPOINT is not set.
    """
    if not settings.otlp_endpoint:
        logger.info("[OTEL] No OTLP endpoint configured, tracing disabled")
        return False

    # OTLP gRPC exporter expects host:port (no http:// or https://)
    clean_endpoint = settings.otlp_endpoint.replace("http://", "").replace("https://", "")
    logger.info("[OTEL] Configuring OTLP gRPC exporter -> %s", clean_endpoint)

    resource = Resource.create(
        {
            "service.name": settings.app_name,
            "service.namespace": settings.namespace,
            "deployment.environment": settings.environment,
        }
    )

    provider = TracerProvider(resource=resource)
    trace.set_tracer_provider(provider)

    span_exporter = OTLPSpanExporter(endpoint=clean_endpoint, insecure=True)
    provider.add_span_processor(BatchSpanProcessor(span_exporter))

    FastAPIInstrumentor().instrument_app(app)

    logger.info("[OTEL] OpenTelemetry tracing initialized for %s", settings.app_name)
    return True
