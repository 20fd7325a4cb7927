"""OpenTelemetry tracing bootstrap – instruments FastAPI, SQLAlchemy, Redis, requests."""

import logging
from ratemyeagle.config import get_settings

logger = logging.getLogger(__name__)


def setup_tracing():
    """Initialise OpenTelemetry with an OTLP exporter; returns the FastAPI instrumentor."""
    settings = get_settings()
    try:
        from opentelemetry import trace
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

        resource = Resource.create({"service.name": settings.service_name})
        provider = TracerProvider(resource=resource)

        exporter = OTLPSpanExporter(endpoint=settings.otlp_endpoint, insecure=True)
        provider.add_span_processor(BatchSpanProcessor(exporter))
        trace.set_tracer_provider(provider)

        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
        from opentelemetry.instrumentation.redis import RedisInstrumentor
        from opentelemetry.instrumentation.requests import RequestsInstrumentor

        SQLAlchemyInstrumentor().instrument()
        RedisInstrumentor().instrument()
        # outbound calls to the auth service
        RequestsInstrumentor().instrument()

        logger.info("OpenTelemetry tracing initialised → %s", settings.otlp_endpoint)
        return FastAPIInstrumentor
    except Exception as exc:
        logger.warning("Tracing setup failed (non-fatal): %s", exc)
        return None
