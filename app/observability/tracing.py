# ==== OPENTELEMETRY TRACING CONFIGURATION ==== #

"""
OpenTelemetry tracing configuration for Lunch Ledger.

This module sets up OTLP export and SQLAlchemy instrumentation for the
order services and background jobs. Tracing stays disabled for local runs
when no collector endpoint is configured.
"""

from typing import Any, Dict

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from app.observability.logging import get_logger


logger = get_logger(__name__)


# ==== TRACING INITIALIZATION ==== #


def init_tracing(service_name: str | None = None) -> bool:
    """
    Initialize OpenTelemetry tracing with an OTLP collector.

    Args:
        service_name (str | None): Service name, defaults to ``SERVICE_NAME``

    Returns:
        bool: True when an exporter was installed
    """
    from app.settings import settings

    endpoint = settings.OTEL_EXPORTER_OTLP_ENDPOINT

    # ⚠️ Allow local runs without a collector
    if not endpoint:
        return False

    # --► RESOURCE ATTRIBUTES
    resource_attrs = _parse_key_values(settings.OTEL_RESOURCE_ATTRIBUTES)
    resource_attrs["service.name"] = (
        settings.OTEL_SERVICE_NAME or service_name or settings.SERVICE_NAME
    )
    resource_attrs.setdefault("deployment.environment", settings.APP_ENV)

    provider = TracerProvider(resource=Resource.create(resource_attrs))
    exporter = OTLPSpanExporter(
        endpoint=endpoint,
        headers=_parse_key_values(settings.OTEL_EXPORTER_OTLP_HEADERS)
    )
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    _setup_auto_instrumentation()
    return True


def _parse_key_values(raw: str | None) -> Dict[str, Any]:
    """
    Parse comma-separated ``key=value`` pairs from an OTEL environment value.

    Args:
        raw (str | None): Raw setting value

    Returns:
        Dict[str, Any]: Parsed pairs, empty when unset
    """
    pairs: Dict[str, Any] = {}
    if not raw:
        return pairs

    for part in filter(None, map(str.strip, raw.split(","))):
        if "=" in part:
            key, value = part.split("=", 1)
            pairs[key.strip()] = value.strip()

    return pairs


def _setup_auto_instrumentation() -> None:
    from app.storage import db

    try:
        if db.engine is not None:
            SQLAlchemyInstrumentor().instrument(engine=db.engine.sync_engine)
        else:
            SQLAlchemyInstrumentor().instrument()
    except Exception as e:
        # Startup continues without database spans
        logger.warning(f"Failed to setup SQLAlchemy instrumentation: {e}")


def get_tracer(name: str) -> trace.Tracer:
    """
    Get a tracer instance for the given module.

    Args:
        name (str): Module name (typically __name__)

    Returns:
        trace.Tracer: Tracer instance
    """
    return trace.get_tracer(name)
