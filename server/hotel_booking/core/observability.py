"""Observability setup for OpenTelemetry, metrics, and structured logging."""

import logging
import sys

import structlog
from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

from .config import settings

APP_NAME = "hotel-booking-api"
APP_VERSION = "1.0.0"

# Prometheus metrics
REGISTRY = CollectorRegistry()

# Request metrics
REQUEST_COUNT = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code'],
    registry=REGISTRY
)

REQUEST_DURATION = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    registry=REGISTRY
)

# Business metrics
RESERVATIONS_CREATED = Counter(
    'reservations_created_total',
    'Total reservations created',
    ['hotel_id', 'channel'],
    registry=REGISTRY
)

INVENTORY_CONFLICTS = Counter(
    'reservation_inventory_conflicts_total',
    'Booking attempts rejected for insufficient inventory',
    ['hotel_id', 'room_type_id'],
    registry=REGISTRY
)

RESERVATION_TRANSITIONS = Counter(
    'reservation_status_transitions_total',
    'Reservation status transitions',
    ['from_status', 'to_status'],
    registry=REGISTRY
)

CONSUMPTIONS_RECORDED = Counter(
    'reservation_consumptions_recorded_total',
    'Consumption items recorded against checked-in reservations',
    registry=REGISTRY
)

INVOICES_GENERATED = Counter(
    'invoices_generated_total',
    'Invoices generated',
    registry=REGISTRY
)

NOTIFICATION_FAILURES = Counter(
    'notification_failures_total',
    'Best-effort notifications that could not be delivered',
    ['kind'],
    registry=REGISTRY
)


def _add_trace_context(logger, method_name, event_dict):
    """Add trace context to log events."""
    span = trace.get_current_span()
    if span and span.is_recording():
        ctx = span.get_span_context()
        event_dict['trace_id'] = format(ctx.trace_id, '032x')
        event_dict['span_id'] = format(ctx.span_id, '016x')
    return event_dict


def setup_structured_logging():
    """
    Configure structlog and route stdlib logging through it.

    Modules keep using ``logging.getLogger(__name__)`` with ``extra``; the
    root handler renders those records with the same processors as native
    structlog loggers, so request ids bound in contextvars show up on both.
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        _add_trace_context,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.ExtraAdder(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    renderer = structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level)
        ),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.log_level)


def _resource() -> Resource:
    return Resource.create({
        "service.name": APP_NAME,
        "service.version": APP_VERSION,
        "environment": settings.environment,
    })


def setup_tracing():
    """Setup OpenTelemetry tracing; spans are exported only when an OTLP endpoint is set."""
    provider = TracerProvider(resource=_resource())
    if settings.otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint)))
    trace.set_tracer_provider(provider)
    return trace.get_tracer(__name__)


def setup_metrics():
    """Setup OpenTelemetry metrics."""
    if settings.otlp_endpoint:
        otlp_exporter = OTLPMetricExporter(endpoint=settings.otlp_endpoint)
        reader = PeriodicExportingMetricReader(exporter=otlp_exporter, export_interval_millis=60000)
        metrics.set_meter_provider(MeterProvider(resource=_resource(), metric_readers=[reader]))
    return metrics.get_meter(__name__)


def instrument_fastapi(app):
    """Instrument FastAPI with OpenTelemetry."""
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine):
    """Instrument the async engine's sync core with OpenTelemetry."""
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


class MetricsCollector:
    """Collector for business metrics."""

    @staticmethod
    def record_reservation_created(hotel_id: int, channel: str = "client"):
        RESERVATIONS_CREATED.labels(hotel_id=str(hotel_id), channel=channel).inc()

    @staticmethod
    def record_inventory_conflict(hotel_id: int, room_type_id: int):
        INVENTORY_CONFLICTS.labels(hotel_id=str(hotel_id), room_type_id=str(room_type_id)).inc()

    @staticmethod
    def record_transition(from_status: str, to_status: str):
        RESERVATION_TRANSITIONS.labels(from_status=from_status, to_status=to_status).inc()

    @staticmethod
    def record_consumption():
        CONSUMPTIONS_RECORDED.inc()

    @staticmethod
    def record_invoice_generated():
        INVOICES_GENERATED.inc()

    @staticmethod
    def record_notification_failure(kind: str):
        NOTIFICATION_FAILURES.labels(kind=kind).inc()


def get_prometheus_metrics():
    """Get Prometheus metrics for the /metrics endpoint."""
    return generate_latest(REGISTRY)


# Global metrics collector instance
metrics_collector = MetricsCollector()
