"""
Observability instrumentation for the SEO audit backend.

1. **Structured Logging**
   - JSON output with trace context (trace_id, span_id) and extra fields
   - Plain text format when TESTING is enabled, for readable pytest output

2. **Prometheus Metrics**
   - HTTP request counters, duration histograms and an in-flight gauge
   - Pipeline metrics: pages crawled, fetch failures, crawl and job
     outcomes, analysis duration
   - Exposed at /metrics for scraping

3. **OpenTelemetry Tracing**
   - FastAPI request spans plus custom spans around crawl, analysis and jobs
   - OTLP gRPC export, enabled with OTEL_ENABLED

Usage:
    from app.observability import setup_observability, tracer

    app = FastAPI()
    setup_observability(app)
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import FastAPI, Request, Response
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from pythonjsonlogger import jsonlogger

from app.core.config import settings

# Endpoints excluded from tracing; polled often and low value
EXCLUDED_TRACE_ENDPOINTS = frozenset({
    "/api/v1/health",
    "/metrics",
})


# =============================================================================
# Logging Configuration
# =============================================================================

# Standard LogRecord attributes plus our own fields; everything else came from extra={}
RESERVED_LOG_ATTRS = frozenset({
    "args", "asctime", "created", "exc_info", "exc_text", "filename",
    "funcName", "levelname", "levelno", "lineno", "module", "msecs",
    "message", "msg", "name", "pathname", "process", "processName",
    "relativeCreated", "stack_info", "thread", "threadName", "taskName",
    "trace_id", "span_id", "service",
})


class StructuredJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter that adds service name, trace context and extra fields.

    Example output:
        {"timestamp": "2025-01-15T10:30:00Z", "level": "INFO",
         "logger": "app.crawling.engine", "message": "Page crawled",
         "service": "seo-audit-backend", "trace_id": "abc123...",
         "crawl_job_id": "uuid-here", "pages_crawled": 5}
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs, timestamp=True)
        self.service_name = settings.OTEL_SERVICE_NAME

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["service"] = self.service_name

        span = trace.get_current_span()
        if span and span.is_recording():
            ctx = span.get_span_context()
            log_record["trace_id"] = format(ctx.trace_id, "032x")
            log_record["span_id"] = format(ctx.span_id, "016x")

        for key, value in record.__dict__.items():
            if key not in RESERVED_LOG_ATTRS and not key.startswith("_"):
                if key not in log_record:
                    log_record[key] = value


def configure_logging(testing: bool | None = None) -> None:
    """
    Configure root logging.

    Args:
        testing: Use the plain text format; defaults to settings.TESTING
    """
    if testing is None:
        testing = settings.TESTING

    if testing:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            force=True,
        )
        return

    handler = logging.StreamHandler()
    handler.setLevel(logging.INFO)
    handler.setFormatter(StructuredJsonFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)


# =============================================================================
# OpenTelemetry Tracing Setup
# =============================================================================

_tracing_configured = False


def configure_tracing() -> None:
    """
    Install an OTLP-exporting TracerProvider when OTEL_ENABLED is set.

    Without it the OpenTelemetry API stays a no-op, so spans in pipeline
    code cost nothing in tests. Export failures drop spans without
    affecting the application.
    """
    global _tracing_configured
    if _tracing_configured or not settings.OTEL_ENABLED:
        return

    provider = TracerProvider(
        resource=Resource(attributes={SERVICE_NAME: settings.OTEL_SERVICE_NAME})
    )
    provider.add_span_processor(
        BatchSpanProcessor(
            OTLPSpanExporter(endpoint=settings.OTEL_EXPORTER_OTLP_ENDPOINT, insecure=True)
        )
    )
    trace.set_tracer_provider(provider)
    _tracing_configured = True


# from app.observability import tracer
# with tracer.start_as_current_span("crawl.run") as span: ...
tracer = trace.get_tracer("app")


# =============================================================================
# Prometheus Metrics Definitions
# =============================================================================

http_requests_total = Counter(
    name="http_requests_total",
    documentation="Total number of HTTP requests processed",
    labelnames=["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    name="http_request_duration_seconds",
    documentation="HTTP request duration in seconds",
    labelnames=["method", "endpoint"],
)

active_requests = Gauge(
    name="active_requests",
    documentation="Number of HTTP requests currently being processed",
)

pages_crawled_total = Counter(
    name="crawl_pages_crawled_total",
    documentation="Pages fetched and stored by the crawl engine",
)

fetch_failures_total = Counter(
    name="crawl_fetch_failures_total",
    documentation="Page fetches that failed and were skipped",
)

crawls_finished_total = Counter(
    name="crawls_finished_total",
    documentation="Crawls that reached a terminal status",
    labelnames=["status"],
)

analysis_duration_seconds = Histogram(
    name="analysis_duration_seconds",
    documentation="Time spent scoring a crawl and writing its audit",
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

jobs_finished_total = Counter(
    name="jobs_finished_total",
    documentation="Jobs that reached a terminal status",
    labelnames=["job_type", "status"],
)


# =============================================================================
# Setup Function
# =============================================================================

def setup_observability(app: FastAPI) -> FastAPI:
    """
    Instrument a FastAPI application.

    1. OpenTelemetry request tracing (health and metrics endpoints excluded)
    2. HTTP middleware feeding the Prometheus request metrics
    3. The /metrics endpoint

    Args:
        app: FastAPI application instance to instrument

    Returns:
        The same application, for chaining
    """
    logger = logging.getLogger(__name__)

    configure_tracing()
    FastAPIInstrumentor.instrument_app(
        app,
        excluded_urls=",".join(EXCLUDED_TRACE_ENDPOINTS),
    )

    @app.middleware("http")
    async def metrics_middleware(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        active_requests.inc()
        method = request.method
        # Route template keeps label cardinality low (ids are not labels)
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)

        try:
            with http_request_duration_seconds.labels(method=method, endpoint=endpoint).time():
                response = await call_next(request)

            http_requests_total.labels(
                method=method,
                endpoint=endpoint,
                status=response.status_code,
            ).inc()
            return response
        finally:
            active_requests.dec()

    @app.get("/metrics", include_in_schema=False, tags=["monitoring"])
    async def get_metrics() -> Response:
        """Prometheus metrics in exposition format."""
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    logger.info(
        "Observability configured",
        extra={
            "service": settings.OTEL_SERVICE_NAME,
            "tracing_enabled": settings.OTEL_ENABLED,
        },
    )
    return app
