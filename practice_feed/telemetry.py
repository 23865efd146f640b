"""
Observability setup:
  - Prometheus metrics for snapshot intake, dropped records, subscription
    errors, retries and aggregation latency
  - OpenTelemetry tracing → Jaeger (via OTLP gRPC), opt-in from entry points

Metrics are module-level; the tracer is fetched lazily so spans are no-ops
until setup_tracing() installs a provider.
"""
import logging

from opentelemetry import trace
from prometheus_client import Counter, Gauge, Histogram

from practice_feed.config import settings

logger = logging.getLogger(__name__)

tracer = trace.get_tracer("practice_feed")

# ─────────────────────────── Prometheus Metrics ───────────────────────────
SNAPSHOTS_RECEIVED_TOTAL = Counter(
    "feed_snapshots_received_total",
    "Live snapshots delivered by member subscriptions",
)

MALFORMED_RECORDS_TOTAL = Counter(
    "feed_malformed_records_total",
    "Stored log records dropped because they could not be normalised",
)

SUBSCRIPTION_ERRORS_TOTAL = Counter(
    "feed_subscription_errors_total",
    "Errors reported by member live subscriptions",
)

RETRY_ATTEMPTS_TOTAL = Counter(
    "feed_retry_attempts_total",
    "Retries of one-shot store operations after a transient failure",
    ["operation"],
)

ACTIVE_SUBSCRIPTIONS = Gauge(
    "feed_active_member_subscriptions",
    "Member live subscriptions currently open",
)

AGGREGATION_LATENCY = Histogram(
    "feed_aggregation_seconds",
    "Time spent recombining cached snapshots into one feed",
    buckets=[0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5],
)


# ─────────────────────────── OpenTelemetry Setup ──────────────────────────
def setup_tracing() -> None:
    """Configure the global OTel TracerProvider with OTLP/Jaeger export."""
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
    from opentelemetry.instrumentation.redis import RedisInstrumentor
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    resource = Resource.create(
        {
            "service.name": settings.service_name,
            "deployment.environment": settings.environment,
        }
    )

    provider = TracerProvider(resource=resource)

    try:
        otlp_exporter = OTLPSpanExporter(
            endpoint=settings.otel_exporter_otlp_endpoint,
            insecure=True,
        )
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
        logger.info(
            "OTel tracing configured → %s", settings.otel_exporter_otlp_endpoint
        )
    except Exception as exc:
        logger.warning("Could not connect to OTLP exporter: %s — traces disabled", exc)

    trace.set_tracer_provider(provider)

    RedisInstrumentor().instrument()
