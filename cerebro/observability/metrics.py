"""Prometheus metric definitions for helpdesk self-instrumentation.

All metrics are module-level singletons registered with the default
prometheus_client registry.  Import them wherever instrumentation is needed.
"""

from prometheus_client import Counter, Gauge, Histogram, Info

# ---------------------------------------------------------------------------
# Histogram bucket definitions
# ---------------------------------------------------------------------------

REQUEST_DURATION_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5)

# ---------------------------------------------------------------------------
# Request-level metrics
# ---------------------------------------------------------------------------

REQUEST_DURATION = Histogram(
    "cerebro_request_duration_seconds",
    "End-to-end request duration in seconds",
    labelnames=["endpoint"],
    buckets=REQUEST_DURATION_BUCKETS,
)

REQUESTS_TOTAL = Counter(
    "cerebro_requests_total",
    "Total number of requests",
    labelnames=["endpoint", "status"],
)

REQUESTS_IN_PROGRESS = Gauge(
    "cerebro_requests_in_progress",
    "Number of requests currently being processed",
    labelnames=["endpoint"],
)

# ---------------------------------------------------------------------------
# Dialogue metrics
# ---------------------------------------------------------------------------

MESSAGES_PROCESSED_TOTAL = Counter(
    "cerebro_messages_processed_total",
    "Chat messages handled by the dialogue engine",
    labelnames=["scenario"],
)

TICKETS_CREATED_TOTAL = Counter(
    "cerebro_tickets_created_total",
    "Tickets opened from chat conversations",
    labelnames=["application"],
)

# ---------------------------------------------------------------------------
# Log analysis metrics
# ---------------------------------------------------------------------------

LOG_ANALYSES_TOTAL = Counter(
    "cerebro_log_analyses_total",
    "Simulated log analyses written",
    labelnames=["trigger", "status"],
)

# ---------------------------------------------------------------------------
# Transport / info metrics
# ---------------------------------------------------------------------------

WEBSOCKET_SUBSCRIBERS = Gauge(
    "cerebro_websocket_subscribers",
    "Number of connected WebSocket subscribers",
)

APP_INFO = Info(
    "cerebro",
    "Cerebro helpdesk build information",
)
