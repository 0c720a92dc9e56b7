"""
Prometheus metrics.
"""
from prometheus_client import Counter, Histogram, Gauge


# Queue metrics
QUEUE_DEPTH = Gauge(
    "agentscale_queue_depth",
    "Queued tasks waiting to run",
    ["priority"],
)

QUEUE_ADMISSIONS = Counter(
    "agentscale_queue_admissions_total",
    "Executions admitted to the queue",
    ["priority", "trigger"],
)

# Execution metrics
EXECUTIONS_TOTAL = Counter(
    "agentscale_executions_total",
    "Executions reaching a terminal status",
    ["status", "category"],
)

EXECUTION_DURATION_SECONDS = Histogram(
    "agentscale_execution_duration_seconds",
    "Wall time from running to terminal status",
    buckets=[1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0],
)

ACTIVE_CONTEXTS = Gauge(
    "agentscale_active_contexts",
    "Live execution contexts (open automation sessions)",
)

# Decision metrics
DECISION_CALLS = Counter(
    "agentscale_decision_calls_total",
    "Decision capability calls",
    ["strategy", "status"],
)

DECISION_FALLBACKS = Counter(
    "agentscale_decision_fallbacks_total",
    "Runs that switched to the fallback decision strategy",
)

# Action metrics
ACTIONS_TOTAL = Counter(
    "agentscale_actions_total",
    "Actions handled by the executor",
    ["action_type", "status"],
)

# Event metrics
EVENT_SUBSCRIBERS = Gauge(
    "agentscale_event_subscribers",
    "Live event subscriptions",
)

EVENTS_PUBLISHED = Counter(
    "agentscale_events_published_total",
    "Events published to the broadcaster",
    ["event_type"],
)

SUBSCRIBERS_DROPPED = Counter(
    "agentscale_subscribers_dropped_total",
    "Subscribers removed after a failed delivery",
    ["reason"],
)

# Usage metrics
USAGE_RECORDED = Counter(
    "agentscale_usage_api_calls_total",
    "API calls recorded against organization quotas",
)
