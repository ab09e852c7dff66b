"""Prometheus metrics: the single inventory of what the service measures.

Other modules import a specific metric and increment/observe it at the
point of action.  Counters only go up, so tests assert on deltas.

HTTP metrics are populated by MetricsMiddleware.  The engine metrics
below are owned by the services that name them in their docstrings.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Engine metrics
# ---------------------------------------------------------------------------

PROGRESS_RECALCULATIONS = Counter(
    "progress_recalculations_total",
    "Enrollment progress recomputations that reached the store",
)

LESSON_COMPLETIONS = Counter(
    "lesson_completions_total",
    "Lesson completion upserts by resulting state",
    ["completed"],  # "true" or "false"
)

QUIZ_ATTEMPTS = Counter(
    "quiz_attempts_total",
    "Committed quiz attempts by outcome",
    ["result"],  # "passed" or "failed"
)

OPTION_RESOLUTIONS = Counter(
    "quiz_option_resolutions_total",
    "Per-question option resolutions by storage generation",
    ["source"],  # "current" or "legacy"
)

SUBMISSION_EVENTS = Counter(
    "assignment_submission_events_total",
    "Assignment submission lifecycle transitions",
    ["event"],  # "submitted", "resubmitted", "graded", "rejected_locked"
)

NOTIFICATION_FAILURES = Counter(
    "notification_failures_total",
    "Best-effort notifications that could not be delivered",
    ["type"],
)

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Cache get operations by result",
    ["operation"],  # "hit" or "miss"
)

QUEUE_DEPTH = Gauge(
    "task_queue_depth",
    "Number of tasks waiting in a queue",
    ["queue_name"],
)
