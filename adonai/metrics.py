from prometheus_client import Counter, Histogram
# Prometheus metrics definitions

# Chat requests by outcome: ok, bad_request, quota_exceeded, upstream_error
chat_requests_total = Counter(
    "chat_requests_total", "Total chat requests", ["status"]
)

# Quota rejects when hitting the free daily limit
quota_reject_total = Counter(
    "quota_reject_total", "Number of quota rejected requests"
)

# Quota checks that could not reach the counter store and let the request through
quota_fail_open_total = Counter(
    "quota_fail_open_total", "Number of quota checks that failed open"
)

_completion_latency_buckets = (
    0.5,
    1.0,
    2.0,
    4.0,
    8.0,
    16.0,
    32.0,
)

completion_latency_seconds = Histogram(
    "completion_latency_seconds",
    "Completion API latency",
    buckets=_completion_latency_buckets,
)

completion_error_total = Counter(
    "completion_error_total", "Total completion API failures"
)

# Conversation/message writes that were skipped after a store error
persistence_error_total = Counter(
    "persistence_error_total", "Total skipped persistence writes", ["operation"]
)

__all__ = [
    "chat_requests_total",
    "quota_reject_total",
    "quota_fail_open_total",
    "completion_latency_seconds",
    "completion_error_total",
    "persistence_error_total",
]
