"""
Prometheus metrics: transition decisions (API), remote rejections, notification relay (worker).
"""
from prometheus_client import Counter, generate_latest

# API: locally gated transition decisions
transitions_total = Counter(
    "order_transitions_total",
    "Order status transitions requested, by outcome",
    ["outcome"],
)
transitions_rejected_total = Counter(
    "order_transitions_rejected_total",
    "Order status transitions rejected, by error classification",
    ["error", "source"],
)

# Worker: notification relay
notification_polls_total = Counter(
    "notification_polls_total",
    "Total notification feed polls",
)
notification_poll_failures_total = Counter(
    "notification_poll_failures_total",
    "Total notification feed polls that failed",
)
notification_toasts_total = Counter(
    "notification_toasts_total",
    "Total new notifications queued as toasts",
)


def get_metrics_content_type():
    return "text/plain; charset=utf-8; version=0.0.4"


def get_metrics_bytes():
    return generate_latest()
