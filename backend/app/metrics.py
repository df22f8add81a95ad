"""Prometheus metrics for the mock API endpoint."""
from __future__ import annotations
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

KNOWN_ACTIONS = ("crud", "auth", "whoami", "other")

serves_api_requests_total = Counter(
    "serves_api_requests_total",
    "Total mock API requests",
    labelnames=("action", "outcome"),
)

serves_api_latency_seconds = Histogram(
    "serves_api_latency_seconds",
    "Mock API handling latency in seconds",
    labelnames=("action",),
    buckets=(
        0.001,
        0.005,
        0.01,
        0.025,
        0.05,
        0.1,
        0.25,
        0.5,
        1.0,
    ),
)

# Pre-create labelled samples so they appear in metrics output
for _action in KNOWN_ACTIONS:
    serves_api_requests_total.labels(action=_action, outcome="ok").inc(0)
    serves_api_latency_seconds.labels(action=_action)


def action_label(action: object) -> str:
    """Bound label cardinality: arbitrary client actions collapse to ``other``."""
    if isinstance(action, str) and action in KNOWN_ACTIONS:
        return action
    return "other"


def metrics_response() -> tuple[bytes, str]:
    data = generate_latest()
    return data, CONTENT_TYPE_LATEST
