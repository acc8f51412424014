"""
Prometheus Metrics
==================
Request outcome and update run metrics for the hook service.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Custom registry so importing the app twice (tests) never re-registers
HOOK_REGISTRY = CollectorRegistry()

HOOK_REQUESTS_TOTAL = Counter(
    name="hook_requests_total",
    documentation="Hook requests by outcome",
    labelnames=["outcome"],
    registry=HOOK_REGISTRY,
)

UPDATE_DURATION = Histogram(
    name="hook_update_duration_seconds",
    documentation="Time spent running the update command",
    labelnames=["status"],
    buckets=[0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0],
    registry=HOOK_REGISTRY,
)

UPDATED_CONTAINERS_TOTAL = Counter(
    name="hook_updated_containers_total",
    documentation="Containers reported by the update command, by update state",
    labelnames=["state"],
    registry=HOOK_REGISTRY,
)


def record_request(outcome: str) -> None:
    """Count one hook request with its final outcome label."""
    HOOK_REQUESTS_TOTAL.labels(outcome=outcome).inc()


def record_update(status: str, duration_seconds: float) -> None:
    UPDATE_DURATION.labels(status=status).observe(duration_seconds)


def record_containers(state: str, count: int = 1) -> None:
    UPDATED_CONTAINERS_TOTAL.labels(state=state).inc(count)


def get_metrics_text() -> bytes:
    """Metrics in Prometheus text exposition format."""
    return generate_latest(HOOK_REGISTRY)


__all__ = [
    "CONTENT_TYPE_LATEST",
    "HOOK_REGISTRY",
    "HOOK_REQUESTS_TOTAL",
    "UPDATE_DURATION",
    "UPDATED_CONTAINERS_TOTAL",
    "record_request",
    "record_update",
    "record_containers",
    "get_metrics_text",
]
