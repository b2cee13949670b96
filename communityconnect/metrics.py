"""Prometheus metrics collection and export.

Instrumentation for backend calls and the three user actions (loading the
feed, creating a post, requesting to help).

Metric Types:
    Counters (always increase):
        - backend_requests_total: Backend calls by operation and status
        - feed_loads_total: Feed loads by status
        - posts_created_total: Created posts by category
        - help_requests_total: Help request attempts by outcome
        - errors_total: Errors by type and component

    Histograms (track distributions):
        - backend_request_duration_seconds: Backend call latency

Usage:
    ```python
    from communityconnect.metrics import posts_created_total

    posts_created_total.labels(category="blood").inc()
    ```

References:
    - Prometheus Python Client: https://github.com/prometheus/client_python
    - Metric Types: https://prometheus.io/docs/tutorials/understanding_metric_types/
"""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

# Custom registry for explicit metric control
# This avoids default process/platform metrics unless explicitly added
registry = CollectorRegistry()

# Latency bucket definitions (in seconds)
# Covers a fast PostgREST select (10ms) up to a slow media upload (30s)
BACKEND_LATENCY_BUCKETS = (
    0.01,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
    30.0,
)


# ========== COUNTER METRICS (always increase) ==========

backend_requests_total = Counter(
    "backend_requests_total",
    "Total number of backend calls",
    labelnames=["operation", "status"],
    registry=registry,
)
"""Backend calls by operation (select, insert, rpc, upload, auth) and status.

Example:
    ```python
    backend_requests_total.labels(operation="select", status="success").inc()
    ```
"""

feed_loads_total = Counter(
    "feed_loads_total",
    "Total number of feed loads",
    labelnames=["status"],
    registry=registry,
)

posts_created_total = Counter(
    "posts_created_total",
    "Total number of posts created",
    labelnames=["category"],
    registry=registry,
)

help_requests_total = Counter(
    "help_requests_total",
    "Total number of help request attempts",
    labelnames=["outcome"],
    registry=registry,
)
"""Help request attempts by outcome (sent, duplicate, unauthenticated, not_allowed, failed)."""

errors_total = Counter(
    "errors_total",
    "Total number of errors",
    labelnames=["error_type", "component"],
    registry=registry,
)


# ========== HISTOGRAM METRICS (track distributions) ==========

backend_request_duration_seconds = Histogram(
    "backend_request_duration_seconds",
    "Backend call duration in seconds",
    labelnames=["operation"],
    buckets=BACKEND_LATENCY_BUCKETS,
    registry=registry,
)


# ========== HELPER FUNCTIONS ==========


def generate_metrics_output() -> bytes:
    """Generate Prometheus metrics output in text exposition format.

    Note:
        This uses the custom registry, so only the metrics above are included.
    """
    return generate_latest(registry)


def sample_value(name: str, labels: dict[str, str] | None = None) -> float:
    """Read the current value of a sample from the registry (0.0 when absent).

    Example:
        >>> sample_value("posts_created_total", {"category": "blood"})
        0.0
    """
    value = registry.get_sample_value(name, labels or {})
    return value if value is not None else 0.0


__all__ = [
    "registry",
    "backend_requests_total",
    "feed_loads_total",
    "posts_created_total",
    "help_requests_total",
    "errors_total",
    "backend_request_duration_seconds",
    "generate_metrics_output",
    "sample_value",
    "BACKEND_LATENCY_BUCKETS",
]
