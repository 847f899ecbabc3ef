"""
Prometheus metrics collection.

In-memory counters and histograms; Prometheus handles storage.
"""

from typing import Optional

import structlog
from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram

logger = structlog.get_logger(__name__)


class MetricsCollector:
    """
    Centralized metrics for the shared web stack.

    Pass a dedicated CollectorRegistry when more than one collector lives in
    the same process (tests, multiple apps).
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry if registry is not None else REGISTRY

        # Request metrics
        self.requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry,
        )

        self.request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=self.registry,
        )

        # Error handling metrics
        self.handled_exceptions_total = Counter(
            "handled_exceptions_total",
            "Exceptions converted to API error responses",
            ["type"],
            registry=self.registry,
        )

        # Security metrics
        self.authentication_failures_total = Counter(
            "authentication_failures_total",
            "Rejected bearer token authentications",
            ["reason"],
            registry=self.registry,
        )

    def record_request(
        self,
        method: str,
        endpoint: str,
        status_code: int,
        duration_seconds: float,
    ) -> None:
        """Record HTTP request metrics."""
        self.requests_total.labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code),
        ).inc()

        self.request_duration.labels(
            method=method,
            endpoint=endpoint,
        ).observe(duration_seconds)

    def record_handled_exception(self, error_type: str) -> None:
        self.handled_exceptions_total.labels(type=error_type).inc()

    def record_authentication_failure(self, reason: str) -> None:
        self.authentication_failures_total.labels(reason=reason).inc()
