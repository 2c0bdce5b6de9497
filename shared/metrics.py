"""
Shared metrics configuration for the Access edge gateway.
"""

from typing import Any, Dict, Optional

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, Info, generate_latest


class MetricsCollector:
    """Centralized metrics collector for a service.

    Each collector owns its registry so several gateway instances (tests,
    workers sharing a process) never register the same series twice.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method"],
            registry=self.registry
        )

        # Error metrics
        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_code"],
            registry=self.registry
        )

        self._setup_gateway_metrics()

    def _setup_gateway_metrics(self):
        """Set up gateway-specific metrics."""
        self._metrics["token_validations_total"] = Counter(
            "token_validations_total",
            "Total token validations",
            ["status"],
            registry=self.registry
        )

        self._metrics["jwks_refresh_total"] = Counter(
            "jwks_refresh_total",
            "Total signing key set refreshes",
            ["status"],
            registry=self.registry
        )

        self._metrics["backend_requests_total"] = Counter(
            "backend_requests_total",
            "Total backend fetches",
            ["service", "status"],
            registry=self.registry
        )

        self._metrics["subscription_entries_total"] = Counter(
            "gateway_subscription_entries_total",
            "Subscription entries converted to config lines",
            ["scheme"],
            registry=self.registry
        )

        self._metrics["subscription_entries_skipped_total"] = Counter(
            "gateway_subscription_entries_skipped_total",
            "Subscription entries dropped as malformed or unsupported",
            ["reason"],
            registry=self.registry
        )

    def record_http_request(self, method: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method
        ).observe(duration)

    def record_error(self, error_code: str):
        """Record error metrics."""
        self._metrics["errors_total"].labels(error_code=error_code).inc()

    def record_token_validation(self, status: str):
        self._metrics["token_validations_total"].labels(status=status).inc()

    def record_jwks_refresh(self, status: str):
        self._metrics["jwks_refresh_total"].labels(status=status).inc()

    def record_backend_request(self, service: str, status: str):
        self._metrics["backend_requests_total"].labels(service=service, status=status).inc()

    def record_subscription_entry(self, scheme: str):
        self._metrics["subscription_entries_total"].labels(scheme=scheme).inc()

    def record_subscription_skip(self, reason: str):
        self._metrics["subscription_entries_skipped_total"].labels(reason=reason).inc()

    def render(self) -> bytes:
        """Render the registry in Prometheus exposition format."""
        return generate_latest(self.registry)


def get_metrics_collector(service_name: str) -> MetricsCollector:
    """Create a metrics collector for a service."""
    return MetricsCollector(service_name)


__all__ = ["CONTENT_TYPE_LATEST", "MetricsCollector", "get_metrics_collector"]
