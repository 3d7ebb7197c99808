"""
Metrics Collection with Prometheus.

Exposes request, authorization, quota and notification metrics.
"""

from enum import Enum

from prometheus_client import Counter, Gauge, Histogram, Info

from backoffice.config import settings


class MetricLabels(str, Enum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    OPERATION = "operation"
    OUTCOME = "outcome"
    QUOTA_KIND = "kind"
    PROVIDER = "provider"
    ERROR_TYPE = "error_type"


class BackofficeMetrics:
    """
    Centralized metrics for the back-office API.

    Covers:
    - HTTP requests (rate, duration, in-flight)
    - Authorization decisions (allowed / unauthenticated / forbidden / not_found)
    - Quota checks (storage and tickets, accepted / rejected)
    - Outbound mail and AI replies
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        # ====================================================================
        # Service Info
        # ====================================================================
        self.service_info = Info(
            "backoffice_service",
            "Service information",
        )
        self.service_info.info(
            {
                "version": settings.api_version,
                "service_name": settings.service_name,
            }
        )

        # ====================================================================
        # HTTP Metrics
        # ====================================================================
        self.http_requests_total = Counter(
            "backoffice_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "backoffice_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.http_requests_in_progress = Gauge(
            "backoffice_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
        )

        # ====================================================================
        # Policy Metrics
        # ====================================================================
        self.auth_decisions_total = Counter(
            "backoffice_auth_decisions_total",
            "Authorization decisions by outcome",
            [MetricLabels.OUTCOME],
        )

        self.quota_checks_total = Counter(
            "backoffice_quota_checks_total",
            "Quota checks performed before quota-consuming writes",
            [MetricLabels.QUOTA_KIND, MetricLabels.OUTCOME],
        )

        self.upload_size_bytes = Histogram(
            "backoffice_upload_size_bytes",
            "Accepted upload sizes in bytes",
            buckets=(1e3, 1e4, 1e5, 1e6, 5e6, 1e7, 5e7, 1e8, 5e8),
        )

        # ====================================================================
        # Notification Metrics
        # ====================================================================
        self.mail_sent_total = Counter(
            "backoffice_mail_sent_total",
            "Outbound emails by outcome",
            [MetricLabels.OUTCOME],
        )

        self.ai_responses_total = Counter(
            "backoffice_ai_responses_total",
            "AI reply generations by provider and outcome",
            [MetricLabels.PROVIDER, MetricLabels.OUTCOME],
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "backoffice_errors_total",
            "Total errors by type",
            [MetricLabels.ERROR_TYPE, MetricLabels.OPERATION],
        )

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def record_http_request(
        self, endpoint: str, method: str, status_code: int, duration: float
    ) -> None:
        """Record HTTP request metrics."""
        self.http_requests_total.labels(
            endpoint=endpoint, method=method, status_code=status_code
        ).inc()
        self.http_request_duration_seconds.labels(endpoint=endpoint, method=method).observe(
            duration
        )

    def record_auth_decision(self, outcome: str) -> None:
        self.auth_decisions_total.labels(outcome=outcome).inc()

    def record_quota_check(self, kind: str, accepted: bool) -> None:
        self.quota_checks_total.labels(
            kind=kind, outcome="accepted" if accepted else "rejected"
        ).inc()

    def record_mail(self, sent: bool) -> None:
        self.mail_sent_total.labels(outcome="sent" if sent else "failed").inc()

    def record_ai_response(self, provider: str, outcome: str) -> None:
        self.ai_responses_total.labels(provider=provider, outcome=outcome).inc()

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = BackofficeMetrics()
