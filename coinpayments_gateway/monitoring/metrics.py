"""
Prometheus metrics for payment gateway monitoring.

Tracks:
- Payment creation requests by outcome
- CoinPayments API call duration and errors
- IPN notifications by outcome
"""
from prometheus_client import Counter, Histogram

# Payment metrics
payment_requests_total = Counter(
    "payment_requests_total",
    "Total number of payment creation requests",
    ["status"],  # created, validation_error, upstream_error, conflict, error
)

payment_processing_duration_seconds = Histogram(
    "payment_processing_duration_seconds",
    "Payment creation duration in seconds",
    buckets=(0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0, 30.0),
)

# Processor API metrics
processor_api_duration_seconds = Histogram(
    "processor_api_duration_seconds",
    "CoinPayments API call duration in seconds",
    ["command"],
    buckets=(0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0, 30.0),
)

processor_api_errors_total = Counter(
    "processor_api_errors_total",
    "Total CoinPayments API errors",
    ["reason"],  # timeout, transport, http_status, invalid_response, api_error
)

# IPN metrics
ipn_notifications_total = Counter(
    "ipn_notifications_total",
    "Total IPN notifications received",
    ["outcome"],  # applied, unmatched, rejected, malformed
)


class MetricsCollector:
    """Helper class for collecting metrics."""

    @staticmethod
    def record_payment_request(status: str, duration_seconds: float) -> None:
        """Record a payment creation request."""
        payment_requests_total.labels(status=status).inc()
        payment_processing_duration_seconds.observe(duration_seconds)

    @staticmethod
    def record_processor_call(command: str, duration_seconds: float) -> None:
        """Record a CoinPayments API call."""
        processor_api_duration_seconds.labels(command=command).observe(duration_seconds)

    @staticmethod
    def record_processor_error(reason: str) -> None:
        """Record a CoinPayments API error."""
        processor_api_errors_total.labels(reason=reason).inc()

    @staticmethod
    def record_ipn(outcome: str) -> None:
        """Record an IPN notification."""
        ipn_notifications_total.labels(outcome=outcome).inc()


# Export singleton instance
metrics = MetricsCollector()
