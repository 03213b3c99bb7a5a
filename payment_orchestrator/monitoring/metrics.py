"""
Prometheus metrics for payment orchestrator monitoring.

Tracks:
- Payment request counts by provider and outcome
- Provider call duration
- Webhook events by provider, type and outcome
- Ledger bucket writes
- Reconcile retries and dropped statuses
"""
from prometheus_client import Counter, Gauge, Histogram

# Payment metrics
payment_requests_total = Counter(
    "payment_requests_total",
    "Total number of payment requests",
    ["provider", "status"],
)

payment_amount = Histogram(
    "payment_amount",
    "Payment amounts in major currency units",
    ["currency"],
    buckets=(1, 5, 10, 50, 100, 500, 1000, 5000, 10000),
)

# Provider metrics
provider_call_duration_seconds = Histogram(
    "provider_call_duration_seconds",
    "Payment provider call duration in seconds",
    ["provider"],
    buckets=(0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0),
)

provider_errors_total = Counter(
    "provider_errors_total",
    "Total payment provider errors",
    ["provider", "error_type"],  # transient, permanent, rate_limit, timeout
)

provider_circuit_breaker_state = Gauge(
    "provider_circuit_breaker_state",
    "Provider circuit breaker state (0=closed, 1=open, 2=half_open)",
    ["provider"],
)

# Webhook metrics
webhook_events_total = Counter(
    "webhook_events_total",
    "Total webhook events handled",
    ["provider", "event_type", "status"],  # success, unsupported, malformed, failed
)

webhook_processing_duration_seconds = Histogram(
    "webhook_processing_duration_seconds",
    "Webhook processing duration in seconds",
    ["provider"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# Ledger metrics
ledger_bucket_writes_total = Counter(
    "ledger_bucket_writes_total",
    "Total day bucket writes",
    ["operation"],  # create, append
)

ledger_reconcile_retries_total = Counter(
    "ledger_reconcile_retries_total",
    "Status appends retried because the record was not yet visible",
)

ledger_reconcile_dropped_total = Counter(
    "ledger_reconcile_dropped_total",
    "Status appends dropped after exhausting retries",
)


class MetricsCollector:
    """Helper class for collecting metrics."""

    @staticmethod
    def record_payment_request(provider: str, status: str, currency: str, amount: float) -> None:
        """Record a payment request."""
        payment_requests_total.labels(provider=provider, status=status).inc()
        if status == "success":
            payment_amount.labels(currency=currency).observe(amount)

    @staticmethod
    def record_provider_call(provider: str, duration_seconds: float) -> None:
        """Record provider call duration."""
        provider_call_duration_seconds.labels(provider=provider).observe(duration_seconds)

    @staticmethod
    def record_provider_error(provider: str, error_type: str) -> None:
        """Record provider error."""
        provider_errors_total.labels(provider=provider, error_type=error_type).inc()

    @staticmethod
    def set_circuit_breaker_state(provider: str, state: str) -> None:
        """Set circuit breaker state."""
        state_map = {"closed": 0, "open": 1, "half_open": 2}
        provider_circuit_breaker_state.labels(provider=provider).set(state_map.get(state, 0))

    @staticmethod
    def record_webhook_event(
        provider: str, event_type: str, status: str, duration_seconds: float
    ) -> None:
        """Record webhook event processing."""
        webhook_events_total.labels(provider=provider, event_type=event_type, status=status).inc()
        webhook_processing_duration_seconds.labels(provider=provider).observe(duration_seconds)

    @staticmethod
    def record_bucket_write(operation: str) -> None:
        """Record a day bucket write."""
        ledger_bucket_writes_total.labels(operation=operation).inc()

    @staticmethod
    def record_reconcile_retry() -> None:
        """Record a not-yet-visible retry."""
        ledger_reconcile_retries_total.inc()

    @staticmethod
    def record_reconcile_dropped() -> None:
        """Record a status dropped after retries."""
        ledger_reconcile_dropped_total.inc()


# Export singleton instance
metrics = MetricsCollector()
