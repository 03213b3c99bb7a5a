"""
Exception taxonomy for the payment orchestrator.

Every error carries:
- An error code (for client handling)
- An HTTP status (for API responses)

Only RecordNotYetVisible is retried, and only inside the ledger.
"""
from typing import Any, Dict, Optional


class PaymentSystemError(Exception):
    """Base exception for all payment orchestrator errors."""

    error_code = "payment_system_error"
    http_status = 500

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for API responses."""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "type": self.__class__.__name__,
            }
        }


class PaymentValidationError(PaymentSystemError):
    """Raised when caller input is invalid. Never retried."""

    error_code = "validation_error"
    http_status = 400


class UpstreamError(PaymentSystemError):
    """Raised when a provider or cache call fails."""

    error_code = "upstream_error"
    http_status = 502


class ProviderError(UpstreamError):
    """
    Raised when a payment provider rejects or fails a charge.

    Charges are not idempotent once submitted, so callers must not retry.
    """

    error_code = "provider_error"
    http_status = 400

    def __init__(self, message: str, provider: Optional[str] = None, **context: Any):
        super().__init__(message, provider=provider, **context)
        self.provider = provider


class CacheError(UpstreamError):
    """Raised when the cache store fails for a reason other than a miss."""

    error_code = "cache_error"


class LedgerCorruptionError(UpstreamError):
    """Raised when a stored day bucket cannot be decoded."""

    error_code = "ledger_corruption"


class RecordNotYetVisible(PaymentSystemError):
    """A status arrived before the transaction record was written."""

    error_code = "record_not_yet_visible"
    http_status = 404

    def __init__(self, transaction_id: str, bucket_key: str):
        super().__init__(
            f"Transaction {transaction_id} not found in {bucket_key}",
            transaction_id=transaction_id,
            bucket_key=bucket_key,
        )
        self.transaction_id = transaction_id
        self.bucket_key = bucket_key


class UnsupportedProvider(PaymentSystemError):
    """Raised when no gateway is registered under the requested name."""

    error_code = "unsupported_provider"
    http_status = 400

    def __init__(self, name: str):
        super().__init__("unsupported payment gateway type", name=name)
        self.name = name


class UnsupportedEvent(PaymentSystemError):
    """
    Raised when no handler is registered for a webhook event type.

    Providers send many event types that are not acted on, so this is
    not necessarily an operator error.
    """

    error_code = "unsupported_event"
    http_status = 400

    def __init__(self, provider: str, event_type: str):
        super().__init__(f"unsupported {provider} action", provider=provider, event_type=event_type)
        self.provider = provider
        self.event_type = event_type


class MalformedEvent(PaymentSystemError):
    """Raised when a webhook payload cannot be decoded into the expected shape."""

    error_code = "malformed_event"
    http_status = 500
