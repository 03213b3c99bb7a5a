"""Core payment orchestration logic."""
from payment_orchestrator.exceptions import (
    CacheError,
    LedgerCorruptionError,
    MalformedEvent,
    PaymentSystemError,
    PaymentValidationError,
    ProviderError,
    RecordNotYetVisible,
    UnsupportedEvent,
    UnsupportedProvider,
    UpstreamError,
)
from .ledger import RetryPolicy, TransactionLedger
from .models import CardDetails, PaymentDetails, StatusEntry, TransactionRecord
from .payment_processor import PaymentProcessor

__all__ = [
    "CacheError",
    "CardDetails",
    "LedgerCorruptionError",
    "MalformedEvent",
    "PaymentDetails",
    "PaymentProcessor",
    "PaymentSystemError",
    "PaymentValidationError",
    "ProviderError",
    "RecordNotYetVisible",
    "RetryPolicy",
    "StatusEntry",
    "TransactionLedger",
    "TransactionRecord",
    "UnsupportedEvent",
    "UnsupportedProvider",
    "UpstreamError",
]
