"""
PayPal webhook events.

Envelope: {"id": "WH-...", "event_type": "PAYMENT.CAPTURE.COMPLETED",
           "resource": {"id": "...", ...}}
"""
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel

from payment_orchestrator.core.ledger import TransactionLedger

from .base import EventHandler, WebhookEvent, WebhookReconciler, decode_model


class PayPalEventType(str, Enum):
    """PayPal event types the reconciler acts on."""

    CAPTURE_COMPLETED = "PAYMENT.CAPTURE.COMPLETED"
    CAPTURE_DENIED = "PAYMENT.CAPTURE.DENIED"
    CAPTURE_REFUNDED = "PAYMENT.CAPTURE.REFUNDED"


class _PayPalEnvelope(BaseModel):
    id: str
    event_type: str
    resource: Dict[str, Any]


class _Resource(BaseModel):
    id: str


class CaptureHandler(EventHandler):
    def extract_transaction_id(self, payload: Dict[str, Any]) -> str:
        return decode_model(_Resource, payload, "PayPal resource").id


class PayPalReconciler(WebhookReconciler):
    """Reconciles PayPal events."""

    provider = "PayPal"
    event_types = PayPalEventType

    def decode_event(self, data: Dict[str, Any]) -> WebhookEvent:
        envelope = decode_model(_PayPalEnvelope, data, "PayPal event")
        return WebhookEvent(
            event_id=envelope.id,
            event_type=envelope.event_type,
            payload=envelope.resource,
        )


def build_paypal_reconciler(ledger: TransactionLedger) -> PayPalReconciler:
    """Build the PayPal event registry once at startup."""
    return PayPalReconciler(
        {
            PayPalEventType.CAPTURE_COMPLETED: CaptureHandler(ledger, "success"),
            PayPalEventType.CAPTURE_DENIED: CaptureHandler(ledger, "failed"),
            PayPalEventType.CAPTURE_REFUNDED: CaptureHandler(ledger, "refunded"),
        }
    )
