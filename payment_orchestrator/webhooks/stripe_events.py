"""
Stripe webhook events.

Envelope: {"id": "evt_...", "type": "payment_intent.succeeded",
           "data": {"object": {...}}}
"""
from enum import Enum
from typing import Any, Dict, Optional

import stripe
import structlog
from pydantic import BaseModel

from payment_orchestrator.core.ledger import TransactionLedger
from payment_orchestrator.exceptions import PaymentValidationError

from .base import EventHandler, WebhookEvent, WebhookReconciler, decode_model

logger = structlog.get_logger(__name__)


class StripeEventType(str, Enum):
    """Stripe event types the reconciler acts on."""

    PAYMENT_INTENT_CREATED = "payment_intent.created"
    PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
    PAYMENT_INTENT_PAYMENT_FAILED = "payment_intent.payment_failed"
    PAYMENT_INTENT_CANCELED = "payment_intent.canceled"
    CHARGE_REFUNDED = "charge.refunded"


class _EventData(BaseModel):
    object: Dict[str, Any]


class _StripeEnvelope(BaseModel):
    id: str
    type: str
    data: _EventData


class _PaymentIntentObject(BaseModel):
    id: str


class _ChargeObject(BaseModel):
    id: str
    # Null for charges made outside the PaymentIntents API
    payment_intent: Optional[str] = None


class PaymentIntentHandler(EventHandler):
    """Events whose object is the PaymentIntent itself."""

    def extract_transaction_id(self, payload: Dict[str, Any]) -> str:
        return decode_model(_PaymentIntentObject, payload, "payment intent").id


class ChargeHandler(EventHandler):
    """Events whose object is a Charge pointing at its PaymentIntent."""

    def extract_transaction_id(self, payload: Dict[str, Any]) -> Optional[str]:
        return decode_model(_ChargeObject, payload, "charge").payment_intent


class StripeReconciler(WebhookReconciler):
    """Reconciles Stripe events."""

    provider = "Stripe"
    event_types = StripeEventType

    def decode_event(self, data: Dict[str, Any]) -> WebhookEvent:
        envelope = decode_model(_StripeEnvelope, data, "Stripe event")
        return WebhookEvent(
            event_id=envelope.id,
            event_type=envelope.type,
            payload=envelope.data.object,
        )


def build_stripe_reconciler(ledger: TransactionLedger) -> StripeReconciler:
    """Build the Stripe event registry once at startup."""
    return StripeReconciler(
        {
            StripeEventType.PAYMENT_INTENT_CREATED: PaymentIntentHandler(ledger, "created"),
            StripeEventType.PAYMENT_INTENT_SUCCEEDED: PaymentIntentHandler(ledger, "success"),
            StripeEventType.PAYMENT_INTENT_PAYMENT_FAILED: PaymentIntentHandler(ledger, "failed"),
            StripeEventType.PAYMENT_INTENT_CANCELED: PaymentIntentHandler(ledger, "canceled"),
            StripeEventType.CHARGE_REFUNDED: ChargeHandler(ledger, "refunded"),
        }
    )


def verify_stripe_signature(payload: bytes, signature: str, secret: str) -> None:
    """
    Verify the Stripe-Signature header of a webhook body.

    Raises:
        PaymentValidationError: If the signature is missing or invalid
    """
    if not signature:
        raise PaymentValidationError("missing required header: Stripe-Signature")
    try:
        stripe.Webhook.construct_event(payload=payload, sig_header=signature, secret=secret)
    except stripe.SignatureVerificationError as e:
        logger.error("webhook_signature_verification_failed", error=str(e))
        raise PaymentValidationError(f"Invalid webhook signature: {e}") from e
    except ValueError as e:
        logger.error("webhook_verification_error", error=str(e))
        raise PaymentValidationError(f"Webhook verification failed: {e}") from e
