"""Webhook reconciliation for payment providers."""
from .base import EventHandler, WebhookEvent, WebhookReconciler
from .paypal_events import PayPalEventType, PayPalReconciler, build_paypal_reconciler
from .stripe_events import (
    StripeEventType,
    StripeReconciler,
    build_stripe_reconciler,
    verify_stripe_signature,
)

__all__ = [
    "EventHandler",
    "PayPalEventType",
    "PayPalReconciler",
    "StripeEventType",
    "StripeReconciler",
    "WebhookEvent",
    "WebhookReconciler",
    "build_paypal_reconciler",
    "build_stripe_reconciler",
    "verify_stripe_signature",
]
