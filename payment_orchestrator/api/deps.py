"""
Service wiring and FastAPI dependencies.

The service graph is built once per application from a single cache
handle and stored on app.state; routes reach it through dependencies.
"""
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status

from payment_orchestrator.cache import CacheStore
from payment_orchestrator.config import Settings
from payment_orchestrator.core.ledger import RetryPolicy, TransactionLedger
from payment_orchestrator.core.payment_processor import PaymentProcessor
from payment_orchestrator.gateways import GatewayRegistry, build_gateway_registry
from payment_orchestrator.monitoring.health import HealthCheck
from payment_orchestrator.monitoring.logging import bind_request_context
from payment_orchestrator.webhooks import build_paypal_reconciler, build_stripe_reconciler


@dataclass
class Services:
    """Everything the routes need, built once at startup."""

    settings: Settings
    processor: PaymentProcessor
    health: HealthCheck


def build_services(
    settings: Settings,
    cache: CacheStore,
    gateways: GatewayRegistry | None = None,
) -> Services:
    """Wire ledger, gateways and reconcilers around one cache handle."""
    ledger = TransactionLedger(
        cache,
        namespace=settings.ledger_namespace,
        retry_policy=RetryPolicy(
            max_attempts=settings.reconcile_max_attempts,
            delay_seconds=settings.reconcile_retry_delay,
        ),
    )
    processor = PaymentProcessor(
        gateways=gateways or build_gateway_registry(settings),
        ledger=ledger,
        reconcilers={
            "Stripe": build_stripe_reconciler(ledger),
            "PayPal": build_paypal_reconciler(ledger),
        },
    )
    return Services(
        settings=settings,
        processor=processor,
        health=HealthCheck(cache, settings),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_processor(services: Services = Depends(get_services)) -> PaymentProcessor:
    return services.processor


def require_correlation_id(
    request: Request, services: Services = Depends(get_services)
) -> str:
    """
    Read the caller correlation id header.

    Raises:
        HTTPException: 400 if the header is missing or blank
    """
    header = services.settings.correlation_header
    correlation_id = request.headers.get(header, "").strip()
    if not correlation_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"missing required header: {header}",
        )
    bind_request_context(correlation_id=correlation_id)
    return correlation_id
