"""
API routes for payment orchestration.
"""
from typing import Any, Dict, List, Optional

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, Response, status
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from payment_orchestrator.core.models import TransactionRecord
from payment_orchestrator.core.payment_processor import PaymentProcessor
from payment_orchestrator.exceptions import (
    MalformedEvent,
    PaymentSystemError,
    PaymentValidationError,
    ProviderError,
    UnsupportedEvent,
    UnsupportedProvider,
)
from payment_orchestrator.webhooks import verify_stripe_signature

from .deps import Services, get_processor, get_services, require_correlation_id
from .schemas import (
    CreatePaymentRequest,
    CreatePaymentResponse,
    HealthCheckResponse,
    WebhookResponse,
)

logger = structlog.get_logger(__name__)

# Create routers
gateway_router = APIRouter(prefix="/api/v1/gateways", tags=["gateways"])
webhook_router = APIRouter(prefix="/api/v1", tags=["webhooks"])
monitoring_router = APIRouter(tags=["monitoring"])


@gateway_router.get(
    "/available",
    response_model=List[str],
    summary="List available gateways",
    description="Names of all registered payment providers",
)
async def get_available_gateways(
    correlation_id: str = Depends(require_correlation_id),
    processor: PaymentProcessor = Depends(get_processor),
) -> List[str]:
    """List registered providers."""
    logger.info("api_list_gateways_request")
    return sorted(processor.available_gateways())


@gateway_router.get(
    "/transactions",
    response_model=List[TransactionRecord],
    summary="List transactions by date",
    description="All transactions recorded on a day (DD_MM_YYYY, defaults to today)",
)
async def get_transactions_by_date(
    date: Optional[str] = Query(default=None, description="Day in DD_MM_YYYY format"),
    correlation_id: str = Depends(require_correlation_id),
    processor: PaymentProcessor = Depends(get_processor),
) -> List[TransactionRecord]:
    """List transactions for a day."""
    try:
        transactions = await processor.list_transactions(date)
    except PaymentValidationError as e:
        logger.warning("api_list_transactions_validation_error", error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except PaymentSystemError as e:
        logger.error("api_list_transactions_error", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unable to process your request, please try again later",
        )

    logger.info("api_list_transactions_success", count=len(transactions))
    return transactions


@gateway_router.post(
    "",
    response_model=CreatePaymentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a payment",
    description="Charge through the requested gateway and record a pending transaction",
)
async def create_payment(
    request: CreatePaymentRequest,
    correlation_id: str = Depends(require_correlation_id),
    processor: PaymentProcessor = Depends(get_processor),
) -> Dict[str, Any]:
    """Submit a payment."""
    logger.info(
        "api_create_payment_request",
        gateway=request.gateway,
        amount=request.amount,
        currency=request.currency,
    )

    try:
        transaction_id = await processor.submit_payment(request.gateway, request, correlation_id)

    except (PaymentValidationError, UnsupportedProvider, ProviderError) as e:
        logger.warning("api_create_payment_rejected", error=str(e), error_code=e.error_code)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    except PaymentSystemError as e:
        logger.error("api_create_payment_error", error=str(e), error_code=e.error_code)
        raise HTTPException(status_code=e.http_status, detail="Payment processing failed")

    logger.info("api_create_payment_success", transaction_id=transaction_id)
    return {"transaction_id": transaction_id, "status": "pending"}


async def _reconcile(
    processor: PaymentProcessor, provider: str, body: bytes
) -> Dict[str, Any]:
    try:
        record = await processor.handle_webhook_event(provider, body)

    except UnsupportedEvent as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    except MalformedEvent as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.message)

    except PaymentSystemError as e:
        logger.error("api_webhook_error", provider=provider, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed",
        )

    if record is None:
        return {"status": "dropped", "transaction_id": None}
    return {"status": "processed", "transaction_id": record.id}


def _body_too_large(request: Request, limit: int) -> HTTPException:
    logger.warning("webhook_body_too_large", path=request.url.path, limit=limit)
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=f"request body exceeds {limit} bytes",
    )


async def _read_limited_body(request: Request, limit: int) -> bytes:
    """
    Read at most ``limit`` bytes of the request body.

    A declared Content-Length over the limit is refused before reading;
    otherwise the stream is consumed chunk by chunk and abandoned as soon
    as it passes the limit.
    """
    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > limit:
        raise _body_too_large(request, limit)

    chunks: List[bytes] = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > limit:
            raise _body_too_large(request, limit)
        chunks.append(chunk)
    return b"".join(chunks)


@webhook_router.post(
    "/stripe/webhook",
    response_model=WebhookResponse,
    summary="Stripe webhook endpoint",
    description="Verify and reconcile Stripe webhook events",
)
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(default="", alias="Stripe-Signature"),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """Handle Stripe webhook events."""
    body = await _read_limited_body(request, services.settings.webhook_max_body_bytes)

    try:
        verify_stripe_signature(body, stripe_signature, services.settings.stripe_webhook_secret)
    except PaymentValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    return await _reconcile(services.processor, "Stripe", body)


@webhook_router.post(
    "/paypal/webhook",
    response_model=WebhookResponse,
    summary="PayPal webhook endpoint",
    description="Reconcile PayPal webhook events",
)
async def paypal_webhook(
    request: Request,
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """Handle PayPal webhook events."""
    body = await _read_limited_body(request, services.settings.webhook_max_body_bytes)
    return await _reconcile(services.processor, "PayPal", body)


@monitoring_router.get("/ping", response_class=PlainTextResponse, include_in_schema=False)
async def ping() -> str:
    return "pong"


@monitoring_router.get(
    "/health",
    response_model=HealthCheckResponse,
    summary="Health check",
    description="Check overall system health",
)
async def health(services: Services = Depends(get_services)) -> Dict[str, Any]:
    """Health check endpoint for monitoring."""
    return await services.health.check_all()


@monitoring_router.get(
    "/health/live",
    response_model=HealthCheckResponse,
    summary="Liveness probe",
    description="Kubernetes liveness probe endpoint",
)
async def liveness(services: Services = Depends(get_services)) -> Dict[str, Any]:
    """Liveness probe endpoint."""
    return await services.health.liveness()


@monitoring_router.get(
    "/health/ready",
    response_model=HealthCheckResponse,
    summary="Readiness probe",
    description="Kubernetes readiness probe endpoint",
)
async def readiness(services: Services = Depends(get_services)) -> Dict[str, Any]:
    """Readiness probe endpoint."""
    result = await services.health.readiness()
    if result["status"] != "healthy":
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=result)
    return result


@monitoring_router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Expose Prometheus metrics",
    include_in_schema=False,
)
async def prometheus_metrics() -> Response:
    """Expose Prometheus metrics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
