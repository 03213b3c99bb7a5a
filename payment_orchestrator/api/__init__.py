"""FastAPI application and routes."""
from .main import create_app
from .schemas import (
    CreatePaymentRequest,
    CreatePaymentResponse,
    HealthCheckResponse,
    WebhookResponse,
)

__all__ = [
    "create_app",
    "CreatePaymentRequest",
    "CreatePaymentResponse",
    "HealthCheckResponse",
    "WebhookResponse",
]
