"""
Pydantic schemas for API request/response models.
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from payment_orchestrator.core.models import PaymentDetails


class CreatePaymentRequest(PaymentDetails):
    """Request schema for submitting a payment."""

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "gateway": "Stripe",
                    "amount": 100.00,
                    "currency": "USD",
                    "payment_method": "card",
                    "card_details": {
                        "number": "4242424242424242",
                        "expiry": "12/30",
                        "cvv": "123",
                    },
                }
            ]
        }
    }


class CreatePaymentResponse(BaseModel):
    """Response schema for payment submission."""

    transaction_id: str = Field(..., description="Provider transaction ID")
    status: str = Field(default="pending", description="Initial ledger status")

    model_config = {
        "json_schema_extra": {
            "examples": [{"transaction_id": "pi_1234567890", "status": "pending"}]
        }
    }


class WebhookResponse(BaseModel):
    """Response schema for webhook processing."""

    status: str = Field(..., description="Processing status (processed/dropped)")
    transaction_id: Optional[str] = Field(default=None, description="Updated transaction ID")


class HealthCheckResponse(BaseModel):
    """Response schema for health checks."""

    status: str = Field(..., description="Overall health status (healthy/unhealthy)")
    checks: Optional[Dict[str, Any]] = Field(default=None, description="Individual service checks")
    message: Optional[str] = Field(default=None, description="Status message")
