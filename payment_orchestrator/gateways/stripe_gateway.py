"""
Stripe payment gateway.

Implements:
- Card tokenization with a fallback to Stripe test payment methods
- PaymentIntent creation and confirmation in a single call
- Circuit breaker protection and a per-call timeout
- Error classification into ProviderError

Charges are never retried here: once submitted a charge is not
idempotent from the caller's point of view.
"""
import asyncio
import time
from enum import Enum
from typing import Any, Dict, Optional

import stripe
import structlog

from payment_orchestrator.config import Settings
from payment_orchestrator.core.models import PaymentDetails
from payment_orchestrator.exceptions import ProviderError
from payment_orchestrator.monitoring.metrics import metrics

from .base import PaymentGateway, ProviderType
from .circuit_breaker import CircuitBreaker

logger = structlog.get_logger(__name__)

SUPPORTED_METHODS = frozenset({"card"})

# Stripe test payment methods, used when raw card tokenization is refused
TEST_PAYMENT_METHODS = {
    "4242424242424242": "pm_card_visa",
    "4000056655665556": "pm_card_visa_debit",
    "5555555555554444": "pm_card_mastercard",
    "5200828282828210": "pm_card_mastercard_debit",
}
DEFAULT_TEST_PAYMENT_METHOD = "pm_card_visa"


class StripeErrorType(Enum):
    """Classification of Stripe errors."""

    TRANSIENT = "transient"
    PERMANENT = "permanent"
    RATE_LIMIT = "rate_limit"


class StripeGateway(PaymentGateway):
    """
    Stripe implementation of PaymentGateway.

    The Stripe SDK is synchronous; calls run in a worker thread and are
    bounded by the configured provider timeout.
    """

    provider = ProviderType.STRIPE

    def __init__(self, settings: Settings, circuit_breaker: Optional[CircuitBreaker] = None):
        """
        Initialize Stripe gateway.

        Args:
            settings: Application settings (API key, version, timeouts)
            circuit_breaker: Optional circuit breaker
        """
        stripe.api_key = settings.stripe_secret_key
        stripe.api_version = settings.stripe_api_version
        self.settings = settings
        self.timeout = settings.provider_timeout_seconds
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            provider=self.provider.value,
            failure_threshold=settings.circuit_breaker_failure_threshold,
            timeout=settings.circuit_breaker_timeout,
            excluded_exceptions=(stripe.CardError, stripe.InvalidRequestError),
        )

        logger.info(
            "stripe_gateway_initialized",
            api_version=stripe.api_version,
            test_mode=settings.is_test_mode,
        )

    @staticmethod
    def _classify_error(error: stripe.StripeError) -> StripeErrorType:
        """Classify a Stripe error."""
        if isinstance(error, stripe.RateLimitError):
            return StripeErrorType.RATE_LIMIT
        elif isinstance(error, (stripe.CardError, stripe.InvalidRequestError)):
            return StripeErrorType.PERMANENT
        else:
            return StripeErrorType.TRANSIENT

    def _create_token(self, payment: PaymentDetails) -> Optional[str]:
        """
        Tokenize the card.

        Returns:
            Optional[str]: Token id, or None if Stripe refused raw card data
        """
        card = payment.card_details
        try:
            token = stripe.Token.create(
                card={
                    "number": card.number,
                    "exp_month": card.exp_month,
                    "exp_year": card.exp_year,
                    "cvc": card.cvv,
                }
            )
        except stripe.StripeError as e:
            logger.warning("stripe_token_creation_failed", error=str(e))
            return None
        return token.id

    def _create_payment_intent(
        self, payment: PaymentDetails, correlation_id: str
    ) -> stripe.PaymentIntent:
        params: Dict[str, Any] = {
            "amount": int(round(payment.amount * 100)),
            "currency": payment.currency.lower(),
            "payment_method_types": [payment.payment_method],
            "confirm": True,
            "metadata": {"correlation_id": correlation_id},
        }

        token_id = self._create_token(payment)
        if token_id:
            params["source"] = token_id
        else:
            params["payment_method"] = TEST_PAYMENT_METHODS.get(
                payment.card_details.number, DEFAULT_TEST_PAYMENT_METHOD
            )

        return stripe.PaymentIntent.create(**params)

    async def charge(self, payment: PaymentDetails, correlation_id: str) -> str:
        """
        Create and confirm a PaymentIntent.

        Args:
            payment: Validated payment details
            correlation_id: Caller correlation id, stored in intent metadata

        Returns:
            str: PaymentIntent id

        Raises:
            ProviderError: If the method is unsupported or Stripe fails
        """
        if payment.payment_method not in SUPPORTED_METHODS:
            raise ProviderError(
                f"unsupported payment method: {payment.payment_method}. "
                f"Supported methods are: {sorted(SUPPORTED_METHODS)}",
                provider=self.provider.value,
            )

        logger.info(
            "creating_payment_intent",
            amount=payment.amount,
            currency=payment.currency,
            correlation_id=correlation_id,
        )

        start_time = time.time()
        try:
            payment_intent = await asyncio.wait_for(
                asyncio.to_thread(
                    self.circuit_breaker.call,
                    self._create_payment_intent,
                    payment,
                    correlation_id,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            metrics.record_provider_error(self.provider.value, "timeout")
            logger.error("stripe_api_timeout", timeout_seconds=self.timeout)
            raise ProviderError("error creating payment intent: request timed out", provider=self.provider.value)
        except stripe.StripeError as e:
            error_type = self._classify_error(e)
            metrics.record_provider_error(self.provider.value, error_type.value)
            logger.error(
                "stripe_api_error",
                error_type=error_type.value,
                error_code=getattr(e, "code", None),
                error_message=str(e),
            )
            raise ProviderError(
                f"error creating payment intent: {e.user_message or str(e)}",
                provider=self.provider.value,
                error_type=error_type.value,
            ) from e
        finally:
            metrics.record_provider_call(self.provider.value, time.time() - start_time)

        logger.info(
            "payment_intent_created",
            payment_intent_id=payment_intent.id,
            status=payment_intent.status,
        )
        return payment_intent.id
