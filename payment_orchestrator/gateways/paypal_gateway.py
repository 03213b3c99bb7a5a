"""PayPal payment gateway. Registered, but charges are not integrated yet."""
import structlog

from payment_orchestrator.core.models import PaymentDetails
from payment_orchestrator.exceptions import ProviderError

from .base import PaymentGateway, ProviderType

logger = structlog.get_logger(__name__)


class PayPalGateway(PaymentGateway):
    """PayPal implementation of PaymentGateway."""

    provider = ProviderType.PAYPAL

    async def charge(self, payment: PaymentDetails, correlation_id: str) -> str:
        logger.info(
            "processing_paypal_payment",
            amount=payment.amount,
            currency=payment.currency,
            correlation_id=correlation_id,
        )
        # TODO: call the PayPal Orders API once merchant credentials are provisioned
        raise ProviderError(
            f"unable to process payment using gateway: {self.provider.value}",
            provider=self.provider.value,
        )
