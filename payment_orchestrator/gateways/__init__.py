"""Payment gateway providers and their registry."""
from payment_orchestrator.config import Settings

from .base import GatewayRegistry, PaymentGateway, ProviderType
from .paypal_gateway import PayPalGateway
from .stripe_gateway import StripeGateway


def build_gateway_registry(settings: Settings) -> GatewayRegistry:
    """Build the provider registry once at startup."""
    return GatewayRegistry(
        {
            ProviderType.PAYPAL: PayPalGateway(),
            ProviderType.STRIPE: StripeGateway(settings),
        }
    )


__all__ = [
    "GatewayRegistry",
    "PaymentGateway",
    "PayPalGateway",
    "ProviderType",
    "StripeGateway",
    "build_gateway_registry",
]
