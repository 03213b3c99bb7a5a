"""
Payment gateway interface and the provider registry.

Providers are keyed by a closed ProviderType enumeration. The registry is
built once at startup; adding a provider means adding an enum member and
an entry in build_gateway_registry, never changing dispatch logic.
"""
import abc
from enum import Enum
from typing import Dict, Mapping, Set

import structlog

from payment_orchestrator.core.models import PaymentDetails
from payment_orchestrator.exceptions import UnsupportedProvider

logger = structlog.get_logger(__name__)


class ProviderType(str, Enum):
    """Supported payment providers."""

    PAYPAL = "PayPal"
    STRIPE = "Stripe"


class PaymentGateway(abc.ABC):
    """A payment provider able to execute a charge."""

    provider: ProviderType

    @abc.abstractmethod
    async def charge(self, payment: PaymentDetails, correlation_id: str) -> str:
        """
        Execute a payment.

        Args:
            payment: Validated payment details
            correlation_id: Caller correlation id, forwarded to the provider

        Returns:
            str: Provider-assigned transaction id

        Raises:
            ProviderError: On any downstream failure
        """


class GatewayRegistry:
    """Static map from provider type to gateway implementation."""

    def __init__(self, gateways: Mapping[ProviderType, PaymentGateway]):
        self._gateways: Dict[ProviderType, PaymentGateway] = dict(gateways)

    def resolve(self, name: str) -> PaymentGateway:
        """
        Look up a gateway by provider name.

        Raises:
            UnsupportedProvider: If the name is not a registered provider
        """
        try:
            provider = ProviderType(name)
        except ValueError:
            raise UnsupportedProvider(name)

        gateway = self._gateways.get(provider)
        if gateway is None:
            raise UnsupportedProvider(name)
        return gateway

    def available(self) -> Set[str]:
        """Names of all registered providers."""
        return {provider.value for provider in self._gateways}
