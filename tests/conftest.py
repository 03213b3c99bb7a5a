"""
Pytest configuration and fixtures.
"""
import os

# Settings are read from the environment on first use.
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_fake_key_for_testing")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_fake_secret")

import hashlib
import hmac
import time
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from payment_orchestrator.api.deps import Services
from payment_orchestrator.api.main import create_app
from payment_orchestrator.cache import CacheMiss, CacheStore
from payment_orchestrator.config import Settings
from payment_orchestrator.core import PaymentDetails, PaymentProcessor, TransactionLedger
from payment_orchestrator.exceptions import CacheError
from payment_orchestrator.gateways import GatewayRegistry, PaymentGateway, PayPalGateway, ProviderType
from payment_orchestrator.monitoring.health import HealthCheck
from payment_orchestrator.webhooks import build_paypal_reconciler, build_stripe_reconciler

FIXED_NOW = datetime(2024, 3, 15, 10, 30, 0, tzinfo=timezone.utc)
FIXED_DAY = "15_03_2024"
CORRELATION_HEADERS = {"x-mgc-correlationId": "corr-123"}


def pytest_configure(config: Any) -> None:
    config.addinivalue_line("markers", "unit: fast tests with no external services")
    config.addinivalue_line("markers", "integration: tests going through the HTTP API")
    config.addinivalue_line("markers", "race: concurrent access scenarios")


class InMemoryCacheStore(CacheStore):
    """Dict-backed CacheStore. Set ``fail`` to make every call raise CacheError."""

    def __init__(self) -> None:
        self.data: Dict[str, bytes] = {}
        self.ttls: Dict[str, int] = {}
        self.get_calls: List[str] = []
        self.fail = False

    def _check(self, key: str) -> None:
        if self.fail:
            raise CacheError(f"Failed to reach cache for {key}", key=key)

    async def get(self, key: str) -> bytes:
        self.get_calls.append(key)
        self._check(key)
        if key not in self.data:
            raise CacheMiss(key)
        return self.data[key]

    async def set(self, key: str, value: bytes, ttl: int = 0) -> None:
        self._check(key)
        self.data[key] = value
        self.ttls[key] = ttl

    async def delete(self, key: str) -> int:
        self._check(key)
        return 1 if self.data.pop(key, None) is not None else 0

    async def ping(self) -> bool:
        return not self.fail


class FakeGateway(PaymentGateway):
    """Gateway returning a fixed id, or raising the configured error."""

    def __init__(
        self,
        provider: ProviderType,
        transaction_id: str = "pi_test_123",
        error: Optional[Exception] = None,
    ) -> None:
        self.provider = provider
        self.transaction_id = transaction_id
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def charge(self, payment: PaymentDetails, correlation_id: str) -> str:
        self.calls.append({"payment": payment, "correlation_id": correlation_id})
        if self.error is not None:
            raise self.error
        return self.transaction_id


def sign_stripe_payload(payload: bytes, secret: str, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header value for a payload."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.".encode("utf-8") + payload
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        stripe_secret_key="sk_test_fake_key_for_testing",
        stripe_webhook_secret="whsec_test_fake_secret",
        redis_url="redis://localhost:6379/1",
        app_name="payment-orchestrator-test",
        app_env="test",
        log_level="DEBUG",
        debug=True,
    )


@pytest.fixture
def cache() -> InMemoryCacheStore:
    return InMemoryCacheStore()


@pytest.fixture
def sleep() -> AsyncMock:
    """Stands in for asyncio.sleep between reconcile attempts."""
    return AsyncMock()


@pytest.fixture
def ledger(cache: InMemoryCacheStore, sleep: AsyncMock) -> TransactionLedger:
    return TransactionLedger(cache, clock=lambda: FIXED_NOW, sleep=sleep)


@pytest.fixture
def stripe_gateway() -> FakeGateway:
    return FakeGateway(ProviderType.STRIPE)


@pytest.fixture
def gateway_registry(stripe_gateway: FakeGateway) -> GatewayRegistry:
    return GatewayRegistry(
        {
            ProviderType.STRIPE: stripe_gateway,
            ProviderType.PAYPAL: PayPalGateway(),
        }
    )


@pytest.fixture
def processor(gateway_registry: GatewayRegistry, ledger: TransactionLedger) -> PaymentProcessor:
    return PaymentProcessor(
        gateways=gateway_registry,
        ledger=ledger,
        reconcilers={
            "Stripe": build_stripe_reconciler(ledger),
            "PayPal": build_paypal_reconciler(ledger),
        },
    )


@pytest.fixture
def services(
    test_settings: Settings, processor: PaymentProcessor, cache: InMemoryCacheStore
) -> Services:
    return Services(
        settings=test_settings,
        processor=processor,
        health=HealthCheck(cache, test_settings),
    )


@pytest_asyncio.fixture
async def client(test_settings: Settings, services: Services) -> AsyncGenerator[AsyncClient, Any]:
    """Create test HTTP client."""
    app = create_app(settings=test_settings, services=services)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def sample_payment_data() -> Dict[str, Any]:
    """Sample payment request data."""
    return {
        "gateway": "Stripe",
        "amount": 10.5,
        "currency": "USD",
        "payment_method": "card",
        "card_details": {
            "number": "4242424242424242",
            "expiry": "12/30",
            "cvv": "123",
        },
    }


@pytest.fixture
def sample_payment(sample_payment_data: Dict[str, Any]) -> PaymentDetails:
    return PaymentDetails(**sample_payment_data)
