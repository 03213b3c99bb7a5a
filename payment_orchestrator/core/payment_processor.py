"""
Payment processor: the facade the HTTP layer talks to.

Flows:
- submit_payment: validate -> resolve gateway -> charge -> ledger create
- handle_webhook_event: reconciler for the provider -> ledger append
- list_transactions: ledger list for a day
"""
import time
from typing import TYPE_CHECKING, List, Mapping, Optional, Set

import structlog

from payment_orchestrator.core.ledger import TransactionLedger
from payment_orchestrator.core.models import PaymentDetails, TransactionRecord
from payment_orchestrator.exceptions import (
    PaymentValidationError,
    ProviderError,
    UnsupportedProvider,
)
from payment_orchestrator.monitoring.metrics import metrics

if TYPE_CHECKING:
    from payment_orchestrator.gateways import GatewayRegistry
    from payment_orchestrator.webhooks import WebhookReconciler
    from payment_orchestrator.webhooks.base import RawEvent

logger = structlog.get_logger(__name__)


class PaymentProcessor:
    """
    Composes gateway dispatch, the transaction ledger and webhook
    reconciliation. All dependencies are injected.
    """

    def __init__(
        self,
        gateways: "GatewayRegistry",
        ledger: TransactionLedger,
        reconcilers: Mapping[str, "WebhookReconciler"],
    ):
        """
        Initialize payment processor.

        Args:
            gateways: Provider registry
            ledger: Transaction ledger
            reconcilers: Webhook reconcilers keyed by provider name
        """
        self.gateways = gateways
        self.ledger = ledger
        self.reconcilers = dict(reconcilers)

        logger.info(
            "payment_processor_initialized",
            gateways=sorted(gateways.available()),
            webhook_providers=sorted(self.reconcilers),
        )

    @staticmethod
    def _validate_payment_request(
        amount: float,
        currency: str,
        correlation_id: str,
    ) -> None:
        """
        Validate payment request parameters.

        Raises:
            PaymentValidationError: If validation fails
        """
        if amount <= 0:
            raise PaymentValidationError("Amount must be positive")

        if len(currency) != 3 or not currency.isalpha():
            raise PaymentValidationError("Currency must be 3-letter code")

        if not correlation_id or not correlation_id.strip():
            raise PaymentValidationError("Correlation ID is required")

    async def submit_payment(
        self,
        provider_name: str,
        payment: PaymentDetails,
        correlation_id: str,
    ) -> str:
        """
        Charge through a provider and record the pending transaction.

        Args:
            provider_name: Registered provider name (e.g., 'Stripe')
            payment: Payment details
            correlation_id: Caller correlation id

        Returns:
            str: Provider transaction id

        Raises:
            PaymentValidationError: If the request is invalid
            UnsupportedProvider: If the provider is not registered
            ProviderError: If the charge fails
            CacheError: If the ledger write fails after a successful charge
        """
        start_time = time.time()
        self._validate_payment_request(payment.amount, payment.currency, correlation_id)

        log = logger.bind(provider=provider_name, correlation_id=correlation_id)
        log.info("payment_submission_started", amount=payment.amount, currency=payment.currency)

        try:
            gateway = self.gateways.resolve(provider_name)
            transaction_id = await gateway.charge(payment, correlation_id)
        except UnsupportedProvider:
            metrics.record_payment_request(provider_name, "unsupported", payment.currency, payment.amount)
            log.warning("payment_provider_unsupported")
            raise
        except ProviderError as e:
            metrics.record_payment_request(provider_name, "failed", payment.currency, payment.amount)
            log.error("payment_provider_failed", error=str(e))
            raise

        if not transaction_id:
            metrics.record_payment_request(provider_name, "failed", payment.currency, payment.amount)
            raise ProviderError("provider returned no transaction id", provider=provider_name)

        try:
            await self.ledger.create_transaction(transaction_id, payment.amount, payment.currency)
        except Exception as e:
            # The charge went through; the record is missing until a webhook finds it.
            log.error(
                "payment_ledger_write_failed",
                transaction_id=transaction_id,
                error=str(e),
            )
            metrics.record_payment_request(provider_name, "unrecorded", payment.currency, payment.amount)
            raise

        metrics.record_payment_request(provider_name, "success", payment.currency, payment.amount)
        log.info(
            "payment_submission_completed",
            transaction_id=transaction_id,
            duration_seconds=time.time() - start_time,
        )
        return transaction_id

    async def handle_webhook_event(
        self, provider_name: str, raw_event: "RawEvent"
    ) -> Optional[TransactionRecord]:
        """
        Reconcile a provider webhook event into the ledger.

        Raises:
            UnsupportedProvider: If no reconciler exists for the provider
            UnsupportedEvent: If the event type has no handler
            MalformedEvent: If the event cannot be decoded
            CacheError: If the ledger cannot reach the cache
        """
        reconciler = self.reconcilers.get(provider_name)
        if reconciler is None:
            raise UnsupportedProvider(provider_name)
        return await reconciler.handle(raw_event)

    async def list_transactions(self, day: Optional[str] = None) -> List[TransactionRecord]:
        """List transactions for a DD_MM_YYYY day, today by default."""
        if not day or not day.strip():
            return await self.ledger.list_today()
        return await self.ledger.list_by_date(day)

    def available_gateways(self) -> Set[str]:
        """Names of all registered providers."""
        return self.gateways.available()
