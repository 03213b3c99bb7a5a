"""
Webhook reconciliation: provider events to ledger status appends.

Each provider has a WebhookReconciler holding a static map from its
event-type enumeration to handlers. A handler extracts the provider
transaction id from the event payload and appends a fixed status label.

Delivery is at-least-once and unordered. Processing the same event twice
appends a duplicate status entry; nothing else changes.
"""
import abc
import json
import time
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Type, Union

import structlog
from pydantic import BaseModel, ValidationError

from payment_orchestrator.core.ledger import TransactionLedger
from payment_orchestrator.core.models import TransactionRecord
from payment_orchestrator.exceptions import MalformedEvent, UnsupportedEvent
from payment_orchestrator.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)

RawEvent = Union[bytes, str, Mapping[str, Any]]


class WebhookEvent(BaseModel):
    """Provider-neutral view of an inbound event."""

    event_id: str
    event_type: str
    payload: Dict[str, Any]


class EventHandler(abc.ABC):
    """Maps one event type to a ledger status append."""

    def __init__(self, ledger: TransactionLedger, status: str):
        self.ledger = ledger
        self.status = status

    @abc.abstractmethod
    def extract_transaction_id(self, payload: Dict[str, Any]) -> Optional[str]:
        """
        Return the provider transaction id carried by the payload.

        None means the event does not refer to a transaction this service
        created.

        Raises:
            MalformedEvent: If the payload does not have the expected shape
        """

    async def process(self, event: WebhookEvent) -> Optional[TransactionRecord]:
        """Append this handler's status to the event's transaction."""
        transaction_id = self.extract_transaction_id(event.payload)
        if transaction_id is None:
            metrics.record_reconcile_dropped()
            logger.warning(
                "webhook_event_without_transaction",
                event_id=event.event_id,
                event_type=event.event_type,
                status=self.status,
            )
            return None
        return await self.ledger.append_status(transaction_id, self.status)


def decode_model(model: Type[BaseModel], data: Any, what: str) -> Any:
    """Validate data against a model, raising MalformedEvent on failure."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise MalformedEvent(f"Invalid {what}: {e.error_count()} validation error(s)") from e


class WebhookReconciler(abc.ABC):
    """Resolves and runs the handler registered for an event type."""

    provider: str
    event_types: Type[Enum]

    def __init__(self, handlers: Mapping[Enum, EventHandler]):
        self._handlers: Dict[Enum, EventHandler] = dict(handlers)

    @abc.abstractmethod
    def decode_event(self, data: Dict[str, Any]) -> WebhookEvent:
        """Decode a provider envelope into a WebhookEvent."""

    def resolve_handler(self, event_type: str) -> EventHandler:
        """
        Look up the handler registered for an event type.

        Raises:
            UnsupportedEvent: If no handler is registered
        """
        try:
            key = self.event_types(event_type)
        except ValueError:
            raise UnsupportedEvent(self.provider, event_type)

        handler = self._handlers.get(key)
        if handler is None:
            raise UnsupportedEvent(self.provider, event_type)
        return handler

    def supported_events(self) -> set:
        """Event types with a registered handler."""
        return {key.value for key in self._handlers}

    @staticmethod
    def _load(raw: RawEvent) -> Dict[str, Any]:
        if isinstance(raw, Mapping):
            return dict(raw)
        try:
            data = json.loads(raw)
        except (ValueError, UnicodeDecodeError) as e:
            raise MalformedEvent(f"Event body is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise MalformedEvent("Event body must be a JSON object")
        return data

    async def handle(self, raw: RawEvent) -> Optional[TransactionRecord]:
        """
        Reconcile one inbound event.

        Args:
            raw: Event body as bytes, text or an already decoded mapping

        Returns:
            Optional[TransactionRecord]: Updated record, or None if the
            record never became visible and the status was dropped

        Raises:
            MalformedEvent: If the event cannot be decoded
            UnsupportedEvent: If the event type has no handler
            CacheError: If the ledger cannot reach the cache
        """
        start_time = time.time()
        event_type = "unknown"
        outcome = "failed"
        try:
            event = self.decode_event(self._load(raw))
            event_type = event.event_type
            logger.info(
                "webhook_event_received",
                provider=self.provider,
                event_id=event.event_id,
                event_type=event_type,
            )

            handler = self.resolve_handler(event_type)
            record = await handler.process(event)
            outcome = "success" if record is not None else "dropped"
        except UnsupportedEvent:
            outcome = "unsupported"
            logger.warning("webhook_event_unsupported", provider=self.provider, event_type=event_type)
            raise
        except MalformedEvent as e:
            outcome = "malformed"
            logger.error(
                "webhook_event_malformed",
                provider=self.provider,
                event_type=event_type,
                error=str(e),
            )
            raise
        finally:
            metrics.record_webhook_event(
                self.provider, event_type, outcome, time.time() - start_time
            )

        logger.info(
            "webhook_event_processed",
            provider=self.provider,
            event_id=event.event_id,
            event_type=event_type,
            outcome=outcome,
        )
        return record
