"""
Tests for webhook reconciliation.
"""
import json
from typing import Any, Dict

import pytest

from conftest import FIXED_DAY, sign_stripe_payload
from payment_orchestrator.core.ledger import TransactionLedger
from payment_orchestrator.exceptions import (
    MalformedEvent,
    PaymentValidationError,
    UnsupportedEvent,
)
from payment_orchestrator.webhooks import (
    PayPalReconciler,
    StripeReconciler,
    build_paypal_reconciler,
    build_stripe_reconciler,
    verify_stripe_signature,
)

WEBHOOK_SECRET = "whsec_test_fake_secret"


def stripe_event(event_type: str, obj: Dict[str, Any], event_id: str = "evt_1") -> Dict[str, Any]:
    return {"id": event_id, "type": event_type, "data": {"object": obj}}


def paypal_event(event_type: str, resource_id: str, event_id: str = "WH-1") -> Dict[str, Any]:
    return {"id": event_id, "event_type": event_type, "resource": {"id": resource_id}}


@pytest.fixture
def stripe_reconciler(ledger: TransactionLedger) -> StripeReconciler:
    return build_stripe_reconciler(ledger)


@pytest.fixture
def paypal_reconciler(ledger: TransactionLedger) -> PayPalReconciler:
    return build_paypal_reconciler(ledger)


class TestStripeReconciler:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_payment_intent_succeeded_appends_success(
        self, ledger: TransactionLedger, stripe_reconciler: StripeReconciler
    ) -> None:
        await ledger.create_transaction("pi_1", 10.0, "USD")

        record = await stripe_reconciler.handle(
            stripe_event("payment_intent.succeeded", {"id": "pi_1", "object": "payment_intent"})
        )

        assert record is not None
        assert record.statuses == ["pending", "success"]
        listed = await ledger.list_by_date(FIXED_DAY)
        assert listed[0].statuses == ["pending", "success"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "event_type,status",
        [
            ("payment_intent.created", "created"),
            ("payment_intent.succeeded", "success"),
            ("payment_intent.payment_failed", "failed"),
            ("payment_intent.canceled", "canceled"),
        ],
    )
    async def test_payment_intent_events_map_to_statuses(
        self,
        ledger: TransactionLedger,
        stripe_reconciler: StripeReconciler,
        event_type: str,
        status: str,
    ) -> None:
        await ledger.create_transaction("pi_1", 10.0, "USD")

        record = await stripe_reconciler.handle(stripe_event(event_type, {"id": "pi_1"}))

        assert record is not None
        assert record.current_status == status

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_charge_refunded_uses_payment_intent_id(
        self, ledger: TransactionLedger, stripe_reconciler: StripeReconciler
    ) -> None:
        await ledger.create_transaction("pi_1", 10.0, "USD")

        record = await stripe_reconciler.handle(
            stripe_event("charge.refunded", {"id": "ch_1", "payment_intent": "pi_1"})
        )

        assert record is not None
        assert record.id == "pi_1"
        assert record.statuses == ["pending", "refunded"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "charge",
        [{"id": "ch_legacy", "payment_intent": None}, {"id": "ch_legacy"}],
    )
    async def test_refund_of_charge_without_payment_intent_is_dropped(
        self,
        ledger: TransactionLedger,
        stripe_reconciler: StripeReconciler,
        cache: Any,
        sleep: Any,
        charge: Dict[str, Any],
    ) -> None:
        await ledger.create_transaction("pi_1", 10.0, "USD")
        reads_before = len(cache.get_calls)

        record = await stripe_reconciler.handle(stripe_event("charge.refunded", charge))

        assert record is None
        assert len(cache.get_calls) == reads_before
        assert sleep.await_count == 0
        listed = await ledger.list_by_date(FIXED_DAY)
        assert listed[0].statuses == ["pending"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_accepts_raw_json_bytes(
        self, ledger: TransactionLedger, stripe_reconciler: StripeReconciler
    ) -> None:
        await ledger.create_transaction("pi_1", 10.0, "USD")
        body = json.dumps(stripe_event("payment_intent.created", {"id": "pi_1"})).encode()

        record = await stripe_reconciler.handle(body)

        assert record is not None
        assert record.statuses == ["pending", "created"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_redelivered_event_appends_duplicate_entry(
        self, ledger: TransactionLedger, stripe_reconciler: StripeReconciler
    ) -> None:
        await ledger.create_transaction("pi_1", 10.0, "USD")
        event = stripe_event("payment_intent.succeeded", {"id": "pi_1"})

        await stripe_reconciler.handle(event)
        record = await stripe_reconciler.handle(event)

        assert record is not None
        assert record.statuses == ["pending", "success", "success"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_event_for_unknown_transaction_is_dropped(
        self, ledger: TransactionLedger, stripe_reconciler: StripeReconciler, sleep: Any
    ) -> None:
        record = await stripe_reconciler.handle(
            stripe_event("payment_intent.succeeded", {"id": "pi_never_created"})
        )

        assert record is None
        assert sleep.await_count == 2
        assert await ledger.list_by_date(FIXED_DAY) == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unsupported_event_type(self, stripe_reconciler: StripeReconciler) -> None:
        for _ in range(2):
            with pytest.raises(UnsupportedEvent, match="unsupported Stripe action") as exc:
                await stripe_reconciler.handle(
                    stripe_event("customer.created", {"id": "cus_1"})
                )
            assert exc.value.event_type == "customer.created"

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "raw",
        [
            b"{not json",
            b"[1, 2, 3]",
            {"id": "evt_1", "type": "payment_intent.succeeded"},
            {"id": "evt_1", "type": "payment_intent.succeeded", "data": {"object": {}}},
            {"id": "evt_1", "type": "charge.refunded", "data": {"object": {"payment_intent": "pi_1"}}},
        ],
    )
    async def test_malformed_events(self, stripe_reconciler: StripeReconciler, raw: Any) -> None:
        with pytest.raises(MalformedEvent):
            await stripe_reconciler.handle(raw)

    @pytest.mark.unit
    def test_supported_events(self, stripe_reconciler: StripeReconciler) -> None:
        assert stripe_reconciler.supported_events() == {
            "payment_intent.created",
            "payment_intent.succeeded",
            "payment_intent.payment_failed",
            "payment_intent.canceled",
            "charge.refunded",
        }


class TestPayPalReconciler:

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "event_type,status",
        [
            ("PAYMENT.CAPTURE.COMPLETED", "success"),
            ("PAYMENT.CAPTURE.DENIED", "failed"),
            ("PAYMENT.CAPTURE.REFUNDED", "refunded"),
        ],
    )
    async def test_capture_events_map_to_statuses(
        self,
        ledger: TransactionLedger,
        paypal_reconciler: PayPalReconciler,
        event_type: str,
        status: str,
    ) -> None:
        await ledger.create_transaction("CAP-1", 20.0, "EUR")

        record = await paypal_reconciler.handle(paypal_event(event_type, "CAP-1"))

        assert record is not None
        assert record.statuses == ["pending", status]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unsupported_event_type(self, paypal_reconciler: PayPalReconciler) -> None:
        with pytest.raises(UnsupportedEvent, match="unsupported PayPal action"):
            await paypal_reconciler.handle(paypal_event("BILLING.PLAN.CREATED", "P-1"))

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_resource_is_malformed(self, paypal_reconciler: PayPalReconciler) -> None:
        with pytest.raises(MalformedEvent):
            await paypal_reconciler.handle({"id": "WH-1", "event_type": "PAYMENT.CAPTURE.COMPLETED"})


class TestStripeSignature:

    @pytest.mark.unit
    def test_valid_signature(self) -> None:
        payload = json.dumps(stripe_event("payment_intent.created", {"id": "pi_1"})).encode()

        verify_stripe_signature(payload, sign_stripe_payload(payload, WEBHOOK_SECRET), WEBHOOK_SECRET)

    @pytest.mark.unit
    def test_missing_signature(self) -> None:
        with pytest.raises(PaymentValidationError, match="Stripe-Signature"):
            verify_stripe_signature(b"{}", "", WEBHOOK_SECRET)

    @pytest.mark.unit
    def test_signature_with_wrong_secret(self) -> None:
        payload = json.dumps(stripe_event("payment_intent.created", {"id": "pi_1"})).encode()
        signature = sign_stripe_payload(payload, "whsec_someone_else")

        with pytest.raises(PaymentValidationError, match="Invalid webhook signature"):
            verify_stripe_signature(payload, signature, WEBHOOK_SECRET)

    @pytest.mark.unit
    def test_tampered_payload(self) -> None:
        payload = json.dumps(stripe_event("payment_intent.created", {"id": "pi_1"})).encode()
        signature = sign_stripe_payload(payload, WEBHOOK_SECRET)
        tampered = payload.replace(b"pi_1", b"pi_2")

        with pytest.raises(PaymentValidationError):
            verify_stripe_signature(tampered, signature, WEBHOOK_SECRET)
