"""
Tests for webhook handlers and reconciliation of stored events.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest
from freezegun import freeze_time

from billing.models import FinanceRecord, Subscription, SubscriptionHistory, SubscriptionPayment
from billing.state_machines import (
    FinanceRecordStatus,
    HistoryEventType,
    PaymentStatus,
    SubscriptionStatus,
)
from billing.tests.factories import SubscriptionFactory, SubscriptionPaymentFactory
from billing.webhooks.handlers import WEBHOOK_HANDLERS, dispatch_webhook, register_handler
from billing.webhooks.reconciler import reconcile_webhook_event
from billing.webhooks.tests.payloads import payment_payload, store_event, subscription_payload


def history_of(subscription, event_type):
    return SubscriptionHistory.objects.filter(subscription=subscription, event_type=event_type)


# =============================================================================
# Registry
# =============================================================================


class TestHandlerRegistry:
    def test_all_gateway_events_are_registered(self):
        assert {
            "PAYMENT_CONFIRMED",
            "PAYMENT_RECEIVED",
            "PAYMENT_OVERDUE",
            "PAYMENT_REFUNDED",
            "SUBSCRIPTION_CANCELLED",
            "SUBSCRIPTION_DELETED",
            "SUBSCRIPTION_UPDATED",
        } <= set(WEBHOOK_HANDLERS)

    def test_register_handler_maps_every_event_type(self):
        with patch.dict(WEBHOOK_HANDLERS, clear=False):

            @register_handler("TEST_ONE", "TEST_TWO")
            def handler(webhook_event):
                return None

            assert WEBHOOK_HANDLERS["TEST_ONE"] is handler
            assert WEBHOOK_HANDLERS["TEST_TWO"] is handler

        assert "TEST_ONE" not in WEBHOOK_HANDLERS

    @pytest.mark.django_db
    def test_unknown_event_type_succeeds_without_side_effects(self):
        event = store_event(payment_payload("PAYMENT_CREATED"))

        result = dispatch_webhook(event)

        assert result.success is True
        assert result.data is None
        assert SubscriptionPayment.objects.count() == 0

    @pytest.mark.django_db
    def test_unknown_event_type_is_marked_processed(self):
        event = store_event(payment_payload("PAYMENT_CREATED"))

        outcome = reconcile_webhook_event(event)

        assert outcome.processed is True
        assert event.processed is True


# =============================================================================
# PAYMENT_CONFIRMED / PAYMENT_RECEIVED
# =============================================================================


class TestPaymentConfirmed:
    def test_marks_pending_payment_paid(self, confirmed_event, pending_payment):
        outcome = reconcile_webhook_event(confirmed_event)

        assert outcome.processed is True
        payment = SubscriptionPayment.objects.get(pk=pending_payment.pk)
        assert payment.status == PaymentStatus.PAID
        assert payment.paid_date == date(2024, 2, 9)
        assert payment.invoice_url == "https://sandbox.asaas.com/i/pay_test_123"

    @freeze_time("2024-03-01 12:00:00")
    def test_confirmation_date_field_sets_paid_date(self, pending_payment):
        event = store_event(
            payment_payload(
                "PAYMENT_CONFIRMED",
                confirmationDate="2024-02-05",
                confirmedDate=None,
                paymentDate=None,
            )
        )

        reconcile_webhook_event(event)

        payment = SubscriptionPayment.objects.get(pk=pending_payment.pk)
        assert payment.paid_date == date(2024, 2, 5)

    def test_books_revenue(self, confirmed_event, pending_payment):
        reconcile_webhook_event(confirmed_event)

        record = FinanceRecord.objects.get()
        assert record.subscription_payment_id == pending_payment.pk
        assert record.amount == Decimal("100.00")
        assert record.status == FinanceRecordStatus.PAID
        assert record.description == "Subscription payment pay_test_123"

    def test_writes_payment_succeeded_history(self, confirmed_event, subscription):
        reconcile_webhook_event(confirmed_event)

        entry = history_of(subscription, HistoryEventType.PAYMENT_SUCCEEDED).get()
        assert entry.external_event_id == "pay_test_123"
        assert entry.actor is None
        assert entry.new_value == {"amount": "100.00", "paid_date": "2024-02-09"}

    def test_redelivery_is_idempotent(self, pending_payment, subscription):
        payload = payment_payload("PAYMENT_CONFIRMED")

        reconcile_webhook_event(store_event(payload))
        outcome = reconcile_webhook_event(store_event(payload))

        assert outcome.processed is True
        assert FinanceRecord.objects.count() == 1
        assert history_of(subscription, HistoryEventType.PAYMENT_SUCCEEDED).count() == 1
        assert SubscriptionPayment.objects.get(pk=pending_payment.pk).is_paid

    def test_payment_received_after_confirmed_keeps_first_paid_date(
        self, pending_payment, subscription
    ):
        reconcile_webhook_event(store_event(payment_payload("PAYMENT_CONFIRMED")))

        reconcile_webhook_event(
            store_event(
                payment_payload(
                    "PAYMENT_RECEIVED",
                    status="RECEIVED",
                    paymentDate="2024-02-12",
                    confirmedDate=None,
                )
            )
        )

        payment = SubscriptionPayment.objects.get(pk=pending_payment.pk)
        assert payment.paid_date == date(2024, 2, 9)
        assert FinanceRecord.objects.count() == 1
        assert history_of(subscription, HistoryEventType.PAYMENT_SUCCEEDED).count() == 1

    def test_overdue_payment_can_be_confirmed(self, subscription):
        SubscriptionPaymentFactory(
            subscription=subscription,
            external_payment_id="pay_test_123",
            status=PaymentStatus.OVERDUE,
        )

        reconcile_webhook_event(store_event(payment_payload("PAYMENT_CONFIRMED")))

        assert SubscriptionPayment.objects.get(external_payment_id="pay_test_123").is_paid

    def test_unknown_payment_is_created_as_paid(self, subscription):
        event = store_event(payment_payload("PAYMENT_CONFIRMED", payment_id="pay_new_9"))

        outcome = reconcile_webhook_event(event)

        assert outcome.processed is True
        payment = SubscriptionPayment.objects.get(external_payment_id="pay_new_9")
        assert payment.subscription_id == subscription.pk
        assert payment.status == PaymentStatus.PAID
        assert payment.amount == Decimal("100.00")
        assert payment.due_date == date(2024, 2, 10)
        assert payment.payment_method == "pix"
        assert FinanceRecord.objects.filter(subscription_payment=payment).exists()

    def test_unknown_subscription_leaves_event_unprocessed(self, orphan_event):
        outcome = reconcile_webhook_event(orphan_event)

        assert outcome.processed is False
        assert outcome.error_code == "RECONCILIATION_UNRESOLVED"
        assert "pay_orphan_1" in outcome.error
        assert SubscriptionPayment.objects.count() == 0
        assert FinanceRecord.objects.count() == 0

        stored = type(orphan_event).objects.get(pk=orphan_event.pk)
        assert stored.processed is False
        assert stored.attempts == 1
        assert "pay_orphan_1" in stored.error_message

    def test_reprocessing_after_subscription_appears_succeeds(self, orphan_event, billing_client):
        reconcile_webhook_event(orphan_event)
        SubscriptionFactory(client=billing_client, external_subscription_id="sub_unknown")

        outcome = reconcile_webhook_event(orphan_event)

        assert outcome.processed is True
        assert orphan_event.attempts == 2
        assert orphan_event.error_message is None
        assert SubscriptionPayment.objects.filter(external_payment_id="pay_orphan_1").exists()

    def test_refunded_payment_is_not_revived(self, subscription):
        SubscriptionPaymentFactory(
            subscription=subscription,
            external_payment_id="pay_test_123",
            status=PaymentStatus.REFUNDED,
        )

        outcome = reconcile_webhook_event(store_event(payment_payload("PAYMENT_CONFIRMED")))

        assert outcome.processed is True
        payment = SubscriptionPayment.objects.get(external_payment_id="pay_test_123")
        assert payment.status == PaymentStatus.REFUNDED
        assert FinanceRecord.objects.count() == 0

    def test_paused_subscription_is_resumed(self, billing_client):
        subscription = SubscriptionFactory(
            client=billing_client,
            external_subscription_id="sub_test_123",
            status=SubscriptionStatus.PAUSED,
        )
        SubscriptionPaymentFactory(
            subscription=subscription,
            external_payment_id="pay_test_123",
            status=PaymentStatus.OVERDUE,
        )

        reconcile_webhook_event(store_event(payment_payload("PAYMENT_CONFIRMED")))

        assert Subscription.objects.get(pk=subscription.pk).is_active
        assert history_of(subscription, HistoryEventType.REACTIVATED).count() == 1

    def test_missing_payment_object_is_invalid(self, db):
        event = store_event({"id": "evt_1", "event": "PAYMENT_CONFIRMED"})

        outcome = reconcile_webhook_event(event)

        assert outcome.processed is False
        assert outcome.error_code == "INVALID_WEBHOOK_PAYLOAD"

    def test_unexpected_error_is_recorded_on_event(self, confirmed_event):
        with patch(
            "billing.webhooks.handlers.record_subscription_revenue",
            side_effect=RuntimeError("ledger offline"),
        ):
            outcome = reconcile_webhook_event(confirmed_event)

        assert outcome.processed is False
        assert outcome.error_code == "RECONCILIATION_ERROR"
        assert confirmed_event.error_message == "RuntimeError: ledger offline"
        # Handler work is rolled back with the failure
        assert SubscriptionPayment.objects.get(external_payment_id="pay_test_123").status == (
            PaymentStatus.PENDING
        )


# =============================================================================
# PAYMENT_OVERDUE
# =============================================================================


class TestPaymentOverdue:
    def test_marks_pending_payment_overdue(self, pending_payment, subscription):
        outcome = reconcile_webhook_event(
            store_event(payment_payload("PAYMENT_OVERDUE", status="OVERDUE"))
        )

        assert outcome.processed is True
        assert SubscriptionPayment.objects.get(pk=pending_payment.pk).status == (
            PaymentStatus.OVERDUE
        )
        assert history_of(subscription, HistoryEventType.PAYMENT_OVERDUE).count() == 1

    def test_stale_overdue_after_payment_is_ignored(self, pending_payment, subscription):
        reconcile_webhook_event(store_event(payment_payload("PAYMENT_CONFIRMED")))

        outcome = reconcile_webhook_event(
            store_event(payment_payload("PAYMENT_OVERDUE", status="OVERDUE"))
        )

        assert outcome.processed is True
        assert SubscriptionPayment.objects.get(pk=pending_payment.pk).is_paid
        assert not history_of(subscription, HistoryEventType.PAYMENT_OVERDUE).exists()

    def test_repeated_overdue_writes_history_once(self, pending_payment, subscription):
        payload = payment_payload("PAYMENT_OVERDUE", status="OVERDUE")

        reconcile_webhook_event(store_event(payload))
        reconcile_webhook_event(store_event(payload))

        assert history_of(subscription, HistoryEventType.PAYMENT_OVERDUE).count() == 1

    def test_unknown_payment_is_a_no_op(self, db):
        outcome = reconcile_webhook_event(
            store_event(payment_payload("PAYMENT_OVERDUE", payment_id="pay_nobody"))
        )

        assert outcome.processed is True
        assert SubscriptionPayment.objects.count() == 0


# =============================================================================
# PAYMENT_REFUNDED
# =============================================================================


class TestPaymentRefunded:
    def test_refund_after_confirmation_cancels_revenue(self, pending_payment, subscription):
        reconcile_webhook_event(store_event(payment_payload("PAYMENT_CONFIRMED")))

        outcome = reconcile_webhook_event(
            store_event(payment_payload("PAYMENT_REFUNDED", status="REFUNDED"))
        )

        assert outcome.processed is True
        assert SubscriptionPayment.objects.get(pk=pending_payment.pk).is_refunded
        assert FinanceRecord.objects.get().status == FinanceRecordStatus.CANCELLED
        entry = history_of(subscription, HistoryEventType.PAYMENT_REFUNDED).get()
        assert entry.old_value == {"status": "paid"}
        assert entry.new_value == {"status": "refunded"}

    def test_repeated_refund_is_a_no_op(self, pending_payment, subscription):
        payload = payment_payload("PAYMENT_REFUNDED", status="REFUNDED")

        reconcile_webhook_event(store_event(payload))
        reconcile_webhook_event(store_event(payload))

        assert history_of(subscription, HistoryEventType.PAYMENT_REFUNDED).count() == 1

    def test_refund_for_unknown_payment_is_unresolved(self, db):
        outcome = reconcile_webhook_event(
            store_event(payment_payload("PAYMENT_REFUNDED", payment_id="pay_nobody"))
        )

        assert outcome.processed is False
        assert outcome.error_code == "RECONCILIATION_UNRESOLVED"


# =============================================================================
# SUBSCRIPTION_CANCELLED / SUBSCRIPTION_DELETED
# =============================================================================


class TestSubscriptionCancelled:
    @pytest.mark.parametrize("event", ["SUBSCRIPTION_CANCELLED", "SUBSCRIPTION_DELETED"])
    def test_cancels_local_subscription(self, subscription, event):
        outcome = reconcile_webhook_event(store_event(subscription_payload(event)))

        assert outcome.processed is True
        stored = Subscription.objects.get(pk=subscription.pk)
        assert stored.is_cancelled
        assert stored.cancellation_reason == "Cancelled at the payment gateway"
        entry = history_of(subscription, HistoryEventType.CANCELLED).get()
        assert entry.old_value == {"status": "active"}
        assert entry.new_value == {"status": "cancelled"}

    def test_already_cancelled_is_a_no_op(self, subscription):
        payload = subscription_payload("SUBSCRIPTION_CANCELLED")

        reconcile_webhook_event(store_event(payload))
        outcome = reconcile_webhook_event(store_event(payload))

        assert outcome.processed is True
        assert history_of(subscription, HistoryEventType.CANCELLED).count() == 1

    def test_payments_are_kept(self, pending_payment, subscription):
        reconcile_webhook_event(store_event(subscription_payload("SUBSCRIPTION_CANCELLED")))

        assert SubscriptionPayment.objects.filter(pk=pending_payment.pk).exists()

    def test_unknown_subscription_is_unresolved(self, db):
        outcome = reconcile_webhook_event(
            store_event(subscription_payload("SUBSCRIPTION_CANCELLED", subscription_id="sub_x"))
        )

        assert outcome.processed is False
        assert outcome.error_code == "RECONCILIATION_UNRESOLVED"


# =============================================================================
# SUBSCRIPTION_UPDATED
# =============================================================================


class TestSubscriptionUpdated:
    def test_syncs_plan_and_records_change(self, subscription):
        outcome = reconcile_webhook_event(
            store_event(
                subscription_payload(
                    "SUBSCRIPTION_UPDATED",
                    value=250.00,
                    cycle="QUARTERLY",
                    next_due_date="2024-05-10",
                )
            )
        )

        assert outcome.processed is True
        stored = Subscription.objects.get(pk=subscription.pk)
        assert stored.amount == Decimal("250.00")
        assert stored.subscription_type == "quarterly"
        assert stored.billing_cycle == 3
        assert stored.next_due_date == date(2024, 5, 10)
        assert stored.synced_at is not None

        entry = history_of(subscription, HistoryEventType.PLAN_CHANGED).get()
        assert entry.old_value == {"amount": "100.00", "subscription_type": "monthly"}
        assert entry.new_value == {"amount": "250.00", "subscription_type": "quarterly"}

    def test_unchanged_plan_writes_no_history(self, subscription):
        reconcile_webhook_event(
            store_event(subscription_payload("SUBSCRIPTION_UPDATED", next_due_date="2024-03-10"))
        )

        assert Subscription.objects.get(pk=subscription.pk).next_due_date == date(2024, 3, 10)
        assert not history_of(subscription, HistoryEventType.PLAN_CHANGED).exists()

    def test_missing_subscription_object_is_invalid(self, db):
        outcome = reconcile_webhook_event(
            store_event({"id": "evt_2", "event": "SUBSCRIPTION_UPDATED"})
        )

        assert outcome.processed is False
        assert outcome.error_code == "INVALID_WEBHOOK_PAYLOAD"
