"""
Tests for DuePaymentProcessor and the process_due_payments task.
"""

from __future__ import annotations

from datetime import date

import pytest
from freezegun import freeze_time

from billing.models import Subscription, SubscriptionHistory, SubscriptionPayment
from billing.services import DuePaymentProcessor
from billing.state_machines import HistoryEventType, PaymentStatus, SubscriptionStatus
from billing.tasks import process_due_payments
from billing.tests.factories import (
    GatewayConfigurationFactory,
    SubscriptionFactory,
    SubscriptionPaymentFactory,
)

TODAY = date(2024, 2, 12)


@pytest.fixture(autouse=True)
def retry_settings(settings):
    settings.BILLING_MAX_RETRY_ATTEMPTS = 3
    settings.BILLING_RETRY_INTERVAL_DAYS = 3
    settings.BILLING_AUTO_RETRY_FAILED_PAYMENTS = True
    settings.BILLING_DUE_PAYMENTS_BATCH_SIZE = 100


class TestDuePaymentProcessor:
    """Tests for overdue marking, retries and pausing."""

    def test_due_payment_gets_retry_scheduled(self, pending_payment):
        stats = DuePaymentProcessor.run(today=TODAY)

        payment = SubscriptionPayment.objects.get(pk=pending_payment.pk)
        assert payment.status == PaymentStatus.PENDING
        assert payment.retry_count == 1
        assert payment.next_retry_date == date(2024, 2, 15)
        assert stats["processed"] == 1
        assert stats["paused"] == 0
        assert stats["date"] == "2024-02-12"

    def test_overdue_history_is_recorded(self, pending_payment):
        DuePaymentProcessor.run(today=TODAY)

        assert SubscriptionHistory.objects.filter(
            subscription=pending_payment.subscription,
            event_type=HistoryEventType.PAYMENT_OVERDUE,
        ).exists()

    def test_payment_not_yet_due_is_skipped(self, subscription):
        SubscriptionPaymentFactory(subscription=subscription, due_date=date(2024, 2, 20))

        stats = DuePaymentProcessor.run(today=TODAY)

        assert stats["total"] == 0

    def test_retry_date_in_future_is_skipped(self, subscription):
        payment = SubscriptionPaymentFactory(
            subscription=subscription,
            due_date=date(2024, 2, 1),
            retry_count=1,
            next_retry_date=date(2024, 2, 14),
        )

        DuePaymentProcessor.run(today=TODAY)

        assert SubscriptionPayment.objects.get(pk=payment.pk).retry_count == 1

    def test_paid_payment_is_ignored(self, subscription):
        SubscriptionPaymentFactory(
            subscription=subscription,
            due_date=date(2024, 2, 1),
            status=PaymentStatus.PAID,
        )

        stats = DuePaymentProcessor.run(today=TODAY)

        assert stats["total"] == 0

    def test_exhausted_retries_pause_subscription(self, subscription):
        payment = SubscriptionPaymentFactory(
            subscription=subscription,
            due_date=date(2024, 2, 1),
            retry_count=3,
            next_retry_date=date(2024, 2, 10),
        )

        stats = DuePaymentProcessor.run(today=TODAY)

        payment = SubscriptionPayment.objects.get(pk=payment.pk)
        assert payment.status == PaymentStatus.OVERDUE
        assert Subscription.objects.get(pk=subscription.pk).status == SubscriptionStatus.PAUSED
        assert stats["paused"] == 1
        assert SubscriptionHistory.objects.filter(
            subscription=subscription, event_type=HistoryEventType.PAUSED
        ).exists()

    def test_auto_retry_disabled_leaves_payment_overdue(self, settings, pending_payment):
        settings.BILLING_AUTO_RETRY_FAILED_PAYMENTS = False

        DuePaymentProcessor.run(today=TODAY)

        payment = SubscriptionPayment.objects.get(pk=pending_payment.pk)
        assert payment.status == PaymentStatus.OVERDUE
        assert payment.retry_count == 0
        assert Subscription.objects.get(pk=pending_payment.subscription_id).is_active

    def test_batch_size_limits_run(self, settings, subscription):
        settings.BILLING_DUE_PAYMENTS_BATCH_SIZE = 2
        for _ in range(3):
            SubscriptionPaymentFactory(subscription=subscription, due_date=date(2024, 2, 1))

        stats = DuePaymentProcessor.run(today=TODAY)

        assert stats["total"] == 2



class TestOwnerRetryPolicy:
    """Retry policy taken from the owning account's gateway configuration."""

    def test_configured_interval_and_budget_are_used(self, gateway_configuration, subscription):
        gateway_configuration.max_retry_attempts = 1
        gateway_configuration.retry_interval_days = 7
        gateway_configuration.save()
        first = SubscriptionPaymentFactory(subscription=subscription, due_date=date(2024, 2, 1))
        second = SubscriptionPaymentFactory(
            subscription=subscription,
            due_date=date(2024, 2, 1),
            retry_count=1,
        )

        stats = DuePaymentProcessor.run(today=TODAY)

        first = SubscriptionPayment.objects.get(pk=first.pk)
        assert first.retry_count == 1
        assert first.next_retry_date == date(2024, 2, 19)
        assert SubscriptionPayment.objects.get(pk=second.pk).status == PaymentStatus.OVERDUE
        assert stats["paused"] == 1

    def test_disabled_auto_retry_applies_to_that_owner_only(
        self, gateway_configuration, subscription
    ):
        gateway_configuration.auto_retry_failed_payments = False
        gateway_configuration.save()
        own = SubscriptionPaymentFactory(subscription=subscription, due_date=date(2024, 2, 1))
        other = SubscriptionPaymentFactory(
            subscription=SubscriptionFactory(), due_date=date(2024, 2, 1)
        )

        DuePaymentProcessor.run(today=TODAY)

        assert SubscriptionPayment.objects.get(pk=own.pk).status == PaymentStatus.OVERDUE
        other = SubscriptionPayment.objects.get(pk=other.pk)
        assert other.status == PaymentStatus.PENDING
        assert other.next_retry_date == date(2024, 2, 15)

    def test_inactive_configuration_falls_back_to_settings(self, subscription, user):
        GatewayConfigurationFactory(owner=user, is_active=False, retry_interval_days=10)
        payment = SubscriptionPaymentFactory(subscription=subscription, due_date=date(2024, 2, 1))

        DuePaymentProcessor.run(today=TODAY)

        assert SubscriptionPayment.objects.get(pk=payment.pk).next_retry_date == date(2024, 2, 15)

class TestProcessDuePaymentsTask:
    """Tests for the daily celery task."""

    @freeze_time("2024-02-12 09:00:00")
    def test_task_uses_current_date(self, pending_payment):
        stats = process_due_payments()

        assert stats["date"] == "2024-02-12"
        assert stats["processed"] == 1
