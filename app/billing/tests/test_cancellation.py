"""
Tests for SubscriptionCancellationService.
"""

from __future__ import annotations

import pytest

from core.exceptions import ConflictError, NotFoundError, ValidationError

from billing.exceptions import GatewayError
from billing.models import Subscription, SubscriptionHistory
from billing.services import SubscriptionCancellationService
from billing.state_machines import HistoryEventType, SubscriptionStatus


class TestCancelSubscription:
    """Tests for the cancellation workflow."""

    def test_cancels_remotely_then_locally(self, cancellation_service, gateway, subscription, user):
        result = cancellation_service.cancel(subscription.id, reason="Too expensive", actor=user)

        gateway.cancel_subscription.assert_called_once_with("sub_test_123")
        assert result.remote_cancelled is True
        assert result.warnings == []

        subscription = Subscription.objects.get(pk=subscription.pk)
        assert subscription.status == SubscriptionStatus.CANCELLED
        assert subscription.cancellation_reason == "Too expensive"
        assert subscription.cancelled_at is not None

    def test_writes_cancelled_history_with_actor(
        self, cancellation_service, subscription, user
    ):
        cancellation_service.cancel(subscription.id, reason="Too expensive", actor=user)

        entry = SubscriptionHistory.objects.get(
            subscription=subscription, event_type=HistoryEventType.CANCELLED
        )
        assert entry.actor == user
        assert entry.old_value == {"status": "active"}
        assert entry.new_value == {"status": "cancelled", "reason": "Too expensive"}

    def test_default_reason(self, cancellation_service, subscription, user):
        cancellation_service.cancel(subscription.id, actor=user)

        subscription = Subscription.objects.get(pk=subscription.pk)
        assert subscription.cancellation_reason == "Cancelled by user"

    def test_gateway_failure_still_cancels_locally_with_warning(
        self, cancellation_service, gateway, subscription, user
    ):
        gateway.cancel_subscription.side_effect = GatewayError(
            "Subscription not found", status_code=404
        )

        result = cancellation_service.cancel(subscription.id, actor=user)

        assert result.remote_cancelled is False
        assert result.warnings == ["Gateway cancellation failed: Subscription not found"]
        subscription = Subscription.objects.get(pk=subscription.pk)
        assert subscription.status == SubscriptionStatus.CANCELLED

    def test_unconfirmed_deletion_cancels_locally_with_warning(
        self, cancellation_service, gateway, subscription, user
    ):
        gateway.cancel_subscription.return_value = False

        result = cancellation_service.cancel(subscription.id, actor=user)

        assert result.remote_cancelled is False
        assert result.warnings == ["Gateway did not confirm the cancellation"]
        assert Subscription.objects.get(pk=subscription.pk).is_cancelled

    def test_paused_subscription_can_be_cancelled(self, cancellation_service, subscription, user):
        subscription.pause()
        subscription.save()

        cancellation_service.cancel(subscription.id, actor=user)

        assert Subscription.objects.get(pk=subscription.pk).is_cancelled

    def test_already_cancelled_is_conflict(
        self, cancellation_service, gateway, subscription, user
    ):
        cancellation_service.cancel(subscription.id, actor=user)
        gateway.cancel_subscription.reset_mock()

        with pytest.raises(ConflictError) as exc_info:
            cancellation_service.cancel(subscription.id, actor=user)

        assert exc_info.value.error_code == "SUBSCRIPTION_ALREADY_CANCELLED"
        gateway.cancel_subscription.assert_not_called()
        assert (
            SubscriptionHistory.objects.filter(
                subscription=subscription, event_type=HistoryEventType.CANCELLED
            ).count()
            == 1
        )

    def test_subscription_of_another_user_is_not_found(
        self, cancellation_service, gateway, subscription, other_user
    ):
        with pytest.raises(NotFoundError) as exc_info:
            cancellation_service.cancel(subscription.id, actor=other_user)

        assert exc_info.value.error_code == "SUBSCRIPTION_NOT_FOUND"
        gateway.cancel_subscription.assert_not_called()
        assert Subscription.objects.get(pk=subscription.pk).is_active


class TestCancelWithOwnerGateway:
    """Without an injected adapter the owner's configuration is used."""

    def test_uses_owner_configuration(self, configured_gateway, subscription, user):
        result = SubscriptionCancellationService().cancel(subscription.id, actor=user)

        configured_gateway.cancel_subscription.assert_called_once_with("sub_test_123")
        configured_gateway.__exit__.assert_called_once()
        assert result.remote_cancelled is True

    def test_missing_configuration_changes_nothing(self, subscription, user):
        with pytest.raises(ValidationError) as exc_info:
            SubscriptionCancellationService().cancel(subscription.id, actor=user)

        assert exc_info.value.error_code == "GATEWAY_NOT_CONFIGURED"
        assert Subscription.objects.get(pk=subscription.pk).is_active

    def test_subscription_without_gateway_id_needs_no_configuration(self, subscription, user):
        Subscription.objects.filter(pk=subscription.pk).update(external_subscription_id=None)

        result = SubscriptionCancellationService().cancel(subscription.id, actor=user)

        assert result.remote_cancelled is False
        assert result.warnings == []
        assert Subscription.objects.get(pk=subscription.pk).is_cancelled
