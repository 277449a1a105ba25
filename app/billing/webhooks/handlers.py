"""
Webhook event handlers for Asaas events.

This module provides a handler registry and the handlers that reconcile
gateway events against local billing state. Every handler is idempotent:
the gateway delivers at least once and may re-send or reorder events, so
re-applying an event must leave state exactly as the first application did.

Handlers return a ServiceResult. An event that refers to a payment or
subscription we cannot find (yet) raises ReconciliationUnresolvedError so
the event stays unprocessed and can be reconciled later.

Usage:
    from billing.webhooks.handlers import dispatch_webhook, register_handler

    @register_handler("PAYMENT_CREATED")
    def handle_payment_created(webhook_event: WebhookEvent) -> ServiceResult:
        ...

    result = dispatch_webhook(webhook_event)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date

from django.db import IntegrityError, transaction
from django.utils import timezone

from core.services import ServiceResult

from billing.adapters import (
    SUBSCRIPTION_TYPE_BY_CYCLE,
    PaymentResult,
    SubscriptionResult,
    payment_method_from_billing_type,
)
from billing.exceptions import ReconciliationUnresolvedError
from billing.models import BILLING_CYCLE_MONTHS, Subscription, SubscriptionPayment, WebhookEvent
from billing.services.history import record_history
from billing.services.ledger import cancel_subscription_revenue, record_subscription_revenue
from billing.state_machines import HistoryEventType, PaymentStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(*event_types: str) -> Callable:
    """
    Decorator to register a webhook event handler for one or more event types.

    Usage:
        @register_handler("PAYMENT_CONFIRMED", "PAYMENT_RECEIVED")
        def handle_payment_confirmed(webhook_event: WebhookEvent) -> ServiceResult:
            ...
    """

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        for event_type in event_types:
            WEBHOOK_HANDLERS[event_type] = func
            logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a webhook event to the appropriate handler.

    Unknown event types succeed without side effects so they are marked
    processed instead of being retried forever.
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"external_event_id": webhook_event.external_event_id},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"external_event_id": webhook_event.external_event_id},
    )

    return handler(webhook_event)


# =============================================================================
# Helpers
# =============================================================================


def _payment_from_event(webhook_event: WebhookEvent) -> PaymentResult | None:
    data = webhook_event.payment_data
    if not data or not data.get("id"):
        return None
    return PaymentResult.from_response(data)


def _subscription_from_event(webhook_event: WebhookEvent) -> SubscriptionResult | None:
    data = webhook_event.subscription_data
    if not data or not data.get("id"):
        return None
    return SubscriptionResult.from_response(data)


def _invalid_payload(webhook_event: WebhookEvent, expected: str) -> ServiceResult:
    logger.error(
        f"{webhook_event.event_type}: webhook has no {expected} id",
        extra={"webhook_event_id": str(webhook_event.id)},
    )
    return ServiceResult.failure(
        f"Could not extract {expected} id from webhook",
        error_code="INVALID_WEBHOOK_PAYLOAD",
    )


def _locked_payment(external_payment_id: str) -> SubscriptionPayment | None:
    return (
        SubscriptionPayment.objects.select_for_update()
        .filter(external_payment_id=external_payment_id)
        .first()
    )


def _locked_subscription(external_subscription_id: str) -> Subscription | None:
    return (
        Subscription.objects.select_for_update()
        .filter(external_subscription_id=external_subscription_id)
        .first()
    )


def _create_paid_payment(
    payment: PaymentResult, paid_date: date
) -> tuple[SubscriptionPayment, bool]:
    """
    Create a paid SubscriptionPayment for a confirmation that arrived first.

    Returns:
        Tuple of (payment, created). created is False when a concurrent
        delivery inserted the row first; that row is returned locked.

    Raises:
        ReconciliationUnresolvedError: The owning subscription is unknown
    """
    subscription = None
    if payment.subscription_id:
        subscription = Subscription.objects.filter(
            external_subscription_id=payment.subscription_id
        ).first()
    if subscription is None:
        raise ReconciliationUnresolvedError(
            f"No subscription found for payment {payment.id}",
            details={
                "external_payment_id": payment.id,
                "external_subscription_id": payment.subscription_id,
            },
        )

    due_date = payment.due_date or paid_date
    try:
        with transaction.atomic():
            created = SubscriptionPayment.objects.create(
                subscription=subscription,
                external_payment_id=payment.id,
                amount=payment.value if payment.value is not None else subscription.amount,
                due_date=due_date,
                paid_date=paid_date,
                status=PaymentStatus.PAID,
                billing_period_start=due_date,
                billing_period_end=due_date,
                invoice_url=payment.invoice_url,
                payment_method=payment_method_from_billing_type(payment.billing_type),
            )
    except IntegrityError:
        # Race condition: a concurrent delivery created it
        return SubscriptionPayment.objects.select_for_update().get(
            external_payment_id=payment.id
        ), False

    logger.info(
        "Created payment from confirmation webhook",
        extra={
            "external_payment_id": payment.id,
            "subscription_id": str(subscription.id),
        },
    )
    return created, True


# =============================================================================
# Payment Handlers
# =============================================================================


@register_handler("PAYMENT_CONFIRMED", "PAYMENT_RECEIVED")
def handle_payment_confirmed(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Handle a confirmed or received payment.

    - Known payment: mark paid (a refunded payment is left alone)
    - Unknown payment: create it as paid under its subscription
    - Book revenue once per payment
    - History entry only when the payment actually became paid
    - A paused subscription is resumed
    """
    payment = _payment_from_event(webhook_event)
    if payment is None:
        return _invalid_payload(webhook_event, "payment")

    paid_date = payment.confirmed_date or payment.payment_date or timezone.localdate()

    logger.info(
        f"Processing {webhook_event.event_type}",
        extra={
            "external_payment_id": payment.id,
            "external_subscription_id": payment.subscription_id,
        },
    )

    with transaction.atomic():
        sub_payment = _locked_payment(payment.id)
        created = False
        if sub_payment is None:
            sub_payment, created = _create_paid_payment(payment, paid_date)

        if created:
            transitioned = True
        else:
            if sub_payment.is_refunded:
                logger.info(
                    "Ignoring confirmation for refunded payment",
                    extra={"external_payment_id": payment.id},
                )
                return ServiceResult.success(sub_payment)
            transitioned = not sub_payment.is_paid
            sub_payment.mark_paid(
                paid_date=paid_date if transitioned else (sub_payment.paid_date or paid_date),
                invoice_url=payment.invoice_url,
            )
            sub_payment.save()

        record_subscription_revenue(sub_payment, amount=payment.value, detail=payment.description)

        if transitioned:
            subscription = Subscription.objects.select_for_update().get(
                pk=sub_payment.subscription_id
            )
            record_history(
                subscription,
                HistoryEventType.PAYMENT_SUCCEEDED,
                f"Payment {payment.id} confirmed",
                external_event_id=payment.id,
                new_value={
                    "amount": str(sub_payment.amount),
                    "paid_date": sub_payment.paid_date.isoformat(),
                },
            )
            if subscription.is_paused:
                subscription.resume()
                subscription.save()
                record_history(
                    subscription,
                    HistoryEventType.REACTIVATED,
                    f"Subscription reactivated by payment {payment.id}",
                    external_event_id=payment.id,
                )

    return ServiceResult.success(sub_payment)


@register_handler("PAYMENT_OVERDUE")
def handle_payment_overdue(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Handle an overdue payment.

    Unknown payments and payments that are already paid or refunded (a
    stale event delivered late) are left untouched.
    """
    payment = _payment_from_event(webhook_event)
    if payment is None:
        return _invalid_payload(webhook_event, "payment")

    with transaction.atomic():
        sub_payment = _locked_payment(payment.id)
        if sub_payment is None:
            logger.info(
                "Overdue event for unknown payment; nothing to update",
                extra={"external_payment_id": payment.id},
            )
            return ServiceResult.success(None)

        if sub_payment.status != PaymentStatus.PENDING:
            logger.info(
                f"Ignoring overdue event for payment in {sub_payment.status} status",
                extra={"external_payment_id": payment.id},
            )
            return ServiceResult.success(sub_payment)

        sub_payment.mark_overdue()
        sub_payment.save()
        record_history(
            sub_payment.subscription,
            HistoryEventType.PAYMENT_OVERDUE,
            f"Payment {payment.id} overdue",
            external_event_id=payment.id,
        )

    return ServiceResult.success(sub_payment)


@register_handler("PAYMENT_REFUNDED")
def handle_payment_refunded(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Handle a refunded payment: mark it refunded and cancel its revenue entry.
    """
    payment = _payment_from_event(webhook_event)
    if payment is None:
        return _invalid_payload(webhook_event, "payment")

    with transaction.atomic():
        sub_payment = _locked_payment(payment.id)
        if sub_payment is None:
            raise ReconciliationUnresolvedError(
                f"No payment found for refund of {payment.id}",
                details={"external_payment_id": payment.id},
            )

        if sub_payment.is_refunded:
            return ServiceResult.success(sub_payment)

        previous_status = sub_payment.status
        sub_payment.mark_refunded()
        sub_payment.save()
        cancel_subscription_revenue(sub_payment)
        record_history(
            sub_payment.subscription,
            HistoryEventType.PAYMENT_REFUNDED,
            f"Payment {payment.id} refunded",
            external_event_id=payment.id,
            old_value={"status": previous_status},
            new_value={"status": sub_payment.status},
        )

    return ServiceResult.success(sub_payment)


# =============================================================================
# Subscription Handlers
# =============================================================================


@register_handler("SUBSCRIPTION_CANCELLED", "SUBSCRIPTION_DELETED")
def handle_subscription_cancelled(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Handle a subscription cancelled at the gateway.
    """
    remote = _subscription_from_event(webhook_event)
    if remote is None:
        return _invalid_payload(webhook_event, "subscription")

    with transaction.atomic():
        subscription = _locked_subscription(remote.id)
        if subscription is None:
            raise ReconciliationUnresolvedError(
                f"No subscription found for {remote.id}",
                details={"external_subscription_id": remote.id},
            )

        if subscription.is_cancelled:
            return ServiceResult.success(subscription)

        previous_status = subscription.status
        subscription.cancel(reason="Cancelled at the payment gateway")
        subscription.save()
        record_history(
            subscription,
            HistoryEventType.CANCELLED,
            "Subscription cancelled at the payment gateway",
            external_event_id=remote.id,
            old_value={"status": previous_status},
            new_value={"status": subscription.status},
        )

    return ServiceResult.success(subscription)


@register_handler("SUBSCRIPTION_UPDATED")
def handle_subscription_updated(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Re-sync plan data (amount, cycle, next due date) from the gateway.

    A plan_changed history entry is written only when amount or cycle
    actually changed.
    """
    remote = _subscription_from_event(webhook_event)
    if remote is None:
        return _invalid_payload(webhook_event, "subscription")

    with transaction.atomic():
        subscription = _locked_subscription(remote.id)
        if subscription is None:
            raise ReconciliationUnresolvedError(
                f"No subscription found for {remote.id}",
                details={"external_subscription_id": remote.id},
            )

        before = {
            "amount": str(subscription.amount),
            "subscription_type": subscription.subscription_type,
        }

        if remote.value is not None and remote.value != subscription.amount:
            subscription.amount = remote.value
        new_type = SUBSCRIPTION_TYPE_BY_CYCLE.get(remote.cycle or "")
        if new_type and new_type != subscription.subscription_type:
            subscription.subscription_type = new_type
            subscription.billing_cycle = BILLING_CYCLE_MONTHS[new_type]
        if remote.next_due_date:
            subscription.next_due_date = remote.next_due_date
        subscription.synced_at = timezone.now()
        subscription.save()

        after = {
            "amount": str(subscription.amount),
            "subscription_type": subscription.subscription_type,
        }
        if after != before:
            record_history(
                subscription,
                HistoryEventType.PLAN_CHANGED,
                f"Plan updated at the payment gateway: {after['subscription_type']} at {after['amount']}",
                external_event_id=remote.id,
                old_value=before,
                new_value=after,
            )

    return ServiceResult.success(subscription)
