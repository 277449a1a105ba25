"""
Revenue bookkeeping for subscription payments.

A paid SubscriptionPayment produces exactly one FinanceRecord. Two guards
keep it that way under re-delivery and concurrency:

1. A pre-insert check on the payment link and on description + amount
2. The unique one-to-one column, with the insert wrapped in a savepoint so
   a concurrent winner's row is read back instead of raising
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django.db.models import Q

from billing.models import FinanceRecord
from billing.state_machines import FinanceRecordStatus, FinanceRecordType

if TYPE_CHECKING:
    from billing.models import SubscriptionPayment

logger = logging.getLogger(__name__)


def revenue_description(payment: SubscriptionPayment, detail: str = "") -> str:
    """Ledger description for a subscription payment; embeds the gateway payment id."""
    description = f"Subscription payment {payment.external_payment_id}"
    if detail:
        description = f"{description} - {detail}"
    return description[:500]


def record_subscription_revenue(
    payment: SubscriptionPayment,
    amount: Decimal | None = None,
    detail: str = "",
) -> tuple[FinanceRecord, bool]:
    """
    Book the revenue of a paid subscription payment, at most once.

    Args:
        payment: The paid SubscriptionPayment (subscription preloaded or not)
        amount: Amount reported by the gateway; defaults to the payment amount
        detail: Extra text appended to the description

    Returns:
        Tuple of (finance_record, created)
    """
    amount = amount if amount is not None else payment.amount
    description = revenue_description(payment, detail)

    existing = FinanceRecord.objects.filter(
        Q(subscription_payment=payment) | Q(description=description, amount=amount)
    ).first()
    if existing:
        logger.info(
            "Revenue already booked for subscription payment",
            extra={
                "external_payment_id": payment.external_payment_id,
                "finance_record_id": str(existing.id),
            },
        )
        return existing, False

    subscription = payment.subscription
    paid_date = payment.paid_date or payment.due_date
    try:
        with transaction.atomic():
            record = FinanceRecord.objects.create(
                owner_id=subscription.owner_id,
                client_id=subscription.client_id,
                subscription_payment=payment,
                type=FinanceRecordType.REVENUE,
                amount=amount,
                description=description,
                status=FinanceRecordStatus.PAID,
                payment_date=paid_date,
                due_date=payment.due_date,
                payment_method=payment.payment_method,
                category="subscription",
                reference_month=paid_date.replace(day=1),
            )
    except IntegrityError:
        # Race condition: a concurrent delivery booked it first
        record = FinanceRecord.objects.get(subscription_payment=payment)
        return record, False

    logger.info(
        "Booked subscription revenue",
        extra={
            "external_payment_id": payment.external_payment_id,
            "finance_record_id": str(record.id),
            "amount": str(amount),
        },
    )
    return record, True


def cancel_subscription_revenue(payment: SubscriptionPayment) -> FinanceRecord | None:
    """Mark the revenue booked for a refunded payment as cancelled."""
    record = FinanceRecord.objects.filter(subscription_payment=payment).first()
    if record is None or record.status == FinanceRecordStatus.CANCELLED:
        return record
    record.status = FinanceRecordStatus.CANCELLED
    record.save(update_fields=["status", "updated_at"])
    return record
