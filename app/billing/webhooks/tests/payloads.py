"""
Webhook payload builders shaped like real Asaas deliveries.
"""

from __future__ import annotations

from billing.models import WebhookEvent


def payment_payload(
    event: str,
    payment_id: str = "pay_test_123",
    subscription_id: str | None = "sub_test_123",
    value: float = 100.00,
    status: str = "CONFIRMED",
    **extra,
) -> dict:
    """Body of a PAYMENT_* webhook."""
    payment = {
        "object": "payment",
        "id": payment_id,
        "customer": "cus_000001",
        "subscription": subscription_id,
        "value": value,
        "netValue": value - 1.99,
        "billingType": "PIX",
        "status": status,
        "dueDate": "2024-02-10",
        "paymentDate": "2024-02-09",
        "confirmedDate": "2024-02-09",
        "invoiceUrl": f"https://sandbox.asaas.com/i/{payment_id}",
        "description": "",
    }
    payment.update(extra)
    return {"id": f"evt_{payment_id}_{event}", "event": event, "payment": payment}


def subscription_payload(
    event: str,
    subscription_id: str = "sub_test_123",
    value: float = 100.00,
    cycle: str = "MONTHLY",
    next_due_date: str = "2024-03-10",
) -> dict:
    """Body of a SUBSCRIPTION_* webhook."""
    return {
        "id": f"evt_{subscription_id}_{event}",
        "event": event,
        "subscription": {
            "object": "subscription",
            "id": subscription_id,
            "customer": "cus_000001",
            "value": value,
            "cycle": cycle,
            "billingType": "PIX",
            "nextDueDate": next_due_date,
            "status": "ACTIVE",
            "deleted": False,
        },
    }


def store_event(payload: dict) -> WebhookEvent:
    """Persist a delivery the way ingestion does, without reconciling it."""
    obj = payload.get("payment") or payload.get("subscription") or {}
    return WebhookEvent.objects.create(
        event_type=payload["event"],
        external_event_id=obj.get("id") or payload["id"],
        payload=payload,
    )
