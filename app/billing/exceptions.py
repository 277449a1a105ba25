"""
Billing-specific exceptions.

Exception Hierarchy:
    BillingError (base for the billing domain)
    ├── GatewayError - Non-2xx response or transport failure from the gateway
    ├── ReconciliationUnresolvedError - Webhook cannot be matched to local state yet
    └── SubscriptionPersistenceError - Gateway accepted, local write failed

Usage:
    from billing.exceptions import GatewayError

    try:
        gateway.cancel_subscription("sub_123")
    except GatewayError as e:
        if e.is_retryable:
            ...
        logger.warning(f"Gateway rejected cancel: {e.gateway_message}")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError

if TYPE_CHECKING:
    from typing import Any


class BillingError(BaseApplicationError):
    """
    Base exception for billing operations.

    Example:
        try:
            SubscriptionProvisioner().provision(request)
        except BillingError as e:
            return Response(e.to_dict(), status=400)
    """

    default_error_code: str = "BILLING_ERROR"


class GatewayError(BillingError):
    """
    The payment gateway rejected a call or could not be reached.

    Attributes:
        status_code: HTTP status returned by the gateway (None for
            transport failures and timeouts)
        gateway_message: Message extracted from the gateway's error body

    Retry guidance:
        is_retryable is True for transport failures, 429 and 5xx
        responses. The client never retries on its own.
    """

    default_error_code: str = "GATEWAY_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, error_code=error_code, details=details)
        self.status_code = status_code
        self.gateway_message = message

    @property
    def is_retryable(self) -> bool:
        if self.status_code is None:
            return True
        return self.status_code == 429 or self.status_code >= 500


class ReconciliationUnresolvedError(BillingError):
    """
    A webhook refers to a payment or subscription that cannot be found.

    The event stays unprocessed (processed=False with this message) so it
    can be reconciled later, once the referenced record exists.
    """

    default_error_code: str = "RECONCILIATION_UNRESOLVED"


class SubscriptionPersistenceError(BillingError):
    """
    The gateway created the subscription but the local write failed.

    details carries the external subscription id and the outcome of the
    compensating cancellation ("cancelled" or "failed", plus the error).
    A failed compensation leaves an orphan at the gateway that needs
    operator attention.
    """

    default_error_code: str = "SUBSCRIPTION_PERSISTENCE_FAILED"
