"""
Asaas API adapter for billing operations.

This module provides the AsaasAdapter class which encapsulates all calls to
the Asaas REST API (v3). Every gateway call goes through the adapter's single
request method so authentication, timeouts, error translation and logging
behave the same for every endpoint.

Features:
- One httpx client per adapter, bounded by a configurable timeout
- Non-2xx responses and transport failures raised as GatewayError
- Structured logging with timing metrics
- Typed parameter/result dataclasses
- No automatic retries; callers decide (see GatewayError.is_retryable)

Configuration (via settings):
- ASAAS_API_KEY: API key sent in the access_token header
- ASAAS_ENVIRONMENT: "production" or "sandbox" (default)
- ASAAS_API_TIMEOUT_SECONDS: Per-request timeout (default: 10)

Usage:
    from billing.adapters import AsaasAdapter, CreateCustomerParams

    gateway = AsaasAdapter.from_settings()
    customer = gateway.create_customer(
        CreateCustomerParams(name="Maria Silva", cpf_cnpj="123.456.789-09")
    )
    subscription = gateway.get_subscription("sub_123")
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx
from django.conf import settings

from billing.exceptions import GatewayError
from billing.state_machines import PaymentMethod, SubscriptionType

PRODUCTION_BASE_URL = "https://www.asaas.com/api/v3"
SANDBOX_BASE_URL = "https://sandbox.asaas.com/api/v3"

# =============================================================================
# Gateway Vocabulary
# =============================================================================

CYCLE_BY_SUBSCRIPTION_TYPE = {
    SubscriptionType.MONTHLY: "MONTHLY",
    SubscriptionType.QUARTERLY: "QUARTERLY",
    SubscriptionType.ANNUAL: "YEARLY",
}

SUBSCRIPTION_TYPE_BY_CYCLE = {
    cycle: subscription_type
    for subscription_type, cycle in CYCLE_BY_SUBSCRIPTION_TYPE.items()
}

BILLING_TYPE_BY_PAYMENT_METHOD = {
    PaymentMethod.CREDIT_CARD: "CREDIT_CARD",
    PaymentMethod.PIX: "PIX",
    PaymentMethod.BOLETO: "BOLETO",
}

PAYMENT_METHOD_BY_BILLING_TYPE = {
    "CREDIT_CARD": PaymentMethod.CREDIT_CARD,
    "DEBIT_CARD": PaymentMethod.DEBIT_CARD,
    "PIX": PaymentMethod.PIX,
    "BOLETO": PaymentMethod.BOLETO,
}


def payment_method_from_billing_type(billing_type: str | None) -> str:
    """Local payment method for a gateway billing type (credit card when unknown)."""
    return PAYMENT_METHOD_BY_BILLING_TYPE.get(billing_type or "", PaymentMethod.CREDIT_CARD)


def _to_decimal(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value)).quantize(Decimal("0.01"))
    except InvalidOperation:
        return None


def _to_date(value: Any) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _digits(value: str | None) -> str:
    return "".join(ch for ch in (value or "") if ch.isdigit())


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CreateCustomerParams:
    """
    Parameters for registering a customer at the gateway.

    Attributes:
        name: Customer name
        cpf_cnpj: CPF/CNPJ; punctuation is stripped before sending
        email: Contact email
        phone: Contact phone
        external_reference: Our id for the customer
    """

    name: str
    cpf_cnpj: str = ""
    email: str | None = None
    phone: str | None = None
    external_reference: str | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("name is required")

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name,
            "cpfCnpj": _digits(self.cpf_cnpj),
        }
        if self.email:
            payload["email"] = self.email
        if self.phone:
            payload["phone"] = self.phone
        if self.external_reference:
            payload["externalReference"] = self.external_reference
        return payload


@dataclass
class CustomerResult:
    """Customer as returned by the gateway."""

    id: str
    name: str = ""
    email: str | None = None
    cpf_cnpj: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> CustomerResult:
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            email=data.get("email"),
            cpf_cnpj=data.get("cpfCnpj"),
            raw_response=data,
        )


@dataclass
class CreditCardDetails:
    """
    Card data forwarded to the gateway for credit card subscriptions.

    The card number is never stored locally; only last_four is kept.
    """

    holder_name: str
    number: str
    expiry_month: str
    expiry_year: str
    ccv: str

    @property
    def clean_number(self) -> str:
        return "".join(self.number.split())

    @property
    def last_four(self) -> str:
        return self.clean_number[-4:]

    def to_payload(self) -> dict[str, str]:
        return {
            "holderName": self.holder_name,
            "number": self.clean_number,
            "expiryMonth": self.expiry_month,
            "expiryYear": self.expiry_year,
            "ccv": self.ccv,
        }


@dataclass
class CardHolderInfo:
    """Card holder identification the gateway requires for card charges."""

    name: str
    email: str
    cpf_cnpj: str
    postal_code: str
    address_number: str
    phone: str = ""

    def to_payload(self) -> dict[str, str]:
        return {
            "name": self.name,
            "email": self.email,
            "cpfCnpj": _digits(self.cpf_cnpj),
            "postalCode": _digits(self.postal_code),
            "addressNumber": self.address_number,
            "phone": self.phone,
        }


@dataclass
class CreateSubscriptionParams:
    """
    Parameters for creating a recurring subscription at the gateway.

    Attributes:
        customer_id: Gateway customer id (cus_xxx)
        billing_type: Gateway billing type (CREDIT_CARD, PIX, BOLETO)
        cycle: Gateway cycle (MONTHLY, QUARTERLY, YEARLY)
        value: Amount per cycle
        next_due_date: First due date
        description: Shown on the charge
        external_reference: Our reference for the subscription
        credit_card / credit_card_holder_info: Only for CREDIT_CARD
    """

    customer_id: str
    billing_type: str
    cycle: str
    value: Decimal
    next_due_date: date
    description: str = ""
    external_reference: str | None = None
    credit_card: CreditCardDetails | None = None
    credit_card_holder_info: CardHolderInfo | None = None

    def __post_init__(self) -> None:
        if not self.customer_id:
            raise ValueError("customer_id is required")
        if self.value <= 0:
            raise ValueError("value must be positive")

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "customer": self.customer_id,
            "billingType": self.billing_type,
            "cycle": self.cycle,
            "value": float(self.value),
            "nextDueDate": self.next_due_date.isoformat(),
            "description": self.description,
        }
        if self.external_reference:
            payload["externalReference"] = self.external_reference
        if self.credit_card is not None:
            payload["creditCard"] = self.credit_card.to_payload()
        if self.credit_card_holder_info is not None:
            payload["creditCardHolderInfo"] = self.credit_card_holder_info.to_payload()
        return payload


@dataclass
class SubscriptionResult:
    """Subscription as returned by the gateway."""

    id: str
    customer_id: str | None = None
    status: str | None = None
    value: Decimal | None = None
    cycle: str | None = None
    billing_type: str | None = None
    next_due_date: date | None = None
    description: str = ""
    deleted: bool = False
    raw_response: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> SubscriptionResult:
        return cls(
            id=data["id"],
            customer_id=data.get("customer"),
            status=data.get("status"),
            value=_to_decimal(data.get("value")),
            cycle=data.get("cycle"),
            billing_type=data.get("billingType"),
            next_due_date=_to_date(data.get("nextDueDate")),
            description=data.get("description") or "",
            deleted=bool(data.get("deleted", False)),
            raw_response=data,
        )


@dataclass
class PaymentResult:
    """
    A gateway payment (charge).

    Also used to read the payment object embedded in PAYMENT_* webhooks,
    which has the same shape as the REST resource.
    """

    id: str
    subscription_id: str | None = None
    customer_id: str | None = None
    status: str | None = None
    value: Decimal | None = None
    billing_type: str | None = None
    due_date: date | None = None
    payment_date: date | None = None
    confirmed_date: date | None = None
    invoice_url: str = ""
    description: str = ""
    raw_response: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> PaymentResult:
        return cls(
            id=data["id"],
            subscription_id=data.get("subscription"),
            customer_id=data.get("customer"),
            status=data.get("status"),
            value=_to_decimal(data.get("value")),
            billing_type=data.get("billingType"),
            due_date=_to_date(data.get("dueDate")),
            payment_date=_to_date(data.get("paymentDate")),
            confirmed_date=_to_date(data.get("confirmedDate") or data.get("confirmationDate")),
            invoice_url=data.get("invoiceUrl") or "",
            description=data.get("description") or "",
            raw_response=data,
        )


@dataclass
class Page:
    """One page of a gateway list endpoint."""

    items: list[Any]
    has_more: bool = False
    total_count: int = 0
    offset: int = 0
    limit: int = 0


# =============================================================================
# Asaas Adapter
# =============================================================================


class AsaasAdapter:
    """
    Adapter for Asaas API operations.

    Holds one httpx client; safe to share within a thread. Build one per
    request or task (GatewayConfiguration.build_adapter() for an account,
    from_settings() for the deployment defaults), or pass a transport in
    tests:

        gateway = AsaasAdapter(api_key="key", transport=httpx.MockTransport(handler))

    Every method raises GatewayError on a non-2xx response, a timeout or a
    transport failure.
    """

    DEFAULT_PAGE_SIZE = 100

    def __init__(
        self,
        api_key: str,
        environment: str = "sandbox",
        timeout: float = 10,
        transport: httpx.BaseTransport | None = None,
    ):
        self.environment = environment
        self.base_url = (
            PRODUCTION_BASE_URL if environment == "production" else SANDBOX_BASE_URL
        )
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "access_token": api_key,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
        )

    @classmethod
    def from_settings(
        cls,
        api_key: str | None = None,
        environment: str | None = None,
    ) -> AsaasAdapter:
        """
        Build an adapter from the ASAAS_* settings.

        api_key and environment override the deployment defaults (an
        account's own credentials); the timeout always comes from settings.
        """
        return cls(
            api_key=api_key if api_key is not None else settings.ASAAS_API_KEY,
            environment=environment or settings.ASAAS_ENVIRONMENT,
            timeout=settings.ASAAS_API_TIMEOUT_SECONDS,
        )

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> AsaasAdapter:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # =========================================================================
    # Request Plumbing
    # =========================================================================

    def _request(
        self,
        method: str,
        endpoint: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Send one request and return the decoded JSON body.

        Raises:
            GatewayError: Non-2xx response (message from the error body),
                timeout or transport failure (status_code None)
        """
        logger = self.get_logger()
        log_context = {
            "operation": f"{method} {endpoint}",
            "environment": self.environment,
        }
        query = {key: value for key, value in (params or {}).items() if value is not None}
        body = json if method != "GET" else None

        start_time = time.monotonic()
        try:
            response = self._client.request(method, endpoint, json=body, params=query or None)
        except httpx.TimeoutException as e:
            duration_ms = (time.monotonic() - start_time) * 1000
            logger.warning(
                "Gateway request timed out",
                extra={**log_context, "duration_ms": duration_ms, "error": str(e)},
            )
            raise GatewayError(
                f"Gateway request timed out: {endpoint}",
                error_code="GATEWAY_TIMEOUT",
            ) from e
        except httpx.TransportError as e:
            duration_ms = (time.monotonic() - start_time) * 1000
            logger.warning(
                "Gateway request failed",
                extra={**log_context, "duration_ms": duration_ms, "error": str(e)},
            )
            raise GatewayError(
                f"Gateway request failed: {e}",
                error_code="GATEWAY_UNAVAILABLE",
            ) from e

        duration_ms = (time.monotonic() - start_time) * 1000
        data = self._decode(response)

        if not response.is_success:
            message = self._error_message(data, response.status_code)
            logger.warning(
                "Gateway returned an error",
                extra={
                    **log_context,
                    "status_code": response.status_code,
                    "gateway_message": message,
                    "duration_ms": duration_ms,
                },
            )
            raise GatewayError(message, status_code=response.status_code)

        logger.info(
            "Gateway operation completed",
            extra={
                **log_context,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return data

    @staticmethod
    def _decode(response: httpx.Response) -> dict[str, Any]:
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as e:
            if not response.is_success:
                return {}
            raise GatewayError(
                "Gateway returned a non-JSON response",
                status_code=response.status_code,
                error_code="GATEWAY_INVALID_RESPONSE",
            ) from e
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _error_message(data: dict[str, Any], status_code: int) -> str:
        """First error description, then message, then a generic fallback."""
        errors = data.get("errors")
        if isinstance(errors, list) and errors:
            first = errors[0]
            if isinstance(first, dict) and first.get("description"):
                return str(first["description"])
        if data.get("message"):
            return str(data["message"])
        return f"Gateway API error: {status_code}"

    @staticmethod
    def _page(data: dict[str, Any], parse) -> Page:
        return Page(
            items=[parse(item) for item in data.get("data") or []],
            has_more=bool(data.get("hasMore", False)),
            total_count=int(data.get("totalCount") or 0),
            offset=int(data.get("offset") or 0),
            limit=int(data.get("limit") or 0),
        )

    # =========================================================================
    # Customers
    # =========================================================================

    def create_customer(self, params: CreateCustomerParams) -> CustomerResult:
        data = self._request("POST", "/customers", json=params.to_payload())
        return CustomerResult.from_response(data)

    def get_customer(self, customer_id: str) -> CustomerResult:
        data = self._request("GET", f"/customers/{customer_id}")
        return CustomerResult.from_response(data)

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def create_subscription(self, params: CreateSubscriptionParams) -> SubscriptionResult:
        data = self._request("POST", "/subscriptions", json=params.to_payload())
        return SubscriptionResult.from_response(data)

    def get_subscription(self, subscription_id: str) -> SubscriptionResult:
        data = self._request("GET", f"/subscriptions/{subscription_id}")
        return SubscriptionResult.from_response(data)

    def cancel_subscription(self, subscription_id: str) -> bool:
        """
        Cancel (delete) a subscription at the gateway.

        Returns:
            The gateway's "deleted" flag
        """
        data = self._request("DELETE", f"/subscriptions/{subscription_id}")
        return bool(data.get("deleted", True))

    def list_subscriptions(
        self,
        customer: str | None = None,
        status: str | None = None,
        offset: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Page:
        data = self._request(
            "GET",
            "/subscriptions",
            params={"customer": customer, "status": status, "offset": offset, "limit": limit},
        )
        return self._page(data, SubscriptionResult.from_response)

    # =========================================================================
    # Payments
    # =========================================================================

    def get_payment(self, payment_id: str) -> PaymentResult:
        data = self._request("GET", f"/payments/{payment_id}")
        return PaymentResult.from_response(data)

    def list_payments(
        self,
        subscription: str | None = None,
        customer: str | None = None,
        status: str | None = None,
        offset: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Page:
        data = self._request(
            "GET",
            "/payments",
            params={
                "subscription": subscription,
                "customer": customer,
                "status": status,
                "offset": offset,
                "limit": limit,
            },
        )
        return self._page(data, PaymentResult.from_response)

    def iter_payments(self, **filters: Any) -> Iterator[PaymentResult]:
        """Yield every payment matching the filters, following pagination."""
        offset = 0
        while True:
            page = self.list_payments(offset=offset, **filters)
            yield from page.items
            if not page.has_more or not page.items:
                return
            offset += len(page.items)
