"""
Subscription provisioning against the payment gateway.

Creating a subscription touches two systems that cannot share a
transaction: the gateway and our database. The provisioner runs the work as
a saga so a local failure after the gateway accepted the subscription
cancels it remotely instead of leaving an orphan that keeps charging.

Steps:
    0. Idempotency key already used -> return the stored subscription
    1. Load the client (scoped to the acting user)
    2. Open the gateway with the owner's active GatewayConfiguration
       (none -> 400 GATEWAY_NOT_CONFIGURED); its client is closed at the end
    3. Resolve or create the gateway customer; persist the mapping at once
    4. Compute the first due date
    5. Create the gateway subscription      (compensation: cancel it)
    6. Persist Subscription + 'created' history in one transaction
    7. Best effort: store the first pending charges the gateway generated

Usage:
    from billing.services import ProvisionRequest, SubscriptionProvisioner

    result = SubscriptionProvisioner().provision(
        ProvisionRequest(
            client_id=client.id,
            subscription_type="monthly",
            amount=Decimal("100.00"),
            billing_day=10,
            payment_method="pix",
        ),
        actor=request.user,
    )
    result.to_dict()  # {"id": ..., "external_subscription_id": ..., "status": "active"}
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from django.db import DatabaseError, IntegrityError
from django.utils import timezone

from core.exceptions import NotFoundError, ValidationError
from core.services import BaseService

from billing.adapters import (
    BILLING_TYPE_BY_PAYMENT_METHOD,
    CYCLE_BY_SUBSCRIPTION_TYPE,
    AsaasAdapter,
    CardHolderInfo,
    CreateCustomerParams,
    CreateSubscriptionParams,
    CreditCardDetails,
    SubscriptionResult,
    payment_method_from_billing_type,
)
from billing.exceptions import GatewayError, SubscriptionPersistenceError
from billing.models import BILLING_CYCLE_MONTHS, Subscription, SubscriptionPayment
from billing.saga import Saga
from billing.services.dates import billing_period_end, compute_next_due_date
from billing.services.gateway import open_owner_gateway
from billing.services.history import record_history
from billing.state_machines import HistoryEventType, PaymentMethod, PaymentStatus
from clients.models import Client

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class ProvisionRequest:
    """
    Input for provisioning a subscription.

    Attributes:
        client_id: Client to bill
        subscription_type: monthly, quarterly or annual
        amount: Charge per cycle (> 0)
        billing_day: Day of month the charge falls due (1-31)
        payment_method: credit_card, pix or boleto
        start_date: Defaults to today
        description: Shown on the gateway charge
        credit_card: Card data (credit_card only)
        idempotency_key: Resubmissions with the same key return the same subscription
        auto_renew: Whether the subscription renews automatically
    """

    client_id: uuid.UUID | str
    subscription_type: str
    amount: Decimal
    billing_day: int
    payment_method: str
    start_date: date | None = None
    description: str = ""
    credit_card: CreditCardDetails | None = None
    idempotency_key: str | None = None
    auto_renew: bool = True

    def __post_init__(self) -> None:
        errors: dict[str, list[str]] = {}
        if self.amount is None or self.amount <= 0:
            errors["amount"] = ["Must be greater than zero."]
        if not 1 <= int(self.billing_day) <= 31:
            errors["billing_day"] = ["Must be between 1 and 31."]
        if self.subscription_type not in CYCLE_BY_SUBSCRIPTION_TYPE:
            errors["subscription_type"] = [f"Unknown subscription type: {self.subscription_type}"]
        if self.payment_method not in BILLING_TYPE_BY_PAYMENT_METHOD:
            errors["payment_method"] = [f"Unsupported payment method: {self.payment_method}"]
        if errors:
            raise ValidationError(
                "Invalid subscription request",
                details=errors,
            )


@dataclass
class ProvisionResult:
    """
    Outcome of provisioning.

    Attributes:
        subscription: The stored subscription
        created: False when an earlier request with the same idempotency
            key already created it
    """

    subscription: Subscription
    created: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.subscription.id),
            "external_subscription_id": self.subscription.external_subscription_id,
            "status": self.subscription.status,
        }


# =============================================================================
# Provisioner
# =============================================================================


class SubscriptionProvisioner(BaseService):
    """
    Creates subscriptions at the gateway and mirrors them locally.

    Dependency Injection:
        The gateway adapter can be injected for testing; it is then used
        for every owner and left open. Otherwise each call opens the
        owner's configured gateway and closes it before returning.
    """

    def __init__(self, gateway: AsaasAdapter | None = None):
        self.gateway = gateway

    def provision(
        self,
        request: ProvisionRequest,
        actor: AbstractBaseUser | None = None,
    ) -> ProvisionResult:
        """
        Provision a subscription.

        Args:
            request: What to create
            actor: Acting user; the client must belong to them

        Returns:
            ProvisionResult

        Raises:
            NotFoundError: Client missing or not owned by the actor
            ValidationError: The owner has no usable gateway configuration
                (GATEWAY_NOT_CONFIGURED)
            GatewayError: Customer or subscription creation rejected; no
                local subscription was written
            SubscriptionPersistenceError: Local write failed after the
                gateway created the subscription; details report whether
                the compensating cancel succeeded
        """
        logger = self.get_logger()

        if request.idempotency_key:
            existing = Subscription.objects.filter(
                idempotency_key=request.idempotency_key
            ).first()
            if existing:
                logger.info(
                    "Idempotent provision request; returning existing subscription",
                    extra={
                        "subscription_id": str(existing.id),
                        "idempotency_key": request.idempotency_key,
                    },
                )
                return ProvisionResult(subscription=existing, created=False)

        client = self._load_client(request.client_id, actor)
        start_date = request.start_date or timezone.localdate()
        next_due_date = compute_next_due_date(start_date, request.billing_day)
        subscription_id = uuid.uuid4()

        logger.info(
            "Provisioning subscription",
            extra={
                "client_id": str(client.id),
                "subscription_type": request.subscription_type,
                "amount": str(request.amount),
                "payment_method": request.payment_method,
                "next_due_date": next_due_date.isoformat(),
            },
        )

        owner_id = actor.pk if actor is not None else client.owner_id
        with open_owner_gateway(owner_id, gateway=self.gateway) as gateway:
            saga = Saga("provision_subscription")
            saga.add_step("customer", lambda results: self._ensure_customer(gateway, client))
            saga.add_step(
                "remote_subscription",
                lambda results: gateway.create_subscription(
                    self._build_gateway_params(
                        request, client, results["customer"], next_due_date, subscription_id
                    )
                ),
                compensation=lambda remote: self._cancel_remote_subscription(gateway, remote),
            )
            saga.add_step(
                "local_subscription",
                lambda results: self._persist(
                    subscription_id,
                    request,
                    client,
                    results["customer"],
                    results["remote_subscription"],
                    start_date,
                    next_due_date,
                    actor,
                ),
            )

            try:
                results = saga.run()
            except Exception as e:
                if saga.failed_step != "local_subscription":
                    raise
                return self._handle_persistence_failure(saga, request, e)

            subscription = results["local_subscription"]
            logger.info(
                "Subscription provisioned",
                extra={
                    "subscription_id": str(subscription.id),
                    "external_subscription_id": subscription.external_subscription_id,
                },
            )

            self._anticipate_first_payments(gateway, subscription)
        return ProvisionResult(subscription=subscription, created=True)

    # =========================================================================
    # Steps
    # =========================================================================

    def _load_client(self, client_id: uuid.UUID | str, actor: AbstractBaseUser | None) -> Client:
        queryset = Client.objects.all()
        if actor is not None:
            queryset = queryset.filter(owner=actor)
        client = queryset.filter(pk=client_id).first()
        if client is None:
            raise NotFoundError(
                "Client not found",
                error_code="CLIENT_NOT_FOUND",
                details={"client_id": str(client_id)},
            )
        return client

    def _ensure_customer(self, gateway: AsaasAdapter, client: Client) -> str:
        """
        Gateway customer id for the client, creating the customer once.

        The mapping is written immediately and kept even if later steps
        fail, so a retry reuses the same gateway customer.
        """
        if client.external_customer_id:
            return client.external_customer_id

        customer = gateway.create_customer(
            CreateCustomerParams(
                name=client.name,
                cpf_cnpj=client.document_number,
                email=client.email or None,
                phone=client.phone or None,
                external_reference=str(client.id),
            )
        )

        updated = Client.objects.filter(
            pk=client.pk, external_customer_id__isnull=True
        ).update(external_customer_id=customer.id, updated_at=timezone.now())
        if not updated:
            # Another request mapped the client first; use its customer
            stored = Client.objects.values_list("external_customer_id", flat=True).get(pk=client.pk)
            self.get_logger().warning(
                "Client already mapped to another gateway customer",
                extra={
                    "client_id": str(client.id),
                    "stored_customer_id": stored,
                    "unused_customer_id": customer.id,
                },
            )
            client.external_customer_id = stored
            return stored

        client.external_customer_id = customer.id
        self.get_logger().info(
            "Created gateway customer",
            extra={"client_id": str(client.id), "external_customer_id": customer.id},
        )
        return customer.id

    def _build_gateway_params(
        self,
        request: ProvisionRequest,
        client: Client,
        customer_id: str,
        next_due_date: date,
        subscription_id: uuid.UUID,
    ) -> CreateSubscriptionParams:
        params = CreateSubscriptionParams(
            customer_id=customer_id,
            billing_type=BILLING_TYPE_BY_PAYMENT_METHOD[request.payment_method],
            cycle=CYCLE_BY_SUBSCRIPTION_TYPE[request.subscription_type],
            value=request.amount,
            next_due_date=next_due_date,
            description=request.description or f"Subscription - {client.name}",
            external_reference=str(subscription_id),
        )
        if request.payment_method == PaymentMethod.CREDIT_CARD and request.credit_card:
            params.credit_card = request.credit_card
            params.credit_card_holder_info = CardHolderInfo(
                name=client.name,
                email=client.email,
                cpf_cnpj=client.document_number,
                postal_code=client.postal_code,
                address_number=client.address_number,
                phone=client.phone,
            )
        return params

    def _persist(
        self,
        subscription_id: uuid.UUID,
        request: ProvisionRequest,
        client: Client,
        customer_id: str,
        remote: SubscriptionResult,
        start_date: date,
        next_due_date: date,
        actor: AbstractBaseUser | None,
    ) -> Subscription:
        card = request.credit_card if request.payment_method == PaymentMethod.CREDIT_CARD else None
        with self.atomic():
            subscription = Subscription.objects.create(
                id=subscription_id,
                client=client,
                owner_id=actor.pk if actor is not None else client.owner_id,
                external_customer_id=customer_id,
                external_subscription_id=remote.id,
                idempotency_key=request.idempotency_key,
                subscription_type=request.subscription_type,
                billing_cycle=BILLING_CYCLE_MONTHS[request.subscription_type],
                amount=request.amount,
                billing_day=request.billing_day,
                payment_method=request.payment_method,
                card_last_four=card.last_four if card else "",
                card_holder_name=card.holder_name if card else "",
                description=request.description,
                auto_renew=request.auto_renew,
                start_date=start_date,
                next_due_date=next_due_date,
                synced_at=timezone.now(),
            )
            record_history(
                subscription,
                HistoryEventType.CREATED,
                f"Subscription created: {request.subscription_type} at {request.amount}",
                external_event_id=remote.id,
                actor=actor,
                new_value={
                    "subscription_type": request.subscription_type,
                    "amount": str(request.amount),
                    "billing_day": request.billing_day,
                    "payment_method": request.payment_method,
                    "next_due_date": next_due_date.isoformat(),
                },
            )
        return subscription

    def _cancel_remote_subscription(
        self, gateway: AsaasAdapter, remote: SubscriptionResult
    ) -> None:
        """Compensation for the remote subscription step."""
        gateway.cancel_subscription(remote.id)
        self.get_logger().warning(
            "Cancelled gateway subscription after local persistence failure",
            extra={"external_subscription_id": remote.id},
        )

    def _handle_persistence_failure(
        self,
        saga: Saga,
        request: ProvisionRequest,
        error: Exception,
    ) -> ProvisionResult:
        logger = self.get_logger()
        remote: SubscriptionResult = saga.results["remote_subscription"]

        if isinstance(error, IntegrityError) and request.idempotency_key:
            # Concurrent submission with the same key won the insert
            existing = Subscription.objects.filter(
                idempotency_key=request.idempotency_key
            ).first()
            if existing is not None:
                logger.info(
                    "Concurrent provision with the same idempotency key; returning winner",
                    extra={
                        "subscription_id": str(existing.id),
                        "discarded_external_subscription_id": remote.id,
                    },
                )
                return ProvisionResult(subscription=existing, created=False)

        details: dict[str, Any] = {
            "external_subscription_id": remote.id,
            "compensation": "failed" if saga.compensation_failures else "cancelled",
        }
        if saga.compensation_failures:
            failure = saga.compensation_failures[0]
            details["compensation_error"] = str(failure.error)
            logger.critical(
                "Orphaned gateway subscription: local save and remote cancel both failed",
                extra={"external_subscription_id": remote.id, "error": str(failure.error)},
            )
        else:
            logger.error(
                "Failed to persist subscription; gateway subscription cancelled",
                extra={"external_subscription_id": remote.id, "error": str(error)},
            )

        raise SubscriptionPersistenceError(
            "Subscription was created at the gateway but could not be saved",
            details=details,
        ) from error

    def _anticipate_first_payments(self, gateway: AsaasAdapter, subscription: Subscription) -> int:
        """
        Store the pending charges the gateway generated for a new subscription.

        Best effort: failures are logged and never fail provisioning. The
        PAYMENT_* webhooks reconcile anything missed here.

        Returns:
            Number of payments created
        """
        logger = self.get_logger()
        created_count = 0
        try:
            for payment in gateway.iter_payments(
                subscription=subscription.external_subscription_id
            ):
                if payment.status != "PENDING" or payment.due_date is None:
                    continue
                _, created = SubscriptionPayment.objects.get_or_create(
                    external_payment_id=payment.id,
                    defaults={
                        "subscription": subscription,
                        "amount": payment.value or subscription.amount,
                        "due_date": payment.due_date,
                        "status": PaymentStatus.PENDING,
                        "billing_period_start": payment.due_date,
                        "billing_period_end": billing_period_end(
                            payment.due_date, subscription.billing_cycle
                        ),
                        "invoice_url": payment.invoice_url,
                        "payment_method": payment_method_from_billing_type(payment.billing_type),
                    },
                )
                created_count += int(created)
        except (GatewayError, DatabaseError) as e:
            logger.warning(
                "Could not anticipate first payments",
                extra={
                    "subscription_id": str(subscription.id),
                    "error": str(e),
                },
            )
        return created_count
