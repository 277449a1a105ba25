"""
Client model.

A client belongs to the account (user) that manages it. The billing engine
needs its contact and tax data to register the client as a customer at the
payment gateway, and stores the gateway's customer id back on the row so
the customer is only ever created once.

Usage:
    from clients.models import Client

    client = Client.objects.get(id=client_id, owner=request.user)
    if not client.external_customer_id:
        ...  # provisioner creates the gateway customer
"""

from __future__ import annotations

import re

from django.conf import settings
from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin


class Client(UUIDPrimaryKeyMixin, BaseModel):
    """
    A billable client.

    Fields:
        owner: Account that manages this client
        name, email, phone: Contact data sent to the gateway
        document_number: CPF/CNPJ (formatting characters allowed)
        postal_code, address_number: Card holder address data
        external_customer_id: Gateway customer id, set once on first billing
    """

    # ==========================================================================
    # Ownership
    # ==========================================================================

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="clients",
        help_text="Account that manages this client",
    )

    # ==========================================================================
    # Contact & Tax Data
    # ==========================================================================

    name = models.CharField(
        max_length=255,
        help_text="Client full name or company name",
    )

    email = models.EmailField(
        blank=True,
        default="",
        help_text="Contact email",
    )

    phone = models.CharField(
        max_length=32,
        blank=True,
        default="",
        help_text="Contact phone",
    )

    document_number = models.CharField(
        max_length=32,
        blank=True,
        default="",
        help_text="CPF or CNPJ, with or without punctuation",
    )

    postal_code = models.CharField(
        max_length=16,
        blank=True,
        default="",
        help_text="Postal code (CEP)",
    )

    address_number = models.CharField(
        max_length=16,
        blank=True,
        default="",
        help_text="Street number",
    )

    # ==========================================================================
    # Gateway Mapping
    # ==========================================================================

    external_customer_id = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Customer id at the payment gateway (cus_xxx)",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Client"
        verbose_name_plural = "Clients"
        indexes = [
            models.Index(fields=["owner", "name"], name="client_owner_name_idx"),
        ]

    def __str__(self) -> str:
        return f"Client({self.name})"

    @property
    def document_digits(self) -> str:
        """Document number with punctuation removed, as the gateway expects."""
        return re.sub(r"\D", "", self.document_number or "")
