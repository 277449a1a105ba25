import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Client",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID v4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "name",
                    models.CharField(
                        help_text="Client full name or company name", max_length=255
                    ),
                ),
                (
                    "email",
                    models.EmailField(
                        blank=True, default="", help_text="Contact email", max_length=254
                    ),
                ),
                (
                    "phone",
                    models.CharField(
                        blank=True, default="", help_text="Contact phone", max_length=32
                    ),
                ),
                (
                    "document_number",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="CPF or CNPJ, with or without punctuation",
                        max_length=32,
                    ),
                ),
                (
                    "postal_code",
                    models.CharField(
                        blank=True, default="", help_text="Postal code (CEP)", max_length=16
                    ),
                ),
                (
                    "address_number",
                    models.CharField(
                        blank=True, default="", help_text="Street number", max_length=16
                    ),
                ),
                (
                    "external_customer_id",
                    models.CharField(
                        blank=True,
                        help_text="Customer id at the payment gateway (cus_xxx)",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        help_text="Account that manages this client",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="clients",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Client",
                "verbose_name_plural": "Clients",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["owner", "name"], name="client_owner_name_idx"
                    )
                ],
            },
        ),
    ]
