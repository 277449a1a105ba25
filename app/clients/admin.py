"""
Django admin configuration for clients.
"""

from django.contrib import admin

from clients.models import Client


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ["name", "email", "owner", "external_customer_id", "created_at"]
    search_fields = ["name", "email", "document_number", "external_customer_id"]
    raw_id_fields = ["owner"]
    readonly_fields = ["id", "external_customer_id", "created_at", "updated_at"]
