"""
Clients app configuration.
"""

from django.apps import AppConfig


class ClientsConfig(AppConfig):
    """Configuration for the clients application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "clients"
    verbose_name = "Clients"
