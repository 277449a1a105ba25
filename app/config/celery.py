"""
Celery configuration for the billing service.

Background work handled here:
- Re-running reconciliation for webhook events that did not process
- Daily processing of due subscription payments (overdue marking, retries)

Redis is both the message broker and result backend. Tasks are
auto-discovered from all installed Django apps; periodic schedules live in
the database (django-celery-beat) and are created by data migrations.

Usage:
    from billing.tasks import process_webhook_event

    process_webhook_event.delay(str(webhook_event.id))
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Looks for a tasks.py module in each installed app
app.autodiscover_tasks()
