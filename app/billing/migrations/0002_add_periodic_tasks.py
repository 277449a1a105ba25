"""
Add celery-beat schedules for billing maintenance tasks.

This migration creates periodic task schedules for:
- Re-queuing webhook events that failed to reconcile (every 15 minutes)
- Processing due subscription payments (daily)
"""

from django.db import migrations

TASK_NAMES = [
    "Billing: Reprocess Unprocessed Webhooks",
    "Billing: Process Due Payments",
]


def create_periodic_tasks(apps, schema_editor):
    """Create periodic tasks for billing maintenance."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    CrontabSchedule = apps.get_model("django_celery_beat", "CrontabSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    # Every 15 minutes
    schedule_15min, _ = IntervalSchedule.objects.get_or_create(
        every=15,
        period="minutes",
    )

    # Daily at 6 AM UTC
    crontab_daily_6am, _ = CrontabSchedule.objects.get_or_create(
        minute="0",
        hour="6",
        day_of_week="*",
        day_of_month="*",
        month_of_year="*",
    )

    PeriodicTask.objects.get_or_create(
        name="Billing: Reprocess Unprocessed Webhooks",
        defaults={
            "task": "billing.tasks.reprocess_unprocessed_webhooks",
            "interval": schedule_15min,
            "enabled": True,
            "description": (
                "Re-queues stored gateway webhooks that did not reconcile and "
                "still have attempts left."
            ),
        },
    )

    PeriodicTask.objects.get_or_create(
        name="Billing: Process Due Payments",
        defaults={
            "task": "billing.tasks.process_due_payments",
            "crontab": crontab_daily_6am,
            "enabled": True,
            "description": (
                "Marks due subscription payments overdue, schedules retries and "
                "pauses subscriptions that ran out of retries."
            ),
        },
    )


def remove_periodic_tasks(apps, schema_editor):
    """Remove billing periodic tasks on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(name__in=TASK_NAMES).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("billing", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
