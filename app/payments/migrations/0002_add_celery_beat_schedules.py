"""
Add celery-beat schedules for payment maintenance tasks.

This migration creates the periodic task schedules for:
- Retrying failed webhook events (every 5 minutes)
- Resetting webhook events stuck in processing (every 15 minutes)
- Reconciling pending payments with the gateway (every 15 minutes)
- Deleting old processed webhook events (daily at 3 AM UTC)
"""

from django.db import migrations

PERIODIC_TASKS = [
    {
        "name": "Retry Failed Webhooks",
        "task": "payments.tasks.retry_failed_webhooks",
        "interval": (5, "minutes"),
        "description": "Re-queues failed webhook events below the retry cap.",
    },
    {
        "name": "Cleanup Stuck Webhooks",
        "task": "payments.tasks.cleanup_stuck_webhooks",
        "interval": (15, "minutes"),
        "description": "Resets webhook events left in processing by a crashed worker.",
    },
    {
        "name": "Reconcile Pending Payments",
        "task": "payments.tasks.reconcile_pending_payments",
        "interval": (15, "minutes"),
        "description": (
            "Asks the gateway about pending payments whose webhook never "
            "arrived and settles the ones that succeeded."
        ),
    },
]

CLEANUP_TASK_NAME = "Cleanup Old Webhooks"


def create_periodic_tasks(apps, schema_editor):
    """Create periodic tasks for payment maintenance."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    CrontabSchedule = apps.get_model("django_celery_beat", "CrontabSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    for spec in PERIODIC_TASKS:
        every, period = spec["interval"]
        schedule, _ = IntervalSchedule.objects.get_or_create(every=every, period=period)
        PeriodicTask.objects.get_or_create(
            name=spec["name"],
            defaults={
                "task": spec["task"],
                "interval": schedule,
                "enabled": True,
                "description": spec["description"],
            },
        )

    # Daily at 3 AM UTC
    crontab_daily_3am, _ = CrontabSchedule.objects.get_or_create(
        minute="0",
        hour="3",
        day_of_week="*",
        day_of_month="*",
        month_of_year="*",
    )
    PeriodicTask.objects.get_or_create(
        name=CLEANUP_TASK_NAME,
        defaults={
            "task": "payments.tasks.cleanup_old_webhooks",
            "crontab": crontab_daily_3am,
            "enabled": True,
            "description": "Deletes processed webhook events older than 90 days.",
        },
    )


def remove_periodic_tasks(apps, schema_editor):
    """Remove the periodic tasks on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    names = [spec["name"] for spec in PERIODIC_TASKS] + [CLEANUP_TASK_NAME]
    PeriodicTask.objects.filter(name__in=names).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
