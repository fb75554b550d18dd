"""
Add Celery Beat schedule for presence expiry.

Connections that stop heartbeating without closing their socket are expired
by chat.tasks.sweep_stale_presence.
"""

from django.db import migrations

TASK_NAME = "Chat: Sweep Stale Presence"


def create_periodic_tasks(apps, schema_editor):
    """Create the presence sweep schedule."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    # Every 30 seconds
    schedule_30s, _ = IntervalSchedule.objects.get_or_create(
        every=30,
        period="seconds",
    )

    PeriodicTask.objects.get_or_create(
        name=TASK_NAME,
        defaults={
            "task": "chat.tasks.sweep_stale_presence",
            "interval": schedule_30s,
            "enabled": True,
            "description": (
                "Removes users whose last heartbeat is older than "
                "CHAT_PRESENCE_TTL_SECONDS and rebroadcasts presence."
            ),
        },
    )


def remove_periodic_tasks(apps, schema_editor):
    """Remove the chat periodic task on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")
    PeriodicTask.objects.filter(name=TASK_NAME).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("chat", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
