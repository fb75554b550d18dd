"""
Celery configuration for the Django application.

Celery runs the periodic maintenance of the chat service:
- Presence expiry for connections that stopped heartbeating

Schedules live in the database (django-celery-beat) and are seeded by data
migrations. Redis serves as both the message broker and result backend.
Tasks are auto-discovered from all installed Django apps.

Usage:
    from chat.tasks import sweep_stale_presence

    sweep_stale_presence.delay()

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Celery will look for a tasks.py module in each installed app
app.autodiscover_tasks()
