"""
Root pytest configuration for the Django project.

This module configures pytest-django and provides project-wide fixtures.
App-specific fixtures are defined in each app's tests/conftest.py.

Tests run against SQLite with in-memory cache, channel layer and presence
registry, so no Postgres or Redis is needed. Any variable already present in
the environment wins.
"""

import os

import django

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite:///test-db.sqlite3")
os.environ.setdefault("ALLOWED_HOSTS", "testserver,localhost")
os.environ.setdefault("SECURE_SSL_REDIRECT", "False")
os.environ.setdefault(
    "CHAT_PRESENCE_REGISTRY", "chat.services.presence.InMemoryPresenceRegistry"
)


def pytest_configure():
    """Configure Django settings before tests run."""
    django.setup()
