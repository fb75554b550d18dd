# =============================================================================
# Django Project Configuration Package
# =============================================================================
# Settings, URLs, ASGI/WSGI applications and the Celery app for the chat
# service. The Celery app is imported here so chat.tasks registers with it
# whenever Django starts (web, worker or beat).
# =============================================================================

from config.celery import app as celery_app

__all__ = ("celery_app",)
