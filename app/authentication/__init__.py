"""
Authentication application.

Session issuance is delegated to djangorestframework-simplejwt; this app only
owns the User model and exposes token endpoints plus the caller's identity.

Usage:
    from authentication.models import User
"""
