"""
Tests for authentication app.

This package contains test modules for:
- test_models.py, test_managers.py: User and UserManager
- test_views.py: token and identity endpoints

Usage:
    pytest authentication/tests/
"""
