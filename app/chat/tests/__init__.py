"""
Tests for chat app.

This package contains test modules for:
- test_store.py, test_read_state.py: MessageStore and ReadStateTracker
- test_gateway.py, test_authorization.py: membership, roles and validation
- test_consumers.py: WebSocket presence, typing and read receipts
- test_views.py: REST API endpoint tests

Usage:
    pytest chat/tests/
    pytest chat/tests/test_consumers.py
"""
