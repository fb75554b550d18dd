"""
Tests for push-channel event helpers.
"""

from datetime import datetime, timezone
from unittest import mock

from chat.services.signals import (
    broadcast_read_update,
    conversation_group,
    presence_event,
    read_event,
    typing_event,
    user_group,
)

READ_AT = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestEventShapes:
    def test_group_names(self):
        assert user_group(4) == "user_4"
        assert conversation_group(9) == "conversation_9"

    def test_presence_event_sorts_ids(self):
        assert presence_event([5, 1, 3]) == {
            "type": "presence.update",
            "online_user_ids": [1, 3, 5],
        }

    def test_typing_event_type_follows_flag(self):
        assert typing_event(True, 2, 9)["type"] == "typing.start"
        assert typing_event(False, 2, None) == {
            "type": "typing.stop",
            "from_user_id": 2,
            "conversation_id": None,
        }

    def test_read_event_serializes_instant(self):
        assert read_event(9, 2, READ_AT)["last_read_at"] == "2026-03-01T12:00:00+00:00"


class TestBroadcastReadUpdate:
    def test_sends_to_conversation_group(self):
        layer = mock.Mock()
        layer.group_send = mock.AsyncMock()

        with mock.patch("chat.services.signals.get_channel_layer", return_value=layer):
            broadcast_read_update(9, 2, READ_AT)

        layer.group_send.assert_awaited_once_with(
            "conversation_9", read_event(9, 2, READ_AT)
        )

    def test_layer_failure_is_logged_not_raised(self, caplog):
        layer = mock.Mock()
        layer.group_send = mock.AsyncMock(side_effect=ConnectionError("redis down"))

        with mock.patch("chat.services.signals.get_channel_layer", return_value=layer):
            broadcast_read_update(9, 2, READ_AT)

        assert "Failed to broadcast read update" in caplog.text

    def test_no_layer_configured_is_noop(self):
        with mock.patch("chat.services.signals.get_channel_layer", return_value=None):
            broadcast_read_update(9, 2, READ_AT)
