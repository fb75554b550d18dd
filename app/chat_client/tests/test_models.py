"""
Tests for client message types and the composer.
"""

import pytest

from chat_client import Composer, Draft, LocalMessage, SendState
from core.exceptions import ExternalServiceError, ValidationError


class TestComposer:
    def test_build_freezes_and_resets(self):
        composer = Composer()
        composer.set_text("See you Thursday").reply_to(41)

        draft = composer.build()

        assert draft == Draft(content="See you Thursday", reply_to=41)
        with pytest.raises(ValidationError):
            composer.build()

    def test_whitespace_only_is_empty(self):
        composer = Composer().set_text("   ")

        with pytest.raises(ValidationError) as exc_info:
            composer.build()

        assert exc_info.value.error_code == "EMPTY_MESSAGE"

    def test_attachment_alone_is_enough(self):
        draft = Composer().attach("image", "https://cdn.test/cover.png", "cover.png").build()

        assert draft.to_payload("t1") == {
            "client_message_id": "t1",
            "attachment": {
                "kind": "image",
                "url": "https://cdn.test/cover.png",
                "name": "cover.png",
            },
        }

    def test_forward_alone_is_enough(self):
        draft = Composer().forward(9).build()

        assert draft.to_payload("t2") == {"client_message_id": "t2", "forwarded_from": 9}


class TestLocalMessage:
    def test_from_server(self):
        message = LocalMessage.from_server(
            {
                "id": 3,
                "author": {"id": 4, "display_name": "Ben"},
                "content": "hi",
                "client_message_id": "t1",
            }
        )

        assert message.state == SendState.RECONCILED
        assert message.author_id == 4
        assert message.key == "3"

    def test_failed_then_resent(self):
        pending = LocalMessage.pending(Draft(content="hi"), "t1", 4)
        assert pending.key == "tmp:t1"

        failed = pending.failed(ExternalServiceError("down"))
        assert failed.is_failed
        assert failed.retryable

        resent = failed.resent()
        assert resent.is_pending
        assert resent.error is None
        assert not resent.retryable
