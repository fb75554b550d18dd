"""
Normalized message payloads.

Raw client input is reduced here, once, to plain value objects. Downstream
code (MessageStore, serializers) only ever sees these shapes and never
inspects raw request data.

Value objects:
    AttachmentDescriptor: {kind, url, name}
    PollDefinition: question plus ordered option labels
    MessagePayload: Everything MessageStore.append needs

Functions:
    sanitize_attachment: Strip a raw attachment dict to {kind, url, name}
    validate_poll: Check question and option count
    build_payload: Assemble a MessagePayload from validated request data
    build_snippet: Short preview used for reply references
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from chat.constants import ATTACHMENT_CONFIG, MESSAGE_CONFIG, POLL_CONFIG
from chat.models import AttachmentKind
from core.exceptions import ValidationError

if TYPE_CHECKING:
    from typing import Any

    from chat.models import Message


@dataclass(frozen=True)
class AttachmentDescriptor:
    """Opaque attachment reference. The blob itself lives in media storage."""

    kind: str
    url: str
    name: str = ""

    def as_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "url": self.url, "name": self.name}


@dataclass(frozen=True)
class PollDefinition:
    """A poll to create together with its message."""

    question: str
    options: tuple[str, ...]


@dataclass
class MessagePayload:
    """
    Validated content of a new message.

    At least one of body, attachment or poll must be present; MessageStore
    enforces that again at the storage boundary.
    """

    body: str = ""
    attachment: AttachmentDescriptor | None = None
    poll: PollDefinition | None = None
    reply_to_id: int | None = None
    forwarded_from_id: int | None = None
    forwarded_from_author_name: str = ""
    client_message_id: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.body and self.attachment is None and self.poll is None


def sanitize_attachment(raw: dict[str, Any] | None) -> AttachmentDescriptor | None:
    """
    Reduce a client attachment descriptor to {kind, url, name}.

    Unknown keys are dropped. Kind aliases (``voice`` → ``audio``) are
    normalized. Kind and url are required.

    Raises:
        ValidationError: INVALID_ATTACHMENT when kind or url is unusable
    """
    if not raw:
        return None

    kind = str(raw.get("kind") or "").strip().lower()
    kind = ATTACHMENT_CONFIG.KIND_ALIASES.get(kind, kind)
    url = str(raw.get("url") or "").strip()
    name = str(raw.get("name") or "").strip()

    errors: dict[str, list[str]] = {}
    if kind not in AttachmentKind.values:
        errors["kind"] = [
            f"Must be one of: {', '.join(AttachmentKind.values)}."
        ]
    if not url:
        errors["url"] = ["This field is required."]
    elif len(url) > ATTACHMENT_CONFIG.MAX_URL_LENGTH:
        errors["url"] = [f"Must be at most {ATTACHMENT_CONFIG.MAX_URL_LENGTH} characters."]
    if errors:
        raise ValidationError(
            "Invalid attachment",
            error_code="INVALID_ATTACHMENT",
            details=errors,
        )

    return AttachmentDescriptor(
        kind=kind,
        url=url,
        name=name[: ATTACHMENT_CONFIG.MAX_NAME_LENGTH],
    )


def validate_poll(raw: dict[str, Any] | None) -> PollDefinition | None:
    """
    Validate a poll definition.

    Blank options are discarded before counting.

    Raises:
        ValidationError: INVALID_POLL on empty question or option count
            outside MIN_OPTIONS..MAX_OPTIONS
    """
    if not raw:
        return None

    question = str(raw.get("question") or "").strip()
    raw_options = raw.get("options") or []
    if not isinstance(raw_options, (list, tuple)):
        raise ValidationError(
            "Invalid poll",
            error_code="INVALID_POLL",
            details={"options": ["Must be a list of strings."]},
        )
    options = tuple(
        str(option).strip() for option in raw_options if str(option).strip()
    )

    errors: dict[str, list[str]] = {}
    if not question:
        errors["question"] = ["This field is required."]
    elif len(question) > POLL_CONFIG.MAX_QUESTION_LENGTH:
        errors["question"] = [
            f"Must be at most {POLL_CONFIG.MAX_QUESTION_LENGTH} characters."
        ]
    if not POLL_CONFIG.MIN_OPTIONS <= len(options) <= POLL_CONFIG.MAX_OPTIONS:
        errors["options"] = [
            f"Provide between {POLL_CONFIG.MIN_OPTIONS} and "
            f"{POLL_CONFIG.MAX_OPTIONS} options."
        ]
    elif any(len(option) > POLL_CONFIG.MAX_OPTION_LENGTH for option in options):
        errors["options"] = [
            f"Options must be at most {POLL_CONFIG.MAX_OPTION_LENGTH} characters."
        ]
    if errors:
        raise ValidationError("Invalid poll", error_code="INVALID_POLL", details=errors)

    return PollDefinition(question=question, options=options)


def build_payload(data: dict[str, Any]) -> MessagePayload:
    """
    Build a MessagePayload from request data.

    Expected keys (all optional): content, attachment, poll, reply_to,
    forwarded_from, client_message_id.

    Raises:
        ValidationError: on malformed attachment, poll or overlong body
    """
    body = (data.get("content") or "").strip()
    if len(body) > MESSAGE_CONFIG.MAX_CONTENT_LENGTH:
        raise ValidationError(
            "Message is too long",
            error_code="VALIDATION_ERROR",
            details={
                "content": [
                    f"Must be at most {MESSAGE_CONFIG.MAX_CONTENT_LENGTH} characters."
                ]
            },
        )

    return MessagePayload(
        body=body,
        attachment=sanitize_attachment(data.get("attachment")),
        poll=validate_poll(data.get("poll")),
        reply_to_id=data.get("reply_to"),
        forwarded_from_id=data.get("forwarded_from"),
        client_message_id=data.get("client_message_id") or None,
    )


def build_snippet(message: Message) -> str:
    """
    Short preview of a message for reply references.

    Tombstones yield the deleted placeholder; attachment-only and poll-only
    messages yield a bracketed label.
    """
    if message.is_deleted:
        return MESSAGE_CONFIG.DELETED_PLACEHOLDER

    limit = MESSAGE_CONFIG.REPLY_SNIPPET_LENGTH
    if message.body:
        text = " ".join(message.body.split())
        return text if len(text) <= limit else text[: limit - 1] + "…"
    if message.has_attachment:
        label = message.attachment_name or message.attachment_kind
        return f"[{message.attachment_kind}] {label}"[:limit]
    if message.has_poll:
        return f"[poll] {message.poll.question}"[:limit]
    return ""
