"""Rebuild RFC 822 payloads from canonical message records.

What:
  Turn a :class:`~syncback.models.CanonicalMessage` into the raw bytes that
  are appended to the provider's Sent folder.

Why:
  The uploaded copy must look like the message recipients received: same
  headers, same ``Message-ID`` (so later cleanup passes can find it), and the
  HTML body with a plain-text alternative for clients that prefer it.

How:
  Build an :class:`email.message.EmailMessage` with the default policy, set
  addressing and threading headers, derive a text rendering of the HTML body,
  and serialise with ``as_bytes``. Bcc is kept because the copy is only seen
  by the sender.

Interfaces:
  :class:`MimeBuilder`, :func:`html_to_text`.

Invariants & Safety:
  - The ``Message-ID`` header always equals ``header_message_id``.
  - Any failure while building surfaces as
    :class:`~syncback.errors.InsertionError`.
"""
from __future__ import annotations

import html
import re
from email import policy
from email.errors import MessageError
from email.message import EmailMessage
from email.utils import format_datetime, formataddr
from typing import Iterable, Optional

from .errors import InsertionError
from .models import CanonicalMessage, Participant
from .tasks.base import TaskContext


_BLOCK_TAGS = re.compile(r"<\s*(br|/p|/div|/li|/tr|/h[1-6])\b[^>]*>", re.IGNORECASE)
_DROP_BLOCKS = re.compile(r"<\s*(script|style)\b.*?<\s*/\s*\1\s*>", re.IGNORECASE | re.DOTALL)
_TAGS = re.compile(r"<[^>]+>")


def html_to_text(body: str) -> str:
    """Return a readable plain-text rendering of an HTML ``body``."""

    text = _DROP_BLOCKS.sub("", body)
    text = _BLOCK_TAGS.sub("\n", text)
    text = _TAGS.sub("", text)
    text = html.unescape(text)
    lines = [line.rstrip() for line in text.splitlines()]
    return "\n".join(lines).strip() + "\n"


def _format(participants: Iterable[Participant]) -> Optional[str]:
    values = [formataddr((p.name, p.email)) if p.name else p.email for p in participants]
    return ", ".join(values) if values else None


class MimeBuilder:
    """Serialise canonical messages for upload.

    Args:
      fallback_from: Use the account address as ``From`` when the message has
        no sender recorded.
    """

    def __init__(self, *, fallback_from: bool = True) -> None:
        self._fallback_from = fallback_from

    def build_raw_message(self, context: TaskContext, message: CanonicalMessage) -> bytes:
        """Return the RFC 822 bytes for ``message``.

        Raises:
          InsertionError: If headers or body cannot be encoded.
        """

        try:
            return self._build(context, message).as_bytes(policy=policy.SMTP)
        except (MessageError, ValueError, TypeError, LookupError) as exc:
            raise InsertionError(f"Could not build MIME for message {message.id}: {exc}") from exc

    def _build(self, context: TaskContext, message: CanonicalMessage) -> EmailMessage:
        mime = EmailMessage(policy=policy.default)
        sender = _format(message.from_)
        if sender is None and self._fallback_from and context.account is not None:
            sender = context.account.email_address
        headers = (
            ("From", sender),
            ("To", _format(message.to)),
            ("Cc", _format(message.cc)),
            ("Bcc", _format(message.bcc)),
            ("Reply-To", _format(message.reply_to)),
            ("Subject", message.subject),
            ("Date", format_datetime(message.date) if message.date else None),
            ("Message-ID", message.header_message_id),
            ("In-Reply-To", message.in_reply_to),
            ("References", " ".join(message.references) or None),
        )
        for name, value in headers:
            if value:
                mime[name] = value
        mime.set_content(html_to_text(message.body))
        if message.body:
            mime.add_alternative(message.body, subtype="html")
        return mime
