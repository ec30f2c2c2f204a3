"""Plain data records used by syncback tasks.

What:
  Describe accounts, folders, labels, canonical messages, and reconciliation
  requests as frozen dataclasses.

Why:
  The reconciler reads these records but never mutates them. Freezing them
  makes that contract explicit and lets snapshots be handed back to the
  scheduler without defensive copies.

How:
  :class:`Provider` enumerates the closed provider set; only
  :attr:`Provider.GMAIL` creates sent copies on its own. Messages expose
  :meth:`CanonicalMessage.to_json` to produce the serializable snapshot
  returned by tasks.

Interfaces:
  :class:`Provider`, :class:`Account`, :class:`Participant`, :class:`Folder`,
  :class:`Label`, :class:`CanonicalMessage`, :class:`ReconciliationRequest`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple


class Provider(str, Enum):
    """Mail providers an account can be attached to."""

    GMAIL = "gmail"
    IMAP = "imap"
    OFFICE365 = "office365"
    YAHOO = "yahoo"
    ICLOUD = "icloud"
    FASTMAIL = "fastmail"

    @property
    def auto_creates_sent_copy(self) -> bool:
        """Whether the provider files a sent copy itself when mail is sent."""

        return self is Provider.GMAIL


@dataclass(frozen=True)
class Account:
    """Mail account whose mailbox the task operates on."""

    id: str
    name: str
    email_address: str
    provider: Provider


@dataclass(frozen=True)
class Participant:
    """Name/address pair as stored on message headers."""

    email: str
    name: str = ""

    def to_json(self) -> Dict[str, str]:
        return {"name": self.name, "email": self.email}


@dataclass(frozen=True)
class Folder:
    """IMAP folder known to the message store."""

    id: str
    account_id: str
    name: str
    role: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "role": self.role}


@dataclass(frozen=True)
class Label:
    """Gmail label known to the message store."""

    id: str
    account_id: str
    name: str
    role: Optional[str] = None

    @property
    def imap_identifier(self) -> str:
        """Return the name Gmail expects in ``X-GM-LABELS`` commands.

        System labels (those with a role) use the backslash-prefixed form, e.g.
        ``\\Sent``; user labels are addressed by name.
        """

        if self.role:
            return f"\\{self.role.capitalize()}"
        return self.name

    def to_json(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "role": self.role}


@dataclass(frozen=True)
class CanonicalMessage:
    """Authoritative local record of a sent message.

    What:
      Carries the headers and HTML body needed to rebuild the MIME payload,
      the ``header_message_id`` used to correlate provider copies, and the
      folders and labels the message currently belongs to.

    Why:
      Sent-folder reconciliation rebuilds the message from this record, so it
      must hold everything that ends up in the uploaded copy.
    """

    id: str
    account_id: str
    header_message_id: str
    subject: str = ""
    from_: Tuple[Participant, ...] = ()
    to: Tuple[Participant, ...] = ()
    cc: Tuple[Participant, ...] = ()
    bcc: Tuple[Participant, ...] = ()
    reply_to: Tuple[Participant, ...] = ()
    date: Optional[datetime] = None
    body: str = ""
    in_reply_to: Optional[str] = None
    references: Tuple[str, ...] = ()
    thread_id: Optional[str] = None
    unread: bool = False
    starred: bool = False
    folders: Tuple[Folder, ...] = field(default_factory=tuple)
    labels: Tuple[Label, ...] = field(default_factory=tuple)

    def to_json(self) -> Dict[str, Any]:
        """Return a plain, JSON-serializable snapshot of the record."""

        return {
            "id": self.id,
            "accountId": self.account_id,
            "headerMessageId": self.header_message_id,
            "subject": self.subject,
            "from": [p.to_json() for p in self.from_],
            "to": [p.to_json() for p in self.to],
            "cc": [p.to_json() for p in self.cc],
            "bcc": [p.to_json() for p in self.bcc],
            "replyTo": [p.to_json() for p in self.reply_to],
            "date": self.date.isoformat() if self.date else None,
            "body": self.body,
            "inReplyTo": self.in_reply_to,
            "references": list(self.references),
            "threadId": self.thread_id,
            "unread": self.unread,
            "starred": self.starred,
            "folders": [f.to_json() for f in self.folders],
            "labels": [label.to_json() for label in self.labels],
        }


@dataclass(frozen=True)
class ReconciliationRequest:
    """Input of a single sent-folder reconciliation."""

    message_id: str
    sent_per_recipient: bool = False

    @classmethod
    def from_props(cls, props: Mapping[str, Any]) -> "ReconciliationRequest":
        """Build a request from task props in either camelCase or snake_case."""

        message_id = props.get("messageId", props.get("message_id"))
        if message_id is None:
            raise ValueError("task props are missing messageId")
        sent_per_recipient = props.get("sentPerRecipient", props.get("sent_per_recipient", False))
        return cls(message_id=str(message_id), sent_per_recipient=bool(sent_per_recipient))


def participants(entries: List[Mapping[str, str]]) -> Tuple[Participant, ...]:
    """Convert ``[{"name": ..., "email": ...}]`` lists into participants."""

    return tuple(Participant(email=entry["email"], name=entry.get("name", "")) for entry in entries)
