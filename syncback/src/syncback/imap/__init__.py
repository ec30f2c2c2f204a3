"""Facade for the IMAP integration layer.

What:
  Surface :class:`ImapConfig`, the rate-limited :class:`SyncbackImapClient`
  context manager, and :class:`ImapSentMailbox`, which implements duplicate
  removal and sent-copy storage on top of it.

Invariants & Safety:
  - Consumers operate in UID mode to avoid race conditions.
  - All IMAP operations go through :class:`SyncbackImapClient` to inherit
    rate limiting and folder normalisation.
"""

from .client import ImapConfig, SyncbackImapClient
from .sent_copies import ImapSentMailbox

__all__ = ["ImapConfig", "ImapSentMailbox", "SyncbackImapClient"]
