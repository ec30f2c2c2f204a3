"""Pytest fixtures for unit tests requiring IMAP and store fakes.

What:
  Make ``tests/unit`` importable for the shared fakes and expose fixtures for
  an IMAP client backed by :class:`FakeImapBackend` and an in-memory
  :class:`~syncback.store.message_store.MessageStore`.

Why:
  Sent-copy handling talks to both the IMAP server and the local store; fakes
  keep those interactions deterministic and inspectable.

How:
  Monkeypatch ``syncback.imap.client.IMAPClient`` to return a fresh backend and
  yield the context-managed client so login/logout mirror production.
"""

import sys
from pathlib import Path

import pytest

from syncback.imap.client import ImapConfig, SyncbackImapClient
from syncback.store.message_store import MessageStore

UNIT_DIR = Path(__file__).resolve().parent
if str(UNIT_DIR) not in sys.path:
    sys.path.insert(0, str(UNIT_DIR))

from fakes import FakeImapBackend


@pytest.fixture
def imap_client(monkeypatch: pytest.MonkeyPatch):
    """Yield ``(SyncbackImapClient, FakeImapBackend)`` for a fresh fake server."""

    backend = FakeImapBackend()
    monkeypatch.setattr("syncback.imap.client.IMAPClient", lambda host, port, ssl: backend)
    config = ImapConfig(host="localhost", username="user", password="pass")
    with SyncbackImapClient(config) as client:
        yield client, backend


@pytest.fixture
def store():
    """Yield an empty in-memory message store."""

    with MessageStore(":memory:") as message_store:
        yield message_store
