"""Stateful IMAP client with syncback guardrails.

What:
  Wrap the third-party ``imapclient`` library with configuration defaults,
  folder-name normalisation, a per-minute action limit, and context managers
  tailored to syncback tasks.

Why:
  Direct use of ``imapclient`` exposes sharp edges: delimiter quirks,
  accidental sequence-number operations, and unbounded command rates.
  Syncback tasks mutate user mailboxes (moving, deleting and appending
  messages), so every mutation goes through one audited surface.

How:
  Loads defaults from the runtime configuration, records the server delimiter
  from ``LIST``, and tracks action timestamps to enforce the configured limit.
  :meth:`SyncbackImapClient.session` switches mailboxes while restoring the
  previous selection.

Interfaces:
  :class:`ImapConfig` and :class:`SyncbackImapClient`.

Invariants & Safety:
  - All operations run in UID mode; sequence-number methods are avoided.
  - Mutating commands pass through :meth:`SyncbackImapClient._throttle`.
"""
from __future__ import annotations

import contextlib
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterable, Iterator, List, Optional, Sequence, Set

from imapclient import IMAPClient

from ..config.loader import get_runtime_config


@dataclass
class ImapConfig:
    """Connection parameters for an IMAP server.

    Attributes:
      host: IMAP hostname.
      username: Login credential.
      password: Password or app-specific token.
      port: IMAP port (defaults to 993).
      ssl: Whether to use TLS.
      folder: Mailbox selected after login.
      actions_per_minute: Upper bound on mutating commands per minute.
    """

    host: str
    username: str
    password: str
    port: int = 993
    ssl: bool = True
    folder: Optional[str] = None
    actions_per_minute: Optional[int] = None

    def __post_init__(self) -> None:
        """Populate optional fields from the runtime configuration defaults."""

        if self.folder is not None and self.actions_per_minute is not None:
            return
        settings = get_runtime_config()
        if self.folder is None:
            self.folder = settings.imap.default_mailbox
        if self.actions_per_minute is None:
            self.actions_per_minute = settings.imap.actions_per_minute


class SyncbackImapClient:
    """Context manager exposing a rate-limited IMAP workflow.

    What:
      Owns a single ``imapclient.IMAPClient`` connection and mediates mailbox
      selection and UID-based operations.

    Why:
      Ensures syncback tasks respect provider rate limits, use consistent
      mailbox naming, and recover the previous selection after excursions to
      Sent, Trash or All Mail.

    How:
      Connects lazily in :meth:`__enter__`, tracks the active folder, and
      wraps the underlying client's mutating methods behind :meth:`_throttle`.
    """

    def __init__(self, config: ImapConfig):
        self._config = config
        self._client: Optional[IMAPClient] = None
        self._delimiter: str = "/"
        self._mailboxes: Set[str] = set()
        self._selected: Optional[str] = None
        self._actions: Deque[float] = deque()

    def __enter__(self) -> "SyncbackImapClient":
        """Open the connection, log in, and select the default mailbox.

        Raises:
          RuntimeError: When the default mailbox is missing from the config.
        """

        self._client = IMAPClient(self._config.host, port=self._config.port, ssl=self._config.ssl)
        self._client.login(self._config.username, self._config.password)
        self._refresh_mailboxes()
        if self._config.folder is None:
            raise RuntimeError("Default mailbox not configured")
        self._select(self._config.folder)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._client is None:
            return
        try:
            self._client.logout()
        finally:
            self._client = None

    @property
    def client(self) -> IMAPClient:
        """Expose the underlying ``IMAPClient`` connection.

        Raises:
          RuntimeError: If accessed before :meth:`__enter__`.
        """

        if self._client is None:
            raise RuntimeError("IMAP client not connected")
        return self._client

    @property
    def config(self) -> ImapConfig:
        return self._config

    @property
    def selected(self) -> Optional[str]:
        return self._selected

    def _select(self, mailbox: str, *, readonly: bool = False) -> None:
        mailbox_name = self.normalize(mailbox)
        self.client.select_folder(mailbox_name, readonly=readonly)
        self._selected = mailbox_name

    def _refresh_mailboxes(self) -> None:
        """Synchronise the mailbox cache and delimiter with the server listing."""

        self._mailboxes.clear()
        for flags, delimiter, name in self.client.list_folders():
            if delimiter:
                decoded = delimiter.decode() if isinstance(delimiter, bytes) else str(delimiter)
                if decoded:
                    self._delimiter = decoded
            decoded_name = name.decode() if isinstance(name, bytes) else str(name)
            self._mailboxes.add(decoded_name)

    def normalize(self, mailbox: str) -> str:
        """Rewrite ``/`` separators in ``mailbox`` to the server delimiter.

        Gmail system folders such as ``[Gmail]/All Mail`` are configured with
        ``/`` and pass through unchanged on servers that use it.
        """

        delimiter = self._delimiter or "/"
        segments: List[str] = [chunk.strip() for chunk in mailbox.split("/") if chunk.strip()]
        return delimiter.join(segments)

    def has_mailbox(self, mailbox: str) -> bool:
        return self.normalize(mailbox) in self._mailboxes

    def _throttle(self) -> None:
        """Enforce the per-minute action limit before mutating the mailbox.

        Raises:
          RuntimeError: When the limit would be exceeded.
        """

        limit = self._config.actions_per_minute or 500
        now = time.monotonic()
        while self._actions and now - self._actions[0] > 60:
            self._actions.popleft()
        if len(self._actions) >= limit:
            raise RuntimeError("IMAP action rate limit exceeded")
        self._actions.append(now)

    @contextlib.contextmanager
    def session(self, mailbox: str, *, readonly: bool = False) -> Iterator[str]:
        """Select ``mailbox`` for the duration of the context manager.

        Yields:
          The normalised mailbox name.
        """

        previous = self._selected
        self._select(mailbox, readonly=readonly)
        try:
            yield self._selected or mailbox
        finally:
            if previous and previous != self._selected:
                self._select(previous, readonly=False)

    def uid_search(self, criteria: Sequence[object]) -> List[int]:
        """Run a UID search in the selected mailbox."""

        return list(self.client.search(list(criteria)))

    def search_message_id(self, header_message_id: str) -> List[int]:
        """Return UIDs in the selected mailbox whose Message-ID header matches."""

        return self.uid_search(["HEADER", "Message-ID", header_message_id])

    def move(self, uids: Iterable[int], destination: str) -> None:
        """Move ``uids`` from the selected mailbox to ``destination``."""

        uids = list(uids)
        if not uids:
            return
        self._throttle()
        self.client.move(uids, self.normalize(destination))

    def delete(self, uids: Iterable[int]) -> None:
        """Flag ``uids`` as ``\\Deleted`` and expunge the selected mailbox."""

        uids = list(uids)
        if not uids:
            return
        self._throttle()
        self.client.delete_messages(uids)
        self.client.expunge()

    def append(self, mailbox: str, raw: bytes, *, flags: Sequence[bytes] = (b"\\Seen",)) -> None:
        """Append ``raw`` RFC 822 bytes to ``mailbox`` with ``flags`` set."""

        self._throttle()
        self.client.append(self.normalize(mailbox), raw, flags=tuple(flags))

    def add_gmail_labels(self, uids: Iterable[int], labels: Sequence[str]) -> None:
        """Attach Gmail ``labels`` to ``uids`` in the selected mailbox."""

        uids = list(uids)
        if not uids:
            return
        self._throttle()
        self.client.add_gmail_labels(uids, list(labels))
