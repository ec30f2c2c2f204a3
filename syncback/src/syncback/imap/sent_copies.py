"""Delete and store sent copies of a message on the IMAP server.

What:
  Implement the two mailbox collaborators of sent-folder reconciliation:
  removing the copies Gmail filed automatically during a per-recipient send,
  and uploading the single canonical copy.

Why:
  Where a sent copy lives depends on the provider. Gmail keeps every message
  in All Mail and marks sent ones with the ``\\Sent`` label; every other
  provider expects the copy in a Sent folder. Keeping those rules here lets the
  reconciler stay provider-agnostic apart from its decision table.

How:
  :class:`ImapSentMailbox` resolves folders and labels through the message
  store (falling back to configured names), then drives
  :class:`~syncback.imap.client.SyncbackImapClient`. IMAP failures are wrapped
  into :class:`~syncback.errors.DuplicateCleanupError` or
  :class:`~syncback.errors.InsertionError` so the reconciler can classify them.

Interfaces:
  :class:`ImapSentMailbox`.

Invariants & Safety:
  - Messages are matched only by their ``Message-ID`` header.
  - Duplicate removal moves messages to Trash before expunging them there,
    because Gmail only removes a message from All Mail once it is trashed.
  - For non-Gmail providers an existing copy with the same ``Message-ID``
    makes :meth:`ImapSentMailbox.store_sent_copy` a no-op, so retries do not
    double-insert.
"""
from __future__ import annotations

from typing import Optional

from imapclient.exceptions import IMAPClientError

from ..config.schema import FolderDefaults
from ..errors import DuplicateCleanupError, InsertionError
from ..models import Account, Provider
from ..store.message_store import MessageStore
from ..tasks.base import TaskContext
from ..utils.logging import JsonLogger, get_logger
from .client import SyncbackImapClient


class ImapSentMailbox:
    """Provider-aware access to an account's sent messages.

    Args:
      client: Connected IMAP client for the account.
      store: Message store used to resolve folder and label roles.
      folders: Default folder names for roles missing from the store.
      logger: Structured logger; defaults to the ``syncback.imap`` component.
    """

    def __init__(
        self,
        client: SyncbackImapClient,
        store: MessageStore,
        *,
        folders: Optional[FolderDefaults] = None,
        logger: Optional[JsonLogger] = None,
    ) -> None:
        self._client = client
        self._store = store
        self._folders = folders or FolderDefaults()
        self._logger = logger or get_logger("syncback.imap")

    def _folder_name(self, account: Account, role: str) -> Optional[str]:
        folder = self._store.find_folder_by_role(account.id, role)
        if folder is not None:
            return folder.name
        return self._folders.for_role(role, account.provider)

    def delete_provider_sent_duplicates(self, context: TaskContext, header_message_id: str) -> int:
        """Remove every Gmail copy whose ``Message-ID`` is ``header_message_id``.

        What:
          Moves matching messages from All Mail to Trash, then deletes and
          expunges them from Trash.

        Returns:
          Number of messages expunged from Trash. Always ``0`` for providers
          that do not create sent copies.

        Raises:
          DuplicateCleanupError: When Trash or All Mail cannot be resolved or
            an IMAP command fails.
        """

        account = context.require_account()
        if account.provider != Provider.GMAIL:
            return 0
        trash = self._folder_name(account, "trash")
        all_mail = self._folder_name(account, "all")
        if not trash or not self._client.has_mailbox(trash):
            raise DuplicateCleanupError("Could not load trash folder")
        if not all_mail or not self._client.has_mailbox(all_mail):
            raise DuplicateCleanupError("Could not load all mail folder")
        try:
            with self._client.session(all_mail):
                uids = self._client.search_message_id(header_message_id)
                self._client.move(uids, trash)
            with self._client.session(trash):
                trashed = self._client.search_message_id(header_message_id)
                self._client.delete(trashed)
        except (IMAPClientError, OSError, RuntimeError) as exc:
            raise DuplicateCleanupError(f"Failed to delete Gmail sent messages: {exc}") from exc
        self._logger.info(
            "Deleted provider sent copies",
            account_id=account.id,
            header_message_id=header_message_id,
            moved=len(uids),
            expunged=len(trashed),
        )
        return len(trashed)

    def store_sent_copy(self, context: TaskContext, raw: bytes, header_message_id: str) -> None:
        """Upload ``raw`` as the account's sent copy of ``header_message_id``.

        What:
          On Gmail, appends to All Mail and applies the Sent label to the
          appended message. Elsewhere, appends to the Sent folder unless a copy
          with the same ``Message-ID`` is already there.

        Raises:
          InsertionError: When the target folder or label cannot be resolved,
            or an IMAP command fails.
        """

        account = context.require_account()
        try:
            if account.provider == Provider.GMAIL:
                self._store_gmail(account, raw, header_message_id)
            else:
                self._store_in_sent_folder(account, raw, header_message_id)
        except (IMAPClientError, OSError, RuntimeError) as exc:
            raise InsertionError(f"Failed to save sent message: {exc}") from exc

    def _store_gmail(self, account: Account, raw: bytes, header_message_id: str) -> None:
        sent_label = self._store.find_label_by_role(account.id, "sent")
        all_mail = self._folder_name(account, "all")
        if sent_label is None or not all_mail or not self._client.has_mailbox(all_mail):
            raise InsertionError("Can't find sent label or all mail folder - not saving message")
        with self._client.session(all_mail):
            self._client.append(all_mail, raw)
            uids = self._client.search_message_id(header_message_id)
            # Also matches fan-out copies left behind when cleanup failed
            self._client.add_gmail_labels(uids, [sent_label.imap_identifier])
        self._logger.info(
            "Stored sent copy in all mail",
            account_id=account.id,
            header_message_id=header_message_id,
            labelled=len(uids),
        )

    def _store_in_sent_folder(self, account: Account, raw: bytes, header_message_id: str) -> None:
        sent = self._folder_name(account, "sent")
        if not sent or not self._client.has_mailbox(sent):
            raise InsertionError(f"Can't find sent folder {sent!r} - not saving message")
        with self._client.session(sent):
            if self._client.search_message_id(header_message_id):
                self._logger.info(
                    "Sent copy already present",
                    account_id=account.id,
                    header_message_id=header_message_id,
                )
                return
            self._client.append(sent, raw)
        self._logger.info(
            "Stored sent copy",
            account_id=account.id,
            header_message_id=header_message_id,
            folder=sent,
        )
