"""Guarantee exactly one copy of a sent message in the account's Sent folder.

What:
  Reconcile the provider mailbox with the canonical message record after a
  send: remove the per-recipient copies Gmail files automatically during a
  fan-out send, and upload a single canonical copy wherever the provider did
  not leave exactly one.

Why:
  Gmail files a sent copy for every SMTP transaction. When a message is sent
  once per recipient, the user would otherwise see one copy per recipient.
  Every other provider files nothing, so without an upload the message would
  be missing from Sent altogether. Users must see exactly one copy.

How:
  :class:`SentFolderReconciler` receives its collaborators (message lookup,
  duplicate deleter, MIME builder, sent-copy storer, logger) through the
  constructor and applies this decision table:

  ======== ================== ================== ==============
  provider sent_per_recipient cleanup duplicates insert copy
  ======== ================== ================== ==============
  gmail    False              no                 no
  gmail    True               yes (best-effort)  yes
  other    False              no                 yes
  other    True               no                 yes
  ======== ================== ================== ==============

  Cleanup returns a :class:`CleanupOutcome` rather than raising, so the
  best-effort contract is visible in its signature. Insertion failures
  propagate unchanged.

Interfaces:
  :class:`MessageLookup`, :class:`DuplicateDeleter`, :class:`RawMessageBuilder`,
  :class:`SentCopyStorer`, :class:`CleanupOutcome`,
  :class:`SentFolderReconciler`, :class:`EnsureMessageInSentFolder`.

Invariants & Safety:
  - A missing account or message fails before any collaborator is invoked.
  - Steps run strictly in order; insertion observes the outcome of cleanup.
  - The canonical record is never modified; the returned snapshot is the
    stored record as read.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from ..errors import ConfigurationError, DuplicateCleanupError, NotFoundError
from ..models import CanonicalMessage, Provider, ReconciliationRequest
from ..utils.logging import JsonLogger, get_logger
from .base import SyncbackRequest, TaskContext


class MessageLookup(Protocol):
    def find_message(self, message_id: str) -> Optional[CanonicalMessage]:
        """Return the message with folders and labels loaded, or ``None``."""


class DuplicateDeleter(Protocol):
    def delete_provider_sent_duplicates(self, context: TaskContext, header_message_id: str) -> Optional[int]:
        """Delete every mailbox entry whose Message-ID is ``header_message_id``."""


class RawMessageBuilder(Protocol):
    def build_raw_message(self, context: TaskContext, message: CanonicalMessage) -> bytes:
        """Serialise ``message`` to RFC 822 bytes."""


class SentCopyStorer(Protocol):
    def store_sent_copy(self, context: TaskContext, raw: bytes, header_message_id: str) -> None:
        """Store ``raw`` as the sent copy correlated by ``header_message_id``."""


@dataclass(frozen=True)
class CleanupOutcome:
    """Result of a best-effort duplicate cleanup.

    Attributes:
      deleted: Number of copies removed, when the deleter reports it.
      error: The failure that stopped cleanup, if any.
    """

    deleted: Optional[int] = None
    error: Optional[DuplicateCleanupError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SentFolderReconciler:
    """Make the Sent folder hold exactly one copy of a sent message.

    Args:
      lookup: Resolves message ids to canonical records.
      deleter: Removes provider-created duplicates.
      builder: Builds the raw MIME payload of the canonical copy.
      storer: Uploads the canonical copy.
      logger: Structured logger; defaults to the ``syncback.sent`` component.
    """

    def __init__(
        self,
        *,
        lookup: MessageLookup,
        deleter: DuplicateDeleter,
        builder: RawMessageBuilder,
        storer: SentCopyStorer,
        logger: Optional[JsonLogger] = None,
    ) -> None:
        self._lookup = lookup
        self._deleter = deleter
        self._builder = builder
        self._storer = storer
        self._logger = logger or get_logger("syncback.sent")

    def reconcile(self, context: TaskContext, request: ReconciliationRequest) -> Dict[str, Any]:
        """Reconcile the Sent folder for ``request`` and return the snapshot.

        Raises:
          ConfigurationError: The context has no account or an unknown
            provider.
          NotFoundError: ``request.message_id`` does not resolve.
          InsertionError: Building or storing the canonical copy failed.
        """

        if context.account is None:
            raise ConfigurationError("EnsureMessageInSentFolder: account not available")
        try:
            provider = Provider(context.account.provider)
        except ValueError as exc:
            raise ConfigurationError(
                f"EnsureMessageInSentFolder: unknown provider {context.account.provider!r}"
            ) from exc

        message = self._lookup.find_message(request.message_id)
        if message is None:
            raise NotFoundError(
                f"Couldn't find message {request.message_id} to stuff in sent folder",
                message_id=request.message_id,
            )
        header_message_id = message.header_message_id
        auto_copy = provider.auto_creates_sent_copy

        if auto_copy and request.sent_per_recipient:
            outcome = self._cleanup_duplicates(context, header_message_id)
            if not outcome.ok:
                self._logger.error(
                    "Failed to delete provider sent copies",
                    message_id=message.id,
                    header_message_id=header_message_id,
                    provider=provider.value,
                    error=outcome.error,
                )

        if not auto_copy or request.sent_per_recipient:
            raw = self._builder.build_raw_message(context, message)
            self._storer.store_sent_copy(context, raw, header_message_id)
            self._logger.info(
                "Stored canonical sent copy",
                message_id=message.id,
                header_message_id=header_message_id,
                provider=provider.value,
                size=len(raw),
            )
        else:
            self._logger.info(
                "Provider sent copy kept",
                message_id=message.id,
                header_message_id=header_message_id,
                provider=provider.value,
            )

        return message.to_json()

    def _cleanup_duplicates(self, context: TaskContext, header_message_id: str) -> CleanupOutcome:
        try:
            deleted = self._deleter.delete_provider_sent_duplicates(context, header_message_id)
        except DuplicateCleanupError as exc:
            return CleanupOutcome(error=exc)
        except Exception as exc:
            error = DuplicateCleanupError(str(exc) or type(exc).__name__)
            error.__cause__ = exc
            return CleanupOutcome(error=error)
        return CleanupOutcome(deleted=deleted)


class EnsureMessageInSentFolder:
    """Task handler for :attr:`~syncback.tasks.base.TaskKind.ENSURE_MESSAGE_IN_SENT_FOLDER`."""

    description = "EnsureMessageInSentFolder"
    affects_message_uids = False

    def __init__(self, reconciler: SentFolderReconciler) -> None:
        self._reconciler = reconciler

    def execute(self, context: TaskContext, request: SyncbackRequest) -> Dict[str, Any]:
        try:
            reconciliation = ReconciliationRequest.from_props(request.props)
        except ValueError as exc:
            raise ConfigurationError(f"{self.description}: {exc}") from exc
        return self._reconciler.reconcile(context, reconciliation)
