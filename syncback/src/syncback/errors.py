"""Error taxonomy shared by syncback tasks and their collaborators.

What:
  Define the exception hierarchy raised by the sent-folder reconciler, the task
  dispatcher, and the IMAP/storage collaborators they drive.

Why:
  The task scheduler decides whether to retry, dead-letter, or surface a
  failure. It can only do that when every failure is classified up front, so
  each error type carries a ``retryable`` hint next to its message.

How:
  A single :class:`SyncbackError` base stores the hint; subclasses fix the
  default for their category. :class:`NotFoundError` additionally keeps the
  identifier that failed to resolve.

Interfaces:
  :class:`SyncbackError`, :class:`ConfigurationError`, :class:`NotFoundError`,
  :class:`DuplicateCleanupError`, :class:`InsertionError`,
  :class:`UnsupportedTaskError`.

Invariants & Safety:
  - Configuration and lookup failures are never retryable.
  - :class:`DuplicateCleanupError` is recoverable and must not escape the
    reconciler.
"""
from __future__ import annotations

from typing import Optional


class SyncbackError(Exception):
    """Base class for every failure classified by syncback."""

    retryable: bool = False

    def __init__(self, message: str, *, retryable: Optional[bool] = None) -> None:
        super().__init__(message)
        if retryable is not None:
            self.retryable = retryable


class ConfigurationError(SyncbackError):
    """Required account or runtime context is missing."""


class NotFoundError(SyncbackError):
    """A referenced record does not exist in the message store.

    Attributes:
      message_id: Identifier that failed to resolve.
    """

    def __init__(self, message: str, *, message_id: str) -> None:
        super().__init__(message)
        self.message_id = message_id


class DuplicateCleanupError(SyncbackError):
    """Provider-created sent duplicates could not be removed."""

    retryable = True


class InsertionError(SyncbackError):
    """The canonical sent copy could not be built or stored."""

    retryable = True


class UnsupportedTaskError(SyncbackError, ValueError):
    """The dispatcher received a task kind with no registered handler."""
