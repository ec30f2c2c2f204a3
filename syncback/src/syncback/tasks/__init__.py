"""Syncback task handlers and dispatch.

What:
  Re-export the request/context types, the dispatcher, and the sent-folder
  reconciliation handler.
"""

from .base import SyncbackRequest, TaskContext, TaskDispatcher, TaskHandler, TaskKind
from .ensure_sent import CleanupOutcome, EnsureMessageInSentFolder, SentFolderReconciler

__all__ = [
    "CleanupOutcome",
    "EnsureMessageInSentFolder",
    "SentFolderReconciler",
    "SyncbackRequest",
    "TaskContext",
    "TaskDispatcher",
    "TaskHandler",
    "TaskKind",
]
