"""
Module: syncback.__init__

What:
  Aggregate package exports for syncback, the worker that pushes local mailbox
  changes back to mail providers.

Interfaces:
  - config: Runtime configuration schema and loader.
  - imap: Rate-limited IMAP client and sent-copy operations.
  - store: SQLite message store.
  - tasks: Task dispatch and sent-folder reconciliation.
  - utils: Structured logging.
"""

__all__ = [
    "config",
    "imap",
    "store",
    "tasks",
    "utils",
]
