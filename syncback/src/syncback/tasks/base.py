"""Task kinds, execution context, and dispatch for syncback requests.

What:
  Model syncback requests as a tagged union (``kind`` plus ``props``) and route
  each one to the handler registered for its kind.

Why:
  The scheduler only knows how to queue and retry requests; it must not know
  how each kind is executed. A registry keyed by :class:`TaskKind` keeps that
  boundary explicit and makes unknown kinds fail loudly instead of silently
  doing nothing.

How:
  :class:`TaskContext` carries the account and logger of the current run.
  Handlers satisfy :class:`TaskHandler` structurally. :class:`TaskDispatcher`
  keeps the kind-to-handler mapping and wraps each execution with structured
  log records.

Interfaces:
  :class:`TaskKind`, :class:`TaskContext`, :class:`SyncbackRequest`,
  :class:`TaskHandler`, :class:`TaskDispatcher`.

Invariants & Safety:
  - Exactly one handler is registered per kind.
  - Errors raised by handlers propagate unchanged to the scheduler.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Protocol

from ..errors import ConfigurationError, SyncbackError, UnsupportedTaskError
from ..models import Account
from ..utils.logging import JsonLogger, get_logger


class TaskKind(str, Enum):
    """Syncback request kinds understood by this package."""

    ENSURE_MESSAGE_IN_SENT_FOLDER = "EnsureMessageInSentFolder"


@dataclass(frozen=True)
class TaskContext:
    """Per-run context handed to task handlers and their collaborators.

    Attributes:
      account: Account whose mailbox is being modified; ``None`` when the
        connection could not be associated with an account.
      logger: Structured logger for the run.
    """

    account: Optional[Account]
    logger: JsonLogger = field(default_factory=lambda: get_logger("syncback.tasks"))

    def require_account(self) -> Account:
        """Return :attr:`account` or raise :class:`ConfigurationError`."""

        if self.account is None:
            raise ConfigurationError("account not available")
        return self.account


@dataclass(frozen=True)
class SyncbackRequest:
    """Queued unit of syncback work.

    Attributes:
      kind: Which handler executes the request.
      props: Kind-specific payload as stored by the scheduler.
      id: Scheduler-assigned identifier, used only for logging.
    """

    kind: TaskKind
    props: Mapping[str, Any] = field(default_factory=dict)
    id: Optional[str] = None

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "SyncbackRequest":
        """Parse ``{"type": ..., "props": {...}, "id": ...}`` payloads.

        Raises:
          UnsupportedTaskError: When ``type`` names no known kind.
        """

        raw_kind = payload.get("type", payload.get("kind"))
        try:
            kind = TaskKind(raw_kind)
        except ValueError as exc:
            raise UnsupportedTaskError(f"Unsupported task {raw_kind}") from exc
        return cls(kind=kind, props=dict(payload.get("props") or {}), id=payload.get("id"))


class TaskHandler(Protocol):
    """Structural interface implemented by every task handler."""

    description: str
    affects_message_uids: bool

    def execute(self, context: TaskContext, request: SyncbackRequest) -> Dict[str, Any]:
        """Run ``request`` and return a serializable result."""


class TaskDispatcher:
    """Route syncback requests to the handler registered for their kind."""

    def __init__(self, handlers: Optional[Mapping[TaskKind, TaskHandler]] = None) -> None:
        self._handlers: Dict[TaskKind, TaskHandler] = {}
        for kind, handler in (handlers or {}).items():
            self.register(kind, handler)

    def register(self, kind: TaskKind, handler: TaskHandler) -> None:
        if kind in self._handlers:
            raise ValueError(f"handler already registered for {kind.value}")
        self._handlers[kind] = handler

    def handler_for(self, kind: TaskKind) -> TaskHandler:
        try:
            return self._handlers[kind]
        except KeyError:
            raise UnsupportedTaskError(f"Unsupported task {kind.value}") from None

    def execute(self, context: TaskContext, request: SyncbackRequest) -> Dict[str, Any]:
        """Execute ``request`` with its handler.

        Raises:
          UnsupportedTaskError: When no handler is registered for the kind.
          SyncbackError: Whatever the handler raises, unchanged.
        """

        handler = self.handler_for(request.kind)
        context.logger.info("Running syncback task", task=handler.description, task_id=request.id)
        try:
            result = handler.execute(context, request)
        except SyncbackError as exc:
            context.logger.error(
                "Syncback task failed",
                task=handler.description,
                task_id=request.id,
                retryable=exc.retryable,
                error=exc,
            )
            raise
        context.logger.info("Syncback task succeeded", task=handler.description, task_id=request.id)
        return result
