"""Structured JSON logging for syncback tasks.

What:
  Offer a small facade over text streams so every syncback component emits
  single-line JSON records with consistent fields and with message content
  removed.

Why:
  Syncback workers run unattended next to the task scheduler; operators grep
  and ship their logs. A fixed layout keeps parsing trivial while preventing
  subjects, bodies, or credentials from leaking into shared log storage.

How:
  :class:`JsonLogger` stores a target stream, a component tag, and a minimum
  severity. ``extra`` keyword arguments are scrubbed recursively before being
  serialised with :mod:`json`. Exceptions passed as ``error=`` are rendered as
  their type and message.

Interfaces:
  :class:`JsonLogger`, :func:`get_logger`.

Invariants & Safety:
  - Every record includes ``ts``, ``lvl``, ``msg`` and ``component``.
  - Sensitive keys (``subject``, ``body``, ``snippet``, ``password``) are
    replaced with ``[redacted]`` even inside nested dictionaries.
  - Streams are flushed after every write.
"""
from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


REDACTED = "[redacted]"
SENSITIVE_KEYS = frozenset({"subject", "body", "snippet", "password"})
LEVELS = {"DEBUG": 10, "INFO": 20, "WARN": 30, "ERROR": 40}


@dataclass
class JsonLogger:
    """Structured JSON logger with automatic redaction.

    What:
      Emits one JSON object per line including timestamp, severity, component
      tag, and supplemental fields.

    Why:
      Tasks receive the logger as an injected collaborator; a single concrete
      type keeps the record schema uniform and lets tests capture output by
      swapping the stream.

    How:
      :meth:`log` builds the canonical payload, merges redacted extras, and
      writes it. :meth:`debug`, :meth:`info`, :meth:`warning` and :meth:`error`
      are thin severity wrappers.
    """

    stream: Any = field(default_factory=lambda: sys.stdout)
    component: str = "syncback"
    level: str = "INFO"

    def log(self, level: str, message: str, *, extra: Optional[Dict[str, Any]] = None) -> None:
        """Emit a structured JSON log entry when ``level`` passes the threshold.

        Args:
          level: Severity name (``"debug"``, ``"info"``, ``"warn"``, ``"error"``).
          message: Core log message.
          extra: Optional context dictionary that will be redacted recursively.
        """

        level = level.upper()
        if LEVELS.get(level, 0) < LEVELS.get(self.level.upper(), 0):
            return
        payload: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "lvl": level,
            "msg": message,
            "component": self.component,
        }
        if extra:
            payload.update(self._redact(extra))
        json.dump(payload, self.stream, separators=(",", ":"), default=str)
        self.stream.write("\n")
        self.stream.flush()

    def debug(self, message: str, **kwargs: Any) -> None:
        self.log("DEBUG", message, extra=kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        """Log an informational message with structured context."""

        self.log("INFO", message, extra=kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log a warning message while enforcing redaction."""

        self.log("WARN", message, extra=kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        """Log an error entry suitable for alerting.

        An exception passed as ``error=`` is recorded as ``error`` (message) and
        ``error_type`` (class name) so the record stays JSON-serialisable.
        """

        exc = kwargs.pop("error", None)
        if isinstance(exc, BaseException):
            kwargs["error"] = str(exc)
            kwargs["error_type"] = type(exc).__name__
        elif exc is not None:
            kwargs["error"] = exc
        self.log("ERROR", message, extra=kwargs)

    def child(self, component: str) -> "JsonLogger":
        """Return a logger sharing stream and level under another component."""

        return JsonLogger(stream=self.stream, component=component, level=self.level)

    @staticmethod
    def _redact(data: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``data`` with sensitive values masked."""

        result: Dict[str, Any] = {}
        for key, value in data.items():
            if key in SENSITIVE_KEYS:
                result[key] = REDACTED
            elif isinstance(value, dict):
                result[key] = JsonLogger._redact(value)
            else:
                result[key] = value
        return result


def get_logger(component: str, *, level: str = "INFO", stream: Any = None) -> JsonLogger:
    """Construct a :class:`JsonLogger` for ``component``.

    Args:
      component: Logical subsystem name included in every record.
      level: Minimum severity to emit.
      stream: Destination stream; defaults to ``stdout``.
    """

    if stream is None:
        return JsonLogger(component=component, level=level)
    return JsonLogger(stream=stream, component=component, level=level)
