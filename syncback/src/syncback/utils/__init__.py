"""Expose the public utility surface for syncback.

What:
  Re-export the structured logging helpers so callers can write
  ``from syncback.utils import get_logger`` without knowing module layout.
"""

from .logging import JsonLogger, get_logger

__all__ = [
    "JsonLogger",
    "get_logger",
]
