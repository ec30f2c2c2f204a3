"""Local message store facade."""

from .message_store import MessageStore

__all__ = ["MessageStore"]
