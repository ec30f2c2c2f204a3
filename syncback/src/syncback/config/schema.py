"""Pydantic models describing the syncback runtime configuration."""
from __future__ import annotations

from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models import Account, Provider


class StoreSettings(BaseModel):
    """Location of the local message store."""

    model_config = ConfigDict(extra="forbid")

    path: str


class ImapSettings(BaseModel):
    """Server level IMAP defaults used by the runtime."""

    model_config = ConfigDict(extra="forbid")

    default_mailbox: str = "INBOX"
    actions_per_minute: int = Field(default=500, gt=0)


class FolderDefaults(BaseModel):
    """Folder names used when the store holds no folder for a role."""

    model_config = ConfigDict(extra="forbid")

    sent: str = "Sent"
    trash: str = "Trash"
    all: str = "[Gmail]/All Mail"
    gmail_trash: str = "[Gmail]/Trash"

    def for_role(self, role: str, provider: Provider) -> Optional[str]:
        if role == "trash" and provider == Provider.GMAIL:
            return self.gmail_trash
        return {"sent": self.sent, "trash": self.trash, "all": self.all}.get(role)


class AccountImapConfig(BaseModel):
    """Connection parameters for a single account."""

    model_config = ConfigDict(extra="forbid")

    host: str
    port: int = 993
    ssl: bool = True
    username: str
    password_file: str


class AccountConfig(BaseModel):
    """Account entry keyed by operator-facing name."""

    model_config = ConfigDict(extra="forbid")

    id: str
    provider: Provider
    email: str
    imap: AccountImapConfig

    def to_account(self, name: str) -> Account:
        return Account(id=self.id, name=name, email_address=self.email, provider=self.provider)


class LoggingSettings(BaseModel):
    """Structured logger defaults."""

    model_config = ConfigDict(extra="forbid")

    component: str = "syncback"
    level: Literal["DEBUG", "INFO", "WARN", "ERROR"] = "INFO"


class RuntimeConfig(BaseModel):
    """Root configuration loaded from ``config.yaml``."""

    model_config = ConfigDict(extra="forbid")

    version: int = 1
    store: StoreSettings
    imap: ImapSettings = Field(default_factory=ImapSettings)
    folders: FolderDefaults = Field(default_factory=FolderDefaults)
    accounts: Dict[str, AccountConfig] = Field(default_factory=dict)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
