"""Syncback command-line interface.

What:
  Provide a Typer entry point that runs a single syncback task against a
  configured account. ``ensure-sent`` reconciles the Sent folder for a message
  that has just been sent.

Why:
  Operators need to replay a task by hand after fixing an account or a
  provider outage, and cron-style wrappers need deterministic exit codes.
  Wiring the CLI to the same dispatcher the worker uses keeps both paths
  identical.

How:
  Load the runtime configuration, resolve the account, open the message store
  and IMAP client, assemble the reconciler with its collaborators, and run the
  request through :class:`~syncback.tasks.base.TaskDispatcher`. The snapshot
  is printed as JSON on stdout; log records go to stderr.

Interfaces:
  ``app`` (Typer application), ``ensure_sent``, :func:`build_dispatcher`.

Invariants & Safety:
  - Exit codes follow shell expectations (``0`` success, ``1`` failure).
  - Passwords are read from ``password_file`` and never logged.
"""
from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Optional

import typer
from imapclient.exceptions import IMAPClientError

from .config.loader import load_runtime_config
from .config.schema import RuntimeConfig
from .errors import ConfigurationError, SyncbackError
from .imap.client import ImapConfig, SyncbackImapClient
from .imap.sent_copies import ImapSentMailbox
from .mime import MimeBuilder
from .store.message_store import MessageStore
from .tasks.base import SyncbackRequest, TaskContext, TaskDispatcher, TaskKind
from .tasks.ensure_sent import EnsureMessageInSentFolder, SentFolderReconciler
from .utils.logging import JsonLogger, get_logger


app = typer.Typer(help="Syncback task runner")


@app.callback()
def _root() -> None:
    """Run syncback tasks by hand."""


def build_dispatcher(
    *,
    store: MessageStore,
    client: SyncbackImapClient,
    runtime: RuntimeConfig,
    logger: JsonLogger,
) -> TaskDispatcher:
    """Assemble the dispatcher with IMAP-backed collaborators."""

    mailbox = ImapSentMailbox(client, store, folders=runtime.folders, logger=logger.child("syncback.imap"))
    reconciler = SentFolderReconciler(
        lookup=store,
        deleter=mailbox,
        builder=MimeBuilder(),
        storer=mailbox,
        logger=logger.child("syncback.sent"),
    )
    return TaskDispatcher({TaskKind.ENSURE_MESSAGE_IN_SENT_FOLDER: EnsureMessageInSentFolder(reconciler)})


def _read_password(path: str) -> str:
    try:
        return Path(path).expanduser().read_text().strip()
    except OSError as exc:
        raise ConfigurationError(f"Unable to read password file {path}: {exc}") from exc


@app.command("ensure-sent")
def ensure_sent(
    message_id: str = typer.Argument(..., help="Local id of the sent message"),
    account: str = typer.Option(..., "--account", "-a", help="Account name from config.yaml"),
    sent_per_recipient: bool = typer.Option(
        False, "--sent-per-recipient", help="The message was sent once per recipient"
    ),
    config: Optional[Path] = typer.Option(None, "--config", help="Path to config.yaml"),
) -> None:
    """Make the account's Sent folder hold exactly one copy of MESSAGE_ID."""

    logger = get_logger("syncback.cli", stream=sys.stderr)
    try:
        runtime = load_runtime_config(config)
        logger = get_logger(runtime.logging.component, level=runtime.logging.level, stream=sys.stderr)
        account_config = runtime.accounts.get(account)
        if account_config is None:
            raise ConfigurationError(f"Unknown account {account!r}")
        imap_config = ImapConfig(
            host=account_config.imap.host,
            username=account_config.imap.username,
            password=_read_password(account_config.imap.password_file),
            port=account_config.imap.port,
            ssl=account_config.imap.ssl,
            folder=runtime.imap.default_mailbox,
            actions_per_minute=runtime.imap.actions_per_minute,
        )
        request = SyncbackRequest(
            kind=TaskKind.ENSURE_MESSAGE_IN_SENT_FOLDER,
            props={"messageId": message_id, "sentPerRecipient": sent_per_recipient},
        )
        context = TaskContext(account=account_config.to_account(account), logger=logger)
        with MessageStore(runtime.store.path) as store, SyncbackImapClient(imap_config) as client:
            dispatcher = build_dispatcher(store=store, client=client, runtime=runtime, logger=logger)
            snapshot = dispatcher.execute(context, request)
    except SyncbackError as exc:
        logger.error("ensure-sent failed", error=exc, retryable=exc.retryable)
        raise typer.Exit(code=1)
    except (IMAPClientError, OSError) as exc:
        logger.error("ensure-sent failed", error=exc, retryable=True)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(snapshot, sort_keys=True))


def main() -> None:  # pragma: no cover - console entry point
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
