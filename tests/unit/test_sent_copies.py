"""IMAP sent-copy tests.

What:
  Verify :class:`syncback.imap.sent_copies.ImapSentMailbox` against the fake
  IMAP backend: Gmail duplicate removal through Trash, Gmail storage through
  All Mail plus the Sent label, and Sent-folder storage for other providers.

Why:
  These are the only operations that touch a user's mailbox. Deleting the
  wrong messages or appending into the wrong folder is user-visible.
"""

import pytest

from syncback.errors import DuplicateCleanupError, InsertionError
from syncback.imap.sent_copies import ImapSentMailbox
from syncback.models import Account, Folder, Label, Provider
from syncback.tasks.base import TaskContext

GMAIL = Account(id="acct-g", name="personal", email_address="me@gmail.com", provider=Provider.GMAIL)
OTHER = Account(id="acct-i", name="work", email_address="me@example.com", provider=Provider.IMAP)
RAW = b"Message-ID: <def@x>\r\nSubject: hi\r\nFrom: me@gmail.com\r\n\r\nbody\r\n"


def test_gmail_duplicates_are_trashed_and_expunged(imap_client, store) -> None:
    client, backend = imap_client
    for _ in range(3):
        backend.seed("[Gmail]/All Mail", "<def@x>")
    backend.seed("[Gmail]/All Mail", "<other@x>")
    store.save_folder(Folder(id="f-trash", account_id=GMAIL.id, name="[Gmail]/Trash", role="trash"))

    deleted = ImapSentMailbox(client, store).delete_provider_sent_duplicates(TaskContext(account=GMAIL), "<def@x>")

    assert deleted == 3
    assert backend.message_ids("[Gmail]/All Mail") == ["<other@x>"]
    assert backend.message_ids("[Gmail]/Trash") == []
    assert len(backend.expunged) == 3
    assert client.selected == "INBOX"


def test_gmail_cleanup_falls_back_to_configured_trash(imap_client, store) -> None:
    client, backend = imap_client
    backend.seed("[Gmail]/All Mail", "<def@x>")
    deleted = ImapSentMailbox(client, store).delete_provider_sent_duplicates(TaskContext(account=GMAIL), "<def@x>")
    assert deleted == 1
    assert backend.message_ids("[Gmail]/All Mail") == []


def test_cleanup_is_a_no_op_for_other_providers(imap_client, store) -> None:
    client, backend = imap_client
    backend.seed("Sent", "<def@x>")
    deleted = ImapSentMailbox(client, store).delete_provider_sent_duplicates(TaskContext(account=OTHER), "<def@x>")
    assert deleted == 0
    assert backend.message_ids("Sent") == ["<def@x>"]


def test_cleanup_wraps_imap_errors(imap_client, store) -> None:
    client, backend = imap_client
    backend.seed("[Gmail]/All Mail", "<def@x>")
    backend.fail_on.add("move")
    with pytest.raises(DuplicateCleanupError, match="move failed"):
        ImapSentMailbox(client, store).delete_provider_sent_duplicates(TaskContext(account=GMAIL), "<def@x>")


def test_other_provider_appends_seen_copy_to_sent_folder(imap_client, store) -> None:
    client, backend = imap_client
    store.save_folder(Folder(id="f-sent", account_id=OTHER.id, name="Sent", role="sent"))
    ImapSentMailbox(client, store).store_sent_copy(TaskContext(account=OTHER), RAW, "<def@x>")
    records = list(backend.mailboxes["Sent"].values())
    assert [record.message_id for record in records] == ["<def@x>"]
    assert b"\\Seen" in records[0].flags


def test_other_provider_skips_append_when_copy_exists(imap_client, store) -> None:
    """A retry after a successful insert must not produce a second copy."""

    client, backend = imap_client
    mailbox = ImapSentMailbox(client, store)
    mailbox.store_sent_copy(TaskContext(account=OTHER), RAW, "<def@x>")
    mailbox.store_sent_copy(TaskContext(account=OTHER), RAW, "<def@x>")
    assert backend.message_ids("Sent") == ["<def@x>"]


def test_gmail_appends_to_all_mail_and_applies_sent_label(imap_client, store) -> None:
    client, backend = imap_client
    store.save_label(Label(id="l-sent", account_id=GMAIL.id, name="Sent", role="sent"))
    ImapSentMailbox(client, store).store_sent_copy(TaskContext(account=GMAIL), RAW, "<def@x>")
    records = list(backend.mailboxes["[Gmail]/All Mail"].values())
    assert len(records) == 1
    assert records[0].labels == {"\\Sent"}


def test_gmail_without_sent_label_raises_insertion_error(imap_client, store) -> None:
    client, backend = imap_client
    with pytest.raises(InsertionError, match="sent label"):
        ImapSentMailbox(client, store).store_sent_copy(TaskContext(account=GMAIL), RAW, "<def@x>")
    assert backend.message_ids("[Gmail]/All Mail") == []


def test_append_failure_raises_insertion_error(imap_client, store) -> None:
    client, backend = imap_client
    backend.fail_on.add("append")
    with pytest.raises(InsertionError, match="append failed"):
        ImapSentMailbox(client, store).store_sent_copy(TaskContext(account=OTHER), RAW, "<def@x>")


def test_missing_sent_mailbox_on_server_raises_insertion_error(imap_client, store) -> None:
    client, _ = imap_client
    store.save_folder(Folder(id="f-sent", account_id=OTHER.id, name="Sent Items", role="sent"))
    with pytest.raises(InsertionError, match="Sent Items"):
        ImapSentMailbox(client, store).store_sent_copy(TaskContext(account=OTHER), RAW, "<def@x>")


def test_cleanup_reports_trash_missing_on_server(imap_client, store) -> None:
    client, backend = imap_client
    backend.seed("[Gmail]/All Mail", "<def@x>")
    store.save_folder(Folder(id="f-trash", account_id=GMAIL.id, name="[Gmail]/Bin", role="trash"))
    with pytest.raises(DuplicateCleanupError, match="trash folder"):
        ImapSentMailbox(client, store).delete_provider_sent_duplicates(TaskContext(account=GMAIL), "<def@x>")
    assert backend.message_ids("[Gmail]/All Mail") == ["<def@x>"]


def test_string_provider_is_treated_as_gmail(imap_client, store) -> None:
    client, backend = imap_client
    backend.seed("[Gmail]/All Mail", "<def@x>")
    account = Account(id="acct-g", name="personal", email_address="me@gmail.com", provider="gmail")
    deleted = ImapSentMailbox(client, store).delete_provider_sent_duplicates(TaskContext(account=account), "<def@x>")
    assert deleted == 1
    assert backend.message_ids("[Gmail]/All Mail") == []
