"""Sent-folder reconciliation unit tests.

What:
  Exercise :class:`syncback.tasks.ensure_sent.SentFolderReconciler` against
  recording collaborators covering every provider/fan-out combination and
  every failure branch.

Why:
  Users must see exactly one copy of a sent message. A wrong branch either
  leaves per-recipient duplicates in Gmail or loses the message from Sent on
  every other provider.

How:
  Collaborators share one ``calls`` list so assertions cover both which calls
  happen and in what order.
"""

import pytest

from fakes import (
    FakeLookup,
    RecordingBuilder,
    RecordingDeleter,
    RecordingStorer,
    capture_logger,
    log_records,
    make_message,
)
from syncback.errors import (
    ConfigurationError,
    DuplicateCleanupError,
    InsertionError,
    NotFoundError,
)
from syncback.imap.sent_copies import ImapSentMailbox
from syncback.mime import MimeBuilder
from syncback.models import Account, Label, Provider, ReconciliationRequest
from syncback.tasks.base import TaskContext
from syncback.tasks.ensure_sent import CleanupOutcome, SentFolderReconciler


def _account(provider: Provider) -> Account:
    return Account(id="acct-1", name="work", email_address="me@example.com", provider=provider)


def _reconciler(calls, *, message=None, deleter=None, builder=None, storer=None, logger=None):
    lookup = FakeLookup(message or make_message(), calls=calls)
    return SentFolderReconciler(
        lookup=lookup,
        deleter=deleter or RecordingDeleter(calls),
        builder=builder or RecordingBuilder(calls),
        storer=storer or RecordingStorer(calls),
        logger=logger,
    )


@pytest.mark.parametrize(
    "provider, sent_per_recipient, expected",
    [
        (Provider.GMAIL, False, []),
        (Provider.GMAIL, True, ["delete", "build", "store"]),
        (Provider.IMAP, False, ["build", "store"]),
        (Provider.IMAP, True, ["build", "store"]),
        (Provider.OFFICE365, True, ["build", "store"]),
    ],
)
def test_decision_table(provider, sent_per_recipient, expected) -> None:
    """Each provider/fan-out pair triggers exactly the expected collaborator calls."""

    calls: list = []
    reconciler = _reconciler(calls)
    context = TaskContext(account=_account(provider))
    reconciler.reconcile(context, ReconciliationRequest("M1", sent_per_recipient))
    assert [call[0] for call in calls if call[0] != "find_message"] == expected


def test_gmail_without_fan_out_returns_stored_snapshot() -> None:
    calls: list = []
    message = make_message()
    reconciler = _reconciler(calls, message=message)
    result = reconciler.reconcile(
        TaskContext(account=_account(Provider.GMAIL)), ReconciliationRequest("M1", False)
    )
    assert calls == [("find_message", "M1")]
    assert result == message.to_json()


def test_other_provider_builds_and_stores_canonical_copy() -> None:
    """Provider "other", no fan-out: build M1, store its bytes under ``<abc@x>``."""

    calls: list = []
    reconciler = _reconciler(calls, message=make_message("M1", "<abc@x>"))
    result = reconciler.reconcile(
        TaskContext(account=_account(Provider.IMAP)), ReconciliationRequest("M1", False)
    )
    assert ("build", "M1") in calls
    assert ("store", b"raw:M1", "<abc@x>") in calls
    assert result["id"] == "M1"


def test_gmail_fan_out_deletes_duplicates_then_inserts_once() -> None:
    calls: list = []
    reconciler = _reconciler(calls, message=make_message("M2", "<def@x>"))
    reconciler.reconcile(TaskContext(account=_account(Provider.GMAIL)), ReconciliationRequest("M2", True))
    assert calls == [
        ("find_message", "M2"),
        ("delete", "<def@x>"),
        ("build", "M2"),
        ("store", b"raw:M2", "<def@x>"),
    ]


@pytest.mark.parametrize(
    "error",
    [DuplicateCleanupError("trash folder missing"), RuntimeError("connection reset")],
)
def test_cleanup_failure_is_logged_and_insertion_still_happens(error) -> None:
    """A failing deleter never blocks insertion nor changes the result."""

    calls: list = []
    logger, stream = capture_logger()
    message = make_message("M2", "<def@x>")
    reconciler = _reconciler(
        calls,
        message=message,
        deleter=RecordingDeleter(calls, error=error),
        logger=logger,
    )
    result = reconciler.reconcile(
        TaskContext(account=_account(Provider.GMAIL)), ReconciliationRequest("M2", True)
    )
    assert [call[0] for call in calls] == ["find_message", "delete", "build", "store"]
    assert result == message.to_json()
    errors = [record for record in log_records(stream) if record["lvl"] == "ERROR"]
    assert len(errors) == 1
    assert errors[0]["header_message_id"] == "<def@x>"
    assert errors[0]["error_type"] == "DuplicateCleanupError"


def test_missing_account_fails_before_any_collaborator() -> None:
    calls: list = []
    reconciler = _reconciler(calls)
    with pytest.raises(ConfigurationError, match="account not available"):
        reconciler.reconcile(TaskContext(account=None), ReconciliationRequest("M1", True))
    assert calls == []


def test_unknown_provider_is_a_configuration_error() -> None:
    calls: list = []
    reconciler = _reconciler(calls)
    account = Account(id="acct-1", name="x", email_address="me@example.com", provider="carrier-pigeon")
    with pytest.raises(ConfigurationError):
        reconciler.reconcile(TaskContext(account=account), ReconciliationRequest("M1", False))
    assert calls == []


def test_missing_message_raises_not_found_with_id() -> None:
    calls: list = []
    reconciler = _reconciler(calls)
    with pytest.raises(NotFoundError) as excinfo:
        reconciler.reconcile(
            TaskContext(account=_account(Provider.GMAIL)), ReconciliationRequest("missing", True)
        )
    assert excinfo.value.message_id == "missing"
    assert excinfo.value.retryable is False
    assert calls == [("find_message", "missing")]


def test_build_failure_propagates_without_storing() -> None:
    calls: list = []
    reconciler = _reconciler(calls, builder=RecordingBuilder(calls, error=InsertionError("bad header")))
    with pytest.raises(InsertionError, match="bad header"):
        reconciler.reconcile(TaskContext(account=_account(Provider.IMAP)), ReconciliationRequest("M1"))
    assert [call[0] for call in calls] == ["find_message", "build"]


def test_store_failure_propagates_unchanged() -> None:
    calls: list = []
    failure = InsertionError("Can't find sent folder - not saving message")
    reconciler = _reconciler(calls, storer=RecordingStorer(calls, error=failure))
    with pytest.raises(InsertionError) as excinfo:
        reconciler.reconcile(TaskContext(account=_account(Provider.IMAP)), ReconciliationRequest("M1"))
    assert excinfo.value is failure
    assert excinfo.value.retryable is True


def test_cleanup_outcome_reports_status() -> None:
    assert CleanupOutcome(deleted=3).ok
    assert not CleanupOutcome(error=DuplicateCleanupError("boom")).ok


def test_string_provider_takes_gmail_path_end_to_end(imap_client, store) -> None:
    """Accounts built from raw provider strings still get Gmail handling."""

    client, backend = imap_client
    for _ in range(3):
        backend.seed("[Gmail]/All Mail", "<def@x>")
    store.save_label(Label(id="l-sent", account_id="acct-g", name="Sent", role="sent"))
    account = Account(id="acct-g", name="personal", email_address="me@gmail.com", provider="gmail")
    reconciler = SentFolderReconciler(
        lookup=FakeLookup(make_message("M2", "<def@x>", account_id="acct-g")),
        deleter=ImapSentMailbox(client, store),
        builder=MimeBuilder(),
        storer=ImapSentMailbox(client, store),
    )

    reconciler.reconcile(TaskContext(account=account), ReconciliationRequest("M2", True))

    assert backend.message_ids("[Gmail]/All Mail") == ["<def@x>"]
    assert backend.message_ids("Sent") == []
    assert [record.labels for record in backend.mailboxes["[Gmail]/All Mail"].values()] == [{"\\Sent"}]
