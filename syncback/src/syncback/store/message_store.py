"""SQLite-backed store for canonical messages, folders, and labels.

What:
  Persist the local records syncback tasks read: canonical messages, the
  folders and labels of each account, and which folders/labels each message
  belongs to.

Why:
  Reconciliation needs the message record (to rebuild MIME and correlate
  provider copies) and folder/label roles (to find Sent, Trash and All Mail on
  the server). Keeping lookups behind one class lets tasks receive the store
  as an injected collaborator and lets tests point it at a temporary file.

How:
  Open a :mod:`sqlite3` connection, create the schema on first use, and map
  rows to the frozen dataclasses from :mod:`syncback.models`. Participant
  lists and references are stored as JSON text columns.

Interfaces:
  :class:`MessageStore` with ``find_message``, ``find_folder_by_role``,
  ``find_label_by_role``, ``save_message``, ``save_folder``, ``save_label``,
  and ``close``.

Invariants & Safety:
  - ``find_message`` always returns folders and labels alongside the message.
  - Lookups never mutate stored rows.
"""
from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from ..models import CanonicalMessage, Folder, Label, Participant, participants


_SCHEMA = """
CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    account_id TEXT NOT NULL,
    header_message_id TEXT NOT NULL,
    subject TEXT NOT NULL DEFAULT '',
    from_json TEXT NOT NULL DEFAULT '[]',
    to_json TEXT NOT NULL DEFAULT '[]',
    cc_json TEXT NOT NULL DEFAULT '[]',
    bcc_json TEXT NOT NULL DEFAULT '[]',
    reply_to_json TEXT NOT NULL DEFAULT '[]',
    date TEXT,
    body TEXT NOT NULL DEFAULT '',
    in_reply_to TEXT,
    references_json TEXT NOT NULL DEFAULT '[]',
    thread_id TEXT,
    unread INTEGER NOT NULL DEFAULT 0,
    starred INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS messages_header_message_id ON messages (header_message_id);
CREATE TABLE IF NOT EXISTS folders (
    id TEXT PRIMARY KEY,
    account_id TEXT NOT NULL,
    name TEXT NOT NULL,
    role TEXT
);
CREATE TABLE IF NOT EXISTS labels (
    id TEXT PRIMARY KEY,
    account_id TEXT NOT NULL,
    name TEXT NOT NULL,
    role TEXT
);
CREATE TABLE IF NOT EXISTS message_folders (
    message_id TEXT NOT NULL REFERENCES messages (id),
    folder_id TEXT NOT NULL REFERENCES folders (id),
    PRIMARY KEY (message_id, folder_id)
);
CREATE TABLE IF NOT EXISTS message_labels (
    message_id TEXT NOT NULL REFERENCES messages (id),
    label_id TEXT NOT NULL REFERENCES labels (id),
    PRIMARY KEY (message_id, label_id)
);
"""


def _dump_participants(entries: Iterable[Participant]) -> str:
    return json.dumps([p.to_json() for p in entries])


class MessageStore:
    """Read/write access to the local message database.

    What:
      Owns one SQLite connection and exposes lookups used by syncback tasks
      plus the writes needed to populate the store.

    Why:
      Tasks must not issue SQL themselves; going through this class keeps the
      row-to-record mapping in one place.

    How:
      The constructor creates parent directories and the schema. Instances are
      context managers closing the connection on exit.
    """

    def __init__(self, path: Path | str):
        """Open (and if needed create) the database at ``path``.

        Args:
          path: Filesystem location of the SQLite file, or ``":memory:"``.
        """

        if str(path) != ":memory:":
            Path(path).expanduser().parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(path))
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)

    def __enter__(self) -> "MessageStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._conn.close()

    # Lookups ------------------------------------------------------------
    def find_message(self, message_id: str) -> Optional[CanonicalMessage]:
        """Return the message ``message_id`` with its folders and labels.

        Returns:
          The :class:`CanonicalMessage`, or ``None`` when no row matches.
        """

        row = self._conn.execute("SELECT * FROM messages WHERE id = ?", (message_id,)).fetchone()
        if row is None:
            return None
        folders = tuple(
            self._folder(r)
            for r in self._conn.execute(
                "SELECT f.* FROM folders f JOIN message_folders mf ON mf.folder_id = f.id "
                "WHERE mf.message_id = ? ORDER BY f.name",
                (message_id,),
            )
        )
        labels = tuple(
            self._label(r)
            for r in self._conn.execute(
                "SELECT l.* FROM labels l JOIN message_labels ml ON ml.label_id = l.id "
                "WHERE ml.message_id = ? ORDER BY l.name",
                (message_id,),
            )
        )
        return CanonicalMessage(
            id=row["id"],
            account_id=row["account_id"],
            header_message_id=row["header_message_id"],
            subject=row["subject"],
            from_=participants(json.loads(row["from_json"])),
            to=participants(json.loads(row["to_json"])),
            cc=participants(json.loads(row["cc_json"])),
            bcc=participants(json.loads(row["bcc_json"])),
            reply_to=participants(json.loads(row["reply_to_json"])),
            date=datetime.fromisoformat(row["date"]) if row["date"] else None,
            body=row["body"],
            in_reply_to=row["in_reply_to"],
            references=tuple(json.loads(row["references_json"])),
            thread_id=row["thread_id"],
            unread=bool(row["unread"]),
            starred=bool(row["starred"]),
            folders=folders,
            labels=labels,
        )

    def find_folder_by_role(self, account_id: str, role: str) -> Optional[Folder]:
        row = self._conn.execute(
            "SELECT * FROM folders WHERE account_id = ? AND role = ? ORDER BY id LIMIT 1",
            (account_id, role),
        ).fetchone()
        return self._folder(row) if row is not None else None

    def find_label_by_role(self, account_id: str, role: str) -> Optional[Label]:
        row = self._conn.execute(
            "SELECT * FROM labels WHERE account_id = ? AND role = ? ORDER BY id LIMIT 1",
            (account_id, role),
        ).fetchone()
        return self._label(row) if row is not None else None

    # Writes -------------------------------------------------------------
    def save_folder(self, folder: Folder) -> None:
        with self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO folders (id, account_id, name, role) VALUES (?, ?, ?, ?)",
                (folder.id, folder.account_id, folder.name, folder.role),
            )

    def save_label(self, label: Label) -> None:
        with self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO labels (id, account_id, name, role) VALUES (?, ?, ?, ?)",
                (label.id, label.account_id, label.name, label.role),
            )

    def save_message(self, message: CanonicalMessage) -> None:
        """Insert or replace ``message`` together with its folder/label links.

        Folders and labels referenced by the message are saved as well so the
        join rows never dangle.
        """

        with self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO messages (id, account_id, header_message_id, subject, "
                "from_json, to_json, cc_json, bcc_json, reply_to_json, date, body, in_reply_to, "
                "references_json, thread_id, unread, starred) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    message.id,
                    message.account_id,
                    message.header_message_id,
                    message.subject,
                    _dump_participants(message.from_),
                    _dump_participants(message.to),
                    _dump_participants(message.cc),
                    _dump_participants(message.bcc),
                    _dump_participants(message.reply_to),
                    message.date.isoformat() if message.date else None,
                    message.body,
                    message.in_reply_to,
                    json.dumps(list(message.references)),
                    message.thread_id,
                    int(message.unread),
                    int(message.starred),
                ),
            )
            self._conn.execute("DELETE FROM message_folders WHERE message_id = ?", (message.id,))
            self._conn.execute("DELETE FROM message_labels WHERE message_id = ?", (message.id,))
            for folder in message.folders:
                self._conn.execute(
                    "INSERT OR REPLACE INTO folders (id, account_id, name, role) VALUES (?, ?, ?, ?)",
                    (folder.id, folder.account_id, folder.name, folder.role),
                )
                self._conn.execute(
                    "INSERT INTO message_folders (message_id, folder_id) VALUES (?, ?)",
                    (message.id, folder.id),
                )
            for label in message.labels:
                self._conn.execute(
                    "INSERT OR REPLACE INTO labels (id, account_id, name, role) VALUES (?, ?, ?, ?)",
                    (label.id, label.account_id, label.name, label.role),
                )
                self._conn.execute(
                    "INSERT INTO message_labels (message_id, label_id) VALUES (?, ?)",
                    (message.id, label.id),
                )

    @staticmethod
    def _folder(row: sqlite3.Row) -> Folder:
        return Folder(id=row["id"], account_id=row["account_id"], name=row["name"], role=row["role"])

    @staticmethod
    def _label(row: sqlite3.Row) -> Label:
        return Label(id=row["id"], account_id=row["account_id"], name=row["name"], role=row["role"])
