"""
SQLite-based state store implementation.

Tables:
- chat_sessions: DialogState per conversation (JSON)
- journal: one row per executed plan, keyed by a single-use undo token
- chat_turns: conversation history (user and assistant messages)
"""

import json
import logging
import sqlite3
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from ..schemas.dialog import DialogState
from ..schemas.plan import JournalEntry, PlanKind

logger = logging.getLogger(__name__)


class ChatRole(str, Enum):
    """Author of a chat turn."""

    USER = "user"
    ASSISTANT = "assistant"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class SessionRecord:
    """A conversation and its persisted dialog state."""

    id: str
    state: DialogState
    created_at: str
    last_active_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "SessionRecord":
        """Create from database row. Unreadable state JSON falls back to an empty state."""
        try:
            raw = json.loads(row["state_json"]) if row["state_json"] else {}
        except json.JSONDecodeError:
            logger.warning("Session %s has unreadable state, starting fresh", row["id"])
            raw = {}
        return cls(
            id=row["id"],
            state=DialogState.from_dict(raw),
            created_at=row["created_at"],
            last_active_at=row["last_active_at"],
        )


@dataclass
class ChatTurnRecord:
    """One logged message."""

    id: str
    session_id: str
    role: ChatRole
    text: str
    payload: dict[str, Any] | None
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "ChatTurnRecord":
        """Create from database row."""
        return cls(
            id=row["id"],
            session_id=row["session_id"],
            role=ChatRole(row["role"]),
            text=row["text"],
            payload=json.loads(row["payload_json"]) if row["payload_json"] else None,
            created_at=row["created_at"],
        )


def _journal_from_row(row: sqlite3.Row) -> JournalEntry:
    return JournalEntry(
        id=row["id"],
        kind=PlanKind(row["kind"]),
        payload=json.loads(row["payload_json"]),
        undo_token=row["undo_token"],
        created_at=row["created_at"],
        affected_transaction_ids=json.loads(row["affected_ids_json"] or "[]"),
    )


class StateStore:
    """
    SQLite-based state store for the assistant.

    Acts as both the session store (dialog state per conversation) and the
    journal store (executed plans keyed by undo token), plus chat history.

    Thread-safe for single-writer scenarios. Turns of the same session must
    be serialized by the caller.
    """

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path | str):
        """
        Initialize state store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with row factory."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS chat_sessions (
                    id TEXT PRIMARY KEY,
                    state_json TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    last_active_at TEXT NOT NULL
                )
            """
            )

            # Journal: undo_token is the lookup key and must never repeat
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS journal (
                    id TEXT PRIMARY KEY,
                    kind TEXT NOT NULL,
                    payload_json TEXT NOT NULL,
                    affected_ids_json TEXT NOT NULL,
                    undo_token TEXT NOT NULL UNIQUE,
                    created_at TEXT NOT NULL
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS chat_turns (
                    id TEXT PRIMARY KEY,
                    session_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    text TEXT NOT NULL,
                    payload_json TEXT,
                    created_at TEXT NOT NULL,
                    seq INTEGER NOT NULL,
                    FOREIGN KEY (session_id) REFERENCES chat_sessions(id)
                )
            """
            )

            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_chat_turns_session ON chat_turns(session_id, seq)"
            )

            conn.execute(
                "INSERT OR REPLACE INTO schema_version (version) VALUES (?)", (self.SCHEMA_VERSION,)
            )

    # Session methods

    def create_session(self, state: DialogState | None = None) -> SessionRecord:
        """Create a new conversation with an empty (or given) state."""
        now = _now()
        record = SessionRecord(
            id=str(uuid.uuid4()),
            state=state or DialogState(),
            created_at=now,
            last_active_at=now,
        )
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO chat_sessions (id, state_json, created_at, last_active_at)
                VALUES (?, ?, ?, ?)
            """,
                (record.id, json.dumps(record.state.to_dict()), now, now),
            )
        return record

    def get_session(self, session_id: str) -> SessionRecord | None:
        """Get a session by ID."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM chat_sessions WHERE id = ?", (session_id,)
            ).fetchone()
            return SessionRecord.from_row(row) if row else None

    def get_session_state(self, session_id: str) -> DialogState:
        """State of a session; unknown sessions read as an empty state."""
        session = self.get_session(session_id)
        return session.state if session else DialogState()

    def save_session_state(self, session_id: str, state: DialogState) -> None:
        """Persist the state of a session, creating the session row if needed."""
        now = _now()
        state_json = json.dumps(state.to_dict())
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE chat_sessions SET state_json = ?, last_active_at = ?
                WHERE id = ?
            """,
                (state_json, now, session_id),
            )
            if cursor.rowcount == 0:
                conn.execute(
                    """
                    INSERT INTO chat_sessions (id, state_json, created_at, last_active_at)
                    VALUES (?, ?, ?, ?)
                """,
                    (session_id, state_json, now, now),
                )

    # Journal methods

    def append_journal(self, entry: JournalEntry) -> None:
        """Append a journal entry. Raises sqlite3.IntegrityError on a reused token."""
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO journal
                (id, kind, payload_json, affected_ids_json, undo_token, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """,
                (
                    entry.id,
                    entry.kind.value,
                    json.dumps(entry.payload),
                    json.dumps(entry.affected_transaction_ids),
                    entry.undo_token,
                    entry.created_at,
                ),
            )

    def find_journal_by_token(self, undo_token: str) -> JournalEntry | None:
        """Look up a journal entry; None means already undone or never existed."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM journal WHERE undo_token = ?", (undo_token,)
            ).fetchone()
            return _journal_from_row(row) if row else None

    def delete_journal_by_token(self, undo_token: str) -> bool:
        """Delete a journal entry. Returns True if a row was removed."""
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM journal WHERE undo_token = ?", (undo_token,))
            return cursor.rowcount > 0

    def count_journal_entries(self) -> int:
        with self._transaction() as conn:
            row = conn.execute("SELECT COUNT(*) AS n FROM journal").fetchone()
            return int(row["n"])

    # Chat history methods

    def log_turn(
        self,
        session_id: str,
        role: ChatRole,
        text: str,
        payload: dict[str, Any] | None = None,
    ) -> ChatTurnRecord:
        """Append a message to a session's history."""
        record = ChatTurnRecord(
            id=str(uuid.uuid4()),
            session_id=session_id,
            role=role,
            text=text,
            payload=payload,
            created_at=_now(),
        )
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT COALESCE(MAX(seq), 0) AS last FROM chat_turns WHERE session_id = ?",
                (session_id,),
            ).fetchone()
            conn.execute(
                """
                INSERT INTO chat_turns (id, session_id, role, text, payload_json, created_at, seq)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    record.id,
                    session_id,
                    role.value,
                    text,
                    json.dumps(payload) if payload is not None else None,
                    record.created_at,
                    row["last"] + 1,
                ),
            )
        return record

    def get_turns(self, session_id: str) -> list[ChatTurnRecord]:
        """All turns of a session in the order they were logged."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM chat_turns WHERE session_id = ? ORDER BY seq ASC",
                (session_id,),
            ).fetchall()
            return [ChatTurnRecord.from_row(row) for row in rows]

    def get_stats(self) -> dict[str, Any]:
        """Counts for the status command."""
        with self._transaction() as conn:
            sessions = conn.execute("SELECT COUNT(*) FROM chat_sessions").fetchone()[0]
            turns = conn.execute("SELECT COUNT(*) FROM chat_turns").fetchone()[0]
            journal = conn.execute("SELECT COUNT(*) FROM journal").fetchone()[0]
            by_kind = {
                row["kind"]: row["n"]
                for row in conn.execute(
                    "SELECT kind, COUNT(*) AS n FROM journal GROUP BY kind"
                ).fetchall()
            }
        return {
            "sessions": sessions,
            "chat_turns": turns,
            "undoable_executions": journal,
            "undoable_by_kind": by_kind,
        }
