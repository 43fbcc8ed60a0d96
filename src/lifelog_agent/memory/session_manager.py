from __future__ import annotations

import json
import sqlite3
from uuid import uuid4

from lifelog_agent.errors import PersistenceError
from lifelog_agent.memory.events import EventEmitter, utc_now
from lifelog_agent.memory.models import MessageRecord, SessionRecord
from lifelog_agent.memory.store import MemoryStore

MESSAGE_ROLES = frozenset({"user", "assistant", "tool"})


class SessionManager:
    """Sessions plus their append-only message log.

    Messages are never updated or deleted; ``seq`` order is the transcript.
    """

    def __init__(self, store: MemoryStore, events: EventEmitter | None = None):
        self._store = store
        self._events = events

    def get_session(self, session_id: str) -> SessionRecord | None:
        try:
            row = self._store.execute(
                "SELECT * FROM sessions WHERE id = ? LIMIT 1",
                (session_id,),
            ).fetchone()
        except sqlite3.Error as ex:
            raise PersistenceError(f"Failed to load session {session_id}: {ex}") from ex
        if row is None:
            return None
        return SessionRecord.from_row(row)

    def list_sessions(self, owner_id: str, *, limit: int = 50) -> list[SessionRecord]:
        rows = self._store.execute(
            """
            SELECT id, owner_id, title, created_at, updated_at
            FROM sessions
            WHERE owner_id = ?
            ORDER BY updated_at DESC, created_at DESC
            LIMIT ?
            """,
            (owner_id, max(1, limit)),
        ).fetchall()
        return [SessionRecord.from_row(row) for row in rows]

    def create_session(self, owner_id: str, title: str, *, session_id: str | None = None) -> SessionRecord:
        sid = session_id or str(uuid4())
        now = utc_now()
        try:
            with self._store.transaction():
                self._store.execute(
                    """
                    INSERT INTO sessions (id, owner_id, title, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (sid, owner_id, title, now, now),
                )
        except sqlite3.Error as ex:
            raise PersistenceError(f"Failed to create session: {ex}") from ex
        self._emit(sid, "session.started", {"session_id": sid, "owner_id": owner_id})
        return SessionRecord(id=sid, owner_id=owner_id, title=title, created_at=now, updated_at=now)

    def append_message(self, session_id: str, role: str, content: str) -> tuple[str, int]:
        if role not in MESSAGE_ROLES:
            raise ValueError(f"Unsupported message role: {role!r}")
        message_id = str(uuid4())
        now = utc_now()
        try:
            with self._store.transaction():
                row = self._store.execute(
                    "SELECT COALESCE(MAX(seq), 0) AS max_seq FROM messages WHERE session_id = ?",
                    (session_id,),
                ).fetchone()
                next_seq = int(row["max_seq"]) + 1
                self._store.execute(
                    """
                    INSERT INTO messages (id, session_id, seq, role, content, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (message_id, session_id, next_seq, role, content, now),
                )
                self._store.execute(
                    "UPDATE sessions SET updated_at = ? WHERE id = ?",
                    (now, session_id),
                )
        except sqlite3.Error as ex:
            raise PersistenceError(f"Failed to append {role} message to session {session_id}: {ex}") from ex
        self._emit(
            session_id,
            "message.appended",
            {"session_id": session_id, "message_id": message_id, "seq": next_seq, "role": role},
        )
        return message_id, next_seq

    def list_messages(self, session_id: str) -> list[MessageRecord]:
        try:
            rows = self._store.execute(
                """
                SELECT id, session_id, seq, role, content, created_at
                FROM messages
                WHERE session_id = ?
                ORDER BY seq ASC
                """,
                (session_id,),
            ).fetchall()
        except sqlite3.Error as ex:
            raise PersistenceError(f"Failed to load messages for session {session_id}: {ex}") from ex
        return [MessageRecord.from_row(row) for row in rows]

    def load_messages(self, session_id: str) -> list[dict]:
        """Transcript in the ``{role, content}`` shape the providers consume."""
        return [{"role": m.role, "content": m.content} for m in self.list_messages(session_id)]

    def record_tool_call(
        self,
        session_id: str,
        *,
        message_id: str | None,
        tool_name: str,
        tool_input: dict,
        result_text: str,
        is_error: bool,
        tool_call_id: str | None = None,
    ) -> str:
        call_id = tool_call_id or str(uuid4())
        now = utc_now()
        try:
            with self._store.transaction():
                self._store.execute(
                    """
                    INSERT INTO tool_calls (id, session_id, message_id, tool_name, input_json, result_text, is_error, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        call_id,
                        session_id,
                        message_id,
                        tool_name,
                        json.dumps(tool_input, ensure_ascii=True, sort_keys=True, default=str),
                        result_text,
                        1 if is_error else 0,
                        now,
                    ),
                )
        except sqlite3.Error as ex:
            raise PersistenceError(f"Failed to record tool call {tool_name}: {ex}") from ex
        return call_id

    def list_tool_calls(self, session_id: str) -> list[dict]:
        rows = self._store.execute(
            "SELECT * FROM tool_calls WHERE session_id = ? ORDER BY created_at ASC, rowid ASC",
            (session_id,),
        ).fetchall()
        return [dict(row) for row in rows]

    def _emit(self, session_id: str, event_type: str, payload: dict) -> None:
        if self._events is not None:
            self._events.emit(session_id, event_type, payload)
