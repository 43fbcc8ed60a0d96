from __future__ import annotations

import json
from datetime import UTC, datetime
from uuid import uuid4

from loguru import logger

from lifelog_agent.memory.store import MemoryStore


def utc_now() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds")


class EventEmitter:
    """Audit trail of session activity (session.started, message.appended, turn.*)."""

    def __init__(self, store: MemoryStore):
        self._store = store

    def emit(self, session_id: str, event_type: str, payload: dict) -> None:
        try:
            with self._store.transaction():
                self._store.execute(
                    """
                    INSERT INTO events (id, session_id, type, payload_json, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        str(uuid4()),
                        session_id,
                        event_type,
                        json.dumps(payload, ensure_ascii=True, sort_keys=True),
                        utc_now(),
                    ),
                )
        except Exception as ex:
            logger.warning(f"Failed to record event {event_type} for session {session_id}: {ex}")

    def list_events(self, session_id: str) -> list[dict]:
        rows = self._store.execute(
            "SELECT type, payload_json, created_at FROM events WHERE session_id = ? ORDER BY rowid ASC",
            (session_id,),
        ).fetchall()
        return [
            {"type": row["type"], "payload": json.loads(row["payload_json"]), "created_at": row["created_at"]}
            for row in rows
        ]
