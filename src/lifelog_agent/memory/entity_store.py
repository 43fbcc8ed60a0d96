from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterable
from uuid import uuid4

from lifelog_agent.errors import PersistenceError
from lifelog_agent.memory.events import utc_now
from lifelog_agent.memory.models import JournalEntry, LedgerEntry
from lifelog_agent.memory.store import MemoryStore

LEDGER_KINDS = ("EXPENSE", "INCOME")
MIN_MOOD_SCORE = 1
MAX_MOOD_SCORE = 10


class LedgerStore:
    def __init__(self, store: MemoryStore):
        self._store = store

    def create_ledger_entry(
        self,
        *,
        owner_id: str,
        amount: float,
        category: str,
        kind: str,
        description: str | None = None,
        source_message_id: str | None = None,
    ) -> LedgerEntry:
        if kind not in LEDGER_KINDS:
            raise ValueError(f"Unsupported ledger kind: {kind!r}")
        entry = LedgerEntry(
            id=str(uuid4()),
            owner_id=owner_id,
            amount=amount,
            category=category,
            kind=kind,
            description=description,
            source_message_id=source_message_id,
            created_at=utc_now(),
        )
        try:
            with self._store.transaction():
                self._store.execute(
                    """
                    INSERT INTO ledger_entries
                        (id, owner_id, amount, category, kind, description, source_message_id, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        entry.id,
                        entry.owner_id,
                        entry.amount,
                        entry.category,
                        entry.kind,
                        entry.description,
                        entry.source_message_id,
                        entry.created_at,
                    ),
                )
        except sqlite3.Error as ex:
            raise PersistenceError(f"Failed to record ledger entry: {ex}") from ex
        return entry

    def list_for_owner(self, owner_id: str, *, limit: int = 100) -> list[LedgerEntry]:
        rows = self._store.execute(
            """
            SELECT * FROM ledger_entries
            WHERE owner_id = ?
            ORDER BY created_at DESC, rowid DESC
            LIMIT ?
            """,
            (owner_id, max(1, limit)),
        ).fetchall()
        return [
            LedgerEntry(
                id=row["id"],
                owner_id=row["owner_id"],
                amount=row["amount"],
                category=row["category"],
                kind=row["kind"],
                description=row["description"],
                source_message_id=row["source_message_id"],
                created_at=row["created_at"],
            )
            for row in rows
        ]


class JournalStore:
    def __init__(self, store: MemoryStore):
        self._store = store

    def create_journal_entry(
        self,
        *,
        owner_id: str,
        content: str,
        mood_score: int,
        tags: Iterable[str] = (),
        source_message_id: str | None = None,
    ) -> JournalEntry:
        if isinstance(mood_score, bool) or not MIN_MOOD_SCORE <= mood_score <= MAX_MOOD_SCORE:
            raise ValueError(f"mood_score must be an integer in [{MIN_MOOD_SCORE}, {MAX_MOOD_SCORE}]")
        entry = JournalEntry(
            id=str(uuid4()),
            owner_id=owner_id,
            content=content,
            mood_score=int(mood_score),
            tags=tuple(dict.fromkeys(tags)),
            source_message_id=source_message_id,
            created_at=utc_now(),
        )
        try:
            with self._store.transaction():
                self._store.execute(
                    """
                    INSERT INTO journal_entries
                        (id, owner_id, content, mood_score, tags_json, source_message_id, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        entry.id,
                        entry.owner_id,
                        entry.content,
                        entry.mood_score,
                        json.dumps(list(entry.tags), ensure_ascii=False),
                        entry.source_message_id,
                        entry.created_at,
                    ),
                )
        except sqlite3.Error as ex:
            raise PersistenceError(f"Failed to save journal entry: {ex}") from ex
        return entry

    def list_for_owner(self, owner_id: str, *, limit: int = 100) -> list[JournalEntry]:
        rows = self._store.execute(
            """
            SELECT * FROM journal_entries
            WHERE owner_id = ?
            ORDER BY created_at DESC, rowid DESC
            LIMIT ?
            """,
            (owner_id, max(1, limit)),
        ).fetchall()
        return [
            JournalEntry(
                id=row["id"],
                owner_id=row["owner_id"],
                content=row["content"],
                mood_score=int(row["mood_score"]),
                tags=tuple(json.loads(row["tags_json"])),
                source_message_id=row["source_message_id"],
                created_at=row["created_at"],
            )
            for row in rows
        ]
