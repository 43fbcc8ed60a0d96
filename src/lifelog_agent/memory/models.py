from __future__ import annotations

import sqlite3
from dataclasses import dataclass


@dataclass(frozen=True)
class SessionRecord:
    id: str
    owner_id: str
    title: str
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> SessionRecord:
        return cls(
            id=row["id"],
            owner_id=row["owner_id"],
            title=row["title"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


@dataclass(frozen=True)
class MessageRecord:
    id: str
    session_id: str
    seq: int
    role: str
    content: str
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> MessageRecord:
        return cls(
            id=row["id"],
            session_id=row["session_id"],
            seq=int(row["seq"]),
            role=row["role"],
            content=row["content"],
            created_at=row["created_at"],
        )


@dataclass(frozen=True)
class LedgerEntry:
    id: str
    owner_id: str
    amount: float
    category: str
    kind: str
    description: str | None
    source_message_id: str | None
    created_at: str


@dataclass(frozen=True)
class JournalEntry:
    id: str
    owner_id: str
    content: str
    mood_score: int
    tags: tuple[str, ...]
    source_message_id: str | None
    created_at: str
