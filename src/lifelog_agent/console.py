from __future__ import annotations

from loguru import logger

from lifelog_agent.commands.router import CommandRouter
from lifelog_agent.errors import AuthorizationError, SessionBusy, ValidationError
from lifelog_agent.orchestrator import Orchestrator
from lifelog_agent.tools.record_transaction_tool import format_amount


def _parse_limit(command: str, default: int) -> int | None:
    parts = command.split()
    if len(parts) < 2:
        return default
    try:
        return max(1, int(parts[1]))
    except ValueError:
        return None


class ConsoleClient:
    """Terminal front end: one user, one active session, slash commands for browsing."""

    _LINE_PREFIX = "assistant> "

    def __init__(self, orchestrator: Orchestrator, owner_id: str, session_id: str | None = None):
        self._orchestrator = orchestrator
        self._owner_id = owner_id
        self._session_id = session_id
        self._router = CommandRouter(
            on_help=self._on_help,
            on_new=self._on_new,
            on_sessions=self._on_sessions,
            on_resume=self._on_resume,
            on_history=self._on_history,
            on_ledger=self._on_ledger,
            on_journal=self._on_journal,
            on_unknown=self._on_unknown,
        )

    @property
    def session_id(self) -> str | None:
        return self._session_id

    async def handle_line(self, line: str) -> None:
        if await self._router.try_handle(line):
            return
        try:
            reply = await self._orchestrator.handle_turn(self._owner_id, line, self._session_id)
        except (ValidationError, AuthorizationError, SessionBusy) as ex:
            print(f"{self._LINE_PREFIX}[{type(ex).__name__}] {ex}")
            return
        self._session_id = reply.session_id
        print(f"{self._LINE_PREFIX}{reply.reply_text}")

    async def _on_help(self) -> None:
        print(f"{self._LINE_PREFIX}Available commands:")
        print(f"{self._LINE_PREFIX}- /help")
        print(f"{self._LINE_PREFIX}- /new")
        print(f"{self._LINE_PREFIX}- /sessions [limit]")
        print(f"{self._LINE_PREFIX}- /resume <session_id>")
        print(f"{self._LINE_PREFIX}- /history")
        print(f"{self._LINE_PREFIX}- /ledger [limit]")
        print(f"{self._LINE_PREFIX}- /journal [limit]")

    async def _on_new(self) -> None:
        self._session_id = None
        print(f"{self._LINE_PREFIX}The next message starts a new session.")

    async def _on_sessions(self, command: str) -> None:
        limit = _parse_limit(command, 20)
        if limit is None:
            print(f"{self._LINE_PREFIX}Usage: /sessions [limit]")
            return
        sessions = self._orchestrator.list_sessions(self._owner_id, limit=limit)
        if not sessions:
            print(f"{self._LINE_PREFIX}No sessions found.")
            return
        for s in sessions:
            marker = "*" if s.id == self._session_id else "-"
            print(f"{self._LINE_PREFIX}{marker} {s.title} ({s.id}, updated {s.updated_at})")

    async def _on_resume(self, command: str) -> None:
        parts = command.split()
        if len(parts) != 2:
            print(f"{self._LINE_PREFIX}Usage: /resume <session_id>")
            return
        try:
            messages = self._orchestrator.get_history(self._owner_id, parts[1])
        except (ValidationError, AuthorizationError) as ex:
            print(f"{self._LINE_PREFIX}{ex}")
            return
        self._session_id = parts[1]
        print(f"{self._LINE_PREFIX}Resumed session {parts[1]} ({len(messages)} messages)")

    async def _on_history(self) -> None:
        if self._session_id is None:
            print(f"{self._LINE_PREFIX}No active session.")
            return
        try:
            messages = self._orchestrator.get_history(self._owner_id, self._session_id)
        except (ValidationError, AuthorizationError) as ex:
            print(f"{self._LINE_PREFIX}{ex}")
            return
        for m in messages:
            print(f"{self._LINE_PREFIX}[{m.seq}] {m.role}: {m.content}")

    async def _on_ledger(self, command: str) -> None:
        limit = _parse_limit(command, 20)
        if limit is None:
            print(f"{self._LINE_PREFIX}Usage: /ledger [limit]")
            return
        entries = self._orchestrator.list_ledger_entries(self._owner_id, limit=limit)
        if not entries:
            print(f"{self._LINE_PREFIX}No transactions recorded.")
            return
        for e in entries:
            note = f" - {e.description}" if e.description else ""
            print(f"{self._LINE_PREFIX}{e.created_at[:10]} {e.kind} {format_amount(e.amount)} {e.category}{note}")

    async def _on_journal(self, command: str) -> None:
        limit = _parse_limit(command, 20)
        if limit is None:
            print(f"{self._LINE_PREFIX}Usage: /journal [limit]")
            return
        entries = self._orchestrator.list_journal_entries(self._owner_id, limit=limit)
        if not entries:
            print(f"{self._LINE_PREFIX}No journal entries recorded.")
            return
        for e in entries:
            tags = f" [{', '.join(e.tags)}]" if e.tags else ""
            print(f"{self._LINE_PREFIX}{e.created_at[:10]} mood {e.mood_score}/10{tags}: {e.content}")

    def _on_unknown(self, trimmed: str) -> None:
        logger.debug(f"Unknown console command: {trimmed}")
        print(f"{self._LINE_PREFIX}Unknown local command: {trimmed}")
