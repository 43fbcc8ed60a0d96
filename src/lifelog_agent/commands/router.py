from __future__ import annotations

from collections.abc import Awaitable, Callable


class CommandRouter:
    def __init__(
        self,
        *,
        on_help: Callable[[], Awaitable[None]],
        on_new: Callable[[], Awaitable[None]],
        on_sessions: Callable[[str], Awaitable[None]],
        on_resume: Callable[[str], Awaitable[None]],
        on_history: Callable[[], Awaitable[None]],
        on_ledger: Callable[[str], Awaitable[None]],
        on_journal: Callable[[str], Awaitable[None]],
        on_unknown: Callable[[str], None],
    ) -> None:
        self._on_help = on_help
        self._on_new = on_new
        self._on_sessions = on_sessions
        self._on_resume = on_resume
        self._on_history = on_history
        self._on_ledger = on_ledger
        self._on_journal = on_journal
        self._on_unknown = on_unknown

    async def try_handle(self, user_message: str) -> bool:
        trimmed = user_message.strip()
        if not trimmed.startswith("/"):
            return False

        if trimmed == "/help":
            await self._on_help()
            return True
        if trimmed == "/new":
            await self._on_new()
            return True
        if trimmed.startswith("/sessions"):
            await self._on_sessions(trimmed)
            return True
        if trimmed.startswith("/resume"):
            await self._on_resume(trimmed)
            return True
        if trimmed == "/history":
            await self._on_history()
            return True
        if trimmed.startswith("/ledger"):
            await self._on_ledger(trimmed)
            return True
        if trimmed.startswith("/journal"):
            await self._on_journal(trimmed)
            return True

        self._on_unknown(trimmed)
        return True
