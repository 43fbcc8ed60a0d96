from __future__ import annotations

import asyncio
from dataclasses import dataclass

from loguru import logger

from lifelog_agent.agent_config import AgentConfig
from lifelog_agent.errors import CALLER_VISIBLE_ERRORS, AuthorizationError, PersistenceError, ValidationError
from lifelog_agent.memory.entity_store import JournalStore, LedgerStore
from lifelog_agent.memory.events import EventEmitter
from lifelog_agent.memory.models import JournalEntry, LedgerEntry, MessageRecord, SessionRecord
from lifelog_agent.memory.session_manager import SessionManager
from lifelog_agent.provider import LLMProvider
from lifelog_agent.session_guard import SessionGuard
from lifelog_agent.system_prompt import build_system_prompt
from lifelog_agent.tool import ToolContext
from lifelog_agent.tool_registry import ToolRegistry, get_all
from lifelog_agent.turn_engine import TurnEngine


@dataclass(frozen=True)
class TurnReply:
    session_id: str
    reply_text: str
    completed: bool = True


class Orchestrator:
    """Single entry point for a conversational turn.

    Only ValidationError, AuthorizationError and SessionBusy escape
    ``handle_turn``; reasoning and storage failures become a fallback reply.
    """

    def __init__(
        self,
        config: AgentConfig,
        *,
        provider: LLMProvider,
        sessions: SessionManager,
        ledger: LedgerStore,
        journal: JournalStore,
        registry: ToolRegistry | None = None,
        guard: SessionGuard | None = None,
        events: EventEmitter | None = None,
    ):
        self._config = config
        self._sessions = sessions
        self._ledger = ledger
        self._journal = journal
        self._events = events
        self._registry = registry if registry is not None else ToolRegistry(get_all(ledger, journal))
        self._guard = guard or SessionGuard(
            config.session_guard_policy,
            acquire_timeout_seconds=config.session_acquire_timeout_seconds,
        )
        self._turn_engine = TurnEngine(
            provider=provider,
            model=config.model,
            max_tokens=config.max_tokens,
            temperature=config.temperature,
            system_prompt=config.system_prompt or build_system_prompt(self._registry.descriptors()),
            registry=self._registry,
            max_model_calls=config.max_model_calls,
            model_timeout_seconds=config.model_timeout_seconds,
            max_tool_result_chars=config.max_tool_result_chars,
            on_record_tool_call=sessions.record_tool_call,
        )

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def guard(self) -> SessionGuard:
        return self._guard

    async def handle_turn(self, owner_id: str, text: str, session_id: str | None = None) -> TurnReply:
        if not isinstance(owner_id, str) or not owner_id.strip():
            raise ValidationError("owner_id must be a non-empty string")
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("text must be a non-empty string")

        try:
            session = self._resolve_session(owner_id, text, session_id)
        except CALLER_VISIBLE_ERRORS:
            raise
        except Exception as ex:
            logger.opt(exception=ex).error(f"Could not resolve session {session_id!r} for owner {owner_id}")
            return TurnReply(session_id=session_id or "", reply_text=self._config.fallback_reply, completed=False)

        async with self._guard.hold(session.id):
            try:
                user_message_id, _ = self._sessions.append_message(session.id, "user", text)
                history = self._sessions.load_messages(session.id)
            except Exception as ex:
                # Nothing was recorded for this turn, so no assistant reply is stored either.
                logger.opt(exception=ex).error(f"Could not record user message for session {session.id}")
                self._emit(session.id, "turn.failed", {"error": type(ex).__name__, "detail": str(ex)})
                return TurnReply(session_id=session.id, reply_text=self._config.fallback_reply, completed=False)
            context = ToolContext(owner_id=owner_id, session_id=session.id, source_message_id=user_message_id)

            completed = True
            try:
                async with asyncio.timeout(self._config.turn_timeout_seconds):
                    outcome = await self._turn_engine.run(messages=history, context=context)
                reply_text = outcome.reply_text
                self._emit(session.id, "turn.completed", {
                    "model_calls": outcome.model_calls,
                    "tool_calls": len(outcome.tool_results),
                })
            except Exception as ex:
                logger.opt(exception=ex).error(
                    f"Turn failed for session {session.id} (owner={owner_id}): {type(ex).__name__}: {ex}"
                )
                self._emit(session.id, "turn.failed", {"error": type(ex).__name__, "detail": str(ex)})
                reply_text = self._config.fallback_reply
                completed = False

            try:
                self._sessions.append_message(session.id, "assistant", reply_text)
            except PersistenceError as ex:
                logger.opt(exception=ex).error(f"Could not persist assistant reply for session {session.id}")

        return TurnReply(session_id=session.id, reply_text=reply_text, completed=completed)

    def _resolve_session(self, owner_id: str, text: str, session_id: str | None) -> SessionRecord:
        if session_id:
            session = self._sessions.get_session(session_id)
            if session is not None:
                if session.owner_id != owner_id:
                    raise AuthorizationError(f"Session {session_id} does not belong to {owner_id}")
                return session
            logger.info(f"Unknown session id {session_id}; starting a new session for {owner_id}")

        title = self._config.title_policy.derive_title(text)
        return self._sessions.create_session(owner_id, title)

    def _require_owned_session(self, owner_id: str, session_id: str) -> SessionRecord:
        session = self._sessions.get_session(session_id)
        if session is None:
            raise ValidationError(f"Unknown session: {session_id}")
        if session.owner_id != owner_id:
            raise AuthorizationError(f"Session {session_id} does not belong to {owner_id}")
        return session

    def list_sessions(self, owner_id: str, *, limit: int = 50) -> list[SessionRecord]:
        return self._sessions.list_sessions(owner_id, limit=limit)

    def get_history(self, owner_id: str, session_id: str) -> list[MessageRecord]:
        self._require_owned_session(owner_id, session_id)
        return self._sessions.list_messages(session_id)

    def list_ledger_entries(self, owner_id: str, *, limit: int = 100) -> list[LedgerEntry]:
        return self._ledger.list_for_owner(owner_id, limit=limit)

    def list_journal_entries(self, owner_id: str, *, limit: int = 100) -> list[JournalEntry]:
        return self._journal.list_for_owner(owner_id, limit=limit)

    def _emit(self, session_id: str, event_type: str, payload: dict) -> None:
        if self._events is not None:
            self._events.emit(session_id, event_type, payload)
