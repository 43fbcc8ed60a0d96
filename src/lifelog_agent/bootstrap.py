from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from lifelog_agent.agent_config import AgentConfig
from lifelog_agent.app_config import AppConfig, RuntimeEnv, apply_runtime_overrides
from lifelog_agent.logging_config import setup_logging
from lifelog_agent.memory import EventEmitter, JournalStore, LedgerStore, MemoryStore, SessionManager
from lifelog_agent.orchestrator import Orchestrator
from lifelog_agent.provider import create_provider
from lifelog_agent.title_policy import PrefixTitlePolicy


@dataclass
class AppRuntime:
    orchestrator: Orchestrator
    memory_store: MemoryStore
    log_descriptions: list[str]

    def close(self) -> None:
        self.memory_store.close()


def bootstrap_runtime(app: AppConfig, env: RuntimeEnv) -> AppRuntime:
    log_descriptions = setup_logging(level=app.log_level, consumers=app.log_consumers)
    app = apply_runtime_overrides(app, env)

    db_path = Path(app.memory_db_path)
    if not db_path.is_absolute():
        db_path = Path.cwd() / db_path
    memory_store = MemoryStore(str(db_path))
    events = EventEmitter(memory_store)

    provider = create_provider(app.provider_name, env.provider_api_key, base_url=app.base_url)

    orchestrator = Orchestrator(
        AgentConfig(
            model=app.model,
            max_tokens=app.max_tokens,
            temperature=app.temperature,
            max_model_calls=app.max_model_calls,
            model_timeout_seconds=app.model_timeout_seconds,
            turn_timeout_seconds=app.turn_timeout_seconds,
            max_tool_result_chars=app.max_tool_result_chars,
            session_guard_policy=app.session_guard_policy,
            session_acquire_timeout_seconds=app.session_acquire_timeout_seconds,
            title_policy=PrefixTitlePolicy(app.title_max_chars),
        ),
        provider=provider,
        sessions=SessionManager(memory_store, events),
        ledger=LedgerStore(memory_store),
        journal=JournalStore(memory_store),
        events=events,
    )

    return AppRuntime(
        orchestrator=orchestrator,
        memory_store=memory_store,
        log_descriptions=log_descriptions,
    )
