from lifelog_agent.memory.entity_store import JournalStore, LedgerStore
from lifelog_agent.memory.events import EventEmitter
from lifelog_agent.memory.session_manager import SessionManager
from lifelog_agent.memory.store import MemoryStore

__all__ = [
    "EventEmitter",
    "JournalStore",
    "LedgerStore",
    "MemoryStore",
    "SessionManager",
]
