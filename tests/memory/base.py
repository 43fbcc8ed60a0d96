import shutil
import unittest
from pathlib import Path
from uuid import uuid4

from lifelog_agent.memory import EventEmitter, JournalStore, LedgerStore, MemoryStore, SessionManager


PROJECT_ROOT = Path(__file__).resolve().parents[2]


class MemoryStoreTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp_dir = PROJECT_ROOT / ".test-artifacts" / f"{self.__class__.__name__.lower()}-{uuid4().hex}"
        self._tmp_dir.mkdir(parents=True, exist_ok=True)
        self._store = MemoryStore(str(self._tmp_dir / "lifelog.db"))
        self._events = EventEmitter(self._store)
        self._sessions = SessionManager(self._store, self._events)
        self._ledger = LedgerStore(self._store)
        self._journal = JournalStore(self._store)

    def tearDown(self) -> None:
        self._store.close()
        shutil.rmtree(self._tmp_dir, ignore_errors=True)

    def count_rows(self, table: str) -> int:
        row = self._store.execute(f"SELECT COUNT(*) AS c FROM {table}").fetchone()
        return int(row["c"])
