from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from loguru import logger

from lifelog_agent.errors import SessionBusy

QUEUE = "queue"
REJECT = "reject"


@dataclass
class _Slot:
    lock: asyncio.Lock
    users: int = 0


class SessionGuard:
    """Keyed single-flight: at most one turn holds a given session id at a time.

    ``queue`` makes later turns wait for the holder (FIFO, as asyncio.Lock is
    fair); ``reject`` raises ``SessionBusy`` immediately. Slots are dropped
    once nobody holds or waits on them.
    """

    def __init__(self, policy: str = QUEUE, *, acquire_timeout_seconds: float | None = None):
        if policy not in (QUEUE, REJECT):
            raise ValueError(f"Unknown session guard policy: {policy!r}")
        self._policy = policy
        self._acquire_timeout_seconds = acquire_timeout_seconds
        self._slots: dict[str, _Slot] = {}

    @property
    def policy(self) -> str:
        return self._policy

    def is_busy(self, session_id: str) -> bool:
        slot = self._slots.get(session_id)
        return slot is not None and slot.lock.locked()

    def active_keys(self) -> list[str]:
        return list(self._slots)

    @asynccontextmanager
    async def hold(self, session_id: str) -> AsyncIterator[None]:
        slot = self._slots.get(session_id)
        if slot is None:
            slot = self._slots[session_id] = _Slot(lock=asyncio.Lock())

        if self._policy == REJECT and slot.lock.locked():
            raise SessionBusy(session_id)

        slot.users += 1
        try:
            await self._acquire(slot.lock, session_id)
            try:
                logger.debug(f"Session guard acquired: {session_id}")
                yield
            finally:
                slot.lock.release()
                logger.debug(f"Session guard released: {session_id}")
        finally:
            slot.users -= 1
            if slot.users == 0 and self._slots.get(session_id) is slot:
                del self._slots[session_id]

    async def _acquire(self, lock: asyncio.Lock, session_id: str) -> None:
        if self._acquire_timeout_seconds is None:
            await lock.acquire()
            return
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self._acquire_timeout_seconds)
        except TimeoutError as ex:
            raise SessionBusy(session_id) from ex
