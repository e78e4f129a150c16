"""Execution slot pool bounding concurrent in-flight queries."""

import asyncio
import logging
import threading
from typing import List, Optional

logger = logging.getLogger(__name__)


class Slot:
    """Opaque permit to run one query against the gateway."""

    __slots__ = ("slot_id",)

    def __init__(self, slot_id: int) -> None:
        self.slot_id = slot_id

    def __repr__(self) -> str:
        return f"<Slot(id={self.slot_id})>"


class ExecutionSlotPool:
    """Fixed-size pool of slots.

    ``try_acquire`` never blocks; waiting callers poll through ``acquire``.
    There is no fairness among waiters: whoever polls first after a release
    gets the slot. Mutation is lock-guarded so releases from worker threads
    cannot push the pool past its size.
    """

    def __init__(self, max_slots: int) -> None:
        if max_slots < 1:
            raise ValueError("max_slots must be at least 1")
        self._max_slots = max_slots
        self._minted = tuple(Slot(i) for i in range(max_slots))
        self._free: List[Slot] = list(self._minted)
        self._lock = threading.Lock()

    @property
    def max_slots(self) -> int:
        """Return the configured pool size."""
        return self._max_slots

    @property
    def available(self) -> int:
        """Return the number of slots currently in the pool."""
        with self._lock:
            return len(self._free)

    @property
    def in_use(self) -> int:
        """Return the number of slots currently held by executions."""
        return self._max_slots - self.available

    def try_acquire(self) -> Optional[Slot]:
        """Take a slot if one is free, else return None."""
        with self._lock:
            if not self._free:
                return None
            return self._free.pop()

    async def acquire(self, check_interval_seconds: float) -> Slot:
        """Wait for a slot, re-checking every ``check_interval_seconds``."""
        slot = self.try_acquire()
        while slot is None:
            await asyncio.sleep(check_interval_seconds)
            slot = self.try_acquire()
        return slot

    def release(self, slot: Slot) -> bool:
        """Return a slot to the pool.

        Releases that would exceed the pool size, repeat a release, or hand
        back a slot this pool never minted are dropped and return False.
        """
        with self._lock:
            if len(self._free) >= self._max_slots:
                reason = "pool is full"
            elif not any(slot is minted for minted in self._minted):
                reason = "slot belongs to another pool"
            elif any(slot is free for free in self._free):
                reason = "slot already released"
            else:
                self._free.append(slot)
                return True
        logger.warning("Dropped release of %r: %s.", slot, reason)
        return False

    def __repr__(self) -> str:
        return f"<ExecutionSlotPool(total={self._max_slots}, free={self.available})>"
