"""
Per-key mutual exclusion (``prepaid_kernel.utils.locks``).

Responsibility:
    Serializes read-modify-write sequences against one reconciliation
    triple or one adjustment entry without locking unrelated keys.

Invariants enforced:
    - Two threads holding the same key never overlap.
    - Locks are re-entrant per thread, so a holder may call into code that
      takes the same key again (approve -> recompute).
    - Idle keys are dropped once no thread holds or waits on them.
"""

from __future__ import annotations

import threading
from collections.abc import Hashable, Iterator
from contextlib import contextmanager


class _Slot:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.users = 0


class KeyedLock:
    """Registry of re-entrant locks keyed by any hashable value."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._slots: dict[Hashable, _Slot] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            slot = self._slots.get(key)
            if slot is None:
                slot = self._slots[key] = _Slot()
            slot.users += 1
        slot.lock.acquire()
        try:
            yield
        finally:
            slot.lock.release()
            with self._guard:
                slot.users -= 1
                if slot.users == 0:
                    del self._slots[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._slots)
