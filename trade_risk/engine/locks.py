"""In-process lock manager keyed by arbitrary hashable keys.

Holds one ``threading.Lock`` per key, created on first use. The trade
engine keys holdings by ``(portfolio_id, instrument_id)``; unrelated keys
never contend.

Locks are not reentrant. Acquire at most one key per thread at a time.
"""

from __future__ import annotations

import threading
from collections.abc import Hashable, Iterator
from contextlib import contextmanager


class LockManager:
    """Map of per-key mutexes guarded by a single registry lock."""

    def __init__(self) -> None:
        self._registry_lock = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}

    def _lock_for(self, key: Hashable) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def acquire(self, key: Hashable) -> Iterator[None]:
        """Hold the exclusive lock for *key* for the duration of the block."""
        lock = self._lock_for(key)
        lock.acquire()
        try:
            yield
        finally:
            lock.release()

    def holding(self, portfolio_id: int, instrument_id: int):
        """Exclusive section for one (portfolio, instrument) holding."""
        return self.acquire(("holding", portfolio_id, instrument_id))

    def is_locked(self, key: Hashable) -> bool:
        with self._registry_lock:
            lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)
