"""Per-key mutual exclusion: writes to one key are serialized, different keys run in parallel."""

import threading
from contextlib import contextmanager
from typing import Iterator


class KeyedLocks:
    """Lazily created threading.Lock per key (investor id, deal id)."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self._lock_for(key)
        with lock:
            yield
