"""Per-key mutual exclusion for single-writer updates."""

from __future__ import annotations

import threading


class KeyedLocks:
    """Hands out one ``threading.Lock`` per key, created on first use.

    Used to serialise check-then-write sequences on a single venue or a
    single user's reward record.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def for_key(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock
