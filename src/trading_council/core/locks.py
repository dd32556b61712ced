"""Per-key lock registry.

Operations on different keys (instruments, modules) run in parallel;
operations on the same key are serialized.
"""

from __future__ import annotations

import threading


class KeyedLocks:
    """Lazily created ``threading.Lock`` per key.

    Usage::

        locks = KeyedLocks()
        with locks.lock_for("AAPL"):
            ...
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock
