"""In-process keyed locks.

Serialize version appends per contract and vote recounts per version within
one process. Across processes the unique constraints on
(contract_id, version_number) and (version_id, user_id) plus row locks
(``SELECT ... FOR UPDATE`` on PostgreSQL) provide the same guarantees.
"""

import threading
from contextlib import contextmanager


class KeyedLock:
    """A registry of reentrant locks keyed by string, released when unused."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}
        self._refcounts: dict[str, int] = {}

    @contextmanager
    def hold(self, key: str):
        with self._guard:
            lock = self._locks.setdefault(key, threading.RLock())
            self._refcounts[key] = self._refcounts.get(key, 0) + 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._refcounts[key] -= 1
                if self._refcounts[key] == 0:
                    del self._refcounts[key]
                    del self._locks[key]


contract_locks = KeyedLock()
version_locks = KeyedLock()
