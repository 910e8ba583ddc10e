"""Per-identity locks around the read-modify-write of counter records."""

import threading
from collections import defaultdict
from contextlib import contextmanager
from typing import Iterator


class KeyedLock:
    """
    One mutex per key, created on demand and dropped once nobody holds it.

    Requests for different identities never wait on each other. The lock is
    process-local: workers in separate processes sharing one store are not
    serialized against each other.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._waiters: dict[str, int] = defaultdict(int)

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._waiters[key] += 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._waiters[key] -= 1
                if self._waiters[key] == 0:
                    del self._waiters[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
