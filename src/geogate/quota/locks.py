"""Per-key mutual exclusion for the admission path."""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class KeyedLock:
    """
    A family of locks addressed by key.

    Holders of the same key are serialized; different keys never contend
    beyond the brief bookkeeping critical section. Entries are reference
    counted and dropped when the last holder releases, so the table does
    not grow with the number of keys ever seen.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, list] = {}  # key -> [lock, holders]

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._locks[key] = entry
            entry[1] += 1
        lock: threading.Lock = entry[0]
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
