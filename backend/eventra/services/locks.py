from contextlib import ExitStack, contextmanager
from threading import Lock
from typing import Dict, Iterable, Iterator


class KeyedLock:
    """Per-key mutual exclusion for read-then-write sequences.

    Entries are reference counted and dropped once no thread holds or waits on them.
    When disabled, ``hold`` is a no-op and concurrent callers may interleave.
    """

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self._guard = Lock()
        self._locks: Dict[str, Lock] = {}
        self._waiters: Dict[str, int] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        if not self.enabled:
            yield
            return
        with self._guard:
            lock = self._locks.setdefault(key, Lock())
            self._waiters[key] = self._waiters.get(key, 0) + 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                remaining = self._waiters[key] - 1
                if remaining:
                    self._waiters[key] = remaining
                else:
                    self._waiters.pop(key, None)
                    self._locks.pop(key, None)

    @contextmanager
    def hold_many(self, keys: Iterable[str]) -> Iterator[None]:
        # Sorted acquisition order keeps overlapping key sets deadlock-free.
        with ExitStack() as stack:
            for key in sorted(set(keys)):
                stack.enter_context(self.hold(key))
            yield

    def active_keys(self) -> int:
        with self._guard:
            return len(self._locks)
