"""
Advisory write lock.

A per-resource, non-blocking mutual exclusion hint that expires on its own
after ``timeout`` seconds. It only covers this process: separate instances
sharing a store never see each other's locks.

Every acquisition gets its own token. Releasing with a token only frees the
key while that acquisition still owns it, so a holder whose lock expired and
was taken over cannot free the new owner's lock.
"""
import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, Optional, Tuple

from errors import LockedError

logger = logging.getLogger(__name__)

WRITE_LOCK_TIMEOUT = 30.0


class WriteLock:
    def __init__(self, timeout: float = WRITE_LOCK_TIMEOUT, clock: Callable[[], float] = time.monotonic):
        self.timeout = timeout
        self._clock = clock
        self._held: Dict[str, Tuple[float, object]] = {}
        self._guard = threading.Lock()

    def acquire(self, key: str) -> Optional[object]:
        """Take ``key`` and return the owner token, or None while it is held."""
        with self._guard:
            now = self._clock()
            entry = self._held.get(key)
            if entry is not None and now - entry[0] < self.timeout:
                return None
            if entry is not None:
                logger.warning("Write lock on %s expired after %.0fs, forcing release", key, self.timeout)
            token = object()
            self._held[key] = (now, token)
            return token

    def try_acquire(self, key: str) -> bool:
        return self.acquire(key) is not None

    def release(self, key: str, token: Optional[object] = None) -> None:
        with self._guard:
            entry = self._held.get(key)
            if entry is None:
                return
            if token is not None and entry[1] is not token:
                logger.warning("Stale release of write lock on %s ignored", key)
                return
            del self._held[key]

    def is_locked(self, key: str) -> bool:
        with self._guard:
            entry = self._held.get(key)
            return entry is not None and self._clock() - entry[0] < self.timeout

    @contextmanager
    def hold(self, key: str):
        """Hold ``key`` for the duration of the block or raise LockedError."""
        token = self.acquire(key)
        if token is None:
            raise LockedError("Operation in progress, try again in a few seconds")
        try:
            yield
        finally:
            self.release(key, token)
