# frameart/concurrency/read_write_lock.py
from __future__ import annotations
import threading
from contextlib import contextmanager
from typing import Optional

from frameart.core.errors import LockTimeoutError


class ReadWriteLock:
    """
    Readers-writer lock with writer preference, guarding the metadata document.
    - Any number of load() calls may read concurrently.
    - mutate() takes the write side, so a second mutation queues behind the first
      instead of reading a half-updated document.
    - Both sides accept an optional timeout and raise LockTimeoutError on expiry.
    """
    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._readers = 0
        self._writer: Optional[int] = None  # ident of the writing thread
        self._waiting_writers = 0

    @property
    def writer_active(self) -> bool:
        with self._cond:
            return self._writer is not None

    @contextmanager
    def read_lock(self, timeout: Optional[float] = None):
        with self._cond:
            # A writer re-reading inside its own mutation must not deadlock.
            if self._writer == threading.get_ident():
                reentrant = True
            else:
                reentrant = False
                ok = self._cond.wait_for(
                    lambda: self._writer is None and self._waiting_writers == 0,
                    timeout,
                )
                if not ok:
                    raise LockTimeoutError(f"read lock not acquired within {timeout}s")
                self._readers += 1
        try:
            yield
        finally:
            if not reentrant:
                with self._cond:
                    self._readers -= 1
                    if self._readers == 0:
                        self._cond.notify_all()

    @contextmanager
    def write_lock(self, timeout: Optional[float] = None):
        me = threading.get_ident()
        with self._cond:
            if self._writer == me:
                raise RuntimeError("write lock is not reentrant")
            self._waiting_writers += 1
            ok = self._cond.wait_for(
                lambda: self._writer is None and self._readers == 0,
                timeout,
            )
            self._waiting_writers -= 1
            if not ok:
                self._cond.notify_all()
                raise LockTimeoutError(f"write lock not acquired within {timeout}s")
            self._writer = me
        try:
            yield
        finally:
            with self._cond:
                self._writer = None
                self._cond.notify_all()
