"""
Concurrency services for image I/O.

``FileLockManager`` keeps at most one reader or writer per file at a time, and
``ConnectionLimiter`` caps the number of concurrent remote fetches. Both are
plain objects injected into readers and writers, so separate instances never
share state.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONNECTIONS = 10


class FileLockManager:
    """Table of named mutexes, one per file identifier."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(str(key), threading.Lock())

    def acquire(self, key: str, timeout: Optional[float] = None) -> bool:
        """Block until the lock for ``key`` is held.

        Args:
            key: File identifier.
            timeout: Seconds to wait; None waits indefinitely.

        Returns:
            bool: True if the lock was acquired.
        """
        acquired = self._lock_for(key).acquire(timeout=-1 if timeout is None else timeout)
        if not acquired:
            logger.warning(f"Timed out waiting for lock on {key}")
        return acquired

    def release(self, key: str) -> None:
        """Release the lock for ``key``.

        Raises:
            RuntimeError: If the lock is not held.
        """
        with self._guard:
            lock = self._locks.get(str(key))
        if lock is None or not lock.locked():
            raise RuntimeError(f"Lock for {key} is not held")
        lock.release()

    def is_locked(self, key: str) -> bool:
        with self._guard:
            lock = self._locks.get(str(key))
        return lock is not None and lock.locked()

    @contextmanager
    def locked(self, key: str) -> Iterator[None]:
        """Hold the lock for ``key`` for the duration of a ``with`` block."""
        self.acquire(key)
        try:
            yield
        finally:
            self.release(key)


class ConnectionLimiter:
    """Counting semaphore bounding concurrent outbound connections."""

    def __init__(self, max_connections: int = DEFAULT_MAX_CONNECTIONS):
        if max_connections < 1:
            raise ValueError(f"max_connections must be positive, got {max_connections}")
        self._max = max_connections
        self._semaphore = threading.BoundedSemaphore(max_connections)
        self._count_lock = threading.Lock()
        self._active = 0

    @property
    def max_connections(self) -> int:
        return self._max

    @property
    def active(self) -> int:
        with self._count_lock:
            return self._active

    def acquire(self, timeout: Optional[float] = None) -> bool:
        acquired = self._semaphore.acquire(timeout=timeout)
        if acquired:
            with self._count_lock:
                self._active += 1
        return acquired

    def release(self) -> None:
        """Release one connection slot.

        Raises:
            RuntimeError: If no connection is active.
        """
        with self._count_lock:
            if self._active == 0:
                raise RuntimeError("No active connection to release")
            self._active -= 1
        self._semaphore.release()

    @contextmanager
    def connection(self) -> Iterator[None]:
        """Hold one connection slot for the duration of a ``with`` block."""
        self.acquire()
        try:
            yield
        finally:
            self.release()
