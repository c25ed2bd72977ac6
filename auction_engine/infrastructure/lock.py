"""
Per-auction lock with retry tracking

One auction record is the unit of mutual exclusion: the tick processor,
the bid path and settlement all take this lock before reading and writing
the same auction. Different auctions never contend.

Keys are any hashable; the engine keeps a second instance keyed by
username for user read-modify-write. An entry lives only while some thread
holds or waits for it, so unknown ids never accumulate.
"""
import threading
import time
from contextlib import contextmanager
from typing import Dict, Hashable, Tuple

from auction_engine.core.logger import get_logger

logger = get_logger(__name__)


class AuctionLock:
    def __init__(
        self,
        timeout: float = 0.5,
        retry_delay: float = 0.005,
        max_retries: int = 10,
    ):
        self.timeout = timeout
        self.retry_delay = retry_delay
        self.max_retries = max_retries

        # Re-entrant so settlement can run inside a tick that already holds it
        self._locks: Dict[Hashable, threading.RLock] = {}
        # key -> threads holding or waiting (re-entry counts again)
        self._users: Dict[Hashable, int] = {}
        self._registry_lock = threading.Lock()

    def _checkout(self, key: Hashable) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            self._users[key] = self._users.get(key, 0) + 1
            return lock

    def _checkin(self, key: Hashable) -> None:
        with self._registry_lock:
            remaining = self._users.get(key, 0) - 1
            if remaining > 0:
                self._users[key] = remaining
            else:
                self._users.pop(key, None)
                self._locks.pop(key, None)

    def acquire(self, key: Hashable) -> Tuple[threading.RLock, int]:
        """
        Try to acquire lock with retry

        Returns: (lock, retry_count)
        Raises: TimeoutError if can't acquire
        """
        lock = self._checkout(key)

        for attempt in range(self.max_retries):
            if lock.acquire(timeout=self.timeout):
                return lock, attempt

            # Backoff before retry
            if attempt < self.max_retries - 1:
                time.sleep(self.retry_delay)

        self._checkin(key)
        logger.warning("Lock acquisition failed", key=key, attempts=self.max_retries)
        raise TimeoutError(f"Could not acquire lock for {key}")

    def release(self, key: Hashable, lock: threading.RLock) -> None:
        lock.release()
        self._checkin(key)

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)

    @contextmanager
    def lock(self, key: Hashable):
        """
        Context manager for easy usage

        Usage:
            with lock_manager.lock(auction_id) as retry_count:
                auction = book.get(auction_id)
                ...
        """
        lock, retry_count = self.acquire(key)

        try:
            yield retry_count
        finally:
            self.release(key, lock)
