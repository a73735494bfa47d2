"""In-memory rate limit store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: every key owns its own lock, so unrelated keys never wait on
  each other. A table-wide lock is only taken to add or drop keys.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Callable

from notifier.adapters.rate_limit.base import AbstractRateLimitStore, CounterEntry
from notifier.core.errors import RateLimitStoreFullError

logger = logging.getLogger(__name__)


class _KeySlot:
    """Lock and counter of a single key.

    ``depth`` counts active holders (re-entrant acquisitions included) and is
    only modified while ``lock`` is held. ``retired`` is set when the slot is
    dropped from the table; holders that find it set must look the key up again.
    """

    __slots__ = ("lock", "entry", "depth", "retired")

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.entry: CounterEntry | None = None
        self.depth = 0
        self.retired = False


class InMemoryRateLimitStore(AbstractRateLimitStore):
    """Counter store with lazy per-entry expiry and an explicit lock per key.

    Entries expire ``ttl_seconds`` after their creation (fixed window that
    starts at the first request). Expired entries are invisible to reads and
    writes whether or not ``purge_expired`` ran.
    """

    def __init__(
        self,
        *,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the store.

        Args:
            max_entries: Maximum number of keys held at once (None for unlimited).
                When full, expired entries are purged; live ones are never evicted.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If max_entries is invalid.
        """
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be >= 1")

        self._max_entries = max_entries
        self._clock = clock
        self._table_lock = threading.Lock()
        self._slots: dict[str, _KeySlot] = {}

    def __len__(self) -> int:
        return len(self._slots)

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"InMemoryRateLimitStore(max_entries={self._max_entries}, size={len(self._slots)})"

    @contextmanager
    def lock(self, key: str) -> Iterator[None]:
        with self._held_slot(key):
            yield

    def get_or_init(self, key: str, ttl_seconds: float) -> int:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")

        with self._held_slot(key) as slot:
            now = self._clock()
            if slot.entry is None or self._is_expired(slot.entry, now):
                slot.entry = CounterEntry(count=0, expires_at=now + ttl_seconds)
                return 0
            return slot.entry.count

    def increment(self, key: str) -> int:
        with self._existing_slot(key) as slot:
            if slot is None or slot.entry is None:
                return 0
            if self._is_expired(slot.entry, self._clock()):
                return 0
            slot.entry.count += 1
            return slot.entry.count

    def expires_at(self, key: str) -> float | None:
        with self._existing_slot(key) as slot:
            if slot is None or slot.entry is None:
                return None
            if self._is_expired(slot.entry, self._clock()):
                return None
            return slot.entry.expires_at

    def purge_expired(self) -> int:
        with self._table_lock:
            removed = self._purge_expired_locked()

        if removed:
            logger.debug(
                "rate_limit_store.purged",
                extra={"removed": removed, "size": len(self._slots)},
            )
        return removed

    @contextmanager
    def _held_slot(self, key: str) -> Iterator[_KeySlot]:
        """Acquire the slot of ``key``, creating it if needed, and yield it locked."""
        self._check_key(key)
        slot = self._create_and_lock(key)
        with self._holding(slot):
            yield slot

    @contextmanager
    def _existing_slot(self, key: str) -> Iterator[_KeySlot | None]:
        """Yield the locked slot of ``key``, or None when the key has no slot."""
        self._check_key(key)
        slot = self._find_and_lock(key)
        if slot is None:
            yield None
            return
        with self._holding(slot):
            yield slot

    @staticmethod
    @contextmanager
    def _holding(slot: _KeySlot) -> Iterator[None]:
        """Track a holder of an already acquired slot and release it on exit."""
        slot.depth += 1
        try:
            yield
        finally:
            slot.depth -= 1
            slot.lock.release()

    @staticmethod
    def _check_key(key: str) -> None:
        if not key:
            raise ValueError("key must be a non-empty string")

    def _create_and_lock(self, key: str) -> _KeySlot:
        while True:
            slot = self._slots.get(key)
            if slot is None:
                slot = self._insert_slot(key)
            if self._lock_live(slot):
                return slot

    def _find_and_lock(self, key: str) -> _KeySlot | None:
        while True:
            slot = self._slots.get(key)
            if slot is None:
                return None
            if self._lock_live(slot):
                return slot

    @staticmethod
    def _lock_live(slot: _KeySlot) -> bool:
        """Lock ``slot`` unless it was purged meanwhile; callers then look the key up again."""
        slot.lock.acquire()
        if not slot.retired:
            return True
        slot.lock.release()
        return False

    def _insert_slot(self, key: str) -> _KeySlot:
        with self._table_lock:
            slot = self._slots.get(key)
            if slot is not None:
                return slot

            if self._max_entries is not None and len(self._slots) >= self._max_entries:
                self._purge_expired_locked()
                if len(self._slots) >= self._max_entries:
                    logger.error(
                        "rate_limit_store.full",
                        extra={"max_entries": self._max_entries},
                    )
                    raise RateLimitStoreFullError(
                        code="rate_limit_store_full",
                        message="Rate limit store is at capacity with only live entries",
                        details={"max_entries": self._max_entries},
                    )

            slot = _KeySlot()
            self._slots[key] = slot
            return slot

    def _purge_expired_locked(self) -> int:
        now = self._clock()
        removed = 0
        for key, slot in list(self._slots.items()):
            # Busy slots are in use right now; skip them.
            if not slot.lock.acquire(blocking=False):
                continue
            try:
                if slot.depth > 0:
                    continue
                if slot.entry is not None and not self._is_expired(slot.entry, now):
                    continue
                slot.retired = True
                del self._slots[key]
                removed += 1
            finally:
                slot.lock.release()
        return removed

    @staticmethod
    def _is_expired(entry: CounterEntry, now: float) -> bool:
        return now >= entry.expires_at
