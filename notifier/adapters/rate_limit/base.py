"""Rate limit store interfaces.

The admission controller depends on this abstraction (not the concrete
implementation) so the counter storage can be swapped without touching the
decision logic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass


@dataclass
class CounterEntry:
    """Request count of one key inside its current window.

    Attributes:
        count: Requests admitted so far in the window.
        expires_at: UNIX epoch seconds at which the window ends.
    """

    count: int
    expires_at: float


class AbstractRateLimitStore(ABC):
    """Interface for per-key counters with time-bounded expiry.

    Expired entries are treated as absent by every operation.
    """

    @abstractmethod
    def lock(self, key: str) -> AbstractContextManager[None]:
        """Hold exclusive access to ``key`` for a read-check-increment sequence.

        Operations on other keys are not blocked.
        """
        raise NotImplementedError

    @abstractmethod
    def get_or_init(self, key: str, ttl_seconds: float) -> int:
        """Return the live count for ``key``, creating it at 0 when absent.

        Args:
            key: Counter key.
            ttl_seconds: Lifetime of a newly created entry.

        Returns:
            Current count (0 for a freshly created entry).
        """
        raise NotImplementedError

    @abstractmethod
    def increment(self, key: str) -> int:
        """Add 1 to the live entry of ``key`` and return the new count.

        Returns 0 without side effects when ``key`` has no live entry.
        """
        raise NotImplementedError

    @abstractmethod
    def expires_at(self, key: str) -> float | None:
        """Return when the live entry of ``key`` expires, or None."""
        raise NotImplementedError

    @abstractmethod
    def purge_expired(self) -> int:
        """Drop expired entries and return how many were removed."""
        raise NotImplementedError
