"""Rate limit policies per notification type.

A policy table is built once at startup and handed to the admission
controller. It is read-only for the lifetime of the process.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from datetime import timedelta
from types import MappingProxyType

from notifier.core.config import RateLimitRule
from notifier.core.errors import ValidationAppError


@dataclass(frozen=True)
class PolicyEntry:
    """Maximum number of notifications allowed within a period.

    Attributes:
        limit: Allowed notifications per window. 0 blocks the type entirely.
        period: Window length, counted from the first notification of a key.
    """

    limit: int
    period: timedelta

    def __post_init__(self) -> None:
        if self.limit < 0:
            raise ValidationAppError(
                code="invalid_rate_limit",
                message="limit must be >= 0",
                details={"limit": self.limit},
            )
        if self.period <= timedelta(0):
            raise ValidationAppError(
                code="invalid_rate_limit_period",
                message="period must be a positive duration",
                details={"context": {"period_seconds": self.period.total_seconds()}},
            )

    @property
    def period_seconds(self) -> float:
        return self.period.total_seconds()


class PolicyTable(Mapping[str, PolicyEntry]):
    """Immutable mapping of notification type to its policy.

    Types without an entry are unrestricted.
    """

    def __init__(self, policies: Mapping[str, PolicyEntry] | None = None) -> None:
        self._policies: Mapping[str, PolicyEntry] = MappingProxyType(dict(policies or {}))

    def __getitem__(self, notification_type: str) -> PolicyEntry:
        return self._policies[notification_type]

    def __iter__(self) -> Iterator[str]:
        return iter(self._policies)

    def __len__(self) -> int:
        return len(self._policies)

    def __repr__(self) -> str:
        return f"PolicyTable({dict(self._policies)!r})"

    @classmethod
    def from_rules(cls, rules: Mapping[str, RateLimitRule]) -> "PolicyTable":
        """Build a table from configured rules.

        Args:
            rules: Mapping of notification type to validated settings rule.

        Returns:
            PolicyTable with one entry per configured type.

        Raises:
            ValidationAppError: If a rule has an empty type or invalid values.
        """
        policies: dict[str, PolicyEntry] = {}
        for notification_type, rule in rules.items():
            if not notification_type:
                raise ValidationAppError(
                    code="invalid_notification_type",
                    message="notification type must be a non-empty string",
                )
            policies[notification_type] = PolicyEntry(limit=rule.limit, period=rule.period)
        return cls(policies)
