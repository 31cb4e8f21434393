"""Core time type: UtcDatetime.

Contract timestamps are stored as i64 unix seconds, so every UtcDatetime
that reaches a ContractRecord is truncated to whole seconds first.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import final

from settlor.core.result import Err, Ok


@final
@dataclass(frozen=True, slots=True)
class UtcDatetime:
    """Timezone-aware UTC datetime. Naive datetimes are rejected."""

    value: datetime

    def __post_init__(self) -> None:
        if self.value.tzinfo is None:
            raise TypeError("UtcDatetime requires timezone-aware datetime, got naive")

    @staticmethod
    def parse(raw: datetime) -> Ok[UtcDatetime] | Err[str]:
        """Parse a datetime, rejecting naive (no tzinfo) datetimes."""
        if raw.tzinfo is None:
            return Err("UtcDatetime requires timezone-aware datetime, got naive")
        return Ok(UtcDatetime(value=raw.astimezone(UTC)))

    @staticmethod
    def now() -> UtcDatetime:
        return UtcDatetime(value=datetime.now(tz=UTC))

    @staticmethod
    def from_unix_seconds(seconds: int) -> UtcDatetime:
        return UtcDatetime(value=datetime.fromtimestamp(seconds, tz=UTC))

    @property
    def unix_seconds(self) -> int:
        """Whole seconds since the epoch (floor)."""
        return int(self.value.timestamp() // 1)

    def whole_seconds(self) -> UtcDatetime:
        """Drop sub-second precision."""
        return UtcDatetime(value=self.value.astimezone(UTC).replace(microsecond=0))

    def shifted(self, delta: timedelta) -> UtcDatetime:
        return UtcDatetime(value=self.value + delta)

    def __lt__(self, other: UtcDatetime) -> bool:
        return self.value < other.value

    def __le__(self, other: UtcDatetime) -> bool:
        return self.value <= other.value

    def __gt__(self, other: UtcDatetime) -> bool:
        return self.value > other.value

    def __ge__(self, other: UtcDatetime) -> bool:
        return self.value >= other.value
