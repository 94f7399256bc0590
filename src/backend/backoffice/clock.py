from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Optional, Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        ...


@dataclass(frozen=True)
class SystemClock:
    """Wall clock in ``tz``, or in the machine's local timezone when ``tz`` is unset."""

    tz: Optional[tzinfo] = None

    def now(self) -> datetime:
        if self.tz is not None:
            return datetime.now(self.tz)
        return datetime.now().astimezone()


@dataclass(frozen=True)
class FixedClock:
    """
    Clock pinned to a single instant.

    Naive instants are interpreted in ``tz`` (or the local timezone when no
    ``tz`` is supplied) so aggregation always works with aware datetimes.
    """

    at: datetime
    tz: Optional[tzinfo] = None

    def now(self) -> datetime:
        if self.at.tzinfo is None:
            if self.tz is not None:
                return self.at.replace(tzinfo=self.tz)
            return self.at.astimezone()
        if self.tz is not None:
            return self.at.astimezone(self.tz)
        return self.at


SYSTEM_CLOCK: Clock = SystemClock()

