"""Clock abstraction so "now" can be fixed in tests."""

from datetime import datetime, timedelta, timezone, tzinfo


class Clock:
    """Wall clock returning timezone-aware datetimes."""

    def __init__(self, tz: tzinfo = timezone.utc) -> None:
        self.tz = tz

    def now(self) -> datetime:
        return datetime.now(self.tz)


class FixedClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, at: datetime) -> None:
        if at.tzinfo is None:
            raise ValueError("FixedClock needs a timezone-aware datetime")
        super().__init__(at.tzinfo)
        self._now = at

    def now(self) -> datetime:
        return self._now

    def advance(self, delta: timedelta) -> None:
        self._now = self._now + delta

    def set(self, at: datetime) -> None:
        self._now = at
