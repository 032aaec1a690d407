from datetime import date, datetime, timedelta
import pytz
from circulation.config import settings

# Library-local timezone (GMT+8 by default)
LOCAL_TZ = pytz.timezone(settings.timezone)


class Clock:
    """Source of "now" and "today" for circulation code."""

    def now(self) -> datetime:
        raise NotImplementedError

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    def __init__(self, tz=None):
        self.tz = tz or LOCAL_TZ

    def now(self) -> datetime:
        return datetime.now(self.tz)


class FixedClock(Clock):
    """A clock that only moves when told to. Used by tests and replays."""

    def __init__(self, current: datetime, tz=None):
        self.tz = tz or LOCAL_TZ
        self.set(current)

    def set(self, current) -> None:
        if not isinstance(current, datetime):
            current = datetime(current.year, current.month, current.day, 12, 0)
        if current.tzinfo is None:
            current = self.tz.localize(current)
        self._current = current

    def advance(self, **delta) -> None:
        self._current = self._current + timedelta(**delta)

    def now(self) -> datetime:
        return self._current


def as_local_date(value, tz=None) -> date:
    """Reduce a date or datetime to a calendar date in the library's timezone."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(tz or LOCAL_TZ)
        return value.date()
    return value
