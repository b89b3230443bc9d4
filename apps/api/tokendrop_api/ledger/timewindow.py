"""Local civil day to UTC instant conversion.

Range filters arrive as calendar dates (``YYYY-MM-DD``) in the tenant's local
civil time, a fixed offset from UTC. A date-only ``start`` means local
00:00:00.000 of that day and a date-only ``end`` means local 23:59:59.999, so a
single-day filter covers the whole local day no matter how the store keeps its
timestamps.
"""

import re
from dataclasses import dataclass
from datetime import MINYEAR, date, datetime, time, timezone, tzinfo
from typing import Optional, Union

from tokendrop_api.errors import InvalidRange

DateBound = Union[str, date, None]

_DATE_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
_DAY_START = time(0, 0, 0, 0)
_DAY_END = time(23, 59, 59, 999000)


def parse_calendar_date(value: DateBound, field: str = "date") -> Optional[date]:
    """Parse a ``YYYY-MM-DD`` bound; empty means unbounded."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        raise InvalidRange(f"invalid {field} date", **{field: value.isoformat()})
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _DATE_RE.fullmatch(value):
        raise InvalidRange(f"invalid {field} date", **{field: str(value)})
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise InvalidRange(f"invalid {field} date", **{field: value}) from None


def _to_utc(day: date, clock: time, local_tz: tzinfo) -> datetime:
    try:
        return datetime.combine(day, clock, tzinfo=local_tz).astimezone(timezone.utc)
    except OverflowError:
        # First and last calendar days can shift outside datetime's range
        edge = datetime.min if day.year == MINYEAR else datetime.max
        return edge.replace(tzinfo=timezone.utc)


def local_day_start(day: date, local_tz: tzinfo) -> datetime:
    """UTC instant of local 00:00:00.000 on ``day``."""
    return _to_utc(day, _DAY_START, local_tz)


def local_day_end(day: date, local_tz: tzinfo) -> datetime:
    """UTC instant of local 23:59:59.999 on ``day``."""
    return _to_utc(day, _DAY_END, local_tz)


def as_utc(instant: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalize aware ones to UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def to_naive_utc(instant: datetime) -> datetime:
    """Storage form of an instant: naive, in UTC."""
    return as_utc(instant).replace(tzinfo=None)


def format_local_timestamp(instant: datetime, local_tz: tzinfo) -> str:
    """Render an instant in local civil time for display and export."""
    return as_utc(instant).astimezone(local_tz).strftime("%Y-%m-%d %H:%M:%S")


@dataclass(frozen=True)
class DayWindow:
    """Inclusive UTC instant bounds derived from local calendar dates."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @property
    def is_bounded(self) -> bool:
        return self.start is not None or self.end is not None

    def contains(self, instant: datetime) -> bool:
        instant = as_utc(instant)
        if self.start is not None and instant < self.start:
            return False
        if self.end is not None and instant > self.end:
            return False
        return True


def day_window(start: DateBound, end: DateBound, local_tz: tzinfo) -> DayWindow:
    """Build the instant window for a local ``[start, end]`` date range.

    Raises:
        InvalidRange: if either bound is not a valid calendar date
    """
    start_day = parse_calendar_date(start, "start")
    end_day = parse_calendar_date(end, "end")
    return DayWindow(
        start=local_day_start(start_day, local_tz) if start_day else None,
        end=local_day_end(end_day, local_tz) if end_day else None,
    )
