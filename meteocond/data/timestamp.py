"""
Timestamps
==========
Julian-day based dates with a tolerant equality.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Union

# Julian day of the UNIX epoch
UNIX_EPOCH_JULIAN = 2440587.5
SECONDS_PER_DAY = 86400.0

# Two dates closer than one second are equal
EPSILON = 1.0 / SECONDS_PER_DAY

_UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

Duration = Union[float, int, timedelta]


def _to_days(duration: Duration) -> float:
    if isinstance(duration, timedelta):
        return duration.total_seconds() / SECONDS_PER_DAY
    return float(duration)


@dataclass(frozen=True, eq=False)
class Date:
    """
    Immutable point in time stored as a fractional Julian day (GMT).

    Calendar fields are always derived from the Julian value, so arithmetic
    keeps them consistent. Durations are in days (or ``timedelta``).
    """

    julian: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "julian", float(self.julian))

    # ---- constructors ----
    @classmethod
    def from_datetime(cls, dt: datetime) -> "Date":
        """Naive datetimes are taken as UTC."""
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        seconds = (dt - _UNIX_EPOCH).total_seconds()
        return cls(seconds / SECONDS_PER_DAY + UNIX_EPOCH_JULIAN)

    @classmethod
    def from_unix(cls, seconds: float) -> "Date":
        return cls(seconds / SECONDS_PER_DAY + UNIX_EPOCH_JULIAN)

    @classmethod
    def from_iso(cls, text: str) -> "Date":
        return cls.from_datetime(datetime.fromisoformat(text.replace("Z", "+00:00")))

    @classmethod
    def from_calendar(
        cls, year: int, month: int, day: int, hour: int = 0, minute: int = 0, second: float = 0.0
    ) -> "Date":
        base = datetime(year, month, day, hour, minute, tzinfo=timezone.utc)
        return cls.from_datetime(base) + second / SECONDS_PER_DAY

    # ---- calendar decomposition ----
    @property
    def unix(self) -> float:
        return (self.julian - UNIX_EPOCH_JULIAN) * SECONDS_PER_DAY

    @property
    def datetime(self) -> datetime:
        # rounded to the millisecond, a julian float only resolves ~50 microseconds
        millis = round(self.unix * 1e3)
        return _UNIX_EPOCH + timedelta(milliseconds=millis)

    @property
    def year(self) -> int:
        return self.datetime.year

    @property
    def month(self) -> int:
        return self.datetime.month

    @property
    def day(self) -> int:
        return self.datetime.day

    @property
    def hour(self) -> int:
        return self.datetime.hour

    @property
    def minute(self) -> int:
        return self.datetime.minute

    @property
    def second(self) -> float:
        dt = self.datetime
        return dt.second + dt.microsecond / 1e6

    def to_iso(self) -> str:
        return self.datetime.replace(tzinfo=None).isoformat(timespec="seconds")

    # ---- arithmetic ----
    def __add__(self, duration: Duration) -> "Date":
        if isinstance(duration, Date):
            return NotImplemented
        return Date(self.julian + _to_days(duration))

    __radd__ = __add__

    def __sub__(self, other):
        if isinstance(other, Date):
            return self.julian - other.julian
        return Date(self.julian - _to_days(other))

    # ---- comparison ----
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Date):
            return NotImplemented
        return abs(self.julian - other.julian) < EPSILON

    def __ne__(self, other: object) -> bool:
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __lt__(self, other: "Date") -> bool:
        if not isinstance(other, Date):
            return NotImplemented
        return self.julian < other.julian and not self == other

    def __le__(self, other: "Date") -> bool:
        if not isinstance(other, Date):
            return NotImplemented
        return self.julian < other.julian or self == other

    def __gt__(self, other: "Date") -> bool:
        if not isinstance(other, Date):
            return NotImplemented
        return other < self

    def __ge__(self, other: "Date") -> bool:
        if not isinstance(other, Date):
            return NotImplemented
        return other <= self

    # equality is tolerant and not transitive, Dates can not be dict or set keys
    __hash__ = None

    def __repr__(self) -> str:
        return f"Date({self.to_iso()})"

    def __str__(self) -> str:
        return self.to_iso()
