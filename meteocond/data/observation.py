"""
Observations and Series
=======================
Value types flowing through the pipeline: one Observation per timestamp,
a Series per station.
"""

from __future__ import annotations

import math
from bisect import bisect_left, bisect_right
from typing import Dict, Iterable, List, Optional

import numpy as np

from meteocond.data.timestamp import EPSILON, Date

# Reserved "unknown/missing" marker
NODATA = -999.0

# Canonical parameters, always present in an Observation
PARAMETERS = (
    "P",       # air pressure (Pa)
    "TA",      # air temperature (K)
    "RH",      # relative humidity (0-1)
    "TSG",     # ground surface temperature (K)
    "TSS",     # snow surface temperature (K)
    "HS",      # snow height (m)
    "VW",      # wind velocity (m/s)
    "DW",      # wind direction (deg)
    "VW_MAX",  # gust wind velocity (m/s)
    "RSWR",    # reflected short wave radiation (W/m2)
    "ISWR",    # incoming short wave radiation (W/m2)
    "ILWR",    # incoming long wave radiation (W/m2)
    "PSUM",    # precipitation sum over the time step (mm)
)


def is_nodata(value: Optional[float]) -> bool:
    """True for the nodata sentinel, None and NaN."""
    if value is None:
        return True
    return value == NODATA or math.isnan(value)


class Observation:
    """
    One record of a station: a date plus parameter -> value mapping.

    The canonical PARAMETERS always exist; other parameters are added on
    first assignment (or via ``add_parameter``). Values are floats, NODATA
    marks a missing value.
    """

    __slots__ = ("date", "station_id", "resampled", "_values")

    def __init__(
        self,
        date: Date,
        station_id: str = "",
        values: Optional[Dict[str, float]] = None,
        resampled: bool = False,
    ):
        self.date = date
        self.station_id = station_id
        self.resampled = resampled
        self._values: Dict[str, float] = dict.fromkeys(PARAMETERS, NODATA)
        if values:
            for name, value in values.items():
                self[name] = value

    # ---- parameter access ----
    def __getitem__(self, name: str) -> float:
        return self._values[name]

    def __setitem__(self, name: str, value: Optional[float]) -> None:
        self._values[name] = NODATA if is_nodata(value) else float(value)

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def get(self, name: str, default: float = NODATA) -> float:
        return self._values.get(name, default)

    def add_parameter(self, name: str) -> None:
        """Declare an extra parameter (initialised to nodata)."""
        self._values.setdefault(name, NODATA)

    @property
    def parameter_names(self) -> List[str]:
        return list(self._values.keys())

    @property
    def extra_parameters(self) -> List[str]:
        return [name for name in self._values if name not in PARAMETERS]

    def to_dict(self) -> Dict[str, float]:
        return dict(self._values)

    # ---- state ----
    def reset(self) -> None:
        """Set every parameter to nodata, keeping date and station."""
        for name in self._values:
            self._values[name] = NODATA

    def has_nodata(self, names: Optional[Iterable[str]] = None) -> bool:
        names = self._values.keys() if names is None else names
        return any(is_nodata(self._values.get(name)) for name in names)

    def copy(self) -> "Observation":
        clone = Observation.__new__(Observation)
        clone.date = self.date
        clone.station_id = self.station_id
        clone.resampled = self.resampled
        clone._values = dict(self._values)
        return clone

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Observation):
            return NotImplemented
        return (
            self.date == other.date
            and self.station_id == other.station_id
            and self._values == other._values
        )

    __hash__ = None  # mutable

    def __repr__(self) -> str:
        present = {k: v for k, v in self._values.items() if v != NODATA}
        return f"Observation({self.station_id!r}, {self.date}, {present})"


# Ordered list of observations of one station, non-decreasing dates
Series = List[Observation]


def series_julian(series: Series) -> np.ndarray:
    """Julian dates of a series."""
    return np.fromiter((obs.date.julian for obs in series), dtype=float, count=len(series))


def series_values(series: Series, param: str) -> np.ndarray:
    """Values of one parameter, NaN where nodata (or absent)."""
    values = np.fromiter((obs.get(param) for obs in series), dtype=float, count=len(series))
    values[values == NODATA] = np.nan
    return values


def seek(date: Date, series: Series) -> int:
    """
    Index of the first element not earlier than date (len(series) if none).
    Tolerant to the Date equality epsilon.
    """
    lo, hi = 0, len(series)
    while lo < hi:
        mid = (lo + hi) // 2
        if series[mid].date < date:
            lo = mid + 1
        else:
            hi = mid
    return lo


def slice_series(series: Series, start: Date, end: Date) -> Series:
    """
    Observations with start <= date <= end (shared, not copied).

    Args:
        series: Ordered series
        start: Inclusive start
        end: Inclusive end

    Returns:
        New list referencing the same Observation objects
    """
    if not series or end < start:
        return []
    julian = [obs.date.julian for obs in series]
    lo = bisect_left(julian, start.julian - EPSILON)
    hi = bisect_right(julian, end.julian + EPSILON)
    # tolerance may include dates just outside; trim with the Date comparisons
    while lo < hi and series[lo].date < start:
        lo += 1
    while hi > lo and series[hi - 1].date > end:
        hi -= 1
    return series[lo:hi]
