"""
Sliding Windows
===============
Index windows around a point of a series, shared by all windowed filters.
"""

from dataclasses import dataclass
from enum import Enum
from collections.abc import Sequence
from typing import List, Optional, Tuple

import numpy as np

from meteocond.data.observation import Series, series_values
from meteocond.data.timestamp import SECONDS_PER_DAY
from meteocond.exceptions import ConfigurationError

# Rounding slack when comparing spans, in seconds
_SPAN_TOLERANCE = 1e-3


class Centering(Enum):
    """Where the window lies relative to its point."""
    LEFT = "left"      # window made of the point and earlier data
    CENTER = "center"  # grows on both sides
    RIGHT = "right"    # window made of the point and later data

    @classmethod
    def from_token(cls, token: str) -> Optional["Centering"]:
        try:
            return cls(token.strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class WindowSpec:
    """
    Window requirements. Both minimums are lower bounds, a minimum of 0
    is not checked.

    Attributes:
        min_points: Minimum number of observations in the window
        min_span: Minimum time between first and last observation (seconds)
        centering: Growth direction
        soft: Accept truncated windows at the series boundaries
    """
    min_points: int = 0
    min_span: float = 0.0
    centering: Centering = Centering.CENTER
    soft: bool = False

    def __post_init__(self) -> None:
        if self.min_points < 0 or self.min_span < 0:
            raise ConfigurationError(
                f"Window minimums must not be negative (points={self.min_points}, span={self.min_span})"
            )
        if self.min_points < 1 and self.min_span <= 0:
            raise ConfigurationError("A window needs a minimum number of points or a positive time span")


def _is_satisfied(series: Series, start: int, end: int, spec: WindowSpec) -> bool:
    if spec.min_points > 0 and end - start + 1 < spec.min_points:
        return False
    if spec.min_span > 0:
        span = (series[end].date.julian - series[start].date.julian) * SECONDS_PER_DAY
        if span < spec.min_span - _SPAN_TOLERANCE:
            return False
    return True


def window_for(index: int, series: Series, spec: WindowSpec) -> Optional[Tuple[int, int]]:
    """
    Grow a window from index until every minimum of spec is met.

    Args:
        index: Point the window is built for
        series: Ordered series
        spec: Window requirements

    Returns:
        Inclusive (start, end) indices, or None when a hard window can not
        be built (the point can not be processed)
    """
    n = len(series)
    if not 0 <= index < n:
        raise IndexError(f"Window index {index} out of range for a series of {n}")

    start = end = index
    step = 0
    while not _is_satisfied(series, start, end, spec):
        can_left = start > 0
        can_right = end < n - 1

        if spec.centering is Centering.LEFT:
            preferred_left = True
        elif spec.centering is Centering.RIGHT:
            preferred_left = False
        else:
            preferred_left = step % 2 == 0
        step += 1

        if preferred_left and can_left:
            start -= 1
        elif not preferred_left and can_right:
            end += 1
        elif not spec.soft:
            return None
        elif can_left:
            start -= 1
        elif can_right:
            end += 1
        else:
            # whole series used, return what we have
            break

    return start, end


class SeriesWindow(Sequence):
    """Read-only view over series[start:end+1], without copying."""

    __slots__ = ("_series", "start", "end")

    def __init__(self, series: Series, start: int, end: int):
        self._series = series
        self.start = start
        self.end = end

    def __len__(self) -> int:
        return self.end - self.start + 1

    def __getitem__(self, item):
        if isinstance(item, slice):
            return [self._series[self.start + ii] for ii in range(*item.indices(len(self)))]
        if item < 0:
            item += len(self)
        if not 0 <= item < len(self):
            raise IndexError("window index out of range")
        return self._series[self.start + item]

    def values(self, param: str) -> np.ndarray:
        """Window values of param, NaN for nodata."""
        return series_values(self._series[self.start:self.end + 1], param)

    def valid_values(self, param: str) -> np.ndarray:
        values = self.values(param)
        return values[~np.isnan(values)]

    def __repr__(self) -> str:
        return f"SeriesWindow([{self.start}, {self.end}])"


class WindowExtractor:
    """Binds a WindowSpec and extracts windows from series."""

    def __init__(self, spec: WindowSpec):
        self.spec = spec

    def window_for(self, index: int, series: Series) -> Optional[Tuple[int, int]]:
        return window_for(index, series, self.spec)

    def extract(self, index: int, series: Series) -> Optional[SeriesWindow]:
        bounds = window_for(index, series, self.spec)
        if bounds is None:
            return None
        return SeriesWindow(series, *bounds)


def parse_window_tokens(tokens: List[str]) -> Tuple[bool, Optional[Centering], List[str]]:
    """
    Split the leading "soft" and centering tokens off a filter argument list.

    Returns:
        Tuple of (soft, centering or None, remaining tokens)
    """
    remaining = list(tokens)
    soft = False
    centering = None
    if remaining and remaining[0].strip().lower() == "soft":
        soft = True
        remaining.pop(0)
    if remaining:
        centering = Centering.from_token(remaining[0])
        if centering is not None:
            remaining.pop(0)
    return soft, centering, remaining
