"""
Quality Control Filters
=======================
Filters consume one parameter of a full series and return a series of the
same length and dates, where values may be rejected (set to nodata) or
replaced by a computed value.

Arguments follow one convention: an optional leading "soft" token, an
optional centering token (windowed filters), then numeric thresholds in a
fixed, filter-specific order.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Type

import numpy as np

from meteocond.data.observation import NODATA, Series, is_nodata
from meteocond.data.properties import ProcessingProperties, ProcessingStage
from meteocond.data.timestamp import SECONDS_PER_DAY
from meteocond.exceptions import ConfigurationError, InvalidArgument
from meteocond.processing.window import Centering, SeriesWindow, WindowExtractor, WindowSpec, parse_window_tokens

logger = logging.getLogger(__name__)

FILTER_REGISTRY: Dict[str, Type["FilterBlock"]] = {}


def register_filter(name: str) -> Callable[[Type["FilterBlock"]], Type["FilterBlock"]]:
    """Class decorator adding a filter to FILTER_REGISTRY."""
    def decorator(cls: Type["FilterBlock"]) -> Type["FilterBlock"]:
        FILTER_REGISTRY[name.upper()] = cls
        cls.block_name = name.upper()
        return cls
    return decorator


def create_filter(name: str, args: Optional[List[str]] = None) -> "FilterBlock":
    """
    Build a filter from its registry name and argument tokens.

    Args:
        name: Filter name, e.g. "RATE" (case-insensitive)
        args: Argument tokens

    Returns:
        Configured filter
    """
    cls = FILTER_REGISTRY.get(name.strip().upper())
    if cls is None:
        raise ConfigurationError(
            f"The filter '{name}' does not exist, available: {', '.join(sorted(FILTER_REGISTRY))}"
        )
    return cls(list(args or []))


class FilterBlock(ABC):
    """Base class of all filters."""

    block_name = "FILTER"

    def __init__(self):
        self.properties = ProcessingProperties()
        self.is_soft = False

    @abstractmethod
    def process(self, param: str, series: Series) -> Series:
        """
        Filter one parameter.

        Args:
            param: Parameter name
            series: Input series (left untouched)

        Returns:
            New series aligned 1:1 with the input
        """

    def convert_args(self, min_nargs: int, max_nargs: int, tokens: List[str]) -> List[float]:
        """Parse numeric argument tokens, checking their count."""
        if not min_nargs <= len(tokens) <= max_nargs:
            raise InvalidArgument(
                f"Wrong number of arguments for filter {self.block_name}: "
                f"expected {min_nargs}..{max_nargs}, got {len(tokens)}"
            )
        values = []
        for token in tokens:
            try:
                values.append(float(token))
            except ValueError:
                raise ConfigurationError(
                    f"Can not parse argument '{token}' of filter {self.block_name}"
                ) from None
        return values

    @staticmethod
    def copy_series(series: Series) -> Series:
        return [obs.copy() for obs in series]

    def __repr__(self) -> str:
        mode = "soft " if self.is_soft else ""
        return f"[{self.block_name} {mode}{self.properties}]"


class WindowedFilter(FilterBlock):
    """Filter computing each output point from a window of input points."""

    def __init__(self):
        super().__init__()
        self.centering = Centering.CENTER
        self.extractor: Optional[WindowExtractor] = None

    def parse_window_args(self, tokens: List[str], min_extra: int = 0, max_extra: int = 0) -> List[float]:
        """
        Parse "[soft] [centering] min_points min_span [extra...]".

        Returns:
            The extra numeric arguments following the window definition
        """
        soft, centering, remaining = parse_window_tokens(tokens)
        values = self.convert_args(2 + min_extra, 2 + max_extra, remaining)
        min_points, min_span = values[0], values[1]
        if min_points < 1 or min_span < 0:
            raise ConfigurationError(f"Invalid window size configuration for filter {self.block_name}")

        self.is_soft = soft
        if centering is not None:
            self.centering = centering
        spec = WindowSpec(
            min_points=int(np.floor(min_points)),
            min_span=min_span,
            centering=self.centering,
            soft=soft,
        )
        self.extractor = WindowExtractor(spec)

        # safe but generous: a full window on each side
        self.properties.points_before = spec.min_points
        self.properties.points_after = spec.min_points
        self.properties.time_before = spec.min_span
        self.properties.time_after = spec.min_span
        return values[2:]

    def get_window(self, index: int, series: Series) -> Optional[SeriesWindow]:
        return self.extractor.extract(index, series)

    def process(self, param: str, series: Series) -> Series:
        output = self.copy_series(series)
        for ii in range(len(series)):
            window = self.get_window(ii, series)
            if window is None:
                continue
            output[ii][param] = self.process_window(param, series[ii].get(param), window)
        return output

    @abstractmethod
    def process_window(self, param: str, value: float, window: SeriesWindow) -> float:
        """New value of a point given its window (may return NODATA)."""


@register_filter("RATE")
class RateFilter(FilterBlock):
    """
    Rejects values changing faster than a maximum rate (per second)
    relative to the last accepted value.
    """

    def __init__(self, args: List[str]):
        super().__init__()
        (self.max_rate,) = self.convert_args(1, 1, args)
        if self.max_rate < 0:
            raise ConfigurationError(f"Invalid maximum rate {self.max_rate} for filter {self.block_name}")
        self.properties.stage = ProcessingStage.BOTH

    def process(self, param: str, series: Series) -> Series:
        output = self.copy_series(series)
        reference = None

        for obs in output:
            value = obs.get(param)
            if is_nodata(value):
                continue
            if reference is None:
                reference = obs
                continue

            dt = (obs.date.julian - reference.date.julian) * SECONDS_PER_DAY
            delta = value - reference[param]
            if dt > 0:
                rate = abs(delta) / dt
            else:
                rate = 0.0 if delta == 0 else np.inf

            if rate > self.max_rate:
                obs[param] = NODATA
            else:
                reference = obs

        return output


@register_filter("MEDIAN_AVG")
class MedianAvgFilter(WindowedFilter):
    """Running median over a window."""

    def __init__(self, args: List[str]):
        super().__init__()
        self.parse_window_args(args)

    def process_window(self, param: str, value: float, window: SeriesWindow) -> float:
        return calc_median(window.valid_values(param))


@register_filter("MEAN_AVG")
class MeanAvgFilter(WindowedFilter):
    """Running mean over a window."""

    def __init__(self, args: List[str]):
        super().__init__()
        self.parse_window_args(args)

    def process_window(self, param: str, value: float, window: SeriesWindow) -> float:
        values = window.valid_values(param)
        if values.size == 0:
            return NODATA
        return float(np.mean(values))


@register_filter("STD_DEV")
class StdDevFilter(WindowedFilter):
    """
    Rejects values further than k standard deviations from the window mean.

    Args (tokens): [soft] [centering] min_points min_span [k]
    """

    DEFAULT_SIGMA = 2.0

    def __init__(self, args: List[str]):
        super().__init__()
        extra = self.parse_window_args(args, min_extra=0, max_extra=1)
        self.sigma = extra[0] if extra else self.DEFAULT_SIGMA
        if self.sigma <= 0:
            raise ConfigurationError(f"Invalid sigma {self.sigma} for filter {self.block_name}")

    def process_window(self, param: str, value: float, window: SeriesWindow) -> float:
        if is_nodata(value):
            return NODATA
        values = window.valid_values(param)
        if values.size < 2:
            return value

        mean = float(np.mean(values))
        std = float(np.std(values, ddof=1))
        if abs(value - mean) > self.sigma * std:
            return NODATA
        return value


class _LimitFilter(FilterBlock):
    """Shared logic of the MIN / MAX / MIN_MAX range checks."""

    def __init__(self, args: List[str], nargs: int):
        super().__init__()
        tokens = list(args)
        if tokens and tokens[0].strip().lower() == "soft":
            self.is_soft = True
            tokens.pop(0)
        self.limits = self.convert_args(nargs, nargs, tokens)
        self.lower: Optional[float] = None
        self.upper: Optional[float] = None

    def process(self, param: str, series: Series) -> Series:
        output = self.copy_series(series)
        for obs in output:
            value = obs.get(param)
            if is_nodata(value):
                continue
            if self.lower is not None and value < self.lower:
                obs[param] = self.lower if self.is_soft else NODATA
            elif self.upper is not None and value > self.upper:
                obs[param] = self.upper if self.is_soft else NODATA
        return output


@register_filter("MIN")
class MinFilter(_LimitFilter):
    """Rejects (hard) or clamps (soft) values below a minimum."""

    def __init__(self, args: List[str]):
        super().__init__(args, 1)
        self.lower = self.limits[0]


@register_filter("MAX")
class MaxFilter(_LimitFilter):
    """Rejects (hard) or clamps (soft) values above a maximum."""

    def __init__(self, args: List[str]):
        super().__init__(args, 1)
        self.upper = self.limits[0]


@register_filter("MIN_MAX")
class MinMaxFilter(_LimitFilter):
    """Range check."""

    def __init__(self, args: List[str]):
        super().__init__(args, 2)
        self.lower, self.upper = self.limits
        if self.lower > self.upper:
            raise ConfigurationError(
                f"Minimum {self.lower} larger than maximum {self.upper} for filter {self.block_name}"
            )


def calc_median(values: np.ndarray) -> float:
    """
    Median by selection (no full sort). Even counts average the two
    central elements.

    Args:
        values: Valid values

    Returns:
        Median, or NODATA for an empty input
    """
    n = values.size
    if n == 0:
        return NODATA
    middle = n // 2
    if n % 2 == 1:
        return float(np.partition(values, middle)[middle])
    part = np.partition(values, (middle - 1, middle))
    return 0.5 * float(part[middle - 1]) + 0.5 * float(part[middle])
