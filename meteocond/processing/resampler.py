"""
Time-Series Resampling Module
============================
Synthesizes parameter values at arbitrary dates from a buffered window.
Each parameter is bound to its own algorithm, selected in the
Interpolations1D section:

    TA::resample = linear
    TA::args     = extrapolate 86400
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Type

from meteocond.config import INTERPOLATIONS1D, Config
from meteocond.data.observation import NODATA, PARAMETERS, Observation, Series, is_nodata, seek
from meteocond.data.properties import ProcessingProperties
from meteocond.data.timestamp import SECONDS_PER_DAY, Date
from meteocond.exceptions import ConfigurationError, InvalidArgument

logger = logging.getLogger(__name__)

DEFAULT_ALGORITHM = "linear"

# Smallest accepted WINDOW_SIZE, in days
MIN_WINDOW_SIZE = 0.01


class ResamplingPosition(Enum):
    """Where the requested date falls relative to the series."""
    EXACT_MATCH = "exact_match"  # a sample exists at that date
    BEFORE = "before"            # between two samples, index is the one after
    BEGIN = "begin"              # before the first sample
    END = "end"                  # after the last sample


RESAMPLING_REGISTRY: Dict[str, Type["ResamplingAlgorithm"]] = {}


def register_algorithm(name: str) -> Callable[[Type["ResamplingAlgorithm"]], Type["ResamplingAlgorithm"]]:
    """Class decorator adding an algorithm to RESAMPLING_REGISTRY."""
    def decorator(cls: Type["ResamplingAlgorithm"]) -> Type["ResamplingAlgorithm"]:
        RESAMPLING_REGISTRY[name.lower()] = cls
        return cls
    return decorator


def create_algorithm(name: str, param: str, window_size: float, args: List[str]) -> "ResamplingAlgorithm":
    """
    Build a resampling algorithm.

    Args:
        name: Registered algorithm name (case-insensitive)
        param: Parameter the algorithm is bound to
        window_size: Default window, in days
        args: Algorithm-specific argument tokens

    Returns:
        Configured algorithm
    """
    cls = RESAMPLING_REGISTRY.get(name.strip().lower())
    if cls is None:
        raise ConfigurationError(
            f"The resampling algorithm '{name}' for {param} does not exist, "
            f"available: {', '.join(sorted(RESAMPLING_REGISTRY))}"
        )
    return cls(name.strip().lower(), param, window_size, list(args))


def linear_interpolate(x1: float, y1: float, x2: float, y2: float, x: float) -> float:
    """Value at x on the line through (x1, y1) and (x2, y2)."""
    if x1 == x2:
        return 0.5 * (y1 + y2)
    return y1 + (y2 - y1) * (x - x1) / (x2 - x1)


def bracket_starts(index: int, position: ResamplingPosition, n: int) -> Tuple[int, int]:
    """
    First indices to look at when searching valid neighbours.

    Returns:
        Tuple of (start of the backward search, start of the forward search);
        -1 and n mean "nothing on that side"
    """
    if position is ResamplingPosition.EXACT_MATCH:
        return index - 1, index + 1
    if position is ResamplingPosition.BEFORE:
        return index - 1, index
    if position is ResamplingPosition.BEGIN:
        return -1, 0
    return n - 1, n


class ResamplingAlgorithm(ABC):
    """Base class of the per-parameter resampling algorithms."""

    def __init__(self, algo: str, param: str, window_size: float, args: List[str]):
        """
        Args:
            algo: Algorithm name
            param: Bound parameter
            window_size: Default window, in days
            args: Argument tokens
        """
        self.algo = algo
        self.param = param
        self.window_size = window_size

    @property
    def where(self) -> str:
        return f"{INTERPOLATIONS1D}::{self.param}::{self.algo}"

    @property
    def properties(self) -> ProcessingProperties:
        """Support needed around a resampled date."""
        seconds = self.window_size * SECONDS_PER_DAY
        return ProcessingProperties(points_before=1, points_after=1, time_before=seconds, time_after=seconds)

    @abstractmethod
    def resample(
        self,
        index: int,
        position: ResamplingPosition,
        param: str,
        series: Series,
        date: Date,
        epoch: Optional[object] = None,
    ) -> float:
        """
        Value of param at date, or NODATA when it can not be supported.

        Args:
            index: Bracketing index (see ResamplingPosition)
            position: Classification of date against series
            param: Parameter name
            series: Raw window, ascending
            date: Requested date
            epoch: Identifier of the buffer content series comes from
        """

    def reset(self) -> None:
        """Drop any state derived from previous windows."""

    # ---- helpers ----
    def find_valid(self, series: Series, param: str, start: int, step: int, date: Date) -> Optional[int]:
        """Nearest valid index from start walking by step, within the window."""
        ii = start
        while 0 <= ii < len(series):
            obs = series[ii]
            if abs(obs.date.julian - date.julian) > self.window_size:
                return None
            if not is_nodata(obs.get(param)):
                return ii
            ii += step
        return None

    def parse_common_args(self, args: List[str]) -> bool:
        """
        Parse "[extrapolate] [window_seconds]".

        Returns:
            Whether extrapolation was requested
        """
        if len(args) > 2:
            raise InvalidArgument(f"Wrong number of arguments for {self.where}")
        extrapolate = False
        for token in args:
            if token.strip().lower() == "extrapolate":
                extrapolate = True
                continue
            try:
                seconds = float(token)
            except ValueError:
                raise ConfigurationError(f"Invalid argument '{token}' for {self.where}") from None
            if seconds / SECONDS_PER_DAY <= MIN_WINDOW_SIZE:
                raise ConfigurationError(f"Invalid window size {seconds}s for {self.where}")
            self.window_size = seconds / SECONDS_PER_DAY
        return extrapolate

    def __repr__(self) -> str:
        return f"{self.param}::{self.algo}"


@register_algorithm("none")
class NoResampling(ResamplingAlgorithm):
    """Only returns exact matches."""

    def __init__(self, algo: str, param: str, window_size: float, args: List[str]):
        super().__init__(algo, param, window_size, args)
        if args:
            raise InvalidArgument(f"Wrong number of arguments for {self.where}")

    @property
    def properties(self) -> ProcessingProperties:
        return ProcessingProperties()

    def resample(self, index, position, param, series, date, epoch=None) -> float:
        if position is ResamplingPosition.EXACT_MATCH:
            return series[index].get(param)
        return NODATA


@register_algorithm("nearest")
class NearestNeighbourResampling(ResamplingAlgorithm):
    """Value of the closest valid sample; equidistant neighbours are averaged."""

    def __init__(self, algo: str, param: str, window_size: float, args: List[str]):
        super().__init__(algo, param, window_size, args)
        self.extrapolate = self.parse_common_args(args)

    def resample(self, index, position, param, series, date, epoch=None) -> float:
        if position is ResamplingPosition.EXACT_MATCH:
            value = series[index].get(param)
            if not is_nodata(value):
                return value

        outside = position in (ResamplingPosition.BEGIN, ResamplingPosition.END)
        if outside and not self.extrapolate:
            return NODATA

        back, forward = bracket_starts(index, position, len(series))
        prev = self.find_valid(series, param, back, -1, date)
        nxt = self.find_valid(series, param, forward, 1, date)

        if prev is None and nxt is None:
            return NODATA
        if prev is None:
            return series[nxt][param]
        if nxt is None:
            return series[prev][param]

        dist_prev = date.julian - series[prev].date.julian
        dist_next = series[nxt].date.julian - date.julian
        if Date(date.julian - dist_prev) == Date(date.julian - dist_next):
            return 0.5 * (series[prev][param] + series[nxt][param])
        return series[prev][param] if dist_prev < dist_next else series[nxt][param]


@register_algorithm("linear")
class LinearResampling(ResamplingAlgorithm):
    """
    Linear interpolation between the closest valid samples on each side,
    provided they are no further apart than the window. Optional linear
    extrapolation from the two closest valid samples.
    """

    def __init__(self, algo: str, param: str, window_size: float, args: List[str]):
        super().__init__(algo, param, window_size, args)
        self.extrapolate = self.parse_common_args(args)

    def resample(self, index, position, param, series, date, epoch=None) -> float:
        if position is ResamplingPosition.EXACT_MATCH:
            value = series[index].get(param)
            if not is_nodata(value):
                return value

        back, forward = bracket_starts(index, position, len(series))
        prev = self.find_valid(series, param, back, -1, date)
        nxt = self.find_valid(series, param, forward, 1, date)

        if prev is not None and nxt is not None:
            p1, p2 = series[prev], series[nxt]
            if p2.date.julian - p1.date.julian <= self.window_size:
                return linear_interpolate(p1.date.julian, p1[param], p2.date.julian, p2[param], date.julian)

        if not self.extrapolate:
            return NODATA

        # two points on the same side of date
        if prev is not None:
            first = self.find_valid(series, param, prev - 1, -1, date)
            if first is not None:
                p1, p2 = series[first], series[prev]
                return linear_interpolate(p1.date.julian, p1[param], p2.date.julian, p2[param], date.julian)
        if nxt is not None:
            second = self.find_valid(series, param, nxt + 1, 1, date)
            if second is not None:
                p1, p2 = series[nxt], series[second]
                return linear_interpolate(p1.date.julian, p1[param], p2.date.julian, p2[param], date.julian)
        return NODATA


@register_algorithm("accumulate")
class AccumulateResampling(ResamplingAlgorithm):
    """
    Sum of the valid values within (date - period, date], for parameters
    such as precipitation. Nodata when the window does not cover the period.

    Args (tokens): period_seconds
    """

    def __init__(self, algo: str, param: str, window_size: float, args: List[str]):
        super().__init__(algo, param, window_size, args)
        if len(args) != 1:
            raise InvalidArgument(f"Wrong number of arguments for {self.where}")
        try:
            seconds = float(args[0])
        except ValueError:
            raise ConfigurationError(f"Invalid accumulation period '{args[0]}' for {self.where}") from None
        if seconds <= 0:
            raise ConfigurationError(f"Accumulation period must be positive for {self.where}")
        self.period = seconds / SECONDS_PER_DAY

    @property
    def properties(self) -> ProcessingProperties:
        return ProcessingProperties(points_before=1, time_before=self.period * SECONDS_PER_DAY)

    def resample(self, index, position, param, series, date, epoch=None) -> float:
        if position in (ResamplingPosition.BEGIN, ResamplingPosition.END):
            return NODATA

        window_start = Date(date.julian - self.period)
        if series[0].date > window_start:
            return NODATA

        total = 0.0
        found = False
        ii = index if position is ResamplingPosition.EXACT_MATCH else index - 1
        while ii >= 0 and series[ii].date > window_start:
            value = series[ii].get(param)
            if not is_nodata(value):
                total += value
                found = True
            ii -= 1
        return total if found else NODATA


class ResamplingDispatcher:
    """
    Holds one resampling algorithm per parameter and synthesizes
    observations at requested dates.

    Not thread safe: algorithms may cache data derived from the buffer.
    """

    def __init__(self, config: Optional[Config] = None):
        """
        Initialize the dispatcher. A malformed configuration fails here.

        Args:
            config: Configuration (Interpolations1D section)
        """
        self.config = config if config is not None else Config()

        window_size = self.config.window_size / SECONDS_PER_DAY
        if window_size <= MIN_WINDOW_SIZE:
            raise ConfigurationError(f"WINDOW_SIZE not valid: {self.config.window_size}s")
        self.window_size = window_size

        self.bindings: Dict[str, ResamplingAlgorithm] = {}
        for param in list(PARAMETERS) + self._configured_parameters():
            self._bind(param)

    def _configured_parameters(self) -> List[str]:
        params = []
        for key in self.config.keys(INTERPOLATIONS1D):
            for suffix in ("::RESAMPLE", "::ARGS"):
                if key.endswith(suffix):
                    param = key[: -len(suffix)]
                    if param not in params:
                        params.append(param)
        return params

    def get_algorithm_for(self, param: str) -> Tuple[str, List[str]]:
        """Configured (algorithm name, arguments) of a parameter."""
        name = self.config.get_string(f"{param}::resample", INTERPOLATIONS1D, DEFAULT_ALGORITHM)
        args = self.config.get_list(f"{param}::args", INTERPOLATIONS1D)
        return name, args

    def _bind(self, param: str) -> ResamplingAlgorithm:
        name, args = self.get_algorithm_for(param)
        algorithm = create_algorithm(name, param, self.window_size, args)
        self.bindings[param.upper()] = algorithm
        return algorithm

    def algorithm(self, param: str) -> ResamplingAlgorithm:
        """Algorithm bound to param, created with the configured defaults on first use."""
        algorithm = self.bindings.get(param.upper())
        if algorithm is None:
            logger.debug(f"Binding resampling algorithm for new parameter {param}")
            algorithm = self._bind(param)
        return algorithm

    def get_window_size(self) -> ProcessingProperties:
        """Data needed around a date so that every algorithm is fully supported."""
        seconds = self.window_size * SECONDS_PER_DAY
        properties = ProcessingProperties(points_before=1, points_after=1, time_before=seconds, time_after=seconds)
        for algorithm in self.bindings.values():
            properties = properties.merge(algorithm.properties)
        return properties

    def reset_cache(self) -> None:
        """Drop everything the algorithms derived from previous windows."""
        for algorithm in self.bindings.values():
            algorithm.reset()

    @staticmethod
    def classify(date: Date, series: Series) -> Tuple[int, ResamplingPosition]:
        """Bracketing index and position of date against a non-empty series."""
        index = seek(date, series)
        if index == len(series):
            return len(series) - 1, ResamplingPosition.END
        if series[index].date == date:
            return index, ResamplingPosition.EXACT_MATCH
        if index == 0:
            return 0, ResamplingPosition.BEGIN
        return index, ResamplingPosition.BEFORE

    def resample_data(self, date: Date, series: Series, epoch: Optional[object] = None) -> Optional[Observation]:
        """
        Synthesize an observation at date.

        Args:
            date: Requested date
            series: Raw (or filtered) window of one station, ascending
            epoch: Identifier of the buffer content, for algorithms caching fits

        Returns:
            Observation holding every parameter of the window, None for an empty window
        """
        if not series:
            return None

        index, position = self.classify(date, series)

        names: List[str] = []
        seen = set()
        for obs in series:
            for name in obs.parameter_names:
                if name not in seen:
                    seen.add(name)
                    names.append(name)

        md = Observation(date, series[0].station_id, resampled=position is not ResamplingPosition.EXACT_MATCH)
        for name in names:
            md.add_parameter(name)
            md[name] = self.algorithm(name).resample(index, position, name, series, date, epoch=epoch)
        return md

    def __repr__(self) -> str:
        lines = ["<ResamplingDispatcher>", f"  window_size = {self.window_size * SECONDS_PER_DAY:.0f}s"]
        for algorithm in self.bindings.values():
            lines.append(f"  {algorithm!r}")
        lines.append("</ResamplingDispatcher>")
        return "\n".join(lines)
