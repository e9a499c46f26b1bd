"""
Gap-Model Resampling
====================
Fills longer data gaps with a seasonal autoregressive model instead of a
straight line. The model is fitted by least squares on a regular grid
built from the buffered window, once per station and buffer content.

    TA::resample = arima
    TA::args     = 172800 172800 86400 3
                   (before_window after_window [seasonal_period] [max_p])
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
from scipy import interpolate

from meteocond.data.observation import Series, is_nodata, series_julian, series_values
from meteocond.data.properties import ProcessingProperties
from meteocond.data.timestamp import SECONDS_PER_DAY
from meteocond.exceptions import ConfigurationError, InvalidArgument
from meteocond.processing.resampler import (
    LinearResampling,
    ResamplingAlgorithm,
    ResamplingPosition,
    register_algorithm,
)

logger = logging.getLogger(__name__)

# Consecutive missing grid samples making a gap
MIN_GAP = 3

# Valid samples needed to fit a model
MIN_SUPPORT = 8

MAX_GRID_SIZE = 200000


@dataclass
class GapFill:
    """
    Result of the gap filling of one parameter series.

    Attributes:
        grid: Regular grid (julian days)
        values: Grid values, NaN where nothing could be filled
        spans: Filled gaps as (last valid date before, first valid date after)
    """
    grid: np.ndarray = field(default_factory=lambda: np.empty(0))
    values: np.ndarray = field(default_factory=lambda: np.empty(0))
    spans: List[Tuple[float, float]] = field(default_factory=list)

    def value_at(self, julian: float) -> Optional[float]:
        """Interpolated value inside a filled gap, None elsewhere."""
        for begin, end in self.spans:
            if begin < julian < end:
                value = float(np.interp(julian, self.grid, self.values))
                return None if np.isnan(value) else value
        return None


def build_grid(julian: np.ndarray, values: np.ndarray) -> Tuple[np.ndarray, np.ndarray, float]:
    """
    Project samples onto a regular grid at their median sampling step.

    Args:
        julian: Sample dates, ascending
        values: Sample values, NaN for nodata

    Returns:
        Tuple of (grid, grid values with NaN for missing slots, step in days)
    """
    steps = np.diff(julian)
    steps = steps[steps > 0]
    if steps.size == 0:
        return np.empty(0), np.empty(0), 0.0
    step = float(np.median(steps))

    size = int(round((julian[-1] - julian[0]) / step)) + 1
    if size > MAX_GRID_SIZE:
        logger.warning(f"Regular grid of {size} samples too large, skipping gap model")
        return np.empty(0), np.empty(0), 0.0

    grid = julian[0] + np.arange(size) * step
    grid_values = np.full(size, np.nan)
    slots = np.rint((julian - julian[0]) / step).astype(int)
    on_grid = (slots >= 0) & (slots < size) & (np.abs(julian - grid[np.clip(slots, 0, size - 1)]) <= 0.5 * step)
    grid_values[slots[on_grid]] = values[on_grid]
    return grid, grid_values, step


def find_gaps(values: np.ndarray) -> List[Tuple[int, int]]:
    """Inclusive index runs of NaN bounded by valid data on both sides."""
    gaps = []
    missing = np.isnan(values)
    ii = 0
    while ii < values.size:
        if not missing[ii]:
            ii += 1
            continue
        start = ii
        while ii < values.size and missing[ii]:
            ii += 1
        if start > 0 and ii < values.size:
            gaps.append((start, ii - 1))
    return gaps


def prefill_short_gaps(grid: np.ndarray, values: np.ndarray, gaps: List[Tuple[int, int]]) -> np.ndarray:
    """Linearly fill the gaps shorter than MIN_GAP."""
    short = [(start, end) for start, end in gaps if end - start + 1 < MIN_GAP]
    if not short:
        return values

    valid = ~np.isnan(values)
    interp_func = interpolate.interp1d(
        grid[valid], values[valid],
        kind='linear',
        bounds_error=False,
        fill_value=np.nan
    )
    filled = values.copy()
    for start, end in short:
        filled[start:end + 1] = interp_func(grid[start:end + 1])
    return filled


def fit_autoregression(values: np.ndarray, lags: List[int]) -> Optional[np.ndarray]:
    """
    Least-squares fit of x[t] = c + sum(a_i * x[t - lag_i]).

    Returns:
        Coefficients [c, a_1, ...], or None without enough complete rows
    """
    max_lag = max(lags)
    if values.size <= max_lag:
        return None

    rows = np.arange(max_lag, values.size)
    design = np.column_stack([np.ones(rows.size)] + [values[rows - lag] for lag in lags])
    target = values[rows]
    complete = np.isfinite(target) & np.all(np.isfinite(design), axis=1)
    if complete.sum() < max(MIN_SUPPORT, 2 * design.shape[1]):
        return None

    coefs, _, _, _ = np.linalg.lstsq(design[complete], target[complete], rcond=None)
    return coefs


def predict(values: np.ndarray, coefs: np.ndarray, lags: List[int], start: int, length: int) -> np.ndarray:
    """
    Iterated one-step predictions over values[start:start + length].
    Stops (NaN) as soon as a needed lag is missing.
    """
    work = values.copy()
    out = np.full(length, np.nan)
    for kk in range(length):
        tt = start + kk
        if tt - max(lags) < 0:
            break
        lagged = np.array([work[tt - lag] for lag in lags])
        if not np.all(np.isfinite(lagged)):
            break
        work[tt] = coefs[0] + float(np.dot(coefs[1:], lagged))
        out[kk] = work[tt]
    return out


@register_algorithm("arima")
class GapModelResampling(ResamplingAlgorithm):
    """
    Seasonal autoregressive gap filling.

    Gaps of at least MIN_GAP grid samples are predicted forward from the data
    before them and backward from the data after them, the two predictions
    being blended linearly across the gap. Forward prediction needs its lags
    to fit within before_window, backward prediction within after_window.
    Dates outside a filled gap are resampled linearly.
    """

    DEFAULT_MAX_P = 2

    def __init__(self, algo: str, param: str, window_size: float, args: List[str]):
        super().__init__(algo, param, window_size, args)
        if not 2 <= len(args) <= 4:
            raise InvalidArgument(f"Wrong number of arguments for {self.where}")
        try:
            numbers = [float(token) for token in args]
        except ValueError:
            raise ConfigurationError(f"Can not parse arguments {args} for {self.where}") from None

        self.before_window = numbers[0] / SECONDS_PER_DAY
        self.after_window = numbers[1] / SECONDS_PER_DAY
        self.period = numbers[2] / SECONDS_PER_DAY if len(numbers) > 2 else 0.0
        self.max_p = int(numbers[3]) if len(numbers) > 3 else self.DEFAULT_MAX_P

        if self.before_window < 0 or self.after_window < 0 or self.period < 0:
            raise ConfigurationError(f"Negative window for {self.where}")
        if self.before_window == 0 and self.after_window == 0:
            raise ConfigurationError(f"Please provide a before or an after window for {self.where}")
        if self.before_window + self.after_window > window_size:
            raise ConfigurationError(
                f"before_window + after_window exceeds WINDOW_SIZE for {self.where}"
            )
        if self.max_p < 1:
            raise ConfigurationError(f"max_p must be at least 1 for {self.where}")

        self.fallback = LinearResampling("linear", param, window_size, [])
        self._fills: Dict[tuple, GapFill] = {}
        self._epoch: Optional[object] = None

    @property
    def properties(self) -> ProcessingProperties:
        return ProcessingProperties(
            points_before=1,
            points_after=1,
            time_before=max(self.before_window, self.window_size) * SECONDS_PER_DAY,
            time_after=max(self.after_window, self.window_size) * SECONDS_PER_DAY,
        )

    def reset(self) -> None:
        self._fills.clear()
        self._epoch = None

    def _cache_key(self, param: str, series: Series, epoch: Optional[object]) -> tuple:
        station = series[0].station_id
        if epoch is not None:
            return station, param, epoch
        return station, param, len(series), series[0].date.julian, series[-1].date.julian

    def get_fill(self, param: str, series: Series, epoch: Optional[object] = None) -> GapFill:
        """Gap filling of param over series, computed once per buffer epoch."""
        if epoch is not None and epoch != self._epoch:
            self._fills.clear()
            self._epoch = epoch

        key = self._cache_key(param, series, epoch)
        fill = self._fills.get(key)
        if fill is None and epoch is None:
            # without an epoch only the latest series of a station and parameter is kept
            stale = [other for other in self._fills if other[:2] == key[:2]]
            for other in stale:
                del self._fills[other]
        if fill is None:
            fill = self.fill_gaps(series_julian(series), series_values(series, param))
            self._fills[key] = fill
            logger.debug(f"{self.where}: {len(fill.spans)} gap(s) filled for {series[0].station_id}")
        return fill

    def _lag_sets(self, step: float) -> List[List[int]]:
        """Candidate lag sets, richest first, limited to what the windows can support."""
        seasonal = int(round(self.period / step)) if self.period > 0 else 0
        reach = max(self.before_window, self.after_window) + 0.5 * step
        sets = []
        for p in range(self.max_p, 0, -1):
            if seasonal > p:
                sets.append(list(range(1, p + 1)) + [seasonal])
            sets.append(list(range(1, p + 1)))
        return [lags for lags in sets if max(lags) * step <= reach]

    def fill_gaps(self, julian: np.ndarray, values: np.ndarray) -> GapFill:
        """
        Fill the gaps of one series.

        Args:
            julian: Sample dates, ascending
            values: Sample values, NaN for nodata

        Returns:
            GapFill (empty when no model could be fitted)
        """
        if np.count_nonzero(~np.isnan(values)) < MIN_SUPPORT:
            return GapFill()

        grid, grid_values, step = build_grid(julian, values)
        if grid.size == 0:
            return GapFill()

        gaps = find_gaps(grid_values)
        grid_values = prefill_short_gaps(grid, grid_values, gaps)
        long_gaps = [(start, end) for start, end in gaps if end - start + 1 >= MIN_GAP]
        if not long_gaps:
            return GapFill()

        reversed_values = grid_values[::-1]
        model = None
        for lags in self._lag_sets(step):
            forward = fit_autoregression(grid_values, lags)
            backward = fit_autoregression(reversed_values, lags)
            if forward is not None and backward is not None:
                model = (lags, forward, backward)
                break
        if model is None:
            logger.debug(f"{self.where}: not enough data to fit a model")
            return GapFill()
        lags, forward, backward = model
        extent = max(lags) * step

        filled = grid_values.copy()
        spans = []
        for start, end in long_gaps:
            length = end - start + 1
            if (length + 1) * step > self.window_size:
                continue

            ahead = np.full(length, np.nan)
            if self.before_window > 0 and extent <= self.before_window + 0.5 * step:
                ahead = predict(grid_values, forward, lags, start, length)
            behind = np.full(length, np.nan)
            if self.after_window > 0 and extent <= self.after_window + 0.5 * step:
                rev_start = grid_values.size - 1 - end
                behind = predict(reversed_values, backward, lags, rev_start, length)[::-1]

            weights = np.arange(1, length + 1) / (length + 1.0)
            blended = np.where(
                np.isfinite(ahead) & np.isfinite(behind),
                (1.0 - weights) * ahead + weights * behind,
                np.where(np.isfinite(ahead), ahead, behind),
            )
            if not np.all(np.isfinite(blended)):
                continue
            filled[start:end + 1] = blended
            spans.append((grid[start - 1], grid[end + 1]))

        return GapFill(grid=grid, values=filled, spans=spans)

    def resample(self, index, position, param, series, date, epoch=None) -> float:
        if position is ResamplingPosition.EXACT_MATCH:
            value = series[index].get(param)
            if not is_nodata(value):
                return value

        if position is ResamplingPosition.BEFORE or position is ResamplingPosition.EXACT_MATCH:
            value = self.get_fill(param, series, epoch).value_at(date.julian)
            if value is not None:
                return value
        return self.fallback.resample(index, position, param, series, date, epoch=epoch)
