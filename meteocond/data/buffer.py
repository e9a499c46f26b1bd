"""
Time Buffer Cache
=================
Keeps a sliding window of station data read from a source and decides
when, and how much, to re-read.

Not thread safe: use one cache per thread (or serialize access).
"""

import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

from meteocond.config import BufferConfig, Config
from meteocond.data.observation import Series, slice_series
from meteocond.data.sources import MeteoSource
from meteocond.data.timestamp import Date
from meteocond.exceptions import InvalidArgument

logger = logging.getLogger(__name__)


class BufferPolicy(Enum):
    """What to do when a buffered point is nodata."""
    KEEP_NODATA = "keep_nodata"        # return the buffered nodata as-is
    RECHECK_NODATA = "recheck_nodata"  # re-read the source, it may have a value by now


class TimeBufferCache:
    """
    Buffered access to a MeteoSource.

    A request fully inside the buffered range is served from memory.
    Otherwise a new chunk is read, starting ``lead`` days before the
    requested start, and replaces the whole buffer.
    """

    def __init__(
        self,
        source: MeteoSource,
        config: Optional[Union[Config, BufferConfig]] = None,
        policy: BufferPolicy = BufferPolicy.KEEP_NODATA,
    ):
        """
        Initialize the cache.

        Args:
            source: Data source collaborator
            config: Config (its General section) or a BufferConfig
            policy: Nodata serving policy
        """
        if config is None:
            config = BufferConfig()
        elif isinstance(config, Config):
            config = config.buffer

        self.source = source
        self.settings = config
        self.policy = policy

        self._start: Optional[Date] = None
        self._end: Optional[Date] = None
        self._series: Dict[str, Series] = {}
        self._grids: Dict[str, Any] = {}
        self.epoch = 0

        # support (days) the consumers need around a request
        self._min_before = 0.0
        self._min_after = 0.0

    # ---- state ----
    @property
    def is_empty(self) -> bool:
        return self._start is None

    @property
    def buffer_range(self) -> Optional[tuple]:
        """(start, end) of the buffered window, None when empty."""
        if self._start is None:
            return None
        return self._start, self._end

    @property
    def stations(self) -> List[str]:
        return list(self._series.keys())

    def buffered_series(self, station: str) -> Series:
        """Whole buffered series of a station (not a copy)."""
        return self._series.get(station, [])

    def set_buffer_policy(self, policy: BufferPolicy) -> None:
        self.policy = policy

    def set_min_buffer_requirements(self, before: float, after: float) -> None:
        """
        Declare the support needed around requests by the processing steps.

        Requests already include this support, so each rebuffered chunk is
        enlarged by before + after to leave room for the following requests.

        Args:
            before: Days needed before a requested date
            after: Days needed after a requested date
        """
        if before < 0 or after < 0:
            raise InvalidArgument(f"Negative buffer requirements ({before}, {after})")
        self._min_before = before
        self._min_after = after

    def clear_buffer(self) -> None:
        """Forget everything, the next request re-reads the source."""
        logger.info("Clearing data buffer")
        self._start = None
        self._end = None
        self._series = {}
        self._grids = {}
        self.epoch += 1

    # ---- station data ----
    def contains(self, stations: Iterable[str], start: Date, end: Date) -> bool:
        if self._start is None:
            return False
        if start < self._start or end > self._end:
            return False
        return all(station in self._series for station in stations)

    def get_data(self, stations: Iterable[str], start: Date, end: Date) -> Dict[str, Series]:
        """
        Station data covering exactly [start, end].

        Args:
            stations: Station identifiers
            start: Inclusive start
            end: Inclusive end

        Returns:
            Dict mapping station to its (possibly empty) series
        """
        stations = list(stations)
        if end < start:
            start, end = end, start

        if not self.contains(stations, start, end):
            self._rebuffer(stations, start, end)
            return self._slice(stations, start, end)

        result = self._slice(stations, start, end)
        if self.policy is BufferPolicy.RECHECK_NODATA and self._has_nodata(result):
            logger.debug("Buffered data contains nodata, re-reading the source")
            self._rebuffer(stations, start, end)
            result = self._slice(stations, start, end)
        return result

    def push_data(self, start: Date, end: Date, data: Dict[str, Series]) -> None:
        """Install externally obtained data as the buffer content."""
        self._start = start
        self._end = end
        self._series = {station: list(series) for station, series in data.items()}
        self._grids = {}
        self.epoch += 1

    def get_avg_sampling_rate(self) -> float:
        """Average number of buffered samples per day, over all stations."""
        if self._start is None:
            return 0.0
        span = self._end - self._start
        if span <= 0:
            return 0.0
        count = sum(len(series) for series in self._series.values())
        if not self._series:
            return 0.0
        return count / (span * len(self._series))

    def _rebuffer(self, stations: List[str], start: Date, end: Date) -> None:
        new_start = start - self.settings.lead
        new_end = new_start + self.settings.chunk_size + self._min_before + self._min_after
        if end > new_end:
            new_end = end

        logger.debug(f"Rebuffering {len(stations)} station(s) for [{new_start}, {new_end}]")

        # source errors propagate to the caller untouched
        fetched = {station: self.source.fetch_series(station, new_start, new_end) for station in stations}

        self._start = new_start
        self._end = new_end
        self._series = fetched
        self._grids = {}
        self.epoch += 1

    def _slice(self, stations: List[str], start: Date, end: Date) -> Dict[str, Series]:
        return {station: slice_series(self._series.get(station, []), start, end) for station in stations}

    @staticmethod
    def _has_nodata(data: Dict[str, Series]) -> bool:
        # only parameters the station reports at least once count as missing
        for series in data.values():
            measured = {
                name for obs in series for name in obs.parameter_names if not obs.has_nodata([name])
            }
            if measured and any(obs.has_nodata(measured) for obs in series):
                return True
        return False

    # ---- grids ----
    def get_grid(self, name: str, date: Optional[Date] = None) -> Optional[Any]:
        """
        A named grid, read through the source on first access.
        Not-found results are not cached.
        """
        key = name if date is None else f"{name}@{date.to_iso()}"
        if key in self._grids:
            return self._grids[key]

        grid = self.source.fetch_grid(name, date)
        if grid is not None:
            self._grids[key] = grid
        return grid

    def __repr__(self) -> str:
        if self._start is None:
            return "TimeBufferCache(empty)"
        counts = ", ".join(f"{station}: {len(series)}" for station, series in self._series.items())
        return (
            f"TimeBufferCache([{self._start}, {self._end}], epoch={self.epoch}, "
            f"policy={self.policy.value}, {{{counts}}}, grids={len(self._grids)})"
        )
