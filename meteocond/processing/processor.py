"""
Processing Pipeline Orchestrator
================================
Orchestrates all processing steps: buffer → filter (pass 1) → resample → filter (pass 2).
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from meteocond.config import Config, get_config
from meteocond.data.buffer import BufferPolicy, TimeBufferCache
from meteocond.data.observation import Observation, Series, slice_series
from meteocond.data.properties import ProcessingProperties
from meteocond.data.sources import MeteoSource
from meteocond.data.timestamp import SECONDS_PER_DAY, Date
from meteocond.exceptions import InvalidArgument
from meteocond.processing.filter_pipeline import FilterPipeline
from meteocond.processing.resampler import ResamplingDispatcher

logger = logging.getLogger(__name__)


class MeteoProcessor:
    """
    Serves conditioned station data.

    Pipeline:
    1. Buffer → read the source in chunks wide enough for every algorithm
    2. Filter → first pass filters over the whole buffered series
    3. Resample → synthesize values at the requested dates
    4. Filter → second pass filters over the resampled values

    Not thread safe: use one processor per thread.
    """

    def __init__(
        self,
        source: MeteoSource,
        config: Optional[Config] = None,
        policy: BufferPolicy = BufferPolicy.KEEP_NODATA,
    ):
        """
        Initialize the processor. A malformed configuration fails here.

        Args:
            source: Data source collaborator
            config: Configuration, defaults to the environment one
            policy: Nodata serving policy of the buffer
        """
        self.config = config if config is not None else get_config()

        self.buffer = TimeBufferCache(source, self.config, policy)
        self.filters = FilterPipeline(self.config)
        self.dispatcher = ResamplingDispatcher(self.config)

        properties = self.get_window_size()
        self.buffer.set_min_buffer_requirements(
            properties.time_before / SECONDS_PER_DAY,
            properties.time_after / SECONDS_PER_DAY,
        )

        self._filtered: Dict[str, Series] = {}
        self._filtered_epoch: Optional[int] = None

    def get_window_size(self) -> ProcessingProperties:
        """Support needed around a date by the filters and the resampling."""
        return self.filters.get_window_size().merge(self.dispatcher.get_window_size())

    def _data_range(self, start: Date, end: Date) -> Tuple[Date, Date]:
        properties = self.get_window_size()
        before = properties.time_before / SECONDS_PER_DAY
        after = properties.time_after / SECONDS_PER_DAY

        # points are converted with the sampling rate seen so far
        rate = self.buffer.get_avg_sampling_rate()
        if rate > 0:
            before = max(before, properties.points_before / rate)
            after = max(after, properties.points_after / rate)
        return start - before, end + after

    def _filtered_series(self, stations: List[str], start: Date, end: Date) -> Dict[str, Series]:
        """Whole first-pass filtered buffer of each station, covering [start, end]."""
        data_start, data_end = self._data_range(start, end)
        self.buffer.get_data(stations, data_start, data_end)

        if self.buffer.epoch != self._filtered_epoch:
            self._filtered = {}
            self._filtered_epoch = self.buffer.epoch

        for station in stations:
            if station not in self._filtered:
                raw = self.buffer.buffered_series(station)
                logger.debug(f"Filtering {len(raw)} buffered point(s) of {station}")
                self._filtered[station] = self.filters.process(raw)
        return {station: self._filtered[station] for station in stations}

    def get_filtered_data(self, stations: Iterable[str], start: Date, end: Date) -> Dict[str, Series]:
        """
        First pass filtered data over [start, end], no resampling.

        Args:
            stations: Station identifiers
            start: Inclusive start
            end: Inclusive end

        Returns:
            Dict mapping station to its series (copies)
        """
        stations = list(stations)
        filtered = self._filtered_series(stations, start, end)
        return {
            station: [obs.copy() for obs in slice_series(series, start, end)]
            for station, series in filtered.items()
        }

    def get_meteo_data(self, date: Date, stations: Iterable[str]) -> Dict[str, Optional[Observation]]:
        """
        Conditioned observation of every station at date.

        Args:
            date: Requested date
            stations: Station identifiers

        Returns:
            Dict mapping station to its observation, None when the station has no data
        """
        stations = list(stations)
        filtered = self._filtered_series(stations, date, date)

        result: Dict[str, Optional[Observation]] = {}
        for station, series in filtered.items():
            md = self.dispatcher.resample_data(date, series, epoch=self._filtered_epoch)
            if md is not None:
                md = self.filters.process([md], second_pass=True)[0]
            result[station] = md
        return result

    def get_resampled_series(
        self,
        stations: Iterable[str],
        start: Date,
        end: Date,
        step_seconds: float,
    ) -> Dict[str, Series]:
        """
        Conditioned series at a fixed step over [start, end].

        Args:
            stations: Station identifiers
            start: First date
            end: Last date (included when on the step)
            step_seconds: Output step

        Returns:
            Dict mapping station to its resampled series
        """
        if step_seconds <= 0:
            raise InvalidArgument(f"Resampling step must be positive, got {step_seconds}")
        stations = list(stations)
        step = step_seconds / SECONDS_PER_DAY

        dates = []
        ii = 0
        while True:
            date = start + ii * step
            if date > end:
                break
            dates.append(date)
            ii += 1

        filtered = self._filtered_series(stations, start, end)

        result: Dict[str, Series] = {}
        for station, series in filtered.items():
            output = []
            for date in dates:
                md = self.dispatcher.resample_data(date, series, epoch=self._filtered_epoch)
                if md is not None:
                    output.append(md)
            result[station] = self.filters.process(output, second_pass=True)
        logger.info(f"Resampled {len(stations)} station(s) at {len(dates)} date(s)")
        return result

    def clear_cache(self) -> None:
        """Forget all buffered and derived data."""
        self.buffer.clear_buffer()
        self._filtered = {}
        self._filtered_epoch = None
        self.dispatcher.reset_cache()


def resample_station(
    source: MeteoSource,
    station: str,
    start: Date,
    end: Date,
    step_seconds: float = 3600.0,
    config: Optional[Config] = None,
) -> Series:
    """
    Convenience function to condition one station.

    Args:
        source: Data source
        station: Station identifier
        start: First date
        end: Last date
        step_seconds: Output step
        config: Optional configuration

    Returns:
        Resampled series
    """
    processor = MeteoProcessor(source, config)
    return processor.get_resampled_series([station], start, end, step_seconds)[station]


if __name__ == "__main__":
    from meteocond.data.observation import NODATA
    from meteocond.simulator.station_simulator import StationSimulator

    print("Testing Processing Pipeline")
    print("=" * 60)

    config = Config.from_dict({
        "Filters": {"TA::filter1": "min_max", "TA::arg1": "230 330", "TA::filter2": "rate", "TA::arg2": "0.01"},
        "Interpolations1D": {"WINDOW_SIZE": "86400", "TA::resample": "linear"},
    })
    simulator = StationSimulator(step_seconds=1800, gap_fraction=0.05, spike_fraction=0.02, seed=42)
    processor = MeteoProcessor(simulator, config)

    start = Date.from_calendar(2024, 3, 1)
    series = processor.get_resampled_series(["WFJ2"], start, start + 2.0, 3600)["WFJ2"]

    missing = sum(1 for obs in series if obs["TA"] == NODATA)
    print(f"  Resampled points: {len(series)}")
    print(f"  Missing TA: {missing}")
    print(f"  Buffer: {processor.buffer!r}")
