# tests/test_buffer.py
import numpy as np
import pytest

from meteocond.config import BufferConfig, Config
from meteocond.data.buffer import BufferPolicy, TimeBufferCache
from meteocond.data.observation import NODATA, slice_series
from meteocond.data.sources import MemorySource
from meteocond.exceptions import InvalidArgument, SourceIOError


class CountingGridSource(MemorySource):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.grid_calls = 0

    def fetch_grid(self, name, date=None):
        self.grid_calls += 1
        return super().fetch_grid(name, date)


class FailingSource:
    def fetch_series(self, station, start, end):
        raise SourceIOError(f"no data file for {station}")

    def fetch_grid(self, name, date=None):
        return None


@pytest.fixture
def hourly(make_series):
    # 60 days of hourly data
    return make_series([float(ii) for ii in range(60 * 24)])


@pytest.fixture
def source(hourly, make_series):
    return MemorySource(series={"STN1": hourly, "STN2": make_series([1.0] * 48, station="STN2")})


@pytest.fixture
def cache(source):
    return TimeBufferCache(source, BufferConfig(chunk_size=10.0, centering=0.1))


def test_requests_are_served_as_from_the_source(cache, hourly, start):
    for offset, length in [(0.0, 1.0), (5.5, 2.0), (9.0, 20.0), (3.0, 0.5)]:
        begin, end = start + offset, start + offset + length
        data = cache.get_data(["STN1"], begin, end)["STN1"]
        expected = slice_series(hourly, begin, end)
        assert [obs.date for obs in data] == [obs.date for obs in expected]
        assert [obs["TA"] for obs in data] == [obs["TA"] for obs in expected]


def test_rebuffer_range(cache, source, start):
    cache.get_data(["STN1"], start + 5.0, start + 6.0)
    buffer_start, buffer_end = cache.buffer_range
    assert buffer_start == start + 4.0
    assert buffer_end == start + 14.0
    assert source.fetch_count == 1


def test_contained_request_does_not_reread(cache, source, start):
    cache.get_data(["STN1"], start + 5.0, start + 6.0)
    epoch = cache.epoch
    cache.get_data(["STN1"], start + 7.0, start + 13.0)
    assert source.fetch_count == 1
    assert cache.epoch == epoch


def test_request_outside_triggers_rebuffer(cache, source, start):
    cache.get_data(["STN1"], start + 5.0, start + 6.0)
    cache.get_data(["STN1"], start + 20.0, start + 21.0)
    assert source.fetch_count == 2
    assert cache.buffer_range[0] == start + 19.0


def test_long_request_extends_the_chunk(cache, start):
    cache.get_data(["STN1"], start + 5.0, start + 30.0)
    assert cache.buffer_range == (start + 4.0, start + 30.0)


def test_short_source_coverage_is_accepted(cache, source, start):
    # STN2 only holds two days of data
    data = cache.get_data(["STN2"], start + 1.0, start + 3.0)["STN2"]
    assert len(data) == 24
    assert cache.buffer_range == (start, start + 10.0)

    data = cache.get_data(["STN2"], start + 1.5, start + 2.5)["STN2"]
    assert len(data) == 12
    assert source.fetch_count == 1
    assert cache.buffer_range == (start, start + 10.0)


def test_buffer_requirements_enlarge_the_chunk(cache, source, start):
    cache.set_min_buffer_requirements(2.0, 3.0)
    cache.get_data(["STN1"], start + 5.0, start + 6.0)
    assert cache.buffer_range == (start + 4.0, start + 19.0)
    cache.get_data(["STN1"], start + 12.0, start + 18.0)
    assert source.fetch_count == 1


def test_negative_buffer_requirements(cache):
    with pytest.raises(InvalidArgument):
        cache.set_min_buffer_requirements(-1.0, 0.0)


def test_new_station_triggers_rebuffer(cache, source, start):
    cache.get_data(["STN1"], start + 1.0, start + 1.5)
    data = cache.get_data(["STN1", "STN2"], start + 1.0, start + 1.5)
    assert source.fetch_count == 3
    assert len(data["STN2"]) == 13


def test_unknown_station_gives_empty_series(cache, start):
    assert cache.get_data(["NOPE"], start, start + 1.0) == {"NOPE": []}


def test_buffer_before_overrides_centering(source, start):
    cache = TimeBufferCache(source, Config.from_dict({"General": {"BUFF_BEFORE": "2", "BUFF_CHUNK_SIZE": "5"}}))
    cache.get_data(["STN1"], start + 10.0, start + 11.0)
    assert cache.buffer_range == (start + 8.0, start + 13.0)


def test_keep_and_recheck_nodata(source, hourly, start):
    source.series["STN1"][30]["TA"] = NODATA
    begin, date = hourly[29].date, hourly[30].date

    keep = TimeBufferCache(source, BufferConfig(chunk_size=10.0))
    recheck = TimeBufferCache(source, BufferConfig(chunk_size=10.0), BufferPolicy.RECHECK_NODATA)
    assert keep.get_data(["STN1"], begin, date)["STN1"][-1]["TA"] == NODATA
    assert recheck.get_data(["STN1"], begin, date)["STN1"][-1]["TA"] == NODATA

    # the value arrives at the source later on
    source.series["STN1"][30]["TA"] = 30.0
    assert keep.get_data(["STN1"], begin, date)["STN1"][-1]["TA"] == NODATA
    assert recheck.get_data(["STN1"], begin, date)["STN1"][-1]["TA"] == 30.0


def test_recheck_ignores_parameters_never_measured(source, start):
    cache = TimeBufferCache(source, BufferConfig(chunk_size=10.0), BufferPolicy.RECHECK_NODATA)
    cache.get_data(["STN1"], start + 1.0, start + 2.0)
    cache.get_data(["STN1"], start + 1.0, start + 2.0)
    assert source.fetch_count == 1


def test_clear_buffer(cache, source, start):
    cache.get_data(["STN1"], start + 1.0, start + 2.0)
    epoch = cache.epoch
    cache.clear_buffer()
    assert cache.is_empty
    assert cache.epoch == epoch + 1
    cache.get_data(["STN1"], start + 1.0, start + 2.0)
    assert source.fetch_count == 2


def test_source_errors_propagate(start):
    cache = TimeBufferCache(FailingSource())
    with pytest.raises(SourceIOError):
        cache.get_data(["STN1"], start, start + 1.0)
    assert cache.is_empty


def test_grids_are_cached_but_not_missing_ones():
    dem = np.zeros((4, 4))
    source = CountingGridSource(grids={"dem": dem})
    cache = TimeBufferCache(source)
    assert cache.get_grid("dem") is dem
    assert cache.get_grid("dem") is dem
    assert source.grid_calls == 1
    assert cache.get_grid("slope") is None
    assert cache.get_grid("slope") is None
    assert source.grid_calls == 3


def test_push_data_and_sampling_rate(start, make_series):
    cache = TimeBufferCache(MemorySource())
    series = make_series([1.0] * 24)
    cache.push_data(start, start + 1.0, {"STN1": series})
    assert cache.get_avg_sampling_rate() == pytest.approx(24.0)
    assert len(cache.get_data(["STN1"], start, start + 0.5)["STN1"]) == 13
