# tests/test_processor.py
import numpy as np
import pytest

from meteocond.config import Config
from meteocond.data.observation import NODATA
from meteocond.data.sources import MemorySource
from meteocond.exceptions import InvalidArgument
from meteocond.processing.processor import MeteoProcessor, resample_station
from meteocond.simulator.station_simulator import StationSimulator

HOUR = 1.0 / 24.0


def ramp(hour):
    return 260.0 + 0.1 * hour


@pytest.fixture
def source(make_series):
    # 20 days of hourly data with a spike at hour 100
    values = [ramp(hh) for hh in range(20 * 24)]
    values[100] = 1000.0
    return MemorySource(series={"STN1": make_series(values)})


@pytest.fixture
def config():
    return Config.from_dict({
        "General": {"BUFF_CHUNK_SIZE": "5"},
        "Interpolations1D": {"WINDOW_SIZE": "86400"},
        "Filters": {"TA::filter1": "min_max", "TA::arg1": "200 300"},
    })


@pytest.fixture
def processor(source, config):
    return MeteoProcessor(source, config)


def test_filtered_data(processor, start):
    data = processor.get_filtered_data(["STN1"], start + 99 * HOUR, start + 101 * HOUR)["STN1"]
    assert [obs["TA"] for obs in data] == [pytest.approx(ramp(99)), NODATA, pytest.approx(ramp(101))]


def test_filtered_data_are_copies(processor, start):
    first = processor.get_filtered_data(["STN1"], start + 10 * HOUR, start + 10 * HOUR)["STN1"]
    first[0]["TA"] = 0.0
    again = processor.get_filtered_data(["STN1"], start + 10 * HOUR, start + 10 * HOUR)["STN1"]
    assert again[0]["TA"] == pytest.approx(ramp(10))


def test_meteo_data_exact_and_interpolated(processor, start):
    exact = processor.get_meteo_data(start + 50 * HOUR, ["STN1"])["STN1"]
    assert exact["TA"] == pytest.approx(ramp(50))
    assert not exact.resampled

    between = processor.get_meteo_data(start + 50.5 * HOUR, ["STN1"])["STN1"]
    assert between["TA"] == pytest.approx(ramp(50.5))
    assert between.resampled


def test_rejected_value_is_resampled(processor, start):
    md = processor.get_meteo_data(start + 100 * HOUR, ["STN1"])["STN1"]
    assert md["TA"] == pytest.approx(ramp(100))


def test_unknown_station(processor, start):
    assert processor.get_meteo_data(start + 50 * HOUR, ["NOPE"]) == {"NOPE": None}


def test_fetch_range_covers_the_resampling_window(processor, start):
    date = start + 10.0
    processor.get_meteo_data(date, ["STN1"])
    buffer_start, buffer_end = processor.buffer.buffer_range
    assert buffer_start <= date - 1.0
    assert buffer_end >= date + 1.0


def test_first_pass_is_computed_once_per_buffer(processor, source, start):
    processor.get_meteo_data(start + 50 * HOUR, ["STN1"])
    filtered = processor._filtered["STN1"]
    processor.get_meteo_data(start + 51 * HOUR, ["STN1"])
    assert processor._filtered["STN1"] is filtered
    assert source.fetch_count == 1

    processor.clear_cache()
    processor.get_meteo_data(start + 51 * HOUR, ["STN1"])
    assert source.fetch_count == 2
    assert processor._filtered["STN1"] is not filtered


def test_sequential_queries_read_the_source_once(start):
    simulator = StationSimulator(step_seconds=3600)
    processor = MeteoProcessor(simulator, Config())
    for hour in range(6):
        md = processor.get_meteo_data(start + hour * HOUR, ["WFJ2"])["WFJ2"]
        assert md["TA"] != NODATA
    assert simulator.fetch_count == 1
    assert processor.buffer.epoch == 1


def test_resampled_series(processor, start):
    series = processor.get_resampled_series(["STN1"], start + 2.0, start + 3.0, 1800)["STN1"]
    assert len(series) == 49
    assert series[0].date == start + 2.0
    assert series[-1].date == start + 3.0
    assert [obs.resampled for obs in series[:3]] == [False, True, False]
    assert np.allclose([obs["TA"] for obs in series], [ramp(48 + 0.5 * ii) for ii in range(49)])


def test_resampled_series_rejects_bad_step(processor, start):
    with pytest.raises(InvalidArgument):
        processor.get_resampled_series(["STN1"], start, start + 1.0, 0)


def test_second_pass_rate_filter(make_series, start):
    values = [0.0, 0.0, 0.0, 50.0, 0.0, 0.0]
    source = MemorySource(series={"STN1": make_series(values)})
    config = Config.from_dict({"Filters": {"TA::filter1": "rate", "TA::arg1": "0.001"}})
    series = MeteoProcessor(source, config).get_resampled_series(["STN1"], start, start + 5 * HOUR, 3600)["STN1"]
    assert [obs["TA"] for obs in series] == [0.0, 0.0, 0.0, 0.0, 0.0, 0.0]


def test_resample_station_with_simulator(start):
    simulator = StationSimulator(step_seconds=1800, gap_fraction=0.05, spike_fraction=0.02, seed=7)
    config = Config.from_dict({
        "Interpolations1D": {"WINDOW_SIZE": "86400"},
        "Filters": {"TA::filter1": "MAD", "TA::arg1": "soft 9 0", "RH::filter1": "min_max", "RH::arg1": "soft 0 1"},
    })
    series = resample_station(simulator, "WFJ2", start, start + 2.0, 3600, config)
    assert len(series) == 49
    ta = np.array([obs["TA"] for obs in series])
    assert np.all(ta != NODATA)
    assert np.all(np.abs(ta - 268.0) < 15.0)
    assert all(0.0 <= obs["RH"] <= 1.0 for obs in series)
