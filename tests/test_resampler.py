# tests/test_resampler.py
import pytest

from meteocond.config import Config
from meteocond.data.observation import NODATA
from meteocond.exceptions import ConfigurationError, InvalidArgument
from meteocond.processing.resampler import (
    RESAMPLING_REGISTRY,
    LinearResampling,
    ResamplingDispatcher,
    ResamplingPosition,
)

HOUR = 1.0 / 24.0


def dispatcher_for(**settings):
    return ResamplingDispatcher(Config.from_dict({"Interpolations1D": settings}))


def test_registry_contains_builtin_algorithms():
    for name in ("none", "nearest", "linear", "accumulate", "arima"):
        assert name in RESAMPLING_REGISTRY


def test_classification(make_series, start):
    series = make_series([1.0, 2.0, 3.0])
    classify = ResamplingDispatcher.classify
    assert classify(start + HOUR, series) == (1, ResamplingPosition.EXACT_MATCH)
    assert classify(start + 1.5 * HOUR, series) == (2, ResamplingPosition.BEFORE)
    assert classify(start - HOUR, series) == (0, ResamplingPosition.BEGIN)
    assert classify(start + 3 * HOUR, series) == (2, ResamplingPosition.END)


@pytest.mark.parametrize("algorithm", ["none", "nearest", "linear"])
def test_exact_match_returns_the_measured_value(make_series, start, algorithm):
    series = make_series([1.0, 7.5, 3.0])
    md = dispatcher_for(**{"TA::resample": algorithm}).resample_data(start + HOUR, series)
    assert md["TA"] == 7.5
    assert not md.resampled
    assert md.date == start + HOUR


def test_linear_interpolation(make_series, start):
    series = make_series([0.0, None, 20.0])
    dispatcher = ResamplingDispatcher()
    assert dispatcher.resample_data(start + HOUR, series)["TA"] == pytest.approx(10.0)
    md = dispatcher.resample_data(start + 0.5 * HOUR, series)
    assert md["TA"] == pytest.approx(5.0)
    assert md.resampled


def test_linear_respects_the_window(make_series, start):
    series = make_series([0.0, None, None, 30.0])
    dispatcher = dispatcher_for(WINDOW_SIZE="7200")
    assert dispatcher.resample_data(start + HOUR, series)["TA"] == NODATA
    assert ResamplingDispatcher().resample_data(start + HOUR, series)["TA"] == pytest.approx(10.0)


def test_linear_extrapolation_only_when_requested(make_series, start):
    series = make_series([0.0, 10.0, 20.0])
    after = start + 4 * HOUR
    before = start - HOUR
    assert ResamplingDispatcher().resample_data(after, series)["TA"] == NODATA
    assert ResamplingDispatcher().resample_data(before, series)["TA"] == NODATA

    dispatcher = dispatcher_for(**{"TA::args": "extrapolate"})
    assert dispatcher.resample_data(after, series)["TA"] == pytest.approx(40.0)
    assert dispatcher.resample_data(before, series)["TA"] == pytest.approx(-10.0)


def test_linear_window_argument():
    algorithm = LinearResampling("linear", "TA", 10.0, ["extrapolate", "3600"])
    assert algorithm.extrapolate
    assert algorithm.window_size == pytest.approx(HOUR)


def test_nearest_neighbour(make_series, start):
    series = make_series([0.0, 10.0])
    dispatcher = dispatcher_for(**{"TA::resample": "nearest"})
    assert dispatcher.resample_data(start + 0.25 * HOUR, series)["TA"] == 0.0
    assert dispatcher.resample_data(start + 0.75 * HOUR, series)["TA"] == 10.0
    assert dispatcher.resample_data(start + 0.5 * HOUR, series)["TA"] == pytest.approx(5.0)
    assert dispatcher.resample_data(start + 2 * HOUR, series)["TA"] == NODATA


def test_none_only_serves_exact_matches(make_series, start):
    series = make_series([0.0, 10.0])
    dispatcher = dispatcher_for(**{"TA::resample": "none"})
    assert dispatcher.resample_data(start + 0.5 * HOUR, series)["TA"] == NODATA


def test_accumulate(make_series, start):
    series = make_series([1.0, 1.0, None, 1.0, 1.0], param="PSUM")
    dispatcher = dispatcher_for(**{"PSUM::resample": "accumulate", "PSUM::args": "7200"})
    assert dispatcher.resample_data(start + 4 * HOUR, series)["PSUM"] == pytest.approx(2.0)
    assert dispatcher.resample_data(start + 2.5 * HOUR, series)["PSUM"] == pytest.approx(1.0)
    # period not covered by the data
    assert dispatcher.resample_data(start + 0.5 * HOUR, series)["PSUM"] == NODATA
    assert dispatcher.resample_data(start + 5 * HOUR, series)["PSUM"] == NODATA


def test_result_holds_every_parameter_of_the_window(make_series, start):
    series = make_series([1.0, 2.0], station="STN9")
    series[1]["TS1"] = 5.0
    md = ResamplingDispatcher().resample_data(start + 0.5 * HOUR, series)
    assert md.station_id == "STN9"
    assert "TS1" in md
    assert md["TS1"] == NODATA
    assert md["RH"] == NODATA


def test_unknown_parameters_get_a_lazy_default_binding(make_series, start):
    series = make_series([1.0, 3.0], param="TS1")
    dispatcher = ResamplingDispatcher()
    assert "TS1" not in dispatcher.bindings
    md = dispatcher.resample_data(start + 0.5 * HOUR, series)
    assert md["TS1"] == pytest.approx(2.0)
    assert isinstance(dispatcher.bindings["TS1"], LinearResampling)


def test_configured_parameters_are_bound_at_construction():
    dispatcher = dispatcher_for(**{"TS1::resample": "nearest"})
    assert dispatcher.bindings["TS1"].algo == "nearest"
    assert dispatcher.bindings["TA"].algo == "linear"


def test_empty_series(start):
    assert ResamplingDispatcher().resample_data(start, []) is None


def test_window_size_guard():
    with pytest.raises(ConfigurationError):
        dispatcher_for(WINDOW_SIZE="800")
    with pytest.raises(ConfigurationError):
        dispatcher_for(WINDOW_SIZE="0")
    with pytest.raises(ConfigurationError):
        dispatcher_for(WINDOW_SIZE="ten days")


def test_malformed_configuration_fails_at_construction():
    with pytest.raises(ConfigurationError):
        dispatcher_for(**{"TA::resample": "spline"})
    with pytest.raises(ConfigurationError):
        dispatcher_for(**{"TA::args": "sideways"})
    with pytest.raises(InvalidArgument):
        dispatcher_for(**{"TA::args": "extrapolate 3600 7200"})
    with pytest.raises(InvalidArgument):
        dispatcher_for(**{"PSUM::resample": "accumulate"})
    with pytest.raises(ConfigurationError):
        dispatcher_for(**{"PSUM::resample": "accumulate", "PSUM::args": "-3600"})


def test_window_size_properties():
    dispatcher = dispatcher_for(WINDOW_SIZE="86400", **{"PSUM::resample": "accumulate", "PSUM::args": "172800"})
    properties = dispatcher.get_window_size()
    assert properties.points_before == 1
    assert properties.points_after == 1
    assert properties.time_before == pytest.approx(172800.0)
    assert properties.time_after == pytest.approx(86400.0)
