# tests/test_observation.py
import math

import numpy as np

from meteocond.data.observation import (
    NODATA,
    PARAMETERS,
    Observation,
    is_nodata,
    seek,
    series_values,
    slice_series,
)


def test_canonical_parameters_always_present(start):
    obs = Observation(start, "STN1")
    assert obs.parameter_names[:len(PARAMETERS)] == list(PARAMETERS)
    assert all(obs[name] == NODATA for name in PARAMETERS)
    assert obs.extra_parameters == []


def test_extra_parameter_added_on_assignment(start):
    obs = Observation(start, "STN1")
    obs["TS1"] = 271.0
    assert "TS1" in obs
    assert obs.extra_parameters == ["TS1"]
    assert obs.get("UNKNOWN") == NODATA


def test_nodata_like_values_are_normalized(start):
    obs = Observation(start, "STN1", values={"TA": float("nan"), "RH": None})
    assert obs["TA"] == NODATA
    assert obs["RH"] == NODATA
    assert is_nodata(NODATA)
    assert is_nodata(None)
    assert is_nodata(math.nan)
    assert not is_nodata(0.0)


def test_copy_is_independent(start):
    obs = Observation(start, "STN1", values={"TA": 270.0})
    clone = obs.copy()
    clone["TA"] = 280.0
    assert obs["TA"] == 270.0
    assert clone != obs
    clone["TA"] = 270.0
    assert clone == obs


def test_reset_and_has_nodata(start):
    obs = Observation(start, "STN1", values={"TA": 270.0})
    assert obs.has_nodata()
    assert not obs.has_nodata(["TA"])
    obs.reset()
    assert obs["TA"] == NODATA
    assert obs.date == start


def test_series_values_uses_nan(make_series):
    series = make_series([1.0, None, 3.0])
    values = series_values(series, "TA")
    assert np.isnan(values[1])
    assert np.allclose(values[[0, 2]], [1.0, 3.0])


def test_seek_positions(make_series, start):
    series = make_series([1.0, 2.0, 3.0])
    assert seek(start, series) == 0
    assert seek(start + 1.0 / 24.0, series) == 1
    assert seek(start + 1.5 / 24.0, series) == 2
    assert seek(start + 5.0 / 24.0, series) == 3
    assert seek(start - 1.0, series) == 0


def test_slice_is_inclusive_and_shares_observations(make_series, start):
    series = make_series([1.0, 2.0, 3.0, 4.0])
    part = slice_series(series, start + 1.0 / 24.0, start + 2.0 / 24.0)
    assert [obs["TA"] for obs in part] == [2.0, 3.0]
    assert part[0] is series[1]


def test_slice_edge_cases(make_series, start):
    series = make_series([1.0, 2.0])
    assert slice_series([], start, start + 1.0) == []
    assert slice_series(series, start + 1.0, start) == []
    assert slice_series(series, start + 2.0, start + 3.0) == []
