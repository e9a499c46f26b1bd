# tests/conftest.py
import pytest

from meteocond.config import Config
from meteocond.data.observation import NODATA, Observation
from meteocond.data.timestamp import Date

START = Date.from_calendar(2024, 1, 1)


def build_series(values, param="TA", step_seconds=3600.0, start=START, station="STN1"):
    """One observation per value, None meaning nodata."""
    series = []
    for ii, value in enumerate(values):
        obs = Observation(start + ii * step_seconds / 86400.0, station)
        obs[param] = NODATA if value is None else value
        series.append(obs)
    return series


@pytest.fixture
def make_series():
    return build_series


@pytest.fixture
def start():
    return START


@pytest.fixture
def empty_config():
    return Config()
