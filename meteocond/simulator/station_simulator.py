"""
Weather Station Simulator
=========================
Synthetic data generation for automatic weather stations.
Generates diurnal cycles with realistic correlations, plus optional
data gaps and sensor spikes. Output is deterministic: the same station,
seed and date always give the same values, whatever the requested range.
"""

import zlib
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np

from meteocond.data.observation import NODATA, Observation, Series
from meteocond.data.sources import register_source
from meteocond.data.timestamp import SECONDS_PER_DAY, Date
from meteocond.exceptions import InvalidArgument


@dataclass
class StationClimate:
    """Climate of a simulated station."""

    altitude: float = 2540.0        # m
    mean_ta: float = 268.0          # K
    ta_amplitude: float = 6.0       # K, half of the diurnal range
    mean_rh: float = 0.75           # 1
    mean_vw: float = 3.5            # m/s
    max_iswr: float = 850.0         # W/m2 at solar noon
    rain_probability: float = 0.05  # per sample

    @property
    def pressure(self) -> float:
        """Barometric pressure (Pa) from the altitude."""
        return 101325.0 * np.exp(-self.altitude / 8434.5)


# Parameters produced by the simulator
SIMULATED_PARAMETERS = ("TA", "RH", "VW", "DW", "P", "ISWR", "PSUM")


@register_source("synthetic")
class StationSimulator:
    """
    Generates station data on a fixed sampling grid.

    Samples are generated one day at a time from a random stream seeded with
    (seed, station, day), which keeps any two overlapping requests consistent.
    """

    def __init__(
        self,
        step_seconds: float = 1800.0,
        gap_fraction: float = 0.0,
        spike_fraction: float = 0.0,
        spike_magnitude: float = 25.0,
        seed: int = 0,
        climate: Optional[StationClimate] = None,
        parameters: Optional[List[str]] = None,
    ):
        """
        Initialize simulator.

        Args:
            step_seconds: Sampling interval
            gap_fraction: Probability of a sample losing all its values
            spike_fraction: Probability of a spike on each value
            spike_magnitude: Spike amplitude, in units of the parameter's noise
            seed: Random seed
            climate: Station climate
            parameters: Parameters to generate (default: all)
        """
        if step_seconds <= 0 or SECONDS_PER_DAY % step_seconds != 0:
            raise InvalidArgument(f"Sampling step must divide a day, got {step_seconds}s")
        if not 0.0 <= gap_fraction < 1.0 or not 0.0 <= spike_fraction < 1.0:
            raise InvalidArgument("Gap and spike fractions must be in [0, 1)")

        self.step = step_seconds / SECONDS_PER_DAY
        self.samples_per_day = int(SECONDS_PER_DAY // step_seconds)
        self.gap_fraction = gap_fraction
        self.spike_fraction = spike_fraction
        self.spike_magnitude = spike_magnitude
        self.seed = seed
        self.climate = climate or StationClimate()
        self.parameters = list(parameters or SIMULATED_PARAMETERS)
        self.fetch_count = 0

        self._days: Dict[tuple, Dict[str, np.ndarray]] = {}

    def _generate_day(self, station: str, day: int) -> Dict[str, np.ndarray]:
        """All values of one station for one day (days counted from midnight)."""
        key = (station, day)
        if key in self._days:
            return self._days[key]

        rng = np.random.RandomState([self.seed, zlib.crc32(station.encode()), day])
        n = self.samples_per_day
        c = self.climate

        # fraction of day, UTC
        t = np.arange(n) / n
        phase = 2 * np.pi * (t - 0.375)
        sun = np.clip(np.sin(2 * np.pi * (t - 0.25)), 0.0, None)

        noise = {
            "TA": 0.3,
            "RH": 0.03,
            "VW": 0.5,
            "DW": 15.0,
            "P": 20.0,
            "ISWR": 25.0,
        }

        ta = c.mean_ta + c.ta_amplitude * np.sin(phase) + noise["TA"] * rng.randn(n)
        # RH drops when the air warms up
        rh = np.clip(c.mean_rh - 0.15 * np.sin(phase) + noise["RH"] * rng.randn(n), 0.05, 1.0)
        vw = rng.gamma(2.0, c.mean_vw / 2.0, n)
        dw = np.mod(240.0 + noise["DW"] * rng.randn(n), 360.0)
        p = c.pressure + noise["P"] * rng.randn(n)
        iswr = np.clip(c.max_iswr * sun + noise["ISWR"] * rng.randn(n) * (sun > 0), 0.0, None)
        psum = np.where(rng.random_sample(n) < c.rain_probability, rng.exponential(0.8, n), 0.0)

        values = {"TA": ta, "RH": rh, "VW": vw, "DW": dw, "P": p, "ISWR": iswr, "PSUM": psum}

        # sensor glitches
        if self.spike_fraction > 0:
            for name, scale in noise.items():
                spikes = rng.random_sample(n) < self.spike_fraction
                signs = np.where(rng.random_sample(n) < 0.5, -1.0, 1.0)
                values[name] = np.where(spikes, values[name] + signs * self.spike_magnitude * scale, values[name])

        # transmission losses
        if self.gap_fraction > 0:
            lost = rng.random_sample(n) < self.gap_fraction
            for name in values:
                values[name] = np.where(lost, np.nan, values[name])

        self._days[key] = values
        return values

    def fetch_series(self, station: str, start: Date, end: Date) -> Series:
        """
        Generate the samples of a station within [start, end].

        Args:
            station: Station identifier
            start: Inclusive start
            end: Inclusive end

        Returns:
            Ascending series
        """
        self.fetch_count += 1
        # slots are counted from midnight, julian days start at noon
        first = int(np.ceil((start.julian + 0.5) / self.step - 1e-6))
        last = int(np.floor((end.julian + 0.5) / self.step + 1e-6))

        series: Series = []
        for slot in range(first, last + 1):
            day, index = divmod(slot, self.samples_per_day)
            values = self._generate_day(station, day)

            obs = Observation(Date(slot * self.step - 0.5), station)
            for name in self.parameters:
                value = values[name][index]
                obs[name] = NODATA if np.isnan(value) else float(value)
            series.append(obs)
        return series

    def fetch_grid(self, name: str, date: Optional[Date] = None) -> Optional[np.ndarray]:
        """
        Synthetic grids: "dem" (a smooth terrain around the station altitude).

        Returns:
            2D array, or None for unknown grids
        """
        if name.lower() != "dem":
            return None
        yy, xx = np.mgrid[0:32, 0:32]
        return self.climate.altitude + 150.0 * np.sin(xx / 5.0) * np.cos(yy / 7.0)

    def __repr__(self) -> str:
        return (
            f"StationSimulator(step={self.step * SECONDS_PER_DAY:.0f}s, "
            f"gaps={self.gap_fraction}, spikes={self.spike_fraction}, seed={self.seed})"
        )


if __name__ == "__main__":
    print("Testing Station Simulator")
    print("=" * 50)

    simulator = StationSimulator(step_seconds=3600, gap_fraction=0.05, spike_fraction=0.01, seed=42)
    start = Date.from_calendar(2024, 1, 1)
    series = simulator.fetch_series("WFJ2", start, start + 1.0)

    print(f"Generated {len(series)} samples")
    for obs in series[:6]:
        print(f"  {obs.date.to_iso()}  TA={obs['TA']:8.2f}  RH={obs['RH']:5.2f}  ISWR={obs['ISWR']:6.1f}")
