"""
De-spiking Filter (MAD Algorithm)
=================================
Rejects spikes using the Median Absolute Deviation over a sliding window.
"""

from typing import List, Tuple

import numpy as np

from meteocond.data.observation import NODATA, is_nodata
from meteocond.exceptions import ConfigurationError
from meteocond.processing.filters import WindowedFilter, calc_median, register_filter
from meteocond.processing.window import SeriesWindow


@register_filter("MAD")
class MADFilter(WindowedFilter):
    """
    Removes spikes from a parameter using the MAD algorithm.

    MAD = median(|x - median(x)|)
    a value is rejected outside median +/- k * MAD * 1.4826

    The 1.4826 factor makes MAD consistent with standard deviation
    for normally distributed data.

    Args (tokens): [soft] [centering] min_points min_span [k]
    """

    # Scale factor to make MAD consistent with std for normal distributions
    MAD_SCALE = 1.4826
    DEFAULT_THRESHOLD = 3.5

    def __init__(self, args: List[str]):
        super().__init__()
        extra = self.parse_window_args(args, min_extra=0, max_extra=1)
        self.threshold = extra[0] if extra else self.DEFAULT_THRESHOLD
        if self.threshold <= 0:
            raise ConfigurationError(f"Invalid MAD threshold {self.threshold} for filter {self.block_name}")

    @staticmethod
    def calculate_mad(data: np.ndarray) -> Tuple[float, float]:
        """
        Calculate the Median Absolute Deviation.

        Args:
            data: Valid values

        Returns:
            Tuple of (median, MAD)
        """
        median = calc_median(data)
        mad = calc_median(np.abs(data - median))
        return median, mad

    def process_window(self, param: str, value: float, window: SeriesWindow) -> float:
        if is_nodata(value):
            return NODATA

        values = window.valid_values(param)
        if values.size < 3:
            return value

        median, mad = self.calculate_mad(values)
        if mad == 0:
            # No variation, no spikes
            return value

        bound = self.threshold * mad * self.MAD_SCALE
        if value < median - bound or value > median + bound:
            return NODATA
        return value


if __name__ == "__main__":
    from meteocond.data.observation import Observation
    from meteocond.data.timestamp import Date

    print("Testing MAD filter")
    print("=" * 50)

    np.random.seed(42)
    start = Date.from_calendar(2024, 1, 1)
    series = []
    for ii in range(200):
        obs = Observation(start + ii / 24.0, "demo")
        obs["TA"] = 273.15 + 5.0 * np.sin(2 * np.pi * ii / 24.0) + np.random.normal(0, 0.2)
        series.append(obs)

    spike_indices = [20, 75, 150]
    for idx in spike_indices:
        series[idx]["TA"] += 25.0

    filtered = MADFilter(["9", "0"]).process("TA", series)
    detected = [ii for ii, obs in enumerate(filtered) if obs["TA"] == NODATA]
    print(f"  Injected spikes: {spike_indices}")
    print(f"  Rejected points: {detected}")
