"""
meteocond
=========
Conditioning of weather station time series: buffered data access,
quality control filters and temporal resampling.
"""

__version__ = "0.1.0"

# register the built-in data sources
import meteocond.simulator.station_simulator  # noqa: F401
