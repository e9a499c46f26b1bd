"""
Simulator Module
================
Synthetic weather station data.
"""

from meteocond.simulator.station_simulator import StationClimate, StationSimulator

__all__ = ['StationClimate', 'StationSimulator']
