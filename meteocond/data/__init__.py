"""
Data Module
===========
Dates, observations, data sources and the time buffer cache.
"""

from meteocond.data.timestamp import Date
from meteocond.data.observation import NODATA, PARAMETERS, Observation, Series, is_nodata
from meteocond.data.properties import ProcessingProperties, ProcessingStage
from meteocond.data.sources import MeteoSource, MemorySource, create_source, register_source
from meteocond.data.buffer import BufferPolicy, TimeBufferCache

__all__ = [
    'Date',
    'NODATA',
    'PARAMETERS',
    'Observation',
    'Series',
    'is_nodata',
    'ProcessingProperties',
    'ProcessingStage',
    'MeteoSource',
    'MemorySource',
    'create_source',
    'register_source',
    'BufferPolicy',
    'TimeBufferCache',
]
