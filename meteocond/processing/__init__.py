"""
Processing Module
=================
Quality control and resampling of station time series.

Modules:
- window: Sliding windows around a point of a series
- filters: Range, rate, median, mean and standard deviation filters
- despiker: Remove spikes using the MAD algorithm
- filter_pipeline: Per parameter filter chains built from the configuration
- resampler: Per parameter resampling algorithms and their dispatcher
- gap_model: Seasonal autoregressive gap filling
- processor: Pipeline orchestration
"""

from meteocond.processing.window import (
    Centering,
    WindowSpec,
    WindowExtractor,
    SeriesWindow
)

from meteocond.processing.filters import (
    FilterBlock,
    WindowedFilter,
    create_filter,
    register_filter
)

from meteocond.processing.despiker import MADFilter

from meteocond.processing.filter_pipeline import FilterPipeline

from meteocond.processing.resampler import (
    ResamplingAlgorithm,
    ResamplingDispatcher,
    ResamplingPosition,
    create_algorithm,
    register_algorithm
)

from meteocond.processing.gap_model import GapModelResampling

from meteocond.processing.processor import (
    MeteoProcessor,
    resample_station
)

__all__ = [
    # Windows
    'Centering',
    'WindowSpec',
    'WindowExtractor',
    'SeriesWindow',

    # Filters
    'FilterBlock',
    'WindowedFilter',
    'create_filter',
    'register_filter',
    'MADFilter',
    'FilterPipeline',

    # Resampling
    'ResamplingAlgorithm',
    'ResamplingDispatcher',
    'ResamplingPosition',
    'create_algorithm',
    'register_algorithm',
    'GapModelResampling',

    # Processor
    'MeteoProcessor',
    'resample_station',
]
