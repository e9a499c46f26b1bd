"""
Data Sources
============
Interface of the external collaborators the buffer reads from, plus a
startup-time registry mapping source names to factories.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

from meteocond.data.observation import Series, slice_series
from meteocond.data.timestamp import Date
from meteocond.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@runtime_checkable
class MeteoSource(Protocol):
    """Anything able to deliver station series and named grids."""

    def fetch_series(self, station: str, start: Date, end: Date) -> Series:
        """Ascending observations of station within [start, end], possibly empty."""
        ...

    def fetch_grid(self, name: str, date: Optional[Date] = None) -> Optional[Any]:
        """A grid (opaque to the pipeline) or None if not found."""
        ...


SourceFactory = Callable[..., MeteoSource]

_SOURCE_REGISTRY: Dict[str, SourceFactory] = {}


def register_source(name: str) -> Callable[[SourceFactory], SourceFactory]:
    """
    Decorator registering a source factory under a name.

    Example:
        >>> @register_source("memory")
        ... class MemorySource: ...
    """
    def decorator(factory: SourceFactory) -> SourceFactory:
        key = name.lower()
        if key in _SOURCE_REGISTRY:
            logger.warning(f"Source '{name}' registered twice, keeping the latest")
        _SOURCE_REGISTRY[key] = factory
        return factory
    return decorator


def create_source(name: str, **options: Any) -> MeteoSource:
    """
    Instantiate a registered source.

    Args:
        name: Registered source name (case-insensitive)
        **options: Passed to the factory

    Returns:
        A MeteoSource
    """
    factory = _SOURCE_REGISTRY.get(name.lower())
    if factory is None:
        raise ConfigurationError(
            f"Unknown data source '{name}', available: {', '.join(available_sources())}"
        )
    return factory(**options)


def available_sources() -> List[str]:
    return sorted(_SOURCE_REGISTRY)


@register_source("memory")
class MemorySource:
    """Serves series and grids held in memory."""

    def __init__(
        self,
        series: Optional[Dict[str, Series]] = None,
        grids: Optional[Dict[str, Any]] = None,
    ):
        self.series: Dict[str, Series] = dict(series or {})
        self.grids: Dict[str, Any] = dict(grids or {})
        self.fetch_count = 0

    def fetch_series(self, station: str, start: Date, end: Date) -> Series:
        self.fetch_count += 1
        data = self.series.get(station, [])
        return [obs.copy() for obs in slice_series(data, start, end)]

    def fetch_grid(self, name: str, date: Optional[Date] = None) -> Optional[Any]:
        return self.grids.get(name)
