"""
Exceptions
==========
Error kinds raised by the conditioning pipeline.

Missing data is never an error: it is represented by the nodata sentinel
or by an empty result.
"""


class MeteoCondError(Exception):
    """Base error for all meteocond exceptions."""


# ---- Construction errors ----
class ConfigurationError(MeteoCondError, ValueError):
    """Raised when a configuration value is missing, unparsable or invalid."""


class InvalidArgument(MeteoCondError, ValueError):
    """Raised when a filter or algorithm receives the wrong number of arguments."""


# ---- Runtime errors ----
class SourceIOError(MeteoCondError, IOError):
    """Raised by data sources when reading fails. Never swallowed by the core."""
