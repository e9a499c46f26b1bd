# tests/test_exceptions.py
import pytest

from meteocond.exceptions import ConfigurationError, InvalidArgument, MeteoCondError, SourceIOError


def test_exception_inheritance():
    assert issubclass(ConfigurationError, MeteoCondError)
    assert issubclass(InvalidArgument, MeteoCondError)
    assert issubclass(SourceIOError, MeteoCondError)


def test_exceptions_can_be_caught_as_builtins():
    with pytest.raises(ValueError):
        raise ConfigurationError("bad key")
    with pytest.raises(ValueError):
        raise InvalidArgument("wrong count")
    with pytest.raises(IOError):
        raise SourceIOError("station file missing")
