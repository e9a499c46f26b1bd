"""
meteocond Configuration Module
==============================
Sectioned key/value settings for buffering, resampling and filtering.
Supports .env files and METEOCOND_* environment variables.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from dotenv import load_dotenv

from meteocond.exceptions import ConfigurationError

# Load .env file if present
load_dotenv()


GENERAL = "General"
INTERPOLATIONS1D = "Interpolations1D"
FILTERS = "Filters"

DEFAULT_CHUNK_SIZE = 15.0       # days
DEFAULT_CENTERING = 0.10        # fraction of the chunk before the requested date
DEFAULT_WINDOW_SIZE = 864000.0  # seconds (10 days)

# Environment variable -> (section, key)
_ENV_KEYS = {
    "METEOCOND_BUFF_CHUNK_SIZE": (GENERAL, "BUFF_CHUNK_SIZE"),
    "METEOCOND_BUFF_CENTERING": (GENERAL, "BUFF_CENTERING"),
    "METEOCOND_BUFF_BEFORE": (GENERAL, "BUFF_BEFORE"),
    "METEOCOND_WINDOW_SIZE": (INTERPOLATIONS1D, "WINDOW_SIZE"),
}


@dataclass
class BufferConfig:
    """Rebuffering extent. All durations in days."""
    chunk_size: float = DEFAULT_CHUNK_SIZE
    centering: float = DEFAULT_CENTERING
    before: Optional[float] = None

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ConfigurationError(f"BUFF_CHUNK_SIZE must be positive, got {self.chunk_size}")
        if not 0.0 <= self.centering <= 1.0:
            raise ConfigurationError(f"BUFF_CENTERING must be within [0, 1], got {self.centering}")
        if self.before is not None and self.before < 0:
            raise ConfigurationError(f"BUFF_BEFORE must not be negative, got {self.before}")

    @property
    def lead(self) -> float:
        """Days fetched before a requested date when rebuffering."""
        if self.before is not None:
            return self.before
        return self.chunk_size * self.centering


@dataclass
class Config:
    """
    Sectioned configuration.

    Sections and keys are case-insensitive; values are kept as strings and
    converted by the typed getters.
    """
    sections: Dict[str, Dict[str, str]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Dict[str, Any]]) -> "Config":
        """
        Build a configuration from nested dicts.

        Args:
            data: {section: {key: value}}. List values are joined with spaces.

        Returns:
            Config instance
        """
        config = cls()
        for section, values in data.items():
            for key, value in values.items():
                config.set_value(key, section, value)
        return config

    @staticmethod
    def _section(section: str) -> str:
        return section.strip().lower()

    @staticmethod
    def _key(key: str) -> str:
        return key.strip().upper()

    def set_value(self, key: str, section: str, value: Any) -> None:
        if isinstance(value, (list, tuple)):
            value = " ".join(str(v) for v in value)
        self.sections.setdefault(self._section(section), {})[self._key(key)] = str(value).strip()

    def has(self, key: str, section: str) -> bool:
        return self._key(key) in self.sections.get(self._section(section), {})

    def keys(self, section: str) -> List[str]:
        """All keys of a section, in insertion order."""
        return list(self.sections.get(self._section(section), {}).keys())

    def get_string(self, key: str, section: str, default: Optional[str] = None) -> Optional[str]:
        value = self.sections.get(self._section(section), {}).get(self._key(key))
        if value is None or value == "":
            return default
        return value

    def get_float(self, key: str, section: str, default: Optional[float] = None) -> Optional[float]:
        value = self.get_string(key, section)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            raise ConfigurationError(
                f"Can not parse {section}::{key} = '{value}' as a number"
            ) from None

    def get_list(self, key: str, section: str) -> List[str]:
        value = self.get_string(key, section)
        return value.split() if value else []

    @property
    def buffer(self) -> BufferConfig:
        """Buffering settings from the General section."""
        return BufferConfig(
            chunk_size=self.get_float("BUFF_CHUNK_SIZE", GENERAL, DEFAULT_CHUNK_SIZE),
            centering=self.get_float("BUFF_CENTERING", GENERAL, DEFAULT_CENTERING),
            before=self.get_float("BUFF_BEFORE", GENERAL),
        )

    @property
    def window_size(self) -> float:
        """Default resampling window, in seconds."""
        return self.get_float("WINDOW_SIZE", INTERPOLATIONS1D, DEFAULT_WINDOW_SIZE)


def load_config(overrides: Optional[Dict[str, Dict[str, Any]]] = None) -> Config:
    """
    Load configuration from the environment (.env supported).
    Explicit overrides take precedence.
    """
    config = Config()

    for env_name, (section, key) in _ENV_KEYS.items():
        value = os.getenv(env_name)
        if value:
            config.set_value(key, section, value)

    if overrides:
        for section, values in overrides.items():
            for key, value in values.items():
                config.set_value(key, section, value)

    return config


# Singleton config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the application configuration (singleton)."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


if __name__ == "__main__":
    config = get_config()
    print("Configuration loaded successfully!")
    print(f"  Buffer: {config.buffer}")
    print(f"  Resampling window: {config.window_size:.0f}s")
