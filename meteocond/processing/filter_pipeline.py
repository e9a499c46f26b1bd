"""
Filter Pipeline
===============
Ordered chains of filters per parameter, built from the Filters section:

    TA::filter1 = min_max
    TA::arg1    = 230 330
    TA::filter2 = rate
    TA::arg2    = 0.01
"""

import logging
import re
from typing import Dict, List, Optional

from meteocond.config import FILTERS, Config
from meteocond.data.observation import Series
from meteocond.data.properties import ProcessingProperties
from meteocond.exceptions import ConfigurationError
from meteocond.processing.filters import FilterBlock, create_filter

# register the filters living in their own modules
import meteocond.processing.despiker  # noqa: F401

logger = logging.getLogger(__name__)

_FILTER_KEY = re.compile(r"^(?P<param>.+)::FILTER(?P<rank>\d+)$")


class FilterPipeline:
    """
    Runs the configured filters of every parameter.

    Filters of a parameter run in increasing rank order, each one on the
    output of the previous one.
    """

    def __init__(self, config: Optional[Config] = None):
        self.blocks: Dict[str, List[FilterBlock]] = {}
        if config is not None:
            self._load(config)

    def _load(self, config: Config) -> None:
        ranked: Dict[str, List[tuple]] = {}
        for key in config.keys(FILTERS):
            match = _FILTER_KEY.match(key)
            if match is None:
                continue
            param = match.group("param")
            rank = int(match.group("rank"))
            name = config.get_string(key, FILTERS)
            if name is None:
                raise ConfigurationError(f"Empty filter name for {FILTERS}::{key}")
            args = config.get_list(f"{param}::arg{rank}", FILTERS)
            ranked.setdefault(param, []).append((rank, name, args))

        for param, entries in ranked.items():
            for _, name, args in sorted(entries, key=lambda entry: entry[0]):
                self.add_filter(param, create_filter(name, args))

    def add_filter(self, param: str, block: FilterBlock) -> None:
        """Append a filter to the chain of param."""
        self.blocks.setdefault(param, []).append(block)
        logger.debug(f"Filter {block!r} added for {param}")

    @property
    def parameters(self) -> List[str]:
        return list(self.blocks.keys())

    def get_window_size(self) -> ProcessingProperties:
        """Largest window required by any configured filter."""
        properties = ProcessingProperties()
        for chain in self.blocks.values():
            for block in chain:
                properties = properties.merge(block.properties)
        return properties

    def process(self, series: Series, second_pass: bool = False) -> Series:
        """
        Filter a station series.

        Args:
            series: Input series (left untouched)
            second_pass: Run the filters meant for resampled data

        Returns:
            Filtered series aligned 1:1 with the input
        """
        # configuration keys are upper case, parameter names may not be
        names = {name.upper(): name for obs in series for name in obs.parameter_names}

        output = series
        for param, chain in self.blocks.items():
            name = names.get(param.upper(), param)
            for block in chain:
                if not block.properties.stage.runs_in(second_pass):
                    continue
                output = block.process(name, output)
        if output is series:
            output = [obs.copy() for obs in series]
        return output

    def __repr__(self) -> str:
        lines = ["<FilterPipeline>"]
        for param, chain in self.blocks.items():
            lines.append(f"  {param}: " + " -> ".join(repr(block) for block in chain))
        lines.append("</FilterPipeline>")
        return "\n".join(lines)
