#!/usr/bin/env python3
"""
Condition the data of simulated stations and print the resampled series.

Typical usage:
  python scripts/process_station.py --station WFJ2 --start 2024-03-01 --days 2 \
      --set Filters::TA::filter1=min_max --set Filters::TA::arg1="230 330"

Settings not given on the command line come from the environment
(METEOCOND_* variables, .env supported).
"""

import sys
import os
import logging

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from meteocond.config import load_config
from meteocond.data.observation import NODATA
from meteocond.data.sources import available_sources, create_source
from meteocond.data.timestamp import Date
from meteocond.exceptions import MeteoCondError
from meteocond.processing.processor import MeteoProcessor


def parse_overrides(settings):
    """Turn "Section::KEY=value" strings into a sections dict."""
    overrides = {}
    for setting in settings:
        name, sep, value = setting.partition("=")
        section, _, key = name.partition("::")
        if not sep or not key:
            raise ValueError(f"Expected Section::KEY=value, got '{setting}'")
        overrides.setdefault(section, {})[key] = value
    return overrides


def main() -> int:
    import argparse

    parser = argparse.ArgumentParser(description="Filter and resample station time series")
    parser.add_argument("--station", action="append", required=True, help="Station ID (repeatable)")
    parser.add_argument("--start", required=True, help="First date, ISO format (UTC)")
    parser.add_argument("--days", type=float, default=1.0, help="Number of days to process")
    parser.add_argument("--step", type=float, default=3600.0, help="Output step (s)")
    parser.add_argument("--source", default="synthetic", choices=available_sources(), help="Data source")
    parser.add_argument("--gap-fraction", type=float, default=0.05, help="Simulated gap probability")
    parser.add_argument("--spike-fraction", type=float, default=0.01, help="Simulated spike probability")
    parser.add_argument("--seed", type=int, default=42, help="Simulator seed")
    parser.add_argument("--set", action="append", default=[], metavar="SECTION::KEY=VALUE",
                        help="Configuration override (repeatable)")
    parser.add_argument("--param", action="append", help="Parameter to print (repeatable, default TA)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.source == "synthetic":
        options = {"gap_fraction": args.gap_fraction, "spike_fraction": args.spike_fraction, "seed": args.seed}
    else:
        options = {}

    try:
        config = load_config(parse_overrides(args.set))
        source = create_source(args.source, **options)
        processor = MeteoProcessor(source, config)

        start = Date.from_iso(args.start)
        series = processor.get_resampled_series(args.station, start, start + args.days, args.step)
    except (MeteoCondError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    params = args.param or ["TA"]
    for station, data in series.items():
        print("")
        print(f"Station {station}")
        print("=" * 50)
        print("date                  " + "".join(f"{name:>12}" for name in params))
        for obs in data:
            cells = "".join(
                f"{'nodata':>12}" if obs.get(name) == NODATA else f"{obs.get(name):12.3f}" for name in params
            )
            print(f"{obs.date.to_iso():<22}{cells}")

        missing = sum(1 for obs in data for name in params if obs.get(name) == NODATA)
        print(f"  Points: {len(data)}, missing values: {missing}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
