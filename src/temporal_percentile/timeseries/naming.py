"""Deterministic band and product names.

Daily mean bands are ``<prefix>_<yyyyMMdd.HHmmss.SSS>``, percentile bands
``<prefix>_p<rank>_threshold``. The tile loop recovers the rank from the
output band name, so the two functions below must stay inverse.
"""

import re

from temporal_percentile.timeseries.timekey import format_day, mjd_to_datetime

__all__ = [
    'daily_band_name',
    'percentile_band_name',
    'rank_from_band_name',
    'intermediate_product_name',
    'output_product_name',
]

_RANK_PATTERN = re.compile(r"_p(\d+)_threshold$")


def daily_band_name(prefix: str, day: int) -> str:
    return f"{prefix}_{format_day(day)}"


def percentile_band_name(prefix: str, rank: int) -> str:
    return f"{prefix}_p{int(rank)}_threshold"


def rank_from_band_name(name: str) -> int:
    """Extract the percentile rank from an output band name.

    Raises
    ------
    ValueError
        If the name does not end in ``_p<rank>_threshold``.
    """
    match = _RANK_PATTERN.search(name)
    if match is None:
        raise ValueError(f"Not a percentile band name: '{name}'")
    return int(match.group(1))


def intermediate_product_name(prefix: str, start_day: int) -> str:
    """Name of the daily-mean store, keyed by the year of the first day."""
    return f"{mjd_to_datetime(start_day).year}_{prefix}_daily_means"


def output_product_name(prefix: str) -> str:
    return f"{prefix}_percentiles"
