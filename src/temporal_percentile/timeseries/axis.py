"""Time-series axis construction.

The axis is dense: every day in the inclusive ``[start_day, end_day]`` range
owns one slot, whether or not any raster was acquired that day.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, Mapping, Optional

from temporal_percentile.contracts.failure import ConfigurationError
from temporal_percentile.timeseries.naming import daily_band_name
from temporal_percentile.timeseries.timekey import to_mjd

__all__ = ['TimeSeriesAxis', 'build_axis']

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeSeriesAxis:
    """Inclusive, dense day range of the time series."""
    start_day: int
    end_day: int

    @property
    def length(self) -> int:
        return self.end_day - self.start_day + 1

    def days(self) -> Iterable[int]:
        return range(self.start_day, self.end_day + 1)

    def contains(self, day: int) -> bool:
        return self.start_day <= day <= self.end_day

    def offset(self, day: int) -> int:
        """0-based slot of ``day`` on the axis.

        Raises
        ------
        ValueError
            If the day lies outside the axis.
        """
        if not self.contains(day):
            raise ValueError(f"Day {day} outside axis [{self.start_day}, {self.end_day}]")
        return day - self.start_day

    def band_offsets(self, prefix: str) -> Dict[str, int]:
        """Daily band name -> axis offset, in axis order."""
        return {daily_band_name(prefix, day): day - self.start_day for day in self.days()}


def build_axis(
    grouped: Mapping[int, list],
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> TimeSeriesAxis:
    """Derive the time-series axis.

    Explicit bounds win over the data extrema; present days outside the
    explicit bounds do not influence length or offsets.

    Parameters
    ----------
    grouped : mapping of int to list
        Output of ``group_daily``.
    start_date, end_date : datetime, optional
        Explicit period bounds.

    Returns
    -------
    TimeSeriesAxis

    Raises
    ------
    ConfigurationError
        If the end precedes the start or fewer than two slots result.
    """
    if not grouped:
        raise ConfigurationError("Cannot build a time axis without input days.")

    start_day = to_mjd(start_date) if start_date is not None else min(grouped)
    end_day = to_mjd(end_date) if end_date is not None else max(grouped)

    if end_day < start_day:
        raise ConfigurationError(f"End day {end_day} before start day {start_day}")

    axis = TimeSeriesAxis(start_day=start_day, end_day=end_day)
    if axis.length < 2:
        raise ConfigurationError(
            f"Time series must span at least two days, got {axis.length}"
        )

    outside = [day for day in grouped if not axis.contains(day)]
    if outside:
        logger.warning("%d input days fall outside the axis and are ignored: %s",
                       len(outside), outside)
    logger.info("Time axis: MJD %d..%d (%d days, %d with data)",
                start_day, end_day, axis.length, len(grouped) - len(outside))
    return axis
