"""Input selection and daily grouping.

Rasters are partitioned by day index (MJD). Within a day the arrival order
is preserved; the mapping itself is ordered by day.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from temporal_percentile.contracts.failure import ConfigurationError
from temporal_percentile.timeseries.raster import InputRaster
from temporal_percentile.timeseries.timekey import to_utc

__all__ = ['select_rasters', 'group_daily']

logger = logging.getLogger(__name__)


def select_rasters(
    rasters: Sequence[InputRaster],
    band_name: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> List[InputRaster]:
    """Drop rasters that cannot contribute to the configured time series.

    A raster is skipped when it lacks the configured source band, or when
    it was acquired before ``start_date`` or after ``end_date``.
    """
    start = to_utc(start_date) if start_date is not None else None
    end = to_utc(end_date) if end_date is not None else None

    selected = []
    for raster in rasters:
        if band_name is not None and not raster.has_band(band_name):
            logger.warning("Skipping %s: band '%s' not found", raster.name, band_name)
            continue
        ts = to_utc(raster.timestamp)
        if start is not None and ts < start:
            logger.info("Skipping %s: acquired %s before start date %s", raster.name, ts, start)
            continue
        if end is not None and ts > end:
            logger.info("Skipping %s: acquired %s after end date %s", raster.name, ts, end)
            continue
        selected.append(raster)

    logger.info("Selected %d of %d input rasters", len(selected), len(rasters))
    return selected


def group_daily(rasters: Sequence[InputRaster]) -> Dict[int, List[InputRaster]]:
    """Partition rasters into an ordered day index -> rasters mapping.

    Parameters
    ----------
    rasters : sequence of InputRaster
        Validated input rasters, in arrival order.

    Returns
    -------
    dict of int to list of InputRaster
        Keys ascending; each list keeps the arrival order of its day.

    Raises
    ------
    ConfigurationError
        If fewer than two distinct days are present.
    """
    groups: Dict[int, List[InputRaster]] = {}
    for raster in rasters:
        groups.setdefault(raster.day, []).append(raster)

    if len(groups) < 2:
        raise ConfigurationError(
            "For interpolated daily percentile calculation at least two days "
            f"must contain valid input rasters, found {len(groups)}."
        )

    ordered = {day: groups[day] for day in sorted(groups)}
    logger.info("Grouped %d rasters into %d days", len(rasters), len(ordered))
    for day, day_rasters in ordered.items():
        logger.debug("  day %d: %s", day, ", ".join(r.name for r in day_rasters))
    return ordered
