"""Daily mean aggregation into the time-series store.

For every day of the grouping the day's rasters are collocated onto the
target grid and averaged per pixel. A pixel without any valid input that
day stays NaN. Collocated arrays live only inside one day's reduction, so
peak memory is bounded by a single day's inputs.
"""

import logging
from typing import Mapping, Optional, Sequence

import numpy as np

from temporal_percentile.contracts.failure import (
    ConfigurationError,
    ContractViolation,
    IOFailure,
    PersistenceError,
)
from temporal_percentile.core.grid import TargetGrid
from temporal_percentile.core.store import WriteHandle
from temporal_percentile.timeseries.axis import TimeSeriesAxis
from temporal_percentile.timeseries.collocation import Collocator, XarrayCollocator
from temporal_percentile.timeseries.naming import daily_band_name
from temporal_percentile.timeseries.raster import InputRaster

__all__ = ['DailyAggregator']

logger = logging.getLogger(__name__)


class DailyAggregator:
    """Reduces each day's rasters to one mean band and persists it.

    Parameters
    ----------
    grid : TargetGrid
        Grid shared by all daily bands.
    source_config : InternalSourceConfig
        Band name or band maths expression, and the valid-pixel expression.
    resampling : str
        Resampling method handed to the collocator.
    collocator : Collocator, optional
        Defaults to ``XarrayCollocator``.
    """

    def __init__(self, grid: TargetGrid, source_config, resampling: str = "Nearest",
                 collocator: Optional[Collocator] = None):
        self.grid = grid
        self.source = source_config
        self.resampling = resampling
        self.collocator = collocator or XarrayCollocator()

    def _collocate(self, raster: InputRaster) -> np.ndarray:
        band = raster.select_band(
            band_name=self.source.band_name,
            expression=self.source.band_maths_expression,
            valid_pixel_expression=self.source.valid_pixel_expression,
        )
        try:
            collocated = self.collocator.collocate(band, self.grid, self.resampling)
        except (ConfigurationError, ContractViolation):
            raise
        except Exception as exc:
            raise IOFailure(f"Collocation of '{raster.name}' failed: {exc}") from exc

        collocated = np.asarray(collocated, dtype=np.float64)
        if collocated.shape != self.grid.shape:
            raise IOFailure(
                f"Collocation of '{raster.name}' returned shape {collocated.shape}, "
                f"expected {self.grid.shape}"
            )
        return collocated

    def mean_of_day(self, rasters: Sequence[InputRaster]) -> np.ndarray:
        """Per-pixel arithmetic mean of the day's collocated rasters.

        Returns
        -------
        np.ndarray
            float32 array on the grid; NaN where no raster had a valid pixel.
        """
        total = np.zeros(self.grid.shape, dtype=np.float64)
        count = np.zeros(self.grid.shape, dtype=np.int32)
        for raster in rasters:
            collocated = self._collocate(raster)
            valid = np.isfinite(collocated)
            total[valid] += collocated[valid]
            count += valid

        mean = np.full(self.grid.shape, np.nan, dtype=np.float64)
        np.divide(total, count, out=mean, where=count > 0)
        return mean.astype(np.float32)

    def aggregate(self, grouped: Mapping[int, Sequence[InputRaster]], axis: TimeSeriesAxis,
                  prefix: str, store: WriteHandle, tracker=None) -> dict:
        """Create one band per axis day and write the daily means.

        Days of the axis without input keep an all-NaN band. Days outside
        the axis are skipped.

        Parameters
        ----------
        grouped : mapping of int to list of InputRaster
            Output of ``group_daily``.
        axis : TimeSeriesAxis
        prefix : str
            Band name prefix.
        store : WriteHandle
            Open time-series store.
        tracker : AggregationTracker, optional
            Records each persisted or failed band.

        Returns
        -------
        dict
            Band name to axis offset, for every axis day.

        Raises
        ------
        IOFailure
            If collocation of an input fails.
        PersistenceError
            If a daily band cannot be written.
        """
        band_offsets = axis.band_offsets(prefix)
        for name in band_offsets:
            try:
                store.create_band(name)
            except ContractViolation:
                raise
            except Exception as exc:
                raise PersistenceError(f"Cannot create daily band '{name}': {exc}") from exc

        for day, rasters in grouped.items():
            if not axis.contains(day):
                logger.warning("Day %d outside time axis, %d rasters ignored", day, len(rasters))
                continue

            name = daily_band_name(prefix, day)
            logger.info("Aggregating day %d (%s) from %d rasters: %s",
                        day, name, len(rasters), ", ".join(r.name for r in rasters))
            mean = self.mean_of_day(rasters)

            try:
                store.write_band_region(name, 0, 0, self.grid.width, self.grid.height, mean)
            except ContractViolation:
                raise
            except Exception as exc:
                if tracker is not None:
                    tracker.mark_failed(day, name, len(rasters), str(exc))
                raise PersistenceError(f"Cannot persist daily band '{name}': {exc}") from exc

            if tracker is not None:
                tracker.mark_persisted(day, name, len(rasters))
            logger.debug("Day %d: %d valid pixels", day, int(np.isfinite(mean).sum()))

        return band_offsets
