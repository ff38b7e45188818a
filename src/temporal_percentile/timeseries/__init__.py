"""Time-series construction and per-pixel statistics.

Stages, leaf first: day keys, daily grouping, axis, daily mean aggregation,
gap filling and nearest-rank percentiles.
"""

from temporal_percentile.timeseries.timekey import to_mjd, mjd_to_datetime
from temporal_percentile.timeseries.raster import InputRaster
from temporal_percentile.timeseries.grouping import select_rasters, group_daily
from temporal_percentile.timeseries.axis import TimeSeriesAxis, build_axis
from temporal_percentile.timeseries.collocation import Collocator, XarrayCollocator
from temporal_percentile.timeseries.aggregator import DailyAggregator
from temporal_percentile.timeseries.gapfill import GAP_FILL_METHODS, fill_gaps
from temporal_percentile.timeseries.percentile import (
    PercentileRequest,
    compute_thresholds,
    compute_block_thresholds,
)

__all__ = [
    'to_mjd',
    'mjd_to_datetime',
    'InputRaster',
    'select_rasters',
    'group_daily',
    'TimeSeriesAxis',
    'build_axis',
    'Collocator',
    'XarrayCollocator',
    'DailyAggregator',
    'GAP_FILL_METHODS',
    'fill_gaps',
    'PercentileRequest',
    'compute_thresholds',
    'compute_block_thresholds',
]
