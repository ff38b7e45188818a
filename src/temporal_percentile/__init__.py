"""`temporal_percentile` - per-pixel percentile thresholds over interpolated daily time series.

Subpackages:
- timeseries: Day keys, grouping, axis, daily means, gap filling, percentiles
- core: Tiled time-series store and target grid
- pipeline: Tile driver, progress tracker, orchestration
- schemas: Configuration
- contracts: Error taxonomy and stage contracts
"""

__version__ = "0.1.0"
