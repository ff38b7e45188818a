"""Pipeline orchestration: tile loop, progress tracking and the end-to-end run."""

from temporal_percentile.pipeline.orchestrator import PercentilePipeline, PercentileResult
from temporal_percentile.pipeline.tile_driver import TileDriver, TileState
from temporal_percentile.pipeline.tracker import AggregationTracker

__all__ = ['PercentilePipeline', 'PercentileResult', 'TileDriver', 'TileState', 'AggregationTracker']
