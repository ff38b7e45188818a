"""Percentile pipeline orchestration.

Wires the stages together as explicit data flow:

    rasters -> selection -> daily grouping -> axis
            -> daily means (WriteHandle) -> finalize (ReadHandle)
            -> tile loop -> percentile bands

Each stage hands its output to the next; nothing is shared through
long-lived mutable state.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

import xarray as xr

from temporal_percentile.contracts import assert_axis, assert_readable_store
from temporal_percentile.core.grid import TargetGrid
from temporal_percentile.core.store import ReadHandle, WriteHandle, open_store
from temporal_percentile.pipeline.tile_driver import TileDriver, TileRunSummary
from temporal_percentile.pipeline.tracker import AggregationTracker
from temporal_percentile.setup_directories import (
    get_percentile_path,
    get_timeseries_path,
    get_tracker_path,
    setup_output_directories,
)
from temporal_percentile.timeseries.aggregator import DailyAggregator
from temporal_percentile.timeseries.axis import TimeSeriesAxis, build_axis
from temporal_percentile.timeseries.collocation import Collocator
from temporal_percentile.timeseries.grouping import group_daily, select_rasters
from temporal_percentile.timeseries.naming import (
    intermediate_product_name,
    output_product_name,
)
from temporal_percentile.timeseries.percentile import PercentileRequest
from temporal_percentile.timeseries.raster import InputRaster

__all__ = ['PercentilePipeline', 'PercentileResult']

logger = logging.getLogger(__name__)


@dataclass
class PercentileResult:
    """Outcome of a pipeline run.

    Attributes
    ----------
    axis : TimeSeriesAxis
        Time axis the percentiles were computed over.
    request : PercentileRequest
        Requested ranks and their output band names.
    output : ReadHandle
        Read-only handle on the percentile bands.
    path : Path, optional
        Output file, None for the in-memory backend.
    timeseries_path : Path, optional
        Intermediate daily-mean store, None if not kept.
    tiles : TileRunSummary
    aggregation : dict
        Tracker statistics of the daily bands.
    """
    axis: TimeSeriesAxis
    request: PercentileRequest
    output: ReadHandle
    path: Optional[Path] = None
    timeseries_path: Optional[Path] = None
    tiles: Optional[TileRunSummary] = None
    aggregation: dict = field(default_factory=dict)

    @property
    def band_names(self):
        return self.request.band_names

    def to_dataset(self) -> xr.Dataset:
        """Percentile bands as an ``xarray.Dataset`` on ``(y, x)``."""
        ds = self.output.to_dataset(self.request.band_names)
        for name, rank in self.request.band_ranks.items():
            ds[name].attrs["percentile"] = rank
        return ds

    def close(self):
        self.output.close()


class PercentilePipeline:
    """Computes per-pixel percentile thresholds over a daily time series.

    Example usage::

        from temporal_percentile.schemas import resolve_config, ParamConfig, UserConfig
        from temporal_percentile.pipeline import PercentilePipeline

        config = resolve_config(ParamConfig(), UserConfig(SOURCE_BAND="chl", PERCENTILES=[50, 90]))
        result = PercentilePipeline(config).run(rasters)
        ds = result.to_dataset()

    Parameters
    ----------
    config : InternalConfig
        Resolved runtime configuration.
    output_dirs : dict, optional
        Directories from ``setup_output_directories()``. Created under
        ``config.base_dir`` when omitted.
    collocator : Collocator, optional
        Resampling collaborator. Defaults to xarray interpolation.
    configure_logging : bool
        Install console and file handlers on the root logger.
    """

    def __init__(self, config, output_dirs: Optional[dict] = None,
                 collocator: Optional[Collocator] = None, configure_logging: bool = True):
        self.config = config
        self.output_dirs = output_dirs or setup_output_directories(config.base_dir)
        self.collocator = collocator
        if configure_logging:
            self._setup_logging()

    def _setup_logging(self):
        """Configure root logger with file and console handlers."""
        log_level = getattr(logging, self.config.logging.level.upper(), logging.INFO)

        log_dir = Path(self.output_dirs.get("logs", "."))
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / f"percentile_{self.config.target_prefix}.log"

        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        # Clear existing handlers and add new ones
        root = logging.getLogger()
        root.setLevel(log_level)
        for handler in root.handlers[:]:
            root.removeHandler(handler)

        fh = logging.FileHandler(log_path)
        fh.setLevel(log_level)
        fh.setFormatter(formatter)
        root.addHandler(fh)

        ch = logging.StreamHandler()
        ch.setLevel(log_level)
        ch.setFormatter(formatter)
        root.addHandler(ch)

        logger.info("Logging: level=%s, file=%s", logging.getLevelName(log_level), log_path)

    def _metadata(self, rasters: Sequence[InputRaster], axis: TimeSeriesAxis,
                  request: PercentileRequest, product_name: str) -> dict:
        cfg = self.config
        return {
            "product_name": product_name,
            "input_rasters": [r.name for r in rasters],
            "source_band": cfg.source.band_name,
            "band_maths_expression": cfg.source.band_maths_expression,
            "valid_pixel_expression": cfg.source.valid_pixel_expression,
            "prefix": request.prefix,
            "percentiles": list(request.ranks),
            "gap_filling_method": cfg.percentile.method,
            "start_value_fallback": float(cfg.percentile.start_value_fallback),
            "end_value_fallback": float(cfg.percentile.end_value_fallback),
            "resampling": cfg.grid.resampling,
            "start_day": axis.start_day,
            "end_day": axis.end_day,
            "created": datetime.now(timezone.utc).isoformat(),
        }

    def _open(self, backend: str, grid: TargetGrid, path: Path, attrs: dict,
              compression: bool) -> WriteHandle:
        return open_store(
            backend, grid,
            path=path if backend == "netcdf" else None,
            attrs=attrs,
            compression=compression,
            chunk_size=tuple(self.config.grid.tile_size),
        )

    def _release_intermediate(self, ts_path: Path) -> Optional[Path]:
        """Delete the daily-mean store unless it is kept; return its kept path."""
        if self.config.timeseries.backend != "netcdf":
            return None
        if self.config.timeseries.keep_intermediate:
            return ts_path
        ts_path.unlink(missing_ok=True)
        logger.info("Removed intermediate store %s", ts_path)
        return None

    def run(self, rasters: Sequence[InputRaster]) -> PercentileResult:
        """Run the pipeline on the given input rasters.

        Raises
        ------
        ConfigurationError
            Fewer than two days with data, or an invalid period/grid. Raised
            before any aggregation.
        IOFailure
            Collocation, store read or store write failure.
        """
        cfg = self.config
        start = time.time()
        prefix = cfg.target_prefix

        # Temporal layout
        selected = select_rasters(rasters, band_name=cfg.source.band_name,
                                  start_date=cfg.period.start_date,
                                  end_date=cfg.period.end_date)
        grouped = group_daily(selected)
        axis = build_axis(grouped, cfg.period.start_date, cfg.period.end_date)
        band_offsets = axis.band_offsets(prefix)
        assert_axis(axis, band_offsets)

        request = PercentileRequest(prefix, list(cfg.percentile.percentiles))
        grid = TargetGrid.from_config(cfg.grid)
        logger.info("Target grid: %d x %d pixels, crs=%s", grid.width, grid.height, grid.crs)

        # Daily means
        ts_name = intermediate_product_name(prefix, axis.start_day)
        ts_path = get_timeseries_path(self.output_dirs, ts_name)
        ts_store = self._open(cfg.timeseries.backend, grid, ts_path,
                              self._metadata(selected, axis, request, ts_name),
                              cfg.timeseries.compression)
        tracker = AggregationTracker(get_tracker_path(self.output_dirs, ts_name))
        aggregator = DailyAggregator(grid, cfg.source, cfg.grid.resampling, self.collocator)
        try:
            aggregator.aggregate(grouped, axis, prefix, ts_store, tracker)
            aggregation = tracker.get_statistics()
        finally:
            tracker.close()
            ts_store.close()

        ts_reader = ts_store.finalize()
        assert_readable_store(ts_reader, band_offsets)
        logger.info("Time-series store finalized: %d daily bands (%d persisted)",
                    len(band_offsets), aggregation['persisted'])

        # Percentiles
        out_name = output_product_name(prefix)
        out_path = get_percentile_path(self.output_dirs, out_name)
        try:
            output = self._open(cfg.output.backend, grid, out_path,
                                self._metadata(selected, axis, request, out_name),
                                cfg.output.compression)
            try:
                for name in request.band_names:
                    output.create_band(name)
                driver = TileDriver(
                    ts_reader, band_offsets, output, request.band_names,
                    method=cfg.percentile.method,
                    start_fallback=cfg.percentile.start_value_fallback,
                    end_fallback=cfg.percentile.end_value_fallback,
                    workers=cfg.processor.workers,
                )
                summary = driver.run(grid.tiles(*cfg.grid.tile_size))
            finally:
                output.close()
        finally:
            ts_reader.close()
            kept_ts_path = self._release_intermediate(ts_path)

        result_handle = output.finalize()

        logger.info("Pipeline finished in %.2fs: %d percentile bands %s",
                    time.time() - start, len(request.band_names), request.band_names)
        return PercentileResult(
            axis=axis,
            request=request,
            output=result_handle,
            path=out_path if cfg.output.backend == "netcdf" else None,
            timeseries_path=kept_ts_path,
            tiles=summary,
            aggregation=aggregation,
        )
