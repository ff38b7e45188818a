"""Tile loop over the daily time-series store.

For every output tile the driver reads one block per daily band, builds the
per-pixel time vectors, gap-fills them and selects the requested
percentiles, then writes one block per output band. Each tile moves through
``IDLE -> LOADING_TILE -> COMPUTING -> WRITING -> IDLE``; the driver ends
in ``DONE`` or, on the first fatal error, ``FAILED``.

Tiles share nothing but the read-only store, so they can be processed by a
thread pool. A fatal error cancels the tiles not yet started, lets running
ones drain, and is re-raised.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Mapping, Sequence

import numpy as np

from temporal_percentile.contracts.base import require
from temporal_percentile.contracts.failure import (
    ContractViolation,
    InterpolationFailure,
    IOFailure,
)
from temporal_percentile.core.grid import Tile
from temporal_percentile.core.store import ReadHandle, WriteHandle
from temporal_percentile.timeseries.gapfill import fill_gaps
from temporal_percentile.timeseries.naming import rank_from_band_name
from temporal_percentile.timeseries.percentile import (
    compute_block_thresholds,
    compute_thresholds,
)

__all__ = ['TileState', 'TileTask', 'TileRunSummary', 'TileDriver']

logger = logging.getLogger(__name__)


class TileState(str, Enum):
    IDLE = "idle"
    LOADING_TILE = "loading_tile"
    COMPUTING = "computing"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class TileTask:
    """Per-tile progress, owned by the worker processing the tile."""
    tile: Tile
    state: TileState = TileState.IDLE
    skipped_pixels: int = 0


@dataclass
class TileRunSummary:
    tiles: int
    pixels: int
    skipped_pixels: int
    elapsed_seconds: float


class TileDriver:
    """Computes percentile bands tile by tile.

    Parameters
    ----------
    store : ReadHandle
        Finalized time-series store.
    band_offsets : mapping of str to int
        Daily band name to axis offset; covers every axis slot.
    output : WriteHandle
        Output store, one band per requested rank already created.
    output_band_names : sequence of str
        ``<prefix>_p<rank>_threshold`` names; ranks are read from them.
    method : str
        Gap filling method.
    start_fallback, end_fallback : float
        Values for missing first and last slots.
    workers : int
        Number of worker threads; 1 processes tiles in order on the
        calling thread.
    """

    def __init__(self, store: ReadHandle, band_offsets: Mapping[str, int], output: WriteHandle,
                 output_band_names: Sequence[str], method: str = "linear",
                 start_fallback: float = 0.0, end_fallback: float = 0.0, workers: int = 1):
        require(store.read_only, "Tile loop needs a read-only time-series store")
        require(workers >= 1, f"workers must be >= 1, got {workers}")
        self.store = store
        self.band_offsets = dict(band_offsets)
        self.length = len(self.band_offsets)
        self.output = output
        self.output_band_names = list(output_band_names)
        self.ranks = [rank_from_band_name(name) for name in self.output_band_names]
        self.method = method
        self.start_fallback = start_fallback
        self.end_fallback = end_fallback
        self.workers = workers
        self.state = TileState.IDLE

    def _load(self, task: TileTask) -> np.ndarray:
        tile = task.tile
        task.state = TileState.LOADING_TILE
        block = np.full((self.length, tile.height, tile.width), np.nan, dtype=np.float64)
        for name, offset in self.band_offsets.items():
            try:
                block[offset] = self.store.read_band_region(name, tile.x, tile.y, tile.width, tile.height)
            except Exception as exc:
                raise IOFailure(f"Reading band '{name}' for tile {tile} failed: {exc}") from exc
        return block

    def _compute(self, task: TileTask, block: np.ndarray) -> np.ndarray:
        task.state = TileState.COMPUTING
        _, height, width = block.shape
        # one row per pixel, row-major
        series = np.ascontiguousarray(block.reshape(self.length, -1).T)
        result = np.full((len(self.ranks), series.shape[0]), np.nan, dtype=np.float64)

        gaps = np.isnan(series).any(axis=1)
        complete = ~gaps
        if complete.any():
            result[:, complete] = compute_block_thresholds(self.ranks, series[complete])

        for idx in np.flatnonzero(gaps):
            vector = series[idx]
            try:
                fill_gaps(vector, self.method, self.start_fallback, self.end_fallback)
            except InterpolationFailure:
                task.skipped_pixels += 1
                continue
            result[:, idx] = compute_thresholds(self.ranks, vector)

        if task.skipped_pixels:
            logger.warning("Tile %s: %d pixels without any valid sample marked no-data",
                           task.tile, task.skipped_pixels)
        return result.reshape(len(self.ranks), height, width).astype(np.float32)

    def _write(self, task: TileTask, thresholds: np.ndarray) -> None:
        tile = task.tile
        task.state = TileState.WRITING
        for name, plane in zip(self.output_band_names, thresholds):
            try:
                self.output.write_band_region(name, tile.x, tile.y, tile.width, tile.height, plane)
            except ContractViolation:
                raise
            except Exception as exc:
                raise IOFailure(f"Writing band '{name}' for tile {tile} failed: {exc}") from exc

    def process_tile(self, task: TileTask) -> TileTask:
        """Run one tile through load, compute and write."""
        block = self._load(task)
        thresholds = self._compute(task, block)
        del block
        self._write(task, thresholds)
        task.state = TileState.IDLE
        logger.debug("Tile %s done", task.tile)
        return task

    def run(self, tiles: Iterable[Tile]) -> TileRunSummary:
        """Process all tiles.

        Raises
        ------
        IOFailure
            First read or write failure; the run is aborted.
        """
        tasks: List[TileTask] = [TileTask(tile) for tile in tiles]
        logger.info("Tile loop: %d tiles, %d daily bands, ranks %s, %d workers",
                    len(tasks), self.length, self.ranks, self.workers)
        start = time.time()

        try:
            if self.workers == 1:
                for task in tasks:
                    self.process_tile(task)
            else:
                self._run_parallel(tasks)
        except Exception:
            self.state = TileState.FAILED
            logger.error("Tile loop aborted", exc_info=True)
            raise

        self.state = TileState.DONE
        summary = TileRunSummary(
            tiles=len(tasks),
            pixels=sum(t.tile.width * t.tile.height for t in tasks),
            skipped_pixels=sum(t.skipped_pixels for t in tasks),
            elapsed_seconds=time.time() - start,
        )
        logger.info("Tile loop done: %d tiles, %d pixels, %d no-data, %.2fs",
                    summary.tiles, summary.pixels, summary.skipped_pixels,
                    summary.elapsed_seconds)
        return summary

    def _run_parallel(self, tasks: List[TileTask]) -> None:
        executor = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="tile")
        futures = {executor.submit(self.process_tile, task): task for task in tasks}
        try:
            for future in as_completed(futures):
                future.result()
        except Exception:
            executor.shutdown(wait=True, cancel_futures=True)
            raise
        executor.shutdown(wait=True)
