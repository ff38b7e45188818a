import pytest
import numpy as np

from temporal_percentile.core.store import MemoryWriteHandle
from temporal_percentile.pipeline.tracker import AggregationTracker
from temporal_percentile.timeseries.axis import TimeSeriesAxis
from tests.helpers.fake_rasters import make_grid


@pytest.fixture
def tracker(temp_dir):
    db_path = temp_dir / "tracker.db"
    t = AggregationTracker(db_path)
    yield t
    t.close()


@pytest.fixture
def grid():
    return make_grid()


@pytest.fixture
def make_daily_store(grid):
    """Factory for a finalized in-memory store from per-day (2, 3) arrays.

    ``None`` entries leave the day's band all-NaN. Returns the read handle
    and the band name -> offset mapping.
    """
    def _make(days, prefix="chl", start_day=56658):
        axis = TimeSeriesAxis(start_day, start_day + len(days) - 1)
        offsets = axis.band_offsets(prefix)
        writer = MemoryWriteHandle(grid)
        for (name, offset), values in zip(offsets.items(), days):
            writer.create_band(name)
            if values is not None:
                block = np.broadcast_to(np.asarray(values, dtype=np.float32), grid.shape).copy()
                writer.write_band_region(name, 0, 0, grid.width, grid.height, block)
        return writer.finalize(), offsets

    return _make


@pytest.fixture
def make_output(grid):
    """Factory for an output store with one band per rank."""
    def _make(ranks, prefix="chl"):
        writer = MemoryWriteHandle(grid)
        names = [f"{prefix}_p{rank}_threshold" for rank in ranks]
        for name in names:
            writer.create_band(name)
        return writer, names

    return _make
