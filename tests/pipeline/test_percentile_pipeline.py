import pytest
import numpy as np

from temporal_percentile.contracts import ConfigurationError, IOFailure
from temporal_percentile.pipeline.orchestrator import PercentilePipeline
from temporal_percentile.pipeline.tile_driver import TileDriver
from temporal_percentile.timeseries.aggregator import DailyAggregator
from tests.helpers.fake_rasters import make_raster

pytestmark = [pytest.mark.unit, pytest.mark.pipeline]

nan = np.nan

DAY3 = np.array([[0.5, 4.0, 9.0], [-3.0, 3.5, 12.0]])


def _four_rasters_three_days():
    return [
        make_raster("a.nc", "2014-01-01 08:00:00", 1.0),
        make_raster("b.nc", "2014-01-01 13:00:00", 3.0),
        make_raster("c.nc", "2014-01-02 10:00:00", np.array([[5.0, 5.0, 5.0], [nan, 5.0, 5.0]])),
        make_raster("d.nc", "2014-01-03 11:00:00", DAY3),
    ]


def _nearest_rank(series, rank):
    values = np.sort(series)
    n = len(values)
    return values[min(rank * n // 100, n - 1)]


@pytest.fixture
def memory_config(small_grid_config):
    def _make(**overrides):
        overrides.setdefault("timeseries", {"backend": "memory"})
        overrides.setdefault("output", {"backend": "memory"})
        return small_grid_config(**overrides)
    return _make


def test_four_rasters_three_days(memory_config, output_dirs):
    config = memory_config(percentiles=[50, 90], method="linear",
                           start_value_fallback=0.0, end_value_fallback=0.0)

    result = PercentilePipeline(config, output_dirs, configure_logging=False).run(_four_rasters_three_days())

    assert result.axis.length == 3
    assert result.band_names == ["chl_p50_threshold", "chl_p90_threshold"]
    ds = result.to_dataset()
    assert list(ds.data_vars) == ["chl_p50_threshold", "chl_p90_threshold"]

    for row in range(2):
        for col in range(3):
            day2 = 5.0 if (row, col) != (1, 0) else (2.0 + DAY3[row, col]) / 2
            series = np.array([2.0, day2, DAY3[row, col]])
            for rank in (50, 90):
                value = ds[f"chl_p{rank}_threshold"].values[row, col]
                assert value == pytest.approx(_nearest_rank(series, rank))
    result.close()


def test_single_day_fails_before_aggregation(memory_config, output_dirs, monkeypatch):
    def never(*args, **kwargs):
        raise AssertionError("aggregation must not start")

    monkeypatch.setattr(DailyAggregator, "aggregate", never)
    rasters = [
        make_raster("a.nc", "2014-01-01 08:00:00", 1.0),
        make_raster("b.nc", "2014-01-01 20:00:00", 2.0),
    ]
    pipeline = PercentilePipeline(memory_config(), output_dirs, configure_logging=False)

    with pytest.raises(ConfigurationError):
        pipeline.run(rasters)


def test_missing_interior_day_is_interpolated(memory_config, output_dirs):
    rasters = [
        make_raster("a.nc", "2014-01-01 00:00:00", 2.0),
        make_raster("c.nc", "2014-01-03 00:00:00", 6.0),
    ]
    config = memory_config(percentiles=[50])

    result = PercentilePipeline(config, output_dirs, configure_logging=False).run(rasters)

    # series [2, 4, 6]
    np.testing.assert_array_equal(result.to_dataset()["chl_p50_threshold"].values, 4.0)


def test_explicit_period_extends_axis(memory_config, output_dirs):
    rasters = [
        make_raster("a.nc", "2014-01-02 00:00:00", 2.0),
        make_raster("b.nc", "2014-01-03 00:00:00", 6.0),
        make_raster("late.nc", "2014-02-01 00:00:00", 100.0),
    ]
    config = memory_config(percentiles=[0, 100], start_date="2014-01-01 00:00:00",
                           end_date="2014-01-04 00:00:00",
                           start_value_fallback=-1.0, end_value_fallback=9.0)

    result = PercentilePipeline(config, output_dirs, configure_logging=False).run(rasters)

    assert result.axis.length == 4
    ds = result.to_dataset()
    # series [-1, 2, 6, 9]; the out-of-period raster is dropped
    np.testing.assert_array_equal(ds["chl_p0_threshold"].values, -1.0)
    np.testing.assert_array_equal(ds["chl_p100_threshold"].values, 9.0)


@pytest.mark.parametrize("backend", ["memory", "netcdf"])
def test_band_maths_prefix(small_grid_config, output_dirs, backend):
    rasters = [
        make_raster("a.nc", "2014-01-01 00:00:00", 0.0, B8=0.6, B4=0.2),
        make_raster("b.nc", "2014-01-02 00:00:00", 0.0, B8=0.8, B4=0.2),
    ]
    config = small_grid_config(band_maths_expression="(B8 - B4) / (B8 + B4)", percentiles=[100],
                               timeseries={"backend": backend}, output={"backend": backend})

    result = PercentilePipeline(config, output_dirs, configure_logging=False).run(rasters)

    assert result.band_names == ["B8_-_B4_B8_+_B4_p100_threshold"]
    np.testing.assert_allclose(result.to_dataset()[result.band_names[0]].values, 0.6)
    result.close()


def test_parallel_tiles_match_sequential(memory_config, output_dirs):
    results = []
    for workers in (1, 4):
        config = memory_config(percentiles=[10, 50, 90], method="quadratic", workers=workers)
        result = PercentilePipeline(config, output_dirs, configure_logging=False).run(_four_rasters_three_days())
        results.append(result.to_dataset())

    for name in results[0].data_vars:
        np.testing.assert_array_equal(results[0][name].values, results[1][name].values)


def test_netcdf_backends(small_grid_config, output_dirs):
    config = small_grid_config(percentiles=[50, 90], keep_intermediate=True)

    result = PercentilePipeline(config, output_dirs, configure_logging=False).run(_four_rasters_three_days())

    assert result.path.exists()
    assert result.timeseries_path.exists()
    assert result.timeseries_path.name == "2014_chl_daily_means.nc"
    assert result.aggregation["persisted"] == 3
    assert result.aggregation["sources"] == 4
    ds = result.to_dataset()
    assert ds.attrs["prefix"] == "chl"
    assert "a.nc" in ds.attrs["input_rasters"]
    assert ds["chl_p90_threshold"].attrs["percentile"] == 90
    result.close()


def test_intermediate_removed_when_not_kept(small_grid_config, output_dirs):
    config = small_grid_config(keep_intermediate=False)

    result = PercentilePipeline(config, output_dirs, configure_logging=False).run(_four_rasters_three_days())

    assert result.timeseries_path is None
    assert not (output_dirs["timeseries"] / "2014_chl_daily_means.nc").exists()
    result.close()


def test_intermediate_removed_when_tile_loop_fails(small_grid_config, output_dirs, monkeypatch):
    def broken_run(self, tiles):
        raise IOFailure("tile read failed")

    monkeypatch.setattr(TileDriver, "run", broken_run)
    config = small_grid_config(keep_intermediate=False)

    with pytest.raises(IOFailure, match="tile read failed"):
        PercentilePipeline(config, output_dirs, configure_logging=False).run(_four_rasters_three_days())

    assert not (output_dirs["timeseries"] / "2014_chl_daily_means.nc").exists()


def test_intermediate_kept_when_tile_loop_fails(small_grid_config, output_dirs, monkeypatch):
    def broken_run(self, tiles):
        raise IOFailure("tile read failed")

    monkeypatch.setattr(TileDriver, "run", broken_run)
    config = small_grid_config(keep_intermediate=True)

    with pytest.raises(IOFailure):
        PercentilePipeline(config, output_dirs, configure_logging=False).run(_four_rasters_three_days())

    assert (output_dirs["timeseries"] / "2014_chl_daily_means.nc").exists()


def test_collocation_failure_aborts(memory_config, output_dirs):
    class Broken:
        def collocate(self, band, grid, resampling):
            raise RuntimeError("no overlap")

    pipeline = PercentilePipeline(memory_config(), output_dirs, collocator=Broken(), configure_logging=False)

    with pytest.raises(IOFailure, match="no overlap"):
        pipeline.run(_four_rasters_three_days())


def test_logging_setup_writes_file(memory_config, output_dirs):
    import logging

    root = logging.getLogger()
    saved = root.handlers[:]
    saved_level = root.level
    try:
        PercentilePipeline(memory_config(), output_dirs, configure_logging=True)
        assert (output_dirs["logs"] / "percentile_chl.log").exists()
    finally:
        for handler in root.handlers[:]:
            root.removeHandler(handler)
            handler.close()
        for handler in saved:
            root.addHandler(handler)
        root.setLevel(saved_level)
