import pytest
import numpy as np

from temporal_percentile.contracts import ContractViolation, assert_readable_store
from temporal_percentile.core.store import (
    MemoryWriteHandle,
    NetCDFReadHandle,
    NetCDFWriteHandle,
    open_store,
)
from tests.helpers.fake_rasters import make_grid

pytestmark = pytest.mark.unit


@pytest.fixture
def grid():
    return make_grid()


@pytest.fixture(params=["memory", "netcdf"])
def store(request, grid, temp_dir):
    handle = open_store(request.param, grid, path=temp_dir / "store.nc",
                        attrs={"prefix": "chl", "percentiles": [50, 90],
                               "input_rasters": ["a.nc", "b.nc"], "source_band": None},
                        chunk_size=(2, 1))
    yield handle
    handle.close()


def test_new_band_is_nodata(store):
    store.create_band("chl_a")
    reader = store.finalize()

    assert np.isnan(reader.read_band_region("chl_a", 0, 0, 3, 2)).all()
    reader.close()


def test_region_round_trip_is_lossless(store):
    block = np.array([[1.1, -2.5], [np.pi, 1e-7]], dtype=np.float32)
    store.create_band("chl_a")
    store.write_band_region("chl_a", 1, 0, 2, 2, block)
    reader = store.finalize()

    np.testing.assert_array_equal(reader.read_band_region("chl_a", 1, 0, 2, 2), block)
    assert np.isnan(reader.read_band_region("chl_a", 0, 0, 1, 2)).all()
    reader.close()


def test_finalize_hands_over_read_only_store(store):
    store.create_band("chl_a")
    store.create_band("chl_b")

    reader = store.finalize()

    assert store.closed
    assert reader.read_only
    assert reader.band_names == ["chl_a", "chl_b"]
    assert_readable_store(reader, ["chl_a", "chl_b"])
    reader.close()


def test_write_after_close_rejected(store):
    store.create_band("chl_a")
    store.close()

    with pytest.raises(ContractViolation):
        store.write_band_region("chl_a", 0, 0, 3, 2, np.zeros((2, 3), dtype=np.float32))


def test_reopen_before_close_rejected(store):
    with pytest.raises(ContractViolation):
        store.reopen_read_only()


def test_block_shape_mismatch_rejected(store):
    store.create_band("chl_a")
    with pytest.raises(ContractViolation):
        store.write_band_region("chl_a", 0, 0, 3, 2, np.zeros((3, 2), dtype=np.float32))


def test_region_outside_grid_rejected(store):
    store.create_band("chl_a")
    with pytest.raises(ContractViolation):
        store.write_band_region("chl_a", 2, 0, 2, 2, np.zeros((2, 2), dtype=np.float32))


def test_unknown_band_rejected(store):
    with pytest.raises(ContractViolation):
        store.write_band_region("nope", 0, 0, 3, 2, np.zeros((2, 3), dtype=np.float32))


def test_to_dataset(store, grid):
    store.create_band("chl_a")
    store.write_band_region("chl_a", 0, 0, 3, 2, np.ones((2, 3), dtype=np.float32))
    reader = store.finalize()

    ds = reader.to_dataset()

    assert list(ds.data_vars) == ["chl_a"]
    np.testing.assert_allclose(ds["x"].values, grid.x)
    np.testing.assert_allclose(ds["y"].values, grid.y)
    assert ds.attrs["prefix"] == "chl"
    assert ds.attrs["crs"] == "EPSG:4326"
    reader.close()


def test_netcdf_file_is_reopenable(grid, temp_dir):
    path = temp_dir / "sub" / "daily.nc"
    writer = NetCDFWriteHandle(path, grid, attrs={"percentiles": [90], "keep": True})
    writer.create_band("chl_a")
    writer.write_band_region("chl_a", 0, 0, 3, 2, np.full((2, 3), 4.0, dtype=np.float32))
    writer.close()

    with NetCDFReadHandle(path) as reader:
        assert reader.band_names == ["chl_a"]
        assert list(reader.attrs["percentiles"]) == [90]
        assert reader.attrs["keep"] == 1
        np.testing.assert_array_equal(reader.read_band_region("chl_a", 0, 0, 3, 2), 4.0)


def test_memory_reader_is_not_writable(grid):
    writer = MemoryWriteHandle(grid)
    writer.create_band("chl_a")
    reader = writer.finalize()

    block = reader.read_band_region("chl_a", 0, 0, 3, 2)
    block[:] = 1.0

    assert np.isnan(reader.read_band_region("chl_a", 0, 0, 3, 2)).all()


def test_unknown_backend_raises(grid):
    with pytest.raises(ValueError):
        open_store("zarr", grid)


def test_netcdf_needs_path(grid):
    with pytest.raises(ContractViolation):
        open_store("netcdf", grid)
