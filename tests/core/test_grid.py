import pytest
import numpy as np

from temporal_percentile.contracts import ConfigurationError
from temporal_percentile.core.grid import TargetGrid, Tile

pytestmark = pytest.mark.unit


def test_default_config_grid(internal_config):
    grid = TargetGrid.from_config(internal_config.grid)

    # (30 - -15) / 0.05 by (75 - 35) / 0.05
    assert grid.width == 900
    assert grid.height == 800
    assert grid.crs == "EPSG:4326"


def test_pixel_centres():
    grid = TargetGrid.from_bounds(west=0, north=2, east=3, south=0, pixel_size_x=1, pixel_size_y=1)

    np.testing.assert_allclose(grid.x, [0.5, 1.5, 2.5])
    np.testing.assert_allclose(grid.y, [1.5, 0.5])
    assert grid.shape == (2, 3)


def test_partial_pixel_is_dropped():
    grid = TargetGrid.from_bounds(west=0, north=1, east=2.5, south=0, pixel_size_x=1, pixel_size_y=1)
    assert grid.width == 2


@pytest.mark.parametrize("bounds", [
    dict(west=5, north=2, east=5, south=0),
    dict(west=0, north=0, east=3, south=0),
    dict(west=0, north=0, east=3, south=2),
])
def test_malformed_bounds_raise(bounds):
    with pytest.raises(ConfigurationError):
        TargetGrid.from_bounds(pixel_size_x=1, pixel_size_y=1, **bounds)


def test_tiles_cover_grid_row_major():
    grid = TargetGrid.from_bounds(west=0, north=3, east=5, south=0, pixel_size_x=1, pixel_size_y=1)

    tiles = list(grid.tiles(2, 2))

    assert tiles == [
        Tile(0, 0, 2, 2), Tile(2, 0, 2, 2), Tile(4, 0, 1, 2),
        Tile(0, 2, 2, 1), Tile(2, 2, 2, 1), Tile(4, 2, 1, 1),
    ]
    assert sum(t.width * t.height for t in tiles) == grid.width * grid.height


def test_tile_larger_than_grid():
    grid = TargetGrid.from_bounds(west=0, north=2, east=3, south=0, pixel_size_x=1, pixel_size_y=1)
    assert list(grid.tiles(256, 256)) == [Tile(0, 0, 3, 2)]
