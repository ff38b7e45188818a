"""Target grid shared by the time-series store and the output product."""

import math
from dataclasses import dataclass
from typing import Iterator, NamedTuple, Tuple

import numpy as np

from temporal_percentile.contracts.failure import ConfigurationError

__all__ = ['Tile', 'TargetGrid']


class Tile(NamedTuple):
    """Pixel rectangle of the target grid."""
    x: int
    y: int
    width: int
    height: int


@dataclass(frozen=True, eq=False)
class TargetGrid:
    """Regular grid in the target CRS.

    Coordinates are pixel centres. ``y`` runs north to south so that row 0
    is the northern edge, as in the output rasters.
    """
    crs: str
    x: np.ndarray
    y: np.ndarray
    pixel_size_x: float
    pixel_size_y: float

    @property
    def width(self) -> int:
        return int(self.x.size)

    @property
    def height(self) -> int:
        return int(self.y.size)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.height, self.width

    @classmethod
    def from_bounds(cls, west: float, north: float, east: float, south: float,
                    pixel_size_x: float, pixel_size_y: float,
                    crs: str = "EPSG:4326") -> "TargetGrid":
        """Build a grid covering ``[west, east] x [south, north]``.

        Raises
        ------
        ConfigurationError
            If the bounds are degenerate or yield an empty grid.
        """
        if west == east:
            raise ConfigurationError("West and east bound must differ")
        if north <= south:
            raise ConfigurationError("North bound must be greater than south bound")
        if pixel_size_x <= 0 or pixel_size_y <= 0:
            raise ConfigurationError("Pixel sizes must be positive")

        # small epsilon so that e.g. 45 / 0.05 is not floored to 899
        width = math.floor(abs(east - west) / pixel_size_x + 1e-9)
        height = math.floor((north - south) / pixel_size_y + 1e-9)
        if width < 1 or height < 1:
            raise ConfigurationError(
                f"Bounds yield an empty grid ({width} x {height} pixels)"
            )

        step_x = pixel_size_x if east > west else -pixel_size_x
        x = west + (np.arange(width) + 0.5) * step_x
        y = north - (np.arange(height) + 0.5) * pixel_size_y
        return cls(crs=crs, x=x, y=y, pixel_size_x=pixel_size_x, pixel_size_y=pixel_size_y)

    @classmethod
    def from_config(cls, grid_config) -> "TargetGrid":
        return cls.from_bounds(
            west=grid_config.west_bound,
            north=grid_config.north_bound,
            east=grid_config.east_bound,
            south=grid_config.south_bound,
            pixel_size_x=grid_config.pixel_size_x,
            pixel_size_y=grid_config.pixel_size_y,
            crs=grid_config.crs,
        )

    def tiles(self, tile_width: int, tile_height: int) -> Iterator[Tile]:
        """Row-major tiles; edge tiles are clipped to the grid."""
        for y0 in range(0, self.height, tile_height):
            for x0 in range(0, self.width, tile_width):
                yield Tile(x0, y0,
                           min(tile_width, self.width - x0),
                           min(tile_height, self.height - y0))

    def attrs(self) -> dict:
        return {
            "crs": self.crs,
            "pixel_size_x": float(self.pixel_size_x),
            "pixel_size_y": float(self.pixel_size_y),
            "width": self.width,
            "height": self.height,
        }
