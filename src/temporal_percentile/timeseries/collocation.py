"""Collocation of input bands onto the target grid.

The resampling method is configuration passed through untouched; the
default collocator maps it onto xarray's interpolation methods.
"""

from typing import Protocol

import numpy as np
import xarray as xr

from temporal_percentile.core.grid import TargetGrid

__all__ = ['Collocator', 'XarrayCollocator', 'RESAMPLING_METHODS']

RESAMPLING_METHODS = {
    "Nearest": "nearest",
    "Bilinear": "linear",
    "Bicubic": "cubic",
}

_COORD_ALIASES = {"lon": "x", "longitude": "x", "lat": "y", "latitude": "y"}


class Collocator(Protocol):
    """Resamples a band onto a target grid."""

    def collocate(self, band: xr.DataArray, grid: TargetGrid, resampling: str) -> np.ndarray:
        """Return a ``(height, width)`` float array on ``grid``, NaN outside the band."""
        ...


class XarrayCollocator:
    """Interpolate bands already in the target CRS onto the grid's pixel centres."""

    def collocate(self, band: xr.DataArray, grid: TargetGrid, resampling: str) -> np.ndarray:
        method = RESAMPLING_METHODS.get(resampling, resampling)
        rename = {name: alias for name, alias in _COORD_ALIASES.items() if name in band.dims}
        if rename:
            band = band.rename(rename)
        band = band.sortby("x").sortby("y")
        resampled = band.interp(x=grid.x, y=grid.y, method=method)
        return resampled.transpose("y", "x").values
