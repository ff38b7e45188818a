"""Tiled band store.

The store carries the daily mean bands between aggregation and the tile
loop, and the percentile bands of the final product. Writing and reading
are separate types: a ``WriteHandle`` is closed and turned into a
``ReadHandle`` by ``finalize()``, so a reader never sees a store that is
still open for writing.

Two backends are provided:

- ``netcdf``: one NetCDF4 file, dims ``(y, x)``, one float32 variable per
  band, NaN as the no-data value, chunked by tile.
- ``memory``: numpy arrays, for small grids and tests.
"""

import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import netCDF4
import numpy as np
import xarray as xr

from temporal_percentile.contracts.base import require
from temporal_percentile.core.grid import TargetGrid

__all__ = [
    'ReadHandle', 'WriteHandle',
    'NetCDFReadHandle', 'NetCDFWriteHandle',
    'MemoryReadHandle', 'MemoryWriteHandle',
    'open_store',
]

logger = logging.getLogger(__name__)

NODATA = np.float32(np.nan)

# The HDF5 library underneath netCDF4 is not thread-safe; all NetCDF access
# in this process goes through one lock.
_NETCDF_LOCK = threading.RLock()


def _netcdf_attr(value):
    """Coerce a metadata value to something NetCDF can store."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (list, tuple)):
        if not value:
            return ""
        if all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in value):
            return np.asarray(value)
        return ", ".join(str(v) for v in value)
    if isinstance(value, (int, float, str, np.number)):
        return value
    return str(value)


class ReadHandle(ABC):
    """Read-only view of a band store."""

    read_only = True

    @property
    @abstractmethod
    def band_names(self) -> List[str]:
        ...

    @property
    @abstractmethod
    def attrs(self) -> dict:
        ...

    @property
    @abstractmethod
    def coords(self) -> Tuple[np.ndarray, np.ndarray]:
        """``(x, y)`` pixel centre coordinates."""

    @abstractmethod
    def read_band_region(self, name: str, x: int, y: int, width: int, height: int) -> np.ndarray:
        """Return a ``(height, width)`` float32 block of band ``name``."""

    @abstractmethod
    def close(self) -> None:
        ...

    def to_dataset(self, band_names: Optional[Iterable[str]] = None) -> xr.Dataset:
        """Load whole bands into an ``xarray.Dataset`` on ``(y, x)``."""
        x, y = self.coords
        names = list(band_names) if band_names is not None else self.band_names
        data_vars = {
            name: (("y", "x"), self.read_band_region(name, 0, 0, x.size, y.size))
            for name in names
        }
        return xr.Dataset(data_vars, coords={"x": x, "y": y}, attrs=dict(self.attrs))

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class WriteHandle(ABC):
    """Writable band store. Convert to a reader with ``finalize()``."""

    read_only = False

    def __init__(self, grid: TargetGrid, attrs: Optional[dict] = None):
        self.grid = grid
        self.attrs = dict(attrs or {})
        self.closed = False

    @property
    @abstractmethod
    def band_names(self) -> List[str]:
        ...

    @abstractmethod
    def create_band(self, name: str) -> None:
        """Add a band filled with no-data."""

    @abstractmethod
    def write_band_region(self, name: str, x: int, y: int, width: int, height: int,
                          data: np.ndarray) -> None:
        """Store a ``(height, width)`` block at pixel offset ``(x, y)``."""

    @abstractmethod
    def close(self) -> None:
        """Flush and close for writing."""

    @abstractmethod
    def reopen_read_only(self) -> ReadHandle:
        """Open the closed store for reading."""

    def finalize(self) -> ReadHandle:
        """Close for writing and reopen read-only."""
        if not self.closed:
            self.close()
        return self.reopen_read_only()

    def _check_region(self, name: str, x: int, y: int, width: int, height: int,
                      data: np.ndarray) -> None:
        require(not self.closed, f"Cannot write band '{name}': store is closed")
        require(name in self.band_names, f"Unknown band '{name}'")
        require(data.shape == (height, width),
                f"Block shape {data.shape} does not match region {(height, width)}")
        require(0 <= x and x + width <= self.grid.width and 0 <= y and y + height <= self.grid.height,
                f"Region ({x}, {y}, {width}, {height}) outside grid {self.grid.shape}")


# =============================================================================
# NetCDF backend
# =============================================================================

class NetCDFWriteHandle(WriteHandle):
    """Band store backed by a NetCDF4 file."""

    def __init__(self, path, grid: TargetGrid, attrs: Optional[dict] = None,
                 compression: bool = True, chunk_size: Tuple[int, int] = (256, 256)):
        super().__init__(grid, attrs)
        self.path = Path(path)
        self.compression = compression
        self.chunk_size = (min(chunk_size[1], grid.height), min(chunk_size[0], grid.width))
        self.path.parent.mkdir(parents=True, exist_ok=True)

        with _NETCDF_LOCK:
            self._ds = netCDF4.Dataset(str(self.path), mode="w", format="NETCDF4")
            self._ds.createDimension("y", grid.height)
            self._ds.createDimension("x", grid.width)
            xvar = self._ds.createVariable("x", "f8", ("x",))
            yvar = self._ds.createVariable("y", "f8", ("y",))
            xvar[:] = grid.x
            yvar[:] = grid.y
            self._ds.setncatts({k: _netcdf_attr(v) for k, v in self.attrs.items() if v is not None})
            self._ds.setncatts({k: _netcdf_attr(v) for k, v in grid.attrs().items()})
        self._bands: List[str] = []
        logger.debug("Opened NetCDF store for writing: %s", self.path)

    @property
    def band_names(self) -> List[str]:
        return list(self._bands)

    def create_band(self, name: str) -> None:
        require(not self.closed, f"Cannot create band '{name}': store is closed")
        with _NETCDF_LOCK:
            var = self._ds.createVariable(
                name, "f4", ("y", "x"),
                zlib=self.compression,
                chunksizes=self.chunk_size,
                fill_value=NODATA,
            )
            var.set_auto_mask(False)
        self._bands.append(name)

    def write_band_region(self, name, x, y, width, height, data):
        self._check_region(name, x, y, width, height, data)
        with _NETCDF_LOCK:
            self._ds.variables[name][y:y + height, x:x + width] = data.astype(np.float32)

    def close(self) -> None:
        if self.closed:
            return
        with _NETCDF_LOCK:
            self._ds.close()
        self.closed = True
        logger.debug("Closed NetCDF store: %s (%d bands)", self.path, len(self._bands))

    def reopen_read_only(self) -> "NetCDFReadHandle":
        require(self.closed, "Store must be closed for writing before it is reopened")
        return NetCDFReadHandle(self.path)


class NetCDFReadHandle(ReadHandle):
    """Read-only NetCDF4 band store."""

    def __init__(self, path):
        self.path = Path(path)
        with _NETCDF_LOCK:
            self._ds = netCDF4.Dataset(str(self.path), mode="r")
            self._ds.set_auto_mask(False)
            self._attrs = {k: self._ds.getncattr(k) for k in self._ds.ncattrs()}
            self._x = np.asarray(self._ds.variables["x"][:])
            self._y = np.asarray(self._ds.variables["y"][:])
            self._bands = [
                name for name, var in self._ds.variables.items()
                if var.dimensions == ("y", "x")
            ]
        self.closed = False

    @property
    def band_names(self) -> List[str]:
        return list(self._bands)

    @property
    def attrs(self) -> dict:
        return self._attrs

    @property
    def coords(self):
        return self._x, self._y

    def read_band_region(self, name, x, y, width, height):
        with _NETCDF_LOCK:
            block = self._ds.variables[name][y:y + height, x:x + width]
        return np.asarray(block, dtype=np.float32)

    def close(self) -> None:
        if self.closed:
            return
        with _NETCDF_LOCK:
            self._ds.close()
        self.closed = True


# =============================================================================
# In-memory backend
# =============================================================================

class MemoryWriteHandle(WriteHandle):
    """Band store held in numpy arrays."""

    def __init__(self, grid: TargetGrid, attrs: Optional[dict] = None):
        super().__init__(grid, attrs)
        self._data: Dict[str, np.ndarray] = {}

    @property
    def band_names(self) -> List[str]:
        return list(self._data)

    def create_band(self, name: str) -> None:
        require(not self.closed, f"Cannot create band '{name}': store is closed")
        self._data[name] = np.full(self.grid.shape, NODATA, dtype=np.float32)

    def write_band_region(self, name, x, y, width, height, data):
        self._check_region(name, x, y, width, height, data)
        self._data[name][y:y + height, x:x + width] = data

    def close(self) -> None:
        self.closed = True

    def reopen_read_only(self) -> "MemoryReadHandle":
        require(self.closed, "Store must be closed for writing before it is reopened")
        attrs = dict(self.attrs)
        attrs.update(self.grid.attrs())
        return MemoryReadHandle(self._data, self.grid, attrs)


class MemoryReadHandle(ReadHandle):
    """Read-only view over in-memory bands."""

    def __init__(self, data: Dict[str, np.ndarray], grid: TargetGrid, attrs: dict):
        for array in data.values():
            array.setflags(write=False)
        self._data = data
        self._grid = grid
        self._attrs = attrs

    @property
    def band_names(self) -> List[str]:
        return list(self._data)

    @property
    def attrs(self) -> dict:
        return self._attrs

    @property
    def coords(self):
        return self._grid.x, self._grid.y

    def read_band_region(self, name, x, y, width, height):
        return self._data[name][y:y + height, x:x + width].copy()

    def close(self) -> None:
        pass


def open_store(backend: str, grid: TargetGrid, path=None, attrs: Optional[dict] = None,
               compression: bool = True, chunk_size: Tuple[int, int] = (256, 256)) -> WriteHandle:
    """Create an empty band store for writing.

    Parameters
    ----------
    backend : {'netcdf', 'memory'}
    grid : TargetGrid
    path : str or Path, optional
        File path; required for ``netcdf``.
    attrs : dict, optional
        Global metadata.
    compression : bool
        zlib compression of NetCDF variables.
    chunk_size : tuple of int
        ``(width, height)`` of NetCDF chunks, normally the tile size.
    """
    if backend == "netcdf":
        require(path is not None, "NetCDF store needs a path")
        return NetCDFWriteHandle(path, grid, attrs, compression=compression, chunk_size=chunk_size)
    if backend == "memory":
        return MemoryWriteHandle(grid, attrs)
    raise ValueError(f"Unknown store backend '{backend}'")
