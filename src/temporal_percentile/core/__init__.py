"""Target grid and tiled band stores."""

from temporal_percentile.core.grid import Tile, TargetGrid
from temporal_percentile.core.store import ReadHandle, WriteHandle, open_store

__all__ = ['Tile', 'TargetGrid', 'ReadHandle', 'WriteHandle', 'open_store']
