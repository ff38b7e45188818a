"""Nearest-rank percentile selection.

For ``n`` samples and rank ``p`` the selected sample is
``sorted(values)[clamp(floor(p / 100 * n), 0, n - 1)]``. No interpolation
between neighbouring samples is done; ``p=100`` yields the maximum.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence

import numpy as np

from temporal_percentile.contracts.base import require
from temporal_percentile.timeseries.naming import percentile_band_name

__all__ = ['rank_index', 'compute_thresholds', 'compute_block_thresholds', 'PercentileRequest']


def rank_index(rank: int, length: int) -> int:
    """Index of the nearest-rank sample for ``rank`` in a sorted vector."""
    # Exact floor(rank * length / 100) in integers.
    idx = int(rank) * length // 100
    return min(max(idx, 0), length - 1)


def compute_thresholds(ranks: Sequence[int], values: np.ndarray) -> np.ndarray:
    """Return one threshold per rank.

    ``values`` is sorted in place; callers must not rely on its order
    afterwards. Duplicate ranks are looked up independently.

    Parameters
    ----------
    ranks : sequence of int
        Percentile ranks in [0, 100], any order.
    values : np.ndarray
        Completed (gap-filled) pixel time vector.

    Returns
    -------
    np.ndarray
        ``float64`` array of length ``len(ranks)``.
    """
    n = len(values)
    if n == 0:
        raise ValueError("Cannot compute percentiles of an empty vector")
    values.sort()
    thresholds = np.empty(len(ranks), dtype=np.float64)
    for i, rank in enumerate(ranks):
        thresholds[i] = values[rank_index(rank, n)]
    return thresholds


def compute_block_thresholds(ranks: Sequence[int], block: np.ndarray) -> np.ndarray:
    """Vectorized ``compute_thresholds`` along the last axis of ``block``.

    ``block`` has shape ``(..., n)`` and is sorted in place. The result has
    shape ``(len(ranks), ...)``.
    """
    n = block.shape[-1]
    if n == 0:
        raise ValueError("Cannot compute percentiles of an empty vector")
    block.sort(axis=-1)
    return np.stack([block[..., rank_index(rank, n)] for rank in ranks])


@dataclass(frozen=True)
class PercentileRequest:
    """Requested ranks bound to output band names.

    Ranks are kept as given. Each distinct rank owns exactly one output
    band, named from ``prefix`` and the rank.
    """
    prefix: str
    ranks: List[int] = field(default_factory=list)

    def __post_init__(self):
        require(len(self.ranks) > 0, "At least one percentile rank is required")
        for rank in self.ranks:
            require(0 <= rank <= 100, f"Percentile rank {rank} outside [0, 100]")

    @property
    def band_names(self) -> List[str]:
        """Output band names, one per distinct rank, first-seen order."""
        return list(self.band_ranks)

    @property
    def band_ranks(self) -> Dict[str, int]:
        names = {}
        for rank in self.ranks:
            names.setdefault(percentile_band_name(self.prefix, rank), rank)
        return names
