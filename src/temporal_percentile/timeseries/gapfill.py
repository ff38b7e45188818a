"""Per-pixel gap filling of daily time vectors.

A pixel time vector holds one value per axis slot, NaN where no daily mean
exists. ``fill_gaps`` replaces every NaN in place:

- a missing first slot takes ``start_fallback``, a missing last slot takes
  ``end_fallback``;
- interior runs are interpolated from the surrounding known samples with
  the configured method (``linear``, ``quadratic`` or ``spline``).

The functions here only touch the caller's buffer, so they are safe to call
from concurrent tile workers.
"""

from typing import Tuple

import numpy as np
from scipy.interpolate import CubicSpline

from temporal_percentile.contracts.failure import InterpolationFailure

__all__ = ['GAP_FILL_METHODS', 'fill_gaps', 'missing_runs']

GAP_FILL_METHODS = ('linear', 'quadratic', 'spline')


def missing_runs(missing: np.ndarray):
    """Yield ``(first, last)`` inclusive index pairs of consecutive True runs."""
    padded = np.concatenate(([False], missing, [False])).astype(np.int8)
    edges = np.diff(padded)
    starts = np.flatnonzero(edges == 1)
    stops = np.flatnonzero(edges == -1) - 1
    return zip(starts.tolist(), stops.tolist())


def _quadratic_support(known: np.ndarray, left: int, right: int) -> Tuple[int, int, int]:
    """Three known offsets around the run bounded by ``left`` and ``right``.

    The third point is the next known sample on the side closer to the run,
    left on a tie. Returns an empty tuple when only the bounding pair exists.
    """
    li = int(np.searchsorted(known, left))
    ri = li + 1
    has_left = li - 1 >= 0
    has_right = ri + 1 < known.size
    if not has_left and not has_right:
        return ()
    if has_left and has_right:
        use_left = (left - known[li - 1]) <= (known[ri + 1] - right)
    else:
        use_left = has_left
    if use_left:
        return int(known[li - 1]), left, right
    return left, right, int(known[ri + 1])


def _fill_quadratic(vector: np.ndarray, known: np.ndarray, missing: np.ndarray) -> None:
    for first, last in missing_runs(missing):
        left, right = first - 1, last + 1
        support = _quadratic_support(known, left, right)
        offsets = np.arange(first, last + 1)
        if not support:
            vector[first:last + 1] = np.interp(offsets, [left, right], vector[[left, right]])
            continue
        xs = np.asarray(support, dtype=float)
        coeffs = np.polyfit(xs, vector[list(support)], 2)
        vector[first:last + 1] = np.polyval(coeffs, offsets)


def fill_gaps(
    vector: np.ndarray,
    method: str = 'linear',
    start_fallback: float = 0.0,
    end_fallback: float = 0.0,
) -> np.ndarray:
    """Fill missing samples of a pixel time vector in place.

    Parameters
    ----------
    vector : np.ndarray
        1-D float array, one slot per axis day, NaN where missing.
        Mutated in place.
    method : {'linear', 'quadratic', 'spline'}
        Interpolation used for interior runs.
    start_fallback, end_fallback : float
        Values for a missing first/last slot.

    Returns
    -------
    np.ndarray
        The same array, for chaining.

    Raises
    ------
    ValueError
        If ``method`` is unknown.
    InterpolationFailure
        If no known sample remains after fallback substitution.

    Notes
    -----
    Leading or trailing runs can only survive when a fallback is NaN; they
    take the nearest known value. A single known sample fills the vector.
    """
    if method not in GAP_FILL_METHODS:
        raise ValueError(f"Unknown gap filling method '{method}', expected one of {GAP_FILL_METHODS}")
    if vector.size == 0:
        return vector

    if np.isnan(vector[0]):
        vector[0] = start_fallback
    if np.isnan(vector[-1]):
        vector[-1] = end_fallback

    missing = np.isnan(vector)
    if not missing.any():
        return vector

    known = np.flatnonzero(~missing)
    if known.size == 0:
        raise InterpolationFailure("Time vector has no valid sample")
    if known.size == 1:
        vector[missing] = vector[known[0]]
        return vector

    vector[:known[0]] = vector[known[0]]
    vector[known[-1] + 1:] = vector[known[-1]]

    missing = np.isnan(vector)
    if not missing.any():
        return vector
    gaps = np.flatnonzero(missing)

    if method == 'linear' or known.size == 2:
        vector[gaps] = np.interp(gaps, known, vector[known])
    elif method == 'quadratic':
        _fill_quadratic(vector, known, missing)
    else:
        spline = CubicSpline(known, vector[known])
        vector[gaps] = spline(gaps)
    return vector
