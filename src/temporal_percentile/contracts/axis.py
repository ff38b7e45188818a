"""Axis stage contract.

Enforces the guarantee that the time-series axis is dense and that every
day-band offset maps into it.
"""

from typing import TYPE_CHECKING, Mapping

from temporal_percentile.contracts.base import require

if TYPE_CHECKING:
    from temporal_percentile.timeseries.axis import TimeSeriesAxis


def assert_axis(axis: "TimeSeriesAxis", band_offsets: Mapping[str, int]) -> None:
    """Enforce axis contract.

    Called after the daily band layout is derived from the axis, before
    any band is written.

    Parameters
    ----------
    axis : TimeSeriesAxis
        Axis built by ``build_axis``.
    band_offsets : mapping of str to int
        Daily band name to axis offset.

    Raises
    ------
    ContractViolation
        If any invariant is violated
    """
    require(
        axis.length == axis.end_day - axis.start_day + 1,
        f"Axis contract violated: length {axis.length} does not span "
        f"[{axis.start_day}, {axis.end_day}]"
    )
    require(
        axis.length >= 2,
        f"Axis contract violated: length {axis.length}, expected >= 2"
    )
    require(
        len(band_offsets) == axis.length,
        f"Axis contract violated: {len(band_offsets)} daily bands for "
        f"{axis.length} axis slots"
    )
    require(
        sorted(band_offsets.values()) == list(range(axis.length)),
        "Axis contract violated: daily band offsets are not a dense 0..length-1 range"
    )
