"""Store hand-off contract.

Enforces the guarantee that the time-series store handed to the tile loop
is read-only and carries every daily band.
"""

from typing import TYPE_CHECKING, Iterable

from temporal_percentile.contracts.base import require

if TYPE_CHECKING:
    from temporal_percentile.core.store import ReadHandle


def assert_readable_store(handle: "ReadHandle", band_names: Iterable[str]) -> None:
    """Enforce store hand-off contract.

    Called after the write handle has been finalized and reopened read-only.

    Raises
    ------
    ContractViolation
        If the handle is writable or a daily band is missing.
    """
    require(
        handle.read_only,
        "Store contract violated: tile loop received a writable store"
    )
    available = set(handle.band_names)
    for name in band_names:
        require(
            name in available,
            f"Store contract violated: missing daily band '{name}'"
        )
