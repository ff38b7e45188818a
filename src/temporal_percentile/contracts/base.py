"""Base contract enforcement utilities.

The require() function is the single enforcement mechanism for all contracts.
"""

from temporal_percentile.contracts.failure import ContractViolation


def require(condition: bool, message: str) -> None:
    """Enforce a pipeline contract.

    Called at stage boundaries to verify the preceding stage produced the
    guaranteed invariants. Fail-fast: no recovery, no fallback.

    Parameters
    ----------
    condition : bool
        The invariant that must be true.
    message : str
        Error message explaining the violation.

    Raises
    ------
    ContractViolation
        If condition is False.

    Examples
    --------
    >>> require(axis.length >= 2, "Axis contract: at least two days expected")
    """
    if not condition:
        raise ContractViolation(message)
