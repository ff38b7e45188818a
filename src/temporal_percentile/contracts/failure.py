"""Centralized failure taxonomy.

Contracts fail fast, loud, and once. Run-level errors are split by the
stage that can raise them so callers can tell a bad configuration from a
storage failure from a pipeline bug.
"""


class ContractViolation(RuntimeError):
    """Raised when a pipeline contract is violated.

    This indicates a bug in pipeline logic, not bad user input. A stage did
    not produce the invariants it promised.
    """
    pass


class PercentileError(RuntimeError):
    """Base class for errors raised by the percentile pipeline."""
    pass


class ConfigurationError(PercentileError, ValueError):
    """Invalid configuration or unusable input set.

    Raised at initialization (fewer than two acquisition days, end date
    before start date, malformed bounds). No computation is attempted.
    """
    pass


class IOFailure(PercentileError):
    """A read or write against a raster source, the collocation collaborator
    or the tiled store failed. Fatal, never retried at this layer."""
    pass


class PersistenceError(IOFailure):
    """A daily mean band could not be written to the time-series store."""
    pass


class InterpolationFailure(PercentileError):
    """A pixel time vector has no valid sample after fallback substitution.

    Recovered per pixel: the pixel is written as no-data for every rank.
    """
    pass
