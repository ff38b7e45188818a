"""Pipeline contracts and error taxonomy.

Key principle:
- Pydantic validates config correctness
- Contracts validate pipeline correctness
- Algorithms handle science edge cases (gaps, empty pixels)
"""

from temporal_percentile.contracts.failure import (
    ContractViolation,
    PercentileError,
    ConfigurationError,
    IOFailure,
    PersistenceError,
    InterpolationFailure,
)
from temporal_percentile.contracts.base import require
from temporal_percentile.contracts.axis import assert_axis
from temporal_percentile.contracts.store import assert_readable_store

__all__ = [
    "ContractViolation",
    "PercentileError",
    "ConfigurationError",
    "IOFailure",
    "PersistenceError",
    "InterpolationFailure",
    "require",
    "assert_axis",
    "assert_readable_store",
]
