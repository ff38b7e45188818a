"""Base Pydantic model with strict defaults for percentile configs.

All config schemas inherit from this base to ensure consistent validation
behavior across parameter, user, and internal configs. The coercion helpers
are shared by the field validators of every layer.
"""

import re
from typing import Any

import pandas as pd
from pydantic import BaseModel, ConfigDict


# Long method names used by older configuration files
GAP_FILL_METHOD_ALIASES = {
    "gapfillinglinearinterpolation": "linear",
    "gapfillingquadraticinterpolation": "quadratic",
    "gapfillingsplineinterpolation": "spline",
}


class TPBaseModel(BaseModel):
    """Base model for all configuration schemas.

    Enforces strict validation:
    - No extra fields allowed
    - Validates assignments after initialization
    - Converts enums to values
    - Strips whitespace from strings
    """

    model_config = ConfigDict(
        extra='forbid',           # Reject unknown fields
        validate_assignment=True, # Validate on field mutation
        use_enum_values=True,     # Convert enums to values
        str_strip_whitespace=True,# Strip whitespace from strings
    )


def coerce_datetime(v: Any) -> Any:
    """Parse strings and timestamps into naive UTC datetimes.

    Accepts ``"2013-01-01 00:00:00"``, ISO strings with or without an offset,
    ``datetime`` and ``numpy.datetime64``. ``None`` passes through.
    """
    if v is None or (isinstance(v, str) and not v.strip()):
        return None
    ts = pd.Timestamp(v)
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts.to_pydatetime()


def normalize_gap_fill_method(v: Any) -> Any:
    """Lowercase a gap-fill method name and map long aliases."""
    if isinstance(v, str):
        key = v.lower().strip()
        return GAP_FILL_METHOD_ALIASES.get(key, key)
    return v


_ILLEGAL_NAME_CHARS = re.compile(r"[^0-9A-Za-z_.+-]+")


def sanitize_band_prefix(expression: str) -> str:
    """Turn a band maths expression into a NetCDF-legal band name prefix.

    Runs of characters outside ``[0-9A-Za-z_.+-]`` collapse to a single
    ``_``. Names must start with a letter, so anything else gets a
    ``band_`` prefix. ``"(B8 - B4) / (B8 + B4)"`` becomes
    ``"B8_-_B4_B8_+_B4"``.
    """
    name = _ILLEGAL_NAME_CHARS.sub("_", expression).strip("_")
    if not name[:1].isalpha():
        name = f"band_{name}" if name else "band"
    return name
