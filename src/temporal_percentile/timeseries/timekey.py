"""Day keys for the time-series axis.

Observation timestamps are reduced to an integer Modified Julian Day (MJD),
the canonical coordinate of the time axis. Naive timestamps are taken as
UTC; aware ones are converted to UTC first.
"""

from datetime import datetime, timedelta
from typing import Any

import pandas as pd

__all__ = ['MJD_EPOCH', 'to_utc', 'to_mjd', 'mjd_to_datetime', 'format_day']

# MJD 0 is 1858-11-17T00:00:00 UTC
MJD_EPOCH = datetime(1858, 11, 17)


def to_utc(timestamp: Any) -> pd.Timestamp:
    """Return a naive UTC ``pd.Timestamp`` for any timestamp-like input."""
    ts = pd.Timestamp(timestamp)
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts


def to_mjd(timestamp: Any) -> int:
    """Convert an observation timestamp to its integer day index (MJD).

    Parameters
    ----------
    timestamp : datetime, str, numpy.datetime64 or pd.Timestamp
        Observation time.

    Returns
    -------
    int
        Day count since 1858-11-17, floored to whole days.

    Examples
    --------
    >>> to_mjd("1858-11-18 13:00:00")
    1
    """
    ts = to_utc(timestamp)
    return (ts.normalize() - pd.Timestamp(MJD_EPOCH)).days


def mjd_to_datetime(mjd: int) -> datetime:
    """Midnight UTC of the given day index."""
    return MJD_EPOCH + timedelta(days=int(mjd))


def format_day(mjd: int) -> str:
    """Render a day index as ``yyyyMMdd.HHmmss.SSS``."""
    return mjd_to_datetime(mjd).strftime("%Y%m%d.%H%M%S") + ".000"
