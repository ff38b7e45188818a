"""Pydantic configuration schemas for the percentile pipeline.

Exports
-------
resolve_config : function
    Single entrypoint for configuration resolution
InternalConfig : class
    Fully validated, authoritative runtime configuration
ParamConfig : class
    Expert defaults (complete)
UserConfig : class
    User-facing configuration (forgiving, minimal)
"""

from temporal_percentile.schemas.resolve import resolve_config
from temporal_percentile.schemas.internal import InternalConfig
from temporal_percentile.schemas.param import ParamConfig
from temporal_percentile.schemas.user import UserConfig

__all__ = [
    'resolve_config',
    'InternalConfig',
    'ParamConfig',
    'UserConfig',
]
