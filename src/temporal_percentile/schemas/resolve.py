"""Configuration resolution and merging logic.

This module provides the single entrypoint for configuration resolution:
resolve_config(). It merges ParamConfig and UserConfig in precedence order
and returns a validated InternalConfig.

Precedence (highest to lowest):
1. UserConfig (user overrides)
2. ParamConfig (expert defaults)
"""

from typing import Optional, Union

from pydantic import ValidationError

from temporal_percentile.contracts.failure import ConfigurationError
from temporal_percentile.schemas.internal import InternalConfig
from temporal_percentile.schemas.param import ParamConfig
from temporal_percentile.schemas.user import UserConfig


def deep_merge(base: dict, *overrides: dict) -> dict:
    """Merge nested override dicts into a copy of ``base``.

    Sections present on both sides are merged key by key, anything else is
    replaced by the later value. ``base`` is left untouched.

    >>> deep_merge({"grid": {"crs": "EPSG:4326", "tile_size": (256, 256)}},
    ...            {"grid": {"tile_size": (64, 64)}})
    {'grid': {'crs': 'EPSG:4326', 'tile_size': (64, 64)}}
    """
    merged = dict(base)
    for override in overrides:
        for key, value in override.items():
            current = merged.get(key)
            if isinstance(current, dict) and isinstance(value, dict):
                value = deep_merge(current, value)
            merged[key] = value
    return merged


def resolve_config(
    param_cfg: Union[dict, ParamConfig],
    user_cfg: Optional[Union[dict, UserConfig]] = None,
) -> InternalConfig:
    """Resolve final runtime configuration from param and user configs.

    Parameters
    ----------
    param_cfg : dict or ParamConfig
        Expert configuration with complete defaults. Required.
    user_cfg : dict or UserConfig, optional
        User configuration with overrides.

    Returns
    -------
    InternalConfig
        Fully validated, immutable runtime configuration

    Raises
    ------
    ConfigurationError
        If any layer fails validation, including end date before start date,
        malformed bounds, or a missing/ambiguous source band.

    Examples
    --------
    >>> config = resolve_config(ParamConfig(), UserConfig(source_band="chl"))
    >>> config.target_prefix
    'chl'
    """
    try:
        if not isinstance(param_cfg, ParamConfig):
            param = ParamConfig.model_validate(param_cfg)
        else:
            param = param_cfg

        if user_cfg is None or (isinstance(user_cfg, dict) and not user_cfg):
            user = UserConfig()
        elif not isinstance(user_cfg, UserConfig):
            user = UserConfig.model_validate(user_cfg)
        else:
            user = user_cfg

        merged = deep_merge(param.model_dump(), user.to_internal_overrides())
        return InternalConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc
