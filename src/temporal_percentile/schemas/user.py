"""UserConfig: Forgiving, minimal user-facing configuration.

This schema accepts user inputs with aliases for common naming patterns
(e.g., SOURCE_BAND -> source.band_name, PERCENTILES -> percentile.percentiles).

UserConfig is intentionally minimal - users only specify what they want to
override from the expert defaults. Validation is lenient: uppercase keys,
integers where floats are expected, single ints where lists are expected.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import Field, field_validator

from temporal_percentile.schemas.base import (
    TPBaseModel,
    coerce_datetime,
    normalize_gap_fill_method,
)


class UserGridConfig(TPBaseModel):
    """User-facing grid config."""
    crs: Optional[str] = None
    west_bound: Optional[float] = None
    north_bound: Optional[float] = None
    east_bound: Optional[float] = None
    south_bound: Optional[float] = None
    pixel_size_x: Optional[float] = None
    pixel_size_y: Optional[float] = None
    resampling: Optional[str] = None
    tile_size: Optional[tuple[int, int]] = None

    @field_validator("resampling", mode="before")
    @classmethod
    def normalize_resampling(cls, v):
        if isinstance(v, str):
            return v.strip().capitalize()
        return v


class UserPercentileConfig(TPBaseModel):
    """User-facing percentile config."""
    percentiles: Optional[list[int]] = None
    band_name: Optional[str] = None
    method: Optional[str] = None
    start_value_fallback: Optional[float] = None
    end_value_fallback: Optional[float] = None

    @field_validator("method", mode="before")
    @classmethod
    def normalize_method(cls, v):
        return normalize_gap_fill_method(v)


class UserConfig(TPBaseModel):
    """User-facing configuration schema.

    Minimal, forgiving, and uses common aliases. Converted to internal
    overrides during resolution.

    Usage
    -----
        user_cfg = UserConfig(
            source_band="chl",
            percentiles=[50, 90],
            start_date="2013-01-01 00:00:00",
            method="spline",
        )

        internal = resolve_config(param_cfg, user_cfg)
    """

    base_dir: Optional[str] = Field(None, alias="BASE_DIR")

    # Source settings (flat aliases)
    source_band: Optional[str] = Field(None, alias="SOURCE_BAND")
    band_maths_expression: Optional[str] = Field(None, alias="BAND_MATHS_EXPRESSION")
    valid_pixel_expression: Optional[str] = Field(None, alias="VALID_PIXEL_EXPRESSION")

    # Period settings
    start_date: Optional[datetime] = Field(None, alias="START_DATE")
    end_date: Optional[datetime] = Field(None, alias="END_DATE")

    # Percentile settings (flat aliases)
    percentiles: Optional[list[int]] = Field(None, alias="PERCENTILES")
    percentile_band_name: Optional[str] = Field(None, alias="PERCENTILE_BAND_NAME")
    method: Optional[str] = Field(None, alias="METHOD")
    start_value_fallback: Optional[float] = Field(None, alias="START_VALUE_FALLBACK")
    end_value_fallback: Optional[float] = Field(None, alias="END_VALUE_FALLBACK")

    # Storage and execution
    keep_intermediate: Optional[bool] = Field(None, alias="KEEP_INTERMEDIATE")
    workers: Optional[int] = Field(None, alias="WORKERS")
    log_level: Optional[str] = Field(None, alias="LOG_LEVEL")

    # Nested overrides (advanced users)
    grid: Optional[UserGridConfig] = None
    percentile: Optional[UserPercentileConfig] = None
    timeseries: Optional[dict[str, Any]] = None
    output: Optional[dict[str, Any]] = None

    model_config = TPBaseModel.model_config.copy()
    # Allow forgiving input dictionaries (ignore unknown legacy keys)
    model_config.update({"populate_by_name": True, "extra": "ignore"})

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def parse_dates(cls, v):
        return coerce_datetime(v)

    @field_validator("percentiles", mode="before")
    @classmethod
    def wrap_single_percentile(cls, v):
        """Accept a single rank or a comma-separated string."""
        if isinstance(v, int):
            return [v]
        if isinstance(v, str):
            return [int(p) for p in v.split(",") if p.strip()]
        return v

    @field_validator("start_value_fallback", "end_value_fallback", mode="before")
    @classmethod
    def coerce_numeric_fields(cls, v):
        """Accept int or float for numeric fields."""
        if v is not None:
            return float(v)
        return v

    @field_validator("method", mode="before")
    @classmethod
    def normalize_method(cls, v):
        return normalize_gap_fill_method(v)

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.upper().strip()
        return v

    def to_internal_overrides(self) -> dict:
        """Convert flat UserConfig to nested InternalConfig structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        if self.base_dir is not None:
            overrides["base_dir"] = str(self.base_dir)

        # Source section
        source = {}
        if self.source_band is not None:
            source["band_name"] = self.source_band
        if self.band_maths_expression is not None:
            source["band_maths_expression"] = self.band_maths_expression
        if self.valid_pixel_expression is not None:
            source["valid_pixel_expression"] = self.valid_pixel_expression
        if source:
            overrides["source"] = source

        # Period section
        period = {}
        if self.start_date is not None:
            period["start_date"] = self.start_date
        if self.end_date is not None:
            period["end_date"] = self.end_date
        if period:
            overrides["period"] = period

        # Grid section
        if self.grid is not None:
            grid = self.grid.model_dump(exclude_none=True)
            if grid:
                overrides["grid"] = grid

        # Percentile section
        percentile = {}
        if self.percentiles is not None:
            percentile["percentiles"] = list(self.percentiles)
        if self.percentile_band_name is not None:
            percentile["band_name"] = self.percentile_band_name
        if self.method is not None:
            percentile["method"] = self.method
        if self.start_value_fallback is not None:
            percentile["start_value_fallback"] = self.start_value_fallback
        if self.end_value_fallback is not None:
            percentile["end_value_fallback"] = self.end_value_fallback

        # Merge with explicit percentile config
        if self.percentile is not None:
            percentile.update(self.percentile.model_dump(exclude_none=True))
        if percentile:
            overrides["percentile"] = percentile

        # Time-series store section
        timeseries = dict(self.timeseries or {})
        if self.keep_intermediate is not None:
            timeseries["keep_intermediate"] = self.keep_intermediate
        if timeseries:
            overrides["timeseries"] = timeseries

        if self.output:
            overrides["output"] = dict(self.output)

        if self.workers is not None:
            overrides["processor"] = {"workers": self.workers}

        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}

        return overrides
