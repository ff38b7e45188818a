"""ParamConfig: Expert defaults for the percentile pipeline.

This module defines the complete default configuration. ALL pipeline
parameters must have defaults here. Runtime code never reads ParamConfig
directly - it only receives InternalConfig.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator

from temporal_percentile.schemas.base import (
    TPBaseModel,
    coerce_datetime,
    normalize_gap_fill_method,
)


# =============================================================================
# Nested Configuration Models
# =============================================================================

class SourceConfig(TPBaseModel):
    """Which input band feeds the time series.

    Exactly one of ``band_name`` and ``band_maths_expression`` must be set
    by the time the config is resolved.
    """
    band_name: Optional[str] = None
    band_maths_expression: Optional[str] = None
    valid_pixel_expression: Optional[str] = None


class PeriodConfig(TPBaseModel):
    """Time period bounds. Derived from the data when not given."""
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def parse_dates(cls, v):
        """Accept 'yyyy-MM-dd HH:mm:ss' strings and timestamps."""
        return coerce_datetime(v)


class GridConfig(TPBaseModel):
    """Target grid definition."""
    crs: str = "EPSG:4326"
    west_bound: float = Field(-15.0, ge=-180.0, le=180.0)
    north_bound: float = Field(75.0, ge=-90.0, le=90.0)
    east_bound: float = Field(30.0, ge=-180.0, le=180.0)
    south_bound: float = Field(35.0, ge=-90.0, le=90.0)
    pixel_size_x: float = Field(0.05, gt=0)
    pixel_size_y: float = Field(0.05, gt=0)
    resampling: Literal["Nearest", "Bilinear", "Bicubic"] = "Nearest"
    tile_size: tuple[int, int] = (256, 256)

    @field_validator("resampling", mode="before")
    @classmethod
    def normalize_resampling(cls, v):
        """Accept 'nearest', 'BILINEAR', ..."""
        if isinstance(v, str):
            return v.strip().capitalize()
        return v

    @model_validator(mode="after")
    def check_bounds(self):
        if self.west_bound == self.east_bound:
            raise ValueError("Most western longitude must be different from most eastern longitude.")
        if self.north_bound <= self.south_bound:
            raise ValueError("Most northern latitude must be larger than most southern latitude.")
        if min(self.tile_size) < 1:
            raise ValueError(f"tile_size must be positive, got {self.tile_size}")
        return self


class PercentileConfig(TPBaseModel):
    """Percentile and gap-filling configuration."""
    percentiles: list[int] = Field(default_factory=lambda: [90], min_length=1)
    band_name: Optional[str] = None
    method: Literal["linear", "quadratic", "spline"] = "linear"
    start_value_fallback: float = 0.0
    end_value_fallback: float = 0.0

    @field_validator("method", mode="before")
    @classmethod
    def normalize_method(cls, v):
        """Normalize method names to lowercase short names."""
        return normalize_gap_fill_method(v)

    @field_validator("percentiles")
    @classmethod
    def check_ranks(cls, v):
        for rank in v:
            if not 0 <= rank <= 100:
                raise ValueError(f"Percentile {rank} outside [0, 100]")
        return v


class TimeSeriesConfig(TPBaseModel):
    """Intermediate daily-mean store configuration."""
    backend: Literal["netcdf", "memory"] = "netcdf"
    keep_intermediate: bool = True
    compression: bool = True


class OutputConfig(TPBaseModel):
    """Percentile output configuration."""
    backend: Literal["netcdf", "memory"] = "netcdf"
    compression: bool = True


class ProcessorConfig(TPBaseModel):
    """Tile loop configuration."""
    workers: int = Field(1, ge=1, description="Tile-parallel worker threads")


class LoggingConfig(TPBaseModel):
    """Logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


# =============================================================================
# Main ParamConfig
# =============================================================================

class ParamConfig(TPBaseModel):
    """Complete expert configuration with all defaults.

    Usage
    -----
    This config is the base layer in config resolution:

        internal_cfg = resolve_config(param_cfg, user_cfg)

    Runtime code only sees InternalConfig.
    """

    base_dir: Optional[str] = None
    source: SourceConfig = Field(default_factory=SourceConfig)
    period: PeriodConfig = Field(default_factory=PeriodConfig)
    grid: GridConfig = Field(default_factory=GridConfig)
    percentile: PercentileConfig = Field(default_factory=PercentileConfig)
    timeseries: TimeSeriesConfig = Field(default_factory=TimeSeriesConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    processor: ProcessorConfig = Field(default_factory=ProcessorConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
