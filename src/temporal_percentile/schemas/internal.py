"""InternalConfig: Authoritative runtime configuration.

This is the ONLY config schema that runtime code sees. It is fully validated,
normalized and frozen. Cross-field rules (source band vs. expression, period
ordering) are enforced here because only the merged config can judge them.
"""

from datetime import datetime
from typing import Annotated, Literal, Optional

from pydantic import ConfigDict, Field, model_validator

from temporal_percentile.schemas.base import TPBaseModel, sanitize_band_prefix


# =============================================================================
# Nested Configuration Models (Runtime)
# =============================================================================

class InternalSourceConfig(TPBaseModel):
    """Runtime source band configuration."""
    band_name: Optional[str]
    band_maths_expression: Optional[str]
    valid_pixel_expression: Optional[str]

    @model_validator(mode="after")
    def check_exactly_one_input(self):
        if (self.band_name is None) == (self.band_maths_expression is None):
            raise ValueError(
                "Either parameter 'band_name' or 'band_maths_expression' must be specified."
            )
        return self


class InternalPeriodConfig(TPBaseModel):
    """Runtime period bounds."""
    start_date: Optional[datetime]
    end_date: Optional[datetime]

    @model_validator(mode="after")
    def check_order(self):
        if (self.start_date is not None and self.end_date is not None
                and self.end_date < self.start_date):
            raise ValueError(
                f"End date '{self.end_date}' before start date '{self.start_date}'"
            )
        return self


class InternalGridConfig(TPBaseModel):
    """Runtime target grid configuration."""
    crs: str
    west_bound: float
    north_bound: float
    east_bound: float
    south_bound: float
    pixel_size_x: float = Field(gt=0)
    pixel_size_y: float = Field(gt=0)
    resampling: Literal["Nearest", "Bilinear", "Bicubic"]
    tile_size: tuple[Annotated[int, Field(ge=1)], Annotated[int, Field(ge=1)]]

    @model_validator(mode="after")
    def check_bounds(self):
        if self.west_bound == self.east_bound:
            raise ValueError("Most western longitude must be different from most eastern longitude.")
        if self.north_bound <= self.south_bound:
            raise ValueError("Most northern latitude must be larger than most southern latitude.")
        return self


class InternalPercentileConfig(TPBaseModel):
    """Runtime percentile configuration."""
    percentiles: list[Annotated[int, Field(ge=0, le=100)]] = Field(min_length=1)
    band_name: Optional[str]
    method: Literal["linear", "quadratic", "spline"]
    start_value_fallback: float
    end_value_fallback: float


class InternalTimeSeriesConfig(TPBaseModel):
    """Runtime intermediate store configuration."""
    backend: Literal["netcdf", "memory"]
    keep_intermediate: bool
    compression: bool


class InternalOutputConfig(TPBaseModel):
    """Runtime output configuration."""
    backend: Literal["netcdf", "memory"]
    compression: bool


class InternalProcessorConfig(TPBaseModel):
    """Runtime tile loop configuration."""
    workers: int = Field(ge=1)


class InternalLoggingConfig(TPBaseModel):
    """Runtime logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


# =============================================================================
# Main InternalConfig
# =============================================================================

class InternalConfig(TPBaseModel):
    """Authoritative runtime configuration.

    Runtime modules receive InternalConfig and access fields directly:

        def __init__(self, config: InternalConfig):
            self.method = config.percentile.method  # NOT .get()

    Rules
    -----
    - NO .get() calls
    - NO fallback defaults
    - NO validation in runtime code
    """

    base_dir: Optional[str]
    source: InternalSourceConfig
    period: InternalPeriodConfig
    grid: InternalGridConfig
    percentile: InternalPercentileConfig
    timeseries: InternalTimeSeriesConfig
    output: InternalOutputConfig
    processor: InternalProcessorConfig
    logging: InternalLoggingConfig

    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=True,
        use_enum_values=True,
        str_strip_whitespace=True,
        frozen=True,  # Immutable after construction
    )

    @property
    def target_prefix(self) -> str:
        """Base identifier for daily and percentile band names."""
        if self.percentile.band_name is not None:
            return self.percentile.band_name
        if self.source.band_name is not None:
            return self.source.band_name
        return sanitize_band_prefix(self.source.band_maths_expression)
