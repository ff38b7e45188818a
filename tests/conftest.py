"""Root-level pytest fixtures for the temporal_percentile test suite.

Provides shared configuration fixtures following the Pydantic-based config
layers. Tests use these fixtures instead of creating raw dict configs.
"""

import pytest
from pathlib import Path
import tempfile
import shutil

from temporal_percentile.schemas import ParamConfig, UserConfig, resolve_config
from temporal_percentile.setup_directories import setup_output_directories


# =============================================================================
# Configuration Fixtures (Pydantic-based)
# =============================================================================

@pytest.fixture
def param_config():
    """Expert configuration with all defaults.

    Use this as the base for all test configs. Override specific values
    using make_config or by creating custom UserConfig instances.
    """
    return ParamConfig()


@pytest.fixture
def internal_config(param_config):
    """Fully validated runtime configuration.

    Only the source band is set, since resolution requires one.

    Examples
    --------
    >>> def test_prefix(internal_config):
    ...     assert internal_config.target_prefix == "chl"
    """
    return resolve_config(param_config, UserConfig(source_band="chl"))


@pytest.fixture
def make_config(param_config):
    """Factory fixture for creating custom test configs.

    Returns a callable that accepts UserConfig-compatible kwargs. The source
    band defaults to ``chl`` unless a band or expression is given.

    Examples
    --------
    >>> def test_custom_method(make_config):
    ...     config = make_config(method="spline")
    ...     assert config.percentile.method == "spline"
    """
    def _make(**user_overrides):
        """Create InternalConfig with user overrides."""
        if "band_maths_expression" not in user_overrides and "BAND_MATHS_EXPRESSION" not in user_overrides:
            user_overrides.setdefault("source_band", "chl")
        return resolve_config(param_config, UserConfig(**user_overrides))

    return _make


@pytest.fixture
def small_grid_config(make_config):
    """Factory for configs on a 3 x 2 pixel grid with 1-unit pixels.

    Pixel centres are x = 0.5, 1.5, 2.5 and y = 1.5, 0.5, matching
    ``tests.helpers.fake_rasters.make_grid()``.
    """
    def _make(**user_overrides):
        grid = {
            "west_bound": 0.0, "east_bound": 3.0,
            "north_bound": 2.0, "south_bound": 0.0,
            "pixel_size_x": 1.0, "pixel_size_y": 1.0,
            "tile_size": (2, 1),
        }
        grid.update(user_overrides.pop("grid", {}))
        return make_config(grid=grid, **user_overrides)

    return _make


# =============================================================================
# Directory Fixtures
# =============================================================================

@pytest.fixture
def temp_dir():
    """Temporary directory that is cleaned up after test."""
    d = tempfile.mkdtemp()
    yield Path(d)
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def output_dirs(temp_dir):
    """Standard output directory structure.

    Returns dict with keys: base, timeseries, percentiles, logs
    """
    return setup_output_directories(temp_dir)
