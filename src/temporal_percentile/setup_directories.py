"""
Directory setup for the percentile pipeline.

- timeseries/: intermediate daily-mean stores and the aggregation tracker
- percentiles/: final percentile products
- logs/: pipeline log files
"""

from pathlib import Path


def setup_output_directories(base_output_dir=None):
    """
    Set up organized output directory structure.

    Parameters
    ----------
    base_output_dir : str or Path, optional
        Base output directory. Defaults to ``./output``.

    Returns
    -------
    dict
        Dictionary with paths: 'base', 'timeseries', 'percentiles', 'logs'
    """
    if base_output_dir is None:
        base_output_dir = Path.cwd() / "output"

    base_output_dir = Path(base_output_dir).expanduser().resolve()

    directories = {
        "base": base_output_dir,
        "timeseries": base_output_dir / "timeseries",
        "percentiles": base_output_dir / "percentiles",
        "logs": base_output_dir / "logs",
    }

    for path in directories.values():
        path.mkdir(parents=True, exist_ok=True)

    return directories


def get_timeseries_path(output_dirs, product_name):
    """
    Path of the intermediate daily-mean store.

    Example
    -------
    >>> get_timeseries_path(dirs, '2014_chl_daily_means')
    Path('output/timeseries/2014_chl_daily_means.nc')
    """
    return Path(output_dirs["timeseries"]) / f"{product_name}.nc"


def get_percentile_path(output_dirs, product_name):
    """Path of the final percentile product."""
    return Path(output_dirs["percentiles"]) / f"{product_name}.nc"


def get_tracker_path(output_dirs, product_name):
    """Path of the aggregation tracker database."""
    return Path(output_dirs["timeseries"]) / f"{product_name}_tracker.db"
