"""Input raster model.

An ``InputRaster`` is a borrowed, read-only view of one acquisition: an
``xarray.Dataset`` on a ``(y, x)`` grid, its observation time and an
optional valid-pixel expression. Reading and decoding the source file is
the loader's job; this module only selects the band that feeds the time
series and masks invalid pixels.

Band maths and valid-pixel expressions are evaluated against the raster's
data variables with :func:`pandas.eval`, e.g.
``"(B8 - B4) / (B8 + B4)"`` or ``"(cloud_flag == 0) & (B4 > 0)"``.
"""

import ast
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import numpy as np
import pandas as pd
import xarray as xr

from temporal_percentile.contracts.failure import ConfigurationError
from temporal_percentile.timeseries.timekey import to_mjd

__all__ = ['InputRaster', 'evaluate_expression']


def _check_expression(expression: str, label: str) -> None:
    """Reject expressions that reach beyond variables, numbers and operators."""
    try:
        tree = ast.parse(expression, mode="eval")
    except SyntaxError as exc:
        raise ConfigurationError(
            f"Cannot parse expression '{expression}' on raster '{label}': {exc}"
        ) from exc
    for node in ast.walk(tree):
        if isinstance(node, ast.Attribute) or (isinstance(node, ast.Name) and node.id.startswith("_")):
            raise ConfigurationError(
                f"Expression '{expression}' on raster '{label}' may only use band names, "
                f"numbers, operators and math functions"
            )


def evaluate_expression(dataset: xr.Dataset, expression: str, label: str = "") -> xr.DataArray:
    """Evaluate a band maths expression over a dataset's variables.

    The expression is evaluated with :func:`pandas.eval`, so ``&``/``|``
    combine comparisons and math functions such as ``sqrt`` or ``log`` are
    available by name.

    Parameters
    ----------
    dataset : xr.Dataset
        Raster variables, all on the same ``(y, x)`` grid.
    expression : str
        Arithmetic over variable names, numbers and math functions.
    label : str, optional
        Raster name used in error messages.

    Returns
    -------
    xr.DataArray
        Result broadcast to the raster grid.

    Raises
    ------
    ConfigurationError
        If the expression cannot be parsed, uses attribute access or
        references unknown names.
    """
    _check_expression(expression, label)
    variables = {name: dataset[name].values for name in dataset.data_vars}
    try:
        result = pd.eval(expression, parser="pandas", engine="python",
                         local_dict=variables, global_dict=variables)
    except (SyntaxError, NameError, TypeError, ValueError, KeyError, NotImplementedError) as exc:
        raise ConfigurationError(
            f"Cannot evaluate expression '{expression}' on raster '{label}': {exc}"
        ) from exc

    template = dataset[next(iter(dataset.data_vars))]
    data = np.broadcast_to(np.asarray(result), template.shape)
    return xr.DataArray(data.copy(), coords=template.coords, dims=template.dims)


@dataclass
class InputRaster:
    """One acquisition borrowed from the raster source.

    Attributes
    ----------
    name : str
        Identifier used in logs and metadata (typically the file name).
    dataset : xr.Dataset
        Data variables on dims ``(y, x)`` with ``x``/``y`` coordinates.
    timestamp : datetime
        Observation time.
    valid_pixel_expression : str, optional
        Per-raster validity predicate; overrides the configured one.
    """
    name: str
    dataset: xr.Dataset
    timestamp: datetime
    valid_pixel_expression: Optional[str] = None

    @property
    def day(self) -> int:
        """Day index (MJD) of the observation."""
        return to_mjd(self.timestamp)

    def has_band(self, band_name: str) -> bool:
        return band_name in self.dataset.data_vars

    def select_band(
        self,
        band_name: Optional[str] = None,
        expression: Optional[str] = None,
        valid_pixel_expression: Optional[str] = None,
    ) -> xr.DataArray:
        """Return the input band as float with invalid pixels set to NaN.

        Exactly one of ``band_name`` and ``expression`` is used; the band
        name wins when both are given.
        """
        if band_name is not None:
            band = self.dataset[band_name]
        elif expression is not None:
            band = evaluate_expression(self.dataset, expression, self.name)
        else:
            raise ConfigurationError("Either a band name or a band maths expression is required.")

        band = band.astype("float64")
        fill = band.attrs.get("_FillValue", band.encoding.get("_FillValue"))
        if fill is not None:
            band = band.where(band != fill)

        predicate = self.valid_pixel_expression or valid_pixel_expression
        if predicate:
            valid = evaluate_expression(self.dataset, predicate, self.name)
            band = band.where(valid.astype(bool))
        return band
