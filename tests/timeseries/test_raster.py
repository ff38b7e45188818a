import pytest
import numpy as np

from temporal_percentile.contracts import ConfigurationError
from temporal_percentile.timeseries.raster import InputRaster, evaluate_expression
from tests.helpers.fake_rasters import make_dataset, make_raster

pytestmark = pytest.mark.unit


def test_day_from_timestamp():
    raster = make_raster("r", "2014-01-01 23:59:00", 1.0)
    assert raster.day == 56658


def test_select_band_by_name_is_float():
    raster = make_raster("r", "2014-01-01 00:00:00", np.array([[1, 2, 3], [4, 5, 6]]))

    band = raster.select_band(band_name="chl")

    assert band.dtype == np.float64
    np.testing.assert_array_equal(band.values, [[1, 2, 3], [4, 5, 6]])


def test_select_band_from_expression():
    raster = make_raster("r", "2014-01-01 00:00:00", 0.0, B8=0.6, B4=0.2)

    band = raster.select_band(expression="(B8 - B4) / (B8 + B4)")

    np.testing.assert_allclose(band.values, 0.5)


def test_band_name_wins_over_expression():
    raster = make_raster("r", "2014-01-01 00:00:00", 7.0, B4=1.0)

    band = raster.select_band(band_name="chl", expression="B4 * 2")

    np.testing.assert_array_equal(band.values, 7.0)


def test_valid_pixel_expression_masks_pixels():
    flags = np.array([[0, 1, 0], [0, 0, 1]])
    raster = make_raster("r", "2014-01-01 00:00:00", 2.0, cloud=flags)

    band = raster.select_band(band_name="chl", valid_pixel_expression="cloud == 0")

    assert np.isnan(band.values[0, 1])
    assert np.isnan(band.values[1, 2])
    assert np.isfinite(band.values).sum() == 4


def test_per_raster_valid_expression_overrides_configured():
    raster = make_raster("r", "2014-01-01 00:00:00", np.array([[1, 2, 3], [4, 5, 6]]))
    raster.valid_pixel_expression = "chl > 3"

    band = raster.select_band(band_name="chl", valid_pixel_expression="chl > 0")

    assert np.isfinite(band.values).sum() == 3


def test_fill_value_becomes_nan():
    ds = make_dataset(np.array([[1, -999, 3], [4, 5, -999]]))
    ds["chl"].attrs["_FillValue"] = -999
    raster = InputRaster("r", ds, np.datetime64("2014-01-01"))

    band = raster.select_band(band_name="chl")

    assert np.isnan(band.values[0, 1])
    assert np.isnan(band.values[1, 2])


def test_unknown_name_in_expression_raises():
    raster = make_raster("r", "2014-01-01 00:00:00", 1.0)

    with pytest.raises(ConfigurationError, match="B12"):
        raster.select_band(expression="B12 * 2")


def test_builtins_unavailable_in_expression():
    ds = make_dataset(1.0)
    with pytest.raises(ConfigurationError):
        evaluate_expression(ds, "__import__('os')")


@pytest.mark.parametrize("expression", [
    "chl.values.tofile('out.bin')",
    "chl.__class__",
    "(chl * 2).sum()",
])
def test_attribute_access_rejected(expression):
    ds = make_dataset(1.0)
    with pytest.raises(ConfigurationError, match="band names"):
        evaluate_expression(ds, expression)


def test_syntax_error_is_configuration_error():
    ds = make_dataset(1.0)
    with pytest.raises(ConfigurationError):
        evaluate_expression(ds, "chl +")


def test_expression_keeps_raster_grid():
    ds = make_dataset(np.array([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]]))

    result = evaluate_expression(ds, "chl * 2")

    assert result.dims == ds["chl"].dims
    np.testing.assert_array_equal(result["x"].values, ds["x"].values)
    np.testing.assert_array_equal(result.values, [[2, 4, 6], [8, 10, 12]])


def test_scalar_expression_broadcast():
    ds = make_dataset(1.0)

    result = evaluate_expression(ds, "2.5")

    assert result.shape == (2, 3)
    np.testing.assert_array_equal(result.values, 2.5)


def test_math_functions_available_in_expression():
    ds = make_dataset(np.array([[1, 4, 9], [16, 25, 36]]))

    result = evaluate_expression(ds, "sqrt(chl)")

    np.testing.assert_allclose(result.values, [[1, 2, 3], [4, 5, 6]])


def test_no_band_or_expression_raises():
    raster = make_raster("r", "2014-01-01 00:00:00", 1.0)
    with pytest.raises(ConfigurationError):
        raster.select_band()
