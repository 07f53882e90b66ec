"""Unit tests for gradient, plane normalization and renormalization filters."""

from __future__ import annotations

import numpy as np
import pytest

from roiquant.core.config import ParameterDictionary
from roiquant.filters import GradientFilter, PlaneNormalizationFilter, RenormalizationFilter
from roiquant.image import WritableImage


def _ramp(shape=(40, 40)) -> np.ndarray:
    return np.tile(10.0 + np.arange(shape[1]), (shape[0], 1))


def test_gradient_of_ramp_is_constant_inside_and_zero_on_edges() -> None:
    image = WritableImage.from_array(_ramp((8, 8)), axes="YX")
    GradientFilter().apply(image)
    result = image.to_array("YX")

    assert np.all(result[1:-1, 1:-1] == 6)
    assert np.all(result[[0, -1], :] == 0)
    assert np.all(result[:, [0, -1]] == 0)


def test_plane_normalization_equalizes_proportional_planes() -> None:
    plane = np.arange(1, 17, dtype=np.float64).reshape(4, 4)
    image = WritableImage.from_array(np.stack([plane, 2 * plane]), axes="ZYX")

    PlaneNormalizationFilter().apply(image)
    result = image.to_array("ZYX")

    np.testing.assert_allclose(result[0], result[1], rtol=1e-5)
    assert result.min() == pytest.approx(1.0)
    assert result.max() == pytest.approx(32.0)


def test_plane_normalization_of_constant_image_is_unchanged() -> None:
    image = WritableImage.from_array(np.full((2, 3, 3), 4.0), axes="ZYX")
    PlaneNormalizationFilter().apply(image)
    assert np.all(image.to_array("ZYX") == 4)


def test_renormalization_of_constant_image_is_zero() -> None:
    image = WritableImage.from_array(np.full((20, 20), 20.0), axes="YX")
    RenormalizationFilter().apply(image)
    assert np.all(image.to_array("YX") == 0)


def test_renormalization_keeps_bright_spot_on_uneven_background() -> None:
    values = _ramp()
    values[19:22, 19:22] = 300.0
    image = WritableImage.from_array(values, axes="YX")

    RenormalizationFilter().apply(image)
    result = image.to_array("YX")

    assert result.min() >= 0
    spot = result[19:22, 19:22]
    assert spot.max() == result.max()
    assert spot.min() > np.median(result)


def test_renormalization_size_from_parameters() -> None:
    params = ParameterDictionary({"max_size": 200})
    assert RenormalizationFilter(params=params).max_size == 200
    assert RenormalizationFilter(max_size=10, params=params).max_size == 10
    with pytest.raises(ValueError):
        RenormalizationFilter(max_size=0)
