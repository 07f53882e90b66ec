"""Unit tests for background estimation filters."""

from __future__ import annotations

import numpy as np
import pytest

from roiquant.core.config import ParameterDictionary
from roiquant.filters import (
    BackgroundEstimationFilter,
    LocalBackgroundEstimationFilter,
    ReferenceImageRequiredError,
    estimate_background,
)
from roiquant.filters.background import half_box_for_size
from roiquant.image import Image, WritableImage


def _peak(counts_by_level) -> np.ndarray:
    return np.concatenate([np.full(count, level, dtype=np.float64) for level, count in counts_by_level.items()])


def _dim_with_bright_spots() -> np.ndarray:
    values = np.full((10, 10), 10.0)
    values[0, :] = 50.0
    return values


def test_background_is_mode_plus_two_half_widths() -> None:
    values = _peak({8: 60, 9: 80, 10: 100, 11: 80, 12: 60, 13: 10, 14: 5})
    # Half maximum is 50: first exceeded at 8, first undercut past the mode at 13
    assert estimate_background(values) == 10 + 2 * 2


def test_narrow_peak_uses_minimum_half_width() -> None:
    values = _peak({9: 20, 10: 100, 11: 20})
    assert estimate_background(values) == 12


def test_empty_values_have_zero_background() -> None:
    assert estimate_background(np.array([])) == 0


def test_filter_removes_pixels_brighter_than_background() -> None:
    mask = WritableImage.from_array(np.ones((10, 10)), axes="YX")
    reference = Image.from_array(_dim_with_bright_spots(), axes="YX")

    estimator = BackgroundEstimationFilter()
    estimator.apply(mask, reference)
    result = mask.to_array("YX")

    assert estimator.backgrounds == {1: 12}
    assert result[0].sum() == 0
    assert result[1:].sum() == 90


def test_filter_estimates_each_region_separately() -> None:
    labels = np.ones((10, 10))
    labels[5:] = 2
    intensities = np.full((10, 10), 10.0)
    intensities[5:] = 40.0
    intensities[9, 9] = 90.0
    mask = WritableImage.from_array(labels, axes="YX")

    estimator = BackgroundEstimationFilter()
    estimator.apply(mask, Image.from_array(intensities, axes="YX"))

    assert estimator.backgrounds == {1: 12, 2: 42}
    assert mask.to_array("YX")[9, 9] == 0
    assert mask.to_array("YX")[9, 8] == 2


def test_filter_requires_reference() -> None:
    with pytest.raises(ReferenceImageRequiredError):
        BackgroundEstimationFilter().apply(WritableImage.from_array(np.ones((3, 3))))


def test_local_background_of_constant_image() -> None:
    image = WritableImage.from_array(np.zeros((12, 12)), axes="YX")
    LocalBackgroundEstimationFilter(half_box_size=2).apply(image, Image.from_array(np.full((12, 12), 7.0)))
    assert np.all(image.to_array("YX") == 7)


def test_local_background_ignores_isolated_bright_pixel() -> None:
    values = np.full((9, 9), 5.0)
    values[4, 4] = 100.0
    image = WritableImage.from_array(np.zeros((9, 9)), axes="YX")

    LocalBackgroundEstimationFilter(half_box_size=1).apply(image, Image.from_array(values, axes="YX"))

    assert np.all(image.to_array("YX") == 5)


def test_local_background_requires_reference() -> None:
    with pytest.raises(ReferenceImageRequiredError):
        LocalBackgroundEstimationFilter().apply(WritableImage.from_array(np.ones((3, 3))))


def test_local_background_window_from_parameters() -> None:
    params = ParameterDictionary({"half_box_size": 3})
    assert LocalBackgroundEstimationFilter(params=params).window_size == 7
    assert LocalBackgroundEstimationFilter(half_box_size=1, params=params).window_size == 3
    assert LocalBackgroundEstimationFilter().half_box_size == 25


def test_half_box_grows_with_object_size() -> None:
    assert half_box_for_size(50) == 4
    assert half_box_for_size(400) == 10
