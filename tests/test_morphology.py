"""Unit tests for binary morphology filters."""

from __future__ import annotations

import numpy as np
import pytest

from roiquant.filters import (
    ClosingFilter,
    DilationFilter,
    ErosionFilter,
    OpeningFilter,
    StructuringElement,
)
from roiquant.image import Coordinate, WritableImage


def _binary(mask: np.ndarray) -> WritableImage:
    return WritableImage.from_array(mask.astype(np.float32), axes="YX")


def _mask(image: WritableImage) -> np.ndarray:
    return image.to_array("YX") > 0


def _random_mask(shape=(32, 32), p: float = 0.6) -> np.ndarray:
    rng = np.random.default_rng(1234)
    return rng.random(shape) < p


def test_default_structuring_element_shape() -> None:
    element = StructuringElement.default(["X", "Y"])
    assert element.sizes == Coordinate(3, 3, 1, 1, 1)
    assert element.get_value((-1, 1, 0, 0, 0)) == 1.0
    assert len(list(element.active_offsets())) == 9

    with pytest.raises(ValueError):
        StructuringElement((2, 3))


def test_erosion_of_centered_square_leaves_center() -> None:
    mask = np.zeros((10, 10), dtype=bool)
    mask[4:7, 4:7] = True
    image = _binary(mask)

    ErosionFilter().apply(image)

    expected = np.zeros((10, 10), dtype=bool)
    expected[5, 5] = True
    assert np.array_equal(_mask(image), expected)


def test_dilation_of_single_pixel_gives_block() -> None:
    mask = np.zeros((10, 10), dtype=bool)
    mask[5, 5] = True
    image = _binary(mask)

    DilationFilter().apply(image)

    expected = np.zeros((10, 10), dtype=bool)
    expected[4:7, 4:7] = True
    assert np.array_equal(_mask(image), expected)
    assert set(np.unique(image.to_array("YX"))) == {0.0, 1.0}


def test_erosion_shrinks_and_dilation_grows() -> None:
    mask = _random_mask()

    eroded = _binary(mask)
    ErosionFilter().apply(eroded)
    dilated = _binary(mask)
    DilationFilter().apply(dilated)

    assert _mask(eroded).sum() <= mask.sum()
    assert _mask(dilated).sum() >= mask.sum()
    assert not np.any(_mask(eroded) & ~mask)
    assert not np.any(mask & ~_mask(dilated))


def test_opening_is_idempotent() -> None:
    mask = _random_mask(p=0.7)
    once = _binary(mask)
    OpeningFilter().apply(once)
    twice = _binary(_mask(once))
    OpeningFilter().apply(twice)

    assert np.array_equal(_mask(once), _mask(twice))
    assert not np.any(_mask(once) & ~mask)


def test_opening_removes_small_structures() -> None:
    mask = np.zeros((12, 12), dtype=bool)
    mask[1, 1] = True
    mask[5:10, 5:10] = True
    image = _binary(mask)

    OpeningFilter().apply(image)

    result = _mask(image)
    assert not result[1, 1]
    assert np.array_equal(result[5:10, 5:10], np.ones((5, 5), dtype=bool))


def test_closing_fills_single_pixel_gap() -> None:
    mask = np.zeros((9, 9), dtype=bool)
    mask[2:7, 2:7] = True
    mask[4, 4] = False
    image = _binary(mask)

    ClosingFilter().apply(image)

    assert _mask(image)[4, 4]


def test_erosion_skips_out_of_image_neighbours() -> None:
    # Neighbours beyond the image edge are ignored rather than counted as
    # background, so a fully foreground image survives erosion unchanged,
    # border pixels included.
    image = _binary(np.ones((6, 6), dtype=bool))
    ErosionFilter().apply(image)
    assert _mask(image).all()

    # A foreground stripe along the border keeps its edge row.
    mask = np.zeros((6, 6), dtype=bool)
    mask[0:2, :] = True
    stripe = _binary(mask)
    ErosionFilter().apply(stripe)
    assert _mask(stripe)[0].all()
    assert not _mask(stripe)[1].any()


def test_morphology_writes_only_inside_box_of_interest() -> None:
    mask = np.zeros((8, 8), dtype=bool)
    mask[3, 3] = True
    image = _binary(mask)
    image.set_box_of_interest((0, 0, 0, 0, 0), (4, 3, 1, 1, 1))

    DilationFilter().apply(image)

    result = _mask(image)
    # Row y=3 is outside the box, so only the row above the pixel was dilated
    assert result[2, 2:5].tolist() == [True, True, False]
    assert result[3, 3] and not result[3, 2] and not result[4, 3]


def test_custom_structuring_element_in_one_dimension() -> None:
    element = StructuringElement.default(["X"])
    mask = np.zeros((5, 5), dtype=bool)
    mask[2, 2] = True
    image = _binary(mask)

    DilationFilter(structuring_element=element).apply(image)

    expected = np.zeros((5, 5), dtype=bool)
    expected[2, 1:4] = True
    assert np.array_equal(_mask(image), expected)


def test_erosion_ignores_center_with_zero_weight() -> None:
    element = StructuringElement.from_array(np.array([[1.0, 0.0, 1.0]]), axes="YX")
    mask = np.zeros((3, 5), dtype=bool)
    mask[1, 1] = mask[1, 3] = True
    image = _binary(mask)

    ErosionFilter(structuring_element=element).apply(image)

    # Only the center pixel has both horizontal neighbours set
    expected = np.zeros((3, 5), dtype=bool)
    expected[1, 2] = True
    assert np.array_equal(_mask(image), expected)
