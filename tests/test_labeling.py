"""Unit tests for connected-component labeling and relabeling."""

from __future__ import annotations

import numpy as np

from roiquant.filters import Label3DFilter, LabelFilter, RelabelFilter, relabel_array
from roiquant.image import WritableImage


def _labels(values, axes: str = "YX") -> WritableImage:
    return WritableImage.from_array(np.asarray(values, dtype=np.float32), axes=axes)


def _assert_same_partition(before: np.ndarray, after: np.ndarray) -> None:
    assert np.array_equal(before > 0, after > 0)
    pairs = set(zip(before[before > 0].tolist(), after[after > 0].tolist()))
    olds = [p[0] for p in pairs]
    news = [p[1] for p in pairs]
    assert len(set(olds)) == len(pairs)
    assert len(set(news)) == len(pairs)


def test_relabel_is_contiguous_and_preserves_partition() -> None:
    rng = np.random.default_rng(1234)
    data = rng.choice([0, 2, 5, 9, 40], size=(12, 12)).astype(np.float32)
    image = _labels(data)

    RelabelFilter().apply(image)
    result = image.to_array("YX")

    distinct = len(np.unique(data[data > 0]))
    assert sorted(np.unique(result[result > 0]).tolist()) == list(range(1, distinct + 1))
    _assert_same_partition(data, result)


def test_relabel_orders_by_first_encounter() -> None:
    image = _labels([[0, 7, 7], [3, 0, 7]])
    RelabelFilter().apply(image)
    assert image.to_array("YX").tolist() == [[0, 1, 1], [2, 0, 1]]


def test_relabel_array_handles_empty_input() -> None:
    assert not relabel_array(np.zeros((3, 3))).any()


def test_label_uses_eight_connectivity() -> None:
    mask = np.array([
        [1, 0, 0, 0, 1],
        [0, 1, 0, 0, 1],
        [0, 0, 0, 0, 0],
        [1, 1, 0, 0, 0],
    ])
    image = _labels(mask)
    LabelFilter().apply(image)
    result = image.to_array("YX")

    assert result[0, 0] == result[1, 1] == 1
    assert result[0, 4] == result[1, 4] == 2
    assert result[3, 0] == result[3, 1] == 3
    assert result.max() == 3
    assert np.array_equal(result > 0, mask > 0)


def test_label_background_stays_zero() -> None:
    image = _labels([[-3, 0, 2], [0, 0, 2]])
    LabelFilter().apply(image)
    assert image.to_array("YX").tolist() == [[0, 0, 1], [0, 0, 1]]


def test_label_planes_get_distinct_labels() -> None:
    volume = np.zeros((2, 4, 4), dtype=np.float32)
    volume[0, 1:3, 1:3] = 1
    volume[1, 1:3, 1:3] = 1
    image = _labels(volume, axes="ZYX")

    LabelFilter().apply(image)
    result = image.to_array("ZYX")

    assert set(np.unique(result[0])) == {0.0, 1.0}
    assert set(np.unique(result[1])) == {0.0, 2.0}


def test_label3d_joins_across_z_with_six_connectivity() -> None:
    volume = np.zeros((3, 4, 4), dtype=np.float32)
    volume[0, 1, 1] = 1
    volume[1, 1, 1] = 1
    volume[2, 2, 2] = 1  # only diagonally adjacent to the column above
    image = _labels(volume, axes="ZYX")

    Label3DFilter().apply(image)
    result = image.to_array("ZYX")

    assert result[0, 1, 1] == result[1, 1, 1] == 1
    assert result[2, 2, 2] == 2
