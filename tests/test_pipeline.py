"""End-to-end segmentation and quantification through a filter pipeline."""

from __future__ import annotations

import numpy as np
import pytest

from roiquant.filters import (
    FilterPipeline,
    LabelFilter,
    MaximumSeparabilityThresholdingFilter,
    OpeningFilter,
    RelabelFilter,
    SizeAbsoluteFilter,
)
from roiquant.image import Image, ImageSet
from roiquant.metric import IntensityPerPixelMetric, PIXEL_COUNT_NAME


def _synthetic_cells() -> np.ndarray:
    """Three 4x4 bright cells and one isolated bright pixel on a dim background."""
    data = np.full((30, 30), 10.0, dtype=np.float32)
    for y0, x0 in ((4, 4), (4, 20), (20, 12)):
        data[y0:y0 + 4, x0:x0 + 4] = 100.0
    data[15, 25] = 100.0
    return data


def _segmentation_pipeline() -> FilterPipeline:
    return (
        FilterPipeline()
        .append(MaximumSeparabilityThresholdingFilter())
        .append(OpeningFilter())
        .append(LabelFilter())
        .append(SizeAbsoluteFilter(min_size=5, max_size=200))
        .append(RelabelFilter())
    )


def test_pipeline_segments_cells() -> None:
    raw = Image.from_array(_synthetic_cells(), axes="YX")
    mask = raw.writable_copy()

    pipeline = _segmentation_pipeline()
    assert len(pipeline) == 5
    assert pipeline.apply(mask) is mask

    labels = mask.to_array("YX")
    assert sorted(np.unique(labels).tolist()) == [0.0, 1.0, 2.0, 3.0]
    assert labels[15, 25] == 0
    assert all((labels == label).sum() == 16 for label in (1, 2, 3))


def test_pipeline_output_quantifies_cells() -> None:
    raw = Image.from_array(_synthetic_cells(), axes="YX")
    mask = _segmentation_pipeline().apply(raw.writable_copy())

    quantification = IntensityPerPixelMetric().quantify(mask, ImageSet([raw], names=["signal"]))
    table = quantification.to_table()

    assert list(table.index) == [1, 2, 3]
    assert table["signal"].tolist() == pytest.approx([100.0, 100.0, 100.0])
    assert table[PIXEL_COUNT_NAME].tolist() == [16.0, 16.0, 16.0]


def test_pipeline_rejects_read_only_image() -> None:
    raw = Image.from_array(_synthetic_cells(), axes="YX")
    with pytest.raises(TypeError):
        _segmentation_pipeline().apply(raw)
