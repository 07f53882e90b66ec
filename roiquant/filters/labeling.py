"""
Connected-component labeling and relabeling.

``LabelFilter`` groups 8-connected foreground pixels within each XY plane,
``Label3DFilter`` groups 6-connected voxels across X, Y and Z. Both finish by
renumbering regions 1..K in scan order (X fastest, then Y, Z, C, T).
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
from scipy import ndimage as ndi

from ..image.image import Image, WritableImage
from .base import Filter

logger = logging.getLogger(__name__)

_EIGHT_CONNECTED = np.ones((3, 3), dtype=bool)
_SIX_CONNECTED = ndi.generate_binary_structure(3, 1)


def relabel_array(labels: np.ndarray) -> np.ndarray:
    """Renumber positive labels to 1..K in order of first appearance.

    The scan runs over the array in Fortran order, which for arrays indexed
    [x, y, z, c, t] means X varies fastest. Pixels sharing a label before
    share one after; values <= 0 become 0.

    Args:
        labels: Label array (integer or float valued).

    Returns:
        np.ndarray: Int64 array of the same shape with contiguous labels.
    """
    flat = np.floor(np.asarray(labels, dtype=np.float64)).astype(np.int64).ravel(order="F")
    positive = flat > 0
    result = np.zeros_like(flat)
    if positive.any():
        values = flat[positive]
        unique, first_index = np.unique(values, return_index=True)
        rank = np.empty(unique.size, dtype=np.int64)
        rank[np.argsort(first_index, kind="stable")] = np.arange(1, unique.size + 1)
        result[positive] = rank[np.searchsorted(unique, values)]
    return result.reshape(np.shape(labels), order="F")


def _write_region(image: WritableImage, labels: np.ndarray) -> None:
    image.array()[image.box_slices()] = labels.astype(image.pixel_data.dtype)


class RelabelFilter(Filter):
    """Renumber the labels in the active box to be contiguous from 1.

    Existing regions keep their composition; only their numbers change. Used
    after any filter that removes or merges regions.
    """

    def apply(self, image: WritableImage, reference: Optional[Image] = None) -> None:
        self._require_writable(image)
        labels = relabel_array(image.region_array())
        _write_region(image, labels)
        logger.debug(f"Relabeled {int(labels.max()) if labels.size else 0} regions")


class LabelFilter(Filter):
    """Label 8-connected foreground regions within each XY plane.

    Foreground is any pixel > 0. Labels are unique across the whole active box
    and numbered in scan order.
    """

    def apply(self, image: WritableImage, reference: Optional[Image] = None) -> None:
        self._require_writable(image)
        region = np.array(image.region_array())
        labels = np.zeros(region.shape, dtype=np.int64)
        next_label = 0

        _, _, nz, nc, nt = region.shape
        for t in range(nt):
            for c in range(nc):
                for z in range(nz):
                    plane_labels, count = ndi.label(region[:, :, z, c, t] > 0, structure=_EIGHT_CONNECTED)
                    labels[:, :, z, c, t] = np.where(plane_labels > 0, plane_labels + next_label, 0)
                    next_label += count

        labels = relabel_array(labels)
        _write_region(image, labels)
        logger.info(f"Labeled {next_label} connected regions (8-connected, per plane)")


class Label3DFilter(Filter):
    """Label 6-connected foreground regions across X, Y and Z for each channel and timepoint."""

    def apply(self, image: WritableImage, reference: Optional[Image] = None) -> None:
        self._require_writable(image)
        region = np.array(image.region_array())
        labels = np.zeros(region.shape, dtype=np.int64)
        next_label = 0

        _, _, _, nc, nt = region.shape
        for t in range(nt):
            for c in range(nc):
                volume_labels, count = ndi.label(region[:, :, :, c, t] > 0, structure=_SIX_CONNECTED)
                labels[:, :, :, c, t] = np.where(volume_labels > 0, volume_labels + next_label, 0)
                next_label += count

        labels = relabel_array(labels)
        _write_region(image, labels)
        logger.info(f"Labeled {next_label} connected regions (6-connected, 3D)")
