"""
Size and shape filters for labeled masks.

These filters act on label images (0 = background). None of them renumbers
regions afterwards; follow them with a ``RelabelFilter`` when contiguous labels
are needed.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
from scipy import ndimage as ndi
from skimage.morphology import convex_hull_image

from ..core.config import SizeFilterConfig
from ..image.image import Image, WritableImage
from .base import Filter

logger = logging.getLogger(__name__)

_FOUR_CONNECTED = ndi.generate_binary_structure(2, 1)


def _label_array(region: np.ndarray) -> np.ndarray:
    return np.maximum(np.floor(np.asarray(region, dtype=np.float64)), 0).astype(np.int64)


class SizeAbsoluteFilter(Filter):
    """Remove regions whose pixel count lies outside ``[min_size, max_size]``."""

    def __init__(
        self,
        config: Optional[SizeFilterConfig] = None,
        min_size: Optional[int] = None,
        max_size: Optional[int] = None,
        params=None,
    ):
        super().__init__(params)
        self.config = config or SizeFilterConfig()
        self.min_size = int(min_size if min_size is not None else self._param_int("min_size", self.config.min_size))
        self.max_size = int(max_size if max_size is not None else self._param_int("max_size", self.config.max_size))
        if self.min_size < 0 or self.max_size < self.min_size:
            raise ValueError(f"Invalid size bounds [{self.min_size}, {self.max_size}]")

    def apply(self, image: WritableImage, reference: Optional[Image] = None) -> None:
        self._require_writable(image)
        box = image.box_slices()
        labels = _label_array(image.array()[box])
        if not labels.any():
            return

        counts = np.bincount(labels.ravel())
        discard = (counts < self.min_size) | (counts > self.max_size)
        discard[0] = False
        removed = discard[labels]

        region = image.array()[box]
        region[removed] = 0
        logger.info(
            f"Size filter [{self.min_size}, {self.max_size}] removed "
            f"{int((discard & (counts > 0)).sum())} of {int((counts[1:] > 0).sum())} regions"
        )


class FillFilter(Filter):
    """Fill enclosed background holes inside labeled regions.

    Holes are 4-connected background components of an XY plane that do not touch
    the plane border. A hole is filled with the label of the region around it
    only when every foreground pixel adjacent to the hole carries that same
    label; holes bordered by several regions are left open.
    """

    def apply(self, image: WritableImage, reference: Optional[Image] = None) -> None:
        self._require_writable(image)
        box = image.box_slices()
        region = image.array()[box]
        labels = _label_array(region)
        filled_total = 0

        _, _, nz, nc, nt = labels.shape
        for t in range(nt):
            for c in range(nc):
                for z in range(nz):
                    plane = labels[:, :, z, c, t]
                    filled_total += self._fill_plane(plane)
                    region[:, :, z, c, t] = plane

        logger.info(f"Filled {filled_total} enclosed holes")

    @staticmethod
    def _fill_plane(plane: np.ndarray) -> int:
        holes, count = ndi.label(plane == 0, structure=_FOUR_CONNECTED)
        if count == 0:
            return 0

        border = np.unique(np.concatenate([holes[0, :], holes[-1, :], holes[:, 0], holes[:, -1]]))
        filled = 0
        for hole_id, bounds in enumerate(ndi.find_objects(holes), start=1):
            if bounds is None or hole_id in border:
                continue
            # Grow the bounding box by one pixel to see the surrounding region
            grown = tuple(slice(max(s.start - 1, 0), s.stop + 1) for s in bounds)
            hole = holes[grown] == hole_id
            ring = ndi.binary_dilation(hole, structure=_FOUR_CONNECTED) & ~hole
            surrounding = np.unique(plane[grown][ring])
            surrounding = surrounding[surrounding > 0]
            if surrounding.size == 1:
                plane[grown][hole] = surrounding[0]
                filled += 1
        return filled


class ConvexHullByLabelFilter(Filter):
    """Replace each labeled region with its convex hull, plane by plane.

    Labels come from the reference image when one is given, otherwise from the
    image itself. The result is written into the image: each hull is painted with
    its region's label, higher labels winning where hulls overlap. Pixels outside
    every hull become background.
    """

    def apply(self, image: WritableImage, reference: Optional[Image] = None) -> None:
        self._require_writable(image)
        source = reference if reference is not None else image
        if tuple(source.dimension_sizes) != tuple(image.dimension_sizes):
            raise ValueError("Reference label image must match the image size")

        box = image.box_slices()
        labels = _label_array(source.array()[box])
        result = np.zeros_like(labels)

        _, _, nz, nc, nt = labels.shape
        hull_count = 0
        for t in range(nt):
            for c in range(nc):
                for z in range(nz):
                    plane = labels[:, :, z, c, t]
                    out = result[:, :, z, c, t]
                    for label, bounds in enumerate(ndi.find_objects(plane), start=1):
                        if bounds is None:
                            continue
                        footprint = plane[bounds] == label
                        hull = footprint
                        if footprint.sum() > 2:
                            hull = convex_hull_image(footprint) | footprint
                        out[bounds][hull] = label
                        hull_count += 1

        image.array()[box] = result.astype(image.pixel_data.dtype)
        logger.info(f"Computed convex hulls for {hull_count} regions")
