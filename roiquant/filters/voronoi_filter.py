"""Voronoi tessellation of an image seeded by the centroids of labeled regions."""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
from scipy import ndimage as ndi

from ..clustering.voronoi import VoronoiDiagram
from ..core.utils import label_centroids
from ..image.image import Image, WritableImage
from .base import Filter

logger = logging.getLogger(__name__)


class VoronoiFilter(Filter):
    """Partition each XY plane into the Voronoi cells of the reference regions.

    The reference holds labeled regions; their XY centroids seed the diagram.
    Every pixel of the image is set to the label of the cell it falls in, and
    pixels with an 8-connected neighbour in a different cell are set to 0, which
    leaves one-pixel outlines between cells.
    """

    def apply(self, image: WritableImage, reference: Optional[Image] = None) -> None:
        self._require_writable(image)
        reference = self._require_reference(reference)

        labels = np.maximum(np.floor(np.array(reference.array(), dtype=np.float64)), 0).astype(np.int64)
        centroids = label_centroids(labels)
        if not centroids:
            logger.warning("VoronoiFilter: reference has no labeled regions; image cleared")
            image.fill(0)
            return

        ids = np.array(sorted(centroids))
        seeds = np.array([centroids[i][:2] for i in ids])
        sx, sy = image.dimension_sizes.x, image.dimension_sizes.y
        diagram = VoronoiDiagram(seeds, bounds=(0.0, 0.0, float(sx - 1), float(sy - 1)))

        xs, ys = np.meshgrid(np.arange(sx), np.arange(sy), indexing="ij")
        cells = ids[diagram.get_region_numbers(np.column_stack([xs.ravel(), ys.ravel()])) - 1].reshape(sx, sy)

        footprint = np.ones((3, 3), dtype=bool)
        boundary = (ndi.maximum_filter(cells, footprint=footprint, mode="nearest") != cells) | (
            ndi.minimum_filter(cells, footprint=footprint, mode="nearest") != cells
        )
        plane = np.where(boundary, 0, cells)

        box = image.box_slices()
        region = image.array()[box]
        region[...] = plane[box[0], box[1], np.newaxis, np.newaxis, np.newaxis]
        logger.info(f"Voronoi tessellation with {len(ids)} seeds")
