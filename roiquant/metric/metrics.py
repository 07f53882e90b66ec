"""
Metrics turning a labeled mask and a set of intensity images into measurements.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Union

import numpy as np
from scipy import ndimage as ndi

from ..filters.background import estimate_background
from ..image.image import Image
from ..image.image_set import ImageSet
from .measurement import TYPE_BACKGROUND, TYPE_INTENSITY, TYPE_SIZE, Measurement
from .quantification import Quantification

logger = logging.getLogger(__name__)

PIXEL_COUNT_NAME = "pixel_count"
AREA_NAME = "area"
PERIMETER_NAME = "perimeter"
BACKGROUND_SUFFIX = "_background"

# 8-connected XY neighbourhood; Z, C and T are not crossed
_PERIMETER_FOOTPRINT = np.ones((3, 3, 1, 1, 1), dtype=bool)

ImagesLike = Union[ImageSet, Sequence[Image]]


def _as_image_set(images: ImagesLike) -> ImageSet:
    return images if isinstance(images, ImageSet) else ImageSet(list(images))


def _mask_labels(mask: Image) -> np.ndarray:
    return np.maximum(np.floor(np.array(mask.array(), dtype=np.float64)), 0).astype(np.int64)


class Metric(ABC):
    """Algorithm producing a ``Quantification`` from a mask and images."""

    @abstractmethod
    def quantify(self, mask: Image, images: ImagesLike) -> Optional[Quantification]:
        """Measure every labeled region of ``mask`` in each image.

        Args:
            mask: Label image; regions are labeled 1..K and 0 is background.
            images: Intensity images, one per channel, sized like ``mask``.

        Returns:
            Optional[Quantification]: The measurements, or None if ``mask`` has
            no labeled regions.
        """


class IntensityPerPixelMetric(Metric):
    """Mean intensity (sum / pixel count) of each region in each image."""

    def intensity_table(self, mask: Image, images: ImagesLike) -> Optional[np.ndarray]:
        """Per-region mean intensities.

        Returns:
            Optional[np.ndarray]: Array of shape (K, n_images + 1). Row ``r - 1``
            holds region ``r``; the last column is the region's pixel count.
            None if the mask has no labeled regions.
        """
        image_set = _as_image_set(images)
        labels = _mask_labels(mask)
        region_count = int(labels.max()) if labels.size else 0
        if region_count == 0:
            logger.info("No labeled regions in mask; nothing to quantify")
            return None

        for index, image in enumerate(image_set):
            if tuple(image.dimension_sizes) != tuple(mask.dimension_sizes):
                raise ValueError(
                    f"Image {index} size {tuple(image.dimension_sizes)} does not match "
                    f"mask size {tuple(mask.dimension_sizes)}"
                )

        flat_labels = labels.ravel()
        counts = np.bincount(flat_labels, minlength=region_count + 1)[1:].astype(np.float64)
        table = np.zeros((region_count, len(image_set) + 1), dtype=np.float64)
        for index, image in enumerate(image_set):
            values = np.asarray(image.array(), dtype=np.float64).ravel()
            sums = np.bincount(flat_labels, weights=values, minlength=region_count + 1)[1:]
            table[:, index] = np.divide(sums, counts, out=np.zeros_like(sums), where=counts > 0)
        table[:, -1] = counts
        return table

    def quantify(self, mask: Image, images: ImagesLike) -> Optional[Quantification]:
        image_set = _as_image_set(images)
        table = self.intensity_table(mask, image_set)
        if table is None:
            return None

        quantification = Quantification()
        for row, region in enumerate(range(1, table.shape[0] + 1)):
            count = table[row, -1]
            if count == 0:
                continue
            for index in range(len(image_set)):
                name = image_set.get_image_name(index)
                quantification.add_measurement(
                    Measurement(True, region, float(table[row, index]), name, TYPE_INTENSITY, name)
                )
            quantification.add_measurement(
                Measurement(True, region, float(count), PIXEL_COUNT_NAME, TYPE_SIZE, None)
            )

        logger.info(f"Quantified {len(quantification.all_regions())} regions across {len(image_set)} images")
        return quantification


def _boundary_pixels(labels: np.ndarray) -> np.ndarray:
    """Labeled pixels with an 8-neighbour of a different label; the image edge is not a boundary."""
    highest = ndi.maximum_filter(labels, footprint=_PERIMETER_FOOTPRINT, mode="nearest")
    lowest = ndi.minimum_filter(labels, footprint=_PERIMETER_FOOTPRINT, mode="nearest")
    return (labels > 0) & ((highest != labels) | (lowest != labels))


class AreaAndPerimeterMetric(Metric):
    """Pixel area and boundary pixel count of each region.

    The perimeter counts the region's pixels that touch, in XY, a pixel of the
    background or of another region. Both measurements are attributed to the
    marker image, or to the first image when no marker is set.
    """

    def quantify(self, mask: Image, images: ImagesLike) -> Optional[Quantification]:
        image_set = _as_image_set(images)
        labels = _mask_labels(mask)
        region_count = int(labels.max()) if labels.size else 0
        if region_count == 0:
            logger.info("No labeled regions in mask; nothing to quantify")
            return None

        if image_set.marker_index is not None:
            image_id = image_set.get_image_name(image_set.marker_index)
        else:
            image_id = image_set.get_image_name(0) if len(image_set) else None

        areas = np.bincount(labels.ravel(), minlength=region_count + 1)
        perimeters = np.bincount(labels[_boundary_pixels(labels)], minlength=region_count + 1)

        quantification = Quantification()
        for region in range(1, region_count + 1):
            if areas[region] == 0:
                continue
            quantification.add_measurement(
                Measurement(True, region, float(areas[region]), AREA_NAME, TYPE_SIZE, image_id)
            )
            quantification.add_measurement(
                Measurement(True, region, float(perimeters[region]), PERIMETER_NAME, TYPE_SIZE, image_id)
            )
        logger.info(f"Measured area and perimeter of {len(quantification.all_regions())} regions")
        return quantification


class BackgroundMetric(Metric):
    """Estimated background level of each region in each image.

    Uses ``estimate_background`` on the region's pixels: the histogram mode
    plus twice the half width at half maximum of the peak around it.
    """

    def quantify(self, mask: Image, images: ImagesLike) -> Optional[Quantification]:
        image_set = _as_image_set(images)
        labels = _mask_labels(mask)
        regions = np.unique(labels[labels > 0])
        if regions.size == 0:
            logger.info("No labeled regions in mask; nothing to quantify")
            return None

        quantification = Quantification()
        for index, image in enumerate(image_set):
            if tuple(image.dimension_sizes) != tuple(mask.dimension_sizes):
                raise ValueError(
                    f"Image {index} size {tuple(image.dimension_sizes)} does not match "
                    f"mask size {tuple(mask.dimension_sizes)}"
                )
            name = image_set.get_image_name(index)
            values = np.asarray(image.array(), dtype=np.float64)
            for region in regions:
                background = estimate_background(values[labels == region])
                quantification.add_measurement(
                    Measurement(True, int(region), float(background), name + BACKGROUND_SUFFIX, TYPE_BACKGROUND, name)
                )
        logger.info(f"Estimated background of {regions.size} regions across {len(image_set)} images")
        return quantification


class ZeroMetric(Metric):
    """Placeholder metric reporting zero intensity and size for a single region 1.

    Used in place of a real metric when a mask has no regions, so downstream
    output keeps a consistent shape.
    """

    def quantify(self, mask: Image, images: ImagesLike) -> Quantification:
        image_set = _as_image_set(images)
        quantification = Quantification()
        for index in range(len(image_set)):
            name = image_set.get_image_name(index)
            quantification.add_measurement(Measurement(True, 1, 0.0, name, TYPE_INTENSITY, name))
        quantification.add_measurement(Measurement(True, 1, 0.0, PIXEL_COUNT_NAME, TYPE_SIZE, None))
        return quantification


def quantify_or_zero(metric: Metric, mask: Image, images: ImagesLike) -> Quantification:
    """Run ``metric``, falling back to ``ZeroMetric`` when the mask has no regions."""
    result = metric.quantify(mask, images)
    if result is None:
        logger.warning("Mask has no regions; substituting zero measurements")
        result = ZeroMetric().quantify(mask, images)
    return result


def measurement_names(quantification: Quantification) -> List[str]:
    """Distinct measurement names in insertion order."""
    return list(dict.fromkeys(m.name for m in quantification.all_measurements()))
