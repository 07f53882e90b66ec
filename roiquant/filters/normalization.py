"""
Intensity normalization: gradient magnitude, per-plane normalization and
background-relative renormalization.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

import numpy as np
from scipy import ndimage as ndi

from ..core.config import SizeFilterConfig
from ..image.histogram import Histogram
from ..image.image import Image, WritableImage
from .arithmetic import GaussianFilter, _for_each_plane
from .background import LocalBackgroundEstimationFilter, half_box_for_size
from .base import Filter

logger = logging.getLogger(__name__)


def _gradient_magnitude(plane: np.ndarray) -> np.ndarray:
    magnitude = np.floor(np.hypot(ndi.prewitt(plane, axis=0), ndi.prewitt(plane, axis=1)))
    # Pixels on the plane edge have no full neighbourhood
    magnitude[[0, -1], :] = 0
    magnitude[:, [0, -1]] = 0
    return magnitude


class GradientFilter(Filter):
    """Replace each XY plane with the floored Prewitt gradient magnitude.

    Pixels on the edge of the plane are set to 0.
    """

    def apply(self, image: WritableImage, reference: Optional[Image] = None) -> None:
        self._require_writable(image)
        _for_each_plane(image, _gradient_magnitude)


class PlaneNormalizationFilter(Filter):
    """Equalize the mean intensity of the Z planes.

    Every pixel is divided by the mean of its Z plane (taken over all channels
    and timepoints in the box), then the box is rescaled linearly onto its
    original intensity range. Planes with zero mean are left undivided.
    """

    def apply(self, image: WritableImage, reference: Optional[Image] = None) -> None:
        self._require_writable(image)
        region = image.array()[image.box_slices()]
        values = np.array(region, dtype=np.float64)
        original_min, original_max = float(values.min()), float(values.max())

        plane_means = values.mean(axis=(0, 1, 3, 4))
        plane_means[plane_means == 0] = 1.0
        values /= plane_means[np.newaxis, np.newaxis, :, np.newaxis, np.newaxis]

        new_min, new_max = float(values.min()), float(values.max())
        if new_max > new_min:
            values = (values - new_min) / (new_max - new_min) * (original_max - original_min) + original_min
        else:
            values[...] = original_min
        region[...] = values
        logger.debug(f"Normalized {len(plane_means)} Z planes")


class RenormalizationFilter(Filter):
    """Normalize intensity against a smoothly varying local background.

    The local median background and the smoothed second gradient of that
    background are added to form a per-pixel denominator (at least 1). The log
    of intensity over denominator is rescaled onto ``[0, max level]``, floored,
    and the mean of the rescaled values is subtracted, clipping at 0. The median
    window and Gaussian width scale with the expected object size.

    The whole image is processed; a box of interest is ignored.

    Args:
        max_size: Largest expected object size in pixels. Defaults to the
            ``max_size`` parameter, or the size filter default.
    """

    def __init__(self, max_size: Optional[int] = None, params=None):
        super().__init__(params)
        if max_size is None:
            max_size = self._param_int("max_size", SizeFilterConfig().max_size)
        if max_size < 1:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self.max_size = int(max_size)

    def apply(self, image: WritableImage, reference: Optional[Image] = None) -> None:
        self._require_writable(image)
        image.clear_box_of_interest()
        original = image.copy()
        intensities = np.array(original.array(), dtype=np.float64)

        LocalBackgroundEstimationFilter(half_box_size=half_box_for_size(self.max_size)).apply(image, original)
        background = np.array(image.array(), dtype=np.float64)

        gradient = image.writable_copy()
        GradientFilter().apply(gradient)
        GradientFilter().apply(gradient)
        GaussianFilter(width=2 * int(math.ceil(math.sqrt(self.max_size)))).apply(gradient)

        denominator = np.maximum(background + np.array(gradient.array(), dtype=np.float64), 1.0)
        ratio = intensities / denominator
        log_ratio = np.zeros_like(ratio)
        np.log(ratio, out=log_ratio, where=ratio > 0)

        low, high = float(log_ratio.min()), float(log_ratio.max())
        if high > low:
            scaled = (log_ratio - low) / (high - low) * Histogram(original).max_value
        else:
            scaled = np.zeros_like(log_ratio)

        result = np.maximum(np.floor(scaled) - scaled.mean(), 0)
        image.array()[...] = result
        logger.info(f"Renormalized image against local background (max_size={self.max_size})")
