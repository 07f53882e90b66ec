"""
Background level estimation.

``estimate_background`` takes the most frequent positive intensity level of a set
of pixels and adds twice the half width at half maximum of the histogram peak
around it. ``BackgroundEstimationFilter`` applies it per labeled region;
``LocalBackgroundEstimationFilter`` produces a sliding-window median background
image.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Optional

import numpy as np
from scipy import ndimage as ndi

from ..image.histogram import Histogram
from ..image.image import Image, WritableImage
from .arithmetic import _check_same_size
from .base import Filter

logger = logging.getLogger(__name__)

# =============================================================================
# Module-level constants
# =============================================================================
_PEAK_WIDTHS = 2  # Background = mode + _PEAK_WIDTHS * half width at half maximum
_DEFAULT_HALF_BOX_SIZE = 25  # Local median window is 2 * half_box_size + 1 pixels wide


def estimate_background(values: np.ndarray) -> int:
    """Estimate the background level of a set of intensities.

    The half width is measured from the first level whose count exceeds half the
    peak count to the first level past the mode whose count drops below it. It
    is at least 1.

    Args:
        values: Pixel intensities; negative values are ignored.

    Returns:
        int: ``mode + 2 * hwhm``, or 0 when there are no values.
    """
    values = np.asarray(values, dtype=np.float64).ravel()
    if values.size == 0:
        return 0

    histogram = Histogram(Image.from_array(values, axes="X", dtype=np.float64))
    mode = histogram.mode
    half_peak = histogram.counts_at_mode / 2.0

    first = second = 0
    found = False
    for level in range(1, histogram.max_value):
        count = histogram.get_counts(level)
        if found and count < half_peak and level > mode:
            second = level
            break
        if not found and count > half_peak:
            first = level
            found = True

    hwhm = max((second - first) // 2, 1)
    return mode + _PEAK_WIDTHS * hwhm


class BackgroundEstimationFilter(Filter):
    """Estimate the background of each labeled region and trim it to background pixels.

    ``image`` is a label mask and the reference holds intensities. For each
    region, pixels whose reference intensity exceeds the region's estimated
    background are removed from the mask. The estimates are kept in
    ``backgrounds`` (label -> level); ``BackgroundMetric`` reports the same
    estimates as measurements.
    """

    def __init__(self, params=None):
        super().__init__(params)
        self.backgrounds: Dict[int, int] = {}

    def apply(self, image: WritableImage, reference: Optional[Image] = None) -> None:
        self._require_writable(image)
        reference = self._require_reference(reference)
        _check_same_size(image, reference)

        box = image.box_slices()
        region = image.array()[box]
        labels = np.maximum(np.floor(np.array(region, dtype=np.float64)), 0).astype(np.int64)
        intensities = np.array(reference.array()[box], dtype=np.float64)

        self.backgrounds = {}
        for label in np.unique(labels[labels > 0]):
            inside = labels == label
            background = estimate_background(intensities[inside])
            self.backgrounds[int(label)] = background
            region[inside & (intensities > background)] = 0

        logger.info(f"Estimated background for {len(self.backgrounds)} regions")


class LocalBackgroundEstimationFilter(Filter):
    """Replace the image with the local median of the reference intensities.

    The median is taken over a square XY window of ``2 * half_box_size + 1``
    pixels around each pixel of every plane, on integer levels. Windows running
    past the plane edge are completed by reflection.

    Args:
        half_box_size: Window half width. Defaults to the ``half_box_size``
            parameter, or 25.
    """

    def __init__(self, half_box_size: Optional[int] = None, params=None):
        super().__init__(params)
        if half_box_size is None:
            half_box_size = self._param_int("half_box_size", _DEFAULT_HALF_BOX_SIZE)
        if half_box_size < 0:
            raise ValueError(f"half_box_size must be non-negative, got {half_box_size}")
        self.half_box_size = int(half_box_size)

    @property
    def window_size(self) -> int:
        return 2 * self.half_box_size + 1

    def apply(self, image: WritableImage, reference: Optional[Image] = None) -> None:
        self._require_writable(image)
        reference = self._require_reference(reference)
        _check_same_size(image, reference)

        box = image.box_slices()
        source = np.floor(np.array(reference.array()[box], dtype=np.float64))
        region = image.array()[box]

        _, _, nz, nc, nt = source.shape
        for t in range(nt):
            for c in range(nc):
                for z in range(nz):
                    region[:, :, z, c, t] = ndi.median_filter(
                        source[:, :, z, c, t], size=self.window_size, mode="reflect"
                    )
        logger.debug(f"Local background estimated with a {self.window_size}-pixel window")


def half_box_for_size(max_size: int) -> int:
    """Median half width suited to objects of up to ``max_size`` pixels."""
    return int(math.ceil(0.5 * math.sqrt(max_size)))
