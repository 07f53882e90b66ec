"""
Pixel arithmetic and smoothing filters: masking, subtraction, Gaussian blur
and band-pass filtering.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
from scipy import ndimage as ndi
from skimage.filters import difference_of_gaussians

from ..image.image import Image, WritableImage
from .base import Filter

logger = logging.getLogger(__name__)

_DEFAULT_GAUSSIAN_WIDTH = 5
_DEFAULT_BAND = (1.0, 10.0)  # Gaussian sigmas in pixels


def _check_same_size(image: Image, reference: Image) -> None:
    if tuple(reference.dimension_sizes) != tuple(image.dimension_sizes):
        raise ValueError(
            f"Reference size {tuple(reference.dimension_sizes)} does not match "
            f"image size {tuple(image.dimension_sizes)}"
        )


def _for_each_plane(image: WritableImage, func) -> None:
    """Apply ``func`` to every XY plane of the active box, writing the result back."""
    region = image.array()[image.box_slices()]
    _, _, nz, nc, nt = region.shape
    for t in range(nt):
        for c in range(nc):
            for z in range(nz):
                plane = np.array(region[:, :, z, c, t], dtype=np.float64)
                region[:, :, z, c, t] = func(plane)


class MaskFilter(Filter):
    """Zero every pixel whose reference pixel is zero."""

    def apply(self, image: WritableImage, reference: Optional[Image] = None) -> None:
        self._require_writable(image)
        reference = self._require_reference(reference)
        _check_same_size(image, reference)
        box = image.box_slices()
        region = image.array()[box]
        region[reference.array()[box] == 0] = 0


class ImageSubtractionFilter(Filter):
    """Subtract the reference image pixel-wise, optionally clipping at zero."""

    def __init__(self, clip: bool = True, params=None):
        super().__init__(params)
        self.clip = clip

    def apply(self, image: WritableImage, reference: Optional[Image] = None) -> None:
        self._require_writable(image)
        reference = self._require_reference(reference)
        _check_same_size(image, reference)
        box = image.box_slices()
        difference = image.array()[box] - reference.array()[box]
        if self.clip:
            difference = np.maximum(difference, 0)
        image.array()[box] = difference


class GaussianFilter(Filter):
    """Gaussian blur of each XY plane.

    Args:
        width: Kernel width in pixels; even widths are increased by one. The
            Gaussian sigma is half the width. Defaults to the ``gaussian_width``
            parameter, or 5.
    """

    def __init__(self, width: Optional[int] = None, params=None):
        super().__init__(params)
        if width is None:
            width = self._param_int("gaussian_width", _DEFAULT_GAUSSIAN_WIDTH)
        if width < 1:
            raise ValueError(f"Gaussian width must be positive, got {width}")
        self.width = width if width % 2 == 1 else width + 1

    @property
    def sigma(self) -> float:
        return self.width / 2.0

    def apply(self, image: WritableImage, reference: Optional[Image] = None) -> None:
        self._require_writable(image)
        sigma = self.sigma
        _for_each_plane(image, lambda plane: ndi.gaussian_filter(plane, sigma=sigma, mode="nearest"))
        logger.debug(f"Gaussian filter applied with sigma={sigma}")


class BandpassFilter(Filter):
    """Difference-of-Gaussians band-pass filter on each XY plane.

    Structures smaller than ``band_low`` and larger than ``band_high`` (both
    Gaussian sigmas in pixels) are suppressed. With ``should_rescale`` the output
    is mapped linearly back onto the input's original intensity range.
    """

    def __init__(
        self,
        band_low: Optional[float] = None,
        band_high: Optional[float] = None,
        should_rescale: bool = False,
        params=None,
    ):
        super().__init__(params)
        if band_low is None:
            band_low = self._param_float("band_low", _DEFAULT_BAND[0])
        if band_high is None:
            band_high = self._param_float("band_high", _DEFAULT_BAND[1])
        if band_low < 0 or band_high <= band_low:
            raise ValueError(f"Band must satisfy 0 <= low < high, got ({band_low}, {band_high})")
        self.band_low = band_low
        self.band_high = band_high
        self.should_rescale = should_rescale

    def apply(self, image: WritableImage, reference: Optional[Image] = None) -> None:
        self._require_writable(image)
        box = image.box_slices()
        old_min = float(image.array()[box].min())
        old_max = float(image.array()[box].max())

        _for_each_plane(
            image,
            lambda plane: difference_of_gaussians(plane, self.band_low, self.band_high),
        )

        if self.should_rescale:
            region = image.array()[box]
            new_min = float(region.min())
            new_range = float(region.max()) - new_min
            if new_range > 0:
                region[...] = (region - new_min) / new_range * (old_max - old_min) + old_min
            else:
                region[...] = old_min
        logger.debug(f"Bandpass filter applied with band ({self.band_low}, {self.band_high})")
