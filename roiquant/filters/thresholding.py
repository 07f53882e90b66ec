"""
Maximum-separability (Otsu-style) thresholding.

The threshold is the integer level L that maximizes the between-class variance
of the positive pixels split into {level < L} and {level >= L}. Zero pixels are
background and never enter the class statistics. When several levels score
equally the lowest one is chosen.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np

from ..core.config import ThresholdConfig
from ..image.histogram import Histogram
from ..image.image import Image, WritableImage, create_writable
from .base import Filter

logger = logging.getLogger(__name__)

# =============================================================================
# Module-level constants
# =============================================================================
_EPSILON = 1e-12  # Minimum class weight considered non-empty
_REGION_FILTER_FG_BG_RATIO = 5.0  # Region filtering runs only below this fg/bg ratio


def compute_threshold(histogram: Histogram) -> int:
    """Select the maximum-separability split level.

    Args:
        histogram: Histogram of the pixels to threshold.

    Returns:
        int: Level L; pixels with value >= L (and > 0) are foreground. If the
        positive pixels occupy a single level, that level is returned, so all
        of them become foreground. Returns 0 when there are no positive pixels.
    """
    if histogram.nonzero_counts == 0:
        return 0

    counts = histogram.counts[1:].astype(np.float64)
    levels = np.arange(1, histogram.max_value + 1, dtype=np.float64)

    cumulative = np.cumsum(counts)
    cumulative_sum = np.cumsum(counts * levels)
    total = cumulative[-1]
    total_sum = cumulative_sum[-1]

    # Split after index k: class 0 holds levels 1..k+1, class 1 starts at level k+2
    n0 = cumulative[:-1]
    n1 = total - n0
    valid = (n0 > _EPSILON) & (n1 > _EPSILON)
    if not valid.any():
        return histogram.min_value_nonzero

    with np.errstate(divide="ignore", invalid="ignore"):
        mu0 = np.where(valid, cumulative_sum[:-1] / n0, 0.0)
        mu1 = np.where(valid, (total_sum - cumulative_sum[:-1]) / n1, 0.0)
    scores = np.where(valid, (n0 / total) * (n1 / total) * (mu0 - mu1) ** 2, -1.0)

    return int(np.argmax(scores)) + 2


def _boxed_like(source: Image, image: Image) -> Image:
    """Shallow view of ``source`` restricted to ``image``'s box of interest."""
    view = source.shallow_copy()
    if image.is_boxed:
        view.set_box_of_interest(image.box_lower, image.box_upper)
    return view


def _check_reference(image: Image, reference: Image) -> None:
    if tuple(reference.dimension_sizes) != tuple(image.dimension_sizes):
        raise ValueError(
            f"Reference size {tuple(reference.dimension_sizes)} does not match "
            f"image size {tuple(image.dimension_sizes)}"
        )


class MaximumSeparabilityThresholdingFilter(Filter):
    """Global maximum-separability thresholding.

    The histogram is taken over the image's active box (or the same box of the
    reference image, if one is given). Pixels at or above the chosen level become
    1.0 and the rest 0.0; with ``binary=False`` foreground pixels keep their value.
    """

    def __init__(self, config: Optional[ThresholdConfig] = None, binary: Optional[bool] = None, params=None):
        super().__init__(params)
        self.config = config or ThresholdConfig()
        self.binary = self._param_bool("binary", self.config.binary) if binary is None else binary
        self.last_threshold: Optional[int] = None

    def apply(self, image: WritableImage, reference: Optional[Image] = None) -> None:
        self._require_writable(image)
        source = image
        if reference is not None:
            _check_reference(image, reference)
            source = reference

        threshold = compute_threshold(Histogram(_boxed_like(source, image)))
        self.last_threshold = threshold

        box = image.box_slices()
        values = np.array(source.array()[box])
        foreground = (values >= threshold) & (values > 0)
        if self.binary:
            image.array()[box] = foreground.astype(image.pixel_data.dtype)
        else:
            image.array()[box] = np.where(foreground, values, 0)

        logger.info(
            f"Maximum separability threshold {threshold}: "
            f"{int(foreground.sum())}/{foreground.size} pixels foreground"
        )


def _window_starts(length: int, window: int, stride: int) -> List[int]:
    if window >= length:
        return [0]
    starts = list(range(0, length - window + 1, stride))
    if starts[-1] + window < length:
        starts.append(length - window)
    return starts


class LocalMaximumSeparabilityThresholdingFilter(Filter):
    """Windowed maximum-separability thresholding.

    Square XY windows of ``window_size`` pixels slide over each plane with the
    configured fractional ``overlap``; the last window in each row and column is
    aligned to the image edge. Each window is thresholded on its own pixels, and a
    pixel becomes foreground when at least half of the windows covering it mark it
    as foreground.
    """

    def __init__(
        self,
        config: Optional[ThresholdConfig] = None,
        window_size: Optional[int] = None,
        overlap: Optional[float] = None,
        params=None,
    ):
        super().__init__(params)
        self.config = config or ThresholdConfig()
        self.window_size = int(window_size if window_size is not None else self._param_int("window_size", self.config.window_size))
        self.overlap = float(overlap if overlap is not None else self._param_float("overlap", self.config.overlap))
        if self.window_size < 1:
            raise ValueError(f"window_size must be positive, got {self.window_size}")
        if not 0.0 <= self.overlap < 1.0:
            raise ValueError(f"overlap must be in [0, 1), got {self.overlap}")

    @property
    def stride(self) -> int:
        return max(1, int(round(self.window_size * (1.0 - self.overlap))))

    def apply(self, image: WritableImage, reference: Optional[Image] = None) -> None:
        self._require_writable(image)
        source = image
        if reference is not None:
            _check_reference(image, reference)
            source = reference

        lower, upper = image.box_lower, image.box_upper
        values = np.array(source.array())
        result = np.zeros(values.shape, dtype=bool)
        window_view = source.shallow_copy()
        stride = self.stride

        x_starts = [lower.x + s for s in _window_starts(upper.x - lower.x, self.window_size, stride)]
        y_starts = [lower.y + s for s in _window_starts(upper.y - lower.y, self.window_size, stride)]
        window_count = 0

        for t in range(lower.t, upper.t):
            for c in range(lower.c, upper.c):
                for z in range(lower.z, upper.z):
                    votes = np.zeros((upper.x - lower.x, upper.y - lower.y), dtype=np.int32)
                    covered = np.zeros_like(votes)
                    for x0 in x_starts:
                        for y0 in y_starts:
                            x1 = min(x0 + self.window_size, upper.x)
                            y1 = min(y0 + self.window_size, upper.y)
                            window_view.set_box_of_interest((x0, y0, z, c, t), (x1, y1, z + 1, c + 1, t + 1))
                            threshold = compute_threshold(Histogram(window_view))
                            window = values[x0:x1, y0:y1, z, c, t]
                            fg = (window >= threshold) & (window > 0)
                            local = (slice(x0 - lower.x, x1 - lower.x), slice(y0 - lower.y, y1 - lower.y))
                            votes[local] += fg
                            covered[local] += 1
                            window_count += 1
                    plane = 2 * votes >= covered
                    plane &= covered > 0
                    result[lower.x:upper.x, lower.y:upper.y, z, c, t] = plane

        box = image.box_slices()
        image.array()[box] = result[box].astype(image.pixel_data.dtype)
        logger.info(
            f"Local thresholding over {window_count} windows "
            f"(size={self.window_size}, stride={stride}): {int(result[box].sum())} pixels foreground"
        )


class RegionMaximumSeparabilityThresholdingFilter(Filter):
    """Discard dim regions of a label mask by thresholding their mean intensity.

    ``image`` holds labeled regions and the reference holds intensities. The
    per-region mean intensities are thresholded by maximum separability and
    regions below the threshold are removed. The filter only acts when the mean
    foreground intensity is less than five times the mean background intensity,
    i.e. when the segmentation is likely to contain many noise regions.
    """

    def apply(self, image: WritableImage, reference: Optional[Image] = None) -> None:
        self._require_writable(image)
        reference = self._require_reference(reference)
        _check_reference(image, reference)

        labels = np.maximum(np.floor(np.array(image.array())), 0).astype(np.int64)
        intensities = np.array(reference.array(), dtype=np.float64)
        foreground = labels > 0

        if not foreground.any() or foreground.all():
            logger.info("Region thresholding skipped: mask has no background or no foreground")
            return

        fg_mean = float(intensities[foreground].mean())
        bg_mean = float(intensities[~foreground].mean())
        should_apply = fg_mean < _REGION_FILTER_FG_BG_RATIO * bg_mean
        logger.info(
            f"Region thresholding: foreground mean {fg_mean:.3f}, background mean {bg_mean:.3f}, "
            f"apply={should_apply}"
        )
        if not should_apply:
            return

        ids = labels[foreground]
        region_count = int(ids.max())
        sums = np.bincount(ids, weights=intensities[foreground], minlength=region_count + 1)[1:]
        counts = np.bincount(ids, minlength=region_count + 1)[1:]
        means = np.divide(sums, counts, out=np.zeros_like(sums), where=counts > 0)

        mean_image = create_writable((region_count, 1, 1, 1, 1))
        mean_image.array()[:, 0, 0, 0, 0] = means
        MaximumSeparabilityThresholdingFilter(binary=True).apply(mean_image)
        keep = np.concatenate([[False], mean_image.array()[:, 0, 0, 0, 0] > 0])

        removed = ~keep[labels] & foreground
        image.array()[removed] = 0
        logger.info(f"Region thresholding removed {int((~keep[1:] & (counts > 0)).sum())} of {region_count} regions")
