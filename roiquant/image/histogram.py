"""
Integer-level intensity histograms.

A ``Histogram`` is an immutable snapshot of the pixels inside an image's active
box. Each pixel contributes to level ``floor(value)``; negative pixels are
excluded from every statistic and reported once with a warning.
"""

from __future__ import annotations

import logging

import numpy as np

from .image import Image

logger = logging.getLogger(__name__)


def _safe_divide(numerator: float, denominator: float) -> float:
    return float(numerator) / float(denominator) if denominator > 0 else 0.0


class Histogram:
    """Counts per integer level plus summary statistics.

    Attributes:
        counts: Number of pixels at each level 0..max_value.
        cumulative_counts: Inclusive running sum of ``counts``.
        total_counts: Number of non-negative pixels visited.
        max_value: Highest level present (0 for empty or all-zero images).
        min_value: Lowest level present.
        min_value_nonzero: Lowest positive level present (0 if none).
        mean: Mean of the non-negative pixel values.
        mean_nonzero: Mean level of the strictly positive pixels.
        variance: Variance of the levels over all non-negative pixels.
        variance_nonzero: Variance of the positive levels about ``mean_nonzero``.
        mode: Most frequent positive level (lowest wins ties; 0 if none).
        counts_at_mode: Pixel count at ``mode``.
    """

    def __init__(self, image: Image):
        values = image.region_values()

        negative = values < 0
        if negative.any():
            logger.warning(
                f"Histogram skipped {int(negative.sum())} negative pixel value(s); "
                f"minimum was {float(values.min())}"
            )
            values = values[~negative]

        self.total_counts = int(values.size)
        levels = np.floor(values).astype(np.int64)
        self.max_value = int(levels.max()) if levels.size else 0
        self.counts = np.bincount(levels, minlength=self.max_value + 1).astype(np.int64)
        self.cumulative_counts = np.cumsum(self.counts)

        index = np.arange(self.max_value + 1, dtype=np.float64)
        nonzero_total = self.total_counts - int(self.counts[0])

        self.mean = _safe_divide(values.sum(), self.total_counts)
        self.mean_nonzero = _safe_divide((index[1:] * self.counts[1:]).sum(), nonzero_total)
        self.variance = _safe_divide((((index - self.mean) ** 2) * self.counts).sum(), self.total_counts)
        self.variance_nonzero = _safe_divide(
            (((index[1:] - self.mean_nonzero) ** 2) * self.counts[1:]).sum(), nonzero_total
        )

        present = np.flatnonzero(self.counts)
        self.min_value = int(present[0]) if present.size else 0
        positive = present[present > 0]
        self.min_value_nonzero = int(positive[0]) if positive.size else 0

        if nonzero_total > 0:
            self.mode = int(np.argmax(self.counts[1:])) + 1
            self.counts_at_mode = int(self.counts[self.mode])
        else:
            self.mode = 0
            self.counts_at_mode = 0

    @property
    def nonzero_counts(self) -> int:
        return self.total_counts - int(self.counts[0])

    def get_counts(self, level: int) -> int:
        """Pixel count at ``level`` (0 for levels outside 0..max_value)."""
        if 0 <= level <= self.max_value:
            return int(self.counts[level])
        return 0

    def get_cumulative_counts(self, level: int) -> int:
        """Number of pixels at or below ``level``."""
        if level < 0:
            return 0
        return int(self.cumulative_counts[min(level, self.max_value)])

    @staticmethod
    def find_max_from_image(image: Image) -> int:
        """Highest integer level among the non-negative pixels in the active box."""
        values = image.region_values()
        values = values[values >= 0]
        return int(np.floor(values.max())) if values.size else 0

    def __repr__(self) -> str:
        return (
            f"Histogram(total={self.total_counts}, max={self.max_value}, "
            f"mean={self.mean:.3f}, mode={self.mode})"
        )
