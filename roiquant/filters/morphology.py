"""
Binary morphology: structuring elements, erosion, dilation, opening and closing.

Each operation reads from a snapshot of the input taken at the start of
``apply`` and writes only inside the image's active box of interest. The
structuring element footprint is clipped to the image, so neighbours that fall
outside the image are skipped rather than treated as background. For erosion
this lets border pixels survive when every in-image neighbour is foreground.
"""

from __future__ import annotations

import itertools
import logging
from typing import Optional, Sequence, Union

import numpy as np

from ..core.config import MorphologyConfig
from ..image.coordinate import NUM_DIMENSIONS, Coordinate, axis_index
from ..image.image import Image, WritableImage
from .base import Filter

logger = logging.getLogger(__name__)


class StructuringElement:
    """Dense 5D kernel of weights centered on a pixel.

    Every extent must be odd; an extent of 1 makes that dimension inactive.
    Offsets passed to ``get_value``/``set_value`` are relative to the center.
    """

    def __init__(self, sizes: Union[Coordinate, Sequence[int]], fill: float = 1.0):
        sizes = Coordinate.from_sequence(list(sizes) + [1] * (NUM_DIMENSIONS - len(sizes)))
        if any(s < 1 or s % 2 == 0 for s in sizes):
            raise ValueError(f"Structuring element extents must be odd and positive, got {tuple(sizes)}")
        self._sizes = sizes
        self._weights = np.full(tuple(sizes), float(fill), dtype=np.float64)

    @classmethod
    def default(cls, dimensions: Sequence[Union[str, int]] = ("X", "Y"), size: int = 3) -> "StructuringElement":
        """Hypercube of side ``size`` and weight 1.0 over ``dimensions``, extent 1 elsewhere."""
        sizes = [1] * NUM_DIMENSIONS
        for dim in dimensions:
            sizes[axis_index(dim)] = size
        return cls(sizes, fill=1.0)

    @classmethod
    def from_array(cls, weights: np.ndarray, axes: str = "YX") -> "StructuringElement":
        """Build a structuring element from a numpy kernel with the given axes."""
        image = Image.from_array(weights, axes=axes, dtype=np.float64)
        element = cls(image.dimension_sizes)
        element._weights[...] = image.array()
        return element

    @property
    def sizes(self) -> Coordinate:
        return self._sizes

    @property
    def half_sizes(self) -> Coordinate:
        return Coordinate(*((s - 1) // 2 for s in self._sizes))

    @property
    def weights(self) -> np.ndarray:
        return self._weights

    def _index(self, offset: Sequence[int]) -> tuple:
        index = tuple(int(o) + h for o, h in zip(offset, self.half_sizes))
        if any(not 0 <= i < s for i, s in zip(index, self._sizes)):
            raise IndexError(f"Offset {tuple(offset)} outside structuring element of size {tuple(self._sizes)}")
        return index

    def get_value(self, offset: Sequence[int]) -> float:
        return float(self._weights[self._index(offset)])

    def set_value(self, offset: Sequence[int], value: float) -> None:
        self._weights[self._index(offset)] = value

    def active_offsets(self):
        """Yield every offset (relative to center) with a positive weight."""
        half = self.half_sizes
        for index in itertools.product(*(range(s) for s in self._sizes)):
            if self._weights[index] > 0:
                yield tuple(i - h for i, h in zip(index, half))

    def __repr__(self) -> str:
        return f"StructuringElement(sizes={tuple(self._sizes)})"


def _neighbourhood_combine(mask: np.ndarray, element: StructuringElement, erode: bool) -> np.ndarray:
    """Combine every positively weighted neighbour of each pixel.

    Out-of-image neighbours are padded with the identity of the combination
    (True for erosion's AND, False for dilation's OR), which skips them.
    """
    half = element.half_sizes
    padded = np.pad(mask, [(h, h) for h in half], mode="constant", constant_values=erode)

    result = np.ones_like(mask) if erode else np.zeros_like(mask)
    for offset in element.active_offsets():
        window = tuple(slice(h + o, h + o + n) for h, o, n in zip(half, offset, mask.shape))
        if erode:
            result &= padded[window]
        else:
            result |= padded[window]
    return result


class _BinaryMorphologyFilter(Filter):
    """Shared state for filters driven by a structuring element."""

    def __init__(
        self,
        structuring_element: Optional[StructuringElement] = None,
        config: Optional[MorphologyConfig] = None,
        params=None,
    ):
        super().__init__(params)
        self.config = config or MorphologyConfig()
        self.structuring_element = structuring_element or StructuringElement.default(
            self.config.dimensions, self.config.size
        )
        # Grayscale morphology is not implemented; every image is processed as binary.
        self.process_as_binary = True

    def _morph(self, image: WritableImage, erode: bool) -> None:
        self._require_writable(image)
        snapshot = np.array(image.array()) > 0
        result = _neighbourhood_combine(snapshot, self.structuring_element, erode)

        box = image.box_slices()
        image.array()[box] = result[box].astype(image.pixel_data.dtype)

    def __repr__(self) -> str:
        return f"{self.name}({self.structuring_element!r})"


class ErosionFilter(_BinaryMorphologyFilter):
    """Binary erosion.

    A pixel stays foreground only if every in-image neighbour under a positive
    structuring-element weight is foreground; the center counts only when its
    own weight is positive. Output pixels are 1.0 or 0.0.
    """

    def apply(self, image: WritableImage, reference: Optional[Image] = None) -> None:
        self._morph(image, erode=True)


class DilationFilter(_BinaryMorphologyFilter):
    """Binary dilation: foreground if any neighbour under a positive weight is foreground."""

    def apply(self, image: WritableImage, reference: Optional[Image] = None) -> None:
        self._morph(image, erode=False)


class OpeningFilter(_BinaryMorphologyFilter):
    """Erosion followed by dilation with the same structuring element.

    Removes foreground structures smaller than the element while restoring the
    shape of those that survive.
    """

    def apply(self, image: WritableImage, reference: Optional[Image] = None) -> None:
        self._morph(image, erode=True)
        self._morph(image, erode=False)


class ClosingFilter(_BinaryMorphologyFilter):
    """Dilation followed by erosion with the same structuring element."""

    def apply(self, image: WritableImage, reference: Optional[Image] = None) -> None:
        self._morph(image, erode=False)
        self._morph(image, erode=True)
