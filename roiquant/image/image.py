"""
Five-dimensional images with a movable box of interest.

An ``Image`` wraps a ``PixelBuffer`` plus metadata. Setting a box of interest
restricts iteration (and the region-oriented helpers) to an axis-aligned
sub-rectangle without copying pixels. ``Image`` is read-only; ``WritableImage``
adds mutation and is what filters operate on.
"""

from __future__ import annotations

import copy as _copy
import itertools
import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from .coordinate import AXES, NUM_DIMENSIONS, AxisLike, Coordinate, axis_index
from .pixel_data import ArrayPixelBuffer, PixelBuffer

logger = logging.getLogger(__name__)

SizesLike = Union[Coordinate, Sequence[int]]


def _as_sizes(sizes: SizesLike) -> Coordinate:
    sizes = Coordinate.from_sequence([int(s) for s in sizes] + [1] * (NUM_DIMENSIONS - len(sizes)))
    if any(s < 1 for s in sizes):
        raise ValueError(f"Dimension sizes must be positive, got {tuple(sizes)}")
    return sizes


def _normalize_axes(axes: str, ndim: int) -> str:
    axes = axes.upper()
    if len(axes) != ndim:
        raise ValueError(f"Axes '{axes}' do not match array with {ndim} dimensions")
    if len(set(axes)) != len(axes) or any(a not in AXES for a in axes):
        raise ValueError(f"Axes must be distinct letters from {AXES}, got '{axes}'")
    return axes


class Image:
    """Read-only five-dimensional image."""

    def __init__(
        self,
        pixel_data: PixelBuffer,
        metadata: Optional[Dict[str, Any]] = None,
        dimension_sizes: Optional[SizesLike] = None,
    ):
        """Initialize the image.

        Args:
            pixel_data: Backing pixel store. It is shared, not copied.
            metadata: Optional metadata dictionary (channel names, pixel size, ...).
            dimension_sizes: Optional dimension-size view no larger than the buffer.
                Defaults to the buffer's own sizes.
        """
        self._pixels = pixel_data
        self._metadata: Dict[str, Any] = dict(metadata) if metadata else {}
        if dimension_sizes is None:
            self._sizes = pixel_data.sizes
        else:
            self._sizes = _as_sizes(dimension_sizes)
            if any(s > b for s, b in zip(self._sizes, pixel_data.sizes)):
                raise ValueError(
                    f"Dimension view {tuple(self._sizes)} exceeds pixel data {tuple(pixel_data.sizes)}"
                )
        self._box_lower: Optional[Coordinate] = None
        self._box_upper: Optional[Coordinate] = None

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_array(
        cls,
        array: np.ndarray,
        axes: str = "YX",
        metadata: Optional[Dict[str, Any]] = None,
        dtype: np.dtype = np.float32,
    ) -> "Image":
        """Create an image from a numpy array.

        Args:
            array: Pixel data.
            axes: Axis letters of ``array`` (e.g. 'YX', 'ZYXC', 'TCZYX').
                Axes not listed get size 1.
            metadata: Optional metadata dictionary.
            dtype: Pixel data type of the new buffer.

        Returns:
            Image: A new image owning a copy of the data.
        """
        array = np.asarray(array)
        axes = _normalize_axes(axes, array.ndim)

        for axis in AXES:
            if axis not in axes:
                array = array[..., np.newaxis]
                axes += axis
        array = np.transpose(array, [axes.index(a) for a in AXES])

        pixels = ArrayPixelBuffer(array.shape, dtype=dtype, data=array.ravel(order="F"))
        return cls(pixels, metadata=metadata)

    def to_array(self, axes: str = "YX") -> np.ndarray:
        """Return a copy of the full image (box of interest ignored) as a numpy array.

        Args:
            axes: Axis letters of the output. Axes left out must have size 1.

        Returns:
            np.ndarray: Pixel data with the requested axis order.
        """
        axes = axes.upper()
        _normalize_axes(axes, len(axes))
        data = self._full_array()
        for axis in AXES:
            if axis not in axes and self._sizes[AXES.index(axis)] != 1:
                raise ValueError(
                    f"Axis {axis} has size {self._sizes[AXES.index(axis)]} and cannot be dropped"
                )
        kept = [AXES.index(a) for a in axes]
        dropped = tuple(i for i in range(NUM_DIMENSIONS) if i not in kept)
        data = np.squeeze(data, axis=dropped) if dropped else data
        remaining = [i for i in range(NUM_DIMENSIONS) if i in kept]
        return np.array(np.transpose(data, [remaining.index(i) for i in kept]))

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def dimension_sizes(self) -> Coordinate:
        return self._sizes

    @property
    def metadata(self) -> Dict[str, Any]:
        return self._metadata

    @property
    def pixel_data(self) -> PixelBuffer:
        return self._pixels

    @property
    def is_boxed(self) -> bool:
        return self._box_lower is not None

    @property
    def box_lower(self) -> Coordinate:
        return self._box_lower if self._box_lower is not None else Coordinate.zero()

    @property
    def box_upper(self) -> Coordinate:
        return self._box_upper if self._box_upper is not None else self._sizes

    @property
    def writable(self) -> bool:
        return False

    # ------------------------------------------------------------------
    # Pixel access
    # ------------------------------------------------------------------

    def in_bounds(self, coord: Sequence[int]) -> bool:
        return len(coord) == NUM_DIMENSIONS and all(0 <= int(v) < s for v, s in zip(coord, self._sizes))

    def get_value(self, coord: Sequence[int]) -> float:
        """Read one pixel.

        Raises:
            IndexError: If the coordinate lies outside the image.
        """
        if not self.in_bounds(coord):
            raise IndexError(f"Coordinate {tuple(coord)} out of bounds for image of size {tuple(self._sizes)}")
        return self._pixels.get(coord)

    def set_value(self, coord: Sequence[int], value: float) -> None:
        raise TypeError("Image is read-only; use a WritableImage")

    def _full_array(self) -> np.ndarray:
        data = self._pixels.array()
        if self._sizes != self._pixels.sizes:
            data = data[tuple(slice(0, s) for s in self._sizes)]
        return data

    def array(self) -> np.ndarray:
        """5D view of the pixels indexed [x, y, z, c, t] (read-only for ``Image``)."""
        view = self._full_array().view()
        view.flags.writeable = False
        return view

    # ------------------------------------------------------------------
    # Box of interest
    # ------------------------------------------------------------------

    def set_box_of_interest(
        self,
        lower: Sequence[int],
        upper: Sequence[int],
        clip_to_bounds: bool = True,
    ) -> None:
        """Restrict iteration to ``lower <= coord < upper``.

        Args:
            lower: Inclusive lower corner (5 components).
            upper: Exclusive upper corner (5 components).
            clip_to_bounds: If True, corners beyond the image extent are clamped,
                which lets callers pass boxes computed from neighborhood arithmetic.
                If False, such corners raise IndexError.
        """
        lower = [int(v) for v in lower]
        upper = [int(v) for v in upper]
        if len(lower) != NUM_DIMENSIONS or len(upper) != NUM_DIMENSIONS:
            raise ValueError("Box corners must have 5 components")

        if clip_to_bounds:
            lower = [min(max(v, 0), s) for v, s in zip(lower, self._sizes)]
            upper = [min(max(v, 0), s) for v, s in zip(upper, self._sizes)]
        else:
            for lo, hi, s in zip(lower, upper, self._sizes):
                if lo < 0 or hi > s or lo > hi:
                    raise IndexError(
                        f"Box {tuple(lower)}-{tuple(upper)} outside image of size {tuple(self._sizes)}"
                    )
        upper = [max(lo, hi) for lo, hi in zip(lower, upper)]
        self._box_lower = Coordinate(*lower)
        self._box_upper = Coordinate(*upper)

    def clear_box_of_interest(self) -> None:
        self._box_lower = None
        self._box_upper = None

    def box_slices(self) -> Tuple[slice, ...]:
        """Numpy slices selecting the active box from ``array()``."""
        return tuple(slice(lo, hi) for lo, hi in zip(self.box_lower, self.box_upper))

    def region_array(self) -> np.ndarray:
        """5D view of the pixels inside the active box."""
        return self.array()[self.box_slices()]

    def region_values(self) -> np.ndarray:
        """Flat copy of the pixel values inside the active box."""
        return np.array(self.region_array(), dtype=np.float64).ravel(order="F")

    # ------------------------------------------------------------------
    # Iteration
    # ------------------------------------------------------------------

    def for_each_coordinate(self) -> Iterator[Coordinate]:
        """Yield every coordinate in the active box exactly once, X varying fastest."""
        lower, upper = self.box_lower, self.box_upper
        ranges = [range(lower[i], upper[i]) for i in reversed(range(NUM_DIMENSIONS))]
        for t, c, z, y, x in itertools.product(*ranges):
            yield Coordinate(x, y, z, c, t)

    def __iter__(self) -> Iterator[Coordinate]:
        return self.for_each_coordinate()

    def size(self) -> int:
        """Number of coordinates in the active box."""
        return int(np.prod([hi - lo for lo, hi in zip(self.box_lower, self.box_upper)]))

    # ------------------------------------------------------------------
    # Copies
    # ------------------------------------------------------------------

    def copy(self) -> "Image":
        """Deep copy: duplicates the pixel buffer. The box of interest is carried over."""
        result = type(self)(self._copy_pixels(), metadata=_copy.deepcopy(self._metadata))
        if self.is_boxed:
            result.set_box_of_interest(self._box_lower, self._box_upper)
        return result

    def shallow_copy(self, dimension_sizes: Optional[SizesLike] = None) -> "Image":
        """Share the pixel buffer with an independent box and dimension-size view."""
        return type(self)(
            self._pixels,
            metadata=self._metadata,
            dimension_sizes=dimension_sizes if dimension_sizes is not None else self._sizes,
        )

    def writable_copy(self) -> "WritableImage":
        return WritableImage(self._copy_pixels(), metadata=_copy.deepcopy(self._metadata))

    def _copy_pixels(self) -> PixelBuffer:
        if self._sizes == self._pixels.sizes:
            return self._pixels.copy()
        return ArrayPixelBuffer(
            self._sizes,
            dtype=self._pixels.dtype,
            byte_order=self._pixels.byte_order,
            data=self._full_array().ravel(order="F"),
        )

    # ------------------------------------------------------------------
    # Splitting and planes
    # ------------------------------------------------------------------

    def split(self, axis: AxisLike) -> List["WritableImage"]:
        """Split into one image per index along ``axis``.

        Args:
            axis: Axis to split along (index or name).

        Returns:
            List[WritableImage]: Deep copies, each of size 1 along ``axis``.
        """
        index = axis_index(axis)
        data = self._full_array()
        images = []
        for i in range(self._sizes[index]):
            selector = [slice(None)] * NUM_DIMENSIONS
            selector[index] = slice(i, i + 1)
            part = data[tuple(selector)]
            pixels = ArrayPixelBuffer(part.shape, dtype=self._pixels.dtype, data=part.ravel(order="F"))
            images.append(WritableImage(pixels, metadata=_copy.deepcopy(self._metadata)))
        return images

    def split_channels(self) -> List["WritableImage"]:
        return self.split("C")

    def sub_image(self, sizes: SizesLike, start: Sequence[int]) -> "WritableImage":
        """Copy the region ``start .. start + sizes`` into a new image.

        Raises:
            IndexError: If the region does not fit in the image.
        """
        sizes = _as_sizes(sizes)
        start = Coordinate.from_sequence(start)
        stop = start.offset(sizes)
        if any(lo < 0 or hi > s for lo, hi, s in zip(start, stop, self._sizes)):
            raise IndexError(f"Sub-image {tuple(start)}+{tuple(sizes)} exceeds image size {tuple(self._sizes)}")
        part = self._full_array()[tuple(slice(lo, hi) for lo, hi in zip(start, stop))]
        pixels = ArrayPixelBuffer(sizes, dtype=self._pixels.dtype, data=part.ravel(order="F"))
        return WritableImage(pixels, metadata=_copy.deepcopy(self._metadata))

    def plane_count(self) -> int:
        """Number of XY planes (Z * C * T)."""
        return self._sizes.z * self._sizes.c * self._sizes.t

    def plane_index(self, index: int) -> Tuple[int, int, int]:
        """(z, c, t) of the ``index``-th XY plane, Z varying fastest."""
        if not 0 <= index < self.plane_count():
            raise IndexError(f"Plane {index} out of range for {self.plane_count()} planes")
        z = index % self._sizes.z
        c = (index // self._sizes.z) % self._sizes.c
        t = index // (self._sizes.z * self._sizes.c)
        return z, c, t

    def select_plane(self, index: int) -> None:
        """Set the box of interest to a single XY plane."""
        z, c, t = self.plane_index(index)
        self.set_box_of_interest(
            (0, 0, z, c, t),
            (self._sizes.x, self._sizes.y, z + 1, c + 1, t + 1),
        )

    def __repr__(self) -> str:
        box = f", box={tuple(self.box_lower)}-{tuple(self.box_upper)}" if self.is_boxed else ""
        return f"{type(self).__name__}(sizes={tuple(self._sizes)}{box})"


class WritableImage(Image):
    """Image that filters may modify in place."""

    @property
    def writable(self) -> bool:
        return True

    def array(self) -> np.ndarray:
        return self._full_array()

    def set_value(self, coord: Sequence[int], value: float) -> None:
        """Write one pixel.

        Raises:
            IndexError: If the coordinate lies outside the image.
        """
        if not self.in_bounds(coord):
            raise IndexError(f"Coordinate {tuple(coord)} out of bounds for image of size {tuple(self._sizes)}")
        self._pixels.set(coord, value)

    def fill(self, value: float) -> None:
        """Set every pixel inside the active box to ``value``."""
        self.array()[self.box_slices()] = value

    def copy_from(self, other: Image) -> None:
        """Overwrite all pixels with those of an equally sized image."""
        if tuple(other.dimension_sizes) != tuple(self._sizes):
            raise ValueError(
                f"Cannot copy image of size {tuple(other.dimension_sizes)} into {tuple(self._sizes)}"
            )
        self.array()[...] = other.array()

    def resize(self, sizes: SizesLike) -> "WritableImage":
        """Return a new image of ``sizes``; overlapping pixels are kept, the rest are 0."""
        sizes = _as_sizes(sizes)
        result = create_writable(sizes, metadata=_copy.deepcopy(self._metadata))
        overlap = tuple(slice(0, min(a, b)) for a, b in zip(sizes, self._sizes))
        result.array()[overlap] = self.array()[overlap]
        return result


def create_image(
    sizes: SizesLike,
    fill: float = 0.0,
    metadata: Optional[Dict[str, Any]] = None,
) -> Image:
    """Create a read-only image of ``sizes`` filled with ``fill``."""
    return Image(ArrayPixelBuffer(_as_sizes(sizes), fill=fill), metadata=metadata)


def create_writable(
    sizes: SizesLike,
    fill: float = 0.0,
    metadata: Optional[Dict[str, Any]] = None,
) -> WritableImage:
    """Create a writable image of ``sizes`` filled with ``fill``."""
    return WritableImage(ArrayPixelBuffer(_as_sizes(sizes), fill=fill), metadata=metadata)
