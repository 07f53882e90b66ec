"""
Pixel storage backends.

Core algorithms depend only on the ``PixelBuffer`` capability: get/set a pixel by
5D index, a writable 5D array view, and raw plane bytes for file I/O.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence

import numpy as np

from .coordinate import AXES, NUM_DIMENSIONS, Coordinate

logger = logging.getLogger(__name__)

DEFAULT_DIMENSION_ORDER = "XYZCT"


class PixelBuffer(ABC):
    """Abstract dense pixel store addressed by (x, y, z, c, t)."""

    @property
    @abstractmethod
    def sizes(self) -> Coordinate:
        ...

    @property
    @abstractmethod
    def dimension_order(self) -> str:
        ...

    @property
    @abstractmethod
    def dtype(self) -> np.dtype:
        ...

    @property
    @abstractmethod
    def byte_order(self) -> str:
        ...

    @abstractmethod
    def get(self, coord: Sequence[int]) -> float:
        ...

    @abstractmethod
    def set(self, coord: Sequence[int], value: float) -> None:
        ...

    @abstractmethod
    def array(self) -> np.ndarray:
        """Writable 5D view of the pixels indexed [x, y, z, c, t]."""

    @abstractmethod
    def get_plane(self, z: int, c: int, t: int) -> bytes:
        ...

    @abstractmethod
    def set_plane(self, z: int, c: int, t: int, data: bytes) -> None:
        ...

    @abstractmethod
    def copy(self) -> "PixelBuffer":
        ...


class ArrayPixelBuffer(PixelBuffer):
    """Flat strided numpy storage.

    Pixels live in a single 1D array. The dimension order string gives the memory
    layout with its first letter varying fastest, so the default "XYZCT" stores
    each XY plane contiguously with X as the inner index.
    """

    def __init__(
        self,
        sizes: Sequence[int],
        dimension_order: str = DEFAULT_DIMENSION_ORDER,
        dtype: np.dtype = np.float32,
        byte_order: str = "<",
        fill: float = 0.0,
        data: Optional[np.ndarray] = None,
    ):
        """Initialize the buffer.

        Args:
            sizes: Dimension sizes in XYZCT order; missing trailing sizes default to 1.
            dimension_order: Memory layout, a permutation of "XYZCT".
            dtype: Pixel data type.
            byte_order: '<' (little endian) or '>' (big endian), used for plane bytes.
            fill: Initial value of every pixel when ``data`` is not given.
            data: Optional flat array in the given dimension order to adopt (not copied).
        """
        sizes = list(sizes) + [1] * (NUM_DIMENSIONS - len(sizes))
        if len(sizes) != NUM_DIMENSIONS or any(int(s) < 1 for s in sizes):
            raise ValueError(f"Dimension sizes must be {NUM_DIMENSIONS} positive integers, got {sizes}")
        order = dimension_order.upper()
        if sorted(order) != sorted(AXES):
            raise ValueError(f"Dimension order must be a permutation of {AXES}, got '{dimension_order}'")
        if byte_order not in ("<", ">"):
            raise ValueError(f"Byte order must be '<' or '>', got '{byte_order}'")

        self._sizes = Coordinate(*(int(s) for s in sizes))
        self._order = order
        self._byte_order = byte_order
        self._dtype = np.dtype(dtype)

        count = int(np.prod(self._sizes))
        if data is None:
            self._flat = np.full(count, fill, dtype=self._dtype)
        else:
            flat = np.asarray(data, dtype=self._dtype).reshape(-1)
            if flat.size != count:
                raise ValueError(f"Data has {flat.size} elements, expected {count}")
            self._flat = flat

        # Fortran-order reshape makes the first letter of the order the fastest index
        shape_in_order = tuple(self._sizes[AXES.index(a)] for a in order)
        permutation = tuple(order.index(a) for a in AXES)
        self._view = self._flat.reshape(shape_in_order, order="F").transpose(permutation)

    @property
    def sizes(self) -> Coordinate:
        return self._sizes

    @property
    def dimension_order(self) -> str:
        return self._order

    @property
    def dtype(self) -> np.dtype:
        return self._dtype

    @property
    def byte_order(self) -> str:
        return self._byte_order

    @property
    def flat(self) -> np.ndarray:
        return self._flat

    def get(self, coord: Sequence[int]) -> float:
        return float(self._view[tuple(coord)])

    def set(self, coord: Sequence[int], value: float) -> None:
        self._view[tuple(coord)] = value

    def array(self) -> np.ndarray:
        return self._view

    def get_plane(self, z: int, c: int, t: int) -> bytes:
        """Return one XY plane as bytes (Y rows of X pixels) in the buffer byte order."""
        plane = self._view[:, :, z, c, t].T
        return np.ascontiguousarray(plane, dtype=self._dtype.newbyteorder(self._byte_order)).tobytes()

    def set_plane(self, z: int, c: int, t: int, data: bytes) -> None:
        sx, sy = self._sizes.x, self._sizes.y
        plane = np.frombuffer(data, dtype=self._dtype.newbyteorder(self._byte_order))
        if plane.size != sx * sy:
            raise ValueError(f"Plane data has {plane.size} pixels, expected {sx * sy}")
        self._view[:, :, z, c, t] = plane.reshape(sy, sx).T

    def copy(self) -> "ArrayPixelBuffer":
        return ArrayPixelBuffer(
            self._sizes,
            dimension_order=self._order,
            dtype=self._dtype,
            byte_order=self._byte_order,
            data=self._flat.copy(),
        )

    def __repr__(self) -> str:
        return (
            f"ArrayPixelBuffer(sizes={tuple(self._sizes)}, order='{self._order}', "
            f"dtype={self._dtype}, byte_order='{self._byte_order}')"
        )
