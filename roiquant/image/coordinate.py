"""
Five-dimensional pixel coordinates.

Coordinates are small immutable value types indexed in XYZCT order:
- X: Width
- Y: Height
- Z: Z-slices (depth)
- C: Channels
- T: Timepoints
"""

from __future__ import annotations

from typing import NamedTuple, Sequence, Union

X = 0
Y = 1
Z = 2
C = 3
T = 4

AXES = "XYZCT"
NUM_DIMENSIONS = len(AXES)

AxisLike = Union[int, str]


def axis_index(axis: AxisLike) -> int:
    """Resolve an axis given by index or by symbolic name.

    Args:
        axis: Integer index in 0..4 or one of 'X', 'Y', 'Z', 'C', 'T' (case-insensitive).

    Returns:
        int: The axis index.

    Raises:
        ValueError: If the axis is not recognized.
    """
    if isinstance(axis, str):
        name = axis.upper()
        if len(name) != 1 or name not in AXES:
            raise ValueError(f"Unknown axis '{axis}'. Valid axes: {list(AXES)}")
        return AXES.index(name)
    index = int(axis)
    if not 0 <= index < NUM_DIMENSIONS:
        raise ValueError(f"Axis index out of range: {axis}")
    return index


class Coordinate(NamedTuple):
    """An (x, y, z, c, t) index into an image."""

    x: int = 0
    y: int = 0
    z: int = 0
    c: int = 0
    t: int = 0

    @classmethod
    def zero(cls) -> "Coordinate":
        return cls(0, 0, 0, 0, 0)

    @classmethod
    def from_sequence(cls, values: Sequence[int]) -> "Coordinate":
        """Build a coordinate from up to five integers; missing trailing axes are 0."""
        values = [int(v) for v in values]
        if len(values) > NUM_DIMENSIONS:
            raise ValueError(f"Expected at most {NUM_DIMENSIONS} components, got {len(values)}")
        values.extend([0] * (NUM_DIMENSIONS - len(values)))
        return cls(*values)

    def get(self, axis: AxisLike) -> int:
        return self[axis_index(axis)]

    def with_axis(self, axis: AxisLike, value: int) -> "Coordinate":
        """Return a copy of this coordinate with one component replaced."""
        values = list(self)
        values[axis_index(axis)] = int(value)
        return Coordinate(*values)

    def offset(self, other: Sequence[int]) -> "Coordinate":
        """Component-wise sum with another 5-sequence."""
        return Coordinate(*(a + int(b) for a, b in zip(self, other)))
