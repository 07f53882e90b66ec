"""
Voronoi partition of the plane by binary space partitioning.

Each seed pair contributes its perpendicular bisector as a cut, inserted in
order of increasing pair distance. Every BSP leaf tracks the seeds that can
still be nearest inside it; a bisector splits only leaves where both of its
seeds are still candidates, and the far seed is dropped from each side. Once
all pairs are inserted each leaf has a single candidate, which becomes its
1-indexed label.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Set, Tuple

import numpy as np

logger = logging.getLogger(__name__)

# =============================================================================
# Module-level constants
# =============================================================================
_PERTURBATION = 1e-6  # Offset used to nudge queries off cell boundaries
_RELATIVE_TOLERANCE = 1e-12  # Side-of-line tolerance relative to the bounds scale
_BOUNDS_PADDING = 10.0  # Default bounds extend this many seed spans past the seeds


class _Node:
    """BSP node: a convex cell, and once split, the cutting line and children."""

    __slots__ = ("polygon", "candidates", "normal", "offset", "negative", "positive")

    def __init__(self, polygon: np.ndarray, candidates: Set[int]):
        self.polygon = polygon
        self.candidates = candidates
        self.normal: Optional[np.ndarray] = None
        self.offset = 0.0
        self.negative: Optional["_Node"] = None
        self.positive: Optional["_Node"] = None

    @property
    def is_leaf(self) -> bool:
        return self.normal is None

    @property
    def label(self) -> int:
        """1-indexed seed label, or 0 while more than one candidate remains."""
        if len(self.candidates) == 1:
            return next(iter(self.candidates)) + 1
        return 0

    def side(self, point: np.ndarray) -> float:
        return float(np.dot(self.normal, point) - self.offset)


def _clip_polygon(polygon: np.ndarray, normal: np.ndarray, offset: float, keep_negative: bool) -> np.ndarray:
    """Clip a convex polygon to one side of the line ``normal . p = offset``."""
    distances = polygon @ normal - offset
    if not keep_negative:
        distances = -distances

    clipped: List[np.ndarray] = []
    count = len(polygon)
    for k in range(count):
        current, following = polygon[k], polygon[(k + 1) % count]
        d_current, d_following = distances[k], distances[(k + 1) % count]
        if d_current <= 0:
            clipped.append(current)
        if (d_current < 0 < d_following) or (d_following < 0 < d_current):
            fraction = d_current / (d_current - d_following)
            clipped.append(current + fraction * (following - current))
    return np.array(clipped, dtype=np.float64).reshape(-1, 2)


class VoronoiDiagram:
    """Nearest-seed lookup over a set of 2D points.

    Args:
        seeds: Sequence of (x, y) seed positions. Seed ``k`` gets label ``k + 1``.
        bounds: Optional (xmin, ymin, xmax, ymax) of the region that will be
            queried. It is enlarged to include every seed. Queries outside the
            bounds fall back to a linear nearest-seed search.

    Raises:
        ValueError: If no seeds are given.
    """

    def __init__(
        self,
        seeds: Sequence[Sequence[float]],
        bounds: Optional[Tuple[float, float, float, float]] = None,
    ):
        self.seeds = np.asarray(seeds, dtype=np.float64).reshape(-1, 2)
        if len(self.seeds) == 0:
            raise ValueError("VoronoiDiagram requires at least one seed")

        low = self.seeds.min(axis=0)
        high = self.seeds.max(axis=0)
        if bounds is None:
            pad = _BOUNDS_PADDING * max(float((high - low).max()), 1.0)
            low, high = low - pad, high + pad
        else:
            low = np.minimum(low, [bounds[0], bounds[1]]) - 1.0
            high = np.maximum(high, [bounds[2], bounds[3]]) + 1.0
        self.lower = low
        self.upper = high
        self._tolerance = _RELATIVE_TOLERANCE * max(float((high - low).max()), 1.0)

        box = np.array([[low[0], low[1]], [high[0], low[1]], [high[0], high[1]], [low[0], high[1]]])
        self._root = _Node(box, set(range(len(self.seeds))))
        self._leaf_count = 1
        self._build()

    @property
    def seed_count(self) -> int:
        return len(self.seeds)

    @property
    def leaf_count(self) -> int:
        return self._leaf_count

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def _build(self) -> None:
        n = len(self.seeds)
        pairs = [(i, j) for i in range(n) for j in range(i + 1, n)]
        distances = [float(np.sum((self.seeds[i] - self.seeds[j]) ** 2)) for i, j in pairs]
        order = sorted(range(len(pairs)), key=lambda k: (distances[k], pairs[k]))

        for k in order:
            i, j = pairs[k]
            if distances[k] == 0.0:
                logger.warning(f"Seeds {i + 1} and {j + 1} coincide; their cell stays unresolved")
                continue
            self._insert_bisector(i, j)

        logger.debug(f"Voronoi BSP built: {n} seeds, {len(pairs)} bisectors, {self._leaf_count} leaves")

    def _insert_bisector(self, i: int, j: int) -> None:
        # Points p with normal . p <= offset are at least as close to seed i as to seed j
        si, sj = self.seeds[i], self.seeds[j]
        normal = sj - si
        offset = float(np.dot(sj, sj) - np.dot(si, si)) / 2.0
        self._cut(self._root, i, j, normal, offset)

    def _cut(self, node: _Node, i: int, j: int, normal: np.ndarray, offset: float) -> None:
        if not node.is_leaf:
            if i in node.candidates and j in node.candidates:
                self._cut(node.negative, i, j, normal, offset)
                self._cut(node.positive, i, j, normal, offset)
            return

        if i not in node.candidates or j not in node.candidates:
            return

        distances = node.polygon @ normal - offset
        if distances.max() <= self._tolerance:
            node.candidates.discard(j)
            return
        if distances.min() >= -self._tolerance:
            node.candidates.discard(i)
            return

        node.normal = normal
        node.offset = offset
        node.negative = _Node(
            _clip_polygon(node.polygon, normal, offset, keep_negative=True),
            node.candidates - {j},
        )
        node.positive = _Node(
            _clip_polygon(node.polygon, normal, offset, keep_negative=False),
            node.candidates - {i},
        )
        self._leaf_count += 1

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _inside_bounds(self, point: np.ndarray) -> bool:
        return bool(np.all(point >= self.lower) and np.all(point <= self.upper))

    def _walk(self, point: np.ndarray) -> int:
        if not self._inside_bounds(point):
            return 0
        node = self._root
        while not node.is_leaf:
            node = node.negative if node.side(point) <= 0 else node.positive
        return node.label

    def nearest_seed(self, point: Sequence[float]) -> int:
        """Linear nearest-seed search; ties go to the lowest label."""
        point = np.asarray(point, dtype=np.float64)
        distances = np.sum((self.seeds - point) ** 2, axis=1)
        return int(np.argmin(distances)) + 1

    def get_region_number(self, point: Sequence[float]) -> int:
        """Return the 1-indexed label of the seed whose cell contains ``point``.

        Points on a cell boundary resolve to the cell on the near side of the
        first cut separating them. An untagged leaf is retried with the point
        nudged by a small epsilon along +x, +y, -x and -y in turn, and then
        resolved by linear nearest-seed search. The result is deterministic.
        """
        point = np.asarray(point, dtype=np.float64)
        label = self._walk(point)
        if label:
            return label

        for delta in ((_PERTURBATION, 0.0), (0.0, _PERTURBATION), (-_PERTURBATION, 0.0), (0.0, -_PERTURBATION)):
            label = self._walk(point + delta)
            if label:
                return label

        label = self.nearest_seed(point)
        logger.debug(f"Voronoi query {tuple(point)} resolved by linear search to region {label}")
        return label

    def get_region_numbers(self, points: np.ndarray) -> np.ndarray:
        """Vectorized ``get_region_number`` for an (N, 2) array of points."""
        points = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        labels = np.zeros(len(points), dtype=np.int64)
        inside = np.all((points >= self.lower) & (points <= self.upper), axis=1)

        stack = [(self._root, np.flatnonzero(inside))]
        while stack:
            node, indices = stack.pop()
            if indices.size == 0:
                continue
            if node.is_leaf:
                labels[indices] = node.label
                continue
            negative = points[indices] @ node.normal - node.offset <= 0
            stack.append((node.negative, indices[negative]))
            stack.append((node.positive, indices[~negative]))

        for k in np.flatnonzero(labels == 0):
            labels[k] = self.get_region_number(points[k])
        return labels

    def __repr__(self) -> str:
        return f"VoronoiDiagram(seeds={self.seed_count}, leaves={self._leaf_count})"
