"""Unit tests for the BSP Voronoi diagram and the Voronoi filter."""

from __future__ import annotations

import logging

import numpy as np
import pytest

from roiquant.clustering import VoronoiDiagram
from roiquant.filters import ReferenceImageRequiredError, VoronoiFilter
from roiquant.image import Image, WritableImage


def _brute_force(seeds: np.ndarray, point: np.ndarray):
    distances = np.sum((seeds - point) ** 2, axis=1)
    order = np.argsort(distances)
    tie = len(seeds) > 1 and abs(distances[order[0]] - distances[order[1]]) < 1e-9
    return int(order[0]) + 1, tie


def test_single_seed_owns_the_plane() -> None:
    diagram = VoronoiDiagram([(3.0, 4.0)])
    for point in [(0.0, 0.0), (3.0, 4.0), (-50.0, 80.0), (1e4, -1e4)]:
        assert diagram.get_region_number(point) == 1


def test_empty_seeds_raise() -> None:
    with pytest.raises(ValueError):
        VoronoiDiagram([])


def test_square_corners_centroid_is_deterministic() -> None:
    seeds = [(0.0, 0.0), (10.0, 0.0), (0.0, 10.0), (10.0, 10.0)]
    first = VoronoiDiagram(seeds).get_region_number((5.0, 5.0))

    assert 1 <= first <= 4
    for _ in range(5):
        assert VoronoiDiagram(seeds).get_region_number((5.0, 5.0)) == first


def test_square_corners_interior_points() -> None:
    diagram = VoronoiDiagram([(0.0, 0.0), (10.0, 0.0), (0.0, 10.0), (10.0, 10.0)])
    assert diagram.get_region_number((1.0, 2.0)) == 1
    assert diagram.get_region_number((9.0, 1.0)) == 2
    assert diagram.get_region_number((2.0, 8.0)) == 3
    assert diagram.get_region_number((7.0, 7.0)) == 4


def test_matches_brute_force_nearest_seed() -> None:
    rng = np.random.default_rng(1234)
    seeds = rng.uniform(0.0, 100.0, size=(12, 2))
    queries = rng.uniform(0.0, 100.0, size=(400, 2))
    diagram = VoronoiDiagram(seeds)

    for point in queries:
        expected, tie = _brute_force(seeds, point)
        if not tie:
            assert diagram.get_region_number(point) == expected


def test_batch_lookup_matches_single_queries() -> None:
    rng = np.random.default_rng(1234)
    seeds = rng.uniform(0.0, 50.0, size=(8, 2))
    points = rng.uniform(-5.0, 55.0, size=(200, 2))
    diagram = VoronoiDiagram(seeds, bounds=(0.0, 0.0, 50.0, 50.0))

    batch = diagram.get_region_numbers(points)
    assert batch.tolist() == [diagram.get_region_number(p) for p in points]


def test_query_outside_bounds_uses_linear_search() -> None:
    diagram = VoronoiDiagram([(0.0, 0.0), (10.0, 0.0)], bounds=(0.0, 0.0, 10.0, 10.0))
    assert diagram.get_region_number((1000.0, 3.0)) == 2
    assert diagram.get_region_number((-1000.0, 3.0)) == 1


def test_coincident_seeds_warn_and_resolve_to_lowest(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="roiquant.clustering.voronoi"):
        diagram = VoronoiDiagram([(0.0, 0.0), (0.0, 0.0), (10.0, 0.0)])

    assert any("coincide" in record.message for record in caplog.records)
    assert diagram.get_region_number((1.0, 0.5)) == 1
    assert diagram.get_region_number((9.0, 0.5)) == 3


def test_voronoi_filter_partitions_between_reference_regions() -> None:
    labels = np.zeros((10, 20), dtype=np.float32)
    labels[4:6, 2:4] = 3
    labels[4:6, 16:18] = 7
    image = WritableImage.from_array(np.zeros((10, 20)), axes="YX")

    VoronoiFilter().apply(image, Image.from_array(labels, axes="YX"))
    result = image.to_array("YX")

    assert (result[:, :9] == 3).all()
    assert (result[:, 11:] == 7).all()
    assert (result[:, 9:11] == 0).all()


def test_voronoi_filter_requires_reference() -> None:
    with pytest.raises(ReferenceImageRequiredError):
        VoronoiFilter().apply(WritableImage.from_array(np.zeros((4, 4))))


def test_query_on_bisector_goes_to_first_seed() -> None:
    diagram = VoronoiDiagram([(0.0, 0.0), (10.0, 0.0)], bounds=(0.0, 0.0, 10.0, 10.0))
    assert diagram.get_region_number((5.0, 3.0)) == 1
    assert diagram.get_region_numbers(np.array([[5.0, 3.0], [5.0, 0.0]])).tolist() == [1, 1]
