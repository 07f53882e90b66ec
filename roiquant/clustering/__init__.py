"""Voronoi partitioning and spatial clustering of labeled objects."""

from .voronoi import VoronoiDiagram
from .object_clustering import (
    ClusteringResult,
    ObjectClustering,
    cluster_objects,
    do_basic_clustering,
    gaussian_filter_mask,
)

__all__ = [
    "VoronoiDiagram",
    "ClusteringResult",
    "ObjectClustering",
    "cluster_objects",
    "do_basic_clustering",
    "gaussian_filter_mask",
]
