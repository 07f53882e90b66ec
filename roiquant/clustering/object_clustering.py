"""
Spatial clustering of labeled objects.

Objects (labeled regions) are first grouped by connectivity of a Gaussian-smoothed
copy of the mask, then refined by repeatedly assigning every object to the cluster
whose centroid is nearest, using a Voronoi diagram of the cluster centroids.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np

from ..core.config import ClusteringConfig
from ..core.utils import label_centroids
from ..filters.arithmetic import GaussianFilter
from ..filters.labeling import LabelFilter, relabel_array
from ..image.image import Image, WritableImage
from .voronoi import VoronoiDiagram

logger = logging.getLogger(__name__)


def _labels(image: Image) -> np.ndarray:
    return np.maximum(np.floor(np.array(image.array(), dtype=np.float64)), 0).astype(np.int64)


def _xy_centroids(labels: np.ndarray) -> Dict[int, np.ndarray]:
    return {label: centroid[:2] for label, centroid in label_centroids(labels).items()}


def _first_pixel_labels(objects: np.ndarray, clusters: np.ndarray) -> np.ndarray:
    """Cluster label under the first pixel (scan order, X fastest) of every object."""
    flat_objects = objects.ravel(order="F")
    flat_clusters = clusters.ravel(order="F")
    positive = np.flatnonzero(flat_objects > 0)
    ids, first = np.unique(flat_objects[positive], return_index=True)
    assignment = np.zeros(int(flat_objects.max()) + 1 if flat_objects.size else 1, dtype=np.int64)
    assignment[ids] = flat_clusters[positive[first]]
    return assignment


def gaussian_filter_mask(
    mask: Image,
    width: Optional[int] = None,
    config: Optional[ClusteringConfig] = None,
) -> WritableImage:
    """Smooth a mask after setting every foreground pixel to a constant.

    Args:
        mask: Mask or label image; pixels > 0 are foreground.
        width: Gaussian width in pixels. Defaults to the image width times
            ``config.gaussian_width_fraction``.
        config: Clustering configuration.

    Returns:
        WritableImage: The smoothed copy; ``mask`` is not modified.
    """
    config = config or ClusteringConfig()
    smoothed = mask.writable_copy()
    data = smoothed.array()
    data[data > 0] = config.smoothing_value
    if width is None:
        width = max(1, int(mask.dimension_sizes.x * config.gaussian_width_fraction))
    GaussianFilter(width=width).apply(smoothed)
    return smoothed


@dataclass
class ClusteringResult:
    """Outcome of clustering labeled objects.

    Attributes:
        objects: Objects relabeled 1..N.
        clusters: Same footprint as ``objects``, labeled by cluster 1..K.
        cluster_count: Number of clusters K.
        iterations: Voronoi refinement iterations performed.
    """

    objects: WritableImage
    clusters: WritableImage
    cluster_count: int
    iterations: int = 0


def do_basic_clustering(
    mask: Image,
    smoothed: Optional[Image] = None,
    config: Optional[ClusteringConfig] = None,
) -> ClusteringResult:
    """Group objects whose smoothed footprints touch.

    The smoothed mask is labeled into connected clusters. Foreground pixels not
    covered by any cluster go to the nearest cluster centroid, and every object
    then joins the cluster under its first pixel in scan order so that objects
    are never split. Objects and clusters are both relabeled contiguously.

    Args:
        mask: Label image of objects.
        smoothed: Precomputed ``gaussian_filter_mask(mask)``; computed if None.
        config: Clustering configuration.

    Returns:
        ClusteringResult: Relabeled objects and their clusters.
    """
    if smoothed is None:
        smoothed = gaussian_filter_mask(mask, config=config)

    objects = relabel_array(_labels(mask))

    cluster_image = smoothed.writable_copy()
    LabelFilter().apply(cluster_image)
    clusters = _labels(cluster_image)

    unmapped = (clusters == 0) & (objects > 0)
    centroids = _xy_centroids(clusters)
    if unmapped.any() and centroids:
        ids = np.array(sorted(centroids))
        points = np.array([centroids[i] for i in ids])
        positions = np.nonzero(unmapped)
        distances = np.hypot(
            points[:, 0, np.newaxis] - positions[0],
            points[:, 1, np.newaxis] - positions[1],
        )
        # argmin keeps the lowest cluster id on ties
        clusters[positions] = ids[np.argmin(distances, axis=0)]
        logger.debug(f"Assigned {len(positions[0])} uncovered pixels to their nearest cluster")

    assignment = _first_pixel_labels(objects, clusters)
    clusters = np.where(objects > 0, assignment[objects], 0)
    clusters = relabel_array(clusters)
    cluster_count = int(clusters.max()) if clusters.size else 0

    logger.info(f"Basic clustering grouped {int(objects.max()) if objects.size else 0} objects into {cluster_count} clusters")
    return ClusteringResult(
        objects=WritableImage.from_array(objects, axes="XYZCT", metadata=mask.metadata),
        clusters=WritableImage.from_array(clusters, axes="XYZCT", metadata=mask.metadata),
        cluster_count=cluster_count,
    )


class ObjectClustering:
    """Iterative Voronoi-based clustering of labeled objects."""

    def __init__(self, config: Optional[ClusteringConfig] = None):
        """Initialize the clusterer.

        Args:
            config: Clustering configuration. If None, uses defaults.
        """
        self.config = config or ClusteringConfig()

    def cluster(self, mask: Image, smoothed: Optional[Image] = None) -> ClusteringResult:
        """Cluster the objects of ``mask``.

        Starting from ``do_basic_clustering``, each iteration computes cluster
        centroids as the mean of their objects' centroids, builds a Voronoi
        diagram over them and moves every object to the cluster whose cell holds
        its centroid. Iteration stops when no object moves or after
        ``max_iterations``.

        Args:
            mask: Label image of objects (not modified).
            smoothed: Optional precomputed smoothed mask.

        Returns:
            ClusteringResult: Relabeled objects and final clusters.
        """
        result = do_basic_clustering(mask, smoothed=smoothed, config=self.config)
        objects = _labels(result.objects)
        if not objects.any():
            return result

        object_centroids = _xy_centroids(objects)
        object_ids = np.array(sorted(object_centroids))
        object_points = np.array([object_centroids[i] for i in object_ids])

        assignment = _first_pixel_labels(objects, _labels(result.clusters))[object_ids]
        sizes = result.objects.dimension_sizes
        bounds = (0.0, 0.0, float(sizes.x - 1), float(sizes.y - 1))

        iterations = 0
        for iterations in range(1, self.config.max_iterations + 1):
            cluster_ids = np.unique(assignment)
            seeds = np.array([object_points[assignment == cid].mean(axis=0) for cid in cluster_ids])
            diagram = VoronoiDiagram(seeds, bounds=bounds)
            updated = cluster_ids[diagram.get_region_numbers(object_points) - 1]

            changes = int((updated != assignment).sum())
            assignment = updated
            logger.debug(f"Clustering iteration {iterations}: {changes} objects reassigned, {len(cluster_ids)} clusters")
            if changes == 0:
                break

        lookup = np.zeros(int(objects.max()) + 1, dtype=np.int64)
        lookup[object_ids] = assignment
        clusters = relabel_array(np.where(objects > 0, lookup[objects], 0))
        cluster_count = int(clusters.max())

        logger.info(f"Object clustering finished after {iterations} iterations with {cluster_count} clusters")
        return ClusteringResult(
            objects=result.objects,
            clusters=WritableImage.from_array(clusters, axes="XYZCT", metadata=mask.metadata),
            cluster_count=cluster_count,
            iterations=iterations,
        )


def cluster_objects(mask: Image, config: Optional[ClusteringConfig] = None) -> Tuple[WritableImage, int]:
    """Convenience wrapper returning the cluster image and the cluster count."""
    result = ObjectClustering(config).cluster(mask)
    return result.clusters, result.cluster_count
