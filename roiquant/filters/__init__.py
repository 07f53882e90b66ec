"""Image filters and filter pipelines."""

from .base import Filter, FilterPipeline, ReferenceImageRequiredError
from .morphology import (
    StructuringElement,
    ErosionFilter,
    DilationFilter,
    OpeningFilter,
    ClosingFilter,
)
from .thresholding import (
    compute_threshold,
    MaximumSeparabilityThresholdingFilter,
    LocalMaximumSeparabilityThresholdingFilter,
    RegionMaximumSeparabilityThresholdingFilter,
)
from .labeling import LabelFilter, Label3DFilter, RelabelFilter, relabel_array
from .size import SizeAbsoluteFilter, FillFilter, ConvexHullByLabelFilter
from .arithmetic import MaskFilter, ImageSubtractionFilter, GaussianFilter, BandpassFilter
from .background import (
    estimate_background,
    BackgroundEstimationFilter,
    LocalBackgroundEstimationFilter,
)
from .normalization import GradientFilter, PlaneNormalizationFilter, RenormalizationFilter
from .voronoi_filter import VoronoiFilter

__all__ = [
    # Filter capability
    "Filter",
    "FilterPipeline",
    "ReferenceImageRequiredError",

    # Morphology
    "StructuringElement",
    "ErosionFilter",
    "DilationFilter",
    "OpeningFilter",
    "ClosingFilter",

    # Thresholding
    "compute_threshold",
    "MaximumSeparabilityThresholdingFilter",
    "LocalMaximumSeparabilityThresholdingFilter",
    "RegionMaximumSeparabilityThresholdingFilter",

    # Labeling
    "LabelFilter",
    "Label3DFilter",
    "RelabelFilter",
    "relabel_array",

    # Size and shape
    "SizeAbsoluteFilter",
    "FillFilter",
    "ConvexHullByLabelFilter",

    # Arithmetic and smoothing
    "MaskFilter",
    "ImageSubtractionFilter",
    "GaussianFilter",
    "BandpassFilter",

    # Background and normalization
    "estimate_background",
    "BackgroundEstimationFilter",
    "LocalBackgroundEstimationFilter",
    "GradientFilter",
    "PlaneNormalizationFilter",
    "RenormalizationFilter",

    # Tessellation
    "VoronoiFilter",
]
