"""
roiquant: Segmentation and region quantification for 5D fluorescence microscopy images.

Images are (X, Y, Z, C, T) pixel arrays processed in place by composable filters
(thresholding, morphology, labeling, size and shape cleanup, Voronoi clustering)
and summarized per region by metrics.
"""

__version__ = "0.1.0"

# Core utilities
from .core import AnalysisConfig, ParameterDictionary, setup_logging

# Data model
from .image import (
    Coordinate,
    Image,
    WritableImage,
    ArrayPixelBuffer,
    Histogram,
    ImageSet,
    create_image,
    create_writable,
)

# Filters
from .filters import (
    Filter,
    FilterPipeline,
    ReferenceImageRequiredError,
    StructuringElement,
    ErosionFilter,
    DilationFilter,
    OpeningFilter,
    ClosingFilter,
    MaximumSeparabilityThresholdingFilter,
    LocalMaximumSeparabilityThresholdingFilter,
    LabelFilter,
    RelabelFilter,
    SizeAbsoluteFilter,
    FillFilter,
    ConvexHullByLabelFilter,
    BackgroundEstimationFilter,
    RenormalizationFilter,
)

# Clustering
from .clustering import VoronoiDiagram, ObjectClustering

# Quantification
from .metric import (
    Measurement,
    Quantification,
    IntensityPerPixelMetric,
    AreaAndPerimeterMetric,
    BackgroundMetric,
    ZeroMetric,
    quantify_or_zero,
)

# I/O
from .io import ImageReader, ImageWriter, FileLockManager, ConnectionLimiter

__all__ = [
    # Version
    "__version__",
    
    # Core utilities
    "AnalysisConfig",
    "ParameterDictionary",
    "setup_logging",
    
    # Data model
    "Coordinate",
    "Image",
    "WritableImage",
    "ArrayPixelBuffer",
    "Histogram",
    "ImageSet",
    "create_image",
    "create_writable",
    
    # Filters
    "Filter",
    "FilterPipeline",
    "ReferenceImageRequiredError",
    "StructuringElement",
    "ErosionFilter",
    "DilationFilter",
    "OpeningFilter",
    "ClosingFilter",
    "MaximumSeparabilityThresholdingFilter",
    "LocalMaximumSeparabilityThresholdingFilter",
    "LabelFilter",
    "RelabelFilter",
    "SizeAbsoluteFilter",
    "FillFilter",
    "ConvexHullByLabelFilter",
    "BackgroundEstimationFilter",
    "RenormalizationFilter",
    
    # Clustering
    "VoronoiDiagram",
    "ObjectClustering",
    
    # Quantification
    "Measurement",
    "Quantification",
    "IntensityPerPixelMetric",
    "AreaAndPerimeterMetric",
    "BackgroundMetric",
    "ZeroMetric",
    "quantify_or_zero",
    
    # I/O
    "ImageReader",
    "ImageWriter",
    "FileLockManager",
    "ConnectionLimiter",
]
