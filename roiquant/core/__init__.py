"""Core infrastructure modules."""

from .config import (
    AnalysisConfig,
    MorphologyConfig,
    ThresholdConfig,
    SizeFilterConfig,
    ClusteringConfig,
    IOConfig,
    ParameterDictionary,
)
from .utils import (
    setup_logging,
    validate_file_path,
    label_centroids,
)

__all__ = [
    # Configuration classes
    "AnalysisConfig",
    "MorphologyConfig",
    "ThresholdConfig",
    "SizeFilterConfig",
    "ClusteringConfig",
    "IOConfig",
    "ParameterDictionary",
    
    # Utility functions
    "setup_logging",
    "validate_file_path",
    "label_centroids",
]
