"""
Utility functions for the roiquant package.
Basic helpers for logging setup, file validation and label centroids.
"""

from pathlib import Path
from typing import Dict, List, Union
import logging

import numpy as np


logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(verbose: bool = True, log_level: str = 'INFO') -> None:
    """Setup logging configuration.
    
    Args:
        verbose: If False, logging is left unconfigured.
        log_level: Name of the logging level (e.g. 'DEBUG', 'INFO').
    """
    if verbose:
        level = getattr(logging, log_level.upper(), None)
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {log_level}")
        logging.basicConfig(level=level, format=LOG_FORMAT)


def validate_file_path(filepath: Union[str, Path], valid_extensions: List[str]) -> Path:
    """Validate that a file exists and has the correct extension.
    
    Args:
        filepath: Path to validate.
        valid_extensions: List of valid file extensions (e.g., ['.tif', '.tiff']).
        
    Returns:
        Path: The validated path.
        
    Raises:
        FileNotFoundError: If file doesn't exist.
        ValueError: If file extension is not valid.
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"File not found: {filepath}")
    
    if not filepath.is_file():
        raise ValueError(f"Path is not a file: {filepath}")
    
    extension = filepath.suffix.lower()
    valid_extensions = [ext.lower() for ext in valid_extensions]
    
    if extension not in valid_extensions:
        raise ValueError(
            f"Invalid file extension: {extension}. "
            f"Valid extensions: {valid_extensions}"
        )
    return filepath


def label_centroids(labels: np.ndarray) -> Dict[int, np.ndarray]:
    """Compute the centroid of every positive label in an integer array.
    
    Args:
        labels: Label array of any dimensionality (0 = background).
        
    Returns:
        Dict[int, np.ndarray]: Label -> mean index along each array axis.
    """
    labels = np.asarray(labels).astype(np.int64)
    positive = labels > 0
    if not positive.any():
        return {}
    
    ids = labels[positive]
    max_label = int(ids.max())
    counts = np.bincount(ids, minlength=max_label + 1).astype(np.float64)
    indices = np.nonzero(positive)
    sums = [np.bincount(ids, weights=axis_idx, minlength=max_label + 1) for axis_idx in indices]
    
    centroids = {}
    for label in np.flatnonzero(counts):
        centroids[int(label)] = np.array([s[label] / counts[label] for s in sums])
    return centroids
