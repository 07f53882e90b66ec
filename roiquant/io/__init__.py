"""Image readers, writers and the concurrency services they share."""

from .locks import ConnectionLimiter, FileLockManager
from .reader import ImageReader, is_remote, map_axes
from .writer import ImageWriter

__all__ = [
    "ConnectionLimiter",
    "FileLockManager",
    "ImageReader",
    "ImageWriter",
    "is_remote",
    "map_axes",
]
