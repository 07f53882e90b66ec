"""Pixel, coordinate and image data model."""

from .coordinate import AXES, C, T, X, Y, Z, Coordinate, axis_index
from .pixel_data import ArrayPixelBuffer, PixelBuffer
from .image import Image, WritableImage, create_image, create_writable
from .histogram import Histogram
from .image_set import ImageSet

__all__ = [
    # Coordinates
    "AXES",
    "X",
    "Y",
    "Z",
    "C",
    "T",
    "Coordinate",
    "axis_index",

    # Storage
    "PixelBuffer",
    "ArrayPixelBuffer",

    # Images
    "Image",
    "WritableImage",
    "create_image",
    "create_writable",
    "Histogram",
    "ImageSet",
]
