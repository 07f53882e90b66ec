"""Measurements, quantifications and the metrics that produce them."""

from .measurement import (
    Measurement,
    MEASUREMENT_TYPES,
    TYPE_BACKGROUND,
    TYPE_GROUPING,
    TYPE_INTENSITY,
    TYPE_SIZE,
)
from .quantification import Quantification
from .metrics import (
    AREA_NAME,
    AreaAndPerimeterMetric,
    BackgroundMetric,
    IntensityPerPixelMetric,
    Metric,
    PERIMETER_NAME,
    PIXEL_COUNT_NAME,
    ZeroMetric,
    measurement_names,
    quantify_or_zero,
)

__all__ = [
    "Measurement",
    "MEASUREMENT_TYPES",
    "TYPE_INTENSITY",
    "TYPE_SIZE",
    "TYPE_GROUPING",
    "TYPE_BACKGROUND",
    "Quantification",
    "Metric",
    "IntensityPerPixelMetric",
    "ZeroMetric",
    "AreaAndPerimeterMetric",
    "BackgroundMetric",
    "PIXEL_COUNT_NAME",
    "AREA_NAME",
    "PERIMETER_NAME",
    "quantify_or_zero",
    "measurement_names",
]
