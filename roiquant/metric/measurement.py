"""Single scalar measurements attached to a region (feature) or to a whole image."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

TYPE_INTENSITY = "intensity"
TYPE_SIZE = "size"
TYPE_GROUPING = "group"
TYPE_BACKGROUND = "background"

MEASUREMENT_TYPES = (TYPE_INTENSITY, TYPE_SIZE, TYPE_GROUPING, TYPE_BACKGROUND)


@dataclass
class Measurement:
    """One named value.

    Attributes:
        has_associated_feature: True if the value belongs to a labeled region.
        feature_id: Region label (0 when there is no associated feature).
        value: The measured value.
        name: Measurement name, e.g. 'channel_0' or 'pixel_count'.
        measurement_type: One of the TYPE_* constants.
        image_id: Identifier of the image the value was measured on.
    """

    has_associated_feature: bool
    feature_id: int
    value: float
    name: str
    measurement_type: str = TYPE_INTENSITY
    image_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.measurement_type not in MEASUREMENT_TYPES:
            raise ValueError(
                f"Unknown measurement type '{self.measurement_type}'. Valid types: {list(MEASUREMENT_TYPES)}"
            )
        if not self.has_associated_feature:
            self.feature_id = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
