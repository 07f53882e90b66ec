"""
Collections of measurements indexed by name, type and region.
"""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, List, Union

import pandas as pd

from .measurement import Measurement

logger = logging.getLogger(__name__)


class Quantification:
    """Append-only set of measurements.

    Measurements with an associated feature are indexed by region; the rest go
    to a separate global list.
    """

    def __init__(self):
        self._measurements: List[Measurement] = []
        self._by_name: Dict[str, List[Measurement]] = defaultdict(list)
        self._by_type: Dict[str, List[Measurement]] = defaultdict(list)
        self._by_region: Dict[int, List[Measurement]] = defaultdict(list)
        self._global: List[Measurement] = []

    def add_measurement(self, measurement: Measurement) -> None:
        self._measurements.append(measurement)
        self._by_name[measurement.name].append(measurement)
        self._by_type[measurement.measurement_type].append(measurement)
        if measurement.has_associated_feature:
            self._by_region[measurement.feature_id].append(measurement)
        else:
            self._global.append(measurement)

    def add_all(self, other: Union["Quantification", Iterable[Measurement]]) -> None:
        measurements = other.all_measurements() if isinstance(other, Quantification) else other
        for measurement in measurements:
            self.add_measurement(measurement)

    def all_measurements(self) -> List[Measurement]:
        return list(self._measurements)

    def measurements_for_name(self, name: str) -> List[Measurement]:
        return list(self._by_name.get(name, []))

    def measurements_for_type(self, measurement_type: str) -> List[Measurement]:
        return list(self._by_type.get(measurement_type, []))

    def measurements_for_region(self, region: int) -> List[Measurement]:
        return list(self._by_region.get(region, []))

    def global_measurements(self) -> List[Measurement]:
        return list(self._global)

    def all_regions(self) -> List[int]:
        return sorted(self._by_region)

    def __len__(self) -> int:
        return len(self._measurements)

    def to_dataframe(self) -> pd.DataFrame:
        """One row per measurement."""
        columns = ["has_associated_feature", "feature_id", "value", "name", "measurement_type", "image_id"]
        return pd.DataFrame([m.to_dict() for m in self._measurements], columns=columns)

    def to_table(self) -> pd.DataFrame:
        """Region-level measurements pivoted to one row per region and one column per name."""
        frame = self.to_dataframe()
        if not frame.empty:
            frame = frame[frame["has_associated_feature"].astype(bool)]
        if frame.empty:
            return pd.DataFrame()
        table = frame.pivot_table(index="feature_id", columns="name", values="value", aggfunc="first")
        table = table[list(dict.fromkeys(frame["name"]))]
        table.columns.name = None
        return table

    def export_json(self, out_path: Union[str, Path]) -> None:
        out_path = Path(out_path)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "regions": self.all_regions(),
            "measurements": [m.to_dict() for m in self._measurements],
        }
        with out_path.open("w") as f:
            json.dump(payload, f, indent=2)
        logger.info(f"Wrote quantification JSON to {str(out_path)}")

    def __repr__(self) -> str:
        return f"Quantification(measurements={len(self._measurements)}, regions={len(self._by_region)})"
