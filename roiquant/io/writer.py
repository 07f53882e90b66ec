"""
Image writing to TIFF via tifffile.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import tifffile

from ..image.image import Image
from .locks import FileLockManager

logger = logging.getLogger(__name__)

WRITE_AXES = 'TCZYX'


def _json_safe(metadata: Dict[str, Any]) -> Dict[str, Any]:
    """Keep only metadata entries that can be stored as JSON."""
    safe = {}
    for key, value in metadata.items():
        try:
            json.dumps(value)
        except TypeError:
            logger.debug(f"Dropping metadata entry '{key}' that is not JSON serializable")
            continue
        safe[str(key)] = value
    return safe


class ImageWriter:
    """Writer producing shaped TIFF files with TCZYX axes.

    Args:
        lock_manager: Shared per-file lock table, ideally the reader's. A
            private one is created if None.
    """

    def __init__(self, lock_manager: Optional[FileLockManager] = None):
        self.lock_manager = lock_manager or FileLockManager()

    def write_image(
        self,
        path: Union[str, Path],
        image: Image,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Path:
        """Write ``image`` to ``path``.

        The whole image is written regardless of any box of interest. Metadata
        (the image's own, updated with ``metadata``) is stored in the TIFF
        description as JSON.

        Args:
            path: Output file path; parent directories are created.
            image: Image to write.
            metadata: Extra metadata entries.

        Returns:
            Path: The written path.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        combined = dict(image.metadata)
        combined.update(metadata or {})
        combined = {k: v for k, v in _json_safe(combined).items() if k not in ('shape', 'axes')}
        combined['axes'] = WRITE_AXES

        data = image.to_array(WRITE_AXES)
        with self.lock_manager.locked(str(path)):
            tifffile.imwrite(str(path), data, metadata=combined)

        logger.info(f"Wrote {path.name}: shape={data.shape} ({WRITE_AXES})")
        return path
