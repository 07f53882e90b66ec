"""
Image reading for TIFF and OME-TIFF files and injected remote sources.

Each identifier keeps its own series pointer: every ``read_image`` call returns
the next series of a multi-series file. Reads of the same identifier are
serialized through a ``FileLockManager``; remote fetches also hold a slot of a
``ConnectionLimiter``.
"""

from __future__ import annotations

import logging
import re
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

import numpy as np
import tifffile

from ..core.config import IOConfig
from ..core.utils import validate_file_path
from ..image.image import WritableImage
from .locks import ConnectionLimiter, FileLockManager

logger = logging.getLogger(__name__)

# tifffile axis letters mapped onto XYZCT
_AXIS_MAP = {
    'X': 'X',
    'Y': 'Y',
    'Z': 'Z',
    'C': 'C',
    'S': 'C',  # samples (RGB)
    'T': 'T',
    'Q': 'Z',  # unknown, e.g. plain multi-page TIFF
    'I': 'Z',  # generic image sequence
}

_REMOTE_PATTERN = re.compile(r'^[A-Za-z][A-Za-z0-9+.\-]*://')

Fetcher = Callable[[str], Tuple[np.ndarray, str]]
Identifier = Union[str, Path]


def is_remote(identifier: Identifier) -> bool:
    """True for identifiers of the form ``scheme://...``."""
    return bool(_REMOTE_PATTERN.match(str(identifier)))


def map_axes(data: np.ndarray, axes: str) -> Tuple[np.ndarray, str]:
    """Translate tifffile axes onto XYZCT letters.

    Axes without an XYZCT counterpart are dropped when they have size 1.

    Args:
        data: Pixel data.
        axes: tifffile axis letters, one per dimension of ``data``.

    Returns:
        Tuple[np.ndarray, str]: Data and axis letters usable by ``Image.from_array``.

    Raises:
        ValueError: If an axis cannot be mapped or two axes map to the same letter.
    """
    axes = axes.upper()
    if len(axes) != data.ndim:
        raise ValueError(f"Axes '{axes}' do not match data with shape {data.shape}")

    mapped = ''
    squeeze = []
    for position, letter in enumerate(axes):
        target = _AXIS_MAP.get(letter)
        if target is None:
            if data.shape[position] != 1:
                raise ValueError(f"Unsupported axis '{letter}' of size {data.shape[position]} in '{axes}'")
            squeeze.append(position)
            continue
        if target in mapped:
            if data.shape[position] == 1:
                squeeze.append(position)
                continue
            raise ValueError(f"Axes '{axes}' map more than one dimension onto {target}")
        mapped += target

    if squeeze:
        data = np.squeeze(data, axis=tuple(squeeze))
    return data, mapped


class ImageReader:
    """Reader for local TIFF files and remote images.

    Args:
        config: I/O configuration. If None, uses defaults.
        lock_manager: Shared per-file lock table. A private one is created if None.
        connection_limiter: Limit on concurrent remote fetches. Created from
            ``config.max_connections`` if None.
        fetcher: Callable ``identifier -> (array, axes)`` used for remote
            identifiers. Remote reads fail without one.
    """

    def __init__(
        self,
        config: Optional[IOConfig] = None,
        lock_manager: Optional[FileLockManager] = None,
        connection_limiter: Optional[ConnectionLimiter] = None,
        fetcher: Optional[Fetcher] = None,
    ):
        self.config = config or IOConfig()
        self.lock_manager = lock_manager or FileLockManager()
        self.connection_limiter = connection_limiter or ConnectionLimiter(self.config.max_connections)
        self.fetcher = fetcher
        self._state_lock = threading.Lock()
        self._series_count: Dict[str, int] = {}
        self._current_series: Dict[str, int] = {}

    # ------------------------------------------------------------------
    # Series bookkeeping
    # ------------------------------------------------------------------

    def series_count(self, identifier: Identifier) -> int:
        """Number of series in ``identifier``; opens the file if not read yet."""
        key = str(identifier)
        with self._state_lock:
            if key in self._series_count:
                return self._series_count[key]
        if is_remote(key):
            return 1
        path = validate_file_path(key, self.config.supported_formats)
        with self.lock_manager.locked(key):
            with tifffile.TiffFile(str(path)) as tif:
                count = len(tif.series)
        with self._state_lock:
            self._series_count[key] = count
        return count

    def current_series_index(self, identifier: Identifier) -> int:
        """Index of the series the next ``read_image`` call will return."""
        with self._state_lock:
            return self._current_series.get(str(identifier), 0)

    def has_more_series(self, identifier: Identifier) -> bool:
        return self.current_series_index(identifier) < self.series_count(identifier)

    def _advance(self, key: str, count: int) -> int:
        with self._state_lock:
            index = self._current_series.get(key, 0)
            if index >= count:
                logger.info(f"All {count} series of {key} already read; restarting at series 0")
                index = 0
            self._series_count[key] = count
            self._current_series[key] = index + 1
            return index

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def read_image(self, identifier: Identifier) -> WritableImage:
        """Read the next series of ``identifier``.

        Args:
            identifier: Filesystem path or remote descriptor (``scheme://...``).

        Returns:
            WritableImage: The image, with metadata describing its source.

        Raises:
            FileNotFoundError: If a local file does not exist.
            ValueError: If the format or axes are unsupported, or a remote
                identifier is given without a fetcher.
        """
        key = str(identifier)
        if is_remote(key):
            return self._read_remote(key)

        path = validate_file_path(key, self.config.supported_formats)
        with self.lock_manager.locked(key):
            with tifffile.TiffFile(str(path)) as tif:
                index = self._advance(key, len(tif.series))
                series = tif.series[index]
                axes = series.axes
                data = series.asarray()
                extra = self._shaped_metadata(tif, index)

        data, mapped = map_axes(data, axes)
        metadata: Dict[str, Any] = dict(extra)
        metadata.update({
            'source': key,
            'series': index,
            'series_count': self._series_count[key],
            'original_axes': axes,
            'original_dtype': str(data.dtype),
        })
        image = WritableImage.from_array(data, axes=mapped, metadata=metadata)
        logger.info(
            f"Loaded {path.name} series {index + 1}/{self._series_count[key]}: "
            f"axes={axes}, sizes(XYZCT)={tuple(image.dimension_sizes)}"
        )
        return image

    @staticmethod
    def _shaped_metadata(tif: tifffile.TiffFile, index: int) -> Dict[str, Any]:
        shaped = tif.shaped_metadata
        if shaped and index < len(shaped) and isinstance(shaped[index], dict):
            return {k: v for k, v in shaped[index].items() if k not in ('shape', 'axes')}
        return {}

    def _read_remote(self, key: str) -> WritableImage:
        if self.fetcher is None:
            raise ValueError(f"No fetcher configured for remote identifier {key}")

        with self.lock_manager.locked(key):
            with self.connection_limiter.connection():
                data, axes = self.fetcher(key)
            self._advance(key, 1)

        data, mapped = map_axes(np.asarray(data), axes)
        image = WritableImage.from_array(data, axes=mapped, metadata={'source': key, 'series': 0, 'series_count': 1})
        logger.info(f"Fetched remote image {key}: sizes(XYZCT)={tuple(image.dimension_sizes)}")
        return image

    def read_images(self, identifiers: Iterable[Identifier]) -> List[Optional[WritableImage]]:
        """Read several images; a failed read is logged and yields None."""
        images: List[Optional[WritableImage]] = []
        for identifier in identifiers:
            try:
                images.append(self.read_image(identifier))
            except (OSError, ValueError) as e:
                logger.error(f"Failed to read image {identifier}: {e}")
                images.append(None)
        return images
