"""Unit tests for image reading, writing and the I/O concurrency services."""

from __future__ import annotations

import threading

import numpy as np
import pytest
import tifffile

from roiquant.core.config import IOConfig
from roiquant.image import Image
from roiquant.io import ConnectionLimiter, FileLockManager, ImageReader, ImageWriter
from roiquant.io.reader import is_remote, map_axes


def _pattern(shape=(6, 8), offset: float = 0.0) -> np.ndarray:
    return (np.arange(np.prod(shape), dtype=np.float32).reshape(shape) + offset)


def test_file_lock_blocks_other_threads() -> None:
    locks = FileLockManager()
    acquired_elsewhere = []

    assert locks.acquire("a.tif")
    worker = threading.Thread(target=lambda: acquired_elsewhere.append(locks.acquire("a.tif", timeout=0.05)))
    worker.start()
    worker.join()

    assert acquired_elsewhere == [False]
    assert locks.is_locked("a.tif")
    assert not locks.is_locked("b.tif")

    locks.release("a.tif")
    assert not locks.is_locked("a.tif")
    with locks.locked("a.tif"):
        assert locks.is_locked("a.tif")


def test_releasing_unheld_lock_raises() -> None:
    with pytest.raises(RuntimeError):
        FileLockManager().release("never.tif")


def test_connection_limiter_bounds_concurrency() -> None:
    limiter = ConnectionLimiter(max_connections=2)
    assert limiter.acquire()
    assert limiter.acquire()
    assert limiter.active == 2
    assert not limiter.acquire(timeout=0.01)

    limiter.release()
    with limiter.connection():
        assert limiter.active == 2
    limiter.release()
    assert limiter.active == 0

    with pytest.raises(RuntimeError):
        limiter.release()
    with pytest.raises(ValueError):
        ConnectionLimiter(max_connections=0)


def test_map_axes_translates_tiff_letters() -> None:
    data, axes = map_axes(np.zeros((3, 4, 5, 1)), "QYXS")
    assert axes == "ZYXC"
    assert data.shape == (3, 4, 5, 1)

    with pytest.raises(ValueError):
        map_axes(np.zeros((2, 4, 5)), "RYX")


def test_is_remote() -> None:
    assert is_remote("https://example.org/image.tif")
    assert not is_remote("/data/image.tif")


def test_write_then_read_round_trip(tmp_path) -> None:
    data = _pattern()
    image = Image.from_array(data, axes="YX", metadata={"pixel_size": 0.1})
    path = ImageWriter().write_image(tmp_path / "out" / "image.tif", image)

    loaded = ImageReader().read_image(path)

    assert np.array_equal(loaded.to_array("YX"), data)
    assert loaded.metadata["series"] == 0
    assert loaded.metadata["series_count"] == 1
    assert loaded.metadata["source"] == str(path)
    assert loaded.writable


def test_write_keeps_all_dimensions(tmp_path) -> None:
    volume = np.random.default_rng(1234).integers(0, 100, size=(2, 3, 6, 8)).astype(np.float32)
    image = Image.from_array(volume, axes="CZYX")
    path = ImageWriter().write_image(tmp_path / "volume.tif", image)

    loaded = ImageReader().read_image(path)

    assert tuple(loaded.dimension_sizes) == (8, 6, 3, 2, 1)
    assert np.array_equal(loaded.to_array("CZYX"), volume)


def test_series_are_read_in_turn_and_wrap(tmp_path) -> None:
    path = tmp_path / "series.tif"
    with tifffile.TiffWriter(str(path)) as tif:
        tif.write(_pattern(offset=0.0), metadata={"axes": "YX"})
        tif.write(_pattern(offset=100.0), metadata={"axes": "YX"})

    reader = ImageReader()
    assert reader.series_count(path) == 2
    assert reader.has_more_series(path)

    first = reader.read_image(path)
    second = reader.read_image(path)
    assert first.to_array("YX")[0, 0] == 0.0
    assert second.to_array("YX")[0, 0] == 100.0
    assert not reader.has_more_series(path)

    third = reader.read_image(path)
    assert third.metadata["series"] == 0
    assert reader.current_series_index(path) == 1


def test_unsupported_extension_is_rejected(tmp_path) -> None:
    path = tmp_path / "image.png"
    path.write_bytes(b"not an image")
    with pytest.raises(ValueError):
        ImageReader(IOConfig(supported_formats=[".tif"])).read_image(path)


def test_remote_read_uses_fetcher_and_connection_slot() -> None:
    limiter = ConnectionLimiter(max_connections=1)
    seen = []

    def fetcher(identifier):
        seen.append((identifier, limiter.active))
        return np.ones((4, 5)), "YX"

    reader = ImageReader(connection_limiter=limiter, fetcher=fetcher)
    image = reader.read_image("http://example.org/cells")

    assert seen == [("http://example.org/cells", 1)]
    assert limiter.active == 0
    assert image.dimension_sizes.x == 5
    assert image.dimension_sizes.y == 4
    assert image.metadata["source"] == "http://example.org/cells"


def test_remote_read_without_fetcher_fails() -> None:
    with pytest.raises(ValueError):
        ImageReader().read_image("http://example.org/cells")


def test_read_images_reports_failures_as_none(tmp_path) -> None:
    reader = ImageReader(fetcher=lambda identifier: (np.zeros((2, 2)), "YX"))
    images = reader.read_images([tmp_path / "missing.tif", "s3://bucket/key"])

    assert images[0] is None
    assert images[1] is not None
