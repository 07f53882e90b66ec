"""Named collections of images sharing a marker (reference) channel."""

from __future__ import annotations

from typing import Iterator, List, Optional

from .image import Image


class ImageSet:
    """Ordered set of images with names and an optional marker index."""

    def __init__(self, images: Optional[List[Image]] = None, names: Optional[List[str]] = None):
        self._images: List[Image] = []
        self._names: List[str] = []
        self._marker_index: Optional[int] = None
        for i, image in enumerate(images or []):
            name = names[i] if names and i < len(names) else f"channel_{i}"
            self.add_image(image, name)

    def add_image(self, image: Image, name: Optional[str] = None) -> None:
        self._images.append(image)
        self._names.append(name if name is not None else f"channel_{len(self._names)}")

    def get_image(self, index: int) -> Image:
        return self._images[index]

    def get_image_name(self, index: int) -> str:
        return self._names[index]

    def image_for_name(self, name: str) -> Optional[Image]:
        """Return the first image called ``name``, or None."""
        for image, image_name in zip(self._images, self._names):
            if image_name == name:
                return image
        return None

    @property
    def names(self) -> List[str]:
        return list(self._names)

    @property
    def images(self) -> List[Image]:
        return list(self._images)

    @property
    def marker_index(self) -> Optional[int]:
        return self._marker_index

    @marker_index.setter
    def marker_index(self, index: Optional[int]) -> None:
        if index is not None and not 0 <= index < len(self._images):
            raise IndexError(f"Marker index {index} out of range for {len(self._images)} images")
        self._marker_index = index

    @property
    def marker_image(self) -> Optional[Image]:
        return self._images[self._marker_index] if self._marker_index is not None else None

    def size(self) -> int:
        return len(self._images)

    def __len__(self) -> int:
        return len(self._images)

    def __iter__(self) -> Iterator[Image]:
        return iter(self._images)
