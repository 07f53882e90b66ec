"""
Filter capability and ordered filter pipelines.

Every filter implements ``apply(image, reference=None)``: it mutates ``image``
in place, optionally consulting a separate reference image. Filters are
composed by listing them in a ``FilterPipeline`` rather than by inheritance.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Iterable, Iterator, List, Optional

from ..core.config import ParameterDictionary
from ..image.image import Image, WritableImage

logger = logging.getLogger(__name__)


class ReferenceImageRequiredError(ValueError):
    """Raised when a filter that needs a reference image is applied without one."""

    def __init__(self, filter_name: str):
        super().__init__(f"{filter_name} requires a reference image")
        self.filter_name = filter_name


class Filter(ABC):
    """A unit of in-place image transformation."""

    def __init__(self, params: Optional[ParameterDictionary] = None):
        self.params = params or ParameterDictionary()

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def apply(self, image: WritableImage, reference: Optional[Image] = None) -> None:
        """Transform ``image`` in place.

        Args:
            image: Image to modify.
            reference: Optional read-only image some filters consult.
        """

    # Settings resolve as: explicit constructor argument, then ``params``, then config.

    def _param_int(self, key: str, default: int) -> int:
        return self.params.get_int(key) if self.params.has_key(key) else int(default)

    def _param_float(self, key: str, default: float) -> float:
        return self.params.get_float(key) if self.params.has_key(key) else float(default)

    def _param_bool(self, key: str, default: bool) -> bool:
        return self.params.get_bool(key) if self.params.has_key(key) else bool(default)

    def _require_reference(self, reference: Optional[Image]) -> Image:
        if reference is None:
            raise ReferenceImageRequiredError(self.name)
        return reference

    @staticmethod
    def _require_writable(image: Image) -> WritableImage:
        if not image.writable:
            raise TypeError(f"Filters modify images in place; got read-only {image!r}")
        return image

    def __repr__(self) -> str:
        return f"{self.name}()"


class FilterPipeline:
    """Explicit ordered list of filters applied one after another."""

    def __init__(self, filters: Optional[Iterable[Filter]] = None):
        self._filters: List[Filter] = list(filters or [])

    def append(self, filter_: Filter) -> "FilterPipeline":
        self._filters.append(filter_)
        return self

    def apply(self, image: WritableImage, reference: Optional[Image] = None) -> WritableImage:
        """Apply every filter in order, each completing before the next begins.

        Args:
            image: Image modified in place.
            reference: Reference image handed to every filter.

        Returns:
            WritableImage: ``image``, for chaining.
        """
        for step, filter_ in enumerate(self._filters, start=1):
            logger.info(f"Pipeline step {step}/{len(self._filters)}: {filter_.name}")
            filter_.apply(image, reference)
        return image

    def __len__(self) -> int:
        return len(self._filters)

    def __iter__(self) -> Iterator[Filter]:
        return iter(self._filters)

    def __repr__(self) -> str:
        return f"FilterPipeline({[f.name for f in self._filters]})"
