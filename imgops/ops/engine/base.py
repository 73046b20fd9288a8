from __future__ import annotations

from abc import ABC, abstractmethod

from imgops.domain.types.image import ImageInfo
from imgops.domain.types.transform import TransformOptions

UNKNOWN = "unknown"

#: Type tags understood by the engines, mapped to their MIME types.
IMAGE_TYPES = {
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "gif": "image/gif",
    "tiff": "image/tiff",
    "bmp": "image/bmp",
    "avif": "image/avif",
    "heif": "image/heif",
}

TYPE_ALIASES = {"jpg": "jpeg", "tif": "tiff", "heic": "heif"}


def normalize_type(name: str | None) -> str:
    if not name:
        return UNKNOWN
    name = name.strip().lower()
    name = TYPE_ALIASES.get(name, name)
    return name if name in IMAGE_TYPES else UNKNOWN


def get_mime_type(image_type: str | None) -> str:
    return IMAGE_TYPES.get(normalize_type(image_type), "application/octet-stream")


class ImageEngine(ABC):
    """Pixel-level transformation engine used by the execution boundary."""

    @abstractmethod
    def transform(self, buf: bytes, options: TransformOptions) -> bytes:
        """
        Apply ``options`` to the encoded image in ``buf`` and return the new
        encoded image. Ordinary failures are raised as
        :class:`~imgops.io.exceptions.EngineError`.
        """

    @abstractmethod
    def metadata(self, buf: bytes) -> ImageInfo:
        """Read image details without transforming it."""

    @abstractmethod
    def detect_type(self, buf: bytes) -> str:
        """Return the type tag of an encoded buffer or ``"unknown"``."""

    @abstractmethod
    def is_supported(self, image_type: str) -> bool:
        """Whether the engine can both decode and encode ``image_type``."""

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"{self.__class__.__name__}()"


__all__ = ["ImageEngine", "IMAGE_TYPES", "UNKNOWN", "get_mime_type", "normalize_type"]
