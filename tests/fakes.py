import io
from typing import List, Optional, Tuple

from PIL import Image

from imgops.domain.types.image import ImageInfo
from imgops.domain.types.transform import TransformOptions
from imgops.io.exceptions import EngineError
from imgops.ops.engine.base import ImageEngine


def make_image(size=(64, 48), fmt="PNG", mode="RGB", color=(200, 30, 30)) -> bytes:
    out = io.BytesIO()
    Image.new(mode, size, color).save(out, format=fmt)
    return out.getvalue()


def open_image(buf: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(buf))
    img.load()
    return img


class RecordingEngine(ImageEngine):
    """Engine double recording every call; optionally fails on demand."""

    def __init__(self, result: bytes = b"", fail_with: Optional[BaseException] = None):
        self.result = result or make_image()
        self.fail_with = fail_with
        self.calls: List[Tuple[bytes, TransformOptions]] = []
        self.metadata_calls = 0

    def transform(self, buf: bytes, options: TransformOptions) -> bytes:
        self.calls.append((buf, options))
        if self.fail_with is not None:
            raise self.fail_with
        return self.result

    def metadata(self, buf: bytes) -> ImageInfo:
        self.metadata_calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        return ImageInfo(
            width=1, height=1, type="png", space="srgb",
            has_alpha=False, has_profile=False, channels=3,
        )

    def detect_type(self, buf: bytes) -> str:
        return "png"

    def is_supported(self, image_type: str) -> bool:
        return image_type in ("png", "jpeg", "jpg", "webp")

    @property
    def last_options(self) -> TransformOptions:
        return self.calls[-1][1]


class RecordingStorage:
    def __init__(self, fail_with: Optional[BaseException] = None):
        self.fail_with = fail_with
        self.uploads: List[Tuple[str, str, bytes, Optional[str]]] = []

    def upload(self, bucket: str, key: str, body: bytes, content_type: Optional[str] = None) -> str:
        self.uploads.append((bucket, key, body, content_type))
        if self.fail_with is not None:
            raise self.fail_with
        return '"etag"'


__all__ = ["EngineError", "RecordingEngine", "RecordingStorage", "make_image", "open_image"]
