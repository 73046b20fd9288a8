from dataclasses import dataclass

from imgops.domain.types.base import BaseInfo

JSON_MIME = "application/json"


@dataclass(frozen=True)
class Image:
    """Transformed image binary buffer and its MIME type."""

    body: bytes
    mime: str


class ImageInfo(BaseInfo):
    """Image details and additional metadata, serialized with camelCase keys."""

    width: int
    height: int
    type: str
    space: str
    has_alpha: bool
    has_profile: bool
    channels: int
    orientation: int = 0

    def to_image(self) -> Image:
        return Image(body=self.model_dump_json().encode("utf-8"), mime=JSON_MIME)
