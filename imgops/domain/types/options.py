"""
Caller-supplied, operation-agnostic image options.

Every field is optional. ``None``, ``0`` and ``""`` all mean "not requested";
each operation decides on its own which absences are errors.
"""

from typing import Annotated, Any, Dict, List, Optional

from pydantic import Field, field_validator, model_validator

from imgops.domain.types.base import BaseInfo

ANGLES = (0, 45, 90, 135, 180, 225, 270, 315)

Channel = Annotated[int, Field(ge=0, le=255)]

# flat lowercase spellings used by query strings
_KEY_ALIASES = {
    "bucket": "bucket_name",
    "imagename": "object_name",
    "key": "object_name",
    "zoom": "factor",
}


class ImageOptions(BaseInfo):
    # geometry
    width: Optional[int] = Field(default=None, ge=0)
    height: Optional[int] = Field(default=None, ge=0)
    top: Optional[int] = Field(default=None, ge=0)
    left: Optional[int] = Field(default=None, ge=0)
    area_width: Optional[int] = Field(default=None, ge=0)
    area_height: Optional[int] = Field(default=None, ge=0)
    factor: Optional[int] = Field(default=None, ge=0, description="Zoom factor")
    rotate: Optional[int] = Field(default=None, description="Rotation angle in degrees")
    no_crop: Optional[bool] = None

    # appearance
    type: Optional[str] = Field(default=None, description="Target image format")
    quality: Optional[int] = Field(default=None, ge=0, le=100)
    compression: Optional[int] = Field(default=None, ge=0, le=9)
    flip: Optional[bool] = None
    flop: Optional[bool] = None

    # watermark
    text: Optional[str] = None
    font: Optional[str] = None
    dpi: Optional[int] = Field(default=None, ge=0)
    margin: Optional[int] = Field(default=None, ge=0)
    text_width: Optional[int] = Field(default=None, ge=0)
    opacity: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    no_replicate: Optional[bool] = None
    color: Optional[List[Channel]] = None

    # persistence
    bucket_name: Optional[str] = None
    object_name: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_keys(cls, values: Any) -> Any:
        """Accept snake_case, camelCase and flat lowercase keys (``areawidth``)."""
        if not isinstance(values, dict):
            return values
        lookup = {name.replace("_", "").lower(): name for name in cls.model_fields}
        lookup.update(_KEY_ALIASES)
        normalized: Dict[str, Any] = {}
        for key, value in values.items():
            flat = str(key).replace("_", "").replace("-", "").lower()
            normalized[lookup.get(flat, key)] = value
        return normalized

    @field_validator("rotate")
    @classmethod
    def validate_rotate(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v not in ANGLES:
            raise ValueError(f"Rotation angle must be one of {ANGLES}")
        return v

    @field_validator("color", mode="before")
    @classmethod
    def split_color(cls, v: Any) -> Any:
        """Colors from query strings arrive as ``"255,200,150"``."""
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v

    @field_validator("type")
    @classmethod
    def lower_type(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().lower() if v is not None else v
