"""
Fully resolved, operation-specific parameter sets handed to the engine.
"""

from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict


class _Descriptor(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class WatermarkOptions(_Descriptor):
    text: str = ""
    font: str = ""
    dpi: int = 0
    margin: int = 0
    width: int = 0
    opacity: float = 0.0
    no_replicate: bool = False
    # None keeps the engine default (transparent)
    background: Optional[Tuple[int, int, int]] = None


class TransformOptions(_Descriptor):
    """
    Transformation descriptor.

    Fields an operation does not use stay at their neutral value so the engine
    does not apply unintended effects.
    """

    width: int = 0
    height: int = 0
    top: int = 0
    left: int = 0
    area_width: int = 0
    area_height: int = 0
    zoom: int = 0
    rotate: int = 0
    flip: bool = False
    flop: bool = False
    crop: bool = False
    embed: bool = False
    enlarge: bool = False
    type: Optional[str] = None
    quality: int = 0
    compression: int = 0
    watermark: Optional[WatermarkOptions] = None

    @property
    def has_area(self) -> bool:
        return bool(self.area_width and self.area_height)


class SaveTarget(_Descriptor):
    """Destination for persisting the transformed buffer."""

    bucket: str
    key: str
