"""
Translation of caller options into engine descriptors.

Pure functions: no I/O and no validation. Operations validate first and
only then build their descriptor.
"""

from __future__ import annotations

from typing import Any, Optional

from imgops.domain.types.options import ImageOptions
from imgops.domain.types.transform import SaveTarget, TransformOptions, WatermarkOptions
from imgops.ops.engine.base import UNKNOWN, normalize_type


def build_options(opts: ImageOptions, **overrides: Any) -> TransformOptions:
    """
    Build a descriptor from the generic passthrough fields of ``opts``.

    ``overrides`` carry the operation-specific fields (crop, embed, extract
    area, zoom, watermark, ...).
    """
    fields = {
        "width": opts.width or 0,
        "height": opts.height or 0,
        "type": build_type(opts.type),
        "quality": opts.quality or 0,
        "compression": opts.compression or 0,
        "rotate": opts.rotate or 0,
        "flip": bool(opts.flip),
        "flop": bool(opts.flop),
    }
    fields.update(overrides)
    return TransformOptions(**fields)


def build_type(image_type: Optional[str]) -> Optional[str]:
    """Canonical output type, or ``None`` to keep the source type when unrecognized."""
    if not image_type:
        return None
    image_type = normalize_type(image_type)
    return None if image_type == UNKNOWN else image_type


def build_area(opts: ImageOptions) -> dict:
    return {
        "top": opts.top or 0,
        "left": opts.left or 0,
        "area_width": opts.area_width or 0,
        "area_height": opts.area_height or 0,
    }


def build_watermark(opts: ImageOptions) -> WatermarkOptions:
    background = None
    if opts.color is not None and len(opts.color) > 2:
        background = tuple(opts.color[:3])
    return WatermarkOptions(
        text=opts.text or "",
        font=opts.font or "",
        dpi=opts.dpi or 0,
        margin=opts.margin or 0,
        width=opts.text_width or 0,
        opacity=opts.opacity or 0.0,
        no_replicate=bool(opts.no_replicate),
        background=background,
    )


def build_save_target(opts: ImageOptions) -> Optional[SaveTarget]:
    """Only a fully specified destination persists; half of one is ignored."""
    if opts.bucket_name and opts.object_name:
        return SaveTarget(bucket=opts.bucket_name, key=opts.object_name)
    return None
