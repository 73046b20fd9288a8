"""
One validated entry point per named image operation.

Every operation has the signature ``(buf, opts, ctx) -> Image``: it checks
its required options, shapes the descriptor and hands it to the execution
boundary. Validation failures raise
:class:`~imgops.io.exceptions.InvalidArgumentError` before the engine is
touched.
"""

from __future__ import annotations

from imgops.domain.types.image import Image
from imgops.domain.types.options import ImageOptions
from imgops.io.exceptions import InvalidArgumentError
from imgops.ops.pipeline import OperationContext, process, read_metadata
from imgops.ops.transforms.builder import (
    build_area,
    build_options,
    build_save_target,
    build_watermark,
)


def _run(buf: bytes, opts: ImageOptions, ctx: OperationContext, **overrides) -> Image:
    if opts.type and not ctx.engine.is_supported(opts.type):
        # output format the engine cannot write: keep the source format
        overrides.setdefault("type", None)
    return process(bytes(buf), build_options(opts, **overrides), build_save_target(opts), ctx)


def info(buf: bytes, opts: ImageOptions, ctx: OperationContext) -> Image:
    return read_metadata(bytes(buf), ctx).to_image()


def resize(buf: bytes, opts: ImageOptions, ctx: OperationContext) -> Image:
    if not opts.width and not opts.height:
        raise InvalidArgumentError("Missing required param: height or width")
    return _run(buf, opts, ctx, embed=True, crop=not opts.no_crop)


def enlarge(buf: bytes, opts: ImageOptions, ctx: OperationContext) -> Image:
    if not opts.width or not opts.height:
        raise InvalidArgumentError("Missing required params: height, width")
    return _run(buf, opts, ctx, enlarge=True, crop=not opts.no_crop)


def extract(buf: bytes, opts: ImageOptions, ctx: OperationContext) -> Image:
    if not opts.area_width or not opts.area_height:
        raise InvalidArgumentError("Missing required params: areawidth or areaheight")
    return _run(buf, opts, ctx, **build_area(opts))


def crop(buf: bytes, opts: ImageOptions, ctx: OperationContext) -> Image:
    if not opts.width and not opts.height:
        raise InvalidArgumentError("Missing required param: height or width")
    return _run(buf, opts, ctx, crop=not opts.no_crop)


def rotate(buf: bytes, opts: ImageOptions, ctx: OperationContext) -> Image:
    if not opts.rotate:
        raise InvalidArgumentError("Missing required param: rotate")
    return _run(buf, opts, ctx)


def flip(buf: bytes, opts: ImageOptions, ctx: OperationContext) -> Image:
    return _run(buf, opts, ctx, flip=True)


def flop(buf: bytes, opts: ImageOptions, ctx: OperationContext) -> Image:
    return _run(buf, opts, ctx, flop=True)


def thumbnail(buf: bytes, opts: ImageOptions, ctx: OperationContext) -> Image:
    if not opts.width and not opts.height:
        raise InvalidArgumentError("Missing required params: width or height")
    return _run(buf, opts, ctx, crop=not opts.no_crop)


def zoom(buf: bytes, opts: ImageOptions, ctx: OperationContext) -> Image:
    if not opts.factor:
        raise InvalidArgumentError("Missing required param: factor")

    overrides = {"zoom": opts.factor}
    if (opts.top or 0) > 0 or (opts.left or 0) > 0:
        if not opts.area_width or not opts.area_height:
            raise InvalidArgumentError("Missing required params: areawidth, areaheight")
        overrides.update(build_area(opts))
        overrides["crop"] = not opts.no_crop
    return _run(buf, opts, ctx, **overrides)


def convert(buf: bytes, opts: ImageOptions, ctx: OperationContext) -> Image:
    if not opts.type:
        raise InvalidArgumentError("Missing required param: type")
    if not ctx.engine.is_supported(opts.type):
        raise InvalidArgumentError(f"Invalid image type: {opts.type}")
    # only the target format, geometry stays neutral
    return _run(buf, opts, ctx, width=0, height=0, rotate=0, flip=False, flop=False)


def watermark(buf: bytes, opts: ImageOptions, ctx: OperationContext) -> Image:
    if not opts.text:
        raise InvalidArgumentError("Missing required param: text")
    return _run(buf, opts, ctx, watermark=build_watermark(opts))
