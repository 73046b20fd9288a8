"""
Transformation engine built on Pillow.

Operations are applied in a fixed order: extract area, rotate, flip/flop,
resize (crop / embed / enlarge), zoom, watermark and finally encode.
"""

from __future__ import annotations

import io
import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional, Tuple

from PIL import Image, ImageDraw, ImageFont, ImageOps, UnidentifiedImageError

from imgops.domain.types.image import ImageInfo
from imgops.domain.types.transform import TransformOptions, WatermarkOptions
from imgops.io.exceptions import EngineError
from imgops.ops.engine.base import IMAGE_TYPES, UNKNOWN, ImageEngine, normalize_type

logger = logging.getLogger(__name__)

# type tag -> Pillow format name
PIL_FORMATS = {
    "jpeg": "JPEG",
    "png": "PNG",
    "webp": "WEBP",
    "gif": "GIF",
    "tiff": "TIFF",
    "bmp": "BMP",
    "avif": "AVIF",
    "heif": "HEIF",
}

# Pillow mode -> libvips-like interpretation name
COLOR_SPACES = {
    "1": "b-w",
    "L": "b-w",
    "LA": "b-w",
    "I": "grey16",
    "I;16": "grey16",
    "F": "grey16",
    "RGB": "srgb",
    "RGBA": "srgb",
    "RGBX": "srgb",
    "P": "srgb",
    "PA": "srgb",
    "YCbCr": "srgb",
    "CMYK": "cmyk",
    "LAB": "lab",
    "HSV": "hsv",
}

JPEG_MODES = ("L", "RGB", "CMYK")
EXIF_ORIENTATION = 0x0112

DEFAULT_QUALITY = 80
DEFAULT_COMPRESSION = 6
DEFAULT_DPI = 75
DEFAULT_FONT = "sans 10"
DEFAULT_OPACITY = 0.25


@contextmanager
def _engine_errors(action: str) -> Iterator[None]:
    """Translate Pillow's expected failures into :class:`EngineError`."""
    try:
        yield
    except EngineError:
        raise
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as exc:
        raise EngineError(f"Cannot {action}: {exc}") from exc


class PillowEngine(ImageEngine):
    def __init__(self, quality: int = DEFAULT_QUALITY, compression: int = DEFAULT_COMPRESSION):
        Image.init()
        self._quality = quality
        self._compression = compression

    # --------------- Type registry ---------------
    def is_supported(self, image_type: str) -> bool:
        fmt = PIL_FORMATS.get(normalize_type(image_type))
        return fmt is not None and fmt in Image.OPEN and fmt in Image.SAVE

    def supported_types(self) -> List[str]:
        return [name for name in IMAGE_TYPES if self.is_supported(name)]

    def detect_type(self, buf: bytes) -> str:
        try:
            with Image.open(io.BytesIO(buf)) as img:
                return self._type_of(img)
        except (OSError, ValueError, SyntaxError, Image.DecompressionBombError):
            return UNKNOWN

    @staticmethod
    def _type_of(img: Image.Image) -> str:
        return normalize_type(img.format)

    # --------------- Metadata ---------------
    def metadata(self, buf: bytes) -> ImageInfo:
        with self._decode(buf) as img:
            bands = img.getbands()
            with _engine_errors("read image metadata"):
                orientation = img.getexif().get(EXIF_ORIENTATION, 0)
            return ImageInfo(
                width=img.width,
                height=img.height,
                type=self._type_of(img),
                space=COLOR_SPACES.get(img.mode, img.mode.lower()),
                has_alpha="A" in bands or (img.mode == "P" and "transparency" in img.info),
                has_profile=bool(img.info.get("icc_profile")),
                channels=len(bands),
                orientation=int(orientation),
            )

    # --------------- Transformation ---------------
    def transform(self, buf: bytes, options: TransformOptions) -> bytes:
        with self._decode(buf) as source:
            source_type = self._type_of(source)
            with _engine_errors("decode image"):
                source.load()
            return self._apply(source, source_type, options)

    def _apply(self, img: Image.Image, source_type: str, options: TransformOptions) -> bytes:
        if options.has_area:
            img = self._extract(img, options)
        if options.rotate:
            img = self._rotate(img, options.rotate)
        if options.flip:
            img = ImageOps.flip(img)
        if options.flop:
            img = ImageOps.mirror(img)
        if options.width or options.height:
            img = self._resize(img, options)
        if options.zoom:
            img = self._zoom(img, options.zoom)
        if options.watermark is not None and options.watermark.text:
            img = self._watermark(img, options.watermark)

        return self._encode(img, options.type or source_type, options)

    def _decode(self, buf: bytes) -> Image.Image:
        try:
            return Image.open(io.BytesIO(buf))
        except UnidentifiedImageError as exc:
            raise EngineError("Unsupported or corrupt image data") from exc
        except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as exc:
            raise EngineError(f"Cannot decode image: {exc}") from exc

    @staticmethod
    def _extract(img: Image.Image, options: TransformOptions) -> Image.Image:
        left, top = options.left, options.top
        right, bottom = left + options.area_width, top + options.area_height
        if right > img.width or bottom > img.height:
            raise EngineError(
                f"Extract area {options.area_width}x{options.area_height}+{left}+{top} "
                f"is outside of the {img.width}x{img.height} image"
            )
        return img.crop((left, top, right, bottom))

    @staticmethod
    def _rotate(img: Image.Image, angle: int) -> Image.Image:
        angle %= 360
        # angles are clockwise, Pillow's transpose constants are counter-clockwise
        transposes = {
            90: Image.Transpose.ROTATE_270,
            180: Image.Transpose.ROTATE_180,
            270: Image.Transpose.ROTATE_90,
        }
        if angle == 0:
            return img
        if angle in transposes:
            return img.transpose(transposes[angle])
        return img.rotate(-angle, resample=Image.Resampling.BICUBIC, expand=True)

    @staticmethod
    def _target_size(img: Image.Image, options: TransformOptions) -> Tuple[int, int]:
        width, height = options.width, options.height
        if width and not height:
            height = max(1, round(img.height * width / img.width))
        elif height and not width:
            width = max(1, round(img.width * height / img.height))
        return width, height

    def _resize(self, img: Image.Image, options: TransformOptions) -> Image.Image:
        width, height = self._target_size(img, options)
        if options.crop:
            if not options.enlarge and (width > img.width or height > img.height):
                # crop what fits, never upscale
                box = (min(width, img.width), min(height, img.height))
                img = ImageOps.fit(img, box, method=Image.Resampling.LANCZOS)
            else:
                img = ImageOps.fit(img, (width, height), method=Image.Resampling.LANCZOS)
        else:
            factor = min(width / img.width, height / img.height)
            if factor > 1 and not options.enlarge:
                factor = 1.0
            size = (max(1, round(img.width * factor)), max(1, round(img.height * factor)))
            if size != img.size:
                img = img.resize(size, Image.Resampling.LANCZOS)

        if options.embed and img.size != (width, height):
            img = self._embed(img, (width, height))
        return img

    @staticmethod
    def _embed(img: Image.Image, size: Tuple[int, int]) -> Image.Image:
        """Center ``img`` on a canvas of ``size`` instead of discarding pixels."""
        if "A" in img.getbands() or "transparency" in img.info:
            img = img.convert("RGBA")
            canvas = Image.new("RGBA", size, (0, 0, 0, 0))
        else:
            if img.mode not in ("L", "RGB", "CMYK"):
                img = img.convert("RGB")
            canvas = Image.new(img.mode, size)
        offset = ((size[0] - img.width) // 2, (size[1] - img.height) // 2)
        canvas.paste(img, offset)
        return canvas

    @staticmethod
    def _zoom(img: Image.Image, factor: int) -> Image.Image:
        size = (img.width * factor, img.height * factor)
        limit = Image.MAX_IMAGE_PIXELS
        if limit and size[0] * size[1] > limit:
            raise EngineError(f"Zoom factor {factor} exceeds the maximum image size")
        return img.resize(size, Image.Resampling.NEAREST)

    # --------------- Watermark ---------------
    def _watermark(self, img: Image.Image, wm: WatermarkOptions) -> Image.Image:
        dpi = wm.dpi or DEFAULT_DPI
        text_width = wm.width or max(1, img.width // 6)
        margin = wm.margin or text_width
        opacity = min(wm.opacity or DEFAULT_OPACITY, 1.0)
        alpha = round(255 * opacity)

        base = img.convert("RGBA")
        layer = Image.new("RGBA", base.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        font = self._load_font(wm.font or DEFAULT_FONT, dpi)
        text = "\n".join(self._wrap(draw, wm.text, font, text_width))
        left, top, right, bottom = draw.multiline_textbbox((0, 0), text, font=font)
        box_w, box_h = max(1, right - left), max(1, bottom - top)

        if wm.no_replicate:
            positions = [(margin, margin)]
        else:
            positions = [
                (x, y)
                for y in range(margin, max(base.height, margin + 1), box_h + margin)
                for x in range(margin, max(base.width, margin + 1), box_w + margin)
            ]

        for x, y in positions:
            if wm.background is not None:
                draw.rectangle((x, y, x + box_w, y + box_h), fill=(*wm.background, alpha))
            draw.multiline_text((x - left, y - top), text, font=font, fill=(255, 255, 255, alpha))

        out = Image.alpha_composite(base, layer)
        if "A" not in img.getbands():
            out = out.convert("RGB")
        return out

    @staticmethod
    def _load_font(description: str, dpi: int) -> ImageFont.ImageFont | ImageFont.FreeTypeFont:
        """Load a ``"<name> <points>"`` font description at ``dpi``."""
        name, _, size = description.rpartition(" ")
        if not name or not size.isdigit():
            name, size = description, "10"
        pixels = max(1, round(int(size) * dpi / 72))
        try:
            return ImageFont.truetype(name, pixels)
        except OSError:
            logger.debug(f"Font {name!r} not found, using the default font")
            return ImageFont.load_default(size=pixels)

    @staticmethod
    def _wrap(draw: ImageDraw.ImageDraw, text: str, font, width: int) -> List[str]:
        lines: List[str] = []
        for paragraph in text.splitlines() or [""]:
            current: Optional[str] = None
            for word in paragraph.split(" "):
                candidate = word if current is None else f"{current} {word}"
                if current is not None and draw.textlength(candidate, font=font) > width:
                    lines.append(current)
                    current = word
                else:
                    current = candidate
            lines.append(current or "")
        return lines

    # --------------- Encoding ---------------
    def _encode(self, img: Image.Image, image_type: str, options: TransformOptions) -> bytes:
        image_type = normalize_type(image_type)
        if not self.is_supported(image_type):
            raise EngineError(f"Unsupported output image type: {image_type}")
        fmt = PIL_FORMATS[image_type]

        params = {}
        if fmt in ("JPEG", "WEBP", "AVIF", "HEIF"):
            params["quality"] = options.quality or self._quality
        if fmt == "PNG":
            params["compress_level"] = options.compression or self._compression
        out = io.BytesIO()
        with _engine_errors(f"encode image as {image_type}"):
            if fmt == "JPEG" and img.mode not in JPEG_MODES:
                img = img.convert("RGB")
            img.save(out, format=fmt, **params)
        return out.getvalue()


__all__ = ["PillowEngine", "PIL_FORMATS"]
