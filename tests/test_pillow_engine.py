import io
import json

import pytest
from PIL import Image

from fakes import make_image, open_image

from imgops.domain.types.options import ImageOptions
from imgops.domain.types.transform import TransformOptions, WatermarkOptions
from imgops.io.exceptions import EngineError, EngineFailureError, InvalidArgumentError
from imgops.ops.engine.pillow import PillowEngine
from imgops.ops.pipeline import OperationContext
from imgops.ops.transforms import operations


class TestPillowEngine:

    @pytest.fixture(scope="class")
    def engine(self):
        return PillowEngine()

    @pytest.fixture(scope="class")
    def ctx(self, engine):
        return OperationContext(engine=engine)

    @pytest.fixture(scope="class")
    def png(self):
        return make_image(size=(64, 48))

    @pytest.fixture(scope="class")
    def jpeg(self):
        return make_image(size=(120, 80), fmt="JPEG")

    def test_type_registry(self, engine):
        assert engine.is_supported("png")
        assert engine.is_supported("jpg")
        assert engine.is_supported("JPEG")
        assert not engine.is_supported("not-a-real-format")
        assert "png" in engine.supported_types()

    def test_detect_type(self, engine, png, jpeg):
        assert engine.detect_type(png) == "png"
        assert engine.detect_type(jpeg) == "jpeg"
        assert engine.detect_type(b"definitely not an image") == "unknown"

    def test_info_matches_fixture(self, ctx, jpeg):
        result = operations.info(jpeg, ImageOptions(), ctx)
        info = json.loads(result.body)
        assert result.mime == "application/json"
        assert (info["width"], info["height"]) == (120, 80)
        assert info["type"] == "jpeg"
        assert info["space"] == "srgb"
        assert info["channels"] == 3
        assert info["hasAlpha"] is False
        assert set(info) == {
            "width", "height", "type", "space", "hasAlpha", "hasProfile", "channels", "orientation"
        }

    def test_info_alpha(self, ctx):
        info = json.loads(operations.info(make_image(mode="RGBA", color=(0, 0, 0, 0)), ImageOptions(), ctx).body)
        assert info["hasAlpha"] is True
        assert info["channels"] == 4

    def test_info_rejects_garbage(self, ctx):
        with pytest.raises(InvalidArgumentError):
            operations.info(b"garbage", ImageOptions(), ctx)

    def test_corrupt_input(self, ctx):
        with pytest.raises(EngineFailureError):
            operations.flip(b"\x89PNG\r\n\x1a\n broken", ImageOptions(), ctx)

    @pytest.mark.parametrize("image_type, mime", [("jpeg", "image/jpeg"), ("png", "image/png"), ("webp", "image/webp")])
    def test_convert(self, ctx, png, image_type, mime):
        result = operations.convert(png, ImageOptions(type=image_type), ctx)
        assert result.mime == mime
        assert open_image(result.body).size == (64, 48)

    def test_convert_rgba_to_jpeg(self, ctx):
        result = operations.convert(make_image(mode="RGBA", color=(1, 2, 3, 4)), ImageOptions(type="jpg"), ctx)
        assert result.mime == "image/jpeg"
        assert open_image(result.body).mode == "RGB"

    def test_resize_single_dimension(self, ctx, png):
        result = operations.resize(png, ImageOptions(width=32), ctx)
        assert open_image(result.body).size == (32, 24)
        assert result.mime == "image/png"

    def test_resize_crop(self, ctx, png):
        result = operations.resize(png, ImageOptions(width=20, height=20), ctx)
        assert open_image(result.body).size == (20, 20)

    def test_resize_embed(self, ctx, png):
        result = operations.resize(png, ImageOptions(width=20, height=20, no_crop=True), ctx)
        assert open_image(result.body).size == (20, 20)

    def test_thumbnail_never_upscales(self, ctx, png):
        result = operations.thumbnail(png, ImageOptions(width=640, no_crop=True), ctx)
        assert open_image(result.body).size == (64, 48)

    def test_enlarge(self, ctx, png):
        result = operations.enlarge(png, ImageOptions(width=128, height=96), ctx)
        assert open_image(result.body).size == (128, 96)

    def test_crop(self, ctx, png):
        result = operations.crop(png, ImageOptions(width=30, height=10), ctx)
        assert open_image(result.body).size == (30, 10)

    def test_extract(self, ctx, png):
        result = operations.extract(png, ImageOptions(top=4, left=8, area_width=16, area_height=10), ctx)
        assert open_image(result.body).size == (16, 10)

    def test_extract_out_of_bounds(self, ctx, png):
        with pytest.raises(EngineFailureError):
            operations.extract(png, ImageOptions(left=60, area_width=16, area_height=10), ctx)

    @pytest.mark.parametrize("angle, size", [(90, (48, 64)), (180, (64, 48)), (270, (48, 64))])
    def test_rotate(self, ctx, png, angle, size):
        result = operations.rotate(png, ImageOptions(rotate=angle), ctx)
        assert open_image(result.body).size == size

    def test_rotate_45_expands(self, ctx, png):
        width, height = open_image(operations.rotate(png, ImageOptions(rotate=45), ctx).body).size
        assert width > 64 and height > 48

    def test_flip_and_flop(self, engine):
        img = Image.new("L", (2, 2), 0)
        img.putpixel((0, 0), 255)
        out = io.BytesIO()
        img.save(out, format="PNG")
        buf = out.getvalue()

        flipped = open_image(engine.transform(buf, TransformOptions(flip=True)))
        assert flipped.getpixel((0, 1)) == 255
        flopped = open_image(engine.transform(buf, TransformOptions(flop=True)))
        assert flopped.getpixel((1, 0)) == 255

    def test_zoom(self, ctx, png):
        result = operations.zoom(png, ImageOptions(factor=2), ctx)
        assert open_image(result.body).size == (128, 96)

    def test_zoom_area(self, ctx, png):
        result = operations.zoom(png, ImageOptions(factor=2, top=2, left=2, area_width=10, area_height=8), ctx)
        assert open_image(result.body).size == (20, 16)

    def test_watermark(self, ctx, png):
        result = operations.watermark(png, ImageOptions(text="imgops", opacity=1.0, color=[0, 0, 0]), ctx)
        out = open_image(result.body)
        assert out.size == (64, 48)
        assert result.body != png

    def test_watermark_single(self, engine, png):
        options = TransformOptions(watermark=WatermarkOptions(text="x", no_replicate=True, margin=2))
        assert open_image(engine.transform(png, options)).size == (64, 48)

    def test_unsupported_output(self, engine, png):
        with pytest.raises(EngineError):
            engine.transform(png, TransformOptions(type="unknown"))

    def test_unknown_type_keeps_source(self, ctx, png):
        result = operations.resize(png, ImageOptions(width=10, type="bogus"), ctx)
        assert result.mime == "image/png"
        assert open_image(result.body).format == "PNG"

    def test_decoded_images_are_closed(self, engine, png, monkeypatch):
        opened = []
        real_open = Image.open

        def tracking_open(*args, **kwargs):
            img = real_open(*args, **kwargs)
            opened.append(img)
            return img

        monkeypatch.setattr(Image, "open", tracking_open)
        engine.metadata(png)
        engine.transform(png, TransformOptions(width=10))
        assert len(opened) == 2
        assert all(img.fp is None for img in opened)


if __name__ == "__main__":
    pytest.main([__file__])
