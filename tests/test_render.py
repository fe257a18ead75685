import io

import pytest
from PIL import Image

from branding import render
from branding.config import BrandingConfig
from branding.errors import DecodeError, EncodeError, RenderError
from branding.render import (
    Corner,
    LOGO_ASPECT_RATIO,
    compose,
    composite,
    corner_box,
    decode_image,
    encode_jpeg,
    watermark_box,
)
from tests.fakes import encode

WHITE = (255, 255, 255)
RED = (255, 0, 0)


@pytest.fixture
def background():
    img = Image.new("RGB", (400, 300), WHITE)
    yield img
    img.close()


@pytest.fixture
def red_logo():
    img = Image.new("RGBA", (60, 40), RED + (255,))
    yield img
    img.close()


def _mark_bbox(canvas: Image.Image):
    return canvas.convert("L").point(lambda v: 255 if v > 128 else 0).getbbox()


@pytest.mark.parametrize("scale", [0.01, 0.1, 0.33, 0.5, 0.65, 0.99, 1.0])
def test_boxes_keep_forced_aspect_ratio(scale):
    cfg = BrandingConfig(
        watermark_opacity=0.3, watermark_scale=scale, logo_scale=scale, logo_padding=5
    )
    wm = watermark_box((1234, 567), cfg)
    assert wm.width == 1234 * scale
    assert wm.height == wm.width / LOGO_ASPECT_RATIO

    for corner in Corner:
        box = corner_box((1234, 567), corner, cfg)
        assert box.width == 1234 * scale
        assert box.height == box.width / LOGO_ASPECT_RATIO


def test_watermark_is_centered(config):
    box = watermark_box((400, 300), config)
    assert box.x == (400 - 200) / 2
    assert box.y == (300 - 200 / 1.1) / 2


@pytest.mark.parametrize(
    "corner, expected",
    [
        (Corner.TOP_LEFT, (10, 10)),
        (Corner.TOP_RIGHT, (400 - 100 - 10, 10)),
        (Corner.BOTTOM_LEFT, (10, 300 - 100 / 1.1 - 10)),
        (Corner.BOTTOM_RIGHT, (400 - 100 - 10, 300 - 100 / 1.1 - 10)),
    ],
)
def test_corner_box_coordinates(config, corner, expected):
    box = corner_box((400, 300), corner, config)
    assert (box.x, box.y) == expected


def test_corner_box_accepts_plain_strings(config):
    assert corner_box((400, 300), "bottom-left", config) == corner_box(
        (400, 300), Corner.BOTTOM_LEFT, config
    )


def test_unrecognized_corner_resolves_to_top_right(config):
    assert corner_box((400, 300), "middle", config) == corner_box(
        (400, 300), Corner.TOP_RIGHT, config
    )


@pytest.mark.parametrize("corner", list(Corner))
@pytest.mark.parametrize("size", [(400, 300), (300, 900), (1920, 1080)])
def test_corner_mark_stays_within_canvas(corner, size):
    cfg = BrandingConfig(
        watermark_opacity=0.3, watermark_scale=0.65, logo_scale=0.3, logo_padding=12
    )
    box = corner_box(size, corner, cfg)
    assert box.width + cfg.logo_padding <= size[0]
    assert box.height + cfg.logo_padding <= size[1]
    assert 0 <= box.x and box.x + box.width <= size[0]
    assert 0 <= box.y and box.y + box.height <= size[1]


def test_compose_keeps_background_resolution(background, red_logo, config):
    canvas = compose(background, red_logo, Corner.TOP_LEFT, config)
    assert canvas.size == background.size
    assert canvas.mode == "RGB"


def test_corner_mark_drawn_opaque_at_top_left(background, red_logo, config):
    canvas = compose(background, red_logo, Corner.TOP_LEFT, config)

    assert canvas.getpixel((10, 10)) == RED
    assert canvas.getpixel((60, 50)) == RED
    assert canvas.getpixel((9, 9)) == WHITE
    assert canvas.getpixel((120, 50)) == WHITE


def test_watermark_drawn_at_configured_opacity(background, red_logo, config):
    canvas = compose(background, red_logo, Corner.TOP_RIGHT, config)

    r, g, b = canvas.getpixel((200, 150))
    assert r == 255
    assert 120 <= g <= 135
    assert 120 <= b <= 135


def test_zero_opacity_watermark_leaves_background(background, red_logo):
    cfg = BrandingConfig(
        watermark_opacity=0.0, watermark_scale=0.5, logo_scale=0.25, logo_padding=10
    )
    canvas = compose(background, red_logo, Corner.TOP_LEFT, cfg)
    assert canvas.getpixel((200, 150)) == WHITE


def test_corner_mark_is_drawn_over_watermark(background, red_logo):
    cfg = BrandingConfig(
        watermark_opacity=0.5, watermark_scale=1.0, logo_scale=0.25, logo_padding=10
    )
    canvas = compose(background, red_logo, Corner.TOP_LEFT, cfg)

    # Inside the corner mark: full strength, not washed out.
    assert canvas.getpixel((20, 20)) == RED
    # Outside it the full-width watermark is translucent.
    r, g, _ = canvas.getpixel((5, 5))
    assert r == 255
    assert 120 <= g <= 135


def test_logo_is_stretched_regardless_of_source_aspect():
    background = Image.new("RGB", (440, 400), (0, 0, 0))
    tall_logo = Image.new("RGBA", (30, 90), (255, 255, 255, 255))
    cfg = BrandingConfig(
        watermark_opacity=0.0, watermark_scale=0.5, logo_scale=0.5, logo_padding=10
    )

    canvas = compose(background, tall_logo, Corner.TOP_LEFT, cfg)

    assert _mark_bbox(canvas) == (10, 10, 10 + 220, 10 + 200)


def test_transparent_logo_pixels_do_not_cover_background(background, config):
    logo = Image.new("RGBA", (60, 40), (0, 0, 0, 0))
    canvas = compose(background, logo, Corner.TOP_LEFT, config)
    assert canvas.getpixel((20, 20)) == WHITE


def test_composite_outputs_jpeg_at_native_size(background, red_logo, config):
    data = composite(background, red_logo, Corner.BOTTOM_RIGHT, config)

    with Image.open(io.BytesIO(data)) as out:
        assert out.format == "JPEG"
        assert out.size == (400, 300)


def test_composite_is_deterministic(background, red_logo, config):
    first = composite(background, red_logo, Corner.TOP_LEFT, config)
    second = composite(background, red_logo, Corner.TOP_LEFT, config)
    assert first == second


def test_render_error_when_surface_unavailable(monkeypatch, background, red_logo, config):
    def no_surface(*args, **kwargs):
        raise MemoryError("out of memory")

    monkeypatch.setattr(render.Image, "new", no_surface)

    with pytest.raises(RenderError):
        compose(background, red_logo, Corner.TOP_LEFT, config)


def test_encode_error_when_encoder_writes_nothing(monkeypatch, background):
    monkeypatch.setattr(Image.Image, "save", lambda self, fp, format=None, **kw: None)

    with pytest.raises(EncodeError):
        encode_jpeg(background)


def test_decode_image_rejects_garbage():
    with pytest.raises(DecodeError):
        decode_image(b"definitely not an image")


def test_decode_image_returns_loaded_raster(make_image):
    img = decode_image(make_image(size=(32, 16), fmt="WEBP"))
    try:
        assert img.size == (32, 16)
    finally:
        img.close()


def _rotated_phone_photo() -> bytes:
    # Stored landscape, displayed portrait: Orientation 6 = rotate 90 CW.
    img = Image.new("RGB", (400, 300), WHITE)
    exif = Image.Exif()
    exif[0x0112] = 6
    try:
        return encode(img, "JPEG", exif=exif)
    finally:
        img.close()


def test_decode_image_applies_exif_orientation():
    img = decode_image(_rotated_phone_photo())
    try:
        assert img.size == (300, 400)
    finally:
        img.close()


def test_rotated_photo_is_branded_as_displayed(red_logo, config):
    background = decode_image(_rotated_phone_photo())
    try:
        data = composite(background, red_logo, Corner.TOP_LEFT, config)
    finally:
        background.close()

    with Image.open(io.BytesIO(data)) as out:
        assert out.size == (300, 400)
        r, g, b = out.convert("RGB").getpixel((20, 20))
        assert r > 200 and g < 60 and b < 60


def test_decode_image_releases_the_unrotated_source(monkeypatch):
    closed = []
    original_close = Image.Image.close

    def tracking_close(self):
        closed.append(self.size)
        original_close(self)

    monkeypatch.setattr(Image.Image, "close", tracking_close)

    img = decode_image(_rotated_phone_photo())

    assert (400, 300) in closed
    assert img.size == (300, 400)
