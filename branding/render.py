import io
from dataclasses import dataclass
from enum import Enum
from typing import Tuple, Union

from PIL import Image, ImageOps, UnidentifiedImageError

from .config import BrandingConfig
from .errors import DecodeError, EncodeError, RenderError


# Every brand mark is stretched to this width:height ratio when drawn.
LOGO_ASPECT_RATIO = 1.1

JPEG_QUALITY = 100


class Corner(str, Enum):
    TOP_LEFT = "top-left"
    TOP_RIGHT = "top-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_RIGHT = "bottom-right"


@dataclass(frozen=True)
class Box:
    x: float
    y: float
    width: float
    height: float

    def to_pixels(self) -> Tuple[int, int, int, int]:
        """
        Round to whole pixels for drawing. Sizes never collapse below 1px.
        """
        return (
            int(round(self.x)),
            int(round(self.y)),
            max(1, int(round(self.width))),
            max(1, int(round(self.height))),
        )


def watermark_box(canvas_size: Tuple[int, int], config: BrandingConfig) -> Box:
    canvas_w, canvas_h = canvas_size
    width = canvas_w * config.watermark_scale
    height = width / LOGO_ASPECT_RATIO
    return Box(
        x=(canvas_w - width) / 2,
        y=(canvas_h - height) / 2,
        width=width,
        height=height,
    )


def corner_box(
    canvas_size: Tuple[int, int],
    corner: Union[Corner, str],
    config: BrandingConfig,
) -> Box:
    """
    Place the corner mark `logo_padding` pixels away from the edges that
    meet at `corner`. Unrecognized corners resolve to top-right.
    """
    canvas_w, canvas_h = canvas_size
    width = canvas_w * config.logo_scale
    height = width / LOGO_ASPECT_RATIO
    pad = config.logo_padding

    corner = _coerce_corner(corner)
    if corner is Corner.TOP_LEFT:
        x, y = pad, pad
    elif corner is Corner.BOTTOM_LEFT:
        x, y = pad, canvas_h - height - pad
    elif corner is Corner.BOTTOM_RIGHT:
        x, y = canvas_w - width - pad, canvas_h - height - pad
    else:
        x, y = canvas_w - width - pad, pad

    return Box(x=x, y=y, width=width, height=height)


def compose(
    background: Image.Image,
    logo: Image.Image,
    corner: Union[Corner, str],
    config: BrandingConfig,
) -> Image.Image:
    """
    Draw background, then the translucent centered watermark, then the
    opaque corner mark, on a canvas matching the background's native size.
    """
    size = background.size
    try:
        canvas = Image.new("RGB", size, color=(0, 0, 0))
    except (MemoryError, ValueError, OSError) as e:
        raise RenderError(
            f"Could not initialize a {size[0]}x{size[1]} drawing surface: {e}"
        ) from e

    try:
        base = background.convert("RGBA")
        canvas.paste(base, (0, 0), base)
        base.close()

        logo_rgba = logo.convert("RGBA")
        _draw_logo(canvas, logo_rgba, watermark_box(size, config), config.watermark_opacity)
        _draw_logo(canvas, logo_rgba, corner_box(size, corner, config), 1.0)
        logo_rgba.close()
    except (MemoryError, ValueError, OSError) as e:
        canvas.close()
        raise RenderError(f"Failed to draw branding: {e}") from e

    return canvas


def composite(
    background: Image.Image,
    logo: Image.Image,
    corner: Union[Corner, str],
    config: BrandingConfig,
) -> bytes:
    canvas = compose(background, logo, corner, config)
    try:
        return encode_jpeg(canvas)
    finally:
        canvas.close()


def encode_jpeg(img: Image.Image) -> bytes:
    buffer = io.BytesIO()
    try:
        rgb = img if img.mode == "RGB" else img.convert("RGB")
        rgb.save(buffer, format="JPEG", quality=JPEG_QUALITY)
    except (OSError, ValueError) as e:
        raise EncodeError(f"Failed to export image as JPEG: {e}") from e

    data = buffer.getvalue()
    if not data:
        raise EncodeError("Failed to export image as JPEG: encoder produced no bytes")
    return data


def decode_image(data: bytes) -> Image.Image:
    """
    Decode PNG/JPEG/WebP bytes into a fully loaded raster, upright as it is
    displayed (EXIF orientation applied). The caller owns the returned image
    and must close it.
    """
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
        upright = ImageOps.exif_transpose(img)
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeError(f"Could not decode image: {e}") from e

    if upright is not img:
        img.close()
    return upright


def _draw_logo(canvas: Image.Image, logo: Image.Image, box: Box, opacity: float) -> None:
    x, y, width, height = box.to_pixels()
    mark = logo.resize((width, height), Image.LANCZOS)

    if opacity < 1.0:
        alpha = mark.getchannel("A").point(lambda a: int(round(a * opacity)))
        mark.putalpha(alpha)

    canvas.paste(mark, (x, y), mark)
    mark.close()


def _coerce_corner(corner: Union[Corner, str]) -> Corner:
    if isinstance(corner, Corner):
        return corner
    try:
        return Corner(corner)
    except ValueError:
        return Corner.TOP_RIGHT
