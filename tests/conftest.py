"""
Shared fixtures for branding tests: encoded test images and a default
compositing config.
"""

import pytest
from PIL import Image

from branding.config import BrandingConfig
from tests.fakes import encode


@pytest.fixture
def make_image():
    def _make(size=(400, 300), color=(255, 255, 255, 255), mode="RGBA", fmt="PNG") -> bytes:
        img = Image.new(mode, size, color if mode == "RGBA" else color[:3])
        try:
            return encode(img, fmt)
        finally:
            img.close()

    return _make


@pytest.fixture
def logo_bytes(make_image) -> bytes:
    return make_image(size=(60, 40), color=(255, 0, 0, 255))


@pytest.fixture
def config() -> BrandingConfig:
    return BrandingConfig(
        watermark_opacity=0.5,
        watermark_scale=0.5,
        logo_scale=0.25,
        logo_padding=10,
    )
