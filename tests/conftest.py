from io import BytesIO

import numpy as np
from PIL import Image
import pytest

from cutout_service import config

WHITE = (255, 255, 255, 255)
BLACK = (0, 0, 0, 255)
RED = (200, 30, 30, 255)


def solid_image(width, height, color=WHITE):
    image = np.zeros((height, width, 4), dtype=np.uint8)
    image[...] = color
    return image


def png_bytes(image):
    buf = BytesIO()
    Image.fromarray(image).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    for name in ("COLOR_TOLERANCE", "EDGE_BLUR_RADIUS", "DEFAULT_OUTPUT_FORMAT", "DEBUG", "DEBUG_OUTPUT_DIR"):
        monkeypatch.delenv(name, raising=False)
    config.get_settings.cache_clear()
    yield
    config.get_settings.cache_clear()


@pytest.fixture
def framed_image():
    """20x20 white image with a red 8x8 square at x, y in [6, 14)."""
    image = solid_image(20, 20)
    image[6:14, 6:14] = RED
    return image
