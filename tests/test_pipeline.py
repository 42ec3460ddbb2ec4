import base64
from io import BytesIO

import numpy as np
from PIL import Image
import pytest
import requests

from cutout_service import config, preprocessing
from cutout_service.errors import Base64DecodeError, ImageDownloadError, ImageProcessingError
from cutout_service.pipeline import RemovalOptions, process_image_bytes
from cutout_service.postprocessing import encode_image, image_to_base64, normalize_output_format
from cutout_service.preprocessing import decode_base64_image, download_image, load_rgba_from_bytes

from .conftest import png_bytes, solid_image


class FakeResponse:
    def __init__(self, content=b"", status_code=200):
        self.content = content
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


def test_process_image_bytes_keeps_dimensions(framed_image):
    rgba = process_image_bytes(png_bytes(framed_image))
    assert rgba.shape == framed_image.shape
    assert rgba[0, 0, 3] == 0
    assert rgba[10, 10, 3] == 255


def test_process_image_bytes_accepts_rgb_input(framed_image):
    buf = BytesIO()
    Image.fromarray(framed_image[..., :3]).save(buf, format="PNG")
    rgba = process_image_bytes(buf.getvalue())
    assert rgba.shape == (20, 20, 4)
    assert rgba[10, 10, 3] == 255


def test_process_image_bytes_rejects_garbage():
    with pytest.raises(ImageProcessingError):
        process_image_bytes(b"definitely not an image")


def test_options_follow_settings(monkeypatch):
    monkeypatch.setenv("COLOR_TOLERANCE", "12.5")
    monkeypatch.setenv("EDGE_BLUR_RADIUS", "4")
    config.get_settings.cache_clear()

    options = RemovalOptions.from_settings()

    assert options == RemovalOptions(color_tolerance=12.5, edge_blur_radius=4)


def test_settings_reject_negative_radius(monkeypatch):
    monkeypatch.setenv("EDGE_BLUR_RADIUS", "-1")
    with pytest.raises(ValueError):
        config.Settings()


def test_settings_reject_unknown_default_format(monkeypatch):
    monkeypatch.setenv("DEFAULT_OUTPUT_FORMAT", "gif")
    with pytest.raises(ValueError):
        config.Settings()


def test_higher_tolerance_swallows_near_background():
    image = solid_image(12, 12)
    image[4:8, 4:8] = (230, 230, 230, 255)  # ~43 away from white

    kept = process_image_bytes(png_bytes(image), RemovalOptions(color_tolerance=30.0))
    dropped = process_image_bytes(png_bytes(image), RemovalOptions(color_tolerance=50.0))

    assert kept[5, 5, 3] > 0
    assert dropped[5, 5, 3] == 0


def test_debug_dump_writes_mask(monkeypatch, tmp_path, framed_image):
    monkeypatch.setenv("DEBUG", "true")
    monkeypatch.setenv("DEBUG_OUTPUT_DIR", str(tmp_path / "dbg"))
    config.get_settings.cache_clear()

    process_image_bytes(png_bytes(framed_image))

    mask = np.array(Image.open(tmp_path / "dbg" / "mask.png"))
    assert mask[10, 10] == 255
    assert mask[0, 0] == 0
    assert (tmp_path / "dbg" / "alpha.png").exists()


@pytest.mark.parametrize(
    "requested,expected",
    [("png", "png"), (" JPG ", "jpg"), ("jpeg", "jpeg"), ("WebP", "webp"), ("gif", "png"), (None, "png")],
)
def test_normalize_output_format(requested, expected):
    assert normalize_output_format(requested) == expected


def test_encode_png_keeps_alpha(framed_image):
    rgba = process_image_bytes(png_bytes(framed_image))
    decoded = Image.open(BytesIO(encode_image(rgba, "png")))
    assert decoded.mode == "RGBA"
    assert np.array_equal(np.array(decoded), rgba)


def test_encode_jpeg_flattens_to_rgb(framed_image):
    decoded = Image.open(BytesIO(encode_image(framed_image, "jpg")))
    assert decoded.format == "JPEG"
    assert decoded.mode == "RGB"
    assert decoded.size == (20, 20)


def test_encode_webp(framed_image):
    rgba = process_image_bytes(png_bytes(framed_image))
    decoded = Image.open(BytesIO(encode_image(rgba, "webp")))
    assert decoded.format == "WEBP"
    assert decoded.size == (20, 20)


def test_image_to_base64_decodes_back(framed_image):
    data = base64.b64decode(image_to_base64(framed_image, "png"))
    assert np.array_equal(load_rgba_from_bytes(data), framed_image)


def test_decode_base64_plain_and_data_url(framed_image):
    raw = png_bytes(framed_image)
    encoded = base64.b64encode(raw).decode()
    assert decode_base64_image(encoded) == raw
    assert decode_base64_image("data:image/png;base64," + encoded) == raw


def test_decode_base64_rejects_invalid():
    with pytest.raises(Base64DecodeError):
        decode_base64_image("@@not base64@@")


def test_download_image(monkeypatch):
    calls = []

    def fake_get(url, timeout):
        calls.append((url, timeout))
        return FakeResponse(b"payload")

    monkeypatch.setattr(preprocessing.requests, "get", fake_get)
    assert download_image("http://example.com/a.png", 7) == b"payload"
    assert calls == [("http://example.com/a.png", (5, 7))]


def test_download_image_http_error(monkeypatch):
    monkeypatch.setattr(preprocessing.requests, "get", lambda url, timeout: FakeResponse(status_code=404))
    with pytest.raises(ImageDownloadError):
        download_image("http://example.com/missing.png")


def test_download_image_connection_error(monkeypatch):
    def fail(url, timeout):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(preprocessing.requests, "get", fail)
    with pytest.raises(ImageDownloadError):
        download_image("http://example.com/a.png")


@pytest.mark.parametrize("kwargs", [{"color_tolerance": -0.5}, {"edge_blur_radius": -1}])
def test_options_reject_negative_values(kwargs):
    with pytest.raises(ValueError):
        RemovalOptions(**kwargs)
