"""
Input side of the service: fetching and decoding images into RGBA arrays.

Bytes can come from a URL download, a base64 string or a multipart upload;
all of them end up in `load_rgba_from_bytes`.
"""

from __future__ import annotations

import base64
import binascii
from io import BytesIO
import logging

import numpy as np
from PIL import Image, UnidentifiedImageError
import requests

from .errors import Base64DecodeError, ImageDownloadError, ImageProcessingError

logger = logging.getLogger(__name__)


def download_image(url: str, timeout_seconds: int = 30) -> bytes:
    logger.info("Downloading image from %s", url)
    try:
        resp = requests.get(url, timeout=(5, timeout_seconds))
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise ImageDownloadError(str(exc)) from exc
    return resp.content


def decode_base64_image(data: str) -> bytes:
    """Decode standard base64, tolerating a `data:image/...;base64,` prefix."""
    logger.info("Decoding base64 image data")
    raw = data.strip()
    if raw.startswith("data:") and "," in raw:
        raw = raw.split(",", 1)[1]
    try:
        return base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise Base64DecodeError(str(exc)) from exc


def load_rgba_from_bytes(image_bytes: bytes) -> np.ndarray:
    """Decode any Pillow-readable image into an (H, W, 4) uint8 array."""
    try:
        image = Image.open(BytesIO(image_bytes))
        image = image.convert("RGBA")
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise ImageProcessingError(f"Invalid image data: {exc}") from exc
    return np.array(image, dtype=np.uint8)
