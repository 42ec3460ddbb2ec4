"""Output side of the service: encoding cutouts and dumping debug images."""

from __future__ import annotations

import base64
from io import BytesIO
import logging
from pathlib import Path
from typing import Optional

import cv2
import numpy as np
from PIL import Image

from .errors import ImageProcessingError

logger = logging.getLogger(__name__)


PIL_FORMATS = {
    "png": "PNG",
    "jpg": "JPEG",
    "jpeg": "JPEG",
    "webp": "WEBP",
}


def normalize_output_format(fmt: Optional[str], default: str = "png") -> str:
    """Lower-case and validate the requested format, falling back to PNG."""
    name = (fmt or default).strip().lower()
    if name not in PIL_FORMATS:
        logger.warning("encode: unknown format '%s', falling back to png", name)
        return "png"
    return name


def encode_image(rgba: np.ndarray, fmt: str = "png") -> bytes:
    """
    Encode an RGBA array to `fmt`.

    JPEG has no alpha channel, so the image is flattened to RGB and the
    transparent pixels keep whatever color they had.
    """
    pil_format = PIL_FORMATS[normalize_output_format(fmt)]
    image = Image.fromarray(np.ascontiguousarray(rgba))
    if pil_format == "JPEG":
        image = image.convert("RGB")

    buf = BytesIO()
    try:
        image.save(buf, format=pil_format)
    except (OSError, ValueError, KeyError) as exc:
        raise ImageProcessingError(f"Could not encode {pil_format}: {exc}") from exc
    return buf.getvalue()


def image_to_base64(rgba: np.ndarray, fmt: str = "png") -> str:
    return base64.b64encode(encode_image(rgba, fmt)).decode("utf-8")


def maybe_dump_debug(rgba: np.ndarray, mask: np.ndarray, debug_dir: Path) -> None:
    """Write the mask, the alpha channel and a mask overlay when DEBUG is enabled."""
    try:
        debug_dir.mkdir(parents=True, exist_ok=True)
        cv2.imwrite(str(debug_dir / "mask.png"), mask.astype(np.uint8) * 255)
        cv2.imwrite(str(debug_dir / "alpha.png"), rgba[..., 3])

        overlay = rgba[..., :3].copy()
        overlay[~mask] = [255, 0, 0]  # background in red (RGB)
        cv2.imwrite(str(debug_dir / "mask_overlay.png"), cv2.cvtColor(overlay, cv2.COLOR_RGB2BGR))
        logger.debug("postprocess: wrote debug outputs to %s", debug_dir)
    except Exception as exc:  # noqa: BLE001
        logger.warning("postprocess: failed to write debug outputs: %s", exc)
