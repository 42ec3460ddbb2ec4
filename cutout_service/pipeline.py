"""
High-level background removal pipeline.

`remove_background` runs the pixel stages on a decoded RGBA array and
`process_image_bytes` wraps it for the HTTP API and the local script:
bytes in -> RGBA decode -> sampler -> mask -> feathered alpha -> RGBA out.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
import time
from typing import Optional

import numpy as np

from . import config
from .background import (
    DEFAULT_COLOR_TOLERANCE,
    DEFAULT_EDGE_BLUR_RADIUS,
    Color,
    apply_mask,
    build_mask,
    sample_background_color,
)
from .postprocessing import maybe_dump_debug
from .preprocessing import load_rgba_from_bytes

logger = logging.getLogger(__name__)


@dataclass
class RemovalOptions:
    color_tolerance: float = DEFAULT_COLOR_TOLERANCE
    edge_blur_radius: int = DEFAULT_EDGE_BLUR_RADIUS

    def __post_init__(self) -> None:
        if self.color_tolerance < 0:
            raise ValueError(f"color_tolerance must be >= 0, got {self.color_tolerance}")
        if self.edge_blur_radius < 0:
            raise ValueError(f"edge_blur_radius must be >= 0, got {self.edge_blur_radius}")

    @classmethod
    def from_settings(cls, settings: Optional[config.Settings] = None) -> "RemovalOptions":
        settings = settings or config.get_settings()
        return cls(
            color_tolerance=settings.color_tolerance,
            edge_blur_radius=settings.edge_blur_radius,
        )


@dataclass
class RemovalResult:
    rgba: np.ndarray
    mask: np.ndarray
    background: Color


def remove_background(image: np.ndarray, options: Optional[RemovalOptions] = None) -> RemovalResult:
    """
    Make the uniform background of `image` transparent.

    The input array is not modified; the result carries a new RGBA buffer of
    the same shape together with the mask and the detected color.
    """
    options = options or RemovalOptions()
    t0 = time.perf_counter()

    background = sample_background_color(image)
    mask = build_mask(image, background, options.color_tolerance)
    rgba = apply_mask(image, mask, options.edge_blur_radius)

    logger.info(
        "Removed background %s from %dx%d image (tolerance=%.1f radius=%d) in %.1f ms",
        tuple(background[:3]),
        image.shape[1],
        image.shape[0],
        options.color_tolerance,
        options.edge_blur_radius,
        (time.perf_counter() - t0) * 1000.0,
    )
    return RemovalResult(rgba=rgba, mask=mask, background=background)


def process_image_bytes(image_bytes: bytes, options: Optional[RemovalOptions] = None) -> np.ndarray:
    """
    Full pipeline from encoded image bytes to an RGBA array.

    Raises:
        ImageProcessingError: when the bytes cannot be decoded.
    """
    settings = config.get_settings()
    options = options or RemovalOptions.from_settings(settings)

    image = load_rgba_from_bytes(image_bytes)
    result = remove_background(image, options)

    if settings.debug:
        maybe_dump_debug(result.rgba, result.mask, Path(settings.debug_output_dir))
    return result.rgba
