"""
Uniform-background removal on RGBA pixel buffers.

The core runs four stages in order on an immutable `(H, W, 4)` uint8 array:
corner sampling of the background color, color-distance mask with an
edge-seeded flood fill, neighborhood-ratio feathering, and alpha application.
Nothing here does I/O; callers hand in decoded pixels and encode the result.
"""

from __future__ import annotations

import logging
from typing import List, NamedTuple, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_COLOR_TOLERANCE = 30.0
DEFAULT_EDGE_BLUR_RADIUS = 2
MAX_CORNER_SAMPLE = 5

class Color(NamedTuple):
    r: int
    g: int
    b: int
    a: int = 255


def _check_rgba(image: np.ndarray) -> Tuple[int, int]:
    if image.ndim != 3 or image.shape[2] != 4:
        raise ValueError(f"Expected an (H, W, 4) RGBA array, got shape {image.shape}")
    height, width = image.shape[:2]
    return width, height


def corner_sample_size(width: int, height: int) -> int:
    """Side of the square sampled at each corner, never 0 for a non-empty image."""
    if width <= 0 or height <= 0:
        return 0
    return max(1, min(MAX_CORNER_SAMPLE, width // 4, height // 4))


def sample_background_color(image: np.ndarray) -> Color:
    """
    Estimate the background color from the four image corners.

    The corner squares are pooled and each RGB channel is averaged, truncating
    toward zero. Small images may sample the same pixel from several corners.
    """
    width, height = _check_rgba(image)
    size = corner_sample_size(width, height)
    if size == 0:
        logger.warning("background: empty %dx%d image, defaulting to black", width, height)
        return Color(0, 0, 0)

    corners = (
        image[:size, :size],
        image[:size, width - size :],
        image[height - size :, :size],
        image[height - size :, width - size :],
    )
    samples = np.concatenate([c.reshape(-1, 4)[:, :3] for c in corners]).astype(np.int64)
    means = samples.sum(axis=0) // samples.shape[0]
    return Color(int(means[0]), int(means[1]), int(means[2]))


def color_distance(pixels: np.ndarray, color: Color) -> np.ndarray:
    """Euclidean RGB distance of every pixel to `color`; alpha is ignored."""
    diff = pixels[..., :3].astype(np.float64) - np.array(color[:3], dtype=np.float64)
    return np.sqrt(np.sum(diff * diff, axis=-1))


def classify_pixels(image: np.ndarray, background: Color, tolerance: float) -> np.ndarray:
    """Foreground (True) where the color is farther than `tolerance` from the background."""
    _check_rgba(image)
    return color_distance(image, background) > tolerance


def _border_seeds(width: int, height: int) -> List[int]:
    """Flat indices of the top, bottom, left and right border pixels."""
    last_row = (height - 1) * width
    seeds = list(range(width))
    seeds += range(last_row, last_row + width)
    seeds += range(0, last_row + 1, width)
    seeds += range(width - 1, last_row + width, width)
    return seeds


def flood_fill_background(mask: np.ndarray) -> int:
    """
    Mark every background pixel connected to the image border as background.

    Traverses 4-connected background pixels from each unvisited border seed
    with an explicit stack. Only pixels already classified as background are
    entered, so foreground never changes and background-colored islands
    enclosed by foreground are left alone. Operates in place and returns the
    number of pixels reached.
    """
    height, width = mask.shape
    if width == 0 or height == 0:
        return 0

    # one byte per pixel, indexed y * width + x
    foreground = bytearray(np.ascontiguousarray(mask, dtype=np.uint8).tobytes())
    visited = bytearray(width * height)
    last_col = width - 1
    reached = 0

    for start in _border_seeds(width, height):
        if visited[start] or foreground[start]:
            continue
        stack = [start]
        while stack:
            idx = stack.pop()
            if visited[idx]:
                continue
            visited[idx] = 1
            reached += 1
            x = idx % width
            for nidx in (
                idx - width if idx >= width else -1,
                idx + width if idx + width < len(visited) else -1,
                idx - 1 if x > 0 else -1,
                idx + 1 if x < last_col else -1,
            ):
                if nidx >= 0 and not visited[nidx] and not foreground[nidx]:
                    stack.append(nidx)

    mask[np.frombuffer(visited, dtype=np.uint8).view(bool).reshape(height, width)] = False
    return reached


def build_mask(
    image: np.ndarray,
    background: Color,
    tolerance: float = DEFAULT_COLOR_TOLERANCE,
) -> np.ndarray:
    """Color classification followed by the border-connectivity pass."""
    mask = classify_pixels(image, background, tolerance)
    reached = flood_fill_background(mask)
    logger.debug(
        "background: %d of %d pixels border-connected background, %d foreground",
        reached,
        mask.size,
        int(np.count_nonzero(mask)),
    )
    return mask


def feather_opacity(mask: np.ndarray, x: int, y: int, radius: int = DEFAULT_EDGE_BLUR_RADIUS) -> float:
    """Opacity multiplier for one pixel from the background share of its window."""
    if not mask[y, x]:
        return 0.0
    window = mask[max(0, y - radius) : y + radius + 1, max(0, x - radius) : x + radius + 1]
    background_count = window.size - int(np.count_nonzero(window))
    return max(0.0, 1.0 - background_count / window.size)


def feather_map(mask: np.ndarray, radius: int = DEFAULT_EDGE_BLUR_RADIUS) -> np.ndarray:
    """`feather_opacity` for every pixel, computed with a summed-area table."""
    height, width = mask.shape
    if width == 0 or height == 0:
        return np.zeros((height, width), dtype=np.float64)

    integral = cv2.integral((~mask).astype(np.uint8)).astype(np.int64)

    xs = np.arange(width)
    ys = np.arange(height)
    x0 = np.clip(xs - radius, 0, width)
    x1 = np.clip(xs + radius + 1, 0, width)
    y0 = np.clip(ys - radius, 0, height)[:, None]
    y1 = np.clip(ys + radius + 1, 0, height)[:, None]

    counts = integral[y1, x1] - integral[y0, x1] - integral[y1, x0] + integral[y0, x0]
    totals = (y1 - y0) * (x1 - x0)
    opacity = np.maximum(0.0, 1.0 - counts / totals)
    return np.where(mask, opacity, 0.0)


def apply_mask(image: np.ndarray, mask: np.ndarray, radius: int = DEFAULT_EDGE_BLUR_RADIUS) -> np.ndarray:
    """
    Write the final alpha channel into a copy of `image`.

    Background pixels become fully transparent. Foreground alpha is scaled by
    the feather opacity and rounded half up. RGB is passed through.
    """
    _check_rgba(image)
    if mask.shape != image.shape[:2]:
        raise ValueError(f"Mask shape {mask.shape} does not match image {image.shape[:2]}")

    opacity = feather_map(mask, radius)
    alpha = np.floor(image[..., 3].astype(np.float64) * opacity + 0.5)

    result = image.copy()
    result[..., 3] = np.where(mask, np.clip(alpha, 0, 255), 0).astype(np.uint8)
    return result
