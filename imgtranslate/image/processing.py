"""Image helpers: decode, downscale for OCR, background estimation.

Buffers are raw encoded bytes (PNG, JPEG, ...); pixel work uses Pillow and
numpy arrays.
"""

from __future__ import annotations

import io
import math
from typing import Any, Dict, Tuple

import numpy as np
from PIL import Image, UnidentifiedImageError

from imgtranslate.errors import ImageDecodeError
from imgtranslate.logger import get_logger

logger = get_logger(__name__)

# Longest side fed to OCR; larger images are scaled down
MAX_IMAGE_DIMENSION = 2000


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from negative infinity."""
    return int(math.floor(value + 0.5))


def open_image(image_bytes: bytes) -> Image.Image:
    """Decode image bytes, raising `ImageDecodeError` on failure."""
    try:
        img = Image.open(io.BytesIO(image_bytes))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise ImageDecodeError(f"Failed to decode image: {exc}", {"size": len(image_bytes)}) from exc
    return img


def get_image_info(image_bytes: bytes) -> Dict[str, Any]:
    """Return width, height and format of an encoded image."""
    img = open_image(image_bytes)
    return {
        "width": img.width,
        "height": img.height,
        "format": (img.format or "unknown").lower(),
    }


def preprocess_image(image_bytes: bytes, max_dimension: int = MAX_IMAGE_DIMENSION) -> Tuple[bytes, float]:
    """Scale an oversized image down so its longest side is `max_dimension`.

    Doxygen:
    - @param image_bytes: Encoded input image.
    - @param max_dimension: Longest side allowed before resizing.
    - @return: (buffer, scale). The input buffer itself and 1.0 when no resize is needed.
    - @throws ImageDecodeError: If the image cannot be read or resized.
    """
    img = open_image(image_bytes)
    width, height = img.size
    max_dim = max(width, height)

    if max_dim <= max_dimension:
        return image_bytes, 1.0

    scale = max_dimension / max_dim
    new_width = max(1, round_half_up(width * scale))
    new_height = max(1, round_half_up(height * scale))

    logger.info(
        "scaling image",
        width=width,
        height=height,
        new_width=new_width,
        new_height=new_height,
        scale=round(scale, 4),
    )

    fmt = img.format or "PNG"
    try:
        resized = img.resize((new_width, new_height), Image.LANCZOS)
        if fmt == "JPEG" and resized.mode not in ("RGB", "L", "CMYK"):
            resized = resized.convert("RGB")
        out = io.BytesIO()
        resized.save(out, format=fmt)
    except (OSError, ValueError, KeyError) as exc:
        raise ImageDecodeError(f"Failed to resize image: {exc}", {"format": fmt}) from exc
    return out.getvalue(), scale


def get_background_color(img: np.ndarray, x: int, y: int, w: int, h: int) -> np.ndarray:
    """Estimate background color around a rectangle using border median.

    Doxygen:
    - @param img: Input image array (RGB uint8).
    - @param x: Left coordinate of the rectangle.
    - @param y: Top coordinate of the rectangle.
    - @param w: Width of the rectangle.
    - @param h: Height of the rectangle.
    - @return: Estimated background color as array of 3 integers.
    """
    margin = 10
    x_start = min(max(0, x - margin), img.shape[1] - 1)
    y_start = min(max(0, y - margin), img.shape[0] - 1)
    x_end = max(x_start + 1, min(img.shape[1], x + w + margin))
    y_end = max(y_start + 1, min(img.shape[0], y + h + margin))
    region = img[y_start:y_end, x_start:x_end, :3]
    edges = np.concatenate([
        region[0, :].reshape(-1, 3),
        region[-1, :].reshape(-1, 3),
        region[:, 0].reshape(-1, 3),
        region[:, -1].reshape(-1, 3),
    ])
    return np.median(edges, axis=0).astype(int)
