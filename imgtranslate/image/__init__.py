"""Image-level utilities (decode, OCR downscaling, background estimation)."""

from .processing import (
    MAX_IMAGE_DIMENSION,
    get_background_color,
    get_image_info,
    open_image,
    preprocess_image,
    round_half_up,
)

__all__ = [
    "MAX_IMAGE_DIMENSION",
    "get_background_color",
    "get_image_info",
    "open_image",
    "preprocess_image",
    "round_half_up",
]
