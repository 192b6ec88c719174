"""High-level pipeline orchestration for OCR → Translate → Render."""

from .batch import (
    MAX_CONCURRENT_TRANSLATIONS,
    rescale_block,
    translate_blocks_parallel,
)
from .process import (
    extract_text_from_image,
    translate_image,
)

__all__ = [
    "MAX_CONCURRENT_TRANSLATIONS",
    "extract_text_from_image",
    "rescale_block",
    "translate_blocks_parallel",
    "translate_image",
]
