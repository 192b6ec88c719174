"""OCR (Optical Character Recognition) utilities.

This package wraps pytesseract behind a single long-lived worker slot and
converts its word table into line-level text blocks.
"""

from .reader import (
    LANG_MAP,
    Recognizer,
    TesseractWorker,
    build_dataframe_from_tesseract,
    get_recognizer,
    group_words_to_lines,
    lines_to_blocks,
    map_language,
    preprocess_image_for_ocr,
    terminate_recognizer,
)

__all__ = [
    "LANG_MAP",
    "Recognizer",
    "TesseractWorker",
    "build_dataframe_from_tesseract",
    "get_recognizer",
    "group_words_to_lines",
    "lines_to_blocks",
    "map_language",
    "preprocess_image_for_ocr",
    "terminate_recognizer",
]
