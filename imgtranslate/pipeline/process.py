"""High-level pipeline: preprocess → OCR → translate → render.

Two entry points:
- `translate_image`: replace the text in an image with its translation.
- `extract_text_from_image`: OCR only.

Collaborators default to the process-wide recognizer, translator and
langdetect-based detector; each can be injected for tests or embedding.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional, Tuple

from imgtranslate.config import Settings, get_settings
from imgtranslate.errors import LanguageDetectionError
from imgtranslate.image.processing import preprocess_image
from imgtranslate.llm.language_detector import detect_language
from imgtranslate.logger import get_logger
from imgtranslate.models import ImageTranslateResult, OCRResult, RenderOptions
from imgtranslate.ocr.reader import Recognizer, get_recognizer, map_language
from imgtranslate.render.draw import render_translated_image

from .batch import TranslateFn, translate_blocks_parallel

logger = get_logger(__name__)

AUTO = "auto"
# Source language assumed when the first OCR pass finds no text
FALLBACK_LANGUAGE = "en"

DetectFn = Callable[[str], str]


async def _recognize_with_detection(
    image_bytes: bytes,
    recognizer: Recognizer,
    detect: DetectFn,
    default_language: str,
) -> Tuple[OCRResult, str]:
    """OCR with the default language, detect the language, re-OCR if it differs.

    Returns the OCR result to use and the effective source language.
    """
    first = await recognizer.recognize(image_bytes, default_language)
    if not first.text.strip():
        logger.info("no text detected, defaulting source language", language=FALLBACK_LANGUAGE)
        return first, FALLBACK_LANGUAGE

    try:
        detected = detect(first.text)
    except LanguageDetectionError as exc:
        logger.warning("language detection failed, keeping default", language=default_language, error=str(exc))
        return first, default_language
    logger.info("auto-detected source language", language=detected)

    if map_language(detected) == map_language(default_language):
        logger.info("reusing first ocr pass", language=detected)
        return first, detected

    logger.info("performing ocr with detected language", language=detected)
    second = await recognizer.recognize(image_bytes, detected)
    return second, detected


async def translate_image(
    image_bytes: bytes,
    to_lang: str,
    from_lang: str = AUTO,
    render_options: Optional[RenderOptions] = None,
    *,
    recognizer: Optional[Recognizer] = None,
    translate: Optional[TranslateFn] = None,
    detect: DetectFn = detect_language,
    settings: Optional[Settings] = None,
) -> ImageTranslateResult:
    """Translate the text in an image and redraw it in place.

    Doxygen:
    - @param image_bytes: Encoded input image (PNG, JPEG, GIF, WebP, BMP, ...).
    - @param to_lang: Target language code.
    - @param from_lang: Source language code, or 'auto' to detect it.
    - @param render_options: Drawing options for the replaced text.
    - @return: `ImageTranslateResult` with a PNG image, the OCR result and
      {original, translated} pairs in block order. With no text blocks the
      input bytes are returned untouched and nothing is rendered.
    - @throws ImageDecodeError, RecognitionInitError, RenderError: Fatal failures.
    """
    if not to_lang:
        raise ValueError("Target language (to_lang) is required")

    settings = settings or get_settings()
    recognizer = recognizer or get_recognizer()

    logger.info("starting image translation", from_lang=from_lang, to_lang=to_lang, size=len(image_bytes))

    processed, scale = await asyncio.to_thread(preprocess_image, image_bytes, settings.max_image_dimension)

    if from_lang == AUTO:
        ocr_result, effective_from = await _recognize_with_detection(
            processed, recognizer, detect, settings.default_ocr_language
        )
    else:
        effective_from = from_lang
        logger.info("performing ocr", language=from_lang)
        ocr_result = await recognizer.recognize(processed, from_lang)

    if not ocr_result.blocks:
        logger.info("no text blocks found in image")
        return ImageTranslateResult(image=image_bytes, ocr_result=ocr_result, translations=[])

    logger.info("translating text blocks", blocks=len(ocr_result.blocks), from_lang=effective_from)
    translated_blocks = await translate_blocks_parallel(
        ocr_result.blocks,
        effective_from,
        to_lang,
        scale,
        translate=translate,
        chunk_size=settings.max_concurrent_translations,
    )
    translations = [
        {"original": b.text, "translated": b.translated_text}
        for b in translated_blocks
    ]

    image = await asyncio.to_thread(render_translated_image, image_bytes, translated_blocks, render_options)

    logger.info("image translation completed", blocks=len(translations))
    return ImageTranslateResult(
        image=image,
        ocr_result=ocr_result,
        translations=translations,
        blocks=translated_blocks,
    )


async def extract_text_from_image(
    image_bytes: bytes,
    language: str = AUTO,
    *,
    recognizer: Optional[Recognizer] = None,
    detect: DetectFn = detect_language,
    settings: Optional[Settings] = None,
) -> OCRResult:
    """OCR only; geometry is in the coordinates of the image as given.

    With 'auto' the first pass is reused when the detected language maps to
    the same recognizer language.
    """
    settings = settings or get_settings()
    recognizer = recognizer or get_recognizer()

    logger.info("starting text extraction", language=language, size=len(image_bytes))
    if language == AUTO:
        result, _ = await _recognize_with_detection(
            image_bytes, recognizer, detect, settings.default_ocr_language
        )
        return result
    return await recognizer.recognize(image_bytes, language)
