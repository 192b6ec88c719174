"""Bounded-concurrency translation of recognized text blocks."""

from __future__ import annotations

import asyncio
from dataclasses import fields
from typing import Awaitable, Callable, List, Optional, Sequence

from imgtranslate.image.processing import round_half_up
from imgtranslate.logger import get_logger
from imgtranslate.models import BBox, TextBlock, TranslatedBlock

logger = get_logger(__name__)

# Translation calls in flight per chunk
MAX_CONCURRENT_TRANSLATIONS = 10

TranslateFn = Callable[[str, str, str, bool], Awaitable[str]]


def _clip(text: str, limit: int = 30) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def rescale_block(block: TextBlock, scale: float) -> TextBlock:
    """Map a block from the downscaled image back to original coordinates.

    bbox, font size and line height are divided by `scale` and rounded;
    text, confidence and baseline are carried over unchanged.
    """
    if scale == 1:
        return block
    b = block.bbox
    return TextBlock(
        text=block.text,
        confidence=block.confidence,
        bbox=BBox(
            round_half_up(b.x0 / scale),
            round_half_up(b.y0 / scale),
            round_half_up(b.x1 / scale),
            round_half_up(b.y1 / scale),
        ),
        baseline=block.baseline,
        font_size=round_half_up(block.font_size / scale),
        line_height=round_half_up(block.line_height / scale),
    )


def _with_translation(block: TextBlock, translated_text: str) -> TranslatedBlock:
    values = {f.name: getattr(block, f.name) for f in fields(TextBlock)}
    return TranslatedBlock(**values, translated_text=translated_text)


async def _translate_block(
    block: TextBlock,
    from_lang: str,
    to_lang: str,
    scale: float,
    translate: TranslateFn,
) -> TranslatedBlock:
    try:
        translated = await translate(from_lang, to_lang, block.text, False)
    except Exception as exc:
        # A failed block keeps its source text and unscaled geometry
        logger.warning("failed to translate block", text=_clip(block.text), error=str(exc))
        return _with_translation(block, block.text)

    logger.debug("translated block", original=_clip(block.text), translated=_clip(translated))
    return _with_translation(rescale_block(block, scale), translated)


async def translate_blocks_parallel(
    blocks: Sequence[TextBlock],
    from_lang: str,
    to_lang: str,
    scale: float,
    translate: Optional[TranslateFn] = None,
    chunk_size: int = MAX_CONCURRENT_TRANSLATIONS,
) -> List[TranslatedBlock]:
    """Translate blocks in sequential chunks of concurrent calls.

    Doxygen:
    - @param blocks: Recognized blocks, in reading order.
    - @param from_lang: Source language code.
    - @param to_lang: Target language code.
    - @param scale: Preprocessing scale factor; geometry of translated blocks is divided by it.
    - @param translate: Async callable (from, to, text, flag) -> str. Defaults to the
      process-wide `PivotTranslator`.
    - @param chunk_size: Maximum concurrent translation calls.
    - @return: One `TranslatedBlock` per input block, same order. A block whose
      translation failed carries its original text.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if translate is None:
        from imgtranslate.llm.translate import get_translator

        translate = get_translator().translate

    results: List[TranslatedBlock] = []
    for i in range(0, len(blocks), chunk_size):
        chunk = blocks[i:i + chunk_size]
        chunk_results = await asyncio.gather(
            *(_translate_block(block, from_lang, to_lang, scale, translate) for block in chunk)
        )
        results.extend(chunk_results)
        if i + chunk_size < len(blocks):
            logger.debug(
                "translated chunk",
                chunk=i // chunk_size + 1,
                done=len(results),
                total=len(blocks),
            )
    return results
