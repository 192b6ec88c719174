"""
Entry point and facade for the image text-translation pipeline.

Packages:
- imgtranslate.image: Decoding and OCR downscaling
- imgtranslate.ocr: Tesseract worker slot and text block extraction
- imgtranslate.llm: OpenRouter translation engine, pivot client, cache, language detection
- imgtranslate.render: Drawing translated text into the image
- imgtranslate.pipeline: High-level orchestration (`translate_image`, `extract_text_from_image`)
"""

from __future__ import annotations

import asyncio
import json
import os
from typing import Any, Dict

from imgtranslate.config import configure_dependencies, get_settings
from imgtranslate.errors import ImageTranslateError
from imgtranslate.image.processing import get_image_info
from imgtranslate.llm.client import get_openrouter_client, load_model_config, test_model_health
from imgtranslate.llm.language_detector import normalize_language_code
from imgtranslate.logger import get_logger, setup_logging
from imgtranslate.models import RenderOptions
from imgtranslate.ocr.reader import terminate_recognizer
from imgtranslate.pipeline.process import extract_text_from_image, translate_image
from imgtranslate.render.draw import render_overlay_svg

__all__ = [
    "extract_text_from_image",
    "render_overlay_svg",
    "translate_image",
]

logger = get_logger(__name__)


def _write_json(path: str, payload: Dict[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)


async def _run(args) -> int:
    with open(args.image, "rb") as f:
        image_bytes = f.read()

    if args.ocr_only:
        lang = normalize_language_code(args.lang)
        result = await extract_text_from_image(image_bytes, lang)
        payload = result.to_dict()
        if args.json:
            _write_json(args.json, payload)
            print(f"Saved OCR result to: {args.json}")
        else:
            print(json.dumps(payload, ensure_ascii=False, indent=2))
        return 0

    options = RenderOptions(
        background_color=args.bg,
        text_color=args.fg,
        font_family=args.font,
        padding=args.padding,
    )
    from_lang = normalize_language_code(args.source)
    to_lang = normalize_language_code(args.to)

    if args.check_model:
        model_config = load_model_config()
        test_model_health(get_openrouter_client(model_config), model_config.model)
        print("Model connectivity check succeeded")

    result = await translate_image(image_bytes, to_lang, from_lang, options)

    out_dir = os.path.dirname(os.path.abspath(args.out))
    os.makedirs(out_dir, exist_ok=True)
    with open(args.out, "wb") as f:
        f.write(result.image)
    print(f"Saved translated image to: {args.out}")
    print(f"Blocks translated: {len(result.translations)}")

    if args.json:
        _write_json(args.json, result.to_dict(include_image=False))
        print(f"Saved translation result to: {args.json}")

    if args.svg_overlay:
        info = get_image_info(image_bytes)
        svg = render_overlay_svg(result.blocks, info["width"], info["height"], options)
        with open(args.svg_overlay, "w", encoding="utf-8") as f:
            f.write(svg)
        print(f"Saved SVG overlay to: {args.svg_overlay}")
    return 0


def _cli() -> None:
    """CLI for image translation and OCR.

    --image / -i: Path to input image
    --to / -t: Target language code or English name (required unless --ocr-only)
    --from / -s: Source language code, or 'auto' (default: auto)
    --out / -o: Output PNG path (default: translated_image.png)
    --json: Write the structured result to this path
    --svg-overlay: Also write an SVG overlay of the translated blocks
    --ocr-only: Only extract text; prints JSON unless --json is given
    --lang: OCR language for --ocr-only (default: auto)
    --bg / --fg / --font / --padding: Render options
    --check-model: Ping the translation model before processing
    --debug: Human-readable debug logging
    """
    import argparse

    parser = argparse.ArgumentParser(description="Translate the text inside an image.")
    parser.add_argument("--image", "-i", type=str, required=True, help="Path to input image")
    parser.add_argument("--to", "-t", type=str, help="Target language, e.g. 'es' or 'spanish'")
    parser.add_argument("--from", "-s", dest="source", type=str, default="auto", help="Source language (default: auto)")
    parser.add_argument("--out", "-o", type=str, default="translated_image.png", help="Output image path (default: translated_image.png)")
    parser.add_argument("--json", type=str, help="Write the structured result as JSON to this path")
    parser.add_argument("--svg-overlay", type=str, help="Write an SVG overlay of the translated blocks to this path")
    parser.add_argument("--ocr-only", action="store_true", help="Only extract text, no translation")
    parser.add_argument("--lang", type=str, default="auto", help="OCR language for --ocr-only (default: auto)")
    parser.add_argument("--bg", type=str, default=RenderOptions.background_color, help="Background color or 'auto' (default: #FFFFFF)")
    parser.add_argument("--fg", type=str, default=RenderOptions.text_color, help="Text color (default: #000000)")
    parser.add_argument("--font", type=str, default=RenderOptions.font_family, help="Font family or font file (default: sans-serif)")
    parser.add_argument("--padding", type=int, default=RenderOptions.padding, help="Left text padding in pixels (default: 4)")
    parser.add_argument("--check-model", action="store_true", help="Ping the translation model before processing")
    parser.add_argument("--debug", action="store_true", help="Verbose, human-readable logging")

    args = parser.parse_args()

    settings = get_settings()
    setup_logging("DEBUG" if args.debug else settings.log_level, is_debug=args.debug or not settings.log_json)
    configure_dependencies()

    if not args.ocr_only and not args.to:
        parser.error("--to is required unless --ocr-only is given")
    if not os.path.isfile(args.image):
        print(f"Image file not found: {args.image}")
        raise SystemExit(2)

    try:
        code = asyncio.run(_run(args))
    except ValueError as e:
        print(str(e))
        raise SystemExit(2)
    except ImageTranslateError as e:
        logger.error("pipeline failed", error=e.message, details=e.details)
        print(f"Error: {e.message}")
        raise SystemExit(1)
    finally:
        terminate_recognizer()
    raise SystemExit(code)


if __name__ == "__main__":
    _cli()
