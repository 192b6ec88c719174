"""Rendering helpers to draw translated text onto an image.

Each translated block becomes an opaque tile the size of its bbox (background
fill + one left-aligned line of text), composited onto the original image.
Font sizes come from a fixed average-glyph-width heuristic (0.6 × size)
rather than real font metrics.
"""

from __future__ import annotations

import io
import math
import os
from functools import lru_cache
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
from PIL import Image, ImageColor, ImageDraw, ImageFont

from imgtranslate.config import CONFIG_DIR
from imgtranslate.errors import RenderError
from imgtranslate.image.processing import get_background_color, open_image, round_half_up
from imgtranslate.logger import get_logger
from imgtranslate.models import RenderOptions, TranslatedBlock

logger = get_logger(__name__)

_CONFIG_FONTS_DIR = os.path.join(CONFIG_DIR, "fonts")  # optional extra search dir

# Average glyph width as a fraction of the font size
CHAR_WIDTH_RATIO = 0.6
MIN_FONT_SIZE = 8
MAX_FONT_HEIGHT_RATIO = 0.8
BASELINE_RATIO = 0.75
ELLIPSIS = "…"

OUTPUT_FORMAT = "PNG"

GENERIC_FAMILIES = {
    "sans-serif": [
        "DejaVuSans.ttf",
        "LiberationSans-Regular.ttf",
        "NotoSans-Regular.ttf",
        "arial.ttf",
        "segoeui.ttf",
        "Helvetica.ttc",
    ],
    "serif": [
        "DejaVuSerif.ttf",
        "LiberationSerif-Regular.ttf",
        "NotoSerif-Regular.ttf",
        "times.ttf",
        "georgia.ttf",
    ],
    "monospace": [
        "DejaVuSansMono.ttf",
        "LiberationMono-Regular.ttf",
        "consola.ttf",
        "cour.ttf",
    ],
}


def calculate_font_size(text: str, max_width: int, max_height: int, original_font_size: float) -> float:
    """Shrink a font size until the estimated text width fits `max_width`.

    Doxygen:
    - @param text: Text to draw.
    - @param max_width: Block width in pixels.
    - @param max_height: Block height in pixels.
    - @param original_font_size: Font size estimated at recognition time.
    - @return: Size capped at 0.8 × `max_height` and floored at 8.
    """
    avg_char_width = original_font_size * CHAR_WIDTH_RATIO
    estimated_width = len(text) * avg_char_width

    font_size: float = original_font_size
    if estimated_width > max_width:
        font_size = math.floor(max_width / estimated_width * original_font_size)

    font_size = min(font_size, max_height * MAX_FONT_HEIGHT_RATIO)
    return max(MIN_FONT_SIZE, font_size)


def truncate_text(text: str, max_width: int, font_size: float) -> str:
    """Cut `text` to the characters that fit, ending with an ellipsis."""
    avg_char_width = font_size * CHAR_WIDTH_RATIO
    max_chars = math.floor(max_width / avg_char_width)
    if len(text) <= max_chars:
        return text
    return text[:max(0, max_chars - 1)] + ELLIPSIS


def escape_markup(text: str) -> str:
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#39;")
    )


def _font_search_dirs() -> List[str]:
    dirs: List[str] = []
    env_paths = os.environ.get("FONT_PATH", "")
    dirs.extend(p for p in env_paths.split(os.pathsep) if p.strip())
    dirs.append(_CONFIG_FONTS_DIR)
    windir = os.environ.get("WINDIR") or os.environ.get("SystemRoot")
    if windir:
        dirs.append(os.path.join(windir, "Fonts"))
    dirs.extend([
        "/usr/share/fonts",
        "/usr/local/share/fonts",
        os.path.expanduser("~/.fonts"),
        os.path.expanduser("~/.local/share/fonts"),
        "/Library/Fonts",
        "/System/Library/Fonts",
    ])
    return dirs


@lru_cache(maxsize=64)
def _find_font_path(name: str) -> Optional[str]:
    if os.path.isabs(name) and os.path.isfile(name):
        return name
    target = name.lower()
    for base in _font_search_dirs():
        if not os.path.isdir(base):
            continue
        for root, _dirs, files in os.walk(base):
            for fname in files:
                if fname.lower() == target:
                    return os.path.join(root, fname)
    return None


def _candidate_fonts(font_family: str) -> List[str]:
    family = (font_family or "").strip()
    generic = GENERIC_FAMILIES.get(family.lower())
    if generic is not None:
        return list(generic)
    # A specific file name or path, with sans-serif as fallback
    return [family] + GENERIC_FAMILIES["sans-serif"]


@lru_cache(maxsize=256)
def load_font(font_family: str, size: int) -> ImageFont.ImageFont:
    """Load a font for a family name or font file, falling back to Pillow's default."""
    size = max(1, int(size))
    for name in _candidate_fonts(font_family):
        path = _find_font_path(name)
        if not path:
            continue
        try:
            return ImageFont.truetype(path, size)
        except OSError:
            logger.debug("font could not be loaded", path=path)
    return ImageFont.load_default(size=size)


def _parse_color(value: str) -> Tuple[int, int, int, int]:
    try:
        return ImageColor.getcolor(value, "RGBA")
    except ValueError as exc:
        raise RenderError(f"Invalid color: {value!r}") from exc


def _draw_text_line(draw: ImageDraw.ImageDraw, x: float, baseline_y: float, text: str,
                    font: ImageFont.ImageFont, fill: Tuple[int, int, int, int]) -> None:
    if isinstance(font, ImageFont.FreeTypeFont):
        draw.text((x, baseline_y), text, font=font, fill=fill, anchor="ls")
        return
    # Bitmap fonts have no anchors; align the glyph bottom with the baseline
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    draw.text((x, baseline_y - bottom), text, font=font, fill=fill)


def _block_tile(block: TranslatedBlock, options: RenderOptions,
                background: Tuple[int, int, int, int],
                text_color: Tuple[int, int, int, int]) -> Image.Image:
    bbox = block.bbox
    block_width = max(1, bbox.x1 - bbox.x0)
    block_height = max(1, bbox.y1 - bbox.y0)

    text = block.translated_text
    font_size = calculate_font_size(text, block_width, block_height, block.font_size)
    text = truncate_text(text, block_width, font_size)

    tile = Image.new("RGBA", (block_width, block_height), background)
    draw = ImageDraw.Draw(tile)
    font = load_font(options.font_family, int(font_size))
    _draw_text_line(draw, options.padding, block_height * BASELINE_RATIO, text, font, text_color)
    return tile


def _renderable(blocks: Iterable[TranslatedBlock]) -> List[TranslatedBlock]:
    return [b for b in blocks if b.translated_text and b.translated_text.strip()]


def render_translated_image(
    image_bytes: bytes,
    blocks: Sequence[TranslatedBlock],
    options: Optional[RenderOptions] = None,
) -> bytes:
    """Replace each translated block on the original image and encode as PNG.

    Doxygen:
    - @param image_bytes: Original (unscaled) encoded image.
    - @param blocks: Translated blocks with geometry in original image coordinates.
    - @param options: Colors, font family and padding; defaults to `RenderOptions()`.
    - @return: PNG bytes of the same dimensions as the input.
    - @throws ImageDecodeError: If the input cannot be decoded.
    - @throws RenderError: On invalid colors or encoding failure.
    """
    opts = options or RenderOptions()
    todo = _renderable(blocks)
    logger.info("rendering translated blocks", blocks=len(todo))

    img = open_image(image_bytes)
    has_alpha = "A" in img.getbands() or "transparency" in img.info
    canvas = img.convert("RGBA" if has_alpha else "RGB")

    text_color = _parse_color(opts.text_color)
    auto_background = opts.background_color.strip().lower() == "auto"
    fixed_background = None if auto_background else _parse_color(opts.background_color)
    source = np.array(canvas.convert("RGB")) if auto_background and todo else None

    for block in todo:
        if source is not None:
            bbox = block.bbox
            r, g, b = get_background_color(
                source, bbox.x0, bbox.y0, max(1, bbox.x1 - bbox.x0), max(1, bbox.y1 - bbox.y0)
            ).tolist()
            background = (r, g, b, 255)
        else:
            background = fixed_background
        tile = _block_tile(block, opts, background, text_color)
        canvas.paste(tile, (round_half_up(block.bbox.x0), round_half_up(block.bbox.y0)), tile)

    out = io.BytesIO()
    try:
        canvas.save(out, format=OUTPUT_FORMAT)
    except (OSError, ValueError) as exc:
        raise RenderError(f"Failed to encode output image: {exc}") from exc

    result = out.getvalue()
    logger.info("rendering completed", output_size=len(result))
    return result


def render_overlay_svg(
    blocks: Sequence[TranslatedBlock],
    width: int,
    height: int,
    options: Optional[RenderOptions] = None,
) -> str:
    """Build an SVG overlay with one background rect and text box per block.

    Meant for clients that composite in a browser: text sits in a
    foreignObject with ellipsis overflow. ``background_color="auto"`` has no
    pixels to sample here and uses white.
    """
    opts = options or RenderOptions()
    background = "#FFFFFF" if opts.background_color.strip().lower() == "auto" else opts.background_color
    elements: List[str] = []

    for block in _renderable(blocks):
        bbox = block.bbox
        block_width = bbox.x1 - bbox.x0
        block_height = bbox.y1 - bbox.y0
        font_size = calculate_font_size(block.translated_text, block_width, block_height, block.font_size)

        elements.append(
            f'<rect x="{bbox.x0}" y="{bbox.y0}" width="{block_width}" height="{block_height}" '
            f'fill="{escape_markup(background)}"/>'
        )
        elements.append(
            f'<foreignObject x="{bbox.x0 + opts.padding}" y="{bbox.y0}" '
            f'width="{max(0, block_width - opts.padding * 2)}" height="{block_height}">'
            f'<div xmlns="http://www.w3.org/1999/xhtml" style="'
            f'font-family: {escape_markup(opts.font_family)}; font-size: {font_size}px; '
            f'color: {escape_markup(opts.text_color)}; line-height: {block_height}px; '
            f'overflow: hidden; text-overflow: ellipsis; white-space: nowrap;">'
            f'{escape_markup(block.translated_text)}</div></foreignObject>'
        )

    body = "\n  ".join(elements)
    return (
        f'<svg width="{width}" height="{height}" xmlns="http://www.w3.org/2000/svg">\n'
        f'  {body}\n'
        f'</svg>\n'
    )
