"""Drawing translated text back onto images."""

from .draw import (
    calculate_font_size,
    escape_markup,
    load_font,
    render_overlay_svg,
    render_translated_image,
    truncate_text,
)

__all__ = [
    "calculate_font_size",
    "escape_markup",
    "load_font",
    "render_overlay_svg",
    "render_translated_image",
    "truncate_text",
]
