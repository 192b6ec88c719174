"""Translate the text inside raster images.

Packages:
- imgtranslate.image: decoding and OCR downscaling
- imgtranslate.ocr: tesseract worker slot and text block extraction
- imgtranslate.llm: translation engine, pivot client, cache, language detection
- imgtranslate.render: drawing translated text back onto the image
- imgtranslate.pipeline: `translate_image` / `extract_text_from_image`
"""

__version__ = "0.1.0"
