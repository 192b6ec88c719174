"""Exception hierarchy for the image translation pipeline.

Fatal errors (decode, recognizer init, rendering) propagate to the caller.
Per-block translation errors are absorbed by the batch translator.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ImageTranslateError(Exception):
    """Base error for the pipeline."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ImageDecodeError(ImageTranslateError):
    """Image bytes could not be decoded or resized."""


class RecognitionError(ImageTranslateError):
    """Text recognition failed."""


class RecognitionInitError(RecognitionError):
    """The recognition worker could not be created for a language."""


class LanguageDetectionError(ImageTranslateError):
    """No language guess could be made for a text."""


class TranslationError(ImageTranslateError):
    """The translation engine failed or returned nothing usable."""


class RenderError(ImageTranslateError):
    """Compositing or encoding the output image failed."""


class ConfigurationError(ImageTranslateError):
    """Invalid or missing configuration."""
