"""LLM (Large Language Model) integration package.

This package provides the OpenRouter-compatible translation engine, the
cache-backed pivot client used by the pipeline, and language detection.
"""

from .cache import TranslationCache, make_cache_key
from .client import (
    CONFIG_PATH,
    ModelConfig,
    chat_completion,
    get_openrouter_client,
    load_model_config,
    test_model_health,
)
from .language_detector import (
    detect_language,
    detect_source_language,
    map_lang_code_to_english_name,
    normalize_language_code,
)
from .translate import (
    OpenRouterTranslator,
    PivotTranslator,
    get_translator,
)

__all__ = [
    "CONFIG_PATH",
    "ModelConfig",
    "OpenRouterTranslator",
    "PivotTranslator",
    "TranslationCache",
    "chat_completion",
    "detect_language",
    "detect_source_language",
    "get_openrouter_client",
    "get_translator",
    "load_model_config",
    "make_cache_key",
    "map_lang_code_to_english_name",
    "normalize_language_code",
    "test_model_health",
]
