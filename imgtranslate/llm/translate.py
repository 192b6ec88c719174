"""Translation engine and pivot client.

`OpenRouterTranslator` is the translation engine: one chat completion per
text, answered as a small JSON object. `PivotTranslator` is what the
pipeline calls: it adds the result cache, optional routing through a pivot
language and runs the blocking engine call in a worker thread.
"""

from __future__ import annotations

import asyncio
import json
import os
import threading
from typing import Any, Dict, Optional

from openai import OpenAI

from imgtranslate.config import CONFIG_DIR, get_settings
from imgtranslate.errors import TranslationError
from imgtranslate.logger import get_logger

from .cache import TranslationCache
from .client import chat_completion, get_openrouter_client, load_model_config
from .language_detector import map_lang_code_to_english_name

logger = get_logger(__name__)

PROMPTS_PATH = os.path.join(CONFIG_DIR, "prompts.json")

_DEFAULT_PROMPTS = {
    "translate": (
        "You are a professional translator. Translate the following text from {source_language} to {target_language}. "
        "The text is one line recognized by OCR from an image; if it contains obvious recognition typos, translate "
        "the most plausible intended words. Keep the translation about as short as the source. "
        "Respond strictly in JSON (no explanations and no code blocks) as {\"translation\": string}.\n\n"
        "Source text:\n{source_text}"
    ),
    "translate_formatted": (
        "You are a professional translator. Translate the following text from {source_language} to {target_language}. "
        "Preserve line breaks, punctuation, numbers and any inline markup exactly as in the source. "
        "Respond strictly in JSON (no explanations and no code blocks) as {\"translation\": string}.\n\n"
        "Source text:\n{source_text}"
    ),
}


def _load_prompts(path: str = PROMPTS_PATH) -> Dict[str, str]:
    prompts = dict(_DEFAULT_PROMPTS)
    if not os.path.isfile(path):
        return prompts
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("failed to load prompts, using defaults", path=path, error=str(exc))
        return prompts
    if isinstance(data, dict):
        prompts.update({str(k): v for k, v in data.items() if isinstance(v, str)})
    return prompts


_PROMPTS = _load_prompts()


def _fill_prompt_template(tmpl: str, **values: str) -> str:
    """Fill a user-editable template that may contain literal braces.

    All braces are escaped first, then only the placeholders named in
    `values` are restored before calling `str.format`, so JSON examples such
    as {"translation": string} survive untouched.
    """
    safe = str(tmpl).replace("{", "{{").replace("}", "}}")
    for key in values:
        safe = safe.replace("{{" + key + "}}", "{" + key + "}")
    return safe.format(**values)


def _extract_json_object(response_text: str) -> Optional[Dict[str, Any]]:
    """Try to extract a JSON object from a possibly fenced code block string.

    Doxygen:
    - @param response_text: Raw text returned by the model.
    - @return: Parsed JSON object or None if parsing fails.
    """
    if not response_text:
        return None
    s = response_text.strip()
    if s.startswith("```"):
        parts = s.split("```")
        if len(parts) >= 3:
            s = parts[1]
            if "\n" in s:
                first_line, rest = s.split("\n", 1)
                if first_line.strip().lower() in ("json", "javascript"):
                    s = rest
    start = s.find("{")
    end = s.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None
    try:
        obj = json.loads(s[start:end + 1])
    except json.JSONDecodeError:
        return None
    return obj if isinstance(obj, dict) else None


def _language_label(code: str) -> str:
    if code == "auto":
        return "the detected source language"
    return map_lang_code_to_english_name(code) or code


class OpenRouterTranslator:
    """Translation engine backed by an OpenRouter-compatible chat model."""

    def __init__(self, client: OpenAI, model: str, timeout: float | None = 60.0):
        self.client = client
        self.model = model
        self.timeout = timeout

    def translate(self, from_lang: str, to_lang: str, text: str, preserve_formatting: bool = False) -> str:
        """Translate `text`; raises `TranslationError` on any failure.

        Doxygen:
        - @param from_lang: Source language code ('auto' lets the model infer it).
        - @param to_lang: Target language code.
        - @param text: Source text.
        - @param preserve_formatting: Use the formatting-preserving prompt.
        - @return: Translated text.
        """
        key = "translate_formatted" if preserve_formatting else "translate"
        prompt = _fill_prompt_template(
            _PROMPTS.get(key, _DEFAULT_PROMPTS[key]),
            source_language=_language_label(from_lang),
            target_language=_language_label(to_lang),
            source_text=text,
        )
        out = chat_completion(self.client, self.model, messages=[{"role": "user", "content": prompt}], timeout=self.timeout)

        obj = _extract_json_object(out)
        if obj is None:
            # Model ignored the JSON instruction; take the answer verbatim
            translated = out.strip()
        else:
            translated = obj.get("translation")
            if not isinstance(translated, str):
                raise TranslationError("Model response is missing 'translation'", {"model": self.model})
            translated = translated.strip()

        if not translated:
            raise TranslationError("Model returned an empty translation", {"model": self.model})
        return translated


class PivotTranslator:
    """Cache-backed translation client with optional pivot-language routing.

    With `pivot_language` set, a pair where neither side is the pivot is
    translated in two hops: source → pivot → target.
    """

    def __init__(self, engine: Any, cache: Optional[TranslationCache] = None, pivot_language: Optional[str] = None):
        self.engine = engine
        self.cache = cache if cache is not None else TranslationCache(0)
        self.pivot_language = pivot_language

    def translate_sync(self, from_lang: str, to_lang: str, text: str, extra: bool = False) -> str:
        if from_lang == to_lang:
            return text

        args = (from_lang, to_lang, text, extra)
        cached = self.cache.get(args)
        if cached is not None:
            return cached

        pivot = self.pivot_language
        if pivot and from_lang != "auto" and pivot not in (from_lang, to_lang):
            intermediate = self.engine.translate(from_lang, pivot, text, extra)
            result = self.engine.translate(pivot, to_lang, intermediate, extra)
        else:
            result = self.engine.translate(from_lang, to_lang, text, extra)

        self.cache.set(result, args)
        return result

    async def translate(self, from_lang: str, to_lang: str, text: str, extra: bool = False) -> str:
        return await asyncio.to_thread(self.translate_sync, from_lang, to_lang, text, extra)


_translator: Optional[PivotTranslator] = None
_translator_guard = threading.Lock()


def get_translator() -> PivotTranslator:
    """Process-wide translator built from config/settings.json and config/models.json."""
    global _translator
    with _translator_guard:
        if _translator is None:
            settings = get_settings()
            model_config = load_model_config()
            engine = OpenRouterTranslator(
                get_openrouter_client(model_config),
                model_config.model,
                timeout=settings.request_timeout,
            )
            _translator = PivotTranslator(
                engine,
                cache=TranslationCache(settings.cache_size),
                pivot_language=settings.pivot_language,
            )
            logger.info(
                "translator initialized",
                model=model_config.model,
                cache_size=settings.cache_size,
                pivot_language=settings.pivot_language,
            )
        return _translator
