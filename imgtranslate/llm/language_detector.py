from __future__ import annotations

from typing import Iterable, List, Tuple

from langdetect import DetectorFactory, LangDetectException, detect_langs

from imgtranslate.errors import LanguageDetectionError

DetectorFactory.seed = 0


_LANG_CODE_TO_ENGLISH = {
    "en": "english",
    "ru": "russian",
    "uk": "ukrainian",
    "de": "german",
    "fr": "french",
    "es": "spanish",
    "it": "italian",
    "pt": "portuguese",
    "zh": "chinese",
    "zh-hans": "simplified chinese",
    "zh-hant": "traditional chinese",
    "ja": "japanese",
    "ko": "korean",
    "ar": "arabic",
    "vi": "vietnamese",
    "th": "thai",
    "pl": "polish",
    "nl": "dutch",
    "tr": "turkish",
}

# langdetect emits zh-cn / zh-tw; the recognizer table uses script subtags
_DETECTOR_ALIASES = {
    "zh-cn": "zh-Hans",
    "zh-sg": "zh-Hans",
    "zh-tw": "zh-Hant",
    "zh-hk": "zh-Hant",
    "zh-hans": "zh-Hans",
    "zh-hant": "zh-Hant",
}

_ENGLISH_NAME_TO_CODE = {
    name: code for code, name in _LANG_CODE_TO_ENGLISH.items() if code not in ("zh-hans", "zh-hant")
}
_ENGLISH_NAME_TO_CODE.update({
    "simplified chinese": "zh-Hans",
    "traditional chinese": "zh-Hant",
})


# langdetect gets slow and no more accurate past a few thousand characters
MAX_SAMPLE_CHARS = 4000


def _build_sample(texts: Iterable[str | None]) -> str:
    """Join the non-blank texts until the sample is long enough."""
    sample: List[str] = []
    size = 0
    for raw in texts:
        piece = str(raw or "").strip()
        if piece:
            sample.append(piece)
            size += len(piece)
        if size >= MAX_SAMPLE_CHARS:
            break
    return "\n".join(sample)


def detect_source_language(texts: Iterable[str | None]) -> Tuple[str | None, float | None]:
    """Most probable language of the joined texts, with its probability.

    Returns the raw langdetect code (e.g. 'en', 'zh-cn') or (None, None) when
    the sample has nothing to detect on.
    """
    sample = _build_sample(texts)
    if not sample:
        return None, None
    try:
        guesses = detect_langs(sample)
    except LangDetectException:
        return None, None
    if not guesses:
        return None, None
    top = max(guesses, key=lambda g: g.prob)
    code = top.lang if top.lang in _DETECTOR_ALIASES else top.lang.split("-")[0]
    return code, float(top.prob)


def normalize_language_code(code: str) -> str:
    """Normalize a user-supplied language code or English name.

    'EN' → 'en', 'en-US' → 'en', 'zh-cn' → 'zh-Hans', 'german' → 'de'.
    'auto' passes through unchanged.
    """
    if not code or not str(code).strip():
        raise ValueError("Language code must be a non-empty string, e.g. 'en', 'de', 'zh-Hans'.")
    norm = str(code).strip().replace("_", "-")
    lower = norm.lower()
    if lower == "auto":
        return "auto"
    if lower in _DETECTOR_ALIASES:
        return _DETECTOR_ALIASES[lower]
    if lower in _ENGLISH_NAME_TO_CODE:
        return _ENGLISH_NAME_TO_CODE[lower]
    return lower.split("-")[0]


def detect_language(text: str) -> str:
    """Best-guess language code for `text`.

    Doxygen:
    - @param text: Arbitrary text, typically an OCR transcription.
    - @return: Code in the recognizer's vocabulary ('en', 'zh-Hans', ...).
    - @throws LanguageDetectionError: If no guess is possible (empty or letterless text).
    """
    code, _prob = detect_source_language([text])
    if not code:
        raise LanguageDetectionError("Could not detect language", {"length": len(text or "")})
    return normalize_language_code(code)


def map_lang_code_to_english_name(code: str | None) -> str | None:
    if not code:
        return None
    code = code.lower()
    if code in _LANG_CODE_TO_ENGLISH:
        return _LANG_CODE_TO_ENGLISH[code]
    alias = _DETECTOR_ALIASES.get(code)
    if alias:
        return _LANG_CODE_TO_ENGLISH.get(alias.lower())
    base = code.split("-")[0]
    return _LANG_CODE_TO_ENGLISH.get(base)


__all__ = [
    "detect_language",
    "detect_source_language",
    "map_lang_code_to_english_name",
    "normalize_language_code",
]
