"""OCR reader built on top of pytesseract, pandas and OpenCV.

This module provides:
- The user-facing → tesseract language code table.
- Building a cleaned DataFrame from pytesseract output and grouping words to lines.
- Conversion of recognized lines into `TextBlock` records.
- `TesseractWorker`, one recognition engine bound to a language.
- `Recognizer`, the process-wide single-worker slot that (re)initializes the
  worker per language and serializes callers behind it.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Callable, Dict, List, Optional

import cv2
import numpy as np
import pandas as pd
import pytesseract
from PIL import Image

from imgtranslate.config import get_settings
from imgtranslate.errors import RecognitionError, RecognitionInitError
from imgtranslate.image.processing import open_image, round_half_up
from imgtranslate.logger import get_logger
from imgtranslate.models import BBox, OCRResult, TextBlock

logger = get_logger(__name__)

LANG_MAP: Dict[str, str] = {
    "en": "eng",
    "zh": "chi_sim",
    "zh-Hans": "chi_sim",
    "zh-Hant": "chi_tra",
    "ja": "jpn",
    "ko": "kor",
    "fr": "fra",
    "de": "deu",
    "es": "spa",
    "it": "ita",
    "pt": "por",
    "ru": "rus",
    "ar": "ara",
    "vi": "vie",
    "th": "tha",
    "uk": "ukr",
    "pl": "pol",
    "nl": "nld",
    "tr": "tur",
}

DEFAULT_NATIVE_LANGUAGE = "eng"

# Minimum estimated font size for a recognized line
MIN_BLOCK_FONT_SIZE = 12


def map_language(code: str) -> str:
    """Map a user-facing language code to the tesseract code (unmapped → eng)."""
    return LANG_MAP.get(code, DEFAULT_NATIVE_LANGUAGE)


def build_dataframe_from_tesseract(data: Dict[str, Any]) -> pd.DataFrame:
    """Create and clean a DataFrame from pytesseract.image_to_data output.

    Doxygen:
    - @param data: Dict returned by `pytesseract.image_to_data(..., output_type=Output.DICT)`.
    - @return: Word rows with positive confidence and non-empty text.
    """
    df = pd.DataFrame(data)
    if df.empty:
        return df
    df['conf'] = pd.to_numeric(df['conf'], errors='coerce').fillna(-1)
    df = df[df['conf'] > 0].copy()
    df['text'] = df['text'].fillna('').astype(str).str.strip()
    return df[df['text'] != '']


def group_words_to_lines(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Group OCR words into lines in the recognizer boundary format.

    Doxygen:
    - @param df: DataFrame produced by `build_dataframe_from_tesseract`.
    - @return: List of {text, confidence (0-100), bbox {x0,y0,x1,y1}, baseline} dicts
      in reading order. Tesseract's word table carries no baseline, so it is None.
    """
    if df.empty:
        return []
    lines: List[Dict[str, Any]] = []
    group_cols = ['block_num', 'par_num', 'line_num']
    for _, g in df.groupby(group_cols, sort=True):
        g_sorted = g.sort_values('left')
        x0 = int(g_sorted['left'].min())
        y0 = int(g_sorted['top'].min())
        x1 = int((g_sorted['left'] + g_sorted['width']).max())
        y1 = int((g_sorted['top'] + g_sorted['height']).max())
        lines.append({
            'text': ' '.join(g_sorted['text'].tolist()),
            'confidence': float(g_sorted['conf'].mean()),
            'bbox': {'x0': x0, 'y0': y0, 'x1': x1, 'y1': y1},
            'baseline': None,
        })
    return lines


def lines_to_blocks(lines: List[Dict[str, Any]]) -> List[TextBlock]:
    """Turn recognizer lines into `TextBlock`s, dropping lines that trim to empty."""
    blocks: List[TextBlock] = []
    for line in lines:
        text = str(line.get('text') or '').strip()
        if not text:
            continue

        b = line['bbox']
        bbox = BBox(int(b['x0']), int(b['y0']), int(b['x1']), int(b['y1']))
        line_height = bbox.y1 - bbox.y0
        font_size = max(MIN_BLOCK_FONT_SIZE, round_half_up(line_height * 0.75))

        # Missing baseline coordinates fall back to the bbox bottom edge
        base = line.get('baseline') or {}
        baseline = BBox(
            int(base.get('x0', bbox.x0)),
            int(base.get('y0', bbox.y1)),
            int(base.get('x1', bbox.x1)),
            int(base.get('y1', bbox.y1)),
        )

        blocks.append(TextBlock(
            text=text,
            confidence=float(line.get('confidence') or 0.0) / 100.0,
            bbox=bbox,
            baseline=baseline,
            font_size=font_size,
            line_height=line_height,
        ))
    return blocks


def preprocess_image_for_ocr(img_bgr: np.ndarray) -> np.ndarray:
    """Binarize a BGR image to improve OCR accuracy on scans.

    Doxygen:
    - @param img_bgr: Input image in BGR format.
    - @return: Preprocessed BGR image of the same size.
    """
    gray = cv2.cvtColor(img_bgr, cv2.COLOR_BGR2GRAY)
    gray = cv2.bilateralFilter(gray, d=7, sigmaColor=50, sigmaSpace=50)
    th = cv2.adaptiveThreshold(gray, 255, cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
                               cv2.THRESH_BINARY, 31, 10)
    th = cv2.medianBlur(th, 3)
    return cv2.cvtColor(th, cv2.COLOR_GRAY2BGR)


class TesseractWorker:
    """A recognition engine bound to one tesseract language.

    Construction checks that the traineddata for every requested language is
    installed, so a bad language fails at init rather than on first use.
    """

    def __init__(self, lang: str, ocr_mode: str = 'raw', psm: int = 3):
        try:
            available = set(pytesseract.get_languages(config=''))
        except (pytesseract.TesseractNotFoundError, pytesseract.TesseractError, OSError) as exc:
            raise RecognitionInitError(f"Tesseract is not available: {exc}", {'language': lang}) from exc

        missing = [part for part in lang.split('+') if part not in available]
        if missing:
            raise RecognitionInitError(
                f"Tesseract language data not installed: {', '.join(missing)}",
                {'language': lang, 'available': sorted(available)},
            )

        self.lang = lang
        self.ocr_mode = ocr_mode
        self.config = f"--psm {int(psm)}"
        self._active = True

    def recognize(self, image_bytes: bytes) -> Dict[str, Any]:
        """Run tesseract and return {text, lines, confidence (0-100)}."""
        if not self._active:
            raise RecognitionError("Tesseract worker has been terminated", {'language': self.lang})

        rgb = np.array(open_image(image_bytes).convert('RGB'))
        if self.ocr_mode == 'auto':
            bgr = preprocess_image_for_ocr(cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR))
            rgb = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)

        try:
            data = pytesseract.image_to_data(
                Image.fromarray(rgb),
                lang=self.lang,
                config=self.config,
                output_type=pytesseract.Output.DICT,
            )
        except (pytesseract.TesseractError, RuntimeError, OSError) as exc:
            raise RecognitionError(f"Tesseract recognition failed: {exc}", {'language': self.lang}) from exc

        df = build_dataframe_from_tesseract(data)
        lines = group_words_to_lines(df)
        return {
            'text': '\n'.join(line['text'] for line in lines),
            'lines': lines,
            'confidence': float(df['conf'].mean()) if not df.empty else 0.0,
        }

    def terminate(self) -> None:
        self._active = False


WorkerFactory = Callable[[str], Any]


def _default_worker_factory(native_code: str) -> TesseractWorker:
    settings = get_settings()
    return TesseractWorker(native_code, ocr_mode=settings.ocr_mode, psm=settings.tesseract_psm)


class Recognizer:
    """Single-slot owner of the recognition worker.

    Only one worker exists at a time. A caller requesting another language
    terminates the current worker and creates a new one; callers queued on the
    lock re-check the active language once they hold it. The lock is held
    across ensure-ready and recognition so the worker cannot be swapped out
    from under a running recognition.
    """

    def __init__(self, worker_factory: Optional[WorkerFactory] = None):
        self._factory = worker_factory or _default_worker_factory
        self._worker: Any = None
        self._language = ''
        self._lock = threading.RLock()

    @property
    def language(self) -> str:
        """Native code of the active worker, '' when none."""
        return self._language

    def ensure_ready(self, lang: str) -> str:
        """Make sure a worker for `lang` is active; return its native code.

        Doxygen:
        - @param lang: User-facing language code.
        - @return: Tesseract code of the active worker.
        - @throws RecognitionInitError: If the worker cannot be created. The slot
          is left empty so a later call retries.
        """
        native = map_language(lang)
        with self._lock:
            if self._worker is not None and self._language == native:
                return native

            if self._worker is not None:
                logger.info("terminating previous ocr worker", language=self._language)
                previous = self._worker
                self._worker = None
                self._language = ''
                previous.terminate()

            logger.info("initializing ocr worker", language=native)
            try:
                worker = self._factory(native)
            except RecognitionInitError as exc:
                logger.error("failed to initialize ocr worker", language=native, error=str(exc))
                raise
            except Exception as exc:
                logger.error("failed to initialize ocr worker", language=native, error=str(exc))
                raise RecognitionInitError(
                    f"Failed to initialize OCR worker for {native}: {exc}", {'language': native}
                ) from exc

            self._worker = worker
            self._language = native
            logger.info("ocr worker initialized", language=native)
            return native

    def recognize_sync(self, image_bytes: bytes, lang: str = 'en') -> OCRResult:
        """Blocking recognition; see `recognize`."""
        with self._lock:
            self.ensure_ready(lang)
            if self._worker is None:
                raise RecognitionError("OCR worker not initialized", {'language': lang})

            logger.info("starting ocr recognition", size=len(image_bytes), language=self._language)
            raw = self._worker.recognize(image_bytes)
            language = self._language

        blocks = lines_to_blocks(raw.get('lines') or [])
        confidence = float(raw.get('confidence') or 0.0) / 100.0
        logger.info(
            "ocr completed",
            blocks=len(blocks),
            confidence=round(confidence, 3),
            language=language,
        )
        return OCRResult(
            text=str(raw.get('text') or ''),
            blocks=blocks,
            confidence=confidence,
            language=language,
        )

    async def recognize(self, image_bytes: bytes, lang: str = 'en') -> OCRResult:
        """Recognize text lines in an encoded image.

        The engine call blocks, so it runs in a worker thread.
        """
        return await asyncio.to_thread(self.recognize_sync, image_bytes, lang)

    def terminate(self) -> None:
        with self._lock:
            if self._worker is None:
                return
            worker = self._worker
            self._worker = None
            self._language = ''
            worker.terminate()
            logger.info("ocr worker terminated")


_recognizer: Optional[Recognizer] = None
_recognizer_guard = threading.Lock()


def get_recognizer() -> Recognizer:
    """Process-wide recognizer used when none is injected."""
    global _recognizer
    with _recognizer_guard:
        if _recognizer is None:
            _recognizer = Recognizer()
        return _recognizer


def terminate_recognizer() -> None:
    """Release the process-wide worker, if any."""
    with _recognizer_guard:
        recognizer = _recognizer
    if recognizer is not None:
        recognizer.terminate()
