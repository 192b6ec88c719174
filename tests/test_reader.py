import asyncio
import threading

import pandas as pd
import pytest

from imgtranslate.errors import RecognitionError, RecognitionInitError
from imgtranslate.models import BBox
from imgtranslate.ocr.reader import (
    Recognizer,
    build_dataframe_from_tesseract,
    group_words_to_lines,
    lines_to_blocks,
    map_language,
)


def test_build_dataframe_from_tesseract_filters_empty_and_low_conf():
    data = {
        'level': [5, 5, 5],
        'page_num': [1, 1, 1],
        'block_num': [1, 1, 1],
        'par_num': [1, 1, 1],
        'line_num': [1, 1, 1],
        'word_num': [1, 2, 3],
        'left': [10, 30, 50],
        'top': [10, 10, 10],
        'width': [10, 10, 10],
        'height': [10, 10, 10],
        'conf': ['0', '85', '95'],
        'text': [' ', 'Hello', ''],
    }
    df = build_dataframe_from_tesseract(data)
    # Only one valid row should remain ('Hello')
    assert len(df) == 1
    assert df.iloc[0]['text'] == 'Hello'


def _make_df_for_lines():
    data = {
        'block_num': [1, 1, 1, 2, 2],
        'par_num': [1, 1, 1, 1, 1],
        'line_num': [1, 1, 1, 1, 1],
        'left': [50, 10, 30, 300, 330],
        'top': [10, 10, 12, 15, 15],
        'width': [10, 10, 10, 20, 10],
        'height': [12, 12, 12, 14, 14],
        'conf': [80, 90, 100, 85, 95],
        'text': ['C', 'A', 'B', 'D', 'E'],
    }
    return pd.DataFrame(data)


def test_group_words_to_lines_sorts_words_and_merges_geometry():
    lines = group_words_to_lines(_make_df_for_lines())
    assert len(lines) == 2
    first, second = lines
    assert first['text'] == 'A B C'
    assert first['bbox'] == {'x0': 10, 'y0': 10, 'x1': 60, 'y1': 24}
    assert first['confidence'] == pytest.approx(90.0)
    assert first['baseline'] is None
    assert second['text'] == 'D E'
    assert second['bbox'] == {'x0': 300, 'y0': 15, 'x1': 340, 'y1': 29}


def test_group_words_to_lines_empty_frame():
    assert group_words_to_lines(pd.DataFrame()) == []


def test_lines_to_blocks_skips_blank_lines_and_normalizes(line):
    blocks = lines_to_blocks([
        line('  Hello  ', 10, 10, 110, 50, confidence=87.0),
        line('   ', 0, 0, 10, 10),
    ])
    assert len(blocks) == 1
    block = blocks[0]
    assert block.text == 'Hello'
    assert block.confidence == pytest.approx(0.87)
    assert block.bbox == BBox(10, 10, 110, 50)
    assert block.line_height == 40
    assert block.font_size == 30


def test_lines_to_blocks_font_size_floor(line):
    block = lines_to_blocks([line('tiny', 0, 0, 20, 10)])[0]
    assert block.line_height == 10
    assert block.font_size == 12


def test_lines_to_blocks_baseline_falls_back_to_bbox_bottom(line):
    block = lines_to_blocks([line('x', 5, 6, 50, 30)])[0]
    assert block.baseline == BBox(5, 30, 50, 30)


def test_lines_to_blocks_partial_baseline(line):
    raw = line('x', 5, 6, 50, 30)
    raw['baseline'] = {'x0': 7, 'y0': 28}
    block = lines_to_blocks([raw])[0]
    assert block.baseline == BBox(7, 28, 50, 30)


def test_map_language():
    assert map_language('en') == 'eng'
    assert map_language('zh') == 'chi_sim'
    assert map_language('zh-Hans') == 'chi_sim'
    assert map_language('zh-Hant') == 'chi_tra'
    assert map_language('ja') == 'jpn'
    assert map_language('th') == 'tha'
    assert map_language('xx') == 'eng'


def test_recognize_returns_native_language_and_blocks(fake_engine, line, image_bytes):
    engine = fake_engine(lines={'fra': [line('Bonjour', 0, 0, 80, 20)]})
    recognizer = Recognizer(worker_factory=engine)
    result = recognizer.recognize_sync(image_bytes(100, 40), 'fr')
    assert result.language == 'fra'
    assert result.text == 'Bonjour'
    assert result.confidence == pytest.approx(0.9)
    assert [b.text for b in result.blocks] == ['Bonjour']


def test_same_language_reuses_worker(fake_engine, image_bytes):
    engine = fake_engine()
    recognizer = Recognizer(worker_factory=engine)
    data = image_bytes(50, 50)
    recognizer.recognize_sync(data, 'en')
    recognizer.recognize_sync(data, 'en')
    # unmapped codes share the default worker
    recognizer.recognize_sync(data, 'xx')
    assert engine.count('init') == 1
    assert engine.count('recognize') == 3


def test_language_switch_terminates_previous_worker(fake_engine, image_bytes):
    engine = fake_engine()
    recognizer = Recognizer(worker_factory=engine)
    data = image_bytes(50, 50)
    recognizer.recognize_sync(data, 'en')
    recognizer.recognize_sync(data, 'es')
    events = [e[:2] for e in engine.log]
    assert events == [
        ('init', 'eng'),
        ('recognize', 'eng'),
        ('terminate', 'eng'),
        ('init', 'spa'),
        ('recognize', 'spa'),
    ]
    assert recognizer.language == 'spa'


def test_init_failure_propagates_and_allows_retry(fake_engine):
    engine = fake_engine(fail_langs={'deu'})
    recognizer = Recognizer(worker_factory=engine)
    with pytest.raises(RecognitionInitError):
        recognizer.ensure_ready('de')
    assert recognizer.language == ''

    engine.fail_langs.clear()
    assert recognizer.ensure_ready('de') == 'deu'
    assert engine.count('init') == 2


def test_recognize_without_worker_fails_loudly(image_bytes):
    recognizer = Recognizer(worker_factory=lambda native: None)
    with pytest.raises(RecognitionError, match='not initialized'):
        recognizer.recognize_sync(image_bytes(10, 10), 'en')


def test_concurrent_language_switches_keep_one_worker(fake_engine, image_bytes):
    engine = fake_engine()
    recognizer = Recognizer(worker_factory=engine)
    data = image_bytes(20, 20)
    errors = []

    def work(lang):
        try:
            for _ in range(5):
                result = recognizer.recognize_sync(data, lang)
                assert result.language == map_language(lang)
        except Exception as exc:  # surfaced by the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=work, args=(lang,)) for lang in ('en', 'de', 'ja', 'en')]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert engine.max_alive == 1
    assert engine.count('recognize') == 20


def test_async_recognize_and_terminate(fake_engine, image_bytes):
    engine = fake_engine()
    recognizer = Recognizer(worker_factory=engine)
    result = asyncio.run(recognizer.recognize(image_bytes(30, 30), 'ko'))
    assert result.language == 'kor'
    assert result.blocks == []

    recognizer.terminate()
    assert recognizer.language == ''
    assert engine.count('terminate') == 1
