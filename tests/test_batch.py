import asyncio

import pytest

from imgtranslate.models import BBox, TextBlock, TranslatedBlock
from imgtranslate.pipeline.batch import rescale_block, translate_blocks_parallel


def _block(text, x0=10, y0=10, x1=110, y1=40, font_size=22, line_height=30):
    return TextBlock(
        text=text,
        confidence=0.9,
        bbox=BBox(x0, y0, x1, y1),
        baseline=BBox(x0, y1, x1, y1),
        font_size=font_size,
        line_height=line_height,
    )


def _suffix_translate(suffix="'", fail=()):
    async def translate(from_lang, to_lang, text, extra):
        await asyncio.sleep(0)
        if text in fail:
            raise RuntimeError(f"cannot translate {text}")
        return text + suffix
    return translate


def test_rescale_block_maps_back_to_original_coordinates():
    block = _block("HELLO", font_size=22, line_height=30)
    scaled = rescale_block(block, 2000 / 3000)
    assert scaled.bbox == BBox(15, 15, 165, 60)
    assert scaled.font_size == 33
    assert scaled.line_height == 45
    # baseline is not rescaled
    assert scaled.baseline == block.baseline
    assert scaled.text == "HELLO"


def test_rescale_block_identity_scale():
    block = _block("same")
    assert rescale_block(block, 1) is block


def test_rescale_tiny_box():
    scaled = rescale_block(_block("i", 0, 0, 1, 1, font_size=1, line_height=1), 0.5)
    assert scaled.bbox == BBox(0, 0, 2, 2)
    assert scaled.font_size == 2


def test_order_is_preserved_and_failures_keep_source_text():
    blocks = [_block("A"), _block("B"), _block("C")]
    out = asyncio.run(
        translate_blocks_parallel(blocks, "en", "es", 1, translate=_suffix_translate(fail={"B"}))
    )
    assert all(isinstance(b, TranslatedBlock) for b in out)
    assert [b.translated_text for b in out] == ["A'", "B", "C'"]
    assert [b.text for b in out] == ["A", "B", "C"]


def test_order_is_preserved_when_later_calls_finish_first():
    blocks = [_block(str(i)) for i in range(5)]

    async def translate(from_lang, to_lang, text, extra):
        await asyncio.sleep(0.01 * (5 - int(text)))
        return f"t{text}"

    out = asyncio.run(translate_blocks_parallel(blocks, "en", "de", 1, translate=translate))
    assert [b.translated_text for b in out] == ["t0", "t1", "t2", "t3", "t4"]


def test_failed_blocks_keep_unscaled_geometry():
    blocks = [_block("ok"), _block("bad")]
    out = asyncio.run(
        translate_blocks_parallel(blocks, "en", "es", 0.5, translate=_suffix_translate(fail={"bad"}))
    )
    assert out[0].bbox == BBox(20, 20, 220, 80)
    assert out[1].bbox == BBox(10, 10, 110, 40)
    assert out[1].font_size == 22


def test_translate_receives_languages_and_flag():
    calls = []

    async def translate(from_lang, to_lang, text, extra):
        calls.append((from_lang, to_lang, text, extra))
        return text

    asyncio.run(translate_blocks_parallel([_block("x")], "ja", "en", 1, translate=translate))
    assert calls == [("ja", "en", "x", False)]


def test_chunks_run_sequentially_with_bounded_concurrency():
    blocks = [_block(str(i)) for i in range(25)]
    in_flight = 0
    max_in_flight = 0
    events = []

    async def translate(from_lang, to_lang, text, extra):
        nonlocal in_flight, max_in_flight
        in_flight += 1
        max_in_flight = max(max_in_flight, in_flight)
        events.append(("start", int(text)))
        await asyncio.sleep(0.001 * (int(text) % 3))
        events.append(("end", int(text)))
        in_flight -= 1
        return text

    out = asyncio.run(translate_blocks_parallel(blocks, "en", "fr", 1, translate=translate))
    assert len(out) == 25
    assert max_in_flight == 10

    for chunk_start in (10, 20):
        first_start = events.index(("start", chunk_start))
        previous_ends = [events.index(("end", i)) for i in range(chunk_start - 10, chunk_start)]
        assert max(previous_ends) < first_start


def test_empty_input():
    assert asyncio.run(translate_blocks_parallel([], "en", "fr", 1, translate=_suffix_translate())) == []


def test_chunk_size_must_be_positive():
    with pytest.raises(ValueError):
        asyncio.run(translate_blocks_parallel([_block("x")], "en", "fr", 1, translate=_suffix_translate(), chunk_size=0))
