import io
import threading

import pytest
from PIL import Image


def make_image_bytes(width, height, color=(255, 255, 255), fmt="PNG"):
    img = Image.new("RGB", (width, height), color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def make_line(text, x0, y0, x1, y1, confidence=90.0):
    return {
        "text": text,
        "confidence": confidence,
        "bbox": {"x0": x0, "y0": y0, "x1": x1, "y1": y1},
        "baseline": None,
    }


class FakeWorker:
    def __init__(self, engine, lang):
        self.engine = engine
        self.lang = lang
        self.terminated = False

    def recognize(self, image_bytes):
        with Image.open(io.BytesIO(image_bytes)) as img:
            size = img.size
        self.engine.record(("recognize", self.lang, size))
        lines = self.engine.lines.get(self.lang, [])
        return {
            "text": "\n".join(line["text"] for line in lines),
            "lines": lines,
            "confidence": 90.0 if lines else 0.0,
        }

    def terminate(self):
        self.terminated = True
        self.engine.record(("terminate", self.lang))
        with self.engine.lock:
            self.engine.alive -= 1


class FakeEngine:
    """Recognition worker factory that records every call it receives."""

    def __init__(self, lines=None, fail_langs=()):
        self.lines = lines or {}
        self.fail_langs = set(fail_langs)
        self.log = []
        self.lock = threading.Lock()
        self.alive = 0
        self.max_alive = 0

    def record(self, entry):
        with self.lock:
            self.log.append(entry)

    def __call__(self, native):
        self.record(("init", native))
        if native in self.fail_langs:
            raise RuntimeError(f"no traineddata for {native}")
        with self.lock:
            self.alive += 1
            self.max_alive = max(self.max_alive, self.alive)
        return FakeWorker(self, native)

    def count(self, kind):
        return sum(1 for entry in self.log if entry[0] == kind)

    def recognized(self):
        return [entry for entry in self.log if entry[0] == "recognize"]


@pytest.fixture
def image_bytes():
    return make_image_bytes


@pytest.fixture
def line():
    return make_line


@pytest.fixture
def fake_engine():
    return FakeEngine
