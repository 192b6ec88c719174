from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass(frozen=True)
class BBox:
    x0: int
    y0: int
    x1: int
    y1: int

    @property
    def width(self) -> int:
        return self.x1 - self.x0

    @property
    def height(self) -> int:
        return self.y1 - self.y0

    def to_dict(self) -> Dict[str, int]:
        return {"x0": self.x0, "y0": self.y0, "x1": self.x1, "y1": self.y1}


@dataclass
class TextBlock:
    """One recognized line of text.

    Geometry is in the coordinate space of the image given to recognition.
    """

    text: str
    confidence: float
    bbox: BBox
    baseline: BBox
    font_size: int
    line_height: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "confidence": self.confidence,
            "bbox": self.bbox.to_dict(),
            "baseline": self.baseline.to_dict(),
            "font_size": self.font_size,
            "line_height": self.line_height,
        }


@dataclass
class TranslatedBlock(TextBlock):
    translated_text: str = ""

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        out["translated_text"] = self.translated_text
        return out


@dataclass
class OCRResult:
    text: str
    blocks: List[TextBlock] = field(default_factory=list)
    confidence: float = 0.0
    # recognizer-native code actually used, e.g. 'eng'
    language: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "blocks": [b.to_dict() for b in self.blocks],
            "confidence": self.confidence,
            "language": self.language,
        }


@dataclass
class ImageTranslateResult:
    image: bytes
    ocr_result: OCRResult
    translations: List[Dict[str, str]] = field(default_factory=list)
    # rendered blocks, geometry in original image coordinates
    blocks: List[TranslatedBlock] = field(default_factory=list)

    def to_dict(self, include_image: bool = True) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "translations": list(self.translations),
            "confidence": self.ocr_result.confidence,
            "detected_language": self.ocr_result.language,
        }
        if include_image:
            out["image"] = base64.b64encode(self.image).decode("ascii")
        return out


@dataclass(frozen=True)
class RenderOptions:
    """Per-request drawing options.

    ``background_color="auto"`` samples the colour around each block instead
    of using a fixed fill.
    """

    background_color: str = "#FFFFFF"
    text_color: str = "#000000"
    font_family: str = "sans-serif"
    padding: int = 4
