"""
Shared test doubles.
"""

import time
from typing import List, Optional, Tuple

from IngredientOCR.engine import RecognitionMode, Recognizer


def make_hocr(
    lines: List[Tuple[str, Tuple[int, int, int, int]]], wconf: Optional[int] = None
) -> str:
    """Build minimal hOCR markup for (text, bbox) lines.

    With ``wconf`` every word is wrapped in an ocrx_word carrying that
    confidence.
    """
    def words(text):
        if wconf is None:
            return text
        return " ".join(
            f"<span class='ocrx_word' title='x_wconf {wconf}'>{w}</span>"
            for w in text.split()
        )

    spans = "".join(
        f"<span class='ocr_line' title='bbox {x0} {y0} {x1} {y1}'>{words(text)}</span>"
        for text, (x0, y0, x1, y1) in lines
    )
    return f"<html><body><div class='ocr_page'>{spans}</div></body></html>"


class FakeRecognizer(Recognizer):
    """Recognizer returning canned results and recording its calls."""

    def __init__(
        self,
        text: str = "",
        confidence: float = 0.9,
        spatial: str = "",
        constrained: Tuple[str, float] = ("", 0.0),
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.text = text
        self.confidence = confidence
        self.spatial = spatial
        self.constrained = constrained
        self.error = error
        self.delay = delay
        self.constrained_calls = []
        self.spatial_calls = 0

    def recognize(self, image) -> Tuple[str, float]:
        return self.text, self.confidence

    def recognize_spatial(self, image) -> str:
        self.spatial_calls += 1
        return self.spatial

    def recognize_constrained(
        self, image, mode_hint: RecognitionMode, char_whitelist: str
    ) -> Tuple[str, float]:
        self.constrained_calls.append((image, mode_hint, char_whitelist))
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.constrained
