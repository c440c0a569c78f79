"""
engine.py

Recognition capability used by extraction and recovery.

The Recognizer interface has three passes:
1. recognize           full page -> (text, confidence)
2. recognize_spatial   full page -> hOCR markup of the same lines
3. recognize_constrained
                       small crop -> (text, confidence), limited to one
                       line or word and a character whitelist

TesseractRecognizer implements it with pytesseract. The full-page text
is rebuilt from Tesseract's line grouping rather than its formatted
string output, so text line N is hOCR line N (no blank paragraph lines).
"""

import logging
import shlex
from abc import ABC, abstractmethod
from collections import OrderedDict
from enum import IntEnum
from typing import List, Optional, Tuple

import pytesseract
from PIL import Image

from IngredientOCR import config
from IngredientOCR.utils import RecognitionError, RecognitionTimeoutError

logger = logging.getLogger(__name__)


class RecognitionMode(IntEnum):
    """Layout hint for the constrained pass (Tesseract page segmentation modes)."""

    SINGLE_LINE = 7
    SINGLE_WORD = 8


class Recognizer(ABC):
    """Uniform interface over a text-recognition engine."""

    @abstractmethod
    def recognize(self, image: Image.Image) -> Tuple[str, float]:
        """Recognize a full page.

        Returns
        -------
        (text, confidence)
            One recognized line per text line; confidence in [0, 1].

        Raises
        ------
        RecognitionError
            On engine failure. ``transient`` tells the caller whether a
            retry could succeed.
        """
        ...

    @abstractmethod
    def recognize_spatial(self, image: Image.Image) -> str:
        """Recognize a full page and return hOCR markup."""
        ...

    @abstractmethod
    def recognize_constrained(
        self,
        image: Image.Image,
        mode_hint: RecognitionMode,
        char_whitelist: str,
    ) -> Tuple[str, float]:
        """Recognize a small region under a layout hint and a whitelist."""
        ...


class TesseractRecognizer(Recognizer):
    """
    Recognizer backed by the Tesseract binary through pytesseract.

    Stateless apart from its settings, so one instance can serve
    concurrent calls from worker threads.
    """

    def __init__(
        self,
        languages: Optional[str] = None,
        page_psm: Optional[int] = None,
        timeout: Optional[float] = None,
        constrained_timeout: Optional[float] = None,
    ):
        self.languages = languages or config.OCR_LANGUAGES
        self.page_psm = page_psm or config.FULL_PAGE_PSM
        self.timeout = timeout if timeout is not None else config.FULL_PAGE_TIMEOUT_SECONDS
        # Tesseract kills its own subprocess after this many seconds
        self.constrained_timeout = (
            constrained_timeout
            if constrained_timeout is not None
            else config.RECOVERY_TIMEOUT_SECONDS
        )

    def _page_config(self) -> str:
        return f"--oem 3 --psm {self.page_psm}"

    def _run(self, func, *args, **kwargs):
        try:
            return func(*args, **kwargs)
        except pytesseract.TesseractNotFoundError as e:
            raise RecognitionError(f"Tesseract is not installed: {e}") from e
        except pytesseract.TesseractError as e:
            raise RecognitionError(f"Tesseract failed: {e}") from e
        except RuntimeError as e:
            # pytesseract signals its subprocess timeout as a RuntimeError
            if "timeout" in str(e).lower():
                raise RecognitionTimeoutError(f"Tesseract timed out: {e}") from e
            raise RecognitionError(f"Tesseract failed: {e}", transient=True) from e

    def recognize(self, image: Image.Image) -> Tuple[str, float]:
        data = self._run(
            pytesseract.image_to_data,
            image,
            lang=self.languages,
            config=self._page_config(),
            output_type=pytesseract.Output.DICT,
            timeout=self.timeout,
        )
        lines, confidence = _lines_from_data(data)
        logger.info("Full-page pass: %d line(s), confidence=%.2f", len(lines), confidence)
        return "\n".join(lines), confidence

    def recognize_spatial(self, image: Image.Image) -> str:
        hocr = self._run(
            pytesseract.image_to_pdf_or_hocr,
            image,
            lang=self.languages,
            config=self._page_config(),
            extension="hocr",
            timeout=self.timeout,
        )
        if isinstance(hocr, bytes):
            hocr = hocr.decode("utf-8", errors="replace")
        return hocr

    def recognize_constrained(
        self,
        image: Image.Image,
        mode_hint: RecognitionMode = RecognitionMode.SINGLE_LINE,
        char_whitelist: str = config.QUANTITY_WHITELIST,
    ) -> Tuple[str, float]:
        options = [f"--oem 3 --psm {int(mode_hint)}"]
        if char_whitelist:
            options.append("-c " + shlex.quote(f"tessedit_char_whitelist={char_whitelist}"))

        data = self._run(
            pytesseract.image_to_data,
            image,
            lang=self.languages,
            config=" ".join(options),
            output_type=pytesseract.Output.DICT,
            timeout=self.constrained_timeout,
        )
        lines, confidence = _lines_from_data(data)
        text = " ".join(lines)
        logger.debug("Constrained pass: '%s' (confidence=%.2f)", text, confidence)
        return text, confidence


def _lines_from_data(data: dict) -> Tuple[List[str], float]:
    """
    Group image_to_data words into lines, in engine order.

    Confidence is the mean of the word confidences Tesseract reports
    (0-100, -1 for non-word boxes), scaled to [0, 1].
    """
    grouped: "OrderedDict[tuple, List[str]]" = OrderedDict()
    scores: List[float] = []

    for i, word in enumerate(data.get("text", [])):
        word = (word or "").strip()
        if not word:
            continue
        key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
        grouped.setdefault(key, []).append(word)

        conf = float(data["conf"][i])
        if conf >= 0:
            scores.append(conf)

    lines = [" ".join(words) for words in grouped.values()]
    confidence = (sum(scores) / len(scores) / 100.0) if scores else 0.0
    return lines, min(max(confidence, 0.0), 1.0)


# Module-level singleton engine
_engine: Optional[Recognizer] = None


def get_engine() -> Recognizer:
    """Get or create the singleton Tesseract recognizer."""
    global _engine
    if _engine is None:
        _engine = TesseractRecognizer()
    return _engine


def reset_engine() -> None:
    """Reset the singleton engine (useful for testing)."""
    global _engine
    _engine = None
