"""
Tests for the Tesseract recognizer.

pytesseract calls are mocked, so the Tesseract binary is not needed.
"""

from unittest.mock import patch

import numpy as np
import pytesseract
import pytest
from PIL import Image

from IngredientOCR import config
from IngredientOCR.engine import (
    RecognitionMode,
    Recognizer,
    TesseractRecognizer,
    _lines_from_data,
    get_engine,
    reset_engine,
)
from IngredientOCR.utils import RecognitionError, RecognitionTimeoutError


@pytest.fixture(autouse=True)
def _reset_engine():
    reset_engine()
    yield
    reset_engine()


def _make_pil_image(w=200, h=100):
    arr = np.ones((h, w, 3), dtype=np.uint8) * 255
    arr[40:60, 20:180] = 0
    return Image.fromarray(arr)


def _make_data():
    """image_to_data output for two lines, with Tesseract's empty layout rows."""
    return {
        "text": ["", "", "2", "cups", "flour", "", "3", "eggs"],
        "block_num": [1, 1, 1, 1, 1, 1, 1, 1],
        "par_num": [0, 1, 1, 1, 1, 1, 1, 1],
        "line_num": [0, 0, 1, 1, 1, 2, 2, 2],
        "conf": ["-1", "-1", 90, 80, 70, "-1", 95, 85],
    }


class TestLinesFromData:
    def test_groups_words_into_lines(self):
        lines, confidence = _lines_from_data(_make_data())
        assert lines == ["2 cups flour", "3 eggs"]
        assert confidence == pytest.approx(0.84)

    def test_empty(self):
        assert _lines_from_data({"text": []}) == ([], 0.0)


class TestTesseractRecognizer:
    def test_is_a_recognizer(self):
        assert isinstance(TesseractRecognizer(), Recognizer)

    def test_defaults_from_config(self):
        recognizer = TesseractRecognizer()
        assert recognizer.languages == config.OCR_LANGUAGES
        assert recognizer.page_psm == config.FULL_PAGE_PSM

    @patch("IngredientOCR.engine.pytesseract.image_to_data")
    def test_recognize(self, mock_data):
        mock_data.return_value = _make_data()

        text, confidence = TesseractRecognizer().recognize(_make_pil_image())

        assert text == "2 cups flour\n3 eggs"
        assert confidence == pytest.approx(0.84)
        kwargs = mock_data.call_args.kwargs
        assert kwargs["lang"] == config.OCR_LANGUAGES
        assert f"--psm {config.FULL_PAGE_PSM}" in kwargs["config"]

    @patch("IngredientOCR.engine.pytesseract.image_to_pdf_or_hocr")
    def test_recognize_spatial_decodes(self, mock_hocr):
        mock_hocr.return_value = "<span class='ocr_line'>½ cup</span>".encode("utf-8")

        markup = TesseractRecognizer().recognize_spatial(_make_pil_image())

        assert markup == "<span class='ocr_line'>½ cup</span>"
        assert mock_hocr.call_args.kwargs["extension"] == "hocr"

    @patch("IngredientOCR.engine.pytesseract.image_to_data")
    def test_recognize_constrained(self, mock_data):
        mock_data.return_value = {
            "text": ["1/2"],
            "block_num": [1],
            "par_num": [1],
            "line_num": [1],
            "conf": [93],
        }

        text, confidence = TesseractRecognizer().recognize_constrained(
            _make_pil_image(), RecognitionMode.SINGLE_LINE, "0123456789/"
        )

        assert text == "1/2"
        assert confidence == pytest.approx(0.93)
        options = mock_data.call_args.kwargs["config"]
        assert "--psm 7" in options
        assert "tessedit_char_whitelist=0123456789/" in options

    @patch("IngredientOCR.engine.pytesseract.image_to_data")
    def test_constrained_pass_uses_recovery_timeout(self, mock_data):
        mock_data.return_value = {"text": []}
        recognizer = TesseractRecognizer(timeout=30)

        recognizer.recognize_constrained(
            _make_pil_image(), RecognitionMode.SINGLE_LINE, config.QUANTITY_WHITELIST
        )

        assert recognizer.constrained_timeout == config.RECOVERY_TIMEOUT_SECONDS
        assert mock_data.call_args.kwargs["timeout"] == config.RECOVERY_TIMEOUT_SECONDS

    @patch("IngredientOCR.engine.pytesseract.image_to_data")
    def test_single_word_mode(self, mock_data):
        mock_data.return_value = {"text": []}
        TesseractRecognizer().recognize_constrained(
            _make_pil_image(), RecognitionMode.SINGLE_WORD, config.QUANTITY_WHITELIST
        )
        assert "--psm 8" in mock_data.call_args.kwargs["config"]

    @patch("IngredientOCR.engine.pytesseract.image_to_data")
    def test_tesseract_error(self, mock_data):
        mock_data.side_effect = pytesseract.TesseractError(1, "Image too small")
        with pytest.raises(RecognitionError) as exc_info:
            TesseractRecognizer().recognize(_make_pil_image())
        assert exc_info.value.transient is False

    @patch("IngredientOCR.engine.pytesseract.image_to_data")
    def test_tesseract_missing(self, mock_data):
        mock_data.side_effect = pytesseract.TesseractNotFoundError()
        with pytest.raises(RecognitionError):
            TesseractRecognizer().recognize(_make_pil_image())

    @patch("IngredientOCR.engine.pytesseract.image_to_data")
    def test_timeout(self, mock_data):
        mock_data.side_effect = RuntimeError("Tesseract process timeout")
        with pytest.raises(RecognitionTimeoutError):
            TesseractRecognizer().recognize_constrained(
                _make_pil_image(), RecognitionMode.SINGLE_LINE, "0123456789"
            )


class TestEngineSingleton:
    def test_get_engine_is_cached(self):
        assert get_engine() is get_engine()
        assert isinstance(get_engine(), TesseractRecognizer)

    def test_reset_engine(self):
        first = get_engine()
        reset_engine()
        assert get_engine() is not first
