"""
spatial.py

Spatial mapper: reads hOCR markup from a full-page recognition pass and
correlates flagged records with their on-image line rectangles.

hOCR describes each recognized line as an element whose class names the
line type and whose title carries semicolon-separated properties:

    <span class="ocr_line" id="line_1_3" title="bbox 36 92 618 120; baseline 0 -6">
      <span class="ocrx_word" title="bbox 36 92 60 120; x_wconf 91">2</span>
      ...
    </span>

Property order inside the title varies between engine versions, so
properties are looked up by name. Text is read through BeautifulSoup,
which also decodes HTML entities ("&amp;", "&#39;").
"""

import logging
import re
from typing import List, Optional, Sequence

from bs4 import BeautifulSoup

from IngredientOCR import config
from IngredientOCR.schemas import BoundingBox, IngredientRecord, MappingResult, SpatialLine
from IngredientOCR.utils import LineMappingError, SpatialParseError

logger = logging.getLogger(__name__)

# hOCR classes that describe one line of text
LINE_CLASSES = ["ocr_line", "ocr_header", "ocr_caption", "ocr_textfloat"]

_BBOX = re.compile(r"(?:^|;)\s*bbox\s+(-?\d+)\s+(-?\d+)\s+(-?\d+)\s+(-?\d+)\s*(?:;|$)")
_WCONF = re.compile(r"(?:^|;)\s*x_wconf\s+(-?\d+(?:\.\d+)?)")
_WORD = re.compile(r"\w+")


def parse_bbox(title: str) -> Optional[BoundingBox]:
    """Read the bbox property of an hOCR title; None when absent or degenerate."""
    m = _BBOX.search(title or "")
    if m is None:
        return None
    x0, y0, x1, y1 = (int(v) for v in m.groups())
    if x0 < 0 or y0 < 0 or x1 <= x0 or y1 <= y0:
        return None
    return BoundingBox(x0=x0, y0=y0, x1=x1, y1=y1)


def _line_confidence(element) -> Optional[float]:
    scores = []
    for word in element.find_all(class_="ocrx_word"):
        m = _WCONF.search(word.get("title", ""))
        if m:
            scores.append(float(m.group(1)))
    if not scores:
        return None
    # Tesseract reports 0-100, and -1 for non-text blocks
    mean = sum(scores) / len(scores)
    return min(max(mean / 100.0, 0.0), 1.0)


def parse_spatial_text(markup: str) -> List[SpatialLine]:
    """
    Parse hOCR markup into SpatialLines in engine emission order.

    Lines with a missing or invalid bbox, and lines with no text, are
    skipped with a warning.

    Raises:
        SpatialParseError: If the markup is not a string.
    """
    if not isinstance(markup, str):
        raise SpatialParseError(
            f"Spatial text must be a string, got {type(markup).__name__}"
        )
    if not markup.strip():
        return []

    soup = BeautifulSoup(markup, "html.parser")
    lines: List[SpatialLine] = []

    for element in soup.find_all(class_=LINE_CLASSES):
        text = " ".join(element.get_text(" ").split())
        if not text:
            continue

        bbox = parse_bbox(element.get("title", ""))
        if bbox is None:
            logger.warning(
                "Skipping spatial line with unreadable bbox: '%s'", text[:50]
            )
            continue

        lines.append(
            SpatialLine(text=text, bbox=bbox, confidence=_line_confidence(element))
        )

    logger.debug("Parsed %d spatial line(s)", len(lines))
    return lines


def _tokens(text: str) -> List[str]:
    return [t.casefold() for t in _WORD.findall(text)]


def token_overlap(name: str, line_text: str) -> float:
    """Share of the name's words that appear in the line text."""
    name_tokens = _tokens(name)
    if not name_tokens:
        return 0.0
    line_tokens = set(_tokens(line_text))
    found = sum(1 for t in name_tokens if t in line_tokens)
    return found / len(name_tokens)


def map_to_bbox(record: IngredientRecord, lines: Sequence[SpatialLine]) -> MappingResult:
    """
    Map a record to the spatial line of its 1-based line number.

    A line whose text shares too few words with the record is still
    mapped, with low_confidence set; plain and spatial passes do not
    always segment lines identically.

    Raises:
        LineMappingError: If the line number has no spatial line.
    """
    index = record.line_number - 1
    if index < 0 or index >= len(lines):
        raise LineMappingError(
            f"Line {record.line_number} is outside the {len(lines)} spatial line(s)"
        )

    line = lines[index]
    overlap = token_overlap(record.ingredient_name, line.text)
    low_confidence = overlap < config.MAPPING_TOKEN_OVERLAP
    if low_confidence:
        logger.info(
            "Low-confidence mapping for line %d: '%s' vs '%s' (overlap %.2f)",
            record.line_number,
            record.ingredient_name,
            line.text,
            overlap,
        )

    return MappingResult(
        line_index=index,
        line=line,
        token_overlap=overlap,
        low_confidence=low_confidence,
    )
