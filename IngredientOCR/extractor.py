"""
extractor.py

Turns multi-line recognized text into IngredientRecords.

For each line:
1. Match every (quantity, unit, name) triple with the measurement pattern,
   or, failing that, a quantity-less ingredient phrase
2. Let the last triple on the line absorb wrapped continuation lines
3. Clean the name (leading article, trailing punctuation, length cap)
4. Drop empty names and over-matched names
5. Classify the quantity and flag missing or suspect ones

Extraction is pure: the same text always yields the same records.
"""

import logging
import re
from typing import List, Optional

from IngredientOCR import config
from IngredientOCR.anomaly import flag_records
from IngredientOCR.continuation import is_incomplete_name, resolve_continuation
from IngredientOCR.fraction_normalizer import normalize_fraction
from IngredientOCR.patterns import LineMatch, match_line, match_quantityless_line
from IngredientOCR.schemas import IngredientRecord

logger = logging.getLogger(__name__)

# Leading words left over from unit phrasing ("2 cups of flour",
# "200 g de farine"). One is stripped per name.
LEADING_WORDS = [
    "of ", "the ", "a ", "an ",
    "des ", "de ", "du ", "d'", "d’",
    "les ", "la ", "le ", "l'", "l’",
    "aux ", "au ", "une ", "un ",
]

_TRAILING_PUNCTUATION = " \t,;:.-–—!?"
_LEADING_PUNCTUATION = " \t,;:.-–—"

# Whole-token misreads of fraction glyphs in full-page text
FRACTION_MISREADS = [
    (re.compile(r"(?<!\S)Ye(?=\s)"), "1/2"),
    (re.compile(r"(?<!\S)%(?=\s)"), "1/4"),
]


def correct_fraction_misreads(text: str) -> str:
    """Replace standalone glyph misreads ("Ye" for ½, "%" for ¼)."""
    for pattern, replacement in FRACTION_MISREADS:
        text = pattern.sub(replacement, text)
    return text


def clean_ingredient_name(name: str) -> str:
    """
    Normalize a captured ingredient name.

    "of all-purpose flour," -> "all-purpose flour"
    "de chocolat noir"      -> "chocolat noir"
    ". butter"              -> "butter"
    """
    cleaned = " ".join(name.split())
    if not config.ENABLE_NAME_POSTPROCESSING:
        return cleaned

    cleaned = cleaned.lstrip(_LEADING_PUNCTUATION)
    lowered = cleaned.lower()
    for word in LEADING_WORDS:
        if lowered.startswith(word) and len(cleaned) > len(word):
            cleaned = cleaned[len(word):].lstrip()
            break

    cleaned = cleaned.rstrip(_TRAILING_PUNCTUATION)

    if len(cleaned) > config.MAX_INGREDIENT_LENGTH:
        cut = cleaned[: config.MAX_INGREDIENT_LENGTH]
        if " " in cut:
            cut = cut[: cut.rfind(" ")]
        logger.warning(
            "Ingredient name truncated from %d to %d characters", len(cleaned), len(cut)
        )
        cleaned = cut.rstrip(_TRAILING_PUNCTUATION)

    return cleaned


def _digit_count(text: str) -> int:
    return sum(1 for ch in text if ch.isdigit())


def _build_record(match: LineMatch, name: str, line_number: int) -> Optional[IngredientRecord]:
    cleaned = clean_ingredient_name(name)
    if not cleaned:
        logger.debug("Discarding empty name on line %d", line_number)
        return None

    if _digit_count(cleaned) > config.MAX_NAME_DIGITS:
        logger.debug("Discarding over-matched name '%s' on line %d", cleaned, line_number)
        return None

    return IngredientRecord(
        quantity=match.quantity,
        raw_quantity=match.quantity,
        unit=match.unit,
        ingredient_name=cleaned,
        line_number=line_number,
        span=(match.start, max(match.start, match.end)),
        normalized_quantity=normalize_fraction(match.quantity) if match.quantity else None,
    )


def extract_ingredients(
    text: str, pattern: Optional[re.Pattern] = None
) -> List[IngredientRecord]:
    """
    Extract and classify ingredient records from recognized text.

    Args:
        text: Full-page text, one recognized line per text line.
        pattern: Measurement pattern; defaults to the configured one.

    Returns:
        Records in source order. Line numbers are 1-based; merged
        records carry the number of their first line.
    """
    lines = text.splitlines()
    records: List[IngredientRecord] = []

    i = 0
    while i < len(lines):
        line = lines[i]
        matches = match_line(line, pattern)
        if not matches:
            quantityless = match_quantityless_line(line)
            if quantityless is not None:
                logger.debug("Line %d has an ingredient without a quantity", i + 1)
                matches = [quantityless]

        consumed = 0
        for k, match in enumerate(matches):
            name = match.name
            is_last = k == len(matches) - 1
            if is_last and (is_incomplete_name(name) or (not name and match.unit)):
                name, consumed = resolve_continuation(lines, i, name, pattern)

            record = _build_record(match, name, i + 1)
            if record is not None:
                records.append(record)

        i += 1 + consumed

    records = flag_records(records)
    flagged = sum(1 for r in records if r.requires_confirmation)
    logger.info("Extracted %d ingredient record(s), %d flagged", len(records), flagged)
    return records
