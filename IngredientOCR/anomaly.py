"""
anomaly.py

Anomaly detector for extracted quantities.

Each record is classified exactly once, right after extraction:

    valid    parses to a positive number within the bound for its unit
    missing  empty after extraction
    suspect  letters mixed into the number ("l/2"), unparseable,
             zero or negative, or above the unit's bound ("100 cups")

Missing and suspect records are flagged: their quantity is replaced by
the sentinel and requires_confirmation is set. Recovery only ever
targets flagged records.

Known OCR confusions ("l/2" for "1/2") are never applied silently. The
corrected text is offered as suggested_quantity for the user.
"""

import logging
import re
from typing import List, Optional

from IngredientOCR import config
from IngredientOCR.fraction_normalizer import FRACTION_GLYPHS, normalize_fraction
from IngredientOCR.schemas import IngredientRecord, QuantityStatus, RecoveryState
from IngredientOCR.units import UnitVocabulary, get_vocabulary

logger = logging.getLogger(__name__)

# (pattern, replacement) applied to a whole quantity token
QUANTITY_OCR_CORRECTIONS = [
    (re.compile(r"^[lI|]/([2-9])$"), r"1/\1"),  # l/2 -> 1/2
    (re.compile(r"^O/(\d+)$"), r"0/\1"),  # O/4 -> 0/4
    (re.compile(r"^1/$"), "1/2"),  # dropped denominator
    (re.compile(r"^/([234])$"), r"1/\1"),  # dropped numerator
]


def correct_quantity_ocr(quantity: str) -> str:
    """
    Apply the known OCR confusion table to a quantity token.

    Returns the corrected token, or the token unchanged when no
    correction applies.
    """
    token = quantity.strip()
    for pattern, replacement in QUANTITY_OCR_CORRECTIONS:
        corrected, n = pattern.subn(replacement, token)
        if n:
            return corrected
    return quantity


def classify_quantity(
    quantity: str,
    unit: Optional[str] = None,
    vocabulary: Optional[UnitVocabulary] = None,
) -> QuantityStatus:
    """Classify a quantity as valid, missing or suspect for its unit."""
    token = quantity.strip()
    if not token or token == "?":
        return QuantityStatus.MISSING

    if any(ch.isalpha() for ch in token):
        return QuantityStatus.SUSPECT

    value = normalize_fraction(token)
    if value is None or value <= 0:
        return QuantityStatus.SUSPECT

    vocabulary = vocabulary or get_vocabulary()
    if value > vocabulary.max_quantity_for(unit):
        return QuantityStatus.SUSPECT

    return QuantityStatus.VALID


def flag_record(
    record: IngredientRecord, vocabulary: Optional[UnitVocabulary] = None
) -> IngredientRecord:
    """Classify a record and return it flagged when its quantity is unusable."""
    status = classify_quantity(record.quantity, record.unit, vocabulary)

    if status == QuantityStatus.VALID:
        return record.model_copy(
            update={
                "status": status,
                "normalized_quantity": normalize_fraction(record.quantity),
            }
        )

    suggestion = None
    if record.quantity.strip():
        corrected = correct_quantity_ocr(record.quantity)
        if corrected != record.quantity and (
            classify_quantity(corrected, record.unit, vocabulary) == QuantityStatus.VALID
        ):
            suggestion = corrected

    logger.info(
        "Flagged line %d '%s': quantity '%s' is %s",
        record.line_number,
        record.ingredient_name,
        record.quantity,
        status.value,
    )
    return record.model_copy(
        update={
            "status": status,
            "quantity": config.QUANTITY_SENTINEL,
            "requires_confirmation": True,
            "state": RecoveryState.FLAGGED,
            "suggested_quantity": suggestion,
            "normalized_quantity": None,
        }
    )


def flag_records(
    records: List[IngredientRecord], vocabulary: Optional[UnitVocabulary] = None
) -> List[IngredientRecord]:
    vocabulary = vocabulary or get_vocabulary()
    return [flag_record(record, vocabulary) for record in records]


def is_valid_recovered_quantity(text: str) -> bool:
    """
    Decide whether a constrained recognition pass produced a quantity.

    A pure function of the text: it must be short, contain a digit or a
    fraction glyph, contain no letters, and parse to a positive number
    or fraction.
    """
    token = text.strip()
    if not token or len(token) > config.MAX_RECOVERED_LENGTH:
        return False
    if any(ch.isalpha() for ch in token):
        return False
    if not any(ch.isdigit() or ch in FRACTION_GLYPHS for ch in token):
        return False
    value = normalize_fraction(token)
    return value is not None and value > 0
