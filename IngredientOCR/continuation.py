"""
continuation.py

Continuation resolver for ingredient names wrapped across lines.

OCR output breaks lines wherever the photographed column did:

    1 cup old-fashioned rolled
    oats

A name is incomplete when it does not end in closing punctuation. An
incomplete name absorbs the following lines, joined with single spaces,
until one of these happens:
- an empty or punctuation-only line
- a line that starts a new ingredient (quantity, or quantity-less
  ingredient phrase)
- the merged text ends in closing punctuation
- MAX_COMBINE_LINES lines were absorbed, or the name reached
  MAX_INGREDIENT_LENGTH characters

Running out of input ends the merge normally.
"""

import logging
import re
from typing import List, Optional, Tuple

from IngredientOCR import config
from IngredientOCR.patterns import is_measurement_line, match_quantityless_line

logger = logging.getLogger(__name__)

# Endings that close an ingredient name
COMPLETE_ENDINGS = (".", ")", "]", "}", ",")

_PUNCTUATION_ONLY = re.compile(r"^[\W_]+$")


def is_incomplete_name(text: str) -> bool:
    """True when a non-empty name does not end in closing punctuation."""
    stripped = text.strip()
    if not stripped:
        return False
    return not stripped.endswith(COMPLETE_ENDINGS)


def _starts_new_ingredient(line: str, pattern: Optional[re.Pattern]) -> bool:
    if is_measurement_line(line, pattern):
        return True
    return match_quantityless_line(line) is not None


def resolve_continuation(
    lines: List[str],
    index: int,
    name: str,
    pattern: Optional[re.Pattern] = None,
) -> Tuple[str, int]:
    """
    Merge the lines following ``lines[index]`` into an incomplete name.

    An empty name (the unit ended the line, as in "8 tablespoons") is
    treated as incomplete too.

    Args:
        lines: All lines of the recognized text.
        index: 0-based index of the line the name was found on.
        name: The name captured on that line.
        pattern: Measurement pattern; defaults to the configured one.

    Returns:
        (merged name, number of lines consumed after ``index``).
    """
    merged = " ".join(name.split())
    if merged and not is_incomplete_name(merged):
        return merged, 0

    consumed = 0
    for line in lines[index + 1:]:
        if consumed >= config.MAX_COMBINE_LINES:
            logger.debug("Continuation stopped after %d lines", consumed)
            break
        if len(merged) >= config.MAX_INGREDIENT_LENGTH:
            logger.debug("Continuation stopped at %d characters", len(merged))
            break

        text = " ".join(line.split())
        if not text or _PUNCTUATION_ONLY.match(text):
            break
        if _starts_new_ingredient(text, pattern):
            break

        merged = f"{merged} {text}".strip()
        consumed += 1

        if not is_incomplete_name(merged):
            break

    if consumed:
        logger.debug("Merged %d continuation line(s) into '%s'", consumed, merged)
    return merged, consumed
