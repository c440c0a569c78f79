"""
patterns.py

Measurement pattern engine.

Compiles the unit vocabulary into a single case-insensitive regular
expression with three named groups:

    quantity  mixed number ("1 1/2", "1½"), fraction ("1/2", OCR'd "l/2"),
              decimal or integer, or a lone fraction glyph
    unit      optional; one of the vocabulary units, not followed by a letter
    name      the rest of the line

The unit group is optional inside the one pattern and the remainder of the
line is always captured as the name, whether or not a unit was found.
"6 pommes de terre" and "500g chocolat noir" go through the same capture,
so a quantity-only ingredient keeps every word of its name.

Several ingredients on one line ("2 cups flour, 1 cup sugar") are split
after matching: the name is truncated before the first embedded quantity
and matching resumes there. Matching is line-local.
"""

import logging
import re
from typing import List, NamedTuple, Optional, Set, Tuple

from IngredientOCR.fraction_normalizer import FRACTION_GLYPHS
from IngredientOCR.units import UnitVocabulary, get_vocabulary

logger = logging.getLogger(__name__)

_GLYPHS = f"[{FRACTION_GLYPHS}]"

# Precedence: mixed number, simple fraction, decimal/integer, lone glyph.
# The fraction numerator also admits l, I and O, the usual OCR stand-ins
# for 1 and 0, so "l/2" is captured and later flagged as suspect.
QUANTITY_PATTERN = (
    rf"\d+[ \t]+\d+/\d+"
    rf"|\d+[ \t]*{_GLYPHS}"
    rf"|(?:\d+|[lIO])/\d+"
    rf"|\d+(?:[.,]\d+)?"
    rf"|{_GLYPHS}"
)

# A quantity never starts inside a word or a number
_QUANTITY_START = r"(?<![\w/.])"

# Connector words dropped when they dangle before an embedded quantity
_CONNECTORS = {"and", "with", "plus", "or", "et", "avec", "ou", "+", "&"}

# Leading words that mark an ingredient phrase whose quantity was lost
# ("de chocolat noir" once "2g" was misread away)
_PARTITIVE_LEADS = r"(?:de|du|des|of)\s+|d['’]"

_EMBEDDED_QUANTITY = re.compile(
    rf"(?:(?<=[\s,;])|^)(?:{QUANTITY_PATTERN})(?![\w/])", re.IGNORECASE
)

# Compiled pattern cache
_pattern: Optional[re.Pattern] = None
_quantityless_pattern: Optional[re.Pattern] = None


class LineMatch(NamedTuple):
    """One (quantity, unit, name) triple found on a line."""

    quantity: str
    unit: Optional[str]
    name: str
    start: int
    end: int


def _unit_alternation(units: List[str]) -> str:
    parts = []
    for unit in units:
        # Internal spaces match any run of whitespace ("fl  oz")
        parts.append(r"\s+".join(re.escape(word) for word in unit.split()))
    return "|".join(parts)


def build_measurement_pattern(vocabulary: UnitVocabulary) -> re.Pattern:
    """Compile the single quantity/unit/name pattern for a vocabulary."""
    units = _unit_alternation(vocabulary.all_units())
    # An abbreviation's period ("Tbsp.", "oz.") belongs to the unit
    pattern = (
        rf"{_QUANTITY_START}(?P<quantity>{QUANTITY_PATTERN})"
        rf"(?:[ \t]*(?P<unit>{units})(?![^\W\d_]|['’])\.?)?"
        rf"[ \t]*(?P<name>.*)$"
    )
    logger.debug("Built measurement pattern with %d units", len(vocabulary.all_units()))
    return re.compile(pattern, re.IGNORECASE)


def build_quantityless_pattern(vocabulary: UnitVocabulary) -> re.Pattern:
    """
    Compile the pattern for an ingredient line that lost its quantity.

    Such a line starts with one of:

        a lowercase measure unit and a word     "cup sugar", "ml water"
        a lowercase count unit and a partitive  "pinch of salt"
        a partitive and at least two words      "de chocolat noir"

    Count units alone ("Slice the bread", "Can be made ahead") and
    one-letter units read as prose. A single word after the partitive
    ("de terre") reads as a wrapped continuation.
    """
    count = vocabulary.count_units()
    measures = [u for u in vocabulary.all_units() if u.casefold() not in count and len(u) > 1]
    counted = [u for u in vocabulary.all_units() if u.casefold() in count]

    branches = []
    if measures:
        branches.append(
            rf"(?P<unit>(?-i:{_unit_alternation(measures)}))\.?[ \t]+(?P<name>\S.*)"
        )
    if counted:
        branches.append(
            rf"(?P<count_unit>(?-i:{_unit_alternation(counted)}))\.?[ \t]+"
            rf"(?P<count_name>(?:of|de)\s+\S.*|d['’]\S.*)"
        )
    branches.append(rf"(?P<lead>{_PARTITIVE_LEADS})(?P<phrase>\S+\s+\S.*)")

    pattern = rf"^[ \t]*(?:{'|'.join(branches)})$"
    return re.compile(pattern, re.IGNORECASE)


def get_pattern() -> re.Pattern:
    """Compile the pattern for the configured vocabulary once and cache it."""
    global _pattern
    if _pattern is None:
        _pattern = build_measurement_pattern(get_vocabulary())
    return _pattern


def get_quantityless_pattern() -> re.Pattern:
    global _quantityless_pattern
    if _quantityless_pattern is None:
        _quantityless_pattern = build_quantityless_pattern(get_vocabulary())
    return _quantityless_pattern


def reset_pattern() -> None:
    """Reset the compiled pattern cache (useful for testing)."""
    global _pattern, _quantityless_pattern
    _pattern = None
    _quantityless_pattern = None


def split_at_embedded_quantity(text: str) -> Tuple[str, Optional[int]]:
    """
    Truncate a captured name before an embedded quantity.

    Returns the kept text and the offset of the embedded quantity within
    ``text`` (None when there is none). A trailing comma or connector
    word ("and", "with", "et", ...) before the quantity is dropped.

    "flour, 1 cup sugar" -> ("flour", 7)
    """
    m = _EMBEDDED_QUANTITY.search(text)
    if m is None or m.start() == 0:
        return text, None

    kept = text[: m.start()].rstrip().rstrip(",;").rstrip()
    words = kept.split()
    if words and words[-1].casefold() in _CONNECTORS:
        kept = kept[: kept.rfind(words[-1])].rstrip().rstrip(",;").rstrip()
    return kept, m.start()


def match_line(line: str, pattern: Optional[re.Pattern] = None) -> List[LineMatch]:
    """
    Extract every (quantity, unit, name) triple from one line.

    A bare number with neither unit nor following text (a page number,
    an oven temperature on its own line) is not a match.
    """
    pattern = pattern or get_pattern()
    matches: List[LineMatch] = []
    pos = 0

    while pos < len(line):
        m = pattern.search(line, pos)
        if m is None:
            break

        quantity = m.group("quantity")
        unit = m.group("unit")
        name_start = m.start("name")
        name, offset = split_at_embedded_quantity(m.group("name"))
        name = name.rstrip()

        if offset is None:
            next_pos = len(line)
        else:
            next_pos = name_start + offset

        if unit is None and not name:
            logger.debug("Skipping bare number '%s' on line '%s'", quantity, line)
        else:
            matches.append(
                LineMatch(
                    quantity=" ".join(quantity.split()),
                    unit=" ".join(unit.split()).lower() if unit else None,
                    name=name,
                    start=m.start(),
                    end=name_start + len(name) if name else m.end("unit"),
                )
            )

        if next_pos <= m.start():
            break
        pos = next_pos

    return matches


def match_quantityless_line(line: str, pattern: Optional[re.Pattern] = None) -> Optional[LineMatch]:
    """
    Match an ingredient line whose quantity is missing.

    Returns a LineMatch with an empty quantity, or None. The partitive
    lead is kept in the name; name cleaning removes it.
    """
    pattern = pattern or get_quantityless_pattern()
    m = pattern.match(line)
    if m is None:
        return None

    groups = m.groupdict()
    if groups.get("unit") is not None:
        unit_group, name_group = "unit", "name"
    elif groups.get("count_unit") is not None:
        unit_group, name_group = "count_unit", "count_name"
    else:
        unit_group, name_group = None, "phrase"

    unit = " ".join(m.group(unit_group).split()).lower() if unit_group else None
    name = m.group(name_group).rstrip()
    start = m.start(unit_group) if unit_group else m.start("lead")
    return LineMatch(
        quantity="",
        unit=unit,
        name=name if unit else m.group("lead") + name,
        start=start,
        end=m.start(name_group) + len(name),
    )


def is_measurement_line(line: str, pattern: Optional[re.Pattern] = None) -> bool:
    """True when the line itself begins with a quantity pattern."""
    stripped = line.strip()
    if not stripped:
        return False
    matches = match_line(stripped, pattern)
    return bool(matches) and matches[0].start == 0


def has_measurements(text: str, pattern: Optional[re.Pattern] = None) -> bool:
    """True when any line of the text holds a quantity with a unit or a name."""
    return any(match_line(line, pattern) for line in text.splitlines())


def extract_measurement_lines(text: str, pattern: Optional[re.Pattern] = None) -> List[Tuple[int, str]]:
    """(0-based index, line) for every line holding a measurement."""
    return [
        (i, line)
        for i, line in enumerate(text.splitlines())
        if match_line(line, pattern)
    ]


def get_unique_units(text: str, pattern: Optional[re.Pattern] = None) -> Set[str]:
    """Distinct "quantity unit" (or bare quantity) strings found in the text."""
    found: Set[str] = set()
    for line in text.splitlines():
        for match in match_line(line, pattern):
            if match.unit:
                found.add(f"{match.quantity} {match.unit}".lower())
            else:
                found.add(match.quantity.lower())
    return found
