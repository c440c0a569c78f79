"""
fraction_normalizer.py

Converts quantity tokens into numbers and canonical display text.

Handles:
- Unicode fraction glyphs (½, ¾, ⅛, ...)
- ASCII fractions ("1/2") and mixed numbers ("1 1/2", "1½", "1 ½")
- Integers and decimals with either a dot or a comma separator

Normalization is best-effort enrichment: a token that cannot be read
yields None (or passes through unchanged for display) rather than an
error. A zero denominator is rejected the same way.
"""

import re
from fractions import Fraction
from typing import Optional, Union

UNICODE_FRACTIONS = {
    "¼": Fraction(1, 4),
    "½": Fraction(1, 2),
    "¾": Fraction(3, 4),
    "⅓": Fraction(1, 3),
    "⅔": Fraction(2, 3),
    "⅕": Fraction(1, 5),
    "⅖": Fraction(2, 5),
    "⅗": Fraction(3, 5),
    "⅘": Fraction(4, 5),
    "⅙": Fraction(1, 6),
    "⅚": Fraction(5, 6),
    "⅛": Fraction(1, 8),
    "⅜": Fraction(3, 8),
    "⅝": Fraction(5, 8),
    "⅞": Fraction(7, 8),
}

FRACTION_GLYPHS = "".join(UNICODE_FRACTIONS)

_GLYPH_CLASS = f"[{FRACTION_GLYPHS}]"
_MIXED_ASCII = re.compile(r"^(\d+)\s+(\d+)\s*/\s*(\d+)$")
_MIXED_GLYPH = re.compile(rf"^(\d+)\s*({_GLYPH_CLASS})$")
_SIMPLE_FRACTION = re.compile(r"^(\d+)\s*/\s*(\d+)$")
_GLYPH_ONLY = re.compile(rf"^({_GLYPH_CLASS})$")
_DECIMAL = re.compile(r"^(\d+(?:[.,]\d+)?|[.,]\d+)$")


def _to_fraction(token: str) -> Optional[Fraction]:
    text = " ".join(token.split())
    if not text:
        return None

    negative = text.startswith("-")
    if negative:
        text = text[1:].lstrip()

    value: Optional[Fraction] = None

    m = _MIXED_ASCII.match(text)
    if m:
        whole, num, den = (int(g) for g in m.groups())
        if den == 0:
            return None
        value = whole + Fraction(num, den)

    if value is None:
        m = _MIXED_GLYPH.match(text)
        if m:
            value = int(m.group(1)) + UNICODE_FRACTIONS[m.group(2)]

    if value is None:
        m = _SIMPLE_FRACTION.match(text)
        if m:
            num, den = int(m.group(1)), int(m.group(2))
            if den == 0:
                return None
            value = Fraction(num, den)

    if value is None:
        m = _GLYPH_ONLY.match(text)
        if m:
            value = UNICODE_FRACTIONS[m.group(1)]

    if value is None:
        m = _DECIMAL.match(text)
        if m:
            value = Fraction(m.group(1).replace(",", "."))

    if value is None:
        return None
    return -value if negative else value


def normalize_fraction(token: str) -> Optional[float]:
    """
    Numeric value of a quantity token.

    Examples:
        "1/2" -> 0.5, "½" -> 0.5, "1 1/2" -> 1.5, "1½" -> 1.5,
        "2,5" -> 2.5, "1/0" -> None, "abc" -> None
    """
    if not isinstance(token, str):
        return None
    value = _to_fraction(token)
    if value is None:
        return None
    return float(value)


def to_display_token(token: str) -> str:
    """
    Canonical ASCII spelling of a fraction token.

    "½" becomes "1/2" and "1½" becomes "1 1/2". Plain numbers, invalid
    fractions, and anything unrecognized pass through unchanged.
    """
    text = " ".join(token.split())

    m = _GLYPH_ONLY.match(text)
    if m:
        frac = UNICODE_FRACTIONS[m.group(1)]
        return f"{frac.numerator}/{frac.denominator}"

    m = _MIXED_GLYPH.match(text)
    if m:
        frac = UNICODE_FRACTIONS[m.group(2)]
        return f"{int(m.group(1))} {frac.numerator}/{frac.denominator}"

    m = _MIXED_ASCII.match(text)
    if m and int(m.group(3)) != 0:
        return f"{int(m.group(1))} {int(m.group(2))}/{int(m.group(3))}"

    m = _SIMPLE_FRACTION.match(text)
    if m and int(m.group(2)) != 0:
        return f"{int(m.group(1))}/{int(m.group(2))}"

    return token


def is_fraction_token(token: str) -> bool:
    """True for any fraction form with a usable denominator."""
    text = " ".join(token.split())
    if _GLYPH_ONLY.match(text) or _MIXED_GLYPH.match(text):
        return True
    m = _SIMPLE_FRACTION.match(text) or _MIXED_ASCII.match(text)
    return bool(m) and int(m.groups()[-1]) != 0


def parse_quantity(value: Union[str, int, float, None]) -> Optional[float]:
    """
    Numeric value of a quantity given as text or as a number.

    Numbers pass through as floats. Text goes through normalize_fraction,
    so "2,5", "1 1/2" and "¾" all parse. Anything else is None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return normalize_fraction(value)
