"""
units.py

Unit vocabulary: the declarative configuration surface of the
measurement pattern.

The vocabulary is a JSON document keyed by category (volume, weight,
count, and language-specific variants) with optional per-category
upper bounds used by the anomaly detector:

    {
      "measurement_units": {"volume": ["cups", "cup"], "weight": ["g"]},
      "quantity_bounds": {"volume": 50, "weight": 10000}
    }

It is loaded and validated once. Malformed entries raise
ConfigurationError at load time, never during per-line matching.
"""

import json
import logging
import os
from typing import Dict, List, Optional, Set

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from IngredientOCR import config
from IngredientOCR.utils import ConfigurationError

logger = logging.getLogger(__name__)

# Vocabulary cache
_vocabulary: Optional["UnitVocabulary"] = None


class UnitVocabulary(BaseModel):
    """Measurement units grouped by category, with quantity bounds."""

    measurement_units: Dict[str, List[str]] = Field(
        ..., description="Unit spellings keyed by category"
    )
    quantity_bounds: Dict[str, float] = Field(
        default_factory=dict, description="Largest plausible quantity per category"
    )

    @field_validator("measurement_units")
    @classmethod
    def _check_units(cls, value: Dict[str, List[str]]) -> Dict[str, List[str]]:
        if not value:
            raise ValueError("measurement_units cannot be empty")
        for category, units in value.items():
            if not category.strip():
                raise ValueError("category names cannot be empty")
            if not units:
                raise ValueError(f"{category} cannot be empty")
            for i, unit in enumerate(units):
                if not isinstance(unit, str) or not unit.strip():
                    raise ValueError(f"{category}[{i}] cannot be empty")
                if unit != unit.strip():
                    raise ValueError(f"{category}[{i}] '{unit}' has surrounding whitespace")
                if any(not ch.isprintable() for ch in unit):
                    raise ValueError(f"{category}[{i}] '{unit}' contains control characters")
                if any(ch.isdigit() for ch in unit):
                    raise ValueError(f"{category}[{i}] '{unit}' contains digits")
        return value

    @model_validator(mode="after")
    def _check_bounds(self) -> "UnitVocabulary":
        for category, bound in self.quantity_bounds.items():
            if category not in self.measurement_units:
                raise ValueError(f"quantity_bounds names unknown category '{category}'")
            if bound <= 0:
                raise ValueError(f"quantity_bounds[{category}] must be positive, got {bound}")
        return self

    def all_units(self) -> List[str]:
        """
        Every distinct unit, longest first.

        Longest-first ordering keeps the regex alternation from matching
        "cup" inside "cups". Ties are broken alphabetically so the compiled
        pattern is stable across runs.
        """
        seen: Dict[str, str] = {}
        for units in self.measurement_units.values():
            for unit in units:
                seen.setdefault(unit.casefold(), unit)
        return sorted(seen.values(), key=lambda u: (-len(u), u))

    def count_units(self) -> Set[str]:
        """
        Casefolded units of the count categories ("count", "french_count").

        Count units name items (a can, a slice) rather than measures, and
        many of them double as verbs in recipe prose.
        """
        return {
            unit.casefold()
            for category, units in self.measurement_units.items()
            if category == "count" or category.endswith("_count")
            for unit in units
        }

    def category_of(self, unit: Optional[str]) -> Optional[str]:
        """Category of a unit, matched case-insensitively; first category wins."""
        if not unit:
            return None
        wanted = " ".join(unit.split()).casefold()
        for category, units in self.measurement_units.items():
            for candidate in units:
                if candidate.casefold() == wanted:
                    return category
        return None

    def max_quantity_for(self, unit: Optional[str]) -> float:
        """Upper plausibility bound for a quantity expressed in ``unit``."""
        if not unit:
            return config.UNITLESS_MAX_QUANTITY
        category = self.category_of(unit)
        if category is None:
            return config.DEFAULT_MAX_QUANTITY
        return self.quantity_bounds.get(category, config.DEFAULT_MAX_QUANTITY)


def load_unit_vocabulary(path: Optional[str] = None) -> UnitVocabulary:
    """
    Read and validate a unit vocabulary file.

    Args:
        path: JSON file to read. Defaults to config.MEASUREMENT_UNITS_PATH.

    Raises:
        ConfigurationError: If the file is missing, is not valid JSON,
            or fails validation.
    """
    path = path or config.MEASUREMENT_UNITS_PATH

    if not os.path.isfile(path):
        raise ConfigurationError(f"Measurement units config not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in measurement units config {path}: {e}") from e

    try:
        vocabulary = UnitVocabulary.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid measurement units config {path}: {e}") from e

    logger.info(
        "Loaded %d units in %d categories from %s",
        len(vocabulary.all_units()),
        len(vocabulary.measurement_units),
        path,
    )
    return vocabulary


def get_vocabulary() -> UnitVocabulary:
    """Load the configured vocabulary once and cache it."""
    global _vocabulary
    if _vocabulary is None:
        _vocabulary = load_unit_vocabulary()
    return _vocabulary


def reset_vocabulary() -> None:
    """Reset the cached vocabulary (useful for testing)."""
    global _vocabulary
    _vocabulary = None
