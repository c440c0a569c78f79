"""
Tests for the unit vocabulary loader and validator.
"""

import json

import pytest

from IngredientOCR import config
from IngredientOCR.units import (
    UnitVocabulary,
    get_vocabulary,
    load_unit_vocabulary,
    reset_vocabulary,
)
from IngredientOCR.utils import ConfigurationError


@pytest.fixture(autouse=True)
def _reset_vocabulary():
    reset_vocabulary()
    yield
    reset_vocabulary()


def _write_vocabulary(tmp_path, data):
    path = tmp_path / "units.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


class TestDefaultVocabulary:
    def test_loads(self):
        vocab = load_unit_vocabulary()
        assert "volume" in vocab.measurement_units
        assert "french_weight" in vocab.measurement_units

    def test_longest_units_first(self):
        units = load_unit_vocabulary().all_units()
        assert units.index("cups") < units.index("cup")
        assert units.index("tablespoons") < units.index("tbsp")
        lengths = [len(u) for u in units]
        assert lengths == sorted(lengths, reverse=True)

    def test_category_lookup_is_case_insensitive(self):
        vocab = load_unit_vocabulary()
        assert vocab.category_of("CUPS") == "volume"
        assert vocab.category_of("g") == "weight"
        assert vocab.category_of("c. à  soupe") == "french_volume"
        assert vocab.category_of("handfulz") is None
        assert vocab.category_of(None) is None

    def test_bounds(self):
        vocab = load_unit_vocabulary()
        assert vocab.max_quantity_for("cups") == 50
        assert vocab.max_quantity_for("g") == 10000
        assert vocab.max_quantity_for(None) == config.UNITLESS_MAX_QUANTITY
        assert vocab.max_quantity_for("furlong") == config.DEFAULT_MAX_QUANTITY

    def test_count_units(self):
        count = load_unit_vocabulary().count_units()
        assert {"can", "slice", "pinch", "tranche"} <= count
        assert "cup" not in count
        assert "g" not in count

    def test_cached(self):
        assert get_vocabulary() is get_vocabulary()


class TestVocabularyValidation:
    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_unit_vocabulary(str(tmp_path / "missing.json"))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "units.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            load_unit_vocabulary(str(path))

    @pytest.mark.parametrize(
        "units",
        [
            {},
            {"volume": []},
            {"volume": [""]},
            {"volume": [" cup"]},
            {"volume": ["2cups"]},
            {"volume": ["cup\t"]},
            {"volume": ["c\x00up"]},
        ],
    )
    def test_malformed_units_rejected(self, tmp_path, units):
        path = _write_vocabulary(tmp_path, {"measurement_units": units})
        with pytest.raises(ConfigurationError):
            load_unit_vocabulary(path)

    def test_bound_for_unknown_category_rejected(self, tmp_path):
        path = _write_vocabulary(
            tmp_path,
            {"measurement_units": {"volume": ["cup"]}, "quantity_bounds": {"weight": 10}},
        )
        with pytest.raises(ConfigurationError):
            load_unit_vocabulary(path)

    def test_non_positive_bound_rejected(self, tmp_path):
        path = _write_vocabulary(
            tmp_path,
            {"measurement_units": {"volume": ["cup"]}, "quantity_bounds": {"volume": 0}},
        )
        with pytest.raises(ConfigurationError):
            load_unit_vocabulary(path)

    def test_custom_file(self, tmp_path):
        path = _write_vocabulary(
            tmp_path,
            {"measurement_units": {"count": ["knob"]}, "quantity_bounds": {"count": 5}},
        )
        vocab = load_unit_vocabulary(path)
        assert vocab.all_units() == ["knob"]
        assert vocab.max_quantity_for("knob") == 5

    def test_configured_path(self, tmp_path, monkeypatch):
        path = _write_vocabulary(tmp_path, {"measurement_units": {"count": ["knob"]}})
        monkeypatch.setattr(config, "MEASUREMENT_UNITS_PATH", path)
        assert get_vocabulary().all_units() == ["knob"]

    def test_duplicates_across_categories_collapse(self):
        vocab = UnitVocabulary(measurement_units={"a": ["cup"], "b": ["Cup", "cups"]})
        assert vocab.all_units() == ["cups", "cup"]
        assert vocab.category_of("cup") == "a"
