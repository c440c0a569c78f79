"""
Tests for hOCR parsing and record-to-line mapping.
"""

import pytest

from IngredientOCR.schemas import BoundingBox, IngredientRecord, SpatialLine
from IngredientOCR.spatial import (
    map_to_bbox,
    parse_bbox,
    parse_spatial_text,
    token_overlap,
)
from IngredientOCR.utils import LineMappingError, SpatialParseError

SAMPLE_HOCR = """<?xml version="1.0" encoding="UTF-8"?>
<html xmlns="http://www.w3.org/1999/xhtml">
 <body>
  <div class='ocr_page' id='page_1' title='image "recipe.png"; bbox 0 0 800 600; ppageno 0'>
   <div class='ocr_carea' id='block_1_1' title="bbox 40 50 600 140">
    <p class='ocr_par' id='par_1_1' lang='fra' title="bbox 40 50 600 140">
     <span class='ocr_line' id='line_1_1' title="bbox 40 50 420 80; baseline 0 -7; x_size 30">
      <span class='ocrx_word' id='word_1_1' title='bbox 40 50 60 80; x_wconf 91'>6</span>
      <span class='ocrx_word' id='word_1_2' title='bbox 70 50 200 80; x_wconf 89'>pommes</span>
      <span class='ocrx_word' id='word_1_3' title='bbox 210 50 250 80; x_wconf 90'>de</span>
      <span class='ocrx_word' id='word_1_4' title='bbox 260 50 420 80; x_wconf 90'>terre</span>
     </span>
     <span title="baseline 0 -6; bbox 40 100 560 130" class='ocr_line' id='line_1_2'>
      <span class='ocrx_word' id='word_1_5' title='bbox 40 100 200 130; x_wconf 40'>de</span>
      <span class='ocrx_word' id='word_1_6' title='bbox 210 100 560 130; x_wconf 60'>chocolat noir</span>
     </span>
    </p>
   </div>
  </div>
 </body>
</html>
"""


def _record(line_number, name="chocolat noir"):
    return IngredientRecord(
        quantity="", ingredient_name=name, line_number=line_number, requires_confirmation=True
    )


def _line(text, x0=0, y0=0, x1=100, y1=20):
    return SpatialLine(text=text, bbox=BoundingBox(x0=x0, y0=y0, x1=x1, y1=y1))


class TestParseBbox:
    def test_reads_bbox(self):
        bbox = parse_bbox("bbox 40 50 420 80; baseline 0 -7")
        assert bbox.as_tuple() == (40, 50, 420, 80)

    def test_property_order_does_not_matter(self):
        bbox = parse_bbox("baseline 0 -7; x_size 30; bbox 40 50 420 80")
        assert bbox.as_tuple() == (40, 50, 420, 80)

    @pytest.mark.parametrize(
        "title", ["", "baseline 0 -7", "bbox 1 2 3", "bbox 50 50 40 80", "bbox a b c d"]
    )
    def test_invalid(self, title):
        assert parse_bbox(title) is None


class TestParseSpatialText:
    def test_lines_in_order(self):
        lines = parse_spatial_text(SAMPLE_HOCR)
        assert [line.text for line in lines] == ["6 pommes de terre", "de chocolat noir"]
        assert lines[0].bbox.as_tuple() == (40, 50, 420, 80)
        assert lines[1].bbox.as_tuple() == (40, 100, 560, 130)

    def test_word_confidence(self):
        lines = parse_spatial_text(SAMPLE_HOCR)
        assert lines[0].confidence == pytest.approx(0.90)
        assert lines[1].confidence == pytest.approx(0.50)

    def test_html_entities_decoded(self):
        markup = (
            "<span class='ocr_line' title='bbox 0 0 100 20'>"
            "sel &amp; poivre d&#39;Espelette</span>"
        )
        lines = parse_spatial_text(markup)
        assert lines[0].text == "sel & poivre d'Espelette"
        assert lines[0].confidence is None

    def test_invalid_bbox_line_skipped(self):
        markup = (
            "<span class='ocr_line' title='bbox 0 0 100 20'>2 cups flour</span>"
            "<span class='ocr_line' title='bbox 50 20 10 40'>broken</span>"
            "<span class='ocr_line' title='baseline 0 0'>no box</span>"
            "<span class='ocr_line' title='bbox 0 40 100 60'>3 eggs</span>"
        )
        lines = parse_spatial_text(markup)
        assert [line.text for line in lines] == ["2 cups flour", "3 eggs"]

    def test_other_line_classes(self):
        markup = "<span class='ocr_header' title='bbox 0 0 100 20'>Ingredients</span>"
        assert parse_spatial_text(markup)[0].text == "Ingredients"

    def test_empty_markup(self):
        assert parse_spatial_text("") == []
        assert parse_spatial_text("<html></html>") == []

    def test_non_string_rejected(self):
        with pytest.raises(SpatialParseError):
            parse_spatial_text(None)


class TestMapToBbox:
    def test_one_based_mapping(self):
        lines = parse_spatial_text(SAMPLE_HOCR)
        result = map_to_bbox(_record(2), lines)
        assert result.line_index == 1
        assert result.bbox.as_tuple() == (40, 100, 560, 130)
        assert result.token_overlap == pytest.approx(1.0)
        assert result.low_confidence is False

    def test_out_of_range(self):
        lines = [_line("2 cups flour"), _line("3 eggs")]
        with pytest.raises(LineMappingError):
            map_to_bbox(_record(3), lines)

    def test_no_lines(self):
        with pytest.raises(LineMappingError):
            map_to_bbox(_record(1), [])

    def test_mismatch_is_low_confidence_not_blocking(self):
        lines = [_line("preheat the oven")]
        result = map_to_bbox(_record(1), lines)
        assert result.line_index == 0
        assert result.low_confidence is True
        assert result.token_overlap == 0.0


class TestTokenOverlap:
    def test_full_overlap(self):
        assert token_overlap("chocolat noir", "2g de Chocolat noir") == 1.0

    def test_partial_overlap(self):
        assert token_overlap("rolled oats", "1 cup old-fashioned rolled") == 0.5

    def test_empty_name(self):
        assert token_overlap("", "2 cups flour") == 0.0
