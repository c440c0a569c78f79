"""
Ingredient extraction and quantity recovery for recipe photographs.

Turns noisy recognized recipe text into structured ingredient records
(quantity, unit, name), flags missing or implausible quantities, and
recovers them by re-recognizing the quantity region of the source image
under a constrained character set. Quantities that cannot be recovered
are marked for user confirmation.

Public API:
    process_image           - Extract and recover records from one image
    process_batch           - Process multiple images
    process_text            - Extract records from text alone
    recover_flagged_records - Targeted recovery for flagged records
    confirm_quantity        - Apply a user-confirmed quantity
    extract_ingredients     - Pattern extraction with anomaly flagging
    IngredientRecord        - Extracted record model
    ExtractionResult        - Per-image result model
"""

from IngredientOCR.extractor import extract_ingredients
from IngredientOCR.pipeline import (
    confirm_quantity,
    process_batch,
    process_image,
    process_text,
    recover_flagged_records,
)
from IngredientOCR.schemas import (
    BoundingBox,
    ExtractionResult,
    IngredientRecord,
    RecoveryState,
    SpatialLine,
)

__all__ = [
    "process_image",
    "process_batch",
    "process_text",
    "recover_flagged_records",
    "confirm_quantity",
    "extract_ingredients",
    "IngredientRecord",
    "ExtractionResult",
    "BoundingBox",
    "SpatialLine",
    "RecoveryState",
]
