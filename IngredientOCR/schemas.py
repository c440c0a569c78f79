"""
schemas.py

Pydantic models for ingredient extraction and quantity recovery.

Records are created per processed image, carried through anomaly
detection and recovery, and handed to the review layer. Nothing here
is persisted by this package.
"""

from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, model_validator

from IngredientOCR import config


class QuantityStatus(str, Enum):
    """Classification of a record's quantity field."""

    VALID = "valid"
    MISSING = "missing"
    SUSPECT = "suspect"


class RecoveryState(str, Enum):
    """Lifecycle of a record through anomaly detection and recovery."""

    EXTRACTED = "extracted"
    FLAGGED = "flagged"
    RECOVERING = "recovering"
    RECOVERED = "recovered"
    REQUIRES_CONFIRMATION = "requires_confirmation"
    CONFIRMED = "confirmed"


class BoundingBox(BaseModel):
    """Axis-aligned rectangle in source-image pixel coordinates."""

    x0: int = Field(..., ge=0, description="Left edge")
    y0: int = Field(..., ge=0, description="Top edge")
    x1: int = Field(..., description="Right edge (exclusive)")
    y1: int = Field(..., description="Bottom edge (exclusive)")

    @model_validator(mode="after")
    def _check_extent(self) -> "BoundingBox":
        if self.x1 <= self.x0:
            raise ValueError(f"x1 ({self.x1}) must be greater than x0 ({self.x0})")
        if self.y1 <= self.y0:
            raise ValueError(f"y1 ({self.y1}) must be greater than y0 ({self.y0})")
        return self

    @property
    def width(self) -> int:
        return self.x1 - self.x0

    @property
    def height(self) -> int:
        return self.y1 - self.y0

    @property
    def area(self) -> int:
        return self.width * self.height

    def as_tuple(self) -> Tuple[int, int, int, int]:
        """Return (x0, y0, x1, y1), the box format PIL's crop expects."""
        return (self.x0, self.y0, self.x1, self.y1)


class SpatialLine(BaseModel):
    """A recognized text line paired with its bounding box."""

    text: str = Field(..., description="Recognized line text")
    bbox: BoundingBox = Field(..., description="Line bounding box")
    confidence: Optional[float] = Field(
        default=None, ge=0.0, le=1.0, description="Mean word confidence, when reported"
    )


class IngredientRecord(BaseModel):
    """One extracted ingredient candidate."""

    quantity: str = Field(
        default="", description="Quantity text; empty means unknown"
    )
    unit: Optional[str] = Field(
        default=None, description="Measurement unit, absent for quantity-only ingredients"
    )
    ingredient_name: str = Field(..., description="Ingredient name, possibly multi-line")
    line_number: int = Field(..., ge=1, description="1-based originating line")
    span: Tuple[int, int] = Field(
        default=(0, 0), description="Character offsets within the originating line"
    )
    requires_confirmation: bool = Field(
        default=False, description="Quantity must be confirmed by the user"
    )
    confidence: Optional[float] = Field(
        default=None, ge=0.0, le=1.0, description="Recognition confidence, when available"
    )
    raw_quantity: str = Field(
        default="", description="Quantity text exactly as extracted"
    )
    normalized_quantity: Optional[float] = Field(
        default=None, description="Numeric value of the quantity, when it parses"
    )
    suggested_quantity: Optional[str] = Field(
        default=None, description="OCR-corrected guess offered to the user"
    )
    status: QuantityStatus = Field(default=QuantityStatus.VALID)
    state: RecoveryState = Field(default=RecoveryState.EXTRACTED)

    @model_validator(mode="after")
    def _check_invariants(self) -> "IngredientRecord":
        if not self.ingredient_name.strip():
            raise ValueError("ingredient_name must not be empty")
        start, end = self.span
        if start < 0 or end < start:
            raise ValueError(f"invalid span {self.span}")
        if self.requires_confirmation and self.quantity not in config.SENTINEL_VALUES:
            raise ValueError(
                "a record requiring confirmation must carry a sentinel quantity, "
                f"got '{self.quantity}'"
            )
        return self


class MappingResult(BaseModel):
    """Outcome of correlating a record with a spatial line."""

    line_index: int = Field(..., ge=0, description="0-based index into the spatial lines")
    line: SpatialLine
    token_overlap: float = Field(
        ..., ge=0.0, le=1.0, description="Share of record words found in the line"
    )
    low_confidence: bool = Field(
        default=False, description="Line text does not resemble the record"
    )

    @property
    def bbox(self) -> BoundingBox:
        return self.line.bbox


class RecoveryResult(BaseModel):
    """Output of one constrained recognition pass on a cropped region."""

    recovered_text: str = Field(default="", description="Text returned by the constrained pass")
    recovered_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    processing_time: float = Field(default=0.0, ge=0.0, description="Seconds")


class ExtractionResult(BaseModel):
    """Records extracted from one image, with recovery statistics."""

    file_path: Optional[str] = Field(default=None, description="Source image path")
    records: List[IngredientRecord] = Field(default_factory=list)
    raw_text: str = Field(default="", description="Full-page recognized text")
    confidence: float = Field(default=0.0, ge=0.0, le=1.0, description="Full-page confidence")
    flagged_count: int = Field(default=0, ge=0)
    recovered_count: int = Field(default=0, ge=0)
    confirmation_count: int = Field(default=0, ge=0)
    recovery_time: float = Field(default=0.0, ge=0.0, description="Seconds spent recovering")
    warnings: List[str] = Field(default_factory=list)
