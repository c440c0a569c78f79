"""
config.py

Configuration module for ingredient extraction and quantity recovery.

Purpose:
--------
Contains all tunable constants used across the package: the unit
vocabulary location, extraction limits, anomaly bounds, the targeted
recovery geometry, Tesseract settings, and security limits.

Design Principle:
-----------------
Configuration is isolated from business logic.
Changing thresholds or crop geometry should not require editing
extraction or recovery code. Every value can be overridden from the
environment (or a .env file).
"""

import os

from dotenv import load_dotenv

load_dotenv()

# -----------------------------
# Paths
# -----------------------------
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
MEASUREMENT_UNITS_PATH: str = os.getenv(
    "MEASUREMENT_UNITS_CONFIG_PATH",
    os.path.join(BASE_DIR, "data", "measurement_units.json"),
)

# -----------------------------
# Extraction
# -----------------------------
MAX_COMBINE_LINES: int = int(os.getenv("MAX_COMBINE_LINES", "10"))
MAX_INGREDIENT_LENGTH: int = int(os.getenv("MAX_INGREDIENT_LENGTH", "100"))
MAX_NAME_DIGITS = 2  # More digits than this in a name means an over-match
ENABLE_NAME_POSTPROCESSING = True

# -----------------------------
# Anomaly detection
# -----------------------------
# Sentinel written into the quantity of a record awaiting confirmation
QUANTITY_SENTINEL = ""
SENTINEL_VALUES = ("", "0", "?")

# Fallback upper bound for a unit whose category declares no bound
DEFAULT_MAX_QUANTITY: float = float(os.getenv("DEFAULT_MAX_QUANTITY", "10000"))
# Upper bound for quantity-only ingredients ("6 eggs")
UNITLESS_MAX_QUANTITY: float = float(os.getenv("UNITLESS_MAX_QUANTITY", "100"))

# -----------------------------
# Spatial mapping
# -----------------------------
# Share of the record's words that must appear in the mapped line
MAPPING_TOKEN_OVERLAP = 0.5

# -----------------------------
# Targeted recovery
# -----------------------------
CROP_WIDTH_RATIO: float = float(os.getenv("CROP_WIDTH_RATIO", "0.20"))
MIN_CROP_WIDTH_RATIO = 0.15
MAX_CROP_WIDTH_RATIO = 0.25
CROP_PADDING_PX: int = int(os.getenv("CROP_PADDING_PX", "7"))
UPSCALE_FACTOR: float = float(os.getenv("UPSCALE_FACTOR", "2.5"))

CONSTRAINED_PSM = 7  # Tesseract: treat the image as a single text line
QUANTITY_WHITELIST = "0123456789½⅓⅔¼¾⅕⅖⅗⅘⅙⅚⅛⅜⅝⅞/. "
MAX_RECOVERED_LENGTH = 10

RECOVERY_TIMEOUT_SECONDS: float = float(os.getenv("RECOVERY_TIMEOUT_SECONDS", "5"))
RECOVERY_CONCURRENCY: int = int(os.getenv("RECOVERY_CONCURRENCY", "2"))

# -----------------------------
# Engine
# -----------------------------
OCR_LANGUAGES: str = os.getenv("OCR_LANGUAGES", "eng+fra")
FULL_PAGE_PSM = 6  # Uniform block of text
FULL_PAGE_TIMEOUT_SECONDS: float = float(os.getenv("FULL_PAGE_TIMEOUT_SECONDS", "30"))
ENABLE_CONTRAST_ENHANCEMENT = True

# -----------------------------
# Security
# -----------------------------
MAX_FILE_SIZE_MB = 10
ALLOWED_EXTENSIONS = [".png", ".jpg", ".jpeg", ".tiff", ".tif", ".bmp", ".webp"]

# -----------------------------
# Performance
# -----------------------------
BATCH_WORKERS = 4

# -----------------------------
# Logging
# -----------------------------
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


def validate_recovery_settings() -> None:
    """
    Check the targeted-recovery tunables.

    Raises:
        ConfigurationError: If any value would make the recovery
            pipeline produce an empty crop or never finish.
    """
    from IngredientOCR.utils import ConfigurationError

    if not MIN_CROP_WIDTH_RATIO <= CROP_WIDTH_RATIO <= MAX_CROP_WIDTH_RATIO:
        raise ConfigurationError(
            f"CROP_WIDTH_RATIO must be within "
            f"[{MIN_CROP_WIDTH_RATIO}, {MAX_CROP_WIDTH_RATIO}], got {CROP_WIDTH_RATIO}"
        )
    if CROP_PADDING_PX < 0:
        raise ConfigurationError(f"CROP_PADDING_PX must be >= 0, got {CROP_PADDING_PX}")
    if UPSCALE_FACTOR < 1.0:
        raise ConfigurationError(f"UPSCALE_FACTOR must be >= 1.0, got {UPSCALE_FACTOR}")
    if RECOVERY_TIMEOUT_SECONDS <= 0:
        raise ConfigurationError(
            f"RECOVERY_TIMEOUT_SECONDS must be > 0, got {RECOVERY_TIMEOUT_SECONDS}"
        )
    if RECOVERY_CONCURRENCY < 1:
        raise ConfigurationError(
            f"RECOVERY_CONCURRENCY must be >= 1, got {RECOVERY_CONCURRENCY}"
        )
    if MAX_COMBINE_LINES < 1:
        raise ConfigurationError(f"MAX_COMBINE_LINES must be >= 1, got {MAX_COMBINE_LINES}")
    if MAX_INGREDIENT_LENGTH < 1:
        raise ConfigurationError(
            f"MAX_INGREDIENT_LENGTH must be >= 1, got {MAX_INGREDIENT_LENGTH}"
        )
