"""
utils.py

Exceptions, image-file validation, and image loading for the package.

Handles:
- The error taxonomy shared by extraction and recovery
- Image path sanitization against path traversal
- File extension and size enforcement
- Returns PIL Images in RGB mode for recognition and cropping
"""

import logging
from pathlib import Path
from typing import Union

from PIL import Image

from IngredientOCR import config

logger = logging.getLogger(__name__)


class IngredientOCRError(Exception):
    """Base class for all errors raised by this package."""

    pass


class ConfigurationError(IngredientOCRError):
    """Raised at load/setup time for a bad vocabulary or bad tunables."""

    pass


class SpatialParseError(IngredientOCRError):
    """Raised when spatial-text markup cannot be read at all."""

    pass


class LineMappingError(IngredientOCRError):
    """Raised when a record's line number has no spatial line."""

    pass


class RegionCropError(IngredientOCRError):
    """Raised when a bounding box yields no pixels inside the image."""

    pass


class RecognitionError(IngredientOCRError):
    """
    Raised when the recognition engine fails.

    ``transient`` tells the caller whether its own retry policy applies.
    This package never retries.
    """

    def __init__(self, message: str, transient: bool = False):
        super().__init__(message)
        self.transient = transient


class RecognitionTimeoutError(RecognitionError):
    """Raised when a recognition pass exceeds its time budget."""

    def __init__(self, message: str):
        super().__init__(message, transient=False)


class ImageFileError(IngredientOCRError):
    """Raised when image file validation fails."""

    pass


class ImageSecurityError(IngredientOCRError):
    """Raised when a security check fails (e.g., path traversal)."""

    pass


def sanitize_path(file_path: Union[str, Path]) -> Path:
    """
    Validate and sanitize an image path.

    Rejects paths containing '..', symlinks, and anything that is not
    a regular file.

    Raises:
        ImageSecurityError: If path traversal or a symlink is detected.
        ImageFileError: If the file does not exist or is not a regular file.
    """
    raw = str(file_path)
    if ".." in Path(raw).parts:
        raise ImageSecurityError(f"Path traversal detected in: {raw}")

    path = Path(file_path)
    if path.is_symlink():
        raise ImageSecurityError(f"Symlinks are not allowed: {path}")

    path = path.resolve()
    if not path.exists():
        raise ImageFileError(f"File not found: {path}")

    if not path.is_file():
        raise ImageFileError(f"Not a regular file: {path}")

    return path


def validate_file(file_path: Path) -> None:
    """
    Validate file extension and size.

    Raises:
        ImageFileError: If validation fails.
    """
    ext = file_path.suffix.lower()
    if ext not in config.ALLOWED_EXTENSIONS:
        raise ImageFileError(
            f"Unsupported file extension '{ext}'. "
            f"Allowed: {config.ALLOWED_EXTENSIONS}"
        )

    size = file_path.stat().st_size
    if size == 0:
        raise ImageFileError(f"File is empty: {file_path}")

    size_mb = size / (1024 * 1024)
    if size_mb > config.MAX_FILE_SIZE_MB:
        raise ImageFileError(
            f"File too large: {size_mb:.1f}MB exceeds "
            f"limit of {config.MAX_FILE_SIZE_MB}MB"
        )


def load_image(file_path: Union[str, Path]) -> Image.Image:
    """
    Load a recipe photograph as an RGB PIL Image.

    Raises:
        ImageFileError: If loading or decoding fails.
        ImageSecurityError: If path validation fails.
    """
    path = sanitize_path(file_path)
    validate_file(path)

    logger.info("Loading image: %s", path.name)

    try:
        with Image.open(path) as img:
            img_rgb = img.convert("RGB")
    except OSError as e:
        raise ImageFileError(f"Failed to load image from {path.name}: {e}") from e

    logger.info("Loaded image: %dx%d", img_rgb.width, img_rgb.height)
    return img_rgb
