"""
preprocessor.py

Image preparation for recognition.

Two concerns live here:

Page preparation runs before the full-page pass. It only enhances
contrast (CLAHE), which keeps the page size unchanged so the bounding
boxes of the spatial pass stay valid for cropping the original image.

Region preparation runs on the crop taken for a flagged record:
1. Crop the left part of the line's bounding box, where the quantity
   sits, with a small padding, clamped to the image
2. Upscale with Lanczos interpolation
3. Convert to a single intensity channel
4. Binarize with Otsu's threshold, computed per crop since lighting
   varies from photo to photo

The pipeline works with PIL Images throughout, converting to OpenCV
format only for specific operations.
"""

import logging
from typing import Optional, Tuple

import cv2
import numpy as np
from PIL import Image

from IngredientOCR import config
from IngredientOCR.schemas import BoundingBox
from IngredientOCR.utils import ConfigurationError, RegionCropError

logger = logging.getLogger(__name__)


def compute_crop_region(
    bbox: BoundingBox,
    image_size: Tuple[int, int],
    width_ratio: Optional[float] = None,
    padding: Optional[int] = None,
) -> BoundingBox:
    """
    Compute the quantity sub-rectangle of a line's bounding box.

    Covers the left ``width_ratio`` of the box width, grown by ``padding``
    pixels on every side, clamped to the image.

    Args:
        bbox: Line bounding box in image coordinates.
        image_size: (width, height) of the image.
        width_ratio: Override config.CROP_WIDTH_RATIO.
        padding: Override config.CROP_PADDING_PX.

    Raises:
        ConfigurationError: If the ratio is outside the allowed range or
            the padding is negative.
        RegionCropError: If the clamped region has no pixels.
    """
    if width_ratio is None:
        width_ratio = config.CROP_WIDTH_RATIO
    if padding is None:
        padding = config.CROP_PADDING_PX

    if not config.MIN_CROP_WIDTH_RATIO <= width_ratio <= config.MAX_CROP_WIDTH_RATIO:
        raise ConfigurationError(
            f"Crop width ratio {width_ratio} outside "
            f"[{config.MIN_CROP_WIDTH_RATIO}, {config.MAX_CROP_WIDTH_RATIO}]"
        )
    if padding < 0:
        raise ConfigurationError(f"Crop padding must be >= 0, got {padding}")

    img_w, img_h = image_size
    crop_w = max(1, int(round(bbox.width * width_ratio)))

    x0 = max(0, bbox.x0 - padding)
    y0 = max(0, bbox.y0 - padding)
    x1 = min(img_w, bbox.x0 + crop_w + padding)
    y1 = min(img_h, bbox.y1 + padding)

    if x1 <= x0 or y1 <= y0:
        raise RegionCropError(
            f"Crop region ({x0}, {y0}, {x1}, {y1}) is empty for image {img_w}x{img_h}"
        )

    return BoundingBox(x0=x0, y0=y0, x1=x1, y1=y1)


def crop_quantity_region(image: Image.Image, bbox: BoundingBox) -> Image.Image:
    """Crop the quantity part of a line out of the page image."""
    region = compute_crop_region(bbox, image.size)
    logger.debug("Cropping quantity region %s", region.as_tuple())
    return image.crop(region.as_tuple())


def otsu_threshold(gray: np.ndarray) -> np.ndarray:
    """
    Binarize a single-channel uint8 array with Otsu's method.

    Returns an array of 0 and 255 values with the same shape.
    """
    if gray.ndim != 2:
        raise ValueError(f"Expected a single-channel image, got shape {gray.shape}")
    threshold, binary = cv2.threshold(
        gray.astype(np.uint8), 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU
    )
    logger.debug("Otsu threshold: %.1f", threshold)
    return binary


def preprocess_quantity_region(
    image: Image.Image, upscale_factor: Optional[float] = None
) -> Image.Image:
    """
    Prepare a cropped quantity region for the constrained pass.

    Returns:
        Binary PIL Image in "L" mode, upscaled by ``upscale_factor``.
    """
    if upscale_factor is None:
        upscale_factor = config.UPSCALE_FACTOR

    w, h = image.size
    if w == 0 or h == 0:
        raise RegionCropError(f"Cannot preprocess an empty region ({w}x{h})")

    new_w = max(1, int(round(w * upscale_factor)))
    new_h = max(1, int(round(h * upscale_factor)))
    upscaled = image.resize((new_w, new_h), Image.LANCZOS)

    gray = np.array(upscaled.convert("L"))
    binary = otsu_threshold(gray)

    return Image.fromarray(binary)


def enhance_contrast(image: Image.Image) -> Image.Image:
    """
    Apply CLAHE (Contrast Limited Adaptive Histogram Equalization)
    to improve contrast on dim or unevenly lit photos.

    Works on the L channel in LAB color space to preserve color information.
    """
    arr = np.array(image.convert("RGB"))

    lab = cv2.cvtColor(arr, cv2.COLOR_RGB2LAB)

    clahe = cv2.createCLAHE(clipLimit=2.0, tileGridSize=(8, 8))
    lab[:, :, 0] = clahe.apply(lab[:, :, 0])

    enhanced = cv2.cvtColor(lab, cv2.COLOR_LAB2RGB)

    return Image.fromarray(enhanced)


def prepare_page(
    image: Image.Image, enable_contrast_enhancement: Optional[bool] = None
) -> Image.Image:
    """
    Prepare a page for the full recognition pass without moving pixels.

    Args:
        image: Input PIL Image in RGB mode.
        enable_contrast_enhancement: Override config.ENABLE_CONTRAST_ENHANCEMENT.
    """
    if enable_contrast_enhancement is None:
        enable_contrast_enhancement = config.ENABLE_CONTRAST_ENHANCEMENT

    result = image.copy()
    if enable_contrast_enhancement:
        result = enhance_contrast(result)
        logger.debug("Contrast enhancement done")

    return result
