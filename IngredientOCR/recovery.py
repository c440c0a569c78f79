"""
recovery.py

Region recovery: one constrained re-recognition of a flagged quantity.

crop (left part of the line box) -> upscale + grayscale + Otsu ->
single-line pass restricted to digits, fraction glyphs, '/', '.' and
space.

The recognition call is the only blocking step. It runs on an executor
owned by the caller under a time budget. A timed-out call is abandoned,
not interrupted: its worker stays busy until the engine returns, so the
caller shuts the executor down without waiting for it.
"""

import asyncio
import functools
import logging
import time
from concurrent.futures import Executor
from typing import Optional

from PIL import Image

from IngredientOCR import config
from IngredientOCR.engine import RecognitionMode, Recognizer
from IngredientOCR.preprocessor import crop_quantity_region, preprocess_quantity_region
from IngredientOCR.schemas import BoundingBox, RecoveryResult
from IngredientOCR.utils import RecognitionTimeoutError

logger = logging.getLogger(__name__)


async def run_recognition(executor: Optional[Executor], timeout: float, func, *args):
    """
    Run a blocking recognition call on ``executor`` within ``timeout`` seconds.

    Raises:
        asyncio.TimeoutError: If the call does not finish in time.
    """
    loop = asyncio.get_running_loop()
    return await asyncio.wait_for(
        loop.run_in_executor(executor, functools.partial(func, *args)),
        timeout=timeout,
    )


async def recover_quantity(
    image: Image.Image,
    bbox: BoundingBox,
    recognizer: Recognizer,
    timeout: Optional[float] = None,
    executor: Optional[Executor] = None,
) -> RecoveryResult:
    """
    Re-recognize the quantity at the start of a line.

    Args:
        image: Source page image, in the coordinates of ``bbox``.
        bbox: Bounding box of the record's line.
        recognizer: Engine providing recognize_constrained.
        timeout: Seconds allowed for the recognition call. Defaults to
            config.RECOVERY_TIMEOUT_SECONDS.
        executor: Executor running the recognition call. Defaults to the
            event loop's default executor.

    Returns:
        RecoveryResult with the raw recognized text. Deciding whether the
        text is a usable quantity is left to the caller.

    Raises:
        RegionCropError: If the crop is empty.
        ConfigurationError: If the crop settings are invalid.
        RecognitionError: If the engine fails.
        RecognitionTimeoutError: If the engine exceeds ``timeout``.
    """
    if timeout is None:
        timeout = config.RECOVERY_TIMEOUT_SECONDS

    start = time.perf_counter()

    region = crop_quantity_region(image, bbox)
    processed = preprocess_quantity_region(region)

    try:
        text, confidence = await run_recognition(
            executor,
            timeout,
            recognizer.recognize_constrained,
            processed,
            RecognitionMode(config.CONSTRAINED_PSM),
            config.QUANTITY_WHITELIST,
        )
    except asyncio.TimeoutError as e:
        raise RecognitionTimeoutError(
            f"Constrained pass exceeded {timeout:.1f}s"
        ) from e

    elapsed = time.perf_counter() - start
    logger.debug("Recovered '%s' in %.3fs", text, elapsed)

    return RecoveryResult(
        recovered_text=(text or "").strip(),
        recovered_confidence=min(max(float(confidence), 0.0), 1.0),
        processing_time=elapsed,
    )
