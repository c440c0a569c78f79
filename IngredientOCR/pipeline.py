"""
pipeline.py

Main orchestrator for ingredient extraction and quantity recovery.

Coordinates the full pipeline:
loading -> page preparation -> full-page pass -> extraction + anomaly
flagging -> spatial pass -> targeted recovery of flagged records.

Record states:

    Extracted -> Flagged -> Recovering -> Recovered
                    |            |
                    +------------+--> RequiresConfirmation

A flagged record whose line cannot be mapped to a bounding box goes
straight to RequiresConfirmation. Each flagged record gets one
constrained pass; nothing is retried. Recognition failures during
recovery never escape: they end in RequiresConfirmation, the only
error state a user ever sees.

Recognition calls run on a thread pool owned by the call that created
it. The pool is shut down without waiting, so an engine call that
outlived its time budget cannot hold up the caller.
"""

import asyncio
import logging
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import List, Optional, Sequence, Union

from PIL import Image

from IngredientOCR import config
from IngredientOCR.anomaly import is_valid_recovered_quantity
from IngredientOCR.engine import Recognizer, get_engine
from IngredientOCR.extractor import correct_fraction_misreads, extract_ingredients
from IngredientOCR.fraction_normalizer import normalize_fraction
from IngredientOCR.preprocessor import prepare_page
from IngredientOCR.recovery import recover_quantity, run_recognition
from IngredientOCR.schemas import (
    ExtractionResult,
    IngredientRecord,
    QuantityStatus,
    RecoveryState,
    SpatialLine,
)
from IngredientOCR.spatial import map_to_bbox, parse_spatial_text
from IngredientOCR.utils import (
    ConfigurationError,
    LineMappingError,
    RecognitionError,
    RecognitionTimeoutError,
    SpatialParseError,
    load_image,
)

logger = logging.getLogger(__name__)


def _requires_confirmation(record: IngredientRecord, reason: str) -> IngredientRecord:
    logger.info(
        "Line %d '%s' requires confirmation: %s",
        record.line_number,
        record.ingredient_name,
        reason,
    )
    return record.model_copy(
        update={
            "quantity": config.QUANTITY_SENTINEL,
            "requires_confirmation": True,
            "state": RecoveryState.REQUIRES_CONFIRMATION,
        }
    )


def _confirm_flagged(records: Sequence[IngredientRecord], reason: str) -> List[IngredientRecord]:
    return [
        _requires_confirmation(r, reason) if r.requires_confirmation else r
        for r in records
    ]


def _recovered(record: IngredientRecord, text: str, confidence: float) -> IngredientRecord:
    quantity = " ".join(text.split())
    logger.info(
        "Recovered quantity '%s' for line %d '%s'",
        quantity,
        record.line_number,
        record.ingredient_name,
    )
    return record.model_copy(
        update={
            "quantity": quantity,
            "requires_confirmation": False,
            "state": RecoveryState.RECOVERED,
            "confidence": confidence,
            "normalized_quantity": normalize_fraction(quantity),
            "suggested_quantity": None,
        }
    )


def _recognition_pool() -> ThreadPoolExecutor:
    return ThreadPoolExecutor(
        max_workers=max(config.RECOVERY_CONCURRENCY, 1),
        thread_name_prefix="recognition",
    )


def _release_pool(pool: ThreadPoolExecutor) -> None:
    # Abandoned engine calls finish in the background
    pool.shutdown(wait=False, cancel_futures=True)


def process_text(text: str) -> List[IngredientRecord]:
    """
    Extract records from text when no image is available.

    Without spatial data nothing can be recovered, so every flagged
    record ends in RequiresConfirmation.
    """
    return _confirm_flagged(extract_ingredients(text), "no spatial data")


async def _spatial_lines(
    image: Image.Image, recognizer: Recognizer, executor: Optional[Executor] = None
) -> List[SpatialLine]:
    markup = await run_recognition(
        executor, config.FULL_PAGE_TIMEOUT_SECONDS, recognizer.recognize_spatial, image
    )
    return parse_spatial_text(markup)


def _line_confidence(
    record: IngredientRecord, spatial_lines: Sequence[SpatialLine], default: float
) -> float:
    """Confidence of the record's own spatial line, or ``default``."""
    try:
        mapping = map_to_bbox(record, spatial_lines)
    except LineMappingError:
        return default
    if mapping.low_confidence or mapping.line.confidence is None:
        return default
    return mapping.line.confidence


async def recover_flagged_records(
    records: Sequence[IngredientRecord],
    image: Optional[Image.Image],
    recognizer: Optional[Recognizer] = None,
    spatial_lines: Optional[Sequence[SpatialLine]] = None,
    cancel_event=None,
    timeout: Optional[float] = None,
    concurrency: Optional[int] = None,
    spatial_image: Optional[Image.Image] = None,
    executor: Optional[Executor] = None,
) -> List[IngredientRecord]:
    """
    Attempt targeted recovery of every flagged record.

    Args:
        records: Records from extraction, in source order.
        image: Page image whose coordinates the spatial lines use.
        recognizer: Engine for the spatial and constrained passes.
            Defaults to the singleton Tesseract recognizer.
        spatial_lines: Pre-parsed spatial lines. When None they are
            obtained from one spatial pass over ``spatial_image``.
        cancel_event: Anything with ``is_set()`` (threading.Event,
            asyncio.Event). Checked before each recovery attempt.
        timeout: Seconds per constrained pass.
        concurrency: Maximum simultaneous constrained passes.
        spatial_image: Image for the spatial pass; defaults to ``image``.
        executor: Executor for recognition calls. When None a private
            pool is created and released without waiting on return.

    Returns:
        Records in the same order. Unflagged records are untouched.

    Raises:
        ConfigurationError: If the recovery settings are invalid.
    """
    config.validate_recovery_settings()
    if concurrency is None:
        concurrency = config.RECOVERY_CONCURRENCY
    if concurrency < 1:
        raise ConfigurationError(f"Recovery concurrency must be >= 1, got {concurrency}")

    flagged = [r for r in records if r.requires_confirmation]
    if not flagged:
        return list(records)

    if image is None:
        return _confirm_flagged(records, "no image")

    if executor is None:
        pool = ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="recognition")
        try:
            return await recover_flagged_records(
                records,
                image,
                recognizer,
                spatial_lines=spatial_lines,
                cancel_event=cancel_event,
                timeout=timeout,
                concurrency=concurrency,
                spatial_image=spatial_image,
                executor=pool,
            )
        finally:
            _release_pool(pool)

    recognizer = recognizer or get_engine()

    if spatial_lines is None:
        try:
            spatial_lines = await _spatial_lines(spatial_image or image, recognizer, executor)
        except (RecognitionError, SpatialParseError, asyncio.TimeoutError) as e:
            logger.warning("Spatial pass failed, skipping recovery: %s", e)
            return _confirm_flagged(records, "spatial pass failed")

    logger.info(
        "Recovering %d flagged record(s) against %d spatial line(s)",
        len(flagged),
        len(spatial_lines),
    )
    semaphore = asyncio.Semaphore(concurrency)

    async def attempt(record: IngredientRecord) -> IngredientRecord:
        try:
            mapping = map_to_bbox(record, spatial_lines)
        except LineMappingError as e:
            return _requires_confirmation(record, str(e))

        async with semaphore:
            if cancel_event is not None and cancel_event.is_set():
                return _requires_confirmation(record, "extraction cancelled")

            record = record.model_copy(update={"state": RecoveryState.RECOVERING})
            try:
                result = await recover_quantity(
                    image, mapping.bbox, recognizer, timeout, executor=executor
                )
            except ConfigurationError:
                raise
            except RecognitionTimeoutError as e:
                logger.warning("Recovery timed out for line %d: %s", record.line_number, e)
                return _requires_confirmation(record, "recognition timed out")
            except Exception as e:
                logger.warning("Recovery failed for line %d: %s", record.line_number, e)
                return _requires_confirmation(record, "recovery failed")

        if not is_valid_recovered_quantity(result.recovered_text):
            return _requires_confirmation(
                record, f"recovered text '{result.recovered_text}' is not a quantity"
            )
        return _recovered(record, result.recovered_text, result.recovered_confidence)

    async def keep(record: IngredientRecord) -> IngredientRecord:
        return record

    return list(
        await asyncio.gather(
            *(attempt(r) if r.requires_confirmation else keep(r) for r in records)
        )
    )


async def process_image_async(
    file_path: str,
    recognizer: Optional[Recognizer] = None,
    cancel_event=None,
) -> ExtractionResult:
    """
    Extract ingredient records from a recipe photograph.

    Raises:
        ImageFileError, ImageSecurityError: If the image cannot be used.
        RecognitionError: If the full-page pass fails or times out.
        ConfigurationError: If the vocabulary or recovery settings are invalid.
    """
    recognizer = recognizer or get_engine()
    logger.info("Processing image: %s", file_path)

    # 1. Load and prepare
    image = load_image(file_path)
    page = prepare_page(image)

    pool = _recognition_pool()
    try:
        # 2. Full-page pass
        try:
            text, confidence = await run_recognition(
                pool, config.FULL_PAGE_TIMEOUT_SECONDS, recognizer.recognize, page
            )
        except asyncio.TimeoutError as e:
            raise RecognitionTimeoutError(
                f"Full-page pass exceeded {config.FULL_PAGE_TIMEOUT_SECONDS:.1f}s"
            ) from e
        text = correct_fraction_misreads(text)

        # 3. Extraction + anomaly flagging
        records = extract_ingredients(text)
        flagged_count = sum(1 for r in records if r.status != QuantityStatus.VALID)

        # 4. Spatial pass: line boxes for recovery, line confidence for records
        spatial_lines: Optional[List[SpatialLine]] = None
        if records:
            try:
                spatial_lines = await _spatial_lines(page, recognizer, pool)
            except (RecognitionError, SpatialParseError, asyncio.TimeoutError) as e:
                logger.warning("Spatial pass failed: %s", e)

        records = [
            r.model_copy(
                update={"confidence": _line_confidence(r, spatial_lines or [], confidence)}
            )
            for r in records
        ]

        # 5. Targeted recovery
        start = time.perf_counter()
        if spatial_lines is None:
            records = _confirm_flagged(records, "spatial pass failed")
        else:
            records = await recover_flagged_records(
                records,
                image,
                recognizer,
                spatial_lines=spatial_lines,
                cancel_event=cancel_event,
                executor=pool,
            )
        recovery_time = time.perf_counter() - start if flagged_count else 0.0
    finally:
        _release_pool(pool)

    result = ExtractionResult(
        file_path=str(file_path),
        records=records,
        raw_text=text,
        confidence=confidence,
        flagged_count=flagged_count,
        recovered_count=sum(1 for r in records if r.state == RecoveryState.RECOVERED),
        confirmation_count=sum(1 for r in records if r.requires_confirmation),
        recovery_time=recovery_time,
    )

    logger.info(
        "Image processed: %d record(s), %d flagged, %d recovered, %d to confirm",
        len(result.records),
        result.flagged_count,
        result.recovered_count,
        result.confirmation_count,
    )
    return result


def process_image(
    file_path: str,
    recognizer: Optional[Recognizer] = None,
    cancel_event=None,
) -> ExtractionResult:
    """Synchronous wrapper around process_image_async."""
    return asyncio.run(process_image_async(file_path, recognizer, cancel_event))


def process_batch(
    file_paths: List[str],
    recognizer: Optional[Recognizer] = None,
    max_workers: Optional[int] = None,
) -> List[ExtractionResult]:
    """
    Process several images independently.

    A failure on one image yields an empty result carrying a warning;
    the other images are unaffected. Results keep the input order.
    """
    if max_workers is None:
        max_workers = config.BATCH_WORKERS

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(process_image, fp, recognizer) for fp in file_paths]

        results: List[ExtractionResult] = []
        for fp, future in zip(file_paths, futures):
            try:
                results.append(future.result())
            except Exception as e:
                logger.error("Failed to process %s: %s", fp, e)
                results.append(
                    ExtractionResult(
                        file_path=str(fp),
                        warnings=[f"Processing failed: {str(e)}"],
                    )
                )

    return results


def confirm_quantity(record: IngredientRecord, value: Union[str, int, float]) -> IngredientRecord:
    """
    Write a user-confirmed quantity back into a record and clear its flag.

    Raises:
        ValueError: If the value is not a positive number or fraction.
    """
    text = " ".join(str(value).split())
    if not is_valid_recovered_quantity(text):
        raise ValueError(f"'{value}' is not a valid quantity")

    return record.model_copy(
        update={
            "quantity": text,
            "requires_confirmation": False,
            "state": RecoveryState.CONFIRMED,
            "normalized_quantity": normalize_fraction(text),
            "suggested_quantity": None,
        }
    )
