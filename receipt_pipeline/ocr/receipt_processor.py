"""End-to-end receipt processing pipeline.

Combines image preprocessing, text recognition, and field extraction into
a single call that turns a receipt photo into suggested amount, date,
time, and merchant values. Low-confidence results are retried at other
orientations.
"""

import os
import tempfile
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from pathlib import Path

import numpy as np

from receipt_pipeline.extraction.amount import AmountExtractor
from receipt_pipeline.extraction.date_time import Clock, DateTimeExtractor
from receipt_pipeline.extraction.merchant import MerchantExtractor
from receipt_pipeline.extraction.merchant_db import (
    InMemoryMerchantRepository,
    MerchantDatabase,
)
from receipt_pipeline.extraction.models import ExtractionResult
from receipt_pipeline.preprocessing.image_buffer import (
    ImageBuffer,
    ImageDecodeError,
    ImageResourceError,
)
from receipt_pipeline.preprocessing.pipeline import (
    CancellationToken,
    ImagePreprocessor,
    ImageSource,
    PreprocessResult,
    ProcessingCancelledError,
    load_image,
)
from receipt_pipeline.utils.config import AppConfig, ExtractionMode
from receipt_pipeline.utils.logger import get_logger, stage_timer

from .tesseract_engine import RecognitionError, TesseractEngine, TextRecognizer

logger = get_logger(__name__)


class ReceiptProcessor:
    """Receipt photo to field suggestions.

    Nothing is persisted; the caller decides which suggestions to accept.

    Args:
        config: Application configuration object.
        recognizer: Text recognition engine; Tesseract when omitted.
        merchant_db: Known merchants; loaded from ``merchants_path`` when
            omitted.
        preprocessor: Image preprocessor; built from the configuration
            when omitted.
        clock: Callable returning today's date for date validation.
    """

    def __init__(
        self,
        config: AppConfig,
        recognizer: TextRecognizer | None = None,
        merchant_db: MerchantDatabase | None = None,
        preprocessor: ImagePreprocessor | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.config = config
        self.recognizer = recognizer or TesseractEngine.from_config(config.ocr)
        self.merchant_db = merchant_db or MerchantDatabase(
            InMemoryMerchantRepository.from_yaml(Path(config.merchants_path))
        )
        self.preprocessor = preprocessor or ImagePreprocessor(config.preprocessing)
        self.amount_extractor = AmountExtractor(config.amount)
        self.date_extractor = DateTimeExtractor(config.date, clock=clock)
        self.merchant_extractor = MerchantExtractor(self.merchant_db, config.merchant)

    @contextmanager
    def preprocessed(
        self,
        image: ImageSource,
        rotation: int = 0,
        cancel: CancellationToken | None = None,
        timings: dict[str, float] | None = None,
    ) -> Iterator[PreprocessResult]:
        """Preprocess an image and delete the temporary file on exit.

        Args:
            image: Receipt image in any supported form.
            rotation: Clockwise rotation in degrees.
            cancel: Optional cancellation token.
            timings: Optional mapping that receives the ``preprocess``
                duration in milliseconds.

        Yields:
            The preprocessed image location and metadata.
        """
        with stage_timer(timings if timings is not None else {}, "preprocess"):
            result = self.preprocessor.preprocess(
                image, rotation=rotation, cancel=cancel
            )
        try:
            yield result
        finally:
            result.path.unlink(missing_ok=True)
            logger.debug("Removed temporary image %s", result.path)

    def process(
        self, source: ImageSource, cancel: CancellationToken | None = None
    ) -> ExtractionResult:
        """Process a receipt image and suggest its transaction fields.

        In enhanced mode, a result below ``multi_pass_threshold`` triggers
        extra passes at the configured rotations; the most confident pass
        is returned.

        Args:
            source: Encoded image bytes, a file path, or a pixel array.
            cancel: Optional cancellation token checked between stages.

        Returns:
            Extraction result; ``error`` is set when nothing could be read.

        Raises:
            ProcessingCancelledError: If cancellation was requested.
        """
        try:
            image = load_image(source)
        except ImageDecodeError as exc:
            logger.warning("Preprocessing skipped, cannot decode image: %s", exc)
            return self._process_original(source, cancel)

        result = self._single_pass(image, rotation=0, cancel=cancel)
        pipeline = self.config.pipeline
        if (
            pipeline.mode != ExtractionMode.ENHANCED
            or not pipeline.multi_pass
            or result.overall_confidence >= pipeline.multi_pass_threshold
        ):
            return result

        logger.info(
            "Low confidence (%.2f), retrying with rotations %s",
            result.overall_confidence,
            pipeline.retry_rotations,
        )
        for angle in pipeline.retry_rotations:
            try:
                candidate = self._single_pass(image, rotation=angle, cancel=cancel)
            except ProcessingCancelledError:
                raise
            except (ImageResourceError, RecognitionError, ValueError) as exc:
                logger.warning("Rotation %d pass failed: %s", angle, exc)
                continue
            if candidate.overall_confidence > result.overall_confidence:
                logger.info(
                    "Rotation %d improved confidence from %.2f to %.2f",
                    angle,
                    result.overall_confidence,
                    candidate.overall_confidence,
                )
                result = candidate
        return result

    def extract_text_fields(self, text: str) -> ExtractionResult:
        """Run every field extractor over recognized text.

        The extractors are independent and run concurrently.

        Args:
            text: Recognized receipt text.

        Returns:
            Extraction result with all suggestions; ``error`` is set when the
            text is blank.
        """
        if not text or not text.strip():
            return ExtractionResult.failed("No text recognized", raw_text=text or "")

        enhanced = self.config.pipeline.mode == ExtractionMode.ENHANCED
        amounts = self.amount_extractor
        dates = self.date_extractor
        merchants = self.merchant_extractor

        with ThreadPoolExecutor(max_workers=self.config.pipeline.max_workers) as pool:
            if enhanced:
                amount_future = pool.submit(amounts.extract_enhanced, text)
                date_future = pool.submit(dates.extract_enhanced, text)
                merchant_future = pool.submit(merchants.extract_enhanced, text)
            else:
                amount_future = pool.submit(amounts.extract, text)
                date_future = pool.submit(dates.extract, text)
                merchant_future = pool.submit(merchants.extract, text)
            time_future = pool.submit(dates.extract_time, text)
            suggestions_future = pool.submit(merchants.suggestions, text)

            date = date_future.result()
            time = time_future.result()
            result = ExtractionResult(
                amount=amount_future.result(),
                date=date,
                time=time,
                merchant=merchant_future.result(),
                date_time_confidence=dates.combined_confidence(date, time),
                merchant_suggestions=suggestions_future.result(),
                raw_text=text,
            )

        logger.debug(
            "Extracted amount=%s date=%s time=%s merchant=%r",
            result.amount.value,
            result.date.value,
            result.time.value,
            result.merchant.value,
        )
        return result

    def _single_pass(
        self,
        image: ImageBuffer,
        rotation: int,
        cancel: CancellationToken | None,
    ) -> ExtractionResult:
        """Preprocess, recognize, and extract at one orientation."""
        timings: dict[str, float] = {}
        try:
            with self.preprocessed(
                image, rotation=rotation, cancel=cancel, timings=timings
            ) as prepared, stage_timer(timings, "recognition"):
                text = self.recognizer.recognize(prepared.path)
        except ImageResourceError as exc:
            logger.error("Out of memory preprocessing receipt: %s", exc)
            return ExtractionResult.failed(str(exc))
        except RecognitionError as exc:
            logger.error("Text recognition failed: %s", exc)
            return ExtractionResult.failed(str(exc))

        _check(cancel, "extraction")
        with stage_timer(timings, "extraction"):
            result = self.extract_text_fields(text)
        result.rotation = rotation % 360
        result.timings = timings
        self._log_timings(timings, rotation)
        return result

    def _process_original(
        self, source: ImageSource, cancel: CancellationToken | None
    ) -> ExtractionResult:
        """Recognize an image the preprocessor could not decode, unmodified."""
        _check(cancel, "recognition")
        timings: dict[str, float] = {}
        try:
            with stage_timer(timings, "recognition"), _original_file(source) as path:
                text = self.recognizer.recognize(path)
        except RecognitionError as exc:
            logger.error("Text recognition failed on original image: %s", exc)
            return ExtractionResult.failed(str(exc))

        with stage_timer(timings, "extraction"):
            result = self.extract_text_fields(text)
        result.timings = timings
        self._log_timings(timings, 0)
        return result

    def _log_timings(self, timings: dict[str, float], rotation: int) -> None:
        total = sum(timings.values())
        detail = ", ".join(f"{stage} {ms:.0f} ms" for stage, ms in timings.items())
        if total > self.config.pipeline.slow_threshold_ms:
            logger.warning(
                "Processing took %.0f ms (target: %.0f ms) at rotation %d: %s",
                total,
                self.config.pipeline.slow_threshold_ms,
                rotation,
                detail,
            )
        else:
            logger.info(
                "Processed receipt in %.0f ms at rotation %d: %s",
                total,
                rotation,
                detail,
            )


@contextmanager
def _original_file(source: ImageSource) -> Iterator[Path]:
    """Yield a file path for the source, spilling bytes to a temporary file."""
    if isinstance(source, (str, Path)):
        yield Path(source)
        return
    if isinstance(source, (np.ndarray, ImageBuffer)):
        raise RecognitionError("Undecodable pixel data cannot be recognized")

    fd, name = tempfile.mkstemp(prefix="ocr_original_")
    path = Path(name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(source)
        yield path
    finally:
        path.unlink(missing_ok=True)


def _check(cancel: CancellationToken | None, stage: str) -> None:
    if cancel is not None:
        cancel.raise_if_cancelled(stage)
