"""Configurable receipt image preprocessing pipeline.

Orchestrates rotation, grayscale conversion, contrast enhancement, and
sharpening with quality metrics tracking, and writes the result to a
temporary JPEG for the text recognition engine.
"""

import os
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path

import cv2
import numpy as np

from receipt_pipeline.utils.config import PreprocessingConfig
from receipt_pipeline.utils.logger import get_logger

from .filters import adjust_contrast, rotate, sharpen, to_grayscale
from .image_buffer import Convolver, ImageBuffer

logger = get_logger(__name__)

ImageSource = bytes | Path | str | np.ndarray | ImageBuffer


class ProcessingCancelledError(RuntimeError):
    """Raised when a receipt processing request is cancelled mid-flight."""


class CancellationToken:
    """Thread-safe cancellation flag checked between processing stages."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str) -> None:
        if self._event.is_set():
            raise ProcessingCancelledError(f"Cancelled before {stage}")


@dataclass
class QualityMetrics:
    """Before/after image quality measurements."""

    sharpness_before: float
    sharpness_after: float
    contrast_before: float
    contrast_after: float


@dataclass
class PreprocessResult:
    """A preprocessed image written to temporary storage."""

    path: Path
    width: int
    height: int
    rotation: int
    metrics: QualityMetrics


def calculate_sharpness(image: np.ndarray) -> float:
    """Calculate image sharpness using Laplacian variance.

    Args:
        image: Input image (BGR or grayscale).

    Returns:
        Sharpness score (higher means sharper).
    """
    gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY) if len(image.shape) == 3 else image
    return float(cv2.Laplacian(gray, cv2.CV_64F).var())


def calculate_contrast(image: np.ndarray) -> float:
    """Calculate image contrast as the standard deviation of pixel intensities.

    Args:
        image: Input image (BGR or grayscale).

    Returns:
        Contrast score (higher means more contrast).
    """
    gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY) if len(image.shape) == 3 else image
    return float(gray.std())


def load_image(source: ImageSource) -> ImageBuffer:
    """Turn any supported image source into an :class:`ImageBuffer`.

    Raises:
        ImageDecodeError: If bytes or files cannot be decoded.
    """
    if isinstance(source, ImageBuffer):
        return source
    if isinstance(source, np.ndarray):
        return ImageBuffer(source)
    if isinstance(source, bytes):
        return ImageBuffer.from_bytes(source)
    return ImageBuffer.from_path(Path(source))


class ImagePreprocessor:
    """Receipt photo preprocessor for text recognition.

    Applies optional rotation, then grayscale, contrast, and sharpening
    according to the configuration. Each stage replaces the previous
    buffer so only two full-resolution buffers are alive at a time.

    Args:
        config: Preprocessing configuration controlling which steps to apply.
        convolver: Optional convolution implementation for sharpening.
    """

    def __init__(
        self, config: PreprocessingConfig, convolver: Convolver | None = None
    ) -> None:
        self.config = config
        self.convolver = convolver

    def process(
        self,
        image: ImageBuffer,
        rotation: int = 0,
        cancel: CancellationToken | None = None,
    ) -> tuple[ImageBuffer, QualityMetrics]:
        """Run the in-memory preprocessing stages on an image.

        Args:
            image: Decoded receipt image.
            rotation: Clockwise rotation in degrees (0, 90, 180 or 270).
            cancel: Optional cancellation token checked between stages.

        Returns:
            Tuple of (processed_image, quality_metrics).

        Raises:
            ValueError: If the rotation is not a right angle.
            ProcessingCancelledError: If cancellation was requested.
            ImageResourceError: If memory runs out during sharpening.
        """
        metrics = QualityMetrics(
            sharpness_before=calculate_sharpness(image.pixels),
            contrast_before=calculate_contrast(image.pixels),
            sharpness_after=0.0,
            contrast_after=0.0,
        )

        result = rotate(image, rotation)

        if self.config.grayscale_enabled:
            _check(cancel, "grayscale")
            result = to_grayscale(result)

        if self.config.contrast_enabled:
            _check(cancel, "contrast")
            result = adjust_contrast(result, self.config.contrast_factor)

        if self.config.sharpen_enabled:
            _check(cancel, "sharpen")
            result = sharpen(result, convolver=self.convolver)

        metrics.sharpness_after = calculate_sharpness(result.pixels)
        metrics.contrast_after = calculate_contrast(result.pixels)

        logger.info(
            "Preprocessing complete: sharpness %.1f->%.1f, contrast %.1f->%.1f",
            metrics.sharpness_before,
            metrics.sharpness_after,
            metrics.contrast_before,
            metrics.contrast_after,
        )
        return result, metrics

    def preprocess(
        self,
        source: ImageSource,
        rotation: int = 0,
        cancel: CancellationToken | None = None,
    ) -> PreprocessResult:
        """Decode, preprocess, and write a receipt image to a temporary file.

        The caller owns the returned file and must delete it. On any
        failure, including cancellation, no file is left behind.

        Args:
            source: Encoded bytes, a file path, a pixel array, or a buffer.
            rotation: Clockwise rotation in degrees (0, 90, 180 or 270).
            cancel: Optional cancellation token checked between stages.

        Returns:
            Location and metadata of the preprocessed JPEG.

        Raises:
            ImageDecodeError: If the source cannot be decoded.
        """
        _check(cancel, "decode")
        image = load_image(source)
        processed, metrics = self.process(image, rotation=rotation, cancel=cancel)
        del image

        _check(cancel, "write")
        fd, name = tempfile.mkstemp(
            prefix="ocr_preprocessed_", suffix=".jpg", dir=self.config.temp_dir
        )
        os.close(fd)
        path = Path(name)
        try:
            processed.save_jpeg(path, quality=self.config.jpeg_quality)
            _check(cancel, "recognition")
        except BaseException:
            path.unlink(missing_ok=True)
            raise

        logger.debug("Wrote preprocessed image to %s", path)
        return PreprocessResult(
            path=path,
            width=processed.width,
            height=processed.height,
            rotation=rotation % 360,
            metrics=metrics,
        )


def _check(cancel: CancellationToken | None, stage: str) -> None:
    if cancel is not None:
        cancel.raise_if_cancelled(stage)
