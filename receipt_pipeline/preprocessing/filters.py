"""Legibility filters applied to receipt photos before text recognition.

Provides right-angle rotation, grayscale conversion, linear contrast
stretching around mid-gray, and 3x3 sharpening.
"""

import cv2
import numpy as np

from receipt_pipeline.utils.logger import get_logger

from .image_buffer import Convolver, ImageBuffer

logger = get_logger(__name__)

SHARPEN_KERNEL = np.array(
    [
        [0, -1, 0],
        [-1, 5, -1],
        [0, -1, 0],
    ],
    dtype=np.float32,
)

_ROTATIONS = {
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}


def rotate(image: ImageBuffer, angle: int) -> ImageBuffer:
    """Rotate an image clockwise by a right angle.

    Args:
        image: Input image.
        angle: Rotation in degrees; must be a multiple of 90.

    Returns:
        Rotated image. Width and height swap for 90 and 270 degrees.

    Raises:
        ValueError: If the angle is not a multiple of 90.
    """
    normalized = angle % 360
    if normalized == 0:
        return image
    if normalized not in _ROTATIONS:
        raise ValueError(f"Unsupported rotation angle: {angle}")
    result = ImageBuffer(cv2.rotate(image.pixels, _ROTATIONS[normalized]))
    logger.debug("Rotated image by %d degrees", normalized)
    return result


def to_grayscale(image: ImageBuffer) -> ImageBuffer:
    """Drop colour saturation while preserving luminance.

    Single-channel input is returned as is, so the conversion is idempotent.

    Args:
        image: Input image (BGR or grayscale).

    Returns:
        Single-channel grayscale image.
    """
    if image.channels == 1:
        return image
    result = ImageBuffer(cv2.cvtColor(image.pixels, cv2.COLOR_BGR2GRAY))
    logger.debug("Converted %dx%d image to grayscale", image.width, image.height)
    return result


def adjust_contrast(image: ImageBuffer, factor: float = 1.5) -> ImageBuffer:
    """Stretch contrast around mid-gray: ``(p - 128) * factor + 128``.

    Args:
        image: Input image.
        factor: Contrast multiplier; 1.0 leaves the image unchanged.

    Returns:
        Contrast-adjusted image clamped to [0, 255].
    """
    stretched = (image.pixels.astype(np.float32) - 128.0) * factor + 128.0
    result = ImageBuffer(np.clip(np.rint(stretched), 0, 255).astype(np.uint8))
    logger.debug("Applied contrast factor %.2f", factor)
    return result


def sharpen(image: ImageBuffer, convolver: Convolver | None = None) -> ImageBuffer:
    """Sharpen interior pixels with a 3x3 kernel; borders are copied.

    Args:
        image: Input image.
        convolver: Optional convolution implementation.

    Returns:
        Sharpened image.
    """
    result = image.convolve(SHARPEN_KERNEL, convolver=convolver)
    logger.debug("Applied 3x3 sharpening kernel")
    return result
