"""Image buffer type with pluggable kernel convolution.

Wraps a ``uint8`` pixel array (grayscale ``H x W`` or BGR ``H x W x 3``)
and isolates the convolution inner loop behind a replaceable callable so
it can be optimised or swapped without touching the filters that use it.
"""

import io
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from receipt_pipeline.utils.logger import get_logger

logger = get_logger(__name__)

Convolver = Callable[[np.ndarray, np.ndarray], np.ndarray]


class ImageDecodeError(ValueError):
    """Raised when source bytes or files cannot be decoded as an image."""


class ImageResourceError(RuntimeError):
    """Raised when an image operation runs out of memory."""


def opencv_convolver(pixels: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    """Convolve every channel of ``pixels`` with ``kernel`` using OpenCV.

    ``cv2.filter2D`` computes a correlation, so the kernel is flipped to
    obtain a true convolution.

    Args:
        pixels: Input image array.
        kernel: 2-D convolution kernel.

    Returns:
        Unclamped ``float32`` result with the same shape as ``pixels``.
    """
    flipped = cv2.flip(kernel.astype(np.float32), -1)
    return cv2.filter2D(
        pixels.astype(np.float32), -1, flipped, borderType=cv2.BORDER_REPLICATE
    )


def numpy_convolver(pixels: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    """Reference convolution built from shifted array slices.

    Only interior pixels are meaningful; border values are left at zero
    because :meth:`ImageBuffer.convolve` restores them from the source.

    Args:
        pixels: Input image array.
        kernel: 2-D convolution kernel with odd dimensions.

    Returns:
        Unclamped ``float64`` result with the same shape as ``pixels``.
    """
    source = pixels.astype(np.float64)
    result = np.zeros_like(source)
    kh, kw = kernel.shape
    ph, pw = kh // 2, kw // 2
    h, w = source.shape[:2]

    for ky in range(kh):
        for kx in range(kw):
            weight = kernel[kh - 1 - ky, kw - 1 - kx]
            if weight == 0:
                continue
            dy, dx = ky - ph, kx - pw
            result[ph : h - ph, pw : w - pw] += (
                weight * source[ph + dy : h - ph + dy, pw + dx : w - pw + dx]
            )
    return result


@dataclass
class ImageBuffer:
    """An in-memory receipt image."""

    pixels: np.ndarray

    def __post_init__(self) -> None:
        if self.pixels.ndim not in (2, 3):
            raise ValueError(f"Unsupported image shape: {self.pixels.shape}")
        if self.pixels.dtype != np.uint8:
            self.pixels = np.clip(self.pixels, 0, 255).astype(np.uint8)

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def channels(self) -> int:
        return 1 if self.pixels.ndim == 2 else int(self.pixels.shape[2])

    @classmethod
    def from_bytes(cls, data: bytes) -> "ImageBuffer":
        """Decode encoded image bytes (PNG, JPEG, TIFF, ...).

        Args:
            data: Encoded image bytes.

        Returns:
            Decoded image buffer in BGR or grayscale layout.

        Raises:
            ImageDecodeError: If the bytes are not a decodable image.
        """
        if not data:
            raise ImageDecodeError("Empty image data")
        try:
            with Image.open(io.BytesIO(data)) as img:
                return cls._from_pil(img)
        except (UnidentifiedImageError, OSError, SyntaxError) as exc:
            raise ImageDecodeError(f"Failed to decode image: {exc}") from exc

    @classmethod
    def from_path(cls, path: Path) -> "ImageBuffer":
        """Load and decode an image file.

        Raises:
            ImageDecodeError: If the file is missing or not a decodable image.
        """
        try:
            with Image.open(path) as img:
                return cls._from_pil(img)
        except (UnidentifiedImageError, OSError, SyntaxError) as exc:
            raise ImageDecodeError(f"Failed to load image {path}: {exc}") from exc

    @classmethod
    def _from_pil(cls, img: Image.Image) -> "ImageBuffer":
        img.load()
        if img.mode == "L":
            return cls(np.array(img))
        rgb = np.array(img.convert("RGB"))
        return cls(cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR))

    def copy(self) -> "ImageBuffer":
        return ImageBuffer(self.pixels.copy())

    def convolve(
        self, kernel: np.ndarray, convolver: Convolver | None = None
    ) -> "ImageBuffer":
        """Apply a kernel to interior pixels, copying border pixels unchanged.

        The kernel is undefined at the edges, so a border as wide as half
        the kernel keeps its source values. Output is clamped to [0, 255].

        Args:
            kernel: 2-D kernel with odd dimensions.
            convolver: Convolution implementation; defaults to OpenCV.

        Returns:
            New convolved image buffer of the same shape.

        Raises:
            ValueError: If the kernel is not 2-D with odd dimensions.
            ImageResourceError: If memory runs out during convolution.
        """
        kernel = np.asarray(kernel)
        if kernel.ndim != 2 or kernel.shape[0] % 2 == 0 or kernel.shape[1] % 2 == 0:
            raise ValueError(f"Kernel must be 2-D with odd sides: {kernel.shape}")

        ph, pw = kernel.shape[0] // 2, kernel.shape[1] // 2
        if self.height <= 2 * ph or self.width <= 2 * pw:
            logger.debug("Image smaller than kernel, returning copy")
            return self.copy()

        convolve = convolver or opencv_convolver
        try:
            filtered = convolve(self.pixels, kernel)
            result = self.pixels.copy()
            interior = np.clip(
                np.rint(filtered[ph : self.height - ph, pw : self.width - pw]), 0, 255
            )
            result[ph : self.height - ph, pw : self.width - pw] = interior.astype(
                np.uint8
            )
        except MemoryError as exc:
            raise ImageResourceError(
                f"Out of memory convolving {self.width}x{self.height} image"
            ) from exc
        return ImageBuffer(result)

    def save_jpeg(self, path: Path, quality: int = 95) -> None:
        """Encode the buffer as JPEG at ``path``."""
        if self.pixels.ndim == 2:
            pil_image = Image.fromarray(self.pixels)
        else:
            pil_image = Image.fromarray(cv2.cvtColor(self.pixels, cv2.COLOR_BGR2RGB))
        pil_image.save(path, format="JPEG", quality=quality)
