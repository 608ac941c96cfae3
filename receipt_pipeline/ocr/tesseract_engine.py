"""Tesseract adapter for the text recognition step.

The pipeline only needs the recognized text of a preprocessed image file;
any engine exposing ``recognize(image_path) -> str`` can be used instead.
"""

from pathlib import Path
from typing import Protocol

import pytesseract
from PIL import Image, UnidentifiedImageError

from receipt_pipeline.utils.config import OCRConfig
from receipt_pipeline.utils.logger import get_logger

logger = get_logger(__name__)


class RecognitionError(RuntimeError):
    """Raised when the recognition engine cannot read an image."""


class TextRecognizer(Protocol):
    """Black-box text recognition engine."""

    def recognize(self, image_path: Path) -> str: ...


class TesseractEngine:
    """Text recognizer backed by the Tesseract executable.

    Args:
        tesseract_cmd: Path to the Tesseract executable.
            If ``None``, uses the system default.
        default_lang: OCR language code.
        psm: Tesseract page segmentation mode.
    """

    def __init__(
        self,
        tesseract_cmd: str | None = None,
        default_lang: str = "eng",
        psm: int = 6,
    ) -> None:
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
        self.default_lang = default_lang
        self.psm = psm

    @classmethod
    def from_config(cls, config: OCRConfig) -> "TesseractEngine":
        return cls(
            tesseract_cmd=config.tesseract_cmd,
            default_lang=config.default_lang,
            psm=config.psm,
        )

    def recognize(self, image_path: Path) -> str:
        """Recognize the text printed in an image file.

        Args:
            image_path: Path to the (preprocessed) receipt image.

        Returns:
            Recognized text; possibly empty.

        Raises:
            RecognitionError: If the image cannot be opened or Tesseract
                fails or is not installed.
        """
        try:
            with Image.open(image_path) as pil_image:
                text = pytesseract.image_to_string(
                    pil_image, lang=self.default_lang, config=f"--psm {self.psm}"
                )
        # TesseractNotFoundError is an OSError, so it must be caught first.
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError) as exc:
            raise RecognitionError(f"Tesseract failed on {image_path}: {exc}") from exc
        except (UnidentifiedImageError, OSError) as exc:
            raise RecognitionError(f"Cannot open image {image_path}: {exc}") from exc

        logger.info(
            "Recognized %d characters from %s", len(text.strip()), Path(image_path).name
        )
        return text
