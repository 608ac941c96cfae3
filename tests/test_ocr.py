"""Tests for the Tesseract text recognition adapter."""

from pathlib import Path
from unittest.mock import patch

import numpy as np
import pytesseract
import pytest
from PIL import Image

from receipt_pipeline.ocr.tesseract_engine import RecognitionError, TesseractEngine
from receipt_pipeline.utils.config import OCRConfig

_IMAGE_TO_STRING = "receipt_pipeline.ocr.tesseract_engine.pytesseract.image_to_string"


def _make_test_image(path: Path) -> Path:
    """Create a minimal test JPEG image at the given path."""
    Image.fromarray(np.full((60, 120), 255, dtype=np.uint8)).save(path, "JPEG")
    return path


class TestTesseractEngine:
    """Tests for the TesseractEngine class (mocked)."""

    def test_recognize(self, tmp_path: Path) -> None:
        image = _make_test_image(tmp_path / "r.jpg")
        with patch(_IMAGE_TO_STRING, return_value="TOTAL 12.00\n") as mock_ocr:
            text = TesseractEngine(default_lang="eng", psm=6).recognize(image)

        assert text == "TOTAL 12.00\n"
        _, kwargs = mock_ocr.call_args
        assert kwargs == {"lang": "eng", "config": "--psm 6"}

    def test_recognize_custom_lang(self, tmp_path: Path) -> None:
        image = _make_test_image(tmp_path / "r.jpg")
        with patch(_IMAGE_TO_STRING, return_value="Bonjour") as mock_ocr:
            TesseractEngine(default_lang="fra", psm=4).recognize(image)
        assert mock_ocr.call_args.kwargs["lang"] == "fra"
        assert mock_ocr.call_args.kwargs["config"] == "--psm 4"

    def test_empty_result(self, tmp_path: Path) -> None:
        image = _make_test_image(tmp_path / "r.jpg")
        with patch(_IMAGE_TO_STRING, return_value=""):
            assert TesseractEngine().recognize(image) == ""

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(RecognitionError, match="Cannot open"):
            TesseractEngine().recognize(tmp_path / "missing.jpg")

    def test_unreadable_file(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.jpg"
        path.write_bytes(b"not a jpeg")
        with pytest.raises(RecognitionError):
            TesseractEngine().recognize(path)

    def test_tesseract_failure(self, tmp_path: Path) -> None:
        image = _make_test_image(tmp_path / "r.jpg")
        error = pytesseract.TesseractError(1, "bad input")
        with patch(_IMAGE_TO_STRING, side_effect=error):
            with pytest.raises(RecognitionError, match="Tesseract failed"):
                TesseractEngine().recognize(image)

    def test_tesseract_not_installed(self, tmp_path: Path) -> None:
        image = _make_test_image(tmp_path / "r.jpg")
        with patch(_IMAGE_TO_STRING, side_effect=pytesseract.TesseractNotFoundError()):
            with pytest.raises(RecognitionError, match="Tesseract failed"):
                TesseractEngine().recognize(image)

    def test_custom_tesseract_cmd(self) -> None:
        with patch("receipt_pipeline.ocr.tesseract_engine.pytesseract") as mock_pt:
            TesseractEngine(tesseract_cmd="/usr/bin/tesseract")
            assert mock_pt.pytesseract.tesseract_cmd == "/usr/bin/tesseract"

    def test_from_config(self) -> None:
        engine = TesseractEngine.from_config(OCRConfig(default_lang="deu", psm=11))
        assert engine.default_lang == "deu"
        assert engine.psm == 11
