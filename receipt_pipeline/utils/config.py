"""Configuration management for the receipt understanding pipeline.

Loads and validates YAML configuration with sensible defaults for image
preprocessing, text recognition, field extraction, and orchestration.
Every tunable constant used by the extractors lives here.
"""

import logging
from enum import StrEnum
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


class ExtractionMode(StrEnum):
    """Extraction strategy used by the orchestrator."""

    BASIC = "basic"
    ENHANCED = "enhanced"


class PreprocessingConfig(BaseModel):
    """Configuration for the receipt image preprocessor."""

    grayscale_enabled: bool = True
    contrast_enabled: bool = True
    contrast_factor: float = Field(default=1.5, gt=0.0)
    sharpen_enabled: bool = True
    jpeg_quality: int = Field(default=95, ge=1, le=100)
    temp_dir: str | None = None


class OCRConfig(BaseModel):
    """Configuration for the Tesseract text recognition engine."""

    tesseract_cmd: str | None = None
    default_lang: str = "eng"
    psm: int = 6


class AmountConfig(BaseModel):
    """Scoring constants for amount extraction."""

    keyword_confidence: float = 0.9
    fallback_confidence: float = 0.6
    enhanced_keyword_confidence: float = 0.95
    enhanced_fallback_confidence: float = 0.7
    proximity_weights: list[float] = Field(default_factory=lambda: [1.0, 0.8, 0.6])
    grand_boost: float = 1.2
    final_boost: float = 1.1
    subtotal_boost: float = 0.7
    default_boost: float = 1.0
    min_amount: str = "0.01"
    max_amount: str = "999999.99"

    @field_validator("proximity_weights")
    @classmethod
    def _non_empty(cls, value: list[float]) -> list[float]:
        if not value:
            raise ValueError("proximity_weights must contain at least one weight")
        return value


class DateConfig(BaseModel):
    """Scoring constants and validation window for date/time extraction."""

    keyword_confidence: float = 0.9
    fallback_confidence: float = 0.6
    enhanced_keyword_confidence: float = 0.95
    enhanced_fallback_confidence: float = 0.7
    validation_years: int = Field(default=1, ge=0)
    enhanced_validation_years: int = Field(default=3, ge=0)
    pivot_year: int = Field(default=50, ge=0, le=99)
    time_confidence: float = 0.8
    date_only_factor: float = 0.8
    time_only_factor: float = 0.5


class MerchantConfig(BaseModel):
    """Line scoring weights and fuzzy-match thresholds for merchants."""

    max_lines: int = Field(default=10, ge=1)
    min_line_length: int = 3
    base_score: float = 0.5
    header_penalty: float = 0.6
    company_bonus: float = 0.3
    length_bonus: float = 0.1
    min_good_length: int = 5
    max_good_length: int = 50
    long_line_penalty: float = 0.2
    letters_and_space_bonus: float = 0.1
    digit_ratio_limit: float = 0.3
    digit_penalty: float = 0.3
    address_penalty: float = 0.4
    contact_penalty: float = 0.5
    validation_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    suggestion_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    max_suggestions: int = Field(default=3, ge=1)
    unmatched_suggestion_confidence: float = 0.5


class PipelineConfig(BaseModel):
    """Configuration for the receipt processing orchestrator."""

    mode: ExtractionMode = ExtractionMode.ENHANCED
    multi_pass: bool = True
    multi_pass_threshold: float = 0.7
    retry_rotations: list[int] = Field(default_factory=lambda: [90, 180, 270])
    max_workers: int = Field(default=3, ge=1)
    slow_threshold_ms: float = 2000.0

    @field_validator("retry_rotations")
    @classmethod
    def _right_angles(cls, value: list[int]) -> list[int]:
        for angle in value:
            if angle % 360 not in (0, 90, 180, 270):
                raise ValueError(f"Unsupported rotation angle: {angle}")
        return value


class AppConfig(BaseModel):
    """Top-level application configuration."""

    preprocessing: PreprocessingConfig = Field(default_factory=PreprocessingConfig)
    ocr: OCRConfig = Field(default_factory=OCRConfig)
    amount: AmountConfig = Field(default_factory=AmountConfig)
    date: DateConfig = Field(default_factory=DateConfig)
    merchant: MerchantConfig = Field(default_factory=MerchantConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    merchants_path: str = "configs/merchants.yaml"
    log_level: str = "INFO"


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.
            Defaults to configs/config.yaml.

    Returns:
        Validated application configuration.
    """
    if path is None:
        path = Path("configs/config.yaml")

    if path.exists():
        logger.info("Loading configuration from %s", path)
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        return AppConfig(**raw)

    logger.info("No config file found at %s, using defaults", path)
    return AppConfig()
