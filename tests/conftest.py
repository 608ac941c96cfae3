"""Shared test fixtures for the receipt pipeline test suite."""

import datetime as dt
from pathlib import Path

import numpy as np
import pytest

from receipt_pipeline.extraction.merchant_db import (
    InMemoryMerchantRepository,
    MerchantDatabase,
)

_TODAY = dt.date(2025, 10, 20)

_GROCERY_RECEIPT = """\
TESCO STORES LTD
123 High Street
Tel: 01234 567890
Date: 17/10/2025 14:32
Milk 1.20
Bread 0.95
Coffee Beans 6.49
Subtotal: $45.00
Tax: $3.60
TOTAL: $48.60
Cash 50.00
Change 1.40
"""

_CAFE_RECEIPT = """\
STARBUCKS #1234
45 Market Road
Latte 3.50
Muffin 2.75
17 Oct 25
12:45 PM
"""


@pytest.fixture
def sample_image() -> np.ndarray:
    """Create a simple synthetic grayscale test image."""
    image = np.zeros((200, 300), dtype=np.uint8)
    image[50:150, 50:250] = 255
    return image


@pytest.fixture
def sample_color_image() -> np.ndarray:
    """Create a simple synthetic BGR test image."""
    image = np.zeros((200, 300, 3), dtype=np.uint8)
    image[50:150, 50:250] = (40, 120, 220)
    return image


@pytest.fixture
def grocery_text() -> str:
    """Recognized text of a supermarket receipt with subtotal and tax."""
    return _GROCERY_RECEIPT


@pytest.fixture
def cafe_text() -> str:
    """Recognized text of a coffee shop receipt with a franchise number."""
    return _CAFE_RECEIPT


@pytest.fixture
def today() -> dt.date:
    """Fixed 'today' for date window tests."""
    return _TODAY


@pytest.fixture
def merchant_db() -> MerchantDatabase:
    """Merchant database seeded with the built-in chain list."""
    return MerchantDatabase(InMemoryMerchantRepository())


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def config_dir(project_root: Path) -> Path:
    """Return the configs directory path."""
    return project_root / "configs"
