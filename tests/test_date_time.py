"""Tests for transaction date and time extraction."""

import datetime as dt

import pytest

from receipt_pipeline.extraction.date_time import (
    DateTimeExtractor,
    expand_year,
    years_before,
)
from receipt_pipeline.utils.config import DateConfig


class TestYearHelpers:
    """Tests for two-digit year expansion and window arithmetic."""

    @pytest.mark.parametrize(
        ("year", "expected"),
        [(0, 2000), (25, 2025), (49, 2049), (50, 1950), (85, 1985), (2024, 2024)],
    )
    def test_expand_year(self, year: int, expected: int) -> None:
        assert expand_year(year) == expected

    def test_years_before(self) -> None:
        assert years_before(dt.date(2025, 10, 20), 3) == dt.date(2022, 10, 20)

    def test_years_before_leap_day(self) -> None:
        assert years_before(dt.date(2024, 2, 29), 1) == dt.date(2023, 2, 28)


class TestDateExtraction:
    """Tests for keyword-anchored date extraction with window fallback."""

    def setup_method(self) -> None:
        self.extractor = DateTimeExtractor(clock=lambda: dt.date(2025, 10, 20))

    def test_short_month_name_recent_year(self) -> None:
        result = self.extractor.extract("17 Oct 25")
        assert result.value == dt.date(2025, 10, 17)

    def test_short_month_name_old_year(self) -> None:
        result = self.extractor.extract("Date: 17 Oct 85")
        assert result.value == dt.date(1985, 10, 17)

    def test_keyword_line_wins(self) -> None:
        text = "Printed 19/10/2025\nDATE: 15/10/2025"
        result = self.extractor.extract(text)
        assert result.value == dt.date(2025, 10, 15)
        assert result.confidence == pytest.approx(0.9)

    def test_fallback_most_recent(self) -> None:
        text = "01/09/2025\n15/10/2025\n03/03/2025"
        result = self.extractor.extract(text)
        assert result.value == dt.date(2025, 10, 15)
        assert result.confidence == pytest.approx(0.6)

    def test_future_dates_excluded_from_fallback(self) -> None:
        text = "Valid until 01/01/2026\nIssued 12/10/2025"
        result = self.extractor.extract(text)
        assert result.value == dt.date(2025, 10, 12)

    def test_dates_older_than_window_excluded(self) -> None:
        result = self.extractor.extract("Member since 05/05/2020")
        assert result.value is None
        assert result.confidence == 0.0

    def test_invalid_calendar_date_ignored(self) -> None:
        assert self.extractor.find_all_dates("31/02/2025 and 30/04/2025") == [
            dt.date(2025, 4, 30)
        ]

    @pytest.mark.parametrize(
        "text",
        [
            "17/10/2025",
            "17-10-2025",
            "17.10.2025",
            "17 October 2025",
            "2025-10-17",
            "17/10/25",
            "17.10.25",
            "Oct 17, 2025",
        ],
    )
    def test_supported_formats(self, text: str) -> None:
        assert self.extractor.find_all_dates(text) == [dt.date(2025, 10, 17)]

    def test_today_argument_overrides_clock(self) -> None:
        result = self.extractor.extract("01/06/2020", today=dt.date(2020, 12, 1))
        assert result.value == dt.date(2020, 6, 1)

    def test_no_date(self) -> None:
        result = self.extractor.extract("TOTAL 12.00")
        assert result.value is None
        assert result.confidence == 0.0


class TestDateExtractionEnhanced:
    """Tests for the enhanced date strategy with a wider window."""

    def setup_method(self) -> None:
        self.extractor = DateTimeExtractor(clock=lambda: dt.date(2025, 10, 20))

    def test_keyword_confidence(self) -> None:
        result = self.extractor.extract_enhanced("Transaction 17/10/2025")
        assert result.value == dt.date(2025, 10, 17)
        assert result.confidence == pytest.approx(0.95)

    def test_wider_default_window(self) -> None:
        text = "Visit 02/02/2023"
        assert self.extractor.extract(text).value is None
        result = self.extractor.extract_enhanced(text)
        assert result.value == dt.date(2023, 2, 2)
        assert result.confidence == pytest.approx(0.7)

    def test_explicit_window(self) -> None:
        text = "Visit 02/02/2023"
        assert self.extractor.extract_enhanced(text, validation_years=1).value is None

    def test_configured_window(self) -> None:
        extractor = DateTimeExtractor(
            DateConfig(enhanced_validation_years=10),
            clock=lambda: dt.date(2025, 10, 20),
        )
        result = extractor.extract_enhanced("Visit 02/02/2018")
        assert result.value == dt.date(2018, 2, 2)


class TestTimeExtraction:
    """Tests for time of day extraction."""

    def setup_method(self) -> None:
        self.extractor = DateTimeExtractor()

    def test_twenty_four_hour(self) -> None:
        result = self.extractor.extract_time("17/10/2025 14:32")
        assert result.value == dt.time(14, 32)
        assert result.confidence == pytest.approx(0.8)

    def test_with_seconds(self) -> None:
        result = self.extractor.extract_time("Time 09:05:47")
        assert result.value == dt.time(9, 5, 47)

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("12:45 PM", dt.time(12, 45)),
            ("12:10 am", dt.time(0, 10)),
            ("3:07 p.m.", dt.time(15, 7)),
            ("11:59PM", dt.time(23, 59)),
        ],
    )
    def test_twelve_hour(self, text: str, expected: dt.time) -> None:
        assert self.extractor.extract_time(text).value == expected

    def test_first_time_in_text_wins(self) -> None:
        result = self.extractor.extract_time("Opened 08:00\nClosed 22:00")
        assert result.value == dt.time(8, 0)

    def test_invalid_times_skipped(self) -> None:
        result = self.extractor.extract_time("25:99\n10:15")
        assert result.value == dt.time(10, 15)

    def test_no_time(self) -> None:
        result = self.extractor.extract_time("no clock here")
        assert result.value is None
        assert result.confidence == 0.0


class TestDateTimeCombined:
    """Tests for the combined date and time confidence."""

    def setup_method(self) -> None:
        self.extractor = DateTimeExtractor(clock=lambda: dt.date(2025, 10, 20))

    def test_both_present_averages(self) -> None:
        match = self.extractor.extract_date_time("Date: 17/10/2025 14:32")
        assert match.date.value == dt.date(2025, 10, 17)
        assert match.time.value == dt.time(14, 32)
        assert match.confidence == pytest.approx((0.95 + 0.8) / 2)

    def test_date_only(self) -> None:
        match = self.extractor.extract_date_time("Date: 17/10/2025")
        assert match.time.value is None
        assert match.confidence == pytest.approx(0.95 * 0.8)

    def test_time_only(self) -> None:
        match = self.extractor.extract_date_time("Served at 19:20")
        assert match.date.value is None
        assert match.confidence == pytest.approx(0.8 * 0.5)

    def test_neither(self) -> None:
        match = self.extractor.extract_date_time("THANK YOU")
        assert match.confidence == 0.0
