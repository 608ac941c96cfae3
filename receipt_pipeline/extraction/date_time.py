"""Transaction date and time extraction from recognized receipt text.

Dates printed on a line carrying a DATE-family keyword win outright.
Otherwise the most recent date inside a validation window ending today is
used. Times are taken from the first clock reading in the text.
"""

import datetime as dt
import re
from collections.abc import Callable
from dataclasses import dataclass, field

from receipt_pipeline.utils.config import DateConfig
from receipt_pipeline.utils.logger import get_logger

from .models import ExtractedField, clamp_confidence
from .patterns import DATE_KEYWORD_REGEX, DATE_PATTERNS, MONTHS, TIME_PATTERNS

logger = get_logger(__name__)

Clock = Callable[[], dt.date]

# Preference among time formats found at the same position.
_TIME_PRIORITY = {"twelve_hour": 0, "seconds": 1, "minutes": 2}


@dataclass
class DateTimeMatch:
    """Date and time suggestions with their combined confidence."""

    date: ExtractedField[dt.date] = field(default_factory=ExtractedField)
    time: ExtractedField[dt.time] = field(default_factory=ExtractedField)
    confidence: float = 0.0


def expand_year(year: int, pivot: int = 50) -> int:
    """Map a two-digit year onto a century: below the pivot is 20xx."""
    if year >= 100:
        return year
    return 2000 + year if year < pivot else 1900 + year


def years_before(day: dt.date, years: int) -> dt.date:
    """Return the same calendar day ``years`` earlier (Feb 29 -> Feb 28)."""
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        return day.replace(year=day.year - years, day=28)


def parse_date_match(
    match: re.Match[str], kind: str, pivot: int = 50
) -> dt.date | None:
    """Build a date from a pattern match, or ``None`` if it is not a real day.

    Args:
        match: Match from one of the date pattern rows.
        kind: Row kind telling which group holds the day, month, and year.
        pivot: Two-digit year pivot.
    """
    groups = match.groups()
    try:
        if kind == "ymd":
            year, month, day = int(groups[0]), int(groups[1]), int(groups[2])
        elif kind == "month_d_y":
            month = MONTHS[groups[0][:3].lower()]
            day, year = int(groups[1]), int(groups[2])
        elif kind in ("d_month_y", "d_month_yy"):
            day = int(groups[0])
            month = MONTHS[groups[1][:3].lower()]
            year = int(groups[2])
        else:
            day, month, year = int(groups[0]), int(groups[1]), int(groups[2])
        if kind in ("dmy_short", "d_month_yy"):
            year = expand_year(year, pivot)
        return dt.date(year, month, day)
    except (KeyError, ValueError):
        return None


class DateTimeExtractor:
    """Keyword-anchored date extractor with a recency fallback.

    Args:
        config: Scoring constants and windows; defaults when omitted.
        clock: Callable returning today's date, for the fallback window.
    """

    def __init__(
        self, config: DateConfig | None = None, clock: Clock | None = None
    ) -> None:
        self.config = config or DateConfig()
        self.clock = clock or dt.date.today

    def extract(
        self, text: str, today: dt.date | None = None
    ) -> ExtractedField[dt.date]:
        """Extract the transaction date with the basic validation window.

        Args:
            text: Recognized receipt text.
            today: Overrides the clock for the fallback window.

        Returns:
            Suggested date with confidence; ``(None, 0.0)`` if none found.
        """
        return self._extract(
            text,
            window_years=self.config.validation_years,
            keyword_confidence=self.config.keyword_confidence,
            fallback_confidence=self.config.fallback_confidence,
            today=today,
        )

    def extract_enhanced(
        self,
        text: str,
        validation_years: int | None = None,
        today: dt.date | None = None,
    ) -> ExtractedField[dt.date]:
        """Extract the transaction date with the wider, configurable window.

        Args:
            text: Recognized receipt text.
            validation_years: Years back that count as plausible; defaults
                to ``enhanced_validation_years``.
            today: Overrides the clock for the fallback window.

        Returns:
            Suggested date with confidence; ``(None, 0.0)`` if none found.
        """
        if validation_years is None:
            validation_years = self.config.enhanced_validation_years
        return self._extract(
            text,
            window_years=validation_years,
            keyword_confidence=self.config.enhanced_keyword_confidence,
            fallback_confidence=self.config.enhanced_fallback_confidence,
            today=today,
        )

    def extract_time(self, text: str) -> ExtractedField[dt.time]:
        """Extract the first valid time of day in the text.

        At the same position a 12-hour reading beats one with seconds,
        which beats plain ``HH:MM``.
        """
        if not text or not text.strip():
            return ExtractedField()

        found: list[tuple[int, int, dt.time]] = []
        for entry in TIME_PATTERNS:
            for match in entry.regex.finditer(text):
                parsed = _parse_time(match, entry.kind)
                if parsed is not None:
                    rank = _TIME_PRIORITY[entry.kind]
                    found.append((match.start(), rank, parsed))

        if not found:
            return ExtractedField()
        _, _, first = min(found, key=lambda item: (item[0], item[1]))
        return ExtractedField(first, self.config.time_confidence)

    def extract_date_time(
        self,
        text: str,
        validation_years: int | None = None,
        today: dt.date | None = None,
    ) -> DateTimeMatch:
        """Extract date and time together and combine their confidences.

        Both present gives their average; a date alone is scaled by
        ``date_only_factor`` and a time alone by ``time_only_factor``.
        """
        date = self.extract_enhanced(
            text, validation_years=validation_years, today=today
        )
        time = self.extract_time(text)
        return DateTimeMatch(
            date=date, time=time, confidence=self.combined_confidence(date, time)
        )

    def combined_confidence(
        self, date: ExtractedField[dt.date], time: ExtractedField[dt.time]
    ) -> float:
        if date.found and time.found:
            combined = (date.confidence + time.confidence) / 2
        elif date.found:
            combined = date.confidence * self.config.date_only_factor
        elif time.found:
            combined = time.confidence * self.config.time_only_factor
        else:
            combined = 0.0
        return clamp_confidence(combined)

    def find_all_dates(self, text: str) -> list[dt.date]:
        """Return every distinct valid calendar date in the text."""
        dates: list[dt.date] = []
        for line in text.splitlines():
            for parsed in self._line_dates(line):
                if parsed not in dates:
                    dates.append(parsed)
        return dates

    def _extract(
        self,
        text: str,
        window_years: int,
        keyword_confidence: float,
        fallback_confidence: float,
        today: dt.date | None,
    ) -> ExtractedField[dt.date]:
        if not text or not text.strip():
            return ExtractedField()

        dates = self.find_all_dates(text)
        if not dates:
            return ExtractedField()

        anchored = self._date_near_keyword(text, dates)
        if anchored is not None:
            logger.debug("Date %s anchored by keyword", anchored)
            return ExtractedField(anchored, keyword_confidence)

        today = today or self.clock()
        earliest = years_before(today, window_years)
        recent = [d for d in dates if earliest <= d <= today]
        if not recent:
            logger.debug(
                "No date within %d years of %s among %d candidates",
                window_years,
                today,
                len(dates),
            )
            return ExtractedField()
        return ExtractedField(max(recent), fallback_confidence)

    def _date_near_keyword(self, text: str, dates: list[dt.date]) -> dt.date | None:
        """Return the first known date printed on the earliest keyword line."""
        for line in text.splitlines():
            if not DATE_KEYWORD_REGEX.search(line.upper()):
                continue
            for parsed in self._line_dates(line):
                if parsed in dates:
                    return parsed
        return None

    def _line_dates(self, line: str) -> list[dt.date]:
        """Valid dates on one line, in pattern priority then position order."""
        found: list[dt.date] = []
        for entry in DATE_PATTERNS:
            for match in entry.regex.finditer(line):
                parsed = parse_date_match(match, entry.kind, self.config.pivot_year)
                if parsed is not None:
                    found.append(parsed)
        return found


def _parse_time(match: re.Match[str], kind: str) -> dt.time | None:
    hour, minute = int(match.group(1)), int(match.group(2))
    second = 0
    if kind == "twelve_hour":
        if not 1 <= hour <= 12:
            return None
        meridiem = match.group(3).upper()
        if meridiem == "P" and hour != 12:
            hour += 12
        elif meridiem == "A" and hour == 12:
            hour = 0
    elif kind == "seconds":
        second = int(match.group(3))
    try:
        return dt.time(hour, minute, second)
    except ValueError:
        return None
