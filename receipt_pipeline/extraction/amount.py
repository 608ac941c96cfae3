"""Total amount extraction from recognized receipt text.

Candidates come from the ordered amount pattern table. The total is the
candidate found nearest to a TOTAL-family keyword, weighted by line
distance and keyword family; without any keyword anchor the largest
candidate is assumed to be the total.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from receipt_pipeline.utils.config import AmountConfig
from receipt_pipeline.utils.logger import get_logger

from .models import ExtractedField
from .patterns import (
    AMOUNT_EXCLUDE_REGEX,
    AMOUNT_KEYWORD_FAMILIES,
    AMOUNT_PATTERNS,
    DATE_PATTERNS,
)

logger = get_logger(__name__)

_DECIMAL_TAIL = re.compile(r"[.,](\d{1,2})$")
_DECIMAL_AFTER = re.compile(r"[.,]\d")


@dataclass
class AmountMatch:
    """An amount recognised at a specific place in the text."""

    value: Decimal
    line: int
    column: int


@dataclass
class ScoredAmount:
    """An amount found near a keyword, with its anchor score."""

    match: AmountMatch
    score: float
    family: str

    def sort_key(self) -> tuple[float, int, int]:
        # Highest score, then earliest in text.
        return (-self.score, self.match.line, self.match.column)


def normalize_amount(
    raw: str,
    minimum: Decimal = Decimal("0.01"),
    maximum: Decimal = Decimal("999999.99"),
) -> Decimal | None:
    """Parse a matched amount string into a :class:`Decimal`.

    A trailing comma or period followed by one or two digits is the
    decimal marker; every other comma or space is a thousands separator.

    Args:
        raw: Amount text as matched, e.g. ``"1,234.56"`` or ``"12,50"``.
        minimum: Smallest accepted value.
        maximum: Largest accepted value.

    Returns:
        The parsed value, or ``None`` if it is malformed or out of range.
    """
    compact = re.sub(r"\s", "", raw)
    tail = _DECIMAL_TAIL.search(compact)
    if tail:
        integer = compact[: tail.start()].replace(",", "").replace(".", "")
        digits = f"{integer or '0'}.{tail.group(1)}"
    else:
        digits = compact.replace(",", "")

    if not re.fullmatch(r"\d+(?:\.\d+)?", digits):
        return None
    try:
        value = Decimal(digits)
    except InvalidOperation:
        return None
    if value < minimum or value > maximum:
        return None
    return value


class AmountExtractor:
    """Keyword-anchored, confidence-scored amount extractor.

    Args:
        config: Scoring constants; defaults are used when omitted.
    """

    def __init__(self, config: AmountConfig | None = None) -> None:
        self.config = config or AmountConfig()
        self._minimum = Decimal(self.config.min_amount)
        self._maximum = Decimal(self.config.max_amount)
        self._boosts = {
            "grand": self.config.grand_boost,
            "final": self.config.final_boost,
            "subtotal": self.config.subtotal_boost,
            "total": self.config.default_boost,
        }

    def extract(self, text: str) -> ExtractedField[Decimal]:
        """Extract the most likely total amount.

        Lines with tax, tip, or change keywords cannot anchor the search
        unless they name a subtotal, which anchors with a reduced boost.

        Args:
            text: Recognized receipt text.

        Returns:
            Suggested amount with confidence; ``(None, 0.0)`` if none found.
        """
        if not text or not text.strip():
            return ExtractedField()

        lines = text.splitlines()
        matches = self._scan_lines(lines)
        pool = _distinct_values(m for line in matches for m in line)
        if not pool:
            return ExtractedField()

        best = self._best_anchored(lines, matches, pool, excluded=None)
        if best is not None:
            logger.debug(
                "Amount %s anchored by %s keyword", best.match.value, best.family
            )
            return ExtractedField(best.match.value, self.config.keyword_confidence)

        largest = max(pool)
        logger.debug("No keyword anchor, falling back to largest amount %s", largest)
        return ExtractedField(largest, self.config.fallback_confidence)

    def extract_enhanced(self, text: str) -> ExtractedField[Decimal]:
        """Extract the total, ignoring tax, tip, subtotal, and change lines.

        Excluded lines never anchor a search, are never searched, and the
        matches printed on them leave the candidate pool. A value that also
        appears on a kept line stays a candidate. If nothing is left, the
        basic strategy is used instead.

        Args:
            text: Recognized receipt text.

        Returns:
            Suggested amount with confidence; ``(None, 0.0)`` if none found.
        """
        if not text or not text.strip():
            return ExtractedField()

        lines = text.splitlines()
        matches = self._scan_lines(lines)
        pool = _distinct_values(m for line in matches for m in line)
        if not pool:
            return ExtractedField()

        excluded = {
            index
            for index, line in enumerate(lines)
            if AMOUNT_EXCLUDE_REGEX.search(line.upper())
        }
        kept_values = {
            m.value
            for index, found in enumerate(matches)
            if index not in excluded
            for m in found
        }
        filtered = [value for value in pool if value in kept_values]

        if not filtered:
            logger.debug("Every amount sits on an excluded line, using basic strategy")
            return self.extract(text)

        best = self._best_anchored(lines, matches, filtered, excluded=excluded)
        if best is not None:
            return ExtractedField(
                best.match.value, self.config.enhanced_keyword_confidence
            )
        return ExtractedField(max(filtered), self.config.enhanced_fallback_confidence)

    def find_all_amounts(self, text: str) -> list[Decimal]:
        """Return every distinct amount in the text, in order of appearance."""
        matches = self._scan_lines(text.splitlines())
        return _distinct_values(m for line in matches for m in line)

    def _scan_lines(self, lines: list[str]) -> list[list[AmountMatch]]:
        """Run the pattern table over each line, keeping valid matches.

        Numbers inside a recognised date, such as the year of
        ``17 Oct 2025``, are not amounts.
        """
        per_line: list[list[AmountMatch]] = []
        for line_index, line in enumerate(lines):
            dates = _date_spans(line)
            found: list[AmountMatch] = []
            for entry in AMOUNT_PATTERNS:
                for match in entry.regex.finditer(line):
                    start, end = match.span(entry.group)
                    if any(start < d_end and end > d_start for d_start, d_end in dates):
                        continue
                    value = normalize_amount(
                        match.group(entry.group), self._minimum, self._maximum
                    )
                    if value is None:
                        continue
                    found.append(
                        AmountMatch(value=value, line=line_index, column=start)
                    )
            per_line.append(found)
        return per_line

    def _best_anchored(
        self,
        lines: list[str],
        matches: list[list[AmountMatch]],
        pool: list[Decimal],
        excluded: set[int] | None,
    ) -> ScoredAmount | None:
        """Score known amounts near keyword lines and return the best one.

        ``excluded`` holds the removed line indexes in enhanced mode and is
        ``None`` in basic mode.
        """
        known = set(pool)
        enhanced = excluded is not None
        excluded = excluded or set()
        scored: list[ScoredAmount] = []

        for index, line in enumerate(lines):
            upper = line.upper()
            family = _keyword_family(upper)
            if family is None:
                continue
            if index in excluded:
                continue
            if (
                not enhanced
                and family != "subtotal"
                and AMOUNT_EXCLUDE_REGEX.search(upper)
            ):
                continue

            boost = self._boosts[family]
            for offset, proximity in enumerate(self.config.proximity_weights):
                target = index + offset
                if target >= len(lines):
                    break
                if target in excluded:
                    continue
                for match in matches[target]:
                    if match.value in known:
                        scored.append(
                            ScoredAmount(
                                match=match, score=proximity * boost, family=family
                            )
                        )

        if not scored:
            return None
        return min(scored, key=ScoredAmount.sort_key)


def _keyword_family(upper_line: str) -> str | None:
    for family, regex in AMOUNT_KEYWORD_FAMILIES:
        if regex.search(upper_line):
            return family
    return None


def _date_spans(line: str) -> list[tuple[int, int]]:
    spans = []
    for entry in DATE_PATTERNS:
        for match in entry.regex.finditer(line):
            # "1 Decaf 12.50" is an item line, not a two-digit-year date.
            if _DECIMAL_AFTER.match(line, match.end()):
                continue
            spans.append(match.span())
    return spans


def _distinct_values(matches: Iterable[AmountMatch]) -> list[Decimal]:
    seen: set[Decimal] = set()
    values: list[Decimal] = []
    for match in matches:
        if match.value not in seen:
            seen.add(match.value)
            values.append(match.value)
    return values
