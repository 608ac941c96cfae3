"""Merchant name extraction from the top of a receipt.

Business names are printed in the first few lines. Each line gets a
heuristic score that rewards company-like text and penalizes headers,
addresses, and contact details; the best line is the merchant.
"""

from dataclasses import dataclass

from receipt_pipeline.utils.config import MerchantConfig
from receipt_pipeline.utils.logger import get_logger

from .merchant_db import MerchantDatabase
from .models import ExtractedField, MerchantCandidate, clamp_confidence
from .patterns import ADDRESS_REGEX, COMPANY_REGEX, CONTACT_REGEX, HEADER_REGEX

logger = get_logger(__name__)


@dataclass
class ScoredLine:
    """A candidate merchant line and its heuristic score."""

    text: str
    score: float
    line: int


class MerchantExtractor:
    """Line-scoring merchant extractor with database validation.

    Args:
        database: Known merchant names used by enhanced and suggestion
            modes; the built-in list when omitted.
        config: Line scoring weights and thresholds.
    """

    def __init__(
        self,
        database: MerchantDatabase | None = None,
        config: MerchantConfig | None = None,
    ) -> None:
        self.database = database or MerchantDatabase()
        self.config = config or MerchantConfig()

    def extract(self, text: str) -> ExtractedField[str]:
        """Pick the most business-name-like line among the first lines.

        Args:
            text: Recognized receipt text.

        Returns:
            The trimmed line with its score as confidence, or
            ``(None, 0.0)`` when no line qualifies.
        """
        best = self._best_line(text)
        if best is None:
            return ExtractedField()
        logger.debug(
            "Merchant line %d scored %.2f: %r", best.line, best.score, best.text
        )
        return ExtractedField(best.text, best.score)

    def extract_enhanced(self, text: str) -> ExtractedField[str]:
        """Extract the merchant line and correct it against known merchants.

        A database match at or above the validation threshold replaces the
        line with the canonical name and averages the two confidences.
        """
        extracted = self.extract(text)
        if not extracted.found:
            return extracted

        match = self.database.validate(
            extracted.value, threshold=self.config.validation_threshold
        )
        if match is None:
            return extracted

        logger.debug("Merchant %r validated as %r", extracted.value, match.name)
        return ExtractedField(
            match.name, (extracted.confidence + match.similarity) / 2
        )

    def suggestions(
        self, text: str, max_suggestions: int | None = None
    ) -> list[MerchantCandidate]:
        """Rank known merchants resembling the extracted merchant line.

        Args:
            text: Recognized receipt text.
            max_suggestions: Maximum candidates; ``max_suggestions`` from
                the configuration when omitted. Zero asks for none.

        Returns:
            Database candidates best first. When none pass the threshold the
            raw line is offered alone; an empty list when no line qualifies.
        """
        if max_suggestions is None:
            max_suggestions = self.config.max_suggestions
        extracted = self.extract(text)
        if not extracted.found or max_suggestions <= 0:
            return []

        matches = self.database.find_matches(
            extracted.value,
            threshold=self.config.suggestion_threshold,
            max_results=max_suggestions,
        )
        if matches:
            return matches
        return [
            MerchantCandidate(
                extracted.value, self.config.unmatched_suggestion_confidence
            )
        ]

    def score_line(self, line: str) -> float:
        """Score how much a single trimmed line looks like a business name."""
        cfg = self.config
        upper = line.upper()
        score = cfg.base_score

        if HEADER_REGEX.search(upper):
            score -= cfg.header_penalty
        if COMPANY_REGEX.search(upper):
            score += cfg.company_bonus
        if cfg.min_good_length <= len(line) <= cfg.max_good_length:
            score += cfg.length_bonus
        if len(line) > cfg.max_good_length:
            score -= cfg.long_line_penalty
        if " " in line and any(ch.isalpha() for ch in line):
            score += cfg.letters_and_space_bonus

        digits = sum(ch.isdigit() for ch in line)
        if line and digits / len(line) > cfg.digit_ratio_limit:
            score -= cfg.digit_penalty
        if ADDRESS_REGEX.search(upper):
            score -= cfg.address_penalty
        if CONTACT_REGEX.search(upper):
            score -= cfg.contact_penalty

        return clamp_confidence(score)

    def _best_line(self, text: str) -> ScoredLine | None:
        if not text or not text.strip():
            return None

        best: ScoredLine | None = None
        for index, raw in enumerate(text.splitlines()[: self.config.max_lines]):
            line = raw.strip()
            if len(line) < self.config.min_line_length:
                continue
            if not any(ch.isalpha() for ch in line):
                continue
            score = self.score_line(line)
            # Strict comparison keeps the earliest line on ties.
            if score > 0.0 and (best is None or score > best.score):
                best = ScoredLine(text=line, score=score, line=index)
        return best
