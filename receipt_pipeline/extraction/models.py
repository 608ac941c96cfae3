"""Value types produced by the receipt field extractors."""

import datetime as dt
import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Generic, TypeVar

T = TypeVar("T")


def clamp_confidence(value: float) -> float:
    """Clamp a confidence score into [0.0, 1.0]; NaN becomes 0.0."""
    if math.isnan(value):
        return 0.0
    return min(max(float(value), 0.0), 1.0)


@dataclass
class ExtractedField(Generic[T]):
    """A suggested field value with its confidence.

    Confidence is always defined: it is forced to 0.0 when the value is
    missing and clamped into [0.0, 1.0] otherwise.
    """

    value: T | None = None
    confidence: float = 0.0

    def __post_init__(self) -> None:
        if self.value is None:
            self.confidence = 0.0
        else:
            self.confidence = clamp_confidence(self.confidence)

    @property
    def found(self) -> bool:
        return self.value is not None


@dataclass
class MerchantCandidate:
    """A known merchant name and how closely it matched a query."""

    name: str
    similarity: float

    def __post_init__(self) -> None:
        self.similarity = clamp_confidence(self.similarity)


@dataclass
class ExtractionResult:
    """Best-effort field suggestions for one receipt.

    Nothing here is committed anywhere; callers copy accepted values into
    their own transaction records.
    """

    amount: ExtractedField[Decimal] = field(default_factory=ExtractedField)
    date: ExtractedField[dt.date] = field(default_factory=ExtractedField)
    time: ExtractedField[dt.time] = field(default_factory=ExtractedField)
    merchant: ExtractedField[str] = field(default_factory=ExtractedField)
    date_time_confidence: float = 0.0
    merchant_suggestions: list[MerchantCandidate] = field(default_factory=list)
    raw_text: str = ""
    rotation: int = 0
    error: str | None = None
    timings: dict[str, float] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def overall_confidence(self) -> float:
        """Mean of the non-zero amount, date, and merchant confidences."""
        scores = [
            f.confidence
            for f in (self.amount, self.date, self.merchant)
            if f.confidence > 0.0
        ]
        return sum(scores) / len(scores) if scores else 0.0

    @classmethod
    def failed(cls, error: str, raw_text: str = "") -> "ExtractionResult":
        return cls(raw_text=raw_text, error=error)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-friendly primitives."""
        return {
            "success": self.success,
            "error": self.error,
            "rotation": self.rotation,
            "overall_confidence": round(self.overall_confidence, 3),
            "amount": _field_dict(self.amount, str),
            "date": _field_dict(self.date, dt.date.isoformat),
            "time": _field_dict(self.time, dt.time.isoformat),
            "date_time_confidence": round(self.date_time_confidence, 3),
            "merchant": _field_dict(self.merchant, str),
            "merchant_suggestions": [
                {"name": c.name, "similarity": round(c.similarity, 3)}
                for c in self.merchant_suggestions
            ],
            "raw_text": self.raw_text,
            "timings_ms": {k: round(v, 1) for k, v in self.timings.items()},
        }


def _field_dict(extracted: ExtractedField[Any], render: Any) -> dict[str, Any]:
    value = render(extracted.value) if extracted.value is not None else None
    return {"value": value, "confidence": round(extracted.confidence, 3)}
