"""Known merchant names and fuzzy matching against them.

Recognized merchant lines are often one or two characters off
("McDonalds", "STARBUCKS #1234"). Names are cleaned of franchise
decorations and compared with a normalized Levenshtein similarity.
"""

import re
import threading
from pathlib import Path
from typing import Protocol

import yaml
from rapidfuzz.distance import Levenshtein

from receipt_pipeline.utils.logger import get_logger

from .models import MerchantCandidate
from .patterns import FRANCHISE_PATTERNS

logger = get_logger(__name__)

DEFAULT_MERCHANTS: tuple[str, ...] = (
    # Fast food
    "McDonald's",
    "KFC",
    "Subway",
    "Burger King",
    "Pizza Hut",
    "Domino's",
    # Coffee
    "Starbucks",
    # Retail
    "IKEA",
    "H&M",
    "Zara",
    "Uniqlo",
    # Supermarkets
    "Aldi",
    "Lidl",
    "Costco",
    "Carrefour",
    # Fuel
    "Shell",
    "BP",
    "Esso",
    "Total",
    "Chevron",
    # Hotels
    "Marriott",
    "Hilton",
    "Holiday Inn",
    "Ibis",
    "Novotel",
    # Online services
    "Amazon",
    "Apple",
    "Google",
    "Microsoft",
    "Netflix",
    "Spotify",
    "Uber",
    "PayPal",
)


class MerchantRepository(Protocol):
    """Storage for the set of known merchant names."""

    def add(self, name: str) -> None: ...

    def find(self, name: str) -> str | None: ...

    def all(self) -> frozenset[str]: ...


class InMemoryMerchantRepository:
    """Thread-safe in-memory merchant name set.

    Readers use the current immutable snapshot without locking. Writers
    serialize on a lock and publish a new snapshot, so a read never sees a
    half-applied write.

    Args:
        names: Initial names; the global chain list when omitted.
    """

    def __init__(self, names: tuple[str, ...] | list[str] | None = None) -> None:
        seed = DEFAULT_MERCHANTS if names is None else names
        self._lock = threading.Lock()
        self._names: frozenset[str] = frozenset(
            name.strip() for name in seed if name and name.strip()
        )

    @classmethod
    def from_yaml(cls, path: Path) -> "InMemoryMerchantRepository":
        """Load names from a YAML file with a top-level ``merchants`` list.

        A missing file yields the default chain list.

        Args:
            path: Path to the merchants YAML file.

        Returns:
            Repository seeded with the file's names.
        """
        if not path.exists():
            logger.info("No merchants file at %s, using built-in list", path)
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}
        names = data.get("merchants", []) if isinstance(data, dict) else data
        if not isinstance(names, list):
            raise ValueError(f"Expected a list of merchant names in {path}")
        logger.info("Loaded %d merchants from %s", len(names), path)
        return cls([str(name) for name in names])

    def add(self, name: str) -> None:
        cleaned = name.strip()
        if not cleaned:
            return
        with self._lock:
            if cleaned not in self._names:
                self._names = self._names | {cleaned}

    def find(self, name: str) -> str | None:
        """Return the stored spelling of ``name``, compared case-insensitively."""
        wanted = name.strip().lower()
        for known in self._names:
            if known.lower() == wanted:
                return known
        return None

    def all(self) -> frozenset[str]:
        return self._names


def clean_name(name: str) -> str:
    """Strip store numbers and branch markers, then collapse whitespace."""
    cleaned = name.strip()
    for pattern in FRANCHISE_PATTERNS:
        cleaned = pattern.sub("", cleaned).strip()
    return re.sub(r"\s+", " ", cleaned)


def similarity(first: str, second: str) -> float:
    """Case-insensitive similarity in [0, 1] based on edit distance.

    Computed as ``1 - distance / max(len)``; identical strings score 1.0
    and an empty string scores 0.0 against anything else.
    """
    a, b = first.lower(), second.lower()
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    return 1.0 - Levenshtein.distance(a, b) / max(len(a), len(b))


class MerchantDatabase:
    """Fuzzy matcher over an injected merchant repository.

    Args:
        repository: Merchant name storage; the built-in list when omitted.
    """

    def __init__(self, repository: MerchantRepository | None = None) -> None:
        self.repository = repository or InMemoryMerchantRepository()

    def clean_name(self, name: str) -> str:
        return clean_name(name)

    def similarity(self, first: str, second: str) -> float:
        return similarity(first, second)

    def validate(self, name: str, threshold: float = 0.7) -> MerchantCandidate | None:
        """Return the closest known merchant if it is similar enough.

        Args:
            name: Merchant text as recognized.
            threshold: Minimum similarity to accept.

        Returns:
            Canonical name and similarity, or ``None`` when nothing passes.
        """
        matches = self._ranked(name)
        if not matches or matches[0].similarity < threshold:
            return None
        return matches[0]

    def find_matches(
        self, name: str, threshold: float = 0.6, max_results: int = 5
    ) -> list[MerchantCandidate]:
        """Return known merchants similar to ``name``, best first.

        Args:
            name: Merchant text as recognized.
            threshold: Minimum similarity to include.
            max_results: Maximum number of candidates.

        Returns:
            Candidates sorted by similarity, then alphabetically.
        """
        return [m for m in self._ranked(name) if m.similarity >= threshold][
            :max_results
        ]

    def add_merchant(self, name: str) -> None:
        self.repository.add(name)

    def exists(self, name: str) -> bool:
        return self.repository.find(name) is not None

    def all_merchants(self) -> frozenset[str]:
        return self.repository.all()

    def _ranked(self, name: str) -> list[MerchantCandidate]:
        if not name or not name.strip():
            return []
        cleaned = clean_name(name)
        ranked = [
            MerchantCandidate(known, similarity(cleaned, known))
            for known in self.repository.all()
        ]
        ranked.sort(key=lambda c: (-c.similarity, c.name.lower(), c.name))
        return ranked
