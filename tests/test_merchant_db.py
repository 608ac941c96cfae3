"""Tests for the merchant repository and fuzzy matcher."""

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest
import yaml

from receipt_pipeline.extraction.merchant_db import (
    DEFAULT_MERCHANTS,
    InMemoryMerchantRepository,
    MerchantDatabase,
    clean_name,
    similarity,
)


class TestSimilarity:
    """Tests for the normalized edit-distance similarity."""

    def test_apostrophe_variant_is_close(self) -> None:
        assert similarity("McDonalds", "McDonald's") == pytest.approx(0.9)

    def test_case_insensitive_identity(self) -> None:
        assert similarity("IKEA", "ikea") == 1.0

    def test_unrelated_strings(self) -> None:
        assert similarity("abc", "xyz") == 0.0
        assert similarity("Zara", "Microsoft") < 0.2

    def test_empty_string(self) -> None:
        assert similarity("", "Shell") == 0.0
        assert similarity("Shell", "") == 0.0

    def test_symmetric(self) -> None:
        assert similarity("Hilten", "Hilton") == similarity("Hilton", "Hilten")


class TestCleanName:
    """Tests for stripping franchise decorations from names."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("STARBUCKS #1234", "STARBUCKS"),
            ("Subway 00451", "Subway"),
            ("McDonald's Store 12", "McDonald's"),
            ("Shell Location 4", "Shell"),
            ("Aldi  Branch 3   North", "Aldi North"),
            ("Tesco Store 1234", "Tesco"),
            ("Shell Branch 0042", "Shell"),
            ("  Costco  ", "Costco"),
        ],
    )
    def test_clean(self, raw: str, expected: str) -> None:
        assert clean_name(raw) == expected


class TestInMemoryMerchantRepository:
    """Tests for the copy-on-write merchant name store."""

    def test_default_seed(self) -> None:
        repo = InMemoryMerchantRepository()
        assert repo.all() == frozenset(DEFAULT_MERCHANTS)

    def test_names_trimmed_and_blanks_ignored(self) -> None:
        repo = InMemoryMerchantRepository(["  Tesco ", "", "   ", "Boots"])
        assert repo.all() == frozenset({"Tesco", "Boots"})

    def test_add_and_find_case_insensitive(self) -> None:
        repo = InMemoryMerchantRepository([])
        repo.add(" Greggs ")
        assert repo.find("GREGGS") == "Greggs"
        assert repo.find("Pret") is None

    def test_add_blank_ignored(self) -> None:
        repo = InMemoryMerchantRepository([])
        repo.add("   ")
        assert repo.all() == frozenset()

    def test_snapshot_not_affected_by_later_writes(self) -> None:
        repo = InMemoryMerchantRepository(["Aldi"])
        snapshot = repo.all()
        repo.add("Lidl")
        assert snapshot == frozenset({"Aldi"})
        assert repo.all() == frozenset({"Aldi", "Lidl"})

    def test_concurrent_adds_are_not_lost(self) -> None:
        repo = InMemoryMerchantRepository([])

        def add_batch(worker: int) -> None:
            for i in range(50):
                repo.add(f"Shop {worker}-{i}")

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(add_batch, range(8)))

        assert len(repo.all()) == 400

    def test_from_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "merchants.yaml"
        with open(path, "w") as f:
            yaml.dump({"merchants": ["Tesco", "Sainsbury's"]}, f)
        repo = InMemoryMerchantRepository.from_yaml(path)
        assert repo.all() == frozenset({"Tesco", "Sainsbury's"})

    def test_from_yaml_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        repo = InMemoryMerchantRepository.from_yaml(tmp_path / "missing.yaml")
        assert repo.all() == frozenset(DEFAULT_MERCHANTS)

    def test_from_yaml_rejects_mapping_of_names(self, tmp_path: Path) -> None:
        path = tmp_path / "merchants.yaml"
        path.write_text("merchants:\n  tesco: 1\n")
        with pytest.raises(ValueError):
            InMemoryMerchantRepository.from_yaml(path)

    def test_shipped_list_matches_defaults(self, config_dir: Path) -> None:
        repo = InMemoryMerchantRepository.from_yaml(config_dir / "merchants.yaml")
        assert repo.all() == frozenset(DEFAULT_MERCHANTS)


class TestMerchantDatabase:
    """Tests for validation and ranking against known merchants."""

    def test_validate_corrects_spelling(self, merchant_db: MerchantDatabase) -> None:
        match = merchant_db.validate("McDonalds")
        assert match is not None
        assert match.name == "McDonald's"
        assert match.similarity >= 0.7

    def test_validate_strips_long_store_keyword(
        self, merchant_db: MerchantDatabase
    ) -> None:
        match = merchant_db.validate("Starbucks Store 1234")
        assert match is not None
        assert match.name == "Starbucks"
        assert match.similarity == 1.0

    def test_validate_strips_store_number(self, merchant_db: MerchantDatabase) -> None:
        match = merchant_db.validate("STARBUCKS #0042")
        assert match is not None
        assert match.name == "Starbucks"
        assert match.similarity == 1.0

    def test_validate_rejects_unknown(self, merchant_db: MerchantDatabase) -> None:
        assert merchant_db.validate("Completely Different Shop") is None

    def test_validate_blank(self, merchant_db: MerchantDatabase) -> None:
        assert merchant_db.validate("   ") is None

    def test_find_matches_best_first(self, merchant_db: MerchantDatabase) -> None:
        matches = merchant_db.find_matches("Hilten")
        assert matches[0].name == "Hilton"
        assert all(m.similarity >= 0.6 for m in matches)

    def test_find_matches_limit(self, merchant_db: MerchantDatabase) -> None:
        matches = merchant_db.find_matches("a", threshold=0.0, max_results=5)
        assert len(matches) == 5
        scores = [m.similarity for m in matches]
        assert scores == sorted(scores, reverse=True)

    def test_ties_are_alphabetical(self) -> None:
        db = MerchantDatabase(InMemoryMerchantRepository(["Lake", "Bake", "Cake"]))
        matches = db.find_matches("Make")
        assert [m.name for m in matches] == ["Bake", "Cake", "Lake"]

    def test_add_merchant_and_exists(self) -> None:
        db = MerchantDatabase(InMemoryMerchantRepository([]))
        assert not db.exists("Tesco")
        db.add_merchant("Tesco")
        assert db.exists("tesco")
        assert db.all_merchants() == frozenset({"Tesco"})

    def test_added_merchant_is_matched(self) -> None:
        db = MerchantDatabase(InMemoryMerchantRepository([]))
        db.add_merchant("Waitrose")
        match = db.validate("WAITR0SE")
        assert match is not None
        assert match.name == "Waitrose"

    def test_methods_delegate_to_helpers(self, merchant_db: MerchantDatabase) -> None:
        assert merchant_db.clean_name("Zara #12") == "Zara"
        assert merchant_db.similarity("Zara", "zara") == 1.0
