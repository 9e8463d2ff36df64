"""
Tests for the in-memory item bank.

Tests cover:
- Lookup, exclusion filtering and membership
- Duplicate id rejection
- Loading and validating serialized records (dicts and JSON files)
"""

import json

import pytest
from pydantic import ValidationError

from haven_cat.core.cat.item_bank import InMemoryItemBank, ItemRecord


RECORD = {
    "id": "q-101",
    "discrimination": 1.2,
    "difficulty": -0.4,
    "guessing": 0.2,
    "category_id": "pharmacology",
    "item_type": "multiple_choice",
    "answer_key": "B",
}


class TestInMemoryItemBank:
    def test_get_item(self, item_bank, bank_items):
        assert item_bank.get_item(bank_items[3].id) == bank_items[3]
        assert item_bank.get_item("missing") is None

    def test_len_and_contains(self, item_bank, bank_items):
        assert len(item_bank) == len(bank_items)
        assert bank_items[0].id in item_bank
        assert "missing" not in item_bank

    def test_available_items_excludes_answered(self, item_bank, bank_items):
        excluded = {bank_items[0].id, bank_items[1].id}
        available = item_bank.get_available_items(excluded)
        assert len(available) == len(bank_items) - 2
        assert not excluded & {item.id for item in available}

    def test_duplicate_ids_rejected(self, item_factory):
        with pytest.raises(ValueError, match="Duplicate item id"):
            InMemoryItemBank([item_factory("dup"), item_factory("dup")])

    def test_empty_bank(self):
        bank = InMemoryItemBank([])
        assert len(bank) == 0
        assert bank.get_available_items(set()) == []


class TestItemRecords:
    def test_record_to_bank_item(self):
        item = ItemRecord(**RECORD).to_bank_item()
        assert item.id == "q-101"
        assert item.params.discrimination == 1.2
        assert item.params.difficulty == -0.4
        assert item.params.guessing == 0.2
        assert item.answer_key == "B"

    def test_defaults(self):
        record = ItemRecord(
            id="q-1", discrimination=1.0, difficulty=0.0, category_id="safety"
        )
        assert record.guessing == 0.0
        assert record.item_type == "multiple_choice"

    def test_from_records(self):
        bank = InMemoryItemBank.from_records([RECORD, {**RECORD, "id": "q-102"}])
        assert len(bank) == 2
        assert bank.get_item("q-102").category_id == "pharmacology"

    @pytest.mark.parametrize(
        "override",
        [
            {"discrimination": 0.0},
            {"discrimination": 3.5},
            {"difficulty": -4.5},
            {"guessing": 0.5},
            {"category_id": ""},
        ],
    )
    def test_out_of_range_records_rejected(self, override):
        with pytest.raises(ValidationError):
            InMemoryItemBank.from_records([{**RECORD, **override}])

    def test_missing_field_rejected(self):
        record = {k: v for k, v in RECORD.items() if k != "difficulty"}
        with pytest.raises(ValidationError):
            InMemoryItemBank.from_records([record])

    def test_from_json_file(self, tmp_path):
        path = tmp_path / "bank.json"
        path.write_text(json.dumps([RECORD, {**RECORD, "id": "q-102"}]))

        bank = InMemoryItemBank.from_json_file(path)

        assert len(bank) == 2
        assert "q-101" in bank
