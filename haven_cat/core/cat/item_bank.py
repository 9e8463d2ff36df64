"""
Item bank boundary for the CAT engine.

The engine consumes items through the ItemBank protocol. InMemoryItemBank is
an immutable snapshot of calibrated items, safe for concurrent reads without
locking; it is loaded from JSON records such as::

    {
        "id": "q-101",
        "discrimination": 1.2,
        "difficulty": -0.4,
        "guessing": 0.2,
        "category_id": "pharmacology",
        "item_type": "multiple_choice",
        "answer_key": "B"
    }
"""

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, AbstractSet, Dict, Iterable, List, Optional, Protocol, Union

from pydantic import BaseModel, Field, TypeAdapter

from haven_cat.core.cat.models import (
    DIFFICULTY_RANGE,
    MAX_DISCRIMINATION,
    MAX_GUESSING,
    BankItem,
    ItemParameters,
)

logger = logging.getLogger(__name__)


class ItemBank(Protocol):
    """Read-only access to calibrated items."""

    def get_available_items(self, excluding: AbstractSet[str]) -> List[BankItem]:
        ...

    def get_item(self, item_id: str) -> Optional[BankItem]:
        ...


class ItemRecord(BaseModel):
    """Serialized form of a calibrated item."""

    id: str = Field(..., min_length=1, description="Unique item identifier")
    discrimination: float = Field(
        ..., gt=0.0, le=MAX_DISCRIMINATION, description="IRT discrimination (a)"
    )
    difficulty: float = Field(
        ...,
        ge=DIFFICULTY_RANGE[0],
        le=DIFFICULTY_RANGE[1],
        description="IRT difficulty (b)",
    )
    guessing: float = Field(
        default=0.0, ge=0.0, le=MAX_GUESSING, description="IRT guessing (c)"
    )
    category_id: str = Field(..., min_length=1, description="Content category")
    item_type: str = Field(default="multiple_choice", description="Grading item type")
    answer_key: Any = Field(default=None, description="Correct answer payload")

    def to_bank_item(self) -> BankItem:
        return BankItem(
            id=self.id,
            params=ItemParameters(
                discrimination=self.discrimination,
                difficulty=self.difficulty,
                guessing=self.guessing,
            ),
            category_id=self.category_id,
            item_type=self.item_type,
            answer_key=self.answer_key,
        )


_RECORDS_ADAPTER = TypeAdapter(List[ItemRecord])


class InMemoryItemBank:
    """Immutable in-memory item bank."""

    def __init__(self, items: Iterable[BankItem]):
        """
        Args:
            items: Calibrated items. Ids must be unique.

        Raises:
            ValueError: If two items share an id.
        """
        by_id: Dict[str, BankItem] = {}
        for item in items:
            if item.id in by_id:
                raise ValueError(f"Duplicate item id in item bank: {item.id}")
            by_id[item.id] = item
        self._items = MappingProxyType(by_id)

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]]) -> "InMemoryItemBank":
        """
        Build a bank from serialized item records.

        Raises:
            pydantic.ValidationError: If a record is missing fields or has
                out-of-range parameters.
        """
        parsed = _RECORDS_ADAPTER.validate_python(list(records))
        return cls(record.to_bank_item() for record in parsed)

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> "InMemoryItemBank":
        """Load a bank from a JSON file holding a list of item records."""
        with open(path, encoding="utf-8") as f:
            records = json.load(f)
        bank = cls.from_records(records)
        logger.info(f"Loaded {len(bank)} calibrated items from {path}")
        return bank

    def get_available_items(self, excluding: AbstractSet[str]) -> List[BankItem]:
        """All items whose id is not in ``excluding``."""
        return [item for item_id, item in self._items.items() if item_id not in excluding]

    def get_item(self, item_id: str) -> Optional[BankItem]:
        return self._items.get(item_id)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items
