"""
Pytest configuration and shared fixtures for testing.
"""
import random
from typing import Any, Callable, List, Optional

import pytest
from fastapi.testclient import TestClient

from haven_cat.core.cat.engine import CATSessionManager
from haven_cat.core.cat.exposure_control import ExposureMonitor
from haven_cat.core.cat.item_bank import InMemoryItemBank
from haven_cat.core.cat.models import BankItem, ItemParameters
from haven_cat.core.cat.session_store import InMemorySessionStore
from haven_cat.core.config import Settings


def make_item(
    item_id: str,
    difficulty: float = 0.0,
    discrimination: float = 1.0,
    guessing: float = 0.0,
    category_id: str = "pharmacology",
    item_type: str = "multiple_choice",
    answer_key: Any = "A",
) -> BankItem:
    """Build a multiple-choice bank item whose correct answer is "A"."""
    return BankItem(
        id=item_id,
        params=ItemParameters(
            discrimination=discrimination, difficulty=difficulty, guessing=guessing
        ),
        category_id=category_id,
        item_type=item_type,
        answer_key=answer_key,
    )


CATEGORIES = ["pharmacology", "safety", "physiological", "psychosocial"]


def build_items(count: int = 40) -> List[BankItem]:
    """Items with difficulties spread over [-2, 2] across four categories."""
    items = []
    for i in range(count):
        difficulty = -2.0 + 4.0 * i / max(count - 1, 1)
        items.append(
            make_item(
                f"item-{i:03d}",
                difficulty=round(difficulty, 3),
                discrimination=0.8 + (i % 5) * 0.2,
                guessing=0.2 if i % 3 == 0 else 0.0,
                category_id=CATEGORIES[i % len(CATEGORIES)],
            )
        )
    return items


@pytest.fixture
def item_factory() -> Callable[..., BankItem]:
    return make_item


@pytest.fixture
def bank_items() -> List[BankItem]:
    return build_items()


@pytest.fixture
def item_bank(bank_items: List[BankItem]) -> InMemoryItemBank:
    return InMemoryItemBank(bank_items)


@pytest.fixture
def cat_settings() -> Settings:
    """Short-test settings so sessions finish within a few responses."""
    return Settings(
        CAT_MIN_QUESTIONS=3,
        CAT_MAX_QUESTIONS=5,
        CAT_TIME_LIMIT_SECONDS=3600,
        CAT_PASSING_THETA=0.0,
        CAT_SE_THRESHOLD=0.30,
        CAT_ESTIMATION_METHOD="eap",
    )


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


def build_manager(
    item_bank: InMemoryItemBank,
    config: Settings,
    session_store: Optional[InMemorySessionStore] = None,
    seed: int = 42,
    exposure_monitor: Optional[ExposureMonitor] = None,
) -> CATSessionManager:
    return CATSessionManager(
        item_bank=item_bank,
        session_store=session_store or InMemorySessionStore(),
        rng=random.Random(seed),
        config=config,
        exposure_monitor=exposure_monitor,
    )


@pytest.fixture
def manager(
    item_bank: InMemoryItemBank,
    cat_settings: Settings,
    session_store: InMemorySessionStore,
) -> CATSessionManager:
    """CATSessionManager with a seeded rng and short-test settings."""
    return build_manager(item_bank, cat_settings, session_store)


@pytest.fixture
def client(manager: CATSessionManager):
    """TestClient for an application wired to the test manager."""
    from haven_cat.main import create_application

    app = create_application(session_manager=manager)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def manager_factory(item_bank: InMemoryItemBank, cat_settings: Settings):
    """Build managers with custom banks, settings, stores or seeds."""

    def _factory(
        items: Optional[List[BankItem]] = None,
        config: Optional[Settings] = None,
        session_store: Optional[InMemorySessionStore] = None,
        seed: int = 42,
        exposure_monitor: Optional[ExposureMonitor] = None,
    ) -> CATSessionManager:
        bank = InMemoryItemBank(items) if items is not None else item_bank
        return build_manager(
            bank,
            config or cat_settings,
            session_store=session_store,
            seed=seed,
            exposure_monitor=exposure_monitor,
        )

    return _factory
