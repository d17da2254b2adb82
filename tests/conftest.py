from datetime import datetime, timedelta, timezone

import pytest

from cadence.domain.models import CardRecord, Stage
from cadence.infrastructure.adapters.memory_store import InMemoryCardStore

NOW = datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture(autouse=True)
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config and databases
    monkeypatch.setenv("HOME", str(home))
    for var in ("CADENCE_BACKEND", "CADENCE_DB_PATH", "CADENCE_NEW_CARDS_PER_DAY"):
        monkeypatch.delenv(var, raising=False)
    return home


def make_new(card_id: str, minutes_ago: int = 0, **kwargs) -> CardRecord:
    """A never-reviewed card created `minutes_ago` before NOW."""
    return CardRecord(
        id=card_id,
        stage=Stage.NEW,
        created_at=NOW - timedelta(minutes=minutes_ago),
        front=kwargs.pop("front", f"Q {card_id}"),
        back=kwargs.pop("back", f"A {card_id}"),
        **kwargs,
    )


def make_review(
    card_id: str, interval: float = 10, ease: float = 2.5, overdue_days: float = 0, **kwargs
) -> CardRecord:
    """A graduated card that became due `overdue_days` before NOW."""
    return CardRecord(
        id=card_id,
        stage=Stage.REVIEW,
        interval_days=interval,
        ease_factor=ease,
        repetitions=kwargs.pop("repetitions", 3),
        due_at=NOW - timedelta(days=overdue_days),
        created_at=NOW - timedelta(days=60),
        front=kwargs.pop("front", f"Q {card_id}"),
        back=kwargs.pop("back", f"A {card_id}"),
        **kwargs,
    )


@pytest.fixture
def store_with():
    """Build an InMemoryCardStore holding the given cards for user 'u1'."""

    def _build(*cards: CardRecord) -> InMemoryCardStore:
        return InMemoryCardStore({"u1": list(cards)})

    return _build


@pytest.fixture(name="make_new")
def make_new_fixture():
    return make_new


@pytest.fixture(name="make_review")
def make_review_fixture():
    return make_review
