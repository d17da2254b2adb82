import re

import pytest

from cadence.application.card_service import add_card, generate_card_id, import_deck
from cadence.domain.errors import DeckFileError, StoreError
from cadence.domain.models import SchedulerConfig, Stage
from cadence.infrastructure.adapters.memory_store import InMemoryCardStore

DECK = """\
cards:
  - front: Capital of France?
    back: Paris
  - id: card_fixed
    front: 2 + 2
    back: "4"
  - front: Largest planet?
    back: Jupiter
"""


def test_generate_card_id():
    card_id = generate_card_id()
    assert re.fullmatch(r"card_[0-9A-HJKMNP-TV-Z]{26}", card_id)
    assert generate_card_id() != card_id


@pytest.mark.asyncio
async def test_add_card(now):
    store = InMemoryCardStore()
    card = await add_card(store, "u1", "Q", "A", created_at=now)

    assert card.stage == Stage.NEW
    assert card.created_at == now
    assert card.id.startswith("card_")
    assert await store.list_cards("u1") == [card]


@pytest.mark.asyncio
async def test_add_card_uses_configured_ease():
    store = InMemoryCardStore()
    card = await add_card(store, "u1", "Q", "A", config=SchedulerConfig(initial_ease=2.0))
    assert card.ease_factor == 2.0


@pytest.mark.asyncio
async def test_add_duplicate_id_fails():
    store = InMemoryCardStore()
    await add_card(store, "u1", "Q", "A", card_id="c1")
    with pytest.raises(StoreError, match="already exists"):
        await add_card(store, "u1", "Q2", "A2", card_id="c1")


@pytest.mark.asyncio
async def test_import_deck_keeps_file_order(tmp_path, now):
    deck = tmp_path / "deck.yaml"
    deck.write_text(DECK, encoding="utf-8")
    store = InMemoryCardStore()

    result = await import_deck(store, "u1", deck, now=now)

    assert len(result.added) == 3
    assert result.skipped == []
    assert "card_fixed" in result.added

    new = await store.fetch_new_cards("u1")
    assert [card.front for card in new] == ["Capital of France?", "2 + 2", "Largest planet?"]
    assert new[0].created_at == now


@pytest.mark.asyncio
async def test_reimport_skips_known_ids(tmp_path, now):
    deck = tmp_path / "deck.md"
    deck.write_text(f"---\n{DECK}---\n# Geography\n", encoding="utf-8")
    store = InMemoryCardStore()
    await import_deck(store, "u1", deck, now=now)

    result = await import_deck(store, "u1", deck, now=now)

    assert result.skipped == ["card_fixed"]
    assert len(result.added) == 2


@pytest.mark.asyncio
async def test_import_invalid_deck_adds_nothing(tmp_path):
    deck = tmp_path / "broken.yaml"
    deck.write_text("cards:\n  - front: Q\n", encoding="utf-8")
    store = InMemoryCardStore()

    with pytest.raises(DeckFileError):
        await import_deck(store, "u1", deck)
    assert await store.list_cards("u1") == []


@pytest.mark.asyncio
async def test_import_skips_ids_owned_by_another_user(tmp_path, make_new):
    deck = tmp_path / "deck.yaml"
    deck.write_text(DECK, encoding="utf-8")
    store = InMemoryCardStore({"u2": [make_new("card_fixed")]})

    result = await import_deck(store, "u1", deck)

    assert result.skipped == ["card_fixed"]
    assert len(result.added) == 2
    assert [c.front for c in await store.list_cards("u1")] == [
        "Capital of France?",
        "Largest planet?",
    ]
    assert store.get("card_fixed").front == "Q card_fixed"
