from datetime import timedelta, timezone

import pytest

from cadence.domain.models import Stage
from cadence.infrastructure.sqlite.repository import CardRepository, to_db_timestamp


def test_used_outside_with_block(tmp_path):
    repo = CardRepository(tmp_path / "cards.db")
    with pytest.raises(RuntimeError):
        repo.all_cards("u1")


def test_rolls_back_on_error(tmp_path, make_new):
    db = tmp_path / "cards.db"
    with pytest.raises(KeyError):
        with CardRepository(db) as repo:
            repo.insert_card("u1", make_new("a"))
            raise KeyError("boom")

    with CardRepository(db) as repo:
        assert repo.all_cards("u1") == []


def test_commits_on_success(tmp_path, make_new):
    db = tmp_path / "nested" / "cards.db"
    with CardRepository(db) as repo:
        repo.insert_card("u1", make_new("a"))
        assert repo.update_card("a", {"stage": Stage.LEARNING, "lapses": 1}) is True
        assert repo.update_card("missing", {"lapses": 1}) is False

    with CardRepository(db) as repo:
        (card,) = repo.all_cards("u1")
    assert card.stage == Stage.LEARNING
    assert card.lapses == 1


def test_empty_patch_only_checks_existence(tmp_path, make_new):
    with CardRepository(tmp_path / "cards.db") as repo:
        repo.insert_card("u1", make_new("a"))
        assert repo.update_card("a", {}) is True
        assert repo.update_card("b", {}) is False


def test_timestamps_sort_as_text(now):
    earlier = to_db_timestamp(now)
    later = to_db_timestamp((now + timedelta(seconds=1)).astimezone(timezone(timedelta(hours=3))))
    assert earlier < later
    assert earlier.endswith("+00:00")
    assert to_db_timestamp(None) is None


def test_has_card_ignores_owner(tmp_path, make_new):
    with CardRepository(tmp_path / "cards.db") as repo:
        repo.insert_card("u2", make_new("a"))
        assert repo.has_card("a") is True
        assert repo.has_card("b") is False
