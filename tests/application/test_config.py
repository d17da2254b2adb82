from pathlib import Path

import pytest
from pydantic import ValidationError

from cadence.application.config import AppConfig, resolve_config
from cadence.domain.models import SchedulerConfig


def test_defaults(mock_home):
    config = resolve_config()

    assert config.backend == "sqlite"
    assert config.db_path == mock_home / ".config/cadence/cards.db"
    assert config.user_id == "local"
    assert config.new_cards_per_day == 10
    assert config.requeue_offset == 3
    assert config.learning_steps == [10, 60, 360]
    assert config.scheduler_config() == SchedulerConfig()


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("CADENCE_NEW_CARDS_PER_DAY", "3")
    monkeypatch.setenv("CADENCE_BACKEND", "memory")
    monkeypatch.setenv("CADENCE_LEARNING_STEPS", "1, 5,30")

    config = resolve_config()

    assert config.new_cards_per_day == 3
    assert config.backend == "memory"
    assert config.learning_steps == [1, 5, 30]
    assert config.scheduler_config().learning_steps == (1, 5, 30)


def test_toml_file(mock_home):
    config_dir = mock_home / ".config/cadence"
    config_dir.mkdir(parents=True)
    (config_dir / "config.toml").write_text(
        'user_id = "ada"\nnew_cards_per_day = 0\nlearning_steps = [5, 20]\ndb_path = "~/decks.db"\n'
    )

    config = resolve_config()

    assert config.user_id == "ada"
    assert config.new_cards_per_day == 0
    assert config.learning_steps == [5, 20]
    assert config.db_path == mock_home / "decks.db"


def test_precedence(mock_home, monkeypatch):
    (mock_home / ".cadence.toml").write_text("new_cards_per_day = 7\nuser_id = \"file\"\n")
    monkeypatch.setenv("CADENCE_NEW_CARDS_PER_DAY", "4")

    config = resolve_config({"user_id": "flag", "db_path": None})

    # env beats file, explicit overrides beat both, None overrides are ignored
    assert config.new_cards_per_day == 4
    assert config.user_id == "flag"
    assert config.db_path == mock_home / ".config/cadence/cards.db"


@pytest.mark.parametrize(
    "overrides",
    [
        {"learning_steps": []},
        {"learning_steps": [60, 10]},
        {"learning_steps": [0, 10]},
        {"learning_steps": [10, 1440]},
        {"new_cards_per_day": -1},
        {"requeue_offset": 0},
        {"initial_ease": 1.2},
        {"backend": "postgres"},
    ],
)
def test_invalid_values_rejected(overrides):
    with pytest.raises(ValidationError):
        AppConfig(**overrides)


def test_invalid_config_is_a_value_error():
    with pytest.raises(ValueError):
        resolve_config({"minimum_ease": 3.0})


def test_scheduler_config_carries_numbers():
    config = AppConfig(minimum_ease=1.5, max_interval_days=90, easy_interval=3)
    scheduler_config = config.scheduler_config()

    assert scheduler_config.minimum_ease == 1.5
    assert scheduler_config.max_interval_days == 90
    assert scheduler_config.easy_interval == 3


def test_db_path_expands_user(mock_home):
    config = AppConfig(db_path=Path("~/x.db"))
    assert config.db_path == mock_home / "x.db"
