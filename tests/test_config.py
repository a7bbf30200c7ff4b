"""Tests for configuration loading."""

from pathlib import Path

import pytest

from pocket_assistant.config import (
    AssistantConfig,
    Config,
    create_default_config,
    load_config,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep host environment overrides out of these tests."""
    for name in (
        "POCKET_ASSISTANT_UNDO_WINDOW",
        "POCKET_ASSISTANT_DB",
        "POCKET_ASSISTANT_LEDGER_DB",
    ):
        monkeypatch.delenv(name, raising=False)


class TestLoadConfig:
    """Tests for load_config."""

    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "absent.yaml")

        assert config.assistant.undo_window_seconds == 120
        assert config.assistant.max_message_length == 500
        assert config.state_db_path == Path("data/state.db")
        assert config.ledger_db_path == Path("data/ledger.db")

    def test_reads_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "assistant:\n"
            "  undo_window_seconds: 60\n"
            "  max_message_length: 200\n"
            "state_db_path: /tmp/s.db\n"
            "ledger_db_path: /tmp/l.db\n"
        )

        config = load_config(path)

        assert config.assistant.undo_window_seconds == 60
        assert config.assistant.max_message_length == 200
        assert config.state_db_path == Path("/tmp/s.db")
        assert config.ledger_db_path == Path("/tmp/l.db")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(path).assistant.undo_window_seconds == 120

    def test_environment_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("POCKET_ASSISTANT_UNDO_WINDOW", "45")
        monkeypatch.setenv("POCKET_ASSISTANT_DB", str(tmp_path / "env_state.db"))
        monkeypatch.setenv("POCKET_ASSISTANT_LEDGER_DB", str(tmp_path / "env_ledger.db"))

        config = load_config(tmp_path / "absent.yaml")

        assert config.assistant.undo_window_seconds == 45
        assert config.state_db_path == tmp_path / "env_state.db"
        assert config.ledger_db_path == tmp_path / "env_ledger.db"

    def test_non_integer_env_is_ignored(self, tmp_path, monkeypatch):
        monkeypatch.setenv("POCKET_ASSISTANT_UNDO_WINDOW", "soon")
        assert load_config(tmp_path / "absent.yaml").assistant.undo_window_seconds == 120


class TestValidate:
    """Tests for Config.validate."""

    def test_defaults_are_valid(self):
        assert Config().validate() == []

    def test_non_positive_values(self):
        config = Config(assistant=AssistantConfig(undo_window_seconds=0, max_message_length=-1))
        errors = config.validate()
        assert "assistant.undo_window_seconds must be positive" in errors
        assert "assistant.max_message_length must be positive" in errors


class TestCreateDefaultConfig:
    """Tests for the config template."""

    def test_template_loads_back(self, tmp_path):
        path = tmp_path / "nested" / "config.yaml"

        create_default_config(path)
        config = load_config(path)

        assert path.exists()
        assert config.assistant.undo_window_seconds == 120
        assert config.state_db_path == Path("data/state.db")
