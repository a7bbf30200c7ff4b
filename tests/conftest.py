"""Test fixtures and utilities."""

from pathlib import Path

import pytest

from pocket_assistant.config import AssistantConfig, Config
from pocket_assistant.ledger import SQLiteLedger
from pocket_assistant.schemas import PocketOption
from pocket_assistant.state_store import StateStore


@pytest.fixture
def tabungan() -> PocketOption:
    return PocketOption(id="p-tabungan", name="Tabungan")


@pytest.fixture
def kebutuhan() -> PocketOption:
    return PocketOption(id="p-kebutuhan", name="Kebutuhan Pokok")


@pytest.fixture
def emoney() -> PocketOption:
    return PocketOption(id="p-emoney", name="E-Money")


@pytest.fixture
def pockets(tabungan, kebutuhan, emoney) -> list[PocketOption]:
    """Pocket catalog used by parser and dialog tests."""
    return [tabungan, kebutuhan, emoney]


@pytest.fixture
def temp_db(tmp_path: Path) -> Path:
    """Temporary state database path."""
    return tmp_path / "test_state.db"


@pytest.fixture
def ledger_db(tmp_path: Path) -> Path:
    """Temporary ledger database path."""
    return tmp_path / "test_ledger.db"


@pytest.fixture
def config(temp_db: Path, ledger_db: Path) -> Config:
    """Config pointing at the temporary databases."""
    return Config(
        assistant=AssistantConfig(undo_window_seconds=120, max_message_length=500),
        state_db_path=temp_db,
        ledger_db_path=ledger_db,
    )


@pytest.fixture
def store(temp_db: Path) -> StateStore:
    """Fresh state store."""
    return StateStore(temp_db)


@pytest.fixture
def ledger(ledger_db: Path) -> SQLiteLedger:
    """Ledger seeded with three pockets."""
    ledger = SQLiteLedger(ledger_db)
    ledger.add_pocket("Tabungan", 5_000_000)
    ledger.add_pocket("Kebutuhan Pokok", 1_000_000)
    ledger.add_pocket("E-Money", 200_000)
    return ledger


@pytest.fixture
def pocket_id(ledger: SQLiteLedger):
    """Look up a seeded pocket's id by display name."""

    def lookup(name: str) -> str:
        for pocket in ledger.list_pockets():
            if pocket.name == name:
                return pocket.id
        raise KeyError(name)

    return lookup
