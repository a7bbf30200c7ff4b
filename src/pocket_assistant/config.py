"""
Configuration management (SSOT).

This module defines ALL configuration for the pocket assistant.
All config keys are defined here; no other module should invent config keys.

Key invariants:
- The undo window is advisory: it is returned to callers for display, the
  executor never rejects an undo because the window has passed
- State (sessions, journal) and ledger may live in separate databases
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


@dataclass
class AssistantConfig:
    """Conversation and execution settings."""

    # How long the caller should offer the undo affordance (seconds)
    undo_window_seconds: int = 120
    # Messages longer than this are rejected before parsing
    max_message_length: int = 500


@dataclass
class Config:
    """Application configuration (SSOT).

    All configuration is centralized here. No other module should define
    configuration keys or defaults.
    """

    assistant: AssistantConfig = field(default_factory=AssistantConfig)
    state_db_path: Path = field(default_factory=lambda: Path("data/state.db"))
    ledger_db_path: Path = field(default_factory=lambda: Path("data/ledger.db"))

    def validate(self) -> list[str]:
        """Validate configuration completeness and consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if self.assistant.undo_window_seconds <= 0:
            errors.append("assistant.undo_window_seconds must be positive")
        if self.assistant.max_message_length <= 0:
            errors.append("assistant.max_message_length must be positive")
        if not str(self.state_db_path):
            errors.append("state_db_path is required")
        if not str(self.ledger_db_path):
            errors.append("ledger_db_path is required")

        return errors


def _int_from_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r", name, raw)
        return default


def load_config(config_path: Path) -> Config:
    """
    Load configuration from YAML file.

    A missing file yields the defaults. Environment variables can override
    config values:
    - POCKET_ASSISTANT_UNDO_WINDOW (seconds)
    - POCKET_ASSISTANT_DB (state database path)
    - POCKET_ASSISTANT_LEDGER_DB (ledger database path)
    """
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    assistant_data = data.get("assistant", {}) or {}
    assistant = AssistantConfig(
        undo_window_seconds=_int_from_env(
            "POCKET_ASSISTANT_UNDO_WINDOW", int(assistant_data.get("undo_window_seconds", 120))
        ),
        max_message_length=int(assistant_data.get("max_message_length", 500)),
    )

    state_db = os.environ.get("POCKET_ASSISTANT_DB", data.get("state_db_path", "data/state.db"))
    ledger_db = os.environ.get(
        "POCKET_ASSISTANT_LEDGER_DB", data.get("ledger_db_path", "data/ledger.db")
    )

    return Config(
        assistant=assistant,
        state_db_path=Path(state_db),
        ledger_db_path=Path(ledger_db),
    )


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# Pocket Assistant Configuration
#
# Conversation settings
assistant:
  undo_window_seconds: 120    # How long the undo button is offered after an execution
  max_message_length: 500     # Longer messages are rejected

# Dialog state, undo journal and chat history
state_db_path: "data/state.db"

# Pockets and transactions (reference SQLite ledger)
ledger_db_path: "data/ledger.db"
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
