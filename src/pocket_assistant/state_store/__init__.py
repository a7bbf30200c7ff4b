"""
State Store (SQLite-based).

Lightweight persistent DB for tracking:
- Dialog state per conversation (session store)
- Executed plans keyed by undo token (journal store)
- Chat history

Enforces uniqueness on undo_token.
"""

from .sqlite_store import (
    ChatRole,
    ChatTurnRecord,
    SessionRecord,
    StateStore,
)

__all__ = [
    "StateStore",
    "SessionRecord",
    "ChatTurnRecord",
    "ChatRole",
]
