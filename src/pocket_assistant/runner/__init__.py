"""
CLI runner for the pocket assistant.

Commands:
- init-config: write a default config file
- pocket add / pocket list: manage pockets in the local ledger
- chat: interactive conversation
- say: send one message to a session
- undo: reverse an execution by its undo token
- status: show state and ledger statistics
"""

from .main import main

__all__ = ["main"]
