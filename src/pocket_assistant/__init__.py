"""
Pocket Assistant

Conversational assistant for recording income, expenses and transfers
between money pockets from short Indonesian commands, with a single-use
undo for every executed transaction.
"""

__version__ = "0.1.0"
