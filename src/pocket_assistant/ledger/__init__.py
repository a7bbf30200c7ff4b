"""
Ledger interface and SQLite reference implementation.

Provides:
- LedgerService: what the assistant needs from a ledger
- SQLiteLedger: pockets + transactions in one local database
- LedgerError hierarchy (messages are user-facing)
"""

from .base import (
    CreateTransactionResult,
    DeleteTransactionResult,
    InvalidAmountError,
    InvalidTransferError,
    LedgerError,
    LedgerService,
    PocketNotFoundError,
    PocketRecord,
    TransactionNotFoundError,
    TransactionRecord,
    TransferResult,
)
from .sqlite_ledger import SQLiteLedger

__all__ = [
    "LedgerService",
    "SQLiteLedger",
    "LedgerError",
    "PocketNotFoundError",
    "TransactionNotFoundError",
    "InvalidTransferError",
    "InvalidAmountError",
    "PocketRecord",
    "TransactionRecord",
    "CreateTransactionResult",
    "TransferResult",
    "DeleteTransactionResult",
]
