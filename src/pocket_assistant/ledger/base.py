"""
Ledger service interface.

The ledger owns pockets, balances and transaction rows. The assistant only
consumes it: the executor creates, transfers and deletes through this
interface, and the conversation service reads the active pocket catalog.

Implementations must make every single call atomic. A transfer is two
transaction inserts plus two balance updates and must commit as one unit.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from ..schemas.dialog import PocketOption


class LedgerError(Exception):
    """Base exception for ledger failures. The message is shown to the user as-is."""

    pass


class PocketNotFoundError(LedgerError):
    """Pocket id is unknown or inactive."""

    def __init__(self, pocket_id: str):
        self.pocket_id = pocket_id
        super().__init__(f"Pocket tidak ditemukan: {pocket_id}")


class TransactionNotFoundError(LedgerError):
    """Transaction id is unknown (already deleted or never existed)."""

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaksi tidak ditemukan: {transaction_id}")


class InvalidTransferError(LedgerError):
    """Transfer endpoints are the same pocket."""

    pass


class InvalidAmountError(LedgerError):
    """Amount is not a positive integer."""

    def __init__(self, amount: object):
        self.amount = amount
        super().__init__(f"Nominal tidak valid: {amount}")


@dataclass
class PocketRecord:
    """Pocket with its current balance."""

    id: str
    name: str
    balance: int
    is_active: bool = True

    def to_option(self) -> PocketOption:
        return PocketOption(id=self.id, name=self.name)


@dataclass
class TransactionRecord:
    """One ledger row. Amount is always positive; type gives the direction."""

    id: str
    type: str  # "income" or "expense"
    amount: int
    pocket_id: str
    note: Optional[str]
    source: str  # "manual", "transfer"
    date: str  # ISO timestamp


@dataclass
class CreateTransactionResult:
    """Result of an income/expense posting."""

    transaction: TransactionRecord
    pocket: PocketRecord
    total_balance: int

    @property
    def transaction_id(self) -> str:
        return self.transaction.id

    @property
    def pocket_balance_after(self) -> int:
        return self.pocket.balance


@dataclass
class TransferResult:
    """Result of a transfer: the expense row on the source, the income row on the target."""

    from_pocket: PocketRecord
    to_pocket: PocketRecord
    total_balance: int
    transactions: list[TransactionRecord] = field(default_factory=list)

    @property
    def transaction_ids(self) -> list[str]:
        return [txn.id for txn in self.transactions]


@dataclass
class DeleteTransactionResult:
    """Result of deleting one row (its balance effect is reversed)."""

    pocket: PocketRecord
    total_balance: int


class LedgerService(ABC):
    """Operations the assistant needs from the ledger."""

    @abstractmethod
    def list_pockets(self) -> list[PocketOption]:
        """Active pockets ordered by name."""

    @abstractmethod
    def create_transaction(
        self,
        type: str,
        amount: int,
        pocket_id: str,
        note: Optional[str] = None,
    ) -> CreateTransactionResult:
        """Post income or expense against one pocket."""

    @abstractmethod
    def transfer(
        self,
        from_id: str,
        to_id: str,
        amount: int,
        note: Optional[str] = None,
    ) -> TransferResult:
        """Move money between two distinct pockets."""

    @abstractmethod
    def delete_transaction(self, transaction_id: str) -> DeleteTransactionResult:
        """Delete one row and reverse its balance effect."""
