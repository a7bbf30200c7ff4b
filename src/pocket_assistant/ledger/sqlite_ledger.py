"""
SQLite-backed reference ledger.

Tables:
- pockets: balance-holding buckets
- transactions: income/expense rows (a transfer is one row of each)

Every public mutation runs inside a single SQLite transaction, so a
transfer's two inserts and two balance updates commit or roll back together.
"""

import logging
import sqlite3
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ..schemas.dialog import PocketOption
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

logger = logging.getLogger(__name__)

TRANSACTION_TYPES = ("income", "expense")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _pocket_from_row(row: sqlite3.Row) -> PocketRecord:
    return PocketRecord(
        id=row["id"],
        name=row["name"],
        balance=row["balance"],
        is_active=bool(row["is_active"]),
    )


def _transaction_from_row(row: sqlite3.Row) -> TransactionRecord:
    return TransactionRecord(
        id=row["id"],
        type=row["type"],
        amount=row["amount"],
        pocket_id=row["pocket_id"],
        note=row["note"],
        source=row["source"],
        date=row["date"],
    )


class SQLiteLedger(LedgerService):
    """
    Ledger over a local SQLite file.

    Thread-safe for single-writer scenarios.
    """

    def __init__(self, db_path: Path | str):
        """
        Initialize the ledger.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS pockets (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    balance INTEGER NOT NULL DEFAULT 0,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS transactions (
                    id TEXT PRIMARY KEY,
                    type TEXT NOT NULL,
                    amount INTEGER NOT NULL,
                    pocket_id TEXT NOT NULL,
                    note TEXT,
                    source TEXT NOT NULL,
                    date TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (pocket_id) REFERENCES pockets(id)
                )
            """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_transactions_pocket_id ON transactions(pocket_id)"
            )

    # Helpers (run inside an open transaction)

    @staticmethod
    def _fetch_pocket(conn: sqlite3.Connection, pocket_id: str) -> PocketRecord:
        row = conn.execute(
            "SELECT * FROM pockets WHERE id = ? AND is_active = 1", (pocket_id,)
        ).fetchone()
        if not row:
            raise PocketNotFoundError(pocket_id)
        return _pocket_from_row(row)

    @staticmethod
    def _save_balance(conn: sqlite3.Connection, pocket_id: str, balance: int) -> None:
        conn.execute(
            "UPDATE pockets SET balance = ?, updated_at = ? WHERE id = ?",
            (balance, _now(), pocket_id),
        )

    @staticmethod
    def _insert_transaction(
        conn: sqlite3.Connection,
        type: str,
        amount: int,
        pocket_id: str,
        note: Optional[str],
        source: str,
    ) -> TransactionRecord:
        now = _now()
        record = TransactionRecord(
            id=str(uuid.uuid4()),
            type=type,
            amount=amount,
            pocket_id=pocket_id,
            note=note,
            source=source,
            date=now,
        )
        conn.execute(
            """
            INSERT INTO transactions (id, type, amount, pocket_id, note, source, date, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
            (record.id, type, amount, pocket_id, note, source, now, now),
        )
        return record

    @staticmethod
    def _total(conn: sqlite3.Connection) -> int:
        row = conn.execute(
            "SELECT COALESCE(SUM(balance), 0) AS total FROM pockets WHERE is_active = 1"
        ).fetchone()
        return int(row["total"])

    @staticmethod
    def _validate_amount(amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmountError(amount)

    # Pocket catalog

    def add_pocket(self, name: str, balance: int = 0) -> PocketRecord:
        """Create an active pocket."""
        if not name or not name.strip():
            raise LedgerError("Nama pocket wajib diisi.")
        now = _now()
        record = PocketRecord(id=str(uuid.uuid4()), name=name.strip(), balance=balance)
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO pockets (id, name, balance, is_active, created_at, updated_at)
                VALUES (?, ?, ?, 1, ?, ?)
            """,
                (record.id, record.name, record.balance, now, now),
            )
        logger.info("Created pocket %s (%s)", record.name, record.id)
        return record

    def get_pocket(self, pocket_id: str) -> PocketRecord | None:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM pockets WHERE id = ?", (pocket_id,)).fetchone()
            return _pocket_from_row(row) if row else None

    def list_pockets(self) -> list[PocketOption]:
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT id, name FROM pockets WHERE is_active = 1 ORDER BY name ASC"
            ).fetchall()
            return [PocketOption(id=row["id"], name=row["name"]) for row in rows]

    def list_pocket_records(self) -> list[PocketRecord]:
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM pockets WHERE is_active = 1 ORDER BY name ASC"
            ).fetchall()
            return [_pocket_from_row(row) for row in rows]

    def total_balance(self) -> int:
        with self._transaction() as conn:
            return self._total(conn)

    # Transactions

    def list_transactions(self, pocket_id: str | None = None) -> list[TransactionRecord]:
        with self._transaction() as conn:
            if pocket_id:
                rows = conn.execute(
                    "SELECT * FROM transactions WHERE pocket_id = ? ORDER BY created_at ASC",
                    (pocket_id,),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM transactions ORDER BY created_at ASC"
                ).fetchall()
            return [_transaction_from_row(row) for row in rows]

    def count_transactions(self) -> int:
        with self._transaction() as conn:
            row = conn.execute("SELECT COUNT(*) AS n FROM transactions").fetchone()
            return int(row["n"])

    def create_transaction(
        self,
        type: str,
        amount: int,
        pocket_id: str,
        note: Optional[str] = None,
    ) -> CreateTransactionResult:
        if type not in TRANSACTION_TYPES:
            raise LedgerError(f"Jenis transaksi tidak dikenal: {type}")
        self._validate_amount(amount)

        with self._transaction() as conn:
            pocket = self._fetch_pocket(conn, pocket_id)
            delta = amount if type == "income" else -amount
            transaction = self._insert_transaction(conn, type, amount, pocket_id, note, "manual")
            pocket.balance += delta
            self._save_balance(conn, pocket_id, pocket.balance)
            total = self._total(conn)

        logger.debug("Posted %s %d to %s", type, amount, pocket_id)
        return CreateTransactionResult(transaction=transaction, pocket=pocket, total_balance=total)

    def transfer(
        self,
        from_id: str,
        to_id: str,
        amount: int,
        note: Optional[str] = None,
    ) -> TransferResult:
        if from_id == to_id:
            raise InvalidTransferError("Pocket asal dan tujuan harus berbeda.")
        self._validate_amount(amount)

        with self._transaction() as conn:
            source = self._fetch_pocket(conn, from_id)
            target = self._fetch_pocket(conn, to_id)

            expense_note = f"{note} (ke {target.name})" if note else f"Transfer ke {target.name}"
            income_note = (
                f"{note} (dari {source.name})" if note else f"Transfer dari {source.name}"
            )

            expense = self._insert_transaction(
                conn, "expense", amount, from_id, expense_note, "transfer"
            )
            income = self._insert_transaction(
                conn, "income", amount, to_id, income_note, "transfer"
            )

            source.balance -= amount
            target.balance += amount
            self._save_balance(conn, from_id, source.balance)
            self._save_balance(conn, to_id, target.balance)
            total = self._total(conn)

        logger.debug("Transferred %d from %s to %s", amount, from_id, to_id)
        return TransferResult(
            from_pocket=source,
            to_pocket=target,
            total_balance=total,
            transactions=[expense, income],
        )

    def delete_transaction(self, transaction_id: str) -> DeleteTransactionResult:
        if not transaction_id or not transaction_id.strip():
            raise LedgerError("ID transaksi wajib diisi.")

        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM transactions WHERE id = ?", (transaction_id.strip(),)
            ).fetchone()
            if not row:
                raise TransactionNotFoundError(transaction_id)
            transaction = _transaction_from_row(row)

            pocket_row = conn.execute(
                "SELECT * FROM pockets WHERE id = ?", (transaction.pocket_id,)
            ).fetchone()
            if not pocket_row:
                raise PocketNotFoundError(transaction.pocket_id)
            pocket = _pocket_from_row(pocket_row)

            delta = -transaction.amount if transaction.type == "income" else transaction.amount
            pocket.balance += delta
            conn.execute("DELETE FROM transactions WHERE id = ?", (transaction.id,))
            self._save_balance(conn, pocket.id, pocket.balance)
            total = self._total(conn)

        logger.debug("Deleted transaction %s", transaction_id)
        return DeleteTransactionResult(pocket=pocket, total_balance=total)
