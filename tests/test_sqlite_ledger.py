"""Tests for the SQLite reference ledger."""

import pytest

from pocket_assistant.ledger import (
    InvalidAmountError,
    InvalidTransferError,
    LedgerError,
    PocketNotFoundError,
    SQLiteLedger,
    TransactionNotFoundError,
)


class TestPockets:
    """Tests for the pocket catalog."""

    def test_init_creates_tables(self, ledger_db):
        ledger = SQLiteLedger(ledger_db)
        conn = ledger._get_connection()
        try:
            tables = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
            table_names = [t[0] for t in tables]
            assert "pockets" in table_names
            assert "transactions" in table_names
        finally:
            conn.close()

    def test_list_pockets_ordered_by_name(self, ledger):
        names = [pocket.name for pocket in ledger.list_pockets()]
        assert names == ["E-Money", "Kebutuhan Pokok", "Tabungan"]

    def test_total_balance(self, ledger):
        assert ledger.total_balance() == 6_200_000

    def test_add_pocket_requires_name(self, ledger):
        with pytest.raises(LedgerError):
            ledger.add_pocket("   ")

    def test_get_unknown_pocket(self, ledger):
        assert ledger.get_pocket("missing") is None


class TestCreateTransaction:
    """Tests for income and expense postings."""

    def test_income_increases_balance(self, ledger, pocket_id):
        tabungan = pocket_id("Tabungan")
        result = ledger.create_transaction("income", 250_000, tabungan, "bonus")

        assert result.pocket_balance_after == 5_250_000
        assert result.total_balance == 6_450_000
        assert result.transaction.note == "bonus"
        assert result.transaction.source == "manual"
        assert ledger.get_pocket(tabungan).balance == 5_250_000

    def test_expense_decreases_balance(self, ledger, pocket_id):
        emoney = pocket_id("E-Money")
        result = ledger.create_transaction("expense", 50_000, emoney)
        assert result.pocket_balance_after == 150_000

    def test_unknown_pocket(self, ledger):
        with pytest.raises(PocketNotFoundError):
            ledger.create_transaction("income", 1_000, "missing")
        assert ledger.count_transactions() == 0

    @pytest.mark.parametrize("amount", [0, -5, 1.5, True])
    def test_invalid_amount(self, ledger, amount, pocket_id):
        with pytest.raises(InvalidAmountError):
            ledger.create_transaction("income", amount, pocket_id("Tabungan"))

    def test_unknown_type(self, ledger, pocket_id):
        with pytest.raises(LedgerError):
            ledger.create_transaction("refund", 1_000, pocket_id("Tabungan"))


class TestTransfer:
    """Tests for transfers between pockets."""

    def test_moves_money_and_writes_two_rows(self, ledger, pocket_id):
        tabungan = pocket_id("Tabungan")
        emoney = pocket_id("E-Money")

        result = ledger.transfer(tabungan, emoney, 250_000)

        assert result.from_pocket.balance == 4_750_000
        assert result.to_pocket.balance == 450_000
        assert result.total_balance == 6_200_000
        assert len(result.transaction_ids) == 2

        rows = ledger.list_transactions()
        assert {(row.type, row.pocket_id) for row in rows} == {
            ("expense", tabungan),
            ("income", emoney),
        }
        assert all(row.source == "transfer" for row in rows)
        notes = {row.type: row.note for row in rows}
        assert notes == {"expense": "Transfer ke E-Money", "income": "Transfer dari Tabungan"}

    def test_note_is_carried_to_both_rows(self, ledger, pocket_id):
        tabungan = pocket_id("Tabungan")
        emoney = pocket_id("E-Money")
        ledger.transfer(tabungan, emoney, 10_000, "jajan")

        notes = sorted(row.note for row in ledger.list_transactions())
        assert notes == ["jajan (dari Tabungan)", "jajan (ke E-Money)"]

    def test_same_pocket_rejected(self, ledger, pocket_id):
        tabungan = pocket_id("Tabungan")
        with pytest.raises(InvalidTransferError):
            ledger.transfer(tabungan, tabungan, 1_000)

    def test_unknown_destination_rolls_back(self, ledger, pocket_id):
        tabungan = pocket_id("Tabungan")
        with pytest.raises(PocketNotFoundError):
            ledger.transfer(tabungan, "missing", 1_000)

        assert ledger.count_transactions() == 0
        assert ledger.get_pocket(tabungan).balance == 5_000_000


class TestDeleteTransaction:
    """Tests for deleting a posting."""

    def test_reverses_balance(self, ledger, pocket_id):
        tabungan = pocket_id("Tabungan")
        created = ledger.create_transaction("income", 100_000, tabungan)

        result = ledger.delete_transaction(created.transaction_id)

        assert result.pocket.balance == 5_000_000
        assert result.total_balance == 6_200_000
        assert ledger.count_transactions() == 0

    def test_reverses_expense(self, ledger, pocket_id):
        emoney = pocket_id("E-Money")
        created = ledger.create_transaction("expense", 20_000, emoney)
        ledger.delete_transaction(created.transaction_id)
        assert ledger.get_pocket(emoney).balance == 200_000

    def test_unknown_transaction(self, ledger):
        with pytest.raises(TransactionNotFoundError):
            ledger.delete_transaction("missing")

    def test_blank_id(self, ledger):
        with pytest.raises(LedgerError):
            ledger.delete_transaction(" ")
