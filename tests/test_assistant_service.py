"""Tests for the conversation service."""

import sqlite3
from unittest.mock import MagicMock

import pytest

from pocket_assistant.config import AssistantConfig, Config
from pocket_assistant.dialog import manager
from pocket_assistant.schemas import DialogState, DialogStep
from pocket_assistant.services import AssistantService, ExecutionResult
from pocket_assistant.services.assistant import (
    MSG_EMPTY_MESSAGE,
    MSG_UNDO_DONE,
)
from pocket_assistant.state_store import ChatRole


@pytest.fixture
def service(store, ledger, config):
    return AssistantService(store, ledger, config)


def run_messages(service, session_id, texts):
    return [service.submit_message(session_id, text) for text in texts]


class TestInputValidation:
    """Tests for rejected messages."""

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_blank_message(self, service, store, text):
        result = service.submit_message(None, text)

        assert not result.success
        assert result.error == MSG_EMPTY_MESSAGE
        assert result.turns == []
        assert store.get_stats()["sessions"] == 0

    def test_too_long_message(self, store, ledger, temp_db, ledger_db):
        config = Config(
            assistant=AssistantConfig(max_message_length=10),
            state_db_path=temp_db,
            ledger_db_path=ledger_db,
        )
        service = AssistantService(store, ledger, config)

        result = service.submit_message(None, "transfer 250k dari tabungan ke e-money")

        assert not result.success
        assert "maksimal 10 karakter" in result.error


class TestSubmitMessage:
    """Tests for multi-turn conversations through the service."""

    def test_new_session_when_none_given(self, service, store):
        result = service.submit_message(None, "halo")

        assert result.success
        assert result.session_id is not None
        assert result.reply == manager.MSG_UNKNOWN_INTENT
        assert store.get_session(result.session_id) is not None

    def test_transfer_executes_and_resets_state(self, service, store, ledger, pocket_id):
        session = service.start_session()

        ask_note, confirm, executed = run_messages(
            service, session.id, ["transfer 250k dari tabungan ke e-money", "skip", "ya"]
        )

        assert ask_note.reply == manager.MSG_ASK_NOTE
        assert confirm.reply.startswith("Transfer Rp250.000 dari Tabungan ke E-Money?")
        assert confirm.turns[-1].payload["type"] == "confirmation"

        assert executed.success
        assert executed.undo_token
        assert executed.undo_expires_at
        assert len(executed.turns) == 2
        assert executed.reply == (
            "Transfer dari Tabungan ke E-Money selesai. "
            "Saldo terbaru: Tabungan Rp4.750.000, E-Money Rp450.000."
        )
        assert executed.turns[-1].payload["undo_token"] == executed.undo_token
        assert executed.turns[-1].payload["plan"]["kind"] == "transfer"

        assert store.get_session_state(session.id) == DialogState()
        assert ledger.get_pocket(pocket_id("E-Money")).balance == 450_000

    def test_income_message_reports_balance(self, service):
        session = service.start_session()

        _, executed = run_messages(
            service, session.id, ["aku dapat gaji 3jt400 ke Tabungan buat bulan ini", "ya"]
        )

        assert executed.reply == (
            "Pemasukan sebesar Rp3.400.000 dicatat ke Tabungan. "
            "Saldo pocket sekarang Rp8.400.000."
        )

    def test_question_payload_carries_options(self, service):
        result = service.submit_message(None, "bayar 50rb")

        payload = result.turns[-1].payload
        assert payload["type"] == "question"
        assert payload["step"] == DialogStep.ASK_POCKET.value
        assert payload["options"] == ["E-Money", "Kebutuhan Pokok", "Tabungan"]

    def test_history_is_ordered(self, service):
        session = service.start_session()
        run_messages(service, session.id, ["bayar 50rb", "tabungan"])

        history = service.get_chat_history(session.id)

        assert [turn.role for turn in history] == [
            ChatRole.USER,
            ChatRole.ASSISTANT,
            ChatRole.USER,
            ChatRole.ASSISTANT,
        ]
        assert history[0].text == "bayar 50rb"


class TestExecutionFailure:
    """A failed execution returns the conversation to confirmation."""

    def test_rolls_back_to_confirm(self, store, ledger, config):
        executor = MagicMock()
        executor.execute.return_value = ExecutionResult(
            success=False, error="Ledger sedang tidak tersedia"
        )
        service = AssistantService(store, ledger, config, executor=executor)
        session = service.start_session()

        *_, failed = run_messages(service, session.id, ["bayar 20rb dari e-money", "-", "ya"])

        assert not failed.success
        assert failed.error == "Ledger sedang tidak tersedia"
        assert failed.reply == "Eksekusi gagal: Ledger sedang tidak tersedia"
        assert failed.turns[-1].payload["type"] == "error"

        state = store.get_session_state(session.id)
        assert state.step == DialogStep.CONFIRM
        assert state.confirmed is False
        assert state.amount == 20_000

    def test_retry_after_failure(self, store, ledger, config):
        executor = MagicMock()
        executor.execute.return_value = ExecutionResult(success=False, error="down")
        service = AssistantService(store, ledger, config, executor=executor)
        session = service.start_session()
        run_messages(service, session.id, ["bayar 20rb dari e-money", "-", "ya"])

        executor.execute.return_value = ExecutionResult(success=True, undo_token="tok")
        retried = service.submit_message(session.id, "ya")

        assert retried.success
        assert retried.undo_token == "tok"
        assert executor.execute.call_count == 2

    def test_journal_failure_then_retry_posts_once(
        self, service, store, ledger, pocket_id, monkeypatch
    ):
        tabungan = pocket_id("Tabungan")
        session = service.start_session()
        real_append = store.append_journal

        def broken_append(entry):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(store, "append_journal", broken_append)
        *_, failed = run_messages(service, session.id, ["bayar 20rb dari tabungan", "-", "ya"])

        assert not failed.success
        assert ledger.get_pocket(tabungan).balance == 5_000_000
        assert store.get_session_state(session.id).step == DialogStep.CONFIRM

        monkeypatch.setattr(store, "append_journal", real_append)
        retried = service.submit_message(session.id, "ya")

        assert retried.success
        assert ledger.get_pocket(tabungan).balance == 4_980_000
        expenses = [row for row in ledger.list_transactions(tabungan) if row.type == "expense"]
        assert len(expenses) == 1

    def test_committed_mutation_resets_session(self, store, ledger, config):
        executor = MagicMock()
        executor.execute.return_value = ExecutionResult(
            success=False, details=object(), error="Gagal mencatat jurnal: disk I/O error"
        )
        service = AssistantService(store, ledger, config, executor=executor)
        session = service.start_session()

        *_, failed = run_messages(service, session.id, ["bayar 20rb dari e-money", "-", "ya"])

        assert not failed.success
        assert failed.turns[-1].payload["type"] == "error"
        assert store.get_session_state(session.id) == DialogState()

        again = service.submit_message(session.id, "ya")
        assert again.reply == manager.MSG_UNKNOWN_INTENT
        assert executor.execute.call_count == 1


class TestPerformUndo:
    """Tests for undo through the service."""

    def test_undo_then_second_undo_fails(self, service, ledger, pocket_id):
        session = service.start_session()
        *_, executed = run_messages(service, session.id, ["bayar 20rb dari e-money", "-", "ya"])
        emoney = pocket_id("E-Money")
        assert ledger.get_pocket(emoney).balance == 180_000

        first = service.perform_undo(session.id, executed.undo_token)
        second = service.perform_undo(session.id, executed.undo_token)

        assert first.success
        assert first.message == MSG_UNDO_DONE
        assert ledger.get_pocket(emoney).balance == 200_000

        assert not second.success
        assert second.not_found
        assert second.message == "Undo gagal: Token undo tidak ditemukan atau sudah digunakan."

        history = service.get_chat_history(session.id)
        assert history[-1].payload == {"type": "error", "undo_token": executed.undo_token}

    def test_undo_without_session(self, service, store):
        outcome = service.perform_undo(None, "never-issued")
        assert outcome.not_found
        assert store.get_stats()["chat_turns"] == 0


class TestSpokenScenarios:
    """Complete conversations followed by undo."""

    def test_income_then_undo(self, service, ledger, pocket_id):
        tabungan = pocket_id("Tabungan")
        session = service.start_session()

        *_, executed = run_messages(
            service, session.id, ["aku dapat gaji 3jt400 hari ini", "Tabungan", "tidak", "ya"]
        )

        assert executed.success
        assert executed.turns[-1].payload["plan"] == {
            "kind": "income",
            "payload": {"amount": 3_400_000, "pocket_id": tabungan, "note": None},
        }
        assert ledger.get_pocket(tabungan).balance == 8_400_000

        first = service.perform_undo(session.id, executed.undo_token)
        second = service.perform_undo(session.id, executed.undo_token)

        assert first.success
        assert ledger.get_pocket(tabungan).balance == 5_000_000
        assert second.not_found

    def test_transfer_built_step_by_step_then_undo(self, service, ledger, pocket_id):
        tabungan = pocket_id("Tabungan")
        emoney = pocket_id("E-Money")
        total_before = ledger.total_balance()
        session = service.start_session()

        results = run_messages(
            service,
            session.id,
            ["aku mau kirim saldo", "200k", "Tabungan", "Tabungan", "E-Money", "top up", "ya"],
        )
        rejected, executed = results[3], results[-1]

        assert rejected.reply == manager.MSG_SAME_POCKET
        assert executed.success
        assert executed.turns[-1].payload["plan"]["payload"]["note"] == "top up"
        assert ledger.get_pocket(tabungan).balance == 4_800_000
        assert ledger.get_pocket(emoney).balance == 400_000
        assert ledger.total_balance() == total_before

        assert service.perform_undo(session.id, executed.undo_token).success

        assert ledger.get_pocket(tabungan).balance == 5_000_000
        assert ledger.get_pocket(emoney).balance == 200_000
        assert ledger.total_balance() == total_before
        assert ledger.count_transactions() == 4
        reversals = [row for row in ledger.list_transactions() if row.note.startswith("Undo")]
        assert len(reversals) == 2
