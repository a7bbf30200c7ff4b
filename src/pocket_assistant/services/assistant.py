"""Conversation service.

Glues the dialog state machine, the stores and the executor into the
request/response surface a chat front end needs:

- submit_message: one user turn -> assistant reply (+ execution when confirmed)
- perform_undo: single-use undo by token
- get_chat_history: logged turns of a session

Turns of one session are serialized with a per-session lock; different
sessions proceed independently.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pocket_assistant.dialog.manager import StepResult, create_empty_state, step
from pocket_assistant.ledger.base import CreateTransactionResult, TransferResult
from pocket_assistant.nlu.amount import format_rupiah
from pocket_assistant.nlu.pocket_alias import build_pocket_aliases
from pocket_assistant.schemas.dialog import DialogStep, PocketOption
from pocket_assistant.schemas.plan import (
    ExecutionPlan,
    ExpensePlan,
    IncomePlan,
    TransferPlan,
    plan_to_dict,
)
from pocket_assistant.services.executor import ExecutionResult, PlanExecutor
from pocket_assistant.state_store import ChatRole, ChatTurnRecord, SessionRecord

if TYPE_CHECKING:
    from pocket_assistant.config import Config
    from pocket_assistant.ledger.base import LedgerService
    from pocket_assistant.state_store import StateStore

logger = logging.getLogger(__name__)

MSG_EMPTY_MESSAGE = "Pesan tidak boleh kosong."
MSG_TOO_LONG = "Pesan terlalu panjang (maksimal {limit} karakter)."
MSG_UNDO_DONE = "Transaksi berhasil di-undo. Saldo pocket telah dikembalikan."
MSG_UNDO_FAILED = "Undo gagal: {error}"
MSG_EXECUTION_FAILED = "Eksekusi gagal: {error}"


@dataclass
class SubmitResult:
    """Outcome of one submitted message."""

    success: bool
    session_id: str | None = None
    turns: list[ChatTurnRecord] = field(default_factory=list)  # Assistant turns of this request
    error: str | None = None
    undo_token: str | None = None
    undo_expires_at: str | None = None

    @property
    def reply(self) -> str | None:
        """Text of the last assistant turn."""
        return self.turns[-1].text if self.turns else None


@dataclass
class UndoOutcome:
    """Outcome of an undo request."""

    success: bool
    message: str
    not_found: bool = False


def _pocket_name(pockets: list[PocketOption], pocket_id: str, fallback: str) -> str:
    for pocket in pockets:
        if pocket.id == pocket_id:
            return pocket.name
    return fallback


def format_execution_message(
    plan: ExecutionPlan, details: Any, pockets: list[PocketOption]
) -> str:
    """User-facing confirmation of an executed plan, with the new balance(s)."""
    if isinstance(plan, IncomePlan) and isinstance(details, CreateTransactionResult):
        name = details.pocket.name or _pocket_name(pockets, plan.pocket_id, "pocket")
        return (
            f"Pemasukan sebesar {format_rupiah(plan.amount)} dicatat ke {name}. "
            f"Saldo pocket sekarang {format_rupiah(details.pocket_balance_after)}."
        )
    if isinstance(plan, ExpensePlan) and isinstance(details, CreateTransactionResult):
        name = details.pocket.name or _pocket_name(pockets, plan.pocket_id, "pocket")
        return (
            f"Pengeluaran {format_rupiah(plan.amount)} dari {name} berhasil dicatat. "
            f"Saldo pocket sekarang {format_rupiah(details.pocket_balance_after)}."
        )
    if isinstance(plan, TransferPlan) and isinstance(details, TransferResult):
        source = details.from_pocket
        target = details.to_pocket
        return (
            f"Transfer dari {source.name} ke {target.name} selesai. "
            f"Saldo terbaru: {source.name} {format_rupiah(source.balance)}, "
            f"{target.name} {format_rupiah(target.balance)}."
        )
    return "Transaksi berhasil dijalankan."


class AssistantService:
    """Conversation front door for the pocket assistant.

    Usage:
        service = AssistantService(state_store, ledger, config)
        session = service.start_session()
        result = service.submit_message(session.id, "transfer 250k dari tabungan ke e-money")
    """

    def __init__(
        self,
        state_store: StateStore,
        ledger: LedgerService,
        config: Config,
        executor: PlanExecutor | None = None,
    ) -> None:
        self.store = state_store
        self.ledger = ledger
        self.config = config
        self.executor = executor or PlanExecutor(ledger, state_store, config)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _session_lock(self, session_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(session_id, threading.Lock())

    def start_session(self) -> SessionRecord:
        """Create a conversation with an empty dialog state."""
        session = self.store.create_session(create_empty_state())
        logger.info(f"Started session {session.id}")
        return session

    def _validate_text(self, text: str | None) -> str | None:
        """Return an error message for unusable input, None if it is fine."""
        if text is None or not text.strip():
            return MSG_EMPTY_MESSAGE
        limit = self.config.assistant.max_message_length
        if len(text) > limit:
            return MSG_TOO_LONG.format(limit=limit)
        return None

    def submit_message(self, session_id: str | None, text: str) -> SubmitResult:
        """
        Handle one user message.

        Args:
            session_id: Existing conversation id; None starts a new session.
            text: Raw user message.

        Returns:
            SubmitResult with the assistant turns logged for this message.
        """
        error = self._validate_text(text)
        if error:
            return SubmitResult(success=False, session_id=session_id, error=error)

        if session_id is None:
            session_id = self.start_session().id

        with self._session_lock(session_id):
            return self._submit(session_id, text.strip())

    def _submit(self, session_id: str, text: str) -> SubmitResult:
        state = self.store.get_session_state(session_id)
        # Make sure the session row exists before turns reference it
        self.store.save_session_state(session_id, state)

        pockets = self.ledger.list_pockets()
        aliases = build_pocket_aliases(pockets)

        self.store.log_turn(session_id, ChatRole.USER, text)

        result: StepResult = step(text, state, pockets, aliases)
        self.store.save_session_state(session_id, result.state)

        turns = [
            self.store.log_turn(
                session_id,
                ChatRole.ASSISTANT,
                result.message,
                self._step_payload(result),
            )
        ]

        if not result.execute or result.plan is None:
            return SubmitResult(success=True, session_id=session_id, turns=turns)

        execution = self.executor.execute(result.plan)
        if not execution.success:
            return self._handle_execution_failure(session_id, result, execution, turns)

        message = format_execution_message(result.plan, execution.details, pockets)
        turns.append(
            self.store.log_turn(
                session_id,
                ChatRole.ASSISTANT,
                message,
                {
                    "type": "result",
                    "status": "success",
                    "plan": plan_to_dict(result.plan),
                    "undo_token": execution.undo_token,
                    "undo_expires_at": execution.undo_expires_at,
                },
            )
        )
        self.store.save_session_state(session_id, create_empty_state())

        return SubmitResult(
            success=True,
            session_id=session_id,
            turns=turns,
            undo_token=execution.undo_token,
            undo_expires_at=execution.undo_expires_at,
        )

    def _handle_execution_failure(
        self,
        session_id: str,
        result: StepResult,
        execution: ExecutionResult,
        turns: list[ChatTurnRecord],
    ) -> SubmitResult:
        """Log the failure and put the conversation back at the confirmation step.

        A mutation that is still committed in the ledger must not be confirmed
        again, so in that case the session starts over instead.
        """
        logger.warning(f"Execution failed in session {session_id}: {execution.error}")
        if execution.committed:
            logger.error(f"Session {session_id} reset after an unjournaled execution")
            self.store.save_session_state(session_id, create_empty_state())
        else:
            rollback = result.state
            rollback.step = DialogStep.CONFIRM
            rollback.confirmed = False
            self.store.save_session_state(session_id, rollback)

        turns.append(
            self.store.log_turn(
                session_id,
                ChatRole.ASSISTANT,
                MSG_EXECUTION_FAILED.format(error=execution.error),
                {
                    "type": "error",
                    "plan": plan_to_dict(result.plan) if result.plan else None,
                    "error": execution.error,
                },
            )
        )
        return SubmitResult(
            success=False, session_id=session_id, turns=turns, error=execution.error
        )

    @staticmethod
    def _step_payload(result: StepResult) -> dict[str, Any]:
        if result.state.step == DialogStep.CONFIRM:
            payload_type = "confirmation"
        elif result.execute:
            payload_type = "execution"
        else:
            payload_type = "question"
        return {
            "type": payload_type,
            "step": result.state.step.value,
            "options": result.options,
            "plan": plan_to_dict(result.plan) if result.plan else None,
        }

    def perform_undo(self, session_id: str | None, undo_token: str) -> UndoOutcome:
        """Undo an execution by token and log the outcome in the session (if any)."""
        undo = self.executor.undo(undo_token)
        if undo.success:
            outcome = UndoOutcome(success=True, message=MSG_UNDO_DONE)
        else:
            outcome = UndoOutcome(
                success=False,
                message=MSG_UNDO_FAILED.format(error=undo.error),
                not_found=undo.not_found,
            )

        if session_id and self.store.get_session(session_id) is not None:
            self.store.log_turn(
                session_id,
                ChatRole.ASSISTANT,
                outcome.message,
                {
                    "type": "result" if outcome.success else "error",
                    "undo_token": undo_token,
                },
            )
        return outcome

    def get_chat_history(self, session_id: str) -> list[ChatTurnRecord]:
        return self.store.get_turns(session_id)
