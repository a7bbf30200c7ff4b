"""Plan execution and the undo journal.

``execute`` performs one ExecutionPlan against the ledger and, on success,
appends a journal entry holding a fresh single-use undo token. ``undo``
looks the token up and applies a compensating reversal:

- income/expense: the single affected transaction is deleted (the ledger
  reverses its balance effect)
- transfer: a new transfer in the opposite direction is posted; the
  original two rows stay in place next to the two reversal rows

If the journal entry cannot be written, the fresh mutation is reversed the
same way before the failure is reported.

The journal entry is deleted only after the reversal succeeded, so a failed
reversal leaves the token valid for a retry. The undo window is advisory:
``undo`` does not check it.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from pocket_assistant.ledger.base import LedgerError
from pocket_assistant.schemas.plan import (
    ExecutionPlan,
    ExpensePlan,
    IncomePlan,
    JournalEntry,
    PlanKind,
    TransferPlan,
)

if TYPE_CHECKING:
    from pocket_assistant.config import Config
    from pocket_assistant.ledger.base import LedgerService
    from pocket_assistant.state_store import StateStore

logger = logging.getLogger(__name__)

DEFAULT_UNDO_WINDOW_SECONDS = 120

MSG_TOKEN_NOT_FOUND = "Token undo tidak ditemukan atau sudah digunakan."
MSG_NOTHING_TO_UNDO = "Transaksi tidak ditemukan untuk di-undo."
MSG_REVERSED = "Transaksi sudah dibatalkan."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(moment: datetime) -> str:
    return moment.isoformat().replace("+00:00", "Z")


@dataclass
class ExecutionResult:
    """Outcome of executing a plan."""

    success: bool
    undo_token: str | None = None
    undo_expires_at: str | None = None  # ISO timestamp, advisory
    details: Any = None  # Ledger result object
    error: str | None = None

    @property
    def committed(self) -> bool:
        """True when the ledger holds a mutation this result could not journal."""
        return not self.success and self.details is not None


@dataclass
class UndoResult:
    """Outcome of an undo attempt.

    ``not_found`` marks the terminal case (token unknown or already used);
    any other failure is retryable with the same token.
    """

    success: bool
    error: str | None = None
    not_found: bool = False

    @property
    def retryable(self) -> bool:
        return not self.success and not self.not_found


class PlanExecutor:
    """Executes plans against a ledger and keeps the undo journal.

    Usage:
        executor = PlanExecutor(ledger, state_store, config)
        result = executor.execute(plan)
        executor.undo(result.undo_token)
    """

    def __init__(
        self,
        ledger: LedgerService,
        journal_store: StateStore,
        config: Config | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the executor.

        Args:
            ledger: Ledger to mutate.
            journal_store: Store with append/find/delete journal operations.
            config: Application configuration (undo window).
            clock: Source of "now", injectable for tests.
        """
        self.ledger = ledger
        self.journal = journal_store
        self.clock = clock
        self.undo_window = timedelta(
            seconds=(
                config.assistant.undo_window_seconds
                if config is not None
                else DEFAULT_UNDO_WINDOW_SECONDS
            )
        )

    def _perform(self, plan: ExecutionPlan) -> tuple[Any, list[str]]:
        """Dispatch a plan to the ledger. Returns (ledger result, affected transaction ids)."""
        if isinstance(plan, IncomePlan):
            result = self.ledger.create_transaction(
                "income", plan.amount, plan.pocket_id, plan.note
            )
            return result, [result.transaction_id]
        if isinstance(plan, ExpensePlan):
            result = self.ledger.create_transaction(
                "expense", plan.amount, plan.pocket_id, plan.note
            )
            return result, [result.transaction_id]
        if isinstance(plan, TransferPlan):
            result = self.ledger.transfer(plan.from_id, plan.to_id, plan.amount, plan.note)
            return result, list(result.transaction_ids)
        raise TypeError(f"Unsupported plan type: {type(plan).__name__}")

    def execute(self, plan: ExecutionPlan) -> ExecutionResult:
        """Run a plan and journal it.

        Ledger failures come back verbatim in ``error`` and leave no journal entry.
        """
        try:
            details, affected_ids = self._perform(plan)
        except LedgerError as e:
            logger.warning(f"Ledger rejected {plan.kind.value} plan: {e}")
            return ExecutionResult(success=False, error=str(e))
        except Exception as e:
            logger.exception(f"Unexpected ledger failure for {plan.kind.value} plan")
            return ExecutionResult(success=False, error=str(e))

        now = self.clock()
        entry = JournalEntry(
            id=str(uuid.uuid4()),
            kind=plan.kind,
            payload=plan.payload(),
            undo_token=str(uuid.uuid4()),
            created_at=_isoformat(now),
            affected_transaction_ids=affected_ids,
        )

        try:
            self.journal.append_journal(entry)
        except Exception as e:
            logger.exception(
                f"Journal write failed after {plan.kind.value} executed "
                f"(transactions={affected_ids}), reversing"
            )
            return self._compensate(entry, details, f"Gagal mencatat jurnal: {e}")

        logger.info(
            f"Executed {plan.kind.value} plan amount={plan.amount} "
            f"transactions={affected_ids} undo_token={entry.undo_token}"
        )
        return ExecutionResult(
            success=True,
            undo_token=entry.undo_token,
            undo_expires_at=_isoformat(now + self.undo_window),
            details=details,
        )

    def _compensate(self, entry: JournalEntry, details: Any, error: str) -> ExecutionResult:
        """Reverse a mutation whose journal entry could not be written.

        On success the ledger is back where it started and ``details`` is
        dropped. If the reversal fails too, ``details`` is kept so the caller
        knows the mutation is still committed.
        """
        try:
            self._reverse(entry)
        except Exception:
            logger.exception(
                f"Could not reverse unjournaled {entry.kind.value} "
                f"(transactions={entry.affected_transaction_ids})"
            )
            return ExecutionResult(success=False, details=details, error=error)

        logger.info(f"Reversed unjournaled {entry.kind.value} execution")
        return ExecutionResult(success=False, error=f"{error}. {MSG_REVERSED}")

    def _reverse(self, entry: JournalEntry) -> None:
        if entry.kind in (PlanKind.INCOME, PlanKind.EXPENSE):
            if not entry.affected_transaction_ids:
                raise LedgerError(MSG_NOTHING_TO_UNDO)
            self.ledger.delete_transaction(entry.affected_transaction_ids[0])
            return

        payload = entry.payload
        note = payload.get("note")
        self.ledger.transfer(
            payload["to_id"],
            payload["from_id"],
            int(payload["amount"]),
            f"Undo: {note}" if note else "Undo transfer",
        )

    def undo(self, undo_token: str) -> UndoResult:
        """Reverse the execution recorded under ``undo_token`` (single use)."""
        entry = self.journal.find_journal_by_token(undo_token)
        if entry is None:
            logger.info(f"Undo token not found or already used: {undo_token}")
            return UndoResult(success=False, error=MSG_TOKEN_NOT_FOUND, not_found=True)

        try:
            self._reverse(entry)
        except LedgerError as e:
            logger.warning(f"Undo of {entry.kind.value} failed, journal kept for retry: {e}")
            return UndoResult(success=False, error=str(e))
        except Exception as e:
            logger.exception(f"Unexpected failure undoing {entry.kind.value}")
            return UndoResult(success=False, error=str(e))

        if not self.journal.delete_journal_by_token(undo_token):
            logger.warning(f"Journal entry for {undo_token} vanished during undo")

        logger.info(f"Undid {entry.kind.value} execution (token={undo_token})")
        return UndoResult(success=True)
