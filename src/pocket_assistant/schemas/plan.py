"""
Execution plans and journal records.

An ExecutionPlan is a fully resolved description of one ledger mutation.
It is built by the dialog state machine on confirmation and consumed
immediately by the executor; plans are never persisted. The journal entry
is what survives execution, keyed by a single-use undo token.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


class PlanKind(str, Enum):
    """Kind of ledger mutation (shared by plans and journal entries)."""

    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


@dataclass(frozen=True)
class IncomePlan:
    """Add money to one pocket."""

    amount: int
    pocket_id: str
    note: Optional[str] = None

    @property
    def kind(self) -> PlanKind:
        return PlanKind.INCOME

    def payload(self) -> dict[str, Any]:
        return {"amount": self.amount, "pocket_id": self.pocket_id, "note": self.note}


@dataclass(frozen=True)
class ExpensePlan:
    """Take money out of one pocket."""

    amount: int
    pocket_id: str
    note: Optional[str] = None

    @property
    def kind(self) -> PlanKind:
        return PlanKind.EXPENSE

    def payload(self) -> dict[str, Any]:
        return {"amount": self.amount, "pocket_id": self.pocket_id, "note": self.note}


@dataclass(frozen=True)
class TransferPlan:
    """Move money between two distinct pockets."""

    amount: int
    from_id: str
    to_id: str
    note: Optional[str] = None

    @property
    def kind(self) -> PlanKind:
        return PlanKind.TRANSFER

    def payload(self) -> dict[str, Any]:
        return {
            "amount": self.amount,
            "from_id": self.from_id,
            "to_id": self.to_id,
            "note": self.note,
        }


ExecutionPlan = Union[IncomePlan, ExpensePlan, TransferPlan]


def plan_to_dict(plan: ExecutionPlan) -> dict[str, Any]:
    """Serialize a plan for chat-turn payloads."""
    return {"kind": plan.kind.value, "payload": plan.payload()}


@dataclass
class JournalEntry:
    """
    Record of one successful execution.

    Exactly one entry exists per undo_token. The entry is deleted when the
    undo succeeds, so a missing entry means "already undone or invalid".
    """

    id: str
    kind: PlanKind
    payload: dict[str, Any]
    undo_token: str
    created_at: str  # ISO timestamp
    affected_transaction_ids: list[str] = field(default_factory=list)
