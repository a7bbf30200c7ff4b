"""
SSOT (Single Source of Truth) schemas for the assistant.

These canonical types are the ONLY models shared between the parser, the
dialog state machine, the executor and the stores.
"""

from .dialog import (
    ASK_STEPS,
    DialogState,
    DialogStep,
    Intent,
    PocketOption,
)
from .plan import (
    ExecutionPlan,
    ExpensePlan,
    IncomePlan,
    JournalEntry,
    PlanKind,
    TransferPlan,
    plan_to_dict,
)

__all__ = [
    # Dialog state
    "Intent",
    "DialogStep",
    "DialogState",
    "PocketOption",
    "ASK_STEPS",
    # Plans
    "PlanKind",
    "IncomePlan",
    "ExpensePlan",
    "TransferPlan",
    "ExecutionPlan",
    "plan_to_dict",
    # Journal
    "JournalEntry",
]
