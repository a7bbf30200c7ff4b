"""
Conversation state (SSOT).

DialogState is the only per-conversation object the state machine reads and
writes. It must round-trip through plain data (``to_dict`` / ``from_dict``)
so any session store can persist it without live references.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class Intent(str, Enum):
    """Closed set of financial actions a command can request."""

    INCOME_TO_POCKET = "income_to_pocket"
    EXPENSE_FROM_POCKET = "expense_from_pocket"
    TRANSFER_BETWEEN_POCKETS = "transfer_between_pockets"


class DialogStep(str, Enum):
    """
    Position of a conversation in the slot-filling flow.

    INIT and EXECUTED are re-entrant: after EXECUTED the next turn starts
    from a fresh INIT state.
    """

    INIT = "init"
    ASK_AMOUNT = "ask-amount"
    ASK_POCKET = "ask-pocket"
    ASK_POCKET_FROM = "ask-pocket-from"
    ASK_POCKET_TO = "ask-pocket-to"
    ASK_NOTE = "ask-note"
    CONFIRM = "confirm"
    EXECUTED = "executed"


# Steps where the next message is read as a direct answer to one slot
ASK_STEPS = frozenset(
    {
        DialogStep.ASK_AMOUNT,
        DialogStep.ASK_POCKET,
        DialogStep.ASK_POCKET_FROM,
        DialogStep.ASK_POCKET_TO,
        DialogStep.ASK_NOTE,
    }
)


@dataclass(frozen=True)
class PocketOption:
    """Identity and display name of a pocket, supplied by the caller each turn."""

    id: str
    name: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "name": self.name}

    @classmethod
    def from_dict(cls, data: Any) -> Optional["PocketOption"]:
        """Build from plain data; returns None for anything unusable."""
        if not isinstance(data, dict):
            return None
        pocket_id = data.get("id")
        name = data.get("name")
        if not pocket_id or not isinstance(name, str):
            return None
        return cls(id=str(pocket_id), name=name)


@dataclass
class DialogState:
    """
    Slot state of one conversation.

    note semantics:
    - note_asked False: the note question has not been asked yet
    - note_asked True and note None: asked, user skipped it
    - note_asked True and note set: asked (or volunteered) and answered
    """

    intent: Optional[Intent] = None
    amount: Optional[int] = None
    pocket: Optional[PocketOption] = None
    pocket_from: Optional[PocketOption] = None
    pocket_to: Optional[PocketOption] = None
    note: Optional[str] = None
    note_asked: bool = False
    step: DialogStep = DialogStep.INIT
    confirmed: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to plain data for persistence."""
        return {
            "intent": self.intent.value if self.intent else None,
            "amount": self.amount,
            "pocket": self.pocket.to_dict() if self.pocket else None,
            "pocket_from": self.pocket_from.to_dict() if self.pocket_from else None,
            "pocket_to": self.pocket_to.to_dict() if self.pocket_to else None,
            "note": self.note,
            "note_asked": self.note_asked,
            "step": self.step.value,
            "confirmed": self.confirmed,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "DialogState":
        """
        Rebuild from plain data.

        Tolerates partial and unknown shapes: missing keys fall back to the
        defaults, unknown keys are ignored and invalid values are dropped.
        """
        if not isinstance(data, dict):
            return cls()

        intent: Optional[Intent] = None
        try:
            if data.get("intent"):
                intent = Intent(data["intent"])
        except ValueError:
            intent = None

        try:
            step = DialogStep(data.get("step") or DialogStep.INIT.value)
        except ValueError:
            step = DialogStep.INIT

        amount = data.get("amount")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            amount = None

        note = data.get("note")
        if not isinstance(note, str):
            note = None

        return cls(
            intent=intent,
            amount=amount,
            pocket=PocketOption.from_dict(data.get("pocket")),
            pocket_from=PocketOption.from_dict(data.get("pocket_from")),
            pocket_to=PocketOption.from_dict(data.get("pocket_to")),
            note=note,
            note_asked=bool(data.get("note_asked", False)),
            step=step,
            confirmed=bool(data.get("confirmed", False)),
        )
