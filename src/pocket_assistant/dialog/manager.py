"""
Dialog state machine.

One call to ``step`` handles one user turn: it merges parser output or a
direct slot answer into the conversation state, enforces the transfer
constraint, and decides the next question. On an affirmative answer at the
confirmation step it builds the ExecutionPlan and asks the caller to run it.

Rules are evaluated in this order each turn:
1. a confirmed, executed state is reset (conversation boundary)
2. no intent yet: parse the text; no intent found -> clarifying message
3. ask-* step: read the text as the answer to that slot, re-ask on failure
4. confirm step: yes -> plan, no -> reset, anything else -> re-ask
5. otherwise: parse the text to fill any still-empty slots
6. equal transfer pockets: clear the destination and warn
7. ask for the first missing slot, then the note, then confirm

``step`` never raises on user input and never mutates the caller's state.
"""

from __future__ import annotations

import copy
import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, fields
from typing import Optional

from ..nlu.amount import extract_amount, format_rupiah
from ..nlu.id_parser import parse_command
from ..nlu.pocket_alias import PocketAlias, build_pocket_aliases, sanitize_pocket_name
from ..schemas.dialog import ASK_STEPS, DialogState, DialogStep, Intent, PocketOption
from ..schemas.plan import ExecutionPlan, ExpensePlan, IncomePlan, TransferPlan

logger = logging.getLogger(__name__)

AFFIRMATIVE_TOKENS = frozenset(
    {"ya", "iya", "y", "yes", "lanjut", "lanjutkan", "oke", "ok", "sip", "jalan", "jalankan"}
)
NEGATIVE_TOKENS = frozenset(
    {"tidak", "ga", "gak", "nggak", "enggak", "no", "batal", "cancel", "tidak jadi"}
)
SKIP_TOKENS = frozenset(
    {"skip", "tidak", "ga", "gak", "nggak", "enggak", "kosongkan", "tanpa", "tidak ada", "-"}
)

# Required slots per intent, in the order they are asked
REQUIRED_FIELDS: dict[Intent, tuple[str, ...]] = {
    Intent.INCOME_TO_POCKET: ("amount", "pocket"),
    Intent.EXPENSE_FROM_POCKET: ("amount", "pocket"),
    Intent.TRANSFER_BETWEEN_POCKETS: ("amount", "pocket_from", "pocket_to"),
}

MSG_UNKNOWN_INTENT = (
    "Maaf, aku belum menangkap maksudmu. "
    "Coba jelaskan apakah ini pemasukan, pengeluaran, atau transfer."
)
MSG_ASK_INTENT = "Kamu ingin mencatat pemasukan, pengeluaran, atau transfer antar pocket?"
MSG_ASK_AMOUNT = "Nominalnya berapa?"
MSG_ASK_POCKET = "Pocket mana yang dimaksud?"
MSG_ASK_POCKET_FROM = "Dana akan diambil dari pocket mana?"
MSG_ASK_POCKET_TO = "Pocket tujuan transfernya apa?"
MSG_ASK_NOTE = "Ada catatan tambahan? (boleh kosong)"
MSG_CONFIRM_HINT = 'Jika sudah siap, jawab "ya" untuk mengeksekusi.'
MSG_BAD_AMOUNT = (
    "Belum bisa membaca nominalnya. "
    "Pastikan kamu menulis angka yang jelas, contoh: 250k atau 2.500.000."
)
MSG_BAD_POCKET = (
    "Aku tidak menemukan pocket tersebut. "
    "Sebutkan nama pocket persis atau pilih dari pilihan yang ada."
)
MSG_BAD_POCKET_FROM = "Pocket asal tidak ditemukan. Pilih dari daftar pocket yang tersedia."
MSG_BAD_POCKET_TO = "Pocket tujuan tidak ditemukan. Pilih dari daftar pocket yang tersedia."
MSG_SAME_POCKET = "Pocket tujuan tidak boleh sama dengan pocket asal. Pilih tujuan lain."
MSG_INCOMPLETE = "Sepertinya masih ada data yang belum lengkap."
MSG_CANCELLED = "Baik, transaksi dibatalkan. Kamu bisa mulai lagi dengan perintah baru."
MSG_CONFIRM_AGAIN = "Jika sudah yakin, jawab “ya”. Jika ingin membatalkan, jawab “tidak”."

_TRAILING_PUNCTUATION = re.compile(r"[.!?,]+$")


@dataclass
class StepResult:
    """Outcome of one turn."""

    state: DialogState
    message: str
    options: Optional[list[str]] = None
    execute: bool = False
    plan: Optional[ExecutionPlan] = None


@dataclass
class _Question:
    message: str
    step: DialogStep
    options: Optional[list[str]] = field(default=None)


def create_empty_state() -> DialogState:
    """Fresh INIT state with no slots filled."""
    return DialogState()


def _collapse(text: str) -> str:
    return " ".join(text.split())


def _answer_token(text: str) -> str:
    return _TRAILING_PUNCTUATION.sub("", _collapse(text).lower()).strip()


def is_affirmative(text: str) -> bool:
    return _answer_token(text) in AFFIRMATIVE_TOKENS


def is_negative(text: str) -> bool:
    return _answer_token(text) in NEGATIVE_TOKENS


def should_skip(text: str) -> bool:
    token = _answer_token(text)
    return token == "" or token in SKIP_TOKENS


def collect_options(
    pockets: Iterable[PocketOption], exclude_ids: Iterable[str] = ()
) -> list[str]:
    """Quick-reply pocket names, minus excluded ids."""
    excluded = set(exclude_ids)
    return [pocket.name for pocket in pockets if pocket.id not in excluded]


def resolve_pocket(
    text: str,
    pockets: Sequence[PocketOption],
    aliases: Sequence[PocketAlias],
    exclude_id: Optional[str] = None,
) -> Optional[PocketOption]:
    """
    Resolve a pocket answer by display name, then by alias.

    The catalog (``pockets``) is authoritative: alias hits for ids that are not
    in the catalog resolve to nothing.
    """
    lowered = _collapse(text).lower()
    if not lowered:
        return None

    for pocket in pockets:
        if pocket.id != exclude_id and pocket.name.lower() == lowered:
            return pocket

    by_id = {pocket.id: pocket for pocket in pockets}
    sanitized = sanitize_pocket_name(text)
    for entry in aliases:
        if entry.id == exclude_id:
            continue
        if entry.name.lower() == lowered or sanitized in entry.aliases:
            return by_id.get(entry.id)
    return None


def format_summary(state: DialogState, done: bool = False) -> str:
    """
    Natural-language summary of the planned transaction.

    Question form for the confirmation prompt, past tense when ``done``.
    """
    if state.intent is None:
        return "Belum ada rencana transaksi."

    amount_text = format_rupiah(state.amount or 0)
    note_text = f" dengan catatan “{state.note}”" if state.note else ""

    if state.intent == Intent.INCOME_TO_POCKET:
        pocket = state.pocket.name if state.pocket else "(pocket belum ditentukan)"
        if done:
            return f"Pemasukan {amount_text} ke {pocket}{note_text} telah dicatat."
        return f"Tambahkan pemasukan {amount_text} ke {pocket}{note_text}?"

    if state.intent == Intent.EXPENSE_FROM_POCKET:
        pocket = state.pocket.name if state.pocket else "(pocket belum ditentukan)"
        if done:
            return f"Pengeluaran {amount_text} dari {pocket}{note_text} telah dicatat."
        return f"Catat pengeluaran {amount_text} dari {pocket}{note_text}?"

    source = state.pocket_from.name if state.pocket_from else "(asal belum ditentukan)"
    target = state.pocket_to.name if state.pocket_to else "(tujuan belum ditentukan)"
    if done:
        return f"Transfer {amount_text} dari {source} ke {target}{note_text} telah dijalankan."
    return f"Transfer {amount_text} dari {source} ke {target}{note_text}?"


def missing_fields(state: DialogState) -> list[str]:
    """Required slots of the state's intent that are still empty, in asking order."""
    if state.intent is None:
        return []
    return [name for name in REQUIRED_FIELDS[state.intent] if getattr(state, name) is None]


def build_execution_plan(state: DialogState) -> Optional[ExecutionPlan]:
    """Turn a fully filled state into a plan; None if any required slot is empty."""
    if state.intent is None or not state.amount or missing_fields(state):
        return None

    if state.intent == Intent.INCOME_TO_POCKET:
        return IncomePlan(amount=state.amount, pocket_id=state.pocket.id, note=state.note)
    if state.intent == Intent.EXPENSE_FROM_POCKET:
        return ExpensePlan(amount=state.amount, pocket_id=state.pocket.id, note=state.note)
    return TransferPlan(
        amount=state.amount,
        from_id=state.pocket_from.id,
        to_id=state.pocket_to.id,
        note=state.note,
    )


def _map_parser_result(
    state: DialogState,
    text: str,
    pockets: Sequence[PocketOption],
    aliases: Sequence[PocketAlias],
) -> None:
    """Fill empty slots from a full parse of the text."""
    result = parse_command(text, aliases)

    if result.intent and state.intent is None:
        state.intent = result.intent

    entities = result.entities
    if state.amount is None and entities.amount and entities.amount > 0:
        state.amount = entities.amount

    if state.pocket is None and entities.pocket:
        state.pocket = resolve_pocket(entities.pocket, pockets, aliases)

    if state.pocket_from is None and entities.pocket_from:
        state.pocket_from = resolve_pocket(entities.pocket_from, pockets, aliases)

    if state.pocket_to is None and entities.pocket_to:
        exclude = state.pocket_from.id if state.pocket_from else None
        state.pocket_to = resolve_pocket(entities.pocket_to, pockets, aliases, exclude)

    if not state.note and entities.note:
        state.note = _collapse(entities.note)
        state.note_asked = True


def _answer_pocket(
    text: str,
    state: DialogState,
    pockets: Sequence[PocketOption],
    aliases: Sequence[PocketAlias],
    target: str,
) -> bool:
    """
    Read a direct answer for one pocket slot.

    The opposite transfer pocket is excluded from resolution. If the answer
    names exactly that pocket, it is still stored so the transfer constraint
    check can reject it with a dedicated warning.
    """
    opposite: Optional[PocketOption] = None
    if target == "pocket_from":
        opposite = state.pocket_to
    elif target == "pocket_to":
        opposite = state.pocket_from

    resolved = resolve_pocket(text, pockets, aliases, opposite.id if opposite else None)
    if resolved is None and opposite is not None:
        same = resolve_pocket(text, pockets, aliases)
        if same is not None and same.id == opposite.id:
            resolved = same
    if resolved is None:
        return False

    setattr(state, target, resolved)
    return True


def _answer_note(text: str, state: DialogState) -> None:
    state.note = None if should_skip(text) else _collapse(text)
    state.note_asked = True


def _reset(state: DialogState) -> None:
    fresh = create_empty_state()
    for item in fields(state):
        setattr(state, item.name, getattr(fresh, item.name))


def enforce_transfer_constraints(state: DialogState) -> Optional[str]:
    """Clear the destination when both transfer pockets are the same one."""
    if state.intent != Intent.TRANSFER_BETWEEN_POCKETS:
        return None
    if state.pocket_from and state.pocket_to and state.pocket_from.id == state.pocket_to.id:
        state.pocket_to = None
        return MSG_SAME_POCKET
    return None


def next_question(state: DialogState, pockets: Sequence[PocketOption]) -> _Question:
    """Decide what to ask next; reaches CONFIRM only when every slot and the note are settled."""
    if state.intent is None:
        return _Question(MSG_ASK_INTENT, DialogStep.INIT)

    missing = missing_fields(state)
    if "amount" in missing:
        return _Question(MSG_ASK_AMOUNT, DialogStep.ASK_AMOUNT)

    if state.intent == Intent.TRANSFER_BETWEEN_POCKETS:
        if "pocket_from" in missing:
            return _Question(
                MSG_ASK_POCKET_FROM, DialogStep.ASK_POCKET_FROM, collect_options(pockets)
            )
        if "pocket_to" in missing:
            return _Question(
                MSG_ASK_POCKET_TO,
                DialogStep.ASK_POCKET_TO,
                collect_options(pockets, [state.pocket_from.id]),
            )
    elif "pocket" in missing:
        return _Question(MSG_ASK_POCKET, DialogStep.ASK_POCKET, collect_options(pockets))

    if not state.note_asked:
        return _Question(MSG_ASK_NOTE, DialogStep.ASK_NOTE)

    return _Question(f"{format_summary(state)} {MSG_CONFIRM_HINT}", DialogStep.CONFIRM)


def _ask_step_retry(
    state: DialogState, pockets: Sequence[PocketOption]
) -> tuple[str, Optional[list[str]]]:
    """Message and options for re-asking the current ask-* step."""
    if state.step == DialogStep.ASK_AMOUNT:
        return MSG_BAD_AMOUNT, None
    if state.step == DialogStep.ASK_POCKET_FROM:
        exclude = [state.pocket_to.id] if state.pocket_to else []
        return MSG_BAD_POCKET_FROM, collect_options(pockets, exclude)
    if state.step == DialogStep.ASK_POCKET_TO:
        exclude = [state.pocket_from.id] if state.pocket_from else []
        return MSG_BAD_POCKET_TO, collect_options(pockets, exclude)
    return MSG_BAD_POCKET, collect_options(pockets)


def _handle_ask_step(
    text: str,
    state: DialogState,
    pockets: Sequence[PocketOption],
    aliases: Sequence[PocketAlias],
) -> bool:
    """Apply a direct slot answer. Returns False when the answer is unusable."""
    if state.step == DialogStep.ASK_AMOUNT:
        found = extract_amount(text)
        if not found:
            return False
        state.amount = found[0]
        return True
    if state.step == DialogStep.ASK_POCKET:
        return _answer_pocket(text, state, pockets, aliases, "pocket")
    if state.step == DialogStep.ASK_POCKET_FROM:
        return _answer_pocket(text, state, pockets, aliases, "pocket_from")
    if state.step == DialogStep.ASK_POCKET_TO:
        return _answer_pocket(text, state, pockets, aliases, "pocket_to")
    _answer_note(text, state)
    return True


def step(
    text: str,
    state: DialogState,
    pockets: Sequence[PocketOption],
    aliases: Optional[Sequence[PocketAlias]] = None,
) -> StepResult:
    """
    Process one user turn.

    Args:
        text: Raw user message.
        state: Current conversation state (not modified).
        pockets: Current pocket catalog.
        aliases: Alias index for the catalog; derived from ``pockets`` when empty.

    Returns:
        StepResult with the new state, the reply and, on an affirmed
        confirmation, ``execute=True`` and the plan.
    """
    pockets = list(pockets)
    alias_index = list(aliases) if aliases else build_pocket_aliases(pockets)
    state = copy.deepcopy(state)
    text = _collapse(text)

    if state.confirmed and state.step == DialogStep.EXECUTED:
        _reset(state)

    message: Optional[str] = None
    execute = False
    plan: Optional[ExecutionPlan] = None

    if state.intent is None:
        parsed = copy.deepcopy(state)
        _map_parser_result(parsed, text, pockets, alias_index)
        if parsed.intent is None:
            # Entities without an intent are dropped
            logger.debug("No intent recognized in %r", text)
            return StepResult(state=state, message=MSG_UNKNOWN_INTENT)
        state = parsed

    elif state.step in ASK_STEPS:
        if not _handle_ask_step(text, state, pockets, alias_index):
            retry_message, retry_options = _ask_step_retry(state, pockets)
            logger.debug("Unusable answer for %s: %r", state.step.value, text)
            return StepResult(state=state, message=retry_message, options=retry_options)

    elif state.step == DialogStep.CONFIRM:
        if is_affirmative(text):
            plan = build_execution_plan(state)
            if plan is None:
                logger.warning("Confirmation reached with incomplete slots: %s", state.to_dict())
                question = next_question(state, pockets)
                state.step = question.step
                return StepResult(
                    state=state,
                    message=f"{MSG_INCOMPLETE} {question.message}",
                    options=question.options,
                )
            state.confirmed = True
            state.step = DialogStep.EXECUTED
            execute = True
            message = format_summary(state, done=True)
        elif is_negative(text):
            _reset(state)
            return StepResult(state=state, message=MSG_CANCELLED)
        else:
            return StepResult(state=state, message=MSG_CONFIRM_AGAIN)

    else:
        _map_parser_result(state, text, pockets, alias_index)

    warning = enforce_transfer_constraints(state)
    if warning:
        state.step = DialogStep.ASK_POCKET_TO
        return StepResult(
            state=state,
            message=warning,
            options=collect_options(pockets, [state.pocket_from.id]),
        )

    options: Optional[list[str]] = None
    if message is None:
        question = next_question(state, pockets)
        state.step = question.step
        message = question.message
        options = question.options

    return StepResult(
        state=state,
        message=message,
        options=options,
        execute=execute,
        plan=plan,
    )
