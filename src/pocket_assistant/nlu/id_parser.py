"""
Indonesian command parser.

Detects one of three intents (income, expense, transfer) in a free-form
command and extracts amount, pocket name(s) and note. The vocabulary is
closed on purpose; anything outside it comes back with intent None.

The parser is pure: same text and same alias index give the same result.
"""

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Optional

from ..schemas.dialog import Intent
from .amount import extract_amount, format_rupiah
from .pocket_alias import PocketAlias, sanitize_pocket_name, strip_diacritics

logger = logging.getLogger(__name__)

TRANSFER_KEYWORDS = ("transfer", "kirim", "pindahkan", "pindah")
INCOME_KEYWORDS = ("pemasukan", "income", "gaji", "tambah saldo")
EXPENSE_KEYWORDS = ("pengeluaran", "keluarkan", "bayar", "pakai")

# Applied in order after lowercasing; each maps a family of verbs to a marker
SYNONYM_REPLACEMENTS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\bmemasukkan\b"), " pemasukan "),
    (re.compile(r"\bmendapat(?:kan)?\b"), " pemasukan "),
    (re.compile(r"\bdapat\b"), " pemasukan "),
    (re.compile(r"\bterima\b"), " pemasukan "),
    (re.compile(r"\bmasukkan\b"), " pemasukan "),
    (re.compile(r"\bgaji\b"), " income "),
    (re.compile(r"\btambah(?:kan)?\s+saldo\b"), " tambah saldo "),
    (re.compile(r"\btransfer\b|\bkirim\b|\bpindahkan\b|\bpindah\b"), " transfer "),
    (
        re.compile(r"\bkeluarkan\b|\bpengeluaran\b|\bbayar\b|\bpakai\b|\bbelanja\b"),
        " pengeluaran ",
    ),
]

UNIT_REPLACEMENTS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\bjt\b"), " juta "),
    (re.compile(r"\bjuta\b"), " juta "),
    (re.compile(r"\brb\b"), " ribu "),
    (re.compile(r"\bribu\b"), " ribu "),
    (re.compile(r"\bk\b"), " ribu "),
]

NOTE_PREFIX_PATTERN = re.compile(r"\b(buat|untuk|karena|biar)\s+(.+)", re.IGNORECASE)

_APOSTROPHES = re.compile(r"['’]")
_NON_COMMAND_CHARS = re.compile(r"[^a-z0-9\s.,]")
_WHITESPACE = re.compile(r"\s+")

# Keywords that point at the receiving / paying pocket
INCOME_POCKET_KEYWORDS = ("ke", "masuk")
EXPENSE_POCKET_KEYWORDS = ("dari",)
TRANSFER_FROM_KEYWORDS = ("dari",)
TRANSFER_TO_KEYWORDS = ("ke",)


@dataclass
class ParsedEntities:
    """Entities found in one command. All optional."""

    amount: Optional[int] = None
    amount_text: Optional[str] = None
    pocket: Optional[str] = None
    pocket_from: Optional[str] = None
    pocket_to: Optional[str] = None
    note: Optional[str] = None


@dataclass
class ParseResult:
    """
    Output of parse_command.

    ``missing`` is diagnostic only; the dialog state machine derives its own
    missing-slot list and never uses this one for control flow.
    """

    intent: Optional[Intent]
    entities: ParsedEntities = field(default_factory=ParsedEntities)
    missing: list[str] = field(default_factory=list)


def normalize_indo(text: str) -> str:
    """Lowercase, strip diacritics and map verbs and unit words to canonical markers."""
    normalized = strip_diacritics(text.lower())
    normalized = _APOSTROPHES.sub("", normalized)
    normalized = _NON_COMMAND_CHARS.sub(" ", normalized)
    normalized = _WHITESPACE.sub(" ", normalized)

    for pattern, replacement in SYNONYM_REPLACEMENTS:
        normalized = pattern.sub(replacement, normalized)
    for pattern, replacement in UNIT_REPLACEMENTS:
        normalized = pattern.sub(replacement, normalized)

    return _WHITESPACE.sub(" ", normalized).strip()


def detect_intent(normalized: str) -> Optional[Intent]:
    """
    Classify normalized text. First match wins.

    Transfer is tested first because transfer language is the most specific:
    "kirim gaji ke tabungan" is a transfer, not income.
    """
    if any(keyword in normalized for keyword in TRANSFER_KEYWORDS):
        return Intent.TRANSFER_BETWEEN_POCKETS
    if any(keyword in normalized for keyword in INCOME_KEYWORDS):
        return Intent.INCOME_TO_POCKET
    if any(keyword in normalized for keyword in EXPENSE_KEYWORDS):
        return Intent.EXPENSE_FROM_POCKET
    return None


def _ordered_aliases(entry: PocketAlias) -> list[str]:
    # Longest first so "saldo e money" wins over "money"
    return sorted(entry.aliases, key=lambda alias: (-len(alias), alias))


def match_pocket_by_keyword(
    text: str,
    keyword: str,
    entries: Sequence[PocketAlias],
    ignore_ids: set[str],
) -> Optional[PocketAlias]:
    """Find a pocket whose alias directly follows ``keyword`` in sanitized text."""
    for entry in entries:
        if entry.id in ignore_ids:
            continue
        for alias in _ordered_aliases(entry):
            if re.search(rf"\b{re.escape(keyword)}\s+{re.escape(alias)}\b", text):
                return entry
    return None


def match_pocket_anywhere(
    text: str,
    entries: Sequence[PocketAlias],
    ignore_ids: set[str],
) -> Optional[PocketAlias]:
    """Find any pocket whose alias appears as a whole word in sanitized text."""
    for entry in entries:
        if entry.id in ignore_ids:
            continue
        for alias in _ordered_aliases(entry):
            if re.search(rf"\b{re.escape(alias)}\b", text):
                return entry
    return None


def _resolve_pocket(
    text: str,
    keywords: Iterable[str],
    entries: Sequence[PocketAlias],
    ignore_ids: set[str],
) -> Optional[PocketAlias]:
    for keyword in keywords:
        found = match_pocket_by_keyword(text, keyword, entries, ignore_ids)
        if found:
            return found
    return match_pocket_anywhere(text, entries, ignore_ids)


def extract_note(text: str) -> Optional[str]:
    """Return the text after the first buat/untuk/karena/biar, minus trailing punctuation."""
    match = NOTE_PREFIX_PATTERN.search(text)
    if not match:
        return None
    note = re.sub(r"[.!?]$", "", match.group(2).strip()).strip()
    return note or None


def parse_command(text: str, pockets: Optional[Sequence[PocketAlias]] = None) -> ParseResult:
    """
    Parse one Indonesian command.

    Args:
        text: Raw user text.
        pockets: Alias index of the current pocket catalog.

    Returns:
        ParseResult with the detected intent (or None), entities and the
        diagnostic list of missing fields.
    """
    entries = list(pockets or [])
    normalized = normalize_indo(text)
    sanitized = sanitize_pocket_name(text)

    entities = ParsedEntities()
    missing: list[str] = []

    amount_info = extract_amount(text)
    if amount_info:
        entities.amount, entities.amount_text = amount_info
    else:
        missing.append("amount")

    intent = detect_intent(normalized)
    ignore_ids: set[str] = set()

    if intent in (Intent.INCOME_TO_POCKET, Intent.EXPENSE_FROM_POCKET):
        keywords = (
            INCOME_POCKET_KEYWORDS
            if intent == Intent.INCOME_TO_POCKET
            else EXPENSE_POCKET_KEYWORDS
        )
        target = _resolve_pocket(sanitized, keywords, entries, ignore_ids)
        if target:
            entities.pocket = target.name
            ignore_ids.add(target.id)
        else:
            missing.append("pocket")

    elif intent == Intent.TRANSFER_BETWEEN_POCKETS:
        source = _resolve_pocket(sanitized, TRANSFER_FROM_KEYWORDS, entries, ignore_ids)
        if source:
            entities.pocket_from = source.name
            ignore_ids.add(source.id)
        else:
            missing.append("pocket_from")

        destination = _resolve_pocket(sanitized, TRANSFER_TO_KEYWORDS, entries, ignore_ids)
        if destination:
            entities.pocket_to = destination.name
            ignore_ids.add(destination.id)
        else:
            missing.append("pocket_to")

    entities.note = extract_note(text)

    logger.debug(
        "Parsed command: intent=%s amount=%s missing=%s",
        intent.value if intent else None,
        entities.amount,
        missing,
    )
    return ParseResult(intent=intent, entities=entities, missing=missing)


MISSING_PROMPTS = {
    "amount": "Nominal transaksinya belum ada.",
    "pocket": "Pocket tujuan belum kamu sebutkan.",
    "pocket_from": "Pocket asal perlu disebutkan.",
    "pocket_to": "Pocket tujuan transfer belum jelas.",
}


def describe_parse_result(result: ParseResult) -> str:
    """Human-readable Indonesian summary of a parse, for diagnostics."""
    if result.intent is None:
        return "Saya belum bisa memahami permintaanmu. Bisa jelaskan lagi?"

    entities = result.entities
    amount_text = (
        format_rupiah(entities.amount) if entities.amount else "nominal belum disebutkan"
    )
    parts: list[str] = []

    if result.intent == Intent.INCOME_TO_POCKET:
        pocket_text = f" ke {entities.pocket}" if entities.pocket else ""
        parts.append(f"Saya mengenali niat pemasukan sebesar {amount_text}{pocket_text}.")
    elif result.intent == Intent.EXPENSE_FROM_POCKET:
        pocket_text = f" dari {entities.pocket}" if entities.pocket else ""
        parts.append(f"Saya mengenali niat pengeluaran sebesar {amount_text}{pocket_text}.")
    else:
        from_text = f" dari {entities.pocket_from}" if entities.pocket_from else ""
        to_text = f" ke {entities.pocket_to}" if entities.pocket_to else ""
        parts.append(f"Saya menangkap niat transfer sebesar {amount_text}{from_text}{to_text}.")

    if entities.note:
        parts.append(f"Catatan: {entities.note}.")

    if result.missing:
        prompts = " ".join(MISSING_PROMPTS.get(item, item) for item in result.missing)
        parts.append(f"{prompts} Beritahu detailnya, ya.")
    else:
        parts.append("Jika sudah benar, kamu bisa minta aku untuk menjalankannya.")

    return _WHITESPACE.sub(" ", " ".join(parts)).strip()
