"""
Indonesian amount grammar.

Turns informal rupiah amounts into integers:

    "250k"       -> 250_000
    "20 ribu"    -> 20_000
    "2.500.000"  -> 2_500_000
    "1,25jt"     -> 1_250_000
    "3jt400"     -> 3_400_000

Parsing is split into a lexer (tokenize_amount) and a left-to-right walk
(parse_amount_indo) so magnitude carry-over can be tested on its own.
"""

import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Optional

MILLION = 1_000_000
THOUSAND = 1_000

# Unit words -> magnitude marker
UNIT_WORDS: dict[str, str] = {
    "juta": "m",
    "jt": "m",
    "m": "m",
    "ribu": "k",
    "rb": "k",
    "k": "k",
}

MARKER_MAGNITUDE: dict[str, int] = {"m": MILLION, "k": THOUSAND}

# Candidate amount runs inside a sentence (matched on the original text)
AMOUNT_PATTERN = re.compile(
    r"\d[\d.,]*(?:\s*(?:jt|juta|m|k|rb|ribu)(?![a-z]))?(?:\s*\d{1,3})?",
    re.IGNORECASE,
)

_CURRENCY = re.compile(r"rp\.?|idr")
_THOUSAND_SEPARATOR = re.compile(r"(\d)[.,](?=\d{3}\b)")
_LEXEME = re.compile(r"\d+(?:\.\d+)?|[a-z]+")


class TokenKind(str, Enum):
    NUMBER = "number"
    UNIT = "unit"


@dataclass(frozen=True)
class AmountToken:
    """One lexeme of an amount: a decimal number or a magnitude marker ('m'/'k')."""

    kind: TokenKind
    text: str

    @property
    def magnitude(self) -> int:
        return MARKER_MAGNITUDE.get(self.text, 1)


def _prepare(raw: str) -> str:
    value = " ".join(raw.lower().split())
    value = _CURRENCY.sub("", value).strip()
    # "2.500.000" -> "2500000" but "2.5" stays a decimal
    value = _THOUSAND_SEPARATOR.sub(r"\1", value)
    return value.replace(",", ".")


def tokenize_amount(raw: str) -> list[AmountToken]:
    """
    Lex an amount substring into number and unit tokens.

    Letter runs are split from adjacent digits ("3jt400" -> 3, m, 400);
    words that are not unit words are dropped.
    """
    tokens: list[AmountToken] = []
    for lexeme in _LEXEME.findall(_prepare(raw)):
        if lexeme[0].isdigit():
            tokens.append(AmountToken(TokenKind.NUMBER, lexeme))
        elif lexeme in UNIT_WORDS:
            tokens.append(AmountToken(TokenKind.UNIT, UNIT_WORDS[lexeme]))
    return tokens


def parse_amount_indo(raw: Optional[str]) -> Optional[int]:
    """
    Parse an informal rupiah amount.

    Walk rules:
    - a unit with no number before it only sets the current magnitude
    - a number followed by a unit is multiplied by that unit (unit consumed)
    - a bare number after a million term and below 1000 counts as thousands
      ("3jt400" = 3_000_000 + 400_000), otherwise it counts as-is

    Returns:
        Positive integer amount, or None when nothing positive was found.
    """
    if not raw:
        return None

    tokens = tokenize_amount(raw)
    if not any(token.kind == TokenKind.NUMBER for token in tokens):
        return None

    total = 0
    last_magnitude = 1
    index = 0
    while index < len(tokens):
        token = tokens[index]
        if token.kind == TokenKind.UNIT:
            last_magnitude = token.magnitude
            index += 1
            continue

        try:
            numeric = Decimal(token.text)
        except InvalidOperation:
            index += 1
            continue

        following = tokens[index + 1] if index + 1 < len(tokens) else None
        if following is not None and following.kind == TokenKind.UNIT:
            multiplier = following.magnitude
            index += 1
        elif last_magnitude == MILLION and numeric < 1000:
            multiplier = THOUSAND
        else:
            multiplier = 1

        total += int((numeric * multiplier).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        last_magnitude = multiplier
        index += 1

    return total if total > 0 else None


def extract_amount(text: str) -> Optional[tuple[int, str]]:
    """
    Find the first amount in free text.

    Returns:
        (amount, source substring) for the first candidate that parses to a
        positive value, or None.
    """
    for match in AMOUNT_PATTERN.finditer(text):
        candidate = match.group(0)
        parsed = parse_amount_indo(candidate)
        if parsed:
            return parsed, candidate.strip()
    return None


def format_rupiah(amount: int) -> str:
    """Render an amount as Indonesian rupiah ("Rp3.400.000")."""
    return "Rp" + f"{amount:,}".replace(",", ".")
