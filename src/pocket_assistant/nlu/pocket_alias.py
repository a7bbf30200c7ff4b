"""
Pocket alias index.

Expands a pocket's display name into the lowercase strings a user might type
to refer to it ("tab" for "Tabungan", "emoney" for "E-Money"). Aliases are a
pure function of the name; they are derived each turn and never persisted.
"""

import re
import unicodedata
from collections.abc import Iterable
from dataclasses import dataclass

from ..schemas.dialog import PocketOption

# Abbreviation -> canonical token. Identity entries mark known full words.
ABBREVIATION_MAP: dict[str, str] = {
    "keb": "kebutuhan",
    "kebu": "kebutuhan",
    "kebutuhan": "kebutuhan",
    "pokok": "pokok",
    "tab": "tabungan",
    "tabung": "tabungan",
    "tabungan": "tabungan",
    "invest": "investasi",
    "investasi": "investasi",
    "operasional": "operasional",
    "darurat": "darurat",
    "e": "e",
    "money": "money",
    "emoney": "emoney",
}

MIN_ALIAS_LENGTH = 2

_APOSTROPHES = re.compile(r"['’]")
_NON_NAME_CHARS = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class PocketAlias:
    """Read-only alias view over a PocketOption."""

    id: str
    name: str
    aliases: frozenset[str]

    def matches(self, text: str) -> bool:
        """True if text equals the display name or one of the aliases."""
        lowered = text.lower().strip()
        return lowered == self.name.lower() or lowered in self.aliases


def strip_diacritics(value: str) -> str:
    """Decompose and drop combining marks (é -> e)."""
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def sanitize_pocket_name(value: str) -> str:
    """
    Lowercase, strip diacritics and punctuation (hyphens survive), collapse spaces.

    Also used to sanitize free text before alias matching, so both sides of
    the comparison go through the same transformation.
    """
    cleaned = strip_diacritics(value.lower())
    cleaned = _APOSTROPHES.sub("", cleaned)
    cleaned = _NON_NAME_CHARS.sub(" ", cleaned)
    return _WHITESPACE.sub(" ", cleaned).strip()


def _expand_token(token: str) -> list[str]:
    base = ABBREVIATION_MAP.get(token, token)
    if base == token:
        return [token]
    return [token, base]


def aliases_for(name: str) -> frozenset[str]:
    """
    Build the alias set for a pocket display name.

    Deterministic; every alias is at least two characters long. No ordering
    guarantee.
    """
    sanitized = sanitize_pocket_name(name)
    if not sanitized:
        return frozenset()

    aliases: set[str] = {sanitized}
    tokens = sanitized.split(" ")

    primary = " ".join(ABBREVIATION_MAP.get(token, token) for token in tokens).strip()
    if primary and primary != sanitized:
        aliases.add(primary)

    for token in tokens:
        aliases.update(_expand_token(token))

    variants = {sanitized}
    if "-" in sanitized or "-" in name:
        no_hyphen = _WHITESPACE.sub(" ", sanitized.replace("-", " ")).strip()
        compact = re.sub(r"[\s-]", "", sanitized)
        for variant in (no_hyphen, compact):
            if variant:
                aliases.add(variant)
                variants.add(variant)

    # Domain-specific expansions
    if any("emoney" in v or "e money" in v for v in variants):
        aliases.update({"e money", "emoney", "saldo e money"})
    if "tabungan" in sanitized:
        aliases.add("tabungan")
    if "kebutuhan" in primary and "pokok" in primary:
        aliases.add("kebutuhan pokok")

    return frozenset(
        alias.strip() for alias in aliases if len(alias.strip()) >= MIN_ALIAS_LENGTH
    )


def build_pocket_aliases(pockets: Iterable[PocketOption]) -> list[PocketAlias]:
    """Derive the alias index for the current pocket catalog."""
    return [
        PocketAlias(id=pocket.id, name=pocket.name, aliases=aliases_for(pocket.name))
        for pocket in pockets
    ]
