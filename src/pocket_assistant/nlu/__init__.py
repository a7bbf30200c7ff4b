"""
Natural-language understanding for Indonesian pocket commands.

Provides:
- Pocket alias index (abbreviations, hyphen variants, domain synonyms)
- Amount grammar ("3jt400", "250k", "2.500.000")
- Command parser (intent + amount/pocket/note entities)
"""

from .amount import extract_amount, format_rupiah, parse_amount_indo, tokenize_amount
from .id_parser import (
    ParsedEntities,
    ParseResult,
    describe_parse_result,
    detect_intent,
    normalize_indo,
    parse_command,
)
from .pocket_alias import PocketAlias, aliases_for, build_pocket_aliases, sanitize_pocket_name

__all__ = [
    "PocketAlias",
    "aliases_for",
    "build_pocket_aliases",
    "sanitize_pocket_name",
    "parse_amount_indo",
    "tokenize_amount",
    "extract_amount",
    "format_rupiah",
    "ParsedEntities",
    "ParseResult",
    "normalize_indo",
    "detect_intent",
    "parse_command",
    "describe_parse_result",
]
