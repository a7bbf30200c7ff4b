"""Tests for the Indonesian amount grammar."""

import pytest

from pocket_assistant.nlu.amount import (
    TokenKind,
    extract_amount,
    format_rupiah,
    parse_amount_indo,
    tokenize_amount,
)


class TestTokenizeAmount:
    """Tests for the amount lexer."""

    def test_splits_units_from_digits(self):
        """Letter runs glued to digits become their own tokens."""
        tokens = tokenize_amount("3jt400")
        assert [t.kind for t in tokens] == [TokenKind.NUMBER, TokenKind.UNIT, TokenKind.NUMBER]
        assert [t.text for t in tokens] == ["3", "m", "400"]

    def test_unit_words_map_to_markers(self):
        assert [t.text for t in tokenize_amount("20 ribu")] == ["20", "k"]
        assert [t.text for t in tokenize_amount("5 juta")] == ["5", "m"]
        assert [t.text for t in tokenize_amount("50rb")] == ["50", "k"]

    def test_drops_currency_and_unknown_words(self):
        tokens = tokenize_amount("Rp 2.500.000 saja")
        assert [t.text for t in tokens] == ["2500000"]


class TestParseAmountIndo:
    """Tests for parse_amount_indo."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("250k", 250_000),
            ("20 ribu", 20_000),
            ("50rb", 50_000),
            ("2.500.000", 2_500_000),
            ("Rp 2.500.000", 2_500_000),
            ("1,25jt", 1_250_000),
            ("1.5 juta", 1_500_000),
            ("3jt400", 3_400_000),
            ("3 juta 400", 3_400_000),
            ("5 juta", 5_000_000),
            ("15000", 15_000),
        ],
    )
    def test_examples(self, raw, expected):
        assert parse_amount_indo(raw) == expected

    def test_million_carry_only_below_thousand(self):
        """A bare number of 1000 or more after a million term counts as-is."""
        assert parse_amount_indo("1jt 2500") == 1_002_500

    def test_rounds_half_up(self):
        assert parse_amount_indo("1,2345675jt") == 1_234_568

    @pytest.mark.parametrize("raw", [None, "", "abc", "juta", "0", "0k"])
    def test_no_positive_amount(self, raw):
        assert parse_amount_indo(raw) is None


class TestExtractAmount:
    """Tests for finding an amount inside a sentence."""

    def test_finds_amount_in_command(self):
        assert extract_amount("transfer 250k dari tabungan ke e-money") == (250_000, "250k")

    def test_amount_with_million_carry_in_sentence(self):
        assert extract_amount("aku dapat gaji 3jt400 ke Tabungan") == (3_400_000, "3jt400")

    def test_k_followed_by_word_is_not_a_unit(self):
        """'250 ke' is 250, the 'k' belongs to the word 'ke'."""
        assert extract_amount("masukkan 250 ke tabungan") == (250, "250")

    def test_no_amount(self):
        assert extract_amount("bayar listrik") is None


class TestFormatRupiah:
    """Tests for rupiah rendering."""

    def test_dot_grouping(self):
        assert format_rupiah(3_400_000) == "Rp3.400.000"
        assert format_rupiah(250_000) == "Rp250.000"
        assert format_rupiah(500) == "Rp500"
