"""
Tests for literal masking and structural repair.
"""
import pytest

from bid_analysis.reconciliation.masking import (
    PLACEHOLDER_CLOSE,
    PLACEHOLDER_OPEN,
    mask,
    placeholder,
    unmask,
)
from bid_analysis.reconciliation.repair import REPAIR_RULES, count_repairs, repair_structure


ROUND_TRIP_CASES = [
    "",
    "plain text with no quotes",
    '{"a": "b"}',
    r'{"q": "say \"hi\" twice"}',
    r'{"path": "C:\\temp\\"}',
    '{"desc": "}{ and ],[ inside"}',
    '{"open": "never closed',
    '"',
    '""',
    r'"\\"',
    f"stray {PLACEHOLDER_OPEN}0{PLACEHOLDER_CLOSE} sentinel",
    f'"{PLACEHOLDER_OPEN}5{PLACEHOLDER_CLOSE}" inside a literal',
    PLACEHOLDER_CLOSE + PLACEHOLDER_OPEN,
    '{"a": "x"}{"b": "y"}',
    "unicode: \"café — 1,250 €\"",
]


class TestMask:
    """Tests for mask()."""

    def test_literals_replaced_by_placeholders(self):
        """Each quoted literal becomes one indexed placeholder."""
        masked = mask('{"a": "b"}')

        assert masked.literals == ['"a"', '"b"']
        assert masked.masked == "{" + placeholder(0) + ": " + placeholder(1) + "}"

    def test_structure_outside_literals_untouched(self):
        """Braces, brackets and commas outside literals pass through."""
        masked = mask('[1, {"k": 2}, 3]')

        assert masked.masked == "[1, {" + placeholder(0) + ": 2}, 3]"

    def test_escaped_quote_stays_inside_literal(self):
        """An escaped quote does not close the literal."""
        masked = mask(r'{"q": "say \"hi\""}')

        assert masked.literals[1] == r'"say \"hi\""'
        assert masked.masked.endswith(placeholder(1) + "}")

    def test_escaped_backslash_before_closing_quote(self):
        """A literal ending in an escaped backslash still closes."""
        masked = mask(r'{"p": "C:\\", "n": 1}')

        assert masked.literals[1] == r'"C:\\"'
        assert masked.literals[2] == '"n"'

    def test_unterminated_literal_captured(self):
        """An unterminated literal at end of input is captured, not dropped."""
        masked = mask('{"a": "open')

        assert masked.literals == ['"a"', '"open']
        assert masked.masked == "{" + placeholder(0) + ": " + placeholder(1)

    def test_structural_characters_hidden(self):
        """No structural character inside a literal reaches the masked text."""
        masked = mask('{"desc": "}{ ],[ ,}"}')

        assert masked.masked.count("}") == 1
        assert "[" not in masked.masked
        assert "," not in masked.masked


class TestUnmask:
    """Tests for unmask() and the round trip."""

    @pytest.mark.parametrize("text", ROUND_TRIP_CASES)
    def test_round_trip_is_lossless(self, text):
        """unmask(mask(s)) == s for any string."""
        masked = mask(text)
        assert unmask(masked.masked, masked.literals) == text

    def test_unknown_index_left_in_place(self):
        """A placeholder with no stored literal is left as-is."""
        token = placeholder(7)
        assert unmask(token, ['"only"']) == token

    def test_single_pass(self):
        """Restored literals are not themselves re-substituted."""
        literal = f'"{placeholder(1)}"'
        assert unmask(placeholder(0), [literal, '"other"']) == literal


class TestRepairStructure:
    """Tests for repair_structure() on masked text."""

    @pytest.mark.parametrize("masked,expected", [
        ("{}{}", "{},{}"),
        ("{} {}", "{}, {}"),
        ("}\n  " + placeholder(0), "},\n  " + placeholder(0)),
        ("}1", "},1"),
        ("}-5", "},-5"),
        ("[][]", "[],[]"),
        ("] [1]", "], [1]"),
        ("]" + placeholder(3), "]," + placeholder(3)),
    ])
    def test_inserts_missing_separator(self, masked, expected):
        """A separator is inserted between a closing delimiter and the next value."""
        assert repair_structure(masked) == expected

    @pytest.mark.parametrize("masked", [
        "{},{}",
        "[1, 2]",
        "{}}",
        "{} ]",
        "} :",
    ])
    def test_leaves_valid_structure_alone(self, masked):
        """Nothing changes where no value follows a closing delimiter."""
        assert repair_structure(masked) == masked

    def test_count_repairs(self):
        """count_repairs reports insertions per rule."""
        counts = count_repairs("[{}{}][]")

        assert counts == {"object_separator": 1, "array_separator": 1}
        assert set(counts) == {rule.rule_id for rule in REPAIR_RULES}
