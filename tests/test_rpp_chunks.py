"""
Tests for core.rpp.chunks module.

These tests verify the line-level primitives: tokenizing, block scanning
and field reading on the nested project text format.
"""

import pytest

from core.errors import BlockUnterminated
from core.rpp.chunks import (
    find_block_end,
    find_blocks,
    find_field_line,
    format_number,
    iter_child_blocks,
    join_lines,
    normalize_text,
    opening_type,
    parse_float,
    parse_int,
    quote_token,
    read_name,
    read_numeric_field,
    split_lines,
    tokenize,
    top_level_fields,
)

NESTED = """<TRACK
  NAME "Kick In"
  <ITEM
    POSITION 4
    NAME "take"
    <SOURCE WAVE
      FILE "kick.wav"
    >
  >
  <VOLENV2
    PT 0 1 0
  >
>
"""


class TestTextHelpers:
    """Test normalisation and line splitting."""

    def test_normalize_strips_bom_and_crlf(self) -> None:
        assert normalize_text("\ufeffA\r\nB\rC") == "A\nB\nC"

    def test_split_drops_final_empty_line(self) -> None:
        assert split_lines("a\nb\n") == ["a", "b"]

    def test_join_always_ends_with_newline(self) -> None:
        assert join_lines(["a", "b"]) == "a\nb\n"

    def test_opening_type_is_uppercased(self) -> None:
        assert opening_type("  <item") == "ITEM"
        assert opening_type("  NAME x") is None


class TestTokenize:
    """Test quoting rules of field lines."""

    def test_double_quotes(self) -> None:
        assert tokenize('MARKER 1 4.0 "Verse 1" 1') == ["MARKER", "1", "4.0", "Verse 1", "1"]

    def test_single_and_backtick_quotes(self) -> None:
        assert tokenize("NAME 'It\"s'") == ["NAME", 'It"s']
        assert tokenize("NAME `a 'b'`") == ["NAME", "a 'b'"]

    def test_empty_quoted_token_is_kept(self) -> None:
        assert tokenize('MARKER 1 8 "" 1') == ["MARKER", "1", "8", "", "1"]

    def test_quote_token_avoids_contained_quote(self) -> None:
        assert quote_token("Kick") == '"Kick"'
        assert quote_token('12" Vinyl') == "'12\" Vinyl'"


class TestNumbers:
    """Test number formatting and lenient parsing."""

    @pytest.mark.parametrize(
        "value,expected",
        [(3.0, "3"), (12.5, "12.5"), (0.1 + 0.2, "0.3"), (-0.0, "0"), (-2.25, "-2.25")],
    )
    def test_format_number(self, value: float, expected: str) -> None:
        assert format_number(value) == expected

    def test_parse_defaults_on_garbage(self) -> None:
        assert parse_float("abc", 7.0) == 7.0
        assert parse_int("x", 3) == 3
        assert parse_int("2.9") == 2


class TestBlockScanning:
    """Test depth counting and block extraction."""

    def test_find_block_end_of_nested_block(self) -> None:
        lines = split_lines(NESTED)
        assert find_block_end(lines, 0) == len(lines) - 1
        assert find_block_end(lines, 2) == 8

    def test_unterminated_block_raises_with_line_number(self) -> None:
        lines = ["<TRACK", "  <ITEM", "  >"]
        with pytest.raises(BlockUnterminated) as info:
            find_block_end(lines, 0)
        assert info.value.block_type == "TRACK"
        assert info.value.line_number == 1

    def test_direct_children_only(self) -> None:
        children = list(iter_child_blocks(split_lines(NESTED)))
        assert [c.block_type for c in children] == ["ITEM", "VOLENV2"]

    def test_find_blocks_at_any_depth(self) -> None:
        sources = find_blocks(NESTED, "source")
        assert len(sources) == 1
        assert sources[0].lines[1].strip() == 'FILE "kick.wav"'


class TestFieldReaders:
    """Test reading fields of the outer block only."""

    def test_top_level_fields_skip_nested_lines(self) -> None:
        fields = [line.strip() for _i, line in top_level_fields(NESTED)]
        assert fields == ['NAME "Kick In"']

    def test_find_field_line(self) -> None:
        assert find_field_line(NESTED, "NAME") == 'NAME "Kick In"'
        assert find_field_line(NESTED, "POSITION") is None

    def test_read_name_ignores_item_names(self) -> None:
        assert read_name(NESTED) == "Kick In"

    def test_read_name_unquoted_and_default(self) -> None:
        assert read_name("<TRACK\n  NAME  Bass DI  \n>\n") == "Bass DI"
        assert read_name('<TRACK\n  NAME ""\n>\n') == "(unnamed)"
        assert read_name("<TRACK\n>\n", default="Track") == "Track"

    def test_read_numeric_field_depth_one(self) -> None:
        item = split_lines(NESTED)[2:9]
        assert read_numeric_field(item, "POSITION", 0.0) == 4.0
        assert read_numeric_field(item, "LENGTH", -1.0) == -1.0
