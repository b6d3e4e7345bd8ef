"""Tests for the ladder rung parser and operand classification."""

import pytest

from iecfront.errors import LimitKind, SecurityError
from iecfront.rll import (
    ErrorContext,
    RllError,
    RllErrorKind,
    RungParseError,
    base_tag,
    is_numeric_literal,
    looks_like_expression,
    parse_operand_value,
    parse_rung,
    parse_rung_strict,
)
from iecfront.security import ParserLimits


def mnemonics(text):
    return [i.mnemonic for i in parse_rung_strict(text).instructions()]


def tags(operand):
    return parse_operand_value(operand).all_tags()


# ---------------------------------------------------------------------------
# Rung structure
# ---------------------------------------------------------------------------

class TestStructure:
    def test_series(self):
        content = parse_rung_strict("XIC(Start)OTE(Motor);")
        assert [i.mnemonic for i in content.instructions()] == ["XIC", "OTE"]
        assert content.instructions()[0].operands[0].value == "Start"

    def test_parallel(self):
        content = parse_rung_strict("XIC(A)[OTE(B),OTE(C)];")
        parallel = content.elements[1]
        assert parallel.kind == "parallel"
        assert len(parallel.branches) == 2
        assert mnemonics("XIC(A)[OTE(B),OTE(C)];") == ["XIC", "OTE", "OTE"]

    def test_nested_parallel_order(self):
        content = parse_rung_strict("[XIC(A)[XIC(B),XIC(C)],XIC(D)]OTE(E);")
        names = [i.operands[0].value for i in content.instructions()]
        assert names == ["A", "B", "C", "D", "E"]

    def test_whitespace(self):
        content = parse_rung_strict("  XIC( A ) OTE(B) ;  ")
        assert [op.value for op in content.instructions()[0].operands] == ["A"]

    def test_inferred_operands(self):
        instruction = parse_rung_strict("TON(Timer1,?,?);").instructions()[0]
        assert [op.is_inferred for op in instruction.operands] == [False, True, True]
        assert str(instruction) == "TON(Timer1,?,?)"

    def test_no_operands(self):
        assert parse_rung_strict("NOP();").instructions()[0].operands == []

    def test_bracketed_operand_keeps_commas(self):
        instruction = parse_rung_strict("MOV(Data[1,2],Dest);").instructions()[0]
        assert [op.value for op in instruction.operands] == ["Data[1,2]", "Dest"]

    def test_expression_operand(self):
        instruction = parse_rung_strict("CPT(Dest,(A + B) * 2);").instructions()[0]
        assert instruction.operands[1].value == "(A + B) * 2"

    def test_quoted_operand(self):
        instruction = parse_rung_strict("MSG('a,b');").instructions()[0]
        assert [op.value for op in instruction.operands] == ["'a,b'"]

    def test_str_is_canonical(self):
        assert str(parse_rung_strict("XIC(A) [ OTE(B) , OTE(C) ] ;")) == "XIC(A)[OTE(B),OTE(C)];"

    def test_spans(self):
        content = parse_rung_strict("XIC(A)OTE(B);")
        assert [(i.span.start, i.span.end) for i in content.instructions()] == [(0, 6), (6, 12)]

    def test_empty_rung(self):
        assert parse_rung_strict(";").elements == []


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class TestErrors:
    @pytest.mark.parametrize("text, kind, position", [
        ("", RllErrorKind.EMPTY_INPUT, None),
        ("XIC(A)", RllErrorKind.MISSING_TERMINATOR, None),
        ("XIC(A", RllErrorKind.UNCLOSED_PAREN, 3),
        ("[XIC(A)", RllErrorKind.UNCLOSED_BRACKET, 0),
        ("XIC(A); junk", RllErrorKind.UNEXPECTED_CHAR, 8),
        ("XIC A;", RllErrorKind.EXPECTED, 3),
        ("[XIC(A),]OTE(B);", RllErrorKind.EXPECTED, 8),
        ("1XIC(A);", RllErrorKind.UNEXPECTED_CHAR, 0),
        ("XIC(A,);", RllErrorKind.EXPECTED, 6),
        ("XIC(A[1)];", RllErrorKind.UNEXPECTED_CHAR, 7),
        ("XIC", RllErrorKind.UNEXPECTED_EOF, None),
    ])
    def test_kinds(self, text, kind, position):
        with pytest.raises(RllError) as info:
            parse_rung_strict(text)
        assert info.value.kind == kind
        assert info.value.position == position

    def test_position_counts_leading_blanks(self):
        with pytest.raises(RllError) as info:
            parse_rung_strict("  XIC(A")
        assert info.value.position == 5

    def test_messages(self):
        with pytest.raises(RllError, match=r"unclosed parenthesis '\(' at position 3"):
            parse_rung_strict("XIC(A")
        with pytest.raises(RllError, match="missing rung terminator"):
            parse_rung_strict("XIC(A)")

    def test_parse_rung_keeps_error(self):
        rung = parse_rung("XIC(A")
        assert not rung.is_parsed
        assert rung.error.kind == RllErrorKind.UNCLOSED_PAREN
        assert rung.instructions() == []
        assert rung.tag_references() == []

    def test_blank_rung_is_empty(self):
        rung = parse_rung("   ")
        assert rung.is_parsed
        assert rung.instructions() == []


class TestFormatting:
    def test_caret_under_position(self):
        error = RllError(RllErrorKind.UNCLOSED_PAREN, 3)
        assert error.format_with_context("XIC(A") == (
            "error: unclosed parenthesis '(' at position 3\n"
            " --> position 1:3\n"
            "1 | XIC(A\n"
            "       ^ here"
        )

    def test_without_position(self):
        error = RllError(RllErrorKind.MISSING_TERMINATOR)
        assert error.format_with_context("XIC(A)") == "error: missing rung terminator ';'\n"

    def test_long_line_is_windowed(self):
        text = "XIC(A)" * 30 + "XIC(B"
        error = parse_rung(text).error
        formatted = error.format_with_context(text)
        source_line = formatted.splitlines()[2]
        assert source_line.startswith("1 | ...")
        caret_line = formatted.splitlines()[3]
        assert source_line[caret_line.index("^")] == "("

    def test_rung_location(self):
        rung = parse_rung("XIC(A")
        located = RungParseError(rung.error, rung.raw_text).with_context(
            ErrorContext("MainProgram", "MainRoutine", 3)
        )
        assert located.context.path() == "MainProgram/MainRoutine/Rung#3"
        assert str(located).startswith("in MainProgram/MainRoutine/Rung#3\nerror: unclosed")


# ---------------------------------------------------------------------------
# Limits
# ---------------------------------------------------------------------------

class TestLimits:
    def test_depth(self):
        with pytest.raises(SecurityError) as info:
            parse_rung("[[[XIC(A)]]];", ParserLimits(max_depth=2))
        assert info.value.limit_kind == LimitKind.DEPTH

    def test_input_size(self):
        with pytest.raises(SecurityError) as info:
            parse_rung("XIC(A);", ParserLimits(max_input_size=5))
        assert info.value.limit_kind == LimitKind.INPUT_SIZE

    def test_operand_length(self):
        with pytest.raises(SecurityError, match="max_string_length"):
            parse_rung("XIC(LongName);", ParserLimits(max_string_length=3))

    def test_series_length(self):
        with pytest.raises(SecurityError, match="max_collection_size"):
            parse_rung("XIC(A)XIC(B)XIC(C);", ParserLimits(max_collection_size=2))


# ---------------------------------------------------------------------------
# Tag references
# ---------------------------------------------------------------------------

class TestTagReferences:
    def test_names_in_order(self):
        refs = parse_rung("XIC(Start)MOV(Counter,Dest);").tag_references()
        assert [r.name for r in refs] == ["Start", "Counter", "Dest"]
        assert refs[2].instruction == "MOV"
        assert refs[2].operand_index == 1

    def test_literals_skipped(self):
        assert [r.name for r in parse_rung("MOV(5,Dest);").tag_references()] == ["Dest"]

    def test_inferred_skipped(self):
        assert [r.name for r in parse_rung("TON(Timer1,?,?);").tag_references()] == ["Timer1"]

    def test_full_operand_kept(self):
        ref = parse_rung("XIC(Timer1.DN);").tag_references()[0]
        assert ref.name == "Timer1"
        assert ref.full_operand == "Timer1.DN"


class TestOperands:
    def test_simple(self):
        value = parse_operand_value("Motor")
        assert value.kind == "tag"
        assert base_tag(value) == "Motor"

    def test_member(self):
        value = parse_operand_value("Timer1.DN")
        assert value.base == "Timer1"
        assert value.full_path == "Timer1.DN"

    def test_array_index_tag(self):
        assert tags("Data[idx]") == ["Data", "idx"]

    def test_array_literal_index(self):
        assert tags("Data[5]") == ["Data"]

    def test_module_address(self):
        assert tags("Local:1:I.Data.0") == ["Local"]

    def test_indirect_member(self):
        assert tags("Tag.[Other.Member]") == ["Tag", "Other"]

    def test_arithmetic_expression(self):
        value = parse_operand_value("((1.0 - x) * y) + z")
        assert value.kind == "expression"
        assert value.all_tags() == ["x", "y", "z"]

    def test_function_in_comparison(self):
        assert tags("ATN(Tag) > 1.0") == ["Tag"]

    def test_function_call(self):
        value = parse_operand_value("ABS(x)")
        assert value.kind == "expression"
        assert value.all_tags() == ["x"]

    def test_word_operators(self):
        assert tags("A AND B") == ["A", "B"]

    @pytest.mark.parametrize("text", ["16#FF", "1.5", "-3", "'text'", "%IX0.0", "1_000"])
    def test_literals(self, text):
        value = parse_operand_value(text)
        assert value.kind == "literal"
        assert base_tag(value) is None

    def test_numeric_literal(self):
        assert is_numeric_literal("2#1010")
        assert is_numeric_literal("1.5e-3")
        assert not is_numeric_literal("A1")

    def test_looks_like_expression(self):
        assert looks_like_expression("a-b")
        assert looks_like_expression("A OR B")
        assert not looks_like_expression("Tag[a+b]")
        assert not looks_like_expression("-5")
