"""Tests for the Structured Text pretty-printer."""

import pytest

from conftest import expr, stmts, unit
from iecfront.dialect import SCL
from iecfront.export import format_expression, format_statements, format_type_spec


def fmt(source, dialect=None, **kwargs):
    body = stmts(source, **kwargs) if dialect is None else stmts(source, dialect, **kwargs)
    return format_statements(body)


def type_of(declaration: str):
    cu = unit(f"TYPE\n    T : {declaration};\nEND_TYPE\n")
    return cu.type_decls()[0].type_spec


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------

class TestStatements:
    def test_empty(self):
        assert format_statements([]) == ""

    def test_assignment_spacing(self):
        assert fmt("x:=y+1;") == "x := y + 1;\n"

    def test_keywords_upper_cased(self):
        assert fmt("if a then x := 1; elsif b then x := 2; else x := 3; end_if;") == (
            "IF a THEN\n"
            "    x := 1;\n"
            "ELSIF b THEN\n"
            "    x := 2;\n"
            "ELSE\n"
            "    x := 3;\n"
            "END_IF;\n"
        )

    def test_case(self):
        assert fmt("CASE n OF 1, 2..5: y := 0; ELSE y := 1; END_CASE;") == (
            "CASE n OF\n"
            "    1, 2..5:\n"
            "        y := 0;\n"
            "ELSE\n"
            "    y := 1;\n"
            "END_CASE;\n"
        )

    def test_for_with_step(self):
        assert fmt("FOR i := 0 TO 10 BY 2 DO s := s + i; END_FOR;") == (
            "FOR i := 0 TO 10 BY 2 DO\n"
            "    s := s + i;\n"
            "END_FOR;\n"
        )

    def test_while(self):
        assert fmt("WHILE run DO EXIT; END_WHILE;") == "WHILE run DO\n    EXIT;\nEND_WHILE;\n"

    def test_repeat(self):
        assert fmt("REPEAT x := x + 1; UNTIL x > 5 END_REPEAT;") == (
            "REPEAT\n"
            "    x := x + 1;\n"
            "UNTIL x > 5\n"
            "END_REPEAT;\n"
        )

    def test_return_forms(self):
        assert fmt("RETURN;") == "RETURN;\n"
        assert fmt("RETURN x * 2;") == "RETURN x * 2;\n"

    def test_function_call(self):
        assert fmt("Reset();") == "Reset();\n"

    def test_fb_invocation(self):
        out = fmt("t(IN := run, PT := T#5s, Q => done);", declared={"t"})
        assert out == "t(IN := run, PT := T#5s, Q => done);\n"

    def test_indent(self):
        assert format_statements(stmts("x := 1;"), indent=1) == "    x := 1;\n"

    def test_empty_statement(self):
        assert fmt(";") == ";\n"


class TestScl:
    def test_local_and_quoted_names(self):
        assert fmt('#x := "DB".speed;', SCL) == '#x := "DB".speed;\n'

    def test_compound_assignment(self):
        assert fmt("#count += 1;", SCL) == "#count += 1;\n"

    def test_region_and_label(self):
        assert fmt("REGION Init\nGOTO Done;\nEND_REGION\nDone: x := 1;", SCL) == (
            "REGION Init\n"
            "    GOTO Done;\n"
            "END_REGION\n"
            "Done:\n"
            "x := 1;\n"
        )


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------

class TestExpressions:
    @pytest.mark.parametrize("source", [
        "a + b * c",
        "a OR b AND c",
        "a - b - c",
        "(a + b) * c",
        "NOT a = b",
        "x MOD 2 <> 0",
        "-x",
        "arr[i, j + 1]",
        "p^.next",
        "%IX0.1",
        "SEL(g, 1, 2)",
        "T#1h30m",
    ])
    def test_stable(self, source):
        assert format_expression(expr(source)) == source

    def test_operators_normalized(self):
        assert format_expression(expr("a&b")) == "a AND b"

    def test_output_is_reparseable(self):
        source = "IF NOT (a AND b) OR c > 2 THEN y := -(x + 1) * 3; END_IF;"
        once = fmt(source)
        assert fmt(once) == once


# ---------------------------------------------------------------------------
# Type specs
# ---------------------------------------------------------------------------

class TestTypeSpecs:
    def test_array(self):
        assert format_type_spec(type_of("ARRAY[1..3] OF INT")) == "ARRAY[1..3] OF INT"

    def test_two_dimensional_array(self):
        assert format_type_spec(type_of("ARRAY [0..1, 0..9] OF REAL")) == "ARRAY[0..1, 0..9] OF REAL"

    def test_string_length(self):
        assert format_type_spec(type_of("STRING[20]")) == "STRING[20]"

    def test_enum(self):
        assert format_type_spec(type_of("(Idle, Run := 5) INT")) == "(Idle, Run := 5) INT"

    def test_subrange(self):
        assert format_type_spec(type_of("INT(0..100)")) == "INT(0..100)"

    def test_struct(self):
        spec = type_of("STRUCT x : REAL := 0.0; tag : STRING; END_STRUCT")
        assert format_type_spec(spec) == "STRUCT x : REAL := 0.0; tag : STRING; END_STRUCT"

    def test_reference(self):
        assert format_type_spec(type_of("REF_TO Motor")) == "REF_TO Motor"
