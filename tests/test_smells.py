"""Tests for the smell detector."""

import pytest

from conftest import analyze, expr, kinds, stmts
from iecfront.analysis import DiagnosticKind, Severity, SmellConfig, SmellDetector
from iecfront.analysis.smells import count_logical_operators, count_statements
from iecfront.dialect import SCL
from iecfront.span import Span

BODY = Span(start=0, end=10)


def smells(source, config=None, dialect=None, body_span=None):
    detector = SmellDetector(config)
    if dialect is None:
        return detector.analyze_statements(stmts(source), body_span)
    return detector.analyze_statements(stmts(source, dialect), body_span)


def nested_ifs(depth: int) -> str:
    opening = "".join(f"IF c{i} THEN\n" for i in range(depth))
    closing = "END_IF;\n" * depth
    return opening + "x := 0;\n" + closing


# ---------------------------------------------------------------------------
# Counting helpers
# ---------------------------------------------------------------------------

class TestCounting:
    def test_logical_operators(self):
        assert count_logical_operators(expr("a AND (b OR NOT c) XOR d")) == 3

    def test_comparisons_are_not_counted(self):
        assert count_logical_operators(expr("a > 1 AND b = 2")) == 1

    def test_nested_statements_counted(self):
        assert count_statements(stmts("IF a THEN x := 0; y := 1; END_IF; z := 2;")) == 4


# ---------------------------------------------------------------------------
# Dead code
# ---------------------------------------------------------------------------

class TestDeadCode:
    def test_after_return(self):
        diags = smells("x := 1; RETURN; y := 2;")
        assert kinds(diags) == [DiagnosticKind.DEAD_CODE]
        assert diags[0].severity == Severity.WARNING
        assert diags[0].message == "unreachable code: code after RETURN or EXIT"

    def test_every_following_statement(self):
        assert kinds(smells("RETURN; a := 0; b := 0;")) == [DiagnosticKind.DEAD_CODE] * 2

    def test_after_exit_in_loop(self):
        diags = smells("WHILE run DO EXIT; x := 0; END_WHILE;")
        assert kinds(diags) == [DiagnosticKind.DEAD_CODE]

    def test_label_is_reachable(self):
        assert smells("RETURN;\nDone: y := 2;", dialect=SCL) == []

    def test_return_in_branch_only(self):
        assert smells("IF a THEN RETURN; END_IF; y := 2;") == []


# ---------------------------------------------------------------------------
# Magic numbers
# ---------------------------------------------------------------------------

class TestMagicNumbers:
    def test_reported(self):
        diags = smells("y := x * 42;")
        assert kinds(diags) == [DiagnosticKind.MAGIC_NUMBER]
        assert diags[0].severity == Severity.HINT
        assert diags[0].args == {"value": "42"}

    @pytest.mark.parametrize("value", ["0", "1", "-1", "100", "1.5", "INT#42", "T#5s"])
    def test_not_reported(self, value):
        assert smells(f"y := {value};") == []

    def test_negative(self):
        assert smells("y := -7;")[0].args == {"value": "-7"}

    def test_in_condition(self):
        diags = smells("IF speed > 1500 THEN x := 0; END_IF;")
        assert kinds(diags) == [DiagnosticKind.MAGIC_NUMBER]

    def test_in_call_arguments(self):
        assert kinds(smells("Fill(buffer, 64);")) == [DiagnosticKind.MAGIC_NUMBER]

    def test_in_array_index(self):
        assert kinds(smells("y := table[7];")) == [DiagnosticKind.MAGIC_NUMBER]

    def test_disabled(self):
        assert smells("y := 42;", SmellConfig(warn_magic_numbers=False)) == []

    def test_custom_exceptions(self):
        assert smells("y := 42;", SmellConfig(magic_number_exceptions=[42])) == []


# ---------------------------------------------------------------------------
# Empty blocks and redundant conditions
# ---------------------------------------------------------------------------

class TestBlocks:
    def test_empty_if(self):
        diags = smells("IF a THEN END_IF;")
        assert kinds(diags) == [DiagnosticKind.EMPTY_BLOCK]
        assert diags[0].severity == Severity.WARNING
        assert diags[0].message == "empty IF block"

    def test_empty_else_is_hint(self):
        diags = smells("IF a THEN x := 0; ELSE END_IF;")
        assert kinds(diags) == [DiagnosticKind.EMPTY_BLOCK]
        assert diags[0].severity == Severity.HINT

    @pytest.mark.parametrize("source, block", [
        ("FOR i := 0 TO 9 DO END_FOR;", "FOR"),
        ("WHILE a DO END_WHILE;", "WHILE"),
        ("REPEAT UNTIL a END_REPEAT;", "REPEAT"),
    ])
    def test_empty_loops(self, source, block):
        diags = smells(source)
        assert kinds(diags) == [DiagnosticKind.EMPTY_BLOCK]
        assert diags[0].args == {"block_type": block}

    def test_always_true(self):
        diags = smells("IF TRUE THEN x := 0; END_IF;")
        assert kinds(diags) == [DiagnosticKind.REDUNDANT_CONDITION]
        assert diags[0].message == "condition is always true"

    def test_always_false_in_parens(self):
        diags = smells("WHILE (FALSE) DO x := 0; END_WHILE;")
        assert diags[0].message == "condition is always false"


# ---------------------------------------------------------------------------
# Nesting and complexity
# ---------------------------------------------------------------------------

class TestNesting:
    def test_within_limit(self):
        assert smells(nested_ifs(4)) == []

    def test_just_over_limit(self):
        diags = smells(nested_ifs(5))
        assert kinds(diags) == [DiagnosticKind.DEEP_NESTING]
        assert diags[0].severity == Severity.HINT
        assert diags[0].args == {"depth": 5, "max_recommended": 4}

    def test_severity_grows_with_depth(self):
        diags = smells(nested_ifs(5), SmellConfig(max_nesting=2))
        assert [d.severity for d in diags] == [Severity.HINT, Severity.WARNING, Severity.ERROR]

    def test_detector_is_reusable(self):
        detector = SmellDetector(SmellConfig(max_nesting=2))
        detector.analyze_statements(stmts(nested_ifs(3)))
        assert detector.analyze_statements(stmts(nested_ifs(2))) == []

    def test_complex_condition(self):
        diags = smells("IF a AND b AND c AND d AND e AND f THEN x := 0; END_IF;")
        assert kinds(diags) == [DiagnosticKind.COMPLEX_CONDITION]
        assert diags[0].args == {"complexity": 5, "max_recommended": 4}
        assert diags[0].severity == Severity.HINT

    def test_complex_loop_condition(self):
        config = SmellConfig(max_condition_complexity=1)
        diags = smells("WHILE a OR b OR c DO x := 0; END_WHILE;", config)
        assert kinds(diags) == [DiagnosticKind.COMPLEX_CONDITION]
        assert diags[0].severity == Severity.WARNING


# ---------------------------------------------------------------------------
# CASE
# ---------------------------------------------------------------------------

class TestCase:
    def test_missing_else(self):
        diags = smells("CASE n OF 1: x := 0; END_CASE;")
        assert kinds(diags) == [DiagnosticKind.MISSING_CASE_ELSE]
        assert diags[0].severity == Severity.HINT

    def test_with_else(self):
        assert smells("CASE n OF 1: x := 0; ELSE x := 1; END_CASE;") == []

    def test_empty_branch(self):
        diags = smells("CASE n OF\n1:\n2: x := 0;\nELSE x := 1;\nEND_CASE;")
        assert kinds(diags) == [DiagnosticKind.EMPTY_CASE_BRANCH]
        assert diags[0].message == "empty CASE branch"

    def test_missing_else_disabled(self):
        config = SmellConfig(warn_missing_case_else=False)
        assert smells("CASE n OF 1: x := 0; END_CASE;", config) == []


# ---------------------------------------------------------------------------
# Duplicates and long bodies
# ---------------------------------------------------------------------------

class TestDuplicates:
    def test_repeated_statement(self):
        diags = smells("x := x + 1;\nx := x + 1;")
        assert kinds(diags) == [DiagnosticKind.DUPLICATE_CODE]
        assert diags[0].message == "duplicate code: statement repeats the one before it"

    def test_formatting_does_not_matter(self):
        assert kinds(smells("x:=x+1;\nx  :=  x + 1;")) == [DiagnosticKind.DUPLICATE_CODE]

    def test_repeated_condition(self):
        diags = smells("IF a THEN x := 0; ELSIF a THEN x := 1; END_IF;")
        assert kinds(diags) == [DiagnosticKind.DUPLICATE_CODE]
        assert "already tested" in diags[0].message

    def test_disabled(self):
        config = SmellConfig(detect_duplicate_code=False)
        assert smells("x := x + 1;\nx := x + 1;", config) == []


class TestLongBody:
    def body(self, count):
        return "\n".join(f"x{i} := 0;" for i in range(count))

    def test_needs_body_span(self):
        assert smells(self.body(60)) == []

    @pytest.mark.parametrize("count, severity", [
        (5, Severity.HINT),
        (7, Severity.WARNING),
        (9, Severity.ERROR),
    ])
    def test_tiers(self, count, severity):
        diags = smells(self.body(count), SmellConfig(max_function_length=4), body_span=BODY)
        assert kinds(diags) == [DiagnosticKind.LONG_FUNCTION]
        assert diags[0].severity == severity
        assert diags[0].span == BODY

    def test_at_limit(self):
        assert smells(self.body(4), SmellConfig(max_function_length=4), body_span=BODY) == []

    def test_through_analyze_pou(self):
        body = "\n".join(f"x := {i % 3};" for i in range(6))
        source = f"PROGRAM Main\nVAR\n    x : INT;\nEND_VAR\n{body}\nEND_PROGRAM\n"
        diags = analyze(source, config=SmellConfig(max_function_length=4))
        long = [d for d in diags if d.kind == DiagnosticKind.LONG_FUNCTION]
        assert long[0].message == "function is too long (6 statements, recommended max 4)"
