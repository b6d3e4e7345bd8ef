"""Tests for parser resource limits."""

import pytest
from pydantic import ValidationError

from iecfront.analysis import DiagnosticKind, SmellConfig, analyze_pou, build_cfg, max_nesting_depth
from iecfront.dialect import SCL
from iecfront.errors import LimitKind, ParseErrorKind, SecurityError
from iecfront.export.st import format_expression
from iecfront.parser import (
    parse_expression,
    parse_source_recovering,
    parse_statements,
    parse_statements_recovering,
)
from iecfront.security import LimitTracker, ParserLimits
from iecfront.syntax.declarations import ProgramDecl


# ---------------------------------------------------------------------------
# Presets and validation
# ---------------------------------------------------------------------------

class TestParserLimits:
    def test_defaults_are_balanced(self):
        assert ParserLimits() == ParserLimits.balanced()
        assert ParserLimits().max_depth == 256

    def test_strict(self):
        limits = ParserLimits.strict()
        assert limits.max_depth == 64
        assert limits.max_iterations == 100_000
        assert limits.max_string_length == 64 * 1024

    def test_relaxed_is_looser(self):
        relaxed, balanced = ParserLimits.relaxed(), ParserLimits.balanced()
        assert relaxed.max_depth > balanced.max_depth
        assert relaxed.max_input_size > balanced.max_input_size

    def test_zero_rejected(self):
        with pytest.raises(ValidationError):
            ParserLimits(max_depth=0)

    def test_negative_rejected(self):
        with pytest.raises(ValidationError):
            ParserLimits(max_nodes=-1)


class TestLimitTracker:
    def test_depth_round_trip(self):
        tracker = LimitTracker(ParserLimits(max_depth=2))
        tracker.enter()
        tracker.enter()
        tracker.exit()
        tracker.enter()
        with pytest.raises(SecurityError):
            tracker.enter()

    def test_exit_never_negative(self):
        tracker = LimitTracker()
        tracker.exit()
        assert tracker.depth == 0

    def test_limit_equal_is_allowed(self):
        tracker = LimitTracker(ParserLimits(max_collection_size=3))
        tracker.check_collection(3)
        with pytest.raises(SecurityError):
            tracker.check_collection(4)


# ---------------------------------------------------------------------------
# Limits enforced by the parser
# ---------------------------------------------------------------------------

class TestEnforcement:
    def test_depth(self):
        limits = ParserLimits(max_depth=5)
        with pytest.raises(SecurityError) as info:
            parse_expression("((((((((((1))))))))))", limits)
        assert info.value.limit_kind == LimitKind.DEPTH
        assert info.value.kind == ParseErrorKind.SECURITY_LIMIT
        assert info.value.limit == 5

    def test_depth_message(self):
        with pytest.raises(SecurityError, match=r"security limit exceeded: max_depth \(limit 5, found 6\)"):
            parse_expression("((((((((((1))))))))))", ParserLimits(max_depth=5))

    def test_deep_nesting_within_default(self):
        src = "(" * 50 + "1" + ")" * 50
        assert parse_expression(src).kind == "paren"

    def test_input_size_counts_bytes(self):
        limits = ParserLimits(max_input_size=5)
        with pytest.raises(SecurityError) as info:
            parse_expression("äää", limits)
        assert info.value.limit_kind == LimitKind.INPUT_SIZE
        assert info.value.value == 6

    def test_iterations(self):
        with pytest.raises(SecurityError) as info:
            parse_statements("a := b + c + d;", ParserLimits(max_iterations=5))
        assert info.value.limit_kind == LimitKind.ITERATIONS

    def test_collection_size(self):
        with pytest.raises(SecurityError) as info:
            parse_statements("a := 1; b := 2; c := 3; d := 4;", ParserLimits(max_collection_size=3))
        assert info.value.limit_kind == LimitKind.COLLECTION_SIZE

    def test_nodes(self):
        with pytest.raises(SecurityError) as info:
            parse_statements("x := a + b;", ParserLimits(max_nodes=3))
        assert info.value.limit_kind == LimitKind.NODES

    def test_string_length(self):
        with pytest.raises(SecurityError) as info:
            parse_statements("s := 'abcdef';", ParserLimits(max_string_length=3))
        assert info.value.limit_kind == LimitKind.STRING_LENGTH

    def test_not_recovered(self):
        with pytest.raises(SecurityError):
            parse_statements_recovering("x := ((((((1))))));", ParserLimits(max_depth=3))

    def test_not_recovered_in_units(self):
        src = "PROGRAM P\n x := ((((((1))))));\nEND_PROGRAM\n"
        with pytest.raises(SecurityError):
            parse_source_recovering(src, ParserLimits(max_depth=4), SCL)

    def test_security_error_has_span(self):
        with pytest.raises(SecurityError) as info:
            parse_expression("((((((((((1))))))))))", ParserLimits(max_depth=5))
        assert info.value.span.start > 0


# ---------------------------------------------------------------------------
# Preset depth boundaries
# ---------------------------------------------------------------------------

PRESETS = {
    "strict": ParserLimits.strict(),
    "balanced": ParserLimits.balanced(),
    "relaxed": ParserLimits.relaxed(),
}


def parens(depth):
    """An expression that nests exactly *depth* parser levels."""
    return "(" * (depth - 1) + "1" + ")" * (depth - 1)


def ifs(depth):
    """IF statements around one assignment, nesting exactly *depth* parser levels."""
    count = depth - 2
    return "IF c THEN " * count + "x := 1;" + " END_IF;" * count


@pytest.mark.parametrize("limits", PRESETS.values(), ids=PRESETS.keys())
class TestPresetDepth:
    def test_expression_at_limit(self, limits):
        assert parse_expression(parens(limits.max_depth), limits).kind == "paren"

    def test_expression_over_limit(self, limits):
        with pytest.raises(SecurityError) as info:
            parse_expression(parens(limits.max_depth + 1), limits)
        assert info.value.limit_kind == LimitKind.DEPTH
        assert info.value.value == limits.max_depth + 1

    def test_statements_at_limit(self, limits):
        body = parse_statements(ifs(limits.max_depth), limits)
        assert max_nesting_depth(body) == limits.max_depth - 2

    def test_statements_over_limit(self, limits):
        with pytest.raises(SecurityError) as info:
            parse_statements_recovering(ifs(limits.max_depth + 1), limits)
        assert info.value.limit_kind == LimitKind.DEPTH

    def test_power_chain_counts_depth(self, limits):
        chain = " ** ".join(["a"] * (limits.max_depth + 1))
        with pytest.raises(SecurityError) as info:
            parse_expression(chain, limits)
        assert info.value.limit_kind == LimitKind.DEPTH

    def test_deep_trees_can_be_walked(self, limits):
        deep = parens(limits.max_depth)
        assert format_expression(parse_expression(deep, limits)) == deep

        body = parse_statements(ifs(limits.max_depth), limits)
        assert build_cfg(body).decision_complexity() == limits.max_depth - 1
        pou = ProgramDecl(name="Deep", body=body)
        diagnostics = analyze_pou(pou, SmellConfig(detect_duplicate_code=False))
        assert DiagnosticKind.DEEP_NESTING in [d.kind for d in diagnostics]
