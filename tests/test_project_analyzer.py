"""Tests for whole-controller analysis."""

import pytest

from iecfront.analysis import DiagnosticKind
from iecfront.errors import LimitKind
from iecfront.project import (
    AddOnInstruction,
    AoiCallSource,
    AoiParameter,
    Controller,
    Program,
    Routine,
    RoutineType,
    RungText,
    Tag,
    TagUsage,
    analyze_controller,
    aoi_owner,
)
from iecfront.security import ParserLimits


def rll(name, *texts):
    return Routine(name=name, rungs=[RungText(number=i, text=t) for i, t in enumerate(texts)])


def st(name, *lines):
    return Routine(name=name, routine_type=RoutineType.ST, st_lines=list(lines))


def plant(*extra_routines) -> Controller:
    return Controller(
        name="Plant",
        tags=[
            Tag(name="Start", data_type="BOOL"),
            Tag(name="Motor", data_type="BOOL"),
            Tag(name="Counter", data_type="DINT"),
        ],
        programs=[Program(
            name="MainProgram",
            tags=[
                Tag(name="Step", data_type="DINT"),
                Tag(name="Temp", data_type="REAL"),
                Tag(name="V1", data_type="Valve"),
            ],
            routines=[
                rll(
                    "MainRoutine",
                    "XIC(Start)OTE(Motor);",
                    "XIC(Motor)Valve(V1);",
                    "XIC(A",
                    "MOV(Counter,Step);",
                ),
                st("Calc", "Step := Step + 1;", "Valve(V1);"),
                *extra_routines,
            ],
        )],
        add_on_instructions=[
            AddOnInstruction(
                name="Valve",
                parameters=[
                    AoiParameter(name="Open", data_type="BOOL"),
                    AoiParameter(name="Done", data_type="BOOL", usage=TagUsage.OUTPUT),
                ],
                local_tags=[Tag(name="Delay", data_type="TIMER")],
                routines=[rll("Logic", "XIC(Open)TON(Delay,?,?)OTE(Done);", "XIC(Missing)Pump(Delay);")],
            ),
            AddOnInstruction(name="Pump"),
            AddOnInstruction(name="Spare"),
        ],
    )


@pytest.fixture
def analysis():
    return analyze_controller(plant())


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

class TestStats:
    def test_counts(self, analysis):
        stats = analysis.stats
        assert (stats.programs, stats.aois, stats.routines) == (1, 3, 3)
        assert stats.routines_by_type == {"RLL": 2, "ST": 1}
        assert (stats.rungs, stats.rll_rungs_programs, stats.rll_rungs_aois) == (6, 4, 2)
        assert (stats.parsed_ok, stats.parsed_err) == (5, 1)

    def test_st_counts(self, analysis):
        stats = analysis.stats
        assert (stats.st_routines, stats.st_routines_programs, stats.st_routines_aois) == (1, 1, 0)
        assert stats.st_statements == 2
        assert (stats.st_parsed_ok, stats.st_parsed_err) == (1, 0)

    def test_reference_counts(self, analysis):
        assert analysis.stats.tag_references == 14
        assert analysis.stats.unique_tags == 9
        assert analysis.stats.instructions == 10

    def test_success_rate(self, analysis):
        assert analysis.stats.success_rate() == pytest.approx(100 * 5 / 6)

    def test_empty_controller(self):
        result = analyze_controller(Controller(name="Empty"))
        assert result.stats.success_rate() == 100.0
        assert result.references == []


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------

class TestTags:
    def test_references_located(self, analysis):
        paths = [(r.path(), r.instruction) for r in analysis.references_to("Step")]
        assert paths == [
            ("MainProgram/MainRoutine/Rung#3", "MOV"),
            ("MainProgram/Calc", "ST"),
            ("MainProgram/Calc", "ST"),
        ]

    def test_operand_index(self, analysis):
        ladder, st_ref, _ = analysis.references_to("Step")
        assert ladder.operand_index == 1
        assert st_ref.operand_index is None
        assert st_ref.program == "MainProgram"

    def test_unique_tags(self, analysis):
        assert analysis.unique_tags() == [
            "Counter", "Delay", "Done", "Missing", "Motor", "Open", "Start", "Step", "V1",
        ]

    def test_tags_by_instruction(self, analysis):
        assert analysis.tags_by_instruction("OTE") == ["Done", "Motor"]

    def test_undefined_tags(self, analysis):
        assert analysis.undefined_tags() == ["Missing"]

    def test_scope_is_case_insensitive(self):
        controller = Controller(
            name="Plant",
            tags=[Tag(name="START", data_type="BOOL")],
            programs=[Program(name="P", routines=[rll("R", "XIC(Start);")])],
        )
        assert analyze_controller(controller).undefined_tags() == []

    def test_aoi_parameters_not_visible_in_programs(self):
        controller = plant(rll("Extra", "XIC(Open);"))
        assert analyze_controller(controller).undefined_tags() == ["Missing", "Open"]


# ---------------------------------------------------------------------------
# Routines and errors
# ---------------------------------------------------------------------------

class TestRoutines:
    def test_ladder_summary(self, analysis):
        summary = analysis.get_routine("MainProgram", "MainRoutine")
        assert summary.rung_count == 4
        assert (summary.parsed_ok, summary.parse_errors) == (3, 1)
        assert summary.tag_references == 6
        assert not summary.is_aoi

    def test_st_summary(self, analysis):
        summary = analysis.get_routine("MainProgram", "Calc")
        assert summary.statement_count == 2
        assert summary.parsed_ok == 1
        assert summary.tag_references == 3

    def test_aoi_routines(self, analysis):
        routines = analysis.routines_in_program(aoi_owner("Valve"))
        assert [r.name for r in routines] == ["Logic"]
        assert routines[0].is_aoi

    def test_program_names(self, analysis):
        assert analysis.program_names() == ["MainProgram"]

    def test_missing_routine(self, analysis):
        assert analysis.get_routine("MainProgram", "Nope") is None

    def test_every_parsed_rung_is_located(self, analysis):
        assert [r.location.path() for r in analysis.rungs][:2] == [
            "MainProgram/MainRoutine/Rung#0",
            "MainProgram/MainRoutine/Rung#1",
        ]
        assert len(analysis.rungs) == 6

    def test_rung_errors(self, analysis):
        (error,) = analysis.parse_errors()
        assert error.context.path() == "MainProgram/MainRoutine/Rung#2"
        assert analysis.format_parse_errors().startswith(
            "in MainProgram/MainRoutine/Rung#2\nerror: unclosed parenthesis"
        )

    def test_st_parse_errors(self):
        result = analyze_controller(plant(st("Bad", "Step := ;", "Temp := 1.0;")))
        errors = result.st_parse_errors()
        assert errors
        assert {location.path() for location, _ in errors} == {"MainProgram/Bad"}
        assert result.stats.st_parsed_err == 1
        assert result.get_routine("MainProgram", "Bad").parsed_ok == 0

    def test_st_diagnostics(self):
        result = analyze_controller(plant(st("Check", "Temp := Nowhere;")))
        diagnostics = [d for location, d in result.st_all_diagnostics() if location.routine == "Check"]
        assert DiagnosticKind.UNDEFINED_IDENTIFIER in [d.kind for d in diagnostics]

    def test_tags_are_known_to_st(self):
        result = analyze_controller(plant(st("Known", "Temp := Temp * 2.0;")))
        diagnostics = [d for location, d in result.st_all_diagnostics() if location.routine == "Known"]
        assert DiagnosticKind.UNDEFINED_IDENTIFIER not in [d.kind for d in diagnostics]

    def test_for_loop_routine(self):
        result = analyze_controller(plant(st("Loop", "FOR Step := 1 TO 10 DO Temp := Temp + 1.0; END_FOR;")))
        assert result.get_routine("MainProgram", "Loop").parsed_ok == 1
        assert result.stats.st_parsed_ok == 2
        assert result.st_parse_errors() == []

    def test_for_loop_does_not_stop_the_walk(self):
        controller = Controller(name="Plant", programs=[Program(name="P", routines=[
            st("Loop", "FOR i := 1 TO 10 DO x := i; END_FOR;"),
            rll("Main", "XIC(A)OTE(B);"),
        ])])
        result = analyze_controller(controller)
        assert result.get_routine("P", "Loop").parsed_ok == 1
        assert result.get_routine("P", "Main").parsed_ok == 1
        assert {"A", "B", "x"} <= set(result.unique_tags())

    def test_non_text_routines_only_counted(self):
        result = analyze_controller(plant(Routine(name="Chart", routine_type=RoutineType.SFC)))
        assert result.stats.routines_by_type["SFC"] == 1
        assert result.get_routine("MainProgram", "Chart").rung_count == 0


class TestLimits:
    def controller(self):
        return Controller(name="Plant", programs=[Program(name="P", routines=[
            rll("R", "XIC(A)OTE(B);", "XIC(LongTagName)OTE(B);"),
            st("S", "A := LongTagName;"),
        ])])

    def test_failures_recorded_and_skipped(self):
        result = analyze_controller(self.controller(), ParserLimits(max_input_size=16))
        assert [f.path for f in result.limit_failures] == ["P/R/Rung#1", "P/S"]
        assert result.limit_failures[0].error.limit_kind == LimitKind.INPUT_SIZE
        assert result.stats.limit_failures == 2
        assert (result.stats.parsed_ok, result.stats.parsed_err) == (1, 1)
        assert result.unique_tags() == ["A", "B"]

    def test_deep_routine_within_default_limits(self):
        deep = "(" * 220 + "1" + ")" * 220
        result = analyze_controller(plant(st("Deep", f"Temp := {deep};")))
        assert result.limit_failures == []
        assert result.get_routine("MainProgram", "Deep").parsed_ok == 1

    def test_too_deep_routine_is_skipped(self):
        deep = "(" * 300 + "1" + ")" * 300
        result = analyze_controller(plant(st("Deep", f"Temp := {deep};"), rll("After", "XIC(Start)OTE(Motor);")))
        assert [(f.path, f.error.limit_kind) for f in result.limit_failures] == [
            ("MainProgram/Deep", LimitKind.DEPTH),
        ]
        assert result.get_routine("MainProgram", "After").parsed_ok == 1

    def test_limit_failure_is_not_a_rung_error(self):
        result = analyze_controller(self.controller(), ParserLimits(max_input_size=16))
        assert result.parse_errors() == []
        assert result.st_routines == []


# ---------------------------------------------------------------------------
# Add-on instructions
# ---------------------------------------------------------------------------

class TestAois:
    def test_calls_from_ladder_and_st(self, analysis):
        refs = analysis.aoi_references("Valve")
        assert [(r.source, r.path()) for r in refs] == [
            (AoiCallSource.RLL, "MainProgram/MainRoutine/Rung#1"),
            (AoiCallSource.ST, "MainProgram/Calc"),
        ]

    def test_unused(self, analysis):
        assert analysis.unused_aois() == ["Spare"]

    def test_by_usage(self, analysis):
        assert analysis.aois_by_usage() == [("Valve", 2), ("Pump", 1), ("Spare", 0)]

    def test_programs_using(self, analysis):
        assert analysis.programs_using_aoi("Valve") == ["MainProgram"]
        assert analysis.programs_using_aoi("Pump") == []

    def test_aoi_calls_aoi(self, analysis):
        assert analysis.aoi_calls_aoi() == [("Valve", "Pump")]

    def test_mnemonic_case_ignored(self):
        controller = plant(rll("Lower", "VALVE(V1);"))
        assert len(analyze_controller(controller).aoi_references("Valve")) == 3

    def test_top_instructions(self, analysis):
        assert analysis.top_instructions(2) == [("XIC", 4), ("OTE", 2)]

    def test_owner_name(self):
        assert aoi_owner("Valve") == "AOI:Valve"
