"""Tests for conversion into the neutral model and its summary counts."""

import pytest
from pydantic import ValidationError

from conftest import unit
from iecfront import scl
from iecfront.plcmodel import (
    ArrayDimension,
    DataTypeDef,
    PouKind,
    ProjectStats,
    StructMember,
    Task,
    TaskType,
    VarClass,
    Variable,
    controller_to_plc_model,
    to_plc_model,
)
from iecfront.project import (
    AddOnInstruction,
    AoiParameter,
    Controller,
    DataTypeMember,
    Program,
    Routine,
    RoutineType,
    RungText,
    Tag,
    TagUsage,
    UserDataType,
)

SOURCE = """
TYPE
    Mode : (Idle, Run := 5, Stop) INT;
    Point : STRUCT x : REAL := 0.0; y : REAL; END_STRUCT;
    Buffer : ARRAY[0..9] OF INT;
    Percent : INT(0..100);
    Speed : REAL;
END_TYPE

VAR_GLOBAL
    Start AT %IX0.0 : BOOL;
    Count : DINT := 0;
END_VAR

FUNCTION Add : INT
VAR_INPUT
    a : INT;
    b : INT;
END_VAR
Add := a + b;
END_FUNCTION

FUNCTION_BLOCK Motor
VAR_INPUT
    run : BOOL;
END_VAR
VAR_OUTPUT
    on : BOOL;
END_VAR
VAR_IN_OUT
    cfg : Point;
END_VAR
VAR
    history : ARRAY[1..4, 0..1] OF REAL;
END_VAR
VAR_TEMP
    t : INT;
END_VAR
on := run;
END_FUNCTION_BLOCK

PROGRAM Main
VAR CONSTANT
    Limit : INT := 10;
END_VAR
VAR RETAIN
    total : DINT;
END_VAR
VAR
    m : Motor;
END_VAR
m(run := Start);
END_PROGRAM
"""


@pytest.fixture
def project():
    return to_plc_model(unit(SOURCE), name="Line1")


def controller() -> Controller:
    return Controller(
        name="Plant",
        tags=[
            Tag(name="Start", data_type="BOOL"),
            Tag(name="Buffer", data_type="DINT", dimensions="10"),
            Tag(name="Raw"),
        ],
        programs=[Program(
            name="MainProgram",
            description="line control",
            tags=[Tag(name="Step", data_type="DINT")],
            routines=[
                Routine(name="MainRoutine", rungs=[
                    RungText(number=0, text="XIC(Start)OTE(Motor);"),
                    RungText(number=1, text="   "),
                ]),
                Routine(name="Calc", routine_type=RoutineType.ST, st_lines=["Step := Step + 1;"]),
            ],
        )],
        add_on_instructions=[AddOnInstruction(
            name="Valve",
            parameters=[
                AoiParameter(name="Open", data_type="BOOL"),
                AoiParameter(name="Done", data_type="BOOL", usage=TagUsage.OUTPUT),
            ],
            local_tags=[Tag(name="Delay", data_type="TIMER")],
            routines=[Routine(name="Logic", routine_type=RoutineType.ST, st_lines=["Done := Open;"])],
        )],
        data_types=[UserDataType(name="Recipe", members=[
            DataTypeMember(name="Temps", data_type="REAL", dimension=4),
            DataTypeMember(name="Name", data_type="STRING"),
        ])],
    )


# ---------------------------------------------------------------------------
# POUs
# ---------------------------------------------------------------------------

class TestPous:
    def test_project_header(self, project):
        assert project.name == "Line1"
        assert project.source_format == "st"

    def test_pou_kinds_in_order(self, project):
        assert [(p.name, p.kind) for p in project.pous] == [
            ("Add", PouKind.FUNCTION),
            ("Motor", PouKind.FUNCTION_BLOCK),
            ("Main", PouKind.PROGRAM),
        ]

    def test_function_interface(self, project):
        add = project.find_pou("Add")
        assert [v.name for v in add.interface.inputs] == ["a", "b"]
        assert add.interface.return_type == "INT"
        assert add.body.text == "Add := a + b;\n"

    def test_interface_slots(self, project):
        motor = project.find_pou("Motor").interface
        assert [v.name for v in motor.inputs] == ["run"]
        assert [v.name for v in motor.outputs] == ["on"]
        assert [(v.name, v.data_type) for v in motor.in_outs] == [("cfg", "Point")]
        assert [v.name for v in motor.temps] == ["t"]
        assert motor.variable_count() == 5

    def test_array_variable(self, project):
        history = project.find_pou("Motor").find_variable("history")
        assert history.data_type == "REAL"
        assert history.dimensions == [4, 2]
        assert history.is_array
        assert history.array_size == 8

    def test_block_flags(self, project):
        main = project.find_pou("Main")
        limit = main.find_variable("Limit")
        assert limit.constant
        assert limit.initial_value == "10"
        assert main.find_variable("total").retain
        assert main.find_variable("m").data_type == "Motor"

    def test_body_is_normalized_st(self, project):
        assert project.find_pou("Main").body.text == "m(run := Start);\n"
        assert project.find_pou("Main").body.language == "ST"

    def test_empty_body(self):
        pou = to_plc_model(unit("PROGRAM Idle\nEND_PROGRAM\n")).pous[0]
        assert pou.body is None
        assert pou.is_empty()

    def test_methods_become_functions(self):
        cu = unit("""
FUNCTION_BLOCK Motor
VAR_INPUT
    enable : BOOL;
END_VAR
METHOD PUBLIC Start : BOOL
    Start := enable;
END_METHOD
END_FUNCTION_BLOCK
""")
        project = to_plc_model(cu)
        method = project.find_pou("Motor.Start")
        assert method.kind == PouKind.FUNCTION
        assert method.interface.return_type == "BOOL"

    def test_class_is_function_block_and_interface_skipped(self):
        cu = unit("""
INTERFACE IRun
METHOD Run : BOOL
END_METHOD
END_INTERFACE
CLASS Pump IMPLEMENTS IRun
VAR
    speed : REAL;
END_VAR
METHOD Run : BOOL
    Run := speed > 0.0;
END_METHOD
END_CLASS
""")
        project = to_plc_model(cu)
        assert [(p.name, p.kind) for p in project.pous] == [
            ("Pump", PouKind.FUNCTION_BLOCK),
            ("Pump.Run", PouKind.FUNCTION),
        ]


# ---------------------------------------------------------------------------
# Data types and globals
# ---------------------------------------------------------------------------

class TestDataTypes:
    def test_enum(self, project):
        mode = project.find_data_type("Mode").definition
        assert mode.kind == "enum"
        assert mode.base_type == "INT"
        assert [(m.name, m.value) for m in mode.members] == [("Idle", None), ("Run", 5), ("Stop", None)]

    def test_struct(self, project):
        point = project.find_data_type("Point").definition
        assert [(m.name, m.data_type, m.initial_value) for m in point.members] == [
            ("x", "REAL", "0.0"),
            ("y", "REAL", None),
        ]

    def test_array(self, project):
        buffer = project.find_data_type("Buffer").definition
        assert buffer.element_type == "INT"
        assert [(d.lower, d.upper, d.size) for d in buffer.dimensions] == [(0, 9, 10)]

    def test_subrange(self, project):
        percent = project.find_data_type("Percent").definition
        assert (percent.base_type, percent.lower, percent.upper) == ("INT", 0, 100)

    def test_alias(self, project):
        assert project.find_data_type("Speed").definition.target == "REAL"

    def test_referenced_types(self, project):
        assert project.find_data_type("Point").referenced_types() == ["REAL", "REAL"]
        assert project.find_data_type("Mode").referenced_types() == ["INT"]

    def test_globals(self, project):
        start, count = project.global_variables()
        assert start.var_class == VarClass.GLOBAL
        assert start.address == "%IX0.0"
        assert count.initial_value == "0"


class TestScl:
    SOURCE = """
DATA_BLOCK "Settings"
STRUCT
    speed : Int := 10;
END_STRUCT;
BEGIN
END_DATA_BLOCK
DATA_BLOCK "Motor_DB" "Motor Control"
BEGIN
END_DATA_BLOCK
ORGANIZATION_BLOCK "Main"
BEGIN
    "Conveyor".run := TRUE;
END_ORGANIZATION_BLOCK
"""

    def test_shared_data_block(self):
        project = to_plc_model(scl.parse_source(self.SOURCE), dialect=scl.DIALECT)
        settings = project.find_data_type("Settings").definition
        assert [(m.name, m.data_type, m.initial_value) for m in settings.members] == [
            ("speed", "INT", "10"),
        ]

    def test_data_blocks_are_globals(self):
        project = to_plc_model(scl.parse_source(self.SOURCE), dialect=scl.DIALECT)
        assert [(v.name, v.data_type) for v in project.global_variables()] == [
            ("Settings", "Settings"),
            ("Motor_DB", "Motor Control"),
        ]
        assert project.find_data_type("Motor_DB") is None

    def test_organization_block_is_program(self):
        project = to_plc_model(scl.parse_source(self.SOURCE), dialect=scl.DIALECT)
        assert project.source_format == "scl"
        main = project.find_pou("Main")
        assert main.kind == PouKind.PROGRAM
        assert main.body.text == '"Conveyor".run := TRUE;\n'


# ---------------------------------------------------------------------------
# Controller trees
# ---------------------------------------------------------------------------

class TestController:
    def test_program(self):
        project = controller_to_plc_model(controller())
        assert project.source_format == "l5x"
        main = project.find_pou("MainProgram")
        assert main.kind == PouKind.PROGRAM
        assert main.description == "line control"
        assert [v.name for v in main.interface.locals] == ["Step"]

    def test_ladder_wins_over_st(self):
        body = controller_to_plc_model(controller()).find_pou("MainProgram").body
        assert body.kind == "raw"
        assert body.language == "RLL"
        assert body.content == "// Routine: MainRoutine\nXIC(Start)OTE(Motor);"

    def test_aoi(self):
        valve = controller_to_plc_model(controller()).find_pou("Valve")
        assert valve.kind == PouKind.FUNCTION_BLOCK
        assert [v.name for v in valve.interface.inputs] == ["Open"]
        assert [v.name for v in valve.interface.outputs] == ["Done"]
        assert [(v.name, v.data_type) for v in valve.interface.locals] == [("Delay", "TIMER")]
        assert valve.body.text == "// Routine: Logic\nDone := Open;"

    def test_controller_tags(self):
        tags = {v.name: v for v in controller_to_plc_model(controller()).global_variables()}
        assert tags["Buffer"].dimensions == [10]
        assert tags["Raw"].data_type == "DINT"
        assert tags["Start"].var_class == VarClass.GLOBAL

    def test_user_data_types(self):
        recipe = controller_to_plc_model(controller()).find_data_type("Recipe").definition
        assert [(m.name, m.dimensions) for m in recipe.members] == [("Temps", [4]), ("Name", [])]

    def test_no_routines(self):
        bare = Controller(name="Empty", programs=[Program(name="P")])
        project = controller_to_plc_model(bare)
        assert project.find_pou("P").body is None
        assert project.configuration is None

    def test_tag_dimensions_text(self):
        assert Tag(name="M", dimensions="4 8").dimension_sizes() == [4, 8]
        assert Tag(name="M").dimension_sizes() == []


# ---------------------------------------------------------------------------
# Model records
# ---------------------------------------------------------------------------

class TestRecords:
    def test_periodic_task_needs_period(self):
        with pytest.raises(ValidationError, match="period_ms"):
            Task(name="Fast", task_type=TaskType.PERIODIC)

    def test_event_task_needs_trigger(self):
        with pytest.raises(ValidationError, match="trigger_tag"):
            Task(name="OnAlarm", task_type=TaskType.EVENT)

    def test_continuous_task_has_no_period(self):
        with pytest.raises(ValidationError, match="must not have"):
            Task(name="Main", period_ms=10)

    def test_empty_dimension(self):
        with pytest.raises(ValidationError):
            ArrayDimension(lower=5, upper=1)

    def test_dimension_helpers(self):
        assert ArrayDimension.zero_based(10).upper == 9
        assert ArrayDimension.one_based(10).size == 10

    def test_variable_helpers(self):
        assert Variable.input("a", "INT").var_class == VarClass.INPUT
        assert Variable.in_out("b", "INT").var_class == VarClass.IN_OUT
        assert Variable(name="x", data_type="INT").array_size == 1

    def test_structure_helper(self):
        dt = DataTypeDef.structure("Pair", [StructMember(name="a", data_type="INT")])
        assert dt.referenced_types() == ["INT"]


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

class TestStats:
    def test_counts(self, project):
        stats = ProjectStats.from_project(project)
        assert (stats.programs, stats.function_blocks, stats.functions) == (1, 1, 1)
        assert stats.total_pous == 3
        assert stats.data_types == 5
        assert stats.global_vars == 2
        assert stats.total_vars == 10
        assert stats.empty_pous == 0
        assert stats.bodies_by_language == {"ST": 3}

    def test_controller_counts(self):
        stats = ProjectStats.from_project(controller_to_plc_model(controller()))
        assert stats.bodies_by_language == {"RLL": 1, "ST": 1}
        assert stats.global_vars == 3
        assert stats.tasks == 0

    def test_empty_pous_counted(self):
        stats = ProjectStats.from_project(to_plc_model(unit("PROGRAM Idle\nEND_PROGRAM\n")))
        assert stats.empty_pous == 1
        assert stats.bodies_by_language == {}
