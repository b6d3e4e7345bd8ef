"""Tests for the project-wide cross-reference."""

from iecfront.plcmodel import (
    CrossReference,
    ExpressionOperand,
    IlBody,
    Instruction,
    Interface,
    LdBody,
    LiteralOperand,
    Pou,
    PouKind,
    Project,
    RawBody,
    ReferenceLocation,
    Rung,
    SfcAction,
    SfcBody,
    SfcStep,
    SfcTransition,
    StBody,
    TagOperand,
    Variable,
)
from iecfront.plcmodel.project import Configuration, Resource


def program(body, name="Main", locals=()):
    return Pou(
        name=name,
        kind=PouKind.PROGRAM,
        interface=Interface(locals=[Variable(name=n, data_type=t) for n, t in locals]),
        body=body,
    )


def build(*pous, globals=(), source_format=None):
    project = Project(name="Line1", pous=list(pous), source_format=source_format)
    if globals:
        project.configuration = Configuration(name="Line1", resources=[Resource(
            name="Resource",
            global_vars=[Variable(name=n, data_type="BOOL") for n in globals],
        )])
    return CrossReference.build(project)


def paths(xref, tag):
    return [r.location.path() for r in xref.references_to(tag)]


# ---------------------------------------------------------------------------
# Ladder text
# ---------------------------------------------------------------------------

class TestLadderText:
    def test_tags_and_instructions(self):
        body = RawBody(language="RLL", content="XIC(Start)OTE(Motor);MOV(Counter,Dest);")
        xref = build(program(body), globals=["Start", "Motor", "Counter", "Dest", "NotUsed"])
        assert {"Start", "Motor", "Counter", "Dest"} <= xref.used_tags
        assert {"XIC", "OTE", "MOV"} <= xref.used_pous
        assert "NotUsed" not in xref.used_tags
        assert xref.unused_tags() == ["NotUsed"]
        assert xref.undefined_tags() == []

    def test_rungs_numbered(self):
        body = RawBody(language="RLL", content="XIC(A)OTE(B);\nXIC(B)OTE(C);")
        xref = build(program(body))
        assert paths(xref, "B") == ["Main/Rung#0", "Main/Rung#1"]

    def test_routine_headers_restart_numbering(self):
        content = "// Routine: Main\nXIC(A)OTE(B);\n\n// Routine: R2\nXIC(C);"
        xref = build(program(RawBody(language="RLL", content=content), name="P"))
        assert paths(xref, "A") == ["P/Main/Rung#0"]
        assert paths(xref, "C") == ["P/R2/Rung#0"]

    def test_reference_details(self):
        xref = build(program(RawBody(language="RLL", content="XIC(Timer1.DN);")))
        ref = xref.references_to("Timer1")[0]
        assert ref.full_operand == "Timer1.DN"
        assert ref.instruction == "XIC"

    def test_broken_rung_is_scanned(self):
        xref = build(program(RawBody(language="RLL", content="XIC(A)OTE(B")))
        assert {"A", "B"} <= xref.used_tags
        assert {"XIC", "OTE"} <= xref.used_pous

    def test_rung_without_terminator(self):
        xref = build(program(RawBody(language="RLL", content="XIC(A)OTE(B)")))
        assert paths(xref, "B") == ["Main/Rung#0"]

    def test_inferred_operands_ignored(self):
        xref = build(program(RawBody(language="RLL", content="TON(Timer1,?,?);")))
        assert xref.used_tags == {"Timer1"}


# ---------------------------------------------------------------------------
# Structured Text
# ---------------------------------------------------------------------------

class TestStructuredText:
    LOCALS = [("m", "Motor"), ("speed", "INT"), ("cfg", "Point")]

    def test_accesses(self):
        body = StBody(text="m(run := Start);\ncfg.x := Limit(speed);\n")
        xref = build(program(body, locals=self.LOCALS))
        assert {"m", "Start", "cfg", "speed"} <= xref.used_tags
        assert "Limit" in xref.used_pous
        assert "Limit" not in xref.used_tags

    def test_full_operand_is_whole_access(self):
        xref = build(program(StBody(text="cfg.x := 1;"), locals=self.LOCALS))
        ref = xref.references_to("cfg")[0]
        assert ref.full_operand == "cfg.x"
        assert ref.instruction == "ST"
        assert ref.location.path() == "Main"

    def test_instance_called_in_expression(self):
        xref = build(program(StBody(text="speed := m(1);"), locals=self.LOCALS))
        assert "m" in xref.used_tags
        assert "m" not in xref.used_pous

    def test_for_loop(self):
        xref = build(program(StBody(text="FOR i := 1 TO n DO total := total + i; END_FOR;")))
        assert {"n", "total"} <= xref.used_tags

    def test_unparseable_body_is_scanned(self):
        text = "IF Start THEN\n    Reset(Mode := Auto);\n    x := ;\nEND_IF;"
        xref = build(program(StBody(text=text)))
        assert {"Start", "Auto", "x"} <= xref.used_tags
        assert "Mode" not in xref.used_tags
        assert "Reset" in xref.used_pous

    def test_scan_keeps_members_with_base(self):
        xref = build(program(StBody(text="Motor.Speed := ;")))
        ref = xref.references_to("Motor")[0]
        assert ref.full_operand == "Motor.Speed"
        assert "Speed" not in xref.used_tags


# ---------------------------------------------------------------------------
# Other body languages
# ---------------------------------------------------------------------------

class TestOtherLanguages:
    def test_instruction_list(self):
        text = "LD Start\nANDN Stop (* latch *)\nST Motor\nCAL Timer1(IN := Motor)\nJMP Done\nDone: LD TRUE\n"
        xref = build(program(IlBody(text=text)))
        assert xref.used_tags == {"Start", "Stop", "Motor", "Timer1"}
        assert [r.instruction for r in xref.references_to("Stop")] == ["ANDN"]
        assert [r.instruction for r in xref.references_to("Timer1")] == ["CAL"]

    def test_ladder_model(self):
        rungs = [
            Rung(number=0, instructions=[
                Instruction(mnemonic="XIC", operands=[TagOperand(name="Start", full_text="Start")]),
                Instruction(mnemonic="CPT", operands=[
                    TagOperand(name="Out", full_text="Out"),
                    ExpressionOperand(text="A + B"),
                ]),
                Instruction(mnemonic="MOV", operands=[LiteralOperand(text="5"), TagOperand(name="D", full_text="D")]),
            ]),
            Rung(number=1, raw_text="XIC(C)OTE(E);"),
        ]
        xref = build(program(LdBody(rungs=rungs)))
        assert xref.used_tags == {"Start", "Out", "A", "B", "D", "C", "E"}
        assert {"XIC", "CPT", "MOV", "OTE"} <= xref.used_pous
        assert paths(xref, "E") == ["Main/Rung#1"]
        assert xref.references_to("A")[0].full_operand == "A + B"

    def test_sfc(self):
        body = SfcBody(
            steps=[SfcStep(name="Init", is_initial=True, actions=[
                SfcAction(name="Light", body=StBody(text="Lamp := TRUE;")),
            ])],
            transitions=[SfcTransition(from_steps=["Init"], to_steps=["Run"], condition="Start AND NOT Stop")],
        )
        xref = build(program(body))
        assert xref.used_tags == {"Lamp", "Start", "Stop"}
        assert [r.instruction for r in xref.references_to("Start")] == ["SFC"]


# ---------------------------------------------------------------------------
# POUs and types
# ---------------------------------------------------------------------------

class TestPous:
    def project(self):
        motor = Pou(name="Motor", kind=PouKind.FUNCTION_BLOCK)
        helper = Pou(name="Helper", kind=PouKind.FUNCTION)
        scale = Pou(name="Scale", kind=PouKind.FUNCTION, interface=Interface(return_type="REAL"))
        main = program(StBody(text="m(run := TRUE);\ny := Scale(2.0);"), locals=[("m", "Motor"), ("y", "REAL")])
        return build(motor, helper, scale, main)

    def test_unused_pous(self):
        assert self.project().unused_pous() == ["Helper"]

    def test_instance_uses_function_block(self):
        xref = self.project()
        assert xref.is_pou_used("Motor")
        assert xref.is_type_used("Motor")

    def test_called_function_is_used(self):
        assert self.project().is_pou_used("Scale")

    def test_programs_never_unused(self):
        assert "Main" not in self.project().unused_pous()

    def test_return_type_is_used(self):
        assert self.project().is_type_used("REAL")

    def test_defined_pous(self):
        assert self.project().defined_pous["Helper"] == PouKind.FUNCTION


class TestQueries:
    def test_undefined_tags(self):
        xref = build(program(RawBody(language="RLL", content="XIC(A)OTE(B);")), globals=["A"])
        assert xref.undefined_tags() == ["B"]
        assert xref.is_tag_used("A")
        assert not xref.is_tag_used("Z")

    def test_references_to_unknown(self):
        assert build().references_to("Missing") == []

    def test_location_path(self):
        assert ReferenceLocation.at_rung("Main", "R2", 0).path() == "Main/R2/Rung#0"
        assert ReferenceLocation.in_routine("Main", "R2").path() == "Main/R2"
        assert ReferenceLocation.in_pou("Main").path() == "Main"
