"""Statement nodes shared by all Structured Text dialects."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from iecfront.span import Span

from .expressions import Argument, CallExpr, Expression, Variable


class AssignOp(str, Enum):
    ASSIGN = ":="
    ADD = "+="
    SUB = "-="
    MUL = "*="
    DIV = "/="


class Assignment(BaseModel):
    kind: Literal["assignment"] = "assignment"
    target: Variable
    op: AssignOp = AssignOp.ASSIGN
    value: Expression
    span: Span = Field(default_factory=Span.empty)


class IfBranch(BaseModel):
    condition: Expression
    body: list[Statement] = []
    span: Span = Field(default_factory=Span.empty)


class IfStatement(BaseModel):
    """IF / ELSIF / ELSE.  *else_body* is None when there is no ELSE."""

    kind: Literal["if"] = "if"
    if_branch: IfBranch
    elsif_branches: list[IfBranch] = []
    else_body: list[Statement] | None = None
    span: Span = Field(default_factory=Span.empty)


class CaseValue(BaseModel):
    kind: Literal["value"] = "value"
    value: Expression
    span: Span = Field(default_factory=Span.empty)


class CaseRange(BaseModel):
    """An inclusive selector range ``low..high``."""

    kind: Literal["range"] = "range"
    low: Expression
    high: Expression
    span: Span = Field(default_factory=Span.empty)


CaseSelector = Annotated[Union[CaseValue, CaseRange], Field(discriminator="kind")]


class CaseBranch(BaseModel):
    selectors: list[CaseSelector]
    body: list[Statement] = []
    span: Span = Field(default_factory=Span.empty)


class CaseStatement(BaseModel):
    kind: Literal["case"] = "case"
    selector: Expression
    branches: list[CaseBranch] = []
    else_body: list[Statement] | None = None
    span: Span = Field(default_factory=Span.empty)


class ForStatement(BaseModel):
    kind: Literal["for"] = "for"
    control: str
    start: Expression
    end: Expression
    step: Expression | None = None
    body: list[Statement] = []
    span: Span = Field(default_factory=Span.empty)


class WhileStatement(BaseModel):
    kind: Literal["while"] = "while"
    condition: Expression
    body: list[Statement] = []
    span: Span = Field(default_factory=Span.empty)


class RepeatStatement(BaseModel):
    kind: Literal["repeat"] = "repeat"
    body: list[Statement] = []
    until: Expression
    span: Span = Field(default_factory=Span.empty)


class ExitStatement(BaseModel):
    kind: Literal["exit"] = "exit"
    span: Span = Field(default_factory=Span.empty)


class ContinueStatement(BaseModel):
    kind: Literal["continue"] = "continue"
    span: Span = Field(default_factory=Span.empty)


class ReturnStatement(BaseModel):
    kind: Literal["return"] = "return"
    value: Expression | None = None
    span: Span = Field(default_factory=Span.empty)


class FunctionCallStatement(BaseModel):
    """A free-standing call whose result is discarded."""

    kind: Literal["function_call_stmt"] = "function_call_stmt"
    call: CallExpr
    span: Span = Field(default_factory=Span.empty)


class FbInvocation(BaseModel):
    """Call of a declared function block instance: ``Timer1(IN := x);``"""

    kind: Literal["fb_invocation"] = "fb_invocation"
    instance: Variable
    args: list[Argument] = []
    span: Span = Field(default_factory=Span.empty)


class EmptyStatement(BaseModel):
    kind: Literal["empty"] = "empty"
    span: Span = Field(default_factory=Span.empty)


class GotoStatement(BaseModel):
    kind: Literal["goto"] = "goto"
    label: str
    span: Span = Field(default_factory=Span.empty)


class LabelStatement(BaseModel):
    """A jump target ``name:``."""

    kind: Literal["label"] = "label"
    name: str
    span: Span = Field(default_factory=Span.empty)


class RegionStatement(BaseModel):
    """``REGION name ... END_REGION``; purely organisational."""

    kind: Literal["region"] = "region"
    name: str = ""
    body: list[Statement] = []
    span: Span = Field(default_factory=Span.empty)


Statement = Annotated[
    Union[
        Assignment,
        IfStatement,
        CaseStatement,
        ForStatement,
        WhileStatement,
        RepeatStatement,
        ExitStatement,
        ContinueStatement,
        ReturnStatement,
        FunctionCallStatement,
        FbInvocation,
        EmptyStatement,
        GotoStatement,
        LabelStatement,
        RegionStatement,
    ],
    Field(discriminator="kind"),
]

TERMINAL_KINDS = frozenset({"return", "exit", "continue", "goto"})


IfBranch.model_rebuild()
IfStatement.model_rebuild()
CaseBranch.model_rebuild()
CaseStatement.model_rebuild()
ForStatement.model_rebuild()
WhileStatement.model_rebuild()
RepeatStatement.model_rebuild()
RegionStatement.model_rebuild()
