"""Expression nodes shared by all Structured Text dialects."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from iecfront.span import Span


class LiteralKind(str, Enum):
    BOOL = "BOOL"
    INTEGER = "INTEGER"
    REAL = "REAL"
    STRING = "STRING"
    WSTRING = "WSTRING"
    TIME = "TIME"
    DATE = "DATE"
    TIME_OF_DAY = "TIME_OF_DAY"
    DATE_AND_TIME = "DATE_AND_TIME"
    NULL = "NULL"
    ENUM = "ENUM"


class BinaryOp(str, Enum):
    ADD = "ADD"
    SUB = "SUB"
    MUL = "MUL"
    DIV = "DIV"
    MOD = "MOD"
    POWER = "POWER"
    EQ = "EQ"
    NE = "NE"
    LT = "LT"
    LE = "LE"
    GT = "GT"
    GE = "GE"
    AND = "AND"
    OR = "OR"
    XOR = "XOR"

    @property
    def is_arithmetic(self) -> bool:
        return self in _ARITHMETIC

    @property
    def is_comparison(self) -> bool:
        return self in _COMPARISON

    @property
    def is_logical(self) -> bool:
        return self in _LOGICAL


_ARITHMETIC = frozenset({BinaryOp.ADD, BinaryOp.SUB, BinaryOp.MUL, BinaryOp.DIV,
                         BinaryOp.MOD, BinaryOp.POWER})
_COMPARISON = frozenset({BinaryOp.EQ, BinaryOp.NE, BinaryOp.LT, BinaryOp.LE,
                         BinaryOp.GT, BinaryOp.GE})
_LOGICAL = frozenset({BinaryOp.AND, BinaryOp.OR, BinaryOp.XOR})


class UnaryOp(str, Enum):
    NEG = "NEG"
    NOT = "NOT"


# ---------------------------------------------------------------------------
# Literals
# ---------------------------------------------------------------------------

class LiteralExpr(BaseModel):
    """A constant as written (``TRUE``, ``16#FF``, ``'abc'``, ``T#5s``).

    *text* keeps the source spelling; *value* holds the decoded payload
    (bool, int, float, str, or None for NULL).  *type_prefix* is set for
    typed literals such as ``INT#5`` or ``Color#Red``.
    """

    kind: Literal["literal"] = "literal"
    literal_kind: LiteralKind
    text: str
    value: bool | int | float | str | None = None
    type_prefix: str | None = None
    span: Span = Field(default_factory=Span.empty)


# ---------------------------------------------------------------------------
# Variables (l-values)
# ---------------------------------------------------------------------------

class VariableRef(BaseModel):
    """A plain name.

    *local* marks the SCL ``#name`` form, *quoted* the SCL ``"name"`` form.
    """

    kind: Literal["variable_ref"] = "variable_ref"
    name: str
    local: bool = False
    quoted: bool = False
    span: Span = Field(default_factory=Span.empty)


class DirectAddressExpr(BaseModel):
    """``%IX0.1``: area I/Q/M, size X/B/W/D/L, byte offset, optional bit."""

    kind: Literal["direct_address"] = "direct_address"
    address: str
    area: str
    size: str = "X"
    byte: int = 0
    bit: int | None = None
    span: Span = Field(default_factory=Span.empty)


class MemberAccessExpr(BaseModel):
    kind: Literal["member_access"] = "member_access"
    base: Variable
    member: str
    span: Span = Field(default_factory=Span.empty)


class ArrayAccessExpr(BaseModel):
    """``arr[i]`` or ``arr[i, j]``."""

    kind: Literal["array_access"] = "array_access"
    base: Variable
    indices: list[Expression]
    span: Span = Field(default_factory=Span.empty)


class DerefExpr(BaseModel):
    """Pointer dereference ``ref^``."""

    kind: Literal["deref"] = "deref"
    base: Variable
    span: Span = Field(default_factory=Span.empty)


Variable = Annotated[
    Union[
        VariableRef,
        DirectAddressExpr,
        MemberAccessExpr,
        ArrayAccessExpr,
        DerefExpr,
    ],
    Field(discriminator="kind"),
]

VARIABLE_KINDS = frozenset({"variable_ref", "direct_address", "member_access",
                            "array_access", "deref"})


# ---------------------------------------------------------------------------
# Operators and calls
# ---------------------------------------------------------------------------

class UnaryExpr(BaseModel):
    kind: Literal["unary"] = "unary"
    op: UnaryOp
    operand: Expression
    span: Span = Field(default_factory=Span.empty)


class BinaryExpr(BaseModel):
    kind: Literal["binary"] = "binary"
    op: BinaryOp
    left: Expression
    right: Expression
    span: Span = Field(default_factory=Span.empty)


class ParenExpr(BaseModel):
    kind: Literal["paren"] = "paren"
    inner: Expression
    span: Span = Field(default_factory=Span.empty)


class PositionalArg(BaseModel):
    kind: Literal["positional"] = "positional"
    value: Expression
    span: Span = Field(default_factory=Span.empty)


class NamedArg(BaseModel):
    """``name := value``"""

    kind: Literal["named"] = "named"
    name: str
    value: Expression
    span: Span = Field(default_factory=Span.empty)


class OutputArg(BaseModel):
    """``name => target``; *negated* for ``NOT name => target``."""

    kind: Literal["output"] = "output"
    name: str
    target: Variable
    negated: bool = False
    span: Span = Field(default_factory=Span.empty)


class InferredArg(BaseModel):
    """An empty positional slot (``GSV(a, , b)``)."""

    kind: Literal["inferred"] = "inferred"
    span: Span = Field(default_factory=Span.empty)


Argument = Annotated[
    Union[PositionalArg, NamedArg, OutputArg, InferredArg],
    Field(discriminator="kind"),
]


class CallExpr(BaseModel):
    """Function or method call.  *name* may be dotted (``inst.Method``)."""

    kind: Literal["function_call"] = "function_call"
    name: str
    args: list[Argument] = []
    span: Span = Field(default_factory=Span.empty)


# ---------------------------------------------------------------------------
# Aggregate initialisers (declarations only)
# ---------------------------------------------------------------------------

class RepeatedInit(BaseModel):
    """``3(0)`` inside an array initialiser."""

    kind: Literal["repeated_init"] = "repeated_init"
    count: int
    value: Expression | None = None
    span: Span = Field(default_factory=Span.empty)


class ArrayInitExpr(BaseModel):
    kind: Literal["array_init"] = "array_init"
    elements: list[Expression] = []
    span: Span = Field(default_factory=Span.empty)


class StructInitExpr(BaseModel):
    kind: Literal["struct_init"] = "struct_init"
    fields: list[NamedArg] = []
    span: Span = Field(default_factory=Span.empty)


Expression = Annotated[
    Union[
        LiteralExpr,
        VariableRef,
        DirectAddressExpr,
        MemberAccessExpr,
        ArrayAccessExpr,
        DerefExpr,
        UnaryExpr,
        BinaryExpr,
        ParenExpr,
        CallExpr,
        RepeatedInit,
        ArrayInitExpr,
        StructInitExpr,
    ],
    Field(discriminator="kind"),
]


def is_variable(expr: object) -> bool:
    return getattr(expr, "kind", None) in VARIABLE_KINDS


def variable_root(var: object) -> str | None:
    """Name at the root of a member/index/deref chain, if any."""
    while True:
        kind = getattr(var, "kind", None)
        if kind == "variable_ref":
            return var.name
        if kind in ("member_access", "array_access", "deref"):
            var = var.base
            continue
        return None


def variable_path(var: object) -> str | None:
    """Dotted name of a pure member chain (``a.b.c``); None otherwise."""
    kind = getattr(var, "kind", None)
    if kind == "variable_ref":
        return var.name
    if kind == "member_access":
        base = variable_path(var.base)
        return None if base is None else f"{base}.{var.member}"
    return None


MemberAccessExpr.model_rebuild()
ArrayAccessExpr.model_rebuild()
DerefExpr.model_rebuild()
UnaryExpr.model_rebuild()
BinaryExpr.model_rebuild()
ParenExpr.model_rebuild()
PositionalArg.model_rebuild()
NamedArg.model_rebuild()
OutputArg.model_rebuild()
CallExpr.model_rebuild()
RepeatedInit.model_rebuild()
ArrayInitExpr.model_rebuild()
StructInitExpr.model_rebuild()
