"""Type specifications as written in declarations.

``TypeSpec`` is what appears after the colon of a variable declaration or
inside a TYPE block.  Resolution to the analysis type lattice happens in
``iecfront.analysis.types``.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from iecfront.span import Span

from .expressions import Expression


class ElementaryType(BaseModel):
    """A built-in type keyword, spelled as written (``INT``, ``STRING[20]``)."""

    kind: Literal["elementary"] = "elementary"
    name: str
    length: Expression | None = None
    span: Span = Field(default_factory=Span.empty)


class ArrayDimension(BaseModel):
    low: Expression
    high: Expression
    span: Span = Field(default_factory=Span.empty)


class ArrayType(BaseModel):
    kind: Literal["array"] = "array"
    dims: list[ArrayDimension]
    element: TypeSpec
    span: Span = Field(default_factory=Span.empty)


class StructField(BaseModel):
    name: str
    type_spec: TypeSpec
    initial: Expression | None = None
    span: Span = Field(default_factory=Span.empty)


class StructType(BaseModel):
    kind: Literal["struct"] = "struct"
    fields: list[StructField] = []
    span: Span = Field(default_factory=Span.empty)


class RefType(BaseModel):
    """``REF_TO T`` (and ``POINTER TO T`` spelled by vendors)."""

    kind: Literal["ref"] = "ref"
    inner: TypeSpec
    span: Span = Field(default_factory=Span.empty)


class UserDefinedType(BaseModel):
    kind: Literal["user_defined"] = "user_defined"
    name: str
    span: Span = Field(default_factory=Span.empty)


class EnumValue(BaseModel):
    name: str
    value: Expression | None = None
    span: Span = Field(default_factory=Span.empty)


class EnumType(BaseModel):
    """``(Idle, Running := 5, Stopped)`` with an optional base type."""

    kind: Literal["enum"] = "enum"
    values: list[EnumValue]
    base_type: str | None = None
    span: Span = Field(default_factory=Span.empty)


class SubrangeType(BaseModel):
    """``INT (0..100)``"""

    kind: Literal["subrange"] = "subrange"
    base_type: str
    low: Expression
    high: Expression
    span: Span = Field(default_factory=Span.empty)


TypeSpec = Annotated[
    Union[
        ElementaryType,
        ArrayType,
        StructType,
        RefType,
        UserDefinedType,
        EnumType,
        SubrangeType,
    ],
    Field(discriminator="kind"),
]


ELEMENTARY_TYPE_NAMES: frozenset[str] = frozenset({
    "BOOL",
    "SINT", "INT", "DINT", "LINT",
    "USINT", "UINT", "UDINT", "ULINT",
    "BYTE", "WORD", "DWORD", "LWORD",
    "REAL", "LREAL",
    "TIME", "LTIME", "DATE", "LDATE", "TIME_OF_DAY", "TOD", "LTOD",
    "DATE_AND_TIME", "DT", "LDT",
    "STRING", "WSTRING", "CHAR", "WCHAR",
    "VOID",
    # generic types usable in function signatures
    "ANY", "ANY_NUM", "ANY_INT", "ANY_REAL", "ANY_BIT", "ANY_STRING", "ANY_DATE",
    "ANY_ELEMENTARY", "ANY_MAGNITUDE",
})


def type_spec_name(spec: object) -> str:
    """Compact textual form used by the neutral model and messages."""
    kind = getattr(spec, "kind", None)
    if kind == "elementary":
        return spec.name
    if kind == "user_defined":
        return spec.name
    if kind == "array":
        return f"ARRAY OF {type_spec_name(spec.element)}"
    if kind == "ref":
        return f"REF_TO {type_spec_name(spec.inner)}"
    if kind == "struct":
        return "STRUCT"
    if kind == "enum":
        return spec.base_type or "ENUM"
    if kind == "subrange":
        return spec.base_type
    return "?"


ArrayType.model_rebuild()
StructField.model_rebuild()
StructType.model_rebuild()
RefType.model_rebuild()
