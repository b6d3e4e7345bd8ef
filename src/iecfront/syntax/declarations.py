"""Declarations: variable blocks, POUs and the compilation unit."""

from __future__ import annotations

from collections.abc import Iterator
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from iecfront.span import Span

from .expressions import Expression
from .statements import Statement
from .types import TypeSpec


class VarClass(str, Enum):
    LOCAL = "VAR"
    INPUT = "VAR_INPUT"
    OUTPUT = "VAR_OUTPUT"
    IN_OUT = "VAR_IN_OUT"
    TEMP = "VAR_TEMP"
    GLOBAL = "VAR_GLOBAL"
    EXTERNAL = "VAR_EXTERNAL"
    ACCESS = "VAR_ACCESS"
    CONFIG = "VAR_CONFIG"


class RetainFlag(str, Enum):
    NONE = "NONE"
    RETAIN = "RETAIN"
    NON_RETAIN = "NON_RETAIN"


class AccessModifier(str, Enum):
    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"
    PROTECTED = "PROTECTED"
    INTERNAL = "INTERNAL"


class Pragma(BaseModel):
    """Brace annotation ``{ S7_Optimized_Access := 'TRUE' }``.

    *entries* holds the ``key := value`` pairs that could be split out of
    *text*; anything else is only available verbatim.
    """

    text: str
    entries: dict[str, str] = {}
    span: Span = Field(default_factory=Span.empty)


class VarDecl(BaseModel):
    name: str
    type_spec: TypeSpec
    address: str | None = None
    initial: Expression | None = None
    pragmas: list[Pragma] = []
    span: Span = Field(default_factory=Span.empty)


class VarBlock(BaseModel):
    var_class: VarClass = VarClass.LOCAL
    constant: bool = False
    retain: RetainFlag = RetainFlag.NONE
    declarations: list[VarDecl] = []
    span: Span = Field(default_factory=Span.empty)


# ---------------------------------------------------------------------------
# Code units
# ---------------------------------------------------------------------------

class _CodeUnit(BaseModel):
    """Fields shared by every declaration that owns variables and a body."""

    name: str
    var_blocks: list[VarBlock] = []
    body: list[Statement] = []
    attributes: dict[str, str] = {}
    pragmas: list[Pragma] = []
    span: Span = Field(default_factory=Span.empty)

    def iter_var_decls(self, var_class: VarClass | None = None) -> Iterator[tuple[VarBlock, VarDecl]]:
        for block in self.var_blocks:
            if var_class is None or block.var_class == var_class:
                for decl in block.declarations:
                    yield block, decl

    def declared_names(self) -> set[str]:
        return {decl.name for _, decl in self.iter_var_decls()}


class MethodDecl(_CodeUnit):
    kind: Literal["method"] = "method"
    access: AccessModifier | None = None
    final: bool = False
    abstract: bool = False
    override: bool = False
    return_type: TypeSpec | None = None


class FunctionDecl(_CodeUnit):
    kind: Literal["function"] = "function"
    return_type: TypeSpec | None = None


class FunctionBlockDecl(_CodeUnit):
    kind: Literal["function_block"] = "function_block"
    extends: str | None = None
    implements: list[str] = []
    final: bool = False
    abstract: bool = False
    methods: list[MethodDecl] = []


class ProgramDecl(_CodeUnit):
    kind: Literal["program"] = "program"


class ClassDecl(_CodeUnit):
    kind: Literal["class"] = "class"
    extends: str | None = None
    implements: list[str] = []
    final: bool = False
    abstract: bool = False
    methods: list[MethodDecl] = []


class InterfaceDecl(_CodeUnit):
    """Method prototypes only; *body* stays empty."""

    kind: Literal["interface"] = "interface"
    extends: list[str] = []
    methods: list[MethodDecl] = []


class DataBlockDecl(_CodeUnit):
    """SCL ``DATA_BLOCK``; *instance_of* is set for instance DBs of an FB."""

    kind: Literal["data_block"] = "data_block"
    instance_of: str | None = None


class OrganizationBlockDecl(_CodeUnit):
    kind: Literal["organization_block"] = "organization_block"


# ---------------------------------------------------------------------------
# Non-code declarations
# ---------------------------------------------------------------------------

class TypeDecl(BaseModel):
    name: str
    type_spec: TypeSpec
    initial: Expression | None = None
    span: Span = Field(default_factory=Span.empty)


class DataTypeDecl(BaseModel):
    """A ``TYPE ... END_TYPE`` block (one or more named types)."""

    kind: Literal["data_type"] = "data_type"
    types: list[TypeDecl] = []
    pragmas: list[Pragma] = []
    span: Span = Field(default_factory=Span.empty)


class GlobalVarDecl(BaseModel):
    kind: Literal["global_var"] = "global_var"
    var_block: VarBlock
    span: Span = Field(default_factory=Span.empty)


class NamespaceDecl(BaseModel):
    kind: Literal["namespace"] = "namespace"
    name: str
    internal: bool = False
    usings: list[str] = []
    declarations: list[Declaration] = []
    span: Span = Field(default_factory=Span.empty)


Declaration = Annotated[
    Union[
        FunctionDecl,
        FunctionBlockDecl,
        ProgramDecl,
        ClassDecl,
        InterfaceDecl,
        MethodDecl,
        DataTypeDecl,
        GlobalVarDecl,
        NamespaceDecl,
        DataBlockDecl,
        OrganizationBlockDecl,
    ],
    Field(discriminator="kind"),
]

CODE_UNIT_KINDS = frozenset({
    "function", "function_block", "program", "class", "interface", "method",
    "data_block", "organization_block",
})


class CompilationUnit(BaseModel):
    declarations: list[Declaration] = []
    span: Span = Field(default_factory=Span.empty)

    def iter_declarations(self) -> Iterator[Declaration]:
        """All declarations, descending into namespaces."""
        stack = list(reversed(self.declarations))
        while stack:
            decl = stack.pop()
            yield decl
            if decl.kind == "namespace":
                stack.extend(reversed(decl.declarations))

    def code_units(self) -> list[_CodeUnit]:
        return [d for d in self.iter_declarations() if d.kind in CODE_UNIT_KINDS]

    def find(self, name: str) -> _CodeUnit | None:
        for unit in self.code_units():
            if unit.name == name:
                return unit
        return None

    def type_decls(self) -> list[TypeDecl]:
        return [t for d in self.iter_declarations() if d.kind == "data_type" for t in d.types]


MethodDecl.model_rebuild()
FunctionDecl.model_rebuild()
FunctionBlockDecl.model_rebuild()
ProgramDecl.model_rebuild()
ClassDecl.model_rebuild()
InterfaceDecl.model_rebuild()
DataBlockDecl.model_rebuild()
OrganizationBlockDecl.model_rebuild()
NamespaceDecl.model_rebuild()
CompilationUnit.model_rebuild()
