"""Type lattice used by the type checker.

``Type`` is the analysis-side view of a ``TypeSpec``: aliases are folded
(``TIME_OF_DAY`` is ``TOD``), user-defined names are resolved through a
``TypeRegistry`` and anything that cannot be resolved becomes a named STRUCT
so member accesses stay permissive.  ``UNKNOWN`` is the error-recovery type:
every rule that sees it answers ``UNKNOWN`` without complaining.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel

from iecfront.security import walks_deep_trees
from iecfront.syntax.expressions import UnaryOp
from iecfront.syntax.types import TypeSpec


# ---------------------------------------------------------------------------
# Kinds
# ---------------------------------------------------------------------------

class TypeKind(str, Enum):
    BOOL = "BOOL"

    # signed integer
    SINT = "SINT"
    INT = "INT"
    DINT = "DINT"
    LINT = "LINT"

    # unsigned integer
    USINT = "USINT"
    UINT = "UINT"
    UDINT = "UDINT"
    ULINT = "ULINT"

    # bit string
    BYTE = "BYTE"
    WORD = "WORD"
    DWORD = "DWORD"
    LWORD = "LWORD"

    REAL = "REAL"
    LREAL = "LREAL"

    TIME = "TIME"
    LTIME = "LTIME"
    DATE = "DATE"
    TOD = "TOD"
    DT = "DT"

    STRING = "STRING"
    WSTRING = "WSTRING"
    CHAR = "CHAR"
    WCHAR = "WCHAR"

    ARRAY = "ARRAY"
    STRUCT = "STRUCT"
    ENUM = "ENUM"
    SUBRANGE = "SUBRANGE"
    FUNCTION_BLOCK = "FUNCTION_BLOCK"
    POINTER = "POINTER"

    ANY = "ANY"
    VOID = "VOID"
    UNKNOWN = "UNKNOWN"


_SIGNED = frozenset({TypeKind.SINT, TypeKind.INT, TypeKind.DINT, TypeKind.LINT})
_UNSIGNED = frozenset({TypeKind.USINT, TypeKind.UINT, TypeKind.UDINT, TypeKind.ULINT})
_BIT_STRINGS = frozenset({TypeKind.BYTE, TypeKind.WORD, TypeKind.DWORD, TypeKind.LWORD})
_INTEGERS = _SIGNED | _UNSIGNED | _BIT_STRINGS
_REALS = frozenset({TypeKind.REAL, TypeKind.LREAL})
_TIMES = frozenset({TypeKind.TIME, TypeKind.LTIME, TypeKind.DATE, TypeKind.TOD, TypeKind.DT})
_STRINGS = frozenset({TypeKind.STRING, TypeKind.WSTRING})

_ALIASES: dict[str, TypeKind] = {
    "TIME_OF_DAY": TypeKind.TOD,
    "LTOD": TypeKind.TOD,
    "LTIME_OF_DAY": TypeKind.TOD,
    "DATE_AND_TIME": TypeKind.DT,
    "LDT": TypeKind.DT,
    "LDATE_AND_TIME": TypeKind.DT,
    "LDATE": TypeKind.DATE,
}

# kinds that are spelled as a plain keyword
_SIMPLE_KINDS = (
    _INTEGERS | _REALS | _TIMES | _STRINGS
    | {TypeKind.BOOL, TypeKind.CHAR, TypeKind.WCHAR, TypeKind.VOID}
)


# ---------------------------------------------------------------------------
# Type
# ---------------------------------------------------------------------------

class Type(BaseModel):
    """One point of the lattice.

    Only the payload fields relevant to *kind* are set: *length* for strings,
    *element* and *dims* for arrays, *element* for pointers, *fields* for
    structs, *values* for enums, *element*, *low* and *high* for subranges,
    and *name* for named structs, enums and function blocks.
    """

    kind: TypeKind
    name: str | None = None
    length: int | None = None
    element: Type | None = None
    dims: int = 0
    fields: dict[str, Type] = {}
    values: list[str] = []
    low: int | None = None
    high: int | None = None

    # -- construction ------------------------------------------------------

    @classmethod
    def of(cls, kind: TypeKind) -> Type:
        return cls(kind=kind)

    @classmethod
    def named(cls, name: str) -> Type:
        """A STRUCT known only by name."""
        return cls(kind=TypeKind.STRUCT, name=name)

    @classmethod
    def string(cls, length: int | None = None, *, wide: bool = False) -> Type:
        return cls(kind=TypeKind.WSTRING if wide else TypeKind.STRING, length=length)

    @classmethod
    def array(cls, element: Type, dims: int = 1) -> Type:
        return cls(kind=TypeKind.ARRAY, element=element, dims=dims)

    @classmethod
    def pointer(cls, target: Type | None) -> Type:
        """``REF_TO target``; a pointer without target is the type of NULL."""
        return cls(kind=TypeKind.POINTER, element=target)

    @classmethod
    def function_block(cls, name: str) -> Type:
        return cls(kind=TypeKind.FUNCTION_BLOCK, name=name)

    @classmethod
    def from_name(cls, name: str) -> Type:
        """Resolve a type keyword (any case).  Other names become named STRUCTs."""
        upper = name.upper()
        if upper in _ALIASES:
            return cls(kind=_ALIASES[upper])
        if upper == "ANY" or upper.startswith("ANY_"):
            return cls(kind=TypeKind.ANY)
        try:
            kind = TypeKind(upper)
        except ValueError:
            return cls.named(name)
        if kind not in _SIMPLE_KINDS:
            return cls.named(name)
        return cls(kind=kind)

    @classmethod
    def from_type_spec(cls, spec: TypeSpec, registry: TypeRegistry | None = None) -> Type:
        if spec.kind == "elementary":
            resolved = cls.from_name(spec.name)
            if resolved.kind in _STRINGS and spec.length is not None:
                resolved.length = _int_literal(spec.length)
            return resolved
        if spec.kind == "array":
            return cls.array(cls.from_type_spec(spec.element, registry), len(spec.dims))
        if spec.kind == "struct":
            return cls(
                kind=TypeKind.STRUCT,
                fields={f.name: cls.from_type_spec(f.type_spec, registry) for f in spec.fields},
            )
        if spec.kind == "ref":
            return cls.pointer(cls.from_type_spec(spec.inner, registry))
        if spec.kind == "enum":
            base = cls.from_name(spec.base_type) if spec.base_type else None
            return cls(kind=TypeKind.ENUM, values=[v.name for v in spec.values], element=base)
        if spec.kind == "subrange":
            return cls(
                kind=TypeKind.SUBRANGE,
                element=cls.from_name(spec.base_type),
                low=_int_literal(spec.low),
                high=_int_literal(spec.high),
            )
        # user_defined
        if registry is not None:
            return registry.resolve(spec.name)
        return cls.named(spec.name)

    # -- predicates ----------------------------------------------------------

    def _base_kind(self) -> TypeKind:
        """Subranges behave like their base type."""
        if self.kind == TypeKind.SUBRANGE and self.element is not None:
            return self.element.kind
        return self.kind

    def is_integer(self) -> bool:
        return self._base_kind() in _INTEGERS

    def is_signed(self) -> bool:
        return self._base_kind() in _SIGNED

    def is_unsigned(self) -> bool:
        return self._base_kind() in _UNSIGNED

    def is_bit_string(self) -> bool:
        return self._base_kind() in _BIT_STRINGS

    def is_real(self) -> bool:
        return self._base_kind() in _REALS

    def is_numeric(self) -> bool:
        return self.is_integer() or self.is_real()

    def is_bool(self) -> bool:
        return self.kind == TypeKind.BOOL

    def is_string(self) -> bool:
        return self.kind in _STRINGS

    def is_time(self) -> bool:
        return self.kind in _TIMES

    def is_unknown(self) -> bool:
        return self.kind == TypeKind.UNKNOWN

    def is_any(self) -> bool:
        return self.kind == TypeKind.ANY

    # -- display -------------------------------------------------------------

    def display_name(self) -> str:
        kind = self.kind
        if kind in _STRINGS:
            return f"{kind.value}[{self.length}]" if self.length is not None else kind.value
        if kind == TypeKind.ARRAY:
            element = self.element.display_name() if self.element else "?"
            return f"ARRAY[{self.dims}] OF {element}"
        if kind == TypeKind.POINTER:
            return f"REF_TO {self.element.display_name()}" if self.element else "NULL"
        if kind == TypeKind.SUBRANGE:
            base = self.element.display_name() if self.element else "?"
            if self.low is not None and self.high is not None:
                return f"{base}({self.low}..{self.high})"
            return base
        if kind in (TypeKind.STRUCT, TypeKind.ENUM, TypeKind.FUNCTION_BLOCK):
            return self.name or kind.value
        if kind == TypeKind.UNKNOWN:
            return "?"
        return kind.value

    # -- assignability -------------------------------------------------------

    def is_assignable_from(self, other: Type) -> bool:
        """Whether a value of *other* may be stored in a variable of this type.

        Every integer accepts every integer; reals accept integers; strings
        accept strings; ANY and UNKNOWN on either side are accepted.
        """
        if self == other:
            return True
        if self.kind in (TypeKind.ANY, TypeKind.UNKNOWN) or other.kind in (TypeKind.ANY, TypeKind.UNKNOWN):
            return True
        if self.is_numeric() and other.is_numeric():
            if self.is_real():
                return True
            return self.is_integer() and other.is_integer()
        if self.is_string() and other.is_string():
            return True
        if self.kind in (TypeKind.CHAR, TypeKind.WCHAR) and other.is_string():
            return True
        if self.is_time() and other.is_time():
            return self.kind == other.kind or {self.kind, other.kind} <= {TypeKind.TIME, TypeKind.LTIME}
        if self.kind == TypeKind.POINTER and other.kind == TypeKind.POINTER:
            return other.element is None or self.element is None or self.element.is_assignable_from(other.element)
        if self.kind == TypeKind.ENUM:
            # untyped enum values are not resolved to their declaring type
            return other.kind == TypeKind.ENUM or (other.is_integer() and self.element is not None)
        if self.kind in (TypeKind.STRUCT, TypeKind.FUNCTION_BLOCK) and other.kind == self.kind:
            return self.name is None or other.name is None or self.name == other.name
        if self.kind == TypeKind.ARRAY and other.kind == TypeKind.ARRAY:
            if self.element is None or other.element is None:
                return True
            return self.dims == other.dims and self.element.is_assignable_from(other.element)
        return False


Type.model_rebuild()

UNKNOWN = Type.of(TypeKind.UNKNOWN)
ANY = Type.of(TypeKind.ANY)
VOID = Type.of(TypeKind.VOID)
BOOL = Type.of(TypeKind.BOOL)
DINT = Type.of(TypeKind.DINT)
LREAL = Type.of(TypeKind.LREAL)
DWORD = Type.of(TypeKind.DWORD)
TIME = Type.of(TypeKind.TIME)
STRING = Type.string()
WSTRING = Type.string(wide=True)
NULL = Type.pointer(None)


class TypeInfo(BaseModel):
    """What the checker knows about an expression."""

    type: Type
    is_constant: bool = False
    is_lvalue: bool = False

    @classmethod
    def value(cls, ty: Type) -> TypeInfo:
        return cls(type=ty)

    @classmethod
    def lvalue(cls, ty: Type) -> TypeInfo:
        return cls(type=ty, is_lvalue=True)

    @classmethod
    def constant(cls, ty: Type) -> TypeInfo:
        return cls(type=ty, is_constant=True)


# ---------------------------------------------------------------------------
# Registry of user-defined names
# ---------------------------------------------------------------------------

@dataclass
class TypeRegistry:
    """User type declarations and function block names of a compilation unit."""

    type_specs: dict[str, TypeSpec] = field(default_factory=dict)
    function_blocks: set[str] = field(default_factory=set)
    _resolved: dict[str, Type] = field(default_factory=dict)
    _resolving: set[str] = field(default_factory=set)

    @classmethod
    @walks_deep_trees
    def from_unit(cls, unit) -> TypeRegistry:
        registry = cls()
        for decl in unit.type_decls():
            registry.type_specs[decl.name] = decl.type_spec
        for pou in unit.code_units():
            if pou.kind in ("function_block", "class"):
                registry.function_blocks.add(pou.name)
        return registry

    def resolve(self, name: str) -> Type:
        if name in self._resolved:
            return self._resolved[name]
        if name in self.function_blocks:
            return Type.function_block(name)
        spec = self.type_specs.get(name)
        if spec is None:
            return Type.from_name(name)
        if name in self._resolving:
            # alias cycle
            return UNKNOWN
        self._resolving.add(name)
        try:
            resolved = Type.from_type_spec(spec, self)
        finally:
            self._resolving.discard(name)
        if resolved.kind in (TypeKind.STRUCT, TypeKind.ENUM) and resolved.name is None:
            resolved.name = name
        self._resolved[name] = resolved
        return resolved


def _int_literal(expr) -> int | None:
    """The value of an integer literal (optionally negated), else None."""
    if expr is None:
        return None
    if expr.kind == "literal" and isinstance(expr.value, int) and not isinstance(expr.value, bool):
        return expr.value
    if expr.kind == "unary" and expr.op == UnaryOp.NEG:
        inner = _int_literal(expr.operand)
        return -inner if inner is not None else None
    if expr.kind == "paren":
        return _int_literal(expr.inner)
    return None
