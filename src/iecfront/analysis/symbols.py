"""Scoped symbol table.

Scopes are kept in one flat list and refer to their parent by index, so the
table has no reference cycles and a scope stays inspectable after it has been
exited.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from iecfront.span import Span
from iecfront.syntax.declarations import VarBlock, VarClass, VarDecl

from .diagnostics import Diagnostic, DiagnosticKind
from .types import Type


class SymbolKind(str, Enum):
    VARIABLE = "VARIABLE"
    PARAMETER = "PARAMETER"
    OUTPUT = "OUTPUT"
    IN_OUT = "IN_OUT"
    CONSTANT = "CONSTANT"
    FUNCTION = "FUNCTION"
    FUNCTION_BLOCK = "FUNCTION_BLOCK"
    PROGRAM = "PROGRAM"
    TYPE = "TYPE"


# kinds that hold a value and can therefore shadow one another
_VALUE_KINDS = frozenset({
    SymbolKind.VARIABLE, SymbolKind.PARAMETER, SymbolKind.OUTPUT,
    SymbolKind.IN_OUT, SymbolKind.CONSTANT,
})

_VAR_CLASS_KINDS = {
    VarClass.INPUT: SymbolKind.PARAMETER,
    VarClass.OUTPUT: SymbolKind.OUTPUT,
    VarClass.IN_OUT: SymbolKind.IN_OUT,
}

# written from outside the POU
_EXTERNALLY_ASSIGNED = frozenset({
    VarClass.INPUT, VarClass.IN_OUT, VarClass.GLOBAL, VarClass.EXTERNAL,
    VarClass.ACCESS, VarClass.CONFIG,
})


@dataclass
class Symbol:
    name: str
    kind: SymbolKind = SymbolKind.VARIABLE
    type: Type | None = None
    span: Span = field(default_factory=Span.empty)
    mutable: bool = True
    used: bool = False
    assigned: bool = False

    @classmethod
    def from_var_decl(cls, block: VarBlock, decl: VarDecl, ty: Type | None = None) -> Symbol:
        """The symbol a declaration introduces, classified by its block."""
        if block.constant:
            kind = SymbolKind.CONSTANT
        else:
            kind = _VAR_CLASS_KINDS.get(block.var_class, SymbolKind.VARIABLE)
        assigned = (
            decl.initial is not None
            or block.var_class in _EXTERNALLY_ASSIGNED
            # instances and aggregates are default-constructed
            or (ty is not None and ty.kind.value in ("FUNCTION_BLOCK", "STRUCT", "ARRAY"))
        )
        return cls(
            name=decl.name,
            kind=kind,
            type=ty,
            span=decl.span,
            mutable=not block.constant,
            assigned=assigned,
        )


@dataclass
class Scope:
    name: str
    parent: int | None = None
    symbols: dict[str, Symbol] = field(default_factory=dict)


@dataclass
class SymbolTable:
    scopes: list[Scope] = field(default_factory=lambda: [Scope("global")])
    current: int = 0

    def enter_scope(self, name: str) -> None:
        self.scopes.append(Scope(name, parent=self.current))
        self.current = len(self.scopes) - 1

    def exit_scope(self) -> None:
        parent = self.scopes[self.current].parent
        if parent is not None:
            self.current = parent

    def current_scope_name(self) -> str:
        return self.scopes[self.current].name

    def define(self, symbol: Symbol) -> Diagnostic | None:
        """Add *symbol* to the current scope.

        A duplicate in the same scope is not added and yields an error that
        points back at the first definition.  Hiding a value from an outer
        scope adds the symbol and yields a hint.
        """
        scope = self.scopes[self.current]
        existing = scope.symbols.get(symbol.name)
        if existing is not None:
            return Diagnostic.error(
                DiagnosticKind.DUPLICATE_DEFINITION, symbol.span,
                name=symbol.name, related_span=existing.span,
            )
        scope.symbols[symbol.name] = symbol
        if symbol.kind in _VALUE_KINDS and scope.parent is not None:
            outer = self._lookup_from(scope.parent, symbol.name)
            if outer is not None and outer.kind in _VALUE_KINDS:
                return Diagnostic.hint(
                    DiagnosticKind.SHADOWED_VARIABLE, symbol.span,
                    name=symbol.name, related_span=outer.span,
                )
        return None

    def _lookup_from(self, index: int | None, name: str) -> Symbol | None:
        while index is not None:
            scope = self.scopes[index]
            symbol = scope.symbols.get(name)
            if symbol is not None:
                return symbol
            index = scope.parent
        return None

    def lookup(self, name: str) -> Symbol | None:
        return self._lookup_from(self.current, name)

    def lookup_mut(self, name: str) -> Symbol | None:
        """The symbol object owned by its scope; changes to it are kept."""
        return self._lookup_from(self.current, name)

    def is_defined_locally(self, name: str) -> bool:
        return name in self.scopes[self.current].symbols

    def mark_used(self, name: str) -> None:
        symbol = self.lookup_mut(name)
        if symbol is not None:
            symbol.used = True

    def mark_assigned(self, name: str) -> None:
        symbol = self.lookup_mut(name)
        if symbol is not None:
            symbol.assigned = True

    def check_unused(self, include_global: bool = True) -> list[Diagnostic]:
        """Warnings for plain variables never read or never written.

        Outputs and in-outs are exempt since the caller consumes them.
        """
        diagnostics = []
        scopes = self.scopes if include_global else self.scopes[1:]
        for scope in scopes:
            for symbol in scope.symbols.values():
                if symbol.kind != SymbolKind.VARIABLE:
                    continue
                if not symbol.used:
                    diagnostics.append(Diagnostic.warning(
                        DiagnosticKind.UNUSED_VARIABLE, symbol.span, name=symbol.name,
                    ))
                if symbol.mutable and not symbol.assigned:
                    diagnostics.append(Diagnostic.warning(
                        DiagnosticKind.UNINITIALIZED_VARIABLE, symbol.span, name=symbol.name,
                    ))
        return diagnostics
