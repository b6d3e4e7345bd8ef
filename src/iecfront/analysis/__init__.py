"""iecfront analysis: control flow, symbols, types and smells.

Public API::

    from iecfront.analysis import analyze_pou, build_cfg, SmellConfig

    diagnostics = analyze_pou(unit.find("Main"), unit=unit)
    cfg = build_cfg(pou.body)
    cfg.cyclomatic_complexity()
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from iecfront.security import walks_deep_trees
from iecfront.syntax.declarations import VarClass

from .cfg import Cfg, CfgBuilder, CfgEdge, CfgEdgeKind, CfgNode, CfgNodeKind, build_cfg, count_expression_decisions
from .diagnostics import Diagnostic, DiagnosticKind, Severity, sort_diagnostics, tiered
from .nesting import max_nesting_depth
from .smells import SmellConfig, SmellDetector
from .symbols import Scope, Symbol, SymbolKind, SymbolTable
from .type_check import TypeChecker
from .types import Type, TypeInfo, TypeKind, TypeRegistry

logger = logging.getLogger(__name__)

__all__ = [
    "Cfg",
    "CfgBuilder",
    "CfgEdge",
    "CfgEdgeKind",
    "CfgNode",
    "CfgNodeKind",
    "Diagnostic",
    "DiagnosticKind",
    "Scope",
    "Severity",
    "SmellConfig",
    "SmellDetector",
    "Symbol",
    "SymbolKind",
    "SymbolTable",
    "Type",
    "TypeChecker",
    "TypeInfo",
    "TypeKind",
    "TypeRegistry",
    "analyze_pou",
    "build_cfg",
    "count_expression_decisions",
    "max_nesting_depth",
    "sort_diagnostics",
    "tiered",
]


def _define_vars(table: SymbolTable, owner, types: TypeRegistry, diagnostics: list[Diagnostic]) -> None:
    for block, decl in owner.iter_var_decls():
        ty = Type.from_type_spec(decl.type_spec, types)
        found = table.define(Symbol.from_var_decl(block, decl, ty))
        if found is not None:
            diagnostics.append(found)


def _return_type(pou, types: TypeRegistry) -> Type | None:
    spec = getattr(pou, "return_type", None)
    return Type.from_type_spec(spec, types) if spec is not None else None


@walks_deep_trees
def analyze_pou(
    pou,
    config: SmellConfig | None = None,
    *,
    types: TypeRegistry | None = None,
    unit=None,
    externals: Iterable[Symbol] = (),
) -> list[Diagnostic]:
    """Run every analysis over one code unit.

    Parameters
    ----------
    pou
        A program, function, function block, class or method declaration.
    config : SmellConfig, optional
        Smell thresholds; defaults apply when omitted.
    types : TypeRegistry, optional
        Resolves user type names.  Built from *unit* when not given.
    unit : CompilationUnit, optional
        The enclosing unit.  Its global variables and functions become
        visible to *pou* and its functions get argument count checks.
    externals : iterable of Symbol
        Extra names defined around the POU, such as controller tags.

    Returns
    -------
    list[Diagnostic]
        Symbol, type, smell and unused-variable findings, most severe first.
    """
    if types is None:
        types = TypeRegistry.from_unit(unit) if unit is not None else TypeRegistry()
    diagnostics: list[Diagnostic] = []

    table = SymbolTable()
    for symbol in externals:
        table.define(symbol)
    functions = []
    if unit is not None:
        for decl in unit.iter_declarations():
            if decl.kind == "global_var":
                for var in decl.var_block.declarations:
                    ty = Type.from_type_spec(var.type_spec, types)
                    table.define(Symbol.from_var_decl(decl.var_block, var, ty))
            elif decl.kind == "function":
                functions.append(decl)
    return_type = _return_type(pou, types)
    if pou.kind == "function":
        table.define(Symbol(
            name=pou.name, kind=SymbolKind.FUNCTION, type=return_type,
            span=pou.span, assigned=True,
        ))

    table.enter_scope(pou.name)
    _define_vars(table, pou, types, diagnostics)

    checker = TypeChecker(table, types, return_type)
    for func in functions:
        params = [
            (decl.name, Type.from_type_spec(decl.type_spec, types))
            for block, decl in func.iter_var_decls()
            if block.var_class == VarClass.INPUT
        ]
        checker.register_function(func.name, _return_type(func, types) or Type.of(TypeKind.VOID), params)
    diagnostics.extend(checker.check_statements(pou.body))

    for method in getattr(pou, "methods", ()):
        table.enter_scope(f"{pou.name}.{method.name}")
        method_return = _return_type(method, types)
        if method_return is not None:
            table.define(Symbol(
                name=method.name, kind=SymbolKind.FUNCTION, type=method_return,
                span=method.span, assigned=True,
            ))
        _define_vars(table, method, types, diagnostics)
        method_checker = TypeChecker(table, types, method_return)
        method_checker.functions = checker.functions
        diagnostics.extend(method_checker.check_statements(method.body))
        table.exit_scope()

    diagnostics.extend(SmellDetector(config).analyze_pou(pou))
    diagnostics.extend(table.check_unused(include_global=False))
    table.exit_scope()

    logger.debug("%s: %d diagnostic(s)", pou.name, len(diagnostics))
    return sort_diagnostics(diagnostics)
