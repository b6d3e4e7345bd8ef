"""Expression typing and statement checks.

``TypeChecker`` reads a populated ``SymbolTable``, computes a ``TypeInfo``
for every expression it meets and returns diagnostics.  It also flags
symbols as used or assigned while it walks, which feeds the unused-variable
sweep.

Unknown types are sticky: a rule that sees ``UNKNOWN`` among its inputs
answers ``UNKNOWN`` and stays silent, so one mistake produces one error.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from iecfront.security import walks_deep_trees
from iecfront.syntax.expressions import BinaryOp, LiteralKind, UnaryOp, variable_root
from iecfront.syntax.statements import AssignOp

from .diagnostics import Diagnostic, DiagnosticKind
from .symbols import SymbolKind, SymbolTable
from .types import (
    ANY,
    BOOL,
    DINT,
    DWORD,
    LREAL,
    NULL,
    STRING,
    TIME,
    UNKNOWN,
    WSTRING,
    Type,
    TypeInfo,
    TypeKind,
    TypeRegistry,
)


# ---------------------------------------------------------------------------
# Standard functions
# ---------------------------------------------------------------------------

_BUILTIN_RETURN_TYPES: dict[str, Type] = {}
for _name in ("ABS", "SQRT", "LN", "LOG", "EXP", "EXPT", "SIN", "COS", "TAN",
              "ASIN", "ACOS", "ATAN", "ATAN2"):
    _BUILTIN_RETURN_TYPES[_name] = LREAL
for _name in ("TRUNC", "ROUND", "LEN", "FIND"):
    _BUILTIN_RETURN_TYPES[_name] = DINT
for _name in ("SHL", "SHR", "ROL", "ROR"):
    _BUILTIN_RETURN_TYPES[_name] = DWORD
for _name in ("SEL", "MAX", "MIN", "LIMIT", "MUX", "MOVE"):
    _BUILTIN_RETURN_TYPES[_name] = ANY
for _name in ("LEFT", "RIGHT", "MID", "CONCAT", "INSERT", "DELETE", "REPLACE"):
    _BUILTIN_RETURN_TYPES[_name] = STRING
del _name

# INT_TO_REAL, TO_DINT, DINT_TO_STRING, ...
_CONVERSION_RE = re.compile(r"^(?:[A-Z_]+_)?TO_([A-Z]+)$")

_LITERAL_TYPES: dict[LiteralKind, Type] = {
    LiteralKind.BOOL: BOOL,
    LiteralKind.INTEGER: DINT,
    LiteralKind.REAL: LREAL,
    LiteralKind.STRING: STRING,
    LiteralKind.WSTRING: WSTRING,
    LiteralKind.TIME: TIME,
    LiteralKind.DATE: Type.of(TypeKind.DATE),
    LiteralKind.TIME_OF_DAY: Type.of(TypeKind.TOD),
    LiteralKind.DATE_AND_TIME: Type.of(TypeKind.DT),
    LiteralKind.NULL: NULL,
}

_ADDRESS_SIZE_TYPES: dict[str, Type] = {
    "X": BOOL,
    "B": Type.of(TypeKind.BYTE),
    "W": Type.of(TypeKind.WORD),
    "D": DWORD,
    "L": Type.of(TypeKind.LWORD),
}

_INTEGER_WIDTHS = {
    TypeKind.SINT: 8, TypeKind.USINT: 8, TypeKind.BYTE: 8,
    TypeKind.INT: 16, TypeKind.UINT: 16, TypeKind.WORD: 16,
    TypeKind.DINT: 32, TypeKind.UDINT: 32, TypeKind.DWORD: 32,
    TypeKind.LINT: 64, TypeKind.ULINT: 64, TypeKind.LWORD: 64,
}

_OP_SYMBOLS = {
    BinaryOp.ADD: "+", BinaryOp.SUB: "-", BinaryOp.MUL: "*", BinaryOp.DIV: "/",
    BinaryOp.MOD: "MOD", BinaryOp.POWER: "**",
    BinaryOp.EQ: "=", BinaryOp.NE: "<>", BinaryOp.LT: "<", BinaryOp.LE: "<=",
    BinaryOp.GT: ">", BinaryOp.GE: ">=",
    BinaryOp.AND: "AND", BinaryOp.OR: "OR", BinaryOp.XOR: "XOR",
}

_COMPOUND_OPS = {
    AssignOp.ADD: BinaryOp.ADD,
    AssignOp.SUB: BinaryOp.SUB,
    AssignOp.MUL: BinaryOp.MUL,
    AssignOp.DIV: BinaryOp.DIV,
}


def _widened(left: Type, right: Type) -> Type:
    if left.kind == right.kind:
        return left
    lw = _INTEGER_WIDTHS.get(left._base_kind(), 32)
    rw = _INTEGER_WIDTHS.get(right._base_kind(), 32)
    return left if lw >= rw else right


def _comparable(left: Type, right: Type) -> bool:
    if left.is_numeric() and right.is_numeric():
        return True
    if left.kind == TypeKind.ENUM or right.kind == TypeKind.ENUM:
        other = right if left.kind == TypeKind.ENUM else left
        return other.kind == TypeKind.ENUM or other.is_integer()
    return left.is_assignable_from(right) or right.is_assignable_from(left)


@dataclass
class FunctionSignature:
    """A user function known to the checker: inputs in declaration order."""

    name: str
    return_type: Type
    params: list[tuple[str, Type]] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Checker
# ---------------------------------------------------------------------------

class TypeChecker:
    """Type rules over one POU body.

    Parameters
    ----------
    symbols : SymbolTable
        Table holding the POU's declarations; the checker marks symbols as
        used and assigned in place.
    types : TypeRegistry, optional
        User type declarations, used to resolve enum values and struct
        members.
    return_type : Type, optional
        Declared result type of the enclosing function, checked against
        ``RETURN value``.
    """

    def __init__(
        self,
        symbols: SymbolTable,
        types: TypeRegistry | None = None,
        return_type: Type | None = None,
    ):
        self.symbols = symbols
        self.types = types if types is not None else TypeRegistry()
        self.return_type = return_type
        self.functions: dict[str, FunctionSignature] = {}

    def register_function(
        self,
        name: str,
        return_type: Type,
        params: list[tuple[str, Type]] | None = None,
    ) -> None:
        self.functions[name.upper()] = FunctionSignature(name, return_type, list(params or ()))

    # -- statements ----------------------------------------------------------

    @walks_deep_trees
    def check_statements(self, stmts: list) -> list[Diagnostic]:
        diagnostics: list[Diagnostic] = []
        for stmt in stmts:
            diagnostics.extend(self.check_statement(stmt))
        return diagnostics

    def check_statement(self, stmt) -> list[Diagnostic]:
        diagnostics: list[Diagnostic] = []
        check = _STATEMENT_CHECKS.get(stmt.kind)
        if check is not None:
            check(self, stmt, diagnostics)
        return diagnostics

    def _check_body(self, body: list | None, diagnostics: list[Diagnostic]) -> None:
        for stmt in body or ():
            diagnostics.extend(self.check_statement(stmt))

    def _check_assignment(self, stmt, diagnostics: list[Diagnostic]) -> None:
        target = self._infer_target(stmt.target, diagnostics)
        value = self.check_expression(stmt.value, diagnostics)
        value_type = value.type
        if stmt.op != AssignOp.ASSIGN:
            op = _COMPOUND_OPS[stmt.op]
            value_type = self._binary_result(op, target.type, value.type, stmt.span, diagnostics)

        if not target.type.is_assignable_from(value_type):
            diagnostics.append(Diagnostic.error(
                DiagnosticKind.TYPE_MISMATCH, stmt.value.span,
                expected=target.type.display_name(), found=value_type.display_name(),
            ))

        root = variable_root(stmt.target)
        symbol = self.symbols.lookup(root) if root is not None else None
        if symbol is None:
            return
        if symbol.kind == SymbolKind.CONSTANT or not symbol.mutable:
            diagnostics.append(Diagnostic.error(
                DiagnosticKind.ASSIGNMENT_TO_CONSTANT, stmt.target.span, name=symbol.name,
            ))
        elif symbol.kind == SymbolKind.PARAMETER:
            diagnostics.append(Diagnostic.error(
                DiagnosticKind.ASSIGNMENT_TO_INPUT, stmt.target.span, name=symbol.name,
            ))

    def _check_if(self, stmt, diagnostics: list[Diagnostic]) -> None:
        self._check_condition(stmt.if_branch.condition, diagnostics)
        self._check_body(stmt.if_branch.body, diagnostics)
        for branch in stmt.elsif_branches:
            self._check_condition(branch.condition, diagnostics)
            self._check_body(branch.body, diagnostics)
        self._check_body(stmt.else_body, diagnostics)

    def _check_case(self, stmt, diagnostics: list[Diagnostic]) -> None:
        selector = self.check_expression(stmt.selector, diagnostics).type
        for branch in stmt.branches:
            for label in branch.selectors:
                bounds = [label.value] if label.kind == "value" else [label.low, label.high]
                for bound in bounds:
                    label_type = self.check_expression(bound, diagnostics).type
                    if selector.is_unknown() or label_type.is_unknown():
                        continue
                    if not _comparable(selector, label_type):
                        diagnostics.append(Diagnostic.error(
                            DiagnosticKind.TYPE_MISMATCH, bound.span,
                            expected=selector.display_name(), found=label_type.display_name(),
                        ))
            self._check_body(branch.body, diagnostics)
        self._check_body(stmt.else_body, diagnostics)

    def _check_for(self, stmt, diagnostics: list[Diagnostic]) -> None:
        control = self.symbols.lookup(stmt.control)
        if control is None:
            diagnostics.append(Diagnostic.error(
                DiagnosticKind.UNDEFINED_IDENTIFIER, stmt.span, name=stmt.control,
            ))
        else:
            self.symbols.mark_used(stmt.control)
            self.symbols.mark_assigned(stmt.control)
            control_type = control.type or UNKNOWN
            if not control_type.is_unknown() and not control_type.is_integer():
                diagnostics.append(Diagnostic.error(
                    DiagnosticKind.TYPE_MISMATCH, stmt.span,
                    expected="integer", found=control_type.display_name(),
                ))

        for bound in (stmt.start, stmt.end, stmt.step):
            if bound is None:
                continue
            bound_type = self.check_expression(bound, diagnostics).type
            if not bound_type.is_unknown() and not bound_type.is_integer():
                diagnostics.append(Diagnostic.error(
                    DiagnosticKind.TYPE_MISMATCH, bound.span,
                    expected="integer", found=bound_type.display_name(),
                ))
        self._check_body(stmt.body, diagnostics)

    def _check_while(self, stmt, diagnostics: list[Diagnostic]) -> None:
        self._check_condition(stmt.condition, diagnostics)
        self._check_body(stmt.body, diagnostics)

    def _check_repeat(self, stmt, diagnostics: list[Diagnostic]) -> None:
        self._check_body(stmt.body, diagnostics)
        self._check_condition(stmt.until, diagnostics)

    def _check_return(self, stmt, diagnostics: list[Diagnostic]) -> None:
        if stmt.value is None:
            return
        value = self.check_expression(stmt.value, diagnostics).type
        if self.return_type is not None and not self.return_type.is_assignable_from(value):
            diagnostics.append(Diagnostic.error(
                DiagnosticKind.TYPE_MISMATCH, stmt.value.span,
                expected=self.return_type.display_name(), found=value.display_name(),
            ))

    def _check_call_statement(self, stmt, diagnostics: list[Diagnostic]) -> None:
        self.check_expression(stmt.call, diagnostics)

    def _check_fb_invocation(self, stmt, diagnostics: list[Diagnostic]) -> None:
        self.check_expression(stmt.instance, diagnostics)
        self._check_arguments(stmt.args, diagnostics)

    def _check_region(self, stmt, diagnostics: list[Diagnostic]) -> None:
        self._check_body(stmt.body, diagnostics)

    def _check_condition(self, condition, diagnostics: list[Diagnostic]) -> None:
        cond_type = self.check_expression(condition, diagnostics).type
        if not cond_type.is_bool() and not cond_type.is_unknown():
            diagnostics.append(Diagnostic.warning(
                DiagnosticKind.TYPE_MISMATCH, condition.span,
                expected="BOOL", found=cond_type.display_name(),
            ))
        self._check_assignment_in_condition(condition, diagnostics)

    def _check_assignment_in_condition(self, condition, diagnostics: list[Diagnostic]) -> None:
        # `IF a = b THEN` over two BOOL variables usually meant `a := b`
        if condition.kind != "binary" or condition.op != BinaryOp.EQ:
            return
        sides = (condition.left, condition.right)
        if not all(side.kind == "variable_ref" for side in sides):
            return
        for side in sides:
            symbol = self.symbols.lookup(side.name)
            if symbol is None or symbol.type is None or not symbol.type.is_bool():
                return
        diagnostics.append(Diagnostic.hint(
            DiagnosticKind.POSSIBLE_ASSIGNMENT_IN_CONDITION, condition.span,
        ))

    # -- expressions ---------------------------------------------------------

    def check_expression(self, expr, diagnostics: list[Diagnostic] | None = None) -> TypeInfo:
        """The ``TypeInfo`` of *expr*; problems are appended to *diagnostics*."""
        if diagnostics is None:
            diagnostics = []
        rule = _EXPRESSION_RULES.get(expr.kind)
        if rule is None:
            return TypeInfo.value(UNKNOWN)
        return rule(self, expr, diagnostics)

    def _infer_target(self, target, diagnostics: list[Diagnostic]) -> TypeInfo:
        """Like ``check_expression`` but marks the root variable assigned, not read."""
        if target.kind == "variable_ref":
            symbol = self.symbols.lookup(target.name)
            if symbol is None:
                return self._undefined(target, diagnostics)
            self.symbols.mark_assigned(target.name)
            return self._symbol_info(symbol)
        root = variable_root(target)
        info = self.check_expression(target, diagnostics)
        if root is not None:
            self.symbols.mark_assigned(root)
        return info

    def _undefined(self, ref, diagnostics: list[Diagnostic]) -> TypeInfo:
        # quoted names address global data blocks and tags outside the POU
        if not ref.quoted:
            diagnostics.append(Diagnostic.error(
                DiagnosticKind.UNDEFINED_IDENTIFIER, ref.span, name=ref.name,
            ))
        return TypeInfo.value(UNKNOWN)

    @staticmethod
    def _symbol_info(symbol) -> TypeInfo:
        ty = symbol.type or UNKNOWN
        if symbol.kind in (SymbolKind.FUNCTION_BLOCK, SymbolKind.PROGRAM, SymbolKind.TYPE):
            return TypeInfo.value(ty)
        if symbol.mutable:
            return TypeInfo.lvalue(ty)
        return TypeInfo.constant(ty)

    def _infer_literal(self, expr, diagnostics: list[Diagnostic]) -> TypeInfo:
        if expr.literal_kind == LiteralKind.ENUM:
            resolved = self.types.resolve(expr.type_prefix) if expr.type_prefix else UNKNOWN
            if resolved.kind != TypeKind.ENUM:
                return TypeInfo.constant(UNKNOWN)
            return TypeInfo.constant(resolved)
        if expr.type_prefix and expr.literal_kind in (LiteralKind.INTEGER, LiteralKind.REAL,
                                                      LiteralKind.BOOL):
            return TypeInfo.constant(Type.from_name(expr.type_prefix))
        return TypeInfo.constant(_LITERAL_TYPES.get(expr.literal_kind, UNKNOWN))

    def _infer_variable(self, expr, diagnostics: list[Diagnostic]) -> TypeInfo:
        symbol = self.symbols.lookup(expr.name)
        if symbol is not None:
            self.symbols.mark_used(expr.name)
            return self._symbol_info(symbol)
        enum_type = self._enum_value_type(expr.name)
        if enum_type is not None:
            return TypeInfo.constant(enum_type)
        return self._undefined(expr, diagnostics)

    def _enum_value_type(self, name: str) -> Type | None:
        for type_name, spec in self.types.type_specs.items():
            if spec.kind == "enum" and any(v.name == name for v in spec.values):
                return self.types.resolve(type_name)
        return None

    def _infer_direct_address(self, expr, diagnostics: list[Diagnostic]) -> TypeInfo:
        return TypeInfo.lvalue(_ADDRESS_SIZE_TYPES.get(expr.size.upper(), BOOL))

    def _infer_member(self, expr, diagnostics: list[Diagnostic]) -> TypeInfo:
        base = self.check_expression(expr.base, diagnostics).type
        if base.kind == TypeKind.STRUCT and expr.member in base.fields:
            return TypeInfo.lvalue(base.fields[expr.member])
        return TypeInfo.lvalue(UNKNOWN)

    def _infer_array(self, expr, diagnostics: list[Diagnostic]) -> TypeInfo:
        base = self.check_expression(expr.base, diagnostics).type
        for index in expr.indices:
            index_type = self.check_expression(index, diagnostics).type
            if not index_type.is_integer() and not index_type.is_unknown():
                diagnostics.append(Diagnostic.error(DiagnosticKind.NON_INTEGER_ARRAY_INDEX, index.span))
        if base.kind != TypeKind.ARRAY:
            return TypeInfo.lvalue(UNKNOWN)
        if len(expr.indices) != base.dims:
            diagnostics.append(Diagnostic.error(
                DiagnosticKind.ARRAY_DIMENSION_MISMATCH, expr.span,
                expected=base.dims, found=len(expr.indices),
            ))
        return TypeInfo.lvalue(base.element or UNKNOWN)

    def _infer_deref(self, expr, diagnostics: list[Diagnostic]) -> TypeInfo:
        base = self.check_expression(expr.base, diagnostics).type
        if base.kind == TypeKind.POINTER and base.element is not None:
            return TypeInfo.lvalue(base.element)
        return TypeInfo.lvalue(UNKNOWN)

    def _infer_unary(self, expr, diagnostics: list[Diagnostic]) -> TypeInfo:
        operand = self.check_expression(expr.operand, diagnostics).type
        if operand.is_unknown():
            return TypeInfo.value(UNKNOWN)
        if expr.op == UnaryOp.NEG:
            if operand.is_numeric() or operand.is_time():
                return TypeInfo.value(operand)
            op_text = "-"
        else:
            if operand.is_bool():
                return TypeInfo.value(BOOL)
            if operand.is_integer():
                return TypeInfo.value(operand)
            op_text = "NOT"
        diagnostics.append(Diagnostic.error(
            DiagnosticKind.INVALID_OPERATOR, expr.span,
            op=op_text, operand_type=operand.display_name(),
        ))
        return TypeInfo.value(UNKNOWN)

    def _infer_binary(self, expr, diagnostics: list[Diagnostic]) -> TypeInfo:
        left = self.check_expression(expr.left, diagnostics).type
        right = self.check_expression(expr.right, diagnostics).type
        return TypeInfo.value(self._binary_result(expr.op, left, right, expr.span, diagnostics))

    def _binary_result(self, op: BinaryOp, left: Type, right: Type, span, diagnostics) -> Type:
        if left.is_unknown() or right.is_unknown():
            return UNKNOWN
        if left.is_any() or right.is_any():
            return BOOL if op.is_comparison else ANY

        if op.is_comparison:
            if _comparable(left, right):
                return BOOL
        elif op.is_logical:
            if left.is_bool() and right.is_bool():
                return BOOL
            if left.is_integer() and right.is_integer():
                return _widened(left, right)
        elif left.is_numeric() and right.is_numeric():
            return LREAL if left.is_real() or right.is_real() else DINT
        elif op == BinaryOp.ADD and left.is_string() and right.is_string():
            return STRING
        elif op in (BinaryOp.ADD, BinaryOp.SUB) and left.is_time() and right.is_time():
            return TIME
        elif op in (BinaryOp.MUL, BinaryOp.DIV) and left.is_time() and right.is_numeric():
            return TIME

        diagnostics.append(Diagnostic.error(
            DiagnosticKind.INCOMPATIBLE_TYPES, span,
            left=left.display_name(), right=right.display_name(), op=_OP_SYMBOLS[op],
        ))
        return UNKNOWN

    def _infer_paren(self, expr, diagnostics: list[Diagnostic]) -> TypeInfo:
        return self.check_expression(expr.inner, diagnostics)

    def _infer_call(self, expr, diagnostics: list[Diagnostic]) -> TypeInfo:
        arg_types = self._check_arguments(expr.args, diagnostics)
        name = expr.name.upper()

        signature = self.functions.get(name)
        if signature is not None:
            self._check_signature(signature, expr, arg_types, diagnostics)
            return TypeInfo.value(signature.return_type)

        symbol = self.symbols.lookup(expr.name)
        if symbol is not None and symbol.kind == SymbolKind.FUNCTION:
            self.symbols.mark_used(expr.name)
            return TypeInfo.value(symbol.type or UNKNOWN)

        if name in _BUILTIN_RETURN_TYPES:
            return TypeInfo.value(_BUILTIN_RETURN_TYPES[name])
        match = _CONVERSION_RE.match(name)
        if match is not None:
            target = Type.from_name(match.group(1))
            if target.kind != TypeKind.STRUCT:
                return TypeInfo.value(target)
        # library functions outside this unit
        return TypeInfo.value(UNKNOWN)

    def _check_arguments(self, args: list, diagnostics: list[Diagnostic]) -> list[tuple[object, Type]]:
        """Type every argument; returns ``(arg, type)`` for input arguments."""
        typed = []
        for arg in args:
            if arg.kind in ("positional", "named"):
                typed.append((arg, self.check_expression(arg.value, diagnostics).type))
            elif arg.kind == "output":
                root = variable_root(arg.target)
                self.check_expression(arg.target, diagnostics)
                if root is not None:
                    self.symbols.mark_assigned(root)
        return typed

    def _check_signature(self, signature: FunctionSignature, call, arg_types, diagnostics) -> None:
        if len(arg_types) != len(signature.params):
            diagnostics.append(Diagnostic.error(
                DiagnosticKind.WRONG_ARGUMENT_COUNT, call.span,
                expected=len(signature.params), found=len(arg_types),
            ))
            return
        params = dict(signature.params)
        for position, (arg, arg_type) in enumerate(arg_types):
            if arg.kind == "named":
                param_name = arg.name
                param_type = params.get(arg.name)
            else:
                param_name, param_type = signature.params[position]
            if param_type is None or param_type.is_assignable_from(arg_type):
                continue
            diagnostics.append(Diagnostic.error(
                DiagnosticKind.WRONG_ARGUMENT_TYPE, arg.span,
                param=param_name, expected=param_type.display_name(), found=arg_type.display_name(),
            ))

    def _infer_initializer(self, expr, diagnostics: list[Diagnostic]) -> TypeInfo:
        if expr.kind == "array_init":
            for element in expr.elements:
                self.check_expression(element, diagnostics)
        elif expr.kind == "repeated_init" and expr.value is not None:
            self.check_expression(expr.value, diagnostics)
        elif expr.kind == "struct_init":
            for item in expr.fields:
                self.check_expression(item.value, diagnostics)
        return TypeInfo.value(UNKNOWN)


_STATEMENT_CHECKS = {
    "assignment": TypeChecker._check_assignment,
    "if": TypeChecker._check_if,
    "case": TypeChecker._check_case,
    "for": TypeChecker._check_for,
    "while": TypeChecker._check_while,
    "repeat": TypeChecker._check_repeat,
    "return": TypeChecker._check_return,
    "function_call_stmt": TypeChecker._check_call_statement,
    "fb_invocation": TypeChecker._check_fb_invocation,
    "region": TypeChecker._check_region,
}

_EXPRESSION_RULES = {
    "literal": TypeChecker._infer_literal,
    "variable_ref": TypeChecker._infer_variable,
    "direct_address": TypeChecker._infer_direct_address,
    "member_access": TypeChecker._infer_member,
    "array_access": TypeChecker._infer_array,
    "deref": TypeChecker._infer_deref,
    "unary": TypeChecker._infer_unary,
    "binary": TypeChecker._infer_binary,
    "paren": TypeChecker._infer_paren,
    "function_call": TypeChecker._infer_call,
    "array_init": TypeChecker._infer_initializer,
    "repeated_init": TypeChecker._infer_initializer,
    "struct_init": TypeChecker._infer_initializer,
}
