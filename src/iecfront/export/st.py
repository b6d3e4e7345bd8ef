"""Structured Text pretty-printer for the shared syntax tree.

Renders statements, expressions and type specs back to normalized ST:
keywords upper-cased, four-space indentation, one statement per line and
parentheses only where precedence needs them.  Comments, pragmas and the
original layout are not preserved.
"""

from __future__ import annotations

from io import StringIO

from iecfront.security import walks_deep_trees
from iecfront.syntax.expressions import BinaryOp, Expression, UnaryOp
from iecfront.syntax.statements import Statement
from iecfront.syntax.types import TypeSpec


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

@walks_deep_trees
def format_statements(stmts: list[Statement], indent: int = 0) -> str:
    """Render a statement list, one statement per line."""
    w = STWriter(indent)
    for stmt in stmts:
        w.write_stmt(stmt)
    return w.getvalue()


@walks_deep_trees
def format_expression(expr: Expression) -> str:
    return STWriter().expr(expr)


@walks_deep_trees
def format_type_spec(spec: TypeSpec) -> str:
    return STWriter().type_spec(spec)


# ---------------------------------------------------------------------------
# Operator maps
# ---------------------------------------------------------------------------

_BINOP_SYMBOL: dict[BinaryOp, str] = {
    BinaryOp.ADD: "+",
    BinaryOp.SUB: "-",
    BinaryOp.MUL: "*",
    BinaryOp.DIV: "/",
    BinaryOp.MOD: "MOD",
    BinaryOp.POWER: "**",
    BinaryOp.AND: "AND",
    BinaryOp.OR: "OR",
    BinaryOp.XOR: "XOR",
    BinaryOp.EQ: "=",
    BinaryOp.NE: "<>",
    BinaryOp.GT: ">",
    BinaryOp.GE: ">=",
    BinaryOp.LT: "<",
    BinaryOp.LE: "<=",
}

# higher binds tighter; matches the parser's table
_BINOP_PRECEDENCE: dict[BinaryOp, int] = {
    BinaryOp.OR: 1,
    BinaryOp.XOR: 2,
    BinaryOp.AND: 3,
    BinaryOp.EQ: 4,
    BinaryOp.NE: 4,
    BinaryOp.LT: 4,
    BinaryOp.GT: 4,
    BinaryOp.LE: 4,
    BinaryOp.GE: 4,
    BinaryOp.ADD: 5,
    BinaryOp.SUB: 5,
    BinaryOp.MUL: 6,
    BinaryOp.DIV: 6,
    BinaryOp.MOD: 6,
    BinaryOp.POWER: 7,
}

_UNARY_PRECEDENCE = 8


# ---------------------------------------------------------------------------
# STWriter
# ---------------------------------------------------------------------------

class STWriter:
    """Walks syntax nodes and emits Structured Text into an internal buffer."""

    def __init__(self, indent: int = 0) -> None:
        self._buf = StringIO()
        self._indent = indent
        self._indent_str = "    "

    def getvalue(self) -> str:
        text = self._buf.getvalue().rstrip("\n")
        return text + "\n" if text else ""

    # -- Low-level output helpers -------------------------------------------

    def _line(self, text: str) -> None:
        self._buf.write(self._indent_str * self._indent + text + "\n")

    def _body(self, stmts: list) -> None:
        self._indent += 1
        for s in stmts:
            self.write_stmt(s)
        self._indent -= 1

    # ======================================================================
    # Statements
    # ======================================================================

    def write_stmt(self, stmt: Statement) -> None:
        _STMT_WRITERS[stmt.kind](self, stmt)

    def _write_assignment(self, stmt) -> None:
        self._line(f"{self.expr(stmt.target)} {stmt.op.value} {self.expr(stmt.value)};")

    def _write_if(self, stmt) -> None:
        self._line(f"IF {self.expr(stmt.if_branch.condition)} THEN")
        self._body(stmt.if_branch.body)
        for branch in stmt.elsif_branches:
            self._line(f"ELSIF {self.expr(branch.condition)} THEN")
            self._body(branch.body)
        if stmt.else_body is not None:
            self._line("ELSE")
            self._body(stmt.else_body)
        self._line("END_IF;")

    def _write_case(self, stmt) -> None:
        self._line(f"CASE {self.expr(stmt.selector)} OF")
        self._indent += 1
        for branch in stmt.branches:
            self._line(f"{self._case_labels(branch)}:")
            self._body(branch.body)
        self._indent -= 1
        if stmt.else_body is not None:
            self._line("ELSE")
            self._body(stmt.else_body)
        self._line("END_CASE;")

    def _case_labels(self, branch) -> str:
        parts: list[str] = []
        for sel in branch.selectors:
            if sel.kind == "range":
                parts.append(f"{self.expr(sel.low)}..{self.expr(sel.high)}")
            else:
                parts.append(self.expr(sel.value))
        return ", ".join(parts)

    def _write_for(self, stmt) -> None:
        header = f"FOR {stmt.control} := {self.expr(stmt.start)} TO {self.expr(stmt.end)}"
        if stmt.step is not None:
            header += f" BY {self.expr(stmt.step)}"
        self._line(header + " DO")
        self._body(stmt.body)
        self._line("END_FOR;")

    def _write_while(self, stmt) -> None:
        self._line(f"WHILE {self.expr(stmt.condition)} DO")
        self._body(stmt.body)
        self._line("END_WHILE;")

    def _write_repeat(self, stmt) -> None:
        self._line("REPEAT")
        self._body(stmt.body)
        self._line(f"UNTIL {self.expr(stmt.until)}")
        self._line("END_REPEAT;")

    def _write_exit(self, _stmt) -> None:
        self._line("EXIT;")

    def _write_continue(self, _stmt) -> None:
        self._line("CONTINUE;")

    def _write_return(self, stmt) -> None:
        if stmt.value is not None:
            self._line(f"RETURN {self.expr(stmt.value)};")
        else:
            self._line("RETURN;")

    def _write_function_call_stmt(self, stmt) -> None:
        self._line(f"{self.expr(stmt.call)};")

    def _write_fb_invocation(self, stmt) -> None:
        args = ", ".join(self._call_arg(a) for a in stmt.args)
        self._line(f"{self.expr(stmt.instance)}({args});")

    def _write_empty(self, _stmt) -> None:
        self._line(";")

    def _write_goto(self, stmt) -> None:
        self._line(f"GOTO {stmt.label};")

    def _write_label(self, stmt) -> None:
        self._line(f"{stmt.name}:")

    def _write_region(self, stmt) -> None:
        self._line(f"REGION {stmt.name}".rstrip())
        self._body(stmt.body)
        self._line("END_REGION")

    # ======================================================================
    # Expressions
    # ======================================================================

    def expr(self, expr: Expression, parent_prec: int = 0) -> str:
        return _EXPR_WRITERS[expr.kind](self, expr, parent_prec)

    def _expr_literal(self, expr, _prec: int) -> str:
        return expr.text

    def _expr_variable_ref(self, expr, _prec: int) -> str:
        if expr.quoted:
            return f'"{expr.name}"'
        if expr.local:
            return f"#{expr.name}"
        return expr.name

    def _expr_direct_address(self, expr, _prec: int) -> str:
        return expr.address

    def _expr_member_access(self, expr, _prec: int) -> str:
        return f"{self.expr(expr.base, _UNARY_PRECEDENCE)}.{expr.member}"

    def _expr_array_access(self, expr, _prec: int) -> str:
        indices = ", ".join(self.expr(i) for i in expr.indices)
        return f"{self.expr(expr.base, _UNARY_PRECEDENCE)}[{indices}]"

    def _expr_deref(self, expr, _prec: int) -> str:
        return f"{self.expr(expr.base, _UNARY_PRECEDENCE)}^"

    def _expr_binary(self, expr, parent_prec: int) -> str:
        my_prec = _BINOP_PRECEDENCE[expr.op]
        symbol = _BINOP_SYMBOL[expr.op]
        # ** groups to the right, the rest to the left
        if expr.op == BinaryOp.POWER:
            left_prec, right_prec = my_prec + 1, my_prec
        else:
            left_prec, right_prec = my_prec, my_prec + 1
        left = self._operand(expr.left, left_prec, expr.op)
        right = self._operand(expr.right, right_prec, expr.op)
        result = f"{left} {symbol} {right}"
        if my_prec < parent_prec:
            return f"({result})"
        return result

    def _operand(self, operand, prec: int, op: BinaryOp) -> str:
        # NOT swallows a whole comparison, so it is bracketed below one
        if operand.kind == "unary" and operand.op == UnaryOp.NOT and not op.is_logical:
            return f"({self.expr(operand)})"
        return self.expr(operand, prec)

    def _expr_unary(self, expr, _prec: int) -> str:
        if expr.op == UnaryOp.NOT:
            return f"NOT {self.expr(expr.operand, _BINOP_PRECEDENCE[BinaryOp.EQ])}"
        operand = self.expr(expr.operand, _UNARY_PRECEDENCE)
        if expr.operand.kind == "unary" or operand.startswith("-"):
            operand = f"({operand})"
        return f"-{operand}"

    def _expr_paren(self, expr, _prec: int) -> str:
        return f"({self.expr(expr.inner)})"

    def _expr_function_call(self, expr, _prec: int) -> str:
        args = ", ".join(self._call_arg(a) for a in expr.args)
        return f"{expr.name}({args})"

    def _call_arg(self, arg) -> str:
        if arg.kind == "named":
            return f"{arg.name} := {self.expr(arg.value)}"
        if arg.kind == "output":
            prefix = "NOT " if arg.negated else ""
            return f"{prefix}{arg.name} => {self.expr(arg.target)}"
        if arg.kind == "inferred":
            return ""
        return self.expr(arg.value)

    def _expr_repeated_init(self, expr, _prec: int) -> str:
        value = self.expr(expr.value) if expr.value is not None else ""
        return f"{expr.count}({value})"

    def _expr_array_init(self, expr, _prec: int) -> str:
        return "[" + ", ".join(self.expr(e) for e in expr.elements) + "]"

    def _expr_struct_init(self, expr, _prec: int) -> str:
        return "(" + ", ".join(self._call_arg(f) for f in expr.fields) + ")"

    # ======================================================================
    # Type specs
    # ======================================================================

    def type_spec(self, spec: TypeSpec) -> str:
        kind = spec.kind
        if kind == "elementary":
            if spec.length is not None:
                return f"{spec.name}[{self.expr(spec.length)}]"
            return spec.name
        if kind == "user_defined":
            return spec.name
        if kind == "array":
            dims = ", ".join(f"{self.expr(d.low)}..{self.expr(d.high)}" for d in spec.dims)
            return f"ARRAY[{dims}] OF {self.type_spec(spec.element)}"
        if kind == "ref":
            return f"REF_TO {self.type_spec(spec.inner)}"
        if kind == "subrange":
            return f"{spec.base_type}({self.expr(spec.low)}..{self.expr(spec.high)})"
        if kind == "enum":
            values = ", ".join(
                f"{v.name} := {self.expr(v.value)}" if v.value is not None else v.name
                for v in spec.values
            )
            text = f"({values})"
            return f"{text} {spec.base_type}" if spec.base_type else text
        # struct
        parts = ["STRUCT"]
        for f in spec.fields:
            decl = f"{f.name} : {self.type_spec(f.type_spec)}"
            if f.initial is not None:
                decl += f" := {self.expr(f.initial)}"
            parts.append(decl + ";")
        parts.append("END_STRUCT")
        return " ".join(parts)


_STMT_WRITERS = {
    "assignment": STWriter._write_assignment,
    "if": STWriter._write_if,
    "case": STWriter._write_case,
    "for": STWriter._write_for,
    "while": STWriter._write_while,
    "repeat": STWriter._write_repeat,
    "exit": STWriter._write_exit,
    "continue": STWriter._write_continue,
    "return": STWriter._write_return,
    "function_call_stmt": STWriter._write_function_call_stmt,
    "fb_invocation": STWriter._write_fb_invocation,
    "empty": STWriter._write_empty,
    "goto": STWriter._write_goto,
    "label": STWriter._write_label,
    "region": STWriter._write_region,
}

_EXPR_WRITERS = {
    "literal": STWriter._expr_literal,
    "variable_ref": STWriter._expr_variable_ref,
    "direct_address": STWriter._expr_direct_address,
    "member_access": STWriter._expr_member_access,
    "array_access": STWriter._expr_array_access,
    "deref": STWriter._expr_deref,
    "binary": STWriter._expr_binary,
    "unary": STWriter._expr_unary,
    "paren": STWriter._expr_paren,
    "function_call": STWriter._expr_function_call,
    "repeated_init": STWriter._expr_repeated_init,
    "array_init": STWriter._expr_array_init,
    "struct_init": STWriter._expr_struct_init,
}
