"""Code smell detection.

``SmellDetector`` walks a POU body once with a nesting counter and reports
style problems: empty blocks, deep nesting, long bodies, complex or constant
conditions, magic numbers, CASE hygiene, dead code after RETURN/EXIT and
repeated statements.  Thresholds live in ``SmellConfig``; the size-based
findings are graded with ``tiered``.
"""

from __future__ import annotations

from pydantic import BaseModel

from iecfront.export.st import format_expression, format_statements
from iecfront.security import walks_deep_trees
from iecfront.span import Span
from iecfront.syntax.expressions import BinaryOp, LiteralKind, UnaryOp
from iecfront.syntax.walk import arg_expression, iter_statements

from .diagnostics import Diagnostic, DiagnosticKind, Severity, tiered


class SmellConfig(BaseModel):
    """Thresholds and switches for ``SmellDetector``."""

    max_nesting: int = 4
    max_function_length: int = 50
    max_condition_complexity: int = 4
    warn_magic_numbers: bool = True
    magic_number_exceptions: list[int] = [-1, 0, 1, 2, 10, 100]
    warn_missing_case_else: bool = True
    detect_duplicate_code: bool = True


_LOGICAL_OPS = frozenset({BinaryOp.AND, BinaryOp.OR, BinaryOp.XOR})
_TERMINAL_KINDS = frozenset({"return", "exit"})


def count_logical_operators(expr) -> int:
    """AND/OR/XOR operators anywhere in *expr*."""
    count = 0
    stack = [expr]
    while stack:
        node = stack.pop()
        kind = node.kind
        if kind == "binary":
            if node.op in _LOGICAL_OPS:
                count += 1
            stack.extend([node.left, node.right])
        elif kind == "unary":
            stack.append(node.operand)
        elif kind == "paren":
            stack.append(node.inner)
    return count


def count_statements(stmts: list) -> int:
    """Statements in *stmts*, nested bodies included."""
    return sum(1 for _ in iter_statements(stmts))


class SmellDetector:
    """Reports smells in POU bodies.

    A detector may be reused; the nesting counter is reset for each call.
    """

    def __init__(self, config: SmellConfig | None = None) -> None:
        self.config = config if config is not None else SmellConfig()
        self._nesting = 0

    # -- entry points --------------------------------------------------------

    def analyze_pou(self, pou) -> list[Diagnostic]:
        """Smells in the body of *pou* and in the bodies of its methods."""
        diagnostics = self.analyze_statements(pou.body, pou.span)
        for method in getattr(pou, "methods", ()):
            diagnostics.extend(self.analyze_statements(method.body, method.span))
        return diagnostics

    @walks_deep_trees
    def analyze_statements(self, stmts: list, body_span: Span | None = None) -> list[Diagnostic]:
        """Smells in a statement list.

        The long-body check needs *body_span* to have somewhere to point; it
        is skipped without one.
        """
        self._nesting = 0
        diagnostics: list[Diagnostic] = []
        count = count_statements(stmts)
        limit = self.config.max_function_length
        if body_span is not None and count > limit:
            diagnostics.append(Diagnostic(
                kind=DiagnosticKind.LONG_FUNCTION, span=body_span, severity=tiered(count, limit),
                args={"lines": count, "max_recommended": limit},
            ))
        self._check_list(stmts, diagnostics)
        return diagnostics

    # -- statement lists -----------------------------------------------------

    def _check_list(self, stmts: list, diagnostics: list[Diagnostic]) -> None:
        terminated = False
        previous = None
        for stmt in stmts:
            if stmt.kind == "label":
                # reachable through GOTO
                terminated = False
            if terminated:
                diagnostics.append(Diagnostic.warning(
                    DiagnosticKind.DEAD_CODE, stmt.span, reason="code after RETURN or EXIT",
                ))
            if stmt.kind in _TERMINAL_KINDS:
                terminated = True

            if self.config.detect_duplicate_code and stmt.kind != "empty":
                rendered = format_statements([stmt])
                if rendered == previous:
                    diagnostics.append(Diagnostic.warning(
                        DiagnosticKind.DUPLICATE_CODE, stmt.span,
                        description="statement repeats the one before it",
                    ))
                previous = rendered

            check = _STATEMENT_CHECKS.get(stmt.kind)
            if check is not None:
                check(self, stmt, diagnostics)

    def _enter(self, stmt, diagnostics: list[Diagnostic]) -> None:
        self._nesting += 1
        limit = self.config.max_nesting
        if self._nesting > limit:
            diagnostics.append(Diagnostic(
                kind=DiagnosticKind.DEEP_NESTING, span=stmt.span,
                severity=tiered(self._nesting, limit),
                args={"depth": self._nesting, "max_recommended": limit},
            ))

    def _leave(self) -> None:
        self._nesting -= 1

    def _empty_block(self, body: list, block_type: str, span: Span, diagnostics, *, severity=Severity.WARNING):
        if not body:
            diagnostics.append(Diagnostic(
                kind=DiagnosticKind.EMPTY_BLOCK, span=span, severity=severity,
                args={"block_type": block_type},
            ))

    # -- statements ----------------------------------------------------------

    def _check_assignment(self, stmt, diagnostics: list[Diagnostic]) -> None:
        self._check_magic_numbers(stmt.value, diagnostics)

    def _check_if(self, stmt, diagnostics: list[Diagnostic]) -> None:
        branches = [stmt.if_branch, *stmt.elsif_branches]
        seen: set[str] = set()
        for branch in branches:
            self._check_condition(branch.condition, diagnostics)
            rendered = format_expression(branch.condition)
            if self.config.detect_duplicate_code and rendered in seen:
                diagnostics.append(Diagnostic.warning(
                    DiagnosticKind.DUPLICATE_CODE, branch.condition.span,
                    description=f"condition '{rendered}' already tested by an earlier branch",
                ))
            seen.add(rendered)

        self._empty_block(stmt.if_branch.body, "IF", stmt.span, diagnostics)
        self._enter(stmt, diagnostics)
        for branch in branches:
            self._check_list(branch.body, diagnostics)
        if stmt.else_body is not None:
            self._empty_block(stmt.else_body, "ELSE", stmt.span, diagnostics, severity=Severity.HINT)
            self._check_list(stmt.else_body, diagnostics)
        self._leave()

    def _check_case(self, stmt, diagnostics: list[Diagnostic]) -> None:
        self._enter(stmt, diagnostics)
        for branch in stmt.branches:
            if not branch.body:
                diagnostics.append(Diagnostic.warning(DiagnosticKind.EMPTY_CASE_BRANCH, branch.span))
            self._check_list(branch.body, diagnostics)
        if stmt.else_body is None:
            if self.config.warn_missing_case_else:
                diagnostics.append(Diagnostic.hint(DiagnosticKind.MISSING_CASE_ELSE, stmt.span))
        else:
            self._check_list(stmt.else_body, diagnostics)
        self._leave()

    def _check_for(self, stmt, diagnostics: list[Diagnostic]) -> None:
        self._enter(stmt, diagnostics)
        self._empty_block(stmt.body, "FOR", stmt.span, diagnostics)
        self._check_list(stmt.body, diagnostics)
        self._leave()

    def _check_while(self, stmt, diagnostics: list[Diagnostic]) -> None:
        self._check_condition(stmt.condition, diagnostics)
        self._enter(stmt, diagnostics)
        self._empty_block(stmt.body, "WHILE", stmt.span, diagnostics)
        self._check_list(stmt.body, diagnostics)
        self._leave()

    def _check_repeat(self, stmt, diagnostics: list[Diagnostic]) -> None:
        self._check_condition(stmt.until, diagnostics)
        self._enter(stmt, diagnostics)
        self._empty_block(stmt.body, "REPEAT", stmt.span, diagnostics)
        self._check_list(stmt.body, diagnostics)
        self._leave()

    def _check_region(self, stmt, diagnostics: list[Diagnostic]) -> None:
        self._check_list(stmt.body, diagnostics)

    def _check_call(self, stmt, diagnostics: list[Diagnostic]) -> None:
        args = stmt.call.args if stmt.kind == "function_call_stmt" else stmt.args
        for arg in args:
            value = arg_expression(arg)
            if value is not None and arg.kind != "output":
                self._check_magic_numbers(value, diagnostics)

    # -- expressions ---------------------------------------------------------

    def _check_condition(self, condition, diagnostics: list[Diagnostic]) -> None:
        complexity = count_logical_operators(condition)
        limit = self.config.max_condition_complexity
        if complexity > limit:
            diagnostics.append(Diagnostic(
                kind=DiagnosticKind.COMPLEX_CONDITION, span=condition.span,
                severity=tiered(complexity, limit),
                args={"complexity": complexity, "max_recommended": limit},
            ))

        inner = condition
        while inner.kind == "paren":
            inner = inner.inner
        if inner.kind == "literal" and inner.literal_kind == LiteralKind.BOOL:
            diagnostics.append(Diagnostic.warning(
                DiagnosticKind.REDUNDANT_CONDITION, condition.span, always=bool(inner.value),
            ))
        self._check_magic_numbers(condition, diagnostics)

    def _check_magic_numbers(self, expr, diagnostics: list[Diagnostic]) -> None:
        if not self.config.warn_magic_numbers:
            return
        stack = [expr]
        while stack:
            node = stack.pop()
            kind = node.kind
            if kind == "literal":
                self._magic_literal(node, node.value, diagnostics)
            elif kind == "unary":
                operand = node.operand
                if (
                    node.op == UnaryOp.NEG
                    and operand.kind == "literal"
                    and operand.literal_kind == LiteralKind.INTEGER
                ):
                    self._magic_literal(node, -operand.value, diagnostics)
                else:
                    stack.append(operand)
            elif kind == "binary":
                stack.extend([node.right, node.left])
            elif kind == "paren":
                stack.append(node.inner)
            elif kind == "function_call":
                stack.extend(reversed([
                    e for e in map(arg_expression, node.args)
                    if e is not None
                ]))
            elif kind == "array_access":
                stack.extend(reversed(node.indices))
                stack.append(node.base)
            elif kind in ("member_access", "deref"):
                stack.append(node.base)

    def _magic_literal(self, node, value, diagnostics: list[Diagnostic]) -> None:
        literal = node.operand if node.kind == "unary" else node
        if literal.literal_kind != LiteralKind.INTEGER or literal.type_prefix:
            return
        if value in self.config.magic_number_exceptions:
            return
        diagnostics.append(Diagnostic.hint(DiagnosticKind.MAGIC_NUMBER, node.span, value=str(value)))


_STATEMENT_CHECKS = {
    "assignment": SmellDetector._check_assignment,
    "if": SmellDetector._check_if,
    "case": SmellDetector._check_case,
    "for": SmellDetector._check_for,
    "while": SmellDetector._check_while,
    "repeat": SmellDetector._check_repeat,
    "region": SmellDetector._check_region,
    "function_call_stmt": SmellDetector._check_call,
    "fb_invocation": SmellDetector._check_call,
}
