"""Diagnostics produced by the analysis passes.

Analyses never raise for problems in the analysed code; they return lists of
``Diagnostic`` records instead.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel

from iecfront.span import Span, source_excerpt


class Severity(str, Enum):
    """Ordered ``HINT < WARNING < ERROR``."""

    HINT = "hint"
    WARNING = "warning"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def __lt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank

    def __str__(self) -> str:
        return self.value


_SEVERITY_RANK = {Severity.HINT: 0, Severity.WARNING: 1, Severity.ERROR: 2}


class DiagnosticKind(str, Enum):
    # symbols
    UNDEFINED_IDENTIFIER = "UNDEFINED_IDENTIFIER"
    DUPLICATE_DEFINITION = "DUPLICATE_DEFINITION"
    UNUSED_VARIABLE = "UNUSED_VARIABLE"
    UNINITIALIZED_VARIABLE = "UNINITIALIZED_VARIABLE"
    ASSIGNMENT_TO_CONSTANT = "ASSIGNMENT_TO_CONSTANT"
    ASSIGNMENT_TO_INPUT = "ASSIGNMENT_TO_INPUT"
    SHADOWED_VARIABLE = "SHADOWED_VARIABLE"

    # types
    TYPE_MISMATCH = "TYPE_MISMATCH"
    INCOMPATIBLE_TYPES = "INCOMPATIBLE_TYPES"
    WRONG_ARGUMENT_COUNT = "WRONG_ARGUMENT_COUNT"
    WRONG_ARGUMENT_TYPE = "WRONG_ARGUMENT_TYPE"
    INVALID_OPERATOR = "INVALID_OPERATOR"
    NON_INTEGER_ARRAY_INDEX = "NON_INTEGER_ARRAY_INDEX"
    ARRAY_DIMENSION_MISMATCH = "ARRAY_DIMENSION_MISMATCH"

    # smells
    EMPTY_BLOCK = "EMPTY_BLOCK"
    DEEP_NESTING = "DEEP_NESTING"
    LONG_FUNCTION = "LONG_FUNCTION"
    COMPLEX_CONDITION = "COMPLEX_CONDITION"
    MAGIC_NUMBER = "MAGIC_NUMBER"
    REDUNDANT_CONDITION = "REDUNDANT_CONDITION"
    DUPLICATE_CODE = "DUPLICATE_CODE"
    DEAD_CODE = "DEAD_CODE"
    EMPTY_CASE_BRANCH = "EMPTY_CASE_BRANCH"
    MISSING_CASE_ELSE = "MISSING_CASE_ELSE"
    POSSIBLE_ASSIGNMENT_IN_CONDITION = "POSSIBLE_ASSIGNMENT_IN_CONDITION"


_MESSAGES: dict[DiagnosticKind, str] = {
    DiagnosticKind.UNDEFINED_IDENTIFIER: "undefined identifier '{name}'",
    DiagnosticKind.DUPLICATE_DEFINITION: "duplicate definition of '{name}'",
    DiagnosticKind.UNUSED_VARIABLE: "unused variable '{name}'",
    DiagnosticKind.UNINITIALIZED_VARIABLE: "variable '{name}' may be uninitialized",
    DiagnosticKind.ASSIGNMENT_TO_CONSTANT: "cannot assign to constant '{name}'",
    DiagnosticKind.ASSIGNMENT_TO_INPUT: "cannot assign to input parameter '{name}'",
    DiagnosticKind.SHADOWED_VARIABLE: "variable '{name}' shadows an outer variable",
    DiagnosticKind.TYPE_MISMATCH: "type mismatch: expected '{expected}', found '{found}'",
    DiagnosticKind.INCOMPATIBLE_TYPES: "incompatible types '{left}' and '{right}' for operator '{op}'",
    DiagnosticKind.WRONG_ARGUMENT_COUNT: "wrong number of arguments: expected {expected}, found {found}",
    DiagnosticKind.WRONG_ARGUMENT_TYPE: "wrong type for parameter '{param}': expected '{expected}', found '{found}'",
    DiagnosticKind.INVALID_OPERATOR: "operator '{op}' cannot be applied to type '{operand_type}'",
    DiagnosticKind.NON_INTEGER_ARRAY_INDEX: "array index must be an integer type",
    DiagnosticKind.ARRAY_DIMENSION_MISMATCH: "array dimension mismatch: expected {expected} indices, found {found}",
    DiagnosticKind.EMPTY_BLOCK: "empty {block_type} block",
    DiagnosticKind.DEEP_NESTING: "deeply nested code (depth {depth}, recommended max {max_recommended})",
    DiagnosticKind.LONG_FUNCTION: "function is too long ({lines} statements, recommended max {max_recommended})",
    DiagnosticKind.COMPLEX_CONDITION: "complex condition (complexity {complexity}, recommended max {max_recommended})",
    DiagnosticKind.MAGIC_NUMBER: "magic number '{value}' should be a named constant",
    DiagnosticKind.REDUNDANT_CONDITION: "condition is always {always}",
    DiagnosticKind.DUPLICATE_CODE: "duplicate code: {description}",
    DiagnosticKind.DEAD_CODE: "unreachable code: {reason}",
    DiagnosticKind.EMPTY_CASE_BRANCH: "empty CASE branch",
    DiagnosticKind.MISSING_CASE_ELSE: "CASE statement has no ELSE clause",
    DiagnosticKind.POSSIBLE_ASSIGNMENT_IN_CONDITION:
        "possible assignment in condition (did you mean ':=' instead of '='?)",
}


class Diagnostic(BaseModel):
    """One finding.

    *args* fills the message template of *kind*; *related_span* points at the
    earlier definition for duplicate and shadowing findings.
    """

    kind: DiagnosticKind
    span: Span
    severity: Severity
    args: dict[str, Any] = {}
    related_span: Span | None = None

    @classmethod
    def error(cls, kind: DiagnosticKind, span: Span, **args: Any) -> Diagnostic:
        return cls._make(kind, span, Severity.ERROR, args)

    @classmethod
    def warning(cls, kind: DiagnosticKind, span: Span, **args: Any) -> Diagnostic:
        return cls._make(kind, span, Severity.WARNING, args)

    @classmethod
    def hint(cls, kind: DiagnosticKind, span: Span, **args: Any) -> Diagnostic:
        return cls._make(kind, span, Severity.HINT, args)

    @classmethod
    def _make(cls, kind: DiagnosticKind, span: Span, severity: Severity, args: dict) -> Diagnostic:
        related = args.pop("related_span", None)
        return cls(kind=kind, span=span, severity=severity, args=args, related_span=related)

    @property
    def message(self) -> str:
        args = dict(self.args)
        if self.kind == DiagnosticKind.REDUNDANT_CONDITION:
            args["always"] = "true" if args.get("always") else "false"
        return _MESSAGES[self.kind].format(**args)

    def __str__(self) -> str:
        return f"{self.severity}: {self.message} at {self.span}"

    def format_with_source(self, source: str) -> str:
        return source_excerpt(source, self.span, f"{self.severity}: {self.message}")


def sort_diagnostics(diagnostics: list[Diagnostic]) -> list[Diagnostic]:
    """Most severe first, then by position; stable for equal keys."""
    return sorted(diagnostics, key=lambda d: (-d.severity.rank, d.span.start))


def tiered(measured: int, threshold: int) -> Severity:
    """Severity for a measurement over *threshold*.

    Up to 1.5x the threshold is a hint, up to 2x a warning, beyond that an
    error.
    """
    if measured * 2 <= threshold * 3:
        return Severity.HINT
    if measured <= threshold * 2:
        return Severity.WARNING
    return Severity.ERROR
