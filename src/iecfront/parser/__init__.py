"""iecfront parser: source text to the shared syntax tree.

Public API::

    from iecfront.parser import parse_source, parse_source_recovering
    from iecfront.dialect import SCL

    unit = parse_source(text)
    unit, errors = parse_source_recovering(text, dialect=SCL)
"""

from __future__ import annotations

import logging

from iecfront.dialect import GENERIC_ST, Dialect
from iecfront.errors import ParseError
from iecfront.lexer import TokenKind
from iecfront.security import ParserLimits, recursion_budget
from iecfront.syntax.declarations import CompilationUnit
from iecfront.syntax.expressions import Expression
from iecfront.syntax.statements import Statement

from ._core import _ParserBase
from ._declarations import _DeclarationMixin
from ._expressions import _ExpressionMixin
from ._statements import _StatementMixin

logger = logging.getLogger(__name__)

__all__ = [
    "Parser",
    "parse_expression",
    "parse_source",
    "parse_source_recovering",
    "parse_statements",
    "parse_statements_recovering",
]


class Parser(_DeclarationMixin, _StatementMixin, _ExpressionMixin, _ParserBase):
    """Recursive-descent parser for one source text in one dialect.

    A parser is single use: construct it, call one of the ``parse_*`` entry
    methods, then read ``errors`` when it was built with ``recovering=True``.
    """

    def expect_end(self) -> None:
        if not self.at(TokenKind.EOF):
            raise self.unexpected("end of input")

    def parse_all_statements(self, declared: set[str] | None = None) -> list[Statement]:
        """A bare statement list running to end of input."""
        self.enter_pou(set(declared or ()))
        try:
            stmts = self.parse_body(TokenKind.EOF)
        finally:
            self.exit_pou()
        if self.recovering and not self.at(TokenKind.EOF):
            # a declaration keyword; nothing after it belongs to a routine body
            self.errors.append(self.unexpected("end of input"))
            return stmts
        self.expect_end()
        return stmts


def parse_source(
    text: str,
    limits: ParserLimits | None = None,
    dialect: Dialect = GENERIC_ST,
) -> CompilationUnit:
    """Parse a complete compilation unit.

    Raises
    ------
    ParseError
        On the first syntax error.
    SecurityError
        When the input exceeds one of *limits*.
    """
    parser = Parser(text, dialect, limits)
    with recursion_budget(parser.tracker.limits.max_depth):
        return parser.parse_compilation_unit()


def parse_source_recovering(
    text: str,
    limits: ParserLimits | None = None,
    dialect: Dialect = GENERIC_ST,
) -> tuple[CompilationUnit, list[ParseError]]:
    """Parse a compilation unit, collecting syntax errors instead of raising.

    Declarations that fail to parse are dropped from the unit; statements that
    fail are skipped up to the next ``;`` or statement keyword.  Security
    violations still raise.
    """
    parser = Parser(text, dialect, limits, recovering=True)
    with recursion_budget(parser.tracker.limits.max_depth):
        unit = parser.parse_compilation_unit()
    if parser.errors:
        logger.warning("%d parse error(s) recovered in %s source", len(parser.errors), dialect.name)
    return unit, parser.errors


def parse_statements(
    text: str,
    limits: ParserLimits | None = None,
    dialect: Dialect = GENERIC_ST,
    *,
    declared: set[str] | None = None,
) -> list[Statement]:
    """Parse a bare statement list, such as a routine body.

    *declared* names are treated as function block instances when they are
    called as statements.
    """
    parser = Parser(text, dialect, limits)
    with recursion_budget(parser.tracker.limits.max_depth):
        return parser.parse_all_statements(declared)


def parse_statements_recovering(
    text: str,
    limits: ParserLimits | None = None,
    dialect: Dialect = GENERIC_ST,
    *,
    declared: set[str] | None = None,
) -> tuple[list[Statement], list[ParseError]]:
    parser = Parser(text, dialect, limits, recovering=True)
    with recursion_budget(parser.tracker.limits.max_depth):
        stmts = parser.parse_all_statements(declared)
    if parser.errors:
        logger.warning("%d parse error(s) recovered in %s statements", len(parser.errors), dialect.name)
    return stmts, parser.errors


def parse_expression(
    text: str,
    limits: ParserLimits | None = None,
    dialect: Dialect = GENERIC_ST,
) -> Expression:
    parser = Parser(text, dialect, limits)
    with recursion_budget(parser.tracker.limits.max_depth):
        expr = parser.parse_expression()
    parser.expect_end()
    return expr
