"""IEC 61131-3 Structured Text (third edition, with classes and namespaces).

The same entry points as ``iecfront.parser`` with the dialect fixed.
"""

from __future__ import annotations

from iecfront.dialect import GENERIC_ST
from iecfront.errors import ParseError
from iecfront.parser import (
    parse_expression as _parse_expression,
    parse_source as _parse_source,
    parse_source_recovering as _parse_source_recovering,
    parse_statements as _parse_statements,
    parse_statements_recovering as _parse_statements_recovering,
)
from iecfront.security import ParserLimits
from iecfront.syntax import CompilationUnit, Expression, Statement

DIALECT = GENERIC_ST


def parse_source(text: str, limits: ParserLimits | None = None) -> CompilationUnit:
    return _parse_source(text, limits, DIALECT)


def parse_source_recovering(
    text: str, limits: ParserLimits | None = None,
) -> tuple[CompilationUnit, list[ParseError]]:
    return _parse_source_recovering(text, limits, DIALECT)


def parse_statements(text: str, limits: ParserLimits | None = None) -> list[Statement]:
    return _parse_statements(text, limits, DIALECT)


def parse_statements_recovering(
    text: str, limits: ParserLimits | None = None,
) -> tuple[list[Statement], list[ParseError]]:
    return _parse_statements_recovering(text, limits, DIALECT)


def parse_expression(text: str, limits: ParserLimits | None = None) -> Expression:
    return _parse_expression(text, limits, DIALECT)
