"""Shared test helpers for the iecfront test suite."""

import textwrap

from iecfront.analysis import analyze_pou
from iecfront.dialect import GENERIC_ST
from iecfront.parser import parse_expression, parse_source, parse_statements


def stmts(source: str, dialect=GENERIC_ST, declared=None) -> list:
    """Parse a bare statement list."""
    return parse_statements(textwrap.dedent(source), dialect=dialect, declared=declared)


def expr(source: str, dialect=GENERIC_ST):
    """Parse a single expression."""
    return parse_expression(source, dialect=dialect)


def unit(source: str, dialect=GENERIC_ST):
    """Parse a complete compilation unit."""
    return parse_source(textwrap.dedent(source), dialect=dialect)


def analyze(source: str, name: str | None = None, dialect=GENERIC_ST, config=None) -> list:
    """Parse *source* and analyze one of its POUs (the first when *name* is omitted)."""
    cu = unit(source, dialect)
    pou = cu.find(name) if name is not None else cu.code_units()[0]
    return analyze_pou(pou, config, unit=cu)


def kinds(diagnostics) -> list:
    """The kinds of *diagnostics* in order."""
    return [d.kind for d in diagnostics]


def ptree(e) -> str:
    """Fully parenthesized rendering of an expression, for precedence checks."""
    k = e.kind
    if k == "binary":
        return f"({ptree(e.left)} {e.op.value} {ptree(e.right)})"
    if k == "unary":
        return f"({e.op.value} {ptree(e.operand)})"
    if k == "paren":
        return ptree(e.inner)
    if k == "variable_ref":
        return e.name
    if k == "literal":
        return e.text
    if k == "member_access":
        return f"{ptree(e.base)}.{e.member}"
    return k
