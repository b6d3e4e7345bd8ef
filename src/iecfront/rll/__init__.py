"""Ladder (RLL) rung text.

Public API::

    from iecfront.rll import parse_rung

    rung = parse_rung("XIC(Start)[OTE(Motor),OTE(Light)];")
    rung.is_parsed                      # True
    [r.name for r in rung.tag_references()]

    rung = parse_rung("XIC(Tag[incomplete;")
    print(rung.error.format_with_context(rung.raw_text))
"""

from .ast import Branch, Instruction, Operand, Parallel, Rung, RungContent, RungElement, TagReference
from .errors import ErrorContext, RllError, RllErrorKind, RungParseError
from .operand import (
    KNOWN_FUNCTIONS,
    ExpressionValue,
    LiteralValue,
    OperandValue,
    TagPath,
    base_tag,
    is_numeric_literal,
    looks_like_expression,
    parse_operand_value,
)
from .parser import parse_rung, parse_rung_strict

__all__ = [
    "KNOWN_FUNCTIONS",
    "Branch",
    "ErrorContext",
    "ExpressionValue",
    "Instruction",
    "LiteralValue",
    "Operand",
    "OperandValue",
    "Parallel",
    "RllError",
    "RllErrorKind",
    "Rung",
    "RungContent",
    "RungElement",
    "RungParseError",
    "TagPath",
    "TagReference",
    "base_tag",
    "is_numeric_literal",
    "looks_like_expression",
    "parse_operand_value",
    "parse_rung",
    "parse_rung_strict",
]
