"""Dialect descriptions for the shared Structured Text front end.

The lexer and parser are written once; a ``Dialect`` switches on the
vendor-specific pieces of syntax.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# Words reserved in every dialect.
BASE_KEYWORDS: frozenset[str] = frozenset({
    "PROGRAM", "END_PROGRAM", "FUNCTION", "END_FUNCTION",
    "FUNCTION_BLOCK", "END_FUNCTION_BLOCK",
    "VAR", "VAR_INPUT", "VAR_OUTPUT", "VAR_IN_OUT", "VAR_TEMP", "VAR_GLOBAL",
    "VAR_EXTERNAL", "VAR_ACCESS", "VAR_CONFIG", "END_VAR",
    "CONSTANT", "RETAIN", "NON_RETAIN", "AT",
    "TYPE", "END_TYPE", "STRUCT", "END_STRUCT", "ARRAY", "OF", "STRING", "WSTRING",
    "IF", "THEN", "ELSIF", "ELSE", "END_IF",
    "CASE", "END_CASE",
    "FOR", "TO", "BY", "DO", "END_FOR",
    "WHILE", "END_WHILE", "REPEAT", "UNTIL", "END_REPEAT",
    "EXIT", "CONTINUE", "RETURN",
    "TRUE", "FALSE", "AND", "OR", "XOR", "NOT", "MOD",
})

# IEC 61131-3 third edition object orientation.
OOP_KEYWORDS: frozenset[str] = frozenset({
    "CLASS", "END_CLASS", "INTERFACE", "END_INTERFACE", "METHOD", "END_METHOD",
    "NAMESPACE", "END_NAMESPACE", "USING",
    "EXTENDS", "IMPLEMENTS", "FINAL", "ABSTRACT", "OVERRIDE",
    "PUBLIC", "PRIVATE", "PROTECTED", "INTERNAL",
    "REF_TO", "NULL",
})

# Siemens S7 SCL.
SCL_KEYWORDS: frozenset[str] = frozenset({
    "BEGIN", "REGION", "END_REGION", "GOTO",
    "DATA_BLOCK", "END_DATA_BLOCK", "ORGANIZATION_BLOCK", "END_ORGANIZATION_BLOCK",
})


@dataclass(frozen=True)
class Dialect:
    """Switches for one Structured Text flavour."""

    name: str
    oop: bool = False
    """CLASS / INTERFACE / METHOD / NAMESPACE, REF_TO, ``^`` and NULL."""

    scl: bool = False
    """BEGIN, REGION, GOTO and labels, DATA_BLOCK, ORGANIZATION_BLOCK, block attributes."""

    pragmas: bool = False
    """``{ key := value }`` annotations."""

    quoted_identifiers: bool = False
    """``"My Block"`` is a name rather than a wide string."""

    local_prefix: bool = False
    """``#temp`` addresses a block-local variable."""

    compound_assignment: bool = False
    """``+=``, ``-=``, ``*=``, ``/=``."""

    inferred_arguments: bool = False
    """``GSV(a, , b)``: empty positional slots are accepted."""

    case_identifier_labels: bool = True
    """``Idle:`` at statement position starts a new CASE branch."""

    extra_keywords: frozenset[str] = field(default_factory=frozenset)

    def keywords(self) -> frozenset[str]:
        words = BASE_KEYWORDS | self.extra_keywords
        if self.oop:
            words |= OOP_KEYWORDS
        if self.scl:
            words |= SCL_KEYWORDS
        return words


GENERIC_ST = Dialect(name="st", oop=True)

SCL = Dialect(
    name="scl",
    scl=True,
    pragmas=True,
    quoted_identifiers=True,
    local_prefix=True,
    compound_assignment=True,
)

ROCKWELL_ST = Dialect(name="rockwell", inferred_arguments=True)

DIALECTS: dict[str, Dialect] = {d.name: d for d in (GENERIC_ST, SCL, ROCKWELL_ST)}
