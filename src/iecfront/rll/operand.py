"""Operand text classification for tag extraction.

Ladder operands are kept as text by the rung parser.  ``parse_operand_value``
classifies one operand and finds the tags it mentions:

- simple and structured tags: ``Motor``, ``Timer1.DN``
- array elements: ``Data[idx]`` (``idx`` is a tag too)
- module I/O: ``Local:1:I.Data.0`` (base ``Local``)
- indirect members: ``Tag.[Other.Member]`` (both tags)
- CPT/CMP expressions: ``((1.0 - x) * y) + z``, ``ATN(Tag) > 1.0``
"""

from __future__ import annotations

import re
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

_RADIX_PREFIXES = ("16#", "8#", "2#")
_NUMBER_CHARS = frozenset("0123456789.eE+-_")

# single-character operators that split expression terms
_OPERATOR_CHARS = frozenset("+*/><=")

# word operators inside CPT/CMP expressions
_WORD_OPERATORS = frozenset({"AND", "OR", "XOR", "NOT", "MOD"})

KNOWN_FUNCTIONS = frozenset({
    "ABS", "SQRT", "SQR", "LN", "LOG", "EXP",
    "SIN", "COS", "TAN", "ASN", "ACS", "ATN",
    "DEG", "RAD", "TRN", "TRUNC", "NOT", "AND", "OR", "XOR",
    "MOD", "FRD", "TOD",
})

_CALL_RE = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\s*\((.*)\)$", re.DOTALL)


# ---------------------------------------------------------------------------
# Values
# ---------------------------------------------------------------------------

class LiteralValue(BaseModel):
    kind: Literal["literal"] = "literal"
    text: str

    def all_tags(self) -> list[str]:
        return []


class TagPath(BaseModel):
    """A tag reference as written.

    *base* is the tag name before any ``.``, ``[`` or ``:``; *indices* holds
    the tag-valued parts of array subscripts and indirect members.
    """

    kind: Literal["tag"] = "tag"
    base: str
    full_path: str
    indices: list[OperandValue] = []

    @classmethod
    def simple(cls, name: str) -> TagPath:
        return cls(base=name, full_path=name)

    def all_tags(self) -> list[str]:
        tags = [self.base]
        for index in self.indices:
            tags.extend(index.all_tags())
        return tags


class ExpressionValue(BaseModel):
    """An expression operand; *terms* are the tags it mentions."""

    kind: Literal["expression"] = "expression"
    text: str
    terms: list[OperandValue] = []

    def all_tags(self) -> list[str]:
        tags: list[str] = []
        for term in self.terms:
            tags.extend(term.all_tags())
        return tags


OperandValue = Annotated[
    Union[LiteralValue, TagPath, ExpressionValue],
    Field(discriminator="kind"),
]

TagPath.model_rebuild()
ExpressionValue.model_rebuild()


def base_tag(value: OperandValue) -> str | None:
    return value.base if value.kind == "tag" else None


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def parse_operand_value(text: str) -> OperandValue:
    """Classify operand *text* as a literal, a tag path or an expression."""
    trimmed = text.strip()
    if not trimmed:
        return LiteralValue(text="")
    # `%IX0.0` is a direct address, not a tag
    if is_numeric_literal(trimmed) or _is_string_literal(trimmed) or trimmed.startswith("%"):
        return LiteralValue(text=trimmed)
    if looks_like_expression(trimmed) or _is_function_call(trimmed):
        return _parse_expression(trimmed)
    return _parse_tag_path(trimmed)


def _is_function_call(text: str) -> bool:
    call = _CALL_RE.match(text)
    return call is not None and call.group(1).upper() in KNOWN_FUNCTIONS


def is_numeric_literal(text: str) -> bool:
    if text.startswith(_RADIX_PREFIXES):
        return True
    unsigned = text.lstrip("+-")
    if not unsigned or not unsigned[0].isdigit():
        return False
    return all(c in _NUMBER_CHARS for c in unsigned)


def _is_string_literal(text: str) -> bool:
    return len(text) >= 2 and text[0] == text[-1] and text[0] in "'\""


def _top_level(text: str):
    """Yield ``(index, char, at_top)`` outside of brackets and parentheses."""
    depth = 0
    for i, c in enumerate(text):
        if c in "([":
            depth += 1
            yield i, c, False
        elif c in ")]":
            depth -= 1
            yield i, c, False
        else:
            yield i, c, depth == 0


def looks_like_expression(text: str) -> bool:
    """Whether *text* has an operator (or a second word) outside brackets."""
    seen_term = False
    after_space = False
    for _, c, top in _top_level(text):
        if not top:
            seen_term = True
            continue
        if c in _OPERATOR_CHARS:
            return True
        if c == "-":
            if seen_term:
                return True
        elif c.isspace():
            after_space = seen_term
        else:
            if after_space:
                # tag names never contain blanks: `A AND B`
                return True
            seen_term = True
    return False


def _split_terms(text: str) -> list[str]:
    """Top-level terms of an expression, operators dropped."""
    terms: list[str] = []
    current: list[str] = []

    def flush():
        term = "".join(current).strip()
        current.clear()
        if term and term.upper() not in _WORD_OPERATORS:
            terms.append(term)

    for _, c, top in _top_level(text):
        if top and (c in _OPERATOR_CHARS or c == "-" or c.isspace()):
            flush()
        else:
            current.append(c)
    flush()
    return terms


def _strip_outer_parens(text: str) -> str:
    while text.startswith("(") and text.endswith(")"):
        depth = 0
        for i, c in enumerate(text):
            if c == "(":
                depth += 1
            elif c == ")":
                depth -= 1
                if depth == 0 and i != len(text) - 1:
                    return text
        text = text[1:-1].strip()
    return text


def _split_args(args: str) -> list[str]:
    parts: list[str] = []
    start = 0
    for i, c, top in _top_level(args):
        if top and c == ",":
            parts.append(args[start:i])
            start = i + 1
    parts.append(args[start:])
    return [p.strip() for p in parts if p.strip()]


def _parse_expression(text: str) -> ExpressionValue:
    terms: list[OperandValue] = []
    _collect_terms(text, terms)
    return ExpressionValue(text=text, terms=terms)


def _collect_terms(text: str, terms: list[OperandValue]) -> None:
    for term in _split_terms(text):
        call = _CALL_RE.match(term)
        if call is not None and _balanced(call.group(2)):
            # ATN(Tag), or an unknown function whose arguments are still tags
            for arg in _split_args(call.group(2)):
                _add_term(parse_operand_value(arg), terms)
            continue
        stripped = _strip_outer_parens(term)
        if stripped != term or looks_like_expression(stripped):
            _collect_terms(stripped, terms)
            continue
        _add_term(parse_operand_value(stripped), terms)


def _add_term(value: OperandValue, terms: list[OperandValue]) -> None:
    if value.kind == "tag":
        terms.append(value)
    elif value.kind == "expression":
        terms.extend(value.terms)


def _balanced(text: str) -> bool:
    depth = 0
    for c in text:
        if c in "([":
            depth += 1
        elif c in ")]":
            depth -= 1
            if depth < 0:
                return False
    return depth == 0


def _take_bracketed(text: str, start: int) -> tuple[str, int]:
    """Contents of the bracket opened at *start* and the index after it."""
    depth = 0
    for i in range(start, len(text)):
        if text[i] == "[":
            depth += 1
        elif text[i] == "]":
            depth -= 1
            if depth == 0:
                return text[start + 1:i], i + 1
    return text[start + 1:], len(text)


def _parse_tag_path(text: str) -> TagPath:
    i = 0
    n = len(text)
    while i < n and text[i] not in ".[:":
        i += 1
    base = text[:i]

    # module address `Local:1:I`
    while i < n and text[i] == ":":
        i += 1
        while i < n and text[i] not in ":.[":
            i += 1

    indices: list[OperandValue] = []
    while i < n:
        c = text[i]
        if c == "[":
            inner, i = _take_bracketed(text, i)
            for part in _split_args(inner):
                if part[0].isalpha() or part[0] == "_" or looks_like_expression(part):
                    value = parse_operand_value(part)
                    if value.kind != "literal":
                        indices.append(value)
        elif c == ".":
            i += 1
            if i < n and text[i] == "[":
                # indirect member `.[Other]`
                inner, i = _take_bracketed(text, i)
                value = parse_operand_value(inner)
                if value.kind != "literal":
                    indices.append(value)
            else:
                while i < n and text[i] not in ".[":
                    i += 1
        else:
            i += 1
    return TagPath(base=base, full_path=text, indices=indices)
