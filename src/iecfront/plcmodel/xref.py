"""Project-wide cross-reference.

``CrossReference.build`` walks every POU body of a ``Project`` and records
which tags are referenced where, which POUs and instructions are called and
which types are used.

Ladder text (raw ``RLL`` bodies) is parsed rung by rung with the ladder
parser; rungs it rejects are scanned for ``MNEMONIC(op,...)`` groups instead.
ST bodies are parsed with the project's dialect and walked; when a body does
not parse, its tokens are scanned for identifiers.  IL bodies are read line by
line as ``OPERATOR operand``.

Public API::

    from iecfront.plcmodel import CrossReference

    xref = CrossReference.build(project)
    xref.is_tag_used("Motor")
    for ref in xref.references_to("Motor"):
        print(ref.location.path(), ref.instruction, ref.full_operand)
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass, field

from pydantic import BaseModel

from iecfront.dialect import DIALECTS, GENERIC_ST, ROCKWELL_ST, Dialect
from iecfront.errors import ParseError
from iecfront.export.st import format_expression
from iecfront.lexer import TokenKind, tokenize
from iecfront.parser import parse_statements
from iecfront.rll import Instruction as RllInstruction, Operand as RllOperand, parse_operand_value, parse_rung
from iecfront.security import walks_deep_trees
from iecfront.syntax.walk import iter_statements, iter_subexpressions, iter_variable_accesses, statement_expressions

from .body import Body, Instruction
from .pou import Pou, PouKind
from .project import Project

logger = logging.getLogger(__name__)

T = TokenKind

_ROUTINE_HEADER = re.compile(r"^\s*//\s*Routine:\s*(\S+)")
_MNEMONIC = re.compile(r"[A-Za-z_][A-Za-z0-9_]*(?=\()")
_IL_COMMENT = re.compile(r"\(\*.*?\*\)")

_IDENTIFIER_KINDS = frozenset({T.IDENTIFIER, T.QUOTED_IDENTIFIER})

# first word of an IL line that is an operator, not an operand
IL_OPERATORS = frozenset({
    "LD", "LDN", "ST", "STN", "S", "R", "AND", "ANDN", "OR", "ORN", "XOR", "XORN",
    "NOT", "ADD", "SUB", "MUL", "DIV", "MOD", "GT", "GE", "EQ", "NE", "LE", "LT",
    "JMP", "JMPC", "JMPCN", "CAL", "CALC", "CALCN", "RET", "RETC", "RETCN",
})

_SOURCE_DIALECTS = {**DIALECTS, "l5x": ROCKWELL_ST}


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

class ReferenceLocation(BaseModel):
    pou: str
    routine: str | None = None
    rung: int | None = None

    @classmethod
    def in_pou(cls, pou: str) -> ReferenceLocation:
        return cls(pou=pou)

    @classmethod
    def in_routine(cls, pou: str, routine: str) -> ReferenceLocation:
        return cls(pou=pou, routine=routine)

    @classmethod
    def at_rung(cls, pou: str, routine: str | None, rung: int) -> ReferenceLocation:
        return cls(pou=pou, routine=routine, rung=rung)

    def path(self) -> str:
        parts = [self.pou]
        if self.routine is not None:
            parts.append(self.routine)
        if self.rung is not None:
            parts.append(f"Rung#{self.rung}")
        return "/".join(parts)


class TagReference(BaseModel):
    tag_name: str
    full_operand: str
    instruction: str
    location: ReferenceLocation


# ---------------------------------------------------------------------------
# Cross-reference
# ---------------------------------------------------------------------------

@dataclass
class CrossReference:
    references: list[TagReference] = field(default_factory=list)
    used_tags: set[str] = field(default_factory=set)
    defined_tags: set[str] = field(default_factory=set)
    used_pous: set[str] = field(default_factory=set)
    used_types: set[str] = field(default_factory=set)
    defined_pous: dict[str, PouKind] = field(default_factory=dict)
    _tag_index: dict[str, list[int]] = field(default_factory=dict, repr=False)

    @classmethod
    @walks_deep_trees
    def build(cls, project: Project) -> CrossReference:
        """Index every body, interface and data type of *project*."""
        xref = cls()
        dialect = _SOURCE_DIALECTS.get(project.source_format or "", GENERIC_ST)
        for pou in project.pous:
            xref.defined_pous[pou.name] = pou.kind
            for var in pou.all_variables():
                xref.defined_tags.add(var.name)
                xref.used_types.add(var.data_type)
            if pou.interface.return_type is not None:
                xref.used_types.add(pou.interface.return_type)
            if pou.body is not None:
                _BodyWalker(xref, pou, dialect).walk(pou.body)
        for var in project.global_variables():
            xref.defined_tags.add(var.name)
            xref.used_types.add(var.data_type)
        for dt in project.data_types:
            xref.used_types.add(dt.name)
            xref.used_types.update(dt.referenced_types())
        # a declared instance uses its function block
        xref.used_pous.update(
            name for name, kind in xref.defined_pous.items()
            if kind == PouKind.FUNCTION_BLOCK and name in xref.used_types
        )
        logger.debug(
            "%s: %d reference(s) to %d tag(s)", project.name, len(xref.references), len(xref.used_tags),
        )
        return xref

    # -- recording -----------------------------------------------------------

    def add_reference(self, tag: str, full_operand: str, instruction: str, location: ReferenceLocation) -> None:
        self._tag_index.setdefault(tag, []).append(len(self.references))
        self.references.append(TagReference(
            tag_name=tag, full_operand=full_operand, instruction=instruction, location=location,
        ))
        self.used_tags.add(tag)

    # -- queries -------------------------------------------------------------

    def references_to(self, tag: str) -> list[TagReference]:
        return [self.references[i] for i in self._tag_index.get(tag, ())]

    def is_tag_used(self, tag: str) -> bool:
        return tag in self.used_tags

    def is_pou_used(self, pou: str) -> bool:
        return pou in self.used_pous

    def is_type_used(self, type_name: str) -> bool:
        return type_name in self.used_types

    def unused_tags(self) -> list[str]:
        """Declared variables that no body mentions."""
        return sorted(self.defined_tags - self.used_tags)

    def undefined_tags(self) -> list[str]:
        """Names used in bodies that no interface or global list declares."""
        return sorted(self.used_tags - self.defined_tags)

    def unused_pous(self) -> list[str]:
        """Functions and function blocks never called.  Programs are run by tasks and never count."""
        return sorted(
            name for name, kind in self.defined_pous.items()
            if kind != PouKind.PROGRAM and name not in self.used_pous
        )


# ---------------------------------------------------------------------------
# Body extraction
# ---------------------------------------------------------------------------

class _BodyWalker:
    def __init__(self, xref: CrossReference, pou: Pou, dialect: Dialect) -> None:
        self.xref = xref
        self.pou = pou
        self.dialect = dialect
        self.variables = {v.name for v in pou.all_variables()}
        # a function (or method) assigns its result through its own name
        self.result = pou.name.rsplit(".", 1)[-1] if pou.kind == PouKind.FUNCTION else None

    def walk(self, body: Body) -> None:
        _BODY_WALKERS[body.kind](self, body)

    def _here(self, routine: str | None = None, rung: int | None = None) -> ReferenceLocation:
        return ReferenceLocation(pou=self.pou.name, routine=routine, rung=rung)

    # -- graphical bodies ----------------------------------------------------

    def _instruction(self, instr: Instruction, location: ReferenceLocation) -> None:
        self.xref.used_pous.add(instr.mnemonic)
        for operand in instr.operands:
            if operand.kind == "tag":
                self.xref.add_reference(operand.name, operand.full_text, instr.mnemonic, location)
            elif operand.kind == "expression":
                for tag in parse_operand_value(operand.text).all_tags():
                    self.xref.add_reference(tag, operand.text, instr.mnemonic, location)

    def _walk_ld(self, body) -> None:
        for rung in body.rungs:
            location = self._here(rung=rung.number)
            if rung.instructions:
                for instr in rung.instructions:
                    self._instruction(instr, location)
            elif rung.raw_text:
                self._rll_rung(rung.raw_text, location)

    def _walk_fbd(self, body) -> None:
        for network in body.networks:
            location = self._here(rung=network.number)
            for instr in network.instructions:
                self._instruction(instr, location)

    def _walk_sfc(self, body) -> None:
        for step in body.steps:
            for action in step.actions:
                if action.body is not None:
                    self.walk(action.body)
        for transition in body.transitions:
            self._scan_tokens(transition.condition, "SFC", self._here())

    # -- ladder text ---------------------------------------------------------

    def _walk_raw(self, body) -> None:
        if body.language.upper() not in ("RLL", "LD"):
            self._scan_tokens(body.content, body.language, self._here())
            return
        routine = None
        number = 0
        for rung_text in _split_rungs(body.content):
            header = _ROUTINE_HEADER.match(rung_text)
            if header is not None:
                routine = header.group(1)
                number = 0
                continue
            self._rll_rung(rung_text, self._here(routine, number))
            number += 1

    def _rll_rung(self, text: str, location: ReferenceLocation) -> None:
        rung = parse_rung(text if text.rstrip().endswith(";") else text + ";")
        instructions = rung.instructions() if rung.is_parsed else _scan_instructions(text)
        for instr in instructions:
            self.xref.used_pous.add(instr.mnemonic)
            for ref in instr.tag_references():
                self.xref.add_reference(ref.name, ref.full_operand, ref.instruction, location)

    # -- text languages ------------------------------------------------------

    def _walk_st(self, body) -> None:
        location = self._here()
        try:
            stmts = parse_statements(body.text, dialect=self.dialect, declared=self.variables)
        except ParseError:
            logger.debug("%s: ST body does not parse, scanning tokens", self.pou.name)
            self._scan_tokens(body.text, "ST", location)
            return
        for stmt in iter_statements(stmts):
            for root in statement_expressions(stmt):
                self._st_expression(root, location)

    def _st_expression(self, root, location: ReferenceLocation) -> None:
        for name, node in iter_variable_accesses(root):
            if name == self.result:
                continue
            self.xref.add_reference(name, format_expression(node), "ST", location)
        for node in iter_subexpressions(root):
            if node.kind == "function_call":
                self._call(node.name, location)

    def _call(self, name: str, location: ReferenceLocation) -> None:
        if name in self.variables:
            # an FB instance called like a function
            self.xref.add_reference(name, name, "ST", location)
        else:
            self.xref.used_pous.add(name)

    def _scan_tokens(self, text: str, instruction: str, location: ReferenceLocation) -> None:
        tokens = tokenize(text, self.dialect)
        calls: list[bool] = []
        for i, tok in enumerate(tokens):
            kind = tok.kind
            if kind == T.LPAREN:
                calls.append(i > 0 and tokens[i - 1].kind in _IDENTIFIER_KINDS)
                continue
            if kind == T.RPAREN:
                if calls:
                    calls.pop()
                continue
            if kind not in _IDENTIFIER_KINDS:
                continue
            prev = tokens[i - 1] if i > 0 else None
            nxt = tokens[i + 1]
            if prev is not None and prev.kind == T.DOT:
                continue
            if nxt.kind == T.HASH or (
                prev is not None and prev.kind == T.HASH and i > 1 and tokens[i - 2].kind in _IDENTIFIER_KINDS
            ):
                # typed literal `Color#Red`
                continue
            if nxt.kind == T.LPAREN:
                self._call(tok.text, location)
                continue
            if nxt.kind in (T.ASSIGN, T.ARROW) and calls and calls[-1]:
                # formal parameter name inside a call
                continue
            end = i
            while tokens[end + 1].kind == T.DOT and tokens[end + 2].kind in _IDENTIFIER_KINDS:
                end += 2
            full = text[tok.span.start:tokens[end].span.end]
            self.xref.add_reference(tok.text.strip('"'), full, instruction, location)

    def _walk_il(self, body) -> None:
        location = self._here()
        for line in body.text.splitlines():
            line = _IL_COMMENT.sub("", line).split("//", 1)[0].strip()
            label, sep, rest = line.partition(":")
            if sep and label.strip().isidentifier() and not rest.startswith("="):
                line = rest.strip()
            if not line:
                continue
            words = line.split(None, 1)
            operator = words[0].upper()
            if len(words) < 2 or operator.startswith("JMP"):
                continue
            operand = words[1].split(",", 1)[0].strip()
            if operator.startswith("CAL"):
                operand = operand.split("(", 1)[0].strip()
            if operand.upper() in ("TRUE", "FALSE") or "#" in operand:
                continue
            for tag in parse_operand_value(operand).all_tags():
                self.xref.add_reference(tag, operand, operator if operator in IL_OPERATORS else "IL", location)


_BODY_WALKERS = {
    "st": _BodyWalker._walk_st,
    "il": _BodyWalker._walk_il,
    "ld": _BodyWalker._walk_ld,
    "fbd": _BodyWalker._walk_fbd,
    "sfc": _BodyWalker._walk_sfc,
    "raw": _BodyWalker._walk_raw,
}


# ---------------------------------------------------------------------------
# Heuristic ladder scanning
# ---------------------------------------------------------------------------

def _split_rungs(content: str) -> Iterator[str]:
    """Routine header comments and ``;``-terminated rung texts, in order."""
    pending: list[str] = []
    for line in content.splitlines():
        if _ROUTINE_HEADER.match(line):
            if "".join(pending).strip():
                yield "".join(pending)
            pending = []
            yield line
            continue
        line = line.split("//", 1)[0]
        for piece in re.split(r"(?<=;)", line):
            pending.append(piece)
            if piece.rstrip().endswith(";"):
                yield "".join(pending).strip()
                pending = []
        pending.append("\n")
    if "".join(pending).strip():
        yield "".join(pending).strip()


def _scan_instructions(text: str) -> list[RllInstruction]:
    """``MNEMONIC(op,...)`` groups found anywhere in *text*, brackets balanced."""
    instructions = []
    pos = 0
    while True:
        match = _MNEMONIC.search(text, pos)
        if match is None:
            return instructions
        start = match.end() + 1
        depth = 0
        end = start
        while end < len(text):
            c = text[end]
            if c in "([":
                depth += 1
            elif c in ")]":
                if depth == 0:
                    break
                depth -= 1
            end += 1
        operands = [
            RllOperand.inferred() if part.strip() == "?" else RllOperand.of(part.strip())
            for part in _split_top_level(text[start:end])
            if part.strip()
        ]
        instructions.append(RllInstruction(mnemonic=match.group(0), operands=operands))
        pos = end + 1


def _split_top_level(text: str) -> list[str]:
    parts = []
    depth = 0
    current = []
    for c in text:
        if c in "([":
            depth += 1
        elif c in ")]":
            depth -= 1
        if c == "," and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(c)
    parts.append("".join(current))
    return parts
