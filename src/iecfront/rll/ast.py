"""Ladder rung structure.

A rung is a series of elements ended by ``;``.  An element is either an
instruction ``MNEMONIC(op,op,...)`` or a parallel group ``[branch,branch]``
whose branches are themselves series of elements.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from iecfront.span import Span

from .errors import RllError
from .operand import parse_operand_value


class Operand(BaseModel):
    """An instruction argument; ``value`` is None for the inferred ``?``."""

    value: str | None = None

    @classmethod
    def inferred(cls) -> Operand:
        return cls()

    @classmethod
    def of(cls, value: str) -> Operand:
        return cls(value=value)

    @property
    def is_inferred(self) -> bool:
        return self.value is None

    def as_value(self) -> str | None:
        return self.value

    def __str__(self) -> str:
        return "?" if self.value is None else self.value


class TagReference(BaseModel):
    """A tag mentioned by one operand of one instruction."""

    name: str
    full_operand: str
    instruction: str
    operand_index: int


class Instruction(BaseModel):
    kind: Literal["instruction"] = "instruction"
    mnemonic: str
    operands: list[Operand] = []
    span: Span = Field(default_factory=Span.empty)

    def tag_references(self) -> list[TagReference]:
        refs = []
        for index, operand in enumerate(self.operands):
            if operand.value is None:
                continue
            for tag in parse_operand_value(operand.value).all_tags():
                refs.append(TagReference(
                    name=tag,
                    full_operand=operand.value,
                    instruction=self.mnemonic,
                    operand_index=index,
                ))
        return refs

    def __str__(self) -> str:
        return f"{self.mnemonic}({','.join(str(op) for op in self.operands)})"


class Branch(BaseModel):
    elements: list[RungElement] = []


class Parallel(BaseModel):
    kind: Literal["parallel"] = "parallel"
    branches: list[Branch] = []
    span: Span = Field(default_factory=Span.empty)

    def __str__(self) -> str:
        return "[" + ",".join(_series(b.elements) for b in self.branches) + "]"


RungElement = Annotated[Union[Instruction, Parallel], Field(discriminator="kind")]

Branch.model_rebuild()
Parallel.model_rebuild()


def _series(elements: list) -> str:
    return "".join(str(e) for e in elements)


def _iter_instructions(elements: list) -> Iterator[Instruction]:
    stack = list(reversed(elements))
    while stack:
        element = stack.pop()
        if element.kind == "instruction":
            yield element
        else:
            for branch in reversed(element.branches):
                stack.extend(reversed(branch.elements))


class RungContent(BaseModel):
    elements: list[RungElement] = []

    def instructions(self) -> list[Instruction]:
        """Every instruction, parallel branches flattened, in text order."""
        return list(_iter_instructions(self.elements))

    def tag_references(self) -> list[TagReference]:
        refs = []
        for instruction in _iter_instructions(self.elements):
            refs.extend(instruction.tag_references())
        return refs

    def __str__(self) -> str:
        return _series(self.elements) + ";"


@dataclass
class Rung:
    """One rung of text with either its parsed content or its parse error."""

    raw_text: str
    content: RungContent | None = None
    error: RllError | None = None

    @classmethod
    def ok(cls, raw_text: str, content: RungContent) -> Rung:
        return cls(raw_text, content=content)

    @classmethod
    def err(cls, raw_text: str, error: RllError) -> Rung:
        return cls(raw_text, error=error)

    @property
    def is_parsed(self) -> bool:
        return self.content is not None

    def instructions(self) -> list[Instruction]:
        return self.content.instructions() if self.content is not None else []

    def tag_references(self) -> list[TagReference]:
        return self.content.tag_references() if self.content is not None else []
