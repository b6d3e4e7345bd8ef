"""POU bodies of the neutral model.

Text languages keep their source text; graphical languages keep a flat list
of instructions per rung or network; SFC keeps steps and transitions.  Bodies
in languages the model does not understand are carried as ``RawBody``.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Operands and instructions
# ---------------------------------------------------------------------------

class TagOperand(BaseModel):
    """A tag reference; *name* is the base tag of *full_text*."""

    kind: Literal["tag"] = "tag"
    name: str
    full_text: str


class LiteralOperand(BaseModel):
    kind: Literal["literal"] = "literal"
    text: str


class ExpressionOperand(BaseModel):
    kind: Literal["expression"] = "expression"
    text: str


class AddressOperand(BaseModel):
    """A direct address such as ``%IX0.1``."""

    kind: Literal["address"] = "address"
    text: str


ModelOperand = Annotated[
    Union[TagOperand, LiteralOperand, ExpressionOperand, AddressOperand],
    Field(discriminator="kind"),
]


class Position(BaseModel):
    rung: int
    column: int


class Instruction(BaseModel):
    mnemonic: str
    operands: list[ModelOperand] = []
    position: Position | None = None


class Rung(BaseModel):
    """One ladder rung; *raw_text* keeps the rung text it was built from."""

    number: int
    comment: str | None = None
    instructions: list[Instruction] = []
    raw_text: str | None = None


class Network(BaseModel):
    number: int
    label: str | None = None
    instructions: list[Instruction] = []


# ---------------------------------------------------------------------------
# SFC
# ---------------------------------------------------------------------------

class SfcAction(BaseModel):
    name: str
    qualifier: str = "N"
    body: Body | None = None


class SfcStep(BaseModel):
    name: str
    is_initial: bool = False
    actions: list[SfcAction] = []


class SfcTransition(BaseModel):
    name: str | None = None
    from_steps: list[str] = []
    to_steps: list[str] = []
    condition: str = ""


# ---------------------------------------------------------------------------
# Bodies
# ---------------------------------------------------------------------------

class StBody(BaseModel):
    kind: Literal["st"] = "st"
    text: str = ""

    @property
    def language(self) -> str:
        return "ST"

    def is_empty(self) -> bool:
        return not self.text.strip()


class IlBody(BaseModel):
    kind: Literal["il"] = "il"
    text: str = ""

    @property
    def language(self) -> str:
        return "IL"

    def is_empty(self) -> bool:
        return not self.text.strip()


class LdBody(BaseModel):
    kind: Literal["ld"] = "ld"
    rungs: list[Rung] = []

    @property
    def language(self) -> str:
        return "LD"

    def is_empty(self) -> bool:
        return not self.rungs


class FbdBody(BaseModel):
    kind: Literal["fbd"] = "fbd"
    networks: list[Network] = []

    @property
    def language(self) -> str:
        return "FBD"

    def is_empty(self) -> bool:
        return not self.networks


class SfcBody(BaseModel):
    kind: Literal["sfc"] = "sfc"
    steps: list[SfcStep] = []
    transitions: list[SfcTransition] = []

    @property
    def language(self) -> str:
        return "SFC"

    def is_empty(self) -> bool:
        return not self.steps


class RawBody(BaseModel):
    """Source in a language the model does not parse, e.g. ``RLL`` text."""

    kind: Literal["raw"] = "raw"
    language: str
    content: str = ""

    def is_empty(self) -> bool:
        return not self.content.strip()


Body = Annotated[
    Union[StBody, IlBody, LdBody, FbdBody, SfcBody, RawBody],
    Field(discriminator="kind"),
]

SfcAction.model_rebuild()
SfcStep.model_rebuild()
SfcBody.model_rebuild()
