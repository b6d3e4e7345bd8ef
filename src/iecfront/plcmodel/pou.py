"""Program Organization Units of the neutral model."""

from __future__ import annotations

from collections.abc import Iterator
from enum import Enum

from pydantic import BaseModel

from .body import Body
from .variables import Variable


class PouKind(str, Enum):
    PROGRAM = "PROGRAM"
    FUNCTION_BLOCK = "FUNCTION_BLOCK"
    FUNCTION = "FUNCTION"


class Interface(BaseModel):
    """The variable interface of a POU, one list per role."""

    inputs: list[Variable] = []
    outputs: list[Variable] = []
    in_outs: list[Variable] = []
    locals: list[Variable] = []
    temps: list[Variable] = []
    externals: list[Variable] = []
    return_type: str | None = None

    def all_variables(self) -> Iterator[Variable]:
        yield from self.inputs
        yield from self.outputs
        yield from self.in_outs
        yield from self.locals
        yield from self.temps
        yield from self.externals

    def find_variable(self, name: str) -> Variable | None:
        for var in self.all_variables():
            if var.name == name:
                return var
        return None

    def variable_count(self) -> int:
        return sum(1 for _ in self.all_variables())


class Pou(BaseModel):
    name: str
    kind: PouKind
    description: str | None = None
    interface: Interface = Interface()
    body: Body | None = None

    def is_empty(self) -> bool:
        return self.body is None or self.body.is_empty()

    def all_variables(self) -> Iterator[Variable]:
        return self.interface.all_variables()

    def find_variable(self, name: str) -> Variable | None:
        return self.interface.find_variable(name)
