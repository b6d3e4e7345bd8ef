"""Variables of the neutral model.

Unlike the dialect ASTs, a model variable records its class on itself, so a
flat list of variables is still meaningful outside of its interface.
"""

from __future__ import annotations

import math
from enum import Enum

from pydantic import BaseModel


class VarClass(str, Enum):
    INPUT = "INPUT"
    OUTPUT = "OUTPUT"
    IN_OUT = "IN_OUT"
    LOCAL = "LOCAL"
    TEMP = "TEMP"
    EXTERNAL = "EXTERNAL"
    GLOBAL = "GLOBAL"
    CONFIG = "CONFIG"
    ACCESS = "ACCESS"


class Variable(BaseModel):
    """A named, typed data element.

    *data_type* is the type name as written; *dimensions* holds the element
    count of each array dimension (empty for scalars).
    """

    name: str
    data_type: str
    var_class: VarClass = VarClass.LOCAL
    initial_value: str | None = None
    description: str | None = None
    address: str | None = None
    dimensions: list[int] = []
    constant: bool = False
    retain: bool = False

    @classmethod
    def input(cls, name: str, data_type: str) -> Variable:
        return cls(name=name, data_type=data_type, var_class=VarClass.INPUT)

    @classmethod
    def output(cls, name: str, data_type: str) -> Variable:
        return cls(name=name, data_type=data_type, var_class=VarClass.OUTPUT)

    @classmethod
    def in_out(cls, name: str, data_type: str) -> Variable:
        return cls(name=name, data_type=data_type, var_class=VarClass.IN_OUT)

    @property
    def is_array(self) -> bool:
        return bool(self.dimensions)

    @property
    def array_size(self) -> int:
        return math.prod(self.dimensions) if self.dimensions else 1
