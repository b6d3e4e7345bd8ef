"""User data type definitions of the neutral model.

``DataTypeDef`` names a type; its *definition* is one of the tagged shapes
below.  Member and element types are plain type names, never nested
definitions: a named type is always referred to by name.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, model_validator


class ArrayDimension(BaseModel):
    lower: int = 0
    upper: int = 0

    @model_validator(mode="after")
    def _ordered(self):
        if self.upper < self.lower:
            raise ValueError(f"array dimension {self.lower}..{self.upper} is empty")
        return self

    @classmethod
    def zero_based(cls, size: int) -> ArrayDimension:
        return cls(lower=0, upper=size - 1)

    @classmethod
    def one_based(cls, size: int) -> ArrayDimension:
        return cls(lower=1, upper=size)

    @property
    def size(self) -> int:
        return self.upper - self.lower + 1


class StructMember(BaseModel):
    name: str
    data_type: str
    initial_value: str | None = None
    description: str | None = None
    dimensions: list[int] = []


class EnumMember(BaseModel):
    name: str
    value: int | None = None
    description: str | None = None


class AliasDef(BaseModel):
    kind: Literal["alias"] = "alias"
    target: str


class StructDef(BaseModel):
    kind: Literal["struct"] = "struct"
    members: list[StructMember] = []


class EnumDef(BaseModel):
    kind: Literal["enum"] = "enum"
    base_type: str | None = None
    members: list[EnumMember] = []


class ArrayDef(BaseModel):
    kind: Literal["array"] = "array"
    element_type: str
    dimensions: list[ArrayDimension] = []


class SubrangeDef(BaseModel):
    kind: Literal["subrange"] = "subrange"
    base_type: str
    lower: int
    upper: int


TypeDefinition = Annotated[
    Union[AliasDef, StructDef, EnumDef, ArrayDef, SubrangeDef],
    Field(discriminator="kind"),
]


class DataTypeDef(BaseModel):
    name: str
    description: str | None = None
    definition: TypeDefinition

    @classmethod
    def structure(cls, name: str, members: list[StructMember]) -> DataTypeDef:
        return cls(name=name, definition=StructDef(members=members))

    @classmethod
    def enumeration(cls, name: str, members: list[EnumMember]) -> DataTypeDef:
        return cls(name=name, definition=EnumDef(members=members))

    @classmethod
    def alias(cls, name: str, target: str) -> DataTypeDef:
        return cls(name=name, definition=AliasDef(target=target))

    def referenced_types(self) -> list[str]:
        """Type names this definition is built from."""
        d = self.definition
        if d.kind == "alias":
            return [d.target]
        if d.kind == "struct":
            return [m.data_type for m in d.members]
        if d.kind == "array":
            return [d.element_type]
        if d.kind == "subrange":
            return [d.base_type]
        return [d.base_type] if d.base_type else []
