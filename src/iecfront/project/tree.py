"""Controller project tree.

The shape of a Rockwell controller export after XML deserialisation: a
controller with tags, programs, add-on instructions and user data types.
Reading the XML itself is left to the caller; these models are what the
project analyzer and the model converter consume.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class RoutineType(str, Enum):
    RLL = "RLL"
    ST = "ST"
    FBD = "FBD"
    SFC = "SFC"


class TagUsage(str, Enum):
    INPUT = "Input"
    OUTPUT = "Output"
    IN_OUT = "InOut"
    PUBLIC = "Public"
    LOCAL = "Local"


class Tag(BaseModel):
    """A controller, program or AOI-local tag.

    *dimensions* is the export's textual form, e.g. ``"10"`` or ``"4 8"``.
    """

    name: str
    data_type: str | None = None
    usage: TagUsage | None = None
    dimensions: str | None = None
    constant: bool = False
    description: str | None = None

    def dimension_sizes(self) -> list[int]:
        if not self.dimensions:
            return []
        parts = self.dimensions.replace(",", " ").replace("x", " ").split()
        return [int(p) for p in parts if p.isdigit()]


class AoiParameter(BaseModel):
    name: str
    data_type: str | None = None
    usage: TagUsage = TagUsage.INPUT
    required: bool = False
    description: str | None = None


class RungText(BaseModel):
    number: int = 0
    text: str | None = None
    comment: str | None = None


class Routine(BaseModel):
    """A routine; ladder routines carry *rungs*, ST routines *st_lines*."""

    name: str
    routine_type: RoutineType = RoutineType.RLL
    rungs: list[RungText] = []
    st_lines: list[str] = []

    @property
    def st_source(self) -> str:
        return "\n".join(self.st_lines)


class Program(BaseModel):
    name: str
    main_routine: str | None = None
    description: str | None = None
    tags: list[Tag] = []
    routines: list[Routine] = []


class AddOnInstruction(BaseModel):
    name: str
    revision: str | None = None
    description: str | None = None
    parameters: list[AoiParameter] = []
    local_tags: list[Tag] = []
    routines: list[Routine] = []


class DataTypeMember(BaseModel):
    name: str
    data_type: str
    dimension: int = 0
    description: str | None = None


class UserDataType(BaseModel):
    name: str
    description: str | None = None
    members: list[DataTypeMember] = []


class Controller(BaseModel):
    name: str
    processor_type: str | None = None
    tags: list[Tag] = []
    programs: list[Program] = []
    add_on_instructions: list[AddOnInstruction] = []
    data_types: list[UserDataType] = []

    def find_program(self, name: str) -> Program | None:
        for program in self.programs:
            if program.name == name:
                return program
        return None

    def find_aoi(self, name: str) -> AddOnInstruction | None:
        for aoi in self.add_on_instructions:
            if aoi.name == name:
                return aoi
        return None
