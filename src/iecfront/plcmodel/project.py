"""Top-level Project container of the neutral model."""

from __future__ import annotations

from collections.abc import Iterator
from enum import Enum

from pydantic import BaseModel, model_validator

from .pou import Pou, PouKind
from .types import DataTypeDef
from .variables import Variable


class TaskType(str, Enum):
    CONTINUOUS = "CONTINUOUS"
    PERIODIC = "PERIODIC"
    EVENT = "EVENT"


class Task(BaseModel):
    name: str
    task_type: TaskType = TaskType.CONTINUOUS
    priority: int = 10
    period_ms: int | None = None
    trigger_tag: str | None = None
    watchdog_ms: int | None = None
    programs: list[str] = []

    @model_validator(mode="after")
    def _validate_trigger(self):
        if self.task_type == TaskType.PERIODIC and self.period_ms is None:
            raise ValueError("PERIODIC task requires 'period_ms'")
        if self.task_type == TaskType.EVENT and self.trigger_tag is None:
            raise ValueError("EVENT task requires 'trigger_tag'")
        if self.task_type == TaskType.CONTINUOUS and self.period_ms is not None:
            raise ValueError("CONTINUOUS task must not have 'period_ms'")
        return self


class Resource(BaseModel):
    name: str
    tasks: list[Task] = []
    global_vars: list[Variable] = []


class Configuration(BaseModel):
    name: str
    resources: list[Resource] = []


class Project(BaseModel):
    """POUs and data types of one project.

    *source_format* names the dialect or vendor format the project was built
    from (``st``, ``scl``, ``rockwell``, ``l5x``); the cross-reference uses it
    to pick a lexer for ST bodies.
    """

    name: str
    description: str | None = None
    data_types: list[DataTypeDef] = []
    pous: list[Pou] = []
    configuration: Configuration | None = None
    source_format: str | None = None

    def find_pou(self, name: str) -> Pou | None:
        for pou in self.pous:
            if pou.name == name:
                return pou
        return None

    def find_data_type(self, name: str) -> DataTypeDef | None:
        for dt in self.data_types:
            if dt.name == name:
                return dt
        return None

    def _of_kind(self, kind: PouKind) -> Iterator[Pou]:
        return (p for p in self.pous if p.kind == kind)

    def programs(self) -> Iterator[Pou]:
        return self._of_kind(PouKind.PROGRAM)

    def function_blocks(self) -> Iterator[Pou]:
        return self._of_kind(PouKind.FUNCTION_BLOCK)

    def functions(self) -> Iterator[Pou]:
        return self._of_kind(PouKind.FUNCTION)

    def global_variables(self) -> Iterator[Variable]:
        if self.configuration is None:
            return
        for resource in self.configuration.resources:
            yield from resource.global_vars
