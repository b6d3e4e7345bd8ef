"""Summary counts over a ``Project``."""

from __future__ import annotations

from pydantic import BaseModel

from .pou import PouKind
from .project import Project


class ProjectStats(BaseModel):
    programs: int = 0
    function_blocks: int = 0
    functions: int = 0
    total_pous: int = 0
    empty_pous: int = 0
    data_types: int = 0
    global_vars: int = 0
    total_vars: int = 0
    tasks: int = 0
    bodies_by_language: dict[str, int] = {}

    @classmethod
    def from_project(cls, project: Project) -> ProjectStats:
        stats = cls(total_pous=len(project.pous), data_types=len(project.data_types))
        for pou in project.pous:
            if pou.kind == PouKind.PROGRAM:
                stats.programs += 1
            elif pou.kind == PouKind.FUNCTION_BLOCK:
                stats.function_blocks += 1
            else:
                stats.functions += 1
            stats.total_vars += pou.interface.variable_count()
            if pou.is_empty():
                stats.empty_pous += 1
            if pou.body is not None:
                language = pou.body.language
                stats.bodies_by_language[language] = stats.bodies_by_language.get(language, 0) + 1
        if project.configuration is not None:
            for resource in project.configuration.resources:
                stats.tasks += len(resource.tasks)
                stats.global_vars += len(resource.global_vars)
        return stats
