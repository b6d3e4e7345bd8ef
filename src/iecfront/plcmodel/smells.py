"""Smells found on the neutral model.

These work across POUs, so they see what the per-POU analyses cannot:
variables declared in one place and used nowhere, names used without any
declaration, POUs without code and function blocks never called.
"""

from __future__ import annotations

from enum import Enum
from fnmatch import fnmatchcase

from pydantic import BaseModel

from iecfront.analysis.diagnostics import Severity

from .project import Project
from .xref import CrossReference


class ModelSmellKind(str, Enum):
    UNUSED_TAG = "UNUSED_TAG"
    UNDEFINED_TAG = "UNDEFINED_TAG"
    EMPTY_POU = "EMPTY_POU"
    UNUSED_POU = "UNUSED_POU"


# ladder instructions and status bits that look like tags in raw text;
# `S:FS` reaches here as its base `S`
_BUILTIN_NAMES = frozenset({
    "S", "S:FS", "S:Z", "S:N", "S:C", "S:V", "AFI", "NOP",
    "XIC", "XIO", "OTE", "OTL", "OTU", "ONS", "OSR", "OSF",
    "TON", "TOF", "RTO", "CTU", "CTD", "RES",
    "ADD", "SUB", "MUL", "DIV", "MOD", "NEG", "ABS", "SQRT",
    "MOV", "COP", "CPS", "FLL", "CLR",
    "EQU", "NEQ", "LES", "LEQ", "GRT", "GEQ", "CMP", "LIM",
    "JSR", "JMP", "LBL", "RET", "SBR", "TND", "MCR", "END",
})


class ModelSmellConfig(BaseModel):
    """Switches and ignore lists; patterns are shell globs (``Spare*``)."""

    unused_tags: bool = True
    undefined_tags: bool = True
    empty_pous: bool = True
    unused_pous: bool = True
    ignore_patterns: list[str] = []
    ignore_scopes: list[str] = []


class ModelSmell(BaseModel):
    kind: ModelSmellKind
    severity: Severity
    scope: str
    name: str
    message: str

    def __str__(self) -> str:
        return f"{self.severity.value.lower()}: {self.message} ({self.scope})"


def _ignored(config: ModelSmellConfig, name: str, scope: str | None = None) -> bool:
    if scope is not None and scope in config.ignore_scopes:
        return True
    return any(fnmatchcase(name, pattern) for pattern in config.ignore_patterns)


def detect_model_smells(
    project: Project,
    config: ModelSmellConfig | None = None,
    xref: CrossReference | None = None,
) -> list[ModelSmell]:
    """Cross-POU smells of *project*, in POU order then by name.

    *xref* is built when not given.
    """
    config = config or ModelSmellConfig()
    xref = xref or CrossReference.build(project)
    smells: list[ModelSmell] = []

    if config.unused_tags:
        scoped = [(pou.name, var) for pou in project.pous for var in pou.all_variables()]
        scoped.extend(("Configuration", var) for var in project.global_variables())
        for scope, var in scoped:
            if var.name in xref.used_tags or _ignored(config, var.name, scope):
                continue
            smells.append(ModelSmell(
                kind=ModelSmellKind.UNUSED_TAG, severity=Severity.HINT, scope=scope, name=var.name,
                message=f"tag '{var.name}' is defined but never used",
            ))

    if config.undefined_tags:
        for name in xref.undefined_tags():
            if name.upper() in _BUILTIN_NAMES or _ignored(config, name):
                continue
            smells.append(ModelSmell(
                kind=ModelSmellKind.UNDEFINED_TAG, severity=Severity.WARNING, scope=project.name,
                name=name, message=f"tag '{name}' is used but not defined",
            ))

    if config.empty_pous:
        for pou in project.pous:
            if pou.is_empty() and not _ignored(config, pou.name, pou.name):
                smells.append(ModelSmell(
                    kind=ModelSmellKind.EMPTY_POU, severity=Severity.HINT, scope=pou.name,
                    name=pou.name, message=f"POU '{pou.name}' has no code",
                ))

    if config.unused_pous:
        for name in xref.unused_pous():
            if not _ignored(config, name, name):
                smells.append(ModelSmell(
                    kind=ModelSmellKind.UNUSED_POU, severity=Severity.HINT, scope=project.name,
                    name=name, message=f"POU '{name}' is never called",
                ))
    return smells
