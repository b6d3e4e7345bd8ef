"""Vendor-neutral project model.

Every dialect converts into the same ``Project`` shape, and cross-reference,
statistics and model smells work on that shape only.

Public API::

    from iecfront.plcmodel import to_plc_model, CrossReference, ProjectStats

    project = to_plc_model(unit, name="Line1", dialect=SCL)
    xref = CrossReference.build(project)
    stats = ProjectStats.from_project(project)
    smells = detect_model_smells(project, xref=xref)
"""

from .body import (
    AddressOperand,
    Body,
    ExpressionOperand,
    FbdBody,
    IlBody,
    Instruction,
    LdBody,
    LiteralOperand,
    ModelOperand,
    Network,
    Position,
    RawBody,
    Rung,
    SfcAction,
    SfcBody,
    SfcStep,
    SfcTransition,
    StBody,
    TagOperand,
)
from .convert import controller_to_plc_model, to_plc_model
from .pou import Interface, Pou, PouKind
from .project import Configuration, Project, Resource, Task, TaskType
from .smells import ModelSmell, ModelSmellConfig, ModelSmellKind, detect_model_smells
from .stats import ProjectStats
from .types import (
    AliasDef,
    ArrayDef,
    ArrayDimension,
    DataTypeDef,
    EnumDef,
    EnumMember,
    StructDef,
    StructMember,
    SubrangeDef,
    TypeDefinition,
)
from .variables import VarClass, Variable
from .xref import CrossReference, ReferenceLocation, TagReference

__all__ = [
    "AddressOperand", "AliasDef", "ArrayDef", "ArrayDimension", "Body", "Configuration",
    "CrossReference", "DataTypeDef", "EnumDef", "EnumMember", "ExpressionOperand",
    "FbdBody", "IlBody", "Instruction", "Interface", "LdBody", "LiteralOperand",
    "ModelOperand", "ModelSmell", "ModelSmellConfig", "ModelSmellKind", "Network",
    "Pou", "PouKind", "Position", "Project", "ProjectStats", "RawBody",
    "ReferenceLocation", "Resource", "Rung", "SfcAction", "SfcBody", "SfcStep",
    "SfcTransition", "StBody", "StructDef", "StructMember", "SubrangeDef",
    "TagOperand", "TagReference", "Task", "TaskType", "TypeDefinition", "VarClass",
    "Variable", "controller_to_plc_model", "detect_model_smells", "to_plc_model",
]
