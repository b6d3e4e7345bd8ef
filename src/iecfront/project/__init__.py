"""Controller project trees and their whole-project analysis.

Public API::

    from iecfront.project import Controller, Program, Routine, RungText, analyze_controller

    controller = Controller(name="Plant", programs=[Program(name="Main", routines=[...])])
    analysis = analyze_controller(controller)
"""

from .analyzer import (
    AOI_PREFIX,
    AoiCallSource,
    AoiReference,
    LimitFailure,
    LocatedRung,
    LocatedTagReference,
    ParsedStRoutine,
    ParseStats,
    ProjectAnalysis,
    RoutineSummary,
    RungLocation,
    StLocation,
    analyze_controller,
    aoi_owner,
)
from .tree import (
    AddOnInstruction,
    AoiParameter,
    Controller,
    DataTypeMember,
    Program,
    Routine,
    RoutineType,
    RungText,
    Tag,
    TagUsage,
    UserDataType,
)

__all__ = [
    "AOI_PREFIX", "AddOnInstruction", "AoiCallSource", "AoiParameter", "AoiReference",
    "Controller", "DataTypeMember", "LimitFailure", "LocatedRung", "LocatedTagReference",
    "ParseStats", "ParsedStRoutine", "Program", "ProjectAnalysis", "Routine",
    "RoutineSummary", "RoutineType", "RungLocation", "RungText", "StLocation", "Tag",
    "TagUsage", "UserDataType", "analyze_controller", "aoi_owner",
]
