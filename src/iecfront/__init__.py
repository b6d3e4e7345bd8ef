"""iecfront: IEC 61131-3 front end for generic ST, Siemens SCL and Rockwell ST.

The dialect modules share one parser and one syntax tree; everything
downstream (analysis, the neutral model, cross-reference) is dialect-blind.

Public API::

    from iecfront import st, scl, rockwell
    from iecfront import analyze_pou, build_cfg, to_plc_model, CrossReference

    unit = scl.parse_source(text)
    diagnostics = analyze_pou(unit.find("Main"), unit=unit)
    project = to_plc_model(unit, dialect=SCL)
"""

from . import rockwell, scl, st
from .analysis import (
    Diagnostic,
    DiagnosticKind,
    Severity,
    SmellConfig,
    SmellDetector,
    SymbolTable,
    TypeChecker,
    analyze_pou,
    build_cfg,
)
from .dialect import DIALECTS, GENERIC_ST, ROCKWELL_ST, SCL, Dialect
from .errors import ParseError, ParseErrorKind, SecurityError
from .plcmodel import CrossReference, Project, controller_to_plc_model, to_plc_model
from .project import Controller, analyze_controller
from .rll import parse_rung
from .security import ParserLimits
from .span import Span

__all__ = [
    "DIALECTS", "GENERIC_ST", "ROCKWELL_ST", "SCL", "Controller", "CrossReference",
    "Diagnostic", "DiagnosticKind", "Dialect", "ParseError", "ParseErrorKind",
    "ParserLimits", "Project", "SecurityError", "Severity", "SmellConfig",
    "SmellDetector", "Span", "SymbolTable", "TypeChecker", "analyze_controller",
    "analyze_pou", "build_cfg", "controller_to_plc_model", "parse_rung", "rockwell",
    "scl", "st", "to_plc_model",
]
