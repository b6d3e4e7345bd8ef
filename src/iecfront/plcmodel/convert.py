"""Conversion from dialect syntax trees and controller trees to the model.

The conversion is structural: declarations are copied into the neutral shape,
expressions are rendered back to text and bodies become normalized ST.
Nothing is resolved or reinterpreted.

Public API::

    from iecfront.plcmodel import to_plc_model, controller_to_plc_model

    project = to_plc_model(parse_source(text), name="Line1")
    project = controller_to_plc_model(controller)
"""

from __future__ import annotations

import logging

from iecfront.dialect import GENERIC_ST, Dialect
from iecfront.export.st import format_expression, format_statements
from iecfront.security import walks_deep_trees
from iecfront.syntax.declarations import CompilationUnit, RetainFlag, VarClass as AstVarClass
from iecfront.syntax.expressions import LiteralKind, UnaryOp
from iecfront.syntax.types import type_spec_name

from .body import RawBody, StBody
from .pou import Interface, Pou, PouKind
from .project import Configuration, Project, Resource
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
)
from .variables import VarClass, Variable

logger = logging.getLogger(__name__)

_VAR_CLASSES = {
    AstVarClass.LOCAL: VarClass.LOCAL,
    AstVarClass.INPUT: VarClass.INPUT,
    AstVarClass.OUTPUT: VarClass.OUTPUT,
    AstVarClass.IN_OUT: VarClass.IN_OUT,
    AstVarClass.TEMP: VarClass.TEMP,
    AstVarClass.GLOBAL: VarClass.GLOBAL,
    AstVarClass.EXTERNAL: VarClass.EXTERNAL,
    AstVarClass.ACCESS: VarClass.ACCESS,
    AstVarClass.CONFIG: VarClass.CONFIG,
}

# interface list that holds each variable class
_INTERFACE_SLOTS = {
    VarClass.INPUT: "inputs",
    VarClass.OUTPUT: "outputs",
    VarClass.IN_OUT: "in_outs",
    VarClass.TEMP: "temps",
    VarClass.EXTERNAL: "externals",
}

_POU_KINDS = {
    "program": PouKind.PROGRAM,
    "organization_block": PouKind.PROGRAM,
    "function": PouKind.FUNCTION,
    "function_block": PouKind.FUNCTION_BLOCK,
    "class": PouKind.FUNCTION_BLOCK,
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _int_value(expr) -> int | None:
    """Value of an integer literal, optionally negated; None for anything else."""
    if expr is None:
        return None
    if expr.kind == "paren":
        return _int_value(expr.inner)
    if expr.kind == "unary" and expr.op == UnaryOp.NEG:
        value = _int_value(expr.operand)
        return -value if value is not None else None
    if expr.kind == "literal" and expr.literal_kind == LiteralKind.INTEGER:
        return int(expr.value)
    return None


def _dimensions(spec) -> list[ArrayDimension]:
    dims = []
    for dim in spec.dims:
        low, high = _int_value(dim.low), _int_value(dim.high)
        if low is not None and high is not None and high >= low:
            dims.append(ArrayDimension(lower=low, upper=high))
    return dims


def _type_and_sizes(spec) -> tuple[str, list[int]]:
    if spec.kind == "array":
        return type_spec_name(spec.element), [d.size for d in _dimensions(spec)]
    return type_spec_name(spec), []


def _variable(block, decl) -> Variable:
    data_type, sizes = _type_and_sizes(decl.type_spec)
    return Variable(
        name=decl.name,
        data_type=data_type,
        var_class=_VAR_CLASSES[block.var_class],
        initial_value=format_expression(decl.initial) if decl.initial is not None else None,
        address=decl.address,
        dimensions=sizes,
        constant=block.constant,
        retain=block.retain == RetainFlag.RETAIN,
    )


def _interface(code_unit) -> Interface:
    interface = Interface()
    for block, decl in code_unit.iter_var_decls():
        var = _variable(block, decl)
        getattr(interface, _INTERFACE_SLOTS.get(var.var_class, "locals")).append(var)
    return_type = getattr(code_unit, "return_type", None)
    if return_type is not None:
        interface.return_type = type_spec_name(return_type)
    return interface


def _st_body(stmts: list) -> StBody | None:
    return StBody(text=format_statements(stmts)) if stmts else None


def _data_type(type_decl) -> DataTypeDef:
    spec = type_decl.type_spec
    kind = spec.kind
    if kind == "struct":
        members = []
        for f in spec.fields:
            data_type, sizes = _type_and_sizes(f.type_spec)
            members.append(StructMember(
                name=f.name,
                data_type=data_type,
                initial_value=format_expression(f.initial) if f.initial is not None else None,
                dimensions=sizes,
            ))
        definition = StructDef(members=members)
    elif kind == "enum":
        definition = EnumDef(
            base_type=spec.base_type,
            members=[EnumMember(name=v.name, value=_int_value(v.value)) for v in spec.values],
        )
    elif kind == "array":
        definition = ArrayDef(element_type=type_spec_name(spec.element), dimensions=_dimensions(spec))
    elif kind == "subrange" and _int_value(spec.low) is not None and _int_value(spec.high) is not None:
        definition = SubrangeDef(
            base_type=spec.base_type, lower=_int_value(spec.low), upper=_int_value(spec.high),
        )
    else:
        definition = AliasDef(target=type_spec_name(spec))
    return DataTypeDef(name=type_decl.name, definition=definition)


# ---------------------------------------------------------------------------
# Syntax trees
# ---------------------------------------------------------------------------

@walks_deep_trees
def to_plc_model(unit: CompilationUnit, name: str = "Project", *, dialect: Dialect = GENERIC_ST) -> Project:
    """Convert a parsed compilation unit of any dialect to a ``Project``.

    Programs, organization blocks, functions, function blocks and classes
    become POUs (classes as function blocks).  Methods become functions named
    ``Owner.Method``.  TYPE blocks become data types.  Global variable blocks
    and data blocks become the global variables of a single resource; a shared
    data block also becomes a struct type of the same name.  Interfaces have
    no neutral counterpart and are skipped.
    """
    project = Project(name=name, source_format=dialect.name)
    global_vars: list[Variable] = []

    for decl in unit.iter_declarations():
        kind = decl.kind
        if kind in _POU_KINDS:
            project.pous.append(Pou(
                name=decl.name,
                kind=_POU_KINDS[kind],
                interface=_interface(decl),
                body=_st_body(decl.body),
            ))
            for method in getattr(decl, "methods", ()):
                project.pous.append(Pou(
                    name=f"{decl.name}.{method.name}",
                    kind=PouKind.FUNCTION,
                    interface=_interface(method),
                    body=_st_body(method.body),
                ))
        elif kind == "data_type":
            project.data_types.extend(_data_type(t) for t in decl.types)
        elif kind == "global_var":
            global_vars.extend(_variable(decl.var_block, v) for v in decl.var_block.declarations)
        elif kind == "data_block":
            if decl.instance_of is None:
                members = [
                    StructMember(name=v.name, data_type=v.data_type, initial_value=v.initial_value,
                                 dimensions=v.dimensions)
                    for v in _interface(decl).all_variables()
                ]
                project.data_types.append(DataTypeDef.structure(decl.name, members))
            global_vars.append(Variable(
                name=decl.name,
                data_type=decl.instance_of or decl.name,
                var_class=VarClass.GLOBAL,
            ))

    if global_vars:
        project.configuration = Configuration(
            name=name, resources=[Resource(name="Resource", global_vars=global_vars)],
        )
    logger.debug("converted %s: %d POU(s), %d type(s)", name, len(project.pous), len(project.data_types))
    return project


# ---------------------------------------------------------------------------
# Controller trees
# ---------------------------------------------------------------------------

_TAG_CLASSES = {
    "Input": VarClass.INPUT,
    "Output": VarClass.OUTPUT,
    "InOut": VarClass.IN_OUT,
}


def _tag_variable(tag, default: VarClass) -> Variable:
    usage = tag.usage.value if tag.usage is not None else None
    return Variable(
        name=tag.name,
        data_type=tag.data_type or "DINT",
        var_class=_TAG_CLASSES.get(usage, default),
        description=tag.description,
        dimensions=tag.dimension_sizes(),
        constant=tag.constant,
    )


def _routines_body(routines) -> RawBody | StBody | None:
    """Ladder routines joined as raw RLL text; ST routines only when there is no ladder."""
    rll_parts = []
    st_parts = []
    for routine in routines:
        if routine.routine_type.value == "RLL":
            rungs = [r.text.strip() for r in routine.rungs if r.text and r.text.strip()]
            if rungs:
                rll_parts.append(f"// Routine: {routine.name}\n" + "\n".join(rungs))
        elif routine.routine_type.value == "ST" and routine.st_lines:
            st_parts.append(f"// Routine: {routine.name}\n{routine.st_source}")
    if rll_parts:
        return RawBody(language="RLL", content="\n\n".join(rll_parts))
    if st_parts:
        return StBody(text="\n\n".join(st_parts))
    return None


@walks_deep_trees
def controller_to_plc_model(controller) -> Project:
    """Convert a controller tree to a ``Project``.

    Programs become PROGRAM POUs with their tags as locals; add-on
    instructions become FUNCTION_BLOCK POUs with their parameters split by
    usage.  Controller tags become global variables and user data types
    become struct types.
    """
    project = Project(name=controller.name, source_format="l5x")

    for udt in controller.data_types:
        project.data_types.append(DataTypeDef(
            name=udt.name,
            description=udt.description,
            definition=StructDef(members=[
                StructMember(
                    name=m.name, data_type=m.data_type, description=m.description,
                    dimensions=[m.dimension] if m.dimension else [],
                )
                for m in udt.members
            ]),
        ))

    for program in controller.programs:
        interface = Interface(locals=[_tag_variable(t, VarClass.LOCAL) for t in program.tags])
        project.pous.append(Pou(
            name=program.name,
            kind=PouKind.PROGRAM,
            description=program.description,
            interface=interface,
            body=_routines_body(program.routines),
        ))

    for aoi in controller.add_on_instructions:
        interface = Interface()
        for param in aoi.parameters:
            var = Variable(
                name=param.name,
                data_type=param.data_type or "DINT",
                var_class=_TAG_CLASSES.get(param.usage.value, VarClass.LOCAL),
                description=param.description,
            )
            getattr(interface, _INTERFACE_SLOTS.get(var.var_class, "locals")).append(var)
        interface.locals.extend(_tag_variable(t, VarClass.LOCAL) for t in aoi.local_tags)
        project.pous.append(Pou(
            name=aoi.name,
            kind=PouKind.FUNCTION_BLOCK,
            description=aoi.description,
            interface=interface,
            body=_routines_body(aoi.routines),
        ))

    if controller.tags:
        project.configuration = Configuration(
            name=controller.name,
            resources=[Resource(
                name=controller.name,
                global_vars=[_tag_variable(t, VarClass.GLOBAL) for t in controller.tags],
            )],
        )
    logger.debug("converted controller %s: %d POU(s)", controller.name, len(project.pous))
    return project
