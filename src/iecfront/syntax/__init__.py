"""Syntax tree shared by the generic ST, SCL and Rockwell ST parsers.

Public API::

    from iecfront.syntax import CompilationUnit, Assignment, BinaryExpr
"""

from .declarations import (
    AccessModifier,
    ClassDecl,
    CompilationUnit,
    DataBlockDecl,
    DataTypeDecl,
    Declaration,
    FunctionBlockDecl,
    FunctionDecl,
    GlobalVarDecl,
    InterfaceDecl,
    MethodDecl,
    NamespaceDecl,
    OrganizationBlockDecl,
    Pragma,
    ProgramDecl,
    RetainFlag,
    TypeDecl,
    VarBlock,
    VarClass,
    VarDecl,
)
from .expressions import (
    Argument,
    ArrayAccessExpr,
    ArrayInitExpr,
    BinaryExpr,
    BinaryOp,
    CallExpr,
    DerefExpr,
    DirectAddressExpr,
    Expression,
    InferredArg,
    LiteralExpr,
    LiteralKind,
    MemberAccessExpr,
    NamedArg,
    OutputArg,
    ParenExpr,
    PositionalArg,
    RepeatedInit,
    StructInitExpr,
    UnaryExpr,
    UnaryOp,
    Variable,
    VariableRef,
)
from .statements import (
    Assignment,
    AssignOp,
    CaseBranch,
    CaseRange,
    CaseStatement,
    CaseValue,
    ContinueStatement,
    EmptyStatement,
    ExitStatement,
    FbInvocation,
    ForStatement,
    FunctionCallStatement,
    GotoStatement,
    IfBranch,
    IfStatement,
    LabelStatement,
    RegionStatement,
    RepeatStatement,
    ReturnStatement,
    Statement,
    WhileStatement,
)
from .types import (
    ArrayDimension,
    ArrayType,
    ElementaryType,
    EnumType,
    EnumValue,
    RefType,
    StructField,
    StructType,
    SubrangeType,
    TypeSpec,
    UserDefinedType,
)

__all__ = [
    "AccessModifier", "Argument", "ArrayAccessExpr", "ArrayDimension", "ArrayInitExpr",
    "ArrayType", "AssignOp", "Assignment", "BinaryExpr", "BinaryOp", "CallExpr",
    "CaseBranch", "CaseRange", "CaseStatement", "CaseValue", "ClassDecl",
    "CompilationUnit", "ContinueStatement", "DataBlockDecl", "DataTypeDecl",
    "Declaration", "DerefExpr", "DirectAddressExpr", "ElementaryType", "EmptyStatement",
    "EnumType", "EnumValue", "ExitStatement", "Expression", "FbInvocation",
    "ForStatement", "FunctionBlockDecl", "FunctionCallStatement", "FunctionDecl",
    "GlobalVarDecl", "GotoStatement", "IfBranch", "IfStatement", "InferredArg",
    "InterfaceDecl", "LabelStatement", "LiteralExpr", "LiteralKind", "MemberAccessExpr",
    "MethodDecl", "NamedArg", "NamespaceDecl", "OrganizationBlockDecl", "OutputArg",
    "ParenExpr", "PositionalArg", "Pragma", "ProgramDecl", "RefType", "RegionStatement",
    "RepeatStatement", "RepeatedInit", "RetainFlag", "ReturnStatement", "Statement",
    "StructField", "StructInitExpr", "StructType", "SubrangeType", "TypeDecl",
    "TypeSpec", "UnaryExpr", "UnaryOp", "UserDefinedType", "VarBlock", "VarClass",
    "VarDecl", "Variable", "VariableRef", "WhileStatement",
]
