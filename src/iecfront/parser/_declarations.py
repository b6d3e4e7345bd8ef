"""Declaration parsing: POUs, variable blocks, type specifications, TYPE blocks,
namespaces and the SCL block forms.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import TYPE_CHECKING

from iecfront.errors import ParseError, ParseErrorKind
from iecfront.lexer import Token, TokenKind
from iecfront.span import Span
from iecfront.syntax.declarations import (
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
from iecfront.syntax.types import (
    ELEMENTARY_TYPE_NAMES,
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

from ._core import DECLARATION_KEYWORDS, VAR_BLOCK_KEYWORDS, nested

if TYPE_CHECKING:
    from . import Parser

T = TokenKind

_VAR_CLASSES: dict[TokenKind, VarClass] = {
    T.VAR: VarClass.LOCAL,
    T.VAR_INPUT: VarClass.INPUT,
    T.VAR_OUTPUT: VarClass.OUTPUT,
    T.VAR_IN_OUT: VarClass.IN_OUT,
    T.VAR_TEMP: VarClass.TEMP,
    T.VAR_GLOBAL: VarClass.GLOBAL,
    T.VAR_EXTERNAL: VarClass.EXTERNAL,
    T.VAR_ACCESS: VarClass.ACCESS,
    T.VAR_CONFIG: VarClass.CONFIG,
}

_ACCESS_MODIFIERS: dict[TokenKind, AccessModifier] = {
    T.PUBLIC: AccessModifier.PUBLIC,
    T.PRIVATE: AccessModifier.PRIVATE,
    T.PROTECTED: AccessModifier.PROTECTED,
    T.INTERNAL: AccessModifier.INTERNAL,
}

# SCL block attributes, written ``TITLE = text`` or ``VERSION : 0.1``
_BLOCK_ATTRIBUTES = frozenset({"TITLE", "AUTHOR", "FAMILY", "NAME", "VERSION", "KNOW_HOW_PROTECT"})

_PRAGMA_ENTRY_RE = re.compile(r"([A-Za-z_][A-Za-z0-9_]*)\s*:=\s*('[^']*'|\"[^\"]*\"|[^,;]+)")


def _pragma_entries(text: str) -> dict[str, str]:
    entries = {}
    for key, value in _PRAGMA_ENTRY_RE.findall(text):
        entries[key] = value.strip().strip("'\"")
    return entries


# ---------------------------------------------------------------------------
# Declaration mixin
# ---------------------------------------------------------------------------

class _DeclarationMixin:
    """Mixin providing declaration parsing methods for Parser."""

    _DECLARATION_PARSERS: dict[TokenKind, Callable]

    def parse_compilation_unit(self: Parser) -> CompilationUnit:
        declarations = self._parse_declarations_until(T.EOF)
        unit = CompilationUnit(declarations=declarations, span=Span(start=0, end=len(self.source)))
        self.tracker.record_node(unit.span)
        return unit

    def _parse_declarations_until(self: Parser, end: TokenKind) -> list[Declaration]:
        declarations: list[Declaration] = []
        count = 0
        while not self.at(end, T.EOF):
            count += 1
            self.tick(count)
            start_pos = self.pos
            try:
                decl = self.parse_declaration()
            except ParseError as err:
                if not self.can_recover(err):
                    raise
                self.synchronize(err, start_pos, DECLARATION_KEYWORDS | {end},
                                 consume_semicolon=False)
                continue
            if decl is not None:
                self.push(declarations, decl)
        return declarations

    @nested
    def parse_declaration(self: Parser) -> Declaration | None:
        tok = self.peek()
        handler = self._DECLARATION_PARSERS.get(tok.kind)
        if handler is not None:
            if tok.kind in (T.DATA_BLOCK, T.ORGANIZATION_BLOCK) and not self.dialect.scl:
                raise self.unexpected("declaration")
            return handler(self)
        if tok.kind == T.SEMICOLON:
            self.advance()
            return None
        raise self.unexpected("declaration")

    # -- pragmas and SCL attributes ------------------------------------------

    def take_pragmas(self: Parser) -> list[Pragma]:
        """Pragmas written directly before the current token."""
        toks = self.pragmas.pop(self.pos, [])
        pragmas = []
        for tok in toks:
            pragma = Pragma(text=tok.value, entries=_pragma_entries(tok.value), span=tok.span)
            self.tracker.record_node(pragma.span)
            pragmas.append(pragma)
        return pragmas

    def _parse_block_attributes(self: Parser) -> dict[str, str]:
        attributes: dict[str, str] = {}
        if not self.dialect.scl:
            return attributes
        count = 0
        while self.at(T.IDENTIFIER) and self.peek().text.upper() in _BLOCK_ATTRIBUTES:
            count += 1
            self.tick(count)
            key = self.peek().text.upper()
            if key == "KNOW_HOW_PROTECT":
                self.advance()
                attributes[key] = "TRUE"
                continue
            if self.peek(1).kind not in (T.EQ, T.COLON):
                break
            self.advance()
            sep = self.advance()
            line_end = self.source.find("\n", sep.span.end)
            if line_end == -1:
                line_end = len(self.source)
            attributes[key] = self.source[sep.span.end:line_end].strip().strip("'\"")
            inner = 0
            while not self.at(T.EOF) and self.peek().span.start < line_end:
                inner += 1
                self.tick(inner)
                self.advance()
        return attributes

    def _parse_header_extras(self: Parser) -> tuple[dict[str, str], list[Pragma]]:
        pragmas = self.take_pragmas()
        attributes = self._parse_block_attributes()
        pragmas.extend(self.take_pragmas())
        return attributes, pragmas

    # -- variable blocks -------------------------------------------------------

    def _parse_var_blocks(self: Parser) -> list[VarBlock]:
        blocks: list[VarBlock] = []
        count = 0
        while self.at_any(VAR_BLOCK_KEYWORDS):
            count += 1
            self.tick(count)
            self.push(blocks, self.parse_var_block())
        return blocks

    @nested
    def parse_var_block(self: Parser) -> VarBlock:
        tok = self.advance()
        var_class = _VAR_CLASSES.get(tok.kind)
        if var_class is None:
            raise ParseError(ParseErrorKind.INVALID_DECLARATION, tok.span, detail=tok.text)
        constant = False
        retain = RetainFlag.NONE
        while True:
            if self.accept(T.CONSTANT):
                constant = True
            elif self.accept(T.RETAIN):
                retain = RetainFlag.RETAIN
            elif self.accept(T.NON_RETAIN):
                retain = RetainFlag.NON_RETAIN
            else:
                break

        declarations: list[VarDecl] = []
        count = 0
        while not self.at(T.END_VAR, T.EOF):
            count += 1
            self.tick(count)
            for decl in self._parse_var_decls():
                self.push(declarations, decl)
        if self.at(T.EOF):
            raise ParseError(ParseErrorKind.MISSING_TERMINATOR, tok.span, expected="'END_VAR'")
        self.advance()
        self.accept(T.SEMICOLON)
        return self.make(VarBlock, tok.span, var_class=var_class, constant=constant,
                         retain=retain, declarations=declarations)

    def _parse_var_decls(self: Parser) -> list[VarDecl]:
        """``a, b AT %IX0.0 : INT := 5;`` gives one VarDecl per name."""
        pragmas = self.take_pragmas()
        names = [self.expect_name("variable name")]
        while self.accept(T.COMMA):
            self.push(names, self.expect_name("variable name"))
        pragmas.extend(self.take_pragmas())
        address = None
        if self.accept(T.AT):
            address = self.expect(T.DIRECT_ADDRESS, "direct address").text
        self.expect(T.COLON)
        type_spec = self.parse_type_spec()
        initial = None
        if self.accept(T.ASSIGN):
            initial = self.parse_initializer()
        self.expect_semicolon()

        decls = []
        for index, name in enumerate(names):
            # every name owns its own subtrees
            fields = {
                "name": self.name_of(name),
                "type_spec": type_spec if index == 0 else type_spec.model_copy(deep=True),
                "initial": initial if index == 0 or initial is None else initial.model_copy(deep=True),
                "address": address,
                "pragmas": pragmas if index == 0 else [p.model_copy(deep=True) for p in pragmas],
            }
            decls.append(self.make(VarDecl, name.span, **fields))
        return decls

    # -- type specifications ---------------------------------------------------

    @nested
    def parse_type_spec(self: Parser) -> TypeSpec:
        tok = self.peek()
        if tok.kind == T.ARRAY:
            return self._parse_array_type()
        if tok.kind == T.STRUCT:
            return self._parse_struct_type()
        if tok.kind == T.REF_TO:
            self.advance()
            inner = self.parse_type_spec()
            return self.make(RefType, tok.span, inner=inner)
        if (
            tok.kind == T.IDENTIFIER
            and tok.text.upper() == "POINTER"
            and self.peek(1).kind == T.TO
        ):
            self.advance()
            self.advance()
            inner = self.parse_type_spec()
            return self.make(RefType, tok.span, inner=inner)
        if tok.kind in (T.STRING, T.WSTRING):
            self.advance()
            length = None
            if self.at(T.LBRACKET, T.LPAREN):
                opener = self.advance()
                length = self.parse_expression()
                closer = T.RBRACKET if opener.kind == T.LBRACKET else T.RPAREN
                self.expect(closer)
            return self.make(ElementaryType, tok.span, name=tok.kind.value, length=length)
        if tok.kind in (T.IDENTIFIER, T.QUOTED_IDENTIFIER):
            name_tok = self.expect_name("type name")
            name = self.name_of(name_tok)
            if name.upper() in ELEMENTARY_TYPE_NAMES and name_tok.kind == T.IDENTIFIER:
                if self.at(T.LPAREN):
                    return self._parse_subrange(name_tok)
                return self.make(ElementaryType, tok.span, name=name.upper())
            return self.make(UserDefinedType, tok.span, name=name)
        raise self.invalid(ParseErrorKind.INVALID_TYPE)

    def _parse_array_type(self: Parser) -> ArrayType:
        tok = self.advance()
        opener = self.expect(T.LBRACKET)
        dims: list[ArrayDimension] = []
        while True:
            start = self.peek()
            low = self.parse_expression()
            self.expect(T.RANGE)
            high = self.parse_expression()
            self.push(dims, self.make(ArrayDimension, start.span, low=low, high=high))
            if not self.accept(T.COMMA):
                break
        self.expect_closing(T.RBRACKET, opener, ParseErrorKind.UNCLOSED_BRACKET)
        self.expect(T.OF)
        element = self.parse_type_spec()
        return self.make(ArrayType, tok.span, dims=dims, element=element)

    def _parse_struct_type(self: Parser) -> StructType:
        tok = self.advance()
        fields: list[StructField] = []
        count = 0
        while not self.at(T.END_STRUCT, T.EOF):
            count += 1
            self.tick(count)
            for decl in self._parse_var_decls():
                field = self.make(StructField, decl.span, name=decl.name,
                                  type_spec=decl.type_spec, initial=decl.initial)
                self.push(fields, field)
        if self.at(T.EOF):
            raise ParseError(ParseErrorKind.MISSING_TERMINATOR, tok.span, expected="'END_STRUCT'")
        self.advance()
        return self.make(StructType, tok.span, fields=fields)

    def _parse_subrange(self: Parser, base: Token) -> SubrangeType:
        self.expect(T.LPAREN)
        low = self.parse_expression()
        self.expect(T.RANGE)
        high = self.parse_expression()
        self.expect(T.RPAREN)
        return self.make(SubrangeType, base.span, base_type=base.text.upper(), low=low, high=high)

    def _parse_enum_type(self: Parser) -> EnumType:
        opener = self.advance()
        values: list[EnumValue] = []
        while True:
            name = self.expect(T.IDENTIFIER, "enumeration value")
            value = None
            if self.accept(T.ASSIGN):
                value = self.parse_expression()
            self.push(values, self.make(EnumValue, name.span, name=name.text, value=value))
            if not self.accept(T.COMMA):
                break
        self.expect_closing(T.RPAREN, opener, ParseErrorKind.UNCLOSED_PAREN)
        base_type = None
        if self.at(T.IDENTIFIER) and self.peek().text.upper() in ELEMENTARY_TYPE_NAMES:
            base_type = self.advance().text.upper()
        return self.make(EnumType, opener.span, values=values, base_type=base_type)

    # -- TYPE blocks -----------------------------------------------------------

    def _parse_data_type(self: Parser) -> DataTypeDecl:
        tok = self.advance()
        pragmas = self.take_pragmas()
        types: list[TypeDecl] = []
        count = 0
        while not self.at(T.END_TYPE, T.EOF):
            count += 1
            self.tick(count)
            pragmas.extend(self.take_pragmas())
            self.push(types, self._parse_type_decl())
        if self.at(T.EOF):
            raise ParseError(ParseErrorKind.MISSING_TERMINATOR, tok.span, expected="'END_TYPE'")
        self.advance()
        self.accept(T.SEMICOLON)
        return self.make(DataTypeDecl, tok.span, types=types, pragmas=pragmas)

    def _parse_type_decl(self: Parser) -> TypeDecl:
        name = self.expect_name("type name")
        if not self.accept(T.COLON):
            # SCL: TYPE "UDT" VERSION : 0.1 STRUCT ... END_STRUCT; END_TYPE
            if not self.dialect.scl:
                raise self.unexpected("':'")
            self._parse_block_attributes()
            self.take_pragmas()
        if self.at(T.LPAREN):
            type_spec = self._parse_enum_type()
        else:
            type_spec = self.parse_type_spec()
        initial = None
        if self.accept(T.ASSIGN):
            initial = self.parse_initializer()
        self.accept(T.SEMICOLON)
        return self.make(TypeDecl, name.span, name=self.name_of(name),
                         type_spec=type_spec, initial=initial)

    # -- POUs ----------------------------------------------------------------

    def _parse_pou_body(self: Parser, var_blocks: list[VarBlock], end: TokenKind) -> list:
        names = {decl.name for block in var_blocks for decl in block.declarations}
        self.enter_pou(names)
        try:
            self.accept(T.BEGIN)
            return self.parse_body(end)
        finally:
            self.exit_pou()

    def _finish_pou(self: Parser, end: TokenKind, opener: Token) -> None:
        if self.at(T.EOF):
            raise ParseError(ParseErrorKind.MISSING_TERMINATOR, opener.span,
                             expected=f"'{end.value}'")
        self.expect(end)
        self.accept(T.SEMICOLON)

    def _parse_return_type(self: Parser) -> TypeSpec | None:
        if self.accept(T.COLON):
            return self.parse_type_spec()
        return None

    def _parse_program(self: Parser) -> ProgramDecl:
        tok = self.advance()
        name = self.expect_name("program name")
        attributes, pragmas = self._parse_header_extras()
        var_blocks = self._parse_var_blocks()
        body = self._parse_pou_body(var_blocks, T.END_PROGRAM)
        self._finish_pou(T.END_PROGRAM, tok)
        return self.make(ProgramDecl, tok.span, name=self.name_of(name), var_blocks=var_blocks,
                         body=body, attributes=attributes, pragmas=pragmas)

    def _parse_function(self: Parser) -> FunctionDecl:
        tok = self.advance()
        name = self.expect_name("function name")
        return_type = self._parse_return_type()
        attributes, pragmas = self._parse_header_extras()
        var_blocks = self._parse_var_blocks()
        body = self._parse_pou_body(var_blocks, T.END_FUNCTION)
        self._finish_pou(T.END_FUNCTION, tok)
        return self.make(FunctionDecl, tok.span, name=self.name_of(name),
                         return_type=return_type, var_blocks=var_blocks, body=body,
                         attributes=attributes, pragmas=pragmas)

    def _parse_inheritance(self: Parser) -> tuple[str | None, list[str]]:
        extends = None
        implements: list[str] = []
        if self.accept(T.EXTENDS):
            extends = self.name_of(self.expect_name("base name"))
        if self.accept(T.IMPLEMENTS):
            self.push(implements, self.name_of(self.expect_name("interface name")))
            while self.accept(T.COMMA):
                self.push(implements, self.name_of(self.expect_name("interface name")))
        return extends, implements

    def _parse_class_modifiers(self: Parser) -> tuple[bool, bool]:
        final = abstract = False
        while True:
            if self.accept(T.FINAL):
                final = True
            elif self.accept(T.ABSTRACT):
                abstract = True
            elif self.accept(T.PUBLIC) or self.accept(T.INTERNAL):
                continue
            else:
                return final, abstract

    def _parse_members(self: Parser, var_blocks: list[VarBlock], methods: list[MethodDecl]) -> None:
        count = 0
        while self.at_any(VAR_BLOCK_KEYWORDS) or self.at(T.METHOD):
            count += 1
            self.tick(count)
            if self.at(T.METHOD):
                self.enter_pou({d.name for b in var_blocks for d in b.declarations})
                try:
                    self.push(methods, self._parse_method())
                finally:
                    self.exit_pou()
            else:
                self.push(var_blocks, self.parse_var_block())

    def _parse_function_block(self: Parser) -> FunctionBlockDecl:
        tok = self.advance()
        final, abstract = self._parse_class_modifiers()
        name = self.expect_name("function block name")
        extends, implements = self._parse_inheritance()
        attributes, pragmas = self._parse_header_extras()
        var_blocks: list[VarBlock] = []
        methods: list[MethodDecl] = []
        self._parse_members(var_blocks, methods)
        names = {decl.name for block in var_blocks for decl in block.declarations}
        self.enter_pou(names)
        try:
            self.accept(T.BEGIN)
            body = self.parse_body(T.END_FUNCTION_BLOCK, T.METHOD)
            self._parse_members(var_blocks, methods)
        finally:
            self.exit_pou()
        self._finish_pou(T.END_FUNCTION_BLOCK, tok)
        return self.make(FunctionBlockDecl, tok.span, name=self.name_of(name),
                         extends=extends, implements=implements, final=final,
                         abstract=abstract, var_blocks=var_blocks, methods=methods,
                         body=body, attributes=attributes, pragmas=pragmas)

    def _parse_class(self: Parser) -> ClassDecl:
        tok = self.advance()
        final, abstract = self._parse_class_modifiers()
        name = self.expect_name("class name")
        extends, implements = self._parse_inheritance()
        var_blocks: list[VarBlock] = []
        methods: list[MethodDecl] = []
        self._parse_members(var_blocks, methods)
        self._finish_pou(T.END_CLASS, tok)
        return self.make(ClassDecl, tok.span, name=self.name_of(name), extends=extends,
                         implements=implements, final=final, abstract=abstract,
                         var_blocks=var_blocks, methods=methods)

    def _parse_interface(self: Parser) -> InterfaceDecl:
        tok = self.advance()
        name = self.expect_name("interface name")
        extends: list[str] = []
        if self.accept(T.EXTENDS):
            self.push(extends, self.name_of(self.expect_name("interface name")))
            while self.accept(T.COMMA):
                self.push(extends, self.name_of(self.expect_name("interface name")))
        methods: list[MethodDecl] = []
        count = 0
        while self.at(T.METHOD):
            count += 1
            self.tick(count)
            self.push(methods, self._parse_method())
        self._finish_pou(T.END_INTERFACE, tok)
        return self.make(InterfaceDecl, tok.span, name=self.name_of(name),
                         extends=extends, methods=methods)

    @nested
    def _parse_method(self: Parser) -> MethodDecl:
        tok = self.advance()
        access = None
        final = abstract = override = False
        while True:
            kind = self.peek().kind
            if kind in _ACCESS_MODIFIERS:
                access = _ACCESS_MODIFIERS[kind]
            elif kind == T.FINAL:
                final = True
            elif kind == T.ABSTRACT:
                abstract = True
            elif kind == T.OVERRIDE:
                override = True
            else:
                break
            self.advance()
        name = self.expect_name("method name")
        return_type = self._parse_return_type()
        var_blocks = self._parse_var_blocks()
        body = self._parse_pou_body(var_blocks, T.END_METHOD)
        self._finish_pou(T.END_METHOD, tok)
        return self.make(MethodDecl, tok.span, name=self.name_of(name), access=access,
                         final=final, abstract=abstract, override=override,
                         return_type=return_type, var_blocks=var_blocks, body=body)

    def _parse_global_vars(self: Parser) -> GlobalVarDecl:
        start = self.peek()
        block = self.parse_var_block()
        return self.make(GlobalVarDecl, start.span, var_block=block)

    def _parse_namespace(self: Parser) -> NamespaceDecl:
        tok = self.advance()
        internal = self.accept(T.INTERNAL) is not None
        parts = [self.expect(T.IDENTIFIER, "namespace name").text]
        while self.accept(T.DOT):
            parts.append(self.expect(T.IDENTIFIER, "namespace name").text)
        usings: list[str] = []
        count = 0
        while self.accept(T.USING):
            count += 1
            self.tick(count)
            path = [self.expect(T.IDENTIFIER, "namespace name").text]
            while self.accept(T.DOT):
                path.append(self.expect(T.IDENTIFIER, "namespace name").text)
            self.expect_semicolon()
            self.push(usings, ".".join(path))
        declarations = self._parse_declarations_until(T.END_NAMESPACE)
        self._finish_pou(T.END_NAMESPACE, tok)
        return self.make(NamespaceDecl, tok.span, name=".".join(parts), internal=internal,
                         usings=usings, declarations=declarations)

    # -- SCL blocks ------------------------------------------------------------

    def _parse_data_block(self: Parser) -> DataBlockDecl:
        tok = self.advance()
        name = self.expect_name("data block name")
        attributes, pragmas = self._parse_header_extras()
        instance_of = None
        var_blocks: list[VarBlock] = []
        if self.at(T.QUOTED_IDENTIFIER, T.IDENTIFIER):
            instance_of = self.name_of(self.advance())
        elif self.at(T.STRUCT):
            struct_tok = self.peek()
            struct = self._parse_struct_type()
            self.accept(T.SEMICOLON)
            decls = [
                self.make(VarDecl, f.span, name=f.name, type_spec=f.type_spec, initial=f.initial)
                for f in struct.fields
            ]
            var_blocks.append(self.make(VarBlock, struct_tok.span, declarations=decls))
        var_blocks.extend(self._parse_var_blocks())
        body = self._parse_pou_body(var_blocks, T.END_DATA_BLOCK)
        self._finish_pou(T.END_DATA_BLOCK, tok)
        return self.make(DataBlockDecl, tok.span, name=self.name_of(name),
                         instance_of=instance_of, var_blocks=var_blocks, body=body,
                         attributes=attributes, pragmas=pragmas)

    def _parse_organization_block(self: Parser) -> OrganizationBlockDecl:
        tok = self.advance()
        name = self.expect_name("organization block name")
        attributes, pragmas = self._parse_header_extras()
        var_blocks = self._parse_var_blocks()
        body = self._parse_pou_body(var_blocks, T.END_ORGANIZATION_BLOCK)
        self._finish_pou(T.END_ORGANIZATION_BLOCK, tok)
        return self.make(OrganizationBlockDecl, tok.span, name=self.name_of(name),
                         var_blocks=var_blocks, body=body, attributes=attributes,
                         pragmas=pragmas)


_DeclarationMixin._DECLARATION_PARSERS = {
    T.PROGRAM: _DeclarationMixin._parse_program,
    T.FUNCTION: _DeclarationMixin._parse_function,
    T.FUNCTION_BLOCK: _DeclarationMixin._parse_function_block,
    T.CLASS: _DeclarationMixin._parse_class,
    T.INTERFACE: _DeclarationMixin._parse_interface,
    T.METHOD: _DeclarationMixin._parse_method,
    T.TYPE: _DeclarationMixin._parse_data_type,
    T.VAR_GLOBAL: _DeclarationMixin._parse_global_vars,
    T.NAMESPACE: _DeclarationMixin._parse_namespace,
    T.DATA_BLOCK: _DeclarationMixin._parse_data_block,
    T.ORGANIZATION_BLOCK: _DeclarationMixin._parse_organization_block,
}
