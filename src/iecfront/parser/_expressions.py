"""Expression parsing: precedence climbing, variables, calls and initialisers.

Precedence, lowest first: OR, XOR, AND/&, comparisons, additive,
multiplicative, ``**`` (right-associative), unary minus/plus, primary.
``NOT`` takes a comparison as its operand, so ``a AND NOT b = c`` reads
``a AND (NOT (b = c))``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from iecfront.errors import ParseError, ParseErrorKind
from iecfront.lexer import TokenKind
from iecfront.literals import (
    LiteralError,
    check_date,
    check_date_and_time,
    check_time_of_day,
    parse_duration,
)
from iecfront.span import Span
from iecfront.syntax.expressions import (
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
    VariableRef,
    variable_path,
)

from ._core import nested

if TYPE_CHECKING:
    from . import Parser

T = TokenKind

# token -> (precedence, operator)
_BINARY_OPS: dict[TokenKind, tuple[int, BinaryOp]] = {
    T.OR: (1, BinaryOp.OR),
    T.XOR: (2, BinaryOp.XOR),
    T.AND: (3, BinaryOp.AND),
    T.EQ: (4, BinaryOp.EQ),
    T.NE: (4, BinaryOp.NE),
    T.LT: (4, BinaryOp.LT),
    T.LE: (4, BinaryOp.LE),
    T.GT: (4, BinaryOp.GT),
    T.GE: (4, BinaryOp.GE),
    T.PLUS: (5, BinaryOp.ADD),
    T.MINUS: (5, BinaryOp.SUB),
    T.STAR: (6, BinaryOp.MUL),
    T.SLASH: (6, BinaryOp.DIV),
    T.MOD: (6, BinaryOp.MOD),
    T.POWER: (7, BinaryOp.POWER),
}

_COMPARISON_PRECEDENCE = 4

_TIME_LITERALS = {
    T.TIME_LITERAL: LiteralKind.TIME,
    T.DATE_LITERAL: LiteralKind.DATE,
    T.TOD_LITERAL: LiteralKind.TIME_OF_DAY,
    T.DT_LITERAL: LiteralKind.DATE_AND_TIME,
}

_DATE_CHECKS = {
    T.DATE_LITERAL: check_date,
    T.TOD_LITERAL: check_time_of_day,
    T.DT_LITERAL: check_date_and_time,
}

# what may follow TYPE# in a typed literal
_TYPED_LITERAL_VALUES = frozenset({
    T.INTEGER, T.REAL, T.STRING_LITERAL, T.WSTRING_LITERAL, T.TRUE, T.FALSE,
    T.IDENTIFIER, T.MINUS,
})


# ---------------------------------------------------------------------------
# Expression mixin
# ---------------------------------------------------------------------------

class _ExpressionMixin:
    """Mixin providing expression parsing methods for Parser."""

    def parse_expression(self: Parser) -> Expression:
        return self._parse_binary(1)

    def _parse_binary(self: Parser, min_prec: int) -> Expression:
        left = self._parse_unary()
        count = 0
        while True:
            entry = _BINARY_OPS.get(self.peek().kind)
            if entry is None or entry[0] < min_prec:
                return left
            count += 1
            self.tick(count)
            prec, op = entry
            self.advance()
            if op == BinaryOp.POWER:
                right = self._parse_power_operand(prec)
            else:
                right = self._parse_binary(prec + 1)
            left = self.make(BinaryExpr, left.span, op=op, left=left, right=right)

    @nested
    def _parse_power_operand(self: Parser, prec: int) -> Expression:
        # ** is right-associative
        return self._parse_binary(prec)

    @nested
    def _parse_unary(self: Parser) -> Expression:
        tok = self.peek()
        if tok.kind == T.NOT:
            self.advance()
            operand = self._parse_binary(_COMPARISON_PRECEDENCE)
            return self.make(UnaryExpr, tok.span, op=UnaryOp.NOT, operand=operand)
        if tok.kind == T.MINUS:
            self.advance()
            operand = self._parse_unary()
            return self.make(UnaryExpr, tok.span, op=UnaryOp.NEG, operand=operand)
        if tok.kind == T.PLUS:
            self.advance()
            operand = self._parse_unary()
            return operand.model_copy(update={"span": tok.span.merge(operand.span)})
        return self._parse_primary()

    def _parse_primary(self: Parser) -> Expression:
        tok = self.peek()
        kind = tok.kind
        if kind in (T.INTEGER, T.REAL):
            self.advance()
            literal_kind = LiteralKind.INTEGER if kind == T.INTEGER else LiteralKind.REAL
            return self.make(LiteralExpr, tok.span, literal_kind=literal_kind,
                             text=tok.text, value=tok.value)
        if kind in (T.TRUE, T.FALSE):
            self.advance()
            return self.make(LiteralExpr, tok.span, literal_kind=LiteralKind.BOOL,
                             text=tok.text, value=kind == T.TRUE)
        if kind in (T.STRING_LITERAL, T.WSTRING_LITERAL):
            return self._parse_string_literal()
        if kind in _TIME_LITERALS:
            return self._parse_time_literal()
        if kind == T.NULL:
            self.advance()
            return self.make(LiteralExpr, tok.span, literal_kind=LiteralKind.NULL,
                             text=tok.text, value=None)
        if kind == T.LPAREN:
            self.advance()
            inner = self.parse_expression()
            self.expect_closing(T.RPAREN, tok, ParseErrorKind.UNCLOSED_PAREN)
            return self.make(ParenExpr, tok.span, inner=inner)
        if (
            kind in (T.IDENTIFIER, T.STRING, T.WSTRING)
            and self.peek(1).kind == T.HASH
            and self.peek(2).kind in _TYPED_LITERAL_VALUES
        ):
            return self._parse_typed_literal()
        if kind in (T.IDENTIFIER, T.QUOTED_IDENTIFIER, T.HASH, T.DIRECT_ADDRESS):
            var = self.parse_variable()
            if self.at(T.LPAREN):
                return self._finish_call(var)
            return var
        raise self.invalid(ParseErrorKind.INVALID_EXPRESSION)

    # -- literals ----------------------------------------------------------

    def _parse_string_literal(self: Parser) -> LiteralExpr:
        tok = self.advance()
        self.tracker.check_string(len(tok.value), tok.span)
        literal_kind = LiteralKind.STRING if tok.kind == T.STRING_LITERAL else LiteralKind.WSTRING
        return self.make(LiteralExpr, tok.span, literal_kind=literal_kind,
                         text=tok.text, value=tok.value)

    def _parse_time_literal(self: Parser) -> LiteralExpr:
        tok = self.advance()
        try:
            if tok.kind == T.TIME_LITERAL:
                value = parse_duration(tok.value)
            else:
                _DATE_CHECKS[tok.kind](tok.value)
                value = tok.value
        except LiteralError as err:
            raise ParseError(err.kind, tok.span, detail=tok.text) from err
        return self.make(LiteralExpr, tok.span, literal_kind=_TIME_LITERALS[tok.kind],
                         text=tok.text, value=value)

    def _parse_typed_literal(self: Parser) -> LiteralExpr:
        prefix = self.advance()
        self.expect(T.HASH)
        negative = self.accept(T.MINUS) is not None
        tok = self.peek()
        if tok.kind == T.IDENTIFIER and not negative:
            self.advance()
            return self.make(LiteralExpr, prefix.span, literal_kind=LiteralKind.ENUM,
                             text=self.span_from(prefix.span).text(self.source),
                             value=tok.text, type_prefix=prefix.text)
        if tok.kind in (T.INTEGER, T.REAL):
            literal = self._parse_primary()
            value = -literal.value if negative else literal.value
            return self.make(LiteralExpr, prefix.span, literal_kind=literal.literal_kind,
                             text=self.span_from(prefix.span).text(self.source),
                             value=value, type_prefix=prefix.text)
        if not negative and tok.kind in (T.STRING_LITERAL, T.WSTRING_LITERAL, T.TRUE, T.FALSE):
            literal = self._parse_primary()
            return self.make(LiteralExpr, prefix.span, literal_kind=literal.literal_kind,
                             text=self.span_from(prefix.span).text(self.source),
                             value=literal.value, type_prefix=prefix.text)
        raise self.unexpected("literal value")

    # -- variables and calls -------------------------------------------------

    def parse_variable(self: Parser):
        """An l-value: a name or address followed by ``.m``, ``[i]`` and ``^``."""
        tok = self.peek()
        if tok.kind == T.IDENTIFIER:
            self.advance()
            var = self.make(VariableRef, tok.span, name=tok.text)
        elif tok.kind == T.QUOTED_IDENTIFIER and self.dialect.quoted_identifiers:
            self.advance()
            var = self.make(VariableRef, tok.span, name=tok.value, quoted=True)
        elif tok.kind == T.HASH and self.dialect.local_prefix:
            self.advance()
            name = self.expect_name("local variable name")
            var = self.make(VariableRef, tok.span, name=self.name_of(name), local=True)
        elif tok.kind == T.DIRECT_ADDRESS:
            self.advance()
            parts = tok.value
            var = self.make(DirectAddressExpr, tok.span, address=tok.text, area=parts.area,
                            size=parts.size, byte=parts.byte, bit=parts.bit)
        else:
            raise self.invalid(ParseErrorKind.INVALID_EXPRESSION)

        count = 0
        while True:
            count += 1
            self.tick(count)
            if self.at(T.DOT) and self.peek(1).kind in (
                T.IDENTIFIER, T.QUOTED_IDENTIFIER, T.INTEGER,
            ):
                self.advance()
                member = self.advance()
                var = self.make(MemberAccessExpr, var.span, base=var, member=self.name_of(member))
            elif self.at(T.LBRACKET):
                opener = self.advance()
                indices: list = []
                self.push(indices, self.parse_expression())
                while self.accept(T.COMMA):
                    self.push(indices, self.parse_expression())
                self.expect_closing(T.RBRACKET, opener, ParseErrorKind.UNCLOSED_BRACKET)
                var = self.make(ArrayAccessExpr, var.span, base=var, indices=indices)
            elif self.at(T.CARET) and self.dialect.oop:
                self.advance()
                var = self.make(DerefExpr, var.span, base=var)
            else:
                return var

    def _finish_call(self: Parser, callee) -> CallExpr:
        name = variable_path(callee)
        if name is None:
            raise ParseError(ParseErrorKind.INVALID_EXPRESSION, callee.span,
                             detail=callee.span.text(self.source))
        args = self.parse_call_args()
        return self.make(CallExpr, callee.span, name=name, args=args)

    def parse_call_args(self: Parser) -> list:
        opener = self.expect(T.LPAREN)
        args: list = []
        if self.accept(T.RPAREN):
            return args
        count = 0
        while True:
            count += 1
            self.tick(count)
            if self.at(T.COMMA, T.RPAREN):
                if not self.dialect.inferred_arguments:
                    raise self.invalid(ParseErrorKind.INVALID_EXPRESSION)
                pos = self.peek().span.start
                self.push(args, self.make(InferredArg, Span(start=pos, end=pos)))
            else:
                self.push(args, self._parse_argument())
            if self.accept(T.COMMA):
                continue
            self.expect_closing(T.RPAREN, opener, ParseErrorKind.UNCLOSED_PAREN)
            return args

    def _parse_argument(self: Parser):
        start = self.peek()
        if start.kind == T.IDENTIFIER and self.peek(1).kind == T.ASSIGN:
            self.advance()
            self.advance()
            value = self.parse_expression()
            return self.make(NamedArg, start.span, name=start.text, value=value)
        if start.kind == T.IDENTIFIER and self.peek(1).kind == T.ARROW:
            self.advance()
            self.advance()
            target = self.parse_variable()
            return self.make(OutputArg, start.span, name=start.text, target=target)
        if (
            start.kind == T.NOT
            and self.peek(1).kind == T.IDENTIFIER
            and self.peek(2).kind == T.ARROW
        ):
            self.advance()
            name = self.advance()
            self.advance()
            target = self.parse_variable()
            return self.make(OutputArg, start.span, name=name.text, target=target, negated=True)
        value = self.parse_expression()
        return self.make(PositionalArg, start.span, value=value)

    # -- initialisers --------------------------------------------------------

    @nested
    def parse_initializer(self: Parser) -> Expression:
        """Initial value of a declaration, including aggregate forms."""
        tok = self.peek()
        if tok.kind == T.LBRACKET:
            return self._parse_array_init()
        if (
            tok.kind == T.LPAREN
            and self.peek(1).kind == T.IDENTIFIER
            and self.peek(2).kind == T.ASSIGN
        ):
            return self._parse_struct_init()
        return self.parse_expression()

    def _parse_array_init(self: Parser) -> ArrayInitExpr:
        opener = self.advance()
        elements: list = []
        count = 0
        while not self.at(T.RBRACKET):
            count += 1
            self.tick(count)
            if self.at(T.INTEGER) and self.peek(1).kind == T.LPAREN:
                count_tok = self.advance()
                self.advance()
                value = None if self.at(T.RPAREN) else self.parse_initializer()
                self.expect(T.RPAREN)
                element = self.make(RepeatedInit, count_tok.span, count=count_tok.value, value=value)
            else:
                element = self.parse_initializer()
            self.push(elements, element)
            if not self.accept(T.COMMA):
                break
        self.expect_closing(T.RBRACKET, opener, ParseErrorKind.UNCLOSED_BRACKET)
        return self.make(ArrayInitExpr, opener.span, elements=elements)

    def _parse_struct_init(self: Parser) -> StructInitExpr:
        opener = self.advance()
        fields: list = []
        count = 0
        while True:
            count += 1
            self.tick(count)
            name = self.expect(T.IDENTIFIER, "field name")
            self.expect(T.ASSIGN)
            value = self.parse_initializer()
            self.push(fields, self.make(NamedArg, name.span, name=name.text, value=value))
            if not self.accept(T.COMMA):
                break
        self.expect_closing(T.RPAREN, opener, ParseErrorKind.UNCLOSED_PAREN)
        return self.make(StructInitExpr, opener.span, fields=fields)
