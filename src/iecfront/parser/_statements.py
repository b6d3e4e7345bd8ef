"""Statement parsing for all dialects.

Statement lists run until a terminator keyword; the construct that owns the
list checks that the terminator is the one it expects.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from iecfront.errors import ParseError, ParseErrorKind
from iecfront.lexer import TokenKind
from iecfront.span import Span
from iecfront.syntax.expressions import CallExpr, variable_path, variable_root
from iecfront.syntax.statements import (
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

from ._core import DECLARATION_KEYWORDS, STATEMENT_SYNC, STATEMENT_TERMINATORS, nested

if TYPE_CHECKING:
    from . import Parser

T = TokenKind

_ASSIGN_OPS: dict[TokenKind, AssignOp] = {
    T.ASSIGN: AssignOp.ASSIGN,
    T.PLUS_ASSIGN: AssignOp.ADD,
    T.MINUS_ASSIGN: AssignOp.SUB,
    T.STAR_ASSIGN: AssignOp.MUL,
    T.SLASH_ASSIGN: AssignOp.DIV,
}

_VARIABLE_STARTS = frozenset({T.IDENTIFIER, T.QUOTED_IDENTIFIER, T.HASH, T.DIRECT_ADDRESS})

# tokens after a leading identifier that mark a CASE label
_CASE_LABEL_FOLLOWERS = frozenset({T.COLON, T.COMMA, T.RANGE})


# ---------------------------------------------------------------------------
# Statement mixin
# ---------------------------------------------------------------------------

class _StatementMixin:
    """Mixin providing statement parsing methods for Parser."""

    _STATEMENT_PARSERS: dict[TokenKind, Callable]

    def parse_statement_list(self: Parser, stop: Callable[[], bool] | None = None) -> list[Statement]:
        stmts: list[Statement] = []
        count = 0
        while not self.at_any(STATEMENT_TERMINATORS) and not (stop is not None and stop()):
            count += 1
            self.tick(count)
            start_pos = self.pos
            try:
                stmt = self.parse_statement()
            except ParseError as err:
                if not self.can_recover(err):
                    raise
                self.synchronize(err, start_pos, STATEMENT_SYNC)
                continue
            self.push(stmts, stmt)
        return stmts

    def parse_body(self: Parser, *ends: TokenKind) -> list[Statement]:
        """Statement list of a POU or routine ending at one of *ends*.

        When recovering, stray END keywords that belong to no open construct
        are reported and skipped.
        """
        body = self.parse_statement_list()
        count = 0
        while (
            self.recovering
            and not self.at(*ends)
            and not self.at(T.EOF)
            and not self.at_any(DECLARATION_KEYWORDS)
        ):
            count += 1
            self.tick(count)
            self.errors.append(self.unexpected(_describe_ends(ends)))
            self.advance()
            self.accept(T.SEMICOLON)
            for stmt in self.parse_statement_list():
                self.push(body, stmt)
        return body

    @nested
    def parse_statement(self: Parser) -> Statement:
        tok = self.peek()
        handler = self._STATEMENT_PARSERS.get(tok.kind)
        if handler is not None:
            return handler(self)
        if tok.kind == T.SEMICOLON:
            self.advance()
            return self.make(EmptyStatement, tok.span)
        if (
            self.dialect.scl
            and tok.kind == T.IDENTIFIER
            and self.peek(1).kind == T.COLON
        ):
            self.advance()
            self.advance()
            return self.make(LabelStatement, tok.span, name=tok.text)
        if tok.kind in _VARIABLE_STARTS:
            return self._parse_assignment_or_call()
        raise self.invalid(ParseErrorKind.INVALID_STATEMENT)

    def _end_construct(self: Parser, end: TokenKind, opener_span: Span) -> None:
        if not self.at(end):
            if self.at(T.EOF):
                raise ParseError(
                    ParseErrorKind.MISSING_TERMINATOR, opener_span, expected=f"'{end.value}'",
                )
            raise self.unexpected(f"'{end.value}'")
        self.advance()
        self.accept(T.SEMICOLON)

    # -- simple statements ---------------------------------------------------

    def _parse_assignment_or_call(self: Parser) -> Statement:
        start = self.peek()
        target = self.parse_variable()
        if self.at(T.LPAREN):
            name = variable_path(target)
            if name is None:
                raise ParseError(ParseErrorKind.INVALID_STATEMENT, target.span,
                                 detail=target.span.text(self.source))
            args = self.parse_call_args()
            root = variable_root(target)
            if root is not None and self.is_declared(root):
                self.expect_semicolon()
                return self.make(FbInvocation, start.span, instance=target, args=args)
            call = self.make(CallExpr, start.span, name=name, args=args)
            self.expect_semicolon()
            return self.make(FunctionCallStatement, start.span, call=call)
        op = _ASSIGN_OPS.get(self.peek().kind)
        if op is None:
            raise self.unexpected("':='")
        self.advance()
        value = self.parse_expression()
        self.expect_semicolon()
        return self.make(Assignment, start.span, target=target, op=op, value=value)

    def _parse_exit(self: Parser) -> Statement:
        tok = self.advance()
        self.expect_semicolon()
        return self.make(ExitStatement, tok.span)

    def _parse_continue(self: Parser) -> Statement:
        tok = self.advance()
        self.expect_semicolon()
        return self.make(ContinueStatement, tok.span)

    def _parse_return(self: Parser) -> Statement:
        tok = self.advance()
        value = None
        if not self.at(T.SEMICOLON) and not self.at_any(STATEMENT_TERMINATORS):
            value = self.parse_expression()
        self.expect_semicolon()
        return self.make(ReturnStatement, tok.span, value=value)

    def _parse_goto(self: Parser) -> Statement:
        tok = self.advance()
        label = self.expect(T.IDENTIFIER, "label")
        self.expect_semicolon()
        return self.make(GotoStatement, tok.span, label=label.text)

    # -- IF / CASE -------------------------------------------------------------

    def _parse_if(self: Parser) -> Statement:
        tok = self.advance()
        condition = self.parse_expression()
        self.expect(T.THEN)
        body = self.parse_statement_list()
        if_branch = self.make(IfBranch, tok.span, condition=condition, body=body)

        elsif_branches: list[IfBranch] = []
        count = 0
        while self.at(T.ELSIF):
            count += 1
            self.tick(count)
            elsif_tok = self.advance()
            cond = self.parse_expression()
            self.expect(T.THEN)
            branch_body = self.parse_statement_list()
            self.push(elsif_branches, self.make(IfBranch, elsif_tok.span,
                                                condition=cond, body=branch_body))

        else_body = None
        if self.accept(T.ELSE):
            else_body = self.parse_statement_list()
        self._end_construct(T.END_IF, tok.span)
        return self.make(IfStatement, tok.span, if_branch=if_branch,
                         elsif_branches=elsif_branches, else_body=else_body)

    def _parse_case(self: Parser) -> Statement:
        tok = self.advance()
        selector = self.parse_expression()
        self.expect(T.OF)

        branches: list[CaseBranch] = []
        count = 0
        while not self.at(T.ELSE, T.END_CASE, T.EOF):
            count += 1
            self.tick(count)
            branch_start = self.peek()
            selectors: list = []
            self.push(selectors, self._parse_case_selector())
            while self.accept(T.COMMA):
                self.push(selectors, self._parse_case_selector())
            self.expect(T.COLON)
            body = self.parse_statement_list(stop=self._at_case_label)
            self.push(branches, self.make(CaseBranch, branch_start.span,
                                          selectors=selectors, body=body))

        else_body = None
        if self.accept(T.ELSE):
            else_body = self.parse_statement_list()
        self._end_construct(T.END_CASE, tok.span)
        return self.make(CaseStatement, tok.span, selector=selector,
                         branches=branches, else_body=else_body)

    def _parse_case_selector(self: Parser):
        start = self.peek()
        low = self.parse_expression()
        if self.accept(T.RANGE):
            high = self.parse_expression()
            return self.make(CaseRange, start.span, low=low, high=high)
        return self.make(CaseValue, start.span, value=low)

    def _at_case_label(self: Parser) -> bool:
        """Whether the current token starts the next CASE branch."""
        kind = self.peek().kind
        if kind in (T.INTEGER, T.REAL, T.STRING_LITERAL):
            return True
        if kind == T.MINUS and self.peek(1).kind in (T.INTEGER, T.REAL):
            return True
        if kind != T.IDENTIFIER or not self.dialect.case_identifier_labels:
            return False
        if self.peek(1).kind == T.HASH:
            return True
        offset = 1
        while self.peek(offset).kind == T.DOT and self.peek(offset + 1).kind == T.IDENTIFIER:
            offset += 2
        return self.peek(offset).kind in _CASE_LABEL_FOLLOWERS

    # -- loops -----------------------------------------------------------------

    def _parse_for(self: Parser) -> Statement:
        tok = self.advance()
        if self.dialect.local_prefix:
            self.accept(T.HASH)
        control = self.expect_name("loop variable")
        self.expect(T.ASSIGN)
        start = self.parse_expression()
        self.expect(T.TO)
        end = self.parse_expression()
        step = None
        if self.accept(T.BY):
            step = self.parse_expression()
        self.expect(T.DO)
        body = self.parse_statement_list()
        self._end_construct(T.END_FOR, tok.span)
        return self.make(ForStatement, tok.span, control=self.name_of(control),
                         start=start, end=end, step=step, body=body)

    def _parse_while(self: Parser) -> Statement:
        tok = self.advance()
        condition = self.parse_expression()
        self.expect(T.DO)
        body = self.parse_statement_list()
        self._end_construct(T.END_WHILE, tok.span)
        return self.make(WhileStatement, tok.span, condition=condition, body=body)

    def _parse_repeat(self: Parser) -> Statement:
        tok = self.advance()
        body = self.parse_statement_list()
        self.expect(T.UNTIL)
        until = self.parse_expression()
        self.accept(T.SEMICOLON)
        self._end_construct(T.END_REPEAT, tok.span)
        return self.make(RepeatStatement, tok.span, body=body, until=until)

    # -- SCL -------------------------------------------------------------------

    def _parse_region(self: Parser) -> Statement:
        tok = self.advance()
        # the region title is free text up to the end of the line
        line_end = self.source.find("\n", tok.span.end)
        if line_end == -1:
            line_end = len(self.source)
        name = self.source[tok.span.end:line_end].strip()
        count = 0
        while not self.at(T.EOF) and self.peek().span.start < line_end:
            count += 1
            self.tick(count)
            self.advance()
        body = self.parse_statement_list()
        self._end_construct(T.END_REGION, tok.span)
        return self.make(RegionStatement, tok.span, name=name, body=body)


_StatementMixin._STATEMENT_PARSERS = {
    T.IF: _StatementMixin._parse_if,
    T.CASE: _StatementMixin._parse_case,
    T.FOR: _StatementMixin._parse_for,
    T.WHILE: _StatementMixin._parse_while,
    T.REPEAT: _StatementMixin._parse_repeat,
    T.EXIT: _StatementMixin._parse_exit,
    T.CONTINUE: _StatementMixin._parse_continue,
    T.RETURN: _StatementMixin._parse_return,
    T.GOTO: _StatementMixin._parse_goto,
    T.REGION: _StatementMixin._parse_region,
}


def _describe_ends(ends: tuple[TokenKind, ...]) -> str:
    return " or ".join("end of input" if k == T.EOF else f"'{k.value}'" for k in ends)
