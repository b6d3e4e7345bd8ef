"""Token cursor, limit bookkeeping and error recovery for the parser mixins."""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable

from iecfront.dialect import GENERIC_ST, Dialect
from iecfront.errors import ParseError, ParseErrorKind, SecurityError
from iecfront.lexer import Lexer, Token, TokenKind
from iecfront.security import LimitTracker, ParserLimits
from iecfront.span import Span

logger = logging.getLogger(__name__)

T = TokenKind


# ---------------------------------------------------------------------------
# Token classes
# ---------------------------------------------------------------------------

END_KEYWORDS: frozenset[TokenKind] = frozenset({
    T.END_IF, T.END_CASE, T.END_FOR, T.END_WHILE, T.END_REPEAT,
    T.END_PROGRAM, T.END_FUNCTION, T.END_FUNCTION_BLOCK, T.END_METHOD,
    T.END_CLASS, T.END_INTERFACE, T.END_NAMESPACE, T.END_REGION,
    T.END_DATA_BLOCK, T.END_ORGANIZATION_BLOCK, T.END_VAR, T.END_TYPE,
    T.END_STRUCT,
})

DECLARATION_KEYWORDS: frozenset[TokenKind] = frozenset({
    T.FUNCTION, T.FUNCTION_BLOCK, T.PROGRAM, T.CLASS, T.INTERFACE, T.METHOD,
    T.TYPE, T.VAR_GLOBAL, T.NAMESPACE, T.DATA_BLOCK, T.ORGANIZATION_BLOCK,
})

VAR_BLOCK_KEYWORDS: frozenset[TokenKind] = frozenset({
    T.VAR, T.VAR_INPUT, T.VAR_OUTPUT, T.VAR_IN_OUT, T.VAR_TEMP, T.VAR_GLOBAL,
    T.VAR_EXTERNAL, T.VAR_ACCESS, T.VAR_CONFIG,
})

# A statement list ends at any of these.
STATEMENT_TERMINATORS: frozenset[TokenKind] = (
    END_KEYWORDS
    | DECLARATION_KEYWORDS
    | VAR_BLOCK_KEYWORDS
    | {T.ELSIF, T.ELSE, T.UNTIL, T.EOF}
)

STATEMENT_KEYWORDS: frozenset[TokenKind] = frozenset({
    T.IF, T.CASE, T.FOR, T.WHILE, T.REPEAT, T.EXIT, T.CONTINUE, T.RETURN,
    T.REGION, T.GOTO,
})

STATEMENT_SYNC: frozenset[TokenKind] = STATEMENT_KEYWORDS | STATEMENT_TERMINATORS


def nested(method: Callable) -> Callable:
    """Count one level of parser recursion around *method*."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        self.tracker.enter(self.peek().span)
        try:
            return method(self, *args, **kwargs)
        finally:
            self.tracker.exit()

    return wrapper


# ---------------------------------------------------------------------------
# Parser base
# ---------------------------------------------------------------------------

class _ParserBase:
    """Holds the token list and the cursor; owns the limit tracker.

    Pragma tokens are lifted out of the stream up front and kept in
    ``pragmas`` keyed by the index of the token they precede, so grammar code
    only sees them where it asks for them.
    """

    def __init__(
        self,
        source: str,
        dialect: Dialect = GENERIC_ST,
        limits: ParserLimits | None = None,
        *,
        recovering: bool = False,
    ) -> None:
        self.source = source
        self.dialect = dialect
        self.recovering = recovering
        self.errors: list[ParseError] = []
        self.tracker = LimitTracker(limits or ParserLimits())
        self.tracker.check_input_size(len(source.encode("utf-8")))
        self.tokens, self.pragmas = self._scan()
        self.pos = 0
        self._prev_end = 0
        self._declared: list[set[str]] = []

    def _scan(self) -> tuple[list[Token], dict[int, list[Token]]]:
        tokens: list[Token] = []
        pragmas: dict[int, list[Token]] = {}
        pending: list[Token] = []
        for count, tok in enumerate(Lexer(self.source, self.dialect), start=1):
            self.tracker.check_iterations(count, tok.span)
            if tok.kind == T.PRAGMA:
                pending.append(tok)
                continue
            if pending:
                pragmas[len(tokens)] = pending
                pending = []
            tokens.append(tok)
        return tokens, pragmas

    # -- cursor ------------------------------------------------------------

    def peek(self, offset: int = 0) -> Token:
        return self.tokens[min(self.pos + offset, len(self.tokens) - 1)]

    def at(self, *kinds: TokenKind) -> bool:
        return self.peek().kind in kinds

    def at_any(self, kinds: frozenset[TokenKind]) -> bool:
        return self.peek().kind in kinds

    def advance(self) -> Token:
        tok = self.tokens[self.pos]
        if tok.kind != T.EOF:
            self.pos += 1
        self._prev_end = tok.span.end
        return tok

    def accept(self, kind: TokenKind) -> Token | None:
        if self.peek().kind == kind:
            return self.advance()
        return None

    def expect(self, kind: TokenKind, expected: str | None = None) -> Token:
        if self.peek().kind == kind:
            return self.advance()
        raise self.unexpected(expected or f"'{kind.value}'")

    def expect_closing(self, kind: TokenKind, opener: Token, error_kind: ParseErrorKind) -> Token:
        """Expect the closer of *opener*; at end of input report the opener."""
        if self.peek().kind == kind:
            return self.advance()
        if self.peek().kind == T.EOF:
            raise ParseError(error_kind, opener.span)
        raise self.unexpected(f"'{kind.value}'")

    def expect_semicolon(self) -> Token:
        if self.peek().kind == T.SEMICOLON:
            return self.advance()
        if self.peek().kind in (T.ERROR, T.UNKNOWN):
            raise self.unexpected("';'")
        raise ParseError(
            ParseErrorKind.MISSING_SEMICOLON, Span.at(self._prev_end),
            expected="';'", found=self.peek().describe(),
        )

    def expect_name(self, expected: str = "identifier") -> Token:
        """An identifier, or in SCL a double-quoted name."""
        if self.at(T.IDENTIFIER):
            return self.advance()
        if self.at(T.QUOTED_IDENTIFIER) and self.dialect.quoted_identifiers:
            return self.advance()
        raise self.unexpected(expected)

    @staticmethod
    def name_of(tok: Token) -> str:
        return tok.value if tok.kind == T.QUOTED_IDENTIFIER else tok.text

    # -- errors ------------------------------------------------------------

    def unexpected(self, expected: str | None = None) -> ParseError:
        """Error for the current token, preferring a lexical explanation."""
        tok = self.peek()
        if tok.kind == T.ERROR:
            detail = tok.text if tok.value in (
                ParseErrorKind.INVALID_NUMBER, ParseErrorKind.INVALID_DIRECT_ADDRESS,
            ) else None
            return ParseError(tok.value, tok.span, detail=detail)
        if tok.kind == T.UNKNOWN:
            return ParseError(ParseErrorKind.UNKNOWN_CHARACTER, tok.span, detail=tok.text)
        if tok.kind == T.EOF:
            return ParseError(ParseErrorKind.UNEXPECTED_EOF, tok.span, expected=expected)
        return ParseError(
            ParseErrorKind.UNEXPECTED_TOKEN, tok.span, expected=expected, found=tok.describe(),
        )

    def invalid(self, kind: ParseErrorKind) -> ParseError:
        tok = self.peek()
        if tok.kind in (T.ERROR, T.UNKNOWN, T.EOF):
            return self.unexpected()
        return ParseError(kind, tok.span, detail=tok.text)

    # -- node bookkeeping --------------------------------------------------

    def span_from(self, start: Span) -> Span:
        return Span(start=start.start, end=max(self._prev_end, start.end))

    def make(self, cls, start_span: Span, /, **fields):
        """Build *cls* spanning from *start_span* to the last consumed token."""
        node = cls(span=self.span_from(start_span), **fields)
        self.tracker.record_node(node.span)
        return node

    def push(self, items: list, item) -> None:
        items.append(item)
        self.tracker.check_collection(len(items), getattr(item, "span", None))

    def tick(self, count: int) -> None:
        self.tracker.check_iterations(count, self.peek().span)

    # -- declared names (call classification) --------------------------------

    def enter_pou(self, names: set[str]) -> None:
        self._declared.append(names)

    def exit_pou(self) -> None:
        self._declared.pop()

    def is_declared(self, name: str) -> bool:
        return any(name in names for names in self._declared)

    # -- recovery ------------------------------------------------------------

    def can_recover(self, err: ParseError) -> bool:
        return self.recovering and not isinstance(err, SecurityError)

    def synchronize(
        self,
        err: ParseError,
        start_pos: int,
        stop: frozenset[TokenKind],
        *,
        consume_semicolon: bool = True,
    ) -> None:
        """Record *err* and skip to the next likely boundary."""
        self.errors.append(err)
        logger.debug("recovering from parse error: %s", err)
        count = 0
        while not self.at(T.EOF):
            count += 1
            self.tick(count)
            kind = self.peek().kind
            if consume_semicolon and kind == T.SEMICOLON:
                self.advance()
                break
            if kind in stop:
                break
            self.advance()
        if self.pos == start_pos and not self.at(T.EOF):
            self.advance()
