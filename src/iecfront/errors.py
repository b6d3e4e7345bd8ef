"""Parse errors raised by the lexer-driven parsers."""

from __future__ import annotations

from enum import Enum

from .span import Span, source_excerpt


class ParseErrorKind(str, Enum):
    UNEXPECTED_TOKEN = "UNEXPECTED_TOKEN"
    UNEXPECTED_EOF = "UNEXPECTED_EOF"
    UNKNOWN_CHARACTER = "UNKNOWN_CHARACTER"
    INVALID_NUMBER = "INVALID_NUMBER"
    UNCLOSED_STRING = "UNCLOSED_STRING"
    UNTERMINATED_COMMENT = "UNTERMINATED_COMMENT"
    INVALID_TIME_LITERAL = "INVALID_TIME_LITERAL"
    INVALID_TIME_UNIT = "INVALID_TIME_UNIT"
    INVALID_DIRECT_ADDRESS = "INVALID_DIRECT_ADDRESS"
    MISSING_SEMICOLON = "MISSING_SEMICOLON"
    MISSING_TERMINATOR = "MISSING_TERMINATOR"
    UNCLOSED_PAREN = "UNCLOSED_PAREN"
    UNCLOSED_BRACKET = "UNCLOSED_BRACKET"
    INVALID_OPERATOR = "INVALID_OPERATOR"
    INVALID_EXPRESSION = "INVALID_EXPRESSION"
    INVALID_STATEMENT = "INVALID_STATEMENT"
    INVALID_DECLARATION = "INVALID_DECLARATION"
    INVALID_TYPE = "INVALID_TYPE"
    SECURITY_LIMIT = "SECURITY_LIMIT"


_MESSAGES: dict[ParseErrorKind, str] = {
    ParseErrorKind.UNEXPECTED_EOF: "unexpected end of file",
    ParseErrorKind.UNKNOWN_CHARACTER: "unknown character",
    ParseErrorKind.INVALID_NUMBER: "invalid number literal",
    ParseErrorKind.UNCLOSED_STRING: "unclosed string literal",
    ParseErrorKind.UNTERMINATED_COMMENT: "unterminated block comment",
    ParseErrorKind.INVALID_TIME_LITERAL: "invalid time literal",
    ParseErrorKind.INVALID_TIME_UNIT: "invalid unit in time literal",
    ParseErrorKind.INVALID_DIRECT_ADDRESS: "invalid direct address",
    ParseErrorKind.MISSING_SEMICOLON: "missing semicolon",
    ParseErrorKind.MISSING_TERMINATOR: "missing terminator",
    ParseErrorKind.UNCLOSED_PAREN: "unclosed parenthesis",
    ParseErrorKind.UNCLOSED_BRACKET: "unclosed bracket",
    ParseErrorKind.INVALID_OPERATOR: "invalid operator",
    ParseErrorKind.INVALID_EXPRESSION: "invalid expression",
    ParseErrorKind.INVALID_STATEMENT: "invalid statement",
    ParseErrorKind.INVALID_DECLARATION: "invalid declaration",
    ParseErrorKind.INVALID_TYPE: "invalid type",
    ParseErrorKind.SECURITY_LIMIT: "security limit exceeded",
}


class ParseError(Exception):
    """A syntax error with the span of the offending token.

    *expected* names the token or construct the parser wanted, *found* is the
    debug form of the token it saw.  *detail* is free text appended to the
    message (e.g. the bad character or literal).
    """

    def __init__(
        self,
        kind: ParseErrorKind,
        span: Span,
        *,
        expected: str | None = None,
        found: str | None = None,
        detail: str | None = None,
    ):
        self.kind = kind
        self.span = span
        self.expected = expected
        self.found = found
        self.detail = detail
        super().__init__(f"{self.message} at {span}")

    @property
    def message(self) -> str:
        if self.kind == ParseErrorKind.UNEXPECTED_TOKEN:
            msg = "unexpected token"
            if self.expected is not None:
                msg += f": expected {self.expected}"
                if self.found is not None:
                    msg += f", found {self.found}"
            elif self.found is not None:
                msg += f" {self.found}"
            return msg
        if self.kind == ParseErrorKind.MISSING_TERMINATOR and self.expected is not None:
            return f"missing {self.expected}"
        msg = _MESSAGES[self.kind]
        if self.detail:
            msg += f" '{self.detail}'"
        return msg

    def format_with_source(self, source: str) -> str:
        """Multi-line rendering with the source line and a caret."""
        return source_excerpt(source, self.span, f"error: {self.message}")


class LimitKind(str, Enum):
    INPUT_SIZE = "max_input_size"
    DEPTH = "max_depth"
    COLLECTION_SIZE = "max_collection_size"
    NODES = "max_nodes"
    STRING_LENGTH = "max_string_length"
    ITERATIONS = "max_iterations"


class SecurityError(ParseError):
    """A parser limit was exceeded.  Never recovered from."""

    def __init__(self, limit_kind: LimitKind, limit: int, value: int, span: Span | None = None):
        self.limit_kind = limit_kind
        self.limit = limit
        self.value = value
        super().__init__(ParseErrorKind.SECURITY_LIMIT, span or Span.empty())

    @property
    def message(self) -> str:
        return (
            f"security limit exceeded: {self.limit_kind.value} "
            f"(limit {self.limit}, found {self.value})"
        )
