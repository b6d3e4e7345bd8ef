"""Errors raised by the ladder text parser."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from iecfront.span import Span, line_col

# long rung lines are shown as a window around the error
_MAX_LINE = 80
_WINDOW_BEFORE = 30
_WINDOW_AFTER = 50


class RllErrorKind(str, Enum):
    UNEXPECTED_CHAR = "UNEXPECTED_CHAR"
    EXPECTED = "EXPECTED"
    UNCLOSED_BRACKET = "UNCLOSED_BRACKET"
    UNCLOSED_PAREN = "UNCLOSED_PAREN"
    EMPTY_INPUT = "EMPTY_INPUT"
    MISSING_TERMINATOR = "MISSING_TERMINATOR"
    INVALID_INSTRUCTION = "INVALID_INSTRUCTION"
    UNEXPECTED_EOF = "UNEXPECTED_EOF"


class RllError(Exception):
    """A rung that could not be parsed.

    *position* is an offset into the rung text; it is None for errors that
    concern the rung as a whole (empty input, missing ``;``).
    """

    def __init__(
        self,
        kind: RllErrorKind,
        position: int | None = None,
        *,
        char: str | None = None,
        expected: str | None = None,
    ):
        self.kind = kind
        self.position = position
        self.char = char
        self.expected = expected
        super().__init__(self.message)

    @property
    def message(self) -> str:
        kind = self.kind
        if kind == RllErrorKind.UNEXPECTED_CHAR:
            return f"unexpected character '{self.char}' at position {self.position}"
        if kind == RllErrorKind.EXPECTED:
            return f"expected {self.expected} at position {self.position}"
        if kind == RllErrorKind.UNCLOSED_BRACKET:
            return f"unclosed bracket '[' at position {self.position}"
        if kind == RllErrorKind.UNCLOSED_PAREN:
            return f"unclosed parenthesis '(' at position {self.position}"
        if kind == RllErrorKind.EMPTY_INPUT:
            return "empty input"
        if kind == RllErrorKind.MISSING_TERMINATOR:
            return "missing rung terminator ';'"
        if kind == RllErrorKind.INVALID_INSTRUCTION:
            return f"invalid instruction at position {self.position}"
        return "unexpected end of input"

    @property
    def span(self) -> Span | None:
        return Span.at(self.position) if self.position is not None else None

    def format_with_context(self, source: str) -> str:
        """The message, then the offending line with a caret under the position."""
        result = f"error: {self.message}\n"
        pos = self.position
        if pos is None or pos >= len(source):
            return result
        line, col = line_col(source, pos)
        line_start = source.rfind("\n", 0, pos) + 1
        line_end = source.find("\n", pos)
        if line_end == -1:
            line_end = len(source)
        text = source[line_start:line_end]
        col -= 1
        result += f" --> position {line}:{col}\n"
        if len(text) > _MAX_LINE:
            window_start = max(0, col - _WINDOW_BEFORE)
            window_end = min(len(text), col + _WINDOW_AFTER)
            prefix = "..." if window_start > 0 else ""
            suffix = "..." if window_end < len(text) else ""
            text = prefix + text[window_start:window_end] + suffix
            col = col - window_start + len(prefix)
        gutter = f"{line} | "
        result += gutter + text + "\n"
        result += " " * (len(gutter) + col) + "^ here"
        return result


@dataclass(frozen=True)
class ErrorContext:
    """Where a rung lives in a controller project."""

    program: str
    routine: str
    rung_number: int

    def path(self) -> str:
        return f"{self.program}/{self.routine}/Rung#{self.rung_number}"


@dataclass
class RungParseError:
    """An ``RllError`` together with its rung text and location."""

    error: RllError
    source: str
    context: ErrorContext | None = None

    def with_context(self, context: ErrorContext) -> RungParseError:
        return RungParseError(self.error, self.source, context)

    def format(self) -> str:
        header = f"in {self.context.path()}\n" if self.context is not None else ""
        return header + self.error.format_with_context(self.source)

    def __str__(self) -> str:
        return self.format()
