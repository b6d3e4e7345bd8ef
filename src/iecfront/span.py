"""Source locations.

A ``Span`` is a half-open ``[start, end)`` pair of offsets into the source
text.  Every token, syntax node, diagnostic and CFG node carries one.
"""

from __future__ import annotations

from pydantic import BaseModel, model_validator


class Span(BaseModel):
    start: int = 0
    end: int = 0

    @model_validator(mode="after")
    def _ordered(self):
        if self.start < 0 or self.end < self.start:
            raise ValueError(
                f"invalid span: start ({self.start}) must be >= 0 and <= end ({self.end})"
            )
        return self

    @classmethod
    def new(cls, start: int, end: int) -> Span:
        return cls(start=start, end=end)

    @classmethod
    def at(cls, pos: int) -> Span:
        """A one-character span at *pos*."""
        return cls(start=pos, end=pos + 1)

    @classmethod
    def empty(cls) -> Span:
        return cls(start=0, end=0)

    @property
    def length(self) -> int:
        return self.end - self.start

    @property
    def is_empty(self) -> bool:
        return self.start >= self.end

    def merge(self, other: Span) -> Span:
        return Span(start=min(self.start, other.start), end=max(self.end, other.end))

    def contains(self, other: Span) -> bool:
        return self.start <= other.start and other.end <= self.end

    def text(self, source: str) -> str:
        return source[self.start:min(self.end, len(source))]

    def __str__(self) -> str:
        if self.length <= 1:
            return str(self.start)
        return f"{self.start}..{self.end}"


def line_col(source: str, offset: int) -> tuple[int, int]:
    """Return the 1-based (line, column) of *offset* in *source*."""
    offset = max(0, min(offset, len(source)))
    line = source.count("\n", 0, offset) + 1
    line_start = source.rfind("\n", 0, offset) + 1
    return line, offset - line_start + 1


def source_excerpt(source: str, span: Span, header: str) -> str:
    """Render *header* followed by the source line of *span* and a caret run.

    ::

        error: unexpected token
         --> 3:5
        3 |     x := ;
          |          ^
    """
    line, col = line_col(source, span.start)
    line_start = source.rfind("\n", 0, span.start) + 1
    line_end = source.find("\n", line_start)
    if line_end == -1:
        line_end = len(source)
    text = source[line_start:line_end]
    gutter = str(line)
    width = max(1, min(span.length, line_end - span.start))
    pad = " " * len(gutter)
    return (
        f"{header}\n"
        f"{pad}--> {line}:{col}\n"
        f"{gutter} | {text}\n"
        f"{pad} | {' ' * (col - 1)}{'^' * width}"
    )
