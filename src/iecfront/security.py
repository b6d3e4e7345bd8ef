"""Resource limits enforced while lexing and parsing untrusted input.

Public API::

    from iecfront.security import ParserLimits

    limits = ParserLimits.strict()
    unit = parse_source(text, limits)
"""

from __future__ import annotations

import functools
import sys
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from pydantic import BaseModel, Field

from .errors import LimitKind, SecurityError
from .span import Span

_KB = 1024
_MB = 1024 * _KB
_GB = 1024 * _MB


class ParserLimits(BaseModel):
    """Upper bounds on input size and parser work."""

    max_input_size: int = Field(default=100 * _MB, gt=0)
    max_iterations: int = Field(default=1_000_000, gt=0)
    max_depth: int = Field(default=256, gt=0)
    max_collection_size: int = Field(default=100_000, gt=0)
    max_nodes: int = Field(default=10_000_000, gt=0)
    max_string_length: int = Field(default=1 * _MB, gt=0)

    @classmethod
    def strict(cls) -> ParserLimits:
        """For untrusted input."""
        return cls(
            max_input_size=10 * _MB,
            max_iterations=100_000,
            max_depth=64,
            max_collection_size=10_000,
            max_nodes=1_000_000,
            max_string_length=64 * _KB,
        )

    @classmethod
    def balanced(cls) -> ParserLimits:
        return cls()

    @classmethod
    def relaxed(cls) -> ParserLimits:
        """For large trusted project exports."""
        return cls(
            max_input_size=1 * _GB,
            max_iterations=10_000_000,
            max_depth=512,
            max_collection_size=1_000_000,
            max_nodes=100_000_000,
            max_string_length=10 * _MB,
        )


@dataclass
class LimitTracker:
    """Mutable counters checked against a ``ParserLimits``."""

    limits: ParserLimits = field(default_factory=ParserLimits)
    depth: int = 0
    nodes: int = 0

    def check_input_size(self, size: int) -> None:
        if size > self.limits.max_input_size:
            raise SecurityError(LimitKind.INPUT_SIZE, self.limits.max_input_size, size)

    def enter(self, span: Span | None = None) -> None:
        self.depth += 1
        if self.depth > self.limits.max_depth:
            raise SecurityError(LimitKind.DEPTH, self.limits.max_depth, self.depth, span)

    def exit(self) -> None:
        self.depth = max(0, self.depth - 1)

    def record_node(self, span: Span | None = None) -> None:
        self.nodes += 1
        if self.nodes > self.limits.max_nodes:
            raise SecurityError(LimitKind.NODES, self.limits.max_nodes, self.nodes, span)

    def check_iterations(self, count: int, span: Span | None = None) -> None:
        """*count* is the number of passes made so far by one scanning or parsing loop."""
        if count > self.limits.max_iterations:
            raise SecurityError(LimitKind.ITERATIONS, self.limits.max_iterations, count, span)

    def check_collection(self, size: int, span: Span | None = None) -> None:
        if size > self.limits.max_collection_size:
            raise SecurityError(
                LimitKind.COLLECTION_SIZE, self.limits.max_collection_size, size, span
            )

    def check_string(self, length: int, span: Span | None = None) -> None:
        if length > self.limits.max_string_length:
            raise SecurityError(
                LimitKind.STRING_LENGTH, self.limits.max_string_length, length, span
            )


# ---------------------------------------------------------------------------
# Interpreter stack
# ---------------------------------------------------------------------------

# Python frames one level of tree nesting may cost, in the parser or a walker.
FRAMES_PER_LEVEL = 12


@contextmanager
def recursion_budget(levels: int) -> Iterator[None]:
    """Grow the interpreter recursion limit to hold *levels* more tree levels.

    The previous limit is restored on exit, so budgets nest.
    """
    previous = sys.getrecursionlimit()
    sys.setrecursionlimit(previous + levels * FRAMES_PER_LEVEL)
    try:
        yield
    finally:
        sys.setrecursionlimit(previous)


def walks_deep_trees(func: Callable) -> Callable:
    """Run *func* with room for any tree the relaxed limits let through."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        with recursion_budget(ParserLimits.relaxed().max_depth):
            return func(*args, **kwargs)

    return wrapper
