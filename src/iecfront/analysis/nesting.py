"""Nesting depth of control structures."""

from __future__ import annotations

from iecfront.syntax.walk import nested_bodies

_NESTING_KINDS = frozenset({"if", "case", "for", "while", "repeat"})


def max_nesting_depth(stmts: list) -> int:
    """Deepest IF/CASE/FOR/WHILE/REPEAT nesting in *stmts*.

    ``IF a THEN IF b THEN x := 1; END_IF; END_IF;`` has depth 2.  REGION
    blocks are transparent.
    """
    deepest = 0
    stack = [(stmts, 0)]
    while stack:
        body, depth = stack.pop()
        deepest = max(deepest, depth)
        for stmt in body:
            inner = depth + 1 if stmt.kind in _NESTING_KINDS else depth
            deepest = max(deepest, inner)
            for nested in nested_bodies(stmt):
                stack.append((nested, inner))
    return deepest
