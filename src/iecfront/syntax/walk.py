"""Generic traversal over syntax trees.

The analyses only read the tree, so these helpers are plain generators driven
by an explicit stack.
"""

from __future__ import annotations

from collections.abc import Iterator

from pydantic import BaseModel

from iecfront.span import Span


def _nodes_in(value: object) -> Iterator[BaseModel]:
    if isinstance(value, Span):
        return
    if isinstance(value, BaseModel):
        yield value
    elif isinstance(value, list):
        for item in value:
            yield from _nodes_in(item)
    elif isinstance(value, dict):
        for item in value.values():
            yield from _nodes_in(item)


def child_nodes(node: BaseModel) -> list[BaseModel]:
    """Direct syntax children of *node*, in field order."""
    children: list[BaseModel] = []
    for name in type(node).model_fields:
        if name == "span":
            continue
        children.extend(_nodes_in(getattr(node, name)))
    return children


def iter_nodes(root: BaseModel) -> Iterator[BaseModel]:
    """Pre-order walk of *root* and everything below it."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(child_nodes(node)))


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------

def nested_bodies(stmt: BaseModel) -> list[list]:
    """Statement lists directly owned by *stmt*."""
    kind = getattr(stmt, "kind", None)
    if kind == "if":
        bodies = [stmt.if_branch.body] + [b.body for b in stmt.elsif_branches]
        if stmt.else_body is not None:
            bodies.append(stmt.else_body)
        return bodies
    if kind == "case":
        bodies = [b.body for b in stmt.branches]
        if stmt.else_body is not None:
            bodies.append(stmt.else_body)
        return bodies
    if kind in ("for", "while", "repeat", "region"):
        return [stmt.body]
    return []


def iter_statements(stmts: list) -> Iterator[BaseModel]:
    """Every statement in *stmts*, descending into nested bodies."""
    stack = list(reversed(stmts))
    while stack:
        stmt = stack.pop()
        yield stmt
        for body in reversed(nested_bodies(stmt)):
            stack.extend(reversed(body))


def statement_expressions(stmt: BaseModel) -> list:
    """Expression roots owned by *stmt* itself (not by nested statements)."""
    kind = getattr(stmt, "kind", None)
    if kind == "assignment":
        return [stmt.target, stmt.value]
    if kind == "if":
        return [stmt.if_branch.condition] + [b.condition for b in stmt.elsif_branches]
    if kind == "case":
        exprs = [stmt.selector]
        for branch in stmt.branches:
            for sel in branch.selectors:
                exprs.extend([sel.value] if sel.kind == "value" else [sel.low, sel.high])
        return exprs
    if kind == "for":
        return [e for e in (stmt.start, stmt.end, stmt.step) if e is not None]
    if kind == "while":
        return [stmt.condition]
    if kind == "repeat":
        return [stmt.until]
    if kind == "return":
        return [stmt.value] if stmt.value is not None else []
    if kind == "function_call_stmt":
        return [stmt.call]
    if kind == "fb_invocation":
        return [stmt.instance] + [a for a in (arg_expression(arg) for arg in stmt.args) if a is not None]
    return []


def arg_expression(arg: BaseModel):
    kind = arg.kind
    if kind in ("positional", "named"):
        return arg.value
    if kind == "output":
        return arg.target
    return None


def iter_subexpressions(expr: BaseModel) -> Iterator[BaseModel]:
    """Pre-order walk of an expression tree, arguments included."""
    stack = [expr]
    while stack:
        node = stack.pop()
        yield node
        kind = node.kind
        if kind == "binary":
            stack.extend([node.right, node.left])
        elif kind == "unary":
            stack.append(node.operand)
        elif kind == "paren":
            stack.append(node.inner)
        elif kind in ("member_access", "deref"):
            stack.append(node.base)
        elif kind == "array_access":
            stack.extend(reversed(node.indices))
            stack.append(node.base)
        elif kind == "function_call":
            stack.extend(reversed([e for e in map(arg_expression, node.args) if e is not None]))
        elif kind == "array_init":
            stack.extend(reversed(node.elements))
        elif kind == "repeated_init" and node.value is not None:
            stack.append(node.value)
        elif kind == "struct_init":
            stack.extend(reversed([f.value for f in node.fields]))


def iter_expressions(stmts: list) -> Iterator[BaseModel]:
    """Every expression node under *stmts*."""
    for stmt in iter_statements(stmts):
        for root in statement_expressions(stmt):
            yield from iter_subexpressions(root)


_ACCESS_KINDS = frozenset({"member_access", "array_access", "deref"})


def iter_variable_accesses(expr: BaseModel) -> Iterator[tuple[str, BaseModel]]:
    """``(variable name, outermost access)`` for every variable *expr* mentions.

    ``Motor.Speed[i]`` yields ``("Motor", <the whole access>)`` and then
    ``("i", <i>)``; the intermediate accesses are not reported separately.
    """
    covered: set[int] = set()
    for node in iter_subexpressions(expr):
        if id(node) in covered:
            continue
        if node.kind in _ACCESS_KINDS:
            base = node
            while base.kind in _ACCESS_KINDS:
                covered.add(id(base))
                base = base.base
            covered.add(id(base))
            if base.kind == "variable_ref":
                yield base.name, node
        elif node.kind == "variable_ref":
            yield node.name, node
