"""Control-flow graphs over statement lists.

Nodes and edges live in two flat lists indexed by integer id; successor and
predecessor maps are derived once when the graph is built.

::

    IF x > 0 THEN          [Entry]
        y := 1;               |
    ELSE                  [Branch]
        y := 2;            T/    \\F
    END_IF;            [y:=1]  [y:=2]
    z := 3;                \\    /
                          [z := 3]
                              |
                           [Exit]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, Field

from iecfront.security import walks_deep_trees
from iecfront.span import Span
from iecfront.syntax.expressions import BinaryOp, Expression
from iecfront.syntax.statements import Statement

ENTRY = 0
EXIT = 1


class CfgNodeKind(str, Enum):
    ENTRY = "ENTRY"
    EXIT = "EXIT"
    BASIC = "BASIC"
    BRANCH = "BRANCH"
    LOOP_HEADER = "LOOP_HEADER"
    LOOP_EXIT = "LOOP_EXIT"


class CfgEdgeKind(str, Enum):
    SEQUENTIAL = "SEQUENTIAL"
    TRUE_BRANCH = "TRUE_BRANCH"
    FALSE_BRANCH = "FALSE_BRANCH"
    LOOP_BACK = "LOOP_BACK"
    LOOP_EXIT = "LOOP_EXIT"
    RETURN = "RETURN"


class CfgNode(BaseModel):
    """A basic block.  Branch and loop-header nodes hold the controlling statement."""

    id: int
    kind: CfgNodeKind
    statements: list[Statement] = []
    span: Span = Field(default_factory=Span.empty)


class CfgEdge(BaseModel):
    source: int
    target: int
    kind: CfgEdgeKind = CfgEdgeKind.SEQUENTIAL


_DOT_LABELS = {
    CfgNodeKind.BASIC: "Block",
    CfgNodeKind.BRANCH: "Branch",
    CfgNodeKind.LOOP_HEADER: "Loop",
    CfgNodeKind.LOOP_EXIT: "LoopExit",
}

_DOT_SHAPES = {
    CfgNodeKind.ENTRY: "ellipse",
    CfgNodeKind.EXIT: "ellipse",
    CfgNodeKind.BRANCH: "diamond",
    CfgNodeKind.LOOP_HEADER: "diamond",
}

_DOT_EDGE_STYLES = {
    CfgEdgeKind.TRUE_BRANCH: ' [label="T" color=green]',
    CfgEdgeKind.FALSE_BRANCH: ' [label="F" color=red]',
    CfgEdgeKind.LOOP_BACK: " [style=dashed color=blue]",
    CfgEdgeKind.RETURN: " [color=purple]",
}


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------

@dataclass
class Cfg:
    nodes: list[CfgNode]
    edges: list[CfgEdge]
    entry: int = ENTRY
    exit: int = EXIT
    _successors: dict[int, list[int]] = field(default_factory=dict, repr=False)
    _predecessors: dict[int, list[int]] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        for edge in self.edges:
            self._successors.setdefault(edge.source, []).append(edge.target)
            self._predecessors.setdefault(edge.target, []).append(edge.source)

    def node(self, node_id: int) -> CfgNode:
        return self.nodes[node_id]

    def successors(self, node_id: int) -> list[int]:
        return self._successors.get(node_id, [])

    def predecessors(self, node_id: int) -> list[int]:
        return self._predecessors.get(node_id, [])

    # -- metrics ---------------------------------------------------------------

    def cyclomatic_complexity(self) -> int:
        """``E - N + 2``, at least 1."""
        return max(1, len(self.edges) - len(self.nodes) + 2)

    def decision_complexity(self) -> int:
        """``1 + D`` where D counts branch and loop-header nodes."""
        decisions = sum(
            1 for n in self.nodes if n.kind in (CfgNodeKind.BRANCH, CfgNodeKind.LOOP_HEADER)
        )
        return 1 + decisions

    # -- reachability ------------------------------------------------------------

    def reachable_nodes(self) -> set[int]:
        visited: set[int] = set()
        stack = [self.entry]
        while stack:
            node_id = stack.pop()
            if node_id in visited:
                continue
            visited.add(node_id)
            stack.extend(s for s in self.successors(node_id) if s not in visited)
        return visited

    def unreachable_nodes(self) -> list[int]:
        reachable = self.reachable_nodes()
        return [n.id for n in self.nodes if n.id not in reachable]

    def has_path(self, source: int, target: int) -> bool:
        visited: set[int] = set()
        stack = [source]
        while stack:
            node_id = stack.pop()
            if node_id == target:
                return True
            if node_id in visited:
                continue
            visited.add(node_id)
            stack.extend(s for s in self.successors(node_id) if s not in visited)
        return False

    # -- export ----------------------------------------------------------------

    def to_dot(self) -> str:
        lines = ["digraph CFG {", "    node [shape=box];"]
        for node in self.nodes:
            if node.kind == CfgNodeKind.ENTRY:
                label = "Entry"
            elif node.kind == CfgNodeKind.EXIT:
                label = "Exit"
            else:
                label = f"{_DOT_LABELS[node.kind]} {node.id}"
            shape = _DOT_SHAPES.get(node.kind, "box")
            lines.append(f'    n{node.id} [label="{label}" shape={shape}];')
        for edge in self.edges:
            style = _DOT_EDGE_STYLES.get(edge.kind, "")
            lines.append(f"    n{edge.source} -> n{edge.target}{style};")
        lines.append("}")
        return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

@dataclass
class CfgBuilder:
    """Walks a statement list once, emitting nodes and edges.

    Each ``_build_*`` method returns ``(first_node, exits)``; an empty exit
    list means control never falls through (RETURN, EXIT, CONTINUE).
    """

    nodes: list[CfgNode] = field(default_factory=list)
    edges: list[CfgEdge] = field(default_factory=list)
    loop_headers: list[int] = field(default_factory=list)
    loop_exits: list[int] = field(default_factory=list)
    returns: list[int] = field(default_factory=list)

    def build(self, statements: list[Statement]) -> Cfg:
        entry = self._node(CfgNodeKind.ENTRY)
        exit_ = self._node(CfgNodeKind.EXIT)
        if not statements:
            self._edge(entry, exit_)
        else:
            first, exits = self._build_list(statements)
            self._edge(entry, first)
            for node_id in exits:
                self._edge(node_id, exit_)
        for node_id in self.returns:
            self._edge(node_id, exit_, CfgEdgeKind.RETURN)
        return Cfg(nodes=self.nodes, edges=self.edges, entry=entry, exit=exit_)

    def _node(self, kind: CfgNodeKind, stmt: Statement | None = None, span: Span | None = None) -> int:
        node = CfgNode(
            id=len(self.nodes),
            kind=kind,
            statements=[stmt] if stmt is not None else [],
            span=span or (stmt.span if stmt is not None else Span.empty()),
        )
        self.nodes.append(node)
        return node.id

    def _edge(self, source: int, target: int, kind: CfgEdgeKind = CfgEdgeKind.SEQUENTIAL) -> None:
        self.edges.append(CfgEdge(source=source, target=target, kind=kind))

    def _build_list(self, stmts: list[Statement]) -> tuple[int, list[int]]:
        if not stmts:
            empty = self._node(CfgNodeKind.BASIC)
            return empty, [empty]
        first: int | None = None
        current: list[int] = []
        for stmt in stmts:
            node_id, exits = self._build_statement(stmt)
            if first is None:
                first = node_id
            for prev in current:
                self._edge(prev, node_id)
            # after a terminal statement the next one has no predecessor
            current = exits
        return first, current

    def _build_statement(self, stmt: Statement) -> tuple[int, list[int]]:
        kind = stmt.kind
        if kind == "if":
            return self._build_if(stmt)
        if kind == "case":
            return self._build_case(stmt)
        if kind in ("for", "while"):
            return self._build_loop(stmt)
        if kind == "repeat":
            return self._build_repeat(stmt)
        if kind == "region":
            if not stmt.body:
                node_id = self._node(CfgNodeKind.BASIC, stmt)
                return node_id, [node_id]
            return self._build_list(stmt.body)

        node_id = self._node(CfgNodeKind.BASIC, stmt)
        if kind == "return":
            self.returns.append(node_id)
            return node_id, []
        if kind == "exit":
            if self.loop_exits:
                self._edge(node_id, self.loop_exits[-1], CfgEdgeKind.LOOP_EXIT)
            else:
                self.returns.append(node_id)
            return node_id, []
        if kind == "continue":
            if self.loop_headers:
                self._edge(node_id, self.loop_headers[-1], CfgEdgeKind.LOOP_BACK)
            else:
                self.returns.append(node_id)
            return node_id, []
        return node_id, [node_id]

    def _build_if(self, stmt) -> tuple[int, list[int]]:
        branch = self._node(CfgNodeKind.BRANCH, stmt, stmt.if_branch.span)
        then_first, exits = self._build_list(stmt.if_branch.body)
        self._edge(branch, then_first, CfgEdgeKind.TRUE_BRANCH)
        false_source = branch
        for elsif in stmt.elsif_branches:
            elsif_node = self._node(CfgNodeKind.BRANCH, span=elsif.span)
            self._edge(false_source, elsif_node, CfgEdgeKind.FALSE_BRANCH)
            first, body_exits = self._build_list(elsif.body)
            self._edge(elsif_node, first, CfgEdgeKind.TRUE_BRANCH)
            exits = exits + body_exits
            false_source = elsif_node
        if stmt.else_body is not None:
            first, body_exits = self._build_list(stmt.else_body)
            self._edge(false_source, first, CfgEdgeKind.FALSE_BRANCH)
            exits = exits + body_exits
        else:
            exits = exits + [false_source]
        return branch, exits

    def _build_case(self, stmt) -> tuple[int, list[int]]:
        branch = self._node(CfgNodeKind.BRANCH, stmt)
        exits: list[int] = []
        for case_branch in stmt.branches:
            first, body_exits = self._build_list(case_branch.body)
            self._edge(branch, first, CfgEdgeKind.TRUE_BRANCH)
            exits.extend(body_exits)
        if stmt.else_body is not None:
            first, body_exits = self._build_list(stmt.else_body)
            self._edge(branch, first, CfgEdgeKind.FALSE_BRANCH)
            exits.extend(body_exits)
        else:
            exits.append(branch)
        return branch, exits

    def _build_loop(self, stmt) -> tuple[int, list[int]]:
        header = self._node(CfgNodeKind.LOOP_HEADER, stmt)
        loop_exit = self._node(CfgNodeKind.LOOP_EXIT, span=stmt.span)
        self.loop_headers.append(header)
        self.loop_exits.append(loop_exit)
        try:
            first, body_exits = self._build_list(stmt.body)
        finally:
            self.loop_headers.pop()
            self.loop_exits.pop()
        self._edge(header, first, CfgEdgeKind.TRUE_BRANCH)
        self._edge(header, loop_exit, CfgEdgeKind.FALSE_BRANCH)
        for node_id in body_exits:
            self._edge(node_id, header, CfgEdgeKind.LOOP_BACK)
        return header, [loop_exit]

    def _build_repeat(self, stmt) -> tuple[int, list[int]]:
        body_start = self._node(CfgNodeKind.BASIC, span=stmt.span)
        condition = self._node(CfgNodeKind.LOOP_HEADER, stmt)
        loop_exit = self._node(CfgNodeKind.LOOP_EXIT, span=stmt.span)
        # CONTINUE in a REPEAT body goes on to the UNTIL test
        self.loop_headers.append(condition)
        self.loop_exits.append(loop_exit)
        try:
            first, body_exits = self._build_list(stmt.body)
        finally:
            self.loop_headers.pop()
            self.loop_exits.pop()
        self._edge(body_start, first)
        for node_id in body_exits:
            self._edge(node_id, condition)
        self._edge(condition, loop_exit, CfgEdgeKind.TRUE_BRANCH)
        self._edge(condition, body_start, CfgEdgeKind.FALSE_BRANCH)
        return body_start, [loop_exit]


@walks_deep_trees
def build_cfg(statements: list[Statement]) -> Cfg:
    return CfgBuilder().build(statements)


def count_expression_decisions(expr: Expression) -> int:
    """Short-circuit operators (AND, OR) in *expr*; XOR does not count."""
    count = 0
    stack = [expr]
    while stack:
        node = stack.pop()
        if node.kind == "binary":
            if node.op in (BinaryOp.AND, BinaryOp.OR):
                count += 1
            stack.append(node.left)
            stack.append(node.right)
        elif node.kind == "unary":
            stack.append(node.operand)
        elif node.kind == "paren":
            stack.append(node.inner)
    return count
