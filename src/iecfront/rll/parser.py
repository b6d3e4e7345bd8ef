"""Hand-written parser for ladder rung text.

Grammar::

    rung        = element* ";"
    element     = parallel | instruction
    parallel    = "[" branch ("," branch)* "]"
    branch      = element+
    instruction = MNEMONIC "(" [operand ("," operand)*] ")"
    operand     = "?" | text with balanced (), [] and quotes

Whitespace is allowed between elements and around operands.  Error
positions are offsets into the text as given, leading blanks included.
"""

from __future__ import annotations

from iecfront.security import LimitTracker, ParserLimits, recursion_budget
from iecfront.span import Span

from .ast import Branch, Instruction, Operand, Parallel, Rung, RungContent
from .errors import RllError, RllErrorKind

_CLOSERS = {"(": ")", "[": "]"}


def _is_mnemonic_start(c: str) -> bool:
    return c.isascii() and (c.isalpha() or c == "_")


def _is_mnemonic_char(c: str) -> bool:
    return c.isascii() and (c.isalnum() or c == "_")


class _RungParser:
    def __init__(self, text: str, tracker: LimitTracker) -> None:
        self.text = text
        self.pos = 0
        self.tracker = tracker
        self._steps = 0

    # -- cursor --------------------------------------------------------------

    def _peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def _skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def _step(self) -> None:
        self._steps += 1
        self.tracker.check_iterations(self._steps, Span.at(self.pos))

    def _unexpected(self) -> RllError:
        c = self._peek()
        if not c:
            return RllError(RllErrorKind.UNEXPECTED_EOF)
        return RllError(RllErrorKind.UNEXPECTED_CHAR, self.pos, char=c)

    # -- grammar -------------------------------------------------------------

    def parse(self) -> RungContent:
        self._skip_ws()
        if self.pos == len(self.text):
            raise RllError(RllErrorKind.EMPTY_INPUT)
        elements = []
        while True:
            self._step()
            self._skip_ws()
            c = self._peek()
            if c == ";":
                self.pos += 1
                break
            if not c:
                raise RllError(RllErrorKind.MISSING_TERMINATOR)
            elements.append(self._element())
            self.tracker.check_collection(len(elements), Span.at(self.pos))
        self._skip_ws()
        if self.pos < len(self.text):
            raise RllError(RllErrorKind.UNEXPECTED_CHAR, self.pos, char=self.text[self.pos])
        return RungContent(elements=elements)

    def _element(self):
        c = self._peek()
        if c == "[":
            return self._parallel()
        if _is_mnemonic_start(c):
            return self._instruction()
        raise self._unexpected()

    def _parallel(self) -> Parallel:
        start = self.pos
        self.tracker.enter(Span.at(start))
        try:
            self.pos += 1
            branches = [self._branch(start)]
            while True:
                self._step()
                self._skip_ws()
                c = self._peek()
                if c == ",":
                    self.pos += 1
                    branches.append(self._branch(start))
                    self.tracker.check_collection(len(branches), Span.at(self.pos))
                elif c == "]":
                    self.pos += 1
                    break
                elif not c:
                    raise RllError(RllErrorKind.UNCLOSED_BRACKET, start)
                else:
                    raise self._unexpected()
        finally:
            self.tracker.exit()
        self.tracker.record_node(Span.new(start, self.pos))
        return Parallel(branches=branches, span=Span.new(start, self.pos))

    def _branch(self, open_pos: int) -> Branch:
        elements = []
        while True:
            self._step()
            self._skip_ws()
            c = self._peek()
            if c in (",", "]"):
                break
            if not c:
                raise RllError(RllErrorKind.UNCLOSED_BRACKET, open_pos)
            elements.append(self._element())
            self.tracker.check_collection(len(elements), Span.at(self.pos))
        if not elements:
            raise RllError(RllErrorKind.EXPECTED, self.pos, expected="instruction")
        return Branch(elements=elements)

    def _instruction(self) -> Instruction:
        start = self.pos
        while _is_mnemonic_char(self._peek()):
            self.pos += 1
        mnemonic = self.text[start:self.pos]
        if self._peek() != "(":
            if not self._peek():
                raise RllError(RllErrorKind.UNEXPECTED_EOF)
            raise RllError(RllErrorKind.EXPECTED, self.pos, expected="'('")
        open_pos = self.pos
        self.pos += 1

        operands: list[Operand] = []
        self._skip_ws()
        if self._peek() == ")":
            self.pos += 1
        else:
            while True:
                self._step()
                operands.append(self._operand())
                self.tracker.check_collection(len(operands), Span.at(self.pos))
                c = self._peek()
                if c == ",":
                    self.pos += 1
                elif c == ")":
                    self.pos += 1
                    break
                elif not c:
                    raise RllError(RllErrorKind.UNCLOSED_PAREN, open_pos)
                else:
                    raise RllError(RllErrorKind.EXPECTED, self.pos, expected="',' or ')'")
        span = Span.new(start, self.pos)
        self.tracker.record_node(span)
        return Instruction(mnemonic=mnemonic, operands=operands, span=span)

    def _operand(self) -> Operand:
        self._skip_ws()
        if self._peek() == "?":
            self.pos += 1
            self._skip_ws()
            return Operand.inferred()

        start = self.pos
        openers: list[tuple[str, int]] = []
        text = self.text
        while self.pos < len(text):
            c = text[self.pos]
            if c in "'\"":
                end = text.find(c, self.pos + 1)
                self.pos = len(text) if end == -1 else end + 1
                continue
            if c in _CLOSERS:
                openers.append((c, self.pos))
            elif c in ")]":
                if not openers:
                    break
                if _CLOSERS[openers[-1][0]] != c:
                    raise RllError(RllErrorKind.UNEXPECTED_CHAR, self.pos, char=c)
                openers.pop()
            elif c == "," and not openers:
                break
            self.pos += 1

        if openers:
            opener, pos = openers[-1]
            kind = RllErrorKind.UNCLOSED_PAREN if opener == "(" else RllErrorKind.UNCLOSED_BRACKET
            raise RllError(kind, pos)
        value = text[start:self.pos].strip()
        if not value:
            raise RllError(RllErrorKind.EXPECTED, start, expected="operand")
        self.tracker.check_string(len(value), Span.new(start, self.pos))
        return Operand.of(value)


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def parse_rung_strict(text: str, limits: ParserLimits | None = None) -> RungContent:
    """Parse one rung of ladder text.

    Raises
    ------
    RllError
        On the first syntax problem.
    SecurityError
        When *limits* are exceeded.
    """
    tracker = LimitTracker(limits or ParserLimits())
    tracker.check_input_size(len(text.encode("utf-8")))
    with recursion_budget(tracker.limits.max_depth):
        return _RungParser(text, tracker).parse()


def parse_rung(text: str, limits: ParserLimits | None = None) -> Rung:
    """Parse one rung, keeping a syntax error on the result instead of raising.

    Blank text is an empty rung.  Security limit violations still raise.
    """
    if not text.strip():
        return Rung.ok(text, RungContent())
    try:
        return Rung.ok(text, parse_rung_strict(text, limits))
    except RllError as exc:
        return Rung.err(text, exc)
