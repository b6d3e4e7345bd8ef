"""Validation of duration and date literal payloads.

The lexer keeps ``T#1h30m`` and friends verbatim; the parser calls into here to
check the payload before building a literal node.
"""

from __future__ import annotations

import re

from .errors import ParseErrorKind

_NS_PER_UNIT: dict[str, int] = {
    "d": 86_400_000_000_000,
    "h": 3_600_000_000_000,
    "m": 60_000_000_000,
    "s": 1_000_000_000,
    "ms": 1_000_000,
    "us": 1_000,
    "ns": 1,
}

# Units must appear largest first; each at most once.
_UNIT_ORDER = ["d", "h", "m", "s", "ms", "us", "ns"]

_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d+)?)([A-Za-z]+)")

_DATE_RE = re.compile(r"^\d{4}-\d{1,2}-\d{1,2}$")
_TOD_RE = re.compile(r"^\d{1,2}:\d{1,2}(?::\d{1,2}(?:\.\d+)?)?$")
_DT_RE = re.compile(r"^\d{4}-\d{1,2}-\d{1,2}-\d{1,2}:\d{1,2}(?::\d{1,2}(?:\.\d+)?)?$")


class LiteralError(ValueError):
    """A malformed duration or date payload."""

    def __init__(self, kind: ParseErrorKind, text: str):
        self.kind = kind
        self.text = text
        super().__init__(f"{kind.value}: {text!r}")


def parse_duration(payload: str) -> int:
    """Return the duration written after ``T#`` in nanoseconds.

    ``1h30m``, ``-250ms``, ``1.5s`` and ``1d_2h`` are accepted; unit case is
    ignored.
    """
    body = payload.replace("_", "")
    sign = 1
    if body.startswith("-"):
        sign = -1
        body = body[1:]
    elif body.startswith("+"):
        body = body[1:]
    if not body:
        raise LiteralError(ParseErrorKind.INVALID_TIME_LITERAL, payload)

    total = 0.0
    pos = 0
    last_rank = -1
    while pos < len(body):
        m = _DURATION_PART_RE.match(body, pos)
        if m is None:
            raise LiteralError(ParseErrorKind.INVALID_TIME_LITERAL, payload)
        unit = m.group(2).lower()
        if unit not in _NS_PER_UNIT:
            raise LiteralError(ParseErrorKind.INVALID_TIME_UNIT, payload)
        rank = _UNIT_ORDER.index(unit)
        if rank <= last_rank:
            raise LiteralError(ParseErrorKind.INVALID_TIME_LITERAL, payload)
        last_rank = rank
        total += float(m.group(1)) * _NS_PER_UNIT[unit]
        pos = m.end()
    return sign * int(round(total))


def check_date(payload: str) -> None:
    if not _DATE_RE.match(payload):
        raise LiteralError(ParseErrorKind.INVALID_TIME_LITERAL, payload)


def check_time_of_day(payload: str) -> None:
    if not _TOD_RE.match(payload):
        raise LiteralError(ParseErrorKind.INVALID_TIME_LITERAL, payload)


def check_date_and_time(payload: str) -> None:
    if not _DT_RE.match(payload):
        raise LiteralError(ParseErrorKind.INVALID_TIME_LITERAL, payload)
