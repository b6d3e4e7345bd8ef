"""Whole-controller analysis.

``analyze_controller`` walks every program and every add-on instruction of a
``Controller``.  Ladder routines are parsed rung by rung, ST routines are
parsed with the Rockwell dialect in recovering mode and run through the
analysis passes, FBD and SFC routines are only counted.  One bad rung or
routine never stops the walk: its error is recorded with its location and the
next one is parsed.

Public API::

    from iecfront.project import analyze_controller

    analysis = analyze_controller(controller)
    analysis.stats.parsed_ok
    for ref in analysis.references_to("Motor"):
        print(ref.path(), ref.instruction)
    print(analysis.format_parse_errors())
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum

from iecfront.analysis import Diagnostic, SmellConfig, Symbol, SymbolKind, Type, analyze_pou
from iecfront.dialect import ROCKWELL_ST
from iecfront.errors import ParseError, SecurityError
from iecfront.export.st import format_expression
from iecfront.parser import parse_statements_recovering
from iecfront.rll import ErrorContext, Rung, RungParseError, parse_rung
from iecfront.security import ParserLimits, walks_deep_trees
from iecfront.syntax.declarations import ProgramDecl
from iecfront.syntax.walk import iter_statements, iter_subexpressions, iter_variable_accesses, statement_expressions

from .tree import Controller, Routine, RoutineType

logger = logging.getLogger(__name__)

AOI_PREFIX = "AOI:"


def aoi_owner(name: str) -> str:
    """Owner name under which an add-on instruction's routines are filed."""
    return f"{AOI_PREFIX}{name}"


# ---------------------------------------------------------------------------
# Locations and records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RungLocation:
    program: str
    routine: str
    rung_number: int

    def path(self) -> str:
        return f"{self.program}/{self.routine}/Rung#{self.rung_number}"

    def context(self) -> ErrorContext:
        return ErrorContext(self.program, self.routine, self.rung_number)


@dataclass(frozen=True)
class StLocation:
    program: str
    routine: str

    def path(self) -> str:
        return f"{self.program}/{self.routine}"


@dataclass
class LocatedRung:
    location: RungLocation
    rung: Rung
    comment: str | None = None


@dataclass
class LocatedTagReference:
    """A tag mentioned by a rung operand or an ST routine.

    ST references have no operand index and *instruction* ``"ST"``.
    """

    name: str
    full_operand: str
    instruction: str
    location: RungLocation | StLocation
    operand_index: int | None = None

    @property
    def program(self) -> str:
        return self.location.program

    def path(self) -> str:
        return self.location.path()


class AoiCallSource(str, Enum):
    RLL = "RLL"
    ST = "ST"


@dataclass
class AoiReference:
    aoi_name: str
    source: AoiCallSource
    program: str
    routine: str
    rung_number: int | None = None

    def path(self) -> str:
        base = f"{self.program}/{self.routine}"
        return f"{base}/Rung#{self.rung_number}" if self.rung_number is not None else base


@dataclass
class ParsedStRoutine:
    location: StLocation
    source: str
    statements: list = field(default_factory=list)
    errors: list[ParseError] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def is_ok(self) -> bool:
        return not self.errors


@dataclass
class LimitFailure:
    """A rung or routine abandoned because it exceeded a parser limit."""

    path: str
    error: SecurityError


@dataclass
class RoutineSummary:
    program: str
    name: str
    routine_type: RoutineType
    rung_count: int = 0
    statement_count: int = 0
    parsed_ok: int = 0
    parse_errors: int = 0
    tag_references: int = 0

    @property
    def is_aoi(self) -> bool:
        return self.program.startswith(AOI_PREFIX)


@dataclass
class ParseStats:
    programs: int = 0
    aois: int = 0
    routines: int = 0
    routines_by_type: dict[str, int] = field(default_factory=dict)
    rungs: int = 0
    rll_rungs_programs: int = 0
    rll_rungs_aois: int = 0
    parsed_ok: int = 0
    parsed_err: int = 0
    tag_references: int = 0
    unique_tags: int = 0
    instructions: int = 0
    st_routines: int = 0
    st_routines_programs: int = 0
    st_routines_aois: int = 0
    st_statements: int = 0
    st_parsed_ok: int = 0
    st_parsed_err: int = 0
    st_diagnostics: int = 0
    limit_failures: int = 0

    def success_rate(self) -> float:
        """Percentage of ladder rungs that parsed; 100 when there are none."""
        if self.rungs == 0:
            return 100.0
        return 100.0 * self.parsed_ok / self.rungs


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass
class ProjectAnalysis:
    """Everything ``analyze_controller`` found, with query helpers."""

    stats: ParseStats = field(default_factory=ParseStats)
    rungs: list[LocatedRung] = field(default_factory=list)
    routines: list[RoutineSummary] = field(default_factory=list)
    references: list[LocatedTagReference] = field(default_factory=list)
    tag_xref: dict[str, list[LocatedTagReference]] = field(default_factory=dict)
    instruction_usage: Counter = field(default_factory=Counter)
    rung_errors: list[RungParseError] = field(default_factory=list)
    st_routines: list[ParsedStRoutine] = field(default_factory=list)
    aoi_usage: dict[str, list[AoiReference]] = field(default_factory=dict)
    limit_failures: list[LimitFailure] = field(default_factory=list)
    aoi_names: list[str] = field(default_factory=list)
    # owner -> upper-cased names visible there (controller tags included)
    scope_tags: dict[str, set[str]] = field(default_factory=dict, repr=False)

    # -- tags ----------------------------------------------------------------

    def references_to(self, tag: str) -> list[LocatedTagReference]:
        return list(self.tag_xref.get(tag, ()))

    def unique_tags(self) -> list[str]:
        return sorted(self.tag_xref)

    def tags_by_instruction(self, mnemonic: str) -> list[str]:
        """Tags used as operands of *mnemonic*, e.g. every ``OTE`` target."""
        return sorted({ref.name for ref in self.references if ref.instruction == mnemonic})

    def undefined_tags(self) -> list[str]:
        """Referenced tags declared neither in their program or AOI nor at controller scope."""
        undefined = set()
        for ref in self.references:
            visible = self.scope_tags.get(ref.program, set())
            if ref.name.upper() not in visible:
                undefined.add(ref.name)
        return sorted(undefined)

    # -- routines ------------------------------------------------------------

    def get_routine(self, program: str, routine: str) -> RoutineSummary | None:
        for summary in self.routines:
            if summary.program == program and summary.name == routine:
                return summary
        return None

    def routines_in_program(self, program: str) -> list[RoutineSummary]:
        return [s for s in self.routines if s.program == program]

    def program_names(self) -> list[str]:
        """Programs in controller order; add-on instructions are not included."""
        names: list[str] = []
        for summary in self.routines:
            if not summary.is_aoi and summary.program not in names:
                names.append(summary.program)
        return names

    def top_instructions(self, n: int = 10) -> list[tuple[str, int]]:
        ranked = sorted(self.instruction_usage.items(), key=lambda item: (-item[1], item[0]))
        return ranked[:n]

    # -- errors --------------------------------------------------------------

    def parse_errors(self) -> list[RungParseError]:
        return list(self.rung_errors)

    def format_parse_errors(self) -> str:
        return "\n\n".join(error.format() for error in self.rung_errors)

    def st_parse_errors(self) -> list[tuple[StLocation, ParseError]]:
        return [(r.location, e) for r in self.st_routines for e in r.errors]

    def st_all_diagnostics(self) -> list[tuple[StLocation, Diagnostic]]:
        return [(r.location, d) for r in self.st_routines for d in r.diagnostics]

    # -- add-on instructions -------------------------------------------------

    def aoi_references(self, name: str) -> list[AoiReference]:
        return list(self.aoi_usage.get(name, ()))

    def unused_aois(self) -> list[str]:
        return sorted(name for name in self.aoi_names if not self.aoi_usage.get(name))

    def aois_by_usage(self) -> list[tuple[str, int]]:
        """Every defined AOI with its call count, most used first."""
        counts = [(name, len(self.aoi_usage.get(name, ()))) for name in self.aoi_names]
        return sorted(counts, key=lambda item: (-item[1], item[0]))

    def programs_using_aoi(self, name: str) -> list[str]:
        return sorted({
            ref.program for ref in self.aoi_usage.get(name, ())
            if not ref.program.startswith(AOI_PREFIX)
        })

    def aoi_calls_aoi(self) -> list[tuple[str, str]]:
        """``(caller, callee)`` pairs where one AOI calls another."""
        pairs = set()
        for callee, refs in self.aoi_usage.items():
            for ref in refs:
                if ref.program.startswith(AOI_PREFIX):
                    pairs.add((ref.program[len(AOI_PREFIX):], callee))
        return sorted(pairs)


# ---------------------------------------------------------------------------
# Walk
# ---------------------------------------------------------------------------

class _ControllerWalker:
    def __init__(self, controller: Controller, limits: ParserLimits | None, smell_config: SmellConfig | None):
        self.controller = controller
        self.limits = limits
        self.smell_config = smell_config
        self.result = ProjectAnalysis(aoi_names=[a.name for a in controller.add_on_instructions])
        self._aoi_lookup = {a.name.upper(): a.name for a in controller.add_on_instructions}
        self._controller_symbols = [_tag_symbol(t.name, t.data_type) for t in controller.tags]

    def run(self) -> ProjectAnalysis:
        stats = self.result.stats
        controller_names = {t.name.upper() for t in self.controller.tags}

        for program in self.controller.programs:
            stats.programs += 1
            self.result.scope_tags[program.name] = controller_names | {t.name.upper() for t in program.tags}
            symbols = self._controller_symbols + [_tag_symbol(t.name, t.data_type) for t in program.tags]
            for routine in program.routines:
                self._routine(program.name, routine, symbols)

        for aoi in self.controller.add_on_instructions:
            stats.aois += 1
            owner = aoi_owner(aoi.name)
            local_names = {p.name.upper() for p in aoi.parameters} | {t.name.upper() for t in aoi.local_tags}
            self.result.scope_tags[owner] = controller_names | local_names
            symbols = (
                self._controller_symbols
                + [_tag_symbol(p.name, p.data_type) for p in aoi.parameters]
                + [_tag_symbol(t.name, t.data_type) for t in aoi.local_tags]
            )
            for routine in aoi.routines:
                self._routine(owner, routine, symbols)

        stats.tag_references = len(self.result.references)
        stats.unique_tags = len(self.result.tag_xref)
        stats.instructions = sum(self.result.instruction_usage.values())
        stats.limit_failures = len(self.result.limit_failures)
        logger.debug(
            "%s: %d rung(s), %d parsed, %d failed; %d ST routine(s)",
            self.controller.name, stats.rungs, stats.parsed_ok, stats.parsed_err, stats.st_routines,
        )
        return self.result

    def _routine(self, owner: str, routine: Routine, symbols: list[Symbol]) -> None:
        stats = self.result.stats
        stats.routines += 1
        kind = routine.routine_type.value
        stats.routines_by_type[kind] = stats.routines_by_type.get(kind, 0) + 1
        summary = RoutineSummary(program=owner, name=routine.name, routine_type=routine.routine_type)
        self.result.routines.append(summary)
        if routine.routine_type == RoutineType.RLL:
            self._rll_routine(owner, routine, summary)
        elif routine.routine_type == RoutineType.ST:
            self._st_routine(owner, routine, summary, symbols)
        logger.debug("%s/%s: %s routine done", owner, routine.name, kind)

    # -- ladder --------------------------------------------------------------

    def _rll_routine(self, owner: str, routine: Routine, summary: RoutineSummary) -> None:
        stats = self.result.stats
        in_aoi = owner.startswith(AOI_PREFIX)
        for rung_text in routine.rungs:
            location = RungLocation(owner, routine.name, rung_text.number)
            text = rung_text.text or ""
            summary.rung_count += 1
            stats.rungs += 1
            if in_aoi:
                stats.rll_rungs_aois += 1
            else:
                stats.rll_rungs_programs += 1
            try:
                rung = parse_rung(text, self.limits)
            except SecurityError as exc:
                logger.warning("%s: %s", location.path(), exc.message)
                self.result.limit_failures.append(LimitFailure(location.path(), exc))
                summary.parse_errors += 1
                stats.parsed_err += 1
                continue
            self.result.rungs.append(LocatedRung(location, rung, rung_text.comment))
            if not rung.is_parsed:
                summary.parse_errors += 1
                stats.parsed_err += 1
                self.result.rung_errors.append(RungParseError(rung.error, text, location.context()))
                continue
            summary.parsed_ok += 1
            stats.parsed_ok += 1
            for instruction in rung.instructions():
                self.result.instruction_usage[instruction.mnemonic] += 1
                aoi_name = self._aoi_lookup.get(instruction.mnemonic.upper())
                if aoi_name is not None:
                    self._aoi_call(aoi_name, AoiCallSource.RLL, owner, routine.name, rung_text.number)
            for ref in rung.tag_references():
                summary.tag_references += 1
                self._add_reference(LocatedTagReference(
                    name=ref.name,
                    full_operand=ref.full_operand,
                    instruction=ref.instruction,
                    location=location,
                    operand_index=ref.operand_index,
                ))

    # -- structured text -----------------------------------------------------

    def _st_routine(self, owner: str, routine: Routine, summary: RoutineSummary, symbols: list[Symbol]) -> None:
        stats = self.result.stats
        location = StLocation(owner, routine.name)
        source = routine.st_source
        stats.st_routines += 1
        if owner.startswith(AOI_PREFIX):
            stats.st_routines_aois += 1
        else:
            stats.st_routines_programs += 1

        declared = {s.name for s in symbols}
        try:
            stmts, errors = parse_statements_recovering(source, self.limits, ROCKWELL_ST, declared=declared)
        except SecurityError as exc:
            logger.warning("%s: %s", location.path(), exc.message)
            self.result.limit_failures.append(LimitFailure(location.path(), exc))
            summary.parse_errors += 1
            stats.st_parsed_err += 1
            return

        parsed = ParsedStRoutine(location, source, stmts, errors)
        pou = ProgramDecl(name=routine.name, body=stmts)
        parsed.diagnostics = analyze_pou(pou, self.smell_config, externals=_fresh(symbols))
        self.result.st_routines.append(parsed)

        summary.statement_count = sum(1 for _ in iter_statements(stmts))
        summary.parse_errors = len(errors)
        summary.parsed_ok = 0 if errors else 1
        stats.st_statements += summary.statement_count
        stats.st_diagnostics += len(parsed.diagnostics)
        if errors:
            stats.st_parsed_err += 1
        else:
            stats.st_parsed_ok += 1

        for stmt in iter_statements(stmts):
            for root in statement_expressions(stmt):
                for name, node in iter_variable_accesses(root):
                    summary.tag_references += 1
                    self._add_reference(LocatedTagReference(
                        name=name, full_operand=format_expression(node), instruction="ST", location=location,
                    ))
                for node in iter_subexpressions(root):
                    if node.kind != "function_call":
                        continue
                    aoi_name = self._aoi_lookup.get(node.name.upper())
                    if aoi_name is not None:
                        self._aoi_call(aoi_name, AoiCallSource.ST, owner, routine.name, None)

    # -- recording -----------------------------------------------------------

    def _add_reference(self, ref: LocatedTagReference) -> None:
        self.result.references.append(ref)
        self.result.tag_xref.setdefault(ref.name, []).append(ref)

    def _aoi_call(self, aoi_name: str, source: AoiCallSource, owner: str, routine: str, rung: int | None) -> None:
        self.result.aoi_usage.setdefault(aoi_name, []).append(AoiReference(
            aoi_name=aoi_name, source=source, program=owner, routine=routine, rung_number=rung,
        ))


def _tag_symbol(name: str, data_type: str | None) -> Symbol:
    ty = Type.from_name(data_type) if data_type else None
    return Symbol(name=name, kind=SymbolKind.VARIABLE, type=ty, assigned=True)


def _fresh(symbols: list[Symbol]) -> list[Symbol]:
    """Copies for one symbol table; a later symbol hides an earlier one of the same name."""
    by_name = {s.name: Symbol(name=s.name, kind=s.kind, type=s.type, assigned=s.assigned) for s in symbols}
    return list(by_name.values())


@walks_deep_trees
def analyze_controller(
    controller: Controller,
    limits: ParserLimits | None = None,
    smell_config: SmellConfig | None = None,
) -> ProjectAnalysis:
    """Parse and cross-reference every routine of *controller*.

    Parameters
    ----------
    controller : Controller
        The project tree.
    limits : ParserLimits, optional
        Applied to each rung and each ST routine separately.  A rung or
        routine that exceeds them is recorded in ``limit_failures`` and skipped.
    smell_config : SmellConfig, optional
        Thresholds for the analysis of ST routines.

    Returns
    -------
    ProjectAnalysis
        Statistics, located rungs and tag references, AOI usage and every
        parse error with its ``Program/Routine/Rung#N`` location.
    """
    return _ControllerWalker(controller, limits, smell_config).run()
