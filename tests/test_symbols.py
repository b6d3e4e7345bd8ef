"""Tests for the scoped symbol table and unused-variable sweep."""

from conftest import analyze, kinds
from iecfront.analysis import DiagnosticKind, Severity, Symbol, SymbolKind, SymbolTable
from iecfront.span import Span


def sym(name, start=0, **kwargs):
    return Symbol(name=name, span=Span(start=start, end=start + len(name)), **kwargs)


# ---------------------------------------------------------------------------
# Scopes
# ---------------------------------------------------------------------------

class TestScopes:
    def test_starts_with_global(self):
        table = SymbolTable()
        assert table.current_scope_name() == "global"

    def test_lookup_walks_outward(self):
        table = SymbolTable()
        table.define(sym("g"))
        table.enter_scope("Main")
        assert table.lookup("g") is not None
        assert not table.is_defined_locally("g")

    def test_inner_symbols_invisible_after_exit(self):
        table = SymbolTable()
        table.enter_scope("Main")
        table.define(sym("x"))
        table.exit_scope()
        assert table.lookup("x") is None
        assert "x" in table.scopes[1].symbols

    def test_exit_global_is_noop(self):
        table = SymbolTable()
        table.exit_scope()
        assert table.current_scope_name() == "global"

    def test_marks_persist(self):
        table = SymbolTable()
        table.define(sym("x"))
        table.mark_used("x")
        table.mark_assigned("x")
        assert table.lookup("x").used
        assert table.lookup("x").assigned


class TestDefine:
    def test_duplicate_is_error_with_related_span(self):
        table = SymbolTable()
        assert table.define(sym("x", 0)) is None
        diag = table.define(sym("x", 10))
        assert diag.kind == DiagnosticKind.DUPLICATE_DEFINITION
        assert diag.severity == Severity.ERROR
        assert diag.span.start == 10
        assert diag.related_span.start == 0
        assert diag.message == "duplicate definition of 'x'"

    def test_duplicate_not_added(self):
        table = SymbolTable()
        table.define(sym("x", 0, kind=SymbolKind.CONSTANT))
        table.define(sym("x", 10))
        assert table.lookup("x").kind == SymbolKind.CONSTANT

    def test_shadowing_is_hint(self):
        table = SymbolTable()
        table.define(sym("x", 0))
        table.enter_scope("Main")
        diag = table.define(sym("x", 20))
        assert diag.kind == DiagnosticKind.SHADOWED_VARIABLE
        assert diag.severity == Severity.HINT
        assert table.lookup("x").span.start == 20

    def test_function_name_does_not_shadow(self):
        table = SymbolTable()
        table.define(sym("Calc", kind=SymbolKind.FUNCTION))
        table.enter_scope("Main")
        assert table.define(sym("Calc")) is None


class TestCheckUnused:
    def test_untouched_variable(self):
        table = SymbolTable()
        table.enter_scope("Main")
        table.define(sym("x"))
        assert kinds(table.check_unused()) == [
            DiagnosticKind.UNUSED_VARIABLE, DiagnosticKind.UNINITIALIZED_VARIABLE,
        ]

    def test_parameters_exempt(self):
        table = SymbolTable()
        table.define(sym("p", kind=SymbolKind.PARAMETER))
        table.define(sym("o", kind=SymbolKind.OUTPUT))
        assert table.check_unused() == []

    def test_constant_never_uninitialized(self):
        table = SymbolTable()
        table.define(sym("K", mutable=False, used=True))
        assert table.check_unused() == []

    def test_exclude_global(self):
        table = SymbolTable()
        table.define(sym("g"))
        assert table.check_unused(include_global=False) == []


# ---------------------------------------------------------------------------
# Through analyze_pou
# ---------------------------------------------------------------------------

class TestDeclarationsInPou:
    def test_unused_local(self):
        diags = analyze("PROGRAM P VAR x : INT; END_VAR END_PROGRAM")
        assert kinds(diags) == [DiagnosticKind.UNUSED_VARIABLE, DiagnosticKind.UNINITIALIZED_VARIABLE]
        assert all(d.severity == Severity.WARNING for d in diags)

    def test_initialised_but_unread(self):
        diags = analyze("PROGRAM P VAR x : INT := 1; END_VAR END_PROGRAM")
        assert kinds(diags) == [DiagnosticKind.UNUSED_VARIABLE]

    def test_read_and_written(self):
        diags = analyze("""
            PROGRAM P
            VAR x : INT; y : INT; END_VAR
                x := 1;
                y := x;
            END_PROGRAM
        """)
        assert kinds(diags) == [DiagnosticKind.UNUSED_VARIABLE]
        assert diags[0].args["name"] == "y"

    def test_duplicate_local(self):
        diags = analyze("""
            PROGRAM P
            VAR x : INT := 0; x : BOOL := TRUE; END_VAR
                x := x + 1;
            END_PROGRAM
        """)
        assert DiagnosticKind.DUPLICATE_DEFINITION in kinds(diags)

    def test_local_shadows_global(self):
        diags = analyze("""
            VAR_GLOBAL count : INT; END_VAR
            PROGRAM P
            VAR count : INT := 0; END_VAR
                count := count + 1;
            END_PROGRAM
        """, "P")
        assert kinds(diags) == [DiagnosticKind.SHADOWED_VARIABLE]

    def test_fb_instance_counts_as_assigned(self):
        diags = analyze("""
            FUNCTION_BLOCK Motor END_FUNCTION_BLOCK
            PROGRAM P
            VAR m : Motor; END_VAR
                m();
            END_PROGRAM
        """, "P")
        assert diags == []

    def test_output_not_reported(self):
        diags = analyze("""
            FUNCTION_BLOCK FB
            VAR_OUTPUT done : BOOL; END_VAR
            END_FUNCTION_BLOCK
        """)
        assert diags == []
