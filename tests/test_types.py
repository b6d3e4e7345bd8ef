"""Tests for the analysis type lattice and the user type registry."""

from conftest import unit
from iecfront.analysis import Type, TypeKind, TypeRegistry
from iecfront.analysis.types import NULL, UNKNOWN


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------

class TestFromName:
    def test_elementary_any_case(self):
        assert Type.from_name("dint").kind == TypeKind.DINT

    def test_aliases(self):
        assert Type.from_name("TIME_OF_DAY").kind == TypeKind.TOD
        assert Type.from_name("DATE_AND_TIME").kind == TypeKind.DT

    def test_generic_any(self):
        assert Type.from_name("ANY_NUM").kind == TypeKind.ANY

    def test_unknown_name_is_named_struct(self):
        t = Type.from_name("TON")
        assert t.kind == TypeKind.STRUCT
        assert t.name == "TON"

    def test_composite_kind_names_are_not_keywords(self):
        assert Type.from_name("ARRAY").kind == TypeKind.STRUCT


class TestFromTypeSpec:
    def _spec(self, decl):
        cu = unit(f"PROGRAM P VAR v : {decl}; END_VAR END_PROGRAM")
        return next(cu.find("P").iter_var_decls())[1].type_spec

    def test_string_length(self):
        t = Type.from_type_spec(self._spec("STRING[20]"))
        assert t.display_name() == "STRING[20]"

    def test_array(self):
        t = Type.from_type_spec(self._spec("ARRAY[1..3, 1..4] OF INT"))
        assert t.kind == TypeKind.ARRAY
        assert t.dims == 2
        assert t.display_name() == "ARRAY[2] OF INT"

    def test_ref(self):
        assert Type.from_type_spec(self._spec("REF_TO INT")).display_name() == "REF_TO INT"

    def test_subrange(self):
        t = Type.from_type_spec(self._spec("INT(-10..10)"))
        assert t.is_integer()
        assert (t.low, t.high) == (-10, 10)
        assert t.display_name() == "INT(-10..10)"


# ---------------------------------------------------------------------------
# Predicates and assignability
# ---------------------------------------------------------------------------

class TestAssignability:
    def test_integers_accept_integers(self):
        assert Type.from_name("INT").is_assignable_from(Type.from_name("DINT"))
        assert Type.from_name("BYTE").is_assignable_from(Type.from_name("UINT"))

    def test_real_accepts_integer(self):
        assert Type.from_name("REAL").is_assignable_from(Type.from_name("INT"))

    def test_integer_rejects_real(self):
        assert not Type.from_name("INT").is_assignable_from(Type.from_name("REAL"))

    def test_bool_rejects_integer(self):
        assert not Type.from_name("BOOL").is_assignable_from(Type.from_name("DINT"))

    def test_strings(self):
        assert Type.string(10).is_assignable_from(Type.string())
        assert not Type.string().is_assignable_from(Type.from_name("INT"))

    def test_unknown_accepts_everything(self):
        assert UNKNOWN.is_assignable_from(Type.from_name("BOOL"))
        assert Type.from_name("BOOL").is_assignable_from(UNKNOWN)

    def test_time_kinds(self):
        assert Type.from_name("TIME").is_assignable_from(Type.from_name("LTIME"))
        assert not Type.from_name("TIME").is_assignable_from(Type.from_name("DATE"))

    def test_null_to_pointer(self):
        ptr = Type.pointer(Type.from_name("INT"))
        assert ptr.is_assignable_from(NULL)
        assert NULL.display_name() == "NULL"

    def test_named_structs(self):
        assert not Type.named("A").is_assignable_from(Type.named("B"))
        assert Type.named("A").is_assignable_from(Type.named("A"))

    def test_subrange_is_integer(self):
        sub = Type(kind=TypeKind.SUBRANGE, element=Type.from_name("INT"), low=0, high=5)
        assert Type.from_name("DINT").is_assignable_from(sub)

    def test_unknown_display(self):
        assert UNKNOWN.display_name() == "?"


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class TestRegistry:
    def test_struct_and_enum_named(self):
        reg = TypeRegistry.from_unit(unit("""
            TYPE
                Point : STRUCT x : REAL; y : REAL; END_STRUCT;
                Mode : (Auto, Manual);
            END_TYPE
        """))
        point = reg.resolve("Point")
        assert point.kind == TypeKind.STRUCT
        assert point.name == "Point"
        assert set(point.fields) == {"x", "y"}
        mode = reg.resolve("Mode")
        assert mode.kind == TypeKind.ENUM
        assert mode.values == ["Auto", "Manual"]

    def test_alias_chain(self):
        reg = TypeRegistry.from_unit(unit("TYPE Speed : INT; Velocity : Speed; END_TYPE"))
        assert reg.resolve("Velocity").kind == TypeKind.INT

    def test_alias_cycle_is_unknown(self):
        reg = TypeRegistry.from_unit(unit("TYPE A : B; B : A; END_TYPE"))
        assert reg.resolve("A").is_unknown()

    def test_function_block_names(self):
        reg = TypeRegistry.from_unit(unit("FUNCTION_BLOCK Motor END_FUNCTION_BLOCK"))
        assert reg.resolve("Motor").kind == TypeKind.FUNCTION_BLOCK

    def test_unregistered_name(self):
        assert TypeRegistry().resolve("TON").name == "TON"
