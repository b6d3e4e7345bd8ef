"""Tests for control-structure nesting depth."""

from conftest import stmts
from iecfront.analysis import max_nesting_depth
from iecfront.dialect import SCL


class TestMaxNestingDepth:
    def test_empty(self):
        assert max_nesting_depth([]) == 0

    def test_flat(self):
        assert max_nesting_depth(stmts("x := 1; y := 2;")) == 0

    def test_single_if(self):
        assert max_nesting_depth(stmts("IF a THEN x := 1; END_IF;")) == 1

    def test_nested_if(self):
        body = stmts("IF a THEN IF b THEN x := 1; END_IF; END_IF;")
        assert max_nesting_depth(body) == 2

    def test_siblings_do_not_add(self):
        body = stmts("IF a THEN x := 1; END_IF; WHILE b DO y := 1; END_WHILE;")
        assert max_nesting_depth(body) == 1

    def test_deepest_branch_wins(self):
        body = stmts("""
            IF a THEN
                x := 1;
            ELSIF b THEN
                FOR i := 0 TO 3 DO
                    REPEAT
                        y := y + 1;
                    UNTIL y > 3
                    END_REPEAT;
                END_FOR;
            END_IF;
        """)
        assert max_nesting_depth(body) == 3

    def test_case_branches(self):
        body = stmts("CASE n OF 1: WHILE a DO x := 1; END_WHILE; END_CASE;")
        assert max_nesting_depth(body) == 2

    def test_empty_structure_counts(self):
        assert max_nesting_depth(stmts("IF a THEN END_IF;")) == 1

    def test_region_is_transparent(self):
        body = stmts("""
            REGION Outer
                REGION Inner
                    IF a THEN x := 1; END_IF;
                END_REGION
            END_REGION
        """, SCL)
        assert max_nesting_depth(body) == 1
