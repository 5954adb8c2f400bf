# tests/formula_tests/test_ast_builder_scenarios.py

import math

import pytest

from formula import (
    Aggregate,
    And,
    Atom,
    BinOp,
    Compare,
    Const,
    Eventually,
    Exists,
    FormulaError,
    Not,
    Once,
    Or,
    UndefinedTerm,
    UnsafeFormula,
    Var,
    WithDefault,
    walk,
)
from formula import builder as b
from model import Interval


class TestTermScenarios:
    """Arithmetic terms built with Python operators."""

    def test_01_operators_build_terms(self):
        x, y = b.variables("x", "y")
        term = (x - y) * 2
        assert isinstance(term, BinOp)
        assert term.free_vars == {"x", "y"}
        assert term.evaluate({"x": 5, "y": 2}) == 6

    def test_02_reflected_operators_wrap_constants(self):
        x = b.var("x")
        term = 10 - x
        assert term == BinOp("-", Const(10), x)
        assert term.evaluate({"x": 4}) == 6

    def test_03_division_by_zero_is_undefined(self):
        x = b.var("x")
        with pytest.raises(UndefinedTerm):
            (1 / x).evaluate({"x": 0})
        with pytest.raises(UndefinedTerm):
            (x % 0).evaluate({"x": 3})

    def test_04_small_integer_powers_expand(self):
        x = b.var("x")
        assert (x ** 2).evaluate({"x": 3}) == 9
        with pytest.raises(ValueError):
            x ** 0.5

    def test_05_unsupported_constants_rejected(self):
        with pytest.raises(TypeError):
            Const([1])


class TestFormulaNodeScenarios:
    """
    Construction-time well-formedness of formula nodes: free variables,
    disjunction variable sets, quantifiers, aggregation and default joins.
    """

    def test_01_free_vars_computed_at_construction(self):
        x, y = b.variables("x", "y")
        f = b.atom("q", x, y) & ~b.atom("p", x)
        assert f.free_vars == {"x", "y"}
        assert not f.closed
        assert b.exists("y", f).free_vars == {"x"}

    def test_02_atoms_take_only_variables_and_constants(self):
        x = b.var("x")
        with pytest.raises(FormulaError):
            b.atom("p", x + 1)
        atom = b.atom("p", 3)
        assert atom.args == (Const(3),)
        assert atom.closed

    def test_03_disjuncts_must_share_free_variables(self):
        x, y = b.variables("x", "y")
        with pytest.raises(FormulaError, match="same free variables"):
            b.atom("p", x) | b.atom("p", y)
        assert isinstance(b.atom("p", x) | b.atom("q", x, 1), Or)

    def test_04_exists_requires_free_variables(self):
        x = b.var("x")
        with pytest.raises(FormulaError):
            b.exists("z", b.atom("p", x))
        with pytest.raises(FormulaError):
            Exists((), b.atom("p", x))

    def test_05_eventually_must_be_bounded(self):
        with pytest.raises(UnsafeFormula):
            b.eventually(b.atom("p", b.var("x")))
        ev = b.eventually(b.atom("p", b.var("x")), (0, 600))
        assert ev.interval == Interval(0, 600)

    def test_06_once_interval_forms(self):
        p = b.atom("p", b.var("x"))
        assert b.once(p).interval.upper == math.inf
        assert b.once(p, (1, 5)).interval == Interval(1, 5)
        assert b.once(p, lower=2, upper=4).interval == Interval(2, 4)
        assert b.once(p, Interval(0, 9)).interval == Interval(0, 9)

    def test_07_aggregate_validations(self):
        x, y, n = b.variables("x", "y", "n")
        q = b.atom("q", x, y)
        with pytest.raises(FormulaError, match="needs an aggregated term"):
            Aggregate("SUM", "n", None, ("x",), q)
        with pytest.raises(FormulaError, match="not free"):
            b.cnt(n, q, group_by="z")
        with pytest.raises(FormulaError, match="also a group variable"):
            b.cnt("x", q, group_by=x)
        with pytest.raises(FormulaError, match="Unknown aggregation"):
            b.aggregate("MEDIAN", n, y, x, q)
        agg = b.sum_of(n, y, q, group_by=x)
        assert agg.op == "SUM"
        assert agg.free_vars == {"x", "n"}

    def test_08_with_default_keys_must_match(self):
        x, n = b.variables("x", "n")
        counted = b.cnt(n, b.atom("q", x, b.var("y")), group_by=x)
        keys = b.atom("p", x)
        node = b.with_default(counted, keys, n, 0)
        assert isinstance(node, WithDefault)
        assert node.free_vars == {"x", "n"}
        with pytest.raises(FormulaError):
            b.with_default(counted, b.atom("q", x, b.var("y")), n)
        with pytest.raises(FormulaError):
            b.with_default(counted, keys, "m")

    def test_09_formulas_are_hashable_values(self):
        x = b.var("x")
        assert b.atom("p", x) == Atom("p", (Var("x"),))
        assert hash(b.once(b.atom("p", x))) == hash(b.once(b.atom("p", x)))

    def test_10_conjuncts_flatten_nested_ands(self):
        x = b.var("x")
        p, q, r = b.atom("p", x), b.atom("q", x, 1), b.atom("p", 2)
        f = b.conj(p, q & r)
        assert isinstance(f, And)
        assert f.conjuncts() == (p, q, r)

    def test_11_walk_is_preorder(self):
        x = b.var("x")
        p = b.atom("p", x)
        f = b.once(p) & ~b.atom("p", 1)
        kinds = [type(n) for n in walk(f)]
        assert kinds == [And, Once, Atom, Not, Atom]

    def test_12_comparison_binding(self):
        x, y = b.variables("x", "y")
        assert b.eq(y, x + 1).binding(frozenset({"x"})) == ("y", x + 1)
        assert b.eq(x + 1, y).binding(frozenset({"x"})) == ("y", x + 1)
        assert b.eq(y, x).binding(frozenset()) is None
        assert b.lt(y, 3).binding(frozenset()) is None
        assert isinstance(b.ge(x, 1), Compare)

    def test_13_population_variance_composes_two_averages(self):
        g, v = b.variables("g", "v")
        base = b.atom("q", g, v)
        variance = b.population_variance("var", v, base, group_by=g, mean="m")
        assert isinstance(variance, Aggregate)
        assert variance.op == "AVG"
        assert variance.free_vars == {"g", "var"}
        inner = variance.operand
        assert isinstance(inner, And)
        assert isinstance(inner.right, Aggregate) and inner.right.result == "m"

    def test_14_str_renders_readably(self):
        x = b.var("x")
        f = b.atom("moved", x) & ~b.eventually(b.atom("delivered", x), (0, 600))
        assert str(f) == "(moved(x) AND NOT EVENTUALLY[0,600] delivered(x))"
