"""Property-Based Tests for Imp substitution, printing and division.

Laws checked:

  1. Substitution: f[v := e] has no free occurrence of v when e does not
     mention v, and its free variables come from f (minus v) or from e.
  2. Printing: every formula pretty-prints to text that parses back to
     the same formula.
  3. Division: for b != 0, a / b truncates toward zero and
     a - (a / b) * b = a % b; a / 0 = 0 and a % 0 = a.
"""

from __future__ import annotations

from hypothesis import assume, given, settings
from hypothesis import strategies as st
import z3

from hlproof.engines.hoare import Z3Env, eval_arith
from hlproof.lang import (
    And, Assertion, BoolLit, Divide, Eq, Gt, Gte, Implies, Lt, Lte, Minus,
    Modulo, Mult, Neq, Not, NumLit, Or, Plus, PredicateApp, Var,
    parse_to_assertion,
)


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

names = st.sampled_from(["a", "b", "x", "y"])

leaves = st.one_of(
    st.integers(min_value=-50, max_value=50).map(NumLit),
    names.map(Var),
)


def _binary(ops, operands):
    return st.builds(lambda op, l, r: op(l, r), st.sampled_from(ops), operands, operands)


arith_strategy = st.recursive(
    leaves,
    lambda sub: _binary([Plus, Minus, Mult, Divide, Modulo], sub),
    max_leaves=8,
)

atoms = st.one_of(
    st.booleans().map(BoolLit),
    _binary([Eq, Neq, Lt, Lte, Gt, Gte], arith_strategy),
    st.builds(
        lambda name, args: PredicateApp(name, tuple(args)),
        st.sampled_from(["p", "q"]),
        st.lists(arith_strategy, min_size=1, max_size=3),
    ),
)

formula_strategy = st.recursive(
    atoms,
    lambda sub: st.one_of(sub.map(Not), _binary([And, Or, Implies], sub)),
    max_leaves=6,
)


def trunc_div(a: int, b: int) -> int:
    if b == 0:
        return 0
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b > 0) else -q


def trunc_mod(a: int, b: int) -> int:
    if b == 0:
        return a
    return a - trunc_div(a, b) * b


def _evaluate(expr) -> int:
    solver = z3.Solver()
    solver.check()
    return eval_arith(Z3Env(), solver.model(), expr)


# ===========================================================================
# Substitution
# ===========================================================================

class TestSubstitution:
    """Substitution removes the replaced variable."""

    @given(formula_strategy, names, arith_strategy)
    @settings(max_examples=200)
    def test_no_free_occurrence(self, f, v, e):
        assume(Var(v) not in e.free_vars())
        assert Var(v) not in f.subst(Var(v), e).free_vars()

    @given(formula_strategy, names, arith_strategy)
    @settings(max_examples=200)
    def test_free_vars_bounded(self, f, v, e):
        result = set(f.subst(Var(v), e).free_vars())
        allowed = (set(f.free_vars()) - {Var(v)}) | set(e.free_vars())
        assert result <= allowed

    @given(formula_strategy, names, arith_strategy)
    @settings(max_examples=200)
    def test_absent_variable_is_identity(self, f, v, e):
        assume(Var(v) not in f.free_vars())
        assert f.subst(Var(v), e) == f

    @given(formula_strategy)
    @settings(max_examples=100)
    def test_free_vars_unique(self, f):
        fv = f.free_vars()
        assert len(fv) == len(set(fv))


# ===========================================================================
# Printing
# ===========================================================================

class TestPrinting:
    """Pretty-printed assertions parse back to themselves."""

    @given(formula_strategy)
    @settings(max_examples=200)
    def test_round_trip(self, f):
        printed = str(Assertion("", f))
        parsed = parse_to_assertion(printed)
        assert parsed.formula == f
        assert str(parsed) == printed


# ===========================================================================
# Division
# ===========================================================================

class TestDivision:
    """Z3 encoding of / and % agrees with truncating integer division."""

    @given(st.integers(min_value=-1000, max_value=1000), st.integers(min_value=-50, max_value=50))
    @settings(max_examples=150, deadline=None)
    def test_division(self, a, b):
        assert _evaluate(Divide(NumLit(a), NumLit(b))) == trunc_div(a, b)

    @given(st.integers(min_value=-1000, max_value=1000), st.integers(min_value=-50, max_value=50))
    @settings(max_examples=150, deadline=None)
    def test_modulo(self, a, b):
        assert _evaluate(Modulo(NumLit(a), NumLit(b))) == trunc_mod(a, b)

    @given(st.integers(min_value=-1000, max_value=1000), st.integers(min_value=-50, max_value=50))
    @settings(max_examples=100)
    def test_reference_laws(self, a, b):
        assume(b != 0)
        q = trunc_div(a, b)
        assert abs(q * b) <= abs(a)
        assert a - q * b == trunc_mod(a, b)
        assert trunc_mod(a, b) == 0 or (trunc_mod(a, b) > 0) == (a > 0)
