"""Hoare triple checking by weakest precondition and Z3.

Core theory:

  A HOARE TRIPLE {P} S {Q} asserts:
    If precondition P holds before executing statement S,
    then postcondition Q holds after S terminates.

  WEAKEST PRECONDITION for the commands checked here:

    wp(skip, Q)    = Q
    wp(x := e, Q)  = Q[x/e]        (substitution)

  VERIFICATION:
    Given {P} S {Q}, we compute wp(S, Q) and ask Z3 whether
    NOT(P => wp(S, Q)) is satisfiable. UNSAT means the triple is valid.
    Anything else (SAT, or UNKNOWN on timeout) means it is not, and a
    SAT model is a counterexample state.

  INTEGER DIVISION:
    Imp division truncates toward zero and x / 0 = 0, x % 0 = x. SMT-LIB
    `div` is Euclidean, so `/` and `%` are encoded with an explicit
    correction (see `make_z3_div`).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

import z3

from hlproof.lang.ast_nodes import (
    And, ArithExpr, Assign, BinArith, BoolLit, Command, Comparison, Divide,
    Eq, Formula, Gt, Gte, HoareTriple, Implies, Lt, Lte, Minus, Modulo, Mult,
    Neq, Not, NumLit, Or, Plus, PredicateApp, Sequence, Skip, Var,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 10000


@dataclass
class Z3Env:
    """The Z3 context every query and model of one checker shares."""
    ctx: z3.Context = field(default_factory=z3.main_ctx)
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    @classmethod
    def from_config(cls, config: Any) -> Z3Env:
        return cls(timeout_ms=config.solver_timeout_ms)

    def int_var(self, name: str) -> z3.ArithRef:
        return z3.Int(name, self.ctx)

    def predicate(self, name: str, arity: int) -> z3.FuncDeclRef:
        sorts = [z3.IntSort(self.ctx)] * arity
        return z3.Function(name, *sorts, z3.BoolSort(self.ctx))


class SolverOutcome(Enum):
    SAT = "sat"
    UNSAT = "unsat"
    UNKNOWN = "unknown"


@dataclass
class CheckResult:
    """Outcome of a validity check.

    `model` is only set for SAT: the counterexample to the conjecture.
    `query` is the conjecture that was checked.
    """
    outcome: SolverOutcome
    query: Any
    model: Optional[z3.ModelRef] = None

    @property
    def is_valid(self) -> bool:
        return self.outcome == SolverOutcome.UNSAT


# ---------------------------------------------------------------------------
# Z3 encoding
# ---------------------------------------------------------------------------

def make_z3_div(env: Z3Env, dividend: z3.ArithRef, divisor: z3.ArithRef) -> z3.ArithRef:
    """Truncating division with x / 0 = 0.

    Z3's `div` rounds so the remainder is non-negative; for a negative
    dividend that does not divide evenly the quotient is off by one.
    """
    zero = z3.IntVal(0, env.ctx)
    one = z3.IntVal(1, env.ctx)
    return z3.If(
        divisor == zero,
        zero,
        z3.If(
            z3.Or(dividend % divisor == zero, dividend >= zero),
            dividend / divisor,
            z3.If(
                divisor >= zero,
                dividend / divisor + one,
                dividend / divisor - one,
            ),
        ),
    )


def make_z3_mod(env: Z3Env, dividend: z3.ArithRef, modulus: z3.ArithRef) -> z3.ArithRef:
    """Remainder matching `make_z3_div`; x % 0 = x."""
    zero = z3.IntVal(0, env.ctx)
    return z3.If(
        modulus == zero,
        dividend,
        dividend - make_z3_div(env, dividend, modulus) * modulus,
    )


_ARITH_OPS = {
    Plus: lambda env, l, r: l + r,
    Minus: lambda env, l, r: l - r,
    Mult: lambda env, l, r: l * r,
    Divide: make_z3_div,
    Modulo: make_z3_mod,
}

_COMPARE_OPS = {
    Eq: lambda l, r: l == r,
    Neq: lambda l, r: l != r,
    Lt: lambda l, r: l < r,
    Lte: lambda l, r: l <= r,
    Gt: lambda l, r: l > r,
    Gte: lambda l, r: l >= r,
}


def arith_to_z3(env: Z3Env, expr: ArithExpr) -> z3.ArithRef:
    """Convert an arithmetic expression to a Z3 integer term."""
    if isinstance(expr, NumLit):
        return z3.IntVal(expr.value, env.ctx)
    if isinstance(expr, Var):
        return env.int_var(expr.name)
    if isinstance(expr, BinArith):
        fn = _ARITH_OPS[type(expr)]
        return fn(env, arith_to_z3(env, expr.left), arith_to_z3(env, expr.right))
    raise TypeError(f"Not an arithmetic expression: {expr!r}")


def formula_to_z3(env: Z3Env, formula: Formula) -> z3.BoolRef:
    """Convert a formula to a Z3 boolean term."""
    if isinstance(formula, BoolLit):
        return z3.BoolVal(formula.value, env.ctx)
    if isinstance(formula, PredicateApp):
        pred = env.predicate(formula.name, len(formula.args))
        return pred(*[arith_to_z3(env, a) for a in formula.args])
    if isinstance(formula, Not):
        return z3.Not(formula_to_z3(env, formula.operand))
    if isinstance(formula, And):
        return z3.And(formula_to_z3(env, formula.left), formula_to_z3(env, formula.right))
    if isinstance(formula, Or):
        return z3.Or(formula_to_z3(env, formula.left), formula_to_z3(env, formula.right))
    if isinstance(formula, Implies):
        return z3.Implies(formula_to_z3(env, formula.left), formula_to_z3(env, formula.right))
    if isinstance(formula, Comparison):
        fn = _COMPARE_OPS[type(formula)]
        return fn(arith_to_z3(env, formula.left), arith_to_z3(env, formula.right))
    raise TypeError(f"Not a formula: {formula!r}")


def eval_arith(env: Z3Env, model: z3.ModelRef, expr: ArithExpr) -> int:
    """Value of `expr` in `model`; unconstrained variables default to 0."""
    value = model.eval(arith_to_z3(env, expr), model_completion=True)
    return value.as_long()


# ---------------------------------------------------------------------------
# Weakest precondition and validity
# ---------------------------------------------------------------------------

def weakest_precondition(command: Command, post: Formula) -> Formula:
    """wp(command, post) for a single assignment or skip."""
    if isinstance(command, Assign):
        return post.subst(command.var, command.rhs)
    if isinstance(command, Skip):
        return post
    if isinstance(command, Sequence):
        raise TypeError("Checking sequences of commands is not supported")
    raise TypeError(f"Not a command: {command!r}")


def _solve(env: Z3Env, conjecture: z3.BoolRef) -> CheckResult:
    solver = z3.Solver(ctx=env.ctx)
    solver.set("timeout", env.timeout_ms)
    solver.add(z3.Not(conjecture))
    result = solver.check()

    if result == z3.unsat:
        return CheckResult(SolverOutcome.UNSAT, conjecture)
    if result == z3.sat:
        return CheckResult(SolverOutcome.SAT, conjecture, solver.model())
    logger.debug("solver returned unknown: %s", solver.reason_unknown())
    return CheckResult(SolverOutcome.UNKNOWN, conjecture)


async def prove_conjecture(env: Z3Env, conjecture: z3.BoolRef) -> CheckResult:
    """Ask Z3 whether `conjecture` is valid.

    Runs in a worker thread; the event loop stays free while Z3 searches.
    """
    return await asyncio.to_thread(_solve, env, conjecture)


async def check_hoare_triple(env: Z3Env, triple: HoareTriple) -> CheckResult:
    """Check {pre} command {post} by proving pre => wp(command, post)."""
    reduced_post = weakest_precondition(triple.command, triple.post.formula)
    query = z3.Implies(
        formula_to_z3(env, triple.pre.formula),
        formula_to_z3(env, reduced_post),
    )
    logger.debug("checking %s as %s", triple, query)
    result = await prove_conjecture(env, query)
    logger.debug("outcome %s", result.outcome.value)
    return result
