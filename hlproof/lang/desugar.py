"""Macro-expansion of interpreted predicates.

`even(e)` and `odd(e)` are not uninterpreted: they are rewritten into
modular arithmetic before anything else sees the syntax tree. Applications
with a different arity, or of any other name, are left alone.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from hlproof.lang.ast_nodes import (
    ArithExpr, Decl, Eq, Formula, Modulo, NumLit, PredicateApp,
)


@dataclass(frozen=True)
class InterpretedFunction:
    arity: int
    make_replacement: Callable[..., Formula]


INTERPRETED_FUNCTIONS: dict[str, InterpretedFunction] = {
    "even": InterpretedFunction(1, lambda e: Eq(Modulo(e, NumLit(2)), NumLit(0))),
    "odd": InterpretedFunction(1, lambda e: Eq(Modulo(e, NumLit(2)), NumLit(1))),
}


def is_interpreted_function(name: str) -> bool:
    return name in INTERPRETED_FUNCTIONS


def desugar_formula(formula: Formula) -> Formula:
    if isinstance(formula, PredicateApp):
        fn = INTERPRETED_FUNCTIONS.get(formula.name)
        if fn is not None and len(formula.args) == fn.arity:
            return fn.make_replacement(*formula.args)
        return formula
    return formula.map(desugar_formula, _desugar_arith)


def _desugar_arith(expr: ArithExpr) -> ArithExpr:
    # Arithmetic never contains formulas; nothing to expand below here.
    return expr


def desugar(decl: Decl) -> Decl:
    """Expand interpreted predicates everywhere in an assertion or command."""
    return decl.map(desugar_formula, _desugar_arith)
