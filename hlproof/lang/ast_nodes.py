"""Imp abstract syntax: arithmetic expressions, formulas, commands, assertions.

Every node is an immutable, hashable dataclass. Substitution and the
structural `map` always build new nodes. Binary nodes pretty-print fully
parenthesised; only `original_input` on top-level declarations preserves
what the user actually typed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, ClassVar, Union


_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


class Name(str):
    """A validated identifier for a program variable or predicate."""

    def __new__(cls, value: str) -> Name:
        if not isinstance(value, str) or not _NAME_RE.fullmatch(value):
            raise ValueError(f"Invalid name: {value!r}")
        return super().__new__(cls, value)


TransformFormula = Callable[["Formula"], "Formula"]
TransformArith = Callable[["ArithExpr"], "ArithExpr"]


def _var_name(var: Union[Var, str]) -> str:
    return var.name if isinstance(var, Var) else var


class Syntax:
    """Operations shared by every abstract syntax node."""

    def children(self) -> tuple[Syntax, ...]:
        return ()

    def map(self, transform_formula: TransformFormula, transform_arith: TransformArith):
        """Rebuild this node with each direct child transformed.

        Formula children go through `transform_formula`, arithmetic
        children through `transform_arith`. Leaves return themselves.
        """
        return self

    def subst(self, var: Union[Var, str], expr: ArithExpr):
        """Replace every occurrence of variable `var` with `expr`."""
        return self.map(lambda f: f.subst(var, expr), lambda a: a.subst(var, expr))

    def free_vars(self) -> list[Var]:
        """Unique free program variables, in order of first occurrence."""
        seen: list[Var] = []
        for child in self.children():
            for v in child.free_vars():
                if v not in seen:
                    seen.append(v)
        return seen

    def is_equal_to(self, other: Syntax) -> bool:
        return str(self) == str(other)


# ---------------------------------------------------------------------------
# Arithmetic expressions
# ---------------------------------------------------------------------------

class ArithExpr(Syntax):
    pass


@dataclass(frozen=True)
class NumLit(ArithExpr):
    value: int

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Var(ArithExpr):
    name: Name

    def __post_init__(self):
        if not isinstance(self.name, Name):
            object.__setattr__(self, "name", Name(self.name))

    def subst(self, var: Union[Var, str], expr: ArithExpr) -> ArithExpr:
        return expr if self.name == _var_name(var) else self

    def free_vars(self) -> list[Var]:
        return [self]

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class BinArith(ArithExpr):
    left: ArithExpr
    right: ArithExpr
    op: ClassVar[str] = "?"

    def children(self) -> tuple[Syntax, ...]:
        return (self.left, self.right)

    def map(self, transform_formula: TransformFormula, transform_arith: TransformArith) -> ArithExpr:
        return type(self)(transform_arith(self.left), transform_arith(self.right))

    def __str__(self) -> str:
        return f"({self.left} {self.op} {self.right})"


@dataclass(frozen=True)
class Plus(BinArith):
    op = "+"


@dataclass(frozen=True)
class Minus(BinArith):
    op = "-"


@dataclass(frozen=True)
class Mult(BinArith):
    op = "*"


@dataclass(frozen=True)
class Divide(BinArith):
    """Truncating division; `x / 0` is 0."""
    op = "/"


@dataclass(frozen=True)
class Modulo(BinArith):
    """Remainder of truncating division; `x % 0` is x."""
    op = "%"


# ---------------------------------------------------------------------------
# Formulas
# ---------------------------------------------------------------------------

class Formula(Syntax):
    pass


@dataclass(frozen=True)
class BoolLit(Formula):
    value: bool

    def __str__(self) -> str:
        return "true" if self.value else "false"


@dataclass(frozen=True)
class PredicateApp(Formula):
    """Application of a named predicate to integer arguments."""
    name: Name
    args: tuple[ArithExpr, ...] = ()

    def __post_init__(self):
        if not isinstance(self.name, Name):
            object.__setattr__(self, "name", Name(self.name))
        object.__setattr__(self, "args", tuple(self.args))

    def children(self) -> tuple[Syntax, ...]:
        return self.args

    def map(self, transform_formula: TransformFormula, transform_arith: TransformArith) -> Formula:
        return PredicateApp(self.name, tuple(transform_arith(a) for a in self.args))

    def __str__(self) -> str:
        return f"{self.name}({', '.join(str(a) for a in self.args)})"


@dataclass(frozen=True)
class Not(Formula):
    operand: Formula

    def children(self) -> tuple[Syntax, ...]:
        return (self.operand,)

    def map(self, transform_formula: TransformFormula, transform_arith: TransformArith) -> Formula:
        return Not(transform_formula(self.operand))

    def __str__(self) -> str:
        return f"!{self.operand}"


@dataclass(frozen=True)
class BinFormula(Formula):
    left: Formula
    right: Formula
    op: ClassVar[str] = "?"

    def children(self) -> tuple[Syntax, ...]:
        return (self.left, self.right)

    def map(self, transform_formula: TransformFormula, transform_arith: TransformArith) -> Formula:
        return type(self)(transform_formula(self.left), transform_formula(self.right))

    def __str__(self) -> str:
        return f"({self.left} {self.op} {self.right})"


@dataclass(frozen=True)
class And(BinFormula):
    op = "&&"


@dataclass(frozen=True)
class Or(BinFormula):
    op = "||"


@dataclass(frozen=True)
class Implies(BinFormula):
    op = "=>"


@dataclass(frozen=True)
class Comparison(Formula):
    """A relation between two arithmetic expressions."""
    left: ArithExpr
    right: ArithExpr
    op: ClassVar[str] = "?"

    def children(self) -> tuple[Syntax, ...]:
        return (self.left, self.right)

    def map(self, transform_formula: TransformFormula, transform_arith: TransformArith) -> Formula:
        return type(self)(transform_arith(self.left), transform_arith(self.right))

    def __str__(self) -> str:
        return f"({self.left} {self.op} {self.right})"


@dataclass(frozen=True)
class Eq(Comparison):
    op = "="


@dataclass(frozen=True)
class Neq(Comparison):
    op = "!="


@dataclass(frozen=True)
class Lt(Comparison):
    op = "<"


@dataclass(frozen=True)
class Lte(Comparison):
    op = "<="


@dataclass(frozen=True)
class Gt(Comparison):
    op = ">"


@dataclass(frozen=True)
class Gte(Comparison):
    op = ">="


# ---------------------------------------------------------------------------
# Top-level declarations
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Assertion(Syntax):
    """A formula together with the (trimmed) text it was parsed from.

    `str()` pretty-prints the formula; `original_input` is what the user
    wrote and is what feedback messages quote.
    """
    original_input: str = field(compare=False)
    formula: Formula

    def children(self) -> tuple[Syntax, ...]:
        return (self.formula,)

    def map(self, transform_formula: TransformFormula, transform_arith: TransformArith) -> Assertion:
        return Assertion(self.original_input, transform_formula(self.formula))

    def __str__(self) -> str:
        return f"{{ {self.formula} }}"


class Command(Syntax):
    original_input: str

    def sub_commands(self) -> tuple[Command, ...]:
        return (self,)


@dataclass(frozen=True)
class Skip(Command):
    original_input: str = field(default="skip;", compare=False)

    def __str__(self) -> str:
        return "skip;"


@dataclass(frozen=True)
class Assign(Command):
    var: Var
    rhs: ArithExpr
    original_input: str = field(default="", compare=False)

    def children(self) -> tuple[Syntax, ...]:
        return (self.rhs,)

    def map(self, transform_formula: TransformFormula, transform_arith: TransformArith) -> Command:
        return Assign(self.var, transform_arith(self.rhs), self.original_input)

    def __str__(self) -> str:
        return f"{self.var} := {self.rhs};"


@dataclass(frozen=True)
class Sequence(Command):
    """Two or more commands run in order. Nested sequences are flattened."""
    commands: tuple[Command, ...]
    original_input: str = field(default="", compare=False)

    def __post_init__(self):
        flat: list[Command] = []
        for c in self.commands:
            flat.extend(c.sub_commands())
        if len(flat) < 2:
            raise ValueError("Sequence must be initialized with at least two subcommands")
        object.__setattr__(self, "commands", tuple(flat))

    def sub_commands(self) -> tuple[Command, ...]:
        return self.commands

    def children(self) -> tuple[Syntax, ...]:
        return self.commands

    def map(self, transform_formula: TransformFormula, transform_arith: TransformArith) -> Command:
        return Sequence(
            tuple(c.map(transform_formula, transform_arith) for c in self.commands),
            self.original_input,
        )

    def __str__(self) -> str:
        return " ".join(str(c) for c in self.commands)


Decl = Union[Assertion, Command]


@dataclass(frozen=True)
class HoareTriple:
    """{pre} command {post}. A plain value, built fresh for each check."""
    pre: Assertion
    command: Command
    post: Assertion

    def __str__(self) -> str:
        return f"{self.pre} {self.command} {self.post}"
