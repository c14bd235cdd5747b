"""Concrete syntax tree to Imp abstract syntax.

The translator walks the concrete tree with a `TreeCursor` and decides the
sort of every subtree: formula positions only accept formula nodes and
arithmetic positions only accept arithmetic nodes. Anything else raises a
`ParseTranslationError` naming the offending span and text.

Entry points:
  parse(src)               -> Assertion | Command, desugared
  parse_to_assertion(src)  -> Assertion
  parse_to_command(src)    -> Command (the trailing ';' is optional)
"""

from __future__ import annotations

from typing import Callable, TypeVar

from hlproof.errors import ParseTranslationError, SourceSpan, translation_error
from hlproof.lang.ast_nodes import (
    And, ArithExpr, Assertion, Assign, BoolLit, Command, Decl, Divide, Eq,
    Formula, Gt, Gte, Implies, Lt, Lte, Minus, Modulo, Mult, Neq, Not,
    NumLit, Or, Plus, PredicateApp, Skip, Var,
)
from hlproof.lang.cst import TreeCursor
from hlproof.lang.desugar import desugar
from hlproof.lang.parser import parse_concrete

COMMAND_DELIMITER = ";"

T = TypeVar("T")

COMPARISONS = {"=": Eq, "!=": Neq, "<": Lt, "<=": Lte, ">": Gt, ">=": Gte}
ARITH_OPS = {"+": Plus, "-": Minus, "*": Mult, "/": Divide, "%": Modulo}


def _fail(message: str, cursor: TreeCursor, src: str) -> ParseTranslationError:
    return ParseTranslationError(translation_error(
        message, SourceSpan(cursor.start, cursor.end), src[cursor.start:cursor.end],
    ))


def _text(cursor: TreeCursor, src: str) -> str:
    return src[cursor.start:cursor.end]


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def parse(src: str) -> Decl:
    """Parse source text to an assertion or command and expand built-ins."""
    trimmed = src.strip()
    tree = parse_concrete(trimmed)
    return desugar(concrete_syntax_to_abstract_syntax(tree.cursor(), trimmed, trimmed))


def parse_to_assertion(src: str) -> Assertion:
    decl = parse(src)
    if not isinstance(decl, Assertion):
        raise ParseTranslationError(translation_error(
            "Expected an Assertion but got", SourceSpan(0, len(src.strip())), src.strip(),
        ))
    return decl


def parse_to_command(src: str) -> Command:
    trimmed = src.strip()
    if not trimmed.endswith(COMMAND_DELIMITER):
        trimmed += COMMAND_DELIMITER
    decl = parse(trimmed)
    if not isinstance(decl, Command):
        raise ParseTranslationError(translation_error(
            "Expected a Command but got", SourceSpan(0, len(trimmed)), trimmed,
        ))
    return decl


# ---------------------------------------------------------------------------
# Traversals
# ---------------------------------------------------------------------------

def concrete_syntax_to_abstract_syntax(cursor: TreeCursor, original_input: str, src: str) -> Decl:
    """Translate a `TopDecl` node into an Assertion or a Command."""
    if cursor.type.name != "TopDecl":
        raise _fail("Expected a top-level declaration (i.e., an Assertion or Command) but got", cursor, src)

    cursor.first_child()
    kind = cursor.type.name
    if kind == "Assertion":
        formulas = _gather_formulas_in_assertion(cursor, src)
        conjoined = formulas[-1]
        for f in reversed(formulas[:-1]):
            conjoined = And(f, conjoined)
        decl: Decl = Assertion(original_input, conjoined)
    elif kind == "Command":
        cursor.first_child()
        decl = _translate_command(cursor, original_input, src)
        cursor.parent()
    else:
        raise _fail("Expected Assertion or Command but got", cursor, src)
    cursor.parent()
    return decl


def _translate_command(cursor: TreeCursor, original_input: str, src: str) -> Command:
    kind = cursor.type.name
    if kind == "Assign":
        cursor.first_child()
        variable = Var(_text(cursor, src))
        cursor.next_sibling()  # AssignOp
        cursor.next_sibling()
        rhs = translate_arith(cursor, src)
        cursor.parent()
        return Assign(variable, rhs, original_input)
    if kind == "CmdSkip":
        return Skip(original_input)
    raise _fail("Expected a Command but got", cursor, src)


def translate_formula(cursor: TreeCursor, src: str) -> Formula:
    """Translate the formula node under the cursor."""
    kind = cursor.type.name

    if kind == "LitBool":
        return BoolLit(_text(cursor, src) == "true")

    if kind == "PredicateApp":
        cursor.first_child()
        name = _text(cursor, src)
        cursor.next_sibling()
        args = parse_arg_list(cursor, src)
        cursor.parent()
        return PredicateApp(name, tuple(args))

    if kind == "AndE":
        left, _, right = walk_bin_node(cursor, src, translate_formula)
        return And(left, right)

    if kind == "OrE":
        left, _, right = walk_bin_node(cursor, src, translate_formula)
        return Or(left, right)

    if kind == "ImpliesE":
        left, _, right = walk_bin_node(cursor, src, translate_formula)
        return Implies(left, right)

    if kind == "CompE":
        left, op, right = walk_bin_node(cursor, src, translate_arith)
        ctor = COMPARISONS.get(op)
        if ctor is None:
            raise _fail("Expected comparison op but got", cursor, src)
        return ctor(left, right)

    if kind == "NegE":
        cursor.last_child()
        operand = translate_formula(cursor, src)
        cursor.parent()
        return Not(operand)

    if kind == "ParenthesizedExpr":
        return _walk_parenthesized(cursor, src, translate_formula)

    raise _fail("Expected formula but got", cursor, src)


def translate_arith(cursor: TreeCursor, src: str) -> ArithExpr:
    """Translate the arithmetic expression node under the cursor."""
    kind = cursor.type.name

    if kind == "Name":
        return Var(_text(cursor, src))

    if kind == "LitNumber":
        return NumLit(int(_text(cursor, src)))

    if kind == "BinArithE":
        left, op, right = walk_bin_node(cursor, src, translate_arith)
        ctor = ARITH_OPS.get(op)
        if ctor is None:
            raise _fail("Unexpected arithmetic op", cursor, src)
        return ctor(left, right)

    if kind == "UnaryExpr":
        cursor.first_child()
        op = _text(cursor, src)
        cursor.next_sibling()
        operand = translate_arith(cursor, src)
        cursor.parent()
        if op == "+":
            return operand
        if op == "-":
            return Mult(NumLit(-1), operand)
        raise _fail("Unexpected unary op", cursor, src)

    if kind == "ParenthesizedExpr":
        return _walk_parenthesized(cursor, src, translate_arith)

    raise _fail("Expected arithmetic expression but got", cursor, src)


# ---------------------------------------------------------------------------
# Cursor helpers
# ---------------------------------------------------------------------------

def walk_bin_node(cursor: TreeCursor, src: str, dispatch: Callable[[TreeCursor, str], T]) -> tuple[T, str, T]:
    """Decode a binary node into (left, operator text, right).

    The cursor is left on the binary node itself.
    """
    cursor.first_child()
    left = dispatch(cursor, src)
    cursor.next_sibling()
    op = _text(cursor, src)
    cursor.next_sibling()
    right = dispatch(cursor, src)
    cursor.parent()
    return left, op, right


def _walk_parenthesized(cursor: TreeCursor, src: str, dispatch: Callable[[TreeCursor, str], T]) -> T:
    cursor.first_child()
    cursor.next_sibling()
    result = dispatch(cursor, src)
    cursor.parent()
    return result


def parse_arg_list(cursor: TreeCursor, src: str) -> list[ArithExpr]:
    """Translate the arguments of an `ArgList` node; all must be arithmetic."""
    cursor.first_child()  # '('
    args: list[ArithExpr] = []
    while cursor.next_sibling():
        if cursor.type.name in (",", ")"):
            continue
        try:
            args.append(translate_arith(cursor, src))
        except ParseTranslationError as exc:
            raise _fail(
                "Could not parse argument to predicate. Predicate arguments must be integer expressions.",
                cursor, src,
            ) from exc
    cursor.parent()
    return args


def _gather_formulas_in_assertion(cursor: TreeCursor, src: str) -> list[Formula]:
    formulas: list[Formula] = []
    cursor.first_child()
    while True:
        formulas.append(translate_formula(cursor, src))
        if not cursor.next_sibling():
            break
    cursor.parent()
    return formulas
