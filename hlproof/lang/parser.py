"""Imp concrete parser: recursive descent from tokens to a concrete syntax tree.

The grammar is deliberately untyped. Whether an operand must be a formula or
an arithmetic expression is decided later by the translator, which reports a
sort mismatch with the offending span. Operator and punctuation tokens are
kept in the tree as leaves so the translator can read operator text.
"""

from __future__ import annotations

from typing import Optional

from hlproof.errors import ParseTranslationError, syntax_error
from hlproof.lang.cst import ConcreteTree, CstNode
from hlproof.lang.lexer import COMPARISON_OPS, Token, TokenType, tokenize


class Parser:
    """Recursive-descent parser for Imp top-level declarations."""

    def __init__(self, tokens: list[Token], source: str):
        self.tokens = tokens
        self.pos = 0
        self.source = source

    def _current(self) -> Token:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return self.tokens[-1]  # EOF

    def _peek(self) -> TokenType:
        return self._current().type

    def _peek_next(self) -> Token:
        if self.pos + 1 < len(self.tokens):
            return self.tokens[self.pos + 1]
        return self.tokens[-1]

    def _advance(self) -> Token:
        tok = self._current()
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        return tok

    def _error(self, message: str, tok: Optional[Token] = None) -> ParseTranslationError:
        tok = tok or self._current()
        found = tok.value if tok.type != TokenType.EOF else "end of input"
        return ParseTranslationError(syntax_error(message, tok.span, found=found))

    def _expect(self, tt: TokenType, what: str) -> Token:
        tok = self._current()
        if tok.type != tt:
            raise self._error(f"Expected {what} but got")
        return self._advance()

    def _leaf(self, name: str, tok: Token) -> CstNode:
        return CstNode.make(name, tok.start, tok.end)

    # -------------------------------------------------------------------
    # Top-level
    # -------------------------------------------------------------------

    def parse(self) -> ConcreteTree:
        start = self._current().start
        if self._peek() == TokenType.LBRACE:
            decl = self._parse_assertion()
        elif self._peek() in (TokenType.IDENT, TokenType.SKIP):
            decl = self._parse_command()
        else:
            raise self._error("Expected an assertion or a command but got")
        if self._peek() != TokenType.EOF:
            raise self._error("Expected end of input but got")
        root = CstNode.make("TopDecl", start, decl.end, [decl])
        return ConcreteTree(root, self.source)

    def _parse_assertion(self) -> CstNode:
        lbrace = self._expect(TokenType.LBRACE, "'{'")
        formulas = [self._parse_expr()]
        while self._peek() == TokenType.COMMA:
            self._advance()
            formulas.append(self._parse_expr())
        rbrace = self._expect(TokenType.RBRACE, "',' or '}'")
        return CstNode.make("Assertion", lbrace.start, rbrace.end, formulas)

    def _parse_command(self) -> CstNode:
        start = self._current().start
        if self._peek() == TokenType.SKIP:
            inner = self._leaf("CmdSkip", self._advance())
        else:
            name = self._leaf("Name", self._advance())
            op = self._leaf("AssignOp", self._expect(TokenType.ASSIGN, "':='"))
            rhs = self._parse_expr()
            inner = CstNode.make("Assign", name.start, rhs.end, [name, op, rhs])
        semi = self._expect(TokenType.SEMICOLON, "';'")
        return CstNode.make("Command", start, semi.end, [inner])

    # -------------------------------------------------------------------
    # Expressions (precedence climbing, lowest first)
    # -------------------------------------------------------------------

    def _parse_expr(self) -> CstNode:
        left = self._parse_or()
        if self._peek() == TokenType.IMPLIES:
            op = self._leaf("LogicOp", self._advance())
            right = self._parse_expr()
            return self._binary("ImpliesE", left, op, right)
        return left

    def _parse_or(self) -> CstNode:
        left = self._parse_and()
        while self._peek() == TokenType.OR:
            op = self._leaf("LogicOp", self._advance())
            right = self._parse_and()
            left = self._binary("OrE", left, op, right)
        return left

    def _parse_and(self) -> CstNode:
        left = self._parse_not()
        while self._peek() == TokenType.AND:
            op = self._leaf("LogicOp", self._advance())
            right = self._parse_not()
            left = self._binary("AndE", left, op, right)
        return left

    def _parse_not(self) -> CstNode:
        if self._peek() == TokenType.NOT:
            op = self._leaf("LogicOp", self._advance())
            operand = self._parse_not()
            return CstNode.make("NegE", op.start, operand.end, [op, operand])
        return self._parse_comparison()

    def _parse_comparison(self) -> CstNode:
        left = self._parse_additive()
        if self._peek() in COMPARISON_OPS:
            op = self._leaf("CompareOp", self._advance())
            right = self._parse_additive()
            return self._binary("CompE", left, op, right)
        return left

    def _parse_additive(self) -> CstNode:
        left = self._parse_term()
        while self._peek() in (TokenType.PLUS, TokenType.MINUS):
            op = self._leaf("ArithOp", self._advance())
            right = self._parse_term()
            left = self._binary("BinArithE", left, op, right)
        return left

    def _parse_term(self) -> CstNode:
        left = self._parse_unary()
        while self._peek() in (TokenType.STAR, TokenType.SLASH, TokenType.PERCENT):
            op = self._leaf("ArithOp", self._advance())
            right = self._parse_unary()
            left = self._binary("BinArithE", left, op, right)
        return left

    def _parse_unary(self) -> CstNode:
        tok = self._current()
        if tok.type == TokenType.MINUS:
            nxt = self._peek_next()
            # A minus written directly against digits is a negative literal.
            if nxt.type == TokenType.INT_LIT and nxt.start == tok.end:
                self._advance()
                self._advance()
                return CstNode.make("LitNumber", tok.start, nxt.end)
        if tok.type in (TokenType.PLUS, TokenType.MINUS):
            op = self._leaf("ArithOp", self._advance())
            operand = self._parse_unary()
            return CstNode.make("UnaryExpr", op.start, operand.end, [op, operand])
        return self._parse_primary()

    def _parse_primary(self) -> CstNode:
        tok = self._current()
        tt = tok.type

        if tt == TokenType.INT_LIT:
            return self._leaf("LitNumber", self._advance())

        if tt in (TokenType.TRUE, TokenType.FALSE):
            return self._leaf("LitBool", self._advance())

        if tt == TokenType.IDENT:
            name = self._leaf("Name", self._advance())
            if self._peek() == TokenType.LPAREN:
                args = self._parse_arg_list()
                return CstNode.make("PredicateApp", name.start, args.end, [name, args])
            return name

        if tt == TokenType.LPAREN:
            lparen = self._leaf("(", self._advance())
            inner = self._parse_expr()
            rparen = self._leaf(")", self._expect(TokenType.RPAREN, "')'"))
            return CstNode.make("ParenthesizedExpr", lparen.start, rparen.end, [lparen, inner, rparen])

        raise self._error("Expected an expression but got")

    def _parse_arg_list(self) -> CstNode:
        lparen = self._leaf("(", self._advance())
        children = [lparen]
        if self._peek() != TokenType.RPAREN:
            children.append(self._parse_expr())
            while self._peek() == TokenType.COMMA:
                children.append(self._leaf(",", self._advance()))
                children.append(self._parse_expr())
        rparen = self._leaf(")", self._expect(TokenType.RPAREN, "',' or ')'"))
        children.append(rparen)
        return CstNode.make("ArgList", lparen.start, rparen.end, children)

    def _binary(self, name: str, left: CstNode, op: CstNode, right: CstNode) -> CstNode:
        return CstNode.make(name, left.start, right.end, [left, op, right])


def parse_concrete(source: str) -> ConcreteTree:
    """Convenience function: tokenize and parse source into a concrete tree."""
    return Parser(tokenize(source), source).parse()

