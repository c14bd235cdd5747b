"""Imp lexer: tokenizer with source offset tracking.

Produces a stream of tokens from assertion and command source text.
`#` starts a line comment.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

from hlproof.errors import ParseTranslationError, SourceSpan, syntax_error


class TokenType(Enum):
    # Keywords
    TRUE = auto()
    FALSE = auto()
    SKIP = auto()

    # Literals
    INT_LIT = auto()

    # Identifier
    IDENT = auto()

    # Arithmetic operators
    PLUS = auto()
    MINUS = auto()
    STAR = auto()
    SLASH = auto()
    PERCENT = auto()

    # Comparison operators
    EQ = auto()
    NEQ = auto()
    GTE = auto()
    LTE = auto()
    GT = auto()
    LT = auto()

    # Logical operators
    AND = auto()
    OR = auto()
    NOT = auto()
    IMPLIES = auto()

    ASSIGN = auto()

    # Delimiters
    LBRACE = auto()
    RBRACE = auto()
    LPAREN = auto()
    RPAREN = auto()
    COMMA = auto()
    SEMICOLON = auto()

    EOF = auto()


KEYWORDS: dict[str, TokenType] = {
    "true": TokenType.TRUE,
    "false": TokenType.FALSE,
    "skip": TokenType.SKIP,
}

COMPARISON_OPS = frozenset({
    TokenType.EQ, TokenType.NEQ, TokenType.GTE,
    TokenType.LTE, TokenType.GT, TokenType.LT,
})


# Names and literals are ASCII only; str.isdigit() alone accepts "²".
def _is_digit(ch: str) -> bool:
    return ch.isascii() and ch.isdigit()


def _is_ident_start(ch: str) -> bool:
    return (ch.isascii() and ch.isalpha()) or ch == "_"


def _is_ident_char(ch: str) -> bool:
    return _is_ident_start(ch) or _is_digit(ch)


@dataclass
class Token:
    type: TokenType
    value: str
    start: int
    end: int

    @property
    def span(self) -> SourceSpan:
        return SourceSpan(self.start, self.end)

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.start}-{self.end})"


class Lexer:
    """Tokenizer for Imp assertions and commands."""

    def __init__(self, source: str):
        self.source = source
        self.pos = 0

    def _peek(self) -> Optional[str]:
        if self.pos < len(self.source):
            return self.source[self.pos]
        return None

    def _peek_ahead(self, offset: int = 1) -> Optional[str]:
        idx = self.pos + offset
        if idx < len(self.source):
            return self.source[idx]
        return None

    def _advance(self) -> str:
        ch = self.source[self.pos]
        self.pos += 1
        return ch

    def _skip_whitespace_and_comments(self) -> None:
        while self.pos < len(self.source):
            ch = self.source[self.pos]
            if ch in (" ", "\t", "\r", "\n"):
                self._advance()
            elif ch == "#":
                while self.pos < len(self.source) and self.source[self.pos] != "\n":
                    self._advance()
            else:
                break

    def _read_number(self) -> Token:
        start = self.pos
        while self.pos < len(self.source) and _is_digit(self.source[self.pos]):
            self._advance()
        return Token(TokenType.INT_LIT, self.source[start:self.pos], start, self.pos)

    def _read_identifier(self) -> Token:
        start = self.pos
        while self.pos < len(self.source) and _is_ident_char(self.source[self.pos]):
            self._advance()
        value = self.source[start:self.pos]
        return Token(KEYWORDS.get(value, TokenType.IDENT), value, start, self.pos)

    def _unexpected(self, ch: str, start: int) -> ParseTranslationError:
        return ParseTranslationError(syntax_error(
            "Unexpected character", SourceSpan(start, start + 1), found=ch,
        ))

    def tokenize(self) -> list[Token]:
        tokens: list[Token] = []
        while self.pos < len(self.source):
            self._skip_whitespace_and_comments()
            if self.pos >= len(self.source):
                break

            ch = self._peek()
            start = self.pos

            def emit(tt: TokenType, text: str) -> None:
                for _ in text:
                    self._advance()
                tokens.append(Token(tt, text, start, self.pos))

            if _is_digit(ch):
                tokens.append(self._read_number())
            elif _is_ident_start(ch):
                tokens.append(self._read_identifier())
            elif ch == "+":
                emit(TokenType.PLUS, "+")
            elif ch == "-":
                emit(TokenType.MINUS, "-")
            elif ch == "*":
                emit(TokenType.STAR, "*")
            elif ch == "/":
                emit(TokenType.SLASH, "/")
            elif ch == "%":
                emit(TokenType.PERCENT, "%")
            elif ch == "=":
                if self._peek_ahead() == ">":
                    emit(TokenType.IMPLIES, "=>")
                else:
                    emit(TokenType.EQ, "=")
            elif ch == "!":
                if self._peek_ahead() == "=":
                    emit(TokenType.NEQ, "!=")
                else:
                    emit(TokenType.NOT, "!")
            elif ch == ">":
                if self._peek_ahead() == "=":
                    emit(TokenType.GTE, ">=")
                else:
                    emit(TokenType.GT, ">")
            elif ch == "<":
                if self._peek_ahead() == "=":
                    emit(TokenType.LTE, "<=")
                else:
                    emit(TokenType.LT, "<")
            elif ch == "&":
                if self._peek_ahead() != "&":
                    raise self._unexpected(ch, start)
                emit(TokenType.AND, "&&")
            elif ch == "|":
                if self._peek_ahead() != "|":
                    raise self._unexpected(ch, start)
                emit(TokenType.OR, "||")
            elif ch == ":":
                if self._peek_ahead() != "=":
                    raise self._unexpected(ch, start)
                emit(TokenType.ASSIGN, ":=")
            elif ch == "{":
                emit(TokenType.LBRACE, "{")
            elif ch == "}":
                emit(TokenType.RBRACE, "}")
            elif ch == "(":
                emit(TokenType.LPAREN, "(")
            elif ch == ")":
                emit(TokenType.RPAREN, ")")
            elif ch == ",":
                emit(TokenType.COMMA, ",")
            elif ch == ";":
                emit(TokenType.SEMICOLON, ";")
            else:
                raise self._unexpected(ch, start)

        tokens.append(Token(TokenType.EOF, "", self.pos, self.pos))
        return tokens


def tokenize(source: str) -> list[Token]:
    """Convenience function to tokenize Imp source text."""
    return Lexer(source).tokenize()
